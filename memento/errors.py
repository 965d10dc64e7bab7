"""Error taxonomy shared by the engine, the stores and the services.

Business-rule violations are ``EngineError`` subclasses and carry a stable
``code``; services turn them into failed results. ``InvariantViolation`` marks
corrupted state and is never converted into a result.
"""

INSUFFICIENT_FUNDS = "INSUFFICIENT_FUNDS"
INVALID_AMOUNT = "INVALID_AMOUNT"
POOL_INACTIVE = "POOL_INACTIVE"
PRECONDITION_FAILED = "PRECONDITION_FAILED"
INVALID_MOVE = "INVALID_MOVE"
GAME_NOT_JOINABLE = "GAME_NOT_JOINABLE"
BET_PROPOSAL_REJECTED = "BET_PROPOSAL_REJECTED"
NOT_FOUND = "NOT_FOUND"
ALREADY_ISSUED = "ALREADY_ISSUED"
ACTIVE_GAME_EXISTS = "ACTIVE_GAME_EXISTS"


class EngineError(ValueError):
    """Base class for expected business-rule failures."""
    code = "ENGINE_ERROR"

    def __init__(self, message: str, details: dict | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(f"[{self.code}] {message}")


class InsufficientFunds(EngineError):
    code = INSUFFICIENT_FUNDS


class InvalidAmount(EngineError):
    code = INVALID_AMOUNT


class PoolInactive(EngineError):
    code = POOL_INACTIVE


class PreconditionFailed(EngineError):
    """A conditional write lost its race; reload state and retry."""
    code = PRECONDITION_FAILED


class InvalidMove(EngineError):
    code = INVALID_MOVE


class GameNotJoinable(EngineError):
    code = GAME_NOT_JOINABLE


class BetProposalRejected(EngineError):
    code = BET_PROPOSAL_REJECTED


class NotFound(EngineError):
    code = NOT_FOUND


class AlreadyIssued(EngineError):
    code = ALREADY_ISSUED


class ActiveGameExists(EngineError):
    code = ACTIVE_GAME_EXISTS


class InvariantViolation(RuntimeError):
    """Raised when a computed state breaks a hard invariant (e.g. a reserve <= 0)."""
