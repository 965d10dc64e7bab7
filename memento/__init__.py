"""Memento: personal-token AMM and two-player betting game room."""

__version__ = "0.1.0"
