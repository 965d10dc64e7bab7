"""Initialization for the scripts package.

Scripts are run as modules, e.g. ``python -m memento.scripts.seed_config --rps_tie_policy draw``.
Plotting and CSV export need the 'scripts' extra (matplotlib, pandas).
"""
