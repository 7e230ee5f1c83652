"""
BallotBox Node

HTTP host of the proposal ledger and the caller authentication it relies on.
"""

from .identity import CallerAuthenticator
from .main import create_app, open_ledger

__all__ = [
    "CallerAuthenticator",
    "create_app",
    "open_ledger",
]
