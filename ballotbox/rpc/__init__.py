"""
BallotBox RPC Module

Provides the JSON-RPC 2.0 interface of the proposal ledger:
- gov_* proposal and ballot methods
- node_* utility methods
"""

from .server import RPCError, RPCErrorCode, RPCServer, current_caller

__all__ = [
    "RPCError",
    "RPCErrorCode",
    "RPCServer",
    "current_caller",
]
