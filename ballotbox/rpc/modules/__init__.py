"""
BallotBox RPC Modules

JSON-RPC method implementations.
"""

from .governance import GovernanceModule
from .node import NodeModule

__all__ = [
    "GovernanceModule",
    "NodeModule",
]
