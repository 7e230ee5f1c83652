"""
BallotBox Package

A persistent proposal ledger with one-ballot-per-identity voting.
For direct module access, import from submodules:

    from ballotbox.governance import VotingEngine, Ledger
    from ballotbox.node import create_app
"""

from .constants import NODE_VERSION

__version__ = NODE_VERSION


# Lazy imports so `import ballotbox` does not pull in the HTTP stack
def __getattr__(name):
    if name == 'VotingEngine':
        from .governance import VotingEngine
        return VotingEngine
    elif name == 'Ledger':
        from .governance import Ledger
        return Ledger
    elif name == 'create_app':
        from .node import create_app
        return create_app
    raise AttributeError(f"module 'ballotbox' has no attribute {name!r}")

__all__ = ['VotingEngine', 'Ledger', 'create_app', '__version__']
