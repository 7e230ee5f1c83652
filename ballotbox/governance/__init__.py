"""
BallotBox Governance

Provides:
  - Identity / VoteChoice / ProposalOutcome / VoteError / Proposal   (proposals.py)
  - ProposalCodec / ParticipationCodec                              (codec.py)
  - StableMap / MemoryStableMap / SQLiteStableMap / Ledger          (store.py)
  - Tally / VotingEngine                                            (voting.py)
"""

from .proposals import (
    OK,
    GovernanceError,
    Identity,
    InvalidIdentityError,
    InvalidProposalError,
    OperationResult,
    Proposal,
    ProposalInput,
    ProposalOutcome,
    VoteChoice,
    VoteError,
)
from .codec import (
    PARTICIPATION_CODEC,
    PROPOSAL_CODEC,
    ParticipationCodec,
    ProposalCodec,
    RecordCodec,
)
from .store import (
    Ledger,
    MemoryStableMap,
    ParticipationStore,
    ProposalStore,
    SQLiteStableMap,
    StableMap,
)
from .voting import (
    Tally,
    VotingEngine,
)

__all__ = [
    # Proposals
    "OK",
    "GovernanceError",
    "Identity",
    "InvalidIdentityError",
    "InvalidProposalError",
    "OperationResult",
    "Proposal",
    "ProposalInput",
    "ProposalOutcome",
    "VoteChoice",
    "VoteError",
    # Codec
    "PARTICIPATION_CODEC",
    "PROPOSAL_CODEC",
    "ParticipationCodec",
    "ProposalCodec",
    "RecordCodec",
    # Store
    "Ledger",
    "MemoryStableMap",
    "ParticipationStore",
    "ProposalStore",
    "SQLiteStableMap",
    "StableMap",
    # Voting
    "Tally",
    "VotingEngine",
]
