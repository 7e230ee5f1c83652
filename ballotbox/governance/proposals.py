"""
Governance Proposals

Defines the caller identity, vote choices, the closed set of operation
errors, and the Proposal dataclass that is persisted in the proposal store.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


# ══════════════════════════════════════════════════════════════════════
#  EXCEPTIONS
# ══════════════════════════════════════════════════════════════════════

class GovernanceError(Exception):
    """Base governance exception."""


class InvalidProposalError(GovernanceError):
    """Raised when proposal data is malformed."""


class InvalidIdentityError(GovernanceError):
    """Raised when an identity token is empty or not text."""


def _is_utf8(text: str) -> bool:
    # Lone surrogates are legal in str and JSON but cannot be stored
    try:
        text.encode("utf-8")
    except UnicodeEncodeError:
        return False
    return True


# ══════════════════════════════════════════════════════════════════════
#  IDENTITY
# ══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class Identity:
    """
    Opaque caller credential supplied by the hosting layer.

    The engine never inspects it beyond equality; the text form is what the
    codec persists.
    """
    principal: str

    def __post_init__(self):
        if not isinstance(self.principal, str) or not self.principal:
            raise InvalidIdentityError("Identity principal must be a non-empty string")
        if not _is_utf8(self.principal):
            raise InvalidIdentityError("Identity principal must be valid UTF-8 text")

    def __str__(self) -> str:
        return self.principal


# ══════════════════════════════════════════════════════════════════════
#  ENUMS
# ══════════════════════════════════════════════════════════════════════

class VoteChoice(Enum):
    """The three mutually exclusive ballot options."""
    APPROVE = "Approve"
    REJECT = "Reject"
    PASS = "Pass"

    @classmethod
    def parse(cls, value: Any) -> "VoteChoice":
        """Accept a member, its value ("Approve") or its name ("APPROVE")."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            for choice in cls:
                if value in (choice.value, choice.name):
                    return choice
        raise InvalidProposalError(f"Invalid vote choice: {value!r}")


class ProposalOutcome(Enum):
    """Derived status of a proposal once votes are counted."""
    UNDECIDED = "Undecided"
    APPROVED = "Approved"
    REJECTED = "Rejected"
    PASSED = "Passed"


class VoteError(Enum):
    """Closed set of reasons an operation is refused."""
    ALREADY_VOTED = "AlreadyVoted"
    PROPOSAL_NOT_ACTIVE = "ProposalNotActive"
    UNAUTHORIZED = "Unauthorized"
    NO_PROPOSAL = "NoProposal"
    UPDATE_ERROR = "UpdateError"
    VOTE_FAILED = "VoteFailed"


@dataclass(frozen=True)
class OperationResult:
    """Success, or the VoteError explaining why nothing was written."""
    error: Optional[VoteError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> Dict[str, Any]:
        if self.error is None:
            return {"Ok": None}
        return {"Err": self.error.value}

    def __bool__(self) -> bool:
        return self.ok


OK = OperationResult()


# ══════════════════════════════════════════════════════════════════════
#  PROPOSAL
# ══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class ProposalInput:
    """Caller-supplied fields for create and edit."""
    description: str
    is_active: bool

    def __post_init__(self):
        if not isinstance(self.description, str):
            raise InvalidProposalError("Proposal description must be text")
        if not _is_utf8(self.description):
            raise InvalidProposalError("Proposal description must be valid UTF-8 text")
        if not isinstance(self.is_active, bool):
            raise InvalidProposalError("Proposal active flag must be a boolean")


@dataclass
class Proposal:
    """
    A votable item kept in the proposal store.

    Fields:
        description:    Owner-editable text
        owner:          Identity of the creator
        approve_count:  Number of Approve ballots
        reject_count:   Number of Reject ballots
        pass_count:     Number of Pass ballots
        is_active:      Ballots are accepted only while True
        voted:          Identities that already voted, without duplicates
    """
    description: str
    owner: Identity
    approve_count: int = 0
    reject_count: int = 0
    pass_count: int = 0
    is_active: bool = True
    voted: List[Identity] = field(default_factory=list)

    @classmethod
    def create(cls, owner: Identity, payload: ProposalInput) -> "Proposal":
        return cls(
            description=payload.description,
            owner=owner,
            is_active=payload.is_active,
        )

    # ── Properties ────────────────────────────────────────────────────

    @property
    def total_votes(self) -> int:
        return self.approve_count + self.reject_count + self.pass_count

    @property
    def voter_count(self) -> int:
        return len(self.voted)

    def has_voted(self, identity: Identity) -> bool:
        return identity in self.voted

    def is_owned_by(self, identity: Identity) -> bool:
        return self.owner == identity

    # ── Mutations (applied to a fetched copy, then written back) ──────

    def record_vote(self, voter: Identity, choice: VoteChoice):
        """Count one ballot. Callers check `has_voted` and `is_active` first."""
        if choice is VoteChoice.APPROVE:
            self.approve_count += 1
        elif choice is VoteChoice.REJECT:
            self.reject_count += 1
        else:
            self.pass_count += 1
        self.voted.append(voter)

    def edited(self, editor: Identity, payload: ProposalInput) -> "Proposal":
        """New record with replaced content; tallies and voters carried over."""
        return Proposal(
            description=payload.description,
            owner=editor,
            approve_count=self.approve_count,
            reject_count=self.reject_count,
            pass_count=self.pass_count,
            is_active=payload.is_active,
            voted=list(self.voted),
        )

    # ── Serialization ─────────────────────────────────────────────────

    def to_dict(self) -> Dict[str, Any]:
        return {
            "description": self.description,
            "approve": self.approve_count,
            "reject": self.reject_count,
            "pass": self.pass_count,
            "isActive": self.is_active,
            "voted": [str(v) for v in self.voted],
            "owner": str(self.owner),
        }

    def __repr__(self) -> str:
        return (
            f"<Proposal owner={self.owner} active={self.is_active} "
            f"votes={self.approve_count}/{self.reject_count}/{self.pass_count}>"
        )
