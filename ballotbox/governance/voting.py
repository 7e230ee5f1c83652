"""
Voting Engine

Implements:
  - Proposal creation, editing and closing (owner only)
  - One ballot per identity: Approve / Reject / Pass
  - Outcome derivation: quorum of distinct voters, then the first option
    (approve, reject, pass) holding at least the threshold share
  - Participation percentages kept beside proposals, keyed the same way

The engine keeps no state of its own. Each mutating operation reads the
record from the Ledger, validates it, and writes the whole record back while
holding that key's lock. Refusals come back as OperationResult values.
"""

import threading
from contextlib import contextmanager
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, Iterator, List, Optional

from ..constants import (
    GOVERNANCE_LOCK_STRIPES,
    GOVERNANCE_MIN_QUORUM,
    GOVERNANCE_OUTCOME_THRESHOLD,
)
from ..logger import get_logger
from .proposals import (
    OK,
    Identity,
    OperationResult,
    Proposal,
    ProposalInput,
    ProposalOutcome,
    VoteChoice,
    VoteError,
)
from .store import Ledger

logger = get_logger(__name__)


# ══════════════════════════════════════════════════════════════════════
#  TALLY
# ══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class Tally:
    """Snapshot of a proposal's ballots and the outcome they imply."""
    approve: int
    reject: int
    pass_: int
    voters: int
    quorum: int = GOVERNANCE_MIN_QUORUM
    threshold: Decimal = GOVERNANCE_OUTCOME_THRESHOLD

    @classmethod
    def of(cls, proposal: Proposal, **kwargs) -> "Tally":
        return cls(
            approve=proposal.approve_count,
            reject=proposal.reject_count,
            pass_=proposal.pass_count,
            voters=proposal.voter_count,
            **kwargs,
        )

    @property
    def total_votes(self) -> int:
        return self.approve + self.reject + self.pass_

    @property
    def quorum_reached(self) -> bool:
        return self.voters >= self.quorum

    def share(self, count: int) -> Decimal:
        """Percentage of all ballots that *count* represents."""
        if self.total_votes == 0:
            return Decimal("0")
        return Decimal(count) / Decimal(self.total_votes) * 100

    @property
    def approval_share(self) -> Decimal:
        return self.share(self.approve)

    @property
    def rejection_share(self) -> Decimal:
        return self.share(self.reject)

    @property
    def pass_share(self) -> Decimal:
        return self.share(self.pass_)

    @property
    def outcome(self) -> ProposalOutcome:
        if not self.quorum_reached:
            return ProposalOutcome.UNDECIDED
        if self.approval_share >= self.threshold:
            return ProposalOutcome.APPROVED
        if self.rejection_share >= self.threshold:
            return ProposalOutcome.REJECTED
        if self.pass_share >= self.threshold:
            return ProposalOutcome.PASSED
        return ProposalOutcome.UNDECIDED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "approve": self.approve,
            "reject": self.reject,
            "pass": self.pass_,
            "voters": self.voters,
            "quorumReached": self.quorum_reached,
            "approvalShare": str(self.approval_share),
            "rejectionShare": str(self.rejection_share),
            "passShare": str(self.pass_share),
            "outcome": self.outcome.value,
        }


# ══════════════════════════════════════════════════════════════════════
#  VOTING ENGINE
# ══════════════════════════════════════════════════════════════════════

class VotingEngine:
    """
    Proposal state machine over a Ledger.

    States per key: absent, active (is_active=True), closed (is_active=False).
    """

    def __init__(
        self,
        ledger: Ledger,
        quorum: int = GOVERNANCE_MIN_QUORUM,
        threshold: Decimal = GOVERNANCE_OUTCOME_THRESHOLD,
    ):
        """
        Args:
            ledger:    Stores holding proposals and participation figures
            quorum:    Distinct voters needed before an outcome is derived
            threshold: Percentage an option needs to decide the outcome
        """
        self.ledger = ledger
        self.quorum = quorum
        self.threshold = Decimal(threshold)

        self._locks: List[threading.Lock] = [
            threading.Lock() for _ in range(GOVERNANCE_LOCK_STRIPES)
        ]

    @contextmanager
    def _locked(self, key: int) -> Iterator[None]:
        """Serialize read-validate-write sequences on one key (striped by key)."""
        with self._locks[key % len(self._locks)]:
            yield

    @property
    def proposals(self):
        return self.ledger.proposals

    # ── Mutations ─────────────────────────────────────────────────────

    def create_proposal(
        self, caller: Identity, key: int, payload: ProposalInput
    ) -> Optional[Proposal]:
        """
        Store a fresh proposal owned by *caller* at *key*.

        An existing record at *key* is overwritten and returned.
        """
        proposal = Proposal.create(caller, payload)
        with self._locked(key):
            previous = self.proposals.insert(key, proposal)
        if previous is not None:
            logger.warning(f"Proposal #{key} overwritten by caller={caller}")
        else:
            logger.info(
                f"Proposal #{key} created by caller={caller} (active={payload.is_active})"
            )
        return previous

    def edit_proposal(
        self, caller: Identity, key: int, payload: ProposalInput
    ) -> OperationResult:
        """Replace description and active flag; tallies and voters are kept."""
        with self._locked(key):
            current = self.proposals.get(key)
            if current is None:
                return self._refuse(key, caller, VoteError.NO_PROPOSAL)
            if not current.is_owned_by(caller):
                return self._refuse(key, caller, VoteError.UNAUTHORIZED)

            previous = self.proposals.insert(key, current.edited(caller, payload))
            if previous is None:
                return self._refuse(key, caller, VoteError.UPDATE_ERROR)

        logger.info(f"Proposal #{key} edited (active={payload.is_active})")
        return OK

    def end_proposal(self, caller: Identity, key: int) -> OperationResult:
        """Close voting. Closing an already closed proposal succeeds."""
        with self._locked(key):
            current = self.proposals.get(key)
            if current is None:
                return self._refuse(key, caller, VoteError.NO_PROPOSAL)
            if not current.is_owned_by(caller):
                return self._refuse(key, caller, VoteError.UNAUTHORIZED)

            current.is_active = False
            previous = self.proposals.insert(key, current)
            if previous is None:
                return self._refuse(key, caller, VoteError.UPDATE_ERROR)

        logger.info(f"Proposal #{key} closed")
        return OK

    def vote(self, caller: Identity, key: int, choice: VoteChoice) -> OperationResult:
        """
        Cast *caller*'s single ballot on *key*.

        A repeat voter gets AlreadyVoted even when the proposal is closed.
        """
        with self._locked(key):
            current = self.proposals.get(key)
            if current is None:
                return self._refuse(key, caller, VoteError.NO_PROPOSAL)
            if current.has_voted(caller):
                return self._refuse(key, caller, VoteError.ALREADY_VOTED)
            if not current.is_active:
                return self._refuse(key, caller, VoteError.PROPOSAL_NOT_ACTIVE)

            current.record_vote(caller, choice)
            previous = self.proposals.insert(key, current)
            if previous is None:
                return self._refuse(key, caller, VoteError.VOTE_FAILED)

        logger.info(f"Proposal #{key}: caller={caller} voted {choice.value}")
        return OK

    def insert_participation(self, key: int, percentage: int) -> Optional[int]:
        """Record a participation figure for *key*; returns the one replaced."""
        with self._locked(key):
            return self.ledger.participation.insert(key, percentage)

    # ── Queries ───────────────────────────────────────────────────────

    def get_proposal(self, key: int) -> Optional[Proposal]:
        return self.proposals.get(key)

    def get_proposal_count(self) -> int:
        return len(self.proposals)

    def get_tally(self, key: int) -> Optional[Tally]:
        proposal = self.proposals.get(key)
        if proposal is None:
            return None
        return Tally.of(proposal, quorum=self.quorum, threshold=self.threshold)

    def get_proposal_status(self, key: int) -> Optional[ProposalOutcome]:
        tally = self.get_tally(key)
        if tally is None:
            return None
        return tally.outcome

    def get_participation(self, key: int) -> Optional[int]:
        return self.ledger.participation.get(key)

    # ── Helpers ───────────────────────────────────────────────────────

    def _refuse(self, key: int, caller: Identity, error: VoteError) -> OperationResult:
        logger.warning(f"Proposal #{key}: {error.value} for caller={caller}")
        return OperationResult(error)

    def __repr__(self) -> str:
        return (
            f"<VotingEngine proposals={self.get_proposal_count()} "
            f"quorum={self.quorum} threshold={self.threshold}>"
        )
