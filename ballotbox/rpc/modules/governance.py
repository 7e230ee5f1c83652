"""
BallotBox gov_* RPC Methods

Proposal ledger operations. Mutating methods act on behalf of the
authenticated caller of the request; refused operations come back as
{"Err": "<kind>"} results, not as JSON-RPC errors.
"""

from typing import Any, Dict, Optional

from ..server import RPCError, RPCErrorCode, RPCModule, rpc_method
from ...constants import PROPOSAL_KEY_MAX
from ...governance import (
    InvalidProposalError,
    ProposalInput,
    VoteChoice,
    VotingEngine,
)


def parse_key(key: Any) -> int:
    """Validate a proposal key (unsigned 64-bit integer)."""
    if isinstance(key, bool) or not isinstance(key, int):
        raise RPCError(RPCErrorCode.INVALID_PARAMS, f"Key must be an integer, got {key!r}")
    if not 0 <= key <= PROPOSAL_KEY_MAX:
        raise RPCError(RPCErrorCode.INVALID_PARAMS, f"Key out of range: {key}")
    return key


def parse_payload(description: Any, is_active: Any) -> ProposalInput:
    try:
        return ProposalInput(description=description, is_active=is_active)
    except InvalidProposalError as e:
        raise RPCError(RPCErrorCode.INVALID_PARAMS, str(e))


class GovernanceModule(RPCModule):
    """
    Proposal ledger methods (gov_* namespace).
    """

    namespace = "gov"

    def __init__(self, context: VotingEngine):
        super().__init__(context)
        self.engine = context

    # ── Mutations ─────────────────────────────────────────────────────

    @rpc_method
    async def createProposal(
        self, key: int, description: str, isActive: bool = True
    ) -> Optional[Dict[str, Any]]:
        """
        Create a proposal owned by the caller.

        Returns:
            The proposal previously stored at key, or null
        """
        caller = self.require_caller()
        previous = self.engine.create_proposal(
            caller, parse_key(key), parse_payload(description, isActive)
        )
        return previous.to_dict() if previous is not None else None

    @rpc_method
    async def editProposal(self, key: int, description: str, isActive: bool) -> Dict[str, Any]:
        """Replace description and active flag (owner only)."""
        caller = self.require_caller()
        result = self.engine.edit_proposal(
            caller, parse_key(key), parse_payload(description, isActive)
        )
        return result.to_dict()

    @rpc_method
    async def endProposal(self, key: int) -> Dict[str, Any]:
        """Close voting on a proposal (owner only)."""
        caller = self.require_caller()
        return self.engine.end_proposal(caller, parse_key(key)).to_dict()

    @rpc_method
    async def vote(self, key: int, choice: str) -> Dict[str, Any]:
        """
        Cast the caller's ballot.

        Args:
            key: Proposal key
            choice: "Approve", "Reject" or "Pass"
        """
        caller = self.require_caller()
        try:
            vote_choice = VoteChoice.parse(choice)
        except InvalidProposalError as e:
            raise RPCError(RPCErrorCode.INVALID_PARAMS, str(e))
        return self.engine.vote(caller, parse_key(key), vote_choice).to_dict()

    @rpc_method
    async def insertParticipation(self, key: int, percentage: int) -> Optional[int]:
        """Store a participation percentage; returns the value replaced."""
        self.require_caller()
        if isinstance(percentage, bool) or not isinstance(percentage, int) or percentage < 0:
            raise RPCError(
                RPCErrorCode.INVALID_PARAMS,
                f"Percentage must be a non-negative integer, got {percentage!r}",
            )
        return self.engine.insert_participation(parse_key(key), percentage)

    # ── Queries ───────────────────────────────────────────────────────

    @rpc_method
    async def getProposal(self, key: int) -> Optional[Dict[str, Any]]:
        proposal = self.engine.get_proposal(parse_key(key))
        return proposal.to_dict() if proposal is not None else None

    @rpc_method
    async def getProposalCount(self) -> int:
        return self.engine.get_proposal_count()

    @rpc_method
    async def getProposalStatus(self, key: int) -> Optional[str]:
        """Undecided / Approved / Rejected / Passed, or null if absent."""
        outcome = self.engine.get_proposal_status(parse_key(key))
        return outcome.value if outcome is not None else None

    @rpc_method
    async def getTally(self, key: int) -> Optional[Dict[str, Any]]:
        """Ballot counts, shares and derived outcome."""
        tally = self.engine.get_tally(parse_key(key))
        return tally.to_dict() if tally is not None else None

    @rpc_method
    async def getParticipation(self, key: int) -> Optional[int]:
        return self.engine.get_participation(parse_key(key))
