"""
Record Codecs

RLP encoding of the values kept in the stable maps. Stores only ever hold
bytes, so every read decodes a fresh copy of the canonical record.
"""

from typing import Any, Generic, TypeVar

import rlp
from rlp.exceptions import RLPException
from rlp.sedes import CountableList, List, big_endian_int, boolean, text

from ..exceptions import CodecError
from .proposals import Identity, InvalidIdentityError, Proposal

T = TypeVar("T")


# description, approve, reject, pass, is_active, voted, owner
PROPOSAL_SEDES = List([
    text,
    big_endian_int,
    big_endian_int,
    big_endian_int,
    boolean,
    CountableList(text),
    text,
])


class RecordCodec(Generic[T]):
    """Encode/decode pair for one stable map's value type."""

    name = "record"
    sedes: Any = None

    def encode(self, value: T) -> bytes:
        try:
            return rlp.encode(self._to_serial(value), sedes=self.sedes)
        except (RLPException, UnicodeError) as e:
            raise CodecError(f"Cannot encode {self.name}: {e}") from e

    def decode(self, data: bytes) -> T:
        try:
            serial = rlp.decode(data, sedes=self.sedes)
        except (RLPException, UnicodeError) as e:
            raise CodecError(f"Cannot decode {self.name}: {e}") from e
        return self._from_serial(serial)

    def _to_serial(self, value: T) -> Any:
        return value

    def _from_serial(self, serial: Any) -> T:
        return serial


class ProposalCodec(RecordCodec[Proposal]):
    name = "proposal"
    sedes = PROPOSAL_SEDES

    def _to_serial(self, proposal: Proposal) -> list:
        return [
            proposal.description,
            proposal.approve_count,
            proposal.reject_count,
            proposal.pass_count,
            proposal.is_active,
            [str(v) for v in proposal.voted],
            str(proposal.owner),
        ]

    def _from_serial(self, serial) -> Proposal:
        description, approve, reject, pass_, is_active, voted, owner = serial
        try:
            return Proposal(
                description=description,
                owner=Identity(owner),
                approve_count=approve,
                reject_count=reject,
                pass_count=pass_,
                is_active=is_active,
                voted=[Identity(v) for v in voted],
            )
        except InvalidIdentityError as e:
            raise CodecError(f"Cannot decode proposal: {e}") from e


class ParticipationCodec(RecordCodec[int]):
    """Participation percentages are plain unsigned integers."""
    name = "participation"
    sedes = big_endian_int


PROPOSAL_CODEC = ProposalCodec()
PARTICIPATION_CODEC = ParticipationCodec()
