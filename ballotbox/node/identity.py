"""
BallotBox Caller Identity

The node vouches for callers with HMAC-SHA256 tokens:

    token = hex(HMAC-SHA256(secret, caller_id))

A request carrying `x-caller-id` and a matching `x-caller-token` is handled
as that identity. Anything else is anonymous. Tokens are issued out of band
with the `ballotbox-auth` CLI.
"""

import hashlib
import hmac
import re
from typing import Optional

from ..exceptions import AuthenticationError
from ..governance.proposals import Identity
from ..logger import get_logger

logger = get_logger(__name__)

CALLER_ID_HEADER = "x-caller-id"
CALLER_TOKEN_HEADER = "x-caller-token"

# Printable, no whitespace, bounded length
_CALLER_ID_RE = re.compile(r"^[A-Za-z0-9._:@-]{1,128}$")


class CallerAuthenticator:
    """Issues and checks caller tokens with a node-wide secret."""

    def __init__(self, secret: Optional[str]):
        self._secret = secret.encode("utf-8") if secret else None

    @property
    def enabled(self) -> bool:
        return self._secret is not None

    @staticmethod
    def is_valid_caller_id(caller_id: str) -> bool:
        return bool(caller_id) and bool(_CALLER_ID_RE.match(caller_id))

    def issue(self, caller_id: str) -> str:
        if self._secret is None:
            raise AuthenticationError("No auth secret configured (BALLOTBOX_AUTH_SECRET)")
        if not self.is_valid_caller_id(caller_id):
            raise AuthenticationError(f"Invalid caller id: {caller_id!r}")
        return hmac.new(self._secret, caller_id.encode("utf-8"), hashlib.sha256).hexdigest()

    def verify(self, caller_id: Optional[str], token: Optional[str]) -> Optional[Identity]:
        """Identity for a valid (caller_id, token) pair, else None."""
        if self._secret is None or not caller_id or not token:
            return None
        if not self.is_valid_caller_id(caller_id):
            return None
        expected = self.issue(caller_id)
        if not hmac.compare_digest(expected, token.strip().lower()):
            logger.warning(f"Rejected token for caller={caller_id}")
            return None
        return Identity(caller_id)
