"""
BallotBox Exceptions

Infrastructure exception classes. Business rule violations are not raised:
the voting engine returns them as `VoteError` values.
"""


class BallotBoxException(Exception):
    """Base exception for BallotBox."""
    pass


class ConfigurationError(BallotBoxException):
    """Configuration error."""
    pass


class StoreError(BallotBoxException):
    """The backing store failed to read or write a record."""
    pass


class CodecError(BallotBoxException):
    """A stored record could not be encoded or decoded."""
    pass


class AuthenticationError(BallotBoxException):
    """Caller credentials could not be issued or checked."""
    pass
