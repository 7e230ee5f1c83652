"""BallotBox command-line tools."""
