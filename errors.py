class StorageUnavailable(RuntimeError):
    """The database could not complete a read or write.

    Raised only after the session has been rolled back, so callers never see
    partially applied state.
    """


class InvalidToken(Exception):
    """An access token was missing, malformed, expired or signed by someone else."""
