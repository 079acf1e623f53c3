from fastapi import status


class BoardError(Exception):
    """Base class for failures reported by the board repositories."""
    status_code = status.HTTP_400_BAD_REQUEST


class NotFound(BoardError):
    """Target thread or reply is absent or already soft-deleted."""


class InvalidCredential(BoardError):
    """Delete password did not match the stored hash."""


class PasswordTooLong(BoardError):
    """Delete password exceeds what bcrypt can hash."""


class WriteFailed(BoardError):
    """Store did not confirm the expected insert or modification count."""


class StoreUnavailable(BoardError):
    """Underlying I/O failure or timeout talking to the store."""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


class Exceptions:
    THREAD_NOT_FOUND = "no thread with that board and id was found"
    REPLY_NOT_FOUND = "no reply with that thread id and reply id was found"
    INCORRECT_PASSWORD = "incorrect password"
    THREAD_NOT_CREATED = "thread could not be created"
    THREAD_NOT_FLAGGED = "thread could not be flagged"
    THREAD_NOT_DELETED = "thread could not be deleted"
    REPLY_NOT_CREATED = "reply could not be created"
    REPLY_NOT_FLAGGED = "reply could not be flagged"
    REPLY_NOT_DELETED = "reply could not be deleted"
    PASSWORD_TOO_LONG = "delete password is too long"
    STORE_UNAVAILABLE = "storage is unavailable"
