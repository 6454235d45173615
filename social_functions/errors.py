from typing import Optional


class SocialFunctionsError(Exception):
    """Base class for all errors raised by social functions."""


class StoreError(SocialFunctionsError):
    """A document store read or write failed."""


class StorageError(SocialFunctionsError):
    """An object storage transfer failed."""


class TransportError(SocialFunctionsError):
    """The push transport rejected or failed to deliver a message."""

    def __init__(self, message: str, code: Optional[str] = None, unregistered: bool = False):
        super().__init__(message)
        self.code = code
        self.unregistered = unregistered


class CodecError(SocialFunctionsError):
    """Image decoding, resizing or encoding failed."""

    def __init__(self, message: str, exit_code: int = 1):
        super().__init__(message)
        self.exit_code = exit_code


class CallableError(SocialFunctionsError):
    """
    Structured error returned to the caller of a synchronous function.

    ``status`` follows the callable protocol codes (``invalid-argument``,
    ``internal``, ...).
    """

    http_status = 500

    def __init__(self, message: str, status: str = "internal"):
        super().__init__(message)
        self.status = status
        self.message = message


class InvalidInputError(CallableError):
    """A synchronous call was made with a malformed payload."""

    http_status = 400

    def __init__(self, message: str, status: str = "invalid-argument"):
        super().__init__(message, status=status)
