"""Base exceptions for walink."""


class WalinkError(Exception):
    """Base exception for all walink errors."""

    pass


class StorageError(WalinkError):
    """Session storage operation failed."""

    pass


class BackendError(WalinkError):
    """Pairing backend connection or protocol error."""

    pass


class LoggedOutError(BackendError):
    """Backend closed the connection because the account logged out."""

    pass


class DeliveryError(WalinkError):
    """Link succeeded but the credentials file could not be delivered."""

    pass
