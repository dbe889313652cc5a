"""
Custom exception hierarchy for tradealarm.

All tradealarm exceptions derive from TradeAlarmError for easy catching.
Organized by domain: Configuration, Transport, Storage, Notification.
"""


class TradeAlarmError(Exception):
    """Base exception for all tradealarm errors."""
    pass


# ============================================================================
# Configuration Errors
# ============================================================================

class ConfigurationError(TradeAlarmError):
    """Configuration-related errors (env vars, settings)."""
    pass


class MissingCredentialError(ConfigurationError):
    """Required credential (bot token) not found in environment."""
    pass


class InvalidConfigValueError(ConfigurationError):
    """Configuration value invalid or out of range."""
    pass


# ============================================================================
# Transport Errors (inbound message fetching)
# ============================================================================

class TransportError(TradeAlarmError):
    """Inbound transport failed (network, timeout, bad response).

    Always transient from the poller's point of view: it is logged and
    the fetch is retried after a backoff without advancing the cursor.
    """

    def __init__(self, message: str, status: int = None):
        """
        Initialize transport error.

        Args:
            message: Error message
            status: HTTP status code, if a response was received
        """
        self.status = status
        super().__init__(message)


# ============================================================================
# Storage Errors (ledger store)
# ============================================================================

class StorageError(TradeAlarmError):
    """Ledger store operation failed.

    Raised to the caller of the operation; the failed operation is rolled
    back so nothing is partially applied.
    """

    def __init__(self, message: str, operation: str = None, identifier: str = None):
        """
        Initialize storage error with context.

        Args:
            message: Error message
            operation: Store operation that failed (e.g. "append_entry")
            identifier: User identifier the operation was for
        """
        self.operation = operation
        self.identifier = identifier

        full_message = message
        if operation:
            full_message = f"[{operation}] {message}"

        super().__init__(full_message)


# ============================================================================
# Notification Errors
# ============================================================================

class NotificationError(TradeAlarmError):
    """Outbound notification could not be delivered.

    Never fatal: notifiers log it and report failure through their return
    value instead of raising.
    """
    pass
