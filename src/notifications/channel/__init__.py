"""Email adapter registry.

Provides singleton access to the email adapter. Defaults to the logging
adapter; tests install a ``FakeEmailAdapter`` and a real provider adapter can
be installed at startup.
"""

from notifications.channel.email_port import DeliveryReceipt, EmailMessage, EmailPort

_email_adapter: EmailPort | None = None


def get_email_adapter() -> EmailPort:
    """Return the configured email adapter."""
    global _email_adapter
    if _email_adapter is None:
        from notifications.channel.fake_email import LoggingEmailAdapter

        _email_adapter = LoggingEmailAdapter()
    return _email_adapter


def set_email_adapter(adapter: EmailPort) -> None:
    global _email_adapter
    _email_adapter = adapter


def reset_email_adapter() -> None:
    global _email_adapter
    _email_adapter = None


__all__ = [
    "DeliveryReceipt",
    "EmailMessage",
    "EmailPort",
    "get_email_adapter",
    "reset_email_adapter",
    "set_email_adapter",
]
