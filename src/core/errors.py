"""Exception hierarchy shared by the core and adapters."""

from __future__ import annotations


class AutoResponderError(Exception):
    """Base class for all auto-responder errors."""


class ConfigError(AutoResponderError):
    """Configuration is missing or invalid. Fatal at startup."""


class DedupStoreError(AutoResponderError):
    """The responded-users snapshot could not be read or written."""


class InboxError(AutoResponderError):
    """The messaging client failed to refresh the inbox."""


class SendError(AutoResponderError):
    """A reply could not be delivered to the recipient."""


class WebhookDecodeError(AutoResponderError):
    """An inbound webhook payload does not have the expected shape."""
