"""Custom exception hierarchy for chatdispatch.

Structural registry violations (duplicate names, bad insertion positions,
unknown names) are programmer errors and are raised loudly. Transport
failures (missing permissions, blocked DMs) are raised by the transport
collaborator and recovered by the dispatcher and menus.
"""

from enum import Enum
from typing import Any, Optional


class ErrorCategory(str, Enum):
    """Classification of errors for retry decisions."""
    TRANSIENT = "transient"          # Worth retrying (timeout, rate limit)
    PERMANENT = "permanent"          # Not worth retrying (bad input, missing permission)
    INFRASTRUCTURE = "infrastructure"  # Config or environment issues


class ChatDispatchError(Exception):
    """Base exception for all chatdispatch errors.

    Attributes:
        message: Human-readable error description.
        category: Error classification for retry/escalation decisions.
        module: Originating module name (e.g. "commands.registry").
        context: Arbitrary key-value pairs for structured logging.
    """

    def __init__(
        self,
        message: str = "",
        *,
        category: ErrorCategory = ErrorCategory.PERMANENT,
        module: Optional[str] = None,
        **context: Any,
    ) -> None:
        self.message = message
        self.category = category
        self.module = module
        self.context = context
        super().__init__(message)

    @property
    def is_retryable(self) -> bool:
        """Whether this error is worth retrying."""
        return self.category == ErrorCategory.TRANSIENT

    def __str__(self) -> str:
        parts = [self.message or self.__class__.__name__]
        if self.module:
            parts.append(f"[module={self.module}]")
        if self.context:
            ctx = ", ".join(f"{k}={v}" for k, v in self.context.items())
            parts.append(f"({ctx})")
        return " ".join(parts)

    def __repr__(self) -> str:
        cls = self.__class__.__name__
        return (
            f"{cls}({self.message!r}, category={self.category.value!r}, "
            f"module={self.module!r})"
        )


# ---------------------------------------------------------------------------
# Command registry exceptions
# ---------------------------------------------------------------------------

class RegistryError(ChatDispatchError):
    """Structural violation of the command registry.

    Registry errors never leave the registry partially mutated.
    """

    def __init__(
        self,
        message: str = "",
        *,
        category: ErrorCategory = ErrorCategory.PERMANENT,
        module: Optional[str] = None,
        **context: Any,
    ) -> None:
        super().__init__(
            message, category=category, module=module or "commands.registry", **context
        )


class DuplicateKeyError(RegistryError, ValueError):
    """A command name or alias is already indexed.

    Attributes:
        key: The colliding name or alias (lowercased).
    """

    def __init__(self, message: str = "", *, key: Optional[str] = None, **context: Any) -> None:
        self.key = key
        super().__init__(message, key=key, **context)


class CommandNotFoundError(RegistryError, KeyError):
    """A name passed to remove() is not indexed."""

    def __init__(self, message: str = "", *, name: Optional[str] = None, **context: Any) -> None:
        self.name = name
        super().__init__(message, name=name, **context)

    # KeyError.__str__ would repr() the message
    __str__ = ChatDispatchError.__str__


class IndexOutOfRangeError(RegistryError, IndexError):
    """An insertion position outside ``[0, size]``."""

    def __init__(
        self,
        message: str = "",
        *,
        position: Optional[int] = None,
        size: Optional[int] = None,
        **context: Any,
    ) -> None:
        self.position = position
        self.size = size
        super().__init__(message, position=position, size=size, **context)


# ---------------------------------------------------------------------------
# Transport exceptions
# ---------------------------------------------------------------------------

class TransportError(ChatDispatchError):
    """A side-effecting chat operation failed."""

    def __init__(
        self,
        message: str = "",
        *,
        category: ErrorCategory = ErrorCategory.TRANSIENT,
        module: Optional[str] = None,
        **context: Any,
    ) -> None:
        super().__init__(
            message, category=category, module=module or "transport", **context
        )


class PermissionDeniedError(TransportError):
    """The bot lacks a permission for the requested operation.

    Defaults to PERMANENT.

    Attributes:
        permission: Name of the missing permission (if known).
    """

    def __init__(
        self,
        message: str = "",
        *,
        permission: Optional[str] = None,
        category: ErrorCategory = ErrorCategory.PERMANENT,
        module: Optional[str] = None,
        **context: Any,
    ) -> None:
        self.permission = permission
        super().__init__(message, category=category, module=module, **context)


class DeliveryError(TransportError):
    """A message could not be delivered (e.g. the user blocks DMs)."""


# ---------------------------------------------------------------------------
# Configuration exceptions
# ---------------------------------------------------------------------------

class ConfigurationError(ChatDispatchError):
    """Invalid or missing configuration.

    Defaults to INFRASTRUCTURE because config issues are environmental
    and won't resolve by retrying.
    """

    def __init__(
        self,
        message: str = "",
        *,
        setting_name: Optional[str] = None,
        category: ErrorCategory = ErrorCategory.INFRASTRUCTURE,
        module: Optional[str] = None,
        **context: Any,
    ) -> None:
        self.setting_name = setting_name
        super().__init__(
            message, category=category, module=module or "config", **context
        )
