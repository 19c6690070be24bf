"""
Exception taxonomy for the adaptive testing engine.

Only fatal conditions are exceptions. Expected outcomes such as an exhausted
item pool or a saturated probability are reported through sentinel values
(``None`` from item selection) or absorbed by clamping.
"""

from typing import Any, Dict, Optional


class CATEngineError(Exception):
    """Base exception for adaptive testing engine errors."""

    def __init__(  # noqa: D107
        self,
        message: str,
        original_error: Optional[Exception] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.original_error = original_error
        self.context = context or {}
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        msg = self.message
        if self.context:
            ctx_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            msg = f"{msg} (context: {ctx_str})"
        if self.original_error:
            msg = f"{msg} - caused by: {str(self.original_error)}"
        return msg


class InvalidConfigurationError(CATEngineError, ValueError):
    """Raised when a session configuration is rejected before the test starts."""


class ItemParameterOutOfRangeError(CATEngineError, ValueError):
    """Raised at pool-load time for items with out-of-range IRT parameters."""


class SessionStateError(CATEngineError):
    """Raised when an operation is not allowed in the session's current state."""
