"""Call Context Management.

Task-safe call context using contextvars for binding call IDs,
user IDs and tool IDs to log entries. Each asyncio task gets its own
copy of the context, so concurrent ``call_ai`` invocations never see
each other's values.
"""

import uuid
from contextvars import ContextVar, Token
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any


_call_id_var: ContextVar[str] = ContextVar("call_id", default="")
_user_id_var: ContextVar[str] = ContextVar("user_id", default="")
_tool_id_var: ContextVar[str] = ContextVar("tool_id", default="")
_extra_context_var: ContextVar[dict] = ContextVar("extra_context", default={})


def generate_call_id() -> str:
    """Generate a unique call ID using UUID4."""
    return str(uuid.uuid4())


def get_call_id() -> str:
    return _call_id_var.get()


def get_user_id() -> str:
    return _user_id_var.get()


def get_tool_id() -> str:
    return _tool_id_var.get()


def get_context_dict() -> dict[str, Any]:
    """Get all context variables as a dictionary for log binding."""
    ctx = {}
    call_id = _call_id_var.get()
    if call_id:
        ctx["call_id"] = call_id
    user_id = _user_id_var.get()
    if user_id:
        ctx["user_id"] = user_id
    tool_id = _tool_id_var.get()
    if tool_id:
        ctx["tool_id"] = tool_id
    extra = _extra_context_var.get()
    if extra:
        ctx.update(extra)
    return ctx


@dataclass
class CallContext:
    """Context manager for call-scoped logging context.

    Binds call_id, user_id and tool_id to all log entries within the
    context. On exit the previous values are restored, so contexts nest.

    Example:
        with CallContext(user_id="user_1", tool_id="summarizer"):
            logger.info("routing prompt")  # includes call_id, user_id, tool_id
    """

    call_id: str = ""
    user_id: str = ""
    tool_id: str = ""
    extra: dict[str, Any] = field(default_factory=dict)
    started_at: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc)
    )

    _tokens: list[tuple[ContextVar, Token]] = field(default_factory=list, repr=False)

    def __post_init__(self):
        if not self.call_id:
            self.call_id = generate_call_id()

    def __enter__(self) -> "CallContext":
        self._tokens = [
            (_call_id_var, _call_id_var.set(self.call_id)),
            (_user_id_var, _user_id_var.set(self.user_id or "")),
            (_tool_id_var, _tool_id_var.set(self.tool_id or "")),
            (_extra_context_var, _extra_context_var.set(self.extra.copy())),
        ]
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        for var, token in reversed(self._tokens):
            var.reset(token)
        self._tokens.clear()

    @property
    def elapsed_ms(self) -> float:
        """Milliseconds since context was created."""
        delta = datetime.now(timezone.utc) - self.started_at
        return delta.total_seconds() * 1000

    def bind(self, **kwargs: Any) -> None:
        """Add extra key-value pairs to the context."""
        current = _extra_context_var.get()
        _extra_context_var.set({**current, **kwargs})
        self.extra.update(kwargs)
