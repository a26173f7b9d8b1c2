"""Request-scoped context shared with the logging pipeline.

Values live in contextvars so they follow the request through awaits without
being passed around; ``add_context_processor`` copies them into every log
event.
"""

from contextvars import ContextVar
from typing import Any
from uuid import UUID, uuid4


request_id_var: ContextVar[str] = ContextVar("request_id", default="")
user_id_var: ContextVar[str | None] = ContextVar("user_id", default=None)
trace_id_var: ContextVar[str | None] = ContextVar("trace_id", default=None)


def get_request_id() -> str:
    """Get the current request ID."""
    return request_id_var.get()


def set_request_id(request_id: str | None = None) -> str:
    """Set the request ID, generating one when the caller did not send any."""
    rid = request_id or str(uuid4())
    request_id_var.set(rid)
    return rid


def get_user_id() -> str | None:
    """Get the authenticated user ID, if any."""
    return user_id_var.get()


def set_user_id(user_id: str | UUID | None) -> None:
    """Attach the authenticated user to the current request."""
    user_id_var.set(str(user_id) if user_id is not None else None)


def get_trace_id() -> str | None:
    """Get the distributed trace ID, if any."""
    return trace_id_var.get()


def set_trace_id(trace_id: str | None) -> None:
    """Set the distributed trace ID."""
    trace_id_var.set(trace_id)


def get_context() -> dict[str, Any]:
    """Return the non-empty context values as a dict."""
    context: dict[str, Any] = {}
    if request_id := get_request_id():
        context["request_id"] = request_id
    if user_id := get_user_id():
        context["user_id"] = user_id
    if trace_id := get_trace_id():
        context["trace_id"] = trace_id
    return context


def clear_context() -> None:
    """Reset all values; called when a request finishes."""
    request_id_var.set("")
    user_id_var.set(None)
    trace_id_var.set(None)
