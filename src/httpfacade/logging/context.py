"""
Request-scoped log context.

Each asyncio task runs in a copy of the context it was created in, so values
bound while one request runs never show up in the logs of another.
"""

from contextvars import ContextVar, Token

_FIELDS: dict[str, ContextVar[str]] = {
    name: ContextVar(name, default="")
    for name in ("request_id", "phase", "worker_id")
}

Binding = list[tuple[ContextVar, Token]]


def bind_log_context(**fields: object) -> Binding:
    """Set every non-None field and return the tokens needed to undo it."""
    binding: Binding = []
    for name, value in fields.items():
        if value is None:
            continue
        var = _FIELDS[name]
        binding.append((var, var.set(str(value))))
    return binding


def unbind_log_context(binding: Binding) -> None:
    for var, token in reversed(binding):
        var.reset(token)


def set_log_context(
    request_id: int | str | None = None,
    phase: str | None = None,
    worker_id: str | None = None,
) -> None:
    bind_log_context(request_id=request_id, phase=phase, worker_id=worker_id)


def get_log_context() -> dict[str, str]:
    return {name: var.get() for name, var in _FIELDS.items()}


def clear_log_context() -> None:
    for var in _FIELDS.values():
        var.set("")
