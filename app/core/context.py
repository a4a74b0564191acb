"""Request-scoped identifiers used to stamp log records.

Queries never read these; services receive the organization explicitly
through ``TenantContext``.
"""

import contextvars

_tenant_id: contextvars.ContextVar[str] = contextvars.ContextVar("tenant_id", default="-")
_request_id: contextvars.ContextVar[str] = contextvars.ContextVar("request_id", default="-")
_actor_id: contextvars.ContextVar[str] = contextvars.ContextVar("actor_id", default="-")


def set_tenant_id(tenant_id: str) -> None:
    _tenant_id.set(tenant_id)


def get_tenant_id() -> str:
    return _tenant_id.get()


def set_request_id(request_id: str) -> None:
    _request_id.set(request_id)


def get_request_id() -> str:
    return _request_id.get()


def set_actor_id(actor_id: str) -> None:
    _actor_id.set(actor_id)


def get_actor_id() -> str:
    return _actor_id.get()


def clear_context() -> None:
    _tenant_id.set("-")
    _request_id.set("-")
    _actor_id.set("-")
