from dataclasses import dataclass
from uuid import UUID

from fastapi import Header, HTTPException, Request, status

from app.core.context import set_tenant_id
from app.core.settings import settings
from app.core.tenant import normalize_org_id, org_id_from_host


@dataclass(slots=True)
class TenantContext:
    org_id: str


async def get_tenant_context(
    request: Request,
    tenant_id: str | None = Header(default=None, alias="X-Tenant-ID"),
) -> TenantContext:
    mode = settings.tenancy_mode
    if mode == "multi":
        candidate = tenant_id or org_id_from_host(
            request.headers.get("host", ""), settings.allowed_tenant_hosts
        )
        if not candidate:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Tenant resolution failed: provide X-Tenant-ID header or subdomain",
            )
        try:
            org_id = normalize_org_id(candidate)
        except ValueError as exc:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
        set_tenant_id(org_id)
        return TenantContext(org_id=org_id)

    default_org = settings.default_org_id
    set_tenant_id(default_org)
    return TenantContext(org_id=default_org)


async def get_actor_id(
    actor_id: str | None = Header(default=None, alias="X-Actor-ID"),
) -> UUID | None:
    """Acting user id forwarded by the authenticating gateway."""
    if not actor_id:
        return None
    try:
        return UUID(actor_id)
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="X-Actor-ID must be a UUID",
        ) from exc
