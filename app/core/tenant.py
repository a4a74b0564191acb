from __future__ import annotations

import re
from collections.abc import Iterable


ORG_ID_MIN_LENGTH = 2
ORG_ID_MAX_LENGTH = 64
_ORG_ID_RE = re.compile(r"^[a-z0-9][a-z0-9_-]*$")


def normalize_org_id(value: str) -> str:
    """Lower-case and validate an org id taken from a header or host name."""
    cleaned = value.strip().lower()
    if len(cleaned) < ORG_ID_MIN_LENGTH or len(cleaned) > ORG_ID_MAX_LENGTH:
        raise ValueError(
            f"org_id must be between {ORG_ID_MIN_LENGTH} and {ORG_ID_MAX_LENGTH} characters"
        )
    if not _ORG_ID_RE.fullmatch(cleaned):
        raise ValueError(
            "org_id may only contain lowercase letters, numbers, '-' and '_'"
        )
    return cleaned


def is_valid_org_id(value: str | None) -> bool:
    if not value:
        return False
    try:
        normalize_org_id(value)
    except ValueError:
        return False
    return True


def org_id_from_host(host: str, allowed_hosts: Iterable[str] = ()) -> str | None:
    """Branch subdomain of ``host`` (``acme.los.example.com`` -> ``acme``)."""
    hostname = host.split(":")[0]
    allowed = set(allowed_hosts)
    if allowed and hostname not in allowed:
        return None
    parts = hostname.split(".")
    # localhost and bare domains carry no tenant
    if len(parts) >= 3:
        return parts[0]
    return None
