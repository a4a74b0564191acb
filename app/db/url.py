from __future__ import annotations

from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit


ASYNC_SCHEME = "postgresql+asyncpg"


def normalize_database_url(url: str) -> str:
    """Point any postgres URL at the asyncpg driver.

    asyncpg rejects libpq's ``sslmode`` query key, so it is folded into
    ``ssl``.
    """
    url = (url or "").strip()
    if not url:
        return url

    parts = urlsplit(url)
    scheme = parts.scheme
    if scheme in {"postgres", "postgresql", "postgresql+psycopg", "postgresql+psycopg2"}:
        scheme = ASYNC_SCHEME

    query = dict(parse_qsl(parts.query, keep_blank_values=True))
    if scheme == ASYNC_SCHEME:
        sslmode_key = next((key for key in query if key.lower() == "sslmode"), None)
        sslmode = query.pop(sslmode_key, None) if sslmode_key else None
        if sslmode is not None and "ssl" not in query:
            normalized = sslmode.lower().strip()
            if normalized in {"disable", "allow"}:
                query["ssl"] = "disable"
            else:
                query["ssl"] = normalized or "require"

    new_query = urlencode(query, doseq=True)
    return urlunsplit((scheme, parts.netloc, parts.path, new_query, parts.fragment))
