"""
Custom Domain Resolution Middleware

Resolves the tenant from the Host header (platform subdomain, page custom
domain or account domain) and sets ``request.state.resolved_tenant`` for
downstream handlers. Only verified domains resolve.
"""

import logging
import time
from typing import Optional

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from app.config import settings
from app.middleware.metrics import DOMAIN_RESOLUTIONS
from app.services.hostname import normalize_request_host

logger = logging.getLogger("hubisck.domain")

# host → (TenantContent, expires_at); only positive results are cached
_DOMAIN_CACHE: dict = {}


def _is_platform_host(host: str) -> bool:
    return (
        not host
        or "." not in host
        or host in ("127.0.0.1", settings.PLATFORM_DOMAIN, f"www.{settings.PLATFORM_DOMAIN}")
    )


def _cached(host: str):
    entry = _DOMAIN_CACHE.get(host)
    if entry is None:
        return None
    tenant, expires_at = entry
    if expires_at < time.monotonic():
        _DOMAIN_CACHE.pop(host, None)
        return None
    return tenant


class CustomDomainMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next) -> Response:
        host = normalize_request_host(request.headers.get("host"))
        request.state.resolved_tenant = None

        if _is_platform_host(host):
            return await call_next(request)

        tenant = _cached(host)
        if tenant is not None:
            DOMAIN_RESOLUTIONS.labels(result="cache_hit").inc()
        else:
            tenant = self._lookup(host)
            if tenant is not None:
                DOMAIN_RESOLUTIONS.labels(result="resolved").inc()
                _DOMAIN_CACHE[host] = (tenant, time.monotonic() + settings.DOMAIN_CACHE_TTL)

        request.state.resolved_tenant = tenant
        return await call_next(request)

    @staticmethod
    def _lookup(host: str):
        from app.db.session import SessionLocal
        from app.services.hostname_resolver import HostnameResolver, TenantContent

        try:
            db = SessionLocal()
            try:
                result = HostnameResolver(db).resolve(host)
            finally:
                db.close()
        except Exception as e:
            logger.warning("Custom domain resolution failed for %s: %s", host, e)
            DOMAIN_RESOLUTIONS.labels(result="error").inc()
            return None

        if isinstance(result, TenantContent):
            return result
        DOMAIN_RESOLUTIONS.labels(result="not_connected").inc()
        return None


def invalidate_domain_cache(domain: Optional[str] = None) -> None:
    """Clear domain cache when domains are added/removed/verified."""
    if domain:
        _DOMAIN_CACHE.pop(domain.lower(), None)
    else:
        _DOMAIN_CACHE.clear()
