"""
Hostname → tenant resolution for the serving path.

Only verified records resolve. A pending/failed/verifying claim never
routes traffic, otherwise a claimant could intercept a hostname before its
DNS actually moved.
"""
import logging
from dataclasses import dataclass
from typing import Optional, Union
from uuid import UUID

from sqlalchemy.orm import Session

from app.config import settings
from app.crud import crud_domain
from app.services.hostname import normalize_request_host

logger = logging.getLogger("hubisck.domain")


@dataclass(frozen=True)
class TenantContent:
    """Identity of the tenant whose public content should be rendered."""

    hostname: str
    user_id: UUID
    link_page_id: Optional[UUID]
    domain_type: str

    @property
    def is_account_level(self) -> bool:
        return self.link_page_id is None


@dataclass(frozen=True)
class NotConnected:
    hostname: str
    message: str = "This domain is not connected to any page yet."


ResolveResult = Union[TenantContent, NotConnected]


class HostnameResolver:
    def __init__(self, db: Session):
        self.db = db

    def resolve(self, request_hostname: Optional[str]) -> ResolveResult:
        hostname = normalize_request_host(request_hostname)
        if not hostname or hostname == settings.PLATFORM_DOMAIN:
            return NotConnected(hostname)

        record = crud_domain.get_verified_by_hostname(self.db, hostname)
        if record is None:
            return NotConnected(hostname)

        logger.debug("Resolved %s → user %s page %s", hostname, record.user_id, record.link_page_id)
        return TenantContent(
            hostname=record.hostname,
            user_id=record.user_id,
            link_page_id=record.link_page_id,
            domain_type=record.domain_type,
        )
