"""
Per-page Domain API

A page can be reached through a free platform subdomain (alice.hubisck.com,
live immediately) or a custom domain that needs DNS verification.
Every route checks that the caller owns the page.
"""
import logging
from dataclasses import asdict
from typing import Any, List
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from app.api import deps
from app.api.v1.endpoints.account_domains import verify_result
from app.config import settings
from app.crud import crud_domain
from app.middleware.custom_domain import invalidate_domain_cache
from app.models.custom_domain import DomainType
from app.models.link_page import LinkPage
from app.models.user import User
from app.schemas.domain import (
    DNSRecord,
    DomainVerifyResult,
    HostnameAvailability,
    PageCustomDomainCreate,
    PageCustomDomainResult,
    PageDomain,
    SubdomainCreate,
)
from app.services.dns_checker import DNSChallengeChecker, build_dns_instructions, setup_instructions_text
from app.services.domain_errors import DomainNotFound, HostnameAlreadyClaimed, InvalidHostname, ReservedHostname
from app.services.domain_verification import DomainVerifier
from app.services.hostname import (
    ReservedNames,
    normalize_hostname,
    normalize_subdomain_label,
    platform_subdomain,
)
from app.services.verification_token import token_issuer
from app.tasks.domain_tasks import schedule_domain_recheck

router = APIRouter()
logger = logging.getLogger("hubisck.custom_domain")


def _get_owned_page(db: Session, page_id: UUID, user: User) -> LinkPage:
    page = db.query(LinkPage).filter(LinkPage.id == page_id).first()
    if not page:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Page not found")
    if page.user_id != user.id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not authorized to manage this page")
    return page


def _get_owned_domain(db: Session, domain_id: UUID, user: User):
    record = crud_domain.get(db, domain_id)
    if not record or record.link_page_id is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Domain not found")
    _get_owned_page(db, record.link_page_id, user)
    return record


def _claimable_hostname(raw: str, reserved: ReservedNames) -> str:
    """Validate as a free subdomain under the platform domain, else as a custom domain."""
    suffix = f".{settings.PLATFORM_DOMAIN.lower()}"
    if raw.endswith(suffix):
        return platform_subdomain(normalize_subdomain_label(raw[: -len(suffix)], reserved))
    return normalize_hostname(raw)


@router.get("/check/{hostname}", response_model=HostnameAvailability)
def check_hostname(
    hostname: str,
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.get_current_user),
    reserved: ReservedNames = Depends(deps.get_reserved_names),
) -> Any:
    raw = hostname.lower().strip()
    try:
        hostname = _claimable_hostname(raw, reserved)
    except (InvalidHostname, ReservedHostname) as e:
        return HostnameAvailability(hostname=raw, available=False, reason=str(e))
    if not crud_domain.is_available(db, hostname):
        return HostnameAvailability(hostname=hostname, available=False, reason="This domain is already taken")
    return HostnameAvailability(hostname=hostname, available=True)


@router.get("/pages/{page_id}", response_model=List[PageDomain])
def list_page_domains(
    page_id: UUID,
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.get_current_user),
) -> Any:
    page = _get_owned_page(db, page_id, current_user)
    return crud_domain.get_page_domains(db, page.id)


@router.post("/subdomain", response_model=PageDomain)
def create_subdomain(
    body: SubdomainCreate,
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.get_current_user),
    reserved: ReservedNames = Depends(deps.get_reserved_names),
) -> Any:
    """Claim <label>.<platform domain> for a page (verified on creation)."""
    try:
        label = normalize_subdomain_label(body.subdomain, reserved)
    except (InvalidHostname, ReservedHostname) as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    page = _get_owned_page(db, body.page_id, current_user)
    hostname = platform_subdomain(label)

    if not crud_domain.is_available(db, hostname, link_page_id=page.id):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="This subdomain is already taken")
    try:
        record = crud_domain.create_page_domain(
            db, link_page=page, domain_type=DomainType.SUBDOMAIN, hostname=hostname, token=None
        )
    except HostnameAlreadyClaimed:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="This subdomain is already taken")

    invalidate_domain_cache(hostname)
    logger.info("Subdomain claimed: %s for page %s", hostname, page.id)
    return record


@router.post("/custom", response_model=PageCustomDomainResult)
def create_custom_domain(
    body: PageCustomDomainCreate,
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.get_current_user),
) -> Any:
    try:
        hostname = normalize_hostname(body.hostname)
    except InvalidHostname as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    page = _get_owned_page(db, body.page_id, current_user)

    if not crud_domain.is_available(db, hostname, link_page_id=page.id):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="This domain is already connected to another page",
        )

    record = crud_domain.get_by_hostname(db, hostname)
    if record is None:
        try:
            record = crud_domain.create_page_domain(
                db,
                link_page=page,
                domain_type=DomainType.CUSTOM,
                hostname=hostname,
                token=token_issuer.issue(),
            )
        except HostnameAlreadyClaimed:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="This domain is already connected to another page",
            )
        schedule_domain_recheck(record)
        logger.info("Custom domain added: %s for page %s", hostname, page.id)
    # re-submitting the page's own hostname returns it as is; its polling chain already runs

    return PageCustomDomainResult(
        domain=PageDomain.model_validate(record),
        dns_records=[DNSRecord(**asdict(r)) for r in build_dns_instructions(hostname, record.verification_token)],
        instructions=setup_instructions_text(hostname),
    )


@router.post("/{domain_id}/verify", response_model=DomainVerifyResult)
def verify_page_domain(
    domain_id: UUID,
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.get_current_user),
    checker: DNSChallengeChecker = Depends(deps.get_dns_checker),
) -> Any:
    record = _get_owned_domain(db, domain_id, current_user)
    try:
        outcome = DomainVerifier(db, checker).verify(record.id)
    except DomainNotFound:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Domain not found")

    if outcome.verified:
        invalidate_domain_cache(outcome.domain.hostname)
    return verify_result(outcome)


@router.delete("/{domain_id}")
def delete_page_domain(
    domain_id: UUID,
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.get_current_user),
) -> Any:
    record = _get_owned_domain(db, domain_id, current_user)
    hostname = record.hostname
    crud_domain.remove(db, record)
    invalidate_domain_cache(hostname)

    logger.info("Page domain deleted: %s", hostname)
    return {"success": True}
