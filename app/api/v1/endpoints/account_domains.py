"""
Account-level Custom Domain API

One custom domain per account; every page of the user is then served at
https://<domain>/<slug>.

  1. Connect a domain → TXT challenge + routing record instructions
  2. Verify (TXT ownership first, then CNAME / A routing)
  3. Status / remove
"""
import logging
from dataclasses import asdict
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from app.api import deps
from app.crud import crud_domain
from app.middleware.custom_domain import invalidate_domain_cache
from app.models.user import User
from app.schemas.domain import (
    AccountDomainConnect,
    AccountDomainConnectResult,
    AccountDomainStatus,
    DNSRecord,
    DomainVerifyResult,
)
from app.services.dns_checker import DNSChallengeChecker, build_dns_instructions, setup_instructions_text
from app.services.domain_errors import DomainNotFound, HostnameAlreadyClaimed, InvalidHostname
from app.services.domain_verification import DomainVerifier, VerificationOutcome
from app.services.hostname import normalize_hostname
from app.services.url_helpers import get_base_url
from app.services.verification_token import token_issuer
from app.tasks.domain_tasks import schedule_domain_recheck

router = APIRouter()
logger = logging.getLogger("hubisck.custom_domain")


def _dns_records(hostname: str, token: str) -> list:
    return [DNSRecord(**asdict(r)) for r in build_dns_instructions(hostname, token)]


def verify_result(outcome: VerificationOutcome) -> DomainVerifyResult:
    record = outcome.domain
    return DomainVerifyResult(
        success=outcome.verified,
        verified=outcome.verified,
        outcome=outcome.code.value,
        domain=record.hostname,
        txt_verified=outcome.txt_verified,
        message=outcome.message,
        expected_record=DNSRecord(**asdict(outcome.expected_record)) if outcome.expected_record else None,
        verification_status=record.verification_status,
        verified_at=record.verified_at,
    )


@router.get("/status", response_model=AccountDomainStatus)
def get_domain_status(
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.get_current_user),
) -> Any:
    """Current account domain and the DNS records still expected."""
    record = crud_domain.get_account_domain(db, current_user.id)
    if record is None:
        return AccountDomainStatus(base_url=get_base_url(None))

    return AccountDomainStatus(
        custom_domain=record.hostname,
        custom_domain_verified=record.is_verified,
        custom_domain_verified_at=record.verified_at,
        verification_token=record.verification_token,
        verification_status=record.verification_status,
        base_url=get_base_url(record),
        dns_records=[] if record.is_verified else _dns_records(record.hostname, record.verification_token),
    )


@router.post("/connect", response_model=AccountDomainConnectResult)
def connect_domain(
    body: AccountDomainConnect,
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.get_current_user),
) -> Any:
    """Set (or replace) the account's custom domain; it starts pending under a fresh token."""
    try:
        hostname = normalize_hostname(body.domain)
    except InvalidHostname as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    if not crud_domain.is_available(db, hostname, user_id=current_user.id):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="This domain is already in use by another account",
        )

    previous = crud_domain.get_account_domain(db, current_user.id)
    previous_hostname = previous.hostname if previous else None
    token = token_issuer.issue(previous=previous.verification_token if previous else None)

    try:
        record = crud_domain.upsert_account_domain(
            db, user_id=current_user.id, hostname=hostname, token=token
        )
    except HostnameAlreadyClaimed as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))

    if previous_hostname:
        invalidate_domain_cache(previous_hostname)
    invalidate_domain_cache(hostname)
    schedule_domain_recheck(record)

    logger.info("Account domain connected: %s for user %s", hostname, current_user.id)

    return AccountDomainConnectResult(
        domain=hostname,
        verified=False,
        verification_token=token,
        dns_records=_dns_records(hostname, token),
        instructions=setup_instructions_text(hostname),
    )


@router.post("/verify", response_model=DomainVerifyResult)
def verify_domain(
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.get_current_user),
    checker: DNSChallengeChecker = Depends(deps.get_dns_checker),
) -> Any:
    """Check DNS now. A failed check is a normal 200 response with verified=false."""
    record = crud_domain.get_account_domain(db, current_user.id)
    if record is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No custom domain configured")

    try:
        outcome = DomainVerifier(db, checker).verify(record.id)
    except DomainNotFound:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Domain not found")

    if outcome.verified:
        invalidate_domain_cache(outcome.domain.hostname)
    return verify_result(outcome)


@router.delete("/remove")
def remove_domain(
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.get_current_user),
) -> Any:
    hostname = crud_domain.remove_account_domain(db, current_user.id)
    if hostname is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No custom domain configured")

    invalidate_domain_cache(hostname)
    logger.info("Account domain removed: %s", hostname)
    return {"success": True, "message": "Custom domain removed successfully"}
