"""
Domain record store.

Hostname claims rely on the unique index on ``customdomains.hostname``: the
availability check is advisory (for a friendly message), the INSERT/UPDATE is
the real check-and-set, and a unique violation becomes HostnameAlreadyClaimed.
"""
from datetime import datetime, timezone
from typing import List, Optional
from uuid import UUID

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.models.custom_domain import CustomDomain, DomainType, VerificationStatus
from app.models.link_page import LinkPage
from app.services.domain_errors import HostnameAlreadyClaimed

_RECHECKABLE = (
    VerificationStatus.PENDING.value,
    VerificationStatus.VERIFYING.value,
    VerificationStatus.FAILED.value,
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def get(db: Session, domain_id: UUID) -> Optional[CustomDomain]:
    return db.query(CustomDomain).filter(CustomDomain.id == domain_id).first()


def get_by_hostname(db: Session, hostname: str) -> Optional[CustomDomain]:
    return db.query(CustomDomain).filter(CustomDomain.hostname == hostname.lower()).first()


def get_verified_by_hostname(db: Session, hostname: str) -> Optional[CustomDomain]:
    return db.query(CustomDomain).filter(
        CustomDomain.hostname == hostname.lower(),
        CustomDomain.verification_status == VerificationStatus.VERIFIED.value,
    ).first()


def get_account_domain(db: Session, user_id: UUID) -> Optional[CustomDomain]:
    return db.query(CustomDomain).filter(
        CustomDomain.user_id == user_id,
        CustomDomain.link_page_id.is_(None),
    ).first()


def get_page_domains(db: Session, link_page_id: UUID) -> List[CustomDomain]:
    return db.query(CustomDomain).filter(
        CustomDomain.link_page_id == link_page_id
    ).order_by(CustomDomain.created_at).all()


def is_available(
    db: Session,
    hostname: str,
    *,
    user_id: Optional[UUID] = None,
    link_page_id: Optional[UUID] = None,
) -> bool:
    """True iff no *other* tenant holds ``hostname``.

    The tenant is the page when ``link_page_id`` is given, otherwise the
    user's account-level domain. A tenant re-submitting its own hostname is
    not rejected.
    """
    existing = get_by_hostname(db, hostname)
    if existing is None:
        return True
    if link_page_id is not None:
        return existing.link_page_id == link_page_id
    if user_id is not None:
        return existing.is_account_level and existing.user_id == user_id
    return False


def _flush_claim(db: Session, record: CustomDomain, hostname: str) -> CustomDomain:
    try:
        db.add(record)
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HostnameAlreadyClaimed(hostname)
    db.refresh(record)
    return record


def upsert_account_domain(db: Session, *, user_id: UUID, hostname: str, token: str) -> CustomDomain:
    """Set the user's account-level domain to ``hostname`` as pending.

    Always resets verification and stores the new token, also when the
    hostname is unchanged.
    """
    hostname = hostname.lower()
    try:
        return _flush_claim(db, _pending_account_record(db, user_id, hostname, token), hostname)
    except HostnameAlreadyClaimed:
        holder = get_by_hostname(db, hostname)
        if holder is not None and not (holder.is_account_level and holder.user_id == user_id):
            raise
        if get_account_domain(db, user_id) is None:
            raise
        # a concurrent connect by the same user inserted the account row first
        return _flush_claim(db, _pending_account_record(db, user_id, hostname, token), hostname)


def _pending_account_record(db: Session, user_id: UUID, hostname: str, token: str) -> CustomDomain:
    record = get_account_domain(db, user_id)
    if record is None:
        record = CustomDomain(
            user_id=user_id,
            link_page_id=None,
            domain_type=DomainType.CUSTOM.value,
            hostname=hostname,
        )
    record.hostname = hostname
    record.verification_status = VerificationStatus.PENDING.value
    record.verification_token = token
    record.verified_at = None
    record.last_checked_at = None
    record.verification_started_at = _utcnow()
    return record


def create_page_domain(
    db: Session,
    *,
    link_page: LinkPage,
    domain_type: DomainType,
    hostname: str,
    token: Optional[str],
) -> CustomDomain:
    """Attach ``hostname`` to a page.

    Platform subdomains are allocated by us and start verified; custom
    domains start pending.
    """
    hostname = hostname.lower()
    existing = get_by_hostname(db, hostname)
    if existing is not None and existing.link_page_id == link_page.id:
        return existing

    record = CustomDomain(
        user_id=link_page.user_id,
        link_page_id=link_page.id,
        domain_type=domain_type.value,
        hostname=hostname,
        verification_token=token,
    )
    if domain_type == DomainType.SUBDOMAIN:
        record.verification_status = VerificationStatus.VERIFIED.value
        record.verified_at = _utcnow()
    else:
        record.verification_status = VerificationStatus.PENDING.value
        record.verification_started_at = _utcnow()
    return _flush_claim(db, record, hostname)


def mark_status(
    db: Session,
    domain_id: UUID,
    status: VerificationStatus,
    *,
    expected_token: Optional[str] = None,
) -> Optional[CustomDomain]:
    """Conditionally move a record to ``status`` in one UPDATE.

    Returns None (nothing written) when the record is gone, its token no
    longer equals ``expected_token``, or it is already verified. A verified
    record is only left through reconnect or removal.
    """
    now = _utcnow()
    values = {
        CustomDomain.verification_status: status.value,
        CustomDomain.last_checked_at: now,
    }
    if status == VerificationStatus.VERIFIED:
        values[CustomDomain.verified_at] = now

    query = db.query(CustomDomain).filter(
        CustomDomain.id == domain_id,
        CustomDomain.verification_status != VerificationStatus.VERIFIED.value,
    )
    if expected_token is not None:
        query = query.filter(CustomDomain.verification_token == expected_token)

    updated = query.update(values, synchronize_session=False)
    db.commit()
    if not updated:
        return None

    record = get(db, domain_id)
    if record is not None:
        db.refresh(record)
    return record


def remove(db: Session, record: CustomDomain) -> None:
    db.delete(record)
    db.commit()


def remove_account_domain(db: Session, user_id: UUID) -> Optional[str]:
    """Delete the user's account-level domain; returns its hostname if any."""
    record = get_account_domain(db, user_id)
    if record is None:
        return None
    hostname = record.hostname
    remove(db, record)
    return hostname


def get_due_for_recheck(
    db: Session,
    *,
    older_than: datetime,
    started_after: Optional[datetime] = None,
    limit: int = 200,
) -> List[CustomDomain]:
    """Custom domains still awaiting DNS, not checked since ``older_than``.

    With ``started_after``, domains whose token was issued earlier are left out.
    """
    query = db.query(CustomDomain).filter(
        CustomDomain.domain_type == DomainType.CUSTOM.value,
        CustomDomain.verification_status.in_(_RECHECKABLE),
        or_(CustomDomain.last_checked_at.is_(None), CustomDomain.last_checked_at < older_than),
    )
    if started_after is not None:
        query = query.filter(CustomDomain.verification_started_at >= started_after)
    return query.order_by(CustomDomain.created_at).limit(limit).all()
