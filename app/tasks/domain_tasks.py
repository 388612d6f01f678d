"""
Scheduled domain re-verification.

While a custom domain waits for DNS, a chain of tasks keyed by
(domain_id, token) re-runs the verifier every DOMAIN_RECHECK_INTERVAL_SECONDS.
The chain ends when the domain is verified, removed, re-issued a new token,
or DOMAIN_RECHECK_MAX_ATTEMPTS is reached. A beat job restarts chains for
domains that have not been checked for a while, as long as their token is
still inside that polling window.
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional
from uuid import UUID

from kombu.exceptions import OperationalError
from sqlalchemy.exc import OperationalError as DBOperationalError

from app.celery_app import celery_app
from app.config import settings
from app.crud import crud_domain
from app.db.session import SessionLocal
from app.middleware.custom_domain import invalidate_domain_cache
from app.models.custom_domain import CustomDomain, DomainType
from app.services.domain_errors import DomainNotFound
from app.services.domain_verification import DomainVerifier

logger = logging.getLogger("hubisck.tasks")


def schedule_domain_recheck(domain: CustomDomain, attempt: int = 0, countdown: Optional[int] = None) -> None:
    """Start (or continue) the polling chain for a custom domain."""
    if domain.domain_type != DomainType.CUSTOM.value or domain.is_verified:
        return
    try:
        reverify_domain_task.apply_async(
            args=[str(domain.id), domain.verification_token, attempt],
            countdown=settings.DOMAIN_RECHECK_INTERVAL_SECONDS if countdown is None else countdown,
        )
    except OperationalError as e:
        # the beat sweep picks the domain up once the broker is back
        logger.warning("Could not schedule re-verification for %s: %s", domain.hostname, e)


def run_recheck(db, domain_id: str, token: str, attempt: int, verifier: Optional[DomainVerifier] = None) -> dict:
    """One polling step. Returns a summary dict; schedules the next step if needed."""
    record = crud_domain.get(db, UUID(domain_id))
    if record is None or record.verification_token != token:
        logger.info("Stopping re-verification of %s: removed or re-issued", domain_id)
        return {"status": "stopped", "reason": "gone"}

    verifier = verifier or DomainVerifier(db)
    try:
        outcome = verifier.verify(record.id)
    except DomainNotFound:
        return {"status": "stopped", "reason": "gone"}

    if outcome.verified:
        invalidate_domain_cache(outcome.domain.hostname)
        return {"status": "verified", "domain": outcome.domain.hostname}

    if attempt + 1 >= settings.DOMAIN_RECHECK_MAX_ATTEMPTS:
        logger.info("Giving up polling %s after %d attempts", outcome.domain.hostname, attempt + 1)
        return {"status": "stopped", "reason": "max_attempts", "outcome": outcome.code.value}

    schedule_domain_recheck(outcome.domain, attempt=attempt + 1)
    return {"status": "rescheduled", "outcome": outcome.code.value, "attempt": attempt + 1}


@celery_app.task(bind=True, max_retries=3, ignore_result=True)
def reverify_domain_task(self, domain_id: str, token: str, attempt: int = 0):
    db = SessionLocal()
    try:
        return run_recheck(db, domain_id, token, attempt)
    except DBOperationalError as e:
        raise self.retry(exc=e, countdown=settings.DOMAIN_RECHECK_INTERVAL_SECONDS)
    finally:
        db.close()


def _attempts_elapsed(domain: CustomDomain, now: datetime) -> int:
    started = domain.verification_started_at
    if started.tzinfo is None:
        started = started.replace(tzinfo=timezone.utc)
    return max(0, int((now - started).total_seconds() // settings.DOMAIN_RECHECK_INTERVAL_SECONDS))


@celery_app.task(ignore_result=True)
def sweep_pending_domains_task():
    """Re-queue custom domains that are still unverified and went stale.

    A chain resumes at the attempt it would have reached by now, so domains
    past the polling window are not picked up again.
    """
    now = datetime.now(timezone.utc)
    cutoff = now - timedelta(minutes=settings.DOMAIN_SWEEP_STALE_MINUTES)
    window = timedelta(seconds=settings.DOMAIN_RECHECK_INTERVAL_SECONDS * settings.DOMAIN_RECHECK_MAX_ATTEMPTS)
    db = SessionLocal()
    try:
        due = crud_domain.get_due_for_recheck(
            db, older_than=cutoff, started_after=now - window, limit=settings.DOMAIN_SWEEP_BATCH_SIZE
        )
        for domain in due:
            schedule_domain_recheck(domain, attempt=_attempts_elapsed(domain, now), countdown=0)
        if due:
            logger.info("Re-queued %d pending domains for verification", len(due))
        return len(due)
    finally:
        db.close()
