"""
Domain verification state machine.

    pending ──► verifying ──► verified
                   │  ▲
                   ▼  │
                 failed

- Entering ``verifying`` runs the DNS checker exactly once.
- TXT missing            → failed   (OwnershipUnproven)
- TXT ok, routing absent → failed   (RoutingNotConfigured)
- TXT ok, routing ok     → verified (verified_at stamped)
- resolver timeout       → pending  (TransientLookupFailure)
- verified is left only by reconnect (new token, back to pending) or removal.

Every write is conditional on the token read before the check, so a result
that arrives after the domain was removed or re-issued is dropped.
"""
import enum
import logging
from dataclasses import dataclass
from typing import Optional
from uuid import UUID

from sqlalchemy.orm import Session

from app.crud import crud_domain
from app.middleware.metrics import DOMAIN_VERIFICATIONS
from app.models.custom_domain import CustomDomain, VerificationStatus
from app.services.dns_checker import (
    DNSChallengeChecker,
    DNSCheckResult,
    DNSRecordInstruction,
    routing_instruction,
    txt_instruction,
    txt_record_name,
)
from app.services.domain_errors import DomainNotFound

logger = logging.getLogger("hubisck.domain")

ALLOWED_TRANSITIONS = {
    VerificationStatus.PENDING: {VerificationStatus.VERIFYING},
    VerificationStatus.VERIFYING: {
        VerificationStatus.VERIFYING,
        VerificationStatus.VERIFIED,
        VerificationStatus.FAILED,
        VerificationStatus.PENDING,
    },
    VerificationStatus.FAILED: {VerificationStatus.VERIFYING},
    VerificationStatus.VERIFIED: set(),
}


def can_transition(current: VerificationStatus, target: VerificationStatus) -> bool:
    return target in ALLOWED_TRANSITIONS[current]


class OutcomeCode(str, enum.Enum):
    VERIFIED = "verified"
    ALREADY_VERIFIED = "already_verified"
    OWNERSHIP_UNPROVEN = "ownership_unproven"
    ROUTING_NOT_CONFIGURED = "routing_not_configured"
    TRANSIENT_LOOKUP_FAILURE = "transient_lookup_failure"


@dataclass
class VerificationOutcome:
    code: OutcomeCode
    domain: CustomDomain
    message: str
    txt_verified: bool = False
    expected_record: Optional[DNSRecordInstruction] = None

    @property
    def verified(self) -> bool:
        return self.code in (OutcomeCode.VERIFIED, OutcomeCode.ALREADY_VERIFIED)


def _decide(record: CustomDomain, result: DNSCheckResult) -> tuple:
    """Map a check result to (next status, outcome code, message, missing record)."""
    hostname = record.hostname
    if result.transient_error and not result.txt_verified:
        return (
            VerificationStatus.PENDING,
            OutcomeCode.TRANSIENT_LOOKUP_FAILURE,
            f"TXT record not found yet. Add a TXT record at {txt_record_name(hostname)} "
            f"with value: {record.verification_token}",
            txt_instruction(hostname, record.verification_token),
        )
    if not result.txt_verified:
        return (
            VerificationStatus.FAILED,
            OutcomeCode.OWNERSHIP_UNPROVEN,
            f"TXT record not found. Add a TXT record at {txt_record_name(hostname)} "
            f"with value: {record.verification_token}",
            txt_instruction(hostname, record.verification_token),
        )

    routing = routing_instruction(hostname)
    if result.transient_error:
        return (
            VerificationStatus.PENDING,
            OutcomeCode.TRANSIENT_LOOKUP_FAILURE,
            f"TXT record confirmed. Could not check DNS routing yet; "
            f"make sure a {routing.type} record points to {routing.value}",
            routing,
        )
    if not result.points_to_platform:
        return (
            VerificationStatus.FAILED,
            OutcomeCode.ROUTING_NOT_CONFIGURED,
            f"TXT record confirmed, DNS routing missing. "
            f"Add a {routing.type} record pointing to {routing.value}",
            routing,
        )
    return (
        VerificationStatus.VERIFIED,
        OutcomeCode.VERIFIED,
        "Domain verified successfully! Your pages are now accessible at your custom domain.",
        None,
    )


class DomainVerifier:
    """Drives one verification attempt for one domain record.

    Holds no state between attempts; polling and a manual "verify now" can
    run concurrently for the same domain.
    """

    def __init__(self, db: Session, checker: Optional[DNSChallengeChecker] = None):
        self.db = db
        self.checker = checker or DNSChallengeChecker()

    def _already_verified(self, record: CustomDomain) -> VerificationOutcome:
        DOMAIN_VERIFICATIONS.labels(outcome=OutcomeCode.ALREADY_VERIFIED.value).inc()
        return VerificationOutcome(
            code=OutcomeCode.ALREADY_VERIFIED,
            domain=record,
            message="Domain is already verified",
            txt_verified=True,
        )

    def verify(self, domain_id: UUID) -> VerificationOutcome:
        record = crud_domain.get(self.db, domain_id)
        if record is None:
            raise DomainNotFound("Domain not found")
        if not can_transition(VerificationStatus(record.verification_status), VerificationStatus.VERIFYING):
            return self._already_verified(record)

        hostname = record.hostname
        token = record.verification_token

        claimed = crud_domain.mark_status(
            self.db, domain_id, VerificationStatus.VERIFYING, expected_token=token
        )
        if claimed is None:
            # verified by a concurrent attempt, removed, or re-tokenised
            current = crud_domain.get(self.db, domain_id)
            if current is not None and current.is_verified:
                return self._already_verified(current)
            raise DomainNotFound("Domain not found")

        result = self.checker.check(hostname, token)
        next_status, code, message, expected = _decide(claimed, result)

        updated = crud_domain.mark_status(self.db, domain_id, next_status, expected_token=token)
        if updated is None:
            current = crud_domain.get(self.db, domain_id)
            if current is not None and current.is_verified:
                return self._already_verified(current)
            logger.info("Discarding verification result for %s: record removed or re-issued", hostname)
            raise DomainNotFound("Domain not found")

        DOMAIN_VERIFICATIONS.labels(outcome=code.value).inc()
        if code == OutcomeCode.VERIFIED:
            logger.info("Domain verified: %s", hostname)
        elif code == OutcomeCode.TRANSIENT_LOOKUP_FAILURE:
            logger.warning("Domain %s left pending after transient DNS failure: %s", hostname, result.transient_error)
        else:
            logger.info("Domain %s not verified: %s", hostname, code.value)

        return VerificationOutcome(
            code=code,
            domain=updated,
            message=message,
            txt_verified=result.txt_verified,
            expected_record=expected,
        )
