"""
Custom Domain Model

One table for both ownership granularities:
  - account-level domain: link_page_id IS NULL (at most one per user)
  - per-page mapping:     link_page_id set (free subdomain or custom domain)

hostname is stored lower-case and is globally unique, so the unique index is
the check-and-set for hostname claims.
"""
import enum
import uuid
from sqlalchemy import Column, String, DateTime, ForeignKey, Index, Uuid, func, text
from sqlalchemy.orm import relationship
from app.db.base_class import Base


class DomainType(str, enum.Enum):
    SUBDOMAIN = "subdomain"
    CUSTOM = "custom"


class VerificationStatus(str, enum.Enum):
    PENDING = "pending"
    VERIFYING = "verifying"
    VERIFIED = "verified"
    FAILED = "failed"


class CustomDomain(Base):
    id = Column(Uuid, primary_key=True, default=uuid.uuid4, index=True)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    link_page_id = Column(Uuid, ForeignKey("linkpages.id", ondelete="CASCADE"), nullable=True, index=True)
    domain_type = Column(String(16), nullable=False, default=DomainType.CUSTOM.value)
    hostname = Column(String(253), unique=True, nullable=False, index=True)

    # DNS Verification
    verification_status = Column(String(16), nullable=False, default=VerificationStatus.PENDING.value)
    verification_token = Column(String(64), nullable=True)   # TXT record value
    verified_at = Column(DateTime(timezone=True), nullable=True)
    last_checked_at = Column(DateTime(timezone=True), nullable=True)
    verification_started_at = Column(DateTime(timezone=True), nullable=True)  # current token issued

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    # Relationships
    user = relationship("User", back_populates="domains")
    link_page = relationship("LinkPage", back_populates="domains")

    __table_args__ = (
        # One account-level domain per user
        Index(
            "uq_customdomains_account_user",
            "user_id",
            unique=True,
            postgresql_where=text("link_page_id IS NULL"),
            sqlite_where=text("link_page_id IS NULL"),
        ),
        Index("ix_customdomains_status_checked", "verification_status", "last_checked_at"),
    )

    @property
    def is_account_level(self) -> bool:
        return self.link_page_id is None

    @property
    def is_verified(self) -> bool:
        return self.verification_status == VerificationStatus.VERIFIED.value
