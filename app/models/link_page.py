"""
Link page (owned by the page/link service).

Only the columns the domain subsystem reads are mapped here:
ownership (user_id) and the identity needed to serve the page.
"""
import uuid
from sqlalchemy import Column, String, DateTime, ForeignKey, Uuid, func
from sqlalchemy.orm import relationship
from app.db.base_class import Base


class LinkPage(Base):
    id = Column(Uuid, primary_key=True, default=uuid.uuid4, index=True)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    slug = Column(String(255), unique=True, nullable=False, index=True)
    title = Column(String(255), nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    # Relationships
    user = relationship("User", back_populates="link_pages")
    domains = relationship("CustomDomain", back_populates="link_page", cascade="all, delete-orphan")
