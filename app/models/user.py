import uuid
from sqlalchemy import Column, String, DateTime, Uuid, func
from sqlalchemy.orm import relationship
from app.db.base_class import Base


class User(Base):
    # id is the auth provider's subject (JWT "sub")
    id = Column(Uuid, primary_key=True, default=uuid.uuid4, index=True)
    email = Column(String(255), unique=True, index=True, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    # Relationships
    link_pages = relationship("LinkPage", back_populates="user", cascade="all, delete-orphan")
    domains = relationship("CustomDomain", back_populates="user", cascade="all, delete-orphan")
