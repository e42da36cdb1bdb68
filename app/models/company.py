from sqlalchemy import Column, String, DateTime, Index, func
from sqlalchemy.orm import relationship
from datetime import datetime
import uuid
from app.core.database import Base


class Company(Base):
    """Tenant root; every mutable record carries a company_id."""
    __tablename__ = "companies"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String, nullable=False)
    industry = Column(String)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    # Relationships
    users = relationship("User", back_populates="company", cascade="all, delete-orphan")
    contacts = relationship("Contact", back_populates="company", cascade="all, delete-orphan")
    voucher_rules = relationship("VoucherRule", back_populates="company", cascade="all, delete-orphan")

    __table_args__ = (
        # Concurrent signups naming the same company collide here
        Index("ix_companies_name_lower", func.lower(name), unique=True),
    )
