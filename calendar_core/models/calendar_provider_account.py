from sqlalchemy import Column, String, Boolean, DateTime, LargeBinary, JSON, Index, Uuid, text
from sqlalchemy.sql import func
from calendar_core.models.base import Base
import uuid


class CalendarProviderAccountRecord(Base):
    __tablename__ = "calendar_provider_accounts"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    tenant_id = Column(String, nullable=False, index=True)

    provider = Column(String, nullable=False)  # 'google', 'outlook'
    account_email = Column(String, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    # OAuth tokens, Fernet encrypted
    access_token_encrypted = Column(LargeBinary, nullable=False)
    refresh_token_encrypted = Column(LargeBinary, nullable=True)
    token_expires_at = Column(DateTime(timezone=True), nullable=True)

    # timezone, calendar_id, availability rules
    provider_config = Column(JSON, nullable=False, default=dict)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        # at most one active account per (tenant, provider)
        Index(
            "uq_calendar_provider_accounts_active",
            "tenant_id",
            "provider",
            unique=True,
            postgresql_where=text("is_active"),
            sqlite_where=text("is_active = 1"),
        ),
    )
