"""
SQLAlchemy models for SSO Bridge.

Only outstanding OpenID Connect nonces are persisted.
"""

from datetime import datetime, timezone

from sqlalchemy import DateTime, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def _utc_now() -> datetime:
    """Return current UTC time (timezone-aware)."""
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    """Base class for all SSO Bridge SQLAlchemy models."""

    pass


class SSONonce(Base):
    """
    Nonce issued with an authorization request.

    Stored before the browser is redirected to the provider and deleted
    exactly once, when the matching code is redeemed.
    """

    __tablename__ = "sso_nonce"

    nonce: Mapped[str] = mapped_column(String(255), primary_key=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utc_now, nullable=False
    )

    def __repr__(self) -> str:
        return f"<SSONonce(nonce={self.nonce[:8]}..., created_at={self.created_at})>"
