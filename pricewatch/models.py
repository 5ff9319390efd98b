"""
PriceWatch Database Models
"""
import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, Float, Index, String, Text
from sqlalchemy.orm import declarative_base

Base = declarative_base()


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Platform(str, enum.Enum):
    MYNTRA = "myntra"
    FLIPKART = "flipkart"
    AJIO = "ajio"
    TATA_CLIQ = "tata_cliq"


class PriceAlert(Base):
    """A tracked product page with the user's target price"""
    __tablename__ = "price_alerts"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    url = Column(Text, nullable=False)
    # Plain text: rows may hold platform ids no scraper serves any more
    platform = Column(String(32), nullable=False, index=True)
    target_price = Column(Float, nullable=False)
    last_price = Column(Float, nullable=True)
    user_email = Column(String(255), nullable=False)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    last_checked = Column(DateTime(timezone=True), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)

    __table_args__ = (
        CheckConstraint("target_price > 0", name="ck_price_alerts_target_positive"),
        Index("ix_price_alerts_active_created", "is_active", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<PriceAlert {self.id} {self.platform} target={self.target_price}>"
