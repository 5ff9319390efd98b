"""
PriceWatch Alert Store
Persistence contract consumed by the sweep, backed by SQLAlchemy
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, List, Optional, Protocol

from sqlalchemy import desc
from sqlalchemy.orm import Session

from pricewatch.database import SessionLocal, get_db_context
from pricewatch.models import PriceAlert

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TrackedItem:
    """Immutable view of an active alert, safe to hold outside a session"""
    id: str
    url: str
    platform: str
    target_price: float
    last_price: Optional[float]
    user_email: str

    @classmethod
    def from_model(cls, alert: PriceAlert) -> "TrackedItem":
        return cls(
            id=alert.id,
            url=alert.url,
            platform=alert.platform,
            target_price=alert.target_price,
            last_price=alert.last_price,
            user_email=alert.user_email,
        )


class AlertStore(Protocol):
    def list_active(self) -> List[TrackedItem]: ...

    def update_price(self, alert_id: str, price: float, checked_at: datetime) -> bool: ...


class SqlAlertStore:
    """
    Every call opens, commits and closes its own session so per-item writes
    stay independent of each other.
    """

    def __init__(self, session_factory: Callable[[], Session] = SessionLocal):
        self.session_factory = session_factory

    def list_active(self) -> List[TrackedItem]:
        with get_db_context(self.session_factory) as db:
            alerts = (
                db.query(PriceAlert)
                .filter(PriceAlert.is_active.is_(True))
                .order_by(desc(PriceAlert.created_at))
                .all()
            )
            return [TrackedItem.from_model(alert) for alert in alerts]

    def update_price(self, alert_id: str, price: float, checked_at: datetime) -> bool:
        with get_db_context(self.session_factory) as db:
            updated = (
                db.query(PriceAlert)
                .filter(PriceAlert.id == alert_id)
                .update(
                    {PriceAlert.last_price: price, PriceAlert.last_checked: checked_at},
                    synchronize_session=False,
                )
            )
        if not updated:
            logger.warning("No alert row matched id %s on price update", alert_id)
        return bool(updated)
