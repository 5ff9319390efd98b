"""
PriceWatch Alerts Router
Create, list and soft-delete price alerts; trigger a sweep on demand
"""
import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy import desc
from sqlalchemy.orm import Session

from pricewatch.database import get_db
from pricewatch.exceptions import SweepAborted, SweepInProgress, UnsupportedPlatformError
from pricewatch.models import PriceAlert
from pricewatch.schemas import AlertCreate, AlertResponse, SweepSummaryResponse
from pricewatch.services.price_fetcher import require_platform
from pricewatch.services.scheduler import ReconciliationWorker
from pricewatch.utils.rate_limit import SWEEP_TRIGGER_LIMIT, limiter

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/alerts", tags=["Alerts"])

SUPPORTED_PLATFORMS_MESSAGE = "Unsupported platform. Supported: Myntra, Flipkart, Ajio, Tata Cliq"


def get_worker(request: Request) -> ReconciliationWorker:
    worker = getattr(request.app.state, "worker", None)
    if worker is None:
        raise HTTPException(status_code=503, detail="Price sweep worker is not running")
    return worker


def _get_alert_or_404(db: Session, alert_id: str) -> PriceAlert:
    alert = db.query(PriceAlert).filter(PriceAlert.id == alert_id).first()
    if not alert:
        raise HTTPException(status_code=404, detail="Alert not found")
    return alert


@router.post("", response_model=AlertResponse, status_code=status.HTTP_201_CREATED)
async def create_alert(alert_in: AlertCreate, db: Session = Depends(get_db)):
    """
    Create a price alert. The platform is detected from the URL once and
    stored; unsupported URLs are rejected.
    """
    try:
        platform = require_platform(alert_in.url)
    except UnsupportedPlatformError:
        raise HTTPException(status_code=400, detail=SUPPORTED_PLATFORMS_MESSAGE)

    alert = PriceAlert(
        url=alert_in.url,
        platform=platform.value,
        target_price=alert_in.target_price,
        user_email=alert_in.user_email,
        is_active=True,
    )
    db.add(alert)
    db.commit()
    db.refresh(alert)

    logger.info("Created alert %s for %s (target ₹%s)", alert.id, platform.value, alert.target_price)
    return alert


@router.get("", response_model=List[AlertResponse])
async def list_alerts(db: Session = Depends(get_db)):
    """List active alerts, newest first"""
    return (
        db.query(PriceAlert)
        .filter(PriceAlert.is_active.is_(True))
        .order_by(desc(PriceAlert.created_at))
        .all()
    )


@router.post("/check", response_model=SweepSummaryResponse)
@limiter.limit(SWEEP_TRIGGER_LIMIT)
async def manual_price_check(request: Request, worker: ReconciliationWorker = Depends(get_worker)):
    """
    Run a full price sweep now. Returns once every active alert has been
    checked.
    """
    try:
        summary = await worker.run_sweep_now()
    except SweepInProgress:
        raise HTTPException(status_code=409, detail="A price check is already running")
    except SweepAborted as e:
        raise HTTPException(status_code=503, detail=f"Price check aborted: {e}")

    return SweepSummaryResponse(**summary.to_dict())


@router.get("/{alert_id}", response_model=AlertResponse)
async def get_alert(alert_id: str, db: Session = Depends(get_db)):
    return _get_alert_or_404(db, alert_id)


@router.delete("/{alert_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_alert(alert_id: str, db: Session = Depends(get_db)):
    """
    Deactivate an alert. The row is kept so its history stays attributable.
    """
    alert = _get_alert_or_404(db, alert_id)
    alert.is_active = False
    db.commit()
