"""
PriceWatch Scheduler Service
Reconciliation sweeps over all active alerts, on a timer and on demand
"""
import asyncio
import enum
import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Awaitable, Callable, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from pricewatch.config import Settings, settings as default_settings
from pricewatch.exceptions import (
    ExtractionFailed,
    ScrapeError,
    StoreWriteFailed,
    SweepAborted,
    SweepInProgress,
    UnknownPlatformError,
)
from pricewatch.models import utcnow
from pricewatch.services.alert_store import AlertStore, TrackedItem
from pricewatch.services.notifier import LogNotifier, PriceDropNotifier
from pricewatch.services.price_fetcher import ScraperRegistry

logger = logging.getLogger(__name__)


class WorkerState(str, enum.Enum):
    IDLE = "idle"
    SWEEPING = "sweeping"


class SweepOutcome(str, enum.Enum):
    PRICE = "price"
    EXTRACTION_FAILED = "extraction_failed"
    TRANSPORT_ERROR = "transport_error"
    UNKNOWN_PLATFORM = "unknown_platform"


@dataclass
class SweepSummary:
    checked: int = 0
    drops: int = 0
    failures: int = 0
    skipped: int = 0
    store_errors: int = 0
    started_at: datetime = field(default_factory=utcnow)
    finished_at: Optional[datetime] = None

    @property
    def duration_seconds(self) -> float:
        if self.finished_at is None:
            return 0.0
        return (self.finished_at - self.started_at).total_seconds()

    def to_dict(self) -> dict:
        data = asdict(self)
        data["duration_seconds"] = self.duration_seconds
        return data


class ReconciliationWorker:
    """
    Runs sweeps: every active item is fetched once, strictly one after the
    other, with a fixed delay in between. Per-item failures never end the
    sweep; only failing to load the item list does.

    One sweep at a time. A second request while a sweep is running is
    rejected with SweepInProgress rather than queued.
    """

    def __init__(
        self,
        store: AlertStore,
        registry: ScraperRegistry,
        notifier: Optional[PriceDropNotifier] = None,
        item_delay: float = default_settings.SWEEP_ITEM_DELAY_SECONDS,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.registry = registry
        self.notifier = notifier or LogNotifier()
        self.item_delay = item_delay
        self._sleep = sleep
        self._clock = clock
        self._lock = asyncio.Lock()
        self.state = WorkerState.IDLE
        self.last_summary: Optional[SweepSummary] = None

    @property
    def is_sweeping(self) -> bool:
        return self._lock.locked()

    async def run_sweep(self) -> SweepSummary:
        """Run one full sweep and return its statistics"""
        if self._lock.locked():
            raise SweepInProgress("A price sweep is already running")

        async with self._lock:
            self.state = WorkerState.SWEEPING
            try:
                return await self._sweep()
            finally:
                self.state = WorkerState.IDLE

    # manual trigger and timer share the same routine
    run_sweep_now = run_sweep

    async def wait_idle(self) -> None:
        """Return once no sweep is running"""
        async with self._lock:
            pass

    async def _sweep(self) -> SweepSummary:
        logger.info("Running price sweep...")
        summary = SweepSummary(started_at=self._clock())

        try:
            items = self.store.list_active()
        except Exception as e:
            logger.exception("Could not load active alerts; sweep aborted")
            raise SweepAborted(str(e)) from e

        logger.info("Checking %d active alerts", len(items))

        for index, item in enumerate(items):
            summary.checked += 1
            await self._process_item(item, summary)

            if self.item_delay > 0 and index < len(items) - 1:
                await self._sleep(self.item_delay)

        summary.finished_at = self._clock()
        self.last_summary = summary
        logger.info(
            "Price sweep complete. Checked: %d, Drops detected: %d, Failures: %d, Skipped: %d (%.1fs)",
            summary.checked, summary.drops, summary.failures, summary.skipped,
            summary.duration_seconds,
        )
        return summary

    async def _process_item(self, item: TrackedItem, summary: SweepSummary) -> SweepOutcome:
        try:
            scraper = self.registry.resolve(item.platform)
        except UnknownPlatformError:
            logger.warning("Unknown platform %r for alert %s; skipping", item.platform, item.id)
            summary.skipped += 1
            return SweepOutcome.UNKNOWN_PLATFORM

        try:
            price = await scraper.fetch_price(item.url)
        except ScrapeError as e:
            logger.error("Failed to scrape alert %s (%s): %s", item.id, item.url, e.reason)
            summary.failures += 1
            return outcome_for(e)
        except Exception:
            logger.exception("Unexpected error scraping alert %s (%s)", item.id, item.url)
            summary.failures += 1
            return SweepOutcome.TRANSPORT_ERROR

        logger.info(
            "Alert %s: Current=₹%s, Target=₹%s, Last=₹%s",
            item.id, price, item.target_price, item.last_price,
        )

        if price <= item.target_price:
            summary.drops += 1
            logger.warning(
                "Price drop detected for %s: ₹%s <= ₹%s (target)",
                item.user_email, price, item.target_price,
            )
            await self._notify(item, price)

        try:
            self._write_price(item, price)
        except StoreWriteFailed as e:
            logger.error("%s", e)
            summary.store_errors += 1

        return SweepOutcome.PRICE

    def _write_price(self, item: TrackedItem, price: float) -> None:
        try:
            ok = self.store.update_price(item.id, price, self._clock())
        except Exception as e:
            raise StoreWriteFailed(item.id, str(e)) from e
        if not ok:
            raise StoreWriteFailed(item.id)

    async def _notify(self, item: TrackedItem, price: float) -> None:
        try:
            await self.notifier.on_price_drop(
                item_id=item.id,
                url=item.url,
                current_price=price,
                target_price=item.target_price,
                recipient=item.user_email,
                platform=item.platform,
            )
        except Exception:
            logger.exception("Notification for alert %s failed", item.id)


def outcome_for(error: ScrapeError) -> SweepOutcome:
    if isinstance(error, ExtractionFailed):
        return SweepOutcome.EXTRACTION_FAILED
    return SweepOutcome.TRANSPORT_ERROR


class SweepScheduler:
    """Background job scheduler driving sweeps at a fixed interval"""

    JOB_ID = "price_sweep"

    def __init__(self, worker: ReconciliationWorker, config: Settings = default_settings):
        self.worker = worker
        self.interval_hours = config.SWEEP_INTERVAL_HOURS
        self.scheduler = AsyncIOScheduler()
        self._is_running = False
        self._inflight: Optional[asyncio.Task] = None

    def start(self):
        """Start the scheduler"""
        if self._is_running:
            return

        self.scheduler.add_job(
            self._scheduled_sweep,
            IntervalTrigger(hours=self.interval_hours),
            id=self.JOB_ID,
            name="Price Sweep",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        self.scheduler.start()
        self._is_running = True
        logger.info("Scheduler started with %sh interval", self.interval_hours)

    async def stop(self):
        """
        Stop the scheduler and wait for an in-flight sweep to finish.

        APScheduler's asyncio executor cancels running jobs on shutdown no
        matter what ``wait`` says, so the sweep itself runs in a shielded
        task and is awaited here instead.
        """
        if not self._is_running:
            return

        self.scheduler.shutdown(wait=False)
        self._is_running = False

        if self._inflight is not None and not self._inflight.done():
            logger.info("Waiting for the running price sweep to finish...")
            await asyncio.wait([self._inflight])
        await self.worker.wait_idle()
        logger.info("Scheduler stopped")

    def is_running(self) -> bool:
        return self._is_running

    def next_run_time(self) -> Optional[datetime]:
        job = self.scheduler.get_job(self.JOB_ID) if self._is_running else None
        return job.next_run_time if job else None

    async def _scheduled_sweep(self) -> Optional[SweepSummary]:
        self._inflight = asyncio.ensure_future(self._run_tick())
        return await asyncio.shield(self._inflight)

    async def _run_tick(self) -> Optional[SweepSummary]:
        try:
            return await self.worker.run_sweep()
        except SweepInProgress:
            logger.info("Skipping scheduled sweep: a sweep is already running")
        except SweepAborted:
            # already logged; the next tick tries again
            pass
        return None
