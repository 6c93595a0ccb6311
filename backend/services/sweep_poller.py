"""Background poller that runs the overdue and fraud sweeps on a fixed interval."""

import asyncio
import logging
from typing import Optional

from core.config import AppSettings

from .fraud_scoring import FraudDetectionService
from .payment_service import PaymentService


logger = logging.getLogger(__name__)


class LoanSweepPoller:
    """Periodically mark overdue loans and refresh borrower fraud status.

    Sweeps are idempotent, so an extra cycle after a restart is harmless.
    """

    def __init__(
        self,
        settings: AppSettings,
        payment_service: PaymentService,
        fraud_service: FraudDetectionService,
    ) -> None:
        self._settings = settings
        self._payments = payment_service
        self._fraud = fraud_service
        self._task: Optional[asyncio.Task] = None
        self._stop_event = asyncio.Event()

    def _is_enabled(self) -> bool:
        return self._settings.sweep_enabled

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        """Start the sweep loop in a background task if enabled."""
        if not self._is_enabled():
            logger.info("Loan sweep poller disabled by sweep.enabled=false")
            return
        if self.is_running:
            logger.info("Loan sweep poller already running.")
            return
        self._stop_event.clear()
        self._task = asyncio.create_task(self._run_loop(), name="loan-sweep-poller")
        logger.info("Loan sweep poller started interval=%ss", self._settings.sweep_interval_sec)

    async def stop(self) -> None:
        """Gracefully stop the background task."""
        if not self._task:
            return
        self._stop_event.set()
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            logger.info("Loan sweep poller task cancelled.")
        finally:
            self._task = None

    async def _run_loop(self) -> None:
        logger.info("Loan sweep poller loop running.")
        while not self._stop_event.is_set():
            try:
                await self.run_once()
            except Exception:
                logger.exception("Unhandled error during loan sweep cycle.")

            try:
                await asyncio.wait_for(
                    self._stop_event.wait(),
                    timeout=float(self._settings.sweep_interval_sec),
                )
            except asyncio.TimeoutError:
                continue

    async def run_once(self) -> dict:
        """Run one overdue sweep followed by one fraud sweep off the event loop."""
        overdue = await asyncio.to_thread(self._payments.run_overdue_sweep)
        fraud = await asyncio.to_thread(self._fraud.run_fraud_sweep)
        logger.info("Loan sweep cycle finished overdue=%s fraud=%s", overdue, fraud)
        return {"overdue": overdue, "fraud": fraud}
