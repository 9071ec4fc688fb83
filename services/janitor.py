"""Janitor - periodic sweep of expired OTP challenges and session tokens."""
import logging
from typing import Dict, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler

logger = logging.getLogger(__name__)


class Janitor:
    def __init__(self, otp_service, token_service, interval_seconds: int = 60):
        self.otp_service = otp_service
        self.token_service = token_service
        self.interval_seconds = interval_seconds
        self._scheduler: Optional[AsyncIOScheduler] = None

    def sweep_once(self) -> Dict[str, int]:
        removed = {
            "otps": self.otp_service.sweep(),
            "tokens": self.token_service.sweep(),
        }
        if removed["otps"] or removed["tokens"]:
            logger.info(f"Janitor removed {removed['otps']} OTP(s) and {removed['tokens']} token(s)")
        return removed

    async def _run(self):
        # coroutine job: runs on the event loop, same as the request handlers
        self.sweep_once()

    @property
    def running(self) -> bool:
        return self._scheduler is not None and self._scheduler.running

    def start(self) -> None:
        if self.running:
            return
        sched = AsyncIOScheduler(timezone="UTC")
        sched.add_job(
            self._run,
            "interval",
            seconds=self.interval_seconds,
            id="sweep_expired",
            replace_existing=True,
            coalesce=True,
            max_instances=1,
        )
        sched.start()
        self._scheduler = sched
        logger.info(f"Janitor started (every {self.interval_seconds}s)")

    def stop(self) -> None:
        if self._scheduler:
            self._scheduler.shutdown(wait=False)
            self._scheduler = None
