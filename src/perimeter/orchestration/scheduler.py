"""Scheduled scanning across organizations."""

from datetime import datetime, timezone

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from perimeter.core.config import get_settings
from perimeter.core.exceptions import ScanConflictError
from perimeter.core.logging import get_logger
from perimeter.database import ScanConfigRepository, ScanLogRepository, get_session
from perimeter.orchestration.coordinator import ScanOrchestrator, SessionFactory

OUTCOME_COMPLETED = "completed"
OUTCOME_SKIPPED = "skipped"
OUTCOME_FAILED = "failed"


class ScanScheduler:
    """Triggers scans for every enabled organization.

    A failure for one organization is logged and never stops the others.
    An organization with a running scan is skipped.
    """

    REFRESH_JOB_ID = "refresh-scan-jobs"
    JOB_PREFIX = "scan:"

    def __init__(
        self,
        orchestrator: ScanOrchestrator | None = None,
        session_factory: SessionFactory | None = None,
    ) -> None:
        self.logger = get_logger("scheduler")
        self.settings = get_settings()
        self._session = session_factory or get_session
        self.orchestrator = orchestrator or ScanOrchestrator(session_factory=self._session)
        self._scheduler: AsyncIOScheduler | None = None
        self._schedules: dict[str, str] = {}

    async def run_scheduled_scans(self) -> dict[str, str]:
        """Scan all enabled organizations one after another."""
        async with self._session() as db:
            configs = await ScanConfigRepository(db).list_enabled()

        outcomes: dict[str, str] = {}
        for config in configs:
            outcomes[config.organization_id] = await self.run_organization_scan(
                config.organization_id
            )

        self.logger.info(
            "scheduled_scans_finished",
            organizations=len(outcomes),
            failed=sum(1 for o in outcomes.values() if o == OUTCOME_FAILED),
            skipped=sum(1 for o in outcomes.values() if o == OUTCOME_SKIPPED),
        )
        return outcomes

    async def run_organization_scan(
        self,
        organization_id: str,
        triggered_by: str = "scheduled",
    ) -> str:
        """Scan one organization unless a scan is already running."""
        try:
            async with self._session() as db:
                running = await ScanLogRepository(db).get_running(organization_id)
            if running is not None:
                self.logger.info(
                    "scan_skipped",
                    organization_id=organization_id,
                    reason="already_running",
                    running_scan_id=str(running.id),
                )
                return OUTCOME_SKIPPED

            await self.orchestrator.run_full_scan(organization_id, triggered_by)
            return OUTCOME_COMPLETED
        except ScanConflictError:
            self.logger.info(
                "scan_skipped",
                organization_id=organization_id,
                reason="already_running",
            )
            return OUTCOME_SKIPPED
        except Exception as e:
            self.logger.error(
                "scheduled_scan_failed",
                organization_id=organization_id,
                error=str(e),
            )
            return OUTCOME_FAILED

    def start(self) -> AsyncIOScheduler:
        """Start cron jobs for enabled organizations. Needs a running event loop."""
        if self._scheduler is not None:
            return self._scheduler

        self._scheduler = AsyncIOScheduler(timezone="UTC")
        self._scheduler.add_job(
            self.refresh_jobs,
            IntervalTrigger(minutes=self.settings.scheduler_refresh_minutes),
            id=self.REFRESH_JOB_ID,
            max_instances=1,
            coalesce=True,
            next_run_time=datetime.now(timezone.utc),
        )
        self._scheduler.start()
        self.logger.info("scheduler_started")
        return self._scheduler

    def shutdown(self) -> None:
        if self._scheduler is not None:
            self._scheduler.shutdown(wait=False)
            self._scheduler = None
            self._schedules.clear()
            self.logger.info("scheduler_stopped")

    async def refresh_jobs(self) -> None:
        """Align cron jobs with the stored configurations."""
        if self._scheduler is None:
            return

        async with self._session() as db:
            configs = await ScanConfigRepository(db).list_enabled()
        wanted = {c.organization_id: c.scan_schedule for c in configs}

        for organization_id in list(self._schedules):
            if organization_id not in wanted:
                self._scheduler.remove_job(self.JOB_PREFIX + organization_id)
                del self._schedules[organization_id]

        for organization_id, schedule in wanted.items():
            if self._schedules.get(organization_id) == schedule:
                continue
            try:
                trigger = CronTrigger.from_crontab(schedule, timezone="UTC")
            except ValueError as e:
                self.logger.error(
                    "invalid_schedule",
                    organization_id=organization_id,
                    schedule=schedule,
                    error=str(e),
                )
                continue

            self._scheduler.add_job(
                self.run_organization_scan,
                trigger,
                args=[organization_id],
                id=self.JOB_PREFIX + organization_id,
                replace_existing=True,
                max_instances=1,
                coalesce=True,
            )
            self._schedules[organization_id] = schedule
            self.logger.info(
                "scan_job_scheduled",
                organization_id=organization_id,
                schedule=schedule,
            )
