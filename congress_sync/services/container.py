"""
Service wiring.

Builds every sync engine service once, with explicit dependencies, so
flows, the CLI and tests share one monitor, one HTTP client and one
token bucket per process.

Responsibility: Construct and dispose of the service graph
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional
import logging

import httpx

from .change_detection import ChangeDetectionService, ChangeNotifier
from .error_handler import ErrorHandler
from .orchestrator import SyncOrchestrator
from .queue_ledger import QueueLedger
from .sync import BillSyncService, HearingSyncService, MemberSyncService
from ..adapters import (
    CongressApiClient,
    CongressBillsAdapter,
    CongressHearingsAdapter,
    CongressMembersAdapter,
)
from ..config import Settings, settings as default_settings
from ..db.session import Database
from ..utils.parallel_executor import ParallelExecutor
from ..utils.rate_limit_monitor import RateLimitMonitor
from ..utils.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)


@dataclass
class SyncServices:
    """The wired service graph."""
    settings: Settings
    database: Database
    monitor: RateLimitMonitor
    client: CongressApiClient
    error_handler: ErrorHandler
    change_detection: ChangeDetectionService
    ledger: QueueLedger
    bill_sync: BillSyncService
    member_sync: MemberSyncService
    hearing_sync: HearingSyncService
    orchestrator: SyncOrchestrator

    async def close(self) -> None:
        await self.client.close()
        await self.database.close()


async def build_services(
    settings: Optional[Settings] = None,
    *,
    database: Optional[Database] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    notifier: Optional[ChangeNotifier] = None,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> SyncServices:
    """
    Build the service graph.

    Args:
        settings: Settings to use (defaults to the process settings)
        database: Existing Database (initialized if needed); built from settings.db otherwise
        transport: httpx transport for the Congress.gov client (tests use MockTransport)
        notifier: Receiver of bill change notifications
        sleep: Async sleep shared by every component that waits

    Example:
        services = await build_services()
        try:
            await services.orchestrator.sync(SyncOptions())
        finally:
            await services.close()
    """
    settings = settings or default_settings

    if database is None:
        database = Database(settings.db)
    if database.session_factory is None:
        await database.initialize()

    api_config = settings.congress_api
    sync_config = settings.sync

    monitor = RateLimitMonitor(hourly_limit=api_config.hourly_limit, sleep=sleep)
    client = CongressApiClient(api_config, monitor, transport=transport)
    rate_limiter = RateLimiter(rate=api_config.requests_per_second, burst=1, sleep=sleep)

    error_handler = ErrorHandler(database, sleep=sleep)
    change_detection = ChangeDetectionService(database, notifier=notifier)
    ledger = QueueLedger(database)

    executor = ParallelExecutor(
        concurrency=sync_config.concurrency,
        delay_between_seconds=sync_config.delay_between_seconds,
        retry=sync_config.parallel_retry,
        max_retries=sync_config.parallel_max_retries,
        sleep=sleep,
    )

    bill_sync = BillSyncService(
        database,
        CongressBillsAdapter(client, monitor, rate_limiter),
        error_handler,
        change_detection,
        config=sync_config,
        executor=executor,
    )
    member_sync = MemberSyncService(
        database,
        CongressMembersAdapter(client, monitor, rate_limiter),
        error_handler,
        config=sync_config,
    )
    hearing_sync = HearingSyncService(
        database,
        CongressHearingsAdapter(client, monitor, rate_limiter),
        error_handler,
        config=sync_config,
    )

    orchestrator = SyncOrchestrator(
        database,
        bill_sync=bill_sync,
        member_sync=member_sync,
        hearing_sync=hearing_sync,
        ledger=ledger,
        config=sync_config,
    )

    logger.info(f"Sync services ready (environment={settings.app.environment.value})")

    return SyncServices(
        settings=settings,
        database=database,
        monitor=monitor,
        client=client,
        error_handler=error_handler,
        change_detection=change_detection,
        ledger=ledger,
        bill_sync=bill_sync,
        member_sync=member_sync,
        hearing_sync=hearing_sync,
        orchestrator=orchestrator,
    )
