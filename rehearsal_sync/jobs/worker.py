"""
Background sync worker runner.

Reads the desired job name from CLI args or the WORKER_JOB environment
variable and runs one sync pass for the configured user, the way a host's
background fetch would.
"""

import asyncio
import os
import sys
from collections.abc import Awaitable, Callable

from rehearsal_sync.config import settings
from rehearsal_sync.infrastructure.observability.logging import get_logger, setup_logging
from rehearsal_sync.models.domain.sync_domain import SyncReport
from rehearsal_sync.services.sync.runtime import sync_runtime

logger = get_logger(__name__)

JobCoroutine = Callable[[], Awaitable[SyncReport]]


async def run_auto_sync() -> SyncReport:
    return await sync_runtime.scheduler.perform_auto_sync()


async def run_force_sync() -> SyncReport:
    return await sync_runtime.scheduler.force_sync()


JOB_REGISTRY: dict[str, JobCoroutine] = {
    "auto_sync": run_auto_sync,
    "force_sync": run_force_sync,
}


def _resolve_job_name() -> str:
    """Pick the target job from CLI args or WORKER_JOB env variable."""
    if len(sys.argv) > 1:
        return sys.argv[1].strip().lower()
    return os.getenv("WORKER_JOB", "auto_sync").strip().lower()


async def run_worker(job_name: str | None = None) -> SyncReport:
    """Run the requested sync job once."""
    name = (job_name or _resolve_job_name()).strip().lower()
    if name not in JOB_REGISTRY:
        raise ValueError(
            f"Unknown worker job '{name}'. "
            f"Available jobs: {', '.join(sorted(JOB_REGISTRY.keys()))}"
        )

    logger.info("Starting sync worker", job=name)
    await sync_runtime.initialize()
    try:
        return await JOB_REGISTRY[name]()
    finally:
        await sync_runtime.close()


def main() -> None:
    """CLI entrypoint."""
    setup_logging(log_level=settings.LOG_LEVEL)
    job_name = _resolve_job_name()
    report = asyncio.run(run_worker(job_name))
    if report.failed:
        sys.exit(1)


if __name__ == "__main__":
    main()
