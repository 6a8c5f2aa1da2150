# finalmessage/tasks.py
import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from finalmessage.services import Services
from finalmessage.settings import settings

log = logging.getLogger("tasks")


async def scan_inactive_users(services: Services) -> list:
    """Start a verification process for every inactive user that has none yet."""
    started = []
    for user_id in services.repo.users_with_verifiers():
        if services.coordinator.list_by_user(user_id):
            continue
        if not services.activity.evaluate(user_id).is_triggered:
            continue
        result = await services.coordinator.start_verification_process(user_id)
        if result.success:
            log.info("Inactivity trigger for %s: %s", user_id, result.process_id)
            started.append(result.process_id)
        else:
            log.warning("Could not start verification for %s: %s", user_id, result.message)
    return started


async def run_inactivity_scan(services: Services):
    log.info("Running inactivity scan...")
    try:
        started = await scan_inactive_users(services)
    except Exception:
        log.exception("Inactivity scan failed")
        return
    log.info("Inactivity scan started %d process(es)", len(started))


def build_scheduler(services: Services) -> AsyncIOScheduler:
    # runs on the app's event loop, so the coordinator's locks stay single-loop
    scheduler = AsyncIOScheduler()
    scheduler.add_job(
        run_inactivity_scan,
        "interval",
        minutes=settings.INACTIVITY_SCAN_MINUTES,
        args=[services],
        max_instances=1,
        coalesce=True,
    )
    return scheduler
