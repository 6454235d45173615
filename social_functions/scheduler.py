import logging
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from .schemas import ScheduleEvent
from .triggers import TriggerType, triggers_of_type

logger = logging.getLogger(__name__)


def create_scheduler(ctx, scheduler: Optional[AsyncIOScheduler] = None) -> AsyncIOScheduler:
    """
    Register every scheduled trigger as a cron job.

    Args:
        ctx: Application context handed to each handler
        scheduler: Optional scheduler to register on, for tests

    Returns:
        AsyncIOScheduler: the (not yet started) scheduler
    """
    scheduler = scheduler or AsyncIOScheduler(timezone="UTC")
    for descriptor in triggers_of_type(TriggerType.SCHEDULE):
        trigger = CronTrigger.from_crontab(descriptor.schedule, timezone=descriptor.timezone)
        event = ScheduleEvent(schedule=descriptor.schedule, timezone=descriptor.timezone)
        scheduler.add_job(
            descriptor.handler,
            trigger,
            args=[event, ctx],
            id=descriptor.name,
            name=descriptor.name,
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
        logger.info(f"Scheduled {descriptor.name} with '{descriptor.schedule}' ({descriptor.timezone})")
    return scheduler
