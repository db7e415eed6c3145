"""SAQ queue configuration for background tasks."""

from typing import Any

from saq import CronJob, Queue

from deckgate.config import settings
from deckgate.services.cache import close_cache, create_redis_client

# Main task queue
queue = Queue.from_url(settings.redis_url)

OTP_SWEEP_CRON = "*/15 * * * *"
LINK_PURGE_CRON = "0 3 * * *"


def get_queue_settings() -> dict:
    """Get SAQ queue settings for the worker."""
    # Import here to avoid circular imports
    from deckgate.tasks.maintenance import cleanup_otp_keys, purge_share_links

    return {
        "queue": queue,
        "functions": [cleanup_otp_keys, purge_share_links],
        "cron_jobs": [
            CronJob(cleanup_otp_keys, cron=OTP_SWEEP_CRON),
            CronJob(purge_share_links, cron=LINK_PURGE_CRON),
        ],
        "concurrency": 2,
        "startup": startup,
        "shutdown": shutdown,
    }


async def startup(ctx: dict[str, Any]) -> None:
    """Called when worker starts."""
    ctx["redis"] = create_redis_client()


async def shutdown(ctx: dict[str, Any]) -> None:
    """Called when worker shuts down."""
    await close_cache(ctx.pop("redis", None))
