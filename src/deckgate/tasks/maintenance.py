"""Maintenance background tasks for cleanup operations."""

import logging
from typing import Any

import redis.asyncio as redis

from deckgate.database import get_session_context
from deckgate.services.otp import OTP_KEY_PATTERNS
from deckgate.services.share_links import purge_dead_links

logger = logging.getLogger(__name__)

# Timeout for maintenance tasks (5 minutes)
MAINTENANCE_TIMEOUT_SECONDS = 5 * 60

SCAN_BATCH_SIZE = 500


async def sweep_stale_otp_keys(client: redis.Redis, dry_run: bool = False) -> dict[str, Any]:
    """Delete OTP keys that carry no TTL.

    Every OTP key is written with an expiry, so a key without one was left
    behind by an interrupted write and would otherwise live forever.
    """
    scanned = 0
    stale: list[str] = []
    for pattern in OTP_KEY_PATTERNS:
        async for key in client.scan_iter(match=pattern, count=SCAN_BATCH_SIZE):
            scanned += 1
            if await client.ttl(key) == -1:
                stale.append(key)

    deleted = 0
    if stale and not dry_run:
        deleted = int(await client.delete(*stale))

    logger.info(
        f"OTP sweep: {scanned} keys scanned, {len(stale)} without TTL, {deleted} deleted"
    )
    return {"dry_run": dry_run, "scanned": scanned, "stale": len(stale), "deleted": deleted}


async def cleanup_otp_keys(ctx: dict[str, Any], dry_run: bool = False) -> dict[str, Any]:
    """SAQ task: sweep OTP keys left without an expiry."""
    return await sweep_stale_otp_keys(ctx["redis"], dry_run=dry_run)


async def purge_share_links(_ctx: dict[str, Any] | None = None) -> dict[str, Any]:
    """SAQ task: delete share links past their expiry or maximum age."""
    async with get_session_context() as session:
        deleted = await purge_dead_links(session)
    logger.info(f"Purged {deleted} dead share links")
    return {"deleted": deleted}


# Set SAQ job timeouts
cleanup_otp_keys.timeout = MAINTENANCE_TIMEOUT_SECONDS  # type: ignore[attr-defined]
purge_share_links.timeout = MAINTENANCE_TIMEOUT_SECONDS  # type: ignore[attr-defined]
