"""Maintenance task tests."""

from contextlib import asynccontextmanager
from datetime import timedelta
from unittest.mock import patch

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from deckgate.models import DeckFile
from deckgate.models.base import utcnow
from deckgate.services import share_links
from deckgate.services.otp import OtpStore
from deckgate.tasks.maintenance import (
    cleanup_otp_keys,
    purge_share_links,
    sweep_stale_otp_keys,
)
from deckgate.tasks.queue import get_queue_settings
from tests.conftest import make_link


class TestOtpSweep:
    @pytest.mark.asyncio
    async def test_deletes_keys_without_ttl(self, redis_client, otp_store: OtpStore):
        await otp_store.generate("a@x.com", "share-token-123")
        await redis_client.set("otp:orphan:share-token-123", "x")
        await redis_client.set("unrelated", "keep")

        result = await sweep_stale_otp_keys(redis_client)

        assert result["stale"] == 1
        assert result["deleted"] == 1
        assert await redis_client.exists("otp:orphan:share-token-123") == 0
        assert await redis_client.exists("unrelated") == 1
        keys = OtpStore.keys("a@x.com", "share-token-123")
        assert await redis_client.exists(keys.code) == 1

    @pytest.mark.asyncio
    async def test_dry_run_keeps_keys(self, redis_client):
        await redis_client.set("otp:orphan:share-token-123", "x")

        result = await cleanup_otp_keys({"redis": redis_client}, dry_run=True)

        assert result == {"dry_run": True, "scanned": 1, "stale": 1, "deleted": 0}
        assert await redis_client.exists("otp:orphan:share-token-123") == 1


class TestPurgeShareLinks:
    @pytest.mark.asyncio
    async def test_purges_dead_links(self, session: AsyncSession, deck: DeckFile):
        alive = await make_link(session, deck)
        await make_link(session, deck, expires_at=utcnow() - timedelta(days=2))

        @asynccontextmanager
        async def session_context():
            yield session

        with patch("deckgate.tasks.maintenance.get_session_context", session_context):
            result = await purge_share_links()

        assert result == {"deleted": 1}
        assert await share_links.get_by_token(session, alive.token) is not None


def test_cron_schedule():
    settings = get_queue_settings()

    functions = {job.function for job in settings["cron_jobs"]}
    assert functions == {cleanup_otp_keys, purge_share_links}
