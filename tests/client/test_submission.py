"""Submission controller tests — at-most-once posting from the client side.

Learn: The API is replaced by a scripted stand-in that plays back one
outcome per call (a record dict, or an exception to raise) and records
every request, so each test can assert exactly which keys went out.
"""

import asyncio
import random

import pytest

from prayoverus.client.api import ApiError, NetworkError
from prayoverus.client.cache import MY_PRAYERS, PUBLIC_PRAYERS, QueryCache
from prayoverus.client.submission import (
    OFFLINE_NOTICE,
    SUCCESS_NOTICE,
    PrayerDraft,
    RecordPhase,
    SubmissionController,
    SubmissionStatus,
    generate_idempotency_key,
)


class ScriptedApi:
    """create_prayer stand-in: plays back outcomes, records every call."""

    def __init__(self, *outcomes):
        self.outcomes = list(outcomes)
        self.calls: list[dict] = []

    async def create_prayer(self, title, content, is_public=False, idempotency_key=None):
        self.calls.append({
            "title": title,
            "content": content,
            "is_public": is_public,
            "idempotency_key": idempotency_key,
        })
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    @property
    def keys(self) -> list[str]:
        return [c["idempotency_key"] for c in self.calls]


def _remote(prayer_id: str = "p-1", **fields) -> dict:
    return {"id": prayer_id, "title": "Help", "content": "Please help", "status": "ongoing", **fields}


def _keys():
    """Deterministic key factory: K1, K2, ..."""
    counter = iter(range(1, 100))
    return lambda: f"K{next(counter)}"


# ═══════════════════════════════════════════════════════════
# Key format
# ═══════════════════════════════════════════════════════════


def test_key_format():
    key = generate_idempotency_key(now_ms=1760000000000, rng=random.Random(7))
    prefix, ms, suffix = key.split("-")
    assert prefix == "request"
    assert ms == "1760000000000"
    assert len(suffix) == 9
    assert all(c in "0123456789abcdefghijklmnopqrstuvwxyz" for c in suffix)


def test_keys_are_unique():
    assert len({generate_idempotency_key() for _ in range(200)}) == 200


# ═══════════════════════════════════════════════════════════
# The posting scenario
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_post_scenario():
    """Short content never hits the network; success clears the key; next post rotates it."""
    api = ScriptedApi(_remote("p-1"), _remote("p-2"))
    cache = QueryCache()
    cache.set(MY_PRAYERS, [])
    cache.set(PUBLIC_PRAYERS, [])
    notices = []
    controller = SubmissionController(
        api=api, cache=cache, on_notice=notices.append, key_factory=_keys()
    )

    short = await controller.submit(PrayerDraft("Help", "123456789"))
    assert short.status is SubmissionStatus.INVALID
    assert api.calls == []
    assert controller.current_key is None

    ok = await controller.submit(PrayerDraft("Help", "Please help"))
    assert ok.status is SubmissionStatus.CONFIRMED
    assert ok.idempotency_key == "K1"
    assert api.keys == ["K1"]
    assert controller.current_key is None
    assert notices == [SUCCESS_NOTICE]
    assert cache.is_stale(MY_PRAYERS)
    assert cache.is_stale(PUBLIC_PRAYERS)

    second = await controller.submit(PrayerDraft("Thanks", "Grateful for answered prayer"))
    assert second.status is SubmissionStatus.CONFIRMED
    assert api.keys == ["K1", "K2"]
    assert notices == [SUCCESS_NOTICE, SUCCESS_NOTICE]


@pytest.mark.asyncio
async def test_draft_is_trimmed_before_sending():
    api = ScriptedApi(_remote())
    controller = SubmissionController(api=api, key_factory=_keys())

    await controller.submit(PrayerDraft("  Help  ", "  Please help  ", is_public=True))
    assert api.calls[0]["title"] == "Help"
    assert api.calls[0]["content"] == "Please help"
    assert api.calls[0]["is_public"] is True


@pytest.mark.parametrize(
    "draft, message",
    [
        (PrayerDraft("", "Please help me"), "title"),
        (PrayerDraft("t" * 101, "Please help me"), "Title"),
        (PrayerDraft("Help", "x" * 1001), "Content"),
    ],
)
@pytest.mark.asyncio
async def test_invalid_drafts(draft, message):
    api = ScriptedApi()
    controller = SubmissionController(api=api)
    result = await controller.submit(draft)
    assert result.status is SubmissionStatus.INVALID
    assert message in result.message
    assert api.calls == []


# ═══════════════════════════════════════════════════════════
# Failures and retries
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_network_failure_keeps_key_and_queues_locally():
    api = ScriptedApi(NetworkError("connection refused"), _remote("p-1"))
    notices = []
    controller = SubmissionController(api=api, on_notice=notices.append, key_factory=_keys())

    queued = await controller.submit(PrayerDraft("Help", "Please help"))
    assert queued.status is SubmissionStatus.QUEUED_LOCALLY
    assert queued.message == OFFLINE_NOTICE
    assert queued.record["pending"] is True
    assert controller.current_key == "K1"
    assert [r.phase for r in controller.records] == [RecordPhase.PENDING_LOCAL]

    confirmed = await controller.retry()
    assert confirmed.status is SubmissionStatus.CONFIRMED
    assert api.keys == ["K1", "K1"]
    assert notices == [OFFLINE_NOTICE, SUCCESS_NOTICE]


@pytest.mark.asyncio
async def test_reconcile_replaces_local_guess_with_server_record():
    api = ScriptedApi(NetworkError("timeout"), _remote("p-9", title="Help"))
    controller = SubmissionController(api=api, key_factory=_keys())

    await controller.submit(PrayerDraft("Help", "Please help"))
    await controller.retry()

    (record,) = controller.records
    assert record.phase is RecordPhase.CONFIRMED_REMOTE
    assert record.body["id"] == "p-9"
    assert "pending" not in record.body
    assert controller.pending_records == []


@pytest.mark.asyncio
async def test_repeated_network_failures_keep_one_local_record():
    api = ScriptedApi(NetworkError("down"), NetworkError("still down"))
    controller = SubmissionController(api=api, key_factory=_keys())

    await controller.submit(PrayerDraft("Help", "Please help"))
    await controller.retry()
    assert len(controller.records) == 1
    assert api.keys == ["K1", "K1"]


@pytest.mark.asyncio
async def test_resubmitting_after_failure_reuses_key():
    """Tapping submit again (not retry) is still the same logical action."""
    api = ScriptedApi(NetworkError("down"), _remote())
    controller = SubmissionController(api=api, key_factory=_keys())

    await controller.submit(PrayerDraft("Help", "Please help"))
    await controller.submit(PrayerDraft("Help", "Please help"))
    assert api.keys == ["K1", "K1"]


@pytest.mark.asyncio
async def test_server_error_surfaces_message_verbatim():
    api = ScriptedApi(ApiError(400, "Prayer content must be at least 10 characters"), _remote())
    controller = SubmissionController(api=api, key_factory=_keys())

    rejected = await controller.submit(PrayerDraft("Help", "Please help"))
    assert rejected.status is SubmissionStatus.REJECTED
    assert rejected.message == "Prayer content must be at least 10 characters"
    # Form and key kept for correction
    assert controller.draft == PrayerDraft("Help", "Please help")
    assert controller.current_key == "K1"
    assert controller.records == []

    fixed = await controller.submit(PrayerDraft("Help", "Please help us all"))
    assert fixed.status is SubmissionStatus.CONFIRMED
    assert api.keys == ["K1", "K1"]


@pytest.mark.asyncio
async def test_retry_with_nothing_outstanding():
    controller = SubmissionController(api=ScriptedApi())
    result = await controller.retry()
    assert result.status is SubmissionStatus.INVALID


# ═══════════════════════════════════════════════════════════
# Single outstanding send
# ═══════════════════════════════════════════════════════════


class SlowApi(ScriptedApi):
    """Holds create_prayer open until the test releases it."""

    def __init__(self, *outcomes):
        super().__init__(*outcomes)
        self.release = asyncio.Event()
        self.entered = asyncio.Event()

    async def create_prayer(self, *args, **kwargs):
        self.entered.set()
        await self.release.wait()
        return await super().create_prayer(*args, **kwargs)


@pytest.mark.asyncio
async def test_second_tap_while_sending_is_busy():
    api = SlowApi(_remote())
    controller = SubmissionController(api=api, key_factory=_keys())

    first = asyncio.create_task(controller.submit(PrayerDraft("Help", "Please help")))
    await api.entered.wait()
    assert controller.can_submit is False

    second = await controller.submit(PrayerDraft("Help", "Please help"))
    assert second.status is SubmissionStatus.BUSY
    assert second.idempotency_key == "K1"

    with pytest.raises(RuntimeError):
        controller.start_new()

    api.release.set()
    assert (await first).status is SubmissionStatus.CONFIRMED
    assert api.keys == ["K1"]
    assert controller.can_submit is True


@pytest.mark.asyncio
async def test_success_notice_shown_once_per_key():
    """Even if a late confirmation for the same key comes back, notify once."""
    api = ScriptedApi(_remote(), _remote())
    notices = []
    controller = SubmissionController(
        api=api, on_notice=notices.append, key_factory=lambda: "K-same"
    )

    await controller.submit(PrayerDraft("Help", "Please help"))
    await controller.submit(PrayerDraft("Help", "Please help"))
    assert notices == [SUCCESS_NOTICE]


@pytest.mark.asyncio
async def test_start_new_rolls_back_pending_record():
    api = ScriptedApi(NetworkError("down"), _remote())
    controller = SubmissionController(api=api, key_factory=_keys())

    await controller.submit(PrayerDraft("Help", "Please help"))
    controller.start_new()

    assert controller.current_key is None
    assert controller.records[0].phase is RecordPhase.ROLLED_BACK
    assert controller.pending_records == []

    await controller.submit(PrayerDraft("Other", "A different request"))
    assert api.keys == ["K1", "K2"]
