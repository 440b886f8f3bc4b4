"""Idempotent submission controller — the "Post prayer" button.

Learn: A submit gesture must create at most one prayer on the server, no
matter how often the request is resent. The controller owns one
idempotency key per logical submission:

    submit(draft) ──validate──► INVALID            (no key minted)
         │
         ▼  mint key (or reuse the outstanding one)
       send ──► success        → CONFIRMED       key cleared, "Posted!" once
            ──► NetworkError   → QUEUED_LOCALLY  key kept, optimistic record
            ──► ApiError       → REJECTED        key kept, draft kept

While a send is outstanding the slot is held and further submits return
BUSY, so two taps can never race with two different keys.

Optimistic records have an explicit phase:
    pending_local → confirmed_remote (server record replaces the local guess)
                  → rolled_back      (user abandoned the draft)
"""

import enum
import random
import string
import time
from dataclasses import dataclass, field
from typing import Callable, Optional

import structlog

from prayoverus.client.api import ApiError, NetworkError, PrayerApiClient
from prayoverus.client.cache import MY_PRAYERS, PUBLIC_PRAYERS, QueryCache
from prayoverus.client.slot import InFlightSlot

logger = structlog.get_logger()

SUCCESS_NOTICE = "Posted!"
OFFLINE_NOTICE = "Saved on this device. It will sync when you're back online."

TITLE_MAX_LENGTH = 100
CONTENT_MIN_LENGTH = 10
CONTENT_MAX_LENGTH = 1000

_BASE36 = string.digits + string.ascii_lowercase


def generate_idempotency_key(
    now_ms: Optional[int] = None,
    rng: Optional[random.Random] = None,
) -> str:
    """`request-<epoch ms>-<9 base36 chars>`, e.g. request-1760000000000-k3j9x0a2b."""
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    rng = rng or random.SystemRandom()
    suffix = "".join(rng.choice(_BASE36) for _ in range(9))
    return f"request-{now_ms}-{suffix}"


class ValidationError(Exception):
    """Client-side form check failed; nothing was sent."""


@dataclass(frozen=True)
class PrayerDraft:
    title: str
    content: str
    is_public: bool = False

    def validate(self) -> "PrayerDraft":
        """Return a trimmed copy, or raise ValidationError."""
        title = self.title.strip()
        content = self.content.strip()
        if not title:
            raise ValidationError("Please enter a title for your prayer.")
        if len(title) > TITLE_MAX_LENGTH:
            raise ValidationError(f"Title must be less than {TITLE_MAX_LENGTH} characters.")
        if len(content) < CONTENT_MIN_LENGTH:
            raise ValidationError(
                f"Prayer content must be at least {CONTENT_MIN_LENGTH} characters."
            )
        if len(content) > CONTENT_MAX_LENGTH:
            raise ValidationError(
                f"Content must be less than {CONTENT_MAX_LENGTH} characters."
            )
        return PrayerDraft(title=title, content=content, is_public=self.is_public)


class SubmissionStatus(str, enum.Enum):
    CONFIRMED = "confirmed"
    QUEUED_LOCALLY = "queued_locally"
    REJECTED = "rejected"
    INVALID = "invalid"
    BUSY = "busy"


class RecordPhase(str, enum.Enum):
    PENDING_LOCAL = "pending_local"
    CONFIRMED_REMOTE = "confirmed_remote"
    ROLLED_BACK = "rolled_back"


@dataclass
class OptimisticRecord:
    """A prayer shown in the UI before (or without) server confirmation."""

    idempotency_key: str
    draft: PrayerDraft
    phase: RecordPhase = RecordPhase.PENDING_LOCAL
    remote: Optional[dict] = None

    @property
    def body(self) -> dict:
        """What the list renders: the server's record once we have it."""
        if self.remote is not None:
            return self.remote
        return {
            "id": None,
            "title": self.draft.title,
            "content": self.draft.content,
            "is_public": self.draft.is_public,
            "status": "ongoing",
            "pending": True,
        }


@dataclass
class SubmissionResult:
    status: SubmissionStatus
    message: str = ""
    idempotency_key: Optional[str] = None
    record: Optional[dict] = None


@dataclass
class SubmissionController:
    """Per-screen controller. Create one per add-prayer screen instance."""

    api: PrayerApiClient
    cache: Optional[QueryCache] = None
    on_notice: Optional[Callable[[str], None]] = None
    key_factory: Callable[[], str] = generate_idempotency_key

    current_key: Optional[str] = field(default=None, init=False)
    draft: Optional[PrayerDraft] = field(default=None, init=False)
    records: list[OptimisticRecord] = field(default_factory=list, init=False)
    notices: list[str] = field(default_factory=list, init=False)
    _slot: InFlightSlot = field(default_factory=InFlightSlot, init=False)
    _notified_key: Optional[str] = field(default=None, init=False)

    @property
    def can_submit(self) -> bool:
        """Drives the submit button: hidden/disabled while a send is outstanding."""
        return not self._slot.busy

    @property
    def pending_records(self) -> list[OptimisticRecord]:
        return [r for r in self.records if r.phase is RecordPhase.PENDING_LOCAL]

    # ─── Gestures ────────────────────────────────────────

    async def submit(self, draft: PrayerDraft) -> SubmissionResult:
        """Handle a submit tap."""
        if self._slot.busy:
            return SubmissionResult(SubmissionStatus.BUSY, idempotency_key=self.current_key)

        try:
            clean = draft.validate()
        except ValidationError as e:
            return SubmissionResult(SubmissionStatus.INVALID, message=str(e))

        if self.current_key is None:
            self.current_key = self.key_factory()
            logger.debug("submission.key_minted", idempotency_key=self.current_key)
        self.draft = clean
        return await self._send()

    async def retry(self) -> SubmissionResult:
        """Resend the outstanding draft under the same key."""
        if self._slot.busy:
            return SubmissionResult(SubmissionStatus.BUSY, idempotency_key=self.current_key)
        if self.current_key is None or self.draft is None:
            return SubmissionResult(SubmissionStatus.INVALID, message="Nothing to retry.")
        return await self._send()

    def start_new(self) -> None:
        """Abandon the current draft; the next submit gets a fresh key."""
        if self._slot.busy:
            raise RuntimeError("Cannot start a new submission while one is in flight")
        for record in self.pending_records:
            if record.idempotency_key == self.current_key:
                record.phase = RecordPhase.ROLLED_BACK
                logger.info(
                    "submission.rolled_back",
                    idempotency_key=record.idempotency_key,
                )
        self.current_key = None
        self.draft = None

    # ─── Send / reconcile ────────────────────────────────

    async def _send(self) -> SubmissionResult:
        key, draft = self.current_key, self.draft
        token = self._slot.try_acquire("submit")
        try:
            remote = await self.api.create_prayer(
                title=draft.title,
                content=draft.content,
                is_public=draft.is_public,
                idempotency_key=key,
            )
        except NetworkError as e:
            logger.warning("submission.network_error", idempotency_key=key, error=str(e))
            record = self._record_for(key) or self._add_local(key, draft)
            self._notice(OFFLINE_NOTICE)
            return SubmissionResult(
                SubmissionStatus.QUEUED_LOCALLY,
                message=OFFLINE_NOTICE,
                idempotency_key=key,
                record=record.body,
            )
        except ApiError as e:
            logger.info(
                "submission.rejected",
                idempotency_key=key,
                status=e.status_code,
                message=e.message,
            )
            return SubmissionResult(
                SubmissionStatus.REJECTED,
                message=e.message,
                idempotency_key=key,
            )
        finally:
            self._slot.release(token)

        self._reconcile(key, draft, remote)
        self.current_key = None
        self.draft = None
        if self.cache is not None:
            self.cache.invalidate(MY_PRAYERS, PUBLIC_PRAYERS)

        # A late duplicate confirmation for the same key must not notify twice
        if self._notified_key != key:
            self._notified_key = key
            self._notice(SUCCESS_NOTICE)

        logger.info("submission.confirmed", idempotency_key=key, prayer_id=remote.get("id"))
        return SubmissionResult(
            SubmissionStatus.CONFIRMED,
            message=SUCCESS_NOTICE,
            idempotency_key=key,
            record=remote,
        )

    def _record_for(self, key: str) -> Optional[OptimisticRecord]:
        for record in self.records:
            if record.idempotency_key == key:
                return record
        return None

    def _add_local(self, key: str, draft: PrayerDraft) -> OptimisticRecord:
        record = OptimisticRecord(idempotency_key=key, draft=draft)
        self.records.append(record)
        return record

    def _reconcile(self, key: str, draft: PrayerDraft, remote: dict) -> None:
        """Replace the local guess with the server's authoritative record."""
        record = self._record_for(key)
        if record is None:
            record = self._add_local(key, draft)
        record.remote = remote
        record.phase = RecordPhase.CONFIRMED_REMOTE

    def _notice(self, message: str) -> None:
        self.notices.append(message)
        if self.on_notice is not None:
            self.on_notice(message)
