"""Client core — what the mobile apps run, as plain Python.

- api:           REST client (httpx)
- submission:    idempotent "Post prayer" controller
- paging:        swipe/prev/next controller over a list of prayer ids
- cache:         list cache (invalidated) and record cache (not)
- notifications: /ws frame → cache invalidation
"""

from prayoverus.client.api import ApiError, NetworkError, PrayerApiClient
from prayoverus.client.cache import QueryCache, RecordCache
from prayoverus.client.notifications import NotificationListener
from prayoverus.client.paging import NavOutcome, PagingController, PagingState
from prayoverus.client.submission import (
    PrayerDraft,
    SubmissionController,
    SubmissionStatus,
)

__all__ = [
    "ApiError",
    "NavOutcome",
    "NetworkError",
    "NotificationListener",
    "PagingController",
    "PagingState",
    "PrayerApiClient",
    "PrayerDraft",
    "QueryCache",
    "RecordCache",
    "SubmissionController",
    "SubmissionStatus",
]
