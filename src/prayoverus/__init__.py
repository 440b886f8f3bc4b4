"""PrayOverUs — prayer requests, support, comments and groups.

The REST + WebSocket backend and the client-side core (API client,
idempotent submission, swipe paging) used by the mobile apps.
"""

__version__ = "0.1.0"
