"""Event type constants for the /ws fan-out.

Learn: Centralizing event types as constants prevents typos and makes it
easy to discover every event the server can emit. The values are part of
the wire contract with the mobile and web clients, so they never change.

Payload keys follow the clients too: `prayerId` and `userId` at the top
of `data`, nested records in the same shape the REST endpoints return.
"""

# ─── Prayers ─────────────────────────────────────────────

NEW_PRAYER = "new_prayer"  # only for public prayers

# ─── Support ─────────────────────────────────────────────

PRAYER_SUPPORT = "prayer_support"
PRAYER_SUPPORT_REMOVED = "prayer_support_removed"

# ─── Comments ────────────────────────────────────────────

NEW_COMMENT = "new_comment"

ALL_EVENT_TYPES = frozenset({
    NEW_PRAYER,
    PRAYER_SUPPORT,
    PRAYER_SUPPORT_REMOVED,
    NEW_COMMENT,
})
