"""Event type constants.

Centralizing event types as constants prevents typos and makes every
audited action discoverable in one place.
"""

# ─── Shared key pool (administrator actions) ─────────────

POOL_KEY_ADDED = "pool_key.added"
POOL_KEY_TOGGLED = "pool_key.toggled"
POOL_KEY_DELETED = "pool_key.deleted"
POOL_KEY_USAGE_RESET = "pool_key.usage_reset"

# ─── Accounts ────────────────────────────────────────────

USER_REGISTERED = "user.registered"
SETTINGS_UPDATED = "settings.updated"

# ─── Guest migration ─────────────────────────────────────

GUEST_MIGRATED = "guest.migrated"
