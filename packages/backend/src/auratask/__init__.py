"""AuraTask — task management backend.

The server-side core of AuraTask: credential resolution for the AI
features (personal keys with a fairness-managed shared pool), guest to
account data migration, and the auth/admin surface around them.
"""

__version__ = "0.1.0"
