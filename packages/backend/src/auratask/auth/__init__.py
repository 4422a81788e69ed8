"""Authentication and authorization.

Two kinds of caller:
1. Accounts → email/password → JWT access/refresh tokens
2. Guests → anonymous guest token for a random guest id

Both resolve to a CurrentIdentity whose principal is a tagged
Guest(id) or Authenticated(id), never an ambiguous bare id.
"""
