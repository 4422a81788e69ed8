"""Tagged caller identities.

A guest is nothing more than an opaque source identifier: no account row,
no stored credential. Keeping Guest and Authenticated as distinct types
means an identity check is a type check, not a guess about an id.
"""

import uuid
from dataclasses import dataclass
from typing import Union


@dataclass(frozen=True)
class Guest:
    """Pre-authentication session identity."""

    id: uuid.UUID


@dataclass(frozen=True)
class Authenticated:
    """A signed-in account."""

    id: uuid.UUID


Principal = Union[Guest, Authenticated]
