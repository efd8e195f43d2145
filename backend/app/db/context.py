"""Request context for ownership enforcement."""

from dataclasses import dataclass
from uuid import UUID


@dataclass(frozen=True)
class RequestContext:
    """Authenticated caller identity.

    Every document and chunk read is scoped by ``user_id``.
    """

    user_id: UUID
