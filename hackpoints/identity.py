from dataclasses import dataclass
from typing import Optional

from .errors import NotAuthenticatedError, NotOrganizerError


@dataclass(frozen=True)
class Identity:
    """Already-resolved caller identity handed in by the request layer."""
    user_id: Optional[int] = None
    is_organizer: bool = False

    @property
    def is_authenticated(self) -> bool:
        return self.user_id is not None


ANONYMOUS = Identity()


def require_user(identity: Identity) -> int:
    """Return the caller's user id, raising if nobody is signed in."""
    if not identity.is_authenticated:
        raise NotAuthenticatedError()
    return identity.user_id


def require_organizer(identity: Identity) -> int:
    user_id = require_user(identity)
    if not identity.is_organizer:
        raise NotOrganizerError()
    return user_id
