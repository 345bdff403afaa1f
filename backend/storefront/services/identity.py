from dataclasses import dataclass
from typing import Optional

from storefront.errors import BadRequest


@dataclass(frozen=True)
class Identity:
    """Who is shopping: an authenticated user id or an anonymous session token."""

    user_id: Optional[str] = None
    session_token: Optional[str] = None

    def __post_init__(self):
        if bool(self.user_id) == bool(self.session_token):
            raise BadRequest("Identity needs exactly one of user_id or session_token")

    @property
    def owner_id(self) -> str:
        return self.user_id or self.session_token

    @property
    def is_user(self) -> bool:
        return self.user_id is not None

    @classmethod
    def user(cls, user_id: str) -> "Identity":
        return cls(user_id=str(user_id))

    @classmethod
    def guest(cls, session_token: str) -> "Identity":
        return cls(session_token=session_token)
