"""Who submitted a response: an authenticated user or an anonymous voter token."""
from dataclasses import dataclass
from typing import Union
from uuid import UUID


@dataclass(frozen=True)
class UserIdentity:
    user_id: UUID

    @property
    def columns(self) -> dict:
        """Values for the ``user_id`` / ``voter_token_id`` column pair."""
        return {"user_id": self.user_id, "voter_token_id": None}

    def filter_for(self, model):
        """WHERE clause selecting rows owned by this identity on ``model``."""
        return model.user_id == self.user_id

    @property
    def key(self) -> str:
        return f"user:{self.user_id}"


@dataclass(frozen=True)
class VoterIdentity:
    voter_token_id: UUID

    @property
    def columns(self) -> dict:
        return {"user_id": None, "voter_token_id": self.voter_token_id}

    def filter_for(self, model):
        return model.voter_token_id == self.voter_token_id

    @property
    def key(self) -> str:
        return f"voter:{self.voter_token_id}"


Identity = Union[UserIdentity, VoterIdentity]
