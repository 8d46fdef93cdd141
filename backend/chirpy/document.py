"""In-memory model of the JSON document: chirps, users and revocations."""

from datetime import datetime
from typing import Any, Dict

from pydantic import BaseModel, Field, field_validator


class Chirp(BaseModel):
    id: int
    body: str
    author_id: int


class User(BaseModel):
    """Public view of an account. Never carries the password hash."""

    id: int
    email: str
    is_upgraded: bool = False


class UserRecord(User):
    password_hash: str = Field(..., repr=False)

    def public(self) -> User:
        return User(id=self.id, email=self.email, is_upgraded=self.is_upgraded)


class Revocation(BaseModel):
    token: str
    revoked_at: datetime


class Document(BaseModel):
    """Root object persisted to the data file.

    Each collection maps an integer key to its record. JSON object keys are
    strings on disk and are coerced back to ints on load.
    """

    chirps: Dict[int, Chirp] = Field(default_factory=dict)
    users: Dict[int, UserRecord] = Field(default_factory=dict)
    revocations: Dict[int, Revocation] = Field(default_factory=dict)

    @field_validator("chirps", "users", "revocations", mode="before")
    @classmethod
    def null_collection_is_empty(cls, v: Any):
        return {} if v is None else v


def next_id(records: Dict[int, Any]) -> int:
    """1 + the highest ``id`` among ``records``, or 1 for an empty collection."""
    return max((record.id for record in records.values()), default=0) + 1


def next_index(records: Dict[int, Any]) -> int:
    """Next sequential key of an append-only collection, starting at 0."""
    return max(records, default=-1) + 1
