from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

# Response fields owned by the server; metadata parts may not set them.
RESERVED_FIELDS = frozenset({"id", "created", "user", "challenge", "size", "data"})


class Challenge(BaseModel):
    id: int = Field(..., ge=1)
    name: str = Field(..., min_length=1)
    description: Optional[str] = None


class User(BaseModel):
    id: str = Field(..., min_length=1)
    name: str
    api_key: str = Field(..., min_length=1, repr=False)


class ChallengeRef(BaseModel):
    id: int
    name: str

    @classmethod
    def of(cls, challenge: Challenge) -> "ChallengeRef":
        return cls(id=challenge.id, name=challenge.name)


class UserRef(BaseModel):
    id: str
    name: str

    @classmethod
    def of(cls, user: User) -> "UserRef":
        return cls(id=user.id, name=user.name)


class Submission(BaseModel):
    """A code submission under construction or as persisted."""

    id: Optional[str] = None
    user: Optional[UserRef] = None
    challenge: Optional[ChallengeRef] = None
    created: Optional[datetime] = None
    data: bytes = b""
    metadata: Dict[str, Any] = Field(default_factory=dict)

    def response_body(self) -> Dict[str, Any]:
        """Flatten the record into the JSON shape returned to uploaders.

        Metadata fields sit at the top level next to the server-assigned
        fields. The archive bytes are not embedded; ``size`` reports their
        length and the download endpoint serves them.
        """
        body: Dict[str, Any] = dict(self.metadata)
        body["id"] = self.id
        body["created"] = self.created.isoformat() if self.created else None
        body["user"] = self.user.model_dump() if self.user else None
        body["challenge"] = self.challenge.model_dump() if self.challenge else None
        body["size"] = len(self.data)
        return body


class SeedData(BaseModel):
    challenges: List[Challenge] = Field(default_factory=list)
    users: List[User] = Field(default_factory=list)


class HealthResponse(BaseModel):
    status: str
