"""
Storage abstraction layer for challenges, users and submissions.

The ingestion pipeline only talks to the three protocols below. Two backends
implement them: an in-memory one (default, used for local runs and tests)
and an AWS one keeping records in DynamoDB and archive bytes in S3.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Protocol

from ..config import Settings, get_settings
from ..submissions.schemas import Challenge, Submission, User

logger = logging.getLogger(__name__)


class ChallengeStore(Protocol):
    """Lookup of challenges by numeric id."""

    async def find(self, challenge_id: int) -> Challenge:
        """Return the challenge.

        Raises:
            NotFound: If no challenge has this id
        """
        ...


class UserStore(Protocol):
    """Identity lookup by API key."""

    async def find_by_api_key(self, api_key: str) -> User:
        """Return the user owning ``api_key``.

        Raises:
            NotFound: If the key belongs to no user
        """
        ...


class SubmissionStore(Protocol):
    """Persistence of submissions."""

    async def add(self, submission: Submission) -> Submission:
        """Persist a stamped submission and assign its ``id``.

        Raises:
            StorageFailure: If the record is incomplete or the write fails
        """
        ...

    async def find(self, submission_id: str) -> Submission:
        """Return a stored submission including its archive bytes.

        Raises:
            NotFound: If no submission has this id
        """
        ...


@dataclass
class Stores:
    challenges: ChallengeStore
    users: UserStore
    submissions: SubmissionStore


# Global stores instance (lazy initialization)
_stores: Optional[Stores] = None


def build_stores(settings: Settings) -> Stores:
    if settings.storage_backend == "aws":
        from .aws_store import DynamoChallengeStore, DynamoSubmissionStore, DynamoUserStore

        logger.info("Initializing AWS storage backend")
        return Stores(
            challenges=DynamoChallengeStore(settings),
            users=DynamoUserStore(settings),
            submissions=DynamoSubmissionStore(settings),
        )

    from ..submissions.store import (
        InMemoryChallengeStore,
        InMemorySubmissionStore,
        InMemoryUserStore,
    )

    logger.info("Initializing in-memory storage backend (default)")
    return Stores(
        challenges=InMemoryChallengeStore(),
        users=InMemoryUserStore(),
        submissions=InMemorySubmissionStore(),
    )


def get_stores() -> Stores:
    """Get the configured stores, building them on first use."""
    global _stores

    if _stores is None:
        _stores = build_stores(get_settings())
    return _stores


def reset_stores() -> None:
    global _stores
    _stores = None
