from __future__ import annotations

import asyncio
import logging
import uuid
from typing import Dict

from ..errors import NotFound, StorageFailure
from .schemas import Challenge, SeedData, Submission, User

logger = logging.getLogger(__name__)


def validate_for_storage(submission: Submission) -> None:
    """Reject records that are not complete enough to persist."""
    missing = []
    if submission.user is None:
        missing.append("user")
    if submission.challenge is None:
        missing.append("challenge")
    if submission.created is None:
        missing.append("created")
    if not submission.metadata:
        missing.append("metadata")
    if not submission.data:
        missing.append("archive")
    if missing:
        raise StorageFailure(f"incomplete submission: missing {', '.join(missing)}")


class InMemoryChallengeStore:
    """Challenges keyed by their numeric id."""

    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._challenges: Dict[int, Challenge] = {}

    async def add(self, challenge: Challenge) -> Challenge:
        async with self._lock:
            self._challenges[challenge.id] = challenge
            return challenge

    async def find(self, challenge_id: int) -> Challenge:
        async with self._lock:
            challenge = self._challenges.get(challenge_id)
        if challenge is None:
            raise NotFound(f"challenge {challenge_id} not found")
        return challenge


class InMemoryUserStore:
    """Users indexed by API key."""

    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._by_key: Dict[str, User] = {}

    async def add(self, user: User) -> User:
        async with self._lock:
            self._by_key[user.api_key] = user
            return user

    async def find_by_api_key(self, api_key: str) -> User:
        async with self._lock:
            user = self._by_key.get(api_key)
        if user is None:
            raise NotFound("user not found")
        return user


class InMemorySubmissionStore:
    """Persisted submissions keyed by a generated opaque id."""

    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._submissions: Dict[str, Submission] = {}

    async def add(self, submission: Submission) -> Submission:
        validate_for_storage(submission)
        async with self._lock:
            submission.id = str(uuid.uuid4())
            self._submissions[submission.id] = submission.model_copy(deep=True)
        logger.info(
            f"Stored submission {submission.id} ({len(submission.data)} bytes) "
            f"for challenge {submission.challenge.id}"
        )
        return submission

    async def find(self, submission_id: str) -> Submission:
        async with self._lock:
            stored = self._submissions.get(submission_id)
        if stored is None:
            raise NotFound(f"submission {submission_id} not found")
        return stored.model_copy(deep=True)

    async def count(self) -> int:
        async with self._lock:
            return len(self._submissions)


async def load_seed(challenges, users, seed: SeedData) -> None:
    """Load challenges and users into stores that support ``add``."""
    for challenge in seed.challenges:
        await challenges.add(challenge)
    for user in seed.users:
        await users.add(user)
    logger.info(f"Seeded {len(seed.challenges)} challenge(s) and {len(seed.users)} user(s)")
