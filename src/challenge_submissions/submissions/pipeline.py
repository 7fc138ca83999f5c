"""
Submission ingestion pipeline.

An upload is processed by a fixed sequence of stages, each an async function
taking and returning the request's ``IngestionContext``:

    resolve_challenge -> authenticate -> parse_boundary -> read_parts
        -> stamp_and_persist -> serialize_response

Stages are chained through ``Outcome``. An Outcome carries either a value or
the first ``SubmissionError`` raised by a stage; once it carries an error no
later stage runs and the error is passed along unchanged. Persistence is the
fifth stage, so any failure while parsing the body leaves the store
untouched.
"""

from __future__ import annotations

import inspect
import json
import logging
from contextlib import aclosing
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Awaitable, Callable, Generic, Optional, TypeVar, Union

from ..errors import (
    AuthenticationFailure,
    DecodeFailure,
    InvalidIdentifier,
    NotFound,
    StorageFailure,
    SubmissionError,
)
from ..services.storage_service import ChallengeStore, SubmissionStore, UserStore
from .decoders import dispatch_part
from .multipart import iter_parts, resolve_boundary
from .schemas import Challenge, ChallengeRef, Submission, User, UserRef

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class Outcome(Generic[T]):
    """Either a stage result or the first failure of the chain."""

    value: Optional[T] = None
    error: Optional[SubmissionError] = None

    @classmethod
    def ok(cls, value: T) -> "Outcome[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: SubmissionError) -> "Outcome[Any]":
        return cls(error=error)

    @property
    def failed(self) -> bool:
        return self.error is not None

    async def bind(self, stage: Callable[[T], Union[Any, Awaitable[Any]]]) -> "Outcome[Any]":
        """Run ``stage`` on the value unless this outcome already failed."""
        if self.error is not None:
            return self
        try:
            result = stage(self.value)
            if inspect.isawaitable(result):
                result = await result
        except SubmissionError as exc:
            return Outcome.failure(exc)
        return Outcome.ok(result)


@dataclass
class IngestionContext:
    """Request-scoped state threaded through the ingestion stages."""

    challenge_id: str
    api_key: Optional[str]
    content_type: Optional[str]
    body: AsyncIterator[bytes]
    challenges: ChallengeStore
    users: UserStore
    submissions: SubmissionStore
    challenge: Optional[Challenge] = None
    user: Optional[User] = None
    boundary: Optional[str] = None
    submission: Submission = field(default_factory=Submission)
    parts_seen: int = 0


def parse_challenge_id(raw: str) -> int:
    if not raw or not (raw.isascii() and raw.isdigit()):
        raise InvalidIdentifier(f"invalid challenge id {raw!r}")
    value = int(raw)
    if value <= 0:
        raise InvalidIdentifier(f"invalid challenge id {raw!r}: must be positive")
    return value


async def resolve_challenge(ctx: IngestionContext) -> IngestionContext:
    ctx.challenge = await ctx.challenges.find(parse_challenge_id(ctx.challenge_id))
    return ctx


async def authenticate(ctx: IngestionContext) -> IngestionContext:
    try:
        ctx.user = await ctx.users.find_by_api_key(ctx.api_key or "")
    except NotFound as exc:
        # An unknown key means the credential is wrong, not that a record is missing.
        raise AuthenticationFailure() from exc
    return ctx


def parse_boundary(ctx: IngestionContext) -> IngestionContext:
    ctx.boundary = resolve_boundary(ctx.content_type)
    return ctx


async def read_parts(ctx: IngestionContext) -> IngestionContext:
    async with aclosing(iter_parts(ctx.body, ctx.boundary)) as parts:
        async for part in parts:
            ctx.parts_seen += 1
            dispatch_part(part, ctx.submission)
    logger.debug(f"Decoded {ctx.parts_seen} multipart part(s)")
    return ctx


def encode_json(value: Any) -> bytes:
    """Encode a response body as compact UTF-8 JSON, rejecting NaN and infinities."""
    try:
        return json.dumps(
            value, ensure_ascii=False, allow_nan=False, separators=(",", ":")
        ).encode("utf-8")
    except (TypeError, ValueError) as exc:
        raise DecodeFailure(f"invalid submission metadata: {exc}") from exc


async def stamp_and_persist(ctx: IngestionContext) -> IngestionContext:
    submission = ctx.submission
    # Nothing may be written that cannot be echoed back
    encode_json(submission.metadata)
    submission.user = UserRef.of(ctx.user)
    submission.created = datetime.now(timezone.utc)
    submission.challenge = ChallengeRef.of(ctx.challenge)
    try:
        await ctx.submissions.add(submission)
    except SubmissionError:
        raise
    except Exception as exc:
        logger.error(f"Submission store rejected write: {exc}")
        raise StorageFailure(f"storage failure: {exc}") from exc
    return ctx


def serialize_response(ctx: IngestionContext) -> bytes:
    return encode_json(ctx.submission.response_body())


STAGES = (
    resolve_challenge,
    authenticate,
    parse_boundary,
    read_parts,
    stamp_and_persist,
    serialize_response,
)


async def ingest_submission(ctx: IngestionContext) -> Outcome[bytes]:
    """Run every ingestion stage; the result holds the encoded response body or the first failure."""
    outcome: Outcome[Any] = Outcome.ok(ctx)
    for stage in STAGES:
        outcome = await outcome.bind(stage)

    if outcome.failed:
        logger.warning(
            f"Submission for challenge {ctx.challenge_id!r} rejected "
            f"({outcome.error.kind}): {outcome.error}"
        )
    else:
        logger.info(f"Accepted submission {ctx.submission.id} for challenge {ctx.challenge.id}")
    return outcome
