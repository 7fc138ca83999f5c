"""
AWS storage backend.

Challenge, user and submission records live in DynamoDB tables; submission
archives live in S3 under ``submissions/<id>/code.zip``. boto3 is blocking,
so every call is pushed to a worker thread with ``asyncio.to_thread``.
"""
from __future__ import annotations

import asyncio
import json
import logging
import uuid
from datetime import datetime
from typing import Any, Dict

from botocore.exceptions import BotoCoreError, ClientError

from ..aws_clients import dynamodb_resource, s3_client
from ..config import Settings
from ..errors import NotFound, StorageFailure
from ..submissions.schemas import Challenge, ChallengeRef, Submission, User, UserRef
from ..submissions.store import validate_for_storage

logger = logging.getLogger(__name__)


def _error_code(exc: ClientError) -> str:
    return exc.response.get("Error", {}).get("Code", "")


async def _get_item(table, key: Dict[str, Any]) -> Dict[str, Any] | None:
    try:
        response = await asyncio.to_thread(table.get_item, Key=key)
    except (ClientError, BotoCoreError) as e:
        logger.error(f"DynamoDB get_item failed on {table.name}: {e}")
        raise StorageFailure(f"storage failure: {e}") from e
    return response.get("Item")


class DynamoChallengeStore:
    def __init__(self, settings: Settings) -> None:
        self._table = dynamodb_resource(settings).Table(settings.challenges_table)

    async def find(self, challenge_id: int) -> Challenge:
        item = await _get_item(self._table, {"id": challenge_id})
        if item is None:
            raise NotFound(f"challenge {challenge_id} not found")
        return Challenge(
            id=int(item["id"]),
            name=item["name"],
            description=item.get("description"),
        )


class DynamoUserStore:
    def __init__(self, settings: Settings) -> None:
        self._table = dynamodb_resource(settings).Table(settings.users_table)

    async def find_by_api_key(self, api_key: str) -> User:
        # DynamoDB rejects empty key attributes, so an empty key cannot match
        if not api_key:
            raise NotFound("user not found")
        item = await _get_item(self._table, {"api_key": api_key})
        if item is None:
            raise NotFound("user not found")
        return User(id=str(item["user_id"]), name=item.get("name", ""), api_key=api_key)


class DynamoSubmissionStore:
    def __init__(self, settings: Settings) -> None:
        self._table = dynamodb_resource(settings).Table(settings.submissions_table)
        self._s3 = s3_client(settings)
        self._bucket = settings.archives_bucket

    @staticmethod
    def archive_key(submission_id: str) -> str:
        return f"submissions/{submission_id}/code.zip"

    async def add(self, submission: Submission) -> Submission:
        validate_for_storage(submission)
        submission_id = str(uuid.uuid4())
        key = self.archive_key(submission_id)

        try:
            await asyncio.to_thread(
                self._s3.put_object,
                Bucket=self._bucket,
                Key=key,
                Body=submission.data,
                ContentType="application/zip",
            )
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Failed to store archive {key} in S3: {e}")
            raise StorageFailure(f"storage failure: {e}") from e

        item = {
            "id": submission_id,
            "challenge_id": submission.challenge.id,
            "challenge_name": submission.challenge.name,
            "user_id": submission.user.id,
            "user_name": submission.user.name,
            "created": submission.created.isoformat(),
            "size": len(submission.data),
            "archive_key": key,
            "metadata": json.dumps(submission.metadata),
        }
        try:
            await asyncio.to_thread(self._table.put_item, Item=item)
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Failed to store submission {submission_id} in DynamoDB: {e}")
            await self._discard_archive(key)
            raise StorageFailure(f"storage failure: {e}") from e

        submission.id = submission_id
        logger.info(f"Stored submission {submission_id} ({len(submission.data)} bytes) in {self._bucket}")
        return submission

    async def find(self, submission_id: str) -> Submission:
        item = await _get_item(self._table, {"id": submission_id})
        if item is None:
            raise NotFound(f"submission {submission_id} not found")

        try:
            response = await asyncio.to_thread(
                self._s3.get_object, Bucket=self._bucket, Key=item["archive_key"]
            )
            data = await asyncio.to_thread(response["Body"].read)
        except ClientError as e:
            if _error_code(e) == "NoSuchKey":
                raise NotFound(f"archive for submission {submission_id} not found") from e
            raise StorageFailure(f"storage failure: {e}") from e
        except BotoCoreError as e:
            raise StorageFailure(f"storage failure: {e}") from e

        return Submission(
            id=item["id"],
            challenge=ChallengeRef(id=int(item["challenge_id"]), name=item["challenge_name"]),
            user=UserRef(id=item["user_id"], name=item["user_name"]),
            created=datetime.fromisoformat(item["created"]),
            data=data,
            metadata=json.loads(item.get("metadata") or "{}"),
        )

    async def _discard_archive(self, key: str) -> None:
        try:
            await asyncio.to_thread(self._s3.delete_object, Bucket=self._bucket, Key=key)
        except (ClientError, BotoCoreError) as e:
            logger.warning(f"Could not remove orphaned archive {key}: {e}")
