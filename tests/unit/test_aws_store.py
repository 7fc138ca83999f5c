"""
Unit tests for the DynamoDB/S3 storage backend, with boto3 mocked out
"""
import json
from datetime import datetime, timezone
from decimal import Decimal
from unittest.mock import MagicMock, patch

import pytest
from botocore.exceptions import ClientError, EndpointConnectionError

from challenge_submissions.config import Settings
from challenge_submissions.errors import NotFound, StorageFailure
from challenge_submissions.services.aws_store import (
    DynamoChallengeStore,
    DynamoSubmissionStore,
    DynamoUserStore,
)
from challenge_submissions.submissions.schemas import ChallengeRef, Submission, UserRef

SETTINGS = Settings(storage_backend="aws", archives_bucket="test-bucket")


def client_error(code, operation="GetItem"):
    return ClientError({"Error": {"Code": code, "Message": code}}, operation)


@pytest.fixture
def table():
    return MagicMock(name="table")


@pytest.fixture
def s3():
    return MagicMock(name="s3")


@pytest.fixture
def aws(table, s3):
    resource = MagicMock()
    resource.Table.return_value = table
    with patch(
        "challenge_submissions.services.aws_store.dynamodb_resource", return_value=resource
    ), patch("challenge_submissions.services.aws_store.s3_client", return_value=s3):
        yield resource


def stamped_submission():
    return Submission(
        user=UserRef(id="user-1", name="Ada"),
        challenge=ChallengeRef(id=7, name="Reverse a list"),
        created=datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc),
        metadata={"name": "solution.go"},
        data=b"PK\x03\x04",
    )


class TestDynamoChallengeStore:
    @pytest.mark.asyncio
    async def test_find(self, aws, table):
        table.get_item.return_value = {"Item": {"id": Decimal(7), "name": "Reverse a list"}}
        challenge = await DynamoChallengeStore(SETTINGS).find(7)

        aws.Table.assert_called_with("challenges")
        table.get_item.assert_called_once_with(Key={"id": 7})
        assert challenge.id == 7
        assert challenge.name == "Reverse a list"

    @pytest.mark.asyncio
    async def test_missing(self, aws, table):
        table.get_item.return_value = {}
        with pytest.raises(NotFound):
            await DynamoChallengeStore(SETTINGS).find(7)

    @pytest.mark.asyncio
    async def test_client_error_is_storage_failure(self, aws, table):
        table.get_item.side_effect = client_error("ResourceNotFoundException")
        with pytest.raises(StorageFailure):
            await DynamoChallengeStore(SETTINGS).find(7)


class TestDynamoUserStore:
    @pytest.mark.asyncio
    async def test_find_by_api_key(self, aws, table):
        table.get_item.return_value = {"Item": {"api_key": "k", "user_id": "user-1", "name": "Ada"}}
        user = await DynamoUserStore(SETTINGS).find_by_api_key("k")
        table.get_item.assert_called_once_with(Key={"api_key": "k"})
        assert user.id == "user-1"

    @pytest.mark.asyncio
    async def test_empty_key_skips_lookup(self, aws, table):
        with pytest.raises(NotFound):
            await DynamoUserStore(SETTINGS).find_by_api_key("")
        table.get_item.assert_not_called()

    @pytest.mark.asyncio
    async def test_connection_error_is_storage_failure(self, aws, table):
        table.get_item.side_effect = EndpointConnectionError(endpoint_url="http://localhost:4566")
        with pytest.raises(StorageFailure):
            await DynamoUserStore(SETTINGS).find_by_api_key("k")


class TestDynamoSubmissionStore:
    @pytest.mark.asyncio
    async def test_add_writes_archive_then_record(self, aws, table, s3):
        submission = await DynamoSubmissionStore(SETTINGS).add(stamped_submission())

        key = f"submissions/{submission.id}/code.zip"
        s3.put_object.assert_called_once_with(
            Bucket="test-bucket", Key=key, Body=b"PK\x03\x04", ContentType="application/zip"
        )
        item = table.put_item.call_args.kwargs["Item"]
        assert item["id"] == submission.id
        assert item["challenge_id"] == 7
        assert item["user_id"] == "user-1"
        assert item["archive_key"] == key
        assert item["size"] == 4
        assert json.loads(item["metadata"]) == {"name": "solution.go"}

    @pytest.mark.asyncio
    async def test_add_rejects_incomplete_record(self, aws, table, s3):
        with pytest.raises(StorageFailure):
            await DynamoSubmissionStore(SETTINGS).add(Submission())
        s3.put_object.assert_not_called()
        table.put_item.assert_not_called()

    @pytest.mark.asyncio
    async def test_s3_failure_skips_record(self, aws, table, s3):
        s3.put_object.side_effect = client_error("AccessDenied", "PutObject")
        with pytest.raises(StorageFailure):
            await DynamoSubmissionStore(SETTINGS).add(stamped_submission())
        table.put_item.assert_not_called()

    @pytest.mark.asyncio
    async def test_record_failure_removes_archive(self, aws, table, s3):
        table.put_item.side_effect = client_error("ProvisionedThroughputExceededException", "PutItem")
        with pytest.raises(StorageFailure):
            await DynamoSubmissionStore(SETTINGS).add(stamped_submission())

        put_key = s3.put_object.call_args.kwargs["Key"]
        s3.delete_object.assert_called_once_with(Bucket="test-bucket", Key=put_key)

    @pytest.mark.asyncio
    async def test_find(self, aws, table, s3):
        table.get_item.return_value = {
            "Item": {
                "id": "abc",
                "challenge_id": Decimal(7),
                "challenge_name": "Reverse a list",
                "user_id": "user-1",
                "user_name": "Ada",
                "created": "2024-05-01T12:00:00+00:00",
                "size": Decimal(4),
                "archive_key": "submissions/abc/code.zip",
                "metadata": '{"name": "solution.go"}',
            }
        }
        body = MagicMock()
        body.read.return_value = b"PK\x03\x04"
        s3.get_object.return_value = {"Body": body}

        submission = await DynamoSubmissionStore(SETTINGS).find("abc")

        s3.get_object.assert_called_once_with(Bucket="test-bucket", Key="submissions/abc/code.zip")
        assert submission.data == b"PK\x03\x04"
        assert submission.challenge.id == 7
        assert submission.metadata == {"name": "solution.go"}
        assert submission.response_body()["size"] == 4

    @pytest.mark.asyncio
    async def test_find_unknown(self, aws, table, s3):
        table.get_item.return_value = {}
        with pytest.raises(NotFound):
            await DynamoSubmissionStore(SETTINGS).find("abc")
        s3.get_object.assert_not_called()

    @pytest.mark.asyncio
    async def test_find_missing_archive(self, aws, table, s3):
        table.get_item.return_value = {"Item": {"id": "abc", "archive_key": "submissions/abc/code.zip"}}
        s3.get_object.side_effect = client_error("NoSuchKey", "GetObject")
        with pytest.raises(NotFound):
            await DynamoSubmissionStore(SETTINGS).find("abc")
