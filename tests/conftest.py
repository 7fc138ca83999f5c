"""
Pytest configuration and fixtures
"""
import asyncio
import io
import sys
import zipfile
from pathlib import Path

import pytest

# Register pytest-asyncio plugin explicitly
pytest_plugins = ["pytest_asyncio"]

# Make the src/ layout importable without an editable install
src_dir = Path(__file__).parent.parent / "src"
if str(src_dir) not in sys.path:
    sys.path.insert(0, str(src_dir))

from challenge_submissions.services.storage_service import Stores, get_stores  # noqa: E402
from challenge_submissions.submissions.schemas import Challenge, SeedData, User  # noqa: E402
from challenge_submissions.submissions.store import (  # noqa: E402
    InMemoryChallengeStore,
    InMemorySubmissionStore,
    InMemoryUserStore,
    load_seed,
)

BOUNDARY = "test-boundary-7MA4YWxkTrZu0gW"
API_KEY = "test-api-key"
CHALLENGE_ID = 1


class RecordingSubmissionStore(InMemorySubmissionStore):
    """In-memory store that counts write attempts."""

    def __init__(self) -> None:
        super().__init__()
        self.add_calls = 0

    async def add(self, submission):
        self.add_calls += 1
        return await super().add(submission)


def build_multipart(parts, boundary=BOUNDARY, close=True) -> bytes:
    """Encode ``(headers, body)`` pairs as a multipart body."""
    out = bytearray()
    for headers, body in parts:
        out += f"--{boundary}\r\n".encode()
        for name, value in headers.items():
            out += f"{name}: {value}\r\n".encode()
        out += b"\r\n"
        out += body
        out += b"\r\n"
    if close:
        out += f"--{boundary}--\r\n".encode()
    return bytes(out)


async def _stream(data: bytes, chunk_size: int):
    for start in range(0, len(data), chunk_size):
        yield data[start : start + chunk_size]


@pytest.fixture
def multipart():
    return build_multipart


@pytest.fixture
def body_stream():
    """Factory turning bytes into an async chunk iterator, like a request body."""

    def factory(data: bytes, chunk_size: int = 7):
        return _stream(data, chunk_size)

    return factory


@pytest.fixture
def zip_bytes():
    """Create a real ZIP archive"""
    zip_buffer = io.BytesIO()
    with zipfile.ZipFile(zip_buffer, "w", zipfile.ZIP_DEFLATED) as zip_file:
        zip_file.writestr("main.go", "package main\n\nfunc main() {}\n")
        zip_file.writestr("README.md", "# solution\n")
    return zip_buffer.getvalue()


@pytest.fixture
def stores():
    """Fresh in-memory stores holding one challenge and one user."""
    stores = Stores(
        challenges=InMemoryChallengeStore(),
        users=InMemoryUserStore(),
        submissions=RecordingSubmissionStore(),
    )
    seed = SeedData(
        challenges=[Challenge(id=CHALLENGE_ID, name="Reverse a list")],
        users=[User(id="user-1", name="Ada", api_key=API_KEY)],
    )
    asyncio.run(load_seed(stores.challenges, stores.users, seed))
    return stores


@pytest.fixture
def client(stores):
    """Create a test client bound to the fixture stores"""
    from fastapi.testclient import TestClient

    from challenge_submissions.index import app

    app.dependency_overrides[get_stores] = lambda: stores
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def upload_headers():
    return {
        "Content-Type": f"multipart/form-data; boundary={BOUNDARY}",
        "Auth-ApiKey": API_KEY,
    }
