"""
Shared fixtures for unit tests.
"""

from __future__ import annotations

import os
import threading
import types
import uuid
from datetime import datetime, timezone

import pytest

from uuid_archiver.codec import CONTENT_TYPE, parse_rows
from uuid_archiver.exceptions import S3ObjectNotFoundError

BUCKET = "uuid-bucket"

# Set before any test module imports the Lambda adapters.
for _name, _value in {
    "POWERTOOLS_SERVICE_NAME": "uuid-archiver-test",
    "POWERTOOLS_LOG_LEVEL": "INFO",
    "POWERTOOLS_TRACE_DISABLED": "true",
    "POWERTOOLS_METRICS_NAMESPACE": "UuidArchiverTest",
    "AWS_DEFAULT_REGION": "eu-west-1",
}.items():
    os.environ.setdefault(_name, _value)


@pytest.fixture(scope="session", autouse=True)
def _env_vars():
    """
    Ensures a deterministic environment for every test run.
    Overwrite *only* the variables needed by the handlers.
    """
    original = os.environ.copy()
    yield
    os.environ.clear()
    os.environ.update(original)


class FakeS3Client:
    """
    In-memory stand-in for `uuid_archiver.clients.S3Client`.

    `failures` maps an operation name ("list", "get", "put", "delete") to the
    exception that operation should raise. Keys in `unreadable` are listed
    but raise S3ObjectNotFoundError on read.
    """

    def __init__(self) -> None:
        self.objects: dict[tuple[str, str], tuple[str, str]] = {}
        self.failures: dict[str, Exception] = {}
        self.unreadable: set[str] = set()
        self.calls: list[tuple[str, str]] = []
        self._lock = threading.Lock()

    def _record(self, operation: str, key: str) -> None:
        with self._lock:
            self.calls.append((operation, key))
        error = self.failures.get(operation)
        if error is not None:
            raise error

    def list_keys(self, bucket: str, prefix: str) -> list[str]:
        self._record("list", prefix)
        return sorted(k for b, k in self.objects if b == bucket and k.startswith(prefix))

    def get_text(self, bucket: str, key: str) -> str:
        self._record("get", key)
        if key in self.unreadable or (bucket, key) not in self.objects:
            raise S3ObjectNotFoundError(bucket=bucket, key=key)
        return self.objects[(bucket, key)][0]

    def get_text_if_exists(self, bucket: str, key: str) -> str | None:
        try:
            return self.get_text(bucket, key)
        except S3ObjectNotFoundError:
            return None

    def put_text(self, bucket: str, key: str, body: str, content_type: str) -> None:
        self._record("put", key)
        self.objects[(bucket, key)] = (body, content_type)

    def delete_keys(self, bucket: str, keys) -> None:
        keys = list(keys)
        for key in keys:
            self._record("delete", key)
        for key in keys:
            self.objects.pop((bucket, key), None)

    # --- Test helpers ---

    def put_csv(self, key: str, body: str, bucket: str = BUCKET) -> None:
        self.objects[(bucket, key)] = (body, CONTENT_TYPE)

    def body(self, key: str, bucket: str = BUCKET) -> str:
        return self.objects[(bucket, key)][0]

    def rows(self, key: str, bucket: str = BUCKET) -> list[dict]:
        return parse_rows(self.body(key, bucket))

    def keys(self, prefix: str = "", bucket: str = BUCKET) -> list[str]:
        return sorted(k for b, k in self.objects if b == bucket and k.startswith(prefix))


@pytest.fixture
def fake_s3() -> FakeS3Client:
    return FakeS3Client()


@pytest.fixture
def bucket() -> str:
    return BUCKET


@pytest.fixture
def now() -> datetime:
    """A fixed 'current time' twenty minutes into an hour."""
    return datetime(2024, 5, 1, 12, 20, 0, tzinfo=timezone.utc)


@pytest.fixture
def lambda_context():
    """A small stand-in for the LambdaContext object."""
    return types.SimpleNamespace(
        function_name="uuid-archiver-test",
        function_version="$LATEST",
        memory_limit_in_mb=256,
        aws_request_id="req-" + uuid.uuid4().hex,
        invoked_function_arn="arn:aws:lambda:eu-west-1:000000000000:function:dummy",
        get_remaining_time_in_millis=lambda: 30000,
    )
