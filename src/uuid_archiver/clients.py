# src/uuid_archiver/clients.py

"""
Client wrappers for interacting with AWS services (S3 and SQS).

These classes provide a small, typed interface over raw boto3 clients and
translate botocore failures into the service's own exception hierarchy, so
the pipeline stages never have to inspect AWS error codes themselves.
"""

import json
import logging
from contextlib import closing
from typing import TYPE_CHECKING, Any, Iterable, Mapping

from botocore.exceptions import (
    ClientError,
    ConnectTimeoutError,
    EndpointConnectionError,
    ReadTimeoutError,
)

from .exceptions import (
    QueueSendError,
    S3AccessDeniedError,
    S3DeleteError,
    S3Error,
    S3ObjectNotFoundError,
    S3OperationError,
    S3ThrottlingError,
    S3TimeoutError,
)

if TYPE_CHECKING:
    from mypy_boto3_s3.client import S3Client as S3ClientType
    from mypy_boto3_sqs.client import SQSClient as SQSClientType

logger = logging.getLogger(__name__)

# S3 DeleteObjects accepts at most this many keys per request.
DELETE_BATCH_SIZE = 1000

_NOT_FOUND_CODES = {"NoSuchKey", "404", "NotFound"}
_THROTTLING_CODES = {
    "Throttling",
    "ThrottlingException",
    "RequestLimitExceeded",
    "SlowDown",
}
_TIMEOUT_CODES = {"RequestTimeout", "RequestTimeoutException"}


def _translate_client_error(
    error: ClientError, operation: str, bucket: str, key: str
) -> S3Error:
    """Maps a botocore ClientError onto our specific exception types."""
    error_code = error.response.get("Error", {}).get("Code", "Unknown")
    error_message = error.response.get("Error", {}).get("Message", str(error))
    context = {
        "operation": operation,
        "aws_error_code": error_code,
        "aws_error_message": error_message,
    }

    if error_code in _NOT_FOUND_CODES:
        return S3ObjectNotFoundError(bucket=bucket, key=key, context=context)
    elif error_code == "AccessDenied":
        return S3AccessDeniedError(bucket=bucket, key=key, context=context)
    elif error_code in _THROTTLING_CODES:
        return S3ThrottlingError(
            operation, context={**context, "bucket": bucket, "key": key}
        )
    elif error_code in _TIMEOUT_CODES:
        return S3TimeoutError(
            operation,
            timeout_seconds=0,
            context={**context, "bucket": bucket, "key": key},
        )
    else:
        return S3OperationError(
            operation, error_message, context={"bucket": bucket, "key": key, **context}
        )


class S3Client:
    """
    A wrapper for the S3 operations the pipeline needs: prefix listing,
    whole-object text reads and writes, and batch deletes.
    """

    def __init__(self, s3_client: "S3ClientType", timeout_seconds: float = 30):
        """
        Initializes the S3Client.

        Args:
            s3_client: A typed boto3 S3 client.
            timeout_seconds: The timeout configured on the boto3 client, reported
                in timeout errors.
        """
        self._client = s3_client
        self._timeout_seconds = timeout_seconds

    def _timeout(
        self, operation: str, bucket: str, key: str, error: Exception
    ) -> S3TimeoutError:
        return S3TimeoutError(
            operation,
            timeout_seconds=self._timeout_seconds,
            context={"bucket": bucket, "key": key, "timeout_error": str(error)},
        )

    def list_keys(self, bucket: str, prefix: str) -> list[str]:
        """Returns every key under *prefix*, following pagination."""
        keys: list[str] = []
        try:
            paginator = self._client.get_paginator("list_objects_v2")
            for page in paginator.paginate(Bucket=bucket, Prefix=prefix):
                keys.extend(obj["Key"] for obj in page.get("Contents", []))
        except ClientError as e:
            raise _translate_client_error(e, "list", bucket, prefix) from e
        except (ReadTimeoutError, ConnectTimeoutError, EndpointConnectionError) as e:
            raise self._timeout("list", bucket, prefix, e) from e

        logger.debug(
            "Listed objects", extra={"bucket": bucket, "prefix": prefix, "count": len(keys)}
        )
        return keys

    def get_text(self, bucket: str, key: str) -> str:
        """
        Reads a whole object as UTF-8 text.
        Raises S3ObjectNotFoundError when the key does not exist. Bytes that
        are not valid UTF-8 are replaced with U+FFFD and logged.
        """
        try:
            response = self._client.get_object(Bucket=bucket, Key=key)
            with closing(response["Body"]) as body:
                data = body.read()
        except ClientError as e:
            raise _translate_client_error(e, "get", bucket, key) from e
        except (ReadTimeoutError, ConnectTimeoutError, EndpointConnectionError) as e:
            raise self._timeout("get", bucket, key, e) from e

        try:
            return data.decode("utf-8")
        except UnicodeDecodeError as e:
            logger.warning(
                "Object is not valid UTF-8; replacing undecodable bytes",
                extra={"bucket": bucket, "key": key, "position": e.start},
            )
            return data.decode("utf-8", errors="replace")

    def get_text_if_exists(self, bucket: str, key: str) -> str | None:
        """Like get_text, but returns None for a missing object."""
        try:
            return self.get_text(bucket, key)
        except S3ObjectNotFoundError:
            return None

    def put_text(self, bucket: str, key: str, body: str, content_type: str) -> None:
        """Writes *body* as a single object, replacing any previous version."""
        logger.info(
            "Uploading object",
            extra={"bucket": bucket, "key": key, "content_type": content_type},
        )
        try:
            self._client.put_object(
                Bucket=bucket,
                Key=key,
                Body=body.encode("utf-8"),
                ContentType=content_type,
            )
        except ClientError as e:
            raise _translate_client_error(e, "put", bucket, key) from e
        except (ReadTimeoutError, ConnectTimeoutError, EndpointConnectionError) as e:
            raise self._timeout("put", bucket, key, e) from e

        logger.debug(
            "Upload (PUT) completed successfully", extra={"bucket": bucket, "key": key}
        )

    def delete_keys(self, bucket: str, keys: Iterable[str]) -> None:
        """
        Deletes *keys* with as few DeleteObjects calls as possible.
        Raises S3DeleteError listing every key S3 reported as not deleted.
        """
        pending = list(keys)
        failed: list[str] = []
        for start in range(0, len(pending), DELETE_BATCH_SIZE):
            chunk = pending[start : start + DELETE_BATCH_SIZE]
            try:
                response = self._client.delete_objects(
                    Bucket=bucket,
                    Delete={"Objects": [{"Key": key} for key in chunk], "Quiet": True},
                )
            except ClientError as e:
                raise _translate_client_error(e, "delete", bucket, chunk[0]) from e
            except (
                ReadTimeoutError,
                ConnectTimeoutError,
                EndpointConnectionError,
            ) as e:
                raise self._timeout("delete", bucket, chunk[0], e) from e

            errors = response.get("Errors", [])
            if errors:
                logger.warning(
                    "Batch delete reported failures",
                    extra={
                        "bucket": bucket,
                        "errors": [
                            {"key": err.get("Key"), "code": err.get("Code")}
                            for err in errors
                        ],
                    },
                )
                failed.extend(err["Key"] for err in errors if "Key" in err)

        if failed:
            raise S3DeleteError(bucket=bucket, failed_keys=failed)

        logger.debug("Deleted objects", extra={"bucket": bucket, "count": len(pending)})


class QueueClient:
    """A wrapper for sending JSON messages to an SQS queue."""

    def __init__(self, sqs_client: "SQSClientType"):
        self._client = sqs_client

    def send_json(self, queue_url: str, payload: Mapping[str, Any]) -> str:
        """Enqueues *payload* as a JSON message body and returns the message id."""
        try:
            response = self._client.send_message(
                QueueUrl=queue_url,
                MessageBody=json.dumps(payload, separators=(",", ":")),
            )
        except ClientError as e:
            error = e.response.get("Error", {})
            raise QueueSendError(
                queue_url,
                error.get("Message", str(e)),
                context={"aws_error_code": error.get("Code")},
            ) from e
        except (ReadTimeoutError, ConnectTimeoutError, EndpointConnectionError) as e:
            raise QueueSendError(queue_url, str(e)) from e

        return response["MessageId"]
