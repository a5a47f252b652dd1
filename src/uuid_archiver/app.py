"""
The Lambda Adapters for the UUID Archiver service.

This module holds the three AWS Lambda entry points. It is responsible for:
1.  Initializing AWS Lambda Powertools (Logger, Tracer, Metrics) and the
    lazily-built AWS clients every handler shares.
2.  `ingest_handler`: the HTTP endpoint that authenticates one record and
    enqueues it.
3.  `queue_handler`: the SQS consumer that turns a delivery batch into one
    shard. Failures propagate so SQS redelivers the whole batch.
4.  `consolidate_handler`: the scheduled job that merges shards into the
    hourly archive. Failures are reported; the next tick retries.
"""

import json
from datetime import datetime, timezone
from functools import cached_property, lru_cache
from typing import Any

import boto3
from aws_lambda_powertools import Logger, Metrics, Tracer
from aws_lambda_powertools.event_handler import (
    APIGatewayRestResolver,
    Response,
    content_types,
)
from aws_lambda_powertools.logging import correlation_paths
from aws_lambda_powertools.metrics import MetricUnit
from aws_lambda_powertools.utilities.data_classes import SQSEvent
from aws_lambda_powertools.utilities.typing import LambdaContext
from botocore.config import Config as BotoConfig

from .clients import QueueClient, S3Client
from .config import AppConfig, get_config
from .consolidator import Consolidator
from .consumer import process_delivery_batch
from .exceptions import (
    InvalidRecordError,
    UuidArchiverError,
    get_error_context,
    is_retryable_error,
)
from .ingestion import IngestStatus, accept_record
from .reporting import ExceptionReporter, LoggingExceptionReporter

# --- Observability primitives ---
logger = Logger(service="uuid-archiver")
tracer = Tracer(service="uuid-archiver")
metrics = Metrics(namespace="UuidArchiver", service="uuid-archiver")

app = APIGatewayRestResolver()


class Dependencies:
    """
    Lazily-instantiated façade around the configuration and external
    services. Built once per warm container; tests replace it wholesale.
    """

    def __init__(self, config: AppConfig) -> None:
        self.config = config
        logger.setLevel(config.log_level)
        logger.append_keys(environment=config.environment)
        metrics.set_default_dimensions(environment=config.environment)

    @cached_property
    def boto_config(self) -> BotoConfig:
        timeout = self.config.s3_operation_timeout_seconds
        return BotoConfig(
            connect_timeout=timeout,
            read_timeout=timeout,
            retries={"max_attempts": 3, "mode": "standard"},
            max_pool_connections=max(10, self.config.fetch_concurrency),
        )

    @cached_property
    def s3_client(self) -> S3Client:
        return S3Client(
            s3_client=boto3.client("s3", config=self.boto_config),
            timeout_seconds=self.config.s3_operation_timeout_seconds,
        )

    @cached_property
    def queue_client(self) -> QueueClient:
        return QueueClient(sqs_client=boto3.client("sqs", config=self.boto_config))

    @cached_property
    def consolidator(self) -> Consolidator:
        return Consolidator.from_config(self.s3_client, self.config)

    @cached_property
    def reporter(self) -> ExceptionReporter:
        return LoggingExceptionReporter(logger, metrics)


@lru_cache(maxsize=1)
def get_dependencies() -> Dependencies:
    return Dependencies(get_config())


# ───────────────────────────────────────────────────────────────
# Ingestion endpoint
# ───────────────────────────────────────────────────────────────
def _text_response(status_code: int, body: str) -> Response:
    return Response(
        status_code=status_code, content_type=content_types.TEXT_PLAIN, body=body
    )


@app.get("/")
def health() -> Response:
    return _text_response(200, "Ok")


@app.post("/")
def ingest() -> Response:
    deps = get_dependencies()
    event = app.current_event
    result = accept_record(
        event.get_query_string_value(name="key", default_value=None),
        event.decoded_body,
        expected_key=deps.config.api_key,
        queue_client=deps.queue_client,
        queue_url=deps.config.require_queue_url(),
    )

    if result.status is IngestStatus.FORBIDDEN:
        metrics.add_metric(name="ForbiddenRequests", unit=MetricUnit.Count, value=1)
        return _text_response(403, "forbidden")

    metrics.add_metric(name="RecordsAccepted", unit=MetricUnit.Count, value=1)
    return _text_response(200, "Ok")


@app.exception_handler(InvalidRecordError)
def handle_invalid_record(error: InvalidRecordError) -> Response:
    metrics.add_metric(name="RecordsRejected", unit=MetricUnit.Count, value=1)
    return Response(
        status_code=400,
        content_type=content_types.APPLICATION_JSON,
        body=json.dumps({"message": error.message, "errors": error.errors}),
    )


@app.exception_handler(UuidArchiverError)
def handle_service_error(error: UuidArchiverError) -> Response:
    get_dependencies().reporter.report(error, app.current_event.raw_event)
    status_code = 503 if is_retryable_error(error) else 500
    return Response(
        status_code=status_code,
        content_type=content_types.APPLICATION_JSON,
        body=json.dumps({"message": error.message, "error_code": error.error_code}),
    )


@logger.inject_lambda_context(correlation_id_path=correlation_paths.API_GATEWAY_REST)
@tracer.capture_lambda_handler
@metrics.log_metrics
def ingest_handler(event: dict, context: LambdaContext) -> dict:
    """HTTP entry point: one record per POST, authenticated by `?key=`."""
    return app.resolve(event, context)


# ───────────────────────────────────────────────────────────────
# Queue consumer
# ───────────────────────────────────────────────────────────────
def _decode_message_body(body: str | None) -> Any:
    """Undecodable bodies are passed through and rejected by validation."""
    try:
        return json.loads(body or "")
    except ValueError:
        return body


@logger.inject_lambda_context
@tracer.capture_lambda_handler
@metrics.log_metrics
def queue_handler(event: dict, context: LambdaContext) -> dict:
    """
    SQS entry point. The whole batch becomes at most one shard; any failure
    is reported and re-raised so SQS redelivers the entire batch.
    """
    deps = get_dependencies()
    sqs_event = SQSEvent(event)
    candidates = [_decode_message_body(record.body) for record in sqs_event.records]

    logger.info(
        "Starting SQS batch processing",
        extra={"sqs_messages": len(candidates), "request_id": context.aws_request_id},
    )

    try:
        outcome = process_delivery_batch(
            candidates,
            s3_client=deps.s3_client,
            bucket=deps.config.bucket_name,
            now=datetime.now(timezone.utc),
            shard_prefix=deps.config.shard_prefix,
            token=context.aws_request_id,
        )
    except Exception as e:
        deps.reporter.report(e, event)
        raise

    metrics.add_metric(name="RecordsAccepted", unit=MetricUnit.Count, value=outcome.accepted)
    metrics.add_metric(name="RecordsRejected", unit=MetricUnit.Count, value=outcome.rejected)
    if outcome.shard_key:
        metrics.add_metric(name="ShardsWritten", unit=MetricUnit.Count, value=1)

    return {
        "received": outcome.received,
        "accepted": outcome.accepted,
        "shard_key": outcome.shard_key,
    }


# ───────────────────────────────────────────────────────────────
# Scheduled consolidation
# ───────────────────────────────────────────────────────────────
def _scheduled_time(event: dict) -> datetime:
    """The tick time of a scheduled event, or the current time."""
    raw_time = event.get("time") if event else None
    if raw_time:
        try:
            return datetime.fromisoformat(raw_time.replace("Z", "+00:00"))
        except ValueError:
            logger.warning("Ignoring unparseable event time", extra={"time": raw_time})
    return datetime.now(timezone.utc)


@logger.inject_lambda_context(correlation_id_path=correlation_paths.EVENT_BRIDGE)
@tracer.capture_lambda_handler
@metrics.log_metrics
def consolidate_handler(event: dict, context: LambdaContext) -> dict:
    """
    Scheduled entry point. Consolidates at most one hour per invocation.
    Failures are reported and swallowed: shards are only deleted after a
    successful archive write, so the next tick picks up where this one
    stopped.
    """
    deps = get_dependencies()
    now = _scheduled_time(event)

    try:
        result = deps.consolidator.run(now)
    except Exception as e:
        metrics.add_metric(name="ConsolidationFailures", unit=MetricUnit.Count, value=1)
        deps.reporter.report(e, event)
        return {"status": "failed", "error": get_error_context(e)}

    if not result.processed:
        return {"status": "idle", **result.to_dict()}

    metrics.add_metric(
        name="ShardsConsolidated", unit=MetricUnit.Count, value=len(result.deleted_keys)
    )
    metrics.add_metric(
        name="ArchiveRowsWritten", unit=MetricUnit.Count, value=result.archive_rows
    )
    metrics.add_metric(name="NewArchiveRows", unit=MetricUnit.Count, value=result.new_rows)
    return {"status": "consolidated", **result.to_dict()}
