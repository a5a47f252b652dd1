# tests/unit/test_reporting.py

from unittest.mock import MagicMock

from aws_lambda_powertools.metrics import MetricUnit

from uuid_archiver.exceptions import S3ThrottlingError
from uuid_archiver.reporting import LoggingExceptionReporter, summarize_event


def test_summarize_event_for_a_scheduled_event():
    event = {
        "id": "evt-1",
        "source": "aws.events",
        "detail-type": "Scheduled Event",
        "time": "2024-05-01T12:20:00Z",
        "resources": ["arn:aws:events:eu-west-1:000000000000:rule/hourly"],
        "detail": {},
    }

    summary = summarize_event(event)

    assert summary["source"] == "aws.events"
    assert summary["time"] == "2024-05-01T12:20:00Z"
    assert "detail" not in summary


def test_summarize_event_counts_records_without_copying_them():
    event = {
        "Records": [
            {"eventSource": "aws:sqs", "body": '{"id": "secret"}'},
            {"eventSource": "aws:sqs", "body": "{}"},
        ]
    }

    summary = summarize_event(event)

    assert summary == {"records": 2, "event_sources": ["aws:sqs"]}


def test_summarize_empty_event():
    assert summarize_event(None) == {}
    assert summarize_event({}) == {}


def test_reporter_logs_structured_error_and_counts_it():
    logger = MagicMock()
    metrics = MagicMock()
    reporter = LoggingExceptionReporter(logger, metrics)
    error = S3ThrottlingError("put")

    reporter.report(error, {"source": "aws.events"})

    metrics.add_metric.assert_called_once_with(
        name="ReportedExceptions", unit=MetricUnit.Count, value=1
    )
    _, kwargs = logger.error.call_args
    assert kwargs["extra"]["error"]["error_code"] == "S3_THROTTLING"
    assert kwargs["extra"]["event"] == {"source": "aws.events"}
    assert kwargs["exc_info"][1] is error


def test_reporter_without_metrics_handles_plain_exceptions():
    logger = MagicMock()
    reporter = LoggingExceptionReporter(logger)

    reporter.report(RuntimeError("boom"))

    _, kwargs = logger.error.call_args
    assert kwargs["extra"]["error"]["error_type"] == "RuntimeError"
    assert kwargs["extra"]["event"] == {}
