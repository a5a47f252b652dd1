# src/uuid_archiver/reporting.py

"""
Exception capture for failures that are not auth or validation problems.

The reporter is the seam to an external error-tracking service. The
default implementation writes one structured ERROR log per failure (which
CloudWatch alarms and log subscriptions pick up) and counts it in the
service's metrics.
"""

from typing import Any, Mapping, Protocol

from aws_lambda_powertools import Logger, Metrics
from aws_lambda_powertools.metrics import MetricUnit

from .exceptions import get_error_context

_EVENT_SUMMARY_KEYS = ("source", "detail-type", "time", "id", "resources")


def summarize_event(event: Mapping[str, Any] | None) -> dict[str, Any]:
    """
    The parts of a triggering event worth attaching to an error report.
    Record payloads are summarised as a count, never copied.
    """
    if not event:
        return {}
    summary = {key: event[key] for key in _EVENT_SUMMARY_KEYS if key in event}
    records = event.get("Records")
    if isinstance(records, list):
        summary["records"] = len(records)
        sources = {r.get("eventSource") for r in records if isinstance(r, Mapping)}
        summary["event_sources"] = sorted(s for s in sources if s)
    return summary


class ExceptionReporter(Protocol):
    def report(
        self, error: BaseException, event: Mapping[str, Any] | None = None
    ) -> None: ...


class LoggingExceptionReporter:
    """Reports exceptions as structured log entries plus a metric."""

    def __init__(self, logger: Logger, metrics: Metrics | None = None):
        self._logger = logger
        self._metrics = metrics

    def report(
        self, error: BaseException, event: Mapping[str, Any] | None = None
    ) -> None:
        error_context = (
            get_error_context(error)
            if isinstance(error, Exception)
            else {"error_type": type(error).__name__, "message": str(error)}
        )
        if self._metrics is not None:
            self._metrics.add_metric(
                name="ReportedExceptions", unit=MetricUnit.Count, value=1
            )
        self._logger.error(
            f"Unhandled failure: {error}",
            exc_info=(type(error), error, error.__traceback__),
            extra={"error": error_context, "event": summarize_event(event)},
        )
