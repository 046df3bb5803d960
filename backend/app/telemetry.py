from __future__ import annotations

import logging
import re
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from dataclasses import dataclass
from time import perf_counter
from typing import Any, Literal, Protocol

import structlog

LOGGER = logging.getLogger("tube_clone.telemetry")

TelemetryArea = Literal["http", "youtube", "notifications", "scheduler"]
_KNOWN_AREAS: frozenset[str] = frozenset({"http", "youtube", "notifications", "scheduler"})

# Search queries, continuation tokens, comment bodies and API keys stay out of telemetry.
_SENSITIVE_ATTRIBUTE_TOKENS: frozenset[str] = frozenset(
    {
        "api_key",
        "authorization",
        "cookie",
        "query",
        "secret",
        "text",
        "token",
    }
)
# InnerTube and Data API URLs carry the key as a query parameter; error strings can echo them.
_KEY_PARAMETER = re.compile(r"([?&](?:key|q)=)[^&\s'\"]+")
_MAX_STRING_LENGTH = 160

TelemetryValue = bool | int | float | str | None


class TelemetrySink(Protocol):
    def emit(self, *, event_name: str, attributes: Mapping[str, Any]) -> None:
        ...


class NoOpTelemetrySink:
    def emit(self, *, event_name: str, attributes: Mapping[str, Any]) -> None:
        _ = (event_name, attributes)


class StructuredLogTelemetrySink:
    """Writes each event as one `telemetry` record on the `tube_clone.telemetry` logger."""

    def __init__(self) -> None:
        self._logger = structlog.get_logger("tube_clone.telemetry")

    def emit(self, *, event_name: str, attributes: Mapping[str, Any]) -> None:
        area = event_name.split(".", 1)[0]
        self._logger.info(
            "telemetry",
            telemetry_event=event_name,
            telemetry_area=area,
            **dict(attributes),
        )


@dataclass(frozen=True)
class TelemetryClient:
    """
    Event emitter for request, scraping, notification and scheduler activity.

    Event names are dotted and start with one of the known areas
    (`http.request.finish`, `youtube.search.error`, ...). Events from any other
    area are dropped so ad hoc names never reach the sink.
    """

    enabled: bool
    sink: TelemetrySink

    @classmethod
    def disabled(cls) -> TelemetryClient:
        return cls(enabled=False, sink=NoOpTelemetrySink())

    def emit(self, event_name: str, **attributes: Any) -> None:
        if not self.enabled:
            return
        if event_area(event_name) is None:
            LOGGER.warning("dropping telemetry event outside known areas event=%s", event_name)
            return
        self.sink.emit(event_name=event_name, attributes=_sanitize_attributes(attributes))

    @contextmanager
    def timed(self, event_prefix: str, **attributes: Any) -> Iterator[dict[str, Any]]:
        """
        Emit `<prefix>.finish` or `<prefix>.error` with `duration_ms` around a block.

        The yielded dict collects attributes that are only known once the block
        succeeds (result counts, outcomes); they are added to the finish event.
        """
        finish_attributes: dict[str, Any] = {}
        started_at = perf_counter()
        try:
            yield finish_attributes
        except Exception as exc:
            self.emit(
                f"{event_prefix}.error",
                duration_ms=elapsed_ms(started_at),
                error_type=type(exc).__name__,
                **attributes,
            )
            raise
        self.emit(
            f"{event_prefix}.finish",
            duration_ms=elapsed_ms(started_at),
            **attributes,
            **finish_attributes,
        )


def event_area(event_name: str) -> TelemetryArea | None:
    area, separator, rest = event_name.partition(".")
    if not separator or not rest or area not in _KNOWN_AREAS:
        return None
    return area  # type: ignore[return-value]


def elapsed_ms(started_at: float) -> int:
    return max(0, int((perf_counter() - started_at) * 1000))


def build_telemetry_client(*, enabled: bool, sink: Literal["none", "log"]) -> TelemetryClient:
    if not enabled or sink == "none":
        return TelemetryClient.disabled()
    if sink == "log":
        return TelemetryClient(enabled=True, sink=StructuredLogTelemetrySink())

    LOGGER.warning("unsupported telemetry sink requested; disabling telemetry sink=%s", sink)
    return TelemetryClient.disabled()


def _sanitize_attributes(attributes: Mapping[str, Any]) -> dict[str, TelemetryValue]:
    sanitized: dict[str, TelemetryValue] = {}
    for raw_key, raw_value in attributes.items():
        key = str(raw_key).strip().lower()
        if not key:
            continue
        if any(token in key for token in _SENSITIVE_ATTRIBUTE_TOKENS):
            sanitized[key] = "[redacted]"
        else:
            sanitized[key] = _sanitize_value(raw_value)
    return sanitized


def _sanitize_value(value: Any) -> TelemetryValue:
    if value is None or isinstance(value, bool | int | float):
        return value
    if isinstance(value, str):
        compact = _KEY_PARAMETER.sub(r"\1[redacted]", " ".join(value.split()))
        if len(compact) <= _MAX_STRING_LENGTH:
            return compact
        return f"{compact[:_MAX_STRING_LENGTH]}..."
    return type(value).__name__
