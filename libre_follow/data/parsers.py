"""
Response Parsers
Validation of follow-server response bodies and stateless display formatting

All functions here are pure: they take the decoded JSON body (or an instant)
and return model values or strings. No formatter objects are shared.
"""

import math
from datetime import datetime
from typing import Any, Dict, Optional, Union

from dateutil import parser as date_parser
from dateutil import tz

from ..communication.errors import MalformedResponse, UnparseableTimestamp
from .models import ColorClass, Measurement, PatientInfo, SensorState


DEFAULT_TIME_FORMAT = "%H:%M:%S"

_COLOR_NAMES = {
    "green": ColorClass.GREEN,
    "yellow": ColorClass.YELLOW,
    "orange": ColorClass.ORANGE,
    "red": ColorClass.RED,
}


def _require_object(body: Any, endpoint: Optional[str] = None) -> Dict[str, Any]:
    if not isinstance(body, dict):
        raise MalformedResponse(
            f"Expected a JSON object, got {type(body).__name__}", endpoint
        )
    return body


def _is_number(value: Any) -> bool:
    # bool is an int subclass but never a valid reading; NaN and Infinity
    # decode as floats but are not readings either
    if not isinstance(value, (int, float)) or isinstance(value, bool):
        return False
    return not isinstance(value, float) or math.isfinite(value)


def _string_or(value: Any, default):
    return value if isinstance(value, str) else default


def _as_int(value: Any) -> Optional[int]:
    if not _is_number(value):
        return None
    if isinstance(value, float):
        if not value.is_integer():
            return None
        return int(value)
    return value


# ==================== PATIENT & SENSOR ====================

def parse_patient_info(body: Any) -> PatientInfo:
    """
    Build PatientInfo from a /patient-info body

    Missing or non-string names fall back to "?".
    """
    data = _require_object(body, "/patient-info")
    return PatientInfo(
        first_name=_string_or(data.get("firstName"), "?"),
        last_name=_string_or(data.get("lastName"), "?"),
    )


def parse_sensor_info(body: Any) -> SensorState:
    """
    Build SensorState from a /sensor-info body

    Args:
        body: Decoded JSON body

    Returns:
        SensorState with activationUnix (epoch seconds) and ptName

    Raises:
        MalformedResponse: body is not a JSON object
    """
    data = _require_object(body, "/sensor-info")
    return SensorState(
        activation_unix=_as_int(data.get("activationUnix")),
        sensor_label=_string_or(data.get("ptName"), None),
    )


# ==================== MEASUREMENT ====================

def map_color(name: Any) -> ColorClass:
    """Case-insensitive colour name mapping, anything unknown -> UNKNOWN"""
    if not isinstance(name, str):
        return ColorClass.UNKNOWN
    return _COLOR_NAMES.get(name.strip().lower(), ColorClass.UNKNOWN)


def parse_timestamp(raw: Any) -> datetime:
    """
    Parse an ISO-8601 instant such as "2025-01-05T22:33:54.000Z"

    Args:
        raw: Timestamp field value

    Returns:
        Timezone-aware datetime

    Raises:
        UnparseableTimestamp: not a string, not ISO-8601, or no UTC offset
    """
    if not isinstance(raw, str) or not raw:
        raise UnparseableTimestamp(str(raw) if raw is not None else "")
    try:
        parsed = date_parser.isoparse(raw)
    except (ValueError, OverflowError):
        raise UnparseableTimestamp(raw)
    if parsed.tzinfo is None:
        raise UnparseableTimestamp(raw)
    return parsed


def mgdl_value(value: Any) -> int:
    return _as_int(value) or 0


def mmol_value(value: Any) -> float:
    if not _is_number(value):
        return 0.0
    return round(float(value), 1)


def parse_measurement(body: Any, use_mmol: bool) -> Measurement:
    """
    Build a Measurement from a /measurement-mgdl or /measurement-mmol body

    An unparseable Timestamp does not reject the measurement: the rest of
    the fields still apply and `timestamp` is left as None.

    Args:
        body: Decoded JSON body
        use_mmol: Read ValueInMmolPerL instead of ValueInMgPerDl

    Returns:
        Measurement

    Raises:
        MalformedResponse: body is not a JSON object
    """
    endpoint = "/measurement-mmol" if use_mmol else "/measurement-mgdl"
    data = _require_object(body, endpoint)

    raw_stamp = data.get("Timestamp")
    timestamp_raw = raw_stamp if isinstance(raw_stamp, str) else ""
    try:
        timestamp = parse_timestamp(raw_stamp)
    except UnparseableTimestamp:
        timestamp = None

    raw_value: Union[int, float]
    if use_mmol:
        raw_value = mmol_value(data.get("ValueInMmolPerL"))
        value_text = f"{raw_value:.1f}"
    else:
        raw_value = mgdl_value(data.get("ValueInMgPerDl"))
        value_text = str(raw_value)

    return Measurement(
        timestamp_raw=timestamp_raw,
        timestamp=timestamp,
        raw_value=raw_value,
        value_text=value_text,
        trend_arrow=_string_or(data.get("SinceLastTrendArrow"), None),
        color_class=map_color(data.get("MeasurementColorName")),
    )


# ==================== DISPLAY FORMATTING ====================

def format_reading_time(timestamp: datetime, time_format: str = DEFAULT_TIME_FORMAT,
                        timezone: Optional[str] = None) -> str:
    """
    Render a reading instant as local wall-clock time

    Args:
        timestamp: Timezone-aware instant
        time_format: strftime pattern
        timezone: IANA zone name, local zone when empty or unknown

    Returns:
        Formatted time string
    """
    zone = tz.gettz(timezone) if timezone else None
    if zone is None:
        zone = tz.tzlocal()
    return timestamp.astimezone(zone).strftime(time_format)


def reading_time_display(measurement: Measurement, in_grace_period: bool,
                         time_format: str = DEFAULT_TIME_FORMAT,
                         timezone: Optional[str] = None) -> str:
    """Text shown next to "Latest Reading" for a freshly applied measurement"""
    if measurement.timestamp is None:
        return measurement.timestamp_raw
    if in_grace_period:
        return "Not Ready"
    return format_reading_time(measurement.timestamp, time_format, timezone)


def format_fetch_countdown(next_fetch_instant: Optional[float], now: float) -> Optional[str]:
    """Seconds until the next scheduled fetch, floored at "0s" """
    if next_fetch_instant is None:
        return None
    remaining = int(next_fetch_instant - now)
    return f"{max(0, remaining)}s"
