"""Tests for response parsing and display formatting."""

import json
from datetime import datetime, timezone

import pytest

from libre_follow.communication.errors import MalformedResponse, UnparseableTimestamp
from libre_follow.data.models import ColorClass
from libre_follow.data.parsers import (
    format_fetch_countdown,
    format_reading_time,
    map_color,
    mgdl_value,
    mmol_value,
    parse_measurement,
    parse_patient_info,
    parse_sensor_info,
    parse_timestamp,
    reading_time_display,
)

from conftest import MGDL_BODY, MMOL_BODY


# ==================== PATIENT & SENSOR ====================

def test_patient_info_names():
    patient = parse_patient_info({"firstName": "Jane", "lastName": "Doe"})
    assert patient.display_name == "Jane Doe"


def test_patient_info_missing_names_default_to_question_mark():
    assert parse_patient_info({}).display_name == "? ?"
    assert parse_patient_info({"firstName": "Jane", "lastName": 7}).display_name == "Jane ?"


def test_patient_info_rejects_non_object():
    with pytest.raises(MalformedResponse):
        parse_patient_info(["Jane", "Doe"])


def test_sensor_info_fields():
    sensor = parse_sensor_info({"activationUnix": 1736100000, "ptName": "Libre 3"})
    assert sensor.activation_unix == 1736100000
    assert sensor.sensor_label == "Libre 3"


@pytest.mark.parametrize("activation", [None, "1736100000", True, 1736100000.5])
def test_sensor_info_invalid_activation_is_unknown(activation):
    assert parse_sensor_info({"activationUnix": activation}).activation_unix is None


def test_sensor_info_integral_float_activation_accepted():
    assert parse_sensor_info({"activationUnix": 1736100000.0}).activation_unix == 1736100000


def test_sensor_info_rejects_non_object():
    with pytest.raises(MalformedResponse) as exc_info:
        parse_sensor_info("activated")
    assert exc_info.value.endpoint == "/sensor-info"


# ==================== MEASUREMENT ====================

@pytest.mark.parametrize("name,expected", [
    ("Green", ColorClass.GREEN),
    ("GREEN", ColorClass.GREEN),
    (" yellow ", ColorClass.YELLOW),
    ("Orange", ColorClass.ORANGE),
    ("red", ColorClass.RED),
    ("purple", ColorClass.UNKNOWN),
    ("", ColorClass.UNKNOWN),
    (None, ColorClass.UNKNOWN),
    (3, ColorClass.UNKNOWN),
])
def test_map_color(name, expected):
    assert map_color(name) == expected


def test_parse_timestamp_with_fractional_seconds():
    parsed = parse_timestamp("2025-01-05T22:33:54.000Z")
    assert parsed == datetime(2025, 1, 5, 22, 33, 54, tzinfo=timezone.utc)


def test_parse_timestamp_without_fractional_seconds():
    assert parse_timestamp("2025-01-05T22:33:54+01:00").utcoffset().total_seconds() == 3600


@pytest.mark.parametrize("raw", ["yesterday", "2025-01-05T22:33:54", "", None, 1736100000])
def test_parse_timestamp_rejects(raw):
    with pytest.raises(UnparseableTimestamp):
        parse_timestamp(raw)


@pytest.mark.parametrize("value,expected", [
    (142, 142),
    (142.0, 142),
    (142.5, 0),
    ("142", 0),
    (True, 0),
    (None, 0),
    (float("inf"), 0),
])
def test_mgdl_value(value, expected):
    assert mgdl_value(value) == expected


@pytest.mark.parametrize("value,expected", [
    (7.3, 7.3),
    (7.34, 7.3),
    (6, 6.0),
    ("7.3", 0.0),
    (False, 0.0),
    (float("nan"), 0.0),
    (float("-inf"), 0.0),
])
def test_mmol_value(value, expected):
    assert mmol_value(value) == expected


def test_parse_mgdl_measurement():
    measurement = parse_measurement(MGDL_BODY, use_mmol=False)
    assert measurement.value_text == "142"
    assert measurement.raw_value == 142
    assert measurement.trend_arrow == "→"
    assert measurement.color_class == ColorClass.GREEN
    assert measurement.timestamp == datetime(2025, 1, 5, 23, 13, 53, tzinfo=timezone.utc)


def test_parse_mmol_measurement():
    measurement = parse_measurement(MMOL_BODY, use_mmol=True)
    assert measurement.value_text == "7.3"
    assert measurement.color_class == ColorClass.YELLOW


def test_mmol_value_text_keeps_one_decimal():
    body = dict(MMOL_BODY, ValueInMmolPerL=6)
    assert parse_measurement(body, use_mmol=True).value_text == "6.0"


def test_measurement_reads_value_for_requested_unit_only():
    assert parse_measurement(MGDL_BODY, use_mmol=True).value_text == "0.0"


def test_unparseable_timestamp_keeps_other_fields():
    body = dict(MGDL_BODY, Timestamp="not-a-date", MeasurementColorName="RED")
    measurement = parse_measurement(body, use_mmol=False)

    assert measurement.timestamp is None
    assert measurement.timestamp_raw == "not-a-date"
    assert measurement.value_text == "142"
    assert measurement.color_class == ColorClass.RED


def test_missing_trend_arrow_is_none():
    body = {k: v for k, v in MGDL_BODY.items() if k != "SinceLastTrendArrow"}
    assert parse_measurement(body, use_mmol=False).trend_arrow is None


def test_measurement_rejects_non_object():
    with pytest.raises(MalformedResponse):
        parse_measurement(None, use_mmol=False)


# ==================== DISPLAY FORMATTING ====================

def test_format_reading_time_in_zone():
    stamp = parse_timestamp("2025-01-05T23:13:53.000Z")
    assert format_reading_time(stamp, timezone="UTC") == "23:13:53"
    assert format_reading_time(stamp, timezone="Europe/Berlin") == "00:13:53"
    assert format_reading_time(stamp, "%H:%M", timezone="UTC") == "23:13"


def test_reading_time_display_cases():
    measurement = parse_measurement(MGDL_BODY, use_mmol=False)
    assert reading_time_display(measurement, False, timezone="UTC") == "23:13:53"
    assert reading_time_display(measurement, True, timezone="UTC") == "Not Ready"


def test_reading_time_display_falls_back_to_raw_string_even_in_grace():
    measurement = parse_measurement(dict(MGDL_BODY, Timestamp="05/01/2025 23:13"), use_mmol=False)
    assert reading_time_display(measurement, False) == "05/01/2025 23:13"
    assert reading_time_display(measurement, True) == "05/01/2025 23:13"


def test_reading_time_display_missing_timestamp_is_empty():
    body = {k: v for k, v in MGDL_BODY.items() if k != "Timestamp"}
    assert reading_time_display(parse_measurement(body, use_mmol=False), False) == ""


@pytest.mark.parametrize("next_fetch,now,expected", [
    (160.0, 115.0, "45s"),
    (160.0, 115.5, "44s"),
    (160.0, 160.0, "0s"),
    (160.0, 170.0, "0s"),
    (None, 115.0, None),
])
def test_format_fetch_countdown(next_fetch, now, expected):
    assert format_fetch_countdown(next_fetch, now) == expected


@pytest.mark.parametrize("literal", ["NaN", "Infinity", "-Infinity"])
def test_non_finite_json_values_show_zero(literal):
    body = json.loads(f'{{"Timestamp": "2025-01-05T23:13:53.000Z", "ValueInMmolPerL": {literal}, '
                      f'"ValueInMgPerDl": {literal}}}')
    assert parse_measurement(body, use_mmol=True).value_text == "0.0"
    assert parse_measurement(body, use_mmol=False).value_text == "0"


def test_non_finite_activation_is_unknown():
    assert parse_sensor_info({"activationUnix": float("inf")}).activation_unix is None
