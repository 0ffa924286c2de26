"""
Data Models
Immutable value types for the follower view state
"""

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Optional, Union

from .grace_period import GraceState


class ColorClass(str, Enum):
    """Measurement colour classification reported by the server"""
    GREEN = "green"
    YELLOW = "yellow"
    ORANGE = "orange"
    RED = "red"
    UNKNOWN = "unknown"


class FieldGroup(str, Enum):
    """Independently fetched and applied parts of the view state"""
    PATIENT = "patient"
    SENSOR = "sensor"
    MEASUREMENT = "measurement"


@dataclass(frozen=True)
class PatientInfo:
    """Patient name as returned by /patient-info"""
    first_name: str = "?"
    last_name: str = "?"

    @property
    def display_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


@dataclass(frozen=True)
class SensorState:
    """
    Sensor metadata as returned by /sensor-info

    Attributes:
        activation_unix: Sensor activation instant (epoch seconds)
        sensor_label: Sensor product name (ptName)
    """
    activation_unix: Optional[int] = None
    sensor_label: Optional[str] = None


@dataclass(frozen=True)
class Measurement:
    """
    One glucose measurement, replaced wholesale on every successful fetch

    Attributes:
        timestamp_raw: Timestamp string exactly as the server sent it
        timestamp: Parsed timestamp, None when it could not be parsed
        raw_value: int (mg/dL) or float rounded to 1 place (mmol/L)
        value_text: Display string for raw_value
        trend_arrow: Trend since the previous reading
        color_class: Colour classification
    """
    timestamp_raw: str
    timestamp: Optional[datetime]
    raw_value: Union[int, float]
    value_text: str
    trend_arrow: Optional[str] = None
    color_class: ColorClass = ColorClass.UNKNOWN


@dataclass(frozen=True)
class DisplayState:
    """
    Reconciled snapshot read by the presentation layer

    Never mutated in place: every update produces a new instance through
    `patch()`, so an observer always sees a consistent set of fields.
    """
    use_mmol: bool = False
    patient: Optional[PatientInfo] = None
    sensor: SensorState = field(default_factory=SensorState)
    grace_state: GraceState = GraceState.READY
    measurement: Optional[Measurement] = None
    reading_time_display: str = "..."
    last_measurement_at: Optional[float] = None

    # Recomputed by the countdown ticker
    next_update_countdown: Optional[str] = None
    sensor_ready_countdown: Optional[str] = None
    sensor_expiry_text: Optional[str] = None

    def patch(self, **changes) -> "DisplayState":
        return replace(self, **changes)

    @property
    def in_grace_period(self) -> bool:
        return self.grace_state == GraceState.WARMING_UP

    @property
    def is_loading(self) -> bool:
        """True until the first measurement of the session arrives"""
        return self.measurement is None

    @property
    def patient_display(self) -> str:
        return self.patient.display_name if self.patient else ""

    @property
    def measurement_value(self) -> Optional[str]:
        return self.measurement.value_text if self.measurement else None

    @property
    def trend_arrow(self) -> Optional[str]:
        return self.measurement.trend_arrow if self.measurement else None

    @property
    def color_class(self) -> ColorClass:
        return self.measurement.color_class if self.measurement else ColorClass.UNKNOWN

    @property
    def unit_label(self) -> str:
        return "mmol/L" if self.use_mmol else "mg/dL"
