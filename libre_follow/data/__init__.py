"""
Data package for LibreFollow
Contains view-state models, response parsers and the grace-period state machine
"""

from .grace_period import GRACE_DURATION, GraceState
from .models import ColorClass, DisplayState, FieldGroup, Measurement, PatientInfo, SensorState
from .view_state import ViewStateStore

__all__ = [
    'GRACE_DURATION',
    'GraceState',
    'ColorClass',
    'DisplayState',
    'FieldGroup',
    'Measurement',
    'PatientInfo',
    'SensorState',
    'ViewStateStore'
]
