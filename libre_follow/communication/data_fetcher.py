"""
Data Fetcher
Issues the three independent follow-server requests of a fetch cycle
"""

import logging
from concurrent.futures import Executor
from typing import Optional

from ..data.grace_period import state_after_sensor_info
from ..data.models import DisplayState, FieldGroup
from ..data.parsers import (
    DEFAULT_TIME_FORMAT,
    parse_measurement,
    parse_patient_info,
    parse_sensor_info,
    reading_time_display,
)
from ..data.view_state import ViewStateStore
from ..scheduling.clock import Clock
from ..utils.decorators import exception_handler, timing
from .errors import FollowClientError
from .follow_client import FollowServerClient


class DataFetcher:
    """
    Fetches patient info, sensor info and the latest measurement

    Each request runs as its own task on the executor and applies its result
    to the view state as one batch when it completes, in whatever order the
    three complete. A failing request only skips its own update; the values
    from the previous successful fetch stay in place.

    Attributes:
        client (FollowServerClient): HTTP client
        store (ViewStateStore): View state to update
        clock (Clock): Time source for grace-period evaluation
        executor (Executor): Worker pool running the requests
        use_mmol (bool): Unit preference of the session
        time_format (str): strftime pattern for the reading time
        timezone (str): IANA zone for the reading time, local when None
        logger (logging.Logger): Logger instance
    """

    def __init__(self, client: FollowServerClient, store: ViewStateStore, clock: Clock,
                 executor: Executor, use_mmol: bool = False,
                 time_format: str = DEFAULT_TIME_FORMAT, timezone: Optional[str] = None):
        self.logger = logging.getLogger(__name__)
        self.client = client
        self.store = store
        self.clock = clock
        self.executor = executor
        self.use_mmol = use_mmol
        self.time_format = time_format
        self.timezone = timezone

    def fetch_all(self, session_id: int, cycle: int):
        """
        Dispatch the three requests of one fetch cycle without waiting

        Args:
            session_id: View-state session the results belong to
            cycle: Sequence number of the cycle
        """
        self.logger.debug(f"Dispatching fetch cycle {cycle}")
        for task in (self.fetch_patient_info, self.fetch_sensor_info, self.fetch_measurement):
            try:
                self.executor.submit(task, session_id, cycle)
            except RuntimeError as e:
                # Executor already shut down by stop()
                self.logger.debug(f"Fetch cycle {cycle} not dispatched: {e}")
                return

    def _log_failure(self, what: str, error: FollowClientError):
        self.logger.warning(f"{what} fetch skipped ({type(error).__name__}): {error}")

    @exception_handler(default_return=False)
    @timing
    def fetch_patient_info(self, session_id: int, cycle: int) -> bool:
        """GET /patient-info and apply PatientInfo"""
        try:
            patient = parse_patient_info(self.client.get_patient_info())
        except FollowClientError as e:
            self._log_failure("Patient info", e)
            return False

        return self.store.apply(
            session_id, lambda state: state.patch(patient=patient),
            FieldGroup.PATIENT, cycle,
        )

    @exception_handler(default_return=False)
    @timing
    def fetch_sensor_info(self, session_id: int, cycle: int) -> bool:
        """
        GET /sensor-info, apply SensorState and enter the grace period
        if the activation is recent

        Never leaves the grace period; that is the countdown ticker's job.
        """
        try:
            sensor = parse_sensor_info(self.client.get_sensor_info())
        except FollowClientError as e:
            self._log_failure("Sensor info", e)
            return False

        def update(state: DisplayState) -> DisplayState:
            grace_state = state_after_sensor_info(
                state.grace_state, sensor.activation_unix, self.clock.now()
            )
            changes = {}
            if grace_state != state.grace_state:
                self.logger.info(
                    f"Sensor activated at {sensor.activation_unix} is warming up"
                )
                if state.measurement is not None:
                    # Measurement may have landed first in this cycle
                    changes["reading_time_display"] = reading_time_display(
                        state.measurement, True, self.time_format, self.timezone
                    )
            return state.patch(sensor=sensor, grace_state=grace_state, **changes)

        return self.store.apply(session_id, update, FieldGroup.SENSOR, cycle)

    @exception_handler(default_return=False)
    @timing
    def fetch_measurement(self, session_id: int, cycle: int) -> bool:
        """GET the measurement endpoint for the session unit and apply it"""
        try:
            measurement = parse_measurement(
                self.client.get_measurement(self.use_mmol), self.use_mmol
            )
        except FollowClientError as e:
            self._log_failure("Measurement", e)
            return False

        if measurement.timestamp is None:
            self.logger.warning(
                f"Unparseable measurement timestamp {measurement.timestamp_raw!r}, "
                f"showing it verbatim"
            )

        def update(state: DisplayState) -> DisplayState:
            return state.patch(
                measurement=measurement,
                reading_time_display=reading_time_display(
                    measurement, state.in_grace_period, self.time_format, self.timezone
                ),
                last_measurement_at=self.clock.now(),
            )

        return self.store.apply(session_id, update, FieldGroup.MEASUREMENT, cycle)
