"""Shared fixtures: virtual clock, fake HTTP session, controllable executors."""

from concurrent.futures import Executor, Future
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import urlparse

import pytest
import requests

from libre_follow.communication.follow_client import FollowServerClient
from libre_follow.follow_session import FollowSession
from libre_follow.scheduling.clock import VirtualClock


# 2025-01-06 00:00:00 UTC, a minute boundary
T0 = 1736121600.0
SERVER_URL = "http://follow.local:8080"

PATIENT_BODY = {"firstName": "Jane", "lastName": "Doe"}
MGDL_BODY = {
    "Timestamp": "2025-01-05T23:13:53.000Z",
    "SinceLastTrendArrow": "→",
    "MeasurementColorName": "Green",
    "ValueInMgPerDl": 142,
}
MMOL_BODY = {
    "Timestamp": "2025-01-05T23:13:53.000Z",
    "SinceLastTrendArrow": "↗",
    "MeasurementColorName": "yellow",
    "ValueInMmolPerL": 7.3,
}


def sensor_body(activation: float, name: str = "Libre 3") -> Dict[str, Any]:
    return {"activationUnix": int(activation), "ptName": name}


class FakeResponse:
    def __init__(self, body: Any = None, status_code: int = 200, text: Optional[str] = None):
        self._body = body
        self.status_code = status_code
        self.text = text

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Server Error")

    def json(self):
        if self.text is not None:
            raise ValueError("Expecting value: line 1 column 1 (char 0)")
        return self._body


class FakeHttpSession:
    """Stands in for requests.Session; routes are keyed by URL path."""

    def __init__(self):
        self.routes: Dict[str, Any] = {}
        self.calls: List[str] = []
        self.closed = False

    def set(self, path: str, body: Any = None, status_code: int = 200,
            text: Optional[str] = None, error: Optional[Exception] = None):
        self.routes[path] = error if error is not None else FakeResponse(body, status_code, text)

    def get(self, url: str, **kwargs):
        path = urlparse(url).path
        self.calls.append(path)
        route = self.routes.get(path)
        if route is None:
            raise requests.ConnectionError(f"No route for {url}")
        if isinstance(route, Exception):
            raise route
        return route

    def count(self, path: str) -> int:
        return self.calls.count(path)

    def close(self):
        self.closed = True


class ImmediateExecutor(Executor):
    """Runs every task synchronously inside submit()."""

    def submit(self, fn, *args, **kwargs):
        future = Future()
        try:
            future.set_result(fn(*args, **kwargs))
        except Exception as e:
            future.set_exception(e)
        return future


class DeferredExecutor(Executor):
    """Holds tasks until the test decides when, and in which order, they complete."""

    def __init__(self):
        self.pending: List[Tuple[Any, tuple, dict, Future]] = []
        self.shut_down = False

    def submit(self, fn, *args, **kwargs):
        future = Future()
        self.pending.append((fn, args, kwargs, future))
        return future

    def shutdown(self, wait=True, *, cancel_futures=False):
        # Tasks already handed out keep running, like requests in flight
        self.shut_down = True

    def names(self) -> List[Tuple[str, int]]:
        return [(fn.__name__, args[1]) for fn, args, _, _ in self.pending]

    def run(self, name: str, cycle: int):
        for index, (fn, args, kwargs, future) in enumerate(self.pending):
            if fn.__name__ == name and args[1] == cycle:
                del self.pending[index]
                future.set_result(fn(*args, **kwargs))
                return future.result()
        raise AssertionError(f"No pending {name} for cycle {cycle}")

    def run_all(self):
        while self.pending:
            fn, args, kwargs, future = self.pending.pop(0)
            future.set_result(fn(*args, **kwargs))


@pytest.fixture
def clock() -> VirtualClock:
    return VirtualClock(start=T0 + 15)


@pytest.fixture
def http() -> FakeHttpSession:
    session = FakeHttpSession()
    session.set("/patient-info", PATIENT_BODY)
    session.set("/sensor-info", sensor_body(T0 - 5 * 86400))
    session.set("/measurement-mgdl", MGDL_BODY)
    session.set("/measurement-mmol", MMOL_BODY)
    return session


@pytest.fixture
def make_session(clock, http):
    """Factory building a FollowSession wired to the fakes."""
    sessions = []

    def factory(executor: Optional[Executor] = None) -> FollowSession:
        executor = executor or ImmediateExecutor()
        session = FollowSession(
            clock=clock,
            timezone="UTC",
            client_factory=lambda url: FollowServerClient(url, session=http),
            executor_factory=lambda: executor,
        )
        sessions.append(session)
        return session

    yield factory

    for session in sessions:
        session.stop()
