"""
Follow Session
Polling engine facade: wires scheduler, ticker, fetcher and view state together
"""

import logging
import threading
from concurrent.futures import Executor, ThreadPoolExecutor
from typing import Callable, Optional

from .communication.data_fetcher import DataFetcher
from .communication.follow_client import FollowServerClient
from .data.models import DisplayState
from .data.parsers import DEFAULT_TIME_FORMAT
from .data.view_state import StateObserver, ViewStateStore
from .scheduling.clock import Clock, SystemClock
from .scheduling.countdown_ticker import CountdownTicker
from .scheduling.minute_scheduler import MinuteScheduler
from .utils.config_loader import FollowSettings


ClientFactory = Callable[[str], FollowServerClient]
ExecutorFactory = Callable[[], Executor]


class FollowSession:
    """
    One polling session against a follow server

    `start()` begins from an empty DisplayState, fetches immediately, then
    fetches on every wall-clock minute boundary while the ticker refreshes
    the countdowns each second. `stop()` cancels both timers and fences the
    view state so completions still in flight are ignored. Nothing carries
    over from one start/stop pair to the next.

    Attributes:
        clock (Clock): Time source and timer factory
        store (ViewStateStore): Observable view state
        logger (logging.Logger): Logger instance
    """

    def __init__(self, clock: Optional[Clock] = None,
                 store: Optional[ViewStateStore] = None,
                 request_timeout: float = 10.0,
                 verify_ssl: bool = True,
                 max_workers: int = 3,
                 time_format: str = DEFAULT_TIME_FORMAT,
                 timezone: Optional[str] = None,
                 client_factory: Optional[ClientFactory] = None,
                 executor_factory: Optional[ExecutorFactory] = None):
        """
        Initialize follow session

        Args:
            clock: Clock, SystemClock by default
            store: View state store, a new one by default
            request_timeout: HTTP timeout in seconds
            verify_ssl: Verify TLS certificates
            max_workers: Concurrent requests
            time_format: strftime pattern for the reading time
            timezone: IANA zone for the reading time, local zone when None
            client_factory: Builds the HTTP client for a base URL
            executor_factory: Builds the worker pool for a session
        """
        self.logger = logging.getLogger(__name__)
        self.clock = clock or SystemClock()
        self.store = store or ViewStateStore()
        self.request_timeout = request_timeout
        self.verify_ssl = verify_ssl
        self.max_workers = max_workers
        self.time_format = time_format
        self.timezone = timezone
        self.client_factory = client_factory or self._default_client
        self.executor_factory = executor_factory or self._default_executor

        self._lock = threading.RLock()
        self._running = False
        self._session_id = 0
        self._cycle = 0
        self._server_url = ""
        self._use_mmol = False
        self._client: Optional[FollowServerClient] = None
        self._executor: Optional[Executor] = None
        self._fetcher: Optional[DataFetcher] = None
        self._scheduler: Optional[MinuteScheduler] = None
        self._ticker: Optional[CountdownTicker] = None

    @classmethod
    def from_settings(cls, settings: FollowSettings, **kwargs) -> "FollowSession":
        """Build a session using the options of a FollowSettings"""
        return cls(
            request_timeout=settings.request_timeout,
            verify_ssl=settings.verify_ssl,
            max_workers=settings.max_workers,
            time_format=settings.time_format,
            timezone=settings.timezone,
            **kwargs,
        )

    def _default_client(self, server_url: str) -> FollowServerClient:
        return FollowServerClient(
            server_url,
            timeout=self.request_timeout,
            verify_ssl=self.verify_ssl,
            pool_size=self.max_workers,
        )

    def _default_executor(self) -> Executor:
        return ThreadPoolExecutor(max_workers=self.max_workers,
                                  thread_name_prefix="FollowFetch")

    # ==================== LIFECYCLE ====================

    @property
    def running(self) -> bool:
        with self._lock:
            return self._running

    @property
    def server_url(self) -> str:
        return self._server_url

    @property
    def use_mmol(self) -> bool:
        return self._use_mmol

    def start(self, server_url: str, use_mmol: bool):
        """
        Start polling

        Args:
            server_url: Follow server base URL, fixed for the session
            use_mmol: Unit preference, fixed for the session
        """
        with self._lock:
            if self._running:
                self.logger.warning("Follow session already running")
                return
            self._running = True
            self._server_url = server_url
            self._use_mmol = use_mmol
            self._cycle = 0
            self._session_id = self.store.begin_session(use_mmol)

            self._client = self.client_factory(server_url)
            self._executor = self.executor_factory()
            self._fetcher = DataFetcher(
                self._client, self.store, self.clock, self._executor,
                use_mmol=use_mmol, time_format=self.time_format, timezone=self.timezone,
            )
            scheduler = MinuteScheduler(self.clock, self.fetch_now)
            ticker = CountdownTicker(
                self.clock, self.store,
                next_fetch_provider=lambda: scheduler.next_fetch_instant,
                on_grace_expired=self.fetch_now,
                time_format=self.time_format,
                timezone=self.timezone,
            )
            self._scheduler, self._ticker = scheduler, ticker
            session_id = self._session_id

        unit = "mmol/L" if use_mmol else "mg/dL"
        self.logger.info(f"Follow session {session_id} started: {server_url} ({unit})")
        scheduler.start()
        ticker.start(session_id)

    def stop(self):
        """Cancel both timers and ignore any response still in flight"""
        with self._lock:
            if not self._running:
                return
            self._running = False
            scheduler, ticker = self._scheduler, self._ticker
            executor, client = self._executor, self._client
            session_id = self._session_id
            self._scheduler = self._ticker = None
            self._executor = self._client = self._fetcher = None

        scheduler.stop()
        ticker.stop()
        self.store.end_session()
        executor.shutdown(wait=False, cancel_futures=True)
        client.close()
        self.logger.info(f"Follow session {session_id} stopped")

    def fetch_now(self) -> bool:
        """
        Dispatch one fetch cycle immediately

        Used by the scheduler on every minute boundary and by the ticker
        when the sensor grace period ends.

        Returns:
            bool: True if a cycle was dispatched
        """
        with self._lock:
            if not self._running or self._fetcher is None:
                return False
            self._cycle += 1
            cycle = self._cycle
            fetcher, session_id = self._fetcher, self._session_id
        fetcher.fetch_all(session_id, cycle)
        return True

    # ==================== STATE ====================

    @property
    def next_fetch_instant(self) -> Optional[float]:
        with self._lock:
            scheduler = self._scheduler
        return scheduler.next_fetch_instant if scheduler else None

    def snapshot(self) -> DisplayState:
        return self.store.snapshot()

    def subscribe(self, observer: StateObserver) -> Callable[[], None]:
        return self.store.subscribe(observer)
