"""
Follow Server REST Client
HTTP client for the self-hosted LibreLinkUp follow server
"""

from typing import Dict, Any, Optional
import logging

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from .errors import MalformedResponse, NetworkFailure


class FollowServerClient:
    """
    REST client for the follow server endpoints

    Every method returns a decoded JSON object or raises a FollowClientError
    subclass; nothing else escapes. Retries are disabled: a failed request
    is simply picked up again by the next scheduled fetch cycle.

    Attributes:
        base_url (str): Server base URL without trailing slash
        timeout (float): Request timeout in seconds
        verify_ssl (bool): Verify TLS certificates
        session (requests.Session): HTTP session shared by all requests
        logger (logging.Logger): Logger instance
    """

    PATIENT_INFO = "/patient-info"
    SENSOR_INFO = "/sensor-info"
    MEASUREMENT_MGDL = "/measurement-mgdl"
    MEASUREMENT_MMOL = "/measurement-mmol"

    USER_AGENT = "LibreFollow-Python/1.0"

    def __init__(self, base_url: str, timeout: float = 10.0, verify_ssl: bool = True,
                 pool_size: int = 3, session: Optional[requests.Session] = None):
        """
        Initialize follow server client

        Args:
            base_url: Server base URL, e.g. "https://192.168.0.10:8443"
            timeout: Request timeout in seconds
            verify_ssl: Verify TLS certificates
            pool_size: Connection pool size (one per concurrent request)
            session: Pre-built session, mainly for tests
        """
        self.logger = logging.getLogger(__name__)
        self.base_url = (base_url or "").strip().rstrip("/")
        self.timeout = timeout
        self.verify_ssl = verify_ssl
        self.pool_size = pool_size
        self.session = session if session is not None else self._setup_session()

    def _setup_session(self) -> requests.Session:
        """
        Setup HTTP session with pooled connections and headers
        """
        session = requests.Session()
        adapter = HTTPAdapter(
            pool_connections=self.pool_size,
            pool_maxsize=self.pool_size,
            max_retries=Retry(total=0, connect=0, read=0, redirect=3, status=0),
        )
        session.mount("http://", adapter)
        session.mount("https://", adapter)
        session.headers.update({
            "Accept": "application/json",
            "User-Agent": self.USER_AGENT,
        })
        return session

    def _build_url(self, endpoint: str) -> str:
        return f"{self.base_url}{endpoint}"

    def get_json(self, endpoint: str) -> Dict[str, Any]:
        """
        GET an endpoint and decode its JSON object body

        Args:
            endpoint: Endpoint path, e.g. "/sensor-info"

        Returns:
            Decoded JSON object

        Raises:
            NetworkFailure: connection error, timeout, bad URL or HTTP error status
            MalformedResponse: body is not a JSON object
        """
        url = self._build_url(endpoint)
        try:
            response = self.session.get(url, timeout=self.timeout, verify=self.verify_ssl)
            response.raise_for_status()
        except requests.RequestException as e:
            raise NetworkFailure(f"GET {url} failed: {e}", endpoint) from e

        try:
            body = response.json()
        except ValueError as e:
            raise MalformedResponse(f"GET {url} returned non-JSON body", endpoint) from e

        if not isinstance(body, dict):
            raise MalformedResponse(
                f"GET {url} returned {type(body).__name__}, expected object", endpoint
            )
        return body

    def get_patient_info(self) -> Dict[str, Any]:
        return self.get_json(self.PATIENT_INFO)

    def get_sensor_info(self) -> Dict[str, Any]:
        return self.get_json(self.SENSOR_INFO)

    def get_measurement(self, use_mmol: bool) -> Dict[str, Any]:
        """
        GET the latest measurement in the requested unit

        Args:
            use_mmol: Use /measurement-mmol instead of /measurement-mgdl
        """
        return self.get_json(self.MEASUREMENT_MMOL if use_mmol else self.MEASUREMENT_MGDL)

    def close(self):
        """
        Close HTTP session and cleanup resources
        """
        try:
            self.session.close()
        except Exception as e:
            self.logger.debug(f"Error closing HTTP session: {e}")
