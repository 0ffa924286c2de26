"""
Follow Client Errors
Exception taxonomy for talking to the follow server
"""

from typing import Optional


class FollowClientError(Exception):
    """
    Base class for every failure of a single follow-server request

    Attributes:
        endpoint (str): Endpoint path the failure belongs to (may be None)
    """

    def __init__(self, message: str, endpoint: Optional[str] = None):
        super().__init__(message)
        self.endpoint = endpoint


class NetworkFailure(FollowClientError):
    """Connection error, timeout, invalid URL or non-2xx HTTP status"""


class MalformedResponse(FollowClientError):
    """Body is not JSON, or not the JSON object shape the endpoint promises"""


class UnparseableTimestamp(FollowClientError):
    """Measurement Timestamp field is not an ISO-8601 instant"""

    def __init__(self, raw: str, endpoint: Optional[str] = None):
        super().__init__(f"Unparseable timestamp: {raw!r}", endpoint)
        self.raw = raw
