"""
Communication package for LibreFollow
Contains the follow-server REST client and its error taxonomy
"""

from .errors import FollowClientError, MalformedResponse, NetworkFailure, UnparseableTimestamp
from .follow_client import FollowServerClient

__all__ = [
    'FollowClientError',
    'MalformedResponse',
    'NetworkFailure',
    'UnparseableTimestamp',
    'FollowServerClient'
]
