"""
LibreFollow
Follower client for a self-hosted LibreLinkUp glucose server
"""

from .follow_session import FollowSession

__version__ = "1.0.0"

__all__ = [
    'FollowSession',
    '__version__'
]
