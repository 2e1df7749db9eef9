"""
Observation feeds for the speed source.

- remote: TCP server accepting JSON from a phone app
- gpsd: location fixes from a local gpsd
"""

from vss_daemon.feeds.base import Feed
from vss_daemon.feeds.gpsd import GpsdFeed
from vss_daemon.feeds.remote import RemoteFeed

__all__ = [
    "Feed",
    "GpsdFeed",
    "RemoteFeed",
]
