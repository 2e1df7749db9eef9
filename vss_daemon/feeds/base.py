"""
Observation feed interface.
"""

from vss_daemon.sources.base import ObservationListener


class Feed:
    """
    Delivers location and motion observations to one listener.

    Observations are delivered from a single feed thread, so listener calls
    never overlap each other.
    """

    def start(self, listener: ObservationListener) -> bool:
        """Start delivering to listener. Return True on success."""
        raise NotImplementedError

    def stop(self) -> None:
        """Stop delivering and release the underlying connection."""
        raise NotImplementedError
