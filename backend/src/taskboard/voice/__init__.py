"""One-to-one WebRTC call coordination."""

from .calls import CallCoordinator, CallPhase, CallRole, CallSession
from .signaling import SignalType

__all__ = ["CallCoordinator", "CallPhase", "CallRole", "CallSession", "SignalType"]
