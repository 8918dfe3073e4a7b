"""Helpers for the WebRTC signalling payloads.

Signals are opaque to the server: session descriptions and ICE candidates
are relayed exactly as the browser produced them. The only field the
backend ever looks at is the ``type`` discriminator, which drives the call
state machine in :mod:`taskboard.voice.calls`.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Mapping


class SignalType(str, Enum):
    """Signal kinds a client may send to its call peer."""

    OFFER = "offer"
    ANSWER = "answer"
    ICE_CANDIDATE = "ice-candidate"
    HANGUP = "hangup"
    DECLINE = "decline"


# Raised by the server only, never accepted from a client.
NO_ANSWER = "no-answer"


def signal_kind(signal: Mapping[str, Any]) -> SignalType | None:
    """Return the signal discriminator or ``None`` when it is unknown."""

    raw = signal.get("type")
    if not isinstance(raw, str):
        return None
    try:
        return SignalType(raw)
    except ValueError:
        return None


def build_signal_envelope(kind: SignalType | str, payload: Mapping[str, Any] | None = None) -> Dict[str, Any]:
    """Normalise a signal body so ``type`` always comes first."""

    value = kind.value if isinstance(kind, SignalType) else str(kind)
    body: Dict[str, Any] = {"type": value}
    for key, item in (payload or {}).items():
        if key == "type":
            continue
        body[key] = item
    return body


def decline_signal() -> Dict[str, Any]:
    return build_signal_envelope(SignalType.DECLINE)


def hangup_signal() -> Dict[str, Any]:
    return build_signal_envelope(SignalType.HANGUP)


def no_answer_signal() -> Dict[str, Any]:
    return build_signal_envelope(NO_ANSWER)


__all__ = [
    "NO_ANSWER",
    "SignalType",
    "build_signal_envelope",
    "decline_signal",
    "hangup_signal",
    "no_answer_signal",
    "signal_kind",
]
