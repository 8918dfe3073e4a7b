from taskboard.voice.signaling import (
    NO_ANSWER,
    SignalType,
    build_signal_envelope,
    decline_signal,
    no_answer_signal,
    signal_kind,
)


def test_signal_kind_recognises_client_signals() -> None:
    assert signal_kind({"type": "offer", "sdp": "v=0"}) is SignalType.OFFER
    assert signal_kind({"type": "ice-candidate"}) is SignalType.ICE_CANDIDATE


def test_signal_kind_rejects_unknown_or_missing_type() -> None:
    assert signal_kind({"type": NO_ANSWER}) is None
    assert signal_kind({"type": 5}) is None
    assert signal_kind({}) is None


def test_build_signal_envelope_puts_type_first_and_ignores_payload_type() -> None:
    payload = build_signal_envelope(
        SignalType.ANSWER,
        {"type": "offer", "sdp": "v=0"},
    )
    assert list(payload) == ["type", "sdp"]
    assert payload == {"type": "answer", "sdp": "v=0"}


def test_server_generated_signals() -> None:
    assert decline_signal() == {"type": "decline"}
    assert no_answer_signal() == {"type": "no-answer"}
