"""Tests for the export bridge and its client capability."""

from __future__ import annotations

from pathlib import Path

import httpx
import pytest

from export_bridge import (
    CHANNEL_OPEN_FILE,
    CHANNEL_SAVE_AUDIO,
    CHANNEL_SAVE_FEEDBACK,
    DEFAULT_AUDIO_NAME,
    DEFAULT_FEEDBACK_NAME,
    BridgeRequest,
    ExportBridge,
    ExportClient,
)

AUDIO_URL = "https://cdn.test/ideal.mp3"


class FakePicker:
    def __init__(self, open_path: Path | None = None, save_path: Path | None = None) -> None:
        self.open_path = open_path
        self.save_path = save_path
        self.save_calls: list[tuple[str, str]] = []
        self.open_calls: list[list] = []

    def choose_open_path(self, title, filters):  # noqa: ANN001
        self.open_calls.append(list(filters))
        return self.open_path

    def choose_save_path(self, title, default_name, filters):  # noqa: ANN001
        self.save_calls.append((title, default_name))
        return self.save_path


class ExplodingPicker(FakePicker):
    def choose_save_path(self, title, default_name, filters):  # noqa: ANN001
        raise RuntimeError("dialog crashed")


def _bridge(picker: FakePicker, handler=None) -> ExportBridge:  # noqa: ANN001
    if handler is None:
        handler = lambda request: httpx.Response(200, content=b"")  # noqa: E731
    http = httpx.Client(transport=httpx.MockTransport(handler))
    return ExportBridge(picker, http_client=http, chunk_size=16)


# ---------------------------------------------------------------
# open_text_file
# ---------------------------------------------------------------

def test_open_text_file_returns_contents(tmp_path: Path) -> None:
    script = tmp_path / "talk.md"
    script.write_text("Thank you for coming today.", encoding="utf-8")
    picker = FakePicker(open_path=script)

    assert _bridge(picker).open_text_file() == "Thank you for coming today."
    assert picker.open_calls == [[("Text Files", ("txt", "md"))]]


def test_open_text_file_cancel_returns_none() -> None:
    assert _bridge(FakePicker()).open_text_file() is None


def test_open_text_file_io_errors_return_none(tmp_path: Path) -> None:
    missing = tmp_path / "missing.txt"
    assert _bridge(FakePicker(open_path=missing)).open_text_file() is None

    binary = tmp_path / "binary.txt"
    binary.write_bytes(b"\xff\xfe\xfa")
    assert _bridge(FakePicker(open_path=binary)).open_text_file() is None


# ---------------------------------------------------------------
# save_feedback
# ---------------------------------------------------------------

def test_save_feedback_writes_content_verbatim(tmp_path: Path) -> None:
    target = tmp_path / "feedback.txt"
    picker = FakePicker(save_path=target)
    content = "Score: 7/10\r\nClear opening.\n"

    assert _bridge(picker).save_feedback(content) is True
    assert target.read_bytes() == content.encode("utf-8")
    assert picker.save_calls == [("Save Feedback", DEFAULT_FEEDBACK_NAME)]
    assert list(tmp_path.iterdir()) == [target]


def test_save_feedback_cancel_returns_false() -> None:
    assert _bridge(FakePicker()).save_feedback("text") is False


def test_save_feedback_write_failure_returns_false(tmp_path: Path) -> None:
    target = tmp_path / "no-such-dir" / "feedback.txt"

    assert _bridge(FakePicker(save_path=target)).save_feedback("text") is False
    assert not target.exists()


# ---------------------------------------------------------------
# save_audio
# ---------------------------------------------------------------

def test_save_audio_streams_to_target(tmp_path: Path) -> None:
    target = tmp_path / "ideal.mp3"
    body = b"ID3" + bytes(range(256)) * 4
    seen: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(str(request.url))
        return httpx.Response(200, content=body)

    picker = FakePicker(save_path=target)
    assert _bridge(picker, handler).save_audio(AUDIO_URL) is True

    assert target.read_bytes() == body
    assert seen == [AUDIO_URL]
    assert picker.save_calls == [("Save Ideal Delivery Audio", DEFAULT_AUDIO_NAME)]
    assert list(tmp_path.iterdir()) == [target]


def test_save_audio_404_leaves_no_file(tmp_path: Path) -> None:
    target = tmp_path / "ideal.mp3"

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(404, content=b"not found")

    assert _bridge(FakePicker(save_path=target), handler).save_audio(AUDIO_URL) is False
    assert not target.exists()
    assert list(tmp_path.iterdir()) == []


def test_save_audio_failure_keeps_existing_file(tmp_path: Path) -> None:
    target = tmp_path / "ideal.mp3"
    target.write_bytes(b"previous take")

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503)

    assert _bridge(FakePicker(save_path=target), handler).save_audio(AUDIO_URL) is False
    assert target.read_bytes() == b"previous take"


def test_user_file_named_like_a_temp_file_is_untouched(tmp_path: Path) -> None:
    target = tmp_path / "ideal.mp3"
    lookalike = tmp_path / "ideal.mp3.part"
    lookalike.write_bytes(b"keep me")
    responses = iter([httpx.Response(200, content=b"ID3 new"), httpx.Response(500)])

    bridge = _bridge(FakePicker(save_path=target), lambda request: next(responses))

    assert bridge.save_audio(AUDIO_URL) is True
    assert bridge.save_audio(AUDIO_URL) is False
    assert lookalike.read_bytes() == b"keep me"
    assert target.read_bytes() == b"ID3 new"
    assert sorted(p.name for p in tmp_path.iterdir()) == ["ideal.mp3", "ideal.mp3.part"]


def test_each_save_writes_through_its_own_temp_file(tmp_path: Path, monkeypatch) -> None:  # noqa: ANN001
    import export_bridge

    target = tmp_path / "feedback.txt"
    seen: list[str] = []
    real_replace = export_bridge.os.replace

    def spy_replace(src, dst) -> None:  # noqa: ANN001
        seen.append(Path(src).name)
        real_replace(src, dst)

    monkeypatch.setattr(export_bridge.os, "replace", spy_replace)
    bridge = _bridge(FakePicker(save_path=target))

    assert bridge.save_feedback("first") is True
    assert bridge.save_feedback("second") is True

    assert len(set(seen)) == 2
    assert all(name.startswith(".feedback.txt.") for name in seen)
    assert target.read_text(encoding="utf-8") == "second"
    assert list(tmp_path.iterdir()) == [target]


def test_save_audio_transport_error_returns_false(tmp_path: Path) -> None:
    target = tmp_path / "ideal.mp3"

    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("unreachable", request=request)

    assert _bridge(FakePicker(save_path=target), handler).save_audio(AUDIO_URL) is False
    assert list(tmp_path.iterdir()) == []


def test_save_audio_cancel_does_not_download() -> None:
    calls: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(200, content=b"data")

    assert _bridge(FakePicker(), handler).save_audio(AUDIO_URL) is False
    assert calls == []


# ---------------------------------------------------------------
# Message boundary
# ---------------------------------------------------------------

def test_bridge_exposes_exactly_three_channels() -> None:
    bridge = _bridge(FakePicker())
    assert set(bridge.channels) == {CHANNEL_OPEN_FILE, CHANNEL_SAVE_FEEDBACK, CHANNEL_SAVE_AUDIO}


def test_unknown_channel_is_rejected() -> None:
    response = _bridge(FakePicker()).handle(BridgeRequest("fs:writeAnything", ("/etc/passwd",)))
    assert response.ok is False
    assert response.value is None


@pytest.mark.parametrize(
    "request_",
    [
        BridgeRequest(CHANNEL_SAVE_FEEDBACK),
        BridgeRequest(CHANNEL_SAVE_FEEDBACK, (b"bytes",)),
        BridgeRequest(CHANNEL_SAVE_AUDIO, ("a", "b")),
    ],
)
def test_malformed_arguments_resolve_to_false(request_: BridgeRequest) -> None:
    picker = FakePicker()
    response = _bridge(picker).handle(request_)

    assert response.value is False
    assert response.ok is False
    assert picker.save_calls == []


def test_handler_exception_never_crosses_boundary() -> None:
    bridge = _bridge(ExplodingPicker())
    response = bridge.handle(BridgeRequest(CHANNEL_SAVE_AUDIO, (AUDIO_URL,)))

    assert response.value is False
    assert "dialog crashed" in response.error
    assert ExportClient(bridge.handle).save_feedback("text") is False


def test_client_round_trips_through_bridge(tmp_path: Path) -> None:
    source = tmp_path / "script.txt"
    source.write_text("hello", encoding="utf-8")
    target = tmp_path / "out.txt"
    sent: list[BridgeRequest] = []
    bridge = _bridge(FakePicker(open_path=source, save_path=target))

    def send(request: BridgeRequest):  # noqa: ANN202
        sent.append(request)
        return bridge.handle(request)

    client = ExportClient(send)
    assert client.open_text_file() == "hello"
    assert client.save_feedback("report") is True
    assert target.read_text(encoding="utf-8") == "report"
    assert [r.channel for r in sent] == [CHANNEL_OPEN_FILE, CHANNEL_SAVE_FEEDBACK]
    assert not hasattr(client, "__dict__")
