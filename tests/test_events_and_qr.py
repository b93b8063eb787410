"""Event broadcaster and QR codec tests."""

import base64
from datetime import datetime

from mealshift.services.events import ORDER_CREATED, ORDER_NOSHOW, EventBroadcaster
from mealshift.services.qr_codec import PngDataUrlCodec, generate_qr_token

NOW = datetime(2025, 1, 10, 9, 0)


def test_subscribers_receive_payload_with_timestamp() -> None:
    broadcaster = EventBroadcaster()
    received: list[tuple[str, dict]] = []
    unsubscribe = broadcaster.subscribe(lambda name, payload: received.append((name, payload)))

    broadcaster.publish(ORDER_CREATED, {"order": {"id": 1}}, timestamp=NOW)
    unsubscribe()
    broadcaster.publish(ORDER_CREATED, {"order": {"id": 2}}, timestamp=NOW)

    assert received == [(ORDER_CREATED, {"order": {"id": 1}, "timestamp": "2025-01-10T09:00:00"})]


def test_failing_subscriber_does_not_block_others(caplog) -> None:
    broadcaster = EventBroadcaster()
    received: list[str] = []

    def _broken(name: str, payload: dict) -> None:
        raise RuntimeError("socket closed")

    broadcaster.subscribe(_broken)
    broadcaster.subscribe(lambda name, payload: received.append(name))

    broadcaster.publish(ORDER_NOSHOW, {"orderId": 5}, timestamp=NOW)

    assert received == [ORDER_NOSHOW]
    assert "Subscriber failed" in caplog.text


def test_history_keeps_last_hundred_events() -> None:
    broadcaster = EventBroadcaster()

    for index in range(105):
        broadcaster.publish(ORDER_CREATED, {"order": {"id": index}}, timestamp=NOW)

    history = broadcaster.history()
    assert len(history) == 100
    assert history[0].payload["order"]["id"] == 5
    assert broadcaster.history(ORDER_NOSHOW) == []


def test_qr_tokens_are_unique_and_prefixed() -> None:
    tokens = {generate_qr_token() for _ in range(50)}

    assert len(tokens) == 50
    assert all(token.startswith("ORDER-") for token in tokens)


def test_codec_renders_png_data_url() -> None:
    data_url = PngDataUrlCodec().render("ORDER-123")

    prefix = "data:image/png;base64,"
    assert data_url.startswith(prefix)
    assert base64.b64decode(data_url[len(prefix):]).startswith(b"\x89PNG")
