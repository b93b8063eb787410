"""HTTP API tests for the /api/v1 surface."""

from datetime import date, datetime

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import select

from mealshift.main import app
from mealshift.models import Blacklist, Order
from mealshift.services.clock import FrozenClock, get_clock
from mealshift.services.events import ORDER_CREATED, EventBroadcaster, get_broadcaster
from mealshift.services.rate_limiter import MemoryBackend, RateLimiter, get_rate_limiter

TEST_PASSWORD = "secret123"


@pytest.fixture()
def api(session_factory):
    clock = FrozenClock(datetime(2025, 1, 9, 20, 0))
    broadcaster = EventBroadcaster()
    limiter = RateLimiter(MemoryBackend())
    app.dependency_overrides[get_clock] = lambda: clock
    app.dependency_overrides[get_broadcaster] = lambda: broadcaster
    app.dependency_overrides[get_rate_limiter] = lambda: limiter
    try:
        with TestClient(app) as client:
            yield client, clock, broadcaster
    finally:
        app.dependency_overrides.clear()


def _login(client: TestClient, external_id: str, password: str = TEST_PASSWORD) -> dict[str, str]:
    response = client.post("/api/v1/auth/login", json={"external_id": external_id, "password": password})
    assert response.status_code == 200, response.text
    return {"Authorization": f"Bearer {response.json()['access_token']}"}


def test_order_lifecycle_over_http(api, make_user, make_shift) -> None:
    client, _, broadcaster = api
    make_user("H100")
    shift = make_shift("Lunch", "08:00", "16:00")
    headers = _login(client, "H100")

    created = client.post("/api/v1/orders", json={"order_date": "2025-01-10", "shift_id": shift.id}, headers=headers)
    duplicate = client.post("/api/v1/orders", json={"order_date": "2025-01-10", "shift_id": shift.id}, headers=headers)

    assert created.status_code == 201
    body = created.json()
    assert body["order"]["status"] == "ORDERED"
    assert body["qr_code"].startswith("data:image/png;base64,")
    assert duplicate.status_code == 409
    assert duplicate.json()["error"] == "DuplicateOrder"
    assert len(broadcaster.history(ORDER_CREATED)) == 1

    order_id = body["order"]["id"]
    mine = client.get("/api/v1/orders/me", headers=headers)
    qr = client.get(f"/api/v1/orders/{order_id}/qrcode", headers=headers)
    cancelled = client.post(f"/api/v1/orders/{order_id}/cancel", json={"reason": "Plans changed"}, headers=headers)

    assert [item["id"] for item in mine.json()] == [order_id]
    assert qr.json()["qr_token"] == body["order"]["qr_token"]
    assert cancelled.status_code == 200
    assert cancelled.json()["status"] == "CANCELLED"
    assert cancelled.json()["cancel_reason"] == "Plans changed"


def test_rejections_render_kind_and_boundary(api, make_user, make_shift) -> None:
    client, clock, _ = api
    make_user("H101")
    shift = make_shift("Lunch", "08:00", "16:00")
    headers = _login(client, "H101")
    clock.instant = datetime(2025, 1, 10, 9, 0)

    late = client.post("/api/v1/orders", json={"order_date": "2025-01-10", "shift_id": shift.id}, headers=headers)
    malformed = client.post("/api/v1/orders", json={"order_date": "10-01-2025", "shift_id": shift.id}, headers=headers)

    assert late.status_code == 403
    assert late.json()["error"] == "CutoffPassed"
    assert late.json()["cutoff"] == "2025-01-10T02:00:00"
    assert "02:00" in late.json()["message"]
    assert malformed.status_code == 400
    assert malformed.json()["error"] == "InvalidDate"


def test_orderable_dates(api, make_user) -> None:
    client, _, _ = api
    make_user("H102")
    headers = _login(client, "H102")

    response = client.get("/api/v1/orders/orderable-dates", headers=headers)

    assert response.status_code == 200
    assert response.json()["cutoff_mode"] == "PER_SHIFT"
    assert response.json()["dates"][0] == "2025-01-09"
    assert len(response.json()["dates"]) == 8


def test_checkin_requires_operator_role(api, make_user, make_shift) -> None:
    client, clock, _ = api
    make_user("H103")
    make_user("K103", role="CANTEEN")
    shift = make_shift("Lunch", "08:00", "16:00")
    user_headers = _login(client, "H103")
    operator_headers = _login(client, "K103")
    created = client.post("/api/v1/orders", json={"order_date": "2025-01-10", "shift_id": shift.id}, headers=user_headers)
    token = created.json()["order"]["qr_token"]
    clock.instant = datetime(2025, 1, 10, 9, 0)

    forbidden = client.post("/api/v1/orders/checkin/qr", json={"qr_token": token}, headers=user_headers)
    picked = client.post("/api/v1/orders/checkin/qr", json={"qr_token": token}, headers=operator_headers)
    again = client.post("/api/v1/orders/checkin/manual", json={"external_id": "H103"}, headers=operator_headers)

    assert forbidden.status_code == 403
    assert picked.status_code == 200
    assert picked.json()["status"] == "PICKED_UP"
    assert again.status_code == 409
    assert again.json()["error"] == "AlreadyCheckedIn"


def test_admin_noshow_and_blacklist_endpoints(api, db, make_user, make_shift) -> None:
    client, clock, _ = api
    make_user("A200", role="ADMIN")
    employee = make_user("H104", no_show_count=2)
    shift = make_shift("Lunch", "08:00", "16:00")
    admin_headers = _login(client, "A200")
    user_headers = _login(client, "H104")
    client.post("/api/v1/orders", json={"order_date": "2025-01-10", "shift_id": shift.id}, headers=user_headers)
    clock.instant = datetime(2025, 1, 10, 17, 0)

    denied = client.post("/api/v1/admin/noshow/run", headers=user_headers)
    sweep = client.post("/api/v1/admin/noshow/run", headers=admin_headers)
    stats = client.get("/api/v1/admin/noshow/stats", params={"date": "2025-01-10"}, headers=admin_headers)
    blocked = client.post("/api/v1/orders", json={"order_date": "2025-01-11", "shift_id": shift.id}, headers=user_headers)

    assert denied.status_code == 403
    assert sweep.json()["processed"] == 1
    assert sweep.json()["blacklisted"][0]["userId"] == employee.id
    assert stats.json()["noShows"] == 1
    assert blocked.status_code == 403
    assert blocked.json()["error"] == "UserBlacklisted"

    entry_id = db.scalar(select(Blacklist.id).where(Blacklist.user_id == employee.id))
    removed = client.post(f"/api/v1/admin/blacklists/{entry_id}/remove", headers=admin_headers)
    manual = client.post(
        "/api/v1/admin/blacklists",
        json={"external_id": "H104", "reason": "Shared QR code", "duration_days": 1},
        headers=admin_headers,
    )
    clock.instant = datetime(2025, 1, 12, 9, 0)
    expired = client.post("/api/v1/admin/blacklists/expire", headers=admin_headers)

    assert removed.json()["is_active"] is False
    assert manual.status_code == 201
    assert manual.json()["end_date"] == "2025-01-11T17:00:00"
    assert expired.json() == {"expired": 1}


def test_admin_settings_update_cancels_orders_beyond_window(api, db, make_user, make_shift) -> None:
    client, _, _ = api
    make_user("A201", role="ADMIN")
    make_user("H105")
    shift = make_shift("Lunch", "08:00", "16:00")
    admin_headers = _login(client, "A201")
    user_headers = _login(client, "H105")
    for day in ("2025-01-10", "2025-01-14"):
        client.post("/api/v1/orders", json={"order_date": day, "shift_id": shift.id}, headers=user_headers)

    current = client.get("/api/v1/admin/settings", headers=admin_headers).json()
    payload = {key: current[key] for key in current if key not in {"updated_at", "orderable_days"}}
    payload.update({"max_order_days_ahead": 2, "orderable_days": [1, 2, 3, 4, 5]})
    updated = client.put("/api/v1/admin/settings", json=payload, headers=admin_headers)
    invalid = client.put("/api/v1/admin/settings", json={**payload, "cutoff_mode": "monthly"}, headers=admin_headers)

    assert updated.status_code == 200
    assert updated.json()["max_order_days_ahead"] == 2
    assert updated.json()["orderable_days"] == "1,2,3,4,5"
    assert invalid.status_code == 422
    statuses = dict(db.execute(select(Order.order_date, Order.status)).all())
    assert statuses[date(2025, 1, 10)] == "ORDERED"
    assert statuses[date(2025, 1, 14)] == "CANCELLED"


def test_login_lockout_after_repeated_failures(api, make_user) -> None:
    client, _, _ = api
    make_user("H106")

    for _ in range(5):
        response = client.post("/api/v1/auth/login", json={"external_id": "H106", "password": "wrong"})
        assert response.status_code == 401
    locked = client.post("/api/v1/auth/login", json={"external_id": "H106", "password": TEST_PASSWORD})

    assert locked.status_code == 429
    assert locked.json()["error"] == "RateLimited"
    assert "Retry-After" in locked.headers


def test_bulk_endpoint_is_rate_limited(api, make_user, make_shift) -> None:
    client, _, _ = api
    make_user("H107")
    shift = make_shift("Lunch", "08:00", "16:00")
    headers = _login(client, "H107")
    body = {"orders": [{"date": "2025-01-13", "shift_id": shift.id}]}

    first = client.post("/api/v1/orders/bulk", json=body, headers=headers)
    for _ in range(9):
        client.post("/api/v1/orders/bulk", json=body, headers=headers)
    throttled = client.post("/api/v1/orders/bulk", json=body, headers=headers)

    assert first.json()["summary"] == {"total": 1, "successCount": 1, "failedCount": 0}
    assert throttled.status_code == 429
