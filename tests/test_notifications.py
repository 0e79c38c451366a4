import pytest
import resend

from carryluxe.notifications import OrderNotifier, format_order_email, send_email_via_resend

ORDER = {
    "id": 1700000000000,
    "product": {"id": 5, "name": "Jackie", "price": 2950},
    "name": "Ada",
    "phone": "+1 555 0100",
    "email": "ada@example.com",
    "address": "1 Main St",
    "note": "Gift wrap",
    "date": "2026-10-19T10:00:00.000Z",
    "status": "Pending",
}


@pytest.fixture(autouse=True)
def resend_key(monkeypatch):
    monkeypatch.setattr(resend, "api_key", None)


def test_format_order_email():
    subject, body = format_order_email(ORDER)

    assert subject == "CarryLuxe - New Order #1700000000000"
    assert "Product: Jackie" in body
    assert "Price: 2950" in body
    assert "Note: Gift wrap" in body


def test_format_order_email_with_placeholder_product():
    _, body = format_order_email({**ORDER, "product": {"id": 404}})

    assert "Product: Unknown" in body
    assert "Price: n/a" in body


def test_notifier_sends_through_resend(settings, monkeypatch):
    sent = []
    monkeypatch.setattr(resend.Emails, "send", lambda payload: sent.append(payload) or {"id": "em_1"})
    settings.resend_api_key = "re_test"
    settings.order_notify_email = "orders@carryluxe.test"

    assert OrderNotifier(settings).notify_new_order(ORDER) == (True, None)
    assert sent[0]["to"] == ["orders@carryluxe.test"]
    assert sent[0]["subject"] == "CarryLuxe - New Order #1700000000000"
    assert sent[0]["from"] == settings.mail_from


def test_notifier_falls_back_to_admin_email(settings, monkeypatch):
    sent = []
    monkeypatch.setattr(resend.Emails, "send", lambda payload: sent.append(payload) or {"id": "em_1"})
    settings.resend_api_key = "re_test"

    OrderNotifier(settings).notify_new_order(ORDER)

    assert sent[0]["to"] == [settings.admin_email]


def test_notifier_skips_without_provider(settings, monkeypatch):
    def fail(payload):
        raise AssertionError("should not send")

    monkeypatch.setattr(resend.Emails, "send", fail)

    sent, error = OrderNotifier(settings).notify_new_order(ORDER)

    assert sent is False
    assert "not configured" in error


def test_provider_errors_are_reported_not_raised(monkeypatch):
    monkeypatch.setattr(resend, "api_key", "re_test")

    def explode(payload):
        raise RuntimeError("rate limited")

    monkeypatch.setattr(resend.Emails, "send", explode)

    assert send_email_via_resend({"to": ["x@y.z"]}) == (False, "rate limited")


def test_api_key_is_set_once_when_notifier_is_built(settings, monkeypatch):
    seen_keys = []
    monkeypatch.setattr(resend.Emails, "send", lambda payload: seen_keys.append(resend.api_key) or {"id": "em_1"})
    settings.resend_api_key = " re_test "

    notifier = OrderNotifier(settings)
    assert resend.api_key == "re_test"

    notifier.notify_new_order(ORDER)
    notifier.notify_new_order(ORDER)

    assert seen_keys == ["re_test", "re_test"]
    assert resend.api_key == "re_test"


def test_send_without_key_is_reported():
    assert send_email_via_resend({"to": ["x@y.z"]}) == (False, "Resend API key is not configured.")


def test_notification_failure_does_not_fail_order(settings, monkeypatch):
    from carryluxe import create_app

    monkeypatch.setattr(resend.Emails, "send", lambda payload: {"error": "bad sender"})
    settings.resend_api_key = "re_test"
    client = create_app(settings).test_client()
    client.post("/api/admin/login", json={"email": settings.admin_email, "password": settings.admin_password})
    product = client.post("/api/admin/products", json={"brand": "A", "name": "B", "price": 1}).get_json()["product"]

    response = client.post(
        "/api/orders",
        json={"productId": product["id"], "name": "Ada", "phone": "1", "address": "x"},
    )

    assert response.status_code == 200
    assert len(client.get("/api/admin/orders").get_json()) == 1
