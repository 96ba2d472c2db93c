"""
Notification transport and message tests.

Slack is exercised against an httpx.MockTransport and SMTP against a fake
server class; nothing leaves the process.
"""

import json
import smtplib

import httpx
import pytest

from kiosk.formatting import format_currency
from kiosk.services import notification_service


@pytest.fixture
def slack_config(app):
    app.config.update(SLACK_AUTH_TOKEN="xoxb-test", SLACK_KIOSK_CHANNEL="#kiosk")
    yield
    app.config.update(SLACK_AUTH_TOKEN=None, SLACK_KIOSK_CHANNEL=None)


@pytest.fixture
def email_config(app):
    keys = {
        "EMAIL_SERVER_HOST": "smtp.example.com",
        "EMAIL_SERVER_PORT": "587",
        "EMAIL_SERVER_USER": "kiosk",
        "EMAIL_SERVER_PASSWORD": "secret",
        "EMAIL_FROM_EMAIL": "kiosk@example.com",
    }
    app.config.update(keys)
    yield
    app.config.update({k: None for k in keys})


@pytest.fixture
def slack_api(monkeypatch):
    """Route Slack Web API calls to an in-memory handler; returns the recorded requests."""
    requests = []
    users = {"alice@example.com": "U123"}

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        if request.url.path.endswith("/users.lookupByEmail"):
            user_id = users.get(request.url.params.get("email"))
            if user_id is None:
                return httpx.Response(200, json={"ok": False, "error": "users_not_found"})
            return httpx.Response(200, json={"ok": True, "user": {"id": user_id}})
        if request.url.path.endswith("/chat.postMessage"):
            return httpx.Response(200, json={"ok": True})
        return httpx.Response(404, json={"ok": False})

    def client():
        return httpx.Client(
            base_url="https://slack.test/api",
            headers={"Authorization": "Bearer xoxb-test"},
            transport=httpx.MockTransport(handler),
        )

    monkeypatch.setattr(notification_service, "_slack_client", client)
    return requests


class FakeSMTP:
    sent = []

    def __init__(self, host, port, timeout=None):
        self.host = host
        self.port = port

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def ehlo(self):
        pass

    def starttls(self, context=None):
        pass

    def login(self, user, password):
        self.user = user

    def send_message(self, msg):
        FakeSMTP.sent.append(msg)


@pytest.fixture
def smtp(monkeypatch):
    FakeSMTP.sent = []
    monkeypatch.setattr(smtplib, "SMTP", FakeSMTP)
    return FakeSMTP.sent


class TestFormatCurrency:

    @pytest.mark.parametrize(
        "amount,currency,expected",
        [
            (12.5, "USD", "$13"),
            (1234, "USD", "$1,234"),
            (1234.4, "SEK", "1,234 kr"),
            (-5, "EUR", "-€5"),
            (0.2, "USD", "$0"),
            (None, "USD", "-"),
            (7, "CHF", "7 CHF"),
        ],
    )
    def test_format(self, amount, currency, expected):
        assert format_currency(amount, currency) == expected


class TestSlack:

    def test_disabled_without_token(self, db_session):
        assert notification_service.post_slack_message(channel="#kiosk", text="hi") is False

    def test_direct_message_by_email(self, db_session, slack_config, slack_api):
        assert notification_service.post_slack_message(email="alice@example.com", text="hi") is True

        post = slack_api[-1]
        assert post.url.path.endswith("/chat.postMessage")
        assert json.loads(post.content) == {"channel": "U123", "text": "hi"}

    def test_unknown_slack_user(self, db_session, slack_config, slack_api):
        assert notification_service.post_slack_message(email="nobody@example.com", text="hi") is False
        assert all(not r.url.path.endswith("/chat.postMessage") for r in slack_api)

    def test_transport_error_is_swallowed(self, db_session, slack_config, monkeypatch):
        def broken(request):
            raise httpx.ConnectError("down", request=request)

        monkeypatch.setattr(
            notification_service,
            "_slack_client",
            lambda: httpx.Client(base_url="https://slack.test/api", transport=httpx.MockTransport(broken)),
        )
        assert notification_service.post_slack_message(channel="#kiosk", text="hi") is False


class TestEmail:

    def test_disabled_without_config(self, db_session, smtp):
        assert notification_service.send_email("a@example.com", "Hi", "<p>hi</p>") is False
        assert smtp == []

    def test_sends_html_message(self, db_session, email_config, smtp):
        assert notification_service.send_email("a@example.com", "Hi", "<p>hi</p>") is True

        msg = smtp[0]
        assert msg["To"] == "a@example.com"
        assert msg["From"] == "KioskPOS <kiosk@example.com>"
        assert msg.get_body(preferencelist=("html",)).get_content().strip() == "<p>hi</p>"

    def test_smtp_failure_is_swallowed(self, db_session, email_config, monkeypatch):
        class Refusing(FakeSMTP):
            def login(self, user, password):
                raise smtplib.SMTPAuthenticationError(535, b"nope")

        monkeypatch.setattr(smtplib, "SMTP", Refusing)
        assert notification_service.send_email("a@example.com", "Hi", "<p>hi</p>") is False

    def test_bad_port_is_reported_not_raised(self, app, db_session, email_config, smtp):
        app.config["EMAIL_SERVER_PORT"] = "smtp"

        assert notification_service.send_email("a@example.com", "Hi", "<p>hi</p>") is False
        assert smtp == []


class TestMessages:

    def test_invoice_includes_payment_link_and_qr(self, app, db_session, customer, sent):
        app.config["PAYMENT_LINK"] = "https://pay.example/?amount={AMOUNT}&to=kiosk"
        try:
            transactions = [{
                "paid": False,
                "items": [{"name": "Coffee", "price": 15, "quantity": 2, "variant": {"id": "s", "name": "Small"}}],
            }]
            assert notification_service.send_invoice_notification(customer, transactions, 30) is True
        finally:
            app.config["PAYMENT_LINK"] = ""

        slack = next(payload for kind, payload in sent if kind == "slack")
        blocks = slack["blocks"]
        assert "• 2 pc Coffee (Small) - $30" in blocks[0]["text"]["text"]
        image = next(b for b in blocks if b["type"] == "image")
        assert image["image_url"] == (
            "https://api.qrserver.com/v1/create-qr-code/"
            "?data=https%3A%2F%2Fpay.example%2F%3Famount%3D30.00%26to%3Dkiosk&size=150x150"
        )
        assert blocks[-1]["text"]["text"] == "https://pay.example/?amount=30.00&to=kiosk"

    def test_invoice_without_email_is_not_sent(self, db_session, sent):
        assert notification_service.send_invoice_notification({"id": "c", "name": "X", "email": None}, [], 5) is False
        assert sent == []

    def test_request_notification_goes_to_channel_and_admins(self, app, db_session, sent):
        app.config.update(SLACK_KIOSK_CHANNEL="#kiosk", ADMIN_EMAILS="a@example.com; b@example.com")
        try:
            assert notification_service.send_request_notification("Coffee", "Large") is True
        finally:
            app.config.update(SLACK_KIOSK_CHANNEL=None, ADMIN_EMAILS="")

        kinds = [(kind, payload.get("channel") or payload.get("to")) for kind, payload in sent]
        assert kinds == [("slack", "#kiosk"), ("email", "a@example.com"), ("email", "b@example.com")]
        assert "Coffee (Large)" in sent[0][1]["text"]

    def test_request_from_kiosk_is_escaped_in_admin_email(self, app, db_session, sent):
        app.config.update(ADMIN_EMAILS="a@example.com")
        try:
            notification_service.send_request_notification('<img src=x onerror="alert(1)">', "<b>Large</b>")
        finally:
            app.config.update(ADMIN_EMAILS="")

        html = sent[0][1]["html"]
        assert "<img" not in html
        assert "<b>Large" not in html
        assert "&lt;img src=x onerror=&#34;alert(1)&#34;&gt; (&lt;b&gt;Large&lt;/b&gt;)" in html

    def test_customer_and_product_names_are_escaped_in_invoice(self, db_session, sent):
        customer = {"id": "c", "name": "<script>x</script>", "email": "c@example.com"}
        transactions = [{"paid": False, "items": [{"name": "<i>Tea</i>", "price": 2, "quantity": 1}]}]

        notification_service.send_invoice_notification(customer, transactions, 2)

        html = next(payload for kind, payload in sent if kind == "email")["html"]
        assert "<script>" not in html
        assert "<i>" not in html
        assert "Hello &lt;script&gt;x&lt;/script&gt;!" in html
        assert "1 pc &lt;i&gt;Tea&lt;/i&gt; - $2" in html
