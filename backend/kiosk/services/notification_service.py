# backend/kiosk/services/notification_service.py
"""
Notifications Service

Customer and admin messages go out over two optional channels:

- Slack: direct message to the Slack user owning the customer's email
  (users.lookupByEmail + chat.postMessage) or a post to a channel.
- Email: SMTP, SSL on port 465 and STARTTLS otherwise.

A channel is active only when fully configured. Sending is best-effort:
failures are logged and reported as False, never raised, so a Slack or SMTP
outage cannot undo a sale or a payment that already committed.
"""
from __future__ import annotations

import logging
import smtplib
import ssl
from email.message import EmailMessage
from email.utils import formataddr
from typing import Iterable
from urllib.parse import quote

import httpx
from flask import current_app
from markupsafe import escape

from ..formatting import format_currency
from ._records import value_of

logger = logging.getLogger(__name__)

QR_CODE_URL = "https://api.qrserver.com/v1/create-qr-code/?data={data}&size=150x150"


def _cfg(key: str, default=None):
    value = current_app.config.get(key)
    return default if value in (None, "") else value


def _money(amount: float | None) -> str:
    return format_currency(amount, _cfg("CURRENCY", "USD"))


# =============================================================================
# Transports
# =============================================================================

def slack_enabled() -> bool:
    return bool(_cfg("SLACK_AUTH_TOKEN"))


def email_enabled() -> bool:
    return all(
        _cfg(key)
        for key in (
            "EMAIL_SERVER_HOST",
            "EMAIL_SERVER_PORT",
            "EMAIL_SERVER_USER",
            "EMAIL_SERVER_PASSWORD",
            "EMAIL_FROM_EMAIL",
        )
    )


def _slack_client() -> httpx.Client:
    return httpx.Client(
        base_url=_cfg("SLACK_API_BASE_URL", "https://slack.com/api").rstrip("/"),
        headers={"Authorization": f"Bearer {_cfg('SLACK_AUTH_TOKEN')}"},
        timeout=float(_cfg("NOTIFICATION_TIMEOUT", 10.0)),
    )


def lookup_slack_user_id(client: httpx.Client, email: str) -> str | None:
    response = client.get("/users.lookupByEmail", params={"email": email})
    data = response.json()
    if not data.get("ok"):
        return None
    return (data.get("user") or {}).get("id")


def post_slack_message(
    *,
    email: str | None = None,
    channel: str | None = None,
    text: str | None = None,
    blocks: list[dict] | None = None,
) -> bool:
    """
    Post a message to the Slack user behind `email`, or else to `channel`.

    Returns True only when Slack accepted the message.
    """
    if not slack_enabled():
        return False
    if not (text or blocks) or not (email or channel):
        logger.warning("Slack message skipped: missing text or recipient")
        return False

    try:
        with _slack_client() as client:
            recipient = lookup_slack_user_id(client, email) if email else channel
            if not recipient:
                logger.warning("Slack recipient not found: %s", email or channel)
                return False

            body: dict = {"channel": recipient}
            if blocks:
                body["blocks"] = blocks
            if text:
                body["text"] = text
            response = client.post("/chat.postMessage", json=body)
            data = response.json()
    except (httpx.HTTPError, ValueError):
        logger.exception("Slack message to %s failed", email or channel)
        return False

    if response.status_code >= 400 or not data.get("ok"):
        logger.warning(
            "Slack rejected message to %s: status=%s error=%s",
            email or channel,
            response.status_code,
            data.get("error"),
        )
        return False
    return True


def send_email(to_email: str | None, subject: str, html: str, text: str | None = None) -> bool:
    if not email_enabled():
        return False
    if not to_email or not subject or not (html or text):
        logger.warning("Email skipped: missing recipient, subject or body")
        return False

    msg = EmailMessage()
    msg["From"] = formataddr((_cfg("EMAIL_FROM_NAME", "KioskPOS"), _cfg("EMAIL_FROM_EMAIL")))
    msg["To"] = to_email
    msg["Subject"] = subject
    msg.set_content(text or "Please view this message in an HTML capable client.")
    if html:
        msg.add_alternative(html, subtype="html")

    host = _cfg("EMAIL_SERVER_HOST")
    try:
        port = int(_cfg("EMAIL_SERVER_PORT"))
        timeout = float(_cfg("NOTIFICATION_TIMEOUT", 10.0))
    except (TypeError, ValueError):
        logger.error("Email to %s not sent: invalid EMAIL_SERVER_PORT or NOTIFICATION_TIMEOUT", to_email)
        return False

    try:
        if port == 465:
            with smtplib.SMTP_SSL(host, port, context=ssl.create_default_context(), timeout=timeout) as server:
                server.login(_cfg("EMAIL_SERVER_USER"), _cfg("EMAIL_SERVER_PASSWORD"))
                server.send_message(msg)
        else:
            with smtplib.SMTP(host, port, timeout=timeout) as server:
                server.ehlo()
                server.starttls(context=ssl.create_default_context())
                server.ehlo()
                server.login(_cfg("EMAIL_SERVER_USER"), _cfg("EMAIL_SERVER_PASSWORD"))
                server.send_message(msg)
    except (smtplib.SMTPException, OSError):
        logger.exception("Email to %s failed", to_email)
        return False

    logger.info("Email sent to %s: %s", to_email, subject)
    return True


# =============================================================================
# Messages
# =============================================================================

def _line_label(line) -> str:
    variant = value_of(line, "variant")
    variant_name = value_of(line, "variant_name") or (value_of(variant, "name") if isinstance(variant, dict) else None)
    suffix = f" ({variant_name})" if variant_name else ""
    quantity = int(value_of(line, "quantity", 0))
    price = float(value_of(line, "price", 0.0))
    return f"{quantity} pc {value_of(line, 'name', '')}{suffix} - {_money(price * quantity)}"


def payment_link(amount: float) -> str:
    template = _cfg("PAYMENT_LINK", "")
    return template.replace("{AMOUNT}", f"{amount:.2f}")


def payment_qr_code_url(link: str) -> str:
    return QR_CODE_URL.format(data=quote(link, safe="-_.!~*'()"))


def send_order_receipt(customer, lines: Iterable, total: float, new_balance: float) -> bool:
    """Receipt to the customer after a checkout on their tab."""
    email = value_of(customer, "email")
    if not email:
        return False

    items = [_line_label(line) for line in lines]
    text = (
        "*Receipt :wave:*\n\n"
        + "\n".join(items)
        + f"\n\n*Total: {_money(total)}*\n\n*New balance: {_money(new_balance)}*\n\nThank you for your purchase!"
    )
    html = (
        "<strong>Receipt</strong><br/><br/>"
        + "<br/>".join(escape(item) for item in items)
        + f"<br/><br/>Total: {_money(total)}<br/><br/>New balance: {_money(new_balance)}"
        + "<br/><br/>Thank you for your purchase!"
    )

    slack_ok = post_slack_message(email=email, text=text)
    email_ok = send_email(email, "Receipt", html)
    return slack_ok or email_ok


def send_request_notification(product_name: str, variant_name: str | None = None) -> bool:
    """Tell the admins a customer asked for a (sold out or missing) product."""
    label = f"{product_name}{f' ({variant_name})' if variant_name else ''}"
    delivered = False

    channel = _cfg("SLACK_KIOSK_CHANNEL")
    if channel:
        delivered = post_slack_message(channel=channel, text=f"*New request :wave:*\n\n{label}\n\n") or delivered

    html = f"<strong>New request</strong><br/><br/>{escape(label)}"
    for admin_email in (e.strip() for e in (_cfg("ADMIN_EMAILS", "") or "").split(";")):
        if admin_email:
            delivered = send_email(admin_email, "New request", html) or delivered
    return delivered


def send_invoice_notification(customer, transactions: Iterable, amount: float) -> bool:
    """
    Invoice listing every unpaid line of the customer, the total and, when a
    PAYMENT_LINK is configured, the payment link and its QR code.
    """
    email = value_of(customer, "email")
    if not email:
        logger.info("Invoice for customer %s not delivered: no email", value_of(customer, "id"))
        return False

    name = value_of(customer, "name", "")
    items = [
        f"• {_line_label(line)}"
        for tx in transactions
        if not value_of(tx, "paid", False)
        for line in value_of(tx, "items", ())
    ]
    total_line = f"Total: {_money(amount)}"
    link = payment_link(amount)

    blocks = [
        {
            "type": "section",
            "text": {
                "type": "mrkdwn",
                "text": f"*Hello {name}!* :wave:\n\nHere is your invoice from the kiosk:\n\n"
                + "\n".join(items)
                + f"\n\n*{total_line}*",
            },
        },
    ]
    html = (
        f"<strong>Hello {escape(name)}!</strong><br/><br/>Here is your invoice from the kiosk:<br/><br/>"
        + "<br/>".join(escape(item) for item in items)
        + f"<br/><br/>{total_line}<br/><br/>"
    )

    if link:
        qr_url = payment_qr_code_url(link)
        blocks.extend([
            {
                "type": "section",
                "text": {"type": "mrkdwn", "text": "Pay easily by scanning the QR code below. Thank you for your purchase!"},
            },
            {"type": "image", "image_url": qr_url, "alt_text": "Payment QR code"},
            {"type": "section", "text": {"type": "mrkdwn", "text": link}},
        ])
        html += (
            "Pay easily by scanning the QR code below. Thank you for your purchase!<br/>"
            f'<img src="{escape(qr_url)}" alt="Payment QR code" /><br/>{escape(link)}'
        )
    else:
        html += "Thank you for your purchase!"

    slack_ok = post_slack_message(email=email, blocks=blocks, text=f"Invoice: {total_line}")
    email_ok = send_email(email, "Here is your invoice from the kiosk", html)
    return slack_ok or email_ok


def send_payment_received_notification(customer, amount: float) -> bool:
    email = value_of(customer, "email")
    if not email:
        return False

    name = value_of(customer, "name", "")
    text = f"*Hello {name}!* :wave:\n\nThank you for your payment of {_money(amount)}. Your balance has been reset."
    html = f"<strong>Hello {escape(name)}!</strong><br/><br/>Thank you for your payment of {_money(amount)}. Your balance has been reset."

    slack_ok = post_slack_message(email=email, text=text)
    email_ok = send_email(email, "Payment received", html)
    return slack_ok or email_ok
