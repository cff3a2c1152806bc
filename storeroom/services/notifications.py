"""
Notifications email (best effort).

Appelées APRÈS commit (BackgroundTasks FastAPI). Un échec d'envoi est
journalisé et ne remonte jamais : la transition est déjà validée.
"""

from __future__ import annotations

import logging
import smtplib
import ssl
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from html import escape
from typing import Iterable

from storeroom.app.core.config import settings
from storeroom.app.db.models.core_types import RequestStatus
from storeroom.services.inventory import ComponentSnapshot
from storeroom.services.requests import RequestSnapshot, TransitionResult

logger = logging.getLogger(__name__)

SIGNATURE = "Storeroom Management System"


def send_email(to: str | Iterable[str], subject: str, html: str, text: str) -> bool:
    if not settings.SEND_EMAILS:
        logger.info("Email sending disabled, would send %r to %s", subject, to)
        return False
    if not settings.email_configured:
        logger.warning("Email not configured. Set SMTP_USERNAME and SMTP_PASSWORD.")
        return False
    if not to:
        logger.warning("No recipient for %r", subject)
        return False

    recipients = [to] if isinstance(to, str) else list(to)

    message = MIMEMultipart("alternative")
    message["Subject"] = subject
    message["From"] = f"Storeroom <{settings.NOTIFICATION_FROM}>"
    message["To"] = ", ".join(recipients)
    message.attach(MIMEText(text, "plain"))
    message.attach(MIMEText(html, "html"))

    context = ssl.create_default_context()
    implicit_tls = settings.SMTP_PORT == 465
    try:
        if implicit_tls:
            server = smtplib.SMTP_SSL(
                settings.SMTP_SERVER,
                settings.SMTP_PORT,
                timeout=settings.EMAIL_TIMEOUT,
                context=context,
            )
        else:
            server = smtplib.SMTP(settings.SMTP_SERVER, settings.SMTP_PORT, timeout=settings.EMAIL_TIMEOUT)
        with server:
            if not implicit_tls:
                server.starttls(context=context)
            server.login(settings.SMTP_USERNAME, settings.SMTP_PASSWORD)
            server.sendmail(settings.NOTIFICATION_FROM, recipients, message.as_string())
    except (smtplib.SMTPException, OSError):
        logger.exception("Failed to send email %r to %s", subject, recipients)
        return False

    logger.info("Email %r sent to %s", subject, recipients)
    return True


# ---------- TEMPLATES ----------
def _items_text(request: RequestSnapshot) -> str:
    return "\n".join(f"  - {it.component_name}: {it.quantity} {it.unit}" for it in request.items)


def _items_html(request: RequestSnapshot) -> str:
    rows = "".join(
        f"<li>{escape(it.component_name)}: {it.quantity} {escape(it.unit)}</li>" for it in request.items
    )
    return f"<ul>{rows}</ul>"


def _fmt(dt) -> str:
    return dt.strftime("%Y-%m-%d %H:%M") if dt else "N/A"


def _request_recipient(request: RequestSnapshot) -> str | None:
    return request.email or settings.NOTIFICATION_TO_ADMIN


def notify_request_approved(request: RequestSnapshot) -> bool:
    to = _request_recipient(request)
    if not to:
        logger.info("No email for %s, skipping approval notification", request.personnel_name)
        return False

    subject = "Request Approved - Storeroom"
    text = (
        f"Hello {request.personnel_name},\n\n"
        "Your request has been APPROVED and items are ready for pickup.\n\n"
        f"Requested items:\n{_items_text(request)}\n\n"
        f"Department: {request.department or 'N/A'}\n"
        f"Requested at: {_fmt(request.requested_at)}\n\n"
        f"{SIGNATURE}\n"
    )
    html = (
        f"<p>Hello {escape(request.personnel_name)},</p>"
        "<p>Your request has been <strong>APPROVED</strong> and items are ready for pickup.</p>"
        f"{_items_html(request)}"
        f"<p><strong>Department:</strong> {escape(request.department or 'N/A')}</p>"
        f"<p><strong>Requested at:</strong> {_fmt(request.requested_at)}</p>"
        f"<p>{SIGNATURE}</p>"
    )
    return send_email(to, subject, html, text)


def notify_request_returned(request: RequestSnapshot) -> bool:
    to = _request_recipient(request)
    if not to:
        logger.info("No email for %s, skipping return notification", request.personnel_name)
        return False

    subject = "Request Returned - Storeroom"
    text = (
        f"Hello {request.personnel_name},\n\n"
        "Your request has been marked as RETURNED.\n\n"
        f"Returned items:\n{_items_text(request)}\n\n"
        f"Requested at: {_fmt(request.requested_at)}\n"
        f"Returned at: {_fmt(request.returned_at)}\n\n"
        f"{SIGNATURE}\n"
    )
    html = (
        f"<p>Hello {escape(request.personnel_name)},</p>"
        "<p>Your request has been marked as <strong>RETURNED</strong>.</p>"
        f"{_items_html(request)}"
        f"<p><strong>Requested at:</strong> {_fmt(request.requested_at)}</p>"
        f"<p><strong>Returned at:</strong> {_fmt(request.returned_at)}</p>"
        f"<p>{SIGNATURE}</p>"
    )
    return send_email(to, subject, html, text)


def notify_low_stock(component: ComponentSnapshot) -> bool:
    if not settings.NOTIFICATION_TO_ADMIN:
        logger.info("No admin email configured for low stock alerts")
        return False

    subject = f"Low Stock Alert - {component.name}"
    text = (
        f"{component.name} is running low on stock!\n\n"
        f"Current quantity: {component.quantity}\n"
        f"Minimum stock level: {component.min_stock}\n"
        f"Category: {component.category_name or 'N/A'}\n"
        f"Location: {component.location or 'N/A'}\n\n"
        f"{SIGNATURE}\n"
    )
    html = (
        f"<p><strong>{escape(component.name)}</strong> is running low on stock!</p>"
        f"<p><strong>Current quantity:</strong> {component.quantity}</p>"
        f"<p><strong>Minimum stock level:</strong> {component.min_stock}</p>"
        f"<p><strong>Category:</strong> {escape(component.category_name or 'N/A')}</p>"
        f"<p><strong>Location:</strong> {escape(component.location or 'N/A')}</p>"
        f"<p>{SIGNATURE}</p>"
    )
    return send_email(settings.NOTIFICATION_TO_ADMIN, subject, html, text)


# ---------- DISPATCH ----------
def _safe(fn, arg) -> None:
    # frontière best-effort : rien ne doit remonter vers l'appelant
    try:
        fn(arg)
    except Exception:
        logger.exception("Notification %s failed", fn.__name__)


def dispatch_transition(result: TransitionResult) -> None:
    status = result.request.status
    if status == RequestStatus.APPROVED:
        _safe(notify_request_approved, result.request)
    elif status == RequestStatus.RETURNED:
        _safe(notify_request_returned, result.request)

    for comp in result.low_stock:
        _safe(notify_low_stock, comp)


def dispatch_low_stock(component: ComponentSnapshot) -> None:
    _safe(notify_low_stock, component)
