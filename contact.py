"""
Contact form

Validated, rate limited and spam filtered messages are relayed by e-mail
to the site owner. Rate limiting is slowapi keyed by client IP.
"""

import html
import secrets
import smtplib
import ssl
import time
from email.message import EmailMessage
from typing import Callable

import structlog
from fastapi import APIRouter, Body, Depends, HTTPException, Request
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded

from audit import client_ip, user_agent
from config import Settings, get_settings
from errors import ErrorClassifier
from schemas import ContactMessage
from validation import ValidationFailure, validate

logger = structlog.get_logger(__name__)

SPAM_KEYWORDS = (
    "viagra", "cialis", "lottery", "winner", "prize",
    "click here", "buy now", "limited time", "act now",
    "cryptocurrency", "bitcoin", "forex", "casino",
)


def contains_spam(text: str) -> bool:
    lowered = text.lower()
    return any(keyword in lowered for keyword in SPAM_KEYWORDS)


# Fixed window per client IP, in process memory; not shared between workers
limiter = Limiter(key_func=client_ip, storage_uri="memory://")


def contact_rate_limit() -> str:
    settings = get_settings()
    return f"{settings.contact_max_requests}/{settings.contact_window_seconds} seconds"


class EmailUnavailable(Exception):
    pass


def build_contact_email(contact: ContactMessage, ip: str, agent: str, settings: Settings) -> EmailMessage:
    message_id = f"{int(time.time() * 1000)}-{secrets.token_hex(4)}"
    sent = time.strftime("%Y-%m-%d %H:%M:%S")
    msg = EmailMessage()
    msg["Subject"] = f"[Portfolio] Contact from {contact.name}"
    msg["From"] = settings.smtp_from or settings.smtp_user
    msg["To"] = settings.smtp_to or settings.smtp_user
    msg["Reply-To"] = contact.email
    msg.set_content(
        "New Contact Form Submission\n\n"
        f"Name: {contact.name}\n"
        f"Email: {contact.email}\n"
        f"IP Address: {ip}\n"
        f"User Agent: {agent}\n\n"
        f"Message:\n{contact.message}\n\n"
        f"---\nSent: {sent}\nMessage ID: {message_id}\n"
    )
    esc = html.escape
    msg.add_alternative(
        "<h2>New Contact Form Submission</h2>"
        f"<p><strong>Name:</strong> {esc(contact.name)}</p>"
        f"<p><strong>Email:</strong> <a href=\"mailto:{esc(contact.email)}\">{esc(contact.email)}</a></p>"
        f"<p><strong>IP Address:</strong> {esc(ip)}</p>"
        f"<p><strong>User Agent:</strong> {esc(agent)}</p>"
        f"<h3>Message:</h3><p style=\"white-space: pre-wrap;\">{esc(contact.message)}</p>"
        f"<hr><p>Sent {esc(sent)} &middot; Message ID: {message_id}</p>",
        subtype="html",
    )
    return msg


def send_contact_email(msg: EmailMessage, settings: Settings) -> None:
    """Deliver over SMTP with certificate verification and TLS 1.2+."""
    context = ssl.create_default_context()
    context.minimum_version = ssl.TLSVersion.TLSv1_2
    try:
        if settings.smtp_secure:
            smtp = smtplib.SMTP_SSL(settings.smtp_host, settings.smtp_port, timeout=settings.smtp_timeout, context=context)
        else:
            smtp = smtplib.SMTP(settings.smtp_host, settings.smtp_port, timeout=settings.smtp_timeout)
    except (OSError, smtplib.SMTPException) as exc:
        raise EmailUnavailable(str(exc)) from exc
    with smtp:
        if not settings.smtp_secure:
            smtp.starttls(context=context)
        smtp.login(settings.smtp_user, settings.smtp_password)
        smtp.send_message(msg)


# ======
# Routes
# ======
router = APIRouter()


def rate_limit_exceeded(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    logger.warning("contact_rate_limited", ip=client_ip(request), limit=str(exc.detail))
    return JSONResponse({"error": "Too many requests. Please try again later."}, status_code=429)


def get_mailer() -> Callable[[EmailMessage, Settings], None]:
    return send_contact_email


@router.post("/api/contact")
@limiter.limit(contact_rate_limit)
def submit_contact(
    request: Request,
    body: dict = Body(...),
    settings: Settings = Depends(get_settings),
    mailer: Callable[[EmailMessage, Settings], None] = Depends(get_mailer),
):
    classifier = ErrorClassifier(settings.environment)
    ip = client_ip(request)
    try:
        contact = validate(body, ContactMessage)
    except ValidationFailure as exc:
        raise HTTPException(status_code=400, detail=classifier.safe_validation_error(exc, "contact_validation_failed", ip=ip))

    if contains_spam(contact.name) or contains_spam(contact.message):
        logger.warning("contact_spam_detected", name=contact.name, email=contact.email, ip=ip)
        raise HTTPException(status_code=400, detail="Message flagged as spam. Please contact me through other channels.")

    if not settings.smtp_configured:
        logger.error("contact_smtp_not_configured")
        raise HTTPException(
            status_code=503,
            detail="Email service is not configured. Please contact me through other channels.",
        )

    msg = build_contact_email(contact, ip, user_agent(request), settings)
    try:
        mailer(msg, settings)
    except EmailUnavailable as exc:
        classifier.log("contact_smtp_unavailable", exc, ip=ip)
        raise HTTPException(status_code=503, detail="Email service temporarily unavailable. Please try again later.")
    except (OSError, smtplib.SMTPException) as exc:
        classifier.log("contact_send_failed", exc, ip=ip)
        raise HTTPException(status_code=500, detail="Failed to send message. Please try again later.")

    logger.info("contact_email_sent", sender=contact.email, ip=ip)
    return {"success": True, "message": "Message sent successfully! I will get back to you soon."}
