"""
Transactional email via Resend, rendered from Jinja2 templates.

Every sender returns (sent, error) and never raises: email is a side effect
of invitations, deletions and billing, never a reason for them to fail.
"""
import logging
from pathlib import Path
from typing import Any

import resend
from jinja2 import Environment, FileSystemLoader, select_autoescape

from juno.config import settings

logger = logging.getLogger(__name__)

templates_dir = Path(__file__).resolve().parent.parent / "templates" / "email"
_env = Environment(
    loader=FileSystemLoader(str(templates_dir)),
    autoescape=select_autoescape(["html"]),
)


def render(template_name: str, **context: Any) -> str:
    return _env.get_template(template_name).render(app_url=settings.app_url, **context)


def send_email(to_email: str, subject: str, html: str) -> tuple[bool, str]:
    """Send one HTML email; returns (sent, error message)."""
    if not settings.resend_enabled:
        logger.info("Resend not configured; email to %s not sent (subject: %s)", to_email, subject)
        return False, "Email provider not configured"

    resend.api_key = settings.resend_api_key
    params = {
        "from": settings.resend_from_email,
        "to": [to_email],
        "subject": subject,
        "html": html,
    }
    try:
        response = resend.Emails.send(params)
    except Exception as exc:
        message = str(exc).replace(settings.resend_api_key, "***")
        logger.error("Failed to send email to %s: %s", to_email, message)
        return False, message

    email_id = response.get("id") if isinstance(response, dict) else getattr(response, "id", None)
    logger.info("Email sent to %s (id=%s): %s", to_email, email_id, subject)
    return True, ""


def send_invitation_email(
    to_email: str,
    tenant_name: str,
    inviter_name: str,
    role_name: str,
    token: str,
    expires_at,
) -> tuple[bool, str]:
    html = render(
        "invitation.html",
        tenant_name=tenant_name,
        inviter_name=inviter_name or "A teammate",
        role_name=role_name,
        accept_url=f"{settings.app_url}/invitations/accept?token={token}",
        expires_at=expires_at,
    )
    return send_email(to_email, f"You're invited to join {tenant_name} on Juno", html)


def send_welcome_email(to_email: str, first_name: str, tenant_name: str) -> tuple[bool, str]:
    html = render("welcome.html", first_name=first_name or "there", tenant_name=tenant_name)
    return send_email(to_email, f"Welcome to {tenant_name}", html)


def send_farewell_email(to_email: str, first_name: str, tenant_name: str) -> tuple[bool, str]:
    html = render("farewell.html", first_name=first_name or "there", tenant_name=tenant_name)
    return send_email(to_email, f"{tenant_name} has been deleted", html)


def send_low_balance_email(
    to_email: str,
    tenant_name: str,
    balance: int,
    minimum_balance: int,
    reason: str,
) -> tuple[bool, str]:
    """Sent to tenant admins when an automatic recharge could not be completed."""
    html = render(
        "low_balance.html",
        tenant_name=tenant_name,
        balance=balance,
        minimum_balance=minimum_balance,
        reason=reason,
    )
    return send_email(to_email, f"Action needed: auto-recharge failed for {tenant_name}", html)


def send_number_suspended_email(
    to_email: str,
    tenant_name: str,
    phone_number: str,
    balance: int,
    required_credits: int,
) -> tuple[bool, str]:
    html = render(
        "number_suspended.html",
        tenant_name=tenant_name,
        phone_number=phone_number,
        balance=balance,
        required_credits=required_credits,
        retry_days=settings.suspended_retry_days,
    )
    return send_email(to_email, f"{phone_number} suspended: low credit balance", html)
