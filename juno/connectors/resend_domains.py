"""Resend sending-domain management."""
import re
from typing import Any

import resend

from juno.config import settings


def tenant_domain_name(tenant_name: str, tenant_id: int) -> str:
    """Sending domain for a tenant, e.g. 'acme-corp-12.mail.example.com'."""
    slug = re.sub(r"[^a-z0-9]+", "-", tenant_name.lower()).strip("-")[:40] or "org"
    return f"{slug}-{tenant_id}.{settings.email_domain_suffix}"


def create_domain(name: str) -> dict[str, Any]:
    resend.api_key = settings.resend_api_key
    return resend.Domains.create({"name": name})


def remove_domain(domain_id: str) -> None:
    resend.api_key = settings.resend_api_key
    resend.Domains.remove(domain_id)
