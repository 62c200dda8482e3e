"""Create the vendor accounts a tenant needs once it is approved."""
import logging
from dataclasses import dataclass, asdict, field
from typing import Optional

import requests
from sqlalchemy.orm import Session

from juno.config import settings
from juno.connectors import resend_domains, twilio, vapi
from juno.errors import ProvisioningError
from juno.models import MailboxDomain, Tenant

logger = logging.getLogger(__name__)


@dataclass
class ProvisioningResult:
    success: bool = False
    vapi_org_id: Optional[str] = None
    twilio_subaccount_sid: Optional[str] = None
    resend_domain_id: Optional[str] = None
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return asdict(self)


def provision_external_accounts(db: Session, tenant: Tenant) -> ProvisioningResult:
    """
    Link a Vapi organization, a Twilio subaccount and a Resend sending domain.

    Each vendor is attempted independently and skipped when not configured or
    already linked. Success means the tenant can place calls or send SMS.
    """
    result = ProvisioningResult(
        vapi_org_id=tenant.vapi_org_id,
        twilio_subaccount_sid=tenant.twilio_subaccount_sid,
        resend_domain_id=tenant.resend_domain_id,
    )

    if settings.vapi_enabled and not tenant.vapi_org_id:
        try:
            org = vapi.create_organization(tenant.name)
            tenant.vapi_org_id = org["id"]
            result.vapi_org_id = org["id"]
            logger.info("Vapi organization %s created for tenant %s", org["id"], tenant.id)
        except (requests.RequestException, ProvisioningError) as e:
            logger.error("Vapi provisioning failed for tenant %s: %s", tenant.id, e)
            result.errors.append(f"Vapi: {e}")

    if settings.twilio_enabled and not tenant.twilio_subaccount_sid:
        try:
            account = twilio.create_subaccount(f"{tenant.name} Subaccount")
            tenant.twilio_subaccount_sid = account["sid"]
            result.twilio_subaccount_sid = account["sid"]
            logger.info("Twilio subaccount %s created for tenant %s", account["sid"], tenant.id)
        except (requests.RequestException, ProvisioningError) as e:
            logger.error("Twilio provisioning failed for tenant %s: %s", tenant.id, e)
            result.errors.append(f"Twilio: {e}")

    if settings.resend_enabled and not tenant.resend_domain_id:
        domain_name = resend_domains.tenant_domain_name(tenant.name, tenant.id)
        try:
            domain = resend_domains.create_domain(domain_name)
            tenant.resend_domain_id = domain["id"]
            result.resend_domain_id = domain["id"]
            db.add(MailboxDomain(tenant_id=tenant.id, domain=domain_name, resend_domain_id=domain["id"]))
            logger.info("Resend domain %s created for tenant %s", domain_name, tenant.id)
        except Exception as e:
            # the resend SDK raises its own error hierarchy
            logger.error("Resend provisioning failed for tenant %s: %s", tenant.id, e)
            result.errors.append(f"Resend: {e}")

    db.commit()
    result.success = bool(result.vapi_org_id or result.twilio_subaccount_sid)
    return result


def external_account_status(tenant: Tenant) -> dict:
    """Which vendor accounts are linked; voice and SMS are required, email optional."""
    has_voice = bool(tenant.vapi_org_id)
    has_sms = bool(tenant.twilio_subaccount_sid)
    has_email = bool(tenant.resend_domain_id)
    return {
        "vapi_org_id": tenant.vapi_org_id,
        "twilio_subaccount_sid": tenant.twilio_subaccount_sid,
        "resend_domain_id": tenant.resend_domain_id,
        "has_voice": has_voice,
        "has_sms": has_sms,
        "has_email": has_email,
        "fully_provisioned": has_voice and has_sms,
    }
