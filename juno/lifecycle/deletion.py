"""
Permanent organization deletion.

Vendor resources are cleaned up first, best-effort: each failure is logged and
reported as False in the cleanup results but never stops the deletion. Local
rows are then removed in one transaction. Member accounts survive without a
tenant so they can set up or join another organization.
"""
import logging
from dataclasses import dataclass, asdict

import requests
from sqlalchemy.orm import Session

from juno.config import settings
from juno.connectors import resend_domains, twilio, vapi
from juno.models import (
    AutoRechargeSetting,
    CreditBalance,
    CreditTransaction,
    Customer,
    Invitation,
    MailboxDomain,
    OrganizationDocument,
    PaymentMethod,
    PaymentRecord,
    PhoneNumber,
    StripeCustomer,
    Tenant,
    UserAccount,
    VoiceAgent,
)

logger = logging.getLogger(__name__)

USER_NOTE = "Your account remains active. You can set up or join a new organization."

# Child tables, deleted before the tenant row
TENANT_OWNED = (
    Customer,
    VoiceAgent,
    PhoneNumber,
    MailboxDomain,
    Invitation,
    OrganizationDocument,
    AutoRechargeSetting,
    PaymentRecord,
    PaymentMethod,
    StripeCustomer,
    CreditTransaction,
    CreditBalance,
)


@dataclass
class CleanupResults:
    vapi_org: bool = False
    twilio_subaccount: bool = False
    resend_domains: bool = False
    voice_agents: bool = False
    phone_numbers: bool = False

    def to_dict(self) -> dict:
        return asdict(self)


def _cleanup_vapi(db: Session, tenant: Tenant, results: CleanupResults) -> None:
    org_id = tenant.vapi_org_id
    agents = db.query(VoiceAgent).filter(VoiceAgent.tenant_id == tenant.id).all()
    failures = 0
    for agent in agents:
        if not agent.vapi_agent_id:
            continue
        try:
            vapi.delete_assistant(agent.vapi_agent_id, org_id)
        except requests.RequestException as e:
            failures += 1
            logger.warning("Failed to delete Vapi assistant %s: %s", agent.vapi_agent_id, e)
    results.voice_agents = failures == 0

    numbers = db.query(PhoneNumber).filter(PhoneNumber.tenant_id == tenant.id).all()
    failures = 0
    for number in numbers:
        if not number.vapi_phone_number_id:
            continue
        try:
            vapi.delete_phone_number(number.vapi_phone_number_id, org_id)
        except requests.RequestException as e:
            failures += 1
            logger.warning("Failed to delete Vapi phone number %s: %s", number.vapi_phone_number_id, e)
    results.phone_numbers = failures == 0

    try:
        vapi.delete_organization(org_id)
        results.vapi_org = True
        logger.info("Deleted Vapi organization %s", org_id)
    except requests.RequestException as e:
        logger.error("Failed to delete Vapi organization %s: %s", org_id, e)


def _cleanup_twilio(tenant: Tenant, results: CleanupResults) -> None:
    try:
        twilio.close_subaccount(tenant.twilio_subaccount_sid)
        results.twilio_subaccount = True
        logger.info("Closed Twilio subaccount %s", tenant.twilio_subaccount_sid)
    except requests.RequestException as e:
        logger.error("Failed to close Twilio subaccount %s: %s", tenant.twilio_subaccount_sid, e)


def _cleanup_resend(db: Session, tenant: Tenant, results: CleanupResults) -> None:
    domain_ids = {
        d.resend_domain_id
        for d in db.query(MailboxDomain).filter(MailboxDomain.tenant_id == tenant.id).all()
        if d.resend_domain_id
    }
    if tenant.resend_domain_id:
        domain_ids.add(tenant.resend_domain_id)
    failures = 0
    for domain_id in sorted(domain_ids):
        try:
            resend_domains.remove_domain(domain_id)
        except Exception as e:
            failures += 1
            logger.warning("Failed to delete Resend domain %s: %s", domain_id, e)
    results.resend_domains = failures == 0


def cleanup_external_accounts(db: Session, tenant: Tenant) -> CleanupResults:
    """Best-effort removal of the tenant's vendor resources. Never raises for vendor errors."""
    results = CleanupResults()
    if tenant.vapi_org_id and settings.vapi_enabled:
        _cleanup_vapi(db, tenant, results)
    if tenant.twilio_subaccount_sid and settings.twilio_enabled:
        _cleanup_twilio(tenant, results)
    if settings.resend_enabled:
        _cleanup_resend(db, tenant, results)
    return results


def delete_tenant_records(db: Session, tenant: Tenant) -> None:
    """Delete every tenant-owned row and the tenant itself in one transaction."""
    tenant_id = tenant.id
    try:
        for model in TENANT_OWNED:
            db.query(model).filter(model.tenant_id == tenant_id).delete(synchronize_session=False)
        db.query(UserAccount).filter(UserAccount.tenant_id == tenant_id).update(
            {UserAccount.tenant_id: None}, synchronize_session=False
        )
        db.delete(tenant)
        db.commit()
    except Exception:
        db.rollback()
        raise
    logger.info("Deleted tenant %s and all of its records", tenant_id)


def delete_organization(db: Session, tenant: Tenant) -> CleanupResults:
    results = cleanup_external_accounts(db, tenant)
    logger.info("External cleanup for tenant %s: %s", tenant.id, results.to_dict())
    delete_tenant_records(db, tenant)
    return results
