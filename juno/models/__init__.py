"""SQLAlchemy models."""
from juno.models.tenant import Tenant
from juno.models.user import Role, UserAccount
from juno.models.invitation import Invitation
from juno.models.customer import Customer
from juno.models.credit import CreditBalance, CreditTransaction, CreditPackage
from juno.models.billing import StripeCustomer, PaymentMethod, PaymentRecord, AutoRechargeSetting
from juno.models.document import OrganizationDocument
from juno.models.channel import VoiceAgent, PhoneNumber, MailboxDomain
from juno.models.audit import AdminAuditLog

__all__ = [
    "Tenant",
    "Role",
    "UserAccount",
    "Invitation",
    "Customer",
    "CreditBalance",
    "CreditTransaction",
    "CreditPackage",
    "StripeCustomer",
    "PaymentMethod",
    "PaymentRecord",
    "AutoRechargeSetting",
    "OrganizationDocument",
    "VoiceAgent",
    "PhoneNumber",
    "MailboxDomain",
    "AdminAuditLog",
]
