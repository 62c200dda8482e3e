"""
Pydantic schemas for the API.

- String inputs carry explicit max_length.
- Request bodies use extra="forbid", except the organization update which
  ignores fields outside its allow-list.
"""
from datetime import datetime
from typing import Any, Literal, Optional

from pydantic import BaseModel, Field, ConfigDict

MAX_LEN_NAME = 255
MAX_LEN_EMAIL = 320
MAX_LEN_SHORT = 100
MAX_LEN_DESCRIPTION = 2000
MAX_LEN_NOTES = 2000
MAX_LEN_TOKEN = 64


# Organization

class OrganizationSetup(BaseModel):
    model_config = ConfigDict(extra="forbid")
    name: str = Field(..., min_length=1, max_length=MAX_LEN_NAME)
    email: str = Field(..., min_length=3, max_length=MAX_LEN_EMAIL)
    first_name: Optional[str] = Field(None, max_length=MAX_LEN_SHORT)
    last_name: Optional[str] = Field(None, max_length=MAX_LEN_SHORT)
    industry: Optional[str] = Field(None, max_length=MAX_LEN_SHORT)
    description: Optional[str] = Field(None, max_length=MAX_LEN_DESCRIPTION)
    size: Optional[str] = Field(None, max_length=50)
    location: Optional[str] = Field(None, max_length=MAX_LEN_NAME)
    business_use_case: Optional[str] = Field(None, max_length=MAX_LEN_DESCRIPTION)
    messaging_volume_monthly: Optional[int] = Field(None, ge=0)


class OrganizationUpdate(BaseModel):
    """Only these fields are ever written; anything else in the body is dropped."""
    model_config = ConfigDict(extra="ignore")
    name: Optional[str] = Field(None, min_length=1, max_length=MAX_LEN_NAME)
    industry: Optional[str] = Field(None, max_length=MAX_LEN_SHORT)
    description: Optional[str] = Field(None, max_length=MAX_LEN_DESCRIPTION)
    size: Optional[str] = Field(None, max_length=50)
    location: Optional[str] = Field(None, max_length=MAX_LEN_NAME)


class OrganizationDelete(BaseModel):
    model_config = ConfigDict(extra="forbid")
    organization_name: str = Field("", max_length=MAX_LEN_NAME)
    confirm_deletion: bool = False


class OrganizationOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    name: str
    schema_name: Optional[str] = None
    industry: Optional[str] = None
    description: Optional[str] = None
    size: Optional[str] = None
    location: Optional[str] = None
    setup_completed: bool = False
    approval_status: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class OrganizationSetupResponse(BaseModel):
    """Returned once on setup; the only response that includes api_key."""
    organization: OrganizationOut
    user_id: int
    api_key: Optional[str] = None


class OrganizationStatus(BaseModel):
    approval_status: str
    rejection_reason: Optional[str] = None
    additional_info_requested: Optional[str] = None
    approved_at: Optional[datetime] = None
    external_accounts: dict[str, Any]


class OrganizationDeleteResponse(BaseModel):
    success: bool
    message: str
    cleanup_results: dict[str, bool]
    user_note: str


# Credits

class CreditTransactionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    amount: int
    balance_after: int
    transaction_type: str
    description: str
    reference_id: Optional[str] = None
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None


class CreditsOut(BaseModel):
    balance: int
    transactions: list[CreditTransactionOut]


class CreditUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")
    amount: float
    transaction_type: str = Field(..., min_length=1, max_length=40)
    description: str = Field(..., min_length=1, max_length=MAX_LEN_DESCRIPTION)
    reference_id: Optional[str] = Field(None, max_length=MAX_LEN_NAME)


class CreditUpdateResponse(BaseModel):
    success: bool
    balance: int
    transaction_id: int


class CreditPackageOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    name: str
    credits: int
    price_usd_cents: int


# Payments

class PaymentMethodOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    stripe_payment_method_id: str
    card_brand: Optional[str] = None
    card_last4: Optional[str] = None
    card_exp_month: Optional[int] = None
    card_exp_year: Optional[int] = None
    is_default: bool
    created_at: Optional[datetime] = None


class PaymentMethodAction(BaseModel):
    model_config = ConfigDict(extra="forbid")
    action: str = Field(..., min_length=1, max_length=40)
    payment_method_id: Optional[int] = Field(None, gt=0)


class PaymentIntentCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")
    package_id: int = Field(..., gt=0)


class AutoRechargeUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")
    is_enabled: bool = False
    minimum_balance: Optional[int] = Field(None, ge=0)
    recharge_amount: Optional[int] = Field(None, gt=0)
    payment_method_id: Optional[int] = Field(None, gt=0)
    trigger_now: bool = False


class AutoRechargeOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    is_enabled: bool
    minimum_balance: int
    recharge_amount: int
    payment_method_id: Optional[int] = None
    last_triggered_at: Optional[datetime] = None
    payment_method: Optional[PaymentMethodOut] = None


# Team

class InvitationCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")
    email: str = Field(..., min_length=3, max_length=MAX_LEN_EMAIL)
    role_id: int = Field(..., gt=0)


class InvitationOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    email: str
    role_id: int
    status: str
    expires_at: datetime
    accepted_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class InvitationAccept(BaseModel):
    model_config = ConfigDict(extra="forbid")
    token: str = Field(..., min_length=1, max_length=MAX_LEN_TOKEN)
    first_name: Optional[str] = Field(None, max_length=MAX_LEN_SHORT)
    last_name: Optional[str] = Field(None, max_length=MAX_LEN_SHORT)


class RoleOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    role_name: str


class TeamMemberOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    role_name: str
    date_of_joining: Optional[datetime] = None


# Customers

CustomerStatus = Literal["new", "contacted", "qualified", "converted", "churned"]


class CustomerCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")
    first_name: str = Field(..., min_length=1, max_length=MAX_LEN_SHORT)
    last_name: Optional[str] = Field(None, max_length=MAX_LEN_SHORT)
    email: Optional[str] = Field(None, max_length=MAX_LEN_EMAIL)
    phone_number: Optional[str] = Field(None, max_length=32)
    address: Optional[str] = Field(None, max_length=MAX_LEN_DESCRIPTION)
    status: CustomerStatus = "new"
    custom_fields: dict[str, Any] = Field(default_factory=dict)
    assigned_to: Optional[int] = Field(None, gt=0)


class CustomerUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")
    first_name: Optional[str] = Field(None, min_length=1, max_length=MAX_LEN_SHORT)
    last_name: Optional[str] = Field(None, max_length=MAX_LEN_SHORT)
    email: Optional[str] = Field(None, max_length=MAX_LEN_EMAIL)
    phone_number: Optional[str] = Field(None, max_length=32)
    address: Optional[str] = Field(None, max_length=MAX_LEN_DESCRIPTION)
    status: Optional[CustomerStatus] = None
    custom_fields: Optional[dict[str, Any]] = None
    assigned_to: Optional[int] = Field(None, gt=0)
    last_interaction: Optional[datetime] = None


class CustomerOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    first_name: str
    last_name: Optional[str] = None
    email: Optional[str] = None
    phone_number: Optional[str] = None
    address: Optional[str] = None
    status: Optional[str] = None
    custom_fields: Optional[dict[str, Any]] = None
    assigned_to: Optional[int] = None
    last_interaction: Optional[datetime] = None
    created_at: Optional[datetime] = None


class CustomerPage(BaseModel):
    customers: list[CustomerOut]
    total: int
    page: int
    page_size: int


# Channels

class PhoneNumberCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")
    phone_number: str = Field(..., pattern=r"^\+[1-9]\d{6,14}$")


class PhoneNumberOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    phone_number: str
    status: Optional[str] = None
    monthly_cost: int
    next_billing_date: Optional[datetime] = None
    vapi_phone_number_id: Optional[str] = None
    created_at: Optional[datetime] = None


class PhoneNumberPurchase(BaseModel):
    phone_number: PhoneNumberOut
    credits_deducted: int
    vapi_integrated: bool


class VoiceAgentCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")
    name: str = Field(..., min_length=1, max_length=MAX_LEN_NAME)
    voice: str = Field(..., min_length=1, max_length=50)
    script: str = Field(..., min_length=1, max_length=MAX_LEN_DESCRIPTION)
    phone_number_id: Optional[int] = Field(None, gt=0)


class VoiceAgentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    name: str
    voice: str
    script: str
    phone_number_id: Optional[int] = None
    vapi_agent_id: Optional[str] = None
    status: Optional[str] = None
    created_at: Optional[datetime] = None


# Documents

class DocumentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    document_type: str
    file_name: str
    file_size: int
    mime_type: str
    status: str
    review_notes: Optional[str] = None
    reviewed_at: Optional[datetime] = None
    upload_date: Optional[datetime] = None


class DocumentReview(BaseModel):
    model_config = ConfigDict(extra="forbid")
    status: Literal["pending", "approved", "rejected", "requires_info"]
    review_notes: Optional[str] = Field(None, max_length=MAX_LEN_NOTES)


# Super-admin

class StatusUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")
    tenant_id: int = Field(..., gt=0)
    status: Literal["approve", "reject", "request_info"]
    reason: Optional[str] = Field(None, max_length=MAX_LEN_NOTES)


class CreditAdjustment(BaseModel):
    model_config = ConfigDict(extra="forbid")
    amount: int
    transaction_type: Literal["credit_adjustment", "credit_bonus", "credit_refund", "credit_penalty"]
    reason: str = Field(..., max_length=MAX_LEN_NOTES)
