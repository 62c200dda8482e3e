"""
App configuration. All credentials come from the environment, never hardcoded.

Load from .env via pydantic_settings. Each vendor integration is switched on
by the presence of its credentials; in production (ENVIRONMENT=production)
the secrets guarding cron and webhooks are validated at startup.
"""
from pydantic import model_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings from environment."""

    database_url: str = "sqlite:///./juno.db"  # Use postgresql://... for production
    environment: str = "development"  # development | production
    app_url: str = "http://localhost:3000"

    # Shared secret for scheduler-initiated endpoints (Authorization: Bearer ...)
    cron_secret: str = ""

    # Stripe payments
    stripe_secret_key: str = ""
    stripe_webhook_secret: str = ""
    currency: str = "usd"

    # Twilio telephony (subaccount per tenant)
    twilio_account_sid: str = ""
    twilio_auth_token: str = ""

    # Vapi voice AI (organization per tenant)
    vapi_api_key: str = ""

    # Resend transactional email
    resend_api_key: str = ""
    resend_from_email: str = "Juno <noreply@example.com>"
    email_domain_suffix: str = "mail.example.com"

    # Document storage (S3 or any S3-compatible endpoint)
    s3_endpoint_url: str = ""
    s3_access_key_id: str = ""
    s3_secret_access_key: str = ""
    s3_bucket_name: str = "juno-documents"
    s3_region: str = "us-east-1"
    document_max_bytes: int = 10 * 1024 * 1024
    document_url_ttl_seconds: int = 300

    # Manual sales tax on credit purchases
    manual_tax_enabled: bool = False
    tax_rate: float = 0.13
    tax_name: str = "HST"
    tax_description: str = "Harmonized Sales Tax (Ontario)"

    # Auto-recharge
    auto_recharge_default_minimum: int = 100
    auto_recharge_default_amount: int = 1000
    auto_recharge_cooldown_minutes: int = 60

    # Phone numbers, billed in credits
    phone_number_setup_credits: int = 500
    phone_number_monthly_credits: int = 100
    billing_period_days: int = 30
    suspended_retry_days: int = 7

    # Team and onboarding
    invitation_ttl_days: int = 7
    signup_bonus_credits: int = 0

    # Rate limiting
    rate_limit_requests_per_minute_ip: int = 100
    rate_limit_requests_per_minute_user: int = 100

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"

    @property
    def stripe_enabled(self) -> bool:
        return bool(self.stripe_secret_key)

    @property
    def twilio_enabled(self) -> bool:
        return bool(self.twilio_account_sid and self.twilio_auth_token)

    @property
    def vapi_enabled(self) -> bool:
        return bool(self.vapi_api_key)

    @property
    def resend_enabled(self) -> bool:
        return bool(self.resend_api_key)

    @property
    def storage_enabled(self) -> bool:
        return bool(self.s3_access_key_id and self.s3_secret_access_key)

    @model_validator(mode="after")
    def validate_production_secrets(self):
        """Fail fast in production if the secrets guarding internal endpoints are missing."""
        if self.environment != "production":
            return self
        if not self.cron_secret:
            raise ValueError("In production, CRON_SECRET must be set in .env")
        if self.stripe_secret_key and not self.stripe_webhook_secret:
            raise ValueError(
                "In production, STRIPE_WEBHOOK_SECRET must be set when STRIPE_SECRET_KEY is set"
            )
        if not 0 <= self.tax_rate < 1:
            raise ValueError("TAX_RATE must be between 0 and 1")
        return self


settings = Settings()
