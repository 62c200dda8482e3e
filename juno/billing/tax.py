"""Manual sales tax on credit purchases (flat rate, e.g. Ontario HST)."""
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from juno.config import settings


@dataclass(frozen=True)
class TaxCalculation:
    subtotal_cents: int
    tax_rate: float
    tax_cents: int
    total_cents: int
    tax_name: str
    tax_description: str
    is_applicable: bool

    def as_metadata(self) -> dict[str, str]:
        """Flat string map suitable for Stripe metadata."""
        return {
            "subtotal_usd_cents": str(self.subtotal_cents),
            "tax_amount_usd_cents": str(self.tax_cents),
            "tax_rate": str(self.tax_rate),
            "tax_name": self.tax_name,
            "total_usd_cents": str(self.total_cents),
        }


def calculate_tax(
    subtotal_cents: int,
    enabled: Optional[bool] = None,
    rate: Optional[float] = None,
) -> TaxCalculation:
    """Compute tax on a subtotal in cents; tax is rounded half-up to whole cents."""
    enabled = settings.manual_tax_enabled if enabled is None else enabled
    rate = settings.tax_rate if rate is None else rate
    subtotal_cents = int(subtotal_cents)

    if not enabled or subtotal_cents <= 0 or rate <= 0:
        return TaxCalculation(
            subtotal_cents=subtotal_cents,
            tax_rate=0.0,
            tax_cents=0,
            total_cents=max(subtotal_cents, 0),
            tax_name="",
            tax_description="",
            is_applicable=False,
        )

    tax_cents = int((Decimal(subtotal_cents) * Decimal(str(rate))).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    return TaxCalculation(
        subtotal_cents=subtotal_cents,
        tax_rate=rate,
        tax_cents=tax_cents,
        total_cents=subtotal_cents + tax_cents,
        tax_name=settings.tax_name,
        tax_description=settings.tax_description,
        is_applicable=True,
    )
