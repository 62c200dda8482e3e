"""Domain exceptions raised by service code and translated to HTTP errors by the routes."""


class JunoError(Exception):
    """Base class for expected, user-reportable failures."""


class LedgerError(JunoError):
    """Credit ledger call was malformed (bad type, zero amount, missing balance row)."""


class InsufficientCreditsError(LedgerError):
    """A debit would take the balance below zero."""

    def __init__(self, balance: int, amount: int):
        self.balance = balance
        self.amount = amount
        super().__init__(f"Cannot deduct {abs(amount)} credits. Current balance: {balance}")


class PaymentProviderError(JunoError):
    """The payment provider is unavailable or returned an unexpected error."""


class PaymentDeclinedError(PaymentProviderError):
    """The card was declined."""


class AutoRechargeError(JunoError):
    """Auto-recharge is enabled but cannot be carried out as configured."""


class DocumentRejectedError(JunoError):
    """An upload failed validation (type, size, or empty file)."""


class ProvisioningError(JunoError):
    """A vendor refused to create an external account."""
