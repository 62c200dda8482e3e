"""Twilio REST connector for per-tenant subaccounts."""
from typing import Any

import requests

from juno.config import settings
from juno.errors import ProvisioningError

TWILIO_BASE = "https://api.twilio.com/2010-04-01"


def _auth() -> tuple[str, str]:
    return (settings.twilio_account_sid, settings.twilio_auth_token)


def create_subaccount(friendly_name: str) -> dict[str, Any]:
    """Create a subaccount under the master account; returns the payload (has 'sid')."""
    r = requests.post(
        f"{TWILIO_BASE}/Accounts.json",
        data={"FriendlyName": friendly_name},
        auth=_auth(),
        timeout=30,
    )
    r.raise_for_status()
    account = r.json()
    if not account.get("sid"):
        raise ProvisioningError("Twilio returned no subaccount sid")
    return account


def close_subaccount(subaccount_sid: str) -> dict[str, Any]:
    """Permanently close a subaccount. Twilio releases its numbers."""
    r = requests.post(
        f"{TWILIO_BASE}/Accounts/{subaccount_sid}.json",
        data={"Status": "closed"},
        auth=_auth(),
        timeout=30,
    )
    r.raise_for_status()
    return r.json()


def purchase_number(subaccount_sid: str, phone_number: str) -> dict[str, Any]:
    """Buy a number into the tenant's subaccount; returns the payload (has 'sid' and 'phone_number')."""
    r = requests.post(
        f"{TWILIO_BASE}/Accounts/{subaccount_sid}/IncomingPhoneNumbers.json",
        data={"PhoneNumber": phone_number},
        auth=_auth(),
        timeout=30,
    )
    r.raise_for_status()
    number = r.json()
    if not number.get("sid"):
        raise ProvisioningError("Twilio returned no phone number sid")
    return number


def release_number(subaccount_sid: str, number_sid: str) -> None:
    r = requests.delete(
        f"{TWILIO_BASE}/Accounts/{subaccount_sid}/IncomingPhoneNumbers/{number_sid}.json",
        auth=_auth(),
        timeout=30,
    )
    r.raise_for_status()
