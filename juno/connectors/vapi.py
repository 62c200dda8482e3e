"""Vapi voice AI connector: one Vapi organization per tenant."""
from typing import Any, Optional

import requests

from juno.config import settings
from juno.errors import ProvisioningError

VAPI_BASE = "https://api.vapi.ai"


def _headers(org_id: Optional[str] = None) -> dict[str, str]:
    headers = {
        "Authorization": f"Bearer {settings.vapi_api_key}",
        "Content-Type": "application/json",
    }
    if org_id:
        headers["X-Vapi-Org-Id"] = org_id
    return headers


def create_organization(name: str) -> dict[str, Any]:
    """Create a Vapi organization for a tenant; returns the Vapi payload (has 'id')."""
    r = requests.post(
        f"{VAPI_BASE}/org",
        json={"name": f"{name} Organization", "hipaaEnabled": False},
        headers=_headers(),
        timeout=30,
    )
    r.raise_for_status()
    org = r.json()
    if not org.get("id"):
        raise ProvisioningError("Vapi returned no organization id")
    return org


def import_phone_number(phone_number: str, twilio_account_sid: str, org_id: str) -> dict[str, Any]:
    """Register a Twilio number with the tenant's Vapi organization."""
    r = requests.post(
        f"{VAPI_BASE}/phone-number",
        json={
            "provider": "twilio",
            "number": phone_number,
            "name": f"Phone Number {phone_number}",
            "twilioAccountSid": twilio_account_sid,
            "twilioAuthToken": settings.twilio_auth_token,
        },
        headers=_headers(org_id),
        timeout=30,
    )
    r.raise_for_status()
    number = r.json()
    if not number.get("id"):
        raise ProvisioningError("Vapi returned no phone number id")
    return number


def create_assistant(name: str, voice: str, script: str, org_id: str) -> dict[str, Any]:
    """Create an assistant that speaks with an OpenAI voice and follows script."""
    r = requests.post(
        f"{VAPI_BASE}/assistant",
        json={
            "name": name,
            "model": {
                "provider": "openai",
                "model": "gpt-4o-mini",
                "messages": [{
                    "role": "system",
                    "content": f"You are a helpful AI assistant for customer calls. {script}",
                }],
            },
            "voice": {"provider": "openai", "voiceId": voice},
            "firstMessage": script.split(".")[0] + ".",
        },
        headers=_headers(org_id),
        timeout=30,
    )
    r.raise_for_status()
    assistant = r.json()
    if not assistant.get("id"):
        raise ProvisioningError("Vapi returned no assistant id")
    return assistant


def delete_assistant(assistant_id: str, org_id: str) -> None:
    r = requests.delete(f"{VAPI_BASE}/assistant/{assistant_id}", headers=_headers(org_id), timeout=30)
    r.raise_for_status()


def delete_phone_number(phone_number_id: str, org_id: str) -> None:
    r = requests.delete(f"{VAPI_BASE}/phone-number/{phone_number_id}", headers=_headers(org_id), timeout=30)
    r.raise_for_status()


def delete_organization(org_id: str) -> None:
    r = requests.delete(f"{VAPI_BASE}/org/{org_id}", headers=_headers(org_id), timeout=30)
    r.raise_for_status()
