"""
Outbound WhatsApp transport
Sends text replies through the WhatsApp Cloud API using the stored settings
"""
import os
import httpx
import logging
from typing import Optional, Dict, Any
from sqlalchemy.orm import Session
from config.cache import get_cache, set_cache, delete_cache
from . import crud

logger = logging.getLogger(__name__)

WHATSAPP_API_URL = os.getenv("WHATSAPP_API_URL", "https://graph.facebook.com/v19.0")
SEND_TIMEOUT = float(os.getenv("WHATSAPP_SEND_TIMEOUT", "15"))
SETTINGS_CACHE_KEY = "whatsapp_settings"


def load_settings_snapshot(db: Session) -> Optional[Dict[str, Any]]:
    """Settings as a plain dict, cached so the webhook does not hit the DB per message"""
    cached = get_cache(SETTINGS_CACHE_KEY)
    if cached is not None:
        return cached

    settings = crud.get_whatsapp_settings(db)
    if settings is None:
        return None

    snapshot = {
        "api_key": settings.api_key,
        "phone_number_id": settings.phone_number_id,
        "webhook_verify_token": settings.webhook_verify_token,
    }
    set_cache(SETTINGS_CACHE_KEY, snapshot)
    return snapshot


def reset_settings_cache():
    delete_cache(SETTINGS_CACHE_KEY)


class WhatsAppSender:
    """Sends text messages; logs instead when the API is not configured"""

    def __init__(self, db: Session, client: Optional[httpx.Client] = None):
        self.db = db
        self.client = client

    def send_text(self, phone_number: str, text: str) -> Dict[str, Any]:
        """
        Send a text message to a phone number.

        Returns:
            dict with `sent` (bool), `message_id` (provider id or None) and `error`
        """
        settings = load_settings_snapshot(self.db)
        if not settings or not settings.get("api_key") or not settings.get("phone_number_id"):
            logger.info(f"[WhatsApp Bot] API not configured, reply to {phone_number} not sent: {text}")
            return {"sent": False, "message_id": None, "error": "not_configured"}

        url = f"{WHATSAPP_API_URL.rstrip('/')}/{settings['phone_number_id']}/messages"
        payload = {
            "messaging_product": "whatsapp",
            "to": phone_number,
            "type": "text",
            "text": {"body": text},
        }
        headers = {
            "Authorization": f"Bearer {settings['api_key']}",
            "Content-Type": "application/json",
        }

        try:
            if self.client is not None:
                response = self.client.post(url, json=payload, headers=headers, timeout=SEND_TIMEOUT)
            else:
                with httpx.Client() as client:
                    response = client.post(url, json=payload, headers=headers, timeout=SEND_TIMEOUT)
            response.raise_for_status()
            data = response.json()
            message_id = None
            if data.get("messages"):
                message_id = data["messages"][0].get("id")
            logger.info(f"✅ Reply sent to {phone_number} (id={message_id})")
            return {"sent": True, "message_id": message_id, "error": None}

        except httpx.TimeoutException as e:
            logger.error(f"❌ Timeout sending WhatsApp message to {phone_number}: {e}")
            return {"sent": False, "message_id": None, "error": "timeout"}
        except httpx.HTTPStatusError as e:
            logger.error(f"❌ WhatsApp API error {e.response.status_code} for {phone_number}: {e.response.text[:200]}")
            return {"sent": False, "message_id": None, "error": f"http_{e.response.status_code}"}
        except httpx.HTTPError as e:
            logger.error(f"❌ Error sending WhatsApp message to {phone_number}: {e}")
            return {"sent": False, "message_id": None, "error": str(e)[:200]}
