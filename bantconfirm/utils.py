# Filename: bantconfirm/utils.py
# Shared logger plus the optional WhatsApp (Twilio) channel used to tell a
# vendor that an enquiry was assigned to them.

import logging
import time
from typing import Optional

from twilio.rest import Client
from twilio.base.exceptions import TwilioRestException
from decouple import config

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# Twilio credentials from environment; empty values disable notifications
account_sid = config("TWILIO_ACCOUNT_SID", default="")
auth_token = config("TWILIO_AUTH_TOKEN", default="")
twilio_from = config("TWILIO_NUMBER", default="")

_client: Optional[Client] = None


def notifications_enabled() -> bool:
    return bool(account_sid and auth_token and twilio_from)


def get_client() -> Client:
    global _client
    if _client is None:
        _client = Client(account_sid, auth_token)
    return _client


def _wa(n: str) -> str:
    """Ensure the whatsapp: prefix is present."""
    return n if n.startswith("whatsapp:") else f"whatsapp:{n}"


def send_message(to_number: str, body_text: str, *, client=None, max_retries: int = 3, backoff: float = 1.0):
    """
    Send a free-form WhatsApp message via Twilio.

    Retries Twilio errors with exponential backoff and re-raises the last one.
    """
    client = client or get_client()
    _from = _wa(twilio_from)
    _to = _wa(to_number)

    for attempt in range(1, max_retries + 1):
        try:
            message = client.messages.create(from_=_from, to=_to, body=body_text)
            logger.info(f"Message sent OK (attempt {attempt}) SID={message.sid}")
            return message.sid
        except TwilioRestException as e:
            logger.error(
                f"Twilio error (attempt {attempt}) status={getattr(e, 'status', None)} "
                f"code={getattr(e, 'code', None)} msg={e}"
            )
            if attempt < max_retries:
                time.sleep(backoff * 2 ** (attempt - 1))
            else:
                raise


def assignment_message(app_name: str, vendor_name: str, category: str, need: str) -> str:
    return (
        f"Hi {vendor_name}, a new {category} lead has been assigned to you on {app_name}. "
        f"Need: {need}. Log in to your vendor dashboard for the full BANT details."
    )


def notify_vendor_assignment(to_number: Optional[str], text: str, *, client=None) -> bool:
    """Best-effort: never raises, returns whether the message went out."""
    if not to_number:
        logger.info("Vendor has no mobile number; skipping assignment notification.")
        return False
    if client is None and not notifications_enabled():
        return False
    try:
        send_message(to_number, text, client=client, max_retries=2)
        return True
    except Exception as e:
        logger.error(f"Failed to send assignment notification: {e}")
        return False
