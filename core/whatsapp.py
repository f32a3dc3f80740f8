import re
import logging
import httpx

from config import WHATSAPP_API_URL, WHATSAPP_SECRET_KEY

logger = logging.getLogger(__name__)


def format_phone_number(phone: str) -> str:
    """Local (0...) and country-code (92...) numbers pass through; others get 92 prefixed."""
    clean = re.sub(r"[\s\-()+]", "", phone or "")
    if clean.startswith("0") or clean.startswith("92"):
        return clean
    return "92" + clean


def is_configured() -> bool:
    return bool(WHATSAPP_API_URL and WHATSAPP_SECRET_KEY)


async def send_whatsapp_message(phone: str, message: str) -> dict:
    if not is_configured():
        return {"success": False, "error": "WhatsApp gateway is not configured"}
    mobile = format_phone_number(phone)
    try:
        async with httpx.AsyncClient(timeout=30.0) as client_http:
            response = await client_http.post(
                WHATSAPP_API_URL,
                data={
                    "secreate_key": WHATSAPP_SECRET_KEY,
                    "mobile_number": mobile,
                    "message": message,
                },
            )
        if response.status_code != 200:
            logger.error(f"WhatsApp API returned {response.status_code}: {response.text[:200]}")
            return {"success": False, "error": f"WhatsApp API returned status {response.status_code}"}
        return {"success": True, "message": "WhatsApp message sent"}
    except httpx.TimeoutException:
        logger.error(f"WhatsApp request to {mobile} timed out")
        return {"success": False, "error": "Request timed out"}
    except httpx.HTTPError as e:
        logger.error(f"WhatsApp request to {mobile} failed: {e}")
        return {"success": False, "error": str(e)}
