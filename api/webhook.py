"""
WhatsApp webhook transport: handshake, signature check and envelope parsing.
"""
import hashlib
import hmac
import logging
from typing import Any, Dict, Mapping, Optional, Tuple

from api.models import InboundMessage

logger = logging.getLogger(__name__)

HANDSHAKE_PARAMS = ('hub.mode', 'hub.verify_token', 'hub.challenge')


def is_handshake(params: Mapping[str, str]) -> bool:
    return any(params.get(name) is not None for name in HANDSHAKE_PARAMS)


def verify_handshake(params: Mapping[str, str], verify_token: str) -> Tuple[str, int]:
    """Echo the challenge when the shared secret matches, 403 otherwise"""
    mode = params.get('hub.mode')
    token = params.get('hub.verify_token') or ''
    challenge = params.get('hub.challenge') or ''

    if mode == 'subscribe' and verify_token and hmac.compare_digest(token, verify_token):
        logger.info("Webhook verified successfully")
        return challenge, 200

    logger.warning("Webhook verification rejected")
    return 'Forbidden', 403


def signature_valid(app_secret: str, body: bytes, header: Optional[str]) -> bool:
    """Check X-Hub-Signature-256 (sha256=<hex hmac of the raw body>)"""
    if not header or not header.startswith('sha256='):
        return False
    expected = hmac.new(app_secret.encode(), body, hashlib.sha256).hexdigest()
    return hmac.compare_digest(header[len('sha256='):], expected)


def extract_message(payload: Dict[str, Any]) -> Optional[InboundMessage]:
    """First message of the first change of the first entry, if there is one.

    Status callbacks (sent, delivered, read) carry no messages and yield None.
    """
    try:
        value = payload['entry'][0]['changes'][0]['value']
    except (KeyError, IndexError, TypeError):
        return None

    messages = value.get('messages') if isinstance(value, dict) else None
    if not messages:
        return None
    return InboundMessage.from_webhook(messages[0])
