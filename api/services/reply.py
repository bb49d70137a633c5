import logging

from lib.error_handler import AppError
from lib.whatsapp_client import WhatsAppClient

logger = logging.getLogger(__name__)


class ReplyDispatcher:
    def __init__(self, whatsapp_client: WhatsAppClient):
        self.client = whatsapp_client

    async def send_message(self, to: str, body: str) -> bool:
        """Send one WhatsApp text; failures are logged, never retried or raised"""
        try:
            logger.info(f"Sending message to {to}: {body[:20]}...")
            await self.client.send_text(to, body)
            return True
        except AppError as e:
            logger.error(f"Failed to send message: {e.message}")
            return False
