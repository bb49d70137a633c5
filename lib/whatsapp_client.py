import asyncio
import aiohttp
import logging
from typing import Tuple

from lib.error_handler import ChannelError

logger = logging.getLogger(__name__)

DEFAULT_MEDIA_MIME_TYPE = 'audio/ogg'


class WhatsAppClient:
    """Thin async client for the WhatsApp Cloud (Graph) API"""

    def __init__(self, token: str, phone_number_id: str, api_url: str = 'https://graph.facebook.com/v21.0'):
        self.token = token
        self.phone_number_id = phone_number_id
        self.api_url = api_url.rstrip('/')

    @property
    def _headers(self) -> dict:
        return {'Authorization': f"Bearer {self.token}"}

    async def send_text(self, to_number: str, body: str) -> None:
        """Send a plain text message to a WhatsApp user"""
        url = f"{self.api_url}/{self.phone_number_id}/messages"
        payload = {
            'messaging_product': 'whatsapp',
            'to': to_number,
            'type': 'text',
            'text': {'body': body},
        }
        try:
            async with aiohttp.ClientSession() as session:
                async with session.post(url, json=payload, headers=self._headers) as response:
                    if response.status >= 300:
                        error_text = await response.text()
                        raise ChannelError(f"WhatsApp send failed: {response.status} {error_text}", status_code=502)
            logger.info(f"Message sent successfully to {to_number}")
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise ChannelError(f"WhatsApp send failed: {str(e)}", status_code=502)

    async def get_media(self, media_id: str) -> Tuple[str, str]:
        """Resolve a media id to a short-lived download URL and its MIME type"""
        try:
            async with aiohttp.ClientSession() as session:
                async with session.get(f"{self.api_url}/{media_id}", headers=self._headers) as response:
                    if response.status != 200:
                        error_text = await response.text()
                        raise ChannelError(f"Failed to get media URL: {response.status} {error_text}", status_code=502)
                    data = await response.json()
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            raise ChannelError(f"Failed to get media URL: {str(e)}", status_code=502)

        if not data.get('url'):
            raise ChannelError(f"Media {media_id} has no download URL", status_code=502)
        return data['url'], data.get('mime_type') or DEFAULT_MEDIA_MIME_TYPE

    async def download_media(self, media_url: str) -> bytes:
        """Download the binary behind a media URL"""
        try:
            async with aiohttp.ClientSession() as session:
                async with session.get(media_url, headers=self._headers) as response:
                    if response.status != 200:
                        error_text = await response.text()
                        raise ChannelError(f"Failed to download audio: {response.status} {error_text}", status_code=502)
                    audio_data = await response.read()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise ChannelError(f"Failed to download audio: {str(e)}", status_code=502)

        logger.info(f"Audio file downloaded: {len(audio_data)} bytes")
        return audio_data
