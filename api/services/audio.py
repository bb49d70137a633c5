import logging

from api.context import MessageContext, StageResult
from api.models import MessageKind
from lib.error_handler import AppError, ErrorHandler
from lib.whatsapp_client import DEFAULT_MEDIA_MIME_TYPE, WhatsAppClient

logger = logging.getLogger(__name__)

EMPTY_TRANSCRIPTION_MESSAGE = (
    "I couldn't understand the voice message. Please try again or type your expenses."
)

CONTENT_TYPE_MAP = {
    'audio/ogg': 'ogg',
    'audio/opus': 'ogg',
    'audio/mpeg': 'mp3',
    'audio/mp3': 'mp3',
    'audio/mp4': 'm4a',
    'audio/m4a': 'm4a',
    'audio/x-m4a': 'm4a',
    'audio/aac': 'aac',
    'audio/wav': 'wav',
    'audio/x-wav': 'wav',
    'audio/webm': 'webm',
    'audio/amr': 'amr',
}
DEFAULT_EXTENSION = 'ogg'


def get_extension_from_content_type(content_type: str) -> str:
    """Map a MIME type (codec parameters ignored) to a file extension"""
    if not content_type:
        return DEFAULT_EXTENSION

    base_type = content_type.split(';')[0].strip().lower()
    extension = CONTENT_TYPE_MAP.get(base_type)
    if not extension:
        logger.warning(f"Unknown content type: {content_type}, defaulting to {DEFAULT_EXTENSION}")
        return DEFAULT_EXTENSION
    return extension


class AudioService:
    def __init__(self, whatsapp_client: WhatsAppClient):
        self.whatsapp = whatsapp_client

    async def transcribe(self, context: MessageContext) -> StageResult:
        """Replace a voice note with its transcription; text messages pass through"""
        message = context.message
        if message.kind is not MessageKind.AUDIO:
            return StageResult.proceed()

        try:
            if not message.media_id:
                raise AppError("Audio message without a media id", status_code=400)

            media_url, mime_type = await self.whatsapp.get_media(message.media_id)
            mime_type = mime_type or message.mime_type or DEFAULT_MEDIA_MIME_TYPE
            audio_data = await self.whatsapp.download_media(media_url)

            filename = f"voice.{get_extension_from_content_type(mime_type)}"
            transcription = await context.llm.transcribe_audio(audio_data, filename, mime_type)
        except AppError as e:
            return StageResult.abort('transcription failed', ErrorHandler.handle_transcription_error(e))

        transcription = (transcription or '').strip()
        if not transcription:
            logger.info("Transcription came back empty")
            return StageResult.abort('empty transcription', EMPTY_TRANSCRIPTION_MESSAGE)

        logger.info(f"Transcription complete: {transcription[:50]}...")
        context.text = transcription
        return StageResult.proceed()
