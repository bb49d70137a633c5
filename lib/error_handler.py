from typing import Optional
import logging

logger = logging.getLogger(__name__)


class AppError(Exception):
    def __init__(self, message: str, status_code: int = 500, user_message: Optional[str] = None):
        self.message = message
        self.status_code = status_code
        self.user_message = user_message or "Something went wrong. Please try again."
        super().__init__(self.message)


class ConfigurationError(AppError):
    """A required setting or credential is missing"""


class ChannelError(AppError):
    """The WhatsApp Graph API rejected or failed a call"""


class ModelError(AppError):
    """The chat-completion or transcription endpoint failed"""


class StorageError(AppError):
    """Supabase read or write failed"""


class ErrorHandler:
    @staticmethod
    def handle_transcription_error(error: Exception) -> str:
        logger.error(f"Transcription error: {str(error)}")
        return "Sorry, I had trouble processing your voice message. Please try again or type your expenses."

    @staticmethod
    def handle_storage_error(error: Exception) -> str:
        logger.error(f"Storage error: {str(error)}")
        return "Something went wrong saving your expenses. Please try again."

    @staticmethod
    def handle_read_error(error: Exception) -> str:
        logger.error(f"Read error: {str(error)}")
        return "Something went wrong looking up your expenses. Please try again."

    @staticmethod
    def handle_unexpected_error(error: Exception) -> str:
        logger.error(f"Unexpected error: {str(error)}", exc_info=error)
        return "Sorry, I encountered an error processing your message. Please try again."
