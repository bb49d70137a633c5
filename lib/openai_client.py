from openai import AsyncOpenAI, OpenAIError
from typing import Optional
import logging

from lib.config import Settings
from lib.error_handler import ModelError

logger = logging.getLogger(__name__)


class OpenAIClient:
    """Chat-completion and transcription calls against an OpenAI-compatible endpoint"""

    def __init__(
        self,
        api_key: str,
        base_url: Optional[str] = None,
        model: str = 'llama-3.1-8b-instant',
        transcription_model: str = 'whisper-large-v3-turbo',
        language: str = 'en'
    ):
        self.client = AsyncOpenAI(api_key=api_key, base_url=base_url)
        self.model = model
        self.transcription_model = transcription_model
        self.language = language

    @classmethod
    def from_settings(cls, api_key: str, settings: Settings) -> 'OpenAIClient':
        return cls(
            api_key=api_key,
            base_url=settings.llm_base_url or None,
            model=settings.llm_model,
            transcription_model=settings.transcription_model,
            language=settings.transcription_language
        )

    async def transcribe_audio(self, audio_data: bytes, filename: str, mime_type: str) -> str:
        """
        Transcribe an audio blob, uploaded as multipart form data
        """
        try:
            transcript = await self.client.audio.transcriptions.create(
                model=self.transcription_model,
                file=(filename, audio_data, mime_type),
                language=self.language,
                response_format="json"
            )
            return transcript.text or ""

        except OpenAIError as e:
            raise ModelError(f"Transcription failed: {str(e)}", status_code=502)

    async def generate_response(self, prompt: str, temperature: float = 0.0) -> str:
        """
        Single-turn chat completion, returns the raw message content
        """
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": prompt}],
                temperature=temperature
            )
            if not response.choices:
                raise ModelError("Completion returned no choices", status_code=502)
            return response.choices[0].message.content or ""

        except OpenAIError as e:
            raise ModelError(f"Response generation failed: {str(e)}", status_code=502)
