from functools import lru_cache
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file='.env', env_file_encoding='utf-8', extra='ignore')

    # WhatsApp Cloud API settings
    whatsapp_verify_token: str = ''
    whatsapp_token: str = ''
    whatsapp_phone_number_id: str = ''
    whatsapp_app_secret: str = ''
    whatsapp_api_url: str = 'https://graph.facebook.com/v21.0'

    # Language model settings (OpenAI-compatible endpoint)
    groq_api_key: str = ''
    llm_base_url: str = 'https://api.groq.com/openai/v1'
    llm_model: str = 'llama-3.1-8b-instant'
    transcription_model: str = 'whisper-large-v3-turbo'
    transcription_language: str = 'en'

    # Supabase settings
    supabase_url: str = ''
    supabase_service_role_key: str = ''

    # Behaviour
    timezone: str = 'Asia/Kolkata'
    intent_fallback: str = 'expense'
    query_plan_fallback: str = 'unscoped'
    dedup_ttl_seconds: int = 0
    log_level: str = 'INFO'

    def missing(self) -> List[str]:
        """Names of required settings that are empty"""
        required = {
            'WHATSAPP_VERIFY_TOKEN': self.whatsapp_verify_token,
            'WHATSAPP_TOKEN': self.whatsapp_token,
            'WHATSAPP_PHONE_NUMBER_ID': self.whatsapp_phone_number_id,
            'SUPABASE_URL': self.supabase_url,
            'SUPABASE_SERVICE_ROLE_KEY': self.supabase_service_role_key,
        }
        return [name for name, value in required.items() if not value]


@lru_cache()
def get_settings() -> Settings:
    return Settings()
