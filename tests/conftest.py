import pytest
from unittest.mock import AsyncMock, MagicMock, patch
from datetime import datetime
from zoneinfo import ZoneInfo
import sys
from pathlib import Path

# Add project root to Python path
project_root = str(Path(__file__).parent.parent)
sys.path.append(project_root)

from api.context import MessageContext
from api.models import Account, InboundMessage, MessageKind
from api.pipeline import MessagePipeline
from api.routes import app
from api.services.audio import AudioService
from api.services.commands import CommandShortcutHandler
from api.services.extraction import ExpenseExtractor
from api.services.identity import IdentityResolver
from api.services.intent import IntentClassifier
from api.services.query import QueryExecutor, QueryPlanner
from api.services.reply import ReplyDispatcher
from lib.config import Settings
from lib.database import ExpenseStore
from lib.dedup import IdempotencyStore
from lib.openai_client import OpenAIClient
from lib.whatsapp_client import WhatsAppClient

TEST_PHONE = "919876543210"
TEST_TZ = ZoneInfo("Asia/Kolkata")
TEST_NOW = datetime(2026, 10, 19, 14, 30, tzinfo=TEST_TZ)


@pytest.fixture
def settings():
    return Settings(
        whatsapp_verify_token="verify-me",
        whatsapp_token="wa-token",
        whatsapp_phone_number_id="1234567890",
        supabase_url="https://example.supabase.co",
        supabase_service_role_key="service-key",
        groq_api_key="server-key",
    )


@pytest.fixture
def test_client(settings):
    with patch('api.routes.get_settings', return_value=settings):
        app.config['TESTING'] = True
        yield app.test_client()


@pytest.fixture
def account():
    return Account(id="user-1", phone=TEST_PHONE)


@pytest.fixture
def mock_store(account):
    store = MagicMock(spec=ExpenseStore)
    store.find_account.return_value = account
    store.insert_expenses.side_effect = lambda records: [record.to_row() for record in records]
    store.fetch_since.return_value = []
    store.fetch_expenses.return_value = []
    return store


@pytest.fixture
def mock_llm():
    llm = MagicMock(spec=OpenAIClient)
    llm.generate_response = AsyncMock(return_value="")
    llm.transcribe_audio = AsyncMock(return_value="")
    return llm


@pytest.fixture
def mock_whatsapp():
    client = MagicMock(spec=WhatsAppClient)
    client.send_text = AsyncMock()
    client.get_media = AsyncMock(return_value=("https://lookaside.example/media/abc", "audio/ogg; codecs=opus"))
    client.download_media = AsyncMock(return_value=b"OggS-fake-audio")
    return client


@pytest.fixture
def text_message():
    def _make(body, message_id="wamid.TEST1", sender="+91 98765-43210"):
        return InboundMessage(message_id=message_id, sender=sender, kind=MessageKind.TEXT, text=body, raw_type='text')
    return _make


@pytest.fixture
def audio_message():
    return InboundMessage(
        message_id="wamid.AUDIO1",
        sender=TEST_PHONE,
        kind=MessageKind.AUDIO,
        media_id="media-123",
        mime_type="audio/ogg; codecs=opus",
        raw_type='audio'
    )


@pytest.fixture
def make_context(account, mock_llm, text_message):
    """Context as it looks after identity resolution"""
    def _make(text, message=None):
        context = MessageContext(message=message or text_message(text), now=TEST_NOW)
        context.account = account
        context.llm = mock_llm
        context.text = text
        return context
    return _make


@pytest.fixture
def build_pipeline(mock_store, mock_llm, mock_whatsapp):
    def _build(dedup_ttl=0, **overrides):
        return MessagePipeline(
            identity=IdentityResolver(mock_store, default_api_key="server-key", llm_factory=lambda api_key: mock_llm),
            audio=AudioService(mock_whatsapp),
            shortcuts=CommandShortcutHandler(mock_store),
            classifier=overrides.get('classifier', IntentClassifier()),
            extractor=ExpenseExtractor(mock_store),
            planner=overrides.get('planner', QueryPlanner()),
            executor=QueryExecutor(mock_store, TEST_TZ),
            dispatcher=ReplyDispatcher(mock_whatsapp),
            tz=TEST_TZ,
            dedup=IdempotencyStore(dedup_ttl)
        )
    return _build
