"""
Message pipeline: an ordered list of named stages run one after another.

Each stage takes the shared MessageContext and returns a StageResult. The first
terminal result ends the run and its text (if any) is sent back to the sender.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime, tzinfo
from typing import Awaitable, Callable, List, Optional, Tuple
from zoneinfo import ZoneInfo

from supabase import create_client

from api.context import MessageContext, Outcome, StageResult
from api.models import InboundMessage, Intent, MessageKind
from api.services.audio import AudioService
from api.services.commands import CommandShortcutHandler
from api.services.extraction import ExpenseExtractor
from api.services.identity import IdentityResolver
from api.services.intent import IntentClassifier, conversation_reply
from api.services.query import FALLBACK_APOLOGIZE, FALLBACK_UNSCOPED, QueryExecutor, QueryPlanner
from api.services.reply import ReplyDispatcher
from lib.config import Settings
from lib.database import ExpenseStore
from lib.dedup import IdempotencyStore
from lib.error_handler import AppError, ConfigurationError, ErrorHandler
from lib.openai_client import OpenAIClient
from lib.whatsapp_client import WhatsAppClient

logger = logging.getLogger(__name__)

Stage = Callable[[MessageContext], Awaitable[StageResult]]

UNSUPPORTED_MESSAGE = (
    "Hey! I can process text and voice messages. Send me your expenses like:\n\n"
    "\"Spent 50 on coffee and 200 for groceries\"\n\n"
    "Or just send a voice note!"
)


@dataclass
class PipelineRun:
    state: str
    reply: Optional[str] = None
    delivered: bool = False
    stages: List[str] = field(default_factory=list)


def _final_state(result: StageResult) -> str:
    if result.outcome is Outcome.ABORT:
        return f"Aborted({result.reason})"
    if result.outcome is Outcome.SILENT:
        return f"Ignored({result.reason})"
    return "Replied"


class MessagePipeline:
    def __init__(
        self,
        identity: IdentityResolver,
        audio: AudioService,
        shortcuts: CommandShortcutHandler,
        classifier: IntentClassifier,
        extractor: ExpenseExtractor,
        planner: QueryPlanner,
        executor: QueryExecutor,
        dispatcher: ReplyDispatcher,
        tz: tzinfo,
        dedup: Optional[IdempotencyStore] = None
    ):
        self.identity = identity
        self.audio = audio
        self.shortcuts = shortcuts
        self.classifier = classifier
        self.extractor = extractor
        self.planner = planner
        self.executor = executor
        self.dispatcher = dispatcher
        self.tz = tz
        self.dedup = dedup or IdempotencyStore(0)

        self.stages: List[Tuple[str, Stage]] = [
            ('deduplicate', self.deduplicate),
            ('supported', self.check_supported),
            ('identity', self.identity.resolve),
            ('transcription', self.audio.transcribe),
            ('shortcuts', self.shortcuts.handle),
            ('classification', self.classifier.classify),
            ('handle_intent', self.handle_intent),
        ]

    async def deduplicate(self, context: MessageContext) -> StageResult:
        if self.dedup.check_and_remember(context.message.message_id):
            return StageResult.silent('duplicate delivery')
        return StageResult.proceed()

    async def check_supported(self, context: MessageContext) -> StageResult:
        message = context.message
        if message.kind is MessageKind.UNSUPPORTED:
            logger.info(f"Unsupported message type '{message.raw_type}' from {message.sender_phone}")
            return StageResult.reply(UNSUPPORTED_MESSAGE)

        if message.kind is MessageKind.TEXT:
            context.text = (message.text or '').strip()
            if not context.text:
                return StageResult.silent('empty text')
        return StageResult.proceed()

    async def handle_intent(self, context: MessageContext) -> StageResult:
        if context.intent is Intent.CONVERSATION:
            return StageResult.reply(conversation_reply(context.small_talk))

        if context.intent is Intent.QUERY:
            planned = await self.planner.plan(context)
            if planned.terminal:
                return planned
            return await self.executor.execute(context)

        return await self.extractor.extract(context)

    async def run(self, message: InboundMessage, now: Optional[datetime] = None) -> PipelineRun:
        context = MessageContext(message=message, now=now or datetime.now(self.tz))
        run = PipelineRun(state='Received')
        result = StageResult.silent('no stage replied')

        for name, stage in self.stages:
            run.stages.append(name)
            try:
                result = await stage(context)
            except AppError as e:
                logger.error(f"Stage '{name}' failed: {e.message}")
                result = StageResult.abort(f"{name} failed", e.user_message)
            except Exception as e:
                result = StageResult.abort(f"{name} failed", ErrorHandler.handle_unexpected_error(e))

            if result.terminal:
                break

        run.state = _final_state(result)
        run.reply = result.text
        if result.text:
            run.delivered = await self.dispatcher.send_message(message.sender_phone, result.text)

        logger.info(f"Message {message.message_id or '-'} finished as {run.state} after {run.stages[-1]}")
        return run


def create_pipeline(settings: Settings) -> MessagePipeline:
    """Wire the pipeline against the real Supabase, WhatsApp and model endpoints"""
    missing = settings.missing()
    if missing:
        raise ConfigurationError(f"Missing configuration: {', '.join(missing)}")

    try:
        intent_fallback = Intent(settings.intent_fallback.strip().lower())
    except ValueError:
        raise ConfigurationError(f"Invalid INTENT_FALLBACK: {settings.intent_fallback}")

    plan_fallback = settings.query_plan_fallback.strip().lower()
    if plan_fallback not in (FALLBACK_UNSCOPED, FALLBACK_APOLOGIZE):
        raise ConfigurationError(f"Invalid QUERY_PLAN_FALLBACK: {settings.query_plan_fallback}")

    tz = ZoneInfo(settings.timezone)
    store = ExpenseStore(create_client(settings.supabase_url, settings.supabase_service_role_key))
    whatsapp = WhatsAppClient(
        token=settings.whatsapp_token,
        phone_number_id=settings.whatsapp_phone_number_id,
        api_url=settings.whatsapp_api_url
    )

    return MessagePipeline(
        identity=IdentityResolver(
            store,
            default_api_key=settings.groq_api_key,
            llm_factory=lambda api_key: OpenAIClient.from_settings(api_key, settings)
        ),
        audio=AudioService(whatsapp),
        shortcuts=CommandShortcutHandler(store),
        classifier=IntentClassifier(fallback=intent_fallback),
        extractor=ExpenseExtractor(store),
        planner=QueryPlanner(fallback=plan_fallback),
        executor=QueryExecutor(store, tz),
        dispatcher=ReplyDispatcher(whatsapp),
        tz=tz,
        dedup=IdempotencyStore(settings.dedup_ttl_seconds)
    )
