import logging
import re
from typing import Optional

from api.context import MessageContext, StageResult
from api.models import Intent
from api.prompts import ClassificationPrompt, build_classification_prompt
from api.services.commands import HELP_TEXT
from lib.error_handler import ModelError

logger = logging.getLogger(__name__)

# Policy: when the classifier cannot answer, treat the message as an expense.
# Overridable through INTENT_FALLBACK.
DEFAULT_INTENT_ON_FAILURE = Intent.EXPENSE

SMALL_TALK_PATTERNS = (
    ('greeting', re.compile(
        r"^(hi+|hello+|hey+|hiya|yo|namaste|hola|good\s+(morning|afternoon|evening|day))"
        r"(\s+(there|bot|spenny))?[\s!.,]*$", re.IGNORECASE)),
    ('thanks', re.compile(
        r"^(thanks?|thank\s+you|thx|ty|cheers|great|cool|ok(ay)?|nice)"
        r"(\s+(so\s+much|a\s+lot|man|bro|buddy))?[\s!.,🙏👍]*$", re.IGNORECASE)),
    ('goodbye', re.compile(
        r"^(bye+|goodbye|good\s*night|see\s+(you|ya)|later|cya|take\s+care)[\s!.,]*$", re.IGNORECASE)),
    ('capabilities', re.compile(
        r"^(what\s+can\s+you\s+do|how\s+do(es)?\s+(this|it|you)\s+work|who\s+are\s+you|what\s+are\s+you"
        r"|how\s+(do\s+i|to)\s+use\s+(this|you))\s*\??$", re.IGNORECASE)),
)

SMALL_TALK_REPLIES = {
    'greeting': "Hey! 👋 Send me your expenses like \"Spent 50 on coffee\", or ask \"How much did I spend this week?\". Type *help* for more.",
    'thanks': "You're welcome! 😊",
    'goodbye': "Bye! Message me anytime to log an expense. 👋",
    'capabilities': HELP_TEXT,
}
DEFAULT_CONVERSATION_REPLY = (
    "I'm your expense assistant! Tell me what you spent, or ask me about your spending. Type *help* to see examples."
)


def match_small_talk(text: str) -> Optional[str]:
    """Name of the small-talk pattern the whole message matches, if any"""
    text = text.strip()
    for kind, pattern in SMALL_TALK_PATTERNS:
        if pattern.match(text):
            return kind
    return None


def normalize_label(raw: str) -> Optional[Intent]:
    label = (raw or '').strip().lower()
    for intent in (Intent.EXPENSE, Intent.QUERY, Intent.CONVERSATION):
        if intent.value in label:
            return intent
    return None


def conversation_reply(small_talk: Optional[str]) -> str:
    return SMALL_TALK_REPLIES.get(small_talk, DEFAULT_CONVERSATION_REPLY)


class IntentClassifier:
    def __init__(self, fallback: Intent = DEFAULT_INTENT_ON_FAILURE):
        self.fallback = fallback

    async def classify(self, context: MessageContext) -> StageResult:
        small_talk = match_small_talk(context.text)
        if small_talk:
            context.intent = Intent.CONVERSATION
            context.small_talk = small_talk
            logger.info(f"Matched small talk: {small_talk}")
            return StageResult.proceed()

        prompt = build_classification_prompt(ClassificationPrompt(message=context.text))
        try:
            raw = await context.llm.generate_response(prompt, temperature=0)
        except ModelError as e:
            logger.warning(f"Classification failed, applying fallback intent '{self.fallback.value}': {str(e)}")
            context.intent = self.fallback
            return StageResult.proceed()

        intent = normalize_label(raw)
        if intent is None:
            logger.warning(f"Unrecognised label {raw!r}, applying fallback intent '{self.fallback.value}'")
            intent = self.fallback

        context.intent = intent
        logger.info(f"Classified message as {intent.value}")
        return StageResult.proceed()
