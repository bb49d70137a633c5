import logging
from typing import Callable

from api.context import MessageContext, StageResult
from lib.database import ExpenseStore
from lib.error_handler import ErrorHandler, StorageError
from lib.openai_client import OpenAIClient

logger = logging.getLogger(__name__)

NO_CREDENTIAL_MESSAGE = (
    "No API key configured. Please add a Groq API key in Spenny AI Settings or contact support."
)


def link_account_message(phone: str) -> str:
    return (
        "Hey! Your WhatsApp number isn't linked to a Spenny AI account yet.\n\n"
        "To link it:\n"
        "1. Open Spenny AI app\n"
        "2. Go to Settings\n"
        f"3. Enter your WhatsApp number: +{phone}\n"
        "4. Save\n\n"
        "Then message me again!"
    )


class IdentityResolver:
    def __init__(self, store: ExpenseStore, default_api_key: str, llm_factory: Callable[[str], OpenAIClient]):
        self.store = store
        self.default_api_key = default_api_key
        self.llm_factory = llm_factory

    async def resolve(self, context: MessageContext) -> StageResult:
        """Attach the linked account and a model client for its credential"""
        phone = context.message.sender_phone
        try:
            account = self.store.find_account(phone)
        except StorageError as e:
            return StageResult.abort('account lookup failed', ErrorHandler.handle_read_error(e))

        if account is None:
            logger.info(f"No account linked to {phone}")
            return StageResult.abort('unlinked sender', link_account_message(phone))

        # Per-account key wins; the shared key is only a fallback
        api_key = account.api_key or self.default_api_key
        if not api_key:
            logger.warning(f"No model credential for account {account.id}")
            return StageResult.abort('no model credential', NO_CREDENTIAL_MESSAGE)

        context.account = account
        context.llm = self.llm_factory(api_key)
        logger.info(f"Resolved {phone} to account {account.id}")
        return StageResult.proceed()
