import json
import logging
import re
from typing import Any, Dict, List

from pydantic import ValidationError

from api.context import MessageContext, StageResult
from api.models import ExpenseRecord, ParsedExpense
from api.prompts import ExtractionPrompt, build_extraction_prompt
from lib.database import ExpenseStore
from lib.error_handler import ErrorHandler, ModelError, StorageError
from lib.formatting import format_inr

logger = logging.getLogger(__name__)

EXTRACTION_TEMPERATURE = 0.2

COULD_NOT_UNDERSTAND_MESSAGE = (
    "Sorry, I couldn't understand that. Try something like:\n"
    "\"Spent 50 on coffee and 200 for groceries\""
)
NO_EXPENSES_MESSAGE = (
    "I couldn't find any expenses in your message. Try:\n"
    "\"Spent 50 on coffee and 200 for groceries\""
)

_CODE_FENCE = re.compile(r"```(?:json)?", re.IGNORECASE)


def strip_code_fences(raw: str) -> str:
    return _CODE_FENCE.sub('', raw or '').strip()


def parse_expenses(raw: str) -> List[ParsedExpense]:
    """Parse the model's JSON array, keeping only elements that validate on their own.

    Raises ValueError when the response is not JSON at all.
    """
    parsed = json.loads(strip_code_fences(raw))
    if isinstance(parsed, dict):
        parsed = [parsed]
    if not isinstance(parsed, list):
        return []

    expenses = []
    for item in parsed:
        try:
            expenses.append(ParsedExpense.model_validate(item))
        except ValidationError as e:
            logger.info(f"Dropping invalid expense {item!r}: {e.error_count()} error(s)")
    return expenses


def format_confirmation(rows: List[Dict[str, Any]], from_voice: bool = False) -> str:
    voice_tag = "🎙️ " if from_voice else ""
    lines = [f"✅ {row['description']} — {format_inr(float(row['amount']))}" for row in rows]
    if len(rows) == 1:
        return f"{voice_tag}{lines[0]}\n\nAdded to your expenses!"

    total = sum(float(row['amount']) for row in rows)
    return (
        f"{voice_tag}*Added {len(rows)} expenses:*\n\n" + "\n".join(lines) +
        f"\n\n*Total: {format_inr(total)}*"
    )


class ExpenseExtractor:
    def __init__(self, store: ExpenseStore):
        self.store = store

    async def extract(self, context: MessageContext) -> StageResult:
        """Turn free text into expense records and persist them as one batch"""
        prompt = build_extraction_prompt(ExtractionPrompt(message=context.text))
        try:
            raw = await context.llm.generate_response(prompt, temperature=EXTRACTION_TEMPERATURE)
            expenses = parse_expenses(raw)
        except (ModelError, ValueError) as e:
            logger.error(f"Expense extraction error: {str(e)}")
            return StageResult.abort('extraction failed', COULD_NOT_UNDERSTAND_MESSAGE)

        if not expenses:
            return StageResult.abort('no valid expenses', NO_EXPENSES_MESSAGE)

        records = [
            ExpenseRecord(**expense.model_dump(), date=context.now, user_id=context.account.id)
            for expense in expenses
        ]
        try:
            inserted = self.store.insert_expenses(records)
        except StorageError as e:
            return StageResult.abort('insert failed', ErrorHandler.handle_storage_error(e))

        logger.info(f"Stored {len(inserted)} expenses for account {context.account.id}")
        return StageResult.reply(format_confirmation(inserted, context.from_voice))
