import logging
from collections import defaultdict
from datetime import datetime
from typing import Dict, List

from api.context import MessageContext, StageResult
from api.models import CATEGORY_EMOJI
from lib.database import ExpenseStore
from lib.error_handler import ErrorHandler, StorageError
from lib.formatting import format_inr

logger = logging.getLogger(__name__)

HELP_TEXT = (
    "*Spenny AI - Expense Tracker*\n\n"
    "Just text or voice note me your expenses:\n\n"
    "• \"Spent 50 on coffee\"\n"
    "• \"Paid 200 for groceries and 100 for petrol\"\n"
    "• \"Lunch 150, auto 30, movie tickets 500\"\n"
    "• 🎙️ Send a voice note with your expenses!\n\n"
    "Ask me about your spending:\n"
    "• \"How much did I spend on food last month?\"\n"
    "• \"What were my biggest expenses this week?\"\n\n"
    "Commands:\n"
    "• *help* - Show this message\n"
    "• *today* - Show today's expenses\n"
    "• *total* - Show this month's total"
)

NO_EXPENSES_TODAY = "No expenses logged today yet. Send me your expenses to get started!"
NO_EXPENSES_THIS_MONTH = "No expenses this month yet!"


def total_of(rows: List[Dict]) -> float:
    return sum(float(row['amount']) for row in rows)


def category_breakdown(rows: List[Dict]) -> List[tuple]:
    """(category, amount) pairs, largest amount first"""
    by_category = defaultdict(float)
    for row in rows:
        by_category[row['category']] += float(row['amount'])
    return sorted(by_category.items(), key=lambda item: item[1], reverse=True)


class CommandShortcutHandler:
    COMMANDS = ('help', 'today', 'total')

    def __init__(self, store: ExpenseStore):
        self.store = store

    async def handle(self, context: MessageContext) -> StageResult:
        """Answer the fixed commands without any model call"""
        command = context.text.strip().lower()
        if command not in self.COMMANDS:
            return StageResult.proceed()

        logger.info(f"Handling '{command}' command")
        if command == 'help':
            return StageResult.reply(HELP_TEXT)

        try:
            if command == 'today':
                return StageResult.reply(self.today_summary(context.account.id, context.now))
            return StageResult.reply(self.month_summary(context.account.id, context.now))
        except StorageError as e:
            return StageResult.abort(f"{command} read failed", ErrorHandler.handle_read_error(e))

    def today_summary(self, user_id: str, now: datetime) -> str:
        day_start = now.replace(hour=0, minute=0, second=0, microsecond=0)
        rows = self.store.fetch_since(user_id, day_start, columns='amount, category, description')
        if not rows:
            return NO_EXPENSES_TODAY

        lines = [f"• {row['description']} — {format_inr(float(row['amount']))}" for row in rows]
        return "*Today's Expenses*\n\n" + "\n".join(lines) + f"\n\n*Total: {format_inr(total_of(rows))}*"

    def month_summary(self, user_id: str, now: datetime) -> str:
        month_start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
        rows = self.store.fetch_since(user_id, month_start, columns='amount, category')
        if not rows:
            return NO_EXPENSES_THIS_MONTH

        breakdown = "\n".join(
            f"{CATEGORY_EMOJI.get(category, '•')} {category}: {format_inr(amount)}"
            for category, amount in category_breakdown(rows)
        )
        return (
            f"*{now.strftime('%B')} Summary*\n\n{breakdown}\n\n"
            f"*Total: {format_inr(total_of(rows))}*\n{len(rows)} transactions"
        )
