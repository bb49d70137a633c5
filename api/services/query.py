import calendar
import json
import logging
import re
from datetime import datetime, tzinfo
from typing import Any, Dict, List

from api.context import MessageContext, StageResult
from api.models import QueryFilter
from api.prompts import PlanningPrompt, SummaryPrompt, build_planning_prompt, build_summary_prompt
from api.services.extraction import strip_code_fences
from lib.database import ExpenseStore
from lib.error_handler import ErrorHandler, ModelError, StorageError
from lib.formatting import format_inr

logger = logging.getLogger(__name__)

PLANNING_TEMPERATURE = 0
SUMMARY_TEMPERATURE = 0.3

FALLBACK_UNSCOPED = 'unscoped'
FALLBACK_APOLOGIZE = 'apologize'

PLANNING_FAILED_MESSAGE = (
    "Sorry, I couldn't work out which expenses you meant. Try something like:\n"
    "\"How much did I spend on food last month?\""
)

_JSON_OBJECT = re.compile(r"\{.*\}", re.DOTALL)


def parse_filter(raw: str) -> QueryFilter:
    """Parse the planner's JSON object; raises ValueError on anything unusable"""
    cleaned = strip_code_fences(raw)
    match = _JSON_OBJECT.search(cleaned)
    if not match:
        raise ValueError(f"No JSON object in planner response: {raw!r}")
    return QueryFilter.model_validate(json.loads(match.group(0)))


def describe_scope(query_filter: QueryFilter) -> str:
    """Human wording of the date range and category a filter covers"""
    start, end = query_filter.start_date, query_filter.end_date
    if start and end:
        last_day = calendar.monthrange(start.year, start.month)[1]
        if start == end:
            period = f"on {start.strftime('%d %b %Y')}"
        elif start.day == 1 and end == start.replace(day=last_day):
            period = f"in {start.strftime('%B %Y')}"
        else:
            period = f"from {start.strftime('%d %b %Y')} to {end.strftime('%d %b %Y')}"
    elif start:
        period = f"since {start.strftime('%d %b %Y')}"
    elif end:
        period = f"up to {end.strftime('%d %b %Y')}"
    else:
        period = ''

    parts = []
    if query_filter.category:
        parts.append(f"in {query_filter.category}")
    if period:
        parts.append(period)
    return ' '.join(parts)


def no_results_message(query_filter: QueryFilter) -> str:
    scope = describe_scope(query_filter)
    if scope:
        return f"No expenses found {scope}. 🔍"
    return "No expenses found. Send me your expenses to get started!"


def _row_date(value: Any, tz: tzinfo) -> str:
    try:
        return datetime.fromisoformat(str(value).replace('Z', '+00:00')).astimezone(tz).date().isoformat()
    except ValueError:
        return str(value)[:10]


def render_rows(rows: List[Dict[str, Any]], tz: tzinfo) -> str:
    return "\n".join(
        f"{_row_date(row.get('date'), tz)} | {row['category']} | {row['description']} | {format_inr(float(row['amount']))}"
        for row in rows
    )


class QueryPlanner:
    def __init__(self, fallback: str = FALLBACK_UNSCOPED):
        self.fallback = fallback

    async def plan(self, context: MessageContext) -> StageResult:
        """Turn the question into a QueryFilter anchored on today's local date"""
        prompt = build_planning_prompt(PlanningPrompt(question=context.text, today=context.now.date()))
        try:
            raw = await context.llm.generate_response(prompt, temperature=PLANNING_TEMPERATURE)
            context.query_filter = parse_filter(raw)
        except (ModelError, ValueError) as e:
            if self.fallback == FALLBACK_APOLOGIZE:
                logger.error(f"Query planning failed: {str(e)}")
                return StageResult.abort('planning failed', PLANNING_FAILED_MESSAGE)
            logger.warning(f"Query planning failed, using the unscoped default filter: {str(e)}")
            context.query_filter = QueryFilter()

        logger.info(f"Planned filter: {context.query_filter.model_dump_json()}")
        return StageResult.proceed()


class QueryExecutor:
    def __init__(self, store: ExpenseStore, tz: tzinfo):
        self.store = store
        self.tz = tz

    async def execute(self, context: MessageContext) -> StageResult:
        """Run the planned filter and have the model answer from the rows only"""
        query_filter = context.query_filter or QueryFilter()
        try:
            rows = self.store.fetch_expenses(context.account.id, query_filter, self.tz)
        except StorageError as e:
            return StageResult.abort('query read failed', ErrorHandler.handle_read_error(e))

        if not rows:
            return StageResult.reply(no_results_message(query_filter))

        total = format_inr(sum(float(row['amount']) for row in rows))
        scope = describe_scope(query_filter)
        prompt = build_summary_prompt(SummaryPrompt(
            question=context.text,
            rows_table=render_rows(rows, self.tz),
            total=total,
            row_count=len(rows),
            scope=scope
        ))
        try:
            answer = await context.llm.generate_response(prompt, temperature=SUMMARY_TEMPERATURE)
        except ModelError as e:
            logger.error(f"Summary generation failed: {str(e)}")
            answer = ''

        if not answer.strip():
            # Plain figures still answer the question when the model does not
            scope_text = f" {scope}" if scope else ''
            return StageResult.reply(f"Found {len(rows)} expenses{scope_text}.\n\n*Total: {total}*")
        return StageResult.reply(answer)
