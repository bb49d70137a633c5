"""Prompt builders for every model call.

Each builder is a pure function of a frozen parameter record, so prompts can be
checked without touching the network.
"""
from dataclasses import dataclass
from datetime import date
from typing import Sequence

from api.models import CATEGORIES


@dataclass(frozen=True)
class ClassificationPrompt:
    message: str


@dataclass(frozen=True)
class ExtractionPrompt:
    message: str
    categories: Sequence[str] = CATEGORIES


@dataclass(frozen=True)
class PlanningPrompt:
    question: str
    today: date
    categories: Sequence[str] = CATEGORIES


@dataclass(frozen=True)
class SummaryPrompt:
    question: str
    rows_table: str
    total: str
    row_count: int
    scope: str = ''


def build_classification_prompt(params: ClassificationPrompt) -> str:
    return f"""You label messages sent to an expense-tracking assistant.

Reply with exactly one word from this list: expense, query, conversation.

- expense: the user is reporting money they spent (e.g. "coffee 50", "paid 1200 rent", "uber 300 and lunch 150")
- query: the user is asking about their past spending (e.g. "how much did I spend on food last month?", "show my biggest expenses this week")
- conversation: anything else, such as greetings, thanks, or questions about the assistant itself

Message: '{params.message}'

Label:"""


def build_extraction_prompt(params: ExtractionPrompt) -> str:
    categories = ', '.join(params.categories)
    return f"""You are an AI that extracts structured expense data from natural language input.

IMPORTANT: Extract ALL expenses mentioned in the text, even if multiple expenses are mentioned in a single sentence.

For the input: '{params.message}'

Return a JSON array of objects with this exact format:
[
  {{
    "amount": number,
    "category": string,
    "description": string
  }}
]

CATEGORY RULES:
- Use only these categories: {categories}
- food: restaurants, cafes, fast food, dining out
- groceries: supermarket, grocery store, fresh food, household items
- travel: transportation, fuel, parking, public transport, flights, hotels
- entertainment: movies, games, hobbies, sports, concerts
- utilities: electricity, water, gas, internet, phone bills
- rent: housing rent, accommodation
- other: anything that doesn't fit above categories

DESCRIPTION RULES:
- Keep descriptions short and clean (max 50 characters)
- Extract the main item/service name
- Remove unnecessary words like "spent", "bought", "paid"

EXAMPLES:
Input: "spent 10 on coffee and 150 for groceries"
Output: [
  {{"amount": 10, "category": "food", "description": "Coffee"}},
  {{"amount": 150, "category": "groceries", "description": "Groceries"}}
]

Input: "bought lunch for 25, paid 50 for gas, and spent 15 on parking"
Output: [
  {{"amount": 25, "category": "food", "description": "Lunch"}},
  {{"amount": 50, "category": "travel", "description": "Gas"}},
  {{"amount": 15, "category": "travel", "description": "Parking"}}
]

Return only the JSON array, with no explanation.

Please extract all expenses from: '{params.message}'"""


def build_planning_prompt(params: PlanningPrompt) -> str:
    categories = ', '.join(params.categories)
    today = params.today.isoformat()
    weekday = params.today.strftime('%A')
    return f"""You turn a question about personal spending into a database filter.

Today is {weekday}, {today}.

Return a single JSON object and nothing else:
{{
  "start_date": "YYYY-MM-DD" or null,
  "end_date": "YYYY-MM-DD" or null,
  "category": one of [{categories}] or null,
  "sort_by": "date" or "amount",
  "sort_order": "asc" or "desc",
  "limit": integer between 1 and 500
}}

DATE RULES (both bounds are inclusive):
- "today": start_date and end_date are {today}
- "yesterday": start_date and end_date are the day before {today}
- "this week": from the Monday of the current week to {today}
- "last week": Monday to Sunday of the previous week
- "this month": from the first day of the current month to {today}
- "last month": first to last day of the previous calendar month
- a named month ("in March"): first to last day of that month, in the current year unless that month is still in the future, then the previous year
- "last N days": from N-1 days before {today} to {today}
- no time mentioned: start_date and end_date are null

OTHER RULES:
- category is null unless the question names one of the categories
- "biggest", "largest", "most expensive": sort_by "amount", sort_order "desc"
- "smallest", "cheapest": sort_by "amount", sort_order "asc"
- otherwise sort_by "date", sort_order "desc"
- "top N" or "last N expenses": limit N; otherwise limit 100

Question: '{params.question}'"""


def build_summary_prompt(params: SummaryPrompt) -> str:
    scope = f" ({params.scope})" if params.scope else ''
    return f"""You answer questions about a user's expenses over WhatsApp.

Use ONLY the expense rows below{scope}. Do not use any other information, do not guess amounts,
and do not mention expenses that are not listed. All amounts are in Indian rupees (₹).

Rows (date | category | description | amount), {params.row_count} in total:
{params.rows_table}

Total of these rows: {params.total}

Question: '{params.question}'

Answer in a short, friendly WhatsApp message (at most a few lines). Use *bold* for key figures."""
