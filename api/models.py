from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from lib.formatting import normalize_phone

CATEGORIES = ('food', 'travel', 'groceries', 'entertainment', 'utilities', 'rent', 'other')

CATEGORY_EMOJI = {
    'food': '🍔',
    'travel': '✈️',
    'groceries': '🛒',
    'entertainment': '🎉',
    'utilities': '💡',
    'rent': '🏠',
    'other': '🤷',
}

MAX_QUERY_LIMIT = 500
DEFAULT_QUERY_LIMIT = 100


class MessageKind(str, Enum):
    TEXT = 'text'
    AUDIO = 'audio'
    UNSUPPORTED = 'unsupported'


class Intent(str, Enum):
    EXPENSE = 'expense'
    QUERY = 'query'
    CONVERSATION = 'conversation'


class InboundMessage(BaseModel):
    """One delivered WhatsApp message, as parsed from the webhook envelope"""
    model_config = ConfigDict(frozen=True)

    message_id: str = ''
    sender: str
    kind: MessageKind
    text: Optional[str] = None
    media_id: Optional[str] = None
    mime_type: Optional[str] = None
    raw_type: str = ''

    @property
    def sender_phone(self) -> str:
        return normalize_phone(self.sender)

    @classmethod
    def from_webhook(cls, message: Dict[str, Any]) -> 'InboundMessage':
        raw_type = message.get('type') or ''
        fields = {
            'message_id': message.get('id') or '',
            'sender': message.get('from') or '',
            'raw_type': raw_type,
        }
        if raw_type == 'text':
            fields['kind'] = MessageKind.TEXT
            fields['text'] = (message.get('text') or {}).get('body')
        elif raw_type == 'audio':
            audio = message.get('audio') or {}
            fields['kind'] = MessageKind.AUDIO
            fields['media_id'] = audio.get('id')
            fields['mime_type'] = audio.get('mime_type')
        else:
            fields['kind'] = MessageKind.UNSUPPORTED
        return cls(**fields)


class Account(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    phone: str
    api_key: Optional[str] = None


class ParsedExpense(BaseModel):
    """An expense as returned by the model; strict so nothing gets coerced"""
    model_config = ConfigDict(strict=True)

    amount: float = Field(gt=0, allow_inf_nan=False)
    category: Literal['food', 'travel', 'groceries', 'entertainment', 'utilities', 'rent', 'other']
    description: str

    @field_validator('amount', mode='before')
    @classmethod
    def reject_bool(cls, value):
        if isinstance(value, bool):
            raise ValueError('amount must be a number')
        return value

    @field_validator('description')
    @classmethod
    def non_empty_description(cls, value: str) -> str:
        if not value.strip():
            raise ValueError('description must not be empty')
        return value.strip()


class ExpenseRecord(ParsedExpense):
    date: datetime
    user_id: str

    def to_row(self) -> Dict[str, Any]:
        return {
            'amount': self.amount,
            'category': self.category,
            'description': self.description,
            'date': self.date.isoformat(),
            'user_id': self.user_id,
        }


class QueryFilter(BaseModel):
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    category: Optional[str] = None
    sort_by: Literal['date', 'amount'] = 'date'
    sort_order: Literal['asc', 'desc'] = 'desc'
    limit: int = Field(DEFAULT_QUERY_LIMIT, ge=1, le=MAX_QUERY_LIMIT)

    @field_validator('category', mode='before')
    @classmethod
    def known_category(cls, value):
        if value is None:
            return None
        value = str(value).strip().lower()
        if value in ('', 'null', 'none', 'all'):
            return None
        if value not in CATEGORIES:
            raise ValueError(f"unknown category: {value}")
        return value

    @field_validator('sort_by', 'sort_order', mode='before')
    @classmethod
    def lower_keyword(cls, value):
        return str(value).strip().lower() if value is not None else value

    @field_validator('limit', mode='before')
    @classmethod
    def cap_limit(cls, value):
        if value is None:
            return DEFAULT_QUERY_LIMIT
        try:
            limit = int(value)
        except (TypeError, OverflowError):
            raise ValueError(f"limit must be a whole number, got {value!r}")
        return max(1, min(limit, MAX_QUERY_LIMIT))

    @model_validator(mode='after')
    def ordered_range(self) -> 'QueryFilter':
        if self.start_date and self.end_date and self.start_date > self.end_date:
            raise ValueError('start_date is after end_date')
        return self
