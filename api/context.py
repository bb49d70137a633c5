"""
Per-message state and the tagged result every pipeline stage returns.
"""
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional

from api.models import Account, InboundMessage, Intent, QueryFilter
from lib.openai_client import OpenAIClient


class Outcome(str, Enum):
    CONTINUE = 'continue'
    REPLY = 'reply'
    ABORT = 'abort'
    SILENT = 'silent'


@dataclass(frozen=True)
class StageResult:
    outcome: Outcome
    text: Optional[str] = None
    reason: Optional[str] = None

    @classmethod
    def proceed(cls) -> 'StageResult':
        return cls(Outcome.CONTINUE)

    @classmethod
    def reply(cls, text: str) -> 'StageResult':
        return cls(Outcome.REPLY, text=text)

    @classmethod
    def abort(cls, reason: str, text: str) -> 'StageResult':
        return cls(Outcome.ABORT, text=text, reason=reason)

    @classmethod
    def silent(cls, reason: str) -> 'StageResult':
        return cls(Outcome.SILENT, reason=reason)

    @property
    def terminal(self) -> bool:
        return self.outcome is not Outcome.CONTINUE


@dataclass
class MessageContext:
    message: InboundMessage
    now: datetime
    account: Optional[Account] = None
    llm: Optional[OpenAIClient] = None
    text: str = ''
    intent: Optional[Intent] = None
    small_talk: Optional[str] = None
    query_filter: Optional[QueryFilter] = None

    @property
    def from_voice(self) -> bool:
        return self.message.kind.value == 'audio'
