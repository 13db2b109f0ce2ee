"""
Chat turn orchestration.

A turn composes retrieval context, streams the completion, aggregates the
transcript and then schedules the conversation-memory write and the
consistency check as independent background tasks. Neither task blocks
the answer and their failures are only logged.
"""

import asyncio
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import datetime
import uuid
from typing import Any, Callable, Dict, List, Optional, Sequence, Set

from ..llm.completion import CompletionClient
from ..llm.stream import LINK_INTERRUPTED, StreamAggregator, finalize_answer, is_sentinel
from ..memory.composer import RetrievalComposer
from ..memory.consistency import ConsistencyValidator, ConsistencyVerdict
from ..memory.conversation import ConversationMemory
from ..personas import get_persona
from ..util.logging import logger


@dataclass
class HistoryItem:
    question: str
    answer: str


@dataclass
class TurnRecord:
    """One completed turn; verdict and memory_id are filled in by the side effects."""

    turn_id: str
    persona_id: str
    question: str
    answer: str
    signal_lost: bool = False
    verdict: Optional[ConsistencyVerdict] = None
    memory_id: Optional[str] = None
    created_at: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "turn_id": self.turn_id,
            "persona_id": self.persona_id,
            "question": self.question,
            "answer": self.answer,
            "signal_lost": self.signal_lost,
            "verdict": self.verdict.to_dict() if self.verdict else None,
            "memory_id": self.memory_id,
            "created_at": self.created_at.isoformat(),
        }


class TurnLedger:
    """Most recent turns by id, bounded."""

    def __init__(self, max_turns: int = 256):
        self.max_turns = max_turns
        self._turns: "OrderedDict[str, TurnRecord]" = OrderedDict()

    def add(self, record: TurnRecord) -> None:
        self._turns[record.turn_id] = record
        while len(self._turns) > self.max_turns:
            self._turns.popitem(last=False)

    def get(self, turn_id: str) -> Optional[TurnRecord]:
        return self._turns.get(turn_id)

    def __len__(self) -> int:
        return len(self._turns)


class ChatTurnService:
    """Runs persona chat turns end to end."""

    def __init__(self, composer: RetrievalComposer, completion: CompletionClient,
                 conversations: ConversationMemory, validator: ConsistencyValidator,
                 history_window: int = 5, ledger: Optional[TurnLedger] = None):
        self.composer = composer
        self.completion = completion
        self.conversations = conversations
        self.validator = validator
        self.history_window = history_window
        self.ledger = ledger or TurnLedger()
        self._tasks: Set[asyncio.Task] = set()

    async def build_messages(self, message: str, persona_id: str,
                             history: Sequence[HistoryItem] = ()) -> List[Dict[str, str]]:
        """System prompt (plus retrieval context), recent history pairs, then the new message."""
        persona = get_persona(persona_id)
        system_prompt = await self.composer.build_system_prompt(persona, message)

        messages = [{"role": "system", "content": system_prompt}]
        recent = list(history)[-self.history_window:] if self.history_window > 0 else []
        for item in recent:
            messages.append({"role": "user", "content": item.question})
            messages.append({"role": "assistant", "content": item.answer})
        messages.append({"role": "user", "content": message})
        return messages

    def generate(self, messages: List[Dict[str, str]],
                 on_partial: Optional[Callable[[str], None]] = None) -> str:
        """Stream a completion and return the aggregated (possibly partial) text."""
        aggregator = StreamAggregator()
        for partial in aggregator.iter_partials(self.completion.stream(messages)):
            if on_partial:
                on_partial(partial)
        if aggregator.skipped_frames:
            logger.warning(f"Skipped {aggregator.skipped_frames} malformed stream frames")
        return aggregator.text

    async def run_turn(self, message: str, persona_id: str,
                       history: Sequence[HistoryItem] = (),
                       on_partial: Optional[Callable[[str], None]] = None) -> TurnRecord:
        persona = get_persona(persona_id)
        turn_id = str(uuid.uuid4())

        try:
            messages = await self.build_messages(message, persona.id, history)
            text = await asyncio.to_thread(self.generate, messages, on_partial)
            answer = finalize_answer(text)
        except Exception as e:
            logger.log_operation("turn.generate", "failed", {
                "turn_id": turn_id,
                "persona_id": persona.id,
                "error": str(e)[:200],
            })
            answer = LINK_INTERRUPTED

        record = TurnRecord(
            turn_id=turn_id,
            persona_id=persona.id,
            question=message,
            answer=answer,
            signal_lost=is_sentinel(answer),
        )
        self.ledger.add(record)

        if persona.retrieval and not record.signal_lost:
            self.schedule_side_effects(record)
        return record

    def schedule_side_effects(self, record: TurnRecord) -> List[asyncio.Task]:
        """Start the memory write and the consistency check without awaiting them."""
        tasks = [
            asyncio.create_task(self._save_turn(record)),
            asyncio.create_task(self._check_turn(record)),
        ]
        for task in tasks:
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)
        return tasks

    async def drain(self) -> None:
        """Wait for outstanding side effects (shutdown and tests)."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def _save_turn(self, record: TurnRecord) -> None:
        try:
            record.memory_id = await asyncio.to_thread(
                self.conversations.record, record.question, record.answer, record.persona_id
            )
        except Exception as e:
            logger.log_side_effect("save", record.turn_id, record.persona_id, status="failed", error=str(e))
            return
        logger.log_side_effect("save", record.turn_id, record.persona_id)

    async def _check_turn(self, record: TurnRecord) -> None:
        try:
            record.verdict = await asyncio.to_thread(
                self.validator.validate, record.answer, record.persona_id
            )
        except Exception as e:
            logger.log_side_effect("consistency", record.turn_id, record.persona_id, status="failed", error=str(e))
            return
        logger.log_side_effect("consistency", record.turn_id, record.persona_id)
