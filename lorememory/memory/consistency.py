"""
Post-hoc consistency check of a generated answer against the persona's lore archive.

The validator is advisory: judge or parse failures produce a degraded
no-conflict verdict and are never raised to the chat turn.
"""

from dataclasses import dataclass
import json
from typing import Any, Dict, List, Optional

from ..core.errors import LoreMemoryError, ValidationDegraded
from ..llm.completion import CompletionClient
from ..util.logging import logger
from .archive import ArchiveService

NO_FACTS_MESSAGE = "No relevant lore available for validation"
VALIDATION_FAILED_MESSAGE = "Validation failed"

JUDGE_SYSTEM_PROMPT = "You are a lore consistency reviewer. Output JSON only."

JUDGE_PROMPT_TEMPLATE = """You are a lore consistency reviewer. Decide whether the AI-generated content below conflicts with the canonical lore.

[Canonical lore archive]
{facts}

[Content to check]
{content}

Reply strictly in the following JSON format and add nothing else:
{{
  "hasConflict": true or false,
  "conflictDetails": "if there is a conflict, explain where; otherwise write 'no conflict'",
  "suggestion": "if there is a conflict, suggest a fix; otherwise write 'no change needed'"
}}"""


@dataclass
class ConsistencyVerdict:
    """Outcome of one consistency check."""

    has_conflict: bool
    conflict_details: Optional[str] = None
    suggestion: Optional[str] = None
    message: Optional[str] = None

    @property
    def degraded(self) -> bool:
        return self.message is not None

    @classmethod
    def no_conflict(cls, message: str) -> "ConsistencyVerdict":
        return cls(has_conflict=False, message=message)

    @classmethod
    def from_payload(cls, payload: Any) -> "ConsistencyVerdict":
        """Build a verdict from parsed judge JSON; raises ValidationDegraded on a bad shape."""
        if not isinstance(payload, dict):
            raise ValidationDegraded("Verdict is not a JSON object", payload=payload)

        flag = payload.get("hasConflict")
        if isinstance(flag, str) and flag.strip().lower() in ("true", "false"):
            flag = flag.strip().lower() == "true"
        if not isinstance(flag, bool):
            raise ValidationDegraded("Verdict is missing a boolean hasConflict", payload=payload)

        details = payload.get("conflictDetails")
        suggestion = payload.get("suggestion")
        return cls(
            has_conflict=flag,
            conflict_details=str(details) if details is not None else "",
            suggestion=str(suggestion) if suggestion is not None else "",
        )

    def to_dict(self) -> Dict[str, Any]:
        if self.degraded:
            return {"hasConflict": False, "message": self.message}
        return {
            "hasConflict": self.has_conflict,
            "conflictDetails": self.conflict_details or "",
            "suggestion": self.suggestion or "",
        }


def extract_json_object(text: str) -> Optional[str]:
    """
    First balanced {...} region of free-form text.

    Braces inside JSON string literals (including escaped quotes) do not
    count toward nesting. Returns None when no balanced region exists.
    """
    if not text:
        return None
    start = text.find("{")
    if start < 0:
        return None

    depth = 0
    in_string = False
    escaped = False
    for i in range(start, len(text)):
        ch = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return text[start:i + 1]
    return None


def parse_verdict(raw: str) -> ConsistencyVerdict:
    """Tolerant verdict extraction; degrades instead of raising."""
    try:
        region = extract_json_object(raw)
        if region is None:
            raise ValidationDegraded("No JSON object in judge response", payload=raw)
        try:
            payload = json.loads(region)
        except json.JSONDecodeError as e:
            raise ValidationDegraded(f"Judge JSON invalid: {e}", payload=region)
        return ConsistencyVerdict.from_payload(payload)
    except ValidationDegraded as e:
        logger.log_operation("consistency.parse", "degraded", {"reason": e.message})
        return ConsistencyVerdict.no_conflict(VALIDATION_FAILED_MESSAGE)


def build_judge_prompt(facts: List[str], content: str) -> str:
    return JUDGE_PROMPT_TEMPLATE.format(facts="\n\n".join(facts), content=content)


class ConsistencyValidator:
    """Checks generated text against up to top_k archive facts of the persona."""

    def __init__(self, archive: ArchiveService, completion: CompletionClient, top_k: int = 5):
        self.archive = archive
        self.completion = completion
        self.top_k = top_k

    def validate(self, generated_text: str, persona_id: str) -> ConsistencyVerdict:
        """
        Judge generated_text for lore conflicts.

        Archive lookup failures propagate; judge call and parse failures
        return the degraded verdict.
        """
        hits = self.archive.persona_facts(generated_text, persona_id, top_k=self.top_k)
        facts = [hit.text for hit in hits if hit.text]
        if not facts:
            return ConsistencyVerdict.no_conflict(NO_FACTS_MESSAGE)

        messages = [
            {"role": "system", "content": JUDGE_SYSTEM_PROMPT},
            {"role": "user", "content": build_judge_prompt(facts, generated_text)},
        ]
        try:
            raw = self.completion.complete(messages)
        except LoreMemoryError as e:
            logger.log_operation("consistency.judge", "degraded", {
                "persona_id": persona_id,
                "error": e.message,
            })
            return ConsistencyVerdict.no_conflict(VALIDATION_FAILED_MESSAGE)

        verdict = parse_verdict(raw)
        logger.log_operation("consistency.validate", "success", {
            "persona_id": persona_id,
            "facts": len(facts),
            "has_conflict": verdict.has_conflict,
            "degraded": verdict.degraded,
        })
        return verdict
