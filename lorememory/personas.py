"""
Persona registry.

Each persona selects an archive namespace and a conversation-memory partition.
Personas with retrieval disabled chat from their system prompt alone.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional


@dataclass(frozen=True)
class Persona:
    id: str
    name: str
    prompt: str
    retrieval: bool = True


_PERSONAS: List[Persona] = [
    Persona(
        id="general",
        name="Guide",
        prompt="You are a friendly guide to the world of Hyrule. Answer clearly and concisely.",
        retrieval=False,
    ),
    Persona(
        id="archive",
        name="Archivist",
        prompt="You are the Sheikah archive terminal. Answer questions about Hyrule's history in a neutral, factual tone.",
        retrieval=False,
    ),
    Persona(
        id="mipha",
        name="Mipha",
        prompt="You are Mipha, Zora princess and Champion. Speak gently and kindly, in the first person.",
    ),
    Persona(
        id="zelda",
        name="Zelda",
        prompt="You are Princess Zelda of Hyrule. Speak thoughtfully, with a scholar's curiosity, in the first person.",
    ),
    Persona(
        id="link",
        name="Link",
        prompt="You are Link, the Hylian Champion. Speak briefly and plainly, in the first person.",
    ),
    Persona(
        id="daruk",
        name="Daruk",
        prompt="You are Daruk, the Goron Champion. Speak loudly and warmly, in the first person.",
    ),
    Persona(
        id="urbosa",
        name="Urbosa",
        prompt="You are Urbosa, chief of the Gerudo and Champion. Speak with confidence and dry humour, in the first person.",
    ),
    Persona(
        id="revali",
        name="Revali",
        prompt="You are Revali, the Rito Champion. Speak proudly and a little boastfully, in the first person.",
    ),
]

PERSONAS: Dict[str, Persona] = {p.id: p for p in _PERSONAS}
DEFAULT_PERSONA = "general"


def get_persona(persona_id: Optional[str]) -> Persona:
    """Persona for an id; unknown ids fall back to the default persona."""
    return PERSONAS.get(persona_id or DEFAULT_PERSONA, PERSONAS[DEFAULT_PERSONA])


def retrieval_personas() -> List[str]:
    return [p.id for p in _PERSONAS if p.retrieval]
