"""
Tests for the retrieval composer context block.
"""

import asyncio
import time

import pytest
from unittest.mock import Mock

from lorememory.memory.archive import ArchiveService
from lorememory.memory.composer import (
    ARCHIVE_HEADER,
    CLOSING_INSTRUCTION,
    HISTORY_HEADER,
    RetrievalComposer,
    render_context,
)
from lorememory.memory.conversation import ConversationMemory
from lorememory.personas import get_persona
from lorememory.vector.types import ArchiveHit, ConversationHit


class TestRenderContext:

    def test_empty_hits_render_nothing(self):
        assert render_context([], []) == ""

    def test_archive_only(self):
        block = render_context([ArchiveHit(score=0.9, text="Mipha heals."),
                                ArchiveHit(score=0.8, text="Mipha pilots Vah Ruta.")], [])

        assert ARCHIVE_HEADER in block
        assert HISTORY_HEADER not in block
        assert block.endswith(CLOSING_INSTRUCTION)
        # Store order is kept
        assert block.index("Mipha heals.") < block.index("Mipha pilots Vah Ruta.")
        assert "Mipha heals.\n\nMipha pilots Vah Ruta." in block

    def test_history_only(self):
        block = render_context([], [ConversationHit(score=0.7, question="Favourite food?", answer="Hearty bass.")])

        assert ARCHIVE_HEADER not in block
        assert HISTORY_HEADER in block
        assert "User once asked: Favourite food?\nYou once answered: Hearty bass." in block
        assert block.endswith(CLOSING_INSTRUCTION)

    def test_both_sections_archive_first(self):
        block = render_context(
            [ArchiveHit(score=0.9, text="Mipha heals.")],
            [ConversationHit(score=0.7, question="q", answer="a")],
        )

        assert block.index(ARCHIVE_HEADER) < block.index(HISTORY_HEADER) < block.index(CLOSING_INSTRUCTION)
        assert block.count(CLOSING_INSTRUCTION) == 1

    def test_hits_without_text_are_skipped(self):
        assert render_context([ArchiveHit(score=0.5, text=None)], []) == ""


class TestRetrievalComposer:

    def test_compose_with_empty_stores(self, services):
        assert asyncio.run(services.composer.compose("Who are you?", "mipha")) == ""

    def test_compose_archive_only(self, services):
        services.archive.ingest("Mipha is the Zora Champion.", "mipha")

        block = asyncio.run(services.composer.compose("Who are you?", "mipha"))

        assert ARCHIVE_HEADER in block
        assert "Mipha is the Zora Champion." in block
        assert HISTORY_HEADER not in block
        assert block.endswith(CLOSING_INSTRUCTION)

    def test_compose_ignores_other_personas(self, services):
        services.archive.ingest("Zelda studies Sheikah technology.", "zelda")
        services.conversations.record("Hi", "Hello", "zelda")

        assert asyncio.run(services.composer.compose("Hi", "mipha")) == ""

    def test_compose_includes_history(self, services):
        services.conversations.record("Do you like fish?", "I do.", "mipha")

        block = asyncio.run(services.composer.compose("fish", "mipha"))

        assert HISTORY_HEADER in block
        assert "User once asked: Do you like fish?" in block

    def test_reads_run_concurrently(self):
        def slow_facts(*args):
            time.sleep(0.3)
            return [ArchiveHit(score=0.9, text="fact")]

        def slow_recall(*args):
            time.sleep(0.3)
            return [ConversationHit(score=0.5, question="q", answer="a")]

        archive = Mock(spec=ArchiveService)
        archive.persona_facts.side_effect = slow_facts
        conversations = Mock(spec=ConversationMemory)
        conversations.recall.side_effect = slow_recall
        composer = RetrievalComposer(archive, conversations, archive_top_k=3, history_top_k=3)

        start = time.monotonic()
        block = asyncio.run(composer.compose("q", "link"))
        elapsed = time.monotonic() - start

        assert "fact" in block
        assert elapsed < 0.55
        archive.persona_facts.assert_called_once_with("q", "link", 3)
        conversations.recall.assert_called_once_with("q", "link", 3)

    def test_system_prompt_for_retrieval_persona(self, services):
        services.archive.ingest("Revali mastered Revali's Gale.", "revali")

        prompt = asyncio.run(services.composer.build_system_prompt(get_persona("revali"), "Your skill?"))

        assert prompt.startswith(get_persona("revali").prompt)
        assert "Revali mastered Revali's Gale." in prompt

    def test_system_prompt_skips_reads_without_retrieval(self):
        archive = Mock(spec=ArchiveService)
        conversations = Mock(spec=ConversationMemory)
        composer = RetrievalComposer(archive, conversations)

        prompt = asyncio.run(composer.build_system_prompt(get_persona("archive"), "History?"))

        assert prompt == get_persona("archive").prompt
        archive.persona_facts.assert_not_called()
        conversations.recall.assert_not_called()
