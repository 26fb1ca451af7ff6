"""
Stream Assembler Tests
======================
"""

import pytest

from ad_narrator.completion.client import CompletionError
from ad_narrator.models.chunk import CompletionChunk
from ad_narrator.narration.assembler import StreamAssembler, describe_error
from ad_narrator.narration.text import NarrationText

from conftest import text_chunks


async def _iterate(items):
    for item in items:
        if isinstance(item, BaseException):
            raise item
        yield item


@pytest.fixture
def text():
    return NarrationText()


@pytest.fixture
def assembler(text):
    return StreamAssembler(text)


class TestApply:

    def test_first_delta_overwrites(self, text, assembler):
        text.set("stale")
        assembler.apply(CompletionChunk(text_delta="A"))
        assert text.value == "A"
        assert assembler.reset_pending is False

    def test_empty_chunk_is_noop(self, text, assembler):
        assert assembler.apply(CompletionChunk()) is False
        assert text.value == ""
        assert assembler.reset_pending is True

    def test_delta_applied_before_terminal(self, text, assembler):
        assembler.apply(CompletionChunk(text_delta="A"))
        terminal = assembler.apply(CompletionChunk(text_delta="B", finish_reason="stop"))
        assert terminal is True
        assert text.value == "AB"


class TestConsume:

    @pytest.mark.asyncio
    async def test_reset_then_append(self, text, assembler):
        seen = []
        text.subscribe(seen.append)

        outcome = await assembler.consume(_iterate(text_chunks("A", "B")))

        assert outcome.succeeded
        assert outcome.finish_reason == "stop"
        assert outcome.chunks == 3
        assert outcome.deltas == 2
        assert text.value == "AB"
        assert seen == ["A", "AB"]

    @pytest.mark.asyncio
    async def test_rearmed_reset_overwrites_previous_cycle(self, text, assembler):
        await assembler.consume(_iterate(text_chunks("old")))
        assembler.arm_reset()

        await assembler.consume(_iterate(text_chunks("new")))

        assert text.value == "new"

    @pytest.mark.asyncio
    async def test_text_kept_until_first_delta(self, text, assembler):
        await assembler.consume(_iterate(text_chunks("old")))
        assembler.arm_reset()

        outcome = await assembler.consume(_iterate([CompletionChunk(finish_reason="stop")]))

        assert outcome.succeeded
        assert text.value == "old"

    @pytest.mark.asyncio
    async def test_empty_chunks_are_counted_but_skipped(self, text, assembler):
        chunks = [CompletionChunk()] + text_chunks("A")
        outcome = await assembler.consume(_iterate(chunks))

        assert outcome.chunks == 3
        assert outcome.deltas == 1
        assert text.value == "A"

    @pytest.mark.asyncio
    async def test_stops_at_terminal_chunk(self, text, assembler):
        chunks = text_chunks("A") + [CompletionChunk(text_delta="ignored")]
        await assembler.consume(_iterate(chunks))
        assert text.value == "A"

    @pytest.mark.asyncio
    async def test_error_replaces_text(self, text, assembler):
        outcome = await assembler.consume(
            _iterate([CompletionChunk(text_delta="A"), CompletionError("connection reset")])
        )

        assert not outcome.succeeded
        assert isinstance(outcome.error, CompletionError)
        assert text.value == "connection reset"

    @pytest.mark.asyncio
    async def test_eof_without_finish_reason_succeeds(self, text, assembler):
        outcome = await assembler.consume(_iterate([CompletionChunk(text_delta="A")]))
        assert outcome.succeeded
        assert outcome.finish_reason is None
        assert text.value == "A"

    @pytest.mark.asyncio
    async def test_closed_session_abandons(self, text, assembler):
        closed = False

        def is_closed():
            return closed

        async def chunks():
            nonlocal closed
            yield CompletionChunk(text_delta="A")
            closed = True
            yield CompletionChunk(text_delta="B")
            yield CompletionChunk(finish_reason="stop")

        outcome = await assembler.consume(chunks(), is_closed=is_closed)

        assert outcome.abandoned
        assert not outcome.succeeded
        assert text.value == "A"

    @pytest.mark.asyncio
    async def test_iterator_closed_after_terminal(self, assembler):
        finalized = []

        async def chunks():
            try:
                yield CompletionChunk(finish_reason="stop")
                yield CompletionChunk(text_delta="never")
            finally:
                finalized.append(True)

        await assembler.consume(chunks())
        assert finalized == [True]


def test_describe_error():
    assert describe_error(CompletionError("boom")) == "boom"
    assert describe_error(TimeoutError()) == "TimeoutError"
