"""Tests for GenerationBackend: call shapes and fallbacks."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from speckit_studio.domain.entities.cancellation import CancellationToken, OperationCancelledError
from speckit_studio.domain.entities.project_state import Attachment
from speckit_studio.domain.ports.llm import ImageInput, LLMResponse
from speckit_studio.infrastructure.llm.generation_backend import (
    FALLBACK_CLARIFICATION,
    GenerationBackend,
    attachments_to_images,
    clean_markdown,
    parse_json_reply,
)


def _llm(content: str = "", side_effect=None) -> AsyncMock:
    llm = AsyncMock()
    if side_effect is not None:
        llm.generate = AsyncMock(side_effect=side_effect)
    else:
        llm.generate = AsyncMock(return_value=LLMResponse(content=content, model="m"))
    return llm


class TestHelpers:
    def test_clean_markdown_only_touches_table_rows(self):
        text = "**Title**\n| **a** | __b__ |\n  | c | **d** |\nplain **bold**"
        assert clean_markdown(text) == "**Title**\n| a | b |\n  | c | d |\nplain **bold**"

    def test_clean_markdown_empty(self):
        assert clean_markdown("") == ""

    def test_attachments_strip_data_url_prefix(self):
        atts = [
            Attachment(id="1", mime_type="image/png", data="data:image/png;base64,AAA"),
            Attachment(id="2", mime_type="image/png", data="BBB"),
        ]
        assert attachments_to_images(atts) == [
            ImageInput(mime_type="image/png", data="AAA"),
            ImageInput(mime_type="image/png", data="BBB"),
        ]
        assert attachments_to_images(None) == []

    def test_parse_json_reply_strips_fence(self):
        assert parse_json_reply('```json\n{"a": 1}\n```') == {"a": 1}
        assert parse_json_reply("") == {}


class TestComplete:
    @pytest.mark.asyncio
    async def test_returns_cleaned_text(self):
        llm = _llm("| **x** |")
        backend = GenerationBackend(llm, model="m", temperature=0.5)

        assert await backend.complete("sys", "prompt") == "| x |"

        kwargs = llm.generate.call_args.kwargs
        assert kwargs["model"] == "m"
        assert kwargs["temperature"] == 0.5
        assert kwargs["json_mode"] is False
        assert [m.role for m in kwargs["messages"]] == ["system", "user"]

    @pytest.mark.asyncio
    async def test_failure_becomes_error_text(self):
        backend = GenerationBackend(_llm(side_effect=RuntimeError("down")), model="m")
        assert await backend.complete("sys", "prompt") == "生成内容时出错: down"

    @pytest.mark.asyncio
    async def test_images_forwarded(self):
        llm = _llm("ok")
        backend = GenerationBackend(llm, model="m")
        att = Attachment(id="1", mime_type="image/png", data="data:image/png;base64,QQ==")

        await backend.complete("sys", "prompt", attachments=[att])

        assert llm.generate.call_args.kwargs["messages"][1].images == [ImageInput(mime_type="image/png", data="QQ==")]

    @pytest.mark.asyncio
    async def test_jpeg_attachment_keeps_mime_type(self):
        llm = _llm("ok")
        backend = GenerationBackend(llm, model="m")
        att = Attachment(id="1", mime_type="image/jpeg", data="data:image/jpeg;base64,/9j/AAAA")

        await backend.complete("sys", "prompt", attachments=[att])

        (image,) = llm.generate.call_args.kwargs["messages"][1].images
        assert image.data_url() == "data:image/jpeg;base64,/9j/AAAA"


class TestClarify:
    @pytest.mark.asyncio
    async def test_parses_question(self):
        llm = _llm('{"question": "Q?", "options": ["a", "b"], "recommendation": "a", "isEnough": false}')
        backend = GenerationBackend(llm, model="m")

        result = await backend.clarify("ctx", 2)

        assert result.question == "Q?"
        assert result.options == ["a", "b"]
        assert result.is_enough is False
        assert llm.generate.call_args.kwargs["json_mode"] is True
        assert "Current Round: 2/5" in llm.generate.call_args.kwargs["messages"][1].content

    @pytest.mark.asyncio
    async def test_malformed_json_falls_back(self):
        backend = GenerationBackend(_llm("not json"), model="m")
        result = await backend.clarify("ctx", 0)
        assert result == FALLBACK_CLARIFICATION
        assert result.is_enough is True

    @pytest.mark.asyncio
    async def test_call_failure_falls_back(self):
        backend = GenerationBackend(_llm(side_effect=RuntimeError("boom")), model="m")
        assert (await backend.clarify("ctx", 0)).options == ["是，直接生成", "补充更多信息"]


class TestMultiDocument:
    @pytest.mark.asyncio
    async def test_returns_mapping(self):
        backend = GenerationBackend(_llm('{"backend.md": "| **a** |", "web.md": "# W"}'), model="m")
        docs = await backend.complete_multi_document("sys", "prompt")
        assert docs == {"backend.md": "| a |", "web.md": "# W"}

    @pytest.mark.asyncio
    async def test_malformed_reply_yields_error_log(self):
        backend = GenerationBackend(_llm("nope"), model="m")
        docs = await backend.complete_multi_document("sys", "prompt")
        assert list(docs) == ["error_log.md"]
        assert docs["error_log.md"].startswith("Generation Failed:")

    @pytest.mark.asyncio
    async def test_non_object_reply_yields_error_log(self):
        backend = GenerationBackend(_llm('["a", "b"]'), model="m")
        assert list(await backend.complete_multi_document("sys", "prompt")) == ["error_log.md"]


class TestClassify:
    @pytest.mark.asyncio
    async def test_uses_classify_temperature(self):
        llm = _llm("run_tech\n")
        backend = GenerationBackend(llm, model="m", classify_temperature=0.1)

        assert await backend.classify("instr", "text") == "run_tech"
        assert llm.generate.call_args.kwargs["temperature"] == 0.1

    @pytest.mark.asyncio
    async def test_failure_is_chat(self):
        backend = GenerationBackend(_llm(side_effect=RuntimeError("x")), model="m")
        assert await backend.classify("instr", "text") == "chat"


class TestCancellation:
    @pytest.mark.asyncio
    async def test_cancelled_token_is_not_swallowed(self):
        token = CancellationToken()
        token.cancel()
        backend = GenerationBackend(_llm("x"), model="m")

        with pytest.raises(OperationCancelledError):
            await backend.complete("sys", "prompt", token=token)
        with pytest.raises(OperationCancelledError):
            await backend.clarify("ctx", 0, token=token)
        with pytest.raises(OperationCancelledError):
            await backend.complete_multi_document("sys", "prompt", token=token)

    @pytest.mark.asyncio
    async def test_cancel_during_call(self):
        started = asyncio.Event()

        async def slow(**kwargs):
            started.set()
            await asyncio.sleep(10)

        backend = GenerationBackend(_llm(side_effect=slow), model="m")
        token = CancellationToken()
        task = asyncio.create_task(backend.complete("sys", "prompt", token=token))
        await started.wait()
        token.cancel()

        with pytest.raises(OperationCancelledError):
            await task
