"""Generation backend adapter - document, clarification JSON, multi-document and classify calls.

Every call is cancellable through a CancellationToken. Any other failure is turned
into a typed fallback here, so callers only ever see OperationCancelledError.
"""

import json
import logging
import re

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

import httpx

from speckit_studio.domain.entities.cancellation import CancellationToken, OperationCancelledError, ensure_token
from speckit_studio.domain.entities.operations import CHAT
from speckit_studio.domain.entities.project_state import Attachment
from speckit_studio.domain.ports.llm import ImageInput, LLMMessage, LLMPort, LLMResponse

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"^\s*```(?:json)?\s*\n?(.*?)\n?\s*```\s*$", re.DOTALL)


class ClarificationQuestion(BaseModel):
    """One clarification round as returned by the backend."""

    model_config = ConfigDict(populate_by_name=True)

    question: str
    options: list[str] = Field(default_factory=list)
    recommendation: str = ""
    is_enough: bool = Field(False, alias="isEnough")


FALLBACK_CLARIFICATION = ClarificationQuestion(
    question="请确认是否开始生成文档？",
    options=["是，直接生成", "补充更多信息"],
    recommendation="是，直接生成",
    is_enough=True,
)

CLARIFY_SYSTEM_INSTRUCTION = """You are an expert Product Manager.
Your goal is to clarify requirements before writing a spec.
If images are provided, use them to understand the requirement context.

SYSTEM STATUS: If the user is asking for changes to an existing spec (Refinement Mode), assume reasonable defaults and set isEnough: true unless a critical decision is missing. Do not ask trivial questions.

Return ONLY valid JSON in the following format:
{
    "question": "Question text in Chinese",
    "options": ["Option A", "Option B", "Option C"],
    "recommendation": "Option A",
    "isEnough": boolean
}"""

CLARIFY_PROMPT = """Context so far: {context}
Current Round: {round}/5

Task:
1. If the requirement is vague, ask a clarifying question (single choice preferred).
2. Provide 2-4 distinct options for the user to click.
3. If the requirement is very clear, set "isEnough" to true.
4. Output strictly valid JSON."""

MULTI_DOCUMENT_RULE = """CRITICAL OUTPUT RULE:
You must output a strictly valid JSON object where keys are filenames and values are the file content.
Do NOT output Markdown. Do NOT output code blocks (like ```json). Just the raw JSON string.

Example:
{
   "backend.md": "# Backend Design\\n...",
   "web.md": "# Web Design\\n..."
}"""


def clean_markdown(text: str) -> str:
    """Strip bold markers (** and __) from Markdown table rows; other lines untouched."""
    if not text:
        return ""
    lines = []
    for line in text.split("\n"):
        if line.strip().startswith("|"):
            line = line.replace("**", "").replace("__", "")
        lines.append(line)
    return "\n".join(lines)


def attachments_to_images(attachments: list[Attachment] | None) -> list[ImageInput]:
    """Base64 payload and MIME type per attachment; a data URL prefix (data:image/png;base64,) is dropped."""
    images = []
    for att in attachments or []:
        data = att.data
        images.append(ImageInput(mime_type=att.mime_type, data=data.split(",", 1)[1] if "," in data else data))
    return images


def parse_json_reply(text: str):
    """json.loads after removing an optional ``` fence."""
    raw = (text or "").strip() or "{}"
    match = _FENCE_RE.match(raw)
    if match:
        raw = match.group(1).strip()
    return json.loads(raw)


@retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    retry=retry_if_exception_type((TimeoutError, ConnectionError, httpx.TransportError)),
    reraise=True,
)
async def _generate_impl(
    llm: LLMPort,
    messages: list[LLMMessage],
    model: str,
    temperature: float,
    json_mode: bool,
) -> LLMResponse:
    """Internal: generate with retry on transport errors."""
    return await llm.generate(
        messages=messages,
        model=model,
        temperature=temperature,
        json_mode=json_mode,
    )


class GenerationBackend:
    """Adapter over an LLMPort for the orchestrator's four call shapes."""

    def __init__(
        self,
        llm: LLMPort,
        model: str,
        temperature: float = 0.7,
        classify_temperature: float = 0.1,
    ) -> None:
        self._llm = llm
        self._model = model
        self._temperature = temperature
        self._classify_temperature = classify_temperature

    @property
    def model(self) -> str:
        return self._model

    async def _call(
        self,
        system: str,
        prompt: str,
        images: list[ImageInput] | None,
        token: CancellationToken,
        temperature: float,
        json_mode: bool = False,
    ) -> str:
        token.raise_if_cancelled()
        messages = [
            LLMMessage(role="system", content=system),
            LLMMessage(role="user", content=prompt, images=images or None),
        ]
        response = await token.run(_generate_impl(self._llm, messages, self._model, temperature, json_mode))
        return response.content or ""

    async def complete(
        self,
        system_context: str,
        prompt: str,
        attachments: list[Attachment] | None = None,
        token: CancellationToken | None = None,
    ) -> str:
        """Single document. Table rows come back without bold markers."""
        try:
            text = await self._call(
                system_context,
                prompt,
                attachments_to_images(attachments),
                ensure_token(token),
                self._temperature,
            )
            return clean_markdown(text)
        except OperationCancelledError:
            raise
        except Exception as e:
            logger.warning("Document generation failed: %s", e, exc_info=True)
            return f"生成内容时出错: {e}"

    async def complete_structured(
        self,
        system_instruction: str,
        prompt: str,
        attachments: list[Attachment] | None = None,
        token: CancellationToken | None = None,
    ):
        """Raw JSON call. Raises on call or parse failure (callers supply the fallback)."""
        text = await self._call(
            system_instruction,
            prompt,
            attachments_to_images(attachments),
            ensure_token(token),
            self._temperature,
            json_mode=True,
        )
        return parse_json_reply(text)

    async def clarify(
        self,
        context: str,
        round_number: int,
        attachments: list[Attachment] | None = None,
        token: CancellationToken | None = None,
    ) -> ClarificationQuestion:
        """Next clarification question, or is_enough. Any failure yields FALLBACK_CLARIFICATION."""
        prompt = CLARIFY_PROMPT.format(context=context, round=round_number)
        try:
            data = await self.complete_structured(CLARIFY_SYSTEM_INSTRUCTION, prompt, attachments, token)
            return ClarificationQuestion.model_validate(data)
        except OperationCancelledError:
            raise
        except (ValueError, ValidationError, TypeError) as e:
            logger.warning("Clarification reply unparseable, using fallback: %s", e)
        except Exception as e:
            logger.warning("Clarification call failed, using fallback: %s", e, exc_info=True)
        return FALLBACK_CLARIFICATION.model_copy(deep=True)

    async def complete_multi_document(
        self,
        system_context: str,
        prompt: str,
        token: CancellationToken | None = None,
    ) -> dict[str, str]:
        """Filename -> content. On failure a single error_log.md entry describes the problem."""
        system = f"{system_context}\n\n{MULTI_DOCUMENT_RULE}"
        try:
            data = await self.complete_structured(system, prompt, None, token)
            if not isinstance(data, dict):
                raise ValueError(f"expected a JSON object, got {type(data).__name__}")
            return {
                str(name): clean_markdown(value if isinstance(value, str) else json.dumps(value, ensure_ascii=False))
                for name, value in data.items()
            }
        except OperationCancelledError:
            raise
        except Exception as e:
            logger.warning("Multi-document generation failed: %s", e, exc_info=True)
            return {"error_log.md": f"Generation Failed: {e}"}

    async def classify(
        self,
        instruction: str,
        utterance: str,
        token: CancellationToken | None = None,
    ) -> str:
        """Short classification token; "chat" on any failure."""
        try:
            text = await self._call(instruction, utterance, None, ensure_token(token), self._classify_temperature)
            return text.strip() or CHAT
        except OperationCancelledError:
            raise
        except Exception as e:
            logger.warning("Intent classification failed: %s", e)
            return CHAT
