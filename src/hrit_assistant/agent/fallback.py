"""Context-augmented answer generation for queries no service handled."""

from __future__ import annotations

import logging
import os
import re
from typing import Any, Protocol

from langchain_core.prompts import ChatPromptTemplate

from hrit_assistant.config import GenerationConfig
from hrit_assistant.timeouts import call_with_timeout
from hrit_assistant.types import IntentResult, RetrievedContext

logger = logging.getLogger(__name__)

APOLOGY_MESSAGE = (
    "Sorry, the assistant is unable to answer right now. "
    "Please contact HR at hr@company.com or IT support at support@company.com for help."
)

NO_CONTEXT_MESSAGE = (
    "I can help you with HR and IT questions, but I could not find this in the company "
    "knowledge base. Please contact HR at hr@company.com or IT support at "
    "support@company.com for specific assistance."
)

_SYSTEM_PROMPT = """
You are an internal HR and IT assistant for company employees.

Rules:
1) Answer from the company information included in the request.
2) If the information is not there, give general guidance and suggest contacting HR or IT directly.
3) Be professional, clear and concise.
""".strip()

_CONTEXT_LINE = re.compile(r"^\d+\.\s+\[(?P<source>[^\]]+)\]\s+(?P<body>.+)$")


class TextGenerator(Protocol):
    def generate(self, prompt: str) -> str:
        """Return completion text for `prompt`; may raise or block."""


def build_fallback_prompt(
    query: str,
    retrieved: RetrievedContext,
    intent: IntentResult,
    *,
    history: str = "",
    user_info: str = "",
) -> str:
    sections: list[str] = []
    if retrieved.context:
        sections.append(retrieved.context)
    if user_info:
        sections.append(f"User Information:\n{user_info}")
    if history:
        sections.append(history)
    sections.append(
        "Query Analysis:\n"
        f"- Intent: {intent.primary} (confidence: {intent.confidence:.2f})\n"
        f"- Source Service: {intent.source_service or 'none'}\n"
        f"- Retrieved from: {', '.join(retrieved.sources) or 'nothing'}"
    )
    sections.append(f"Employee Question: {query}")
    sections.append(
        "Please provide a helpful, professional response based on the context above. "
        "If the information isn't available in the context, provide general guidance "
        "and suggest contacting HR/IT directly."
    )
    return "\n\n".join(sections)


class LangChainTextGenerator:
    """Runs the fallback prompt through any LangChain chat model."""

    def __init__(self, llm: Any) -> None:
        self.llm = llm
        self.prompt = ChatPromptTemplate.from_messages(
            [("system", _SYSTEM_PROMPT), ("human", "{request}")]
        )
        self._chain = self.prompt | self.llm

    def generate(self, prompt: str) -> str:
        result = self._chain.invoke({"request": prompt})
        content = getattr(result, "content", result)
        if isinstance(content, list):
            parts = [
                str(item["text"]) if isinstance(item, dict) and "text" in item else str(item)
                for item in content
            ]
            content = " ".join(parts)
        text = str(content).strip()
        if not text:
            raise ValueError("model returned an empty completion")
        return text


class ExtractiveGenerator:
    """Deterministic generator that answers from the prompt's context block.

    Keeps the `TextGenerator` contract for offline environments where no
    chat model is configured.
    """

    def __init__(self, max_items: int = 3) -> None:
        self.max_items = max_items

    def generate(self, prompt: str) -> str:
        excerpts = _parse_context_lines(prompt)
        if not excerpts:
            return NO_CONTEXT_MESSAGE
        lines = ["Here is what I found in the company knowledge base:"]
        for index, (source, body) in enumerate(excerpts[: self.max_items], start=1):
            lines.append(f"{index}. {body} [{source}]")
        return "\n".join(lines)


def generate_with_timeout(
    generator: TextGenerator, prompt: str, timeout: float
) -> tuple[str, str | None]:
    """Call `generator` with a bounded wait.

    Returns `(text, error)`; on timeout or failure `text` is the static
    apology and `error` names what went wrong.
    """

    try:
        return call_with_timeout(generator.generate, timeout, prompt), None
    except TimeoutError:
        logger.warning("Text generation timed out after %.1fs", timeout)
        return APOLOGY_MESSAGE, "generation_timeout"
    except Exception as exc:
        logger.warning("Text generation failed: %s", exc, exc_info=True)
        return APOLOGY_MESSAGE, f"generation_failed: {type(exc).__name__}"


def build_chat_model(config: GenerationConfig | None = None) -> Any:
    """Return a `ChatOpenAI` model when `OPENAI_API_KEY` is set, else None."""
    if not os.getenv("OPENAI_API_KEY"):
        return None

    from langchain_openai import ChatOpenAI

    config = config or GenerationConfig()
    return ChatOpenAI(
        model=config.model,
        temperature=config.temperature,
        timeout=config.timeout_seconds,
    )


def build_text_generator(config: GenerationConfig | None = None) -> TextGenerator:
    llm = build_chat_model(config)
    if llm is None:
        logger.info("No chat model configured; using extractive fallback generator")
        return ExtractiveGenerator()
    return LangChainTextGenerator(llm)


def _parse_context_lines(prompt: str) -> list[tuple[str, str]]:
    excerpts: list[tuple[str, str]] = []
    for line in prompt.splitlines():
        match = _CONTEXT_LINE.match(line.strip())
        if not match:
            continue
        excerpts.append((match.group("source").strip(), match.group("body").strip()))
    return excerpts
