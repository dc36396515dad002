# =============================================================================
# Shared Test Fixtures: Scripted LLM Provider
# =============================================================================
#
# ScriptedLLM stands in for the generation service. It recognises which
# pipeline stage is calling from the request itself (response schema or
# prompt text) and answers from a per-stage script, recording every call
# so tests can assert which stages ran.
# =============================================================================

from __future__ import annotations

import json
import re
from collections.abc import Callable
from typing import Any

import pytest

from corpus_qa.agents.selector import SelectionPayload
from corpus_qa.agents.summarizer import SummaryPayload
from corpus_qa.agents.synthesizer import SynthesisPayload
from corpus_qa.services.llm import LLMResponse

_DOC_NAME = re.compile(r"--- DOCUMENT START: (.+?) ---")

Script = Any  # str | list | dict | Exception | Callable


class ScriptedLLM:
    """
    Fake LLMProvider answering per stage.

    Args:
        selection: list of names (encoded as the selection payload), a raw
            string, or an exception to raise.
        extractions: dict of document name → points, exception, or
            callable(call) → points; missing names extract "".
        synthesis: dict payload, raw string, callable(call) → dict, or
            an exception.
        summary: dict payload, raw string, or exception.
        description / metadata: plain-text replies for enrichment, or an
            exception.
    """

    def __init__(
        self,
        selection: Script = None,
        extractions: dict[str, Script] | None = None,
        synthesis: Script = None,
        summary: Script = None,
        description: Script = "A test document.",
        metadata: Script = "Title: N/A\nDate: N/A",
    ) -> None:
        self.selection = selection if selection is not None else []
        self.extractions = extractions or {}
        self.synthesis = synthesis
        self.summary = summary
        self.description = description
        self.metadata = metadata
        self.calls: list[dict[str, Any]] = []

    def stage_calls(self, stage: str) -> list[dict[str, Any]]:
        return [c for c in self.calls if c["stage"] == stage]

    async def complete(
        self,
        messages: list[dict[str, str]],
        system: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
        model: str | None = None,
        response_schema: type | None = None,
        thinking_budget: int | None = None,
    ) -> LLMResponse:
        content = messages[-1]["content"]
        call = {
            "messages": messages,
            "content": content,
            "system": system,
            "temperature": temperature,
            "max_tokens": max_tokens,
            "model": model,
            "response_schema": response_schema,
            "thinking_budget": thinking_budget,
        }

        if response_schema is SelectionPayload:
            call["stage"] = "select"
            reply = self.selection
            if isinstance(reply, list):
                reply = {"relevant_documents": reply}
        elif response_schema is SynthesisPayload:
            call["stage"] = "synthesize"
            reply = self.synthesis
            if callable(reply):
                reply = reply(call)
        elif response_schema is SummaryPayload:
            call["stage"] = "summarize"
            reply = self.summary
        elif content.startswith("Briefly describe"):
            call["stage"] = "describe"
            reply = self.description
        elif "Reply with exactly two lines" in content:
            call["stage"] = "metadata"
            reply = self.metadata
        else:
            call["stage"] = "extract"
            match = _DOC_NAME.search(content)
            call["document"] = match.group(1) if match else None
            reply = self.extractions.get(call["document"], "")
            if callable(reply):
                reply = reply(call)

        self.calls.append(call)

        if isinstance(reply, Exception):
            raise reply
        if isinstance(reply, dict):
            reply = json.dumps(reply)

        return LLMResponse(
            content=reply, model="scripted", input_tokens=10, output_tokens=5,
        )


@pytest.fixture
def scripted_llm() -> Callable[..., ScriptedLLM]:
    """Factory fixture: scripted_llm(selection=[...], extractions={...})."""
    return ScriptedLLM
