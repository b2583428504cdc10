"""
Language model adapters used by both generation stages.

Each adapter offers one non-streamed completion and one streamed completion
yielding text deltas. Provider exceptions propagate unchanged; the pipeline
maps them onto GenerationError.
"""

from abc import ABC, abstractmethod
from typing import Any, AsyncIterator, Dict, List, Optional

import anthropic
import ollama


class ILanguageModel(ABC):
    """Abstract interface for language model providers."""

    def __init__(self, model_name: str):
        self.model_name = model_name

    @abstractmethod
    async def complete(self, system: str, prompt: str) -> str:
        """Run one non-streamed completion and return its full text."""
        pass

    @abstractmethod
    def stream(self, system: str, prompt: str) -> AsyncIterator[str]:
        """
        Run one streamed completion.

        Returns an async generator of text deltas. Closing the generator
        early releases the underlying connection.
        """
        pass


class AnthropicLanguageModel(ILanguageModel):
    """Claude models through the Anthropic messages API."""

    def __init__(self, api_key: str, model_name: str = "claude-3-5-sonnet-20241022",
                 max_tokens: int = 2000, temperature: float = 0.7, timeout: Optional[float] = None,
                 client: Optional[anthropic.AsyncAnthropic] = None):
        super().__init__(model_name)
        self.max_tokens = max_tokens
        self.temperature = temperature
        if client is None:
            kwargs = {"api_key": api_key}
            if timeout is not None:
                kwargs["timeout"] = timeout
            client = anthropic.AsyncAnthropic(**kwargs)
        self._client = client

    def _request(self, system: str, prompt: str) -> Dict[str, Any]:
        return {
            "model": self.model_name,
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
            "system": system,
            "messages": [{"role": "user", "content": prompt}],
        }

    async def complete(self, system: str, prompt: str) -> str:
        response = await self._client.messages.create(**self._request(system, prompt))
        return "".join(
            block.text for block in response.content
            if getattr(block, "type", None) == "text"
        )

    async def stream(self, system: str, prompt: str) -> AsyncIterator[str]:
        async with self._client.messages.stream(**self._request(system, prompt)) as stream:
            async for event in stream:
                if getattr(event, "type", None) == "content_block_delta":
                    text = getattr(event.delta, "text", None)
                    if text:
                        yield text


class OllamaLanguageModel(ILanguageModel):
    """Local models served by Ollama."""

    def __init__(self, model_name: str, host: Optional[str] = None, temperature: float = 0.7,
                 client: Optional[ollama.AsyncClient] = None):
        super().__init__(model_name)
        self.temperature = temperature
        self._client = client or ollama.AsyncClient(host=host)

    def _messages(self, system: str, prompt: str) -> List[Dict[str, str]]:
        return [
            {"role": "system", "content": system},
            {"role": "user", "content": prompt},
        ]

    async def complete(self, system: str, prompt: str) -> str:
        response = await self._client.chat(
            model=self.model_name,
            messages=self._messages(system, prompt),
            options={"temperature": self.temperature},
        )
        return response["message"]["content"]

    async def stream(self, system: str, prompt: str) -> AsyncIterator[str]:
        parts = await self._client.chat(
            model=self.model_name,
            messages=self._messages(system, prompt),
            options={"temperature": self.temperature},
            stream=True,
        )
        async for part in parts:
            text = part["message"]["content"]
            if text:
                yield text


class MockLanguageModel(ILanguageModel):
    """
    Offline language model with deterministic output.

    Used for development and tests. `completion` and `chunks` override the
    generated output; `fail_complete` / `fail_stream_after` inject errors.
    Calls are recorded for inspection.
    """

    def __init__(self, model_name: str = "mock-model", completion: Optional[str] = None,
                 chunks: Optional[List[str]] = None, fail_complete: Optional[Exception] = None,
                 fail_stream_after: Optional[int] = None):
        super().__init__(model_name)
        self.completion = completion
        self.chunks = chunks
        self.fail_complete = fail_complete
        self.fail_stream_after = fail_stream_after
        self.complete_calls: List[Dict[str, str]] = []
        self.stream_calls: List[Dict[str, str]] = []
        self.chunks_pulled = 0
        self.streams_closed = 0

    async def complete(self, system: str, prompt: str) -> str:
        self.complete_calls.append({"system": system, "prompt": prompt})
        if self.fail_complete is not None:
            raise self.fail_complete
        if self.completion is not None:
            return self.completion
        return f"Draft answer based on {prompt.count('Entry ')} advice entries."

    async def stream(self, system: str, prompt: str) -> AsyncIterator[str]:
        self.stream_calls.append({"system": system, "prompt": prompt})
        chunks = self.chunks if self.chunks is not None else _word_chunks(prompt)
        try:
            for i, chunk in enumerate(chunks):
                if self.fail_stream_after is not None and i >= self.fail_stream_after:
                    raise ConnectionError("mock stream interrupted")
                self.chunks_pulled += 1
                yield chunk
        finally:
            self.streams_closed += 1


def _word_chunks(text: str) -> List[str]:
    words = text.split(" ")
    return [word + (" " if i < len(words) - 1 else "") for i, word in enumerate(words)]
