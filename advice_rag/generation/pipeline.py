"""
Two-stage generation pipeline and its event stream.

Per request:
    EMBEDDING_SEARCH -> STAGE1 -> PERSIST_STAGE1 -> STAGE2_STREAM -> PERSIST_FINAL -> DONE
with ERROR reachable from every stage and NO_ADVICE taken when no entry
qualifies for grounding. `run()` turns one request into the ordered events
init, content*, then exactly one of complete or error.
"""

import asyncio
import json
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, AsyncIterator, Dict, List, Optional

from ..core import config
from ..core.errors import AdviceRagError, GenerationError
from ..core.messages import Message, MessageStore
from ..util.logging import logger
from ..vector.search import SemanticSearchEngine
from ..vector.selection import QualitySelector
from ..vector.types import SearchResult
from .llm import ILanguageModel
from .prompts import (
    NO_ADVICE_SENTINEL,
    STAGE1_SYSTEM_PROMPT,
    STAGE2_SYSTEM_PROMPT,
    build_stage1_prompt,
    build_stage2_prompt,
    ensure_attribution,
)
from .stream import SingleUseStream


class PipelineState(str, Enum):
    EMBEDDING_SEARCH = "embedding_search"
    STAGE1 = "stage1"
    PERSIST_STAGE1 = "persist_stage1"
    STAGE2_STREAM = "stage2_stream"
    PERSIST_FINAL = "persist_final"
    NO_ADVICE = "no_advice"
    DONE = "done"
    ERROR = "error"


@dataclass
class StreamEvent:
    """One event of the chat stream protocol."""
    type: str  # init | content | complete | error
    message_id: Optional[int] = None
    content: Optional[str] = None
    message: Optional[Dict[str, Any]] = None
    error: Optional[str] = None

    TERMINAL = ("complete", "error")

    @property
    def is_terminal(self) -> bool:
        return self.type in self.TERMINAL

    def to_dict(self) -> Dict[str, Any]:
        if self.type == "init":
            return {"type": "init", "messageId": self.message_id}
        if self.type == "content":
            return {"type": "content", "content": self.content}
        if self.type == "complete":
            return {"type": "complete", "message": self.message}
        return {"type": "error", "error": self.error}

    def to_ndjson(self) -> str:
        return json.dumps(self.to_dict()) + "\n"


@dataclass
class Retrieval:
    """Ranked candidates split into grounding and display sets."""
    ranked: List[SearchResult]
    grounding: List[SearchResult] = field(default_factory=list)
    display: List[SearchResult] = field(default_factory=list)


class GenerationPipeline:
    """Retrieval, grounded synthesis and style transform for one query at a time."""

    def __init__(self, search_engine: SemanticSearchEngine, selector: QualitySelector,
                 language_model: ILanguageModel, store: MessageStore,
                 threshold: Optional[float] = None, timeout: Optional[float] = None):
        self.search_engine = search_engine
        self.selector = selector
        self.language_model = language_model
        self.store = store
        self.threshold = config.SEARCH_THRESHOLD if threshold is None else threshold
        self.timeout = config.LLM_TIMEOUT_SEC if timeout is None else timeout

    async def retrieve(self, query: str) -> Retrieval:
        """Search the index and split the results into grounding and display sets."""
        ranked = await self.search_engine.search(query, self.threshold)
        return Retrieval(
            ranked=ranked,
            grounding=self.selector.select_grounding(ranked),
            display=self.selector.select_display(ranked),
        )

    async def generate_grounded(self, query: str, grounding: List[SearchResult]) -> str:
        """
        Stage 1: one non-streamed completion grounded on the selected entries.

        Returns the no-advice sentinel without calling the model when the
        grounding set is empty.

        Raises:
            GenerationError: (stage 1) on model failure or timeout
        """
        if not grounding:
            return NO_ADVICE_SENTINEL

        prompt = build_stage1_prompt(query, grounding)
        try:
            text = await asyncio.wait_for(
                self.language_model.complete(STAGE1_SYSTEM_PROMPT, prompt),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as e:
            raise GenerationError(f"Stage 1 generation timed out after {self.timeout}s", stage=1) from e
        except Exception as e:
            raise GenerationError(f"Stage 1 generation failed: {e}", stage=1) from e

        if not text or not text.strip():
            raise GenerationError("Stage 1 generation failed: empty response", stage=1)

        if text.strip() == NO_ADVICE_SENTINEL:
            return NO_ADVICE_SENTINEL
        return ensure_attribution(text, grounding)

    def generate_styled(self, stage1_text: str, query: str) -> SingleUseStream:
        """
        Stage 2: stream the style transform of the stage 1 text.

        The sentinel passes through unchanged as a single chunk.
        """
        if stage1_text == NO_ADVICE_SENTINEL:
            return SingleUseStream.of(NO_ADVICE_SENTINEL)

        source = self.language_model.stream(STAGE2_SYSTEM_PROMPT, build_stage2_prompt(stage1_text, query))
        return SingleUseStream(source, chunk_timeout=self.timeout)

    async def run(self, message: Message) -> AsyncIterator[StreamEvent]:
        """
        Process one stored message and yield its stream events.

        Errors never escape: they become a single terminal error event.
        Closing this generator early stops the model stream.
        """
        message_id = message.id
        state = PipelineState.EMBEDDING_SEARCH
        start_time = time.time()
        styled: Optional[SingleUseStream] = None

        yield StreamEvent(type="init", message_id=message_id)

        try:
            logger.log_pipeline_stage(message_id, state.value)
            retrieval = await self.retrieve(message.query)

            if retrieval.grounding:
                state = PipelineState.STAGE1
                logger.log_pipeline_stage(message_id, state.value, details={"grounding": len(retrieval.grounding)})
            else:
                state = PipelineState.NO_ADVICE
                logger.log_pipeline_stage(message_id, state.value)
            stage1_text = await self.generate_grounded(message.query, retrieval.grounding)

            state = PipelineState.PERSIST_STAGE1
            self.store.update_message(
                message_id,
                stage1_response=stage1_text,
                metadata={"displayEntries": [r.to_dict() for r in retrieval.display]},
            )

            state = PipelineState.STAGE2_STREAM
            logger.log_pipeline_stage(message_id, state.value)
            styled = self.generate_styled(stage1_text, message.query)
            chunks = styled.__aiter__()
            try:
                async for chunk in chunks:
                    yield StreamEvent(type="content", content=chunk)
            finally:
                await chunks.aclose()

            if not styled.text.strip():
                raise GenerationError("Stage 2 generation failed: empty response", stage=2)

            state = PipelineState.PERSIST_FINAL
            final = self.store.update_message(message_id, final_response=styled.text)

            state = PipelineState.DONE
            logger.log_pipeline_stage(message_id, state.value, details={
                "duration_ms": round((time.time() - start_time) * 1000, 2),
                "response_length": len(styled.text),
            })
            yield StreamEvent(type="complete", message=final.to_dict())

        except AdviceRagError as e:
            logger.log_pipeline_stage(message_id, PipelineState.ERROR.value, "failed", {
                "failed_state": state.value, "error": str(e)[:200]
            })
            yield StreamEvent(type="error", error=str(e))
        except Exception as e:
            logger.log_pipeline_stage(message_id, PipelineState.ERROR.value, "failed", {
                "failed_state": state.value, "error": str(e)[:200]
            })
            yield StreamEvent(type="error", error=f"Failed to process chat request: {e}")
        finally:
            if styled is not None:
                await styled.aclose()
