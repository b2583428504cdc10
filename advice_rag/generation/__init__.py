"""
Grounded synthesis and style transform over retrieved advice.
"""

from .llm import ILanguageModel, AnthropicLanguageModel, OllamaLanguageModel, MockLanguageModel
from .prompts import NO_ADVICE_SENTINEL, ensure_attribution
from .stream import SingleUseStream
from .pipeline import GenerationPipeline, PipelineState, StreamEvent, Retrieval

__all__ = [
    'ILanguageModel',
    'AnthropicLanguageModel',
    'OllamaLanguageModel',
    'MockLanguageModel',
    'NO_ADVICE_SENTINEL',
    'ensure_attribution',
    'SingleUseStream',
    'GenerationPipeline',
    'PipelineState',
    'StreamEvent',
    'Retrieval',
]
