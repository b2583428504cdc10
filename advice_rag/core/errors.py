"""
Error taxonomy for the retrieval and generation pipeline.
"""


class AdviceRagError(Exception):
    """Base class for all advice_rag errors."""
    pass


class ConfigurationError(AdviceRagError):
    """Missing provider credentials or invalid settings. Fatal at startup."""
    pass


class IndexBuildError(AdviceRagError):
    """Embedding computation failed while building the vector index."""
    pass


class CacheInvalidError(AdviceRagError):
    """Cache manifest is missing, corrupt or stale. Triggers a rebuild."""
    pass


class SearchProviderError(AdviceRagError):
    """Embedding provider failed on a live query."""
    pass


class GenerationError(AdviceRagError):
    """Language model failure during stage 1 or stage 2."""

    def __init__(self, message: str, stage: int):
        super().__init__(message)
        self.stage = stage


class StreamReuseError(AdviceRagError, RuntimeError):
    """A single-consumption stream was iterated more than once."""
    pass


class MessageNotFoundError(AdviceRagError):
    """No stored message with the requested id."""

    def __init__(self, message_id: int):
        super().__init__(f"Message {message_id} not found")
        self.message_id = message_id
