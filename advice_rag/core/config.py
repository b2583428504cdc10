"""
Runtime configuration for the advice RAG service.
Settings come from the environment, with a local .env file loaded first.
"""

import os
from pathlib import Path
from typing import List, Tuple

from dotenv import load_dotenv

from .errors import ConfigurationError

load_dotenv()

# Corpus, storage and cache locations
CORPUS_PATH = os.getenv("CORPUS_PATH", "./data/advice.csv")
DB_PATH = os.getenv("DB_PATH", "./data/messages.db")
EMBED_CACHE_PATH = os.getenv("EMBED_CACHE_PATH", "./data/embeddings_cache.json")

# Debug flag
DEBUG = os.getenv("DEBUG", "false").lower() == "true"

# Embedding provider configuration
EMBED_PROVIDER = os.getenv("EMBED_PROVIDER", "openai")  # openai|sentence_transformers|hash
EMBED_MODEL_NAME = os.getenv("EMBED_MODEL_NAME", "text-embedding-ada-002")
EMBED_BATCH_SIZE = int(os.getenv("EMBED_BATCH_SIZE", "100"))

# Language model configuration
LLM_PROVIDER = os.getenv("LLM_PROVIDER", "anthropic")  # anthropic|ollama|mock
LLM_MODEL = os.getenv("LLM_MODEL", "claude-3-5-sonnet-20241022")
OLLAMA_HOST = os.getenv("OLLAMA_HOST", "http://localhost:11434")
LLM_MAX_TOKENS = int(os.getenv("LLM_MAX_TOKENS", "2000"))
LLM_TEMPERATURE = float(os.getenv("LLM_TEMPERATURE", "0.7"))
LLM_TIMEOUT_SEC = float(os.getenv("LLM_TIMEOUT_SEC", "120"))

# Retrieval configuration
SEARCH_THRESHOLD = float(os.getenv("SEARCH_THRESHOLD", "0.3"))
DIRECT_WEIGHT = float(os.getenv("DIRECT_WEIGHT", "1.0"))
CATEGORY_WEIGHT = float(os.getenv("CATEGORY_WEIGHT", "0.0"))

# Grounding selection configuration
GROUNDING_FLOOR = float(os.getenv("GROUNDING_FLOOR", "0.49"))
GROUNDING_GAP = float(os.getenv("GROUNDING_GAP", "0.08"))
GROUNDING_MIN = int(os.getenv("GROUNDING_MIN", "5"))
GROUNDING_MAX = int(os.getenv("GROUNDING_MAX", "8"))
DISPLAY_COUNT = int(os.getenv("DISPLAY_COUNT", "10"))

# Index build lock
INDEX_LOCK_TIMEOUT_SEC = float(os.getenv("INDEX_LOCK_TIMEOUT_SEC", "300"))
INDEX_LOCK_POLL_SEC = float(os.getenv("INDEX_LOCK_POLL_SEC", "1.0"))

# Browse search page size
BROWSE_PAGE_SIZE = int(os.getenv("BROWSE_PAGE_SIZE", "10"))

# Cache manifest schema version
CACHE_VERSION = "1.0"

# Version string
VERSION = "1.0.0"


def debug_enabled():
    """Check if debug mode is enabled."""
    return os.getenv("DEBUG", "false").lower() == "true"


def ensure_data_directories():
    """Ensure the database and cache directories exist."""
    Path(DB_PATH).parent.mkdir(parents=True, exist_ok=True)
    Path(EMBED_CACHE_PATH).parent.mkdir(parents=True, exist_ok=True)


def get_anthropic_api_key():
    """Anthropic key, accepting the legacy CLAUDE_API_KEY name."""
    return os.getenv("ANTHROPIC_API_KEY") or os.getenv("CLAUDE_API_KEY")


def get_blend_weights() -> Tuple[float, float]:
    """Get (direct, category) similarity weights. They must sum to 1."""
    direct = float(os.getenv("DIRECT_WEIGHT", str(DIRECT_WEIGHT)))
    category = float(os.getenv("CATEGORY_WEIGHT", str(CATEGORY_WEIGHT)))
    if direct < 0 or category < 0 or abs(direct + category - 1.0) > 1e-6:
        raise ConfigurationError(
            f"DIRECT_WEIGHT ({direct}) and CATEGORY_WEIGHT ({category}) must be non-negative and sum to 1"
        )
    return direct, category


def get_embedding_provider():
    """Get configured embedding provider implementation."""
    provider = os.getenv("EMBED_PROVIDER", EMBED_PROVIDER)
    model_name = os.getenv("EMBED_MODEL_NAME", EMBED_MODEL_NAME)

    if provider == "openai":
        api_key = os.getenv("OPENAI_API_KEY")
        if not api_key:
            raise ConfigurationError("OPENAI_API_KEY is required when EMBED_PROVIDER=openai")
        from ..vector.embeddings import OpenAIEmbedding
        return OpenAIEmbedding(api_key=api_key, model_name=model_name)
    elif provider == "sentence_transformers":
        from ..vector.embeddings import SentenceTransformerEmbedding
        if model_name == "text-embedding-ada-002":
            model_name = "all-mpnet-base-v2"
        return SentenceTransformerEmbedding(model_name)
    elif provider == "hash":
        from ..vector.embeddings import DeterministicHashEmbedding
        return DeterministicHashEmbedding()
    else:
        raise ConfigurationError(f"Invalid EMBED_PROVIDER: {provider}")


def get_language_model():
    """Get configured language model implementation."""
    provider = os.getenv("LLM_PROVIDER", LLM_PROVIDER)
    model = os.getenv("LLM_MODEL", LLM_MODEL)

    if provider == "anthropic":
        api_key = get_anthropic_api_key()
        if not api_key:
            raise ConfigurationError("ANTHROPIC_API_KEY is required when LLM_PROVIDER=anthropic")
        from ..generation.llm import AnthropicLanguageModel
        return AnthropicLanguageModel(
            api_key=api_key,
            model_name=model,
            max_tokens=LLM_MAX_TOKENS,
            temperature=LLM_TEMPERATURE,
            timeout=LLM_TIMEOUT_SEC,
        )
    elif provider == "ollama":
        from ..generation.llm import OllamaLanguageModel
        return OllamaLanguageModel(
            model_name=model,
            host=os.getenv("OLLAMA_HOST", OLLAMA_HOST),
            temperature=LLM_TEMPERATURE,
        )
    elif provider == "mock":
        from ..generation.llm import MockLanguageModel
        return MockLanguageModel()
    else:
        raise ConfigurationError(f"Invalid LLM_PROVIDER: {provider}")


def validate_config() -> List[str]:
    """Validate retrieval configuration and return any issues."""
    issues = []

    try:
        get_blend_weights()
    except ConfigurationError as e:
        issues.append(str(e))

    if GROUNDING_MIN < 1:
        issues.append("GROUNDING_MIN must be >= 1")

    if GROUNDING_MAX < GROUNDING_MIN:
        issues.append("GROUNDING_MAX must be >= GROUNDING_MIN")

    if DISPLAY_COUNT < GROUNDING_MAX:
        issues.append("DISPLAY_COUNT must be >= GROUNDING_MAX")

    if not -1.0 <= SEARCH_THRESHOLD <= 1.0:
        issues.append(f"SEARCH_THRESHOLD out of range: {SEARCH_THRESHOLD}")

    if INDEX_LOCK_POLL_SEC <= 0 or INDEX_LOCK_TIMEOUT_SEC <= 0:
        issues.append("INDEX_LOCK_POLL_SEC and INDEX_LOCK_TIMEOUT_SEC must be > 0")

    return issues
