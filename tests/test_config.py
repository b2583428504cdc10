"""
Configuration factory tests.
"""

import pytest

from advice_rag.core import config
from advice_rag.core.errors import ConfigurationError
from advice_rag.generation.llm import AnthropicLanguageModel, MockLanguageModel, OllamaLanguageModel
from advice_rag.vector.embeddings import DeterministicHashEmbedding, OpenAIEmbedding, SentenceTransformerEmbedding


@pytest.fixture
def clean_env(monkeypatch):
    for name in ("OPENAI_API_KEY", "ANTHROPIC_API_KEY", "CLAUDE_API_KEY", "EMBED_MODEL_NAME",
                 "LLM_MODEL", "DIRECT_WEIGHT", "CATEGORY_WEIGHT"):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


class TestEmbeddingProvider:

    def test_hash_provider(self, clean_env):
        clean_env.setenv("EMBED_PROVIDER", "hash")
        assert isinstance(config.get_embedding_provider(), DeterministicHashEmbedding)

    def test_openai_requires_key(self, clean_env):
        clean_env.setenv("EMBED_PROVIDER", "openai")
        with pytest.raises(ConfigurationError):
            config.get_embedding_provider()

    def test_openai_with_key(self, clean_env):
        clean_env.setenv("EMBED_PROVIDER", "openai")
        clean_env.setenv("OPENAI_API_KEY", "sk-test")
        provider = config.get_embedding_provider()
        assert isinstance(provider, OpenAIEmbedding)
        assert provider.model_id == "text-embedding-ada-002"

    def test_sentence_transformers_default_model(self, clean_env):
        clean_env.setenv("EMBED_PROVIDER", "sentence_transformers")
        provider = config.get_embedding_provider()
        assert isinstance(provider, SentenceTransformerEmbedding)
        assert provider.model_id == "all-mpnet-base-v2"

    def test_unknown_provider(self, clean_env):
        clean_env.setenv("EMBED_PROVIDER", "word2vec")
        with pytest.raises(ConfigurationError):
            config.get_embedding_provider()


class TestLanguageModel:

    def test_anthropic_requires_key(self, clean_env):
        clean_env.setenv("LLM_PROVIDER", "anthropic")
        with pytest.raises(ConfigurationError):
            config.get_language_model()

    def test_anthropic_accepts_legacy_key_name(self, clean_env):
        clean_env.setenv("LLM_PROVIDER", "anthropic")
        clean_env.setenv("CLAUDE_API_KEY", "test-key")
        assert config.get_anthropic_api_key() == "test-key"
        assert isinstance(config.get_language_model(), AnthropicLanguageModel)

    def test_ollama(self, clean_env):
        clean_env.setenv("LLM_PROVIDER", "ollama")
        clean_env.setenv("LLM_MODEL", "llama3")
        model = config.get_language_model()
        assert isinstance(model, OllamaLanguageModel)
        assert model.model_name == "llama3"

    def test_mock(self, clean_env):
        clean_env.setenv("LLM_PROVIDER", "mock")
        assert isinstance(config.get_language_model(), MockLanguageModel)

    def test_unknown_provider(self, clean_env):
        clean_env.setenv("LLM_PROVIDER", "gpt")
        with pytest.raises(ConfigurationError):
            config.get_language_model()


class TestBlendWeights:

    def test_defaults(self, clean_env):
        assert config.get_blend_weights() == (1.0, 0.0)

    def test_configured(self, clean_env):
        clean_env.setenv("DIRECT_WEIGHT", "0.8")
        clean_env.setenv("CATEGORY_WEIGHT", "0.2")
        direct, category = config.get_blend_weights()
        assert direct == pytest.approx(0.8)
        assert category == pytest.approx(0.2)

    def test_must_sum_to_one(self, clean_env):
        clean_env.setenv("DIRECT_WEIGHT", "0.8")
        with pytest.raises(ConfigurationError):
            config.get_blend_weights()

    def test_validate_config_reports_weights(self, clean_env):
        clean_env.setenv("CATEGORY_WEIGHT", "0.5")
        issues = config.validate_config()
        assert any("CATEGORY_WEIGHT" in issue for issue in issues)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
