"""
Embedding providers. Every provider maps text to a fixed-length vector and
reports a model id that the index cache is keyed on.
"""

from abc import ABC, abstractmethod
import hashlib
from typing import List

from sentence_transformers import SentenceTransformer
from openai import OpenAI


class IEmbeddingProvider(ABC):
    """Abstract interface for embedding providers."""

    @property
    @abstractmethod
    def model_id(self) -> str:
        """Identifier of the model producing the vectors."""
        pass

    @abstractmethod
    def embed_text(self, text: str) -> List[float]:
        """Generate embedding vector for given text."""
        pass

    @abstractmethod
    def get_dimension(self) -> int:
        """Get the dimension of the embedding vectors."""
        pass

    def embed_texts(self, texts: List[str]) -> List[List[float]]:
        """Embed several texts, one call per text unless overridden."""
        return [self.embed_text(text) for text in texts]


class DeterministicHashEmbedding(IEmbeddingProvider):
    """Deterministic hash-based embedding provider for testing purposes.

    This implementation uses a consistent hashing approach to generate
    reproducible embeddings from text, which is useful for testing
    and offline development without an embedding API.
    """

    def __init__(self, dimension: int = 384):
        self.dimension = dimension

    @property
    def model_id(self) -> str:
        return f"hash-{self.dimension}"

    def embed_text(self, text: str) -> List[float]:
        """Generate deterministic embedding vector using chained SHA-256 digests."""
        vector = []
        counter = 0
        while len(vector) < self.dimension:
            digest = hashlib.sha256(f"{counter}:{text}".encode()).digest()
            for i in range(0, len(digest), 4):
                value = int.from_bytes(digest[i:i + 4], "big")
                # Map to [-1, 1]
                vector.append((value / 2**32) * 2 - 1)
            counter += 1

        return vector[:self.dimension]

    def get_dimension(self) -> int:
        """Get the dimension of the embedding vectors."""
        return self.dimension


class SentenceTransformerEmbedding(IEmbeddingProvider):
    """Sentence transformers embedding provider using pre-trained models.

    Uses the all-mpnet-base-v2 model by default.
    """

    def __init__(self, model_name: str = "all-mpnet-base-v2"):
        self.model_name = model_name
        self._model = None
        self._dimension = None

    @property
    def model_id(self) -> str:
        return self.model_name

    @property
    def model(self):
        if self._model is None:
            self._model = SentenceTransformer(self.model_name)
        return self._model

    def embed_text(self, text: str) -> List[float]:
        """Generate embedding vector using sentence transformers."""
        embedding = self.model.encode(text, convert_to_tensor=False)
        return embedding.tolist()

    def embed_texts(self, texts: List[str]) -> List[List[float]]:
        embeddings = self.model.encode(texts, convert_to_tensor=False, show_progress_bar=False)
        return [embedding.tolist() for embedding in embeddings]

    def get_dimension(self) -> int:
        """Get the dimension of the embedding vectors."""
        if self._dimension is None:
            # Get dimension by encoding a dummy string
            dummy_embedding = self.model.encode("test", convert_to_tensor=False)
            self._dimension = len(dummy_embedding)
        return self._dimension


class OpenAIEmbedding(IEmbeddingProvider):
    """OpenAI embeddings API provider."""

    DIMENSIONS = {
        "text-embedding-ada-002": 1536,
        "text-embedding-3-small": 1536,
        "text-embedding-3-large": 3072,
    }

    def __init__(self, api_key: str, model_name: str = "text-embedding-ada-002", client: OpenAI = None):
        self.model_name = model_name
        self._client = client or OpenAI(api_key=api_key)

    @property
    def model_id(self) -> str:
        return self.model_name

    def embed_text(self, text: str) -> List[float]:
        response = self._client.embeddings.create(model=self.model_name, input=text)
        return response.data[0].embedding

    def embed_texts(self, texts: List[str]) -> List[List[float]]:
        if not texts:
            return []
        response = self._client.embeddings.create(model=self.model_name, input=texts)
        # Each item carries the position of its input in `index`
        ordered = sorted(response.data, key=lambda item: item.index)
        return [item.embedding for item in ordered]

    def get_dimension(self) -> int:
        if self.model_name in self.DIMENSIONS:
            return self.DIMENSIONS[self.model_name]
        return len(self.embed_text("test"))
