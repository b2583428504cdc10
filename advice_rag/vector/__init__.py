"""
Embedding index, semantic search and grounding selection.
"""

from .types import EmbeddingRecord, CategoryVector, SearchResult
from .embeddings import IEmbeddingProvider, DeterministicHashEmbedding, SentenceTransformerEmbedding, OpenAIEmbedding
from .cache import CacheManifest, BuildLock, load_manifest, save_manifest
from .index import VectorIndex
from .search import SemanticSearchEngine, cosine_similarity
from .selection import QualitySelector

__all__ = [
    'EmbeddingRecord',
    'CategoryVector',
    'SearchResult',
    'IEmbeddingProvider',
    'DeterministicHashEmbedding',
    'SentenceTransformerEmbedding',
    'OpenAIEmbedding',
    'CacheManifest',
    'BuildLock',
    'load_manifest',
    'save_manifest',
    'VectorIndex',
    'SemanticSearchEngine',
    'cosine_similarity',
    'QualitySelector',
]
