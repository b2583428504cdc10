#!/usr/bin/env python3
"""
Index Rebuild Utility
Loads the advice corpus and builds the embedding cache, reusing a valid
cache unless --force is given.
"""

import argparse
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from advice_rag.core import config
from advice_rag.core.corpus import CorpusRepository
from advice_rag.core.errors import AdviceRagError
from advice_rag.vector.index import VectorIndex


def main():
    """Rebuild the vector index cache from the advice corpus."""
    parser = argparse.ArgumentParser(
        description="Build the embedding cache for the advice corpus",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s            # Load the cache if valid, otherwise compute it
  %(prog)s --force    # Recompute embeddings and overwrite the cache

Environment variables:
- CORPUS_PATH, EMBED_CACHE_PATH
- EMBED_PROVIDER, EMBED_MODEL_NAME, OPENAI_API_KEY
        """
    )
    parser.add_argument(
        "--force", "-f",
        action="store_true",
        help="Ignore any existing cache and recompute all embeddings"
    )
    args = parser.parse_args()

    try:
        provider = config.get_embedding_provider()
        corpus = CorpusRepository.from_csv(config.CORPUS_PATH)
    except (AdviceRagError, FileNotFoundError) as e:
        print(f"ERROR: {e}")
        sys.exit(1)

    print(f"Loaded {len(corpus)} advice entries from {config.CORPUS_PATH}")
    print(f"Building index with model {provider.model_id}{' (forced)' if args.force else ''}...")

    try:
        index = VectorIndex.build(corpus, provider, force=args.force)
    except AdviceRagError as e:
        print(f"ERROR: Index build failed: {e}")
        sys.exit(1)

    print(f"✓ Index ready: {len(index)} entries, {len(index.category_vectors)} categories")
    print(f"✓ Cache at {config.EMBED_CACHE_PATH}")


if __name__ == "__main__":
    main()
