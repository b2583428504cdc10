"""
Advice RAG - retrieval-augmented answers over a fixed corpus of advice entries.
"""

__version__ = "1.0.0"
