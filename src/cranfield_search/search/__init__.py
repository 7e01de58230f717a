"""
Retrieval and ranking engine.

This package provides a pure-Python search stack:
- analyzers: Tokenizers and filters (standard, english, whitespace, n-gram, synonym)
- synonyms: Process-wide domain synonym table
- schema: Field definitions and per-field analyzer binding
- storage: Inverted index, index writer and JSON persistence
- indexer: Bulk index construction
- query: Boolean query trees and the free-text parser
- stats: BM25 scoring statistics
- bm25_engine: Query evaluation and top-k ranking
- feedback: Rocchio pseudo-relevance feedback
- rerank: Title-boost reranking
- trec: Run file serialization
"""
