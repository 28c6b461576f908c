"""
Test suite for Cognize.

This package contains tests for all core functionality including:
- Knowledge record model and relation types
- Cosine similarity and retrieval ranking
- Relation classification and response normalization
- LLM handler, record store and pipeline
- Configuration management and CLI commands
"""
