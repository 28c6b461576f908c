"""
Core functionality for Cognize.

This package contains the main logic for:
- Knowledge record model and relation types
- Cosine similarity and exhaustive retrieval ranking
- Relation classification of retrieved insights
- Model-backed distillation, embedding and decision support
- JSON record store and configuration management
"""
