"""
Cognize: distill notes into insights and link them to what you already know.
"""

__version__ = "0.1.0"
