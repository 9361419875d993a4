"""
Cognify server - builds knowledge graphs from text and streams them as they grow.
"""

__version__ = "0.1.0"
