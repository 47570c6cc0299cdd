"""
Catalog discovery and enrichment pipeline
"""

__version__ = "0.3.0"
