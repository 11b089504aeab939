"""
item_catalog

Item catalog service with request-lifecycle structured logging.
"""

__all__ = ["__version__"]

__version__ = "0.1.0"
