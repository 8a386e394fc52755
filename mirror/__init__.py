"""
Mirror Search - privacy-first search service.

Queries are anonymized through a cascade of rewrite strategies and then
dispatched to search backends in priority order.
"""

__version__ = "2.1.0"
