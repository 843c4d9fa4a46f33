"""
AI Route Guard.

Routes prompts to the cheapest suitable AI provider, caches responses and
keeps a running cost ledger.
"""

__version__ = "0.1.0"
