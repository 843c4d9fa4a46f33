"""
Core modules for AI Route Guard.

This package contains provider routing, response caching, rate limiting,
the security gate, fallback dispatch, cost accounting and audit batching.
"""
