"""
Storage layer for AI Route Guard.

SQLite audit trail and conversation export sinks.
"""
