"""
Configuration loading for AI Route Guard.
"""
