"""
Shared utilities: logging setup.
"""
