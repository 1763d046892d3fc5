"""
FastAPI gateway for author-based book searches.

This module provides a small REST API for:
- Book search by author, proxied to the upstream catalog
- JWT bearer-token issuance and verification
- Per-client rate limiting
"""
