"""Shared MongoDB utilities.

This package centralizes:
- pymongo client configuration
- retry/backoff policy
- typed, expressive errors for consistent HTTP error envelopes
- index definitions backing uniqueness rules

"""
