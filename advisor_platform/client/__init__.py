"""
Python client for the Advisor Platform REST API

- ApiClient: httpx client with bearer auth, request ids and 401 handling
- TokenStore: holds the advisor token between calls
"""

from advisor_platform.client.api import ApiClient, ApiClientError, SessionExpired, TokenStore

__all__ = ['ApiClient', 'ApiClientError', 'SessionExpired', 'TokenStore']
