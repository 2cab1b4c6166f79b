"""
Session tokens for the CRM service.

This module issues and verifies the short-lived HS256 access tokens that
guard the API.
"""

from .jwt import issue_access_token, verify_access

__all__ = [
    "issue_access_token",
    "verify_access",
]
