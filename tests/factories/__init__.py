"""
Test factories for the LMS admin sync client.
"""

from .api_response_factory import ApiResponseFactory, json_response, list_result

__all__ = [
    "ApiResponseFactory",
    "json_response",
    "list_result",
]
