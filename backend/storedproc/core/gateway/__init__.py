"""
Gateway helpers: request payload → stored-procedure parameter sources.
"""

from .request_fields import fields_from_request, keys_to_snake, named_fields_from_request

__all__ = [
    "fields_from_request",
    "keys_to_snake",
    "named_fields_from_request",
]
