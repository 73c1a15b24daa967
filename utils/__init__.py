"""Shared utilities for the listing assistant API."""

from utils.json_extraction import extract_json_from_response, strip_code_fences

__all__ = ["extract_json_from_response", "strip_code_fences"]
