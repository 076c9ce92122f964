"""Absolute URL builder for paging links."""

from __future__ import annotations


class UriService:
    """Joins a configured base URI with an action path."""

    def __init__(self, base_uri: str):
        self._base_uri = base_uri

    def get_uri(self, action_url: str) -> str:
        return f"{self._base_uri}{action_url}"
