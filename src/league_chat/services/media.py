"""Ownership checks for media URLs issued by the blob store."""

from __future__ import annotations

from urllib.parse import urlsplit

from league_chat.core.settings import settings


class MediaUrlValidator:
    """Recognises URLs that point into our bucket or its CDN distribution."""

    def __init__(self, bucket_url: str | None = None, cdn_url: str | None = None) -> None:
        self.bucket_url = bucket_url if bucket_url is not None else settings.media_bucket_url
        cdn = cdn_url if cdn_url is not None else settings.media_cdn_url
        self.cdn_url = cdn.rstrip("/") + "/" if cdn else None

    def is_owned_media_url(self, url: str | None) -> bool:
        """Return True if ``url`` was issued by the blob store."""
        if not url:
            return False
        parts = urlsplit(url)
        # Reject anything that could smuggle a different host past a prefix check.
        if parts.scheme != "https" or parts.username or parts.password:
            return False
        if url.startswith(self.bucket_url):
            return True
        return bool(self.cdn_url and url.startswith(self.cdn_url))


def get_media_validator() -> MediaUrlValidator:
    """Return a validator configured from settings."""
    return MediaUrlValidator()
