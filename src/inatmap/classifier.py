"""Page eligibility."""

from __future__ import annotations

from urllib.parse import urlsplit


def is_eligible_page(url: str, listing_path: str = "/observations") -> bool:
    """Return ``True`` when *url* is the observation listing page itself.

    ``/observations`` and ``/observations/`` qualify with any query string;
    user- or item-specific sub-paths such as ``/observations/someuser`` or
    ``/observations/123`` do not. Relative URLs (a bare path) are accepted.
    """
    path = urlsplit(url).path
    target = listing_path.rstrip("/")
    return path == target or path == f"{target}/"
