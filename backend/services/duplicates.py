"""
Duplicate-link detection for admin review.

Groups submissions by their link (video_url after trimming whitespace) and
returns only groups with more than one member.

Default matching is exact string equality: "https://x.com/v/1" and
"https://x.com/v/1/" are different links. Pass normalize=normalize_link to
also merge trailing-slash, "www." and tracking-parameter variants.
"""

import logging
from typing import Callable, Optional
from urllib.parse import urlsplit, urlunsplit, parse_qsl, urlencode

from models.schemas import Submission, DuplicateLinkGroup

logger = logging.getLogger(__name__)

# Query parameters that never identify the video itself
TRACKING_PARAMS = {"si", "igsh", "igshid", "fbclid", "gclid", "feature", "ref", "_r", "_t"}


def normalize_link(link: str) -> str:
    """
    Loose normalization: lowercase scheme/host, drop "www.", fragment,
    tracking/utm query parameters and trailing slash.
    """
    parts = urlsplit(link.strip())
    host = parts.netloc.lower()
    if host.startswith("www."):
        host = host[4:]

    query = [
        (k, v) for k, v in parse_qsl(parts.query, keep_blank_values=True)
        if k.lower() not in TRACKING_PARAMS and not k.lower().startswith("utm_")
    ]

    path = parts.path.rstrip("/")
    return urlunsplit((parts.scheme.lower(), host, path, urlencode(query), ""))


def find_duplicate_links(
    submissions: list[Submission],
    normalize: Optional[Callable[[str], str]] = None,
) -> list[DuplicateLinkGroup]:
    """
    Group submissions sharing the same link.

    Args:
        submissions: All submissions to scan (those without a link are skipped)
        normalize:   Optional key function applied after trimming

    Returns:
        Groups with count > 1, largest first, then by link
    """
    groups: dict[str, list[Submission]] = {}

    for s in submissions:
        if not s.video_url:
            continue
        key = s.video_url.strip()
        if not key:
            continue
        if normalize is not None:
            key = normalize(key)
        groups.setdefault(key, []).append(s)

    duplicates = [
        DuplicateLinkGroup(
            link=link,
            submission_ids=[s.id for s in members],
            owner_emails=[s.owner_email for s in members],
            count=len(members),
        )
        for link, members in groups.items()
        if len(members) > 1
    ]
    duplicates.sort(key=lambda g: (-g.count, g.link))

    logger.info(
        f"Duplicate scan: {len(groups)} distinct links, {len(duplicates)} duplicated"
    )
    return duplicates
