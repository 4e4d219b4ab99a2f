"""
Eligibility Predicate
=====================

Decides whether a resource is stale enough to reclaim, based only on its
tags. Every lister normalizes the provider's tag shape into a plain
``TagSet`` (``dict`` of key to value) right after fetching, so nothing past
the lister boundary cares how a given AWS service represents tags.

A resource is stale when:

1. its owner marker tag starts with the configured prefix, and
2. its age marker tag is a Unix timestamp, and
3. strictly more than ``min_age`` has elapsed since that timestamp.

A resource whose age marker is exactly ``min_age`` old is not yet stale.

Example
-------
>>> from datetime import datetime, timedelta, timezone
>>> from tagreaper.core.config import EligibilityConfig
>>> config = EligibilityConfig(owner_marker_prefix="http://ci/", min_age=timedelta(hours=1))
>>> now = datetime(2024, 1, 1, tzinfo=timezone.utc)
>>> tags = {"build_url": "http://ci/42", "build_time": str(int(now.timestamp()) - 7200)}
>>> is_stale(tags, config, now=now)
True
"""

from __future__ import annotations

import logging
import re
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Mapping, Optional

from tagreaper.core.config import EligibilityConfig

logger = logging.getLogger(__name__)

TagSet = Dict[str, str]

_UNIX_TIMESTAMP_RE = re.compile(r"\d+", re.ASCII)


def tags_from_list(tags: Optional[Iterable[Mapping[str, Any]]]) -> TagSet:
    """
    Normalize the ``[{"Key": ..., "Value": ...}]`` shape used by EC2, IAM
    and most other AWS APIs.

    ECS uses lower-case ``key``/``value``; both spellings are accepted.
    """
    result: TagSet = {}
    for tag in tags or ():
        key = tag.get("Key", tag.get("key"))
        if key is None:
            continue
        result[key] = tag.get("Value", tag.get("value")) or ""
    return result


def tags_from_mapping(tags: Optional[Mapping[str, str]]) -> TagSet:
    """Normalize the plain mapping shape used by CloudWatch Logs."""
    return dict(tags or {})


def parse_age_marker(value: str) -> Optional[datetime]:
    """
    Parse an age marker value as a Unix timestamp in seconds.

    Returns
    -------
    datetime or None
        Timezone-aware UTC datetime, or None if the value is not a
        non-negative integer.
    """
    if not _UNIX_TIMESTAMP_RE.fullmatch(value or ""):
        return None
    try:
        return datetime.fromtimestamp(int(value), tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return None


def is_owned(tags: Mapping[str, str], config: EligibilityConfig) -> bool:
    """Check the owner marker only."""
    owner = tags.get(config.owner_marker_key)
    return owner is not None and owner.startswith(config.owner_marker_prefix)


def is_stale(
    tags: Mapping[str, str],
    config: EligibilityConfig,
    now: Optional[datetime] = None,
) -> bool:
    """
    Decide whether a resource with ``tags`` is stale.

    The function performs no I/O. An unparsable age marker is logged as a
    warning and yields False; it is never treated as infinitely old.

    Parameters
    ----------
    tags : mapping
        The resource's normalized tag set.
    config : EligibilityConfig
        Marker keys, owner prefix and minimum age.
    now : datetime, optional
        Reference time. Defaults to the current UTC time.

    Returns
    -------
    bool
    """
    # Ownership gates staleness: don't look at the age marker otherwise.
    if not is_owned(tags, config):
        return False

    raw = tags.get(config.age_marker_key)
    if raw is None:
        logger.debug(f"No {config.age_marker_key} tag; treating as not stale")
        return False

    created = parse_age_marker(raw)
    if created is None:
        logger.warning(f"Unable to parse {config.age_marker_key}: {raw!r}")
        return False

    if now is None:
        now = datetime.now(timezone.utc)
    elif now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)

    return now - created > config.min_age
