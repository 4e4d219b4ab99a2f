"""
Configuration Module
====================

Plain configuration objects for a reaper run.

Classes
-------
EligibilityConfig
    Tag keys and thresholds that decide whether a resource is stale.
ReaperConfig
    Everything a single discovery/deletion run needs.

Functions
---------
parse_duration
    Convert strings like ``"4d"`` or ``"36h"`` into a timedelta.

Example
-------
>>> from tagreaper.core.config import EligibilityConfig, ReaperConfig, parse_duration
>>>
>>> eligibility = EligibilityConfig(min_age=parse_duration("2d"))
>>> config = ReaperConfig(eligibility=eligibility, region="us-east-1")
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Dict, Optional

from tagreaper.core.exceptions import ConfigError

DEFAULT_OWNER_MARKER_KEY = "build_url"
DEFAULT_OWNER_MARKER_PREFIX = "https://circleci.com/gh/hashicorp/terraform-aws-consul-ecs/"
DEFAULT_AGE_MARKER_KEY = "build_time"
DEFAULT_MIN_AGE = timedelta(days=4)
DEFAULT_NAME_PREFIX = "consul-ecs"
DEFAULT_REGION = "us-west-2"

_DURATION_RE = re.compile(r"^\s*(\d+)\s*([smhdw]?)\s*$")
_DURATION_UNITS = {
    "": "seconds",
    "s": "seconds",
    "m": "minutes",
    "h": "hours",
    "d": "days",
    "w": "weeks",
}


def parse_duration(value: str) -> timedelta:
    """
    Parse a duration string.

    Accepts a non-negative integer with an optional unit suffix
    (``s``, ``m``, ``h``, ``d``, ``w``). A bare number means seconds.

    Parameters
    ----------
    value : str
        Duration text, e.g. ``"4d"``, ``"90m"``, ``"3600"``.

    Returns
    -------
    timedelta

    Raises
    ------
    ConfigError
        If the text is not a recognised duration.

    Example
    -------
    >>> parse_duration("36h")
    datetime.timedelta(days=1, seconds=43200)
    """
    match = _DURATION_RE.match(value or "")
    if not match:
        raise ConfigError(
            f"Invalid duration: {value!r}",
            details={"hint": "Use forms like '30s', '90m', '36h', '4d' or '1w'"},
        )
    amount, unit = match.groups()
    return timedelta(**{_DURATION_UNITS[unit.lower()]: int(amount)})


@dataclass(frozen=True)
class EligibilityConfig:
    """
    Tag-based staleness settings.

    Attributes
    ----------
    owner_marker_key : str
        Tag identifying which pipeline created the resource.
    owner_marker_prefix : str
        Required prefix of the owner marker value.
    age_marker_key : str
        Tag holding the creation time as a Unix timestamp.
    min_age : timedelta
        How old a resource must be before it is reclaimed.
    """

    owner_marker_key: str = DEFAULT_OWNER_MARKER_KEY
    owner_marker_prefix: str = DEFAULT_OWNER_MARKER_PREFIX
    age_marker_key: str = DEFAULT_AGE_MARKER_KEY
    min_age: timedelta = DEFAULT_MIN_AGE

    def __post_init__(self) -> None:
        if self.min_age < timedelta(0):
            raise ConfigError("min_age must not be negative", details={"min_age": str(self.min_age)})
        if not self.owner_marker_key or not self.age_marker_key:
            raise ConfigError("Marker tag keys must not be empty")


@dataclass
class ReaperConfig:
    """
    Settings for one reaper run.

    Attributes
    ----------
    eligibility : EligibilityConfig
        Staleness rules applied by every lister.
    name_prefix : str
        Resource-name convention used to narrow provider queries.
    region : str
        AWS region to sweep. IAM is global and ignores it.
    profile : str or None
        AWS profile name from ~/.aws/credentials.
    max_workers : int
        Thread pool size for each deletion stage. Discovery always runs
        one thread per lister.
    poll_interval : float
        Seconds between status polls while awaiting deletion.
    wait_timeouts : dict
        Per resource-type overrides (seconds) of the built-in wait timeouts.
    include_iam : bool
        Run the expensive IAM role lister as part of discovery.
    dry_run : bool
        Plan and report without issuing delete calls.
    """

    eligibility: EligibilityConfig = field(default_factory=EligibilityConfig)
    name_prefix: str = DEFAULT_NAME_PREFIX
    region: str = DEFAULT_REGION
    profile: Optional[str] = None
    max_workers: int = 8
    poll_interval: float = 5.0
    wait_timeouts: Dict[str, float] = field(default_factory=dict)
    include_iam: bool = False
    dry_run: bool = False

    def __post_init__(self) -> None:
        if self.max_workers < 1:
            raise ConfigError("max_workers must be at least 1", details={"max_workers": self.max_workers})
        if self.poll_interval < 0:
            raise ConfigError("poll_interval must not be negative")
