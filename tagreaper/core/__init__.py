"""
Core Infrastructure Components
==============================

This module provides the foundational components for Tag-Reaper:

- :class:`AWSClient` - Manages AWS connections and client creation
- :func:`is_stale` - The tag-based eligibility predicate
- :class:`BaseLister` / :class:`BaseCleaner` - Per-type listing and deletion
- :class:`DiscoveryCoordinator` - Concurrent discovery across listers
- :class:`DeletionPlanner` - Dependency-ordered deletion stages
- :class:`DeletionExecutor` - Stage-by-stage deletion
- Exception hierarchy for error handling

The pipeline glue lives in :mod:`tagreaper.core.pipeline` and is imported
from there, since it depends on the lister and cleaner packages.

Example
-------
>>> from tagreaper.core import AWSClient, DeletionPlanner, DiscoveryCoordinator
>>> from tagreaper.listers import build_listers
>>>
>>> client = AWSClient(region="us-west-2")
>>> discovery = DiscoveryCoordinator(build_listers(client, config)).discover()
>>> plan = DeletionPlanner().plan(discovery.resources)

See Also
--------
tagreaper.listers : Resource lister implementations.
tagreaper.cleaners : Resource cleaner implementations.
tagreaper.reporters : Output formatters.
"""

from tagreaper.core.aws_client import AWSClient
from tagreaper.core.base_cleaner import BaseCleaner
from tagreaper.core.base_lister import BaseLister, ListResult
from tagreaper.core.config import EligibilityConfig, ReaperConfig, parse_duration
from tagreaper.core.discovery import DiscoveryCoordinator, DiscoveryResult
from tagreaper.core.eligibility import is_owned, is_stale, parse_age_marker
from tagreaper.core.exceptions import (
    AggregateError,
    AWSClientError,
    CleanerError,
    ConfigError,
    CredentialsError,
    DeleteError,
    DeletionTimeoutError,
    DependencyCycleError,
    DependencyError,
    DiscoveryError,
    ListerError,
    PlanError,
    RegionError,
    ResourceFetchError,
    ServiceError,
    TagReaperError,
)
from tagreaper.core.executor import DeleteSummary, DeletionExecutor
from tagreaper.core.models import DeleteStatus, DeletionUnit, Outcome, ResourceType
from tagreaper.core.planner import DeletionPlan, DeletionPlanner

__all__ = [
    # Client
    "AWSClient",
    # Configuration and eligibility
    "EligibilityConfig",
    "ReaperConfig",
    "parse_duration",
    "is_owned",
    "is_stale",
    "parse_age_marker",
    # Listing and discovery
    "BaseLister",
    "ListResult",
    "DiscoveryCoordinator",
    "DiscoveryResult",
    # Planning and deletion
    "BaseCleaner",
    "DeletionPlan",
    "DeletionPlanner",
    "DeletionExecutor",
    "DeleteSummary",
    "DeletionUnit",
    "DeleteStatus",
    "Outcome",
    "ResourceType",
    # Exceptions - Base
    "TagReaperError",
    "ConfigError",
    # Exceptions - AWS Client
    "AWSClientError",
    "CredentialsError",
    "RegionError",
    "ServiceError",
    # Exceptions - Lister
    "ListerError",
    "ResourceFetchError",
    "AggregateError",
    "DiscoveryError",
    # Exceptions - Planner
    "PlanError",
    "DependencyCycleError",
    # Exceptions - Cleaner
    "CleanerError",
    "DeleteError",
    "DependencyError",
    "DeletionTimeoutError",
]
