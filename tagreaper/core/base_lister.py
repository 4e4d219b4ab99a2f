"""
Base Lister Module
==================

Provides the abstract base class for all resource listers.

A lister enumerates one resource type, narrows the candidates by naming
convention, normalizes their tags, applies the eligibility predicate and
resolves any child identifiers needed for ordered deletion.

Classes
-------
ListResult
    Resources found by one lister plus any non-fatal errors.
BaseLister
    Abstract base class for resource listers.

Example
-------
>>> from tagreaper.core.base_lister import BaseLister
>>> from tagreaper.core.models import LogGroup, ResourceType
>>>
>>> class MyLister(BaseLister):
...     def get_resource_type(self):
...         return ResourceType.LOG_GROUP
...
...     def list_stale_resources(self):
...         return [LogGroup(name="consul-ecs-123")]

Notes
-----
``list_stale_resources`` may raise to signal that the whole type could not
be listed; partial failures (one cluster, one role) are passed to
``record_error`` and returned alongside the resources that were found.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Mapping, Optional

from tagreaper.core.config import ReaperConfig
from tagreaper.core.eligibility import is_stale
from tagreaper.core.exceptions import AggregateError, ResourceFetchError
from tagreaper.core.models import Resource, ResourceType

logger = logging.getLogger(__name__)


@dataclass
class ListResult:
    """
    Output of a single lister run.

    Attributes
    ----------
    resource_type : ResourceType
        Type handled by the lister.
    resources : list of Resource
        Stale resources, in the order the lister found them.
    errors : list of Exception
        Failures encountered; non-empty does not mean ``resources`` is empty.
    list_time : datetime
        When the listing finished.
    """

    resource_type: ResourceType
    resources: List[Resource] = field(default_factory=list)
    errors: List[BaseException] = field(default_factory=list)
    list_time: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def has_errors(self) -> bool:
        return len(self.errors) > 0

    @property
    def error(self) -> Optional[AggregateError]:
        """All errors combined into one value, or None."""
        return AggregateError.from_errors(
            self.errors, message=f"{self.resource_type.value} listing had {len(self.errors)} error(s)"
        )

    def __repr__(self) -> str:
        return (
            f"ListResult(resource_type='{self.resource_type.value}', "
            f"resources={len(self.resources)}, errors={len(self.errors)})"
        )


class BaseLister(ABC):
    """
    Abstract base class for all resource listers.

    Parameters
    ----------
    aws_client : AWSClient
        Instance of AWSClient for AWS API access.
    config : ReaperConfig
        Naming convention and eligibility settings.
    now : datetime, optional
        Fixed reference time for the eligibility check. Defaults to the
        time of each check.

    Attributes
    ----------
    aws_client : AWSClient
        The AWS client instance.
    config : ReaperConfig
        The run configuration.
    region : str
        The AWS region being listed.
    """

    def __init__(self, aws_client, config: ReaperConfig, now: Optional[datetime] = None) -> None:
        self.aws_client = aws_client
        self.config = config
        self.now = now
        self.region = aws_client.region
        self._errors: List[BaseException] = []

    @abstractmethod
    def get_resource_type(self) -> ResourceType:
        """Return the resource type this lister produces."""

    @abstractmethod
    def list_stale_resources(self) -> List[Resource]:
        """
        Query the provider and return the stale resources of this type.

        Raises
        ------
        Exception
            Any exception means the type could not be listed at all.
        """

    # =========================================================================
    # Helpers for subclasses
    # =========================================================================

    @property
    def name_prefix(self) -> str:
        return self.config.name_prefix

    def matches_name(self, name: Optional[str]) -> bool:
        """Name-convention narrowing step, applied before any tag lookups."""
        return bool(name) and name.startswith(self.name_prefix)

    def is_stale(self, tags: Mapping[str, str]) -> bool:
        return is_stale(tags, self.config.eligibility, now=self.now)

    def ec2_tag_filters(self) -> List[dict]:
        """
        Server-side EC2 filters for owner marker and Name prefix.

        EC2 filters support ``*`` wildcards on tag values, which covers
        the prefix match; the age marker is still checked locally.
        """
        eligibility = self.config.eligibility
        return [
            {
                "Name": f"tag:{eligibility.owner_marker_key}",
                "Values": [f"{eligibility.owner_marker_prefix}*"],
            },
            {
                "Name": "tag:Name",
                "Values": [f"{self.name_prefix}*"],
            },
        ]

    def record_error(self, error: BaseException) -> None:
        """Record a non-fatal failure to return with the partial result."""
        logger.warning(f"{self.get_resource_type().value}: {error}")
        self._errors.append(error)

    # =========================================================================
    # Entry point
    # =========================================================================

    def list_resources(self) -> ListResult:
        """
        Run the lister and collect its resources and errors.

        Never raises; a failure of the whole listing becomes a
        ``ResourceFetchError`` in ``errors``.

        Returns
        -------
        ListResult
        """
        resource_type = self.get_resource_type()
        self._errors = []
        resources: List[Resource] = []

        try:
            resources = self.list_stale_resources()
        except Exception as e:
            logger.error(f"Failed to list {resource_type.value}: {e}")
            self._errors.append(
                ResourceFetchError(
                    f"Failed to list {resource_type.value}: {e}",
                    resource_type=resource_type.value,
                    details={"region": self.region},
                )
            )

        result = ListResult(
            resource_type=resource_type,
            resources=list(resources),
            errors=list(self._errors),
        )
        logger.info(
            f"Found {len(result.resources)} stale {resource_type.value} resource(s) "
            f"in {self.region}"
        )
        return result

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"region='{self.region}', "
            f"name_prefix='{self.name_prefix}')"
        )
