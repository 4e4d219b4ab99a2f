"""
Log Group Lister
================

Finds stale CloudWatch Logs log groups. The describe call filters by name
prefix server side; tags need one extra call per group.
"""

from __future__ import annotations

import logging
from typing import List

from tagreaper.core.base_lister import BaseLister
from tagreaper.core.eligibility import tags_from_mapping
from tagreaper.core.exceptions import ResourceFetchError
from tagreaper.core.models import LogGroup, Resource, ResourceType

logger = logging.getLogger(__name__)


class LogGroupLister(BaseLister):
    """Lister for stale log groups."""

    def __init__(self, aws_client, config, now=None) -> None:
        super().__init__(aws_client, config, now=now)
        self._logs_client = None

    @property
    def logs_client(self):
        """Get CloudWatch Logs client (lazy loaded)."""
        if self._logs_client is None:
            self._logs_client = self.aws_client.get_logs_client()
        return self._logs_client

    def get_resource_type(self) -> ResourceType:
        return ResourceType.LOG_GROUP

    def list_stale_resources(self) -> List[Resource]:
        logger.info("Listing log groups")
        groups: List[Resource] = []

        paginator = self.logs_client.get_paginator("describe_log_groups")
        for page in paginator.paginate(logGroupNamePrefix=self.name_prefix):
            for group in page.get("logGroups", []):
                name = group["logGroupName"]
                try:
                    response = self.logs_client.list_tags_log_group(logGroupName=name)
                except Exception as e:
                    self.record_error(
                        ResourceFetchError(
                            f"Failed to fetch tags for log group {name}: {e}",
                            resource_type=ResourceType.LOG_GROUP.value,
                        )
                    )
                    continue

                if self.is_stale(tags_from_mapping(response.get("tags"))):
                    groups.append(LogGroup(name=name))
        return groups
