"""
Cleaner for CloudWatch Logs log groups.
"""

from __future__ import annotations

from tagreaper.core.base_cleaner import BaseCleaner
from tagreaper.core.models import DeletionUnit, ResourceType


class LogGroupCleaner(BaseCleaner):
    """Deletes log groups. Deletion is synchronous; the poll confirms it."""

    NOT_FOUND_CODES = frozenset({"ResourceNotFoundException"})

    def __init__(self, aws_client) -> None:
        self._logs_client = None
        super().__init__(aws_client)

    @property
    def logs_client(self):
        """Lazy load CloudWatch Logs client."""
        if self._logs_client is None:
            self._logs_client = self.aws_client.get_logs_client()
        return self._logs_client

    def get_handlers(self):
        return {ResourceType.LOG_GROUP: (self.delete_log_group, self.log_group_deleted)}

    def delete_log_group(self, unit: DeletionUnit) -> None:
        self.logs_client.delete_log_group(logGroupName=unit.identifier)

    def log_group_deleted(self, unit: DeletionUnit) -> bool:
        # Prefix query; only an exact name match means it still exists.
        paginator = self.logs_client.get_paginator("describe_log_groups")
        for page in paginator.paginate(logGroupNamePrefix=unit.identifier):
            if any(g["logGroupName"] == unit.identifier for g in page.get("logGroups", [])):
                return False
        return True
