"""
Cleaner for ECS services and clusters.

A service is scaled to zero and force-deleted; it is gone once ECS reports
it ``INACTIVE`` or no longer knows it. Clusters follow in a later stage.
"""

from __future__ import annotations

import logging
from typing import Any, Dict

from botocore.exceptions import ClientError

from tagreaper.core.aws_client import error_code
from tagreaper.core.base_cleaner import BaseCleaner
from tagreaper.core.models import DeletionUnit, EcsCluster, ResourceType

logger = logging.getLogger(__name__)


def _gone(response: Dict[str, Any], items_key: str) -> bool:
    """True when ECS reports the single requested item MISSING or INACTIVE."""
    if any(f.get("reason") == "MISSING" for f in response.get("failures", [])):
        return True
    items = response.get(items_key, [])
    return not items or all(item.get("status") == "INACTIVE" for item in items)


class EcsCleaner(BaseCleaner):
    """Deletes ECS services and clusters."""

    NOT_FOUND_CODES = frozenset({"ClusterNotFoundException", "ServiceNotFoundException"})

    ERROR_MESSAGES = {
        **BaseCleaner.ERROR_MESSAGES,
        "ClusterContainsServicesException": "Cluster still has active services",
        "ClusterContainsTasksException": "Cluster still has running tasks",
        "ClusterContainsContainerInstancesException": "Cluster still has registered container instances",
    }

    def __init__(self, aws_client) -> None:
        self._ecs_client = None
        super().__init__(aws_client)

    @property
    def ecs_client(self):
        """Lazy load ECS client."""
        if self._ecs_client is None:
            self._ecs_client = self.aws_client.get_ecs_client()
        return self._ecs_client

    def get_handlers(self):
        return {
            ResourceType.ECS_SERVICE: (self.delete_service, self.service_deleted),
            ResourceType.ECS_CLUSTER: (self.delete_cluster, self.cluster_deleted),
        }

    @staticmethod
    def _cluster_of(unit: DeletionUnit) -> str:
        if isinstance(unit.owner, EcsCluster):
            return unit.owner.arn
        # arn:aws:ecs:region:account:service/<cluster>/<service>
        return unit.identifier.split("/")[-2]

    def delete_service(self, unit: DeletionUnit) -> None:
        cluster = self._cluster_of(unit)
        try:
            self.ecs_client.update_service(cluster=cluster, service=unit.identifier, desiredCount=0)
        except ClientError as e:
            # A draining service can no longer be updated but can still be deleted.
            if error_code(e) != "ServiceNotActiveException":
                raise
        self.ecs_client.delete_service(cluster=cluster, service=unit.identifier, force=True)

    def service_deleted(self, unit: DeletionUnit) -> bool:
        response = self.ecs_client.describe_services(
            cluster=self._cluster_of(unit), services=[unit.identifier]
        )
        return _gone(response, "services")

    def delete_cluster(self, unit: DeletionUnit) -> None:
        self.ecs_client.delete_cluster(cluster=unit.identifier)

    def cluster_deleted(self, unit: DeletionUnit) -> bool:
        response = self.ecs_client.describe_clusters(clusters=[unit.identifier])
        return _gone(response, "clusters")
