"""
ECS Cluster Lister
==================

Finds stale ECS clusters and the services that must be removed before
each cluster can be deleted.

Detection Logic
---------------
1. List every cluster ARN and keep those whose name matches the naming
   convention (the list call has no tag filter).
2. Describe the candidates in batches, including tags.
3. Skip clusters that are already ``INACTIVE``.
4. Apply the eligibility predicate.
5. For each stale cluster, list its services. A failure here is recorded
   and the cluster is still emitted with an empty service list.
"""

from __future__ import annotations

import logging
from typing import List, Tuple

from tagreaper.core.base_lister import BaseLister
from tagreaper.core.eligibility import tags_from_list
from tagreaper.core.exceptions import ResourceFetchError
from tagreaper.core.models import EcsCluster, Resource, ResourceType

logger = logging.getLogger(__name__)

# DescribeClusters accepts at most 100 clusters per call
DESCRIBE_BATCH_SIZE = 100


class EcsClusterLister(BaseLister):
    """Lister for stale ECS clusters and their services."""

    def __init__(self, aws_client, config, now=None) -> None:
        super().__init__(aws_client, config, now=now)
        self._ecs_client = None

    @property
    def ecs_client(self):
        """Get ECS client (lazy loaded)."""
        if self._ecs_client is None:
            self._ecs_client = self.aws_client.get_ecs_client()
        return self._ecs_client

    def get_resource_type(self) -> ResourceType:
        return ResourceType.ECS_CLUSTER

    def list_stale_resources(self) -> List[Resource]:
        logger.info("Listing ECS clusters")

        candidate_arns = [
            arn for arn in self._list_cluster_arns() if self.matches_name(arn.rsplit("/", 1)[-1])
        ]
        if not candidate_arns:
            return []

        stale_arns: List[str] = []
        for start in range(0, len(candidate_arns), DESCRIBE_BATCH_SIZE):
            batch = candidate_arns[start:start + DESCRIBE_BATCH_SIZE]
            response = self.ecs_client.describe_clusters(clusters=batch, include=["TAGS"])
            for cluster in response.get("clusters", []):
                if cluster.get("status") == "INACTIVE":
                    logger.debug(f"Skipping inactive cluster {cluster['clusterArn']}")
                    continue
                if self.is_stale(tags_from_list(cluster.get("tags"))):
                    stale_arns.append(cluster["clusterArn"])

        clusters: List[Resource] = []
        for arn in stale_arns:
            clusters.append(EcsCluster(arn=arn, service_arns=self._list_services(arn)))
        return clusters

    def _list_cluster_arns(self) -> List[str]:
        arns: List[str] = []
        paginator = self.ecs_client.get_paginator("list_clusters")
        for page in paginator.paginate():
            arns.extend(page.get("clusterArns", []))
        return arns

    def _list_services(self, cluster_arn: str) -> Tuple[str, ...]:
        """Services of one cluster; failures are recorded, not raised."""
        logger.debug(f"Listing ECS services for cluster={cluster_arn}")
        services: List[str] = []
        try:
            paginator = self.ecs_client.get_paginator("list_services")
            for page in paginator.paginate(cluster=cluster_arn):
                services.extend(page.get("serviceArns", []))
        except Exception as e:
            self.record_error(
                ResourceFetchError(
                    f"Failed to list services for cluster {cluster_arn}: {e}",
                    resource_type=ResourceType.ECS_SERVICE.value,
                    details={"cluster": cluster_arn},
                )
            )
            return ()
        return tuple(services)
