"""
Elastic IP Lister
=================

Finds stale Elastic IP allocations.

Notes
-----
An address may still be associated with a NAT gateway. It cannot be
released while attached, so the planner orders NAT gateway deletion
before the release.
"""

from __future__ import annotations

import logging
from typing import List

from tagreaper.core.base_lister import BaseLister
from tagreaper.core.eligibility import tags_from_list
from tagreaper.core.models import ElasticIp, Resource, ResourceType

logger = logging.getLogger(__name__)


class ElasticIpLister(BaseLister):
    """Lister for stale Elastic IPs."""

    def __init__(self, aws_client, config, now=None) -> None:
        super().__init__(aws_client, config, now=now)
        self._ec2_client = None

    @property
    def ec2_client(self):
        """Get EC2 client (lazy loaded)."""
        if self._ec2_client is None:
            self._ec2_client = self.aws_client.get_ec2_client()
        return self._ec2_client

    def get_resource_type(self) -> ResourceType:
        return ResourceType.ELASTIC_IP

    def list_stale_resources(self) -> List[Resource]:
        logger.info("Listing elastic ips")
        # DescribeAddresses is not paginated
        response = self.ec2_client.describe_addresses(Filters=self.ec2_tag_filters())

        addresses: List[Resource] = []
        for address in response.get("Addresses", []):
            allocation_id = address.get("AllocationId")
            if not allocation_id:
                continue
            if self.is_stale(tags_from_list(address.get("Tags"))):
                addresses.append(
                    ElasticIp(
                        allocation_id=allocation_id,
                        public_ip=address.get("PublicIp"),
                        association_id=address.get("AssociationId"),
                    )
                )
        return addresses
