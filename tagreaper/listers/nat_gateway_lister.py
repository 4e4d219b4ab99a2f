"""
NAT Gateway Lister
==================

Finds stale NAT gateways. The Elastic IPs each gateway holds are recorded
so the planner can release those addresses only after the gateway is gone.
"""

from __future__ import annotations

import logging
from typing import List

from tagreaper.core.base_lister import BaseLister
from tagreaper.core.eligibility import tags_from_list
from tagreaper.core.models import NatGateway, Resource, ResourceType

logger = logging.getLogger(__name__)

# "deleting" and "deleted" gateways need no further action
ACTIVE_NAT_STATES = ["pending", "available", "failed"]


class NatGatewayLister(BaseLister):
    """Lister for stale NAT gateways."""

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
        return ResourceType.NAT_GATEWAY

    def list_stale_resources(self) -> List[Resource]:
        logger.info("Listing NAT gateways")
        filters = self.ec2_tag_filters() + [
            {"Name": "state", "Values": ACTIVE_NAT_STATES},
        ]

        gateways: List[Resource] = []
        paginator = self.ec2_client.get_paginator("describe_nat_gateways")
        # DescribeNatGateways names its filter parameter "Filter"
        for page in paginator.paginate(Filter=filters):
            for gateway in page.get("NatGateways", []):
                if not self.is_stale(tags_from_list(gateway.get("Tags"))):
                    continue
                allocation_ids = tuple(
                    address["AllocationId"]
                    for address in gateway.get("NatGatewayAddresses", [])
                    if address.get("AllocationId")
                )
                gateways.append(
                    NatGateway(
                        id=gateway["NatGatewayId"],
                        vpc_id=gateway.get("VpcId"),
                        subnet_id=gateway.get("SubnetId"),
                        allocation_ids=allocation_ids,
                    )
                )
        return gateways
