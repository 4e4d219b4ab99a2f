"""
VPC Lister Module
=================

Finds stale VPCs and resolves the child resources that must be deleted
before each VPC can be.

Child Resolution
----------------
For every stale VPC four independent queries run:

1. **Internet gateway** attached to the VPC.
2. **Subnets** in the VPC.
3. **Security groups** in the VPC, except the ``default`` group.
4. **Route tables** in the VPC, except the one carrying the main
   association.

Each query is best effort. If one fails the failure is recorded with the
lister result and that child list is left empty; the VPC is still a
valid, if incomplete, deletion candidate.

Notes
-----
The main route table and default security group are removed by AWS
together with the VPC and cannot be deleted on their own.

See Also
--------
NatGatewayLister : NAT gateways live in these subnets.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Tuple

from botocore.exceptions import BotoCoreError, ClientError

from tagreaper.core.base_lister import BaseLister
from tagreaper.core.eligibility import tags_from_list
from tagreaper.core.exceptions import ResourceFetchError
from tagreaper.core.models import Resource, ResourceType, Vpc

logger = logging.getLogger(__name__)

DEFAULT_SECURITY_GROUP_NAME = "default"


class VpcLister(BaseLister):
    """
    Lister for stale VPCs and their children.

    Parameters
    ----------
    aws_client : AWSClient
        Instance of AWSClient for AWS API access.
    config : ReaperConfig
        Naming convention and eligibility settings.

    Examples
    --------
    >>> lister = VpcLister(client, ReaperConfig())
    >>> result = lister.list_resources()
    >>> for vpc in result.resources:
    ...     print(vpc.describe())
    """

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
        return ResourceType.VPC

    def list_stale_resources(self) -> List[Resource]:
        logger.info("Listing VPCs")
        vpcs: List[Resource] = []

        paginator = self.ec2_client.get_paginator("describe_vpcs")
        for page in paginator.paginate(Filters=self.ec2_tag_filters()):
            for vpc in page.get("Vpcs", []):
                if not self.is_stale(tags_from_list(vpc.get("Tags"))):
                    continue
                vpc_id = vpc["VpcId"]
                vpcs.append(
                    Vpc(
                        id=vpc_id,
                        internet_gateway_id=self.get_internet_gateway(vpc_id),
                        subnet_ids=self.list_subnets(vpc_id),
                        security_group_ids=self.list_security_groups(vpc_id),
                        route_table_ids=self.list_route_tables(vpc_id),
                    )
                )
        return vpcs

    # =========================================================================
    # Child queries (best effort)
    # =========================================================================

    def _describe(self, operation: str, result_key: str, vpc_id: str, filter_name: str) -> Optional[List[Dict[str, Any]]]:
        """Run a paginated describe call filtered to one VPC; None on failure."""
        items: List[Dict[str, Any]] = []
        try:
            paginator = self.ec2_client.get_paginator(operation)
            for page in paginator.paginate(Filters=[{"Name": filter_name, "Values": [vpc_id]}]):
                items.extend(page.get(result_key, []))
        except (ClientError, BotoCoreError) as e:
            self.record_error(
                ResourceFetchError(
                    f"Failed to list {result_key} for VPC {vpc_id}: {e}",
                    resource_type=ResourceType.VPC.value,
                    details={"vpc_id": vpc_id, "operation": operation},
                )
            )
            return None
        return items

    def get_internet_gateway(self, vpc_id: str) -> Optional[str]:
        """ID of the internet gateway attached to the VPC, if any."""
        logger.debug(f"Listing internet gateways in VPC {vpc_id}")
        gateways = self._describe(
            "describe_internet_gateways", "InternetGateways", vpc_id, "attachment.vpc-id"
        )
        if gateways:
            return gateways[0]["InternetGatewayId"]
        return None

    def list_subnets(self, vpc_id: str) -> Tuple[str, ...]:
        logger.debug(f"Listing subnets for VPC {vpc_id}")
        subnets = self._describe("describe_subnets", "Subnets", vpc_id, "vpc-id") or []
        return tuple(subnet["SubnetId"] for subnet in subnets)

    def list_security_groups(self, vpc_id: str) -> Tuple[str, ...]:
        logger.debug(f"Listing security groups for VPC {vpc_id}")
        groups = self._describe("describe_security_groups", "SecurityGroups", vpc_id, "vpc-id") or []
        return tuple(
            group["GroupId"]
            for group in groups
            if group.get("GroupName") != DEFAULT_SECURITY_GROUP_NAME
        )

    def list_route_tables(self, vpc_id: str) -> Tuple[str, ...]:
        logger.debug(f"Listing route tables for VPC {vpc_id}")
        tables = self._describe("describe_route_tables", "RouteTables", vpc_id, "vpc-id") or []
        return tuple(
            table["RouteTableId"] for table in tables if not self.is_main_route_table(table)
        )

    @staticmethod
    def is_main_route_table(table: Dict[str, Any]) -> bool:
        """True if any association of the table is the VPC's main association."""
        return any(assoc.get("Main", False) for assoc in table.get("Associations", []))
