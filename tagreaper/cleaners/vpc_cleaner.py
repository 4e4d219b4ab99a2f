"""
Cleaner for VPCs and the network pieces inside them.

Handles internet gateways, subnets, security groups, route tables and the
VPC itself. The children are deleted in an earlier stage than the VPC, so
by the time ``delete_vpc`` runs the VPC only holds the pieces AWS removes
with it (main route table, default security group, default NACL).
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List

from botocore.exceptions import ClientError

from tagreaper.core.aws_client import error_code
from tagreaper.core.base_cleaner import BaseCleaner
from tagreaper.core.models import DeletionUnit, ResourceType, Vpc

logger = logging.getLogger(__name__)


class VpcCleaner(BaseCleaner):
    """Deletes VPCs and their subnets, security groups, route tables and IGW."""

    NOT_FOUND_CODES = frozenset(
        {
            "InvalidVpcID.NotFound",
            "InvalidSubnetID.NotFound",
            "InvalidGroup.NotFound",
            "InvalidRouteTableID.NotFound",
            "InvalidInternetGatewayID.NotFound",
        }
    )

    ERROR_MESSAGES = {
        **BaseCleaner.ERROR_MESSAGES,
        "InvalidGroup.InUse": "Security group is referenced by another security group",
        "InvalidPermission.NotFound": "Security group rule not found",
        "CannotDelete": "Default security group cannot be deleted",
        "Gateway.NotAttached": "Internet gateway is not attached to the VPC",
    }

    def __init__(self, aws_client) -> None:
        self._ec2_client = None
        super().__init__(aws_client)

    @property
    def ec2_client(self):
        """Lazy load EC2 client."""
        if self._ec2_client is None:
            self._ec2_client = self.aws_client.get_ec2_client()
        return self._ec2_client

    def get_handlers(self):
        return {
            ResourceType.INTERNET_GATEWAY: (self.delete_internet_gateway, self.internet_gateway_deleted),
            ResourceType.SUBNET: (self.delete_subnet, self.subnet_deleted),
            ResourceType.SECURITY_GROUP: (self.delete_security_group, self.security_group_deleted),
            ResourceType.ROUTE_TABLE: (self.delete_route_table, self.route_table_deleted),
            ResourceType.VPC: (self.delete_vpc, self.vpc_deleted),
        }

    def _exists(self, operation: str, result_key: str, **kwargs) -> bool:
        response = getattr(self.ec2_client, operation)(**kwargs)
        return bool(response.get(result_key))

    # -- internet gateways -------------------------------------------------

    def delete_internet_gateway(self, unit: DeletionUnit) -> None:
        response = self.ec2_client.describe_internet_gateways(InternetGatewayIds=[unit.identifier])
        for gateway in response.get("InternetGateways", []):
            for attachment in gateway.get("Attachments", []):
                vpc_id = attachment.get("VpcId")
                if vpc_id:
                    logger.debug(f"Detaching {unit.identifier} from {vpc_id}")
                    self.ec2_client.detach_internet_gateway(
                        InternetGatewayId=unit.identifier, VpcId=vpc_id
                    )
        self.ec2_client.delete_internet_gateway(InternetGatewayId=unit.identifier)

    def internet_gateway_deleted(self, unit: DeletionUnit) -> bool:
        return not self._exists(
            "describe_internet_gateways", "InternetGateways", InternetGatewayIds=[unit.identifier]
        )

    # -- subnets -----------------------------------------------------------

    def delete_subnet(self, unit: DeletionUnit) -> None:
        self.ec2_client.delete_subnet(SubnetId=unit.identifier)

    def subnet_deleted(self, unit: DeletionUnit) -> bool:
        return not self._exists("describe_subnets", "Subnets", SubnetIds=[unit.identifier])

    # -- security groups ---------------------------------------------------

    @staticmethod
    def _rules_referencing(permissions: List[Dict[str, Any]], group_id: str = None) -> List[Dict[str, Any]]:
        """
        Narrow ingress permissions to their security-group references.

        With ``group_id`` only pairs naming that group are kept, otherwise
        every group pair is kept.
        """
        rules = []
        for permission in permissions:
            pairs = [
                {"GroupId": pair["GroupId"]}
                for pair in permission.get("UserIdGroupPairs", [])
                if pair.get("GroupId") and (group_id is None or pair["GroupId"] == group_id)
            ]
            if not pairs:
                continue
            rule = {"IpProtocol": permission["IpProtocol"], "UserIdGroupPairs": pairs}
            for port_key in ("FromPort", "ToPort"):
                if port_key in permission:
                    rule[port_key] = permission[port_key]
            rules.append(rule)
        return rules

    def _revoke(self, group_id: str, rules: List[Dict[str, Any]]) -> None:
        if not rules:
            return
        try:
            self.ec2_client.revoke_security_group_ingress(GroupId=group_id, IpPermissions=rules)
        except ClientError as e:
            # Another unit in the same stage may have revoked it already.
            if error_code(e) not in ("InvalidPermission.NotFound", "InvalidGroup.NotFound"):
                raise

    def revoke_group_references(self, unit: DeletionUnit) -> None:
        """
        Revoke ingress rules that tie ``unit`` to other groups.

        Both the group's own group-referencing rules and rules in sibling
        groups of the same VPC that name this group are removed, so groups
        referencing each other can be deleted in the same stage.
        """
        group_id = unit.identifier
        response = self.ec2_client.describe_security_groups(GroupIds=[group_id])
        for group in response.get("SecurityGroups", []):
            self._revoke(group_id, self._rules_referencing(group.get("IpPermissions", [])))

        if not isinstance(unit.owner, Vpc):
            return
        paginator = self.ec2_client.get_paginator("describe_security_groups")
        for page in paginator.paginate(Filters=[{"Name": "vpc-id", "Values": [unit.owner.id]}]):
            for sibling in page.get("SecurityGroups", []):
                if sibling["GroupId"] == group_id:
                    continue
                rules = self._rules_referencing(sibling.get("IpPermissions", []), group_id)
                if rules:
                    logger.debug(f"Revoking {sibling['GroupId']} rules that reference {group_id}")
                    self._revoke(sibling["GroupId"], rules)

    def delete_security_group(self, unit: DeletionUnit) -> None:
        self.revoke_group_references(unit)
        self.ec2_client.delete_security_group(GroupId=unit.identifier)

    def security_group_deleted(self, unit: DeletionUnit) -> bool:
        return not self._exists("describe_security_groups", "SecurityGroups", GroupIds=[unit.identifier])

    # -- route tables ------------------------------------------------------

    def delete_route_table(self, unit: DeletionUnit) -> None:
        response = self.ec2_client.describe_route_tables(RouteTableIds=[unit.identifier])
        for table in response.get("RouteTables", []):
            for association in table.get("Associations", []):
                if association.get("Main"):
                    continue
                association_id = association.get("RouteTableAssociationId")
                if association_id:
                    logger.debug(f"Disassociating {association_id} from {unit.identifier}")
                    try:
                        self.ec2_client.disassociate_route_table(AssociationId=association_id)
                    except ClientError as e:
                        # Deleting the subnet in the same stage drops its association.
                        if error_code(e) != "InvalidAssociationID.NotFound":
                            raise
        self.ec2_client.delete_route_table(RouteTableId=unit.identifier)

    def route_table_deleted(self, unit: DeletionUnit) -> bool:
        return not self._exists("describe_route_tables", "RouteTables", RouteTableIds=[unit.identifier])

    # -- VPCs --------------------------------------------------------------

    def delete_vpc(self, unit: DeletionUnit) -> None:
        self.ec2_client.delete_vpc(VpcId=unit.identifier)

    def vpc_deleted(self, unit: DeletionUnit) -> bool:
        return not self._exists("describe_vpcs", "Vpcs", VpcIds=[unit.identifier])
