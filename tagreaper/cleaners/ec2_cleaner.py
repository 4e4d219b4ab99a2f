"""
Cleaner for EC2 instances, NAT gateways and Elastic IPs.
"""

from __future__ import annotations

import logging
from typing import List

from botocore.exceptions import ClientError

from tagreaper.core.aws_client import error_code
from tagreaper.core.base_cleaner import BaseCleaner
from tagreaper.core.models import DeletionUnit, InstanceGroup, ResourceType

logger = logging.getLogger(__name__)


class Ec2Cleaner(BaseCleaner):
    """
    Deletes compute-side EC2 resources.

    - Instances are terminated as one batch and awaited until every one of
      them reports ``terminated``.
    - NAT gateways are awaited until their state is ``deleted``.
    - Elastic IPs are disassociated if still attached, then released.
    """

    NOT_FOUND_CODES = frozenset(
        {
            "InvalidInstanceID.NotFound",
            "NatGatewayNotFound",
            "InvalidNatGatewayID.NotFound",
            "InvalidAllocationID.NotFound",
        }
    )

    ERROR_MESSAGES = {
        **BaseCleaner.ERROR_MESSAGES,
        "InvalidIPAddress.InUse": "Elastic IP is still associated with a resource",
        "OperationNotPermitted": "Instance has termination protection enabled",
        "AuthFailure.ServiceLinkedRoleCreationNotPermitted": "Missing permissions for the service-linked role",
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
            ResourceType.EC2_INSTANCES: (self.terminate_instances, self.instances_terminated),
            ResourceType.NAT_GATEWAY: (self.delete_nat_gateway, self.nat_gateway_deleted),
            ResourceType.ELASTIC_IP: (self.release_address, self.address_released),
        }

    # -- instances ---------------------------------------------------------

    @staticmethod
    def _instance_ids(unit: DeletionUnit) -> List[str]:
        if isinstance(unit.owner, InstanceGroup):
            return list(unit.owner.instance_ids)
        return unit.identifier.split(",")

    def terminate_instances(self, unit: DeletionUnit) -> None:
        ids = self._instance_ids(unit)
        logger.info(f"Terminating {len(ids)} instance(s)")
        self.ec2_client.terminate_instances(InstanceIds=ids)

    def instances_terminated(self, unit: DeletionUnit) -> bool:
        # A filter query tolerates ids that have already disappeared.
        ids = self._instance_ids(unit)
        paginator = self.ec2_client.get_paginator("describe_instances")
        for page in paginator.paginate(Filters=[{"Name": "instance-id", "Values": ids}]):
            for reservation in page.get("Reservations", []):
                for instance in reservation.get("Instances", []):
                    if instance.get("State", {}).get("Name") != "terminated":
                        return False
        return True

    # -- NAT gateways ------------------------------------------------------

    def delete_nat_gateway(self, unit: DeletionUnit) -> None:
        self.ec2_client.delete_nat_gateway(NatGatewayId=unit.identifier)

    def nat_gateway_deleted(self, unit: DeletionUnit) -> bool:
        response = self.ec2_client.describe_nat_gateways(NatGatewayIds=[unit.identifier])
        gateways = response.get("NatGateways", [])
        return all(g.get("State") == "deleted" for g in gateways)

    # -- Elastic IPs -------------------------------------------------------

    def release_address(self, unit: DeletionUnit) -> None:
        response = self.ec2_client.describe_addresses(AllocationIds=[unit.identifier])
        for address in response.get("Addresses", []):
            association_id = address.get("AssociationId")
            if association_id:
                logger.debug(f"Disassociating {unit.identifier} ({association_id})")
                try:
                    self.ec2_client.disassociate_address(AssociationId=association_id)
                except ClientError as e:
                    if error_code(e) != "InvalidAssociationID.NotFound":
                        raise
        self.ec2_client.release_address(AllocationId=unit.identifier)

    def address_released(self, unit: DeletionUnit) -> bool:
        response = self.ec2_client.describe_addresses(AllocationIds=[unit.identifier])
        return not response.get("Addresses")
