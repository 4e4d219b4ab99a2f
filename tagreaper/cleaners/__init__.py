"""
Resource Cleaners
=================

Cleaners carry out the two per-unit sub-steps of deletion: issue the
delete call(s), and poll until the unit is confirmed gone. The executor
picks a cleaner for each deletion unit from a dispatch table keyed by
``ResourceType``.

Available Cleaners
------------------
Ec2Cleaner
    EC2 instances, NAT gateways and Elastic IPs.
VpcCleaner
    VPCs, subnets, security groups, route tables and internet gateways.
EcsCleaner
    ECS services and clusters.
LogGroupCleaner
    CloudWatch Logs log groups.
IamCleaner
    IAM roles and instance profiles.

Example
-------
>>> from tagreaper.cleaners import build_cleaners
>>> from tagreaper.core.aws_client import AWSClient
>>>
>>> cleaners = build_cleaners(AWSClient(region="us-west-2"))
>>> cleaners[ResourceType.SUBNET]
VpcCleaner(internet_gateway, subnet, security_group, route_table, vpc)

Safety
------
1. **Not found is success**: a unit that is already gone counts as deleted.
2. **Readable errors**: common AWS error codes are mapped to messages.
3. **Default pieces are never targeted**: the main route table and the
   default security group are excluded at discovery time.
"""

from __future__ import annotations

from typing import Dict

from tagreaper.cleaners.ec2_cleaner import Ec2Cleaner
from tagreaper.cleaners.ecs_cleaner import EcsCleaner
from tagreaper.cleaners.iam_cleaner import IamCleaner
from tagreaper.cleaners.logs_cleaner import LogGroupCleaner
from tagreaper.cleaners.vpc_cleaner import VpcCleaner
from tagreaper.core.base_cleaner import BaseCleaner
from tagreaper.core.models import ResourceType

CLEANER_CLASSES = [Ec2Cleaner, VpcCleaner, EcsCleaner, LogGroupCleaner, IamCleaner]


def build_cleaners(aws_client) -> Dict[ResourceType, BaseCleaner]:
    """Build the ``ResourceType`` -> cleaner dispatch table."""
    table: Dict[ResourceType, BaseCleaner] = {}
    for cls in CLEANER_CLASSES:
        cleaner = cls(aws_client)
        for resource_type in cleaner.resource_types:
            table[resource_type] = cleaner
    return table


__all__ = [
    "CLEANER_CLASSES",
    "Ec2Cleaner",
    "EcsCleaner",
    "IamCleaner",
    "LogGroupCleaner",
    "VpcCleaner",
    "build_cleaners",
]
