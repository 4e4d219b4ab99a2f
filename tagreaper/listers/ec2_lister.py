"""
EC2 Instance Lister
===================

Finds stale EC2 instances launched by test runs and groups them into a
single ``InstanceGroup`` per discovery pass.

Detection Logic
---------------
1. Server-side filters: owner marker prefix, ``Name`` prefix and a
   non-terminal instance state.
2. Local filter: the eligibility predicate on each instance's tags.
"""

from __future__ import annotations

import logging
from typing import Dict, List

from tagreaper.core.base_lister import BaseLister
from tagreaper.core.eligibility import tags_from_list
from tagreaper.core.models import InstanceGroup, Resource, ResourceType

logger = logging.getLogger(__name__)

# Terminated and shutting-down instances are already on their way out.
LIVE_INSTANCE_STATES = ["pending", "running", "stopping", "stopped"]


class InstanceLister(BaseLister):
    """
    Lister for stale EC2 instances.

    Parameters
    ----------
    aws_client : AWSClient
        Instance of AWSClient for AWS API access.
    config : ReaperConfig
        Naming convention and eligibility settings.
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
        return ResourceType.EC2_INSTANCES

    def list_stale_resources(self) -> List[Resource]:
        logger.info("Listing EC2 instances")
        filters = self.ec2_tag_filters() + [
            {"Name": "instance-state-name", "Values": LIVE_INSTANCE_STATES},
        ]

        # dicts keep first-seen order, which keeps plans reproducible
        instance_ids: Dict[str, None] = {}
        subnet_ids: Dict[str, None] = {}
        group_ids: Dict[str, None] = {}

        paginator = self.ec2_client.get_paginator("describe_instances")
        for page in paginator.paginate(Filters=filters):
            for reservation in page.get("Reservations", []):
                for instance in reservation.get("Instances", []):
                    if not self.is_stale(tags_from_list(instance.get("Tags"))):
                        continue
                    instance_ids[instance["InstanceId"]] = None
                    if instance.get("SubnetId"):
                        subnet_ids[instance["SubnetId"]] = None
                    for group in instance.get("SecurityGroups", []):
                        group_ids[group["GroupId"]] = None

        if not instance_ids:
            return []

        return [
            InstanceGroup(
                instance_ids=tuple(instance_ids),
                subnet_ids=tuple(subnet_ids),
                security_group_ids=tuple(group_ids),
            )
        ]
