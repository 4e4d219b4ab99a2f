"""
Pytest configuration and shared fixtures for testing.
"""

import threading
from datetime import datetime, timedelta, timezone
from typing import List, Optional

import boto3
import pytest
from moto import mock_aws

from tagreaper.core.aws_client import AWSClient
from tagreaper.core.base_lister import BaseLister
from tagreaper.core.config import (
    DEFAULT_AGE_MARKER_KEY,
    DEFAULT_OWNER_MARKER_KEY,
    DEFAULT_OWNER_MARKER_PREFIX,
    EligibilityConfig,
    ReaperConfig,
)
from tagreaper.core.models import ResourceType

REGION = "us-west-2"

# Every eligibility decision in the tests is made against this instant.
NOW = datetime(2024, 1, 15, 12, 0, 0, tzinfo=timezone.utc)

OWNER = DEFAULT_OWNER_MARKER_PREFIX + "123"


def build_tags(name: str, age: timedelta = timedelta(days=5), owner: str = OWNER, now: datetime = NOW) -> dict:
    """Tag mapping for a resource created ``age`` before ``now``."""
    return {
        "Name": name,
        DEFAULT_OWNER_MARKER_KEY: owner,
        DEFAULT_AGE_MARKER_KEY: str(int((now - age).timestamp())),
    }


def as_tag_list(tags: dict) -> List[dict]:
    return [{"Key": k, "Value": v} for k, v in tags.items()]


class StaticLister(BaseLister):
    """Lister returning canned resources; raises ``error`` when given one."""

    def __init__(self, resource_type, resources=(), error=None, started=None, gate=None):
        self.resource_type = resource_type
        self.resources = list(resources)
        self.error = error
        self.started = started
        self.gate = gate
        self.calls = 0
        self.region = REGION
        self.config = ReaperConfig()
        self.now = NOW
        self._errors = []

    def get_resource_type(self):
        return self.resource_type

    def list_stale_resources(self):
        self.calls += 1
        if self.started is not None:
            self.started.set()
        if self.gate is not None:
            self.gate.wait(5)
        if self.error is not None:
            raise self.error
        return list(self.resources)


@pytest.fixture
def aws_credentials(monkeypatch):
    """Mock AWS credentials for moto."""
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    monkeypatch.setenv("AWS_SECURITY_TOKEN", "testing")
    monkeypatch.setenv("AWS_SESSION_TOKEN", "testing")
    monkeypatch.setenv("AWS_DEFAULT_REGION", REGION)


@pytest.fixture
def mock_aws_environment(aws_credentials):
    """Create a mocked AWS environment."""
    with mock_aws():
        yield


@pytest.fixture
def aws_client(mock_aws_environment):
    """Create an AWSClient instance for testing."""
    return AWSClient(region=REGION)


@pytest.fixture
def ec2_client(mock_aws_environment):
    """Create a boto3 EC2 client for setting up test resources."""
    return boto3.client("ec2", region_name=REGION)


@pytest.fixture
def logs_client(mock_aws_environment):
    return boto3.client("logs", region_name=REGION)


@pytest.fixture
def iam_client(mock_aws_environment):
    return boto3.client("iam", region_name=REGION)


@pytest.fixture
def eligibility():
    return EligibilityConfig()


@pytest.fixture
def config(eligibility):
    return ReaperConfig(eligibility=eligibility, region=REGION, poll_interval=0)


@pytest.fixture
def cancel_event():
    return threading.Event()


@pytest.fixture
def stale_vpc(ec2_client):
    """
    A stale VPC with one subnet, one extra security group, an attached IGW
    and two route tables besides the main one.
    """
    vpc_id = ec2_client.create_vpc(
        CidrBlock="10.0.0.0/16",
        TagSpecifications=[{"ResourceType": "vpc", "Tags": as_tag_list(build_tags("consul-ecs-abc"))}],
    )["Vpc"]["VpcId"]
    subnet_id = ec2_client.create_subnet(
        VpcId=vpc_id, CidrBlock="10.0.1.0/24", AvailabilityZone=f"{REGION}a"
    )["Subnet"]["SubnetId"]
    group_id = ec2_client.create_security_group(
        GroupName="consul-ecs-abc-sg", Description="test", VpcId=vpc_id
    )["GroupId"]
    igw_id = ec2_client.create_internet_gateway()["InternetGateway"]["InternetGatewayId"]
    ec2_client.attach_internet_gateway(InternetGatewayId=igw_id, VpcId=vpc_id)
    tables = [ec2_client.create_route_table(VpcId=vpc_id)["RouteTable"]["RouteTableId"] for _ in range(2)]
    ec2_client.associate_route_table(RouteTableId=tables[0], SubnetId=subnet_id)
    return {
        "vpc_id": vpc_id,
        "subnet_id": subnet_id,
        "security_group_id": group_id,
        "igw_id": igw_id,
        "route_table_ids": tables,
    }



def client_error(code: str, operation: str = "Operation", message: Optional[str] = None):
    from botocore.exceptions import ClientError

    return ClientError({"Error": {"Code": code, "Message": message or code}}, operation)


