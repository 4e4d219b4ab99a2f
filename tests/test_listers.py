"""
Tests for the resource listers.

EC2 networking, instances, log groups and IAM run against moto. ECS, NAT
gateways and Elastic IPs use stubbed clients so pagination, failures and
states moto does not model can be driven directly.
"""

from datetime import timedelta
from unittest.mock import MagicMock

import pytest

from conftest import NOW, REGION, as_tag_list, build_tags, client_error
from tagreaper.core.config import ReaperConfig
from tagreaper.core.exceptions import ResourceFetchError
from tagreaper.core.models import EcsCluster, ElasticIp, NatGateway, ResourceType, Vpc
from tagreaper.listers import (
    ALL_LISTERS,
    DEFAULT_LISTERS,
    EcsClusterLister,
    ElasticIpLister,
    IamRoleLister,
    InstanceLister,
    LogGroupLister,
    NatGatewayLister,
    VpcLister,
    build_listers,
)

CLUSTER_ARN = "arn:aws:ecs:us-west-2:123456789012:cluster/consul-ecs-abc"


def stub_client(pages=None, **methods):
    """
    Build a stubbed boto3 client.

    ``pages`` maps operation names to the list of pages their paginator
    yields, or to an exception raised when paginating.
    """
    pages = pages or {}
    client = MagicMock()

    def get_paginator(operation):
        paginator = MagicMock()
        result = pages.get(operation, [{}])
        if isinstance(result, Exception):
            paginator.paginate.side_effect = result
        else:
            paginator.paginate.return_value = result
        return paginator

    client.get_paginator.side_effect = get_paginator
    for name, value in methods.items():
        setattr(client, name, value)
    return client


def stub_aws(**clients):
    aws = MagicMock()
    aws.region = REGION
    aws.get_ec2_client.return_value = clients.get("ec2")
    aws.get_ecs_client.return_value = clients.get("ecs")
    aws.get_logs_client.return_value = clients.get("logs")
    aws.get_iam_client.return_value = clients.get("iam")
    return aws


# =============================================================================
# VPC
# =============================================================================


class TestVpcLister:
    """Tests for VpcLister."""

    def test_finds_stale_vpc_and_children(self, aws_client, config, stale_vpc):
        result = VpcLister(aws_client, config, now=NOW).list_resources()

        assert not result.has_errors
        assert len(result.resources) == 1
        vpc = result.resources[0]
        assert isinstance(vpc, Vpc)
        assert vpc.id == stale_vpc["vpc_id"]
        assert vpc.internet_gateway_id == stale_vpc["igw_id"]
        assert vpc.subnet_ids == (stale_vpc["subnet_id"],)

    def test_excludes_default_security_group(self, aws_client, config, stale_vpc):
        vpc = VpcLister(aws_client, config, now=NOW).list_resources().resources[0]
        assert vpc.security_group_ids == (stale_vpc["security_group_id"],)

    def test_excludes_main_route_table(self, aws_client, config, stale_vpc):
        """Three tables exist; only the two non-main ones are listed."""
        vpc = VpcLister(aws_client, config, now=NOW).list_resources().resources[0]
        assert sorted(vpc.route_table_ids) == sorted(stale_vpc["route_table_ids"])

    def test_ignores_fresh_vpc(self, aws_client, ec2_client, config):
        ec2_client.create_vpc(
            CidrBlock="10.1.0.0/16",
            TagSpecifications=[{
                "ResourceType": "vpc",
                "Tags": as_tag_list(build_tags("consul-ecs-new", age=timedelta(hours=1))),
            }],
        )
        assert VpcLister(aws_client, config, now=NOW).list_resources().resources == []

    def test_ignores_foreign_vpc(self, aws_client, ec2_client, config):
        ec2_client.create_vpc(
            CidrBlock="10.2.0.0/16",
            TagSpecifications=[{
                "ResourceType": "vpc",
                "Tags": as_tag_list(build_tags("consul-ecs-other", owner="https://example.com/build/1")),
            }],
        )
        assert VpcLister(aws_client, config, now=NOW).list_resources().resources == []

    def test_ignores_other_name_prefix(self, aws_client, ec2_client, config):
        ec2_client.create_vpc(
            CidrBlock="10.3.0.0/16",
            TagSpecifications=[{"ResourceType": "vpc", "Tags": as_tag_list(build_tags("prod-vpc"))}],
        )
        assert VpcLister(aws_client, config, now=NOW).list_resources().resources == []

    def test_child_query_failure_is_best_effort(self, config):
        """A failed subnet query leaves that list empty; the VPC is still emitted and the failure recorded."""
        ec2 = stub_client(
            pages={
                "describe_vpcs": [{"Vpcs": [{"VpcId": "vpc-1", "Tags": as_tag_list(build_tags("consul-ecs-1"))}]}],
                "describe_internet_gateways": [{"InternetGateways": [{"InternetGatewayId": "igw-1"}]}],
                "describe_subnets": client_error("UnauthorizedOperation", "DescribeSubnets"),
                "describe_security_groups": [{"SecurityGroups": [
                    {"GroupId": "sg-default", "GroupName": "default"},
                    {"GroupId": "sg-1", "GroupName": "consul-ecs-1"},
                ]}],
                "describe_route_tables": [{"RouteTables": [
                    {"RouteTableId": "rtb-main", "Associations": [{"Main": True}]},
                    {"RouteTableId": "rtb-1", "Associations": []},
                ]}],
            }
        )
        result = VpcLister(stub_aws(ec2=ec2), config, now=NOW).list_resources()

        assert result.resources == [
            Vpc(
                id="vpc-1",
                internet_gateway_id="igw-1",
                subnet_ids=(),
                security_group_ids=("sg-1",),
                route_table_ids=("rtb-1",),
            )
        ]
        assert len(result.errors) == 1
        assert isinstance(result.errors[0], ResourceFetchError)
        assert "Subnets for VPC vpc-1" in str(result.errors[0])
        assert result.errors[0].details["operation"] == "describe_subnets"

    def test_is_main_route_table(self):
        assert VpcLister.is_main_route_table({"Associations": [{"Main": False}, {"Main": True}]})
        assert not VpcLister.is_main_route_table({"Associations": []})


# =============================================================================
# EC2 instances
# =============================================================================


class TestInstanceLister:
    """Tests for InstanceLister."""

    def _launch(self, ec2_client, tags, subnet_id=None):
        kwargs = {}
        if subnet_id:
            kwargs["SubnetId"] = subnet_id
        response = ec2_client.run_instances(
            ImageId="ami-12c6146b",
            MinCount=1,
            MaxCount=1,
            InstanceType="t2.micro",
            TagSpecifications=[{"ResourceType": "instance", "Tags": as_tag_list(tags)}],
            **kwargs,
        )
        return response["Instances"][0]["InstanceId"]

    def test_groups_stale_instances(self, aws_client, ec2_client, config, stale_vpc):
        first = self._launch(ec2_client, build_tags("consul-ecs-a"), stale_vpc["subnet_id"])
        second = self._launch(ec2_client, build_tags("consul-ecs-b"), stale_vpc["subnet_id"])
        self._launch(ec2_client, build_tags("consul-ecs-c", age=timedelta(minutes=5)))

        result = InstanceLister(aws_client, config, now=NOW).list_resources()

        assert len(result.resources) == 1
        group = result.resources[0]
        assert sorted(group.instance_ids) == sorted([first, second])
        assert group.subnet_ids == (stale_vpc["subnet_id"],)

    def test_no_instances(self, aws_client, config):
        result = InstanceLister(aws_client, config, now=NOW).list_resources()
        assert result.resources == []
        assert not result.has_errors

    def test_skips_terminated_instances(self, aws_client, ec2_client, config):
        instance_id = self._launch(ec2_client, build_tags("consul-ecs-a"))
        ec2_client.terminate_instances(InstanceIds=[instance_id])
        assert InstanceLister(aws_client, config, now=NOW).list_resources().resources == []


# =============================================================================
# Log groups
# =============================================================================


class TestLogGroupLister:
    """Tests for LogGroupLister."""

    def test_finds_stale_log_groups(self, aws_client, logs_client, config):
        logs_client.create_log_group(logGroupName="consul-ecs-old", tags=build_tags("consul-ecs-old"))
        logs_client.create_log_group(
            logGroupName="consul-ecs-new", tags=build_tags("consul-ecs-new", age=timedelta(hours=2))
        )
        logs_client.create_log_group(logGroupName="other-old", tags=build_tags("other-old"))

        result = LogGroupLister(aws_client, config, now=NOW).list_resources()

        assert [r.identifier for r in result.resources] == ["consul-ecs-old"]

    def test_tag_failure_is_recorded(self, config):
        logs = stub_client(
            pages={"describe_log_groups": [{"logGroups": [{"logGroupName": "consul-ecs-a"}]}]},
            list_tags_log_group=MagicMock(side_effect=client_error("ThrottlingException")),
        )
        result = LogGroupLister(stub_aws(logs=logs), config, now=NOW).list_resources()

        assert result.resources == []
        assert len(result.errors) == 1
        assert isinstance(result.errors[0], ResourceFetchError)


# =============================================================================
# IAM roles
# =============================================================================


class TestIamRoleLister:
    """Tests for IamRoleLister."""

    ASSUME_ROLE = '{"Version": "2012-10-17", "Statement": []}'

    def test_finds_stale_role_with_instance_profile(self, aws_client, iam_client, config):
        iam_client.create_role(
            RoleName="consul-ecs-task",
            AssumeRolePolicyDocument=self.ASSUME_ROLE,
            Tags=as_tag_list(build_tags("consul-ecs-task")),
        )
        iam_client.create_instance_profile(InstanceProfileName="consul-ecs-profile")
        iam_client.add_role_to_instance_profile(
            InstanceProfileName="consul-ecs-profile", RoleName="consul-ecs-task"
        )
        iam_client.create_role(
            RoleName="consul-ecs-fresh",
            AssumeRolePolicyDocument=self.ASSUME_ROLE,
            Tags=as_tag_list(build_tags("consul-ecs-fresh", age=timedelta(hours=1))),
        )
        iam_client.create_role(
            RoleName="unrelated", AssumeRolePolicyDocument=self.ASSUME_ROLE,
            Tags=as_tag_list(build_tags("unrelated")),
        )

        result = IamRoleLister(aws_client, config, now=NOW).list_resources()

        assert len(result.resources) == 1
        role = result.resources[0]
        assert role.name == "consul-ecs-task"
        assert role.instance_profile_names == ("consul-ecs-profile",)

    def test_tag_failure_continues_with_next_role(self, config):
        tags = as_tag_list(build_tags("consul-ecs-b"))
        iam = stub_client(
            pages={"list_roles": [{"Roles": [
                {"RoleName": "consul-ecs-a", "RoleId": "AROA1"},
                {"RoleName": "consul-ecs-b", "RoleId": "AROA2"},
            ]}]},
            list_role_tags=MagicMock(side_effect=[client_error("AccessDenied"), {"Tags": tags}]),
        )
        result = IamRoleLister(stub_aws(iam=iam), config, now=NOW).list_resources()

        assert [r.identifier for r in result.resources] == ["consul-ecs-b"]
        assert len(result.errors) == 1

    def test_instance_profile_failure_is_recorded(self, config):
        iam = stub_client(
            pages={
                "list_roles": [{"Roles": [{"RoleName": "consul-ecs-a", "RoleId": "AROA1"}]}],
                "list_instance_profiles_for_role": client_error("AccessDenied", "ListInstanceProfilesForRole"),
            },
            list_role_tags=MagicMock(return_value={"Tags": as_tag_list(build_tags("consul-ecs-a"))}),
        )
        result = IamRoleLister(stub_aws(iam=iam), config, now=NOW).list_resources()

        assert [r.instance_profile_names for r in result.resources] == [()]
        assert len(result.errors) == 1
        assert "instance profiles for role consul-ecs-a" in str(result.errors[0])

    def test_name_checked_before_tags(self, config):
        iam = stub_client(
            pages={"list_roles": [{"Roles": [{"RoleName": "prod-role", "RoleId": "AROA1"}]}]},
            list_role_tags=MagicMock(),
        )
        IamRoleLister(stub_aws(iam=iam), config, now=NOW).list_resources()
        iam.list_role_tags.assert_not_called()

    def test_role_tags_pagination(self, config):
        owner = build_tags("consul-ecs-a")
        iam = stub_client(
            pages={"list_roles": [{"Roles": [{"RoleName": "consul-ecs-a", "RoleId": "AROA1"}]}]},
            list_role_tags=MagicMock(side_effect=[
                {"Tags": [{"Key": "build_url", "Value": owner["build_url"]}], "IsTruncated": True, "Marker": "m"},
                {"Tags": [{"Key": "build_time", "Value": owner["build_time"]}], "IsTruncated": False},
            ]),
        )
        result = IamRoleLister(stub_aws(iam=iam), config, now=NOW).list_resources()

        assert [r.identifier for r in result.resources] == ["consul-ecs-a"]
        assert iam.list_role_tags.call_args_list[1].kwargs == {"RoleName": "consul-ecs-a", "Marker": "m"}


# =============================================================================
# ECS
# =============================================================================


class TestEcsClusterLister:
    """Tests for EcsClusterLister."""

    def _ecs(self, clusters, services_pages):
        return stub_client(
            pages={
                "list_clusters": [{"clusterArns": [c["clusterArn"] for c in clusters]
                                   + ["arn:aws:ecs:us-west-2:123456789012:cluster/prod"]}],
                "list_services": services_pages,
            },
            describe_clusters=MagicMock(return_value={"clusters": clusters}),
        )

    def test_finds_cluster_with_services(self, config):
        cluster = {"clusterArn": CLUSTER_ARN, "status": "ACTIVE",
                   "tags": [{"key": k, "value": v} for k, v in build_tags("consul-ecs-abc").items()]}
        service_arns = [f"arn:aws:ecs:us-west-2:123456789012:service/consul-ecs-abc/svc-{i}" for i in range(3)]
        ecs = self._ecs([cluster], [{"serviceArns": service_arns[:2]}, {"serviceArns": service_arns[2:]}])

        result = EcsClusterLister(stub_aws(ecs=ecs), config, now=NOW).list_resources()

        assert result.resources == [EcsCluster(arn=CLUSTER_ARN, service_arns=tuple(service_arns))]
        # Only the name-matching cluster is described
        assert ecs.describe_clusters.call_args.kwargs["clusters"] == [CLUSTER_ARN]

    def test_service_listing_failure_keeps_cluster(self, config):
        cluster = {"clusterArn": CLUSTER_ARN, "status": "ACTIVE",
                   "tags": as_tag_list(build_tags("consul-ecs-abc"))}
        ecs = self._ecs([cluster], client_error("AccessDeniedException", "ListServices"))

        result = EcsClusterLister(stub_aws(ecs=ecs), config, now=NOW).list_resources()

        assert result.resources == [EcsCluster(arn=CLUSTER_ARN, service_arns=())]
        assert len(result.errors) == 1
        assert CLUSTER_ARN in str(result.errors[0])

    def test_skips_inactive_clusters(self, config):
        cluster = {"clusterArn": CLUSTER_ARN, "status": "INACTIVE",
                   "tags": as_tag_list(build_tags("consul-ecs-abc"))}
        ecs = self._ecs([cluster], [{"serviceArns": []}])

        assert EcsClusterLister(stub_aws(ecs=ecs), config, now=NOW).list_resources().resources == []

    def test_list_failure_becomes_error(self, config):
        ecs = stub_client(pages={"list_clusters": client_error("AccessDeniedException", "ListClusters")})
        result = EcsClusterLister(stub_aws(ecs=ecs), config, now=NOW).list_resources()

        assert result.resources == []
        assert isinstance(result.errors[0], ResourceFetchError)
        assert result.errors[0].resource_type == "ecs_cluster"


# =============================================================================
# NAT gateways and Elastic IPs
# =============================================================================


class TestNatGatewayLister:
    """Tests for NatGatewayLister."""

    def test_records_allocations(self, config):
        ec2 = stub_client(pages={"describe_nat_gateways": [{"NatGateways": [
            {
                "NatGatewayId": "nat-1",
                "VpcId": "vpc-1",
                "SubnetId": "subnet-1",
                "NatGatewayAddresses": [{"AllocationId": "eipalloc-1"}, {"PublicIp": "1.2.3.4"}],
                "Tags": as_tag_list(build_tags("consul-ecs-nat")),
            },
            {
                "NatGatewayId": "nat-2",
                "Tags": as_tag_list(build_tags("consul-ecs-nat", age=timedelta(hours=1))),
            },
        ]}]})

        lister = NatGatewayLister(stub_aws(ec2=ec2), config, now=NOW)
        result = lister.list_resources()

        assert result.resources == [
            NatGateway(id="nat-1", vpc_id="vpc-1", subnet_id="subnet-1", allocation_ids=("eipalloc-1",))
        ]

class TestElasticIpLister:
    """Tests for ElasticIpLister."""

    def test_lists_stale_addresses(self, config):
        ec2 = stub_client(describe_addresses=MagicMock(return_value={"Addresses": [
            {"AllocationId": "eipalloc-1", "PublicIp": "1.2.3.4", "AssociationId": "eipassoc-1",
             "Tags": as_tag_list(build_tags("consul-ecs-eip"))},
            {"PublicIp": "5.6.7.8", "Tags": as_tag_list(build_tags("consul-ecs-classic"))},
            {"AllocationId": "eipalloc-2", "Tags": as_tag_list(build_tags("consul-ecs-eip", age=timedelta(0)))},
        ]}))

        result = ElasticIpLister(stub_aws(ec2=ec2), config, now=NOW).list_resources()

        assert result.resources == [
            ElasticIp(allocation_id="eipalloc-1", public_ip="1.2.3.4", association_id="eipassoc-1")
        ]
        filters = ec2.describe_addresses.call_args.kwargs["Filters"]
        assert {"Name": "tag:Name", "Values": ["consul-ecs*"]} in filters


# =============================================================================
# Factory
# =============================================================================


class TestBuildListers:
    """Tests for build_listers."""

    def test_default_set_excludes_iam(self, config):
        listers = build_listers(stub_aws(), config)
        assert [type(lister) for lister in listers] == DEFAULT_LISTERS
        assert not any(isinstance(lister, IamRoleLister) for lister in listers)

    def test_include_iam(self):
        listers = build_listers(stub_aws(), ReaperConfig(include_iam=True))
        assert [type(lister) for lister in listers] == ALL_LISTERS

    @pytest.mark.parametrize("lister_class", ALL_LISTERS)
    def test_reports_resource_type(self, lister_class, config):
        lister = lister_class(stub_aws(), config)
        assert isinstance(lister.get_resource_type(), ResourceType)
        assert repr(lister).startswith(lister_class.__name__)
