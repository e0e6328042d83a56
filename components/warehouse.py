import pulumi
import pulumi_aws as aws
from typing import List, Optional

from config import WarehouseConfig
from naming import ResourceNamer

PARAMETER_GROUP_FAMILY = "redshift-1.0"
AUDIT_LOG_EXPORTS = ["connectionlog", "userlog", "useractivitylog"]


def cluster_identifier(namer: ResourceNamer) -> str:
    return namer.redshift_identifier("warehouse")


def cluster_type(number_of_nodes: int) -> str:
    return "single-node" if number_of_nodes == 1 else "multi-node"


class Warehouse(pulumi.ComponentResource):
    """Encrypted Redshift cluster in the private subnets, reachable only from the VPC."""

    def __init__(self, name: str, namer: ResourceNamer, settings: WarehouseConfig,
                 subnet_ids: List[pulumi.Input[str]], security_group_id: pulumi.Input[str],
                 key_arn: pulumi.Input[str], role_arn: pulumi.Input[str],
                 master_password: pulumi.Input[str], opts: Optional[pulumi.ResourceOptions] = None):
        super().__init__("ecommerce:platform:Warehouse", name, None, opts)
        child = pulumi.ResourceOptions(parent=self)
        identifier = cluster_identifier(namer)

        self.subnet_group = aws.redshift.SubnetGroup(
            namer.name("warehouse-subnets"),
            name=namer.redshift_identifier("warehouse-subnets"),
            description="Private subnets for the warehouse",
            subnet_ids=subnet_ids,
            tags=namer.tags(),
            opts=child,
        )
        self.parameter_group = aws.redshift.ParameterGroup(
            namer.name("warehouse-params"),
            name=namer.redshift_identifier("warehouse-params"),
            family=PARAMETER_GROUP_FAMILY,
            parameters=[
                {"name": "require_ssl", "value": "true"},
                {"name": "enable_user_activity_logging", "value": "true" if settings.enable_audit_logging else "false"},
            ],
            tags=namer.tags(),
            opts=child,
        )

        final_snapshot = None if settings.skip_final_snapshot else f"{identifier}-final"
        self.cluster = aws.redshift.Cluster(
            namer.name("warehouse"),
            cluster_identifier=identifier,
            database_name=settings.database_name,
            master_username=settings.master_username,
            master_password=master_password,
            node_type=settings.node_type,
            cluster_type=cluster_type(settings.number_of_nodes),
            number_of_nodes=settings.number_of_nodes,
            port=settings.port,
            cluster_subnet_group_name=self.subnet_group.name,
            cluster_parameter_group_name=self.parameter_group.name,
            vpc_security_group_ids=[security_group_id],
            iam_roles=[role_arn],
            encrypted=True,
            kms_key_id=key_arn,
            publicly_accessible=False,
            enhanced_vpc_routing=True,
            automated_snapshot_retention_period=settings.snapshot_retention_days,
            skip_final_snapshot=settings.skip_final_snapshot,
            final_snapshot_identifier=final_snapshot,
            tags=namer.tags(Name=identifier),
            opts=child,
        )

        if settings.enable_audit_logging:
            aws.redshift.Logging(
                namer.name("warehouse-audit"),
                cluster_identifier=self.cluster.cluster_identifier,
                log_destination_type="cloudwatch",
                log_exports=AUDIT_LOG_EXPORTS,
                opts=child,
            )

        self.cluster_identifier = self.cluster.cluster_identifier
        self.endpoint = self.cluster.endpoint
        self.database_name = self.cluster.database_name
        self.port = self.cluster.port

        self.register_outputs({
            "cluster_identifier": self.cluster_identifier,
            "endpoint": self.endpoint,
            "database_name": self.database_name,
            "port": self.port,
        })
