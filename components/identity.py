import json
import pulumi
import pulumi_aws as aws
from typing import Optional

from config import StorageConfig
from naming import ResourceNamer
from components import policies
from components.storage import data_lake_bucket_name, replica_bucket_name
from components.streaming import delivery_log_group_name, stream_name


def _arn_after(role: aws.iam.Role, policy: aws.iam.RolePolicy) -> pulumi.Output:
    return pulumi.Output.all(role.arn, policy.id).apply(lambda args: args[0])


class Identity(pulumi.ComponentResource):
    """Service roles for Firehose delivery, Redshift COPY and S3 replication.

    Bucket and stream ARNs are derived from their deterministic names, so the
    roles exist before the resources they grant access to.
    """

    def __init__(self, name: str, namer: ResourceNamer, storage: StorageConfig,
                 account_id: pulumi.Input[str], key_arn: pulumi.Input[str],
                 opts: Optional[pulumi.ResourceOptions] = None):
        super().__init__("ecommerce:platform:Identity", name, None, opts)
        child = pulumi.ResourceOptions(parent=self)
        region = namer.region
        data_lake_arn = policies.bucket_arn(data_lake_bucket_name(namer))

        self.firehose_role = aws.iam.Role(
            namer.name("firehose-role"),
            description="Kinesis Firehose delivery from the event stream into the data lake",
            assume_role_policy=pulumi.Output.from_input(account_id).apply(
                lambda account: json.dumps(policies.assume_role_policy("firehose.amazonaws.com", account))
            ),
            tags=namer.tags(),
            opts=child,
        )
        self.firehose_policy = aws.iam.RolePolicy(
            namer.name("firehose-delivery"),
            role=self.firehose_role.id,
            policy=pulumi.Output.all(account_id, key_arn).apply(
                lambda args: json.dumps(policies.firehose_delivery_policy(
                    data_lake_arn,
                    policies.stream_arn(region, args[0], stream_name(namer)),
                    args[1],
                    policies.log_group_arn(region, args[0], delivery_log_group_name(namer)),
                ))
            ),
            opts=child,
        )

        self.redshift_role = aws.iam.Role(
            namer.name("redshift-role"),
            description="Redshift COPY and Spectrum reads from the data lake",
            assume_role_policy=json.dumps(policies.assume_role_policy("redshift.amazonaws.com")),
            tags=namer.tags(),
            opts=child,
        )
        prefixes = [storage.raw_prefix, storage.processed_prefix]
        self.redshift_policy = aws.iam.RolePolicy(
            namer.name("redshift-data-lake-read"),
            role=self.redshift_role.id,
            policy=pulumi.Output.from_input(key_arn).apply(
                lambda arn: json.dumps(policies.redshift_read_policy(data_lake_arn, prefixes, arn))
            ),
            opts=child,
        )

        self.replication_role = None
        if storage.replication_region:
            replica_arn = policies.bucket_arn(replica_bucket_name(namer, storage.replication_region))
            self.replication_role = aws.iam.Role(
                namer.name("replication-role"),
                description="S3 cross-region replication of the data lake",
                assume_role_policy=json.dumps(policies.assume_role_policy("s3.amazonaws.com")),
                tags=namer.tags(),
                opts=child,
            )
            self.replication_policy = aws.iam.RolePolicy(
                namer.name("replication"),
                role=self.replication_role.id,
                policy=pulumi.Output.from_input(key_arn).apply(
                    lambda arn: json.dumps(policies.replication_policy(
                        data_lake_arn, replica_arn, arn, storage.replication_region))
                ),
                opts=child,
            )

        # ARNs resolve only once the inline policy is attached, so consumers
        # never assume a role that cannot act yet
        self.firehose_role_arn = _arn_after(self.firehose_role, self.firehose_policy)
        self.redshift_role_arn = _arn_after(self.redshift_role, self.redshift_policy)
        self.replication_role_arn = None
        if self.replication_role:
            self.replication_role_arn = _arn_after(self.replication_role, self.replication_policy)

        self.register_outputs({
            "firehose_role_arn": self.firehose_role_arn,
            "redshift_role_arn": self.redshift_role_arn,
            "replication_role_arn": self.replication_role_arn,
        })
