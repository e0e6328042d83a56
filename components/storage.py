import json
import pulumi
import pulumi_aws as aws
from typing import Any, Dict, List, Optional

from config import StorageConfig
from naming import ResourceNamer
from components import policies

ACCESS_LOG_RETENTION_DAYS = 90


def data_lake_bucket_name(namer: ResourceNamer) -> str:
    return namer.bucket_name("data-lake")


def logs_bucket_name(namer: ResourceNamer) -> str:
    return namer.bucket_name("access-logs")


def replica_bucket_name(namer: ResourceNamer, replica_region: str) -> str:
    return namer.for_region(replica_region).bucket_name("data-lake-replica")


def lifecycle_rules(settings: StorageConfig) -> List[Dict[str, Any]]:
    """Tiering for raw events plus housekeeping rules that apply to the whole bucket."""
    raw_rule = {
        "id": "raw-tiering",
        "status": "Enabled",
        "filter": {"prefix": settings.raw_prefix},
        "transitions": [
            {"days": settings.transition_to_ia_days, "storage_class": "STANDARD_IA"},
            {"days": settings.transition_to_glacier_days, "storage_class": "GLACIER"},
        ],
    }
    if settings.expiration_days:
        raw_rule["expiration"] = {"days": settings.expiration_days}
    rules = [raw_rule]
    if settings.versioning:
        rules.append({
            "id": "noncurrent-versions",
            "status": "Enabled",
            "filter": {"prefix": ""},
            "noncurrent_version_expiration": {"noncurrent_days": settings.noncurrent_version_expiration_days},
        })
    rules.append({
        "id": "abort-incomplete-uploads",
        "status": "Enabled",
        "filter": {"prefix": ""},
        "abort_incomplete_multipart_upload": {"days_after_initiation": settings.abort_multipart_days},
    })
    return rules


def replication_rule(replica_bucket_arn: pulumi.Input[str], replica_key_arn: pulumi.Input[str]) -> Dict[str, Any]:
    return {
        "id": "replicate-data-lake",
        "status": "Enabled",
        "priority": 1,
        "filter": {"prefix": ""},
        "delete_marker_replication": {"status": "Enabled"},
        "source_selection_criteria": {"sse_kms_encrypted_objects": {"status": "Enabled"}},
        "destination": {
            "bucket": replica_bucket_arn,
            "storage_class": "STANDARD_IA",
            "encryption_configuration": {"replica_kms_key_id": replica_key_arn},
        },
    }


class Storage(pulumi.ComponentResource):
    """S3 data lake with access logging and optional cross-region replication."""

    def __init__(self, name: str, namer: ResourceNamer, settings: StorageConfig,
                 account_id: pulumi.Input[str], key_arn: pulumi.Input[str],
                 replication_role_arn: Optional[pulumi.Input[str]] = None,
                 opts: Optional[pulumi.ResourceOptions] = None):
        if settings.replication_region:
            if replication_role_arn is None:
                raise ValueError("Replication is enabled but no replication role was provided")
            if not settings.versioning:
                raise ValueError("Replication requires 'storage.versioning' to be enabled")
        super().__init__("ecommerce:platform:Storage", name, None, opts)
        self.namer = namer
        self.settings = settings

        self.logs_bucket = self._bucket("access-logs", logs_bucket_name(namer))
        logs_block = self._block_public_access("access-logs", self.logs_bucket)
        # Server access log delivery only supports SSE-S3 on the target bucket
        self._encrypt("access-logs", self.logs_bucket, None)
        aws.s3.BucketLifecycleConfigurationV2(
            namer.name("access-logs-lifecycle"),
            bucket=self.logs_bucket.id,
            rules=[{
                "id": "expire-access-logs",
                "status": "Enabled",
                "filter": {"prefix": ""},
                "expiration": {"days": ACCESS_LOG_RETENTION_DAYS},
            }],
            opts=pulumi.ResourceOptions(parent=self),
        )

        self.data_lake_bucket = self._bucket("data-lake", data_lake_bucket_name(namer))
        data_lake_block = self._block_public_access("data-lake", self.data_lake_bucket)
        versioning = None
        if settings.versioning:
            versioning = aws.s3.BucketVersioningV2(
                namer.name("data-lake-versioning"),
                bucket=self.data_lake_bucket.id,
                versioning_configuration={"status": "Enabled"},
                opts=pulumi.ResourceOptions(parent=self),
            )
        self._encrypt("data-lake", self.data_lake_bucket, key_arn)
        aws.s3.BucketLifecycleConfigurationV2(
            namer.name("data-lake-lifecycle"),
            bucket=self.data_lake_bucket.id,
            rules=lifecycle_rules(settings),
            opts=pulumi.ResourceOptions(parent=self, depends_on=[versioning] if versioning else None),
        )
        aws.s3.BucketLoggingV2(
            namer.name("data-lake-logging"),
            bucket=self.data_lake_bucket.id,
            target_bucket=self.logs_bucket.id,
            target_prefix="data-lake/",
            opts=pulumi.ResourceOptions(parent=self),
        )

        aws.s3.BucketPolicy(
            namer.name("data-lake-policy"),
            bucket=self.data_lake_bucket.id,
            policy=self.data_lake_bucket.arn.apply(
                lambda arn: json.dumps(policies.tls_only_bucket_policy(arn))
            ),
            opts=pulumi.ResourceOptions(parent=self, depends_on=[data_lake_block]),
        )
        aws.s3.BucketPolicy(
            namer.name("access-logs-policy"),
            bucket=self.logs_bucket.id,
            policy=pulumi.Output.all(self.logs_bucket.arn, self.data_lake_bucket.arn, account_id).apply(
                lambda args: json.dumps(policies.access_log_delivery_policy(args[0], args[1], args[2]))
            ),
            opts=pulumi.ResourceOptions(parent=self, depends_on=[logs_block]),
        )

        self.replica_bucket = None
        if settings.replication_region:
            self._replicate(account_id, replication_role_arn, versioning)

        self.data_lake_bucket_name = self.data_lake_bucket.bucket
        self.data_lake_bucket_arn = self.data_lake_bucket.arn
        self.logs_bucket_name = self.logs_bucket.bucket
        self.replica_bucket_name = self.replica_bucket.bucket if self.replica_bucket else None

        self.register_outputs({
            "data_lake_bucket_name": self.data_lake_bucket_name,
            "data_lake_bucket_arn": self.data_lake_bucket_arn,
            "logs_bucket_name": self.logs_bucket_name,
            "replica_bucket_name": self.replica_bucket_name,
        })

    def _bucket(self, base_name: str, bucket_name: str, provider: Optional[aws.Provider] = None) -> aws.s3.BucketV2:
        return aws.s3.BucketV2(
            self.namer.name(base_name),
            bucket=bucket_name,
            force_destroy=self.settings.force_destroy,
            tags=self.namer.tags(Name=bucket_name),
            opts=pulumi.ResourceOptions(parent=self, provider=provider),
        )

    def _block_public_access(self, base_name: str, bucket: aws.s3.BucketV2,
                             provider: Optional[aws.Provider] = None) -> aws.s3.BucketPublicAccessBlock:
        return aws.s3.BucketPublicAccessBlock(
            self.namer.name(f"{base_name}-public-access"),
            bucket=bucket.id,
            block_public_acls=True,
            block_public_policy=True,
            ignore_public_acls=True,
            restrict_public_buckets=True,
            opts=pulumi.ResourceOptions(parent=self, provider=provider),
        )

    def _encrypt(self, base_name: str, bucket: aws.s3.BucketV2, key_arn: Optional[pulumi.Input[str]],
                 provider: Optional[aws.Provider] = None):
        if key_arn is None:
            default = {"sse_algorithm": "AES256"}
        else:
            default = {"sse_algorithm": "aws:kms", "kms_master_key_id": key_arn}
        return aws.s3.BucketServerSideEncryptionConfigurationV2(
            self.namer.name(f"{base_name}-encryption"),
            bucket=bucket.id,
            rules=[{
                "apply_server_side_encryption_by_default": default,
                "bucket_key_enabled": key_arn is not None,
            }],
            opts=pulumi.ResourceOptions(parent=self, provider=provider),
        )

    def _replicate(self, account_id: pulumi.Input[str], role_arn: pulumi.Input[str],
                   source_versioning: aws.s3.BucketVersioningV2):
        namer = self.namer
        replica_region = self.settings.replication_region
        replica_namer = namer.for_region(replica_region)
        pulumi.log.info(f"Replicating data lake to {replica_region}")

        self.replica_provider = aws.Provider(
            namer.name("replica-provider"),
            region=replica_region,
            opts=pulumi.ResourceOptions(parent=self),
        )
        self.replica_key = aws.kms.Key(
            replica_namer.name("replica-key"),
            description=f"Data lake replica key for {namer.prefix}",
            deletion_window_in_days=30,
            enable_key_rotation=True,
            policy=pulumi.Output.from_input(account_id).apply(
                lambda account: json.dumps(policies.key_policy(account, replica_region))
            ),
            tags=namer.tags(),
            opts=pulumi.ResourceOptions(parent=self, provider=self.replica_provider),
        )
        self.replica_bucket = self._bucket("data-lake-replica", replica_bucket_name(namer, replica_region),
                                           self.replica_provider)
        self._block_public_access("data-lake-replica", self.replica_bucket, self.replica_provider)
        replica_versioning = aws.s3.BucketVersioningV2(
            namer.name("data-lake-replica-versioning"),
            bucket=self.replica_bucket.id,
            versioning_configuration={"status": "Enabled"},
            opts=pulumi.ResourceOptions(parent=self, provider=self.replica_provider),
        )
        self._encrypt("data-lake-replica", self.replica_bucket, self.replica_key.arn, self.replica_provider)

        self.replication = aws.s3.BucketReplicationConfig(
            namer.name("data-lake-replication"),
            bucket=self.data_lake_bucket.id,
            role=role_arn,
            rules=[replication_rule(self.replica_bucket.arn, self.replica_key.arn)],
            opts=pulumi.ResourceOptions(parent=self, depends_on=[source_versioning, replica_versioning]),
        )
