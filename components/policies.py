"""
IAM, KMS and bucket policy documents for the platform.

Every builder returns a plain dict so it can be checked without touching AWS;
components serialize them with ``json.dumps`` once their inputs resolve.
"""

from typing import Any, Dict, List, Optional

POLICY_VERSION = "2012-10-17"


def policy_document(statements: List[Dict[str, Any]]) -> Dict[str, Any]:
    return {"Version": POLICY_VERSION, "Statement": statements}


def assume_role_policy(service: str, external_id: Optional[str] = None) -> Dict[str, Any]:
    statement = {
        "Effect": "Allow",
        "Principal": {"Service": service},
        "Action": "sts:AssumeRole",
    }
    if external_id:
        statement["Condition"] = {"StringEquals": {"sts:ExternalId": external_id}}
    return policy_document([statement])


def bucket_arn(bucket_name: str) -> str:
    return f"arn:aws:s3:::{bucket_name}"


def stream_arn(region: str, account_id: str, stream_name: str) -> str:
    return f"arn:aws:kinesis:{region}:{account_id}:stream/{stream_name}"


def log_group_arn(region: str, account_id: str, log_group_name: str) -> str:
    return f"arn:aws:logs:{region}:{account_id}:log-group:{log_group_name}:*"


def key_policy(account_id: str, region: str, admin_role_arns: List[str] = None) -> Dict[str, Any]:
    """Key policy for the platform's customer-managed key.

    The account root keeps full control so IAM policies can grant access.
    Service principals only get the key through their own service in this
    account and region, and CloudWatch Logs only for this account's log groups.
    """
    root = f"arn:aws:iam::{account_id}:root"
    statements = [
        {
            "Sid": "EnableRootAccountPermissions",
            "Effect": "Allow",
            "Principal": {"AWS": root},
            "Action": "kms:*",
            "Resource": "*",
        },
    ]
    if admin_role_arns:
        statements.append({
            "Sid": "AllowKeyAdministration",
            "Effect": "Allow",
            "Principal": {"AWS": list(admin_role_arns)},
            "Action": [
                "kms:Create*",
                "kms:Describe*",
                "kms:Enable*",
                "kms:List*",
                "kms:Put*",
                "kms:Update*",
                "kms:Revoke*",
                "kms:Disable*",
                "kms:Get*",
                "kms:Delete*",
                "kms:TagResource",
                "kms:UntagResource",
                "kms:ScheduleKeyDeletion",
                "kms:CancelKeyDeletion",
            ],
            "Resource": "*",
        })
    statements.append({
        "Sid": "AllowDataServicesViaService",
        "Effect": "Allow",
        "Principal": {"AWS": "*"},
        "Action": [
            "kms:Encrypt",
            "kms:Decrypt",
            "kms:ReEncrypt*",
            "kms:GenerateDataKey*",
            "kms:DescribeKey",
        ],
        "Resource": "*",
        "Condition": {
            "StringEquals": {
                "kms:CallerAccount": account_id,
                "kms:ViaService": [
                    f"s3.{region}.amazonaws.com",
                    f"kinesis.{region}.amazonaws.com",
                    f"firehose.{region}.amazonaws.com",
                    f"redshift.{region}.amazonaws.com",
                ],
            },
        },
    })
    statements.append({
        "Sid": "AllowCloudWatchLogs",
        "Effect": "Allow",
        "Principal": {"Service": f"logs.{region}.amazonaws.com"},
        "Action": [
            "kms:Encrypt*",
            "kms:Decrypt*",
            "kms:ReEncrypt*",
            "kms:GenerateDataKey*",
            "kms:Describe*",
        ],
        "Resource": "*",
        "Condition": {
            "ArnLike": {
                "kms:EncryptionContext:aws:logs:arn": f"arn:aws:logs:{region}:{account_id}:*",
            },
        },
    })
    statements.append({
        "Sid": "AllowAlarmNotifications",
        "Effect": "Allow",
        "Principal": {"Service": ["cloudwatch.amazonaws.com", "sns.amazonaws.com"]},
        "Action": ["kms:Decrypt", "kms:GenerateDataKey*"],
        "Resource": "*",
        "Condition": {"StringEquals": {"aws:SourceAccount": account_id}},
    })
    return policy_document(statements)


def firehose_delivery_policy(data_lake_arn: str, source_stream_arn: str, key_arn: str,
                             delivery_log_group_arn: str) -> Dict[str, Any]:
    return policy_document([
        {
            "Sid": "S3Delivery",
            "Effect": "Allow",
            "Action": [
                "s3:AbortMultipartUpload",
                "s3:GetBucketLocation",
                "s3:GetObject",
                "s3:ListBucket",
                "s3:ListBucketMultipartUploads",
                "s3:PutObject",
            ],
            "Resource": [data_lake_arn, f"{data_lake_arn}/*"],
        },
        {
            "Sid": "KinesisSource",
            "Effect": "Allow",
            "Action": [
                "kinesis:DescribeStream",
                "kinesis:DescribeStreamSummary",
                "kinesis:GetShardIterator",
                "kinesis:GetRecords",
                "kinesis:ListShards",
            ],
            "Resource": source_stream_arn,
        },
        {
            "Sid": "KmsDataKeys",
            "Effect": "Allow",
            "Action": ["kms:Decrypt", "kms:GenerateDataKey"],
            "Resource": key_arn,
        },
        {
            "Sid": "DeliveryLogs",
            "Effect": "Allow",
            "Action": ["logs:PutLogEvents"],
            "Resource": delivery_log_group_arn,
        },
    ])


def redshift_read_policy(data_lake_arn: str, prefixes: List[str], key_arn: str) -> Dict[str, Any]:
    """Read access for ``COPY``/Spectrum over the given data lake prefixes."""
    return policy_document([
        {
            "Sid": "LocateDataLake",
            "Effect": "Allow",
            "Action": ["s3:GetBucketLocation"],
            "Resource": data_lake_arn,
        },
        {
            "Sid": "ListDataLake",
            "Effect": "Allow",
            "Action": ["s3:ListBucket"],
            "Resource": data_lake_arn,
            "Condition": {"StringLike": {"s3:prefix": [f"{p}*" for p in prefixes]}},
        },
        {
            "Sid": "ReadDataLake",
            "Effect": "Allow",
            "Action": ["s3:GetObject"],
            "Resource": [f"{data_lake_arn}/{p}*" for p in prefixes],
        },
        {
            "Sid": "DecryptDataLake",
            "Effect": "Allow",
            "Action": ["kms:Decrypt", "kms:DescribeKey"],
            "Resource": key_arn,
        },
    ])


def replication_policy(source_arn: str, replica_arn: str, source_key_arn: str,
                       replica_region: str) -> Dict[str, Any]:
    return policy_document([
        {
            "Sid": "ReadSource",
            "Effect": "Allow",
            "Action": ["s3:GetReplicationConfiguration", "s3:ListBucket"],
            "Resource": source_arn,
        },
        {
            "Sid": "ReadSourceVersions",
            "Effect": "Allow",
            "Action": [
                "s3:GetObjectVersionForReplication",
                "s3:GetObjectVersionAcl",
                "s3:GetObjectVersionTagging",
            ],
            "Resource": f"{source_arn}/*",
        },
        {
            "Sid": "WriteReplica",
            "Effect": "Allow",
            "Action": ["s3:ReplicateObject", "s3:ReplicateDelete", "s3:ReplicateTags"],
            "Resource": f"{replica_arn}/*",
        },
        {
            "Sid": "DecryptSource",
            "Effect": "Allow",
            "Action": ["kms:Decrypt"],
            "Resource": source_key_arn,
        },
        {
            "Sid": "EncryptReplica",
            "Effect": "Allow",
            "Action": ["kms:Encrypt"],
            "Resource": "*",
            "Condition": {"StringLike": {"kms:ViaService": f"s3.{replica_region}.amazonaws.com"}},
        },
    ])


def tls_only_bucket_policy(arn: str) -> Dict[str, Any]:
    return policy_document([
        {
            "Sid": "DenyInsecureTransport",
            "Effect": "Deny",
            "Principal": "*",
            "Action": "s3:*",
            "Resource": [arn, f"{arn}/*"],
            "Condition": {"Bool": {"aws:SecureTransport": "false"}},
        },
    ])


def access_log_delivery_policy(logs_arn: str, source_arn: str, account_id: str) -> Dict[str, Any]:
    statements = tls_only_bucket_policy(logs_arn)["Statement"]
    statements.append({
        "Sid": "AllowServerAccessLogs",
        "Effect": "Allow",
        "Principal": {"Service": "logging.s3.amazonaws.com"},
        "Action": "s3:PutObject",
        "Resource": f"{logs_arn}/*",
        "Condition": {
            "ArnLike": {"aws:SourceArn": source_arn},
            "StringEquals": {"aws:SourceAccount": account_id},
        },
    })
    return policy_document(statements)
