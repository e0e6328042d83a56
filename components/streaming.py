import pulumi
import pulumi_aws as aws
from typing import Optional, Tuple

from config import StreamingConfig
from naming import DELIVERY_STREAM_BASE_NAME, ResourceNamer

SHARD_LEVEL_METRICS = [
    "IncomingBytes",
    "IncomingRecords",
    "OutgoingBytes",
    "OutgoingRecords",
    "WriteProvisionedThroughputExceeded",
    "ReadProvisionedThroughputExceeded",
    "IteratorAgeMilliseconds",
]
DELIVERY_LOG_STREAM = "S3Delivery"
PARTITION_PATH = "year=!{timestamp:yyyy}/month=!{timestamp:MM}/day=!{timestamp:dd}/hour=!{timestamp:HH}/"


def stream_name(namer: ResourceNamer) -> str:
    return namer.name("events")


def delivery_stream_name(namer: ResourceNamer) -> str:
    return namer.delivery_stream_name(DELIVERY_STREAM_BASE_NAME)


def delivery_log_group_name(namer: ResourceNamer) -> str:
    return f"/aws/kinesisfirehose/{delivery_stream_name(namer)}"


def delivery_prefixes(raw_prefix: str) -> Tuple[str, str]:
    """Hive-style hourly partitions for events; errors are split by failure type."""
    prefix = raw_prefix if raw_prefix.endswith("/") else f"{raw_prefix}/"
    return (
        f"{prefix}events/{PARTITION_PATH}",
        f"errors/!{{firehose:error-output-type}}/{PARTITION_PATH}",
    )


class Streaming(pulumi.ComponentResource):
    """Kinesis stream for incoming events and the Firehose delivery into the data lake."""

    def __init__(self, name: str, namer: ResourceNamer, settings: StreamingConfig,
                 key_arn: pulumi.Input[str], firehose_role_arn: pulumi.Input[str],
                 data_lake_bucket_arn: pulumi.Input[str], raw_prefix: str,
                 opts: Optional[pulumi.ResourceOptions] = None):
        super().__init__("ecommerce:platform:Streaming", name, None, opts)
        child = pulumi.ResourceOptions(parent=self)

        provisioned = settings.stream_mode == "PROVISIONED"
        self.stream = aws.kinesis.Stream(
            namer.name("events-stream"),
            name=stream_name(namer),
            shard_count=settings.shard_count if provisioned else None,
            retention_period=settings.retention_hours,
            stream_mode_details={"stream_mode": settings.stream_mode},
            encryption_type="KMS",
            kms_key_id=key_arn,
            shard_level_metrics=SHARD_LEVEL_METRICS,
            tags=namer.tags(Name=stream_name(namer)),
            opts=child,
        )

        self.log_group = aws.cloudwatch.LogGroup(
            namer.name("delivery-logs"),
            name=delivery_log_group_name(namer),
            retention_in_days=settings.log_retention_days,
            kms_key_id=key_arn,
            tags=namer.tags(),
            opts=child,
        )
        self.log_stream = aws.cloudwatch.LogStream(
            namer.name("delivery-log-stream"),
            name=DELIVERY_LOG_STREAM,
            log_group_name=self.log_group.name,
            opts=child,
        )

        prefix, error_prefix = delivery_prefixes(raw_prefix)
        self.delivery_stream = aws.kinesis.FirehoseDeliveryStream(
            namer.name("events-delivery"),
            name=delivery_stream_name(namer),
            destination="extended_s3",
            kinesis_source_configuration={
                "kinesis_stream_arn": self.stream.arn,
                "role_arn": firehose_role_arn,
            },
            extended_s3_configuration={
                "role_arn": firehose_role_arn,
                "bucket_arn": data_lake_bucket_arn,
                "prefix": prefix,
                "error_output_prefix": error_prefix,
                "buffering_size": settings.buffering_size_mb,
                "buffering_interval": settings.buffering_interval_seconds,
                "compression_format": settings.compression_format,
                "kms_key_arn": key_arn,
                "cloudwatch_logging_options": {
                    "enabled": True,
                    "log_group_name": self.log_group.name,
                    "log_stream_name": self.log_stream.name,
                },
            },
            tags=namer.tags(Name=delivery_stream_name(namer)),
            opts=child,
        )

        self.stream_name = self.stream.name
        self.stream_arn = self.stream.arn
        self.delivery_stream_name = self.delivery_stream.name
        self.delivery_stream_arn = self.delivery_stream.arn
        self.log_group_name = self.log_group.name

        self.register_outputs({
            "stream_name": self.stream_name,
            "stream_arn": self.stream_arn,
            "delivery_stream_name": self.delivery_stream_name,
            "delivery_stream_arn": self.delivery_stream_arn,
            "log_group_name": self.log_group_name,
        })
