"""
Unit tests for the Kinesis stream and Firehose delivery component.
"""
import re
import pulumi

from config import StreamingConfig
from components.streaming import Streaming, delivery_log_group_name, delivery_prefixes, stream_name
from conftest import KEY_ARN

ROLE_ARN = "arn:aws:iam::123456789012:role/firehose"
BUCKET_ARN = "arn:aws:s3:::data-ecommerce-dev-euw1-data-lake"


class TestDeliveryPrefixes:

    def test_hourly_partitions_under_raw_prefix(self):
        prefix, _ = delivery_prefixes("raw/")

        assert prefix == "raw/events/year=!{timestamp:yyyy}/month=!{timestamp:MM}/day=!{timestamp:dd}/hour=!{timestamp:HH}/"

    def test_missing_trailing_slash_is_added(self):
        prefix, _ = delivery_prefixes("landing")

        assert prefix.startswith("landing/events/")

    def test_errors_split_by_type(self):
        _, error_prefix = delivery_prefixes("raw/")

        assert error_prefix.startswith("errors/!{firehose:error-output-type}/year=")


class TestNames:

    def test_names(self, namer):
        assert stream_name(namer) == "data-ecommerce-dev-euw1-events"
        assert delivery_log_group_name(namer) == "/aws/kinesisfirehose/data-ecommerce-dev-euw1-events-delivery"


class TestStreamingComponent:

    @pulumi.runtime.test
    def test_provisioned_stream(self, namer):
        settings = StreamingConfig(stream_mode="PROVISIONED", shard_count=3, retention_hours=48)
        streaming = Streaming("streaming-provisioned", namer, settings, KEY_ARN, ROLE_ARN, BUCKET_ARN, "raw/")

        def check(args):
            name, shards, retention, encryption_type, kms_key_id = args
            assert name == "data-ecommerce-dev-euw1-events"
            assert shards == 3
            assert retention == 48
            assert encryption_type == "KMS"
            assert kms_key_id == KEY_ARN

        return pulumi.Output.all(
            streaming.stream.name,
            streaming.stream.shard_count,
            streaming.stream.retention_period,
            streaming.stream.encryption_type,
            streaming.stream.kms_key_id,
        ).apply(check)

    @pulumi.runtime.test
    def test_on_demand_stream_has_no_shard_count(self, namer):
        settings = StreamingConfig(stream_mode="ON_DEMAND")
        streaming = Streaming("streaming-on-demand", namer, settings, KEY_ARN, ROLE_ARN, BUCKET_ARN, "raw/")

        def check(args):
            shards, mode = args
            assert shards is None
            assert _field(mode, "stream_mode") == "ON_DEMAND"

        return pulumi.Output.all(streaming.stream.shard_count, streaming.stream.stream_mode_details).apply(check)

    @pulumi.runtime.test
    def test_delivery_to_data_lake(self, namer):
        settings = StreamingConfig(buffering_size_mb=32, buffering_interval_seconds=120, compression_format="GZIP")
        streaming = Streaming("streaming-delivery", namer, settings, KEY_ARN, ROLE_ARN, BUCKET_ARN, "raw/")

        def check(args):
            destination, s3_config, source = args
            assert destination == "extended_s3"
            assert _field(s3_config, "bucket_arn") == BUCKET_ARN
            assert _field(s3_config, "role_arn") == ROLE_ARN
            assert _field(s3_config, "buffering_size") == 32
            assert _field(s3_config, "buffering_interval") == 120
            assert _field(s3_config, "compression_format") == "GZIP"
            assert _field(s3_config, "kms_key_arn") == KEY_ARN
            assert _field(s3_config, "prefix").startswith("raw/events/year=")
            assert _field(s3_config, "error_output_prefix").startswith("errors/")
            assert _field(_field(s3_config, "cloudwatch_logging_options"), "enabled") is True
            assert _field(source, "role_arn") == ROLE_ARN
            assert _field(source, "kinesis_stream_arn") is not None

        return pulumi.Output.all(
            streaming.delivery_stream.destination,
            streaming.delivery_stream.extended_s3_configuration,
            streaming.delivery_stream.kinesis_source_configuration,
        ).apply(check)

    @pulumi.runtime.test
    def test_delivery_log_group(self, namer):
        streaming = Streaming("streaming-logs", namer, StreamingConfig(log_retention_days=30),
                              KEY_ARN, ROLE_ARN, BUCKET_ARN, "raw/")

        def check(args):
            name, retention = args
            assert name == delivery_log_group_name(namer)
            assert retention == 30

        return pulumi.Output.all(streaming.log_group_name, streaming.log_group.retention_in_days).apply(check)


def _field(value, name):
    # Nested outputs come back from the mocks as plain dicts keyed by the wire name
    if isinstance(value, dict):
        camel = re.sub(r"_([a-z0-9])", lambda m: m.group(1).upper(), name)
        return value[name] if name in value else value[camel]
    return getattr(value, name)
