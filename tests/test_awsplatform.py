"""
Unit tests for the platform builder: reference resolution, component wiring
and extra declarative resources.
"""
import inspect
import pytest
import pulumi

from awsplatform import DataPlatformBuilder, get_lookup_params, resolve_value
from config import AWSResource, parse_config


class FakeResource:
    def __init__(self, **attrs):
        self.__dict__.update(attrs)


class TestResolveValue:

    def test_plain_values_pass_through(self):
        assert resolve_value("raw/", {}) == "raw/"
        assert resolve_value(5, {}) == 5

    def test_ref_defaults_to_id(self):
        resources = {"bucket": FakeResource(id="bucket-id")}

        assert resolve_value("ref:bucket", resources) == "bucket-id"

    def test_ref_attribute_on_component(self):
        resources = {"storage": FakeResource(data_lake_bucket_arn="arn:aws:s3:::lake")}

        assert resolve_value("ref:storage.data_lake_bucket_arn", resources) == "arn:aws:s3:::lake"

    def test_nested_structures(self):
        resources = {"topic": FakeResource(id="topic-id", arn="arn:topic")}
        value = {"actions": ["ref:topic.arn"], "settings": {"target": "ref:topic"}}

        assert resolve_value(value, resources) == {"actions": ["arn:topic"], "settings": {"target": "topic-id"}}

    def test_unknown_resource(self):
        with pytest.raises(ValueError, match="Referenced resource 'missing' not found"):
            resolve_value("ref:missing", {})

    def test_unknown_attribute(self):
        with pytest.raises(ValueError, match="Attribute 'nope' not found on resource 'bucket'"):
            resolve_value("ref:bucket.nope", {"bucket": FakeResource(id="x")})

    @pulumi.runtime.test
    def test_secret_reference(self):
        secret = resolve_value("secret:redshiftMasterPassword", {})

        assert isinstance(secret, pulumi.Output)
        return secret.apply(lambda value: _assert_equal(value, "Sup3rSecretPass"))


class TestLookupParams:

    def test_matches_snake_and_camel_keys(self):
        params = get_lookup_params({"bucketName", "id"}, {"bucket_name": "lake", "id": "x", "extra": 1})

        assert params == {"bucketName": "lake", "id": "x"}


class TestCommonParameters:

    def test_tags_merged_and_region_dropped(self, platform_config):
        builder = DataPlatformBuilder(platform_config)

        def target(self, resource_name, tags=None, opts=None):
            pass

        args = builder._apply_common_parameters({"tags": {"Owner": "me"}, "region": "x"}, inspect.signature(target))

        assert args["tags"]["Owner"] == "me"
        assert args["tags"]["ManagedBy"] == "pulumi"
        assert "region" not in args

    def test_tags_dropped_when_unsupported(self, platform_config):
        builder = DataPlatformBuilder(platform_config)

        def target(self, resource_name, region=None, opts=None):
            pass

        args = builder._apply_common_parameters({"tags": {"Owner": "me"}}, inspect.signature(target))

        assert "tags" not in args
        assert args["region"] == "eu-west-1"


class TestMasterPassword:

    def test_plain_text_is_wrapped_as_secret(self, config_data):
        config_data["warehouse"] = {"master_password": "not-so-secret"}
        builder = DataPlatformBuilder(parse_config(config_data))

        assert isinstance(builder.master_password(), pulumi.Output)


class TestBuild:

    @pulumi.runtime.test
    def test_builds_all_components(self, config_data):
        config_data["service"] = "shop"
        builder = DataPlatformBuilder(parse_config(config_data))
        resources = builder.build()

        assert set(resources) == {
            "network", "encryption", "identity", "storage", "streaming", "warehouse", "alerting",
        }
        outputs = builder.outputs()
        assert "replica_bucket_name" not in outputs
        assert "replication_role_arn" not in outputs

        def check(args):
            bucket, stream, cluster = args
            assert bucket == "data-shop-dev-euw1-data-lake"
            assert stream == "data-shop-dev-euw1-events"
            assert cluster == "data-shop-dev-euw1-warehouse"

        return pulumi.Output.all(
            outputs["data_lake_bucket_name"],
            outputs["kinesis_stream_name"],
            outputs["redshift_cluster_identifier"],
        ).apply(check)

    @pulumi.runtime.test
    def test_replication_wiring(self, config_data):
        config_data["service"] = "shopdr"
        config_data["storage"] = {"replication_region": "eu-central-1"}
        builder = DataPlatformBuilder(parse_config(config_data))
        builder.build()
        outputs = builder.outputs()

        def check(args):
            replica, role_arn, configured_role = args
            assert replica == "data-shopdr-dev-euc1-data-lake-replica"
            assert configured_role == role_arn

        return pulumi.Output.all(
            outputs["replica_bucket_name"],
            outputs["replication_role_arn"],
            builder.resources["storage"].replication.role,
        ).apply(check)

    @pulumi.runtime.test
    def test_extra_resource_with_reference(self, config_data):
        config_data["service"] = "shopextra"
        config_data["aws_resources"] = [{
            "name": "orders-queue",
            "type": "sqs.Queue",
            "args": {"kms_master_key_id": "ref:encryption.key_id", "tags": {"Purpose": "orders"}},
        }]
        builder = DataPlatformBuilder(parse_config(config_data))
        resources = builder.build()
        queue = resources["orders-queue"]

        def check(args):
            key_id, expected_key_id, tags = args
            assert key_id == expected_key_id
            assert tags["Purpose"] == "orders"
            assert tags["Environment"] == "dev"

        return pulumi.Output.all(
            queue.kms_master_key_id,
            resources["encryption"].key_id,
            queue.tags,
        ).apply(check)

    def test_extra_resource_unknown_module_is_skipped(self, platform_config):
        builder = DataPlatformBuilder(platform_config)
        builder.build_extra_resource(AWSResource(name="thing", type="nosuchmodule.Thing"))

        assert "thing" not in builder.resources

    def test_extra_resource_unknown_class_is_skipped(self, platform_config):
        builder = DataPlatformBuilder(platform_config)
        builder.build_extra_resource(AWSResource(name="thing", type="sqs.NoSuchQueue"))

        assert "thing" not in builder.resources

    def test_extra_resource_without_module_is_skipped(self, platform_config):
        builder = DataPlatformBuilder(platform_config)
        builder.build_extra_resource(AWSResource(name="thing", type="Queue"))

        assert "thing" not in builder.resources

    def test_extra_resource_name_clash(self, platform_config):
        builder = DataPlatformBuilder(platform_config)
        builder.resources["storage"] = object()
        with pytest.raises(ValueError, match="already used by the platform"):
            builder.build_extra_resource(AWSResource(name="storage", type="sqs.Queue"))


def _assert_equal(actual, expected):
    assert actual == expected
