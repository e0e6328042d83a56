"""
Pytest conftest.py - Shared fixtures for the data platform tests.

Provides:
- Pulumi mocks so components can be declared without an AWS account
- Sample configuration fixtures
- A shared ResourceNamer
"""
import os
import sys
import copy
import pytest
import pulumi

# Program modules live at the project root next to __main__.py
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

ACCOUNT_ID = "123456789012"
REGION = "eu-west-1"
KEY_ARN = f"arn:aws:kms:{REGION}:{ACCOUNT_ID}:key/0000-test"
PROJECT = "ecommerce-data-platform"


class PlatformMocks(pulumi.runtime.Mocks):
    """Echo inputs back as outputs and fill in the attributes AWS would compute."""

    def new_resource(self, args: pulumi.runtime.MockResourceArgs):
        outputs = dict(args.inputs)
        outputs.setdefault("arn", f"arn:aws:mock:{REGION}:{ACCOUNT_ID}:{args.name}")
        if args.typ == "aws:s3/bucketV2:BucketV2":
            outputs["arn"] = f"arn:aws:s3:::{args.inputs.get('bucket', args.name)}"
        elif args.typ == "aws:kms/key:Key":
            outputs["keyId"] = f"{args.name}-key-id"
            outputs["arn"] = f"arn:aws:kms:{REGION}:{ACCOUNT_ID}:key/{args.name}"
        elif args.typ == "aws:redshift/cluster:Cluster":
            outputs["endpoint"] = f"{args.inputs['clusterIdentifier']}.mock.{REGION}.redshift.amazonaws.com:5439"
        return [f"{args.name}-id", outputs]

    def call(self, args: pulumi.runtime.MockCallArgs):
        if args.token == "aws:index/getCallerIdentity:getCallerIdentity":
            return {
                "accountId": ACCOUNT_ID,
                "arn": f"arn:aws:iam::{ACCOUNT_ID}:user/test",
                "id": ACCOUNT_ID,
                "userId": "AIDATESTUSER",
            }
        if args.token == "aws:index/getAvailabilityZones:getAvailabilityZones":
            return {
                "id": REGION,
                "names": [f"{REGION}a", f"{REGION}b", f"{REGION}c"],
                "zoneIds": ["euw1-az1", "euw1-az2", "euw1-az3"],
            }
        return {}


pulumi.runtime.set_mocks(PlatformMocks(), project=PROJECT, stack="dev", preview=False)
pulumi.runtime.set_config(f"{PROJECT}:redshiftMasterPassword", "Sup3rSecretPass")


# ============================================================================
# Configuration Fixtures
# ============================================================================

SAMPLE_CONFIG = {
    "team": "Data",
    "service": "Ecommerce",
    "environment": "dev",
    "region": REGION,
    "tags": {"CostCenter": "analytics"},
    "network": {
        "availability_zones": [f"{REGION}a", f"{REGION}b"],
        "public_subnet_cidrs": ["10.20.0.0/24"],
        "private_subnet_cidrs": ["10.20.10.0/24", "10.20.11.0/24"],
    },
    "streaming": {"stream_mode": "PROVISIONED", "shard_count": 2},
    "alerting": {"alert_emails": ["alerts@example.com"]},
}


@pytest.fixture
def config_data():
    """Raw mapping as it would come out of config.<env>.yaml."""
    return copy.deepcopy(SAMPLE_CONFIG)


@pytest.fixture
def platform_config(config_data):
    from config import parse_config
    return parse_config(config_data)


@pytest.fixture
def namer():
    from naming import ResourceNamer
    return ResourceNamer("data", "ecommerce", "dev", REGION, {"CostCenter": "analytics"})
