import json
import pulumi
import pulumi_aws as aws
from typing import Optional

from config import EncryptionConfig
from naming import ResourceNamer
from components.policies import key_policy


class Encryption(pulumi.ComponentResource):
    """Customer-managed KMS key shared by the stream, data lake, warehouse, logs and alerts."""

    def __init__(self, name: str, namer: ResourceNamer, settings: EncryptionConfig,
                 account_id: pulumi.Input[str], opts: Optional[pulumi.ResourceOptions] = None):
        super().__init__("ecommerce:platform:Encryption", name, None, opts)
        child = pulumi.ResourceOptions(parent=self)
        region = namer.region
        admins = list(settings.admin_role_arns)

        policy = pulumi.Output.from_input(account_id).apply(
            lambda account: json.dumps(key_policy(account, region, admins))
        )

        self.key = aws.kms.Key(
            namer.name("key"),
            description=f"Data platform key for {namer.prefix}",
            key_usage="ENCRYPT_DECRYPT",
            customer_master_key_spec="SYMMETRIC_DEFAULT",
            deletion_window_in_days=settings.deletion_window_days,
            enable_key_rotation=settings.enable_key_rotation,
            policy=policy,
            tags=namer.tags(Name=namer.name("key")),
            opts=child,
        )
        self.alias = aws.kms.Alias(
            namer.name("key-alias"),
            name=f"alias/{namer.name('data')}",
            target_key_id=self.key.key_id,
            opts=child,
        )

        self.key_id = self.key.key_id
        self.key_arn = self.key.arn
        self.alias_name = self.alias.name

        self.register_outputs({
            "key_id": self.key_id,
            "key_arn": self.key_arn,
            "alias_name": self.alias_name,
        })
