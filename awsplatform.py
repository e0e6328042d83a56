import pulumi
import pulumi_aws as aws
import inspect
from typing import Any, Dict

from config import AWSResource, PlatformConfig
from naming import ResourceNamer, to_snake_case
from components import Alerting, Encryption, Identity, Network, Storage, Streaming, Warehouse
from components.streaming import delivery_stream_name, stream_name
from components.warehouse import cluster_identifier


def resolve_value(value: Any, resources: Dict[str, Any]) -> Any:
    if isinstance(value, dict):
        return {k: resolve_value(v, resources) for k, v in value.items()}
    elif isinstance(value, list):
        return [resolve_value(item, resources) for item in value]
    elif isinstance(value, str):
        if value.startswith("secret:"):
            # Fetch secret from Pulumi config
            secret_key = value[len("secret:"):]
            config = pulumi.Config()
            return config.require_secret(secret_key)
        elif value.startswith("ref:"):
            ref_text = value[4:]
            if "." in ref_text:
                ref_res, ref_attr = ref_text.split(".", 1)
            else:
                ref_res, ref_attr = ref_text, "id"
            if ref_res not in resources:
                raise ValueError(f"Referenced resource '{ref_res}' not found.")
            attr_val = getattr(resources[ref_res], ref_attr, None)
            if attr_val is None:
                raise ValueError(f"Attribute '{ref_attr}' not found on resource '{ref_res}'")
            return attr_val
        else:
            return value
    else:
        return value


def get_lookup_params(required_params: set, resolved_args: dict) -> dict:
    lookup_params = {}
    for param in required_params:
        snake_key = to_snake_case(param)
        if snake_key in resolved_args:
            lookup_params[param] = resolved_args[snake_key]
        elif param in resolved_args:
            lookup_params[param] = resolved_args[param]
    return lookup_params


class DataPlatformBuilder:
    """Declares the platform components in dependency order, then any extra resources.

    Components are registered in ``resources`` under their module name so extra
    resources can point at them, e.g. ``ref:storage.data_lake_bucket_arn``.
    """

    def __init__(self, config: PlatformConfig):
        self.config = config
        self.namer = ResourceNamer.from_config(config)
        self.resources: Dict[str, Any] = {}

    def master_password(self) -> pulumi.Output:
        password = self.config.warehouse.master_password
        if password.startswith("secret:"):
            return resolve_value(password, self.resources)
        pulumi.log.warn("warehouse.master_password is set in plain text; use 'secret:<config key>' instead")
        return pulumi.Output.secret(password)

    def build(self) -> Dict[str, Any]:
        cfg = self.config
        namer = self.namer
        pulumi.log.info(f"Building data platform '{namer.prefix}' in {cfg.region}")

        account_id = aws.get_caller_identity_output().account_id

        network = Network(namer.name("network"), namer, cfg.network, warehouse_port=cfg.warehouse.port)
        self.resources["network"] = network

        encryption = Encryption(namer.name("encryption"), namer, cfg.encryption, account_id)
        self.resources["encryption"] = encryption

        identity = Identity(namer.name("identity"), namer, cfg.storage, account_id, encryption.key_arn)
        self.resources["identity"] = identity

        storage = Storage(
            namer.name("storage"), namer, cfg.storage, account_id, encryption.key_arn,
            replication_role_arn=identity.replication_role_arn,
        )
        self.resources["storage"] = storage

        streaming = Streaming(
            namer.name("streaming"), namer, cfg.streaming, encryption.key_arn,
            identity.firehose_role_arn, storage.data_lake_bucket_arn, cfg.storage.raw_prefix,
        )
        self.resources["streaming"] = streaming

        warehouse = Warehouse(
            namer.name("warehouse"), namer, cfg.warehouse,
            network.private_subnet_ids, network.warehouse_security_group_id,
            encryption.key_arn, identity.redshift_role_arn, self.master_password(),
        )
        self.resources["warehouse"] = warehouse

        alerting = Alerting(
            namer.name("alerting"), namer, cfg.alerting, encryption.key_id,
            stream_name(namer), delivery_stream_name(namer), cluster_identifier(namer),
            opts=pulumi.ResourceOptions(depends_on=[streaming, warehouse]),
        )
        self.resources["alerting"] = alerting

        for resource_cfg in cfg.aws_resources:
            self.build_extra_resource(resource_cfg)
        return self.resources

    def outputs(self) -> Dict[str, Any]:
        """Flat stack outputs, one per component output."""
        network = self.resources["network"]
        encryption = self.resources["encryption"]
        identity = self.resources["identity"]
        storage = self.resources["storage"]
        streaming = self.resources["streaming"]
        warehouse = self.resources["warehouse"]
        alerting = self.resources["alerting"]
        outputs = {
            "vpc_id": network.vpc_id,
            "private_subnet_ids": network.private_subnet_ids,
            "public_subnet_ids": network.public_subnet_ids,
            "warehouse_security_group_id": network.warehouse_security_group_id,
            "kms_key_arn": encryption.key_arn,
            "kms_alias_name": encryption.alias_name,
            "firehose_role_arn": identity.firehose_role_arn,
            "redshift_role_arn": identity.redshift_role_arn,
            "replication_role_arn": identity.replication_role_arn,
            "data_lake_bucket_name": storage.data_lake_bucket_name,
            "data_lake_bucket_arn": storage.data_lake_bucket_arn,
            "logs_bucket_name": storage.logs_bucket_name,
            "replica_bucket_name": storage.replica_bucket_name,
            "kinesis_stream_name": streaming.stream_name,
            "kinesis_stream_arn": streaming.stream_arn,
            "firehose_delivery_stream_name": streaming.delivery_stream_name,
            "firehose_log_group_name": streaming.log_group_name,
            "redshift_cluster_identifier": warehouse.cluster_identifier,
            "redshift_endpoint": warehouse.endpoint,
            "redshift_database_name": warehouse.database_name,
            "redshift_port": warehouse.port,
            "alerts_topic_arn": alerting.topic_arn,
            "alarm_names": alerting.alarm_names,
            "dashboard_name": alerting.dashboard_name,
        }
        return {key: value for key, value in outputs.items() if value is not None}

    def _apply_common_parameters(self, resolved_args: dict, init_sig: inspect.Signature) -> dict:
        if "tags" in init_sig.parameters:
            resolved_args["tags"] = {**self.namer.tags(), **(resolved_args.get("tags") or {})}
        else:
            resolved_args.pop("tags", None)
        if "region" in init_sig.parameters:
            resolved_args.setdefault("region", self.config.region)
        else:
            resolved_args.pop("region", None)
        return resolved_args

    def build_extra_resource(self, resource_cfg: AWSResource):
        name = resource_cfg.name
        resource_type = resource_cfg.type
        if name in self.resources:
            raise ValueError(f"Resource name '{name}' is already used by the platform")
        args = dict(resource_cfg.args)
        is_existing = args.pop("existing", False)
        resolved_args = {key: resolve_value(value, self.resources) for key, value in args.items()}
        if "." not in resource_type:
            pulumi.log.warn(f"Resource type '{resource_type}' must look like 'module.Class'. Skipping '{name}'.")
            return
        module_name, class_name = resource_type.rsplit(".", 1)
        module = getattr(aws, module_name, None)
        if not module:
            pulumi.log.warn(f"AWS module '{module_name}' not found. Skipping '{name}'.")
            return
        try:
            ResourceClass = getattr(module, class_name)
        except AttributeError:
            pulumi.log.warn(f"Resource class '{class_name}' not found in module '{module_name}'. Skipping '{name}'.")
            return
        # Generated resources expose their real keyword arguments on _internal_init;
        # __init__ is an overloaded (*args, **kwargs) dispatcher
        init_sig = inspect.signature(getattr(ResourceClass, "_internal_init", ResourceClass.__init__))
        if is_existing and self._lookup_existing(name, resource_type, module, class_name, resolved_args):
            return
        resolved_args = self._apply_common_parameters(resolved_args, init_sig)
        pulumi_name = resource_cfg.custom_name or self.namer.name(name)
        self.resources[name] = ResourceClass(pulumi_name, **resolved_args)
        pulumi.log.info(f"Created resource: {pulumi_name} ({resource_type})")

    def _lookup_existing(self, name: str, resource_type: str, module, class_name: str, resolved_args: dict) -> bool:
        get_func_name = f"get_{to_snake_case(class_name)}"
        get_func = getattr(module, get_func_name, None)
        if get_func is None:
            pulumi.log.warn(f"Function '{get_func_name}' not found for '{resource_type}'. "
                            f"Proceeding to create new resource '{name}'.")
            return False
        sig = inspect.signature(get_func)
        get_required = {k for k, param in sig.parameters.items() if k != "opts" and param.default == param.empty}
        get_params = get_lookup_params(get_required, resolved_args)
        missing = get_required - set(get_params.keys())
        if missing:
            pulumi.log.warn(f"Missing required params {missing} for existing resource '{name}'. "
                            f"Skipping the lookup attempt.")
            return False
        try:
            self.resources[name] = get_func(**get_params)
        except Exception as e:
            pulumi.log.warn(f"Failed to retrieve existing resource '{name}': {e}. Proceeding with creation.")
            return False
        pulumi.log.info(f"Fetched existing resource '{name}' via '{get_func_name}' with {get_params}")
        return True
