"""
This module defines the data structures for the platform configuration and
parses the per-environment YAML file into them.
"""

import os
import yaml
from dataclasses import dataclass, field, fields
from typing import Any, Dict, List, Optional, Union, get_args, get_origin, get_type_hints

from naming import DELIVERY_STREAM_BASE_NAME, ResourceNamer

ENVIRONMENTS = ("dev", "staging", "prod")
REQUIRED_KEYS = ["team", "service", "environment", "region"]
STREAM_MODES = ("PROVISIONED", "ON_DEMAND")
COMPRESSION_FORMATS = ("UNCOMPRESSED", "GZIP", "ZIP", "Snappy", "HADOOP_SNAPPY")


@dataclass
class AWSResource:
    name: str
    type: str
    args: Dict[str, Any] = field(default_factory=dict)
    custom_name: Optional[str] = None


@dataclass
class NetworkConfig:
    vpc_cidr: str = "10.20.0.0/16"
    availability_zones: List[str] = field(default_factory=list)
    public_subnet_cidrs: List[str] = field(default_factory=lambda: ["10.20.0.0/24"])
    private_subnet_cidrs: List[str] = field(default_factory=lambda: ["10.20.10.0/24", "10.20.11.0/24"])
    enable_nat_gateway: bool = True
    enable_s3_endpoint: bool = True


@dataclass
class EncryptionConfig:
    deletion_window_days: int = 30
    enable_key_rotation: bool = True
    admin_role_arns: List[str] = field(default_factory=list)


@dataclass
class StorageConfig:
    versioning: bool = True
    force_destroy: bool = False
    raw_prefix: str = "raw/"
    processed_prefix: str = "processed/"
    transition_to_ia_days: int = 30
    transition_to_glacier_days: int = 90
    expiration_days: Optional[int] = None
    noncurrent_version_expiration_days: int = 30
    abort_multipart_days: int = 7
    replication_region: Optional[str] = None


@dataclass
class StreamingConfig:
    stream_mode: str = "PROVISIONED"
    shard_count: int = 1
    retention_hours: int = 24
    buffering_size_mb: int = 64
    buffering_interval_seconds: int = 300
    compression_format: str = "GZIP"
    log_retention_days: int = 14


@dataclass
class WarehouseConfig:
    node_type: str = "dc2.large"
    number_of_nodes: int = 1
    database_name: str = "ecommerce"
    master_username: str = "admin_user"
    master_password: str = "secret:redshiftMasterPassword"
    port: int = 5439
    snapshot_retention_days: int = 7
    skip_final_snapshot: bool = True
    enable_audit_logging: bool = True


@dataclass
class AlertingConfig:
    alert_emails: List[str] = field(default_factory=list)
    iterator_age_threshold_ms: int = 60000
    data_freshness_threshold_seconds: int = 900
    cpu_threshold_percent: int = 80
    disk_threshold_percent: int = 85
    create_dashboard: bool = True


@dataclass
class PlatformConfig:
    team: str
    service: str
    environment: str
    region: str
    tags: Dict[str, str] = field(default_factory=dict)
    network: NetworkConfig = field(default_factory=NetworkConfig)
    encryption: EncryptionConfig = field(default_factory=EncryptionConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    streaming: StreamingConfig = field(default_factory=StreamingConfig)
    warehouse: WarehouseConfig = field(default_factory=WarehouseConfig)
    alerting: AlertingConfig = field(default_factory=AlertingConfig)
    aws_resources: List[AWSResource] = field(default_factory=list)

    @property
    def is_production(self) -> bool:
        return self.environment == "prod"


def _build_section(cls, section: str, data: Optional[Dict[str, Any]], overrides: Dict[str, Any] = None):
    data = dict(data or {})
    known = {f.name for f in fields(cls)}
    unknown = set(data) - known
    if unknown:
        raise ValueError(f"Unknown keys in '{section}' section: {sorted(unknown)}")
    for key, value in (overrides or {}).items():
        data.setdefault(key, value)
    hints = get_type_hints(cls)
    return cls(**{key: _coerce(section, key, value, hints[key]) for key, value in data.items()})


def _coerce(section: str, key: str, value: Any, annotation):
    """Check a YAML value against the field type; quoted integers are accepted."""
    label = f"'{section}.{key}'"
    if get_origin(annotation) is Union:
        if value is None:
            return None
        annotation = next(arg for arg in get_args(annotation) if arg is not type(None))
    if value is None:
        raise ValueError(f"{label} must not be empty")
    if get_origin(annotation) is list:
        if not isinstance(value, list):
            raise ValueError(f"{label} must be a list, got {value!r}")
        return [_coerce(section, key, item, get_args(annotation)[0]) for item in value]
    if annotation is bool:
        if not isinstance(value, bool):
            raise ValueError(f"{label} must be true or false, got {value!r}")
        return value
    if annotation is int:
        if isinstance(value, str) and value.strip().lstrip("-").isdigit():
            return int(value)
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValueError(f"{label} must be an integer, got {value!r}")
        return value
    if annotation is str:
        if not isinstance(value, str):
            raise ValueError(f"{label} must be a string, got {value!r}")
        return value
    return value


def _require_range(section: str, key: str, value: int, low: int, high: int):
    if not low <= value <= high:
        raise ValueError(f"'{section}.{key}' must be between {low} and {high}, got {value}")


def validate(config: PlatformConfig) -> PlatformConfig:
    """Check cross-field constraints the cloud APIs would otherwise reject at apply time."""
    if config.environment not in ENVIRONMENTS:
        raise ValueError(f"'environment' must be one of {ENVIRONMENTS}, got '{config.environment}'")
    ResourceNamer.from_config(config).delivery_stream_name(DELIVERY_STREAM_BASE_NAME)

    network = config.network
    if not network.private_subnet_cidrs:
        raise ValueError("'network.private_subnet_cidrs' needs at least one subnet")
    if network.availability_zones and len(network.private_subnet_cidrs) > len(network.availability_zones):
        raise ValueError("'network.private_subnet_cidrs' has more subnets than availability zones")
    if network.enable_nat_gateway and not network.public_subnet_cidrs:
        raise ValueError("'network.enable_nat_gateway' requires at least one public subnet")

    _require_range("encryption", "deletion_window_days", config.encryption.deletion_window_days, 7, 30)

    storage = config.storage
    if storage.transition_to_ia_days < 30:
        raise ValueError("'storage.transition_to_ia_days' must be at least 30")
    if storage.transition_to_glacier_days <= storage.transition_to_ia_days:
        raise ValueError("'storage.transition_to_glacier_days' must be after 'transition_to_ia_days'")
    if storage.expiration_days is not None and storage.expiration_days <= storage.transition_to_glacier_days:
        raise ValueError("'storage.expiration_days' must be after 'transition_to_glacier_days'")
    if storage.replication_region and storage.replication_region == config.region:
        raise ValueError("'storage.replication_region' must differ from the primary region")

    streaming = config.streaming
    if streaming.stream_mode not in STREAM_MODES:
        raise ValueError(f"'streaming.stream_mode' must be one of {STREAM_MODES}")
    if streaming.stream_mode == "PROVISIONED" and streaming.shard_count < 1:
        raise ValueError("'streaming.shard_count' must be positive for PROVISIONED streams")
    _require_range("streaming", "retention_hours", streaming.retention_hours, 24, 8760)
    _require_range("streaming", "buffering_size_mb", streaming.buffering_size_mb, 1, 128)
    _require_range("streaming", "buffering_interval_seconds", streaming.buffering_interval_seconds, 0, 900)
    if streaming.compression_format not in COMPRESSION_FORMATS:
        raise ValueError(f"'streaming.compression_format' must be one of {COMPRESSION_FORMATS}")

    warehouse = config.warehouse
    if warehouse.number_of_nodes < 1:
        raise ValueError("'warehouse.number_of_nodes' must be positive")
    _require_range("warehouse", "snapshot_retention_days", warehouse.snapshot_retention_days, 0, 35)

    return config


def parse_config(config_data: Dict[str, Any]) -> PlatformConfig:
    """Turn the raw YAML mapping into a validated PlatformConfig."""
    if not isinstance(config_data, dict):
        raise ValueError("Configuration must be a mapping")
    for key in REQUIRED_KEYS:
        if key not in config_data:
            raise ValueError(f"Missing required configuration key: {key}")

    environment = str(config_data["environment"]).strip().lower()
    production = environment == "prod"
    resources = []
    for entry in config_data.get("aws_resources") or []:
        if "name" not in entry or "type" not in entry:
            raise ValueError(f"aws_resources entry needs 'name' and 'type': {entry}")
        resources.append(AWSResource(
            name=entry["name"],
            type=entry["type"],
            args=entry.get("args") or {},
            custom_name=entry.get("custom_name"),
        ))

    config = PlatformConfig(
        team=str(config_data["team"]).strip(),
        service=str(config_data["service"]).strip(),
        environment=environment,
        region=str(config_data["region"]).strip(),
        tags=config_data.get("tags") or {},
        network=_build_section(NetworkConfig, "network", config_data.get("network")),
        encryption=_build_section(EncryptionConfig, "encryption", config_data.get("encryption")),
        storage=_build_section(StorageConfig, "storage", config_data.get("storage"),
                               {"force_destroy": not production}),
        streaming=_build_section(StreamingConfig, "streaming", config_data.get("streaming")),
        warehouse=_build_section(WarehouseConfig, "warehouse", config_data.get("warehouse"),
                                 {"skip_final_snapshot": not production}),
        alerting=_build_section(AlertingConfig, "alerting", config_data.get("alerting")),
        aws_resources=resources,
    )
    return validate(config)


def load_config(file_path: str) -> PlatformConfig:
    """Load and validate YAML configuration from the given file path."""
    if not os.path.exists(file_path):
        raise ValueError(f"Configuration file not found: {file_path}")
    with open(file_path, "r") as file:
        config_data = yaml.safe_load(file)
    return parse_config(config_data)
