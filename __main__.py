import os
import pulumi
from awsplatform import DataPlatformBuilder
from config import load_config


def config_path() -> str:
    """Stack setting ``configFile`` wins; otherwise ``config.<stack>.yaml``."""
    configured = pulumi.Config().get("configFile")
    if configured:
        return configured
    return os.path.join(os.path.dirname(os.path.abspath(__file__)), f"config.{pulumi.get_stack()}.yaml")


def main():
    # Load YAML configuration
    path = config_path()
    try:
        platform_config = load_config(path)
    except ValueError as e:
        pulumi.log.error(f"Invalid configuration in '{path}': {e}")
        raise

    try:
        builder = DataPlatformBuilder(platform_config)
    except Exception as e:
        pulumi.log.error(f"Failed to initialize DataPlatformBuilder: {e}")
        raise

    try:
        builder.build()
    except Exception as e:
        pulumi.log.error(f"Failed during resource build: {e}")
        raise

    for name, value in builder.outputs().items():
        pulumi.export(name, value)

    # Extra resources are exported by their configured name
    for resource_cfg in platform_config.aws_resources:
        resource = builder.resources.get(resource_cfg.name)
        if resource is None:
            continue
        try:
            pulumi.export(resource_cfg.name, resource.id)
        except Exception as e:
            pulumi.log.warn(f"Failed to export resource '{resource_cfg.name}': {e}")


if __name__ == "__main__":
    main()
