import re
from typing import Dict, Optional

AWS_REGION_ABBREVIATIONS = {
    "us-east-1": "use1",
    "us-east-2": "use2",
    "us-west-1": "usw1",
    "us-west-2": "usw2",
    "af-south-1": "afs1",
    "ap-east-1": "ape1",
    "ap-south-1": "aps1",
    "ap-northeast-1": "apne1",
    "ap-northeast-2": "apne2",
    "ap-northeast-3": "apne3",
    "ap-southeast-1": "apse1",
    "ap-southeast-2": "apse2",
    "ca-central-1": "cac1",
    "eu-central-1": "euc1",
    "eu-west-1": "euw1",
    "eu-west-2": "euw2",
    "eu-west-3": "euw3",
    "eu-north-1": "eun1",
    "eu-south-1": "eus1",
    "eu-south-2": "eus2",
    "me-south-1": "mes1",
    "sa-east-1": "sae1",
    "us-gov-east-1": "usge1",
    "us-gov-west-1": "usgw1",
    "cn-north-1": "cnn1",
    "cn-northwest-1": "cnnw1",
}

MAX_BUCKET_NAME_LENGTH = 63
MAX_REDSHIFT_IDENTIFIER_LENGTH = 63
MAX_DELIVERY_STREAM_NAME_LENGTH = 64
DELIVERY_STREAM_BASE_NAME = "events-delivery"


def to_snake_case(name: str) -> str:
    return re.sub(r'(?<!^)(?=[A-Z])', '_', name).lower()


def get_abbreviation(region: str) -> str:
    return AWS_REGION_ABBREVIATIONS.get(region.lower(), region.split("-")[0].lower())


class ResourceNamer:
    """Builds the physical names and tags shared by every resource of a stack.

    Names follow ``{team}-{service}-{env}-{region_abbr}-{base}``.
    """

    def __init__(self, team: str, service: str, environment: str, region: str,
                 tags: Optional[Dict[str, str]] = None):
        self.team = team.strip().lower()
        self.service = service.strip().lower()
        self.environment = environment.strip().lower()
        self.region = region
        self.extra_tags = dict(tags or {})

    @classmethod
    def from_config(cls, config) -> "ResourceNamer":
        return cls(config.team, config.service, config.environment, config.region, config.tags)

    @property
    def prefix(self) -> str:
        return f"{self.team}-{self.service}-{self.environment}-{get_abbreviation(self.region)}"

    def name(self, base_name: str) -> str:
        return f"{self.prefix}-{base_name}".lower()

    def for_region(self, region: str) -> "ResourceNamer":
        return ResourceNamer(self.team, self.service, self.environment, region, self.extra_tags)

    def bucket_name(self, base_name: str) -> str:
        # S3: lowercase letters, digits and hyphens, no trailing hyphen
        name = re.sub(r"[^a-z0-9-]", "-", self.name(base_name))
        return name[:MAX_BUCKET_NAME_LENGTH].rstrip("-")

    def redshift_identifier(self, base_name: str) -> str:
        # Redshift: must start with a letter, no double hyphens
        name = re.sub(r"[^a-z0-9-]", "-", self.name(base_name))
        name = re.sub(r"-{2,}", "-", name)
        if not name[0].isalpha():
            name = f"rs-{name}"
        return name[:MAX_REDSHIFT_IDENTIFIER_LENGTH].rstrip("-")

    def delivery_stream_name(self, base_name: str) -> str:
        # Firehose: at most 64 characters; truncation could collide with another stream
        name = self.name(base_name)
        if len(name) > MAX_DELIVERY_STREAM_NAME_LENGTH:
            raise ValueError(f"Delivery stream name '{name}' is longer than {MAX_DELIVERY_STREAM_NAME_LENGTH} "
                             f"characters; shorten 'team' or 'service'")
        return name

    def tags(self, **extra: str) -> Dict[str, str]:
        tags = {
            "Team": self.team,
            "Service": self.service,
            "Environment": self.environment,
            "ManagedBy": "pulumi",
        }
        tags.update(self.extra_tags)
        tags.update(extra)
        return tags
