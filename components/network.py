import pulumi
import pulumi_aws as aws
from typing import List, Optional

from config import NetworkConfig
from naming import ResourceNamer


class Network(pulumi.ComponentResource):
    """VPC hosting the warehouse: public subnets for egress, private subnets for Redshift."""

    def __init__(self, name: str, namer: ResourceNamer, settings: NetworkConfig,
                 warehouse_port: int = 5439, opts: Optional[pulumi.ResourceOptions] = None):
        zones = self._availability_zones(settings)
        super().__init__("ecommerce:platform:Network", name, None, opts)
        child = pulumi.ResourceOptions(parent=self)

        self.vpc = aws.ec2.Vpc(
            namer.name("vpc"),
            cidr_block=settings.vpc_cidr,
            enable_dns_support=True,
            enable_dns_hostnames=True,
            tags=namer.tags(Name=namer.name("vpc")),
            opts=child,
        )

        self.public_subnets: List[aws.ec2.Subnet] = []
        self.private_subnets: List[aws.ec2.Subnet] = []
        self.nat_gateway = None
        self.s3_endpoint = None

        if settings.public_subnet_cidrs:
            self.internet_gateway = aws.ec2.InternetGateway(
                namer.name("igw"),
                vpc_id=self.vpc.id,
                tags=namer.tags(Name=namer.name("igw")),
                opts=child,
            )
            self.public_route_table = aws.ec2.RouteTable(
                namer.name("public-rt"),
                vpc_id=self.vpc.id,
                routes=[{"cidr_block": "0.0.0.0/0", "gateway_id": self.internet_gateway.id}],
                tags=namer.tags(Name=namer.name("public-rt")),
                opts=child,
            )
            for index, cidr in enumerate(settings.public_subnet_cidrs):
                subnet_name = namer.name(f"public-{index + 1}")
                subnet = aws.ec2.Subnet(
                    subnet_name,
                    vpc_id=self.vpc.id,
                    cidr_block=cidr,
                    availability_zone=zones[index % len(zones)],
                    map_public_ip_on_launch=False,
                    tags=namer.tags(Name=subnet_name, Tier="public"),
                    opts=child,
                )
                aws.ec2.RouteTableAssociation(
                    f"{subnet_name}-rta",
                    subnet_id=subnet.id,
                    route_table_id=self.public_route_table.id,
                    opts=child,
                )
                self.public_subnets.append(subnet)

        private_routes = []
        if settings.enable_nat_gateway:
            eip = aws.ec2.Eip(
                namer.name("nat-eip"),
                domain="vpc",
                tags=namer.tags(Name=namer.name("nat-eip")),
                opts=child,
            )
            self.nat_gateway = aws.ec2.NatGateway(
                namer.name("nat"),
                allocation_id=eip.id,
                subnet_id=self.public_subnets[0].id,
                tags=namer.tags(Name=namer.name("nat")),
                opts=pulumi.ResourceOptions(parent=self, depends_on=[self.internet_gateway]),
            )
            private_routes.append({"cidr_block": "0.0.0.0/0", "nat_gateway_id": self.nat_gateway.id})

        self.private_route_table = aws.ec2.RouteTable(
            namer.name("private-rt"),
            vpc_id=self.vpc.id,
            routes=private_routes,
            tags=namer.tags(Name=namer.name("private-rt")),
            opts=child,
        )
        for index, cidr in enumerate(settings.private_subnet_cidrs):
            subnet_name = namer.name(f"private-{index + 1}")
            subnet = aws.ec2.Subnet(
                subnet_name,
                vpc_id=self.vpc.id,
                cidr_block=cidr,
                availability_zone=zones[index % len(zones)],
                tags=namer.tags(Name=subnet_name, Tier="private"),
                opts=child,
            )
            aws.ec2.RouteTableAssociation(
                f"{subnet_name}-rta",
                subnet_id=subnet.id,
                route_table_id=self.private_route_table.id,
                opts=child,
            )
            self.private_subnets.append(subnet)

        if settings.enable_s3_endpoint:
            # Gateway endpoint keeps warehouse COPY traffic to S3 off the NAT
            self.s3_endpoint = aws.ec2.VpcEndpoint(
                namer.name("s3-endpoint"),
                vpc_id=self.vpc.id,
                service_name=f"com.amazonaws.{namer.region}.s3",
                vpc_endpoint_type="Gateway",
                route_table_ids=[self.private_route_table.id],
                tags=namer.tags(Name=namer.name("s3-endpoint")),
                opts=child,
            )

        self.warehouse_security_group = aws.ec2.SecurityGroup(
            namer.name("warehouse-sg"),
            description="Redshift access from inside the VPC only",
            vpc_id=self.vpc.id,
            ingress=[{
                "description": "Redshift from VPC",
                "protocol": "tcp",
                "from_port": warehouse_port,
                "to_port": warehouse_port,
                "cidr_blocks": [settings.vpc_cidr],
            }],
            egress=[{
                "description": "All outbound",
                "protocol": "-1",
                "from_port": 0,
                "to_port": 0,
                "cidr_blocks": ["0.0.0.0/0"],
            }],
            tags=namer.tags(Name=namer.name("warehouse-sg")),
            opts=child,
        )

        self.vpc_id = self.vpc.id
        self.public_subnet_ids = [subnet.id for subnet in self.public_subnets]
        self.private_subnet_ids = [subnet.id for subnet in self.private_subnets]
        self.warehouse_security_group_id = self.warehouse_security_group.id

        self.register_outputs({
            "vpc_id": self.vpc_id,
            "public_subnet_ids": self.public_subnet_ids,
            "private_subnet_ids": self.private_subnet_ids,
            "warehouse_security_group_id": self.warehouse_security_group_id,
        })

    @staticmethod
    def _availability_zones(settings: NetworkConfig) -> List[str]:
        if settings.availability_zones:
            return list(settings.availability_zones)
        zones = aws.get_availability_zones(state="available").names
        needed = max(len(settings.private_subnet_cidrs), len(settings.public_subnet_cidrs))
        if len(zones) < len(settings.private_subnet_cidrs):
            raise ValueError(f"Region offers {len(zones)} availability zones, "
                             f"{len(settings.private_subnet_cidrs)} private subnets requested")
        pulumi.log.info(f"Using availability zones {zones[:needed]}")
        return zones[:needed]
