import json
import pulumi
import pulumi_aws as aws
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from config import AlertingConfig
from naming import ResourceNamer


@dataclass
class AlarmSpec:
    base_name: str
    description: str
    namespace: str
    metric_name: str
    dimensions: Dict[str, str]
    statistic: str
    comparison_operator: str
    threshold: float
    period: int = 300
    evaluation_periods: int = 1
    treat_missing_data: str = "notBreaching"


def alarm_specs(settings: AlertingConfig, stream: str, delivery_stream: str, cluster: str) -> List[AlarmSpec]:
    stream_dims = {"StreamName": stream}
    delivery_dims = {"DeliveryStreamName": delivery_stream}
    cluster_dims = {"ClusterIdentifier": cluster}
    return [
        AlarmSpec(
            base_name="stream-iterator-age",
            description="Consumers are falling behind the event stream",
            namespace="AWS/Kinesis",
            metric_name="GetRecords.IteratorAgeMilliseconds",
            dimensions=stream_dims,
            statistic="Maximum",
            comparison_operator="GreaterThanThreshold",
            threshold=settings.iterator_age_threshold_ms,
            evaluation_periods=2,
        ),
        AlarmSpec(
            base_name="stream-write-throttled",
            description="Producers are throttled writing to the event stream",
            namespace="AWS/Kinesis",
            metric_name="WriteProvisionedThroughputExceeded",
            dimensions=stream_dims,
            statistic="Sum",
            comparison_operator="GreaterThanThreshold",
            threshold=0,
        ),
        AlarmSpec(
            base_name="delivery-freshness",
            description="Oldest record in Firehose has not reached S3 in time",
            namespace="AWS/Firehose",
            metric_name="DeliveryToS3.DataFreshness",
            dimensions=delivery_dims,
            statistic="Maximum",
            comparison_operator="GreaterThanThreshold",
            threshold=settings.data_freshness_threshold_seconds,
        ),
        AlarmSpec(
            base_name="delivery-success",
            description="Firehose deliveries to S3 are failing",
            namespace="AWS/Firehose",
            metric_name="DeliveryToS3.Success",
            dimensions=delivery_dims,
            statistic="Average",
            comparison_operator="LessThanThreshold",
            threshold=1,
        ),
        AlarmSpec(
            base_name="warehouse-cpu",
            description="Warehouse CPU utilization is high",
            namespace="AWS/Redshift",
            metric_name="CPUUtilization",
            dimensions=cluster_dims,
            statistic="Average",
            comparison_operator="GreaterThanThreshold",
            threshold=settings.cpu_threshold_percent,
            evaluation_periods=3,
        ),
        AlarmSpec(
            base_name="warehouse-disk",
            description="Warehouse disk usage is high",
            namespace="AWS/Redshift",
            metric_name="PercentageDiskSpaceUsed",
            dimensions=cluster_dims,
            statistic="Average",
            comparison_operator="GreaterThanThreshold",
            threshold=settings.disk_threshold_percent,
        ),
        AlarmSpec(
            base_name="warehouse-health",
            description="Warehouse health check is failing",
            namespace="AWS/Redshift",
            metric_name="HealthStatus",
            dimensions=cluster_dims,
            statistic="Minimum",
            comparison_operator="LessThanThreshold",
            threshold=1,
            period=60,
            evaluation_periods=5,
            treat_missing_data="breaching",
        ),
    ]


def dashboard_body(region: str, specs: List[AlarmSpec]) -> Dict[str, Any]:
    """One metric widget per alarm, two per row."""
    widgets = []
    for index, spec in enumerate(specs):
        dimensions = [item for pair in spec.dimensions.items() for item in pair]
        widgets.append({
            "type": "metric",
            "x": (index % 2) * 12,
            "y": (index // 2) * 6,
            "width": 12,
            "height": 6,
            "properties": {
                "title": spec.description,
                "region": region,
                "stat": spec.statistic,
                "period": spec.period,
                "metrics": [[spec.namespace, spec.metric_name, *dimensions]],
                "annotations": {"horizontal": [{"label": "threshold", "value": spec.threshold}]},
            },
        })
    return {"widgets": widgets}


class Alerting(pulumi.ComponentResource):
    """SNS notifications, CloudWatch alarms and a dashboard over the pipeline."""

    def __init__(self, name: str, namer: ResourceNamer, settings: AlertingConfig,
                 key_id: pulumi.Input[str], stream_name: str, delivery_stream_name: str,
                 cluster_identifier: str, opts: Optional[pulumi.ResourceOptions] = None):
        super().__init__("ecommerce:platform:Alerting", name, None, opts)
        child = pulumi.ResourceOptions(parent=self)

        self.topic = aws.sns.Topic(
            namer.name("alerts"),
            name=namer.name("alerts"),
            kms_master_key_id=key_id,
            tags=namer.tags(),
            opts=child,
        )
        for index, email in enumerate(settings.alert_emails):
            aws.sns.TopicSubscription(
                namer.name(f"alerts-email-{index + 1}"),
                topic=self.topic.arn,
                protocol="email",
                endpoint=email,
                opts=child,
            )
        if not settings.alert_emails:
            pulumi.log.warn("No alert emails configured; alarms will only publish to the SNS topic")

        specs = alarm_specs(settings, stream_name, delivery_stream_name, cluster_identifier)
        self.alarms = []
        for spec in specs:
            alarm_name = namer.name(spec.base_name)
            self.alarms.append(aws.cloudwatch.MetricAlarm(
                alarm_name,
                name=alarm_name,
                alarm_description=spec.description,
                namespace=spec.namespace,
                metric_name=spec.metric_name,
                dimensions=spec.dimensions,
                statistic=spec.statistic,
                comparison_operator=spec.comparison_operator,
                threshold=spec.threshold,
                period=spec.period,
                evaluation_periods=spec.evaluation_periods,
                treat_missing_data=spec.treat_missing_data,
                alarm_actions=[self.topic.arn],
                ok_actions=[self.topic.arn],
                tags=namer.tags(),
                opts=child,
            ))

        self.dashboard = None
        if settings.create_dashboard:
            self.dashboard = aws.cloudwatch.Dashboard(
                namer.name("dashboard"),
                dashboard_name=namer.name("pipeline"),
                dashboard_body=json.dumps(dashboard_body(namer.region, specs)),
                opts=child,
            )

        self.topic_arn = self.topic.arn
        self.alarm_names = [alarm.name for alarm in self.alarms]
        self.dashboard_name = self.dashboard.dashboard_name if self.dashboard else None

        self.register_outputs({
            "topic_arn": self.topic_arn,
            "alarm_names": self.alarm_names,
            "dashboard_name": self.dashboard_name,
        })
