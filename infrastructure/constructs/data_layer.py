"""
Data layer construct: one DynamoDB table per ticketing document type.
"""

from typing import Dict

from aws_cdk import (
    RemovalPolicy,
    aws_dynamodb as dynamodb,
)
from constructs import Construct

TABLES = ("buyers", "events", "batches", "tickets")


class DataLayerConstruct(Construct):
    """Provision the ticketing tables."""

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        *,
        environment: str,
    ) -> None:
        super().__init__(scope, construct_id)

        self.tables: Dict[str, dynamodb.Table] = {}
        for name in TABLES:
            self.tables[name] = dynamodb.Table(
                self,
                f"{name.capitalize()}Table",
                table_name=f"ticketing-{name}-{environment}",
                partition_key=dynamodb.Attribute(name="id", type=dynamodb.AttributeType.STRING),
                billing_mode=dynamodb.BillingMode.PAY_PER_REQUEST,
                point_in_time_recovery=environment == "prod",
                removal_policy=RemovalPolicy.RETAIN if environment == "prod" else RemovalPolicy.DESTROY,
            )

    @property
    def table_environment(self) -> Dict[str, str]:
        """Lambda environment variables naming each table."""
        return {
            f"{name.upper()}_TABLE": table.table_name
            for name, table in self.tables.items()
        }
