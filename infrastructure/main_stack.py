"""
Main CDK Stack for the EventFlow ticketing API.
"""

from aws_cdk import (
    Stack,
    Tags,
    CfnOutput,
    aws_iam as iam,
)
from constructs import Construct

from infrastructure.constructs.data_layer import DataLayerConstruct
from infrastructure.constructs.api_layer import ApiLayerConstruct
from infrastructure.config.settings import Settings


class TicketingStack(Stack):
    """Main stack wiring all constructs together."""

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        *,
        settings: Settings,
        **kwargs,
    ) -> None:
        super().__init__(scope, construct_id, **kwargs)

        Tags.of(self).add("Project", "eventflow-ticketing")
        Tags.of(self).add("Environment", settings.environment)
        Tags.of(self).add("ManagedBy", "cdk")

        # 1) Data layer.
        data_construct = DataLayerConstruct(
            self,
            "DataLayer",
            environment=settings.environment,
        )

        # 2) API layer (single Lambda).
        api_construct = ApiLayerConstruct(
            self,
            "ApiLayer",
            environment=settings.environment,
            table_environment=data_construct.table_environment,
            frontend_url=settings.frontend_url,
            mail_sender=settings.mail_sender,
            mail_sender_name=settings.mail_sender_name,
            display_timezone=settings.display_timezone,
            issuance_max_attempts=settings.issuance_max_attempts,
            lambda_memory_mb=settings.lambda_memory_mb,
            lambda_timeout_seconds=settings.lambda_timeout_seconds,
        )

        # Permissions for the API Lambda. Buyers and events are read-only here.
        tables = data_construct.tables
        tables["buyers"].grant_read_data(api_construct.main_lambda)
        tables["events"].grant_read_data(api_construct.main_lambda)
        tables["batches"].grant_read_write_data(api_construct.main_lambda)
        tables["tickets"].grant_read_write_data(api_construct.main_lambda)

        api_construct.main_lambda.add_to_role_policy(
            iam.PolicyStatement(
                actions=["ses:SendRawEmail"],
                resources=["*"],
            )
        )

        CfnOutput(self, "ApiEndpoint", value=api_construct.api.api_endpoint)
        for name, table in tables.items():
            CfnOutput(self, f"{name.capitalize()}TableName", value=table.table_name)
