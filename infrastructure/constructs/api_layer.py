"""
API layer construct: shared Lambda + HTTP API routes.

A single Lambda keeps the DynamoDB and SES clients warm across routes.
Dependencies are bundled with Docker from src/requirements-lambda.txt.
"""

from typing import Dict

from aws_cdk import (
    BundlingOptions,
    Duration,
    aws_lambda as _lambda,
    aws_apigatewayv2 as apigw,
    aws_apigatewayv2_integrations as integrations,
    aws_logs as logs,
)
from constructs import Construct


class ApiLayerConstruct(Construct):
    """Expose ticketing endpoints via HTTP API."""

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        *,
        environment: str,
        table_environment: Dict[str, str],
        frontend_url: str,
        mail_sender: str,
        mail_sender_name: str,
        display_timezone: str,
        issuance_max_attempts: int = 5,
        lambda_memory_mb: int = 512,
        lambda_timeout_seconds: int = 30,
    ) -> None:
        super().__init__(scope, construct_id)

        bundled_code = _lambda.Code.from_asset(
            "src",
            bundling=BundlingOptions(
                image=_lambda.Runtime.PYTHON_3_12.bundling_image,
                command=[
                    "bash", "-c",
                    "pip install -r requirements-lambda.txt -t /asset-output && "
                    "cp -r . /asset-output"
                ],
            ),
        )

        self.main_lambda = _lambda.Function(
            self,
            "ApiHandler",
            runtime=_lambda.Runtime.PYTHON_3_12,
            handler="handlers.main.lambda_handler",
            code=bundled_code,
            memory_size=lambda_memory_mb,
            timeout=Duration.seconds(lambda_timeout_seconds),
            architecture=_lambda.Architecture.X86_64,
            environment={
                "ENVIRONMENT": environment,
                "STORE_BACKEND": "dynamodb",
                "MAIL_BACKEND": "ses",
                "MAIL_SENDER": mail_sender,
                "MAIL_SENDER_NAME": mail_sender_name,
                "DISPLAY_TIMEZONE": display_timezone,
                "ISSUANCE_MAX_ATTEMPTS": str(issuance_max_attempts),
                **table_environment,
            },
            log_retention=logs.RetentionDays.ONE_WEEK,
        )

        self.api = apigw.HttpApi(
            self,
            "HttpApi",
            api_name=f"ticketing-api-{environment}",
            cors_preflight=apigw.CorsPreflightOptions(
                allow_origins=[frontend_url],
                allow_methods=[apigw.CorsHttpMethod.POST, apigw.CorsHttpMethod.GET],
                allow_headers=["Content-Type", "Authorization"],
                allow_credentials=frontend_url != "*",
            ),
        )

        integration = integrations.HttpLambdaIntegration(
            "LambdaIntegration", self.main_lambda
        )

        route_defs = [
            (apigw.HttpMethod.POST, "/tickets/purchase"),
            (apigw.HttpMethod.POST, "/tickets/issue"),
            (apigw.HttpMethod.POST, "/tickets/{id}/fulfill"),
            (apigw.HttpMethod.GET, "/health"),
        ]

        for method, path in route_defs:
            self.api.add_routes(
                path=path,
                methods=[method],
                integration=integration,
            )
