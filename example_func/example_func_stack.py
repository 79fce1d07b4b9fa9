# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: MIT-0

from dataclasses import dataclass
from pathlib import Path
from typing import Optional
import re
import aws_cdk as cdk
from aws_cdk import (
    Stack,
    CfnOutput,
    RemovalPolicy,
    Duration,
    BundlingOptions,
    aws_iam as iam,
    aws_lambda as _lambda,
    aws_logs as logs,
)
from constructs import Construct
import logging

LAMBDA_CODE_DIR = str(Path(__file__).parent / "lambda_function")
HEALTHLAKE_REGION = "us-west-2"
METRICS_NAMESPACE = "FhirUtils/ExampleFunc"

# Files kept out of the deployment package
ASSET_EXCLUDES = [
    "*.pyc",
    "__pycache__",
    "*.md",
    ".DS_Store",
    "*.log",
    "tests",
    "*.pytest_cache",
]


@dataclass
class ExampleFuncConfig:
    """Configuration class for the example function stack parameters."""

    function_name: str = "example-func"
    sample_function_name: str = "sample-func"
    timeout_seconds: int = 30
    memory_size: int = 128
    healthlake_datastore_id: Optional[str] = None
    log_level: str = "INFO"
    # Install requirements.txt into the package at synth time (needs Docker)
    bundle_dependencies: bool = True
    # Resource cleanup configuration
    logs_removal_policy: RemovalPolicy = RemovalPolicy.DESTROY

    def __post_init__(self):
        """Validate configuration parameters after initialization."""
        for field_name in ("function_name", "sample_function_name"):
            name = getattr(self, field_name)
            if not name or not name.strip():
                raise ValueError(f"Function name cannot be empty ({field_name})")
            if len(name) > 64:
                raise ValueError(
                    f"Function name cannot exceed 64 characters. Got: {len(name)}"
                )
            if not re.match(r"^[A-Za-z0-9\-_]+$", name):
                raise ValueError(f"Invalid function name format: {name}")

        if self.function_name == self.sample_function_name:
            raise ValueError(
                f"Function names must be distinct. Got: {self.function_name}"
            )

        # Validate timeout
        if self.timeout_seconds < 1 or self.timeout_seconds > 900:
            raise ValueError(
                f"Timeout must be between 1 and 900 seconds. Got: {self.timeout_seconds}"
            )

        # Validate memory size
        if self.memory_size < 128 or self.memory_size > 10240:
            raise ValueError(
                f"Memory size must be between 128 and 10240 MB. Got: {self.memory_size}"
            )

        if self.log_level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Invalid log level: {self.log_level}")

        if self.healthlake_datastore_id is not None:
            if not re.match(r"^[A-Za-z0-9]{1,32}$", self.healthlake_datastore_id):
                raise ValueError(
                    f"Invalid HealthLake datastore id: {self.healthlake_datastore_id}"
                )


class ExampleFuncStack(Stack):
    """
    CDK Stack for deploying the FHIR example functions.

    This stack creates the access validation Lambda function and the sample
    Lambda function, a shared execution role with read access to the
    HealthLake datastore and CloudWatch metrics, and their log groups.
    """

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        config: Optional[ExampleFuncConfig] = None,
        **kwargs,
    ) -> None:
        super().__init__(scope, construct_id, **kwargs)

        # Set up logging
        self.logger = logging.getLogger(__name__)

        # Use provided config or create default
        self.config = config or ExampleFuncConfig()

        self.project_name = self.node.try_get_context("project_name") or "fhir-utils-example"

        self._create_execution_role()
        self.lambda_code = self._create_lambda_code()

        self.access_function = self._create_function(
            "ExampleFuncHandler",
            function_name=self.config.function_name,
            handler="lambda_function.lambda_handler",
            description="Validates access to HealthLake resources by owning entity",
        )
        self.sample_function = self._create_function(
            "SampleFuncHandler",
            function_name=self.config.sample_function_name,
            handler="sample_function.lambda_handler",
            description="Sample function calling the sample capability",
        )

        self._create_outputs()

    def _create_execution_role(self) -> None:
        """Create the Lambda execution role."""
        # Basic execution covers CloudWatch Logs
        self.lambda_execution_role = iam.Role(
            self,
            "ExampleFuncLambdaRole",
            description="Execution role for the FHIR example Lambda functions",
            assumed_by=iam.ServicePrincipal("lambda.amazonaws.com"),
            managed_policies=[
                iam.ManagedPolicy.from_aws_managed_policy_name(
                    "service-role/AWSLambdaBasicExecutionRole"
                )
            ],
        )

        datastore = self.config.healthlake_datastore_id or "*"
        healthlake_policy = iam.PolicyDocument(
            statements=[
                iam.PolicyStatement(
                    effect=iam.Effect.ALLOW,
                    actions=["healthlake:ReadResource", "healthlake:SearchWithGet"],
                    resources=[
                        self.format_arn(
                            service="healthlake",
                            region=HEALTHLAKE_REGION,
                            resource="datastore",
                            resource_name=f"fhir/{datastore}",
                        )
                    ],
                ),
            ]
        )

        cloudwatch_policy = iam.PolicyDocument(
            statements=[
                iam.PolicyStatement(
                    effect=iam.Effect.ALLOW,
                    actions=["cloudwatch:PutMetricData"],
                    resources=["*"],  # CloudWatch metrics don't support resource-level permissions
                    conditions={
                        "StringEquals": {"cloudwatch:namespace": METRICS_NAMESPACE}
                    },
                ),
            ]
        )

        self.lambda_execution_role.attach_inline_policy(
            iam.Policy(
                self,
                "LambdaHealthLakePolicy",
                policy_name="HealthLakeReadAccess",
                document=healthlake_policy,
            )
        )

        self.lambda_execution_role.attach_inline_policy(
            iam.Policy(
                self,
                "LambdaCloudWatchPolicy",
                policy_name="CloudWatchMetricsAccess",
                document=cloudwatch_policy,
            )
        )

    def _create_lambda_code(self) -> _lambda.Code:
        """Package the Lambda source directory."""
        if not self.config.bundle_dependencies:
            return _lambda.Code.from_asset(LAMBDA_CODE_DIR, exclude=ASSET_EXCLUDES)

        return _lambda.Code.from_asset(
            LAMBDA_CODE_DIR,
            exclude=ASSET_EXCLUDES,
            bundling=BundlingOptions(
                image=_lambda.Runtime.PYTHON_3_13.bundling_image,
                command=[
                    "bash",
                    "-c",
                    "pip install -r requirements.txt -t /asset-output && cp -au . /asset-output",
                ],
            ),
        )

    def _create_function(
        self, construct_id: str, function_name: str, handler: str, description: str
    ) -> _lambda.Function:
        """Create one Lambda function sharing the package and role."""
        log_group = logs.LogGroup(
            self,
            f"{construct_id}Logs",
            log_group_name=f"/aws/lambda/{function_name}",
            retention=logs.RetentionDays.ONE_MONTH,
            removal_policy=self.config.logs_removal_policy,
        )

        environment = {"LOG_LEVEL": self.config.log_level}
        if self.config.healthlake_datastore_id:
            environment["HEALTHLAKE_DATASTORE_ID"] = self.config.healthlake_datastore_id

        function = _lambda.Function(
            self,
            construct_id,
            function_name=function_name,
            description=description,
            runtime=_lambda.Runtime.PYTHON_3_13,
            handler=handler,
            code=self.lambda_code,
            role=self.lambda_execution_role,
            timeout=Duration.seconds(self.config.timeout_seconds),
            memory_size=self.config.memory_size,
            architecture=_lambda.Architecture.X86_64,
            log_group=log_group,
            environment=environment,
        )

        cdk.Tags.of(function).add("Project", self.project_name)
        cdk.Tags.of(function).add("ResourceType", "Lambda")

        return function

    def _create_outputs(self) -> None:
        """Create CDK outputs for Lambda function information."""
        CfnOutput(
            self,
            "ExampleFuncArn",
            value=self.access_function.function_arn,
            description="ARN of the access validation Lambda function",
        )

        CfnOutput(
            self,
            "ExampleFuncName",
            value=self.access_function.function_name,
            description="Name of the access validation Lambda function",
        )

        CfnOutput(
            self,
            "SampleFuncArn",
            value=self.sample_function.function_arn,
            description="ARN of the sample Lambda function",
        )

        CfnOutput(
            self,
            "SampleFuncName",
            value=self.sample_function.function_name,
            description="Name of the sample Lambda function",
        )
