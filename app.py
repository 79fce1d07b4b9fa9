#!/usr/bin/env python3

# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: MIT-0

import json
import os
import aws_cdk as cdk
from cdk_nag import AwsSolutionsChecks, NagSuppressions

from example_func.example_func_stack import ExampleFuncStack, ExampleFuncConfig
from pipeline.pipeline_config import get_config
from pipeline.pipeline_stack import PipelineStack


app = cdk.App()

project_name = app.node.try_get_context("project_name") or "fhir-utils-example"


def context_object(key):
    """Context value set in cdk.json (object) or with -c on the CLI (JSON text)."""
    value = app.node.try_get_context(key)
    if isinstance(value, str):
        value = json.loads(value)
    return value


# Pipeline options from cdk.json, overridable with -c pipeline='{"dev_account": "..."}'
options = get_config("main", "FhirUtilsExample", overrides=context_object("pipeline"))

func_config = ExampleFuncConfig(
    healthlake_datastore_id=app.node.try_get_context("healthlake_datastore_id"),
    log_level=app.node.try_get_context("log_level") or "INFO",
)

# Stack tags for resource management
stack_tags = {
    "Project": project_name,
    "ManagedBy": "CDK",
    "Repository": options.repos_name,
}

EXAMPLE_FUNC_SUPPRESSIONS = [
    {
        "id": "AwsSolutions-IAM4",
        "reason": "AWS managed policy AWSLambdaBasicExecutionRole is used for the example Lambda functions.",
        "applies_to": [
            "Policy::arn:<AWS::Partition>:iam::aws:policy/service-role/AWSLambdaBasicExecutionRole",
        ],
    },
    {
        "id": "AwsSolutions-IAM5",
        "reason": "CloudWatch PutMetricData does not support resource-level permissions and is limited by namespace condition. HealthLake access is limited to FHIR datastores when no datastore id is configured.",
        "applies_to": [
            "Resource::*",
            {"regex": "/^Resource::arn:<AWS::Partition>:healthlake:us-west-2:.*:datastore/fhir/\\*$/"},
        ],
    },
]

if app.node.try_get_context("direct_deploy"):
    ##########################
    # Example Function Stack
    ##########################

    # Deploy straight to the CLI account, bypassing the pipeline
    example_func_stack = ExampleFuncStack(
        app,
        f"{options.stack_name}-App",
        config=func_config,
        env=cdk.Environment(
            account=os.getenv("CDK_DEFAULT_ACCOUNT"),
            region=os.getenv("CDK_DEFAULT_REGION") or options.default_region,
        ),
        description="FHIR example Lambda functions",
        tags=stack_tags,
    )

    NagSuppressions.add_stack_suppressions(example_func_stack, EXAMPLE_FUNC_SUPPRESSIONS)
else:
    ##########################
    # Pipeline Stack
    ##########################

    pipeline_stack = PipelineStack(
        app,
        f"{options.stack_name_prefix}-{options.stack_name}-Pipeline",
        options=options,
        func_config=func_config,
        env=cdk.Environment(
            account=options.tools_account, region=options.default_region
        ),
        description="Delivery pipeline for the FHIR example functions",
        tags=stack_tags,
    )

    NagSuppressions.add_stack_suppressions(
        pipeline_stack,
        [
            {
                "id": "AwsSolutions-IAM5",
                "reason": "CDK Pipelines generates wildcard permissions for artifact bucket objects, CodeBuild reports and cross-account deployment roles.",
            },
            {
                "id": "AwsSolutions-S1",
                "reason": "The pipeline artifact bucket is managed by CDK Pipelines and does not need server access logs.",
            },
            {
                "id": "AwsSolutions-KMS5",
                "reason": "The cross-account artifact key is managed by CDK Pipelines.",
            },
            {
                "id": "AwsSolutions-CB4",
                "reason": "CodeBuild projects use the pipeline artifact key created by CDK Pipelines.",
            },
        ],
    )

    # Aspects added to the app do not reach nested stages
    for stage in pipeline_stack.stages.values():
        cdk.Aspects.of(stage).add(AwsSolutionsChecks(verbose=True))
        NagSuppressions.add_stack_suppressions(
            stage.example_func_stack, EXAMPLE_FUNC_SUPPRESSIONS
        )

# Apply CDK Nag security checks
cdk.Aspects.of(app).add(AwsSolutionsChecks(verbose=True))

app.synth()
