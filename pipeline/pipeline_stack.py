# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: MIT-0

import json
import shlex
from typing import Dict, List, Optional
import aws_cdk as cdk
from aws_cdk import (
    Stack,
    Stage,
    CfnOutput,
    SecretValue,
    pipelines,
    aws_codebuild as codebuild,
)
from constructs import Construct
import logging

from example_func.example_func_stack import ExampleFuncStack, ExampleFuncConfig
from .pipeline_config import PipelineOptions

INSTALL_COMMANDS = [
    "npm install -g aws-cdk",
    "pip install .",
]


def build_synth_commands(
    options: PipelineOptions, func_config: Optional[ExampleFuncConfig] = None
) -> List[str]:
    """
    Commands run by the synth step, from the repository root.

    The options the pipeline was deployed with are passed back as CDK
    context, so the self-mutation step rebuilds the same pipeline instead
    of the defaults in cdk.json.
    """
    context = {"pipeline": json.dumps(options.to_context(), sort_keys=True)}
    if func_config is not None:
        if func_config.healthlake_datastore_id:
            context["healthlake_datastore_id"] = func_config.healthlake_datastore_id
        context["log_level"] = func_config.log_level

    args = " ".join(
        f"-c {shlex.quote(f'{key}={value}')}" for key, value in context.items()
    )
    return INSTALL_COMMANDS + [f"cdk synth {args}"]


class PipelineAppStage(Stage):
    """Deployable unit holding the example function stack."""

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        options: PipelineOptions,
        func_config: Optional[ExampleFuncConfig] = None,
        **kwargs,
    ) -> None:
        super().__init__(scope, construct_id, **kwargs)

        self.example_func_stack = ExampleFuncStack(
            self,
            f"{options.stack_name}-App",
            config=func_config,
            synthesizer=cdk.DefaultStackSynthesizer(
                qualifier=options.cdk_bootstrap_qualifier
            ),
            description="FHIR example Lambda functions",
        )


class PipelineStack(Stack):
    """
    CDK Stack for the self-mutating delivery pipeline.

    The pipeline pulls the repository from GitHub, synthesizes the CDK app in
    CodeBuild and deploys one stage per configured account. The production
    stage waits for a manual approval.
    """

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        options: Optional[PipelineOptions] = None,
        func_config: Optional[ExampleFuncConfig] = None,
        **kwargs,
    ) -> None:
        self.options = options or PipelineOptions()
        self.options.validate()

        kwargs.setdefault(
            "synthesizer",
            cdk.DefaultStackSynthesizer(
                qualifier=self.options.cdk_bootstrap_qualifier
            ),
        )
        super().__init__(scope, construct_id, **kwargs)

        # Set up logging
        self.logger = logging.getLogger(__name__)

        self.func_config = func_config
        self.synth_commands = build_synth_commands(self.options, func_config)
        self.pipeline = self._create_pipeline()

        self.stages: Dict[str, PipelineAppStage] = {}
        for stage_name in self.options.stages:
            self._add_deploy_stage(stage_name)

        self._create_outputs()

    def _create_source(self) -> pipelines.CodePipelineSource:
        """Create the GitHub source action."""
        return pipelines.CodePipelineSource.git_hub(
            self.options.source_repository,
            self.options.branch,
            authentication=SecretValue.secrets_manager(
                self.options.source_secret_name, json_field="github"
            ),
        )

    def _create_pipeline(self) -> pipelines.CodePipeline:
        """Create the CodePipeline with its synth step."""
        synth = pipelines.CodeBuildStep(
            "Synth",
            input=self._create_source(),
            commands=self.synth_commands,
            build_environment=codebuild.BuildEnvironment(
                build_image=codebuild.LinuxBuildImage.STANDARD_7_0,
            ),
            env={"CDK_DEFAULT_REGION": self.options.default_region},
        )

        return pipelines.CodePipeline(
            self,
            "Pipeline",
            pipeline_name=self.options.pipeline_name,
            synth=synth,
            docker_enabled_for_synth=True,
            cross_account_keys=True,
        )

    def _add_deploy_stage(self, stage_name: str) -> PipelineAppStage:
        """Add a deployment stage for one account."""
        account = self.options.stage_account(stage_name)
        self.logger.debug("Adding %s stage for account %s", stage_name, account)

        stage = PipelineAppStage(
            self,
            f"Deploy-{stage_name}",
            options=self.options,
            func_config=self.func_config,
            env=cdk.Environment(account=account, region=self.options.default_region),
        )

        pre = []
        if stage_name == "production":
            pre.append(pipelines.ManualApprovalStep("PromoteToProduction"))

        self.pipeline.add_stage(stage, pre=pre)
        self.stages[stage_name] = stage
        return stage

    def _create_outputs(self) -> None:
        """Create CDK outputs for the pipeline."""
        CfnOutput(
            self,
            "PipelineName",
            value=self.options.pipeline_name,
            description="Name of the delivery pipeline",
        )

        CfnOutput(
            self,
            "SourceRepository",
            value=f"{self.options.source_repository}@{self.options.branch}",
            description="GitHub repository and branch the pipeline builds",
        )
