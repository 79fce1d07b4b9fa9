"""
Unit tests for the pipeline stack.
"""

import json
import shlex

import pytest
import aws_cdk as cdk
from aws_cdk.assertions import Template, Match

from example_func.example_func_stack import ExampleFuncConfig
from pipeline.pipeline_config import PipelineOptions, get_config
from pipeline.pipeline_stack import (
    PipelineStack,
    PipelineAppStage,
    build_synth_commands,
)


def _synth_context(commands):
    """Context key/value pairs passed to cdk synth."""
    args = shlex.split(commands[-1])
    assert args[:2] == ["cdk", "synth"]
    values = args[3::2]
    assert all(flag == "-c" for flag in args[2::2])
    return dict(value.split("=", 1) for value in values)


class TestPipelineResources:
    """Test the CodePipeline and its synth project."""

    def test_pipeline_created(self, pipeline_template):
        """Test that a single named pipeline is created."""
        pipeline_template.resource_count_is("AWS::CodePipeline::Pipeline", 1)
        pipeline_template.has_resource_properties(
            "AWS::CodePipeline::Pipeline",
            {"Name": "main-FhirUtilsExample-pipeline"},
        )

    def test_github_source(self, pipeline_template):
        """Test the GitHub source action configuration."""
        pipeline_template.has_resource_properties(
            "AWS::CodePipeline::Pipeline",
            {
                "Stages": Match.array_with(
                    [
                        Match.object_like(
                            {
                                "Name": "Source",
                                "Actions": [
                                    Match.object_like(
                                        {
                                            "Configuration": Match.object_like(
                                                {
                                                    "Owner": "example-org",
                                                    "Repo": "fhir-utils-example",
                                                    "Branch": "main",
                                                }
                                            )
                                        }
                                    )
                                ],
                            }
                        )
                    ]
                )
            },
        )

    def test_deploy_stages_in_order(self, pipeline_template):
        """Test that every account stage is deployed in order."""
        pipeline_template.has_resource_properties(
            "AWS::CodePipeline::Pipeline",
            {
                "Stages": Match.array_with(
                    [
                        Match.object_like({"Name": "Source"}),
                        Match.object_like({"Name": "Deploy-dev"}),
                        Match.object_like({"Name": "Deploy-qa"}),
                        Match.object_like({"Name": "Deploy-staging"}),
                        Match.object_like({"Name": "Deploy-production"}),
                    ]
                )
            },
        )

    def test_production_requires_approval(self, pipeline_template):
        """Test the manual approval before production."""
        pipeline_template.has_resource_properties(
            "AWS::CodePipeline::Pipeline",
            {
                "Stages": Match.array_with(
                    [
                        Match.object_like(
                            {
                                "Name": "Deploy-production",
                                "Actions": Match.array_with(
                                    [
                                        Match.object_like(
                                            {
                                                "Name": "PromoteToProduction",
                                                "ActionTypeId": Match.object_like(
                                                    {"Category": "Approval"}
                                                ),
                                            }
                                        )
                                    ]
                                ),
                            }
                        )
                    ]
                )
            },
        )

    def test_synth_commands(self, pipeline_template):
        """Test that the synth project runs cdk synth."""
        pipeline_template.has_resource_properties(
            "AWS::CodeBuild::Project",
            {
                "Source": Match.object_like(
                    {"BuildSpec": Match.string_like_regexp("cdk synth")}
                )
            },
        )

    def test_cross_account_key(self, pipeline_template):
        """Test that artifacts are encrypted for cross-account deployment."""
        assert len(pipeline_template.find_resources("AWS::KMS::Key")) >= 1

    def test_outputs(self, pipeline_template):
        """Test stack outputs."""
        outputs = pipeline_template.find_outputs("*")

        assert "PipelineName" in outputs
        assert "SourceRepository" in outputs
        assert outputs["SourceRepository"]["Value"] == "example-org/fhir-utils-example@main"


class TestDeployStages:
    """Test the stages holding the example function stack."""

    def test_one_stage_per_account(self, pipeline_stack, options):
        """Test that each stage targets its own account."""
        assert list(pipeline_stack.stages) == options.stages

        for stage_name, stage in pipeline_stack.stages.items():
            assert isinstance(stage, PipelineAppStage)
            assert stage.account == options.stage_account(stage_name)
            assert stage.region == "us-west-2"

    def test_stage_contains_functions(self, pipeline_stack):
        """Test that the stage stack deploys both functions."""
        stack = pipeline_stack.stages["dev"].example_func_stack
        template = Template.from_stack(stack)

        template.resource_count_is("AWS::Lambda::Function", 2)
        template.has_resource_properties(
            "AWS::Lambda::Function", {"FunctionName": "example-func", "Timeout": 30}
        )

    def test_stage_stack_name(self, pipeline_stack):
        """Test the stack name inside the stage."""
        stack = pipeline_stack.stages["qa"].example_func_stack

        assert stack.node.id == "FhirUtilsExample-App"

    def test_single_stage(self, app, func_config):
        """Test a pipeline deploying only to dev."""
        options = PipelineOptions(stages=["dev"])
        stack = PipelineStack(
            app,
            "DevOnlyPipeline",
            options=options,
            func_config=func_config,
            env=cdk.Environment(account=options.tools_account, region="us-west-2"),
        )

        assert list(stack.stages) == ["dev"]

    def test_invalid_options_rejected(self, app, func_config):
        """Test that options are validated before any resource is created."""
        with pytest.raises(ValueError, match="dev_account"):
            PipelineStack(
                app,
                "BadPipeline",
                options=PipelineOptions(dev_account="dev"),
                func_config=func_config,
            )


class TestSynthCommands:
    """Test the context handed to the pipeline's own synth step."""

    def test_install_before_synth(self, options):
        """Test that dependencies are installed before synthesis."""
        commands = build_synth_commands(options)

        assert commands[0] == "npm install -g aws-cdk"
        assert commands[1] == "pip install ."
        assert commands[-1].startswith("cdk synth ")

    def test_overrides_are_passed_back(self, func_config):
        """Test that non-default accounts reach the self-mutation synth."""
        options = get_config(
            "main",
            "FhirUtilsExample",
            overrides={"dev_account": "999999999999", "branch": "release"},
        )

        context = _synth_context(build_synth_commands(options, func_config))
        pipeline = json.loads(context["pipeline"])

        assert pipeline["dev_account"] == "999999999999"
        assert pipeline["branch"] == "release"
        assert get_config("main", "FhirUtilsExample", overrides=pipeline) == options

    def test_function_settings_are_passed_back(self, options):
        """Test that datastore id and log level are carried."""
        func_config = ExampleFuncConfig(
            healthlake_datastore_id="abc123",
            log_level="DEBUG",
            bundle_dependencies=False,
        )

        context = _synth_context(build_synth_commands(options, func_config))

        assert context["healthlake_datastore_id"] == "abc123"
        assert context["log_level"] == "DEBUG"

    def test_unset_datastore_is_omitted(self, options, func_config):
        """Test that no empty datastore id is passed."""
        context = _synth_context(build_synth_commands(options, func_config))

        assert "healthlake_datastore_id" not in context
        assert context["log_level"] == "INFO"

    def test_stack_synth_step_carries_overrides(self, app, func_config):
        """Test the synth project built by the stack."""
        options = PipelineOptions(qa_account="888888888888")
        stack = PipelineStack(
            app,
            "OverriddenPipeline",
            options=options,
            func_config=func_config,
            env=cdk.Environment(account=options.tools_account, region="us-west-2"),
        )

        context = _synth_context(stack.synth_commands)
        assert json.loads(context["pipeline"])["qa_account"] == "888888888888"

        Template.from_stack(stack).has_resource_properties(
            "AWS::CodeBuild::Project",
            {
                "Source": Match.object_like(
                    {"BuildSpec": Match.string_like_regexp("888888888888")}
                )
            },
        )
