"""
Pytest configuration and shared fixtures for pipeline stack tests.
"""
import pytest
import warnings
import aws_cdk as cdk
from aws_cdk.assertions import Template
from example_func.example_func_stack import ExampleFuncConfig
from pipeline.pipeline_config import PipelineOptions
from pipeline.pipeline_stack import PipelineStack

warnings.filterwarnings("ignore", category=DeprecationWarning)
warnings.filterwarnings("ignore", message=".*jsii.*")


@pytest.fixture
def app():
    """Create a CDK app that skips Docker bundling."""
    return cdk.App(context={"aws:cdk:bundling-stacks": []})


@pytest.fixture
def options():
    """Create default pipeline options."""
    return PipelineOptions()


@pytest.fixture
def func_config():
    """Create an example function configuration without Docker bundling."""
    return ExampleFuncConfig(bundle_dependencies=False)


@pytest.fixture
def pipeline_stack(app, options, func_config):
    """Create a pipeline stack in the tools account."""
    return PipelineStack(
        app,
        "TestPipelineStack",
        options=options,
        func_config=func_config,
        env=cdk.Environment(
            account=options.tools_account, region=options.default_region
        ),
    )


@pytest.fixture
def pipeline_template(pipeline_stack):
    """Create a CloudFormation template from the pipeline stack."""
    return Template.from_stack(pipeline_stack)
