"""
Pytest configuration and shared fixtures for example function stack tests.
"""
import pytest
import warnings
import aws_cdk as cdk
from aws_cdk.assertions import Template
from example_func.example_func_stack import ExampleFuncStack, ExampleFuncConfig

# Suppress warnings at the module level
warnings.filterwarnings("ignore", category=DeprecationWarning)
warnings.filterwarnings("ignore", category=PendingDeprecationWarning)
warnings.filterwarnings("ignore", category=UserWarning)
warnings.filterwarnings("ignore", category=FutureWarning)
warnings.filterwarnings("ignore", category=ResourceWarning)

# Suppress specific AWS/CDK warnings
warnings.filterwarnings("ignore", message=".*deprecated.*")
warnings.filterwarnings("ignore", message=".*jsii.*")
warnings.filterwarnings("ignore", message=".*constructs.*")
warnings.filterwarnings("ignore", message=".*CDK.*")


@pytest.fixture(autouse=True)
def suppress_warnings():
    """Automatically suppress warnings for all tests."""
    with warnings.catch_warnings():
        warnings.simplefilter("ignore")
        yield


@pytest.fixture
def app():
    """Create a CDK app for testing."""
    return cdk.App()


@pytest.fixture
def default_config():
    """Create a default configuration without Docker bundling."""
    return ExampleFuncConfig(bundle_dependencies=False)


@pytest.fixture
def test_config():
    """Create a test-specific configuration."""
    return ExampleFuncConfig(
        function_name="test-example-func",
        sample_function_name="test-sample-func",
        timeout_seconds=60,
        memory_size=256,
        healthlake_datastore_id="abc123def456",
        log_level="DEBUG",
        bundle_dependencies=False,
    )


@pytest.fixture
def stack_with_default_config(app, default_config):
    """Create an example function stack with default configuration."""
    return ExampleFuncStack(app, "TestExampleFuncStack", config=default_config)


@pytest.fixture
def stack_with_test_config(app, test_config):
    """Create an example function stack with test configuration."""
    return ExampleFuncStack(app, "TestExampleFuncStack", config=test_config)


@pytest.fixture
def template_from_default_stack(stack_with_default_config):
    """Create a CloudFormation template from the default stack."""
    return Template.from_stack(stack_with_default_config)


@pytest.fixture
def template_from_test_stack(stack_with_test_config):
    """Create a CloudFormation template from the test stack."""
    return Template.from_stack(stack_with_test_config)
