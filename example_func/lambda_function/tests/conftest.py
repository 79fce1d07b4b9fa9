"""
Pytest configuration and shared fixtures for Lambda function tests.
"""

import sys
from pathlib import Path

# Add the parent directory (lambda_function) to Python path
lambda_function_dir = Path(__file__).parent.parent
sys.path.insert(0, str(lambda_function_dir))

import pytest
import boto3
from moto import mock_aws
from unittest.mock import Mock

from fhir_models import Extension, Reference
from healthlake_validator import ENTITY_EXTENSION_URL


@pytest.fixture
def mock_lambda_context():
    """Mock Lambda context object."""
    context = Mock()
    context.aws_request_id = "test-request-id-123"
    context.function_name = "example-func"
    context.function_version = "$LATEST"
    context.invoked_function_arn = "arn:aws:lambda:us-west-2:123456789012:function:example-func"
    context.memory_limit_in_mb = 128
    context.remaining_time_in_millis = lambda: 30000
    context.client_context = None
    return context


@pytest.fixture
def arbitrary_events():
    """Payloads of every shape; handlers must treat them all the same."""
    return [
        {},
        {"resourceType": "Patient", "id": "p-1"},
        {"Records": [{"eventName": "INSERT"}]},
        [],
        "not-json",
        None,
        12345,
    ]


@pytest.fixture
def owner_extension():
    """Extension naming Organization/org-1 as the owning entity."""
    return Extension(
        url=ENTITY_EXTENSION_URL,
        value_reference=Reference(reference="Organization/org-1"),
    )


@pytest.fixture
def mock_http_client():
    """requests session stand-in."""
    return Mock()


@pytest.fixture
def mock_environment_variables(monkeypatch):
    """Mock environment variables for testing."""
    monkeypatch.setenv("HEALTHLAKE_DATASTORE_ID", "test-datastore-id")
    monkeypatch.setenv("AWS_LAMBDA_FUNCTION_NAME", "example-func")


@pytest.fixture
def aws_credentials(monkeypatch):
    """Static credentials for the default credential chain."""
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    monkeypatch.setenv("AWS_SESSION_TOKEN", "testing")
    monkeypatch.setenv("AWS_DEFAULT_REGION", "us-west-2")


@pytest.fixture
def mock_cloudwatch_setup(aws_credentials):
    """Set up mock CloudWatch environment."""
    with mock_aws():
        cloudwatch_client = boto3.client("cloudwatch", region_name="us-west-2")
        yield cloudwatch_client


@pytest.fixture
def make_response():
    """Factory for requests.Response stand-ins."""

    def _make(status_code, json_body=None, text=""):
        response = Mock()
        response.status_code = status_code
        response.json.return_value = json_body or {}
        response.text = text
        return response

    return _make
