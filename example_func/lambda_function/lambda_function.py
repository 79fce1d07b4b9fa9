"""
Main Lambda handler for the HealthLake access validation example.

This module provides the entry point that builds a HealthLake entity
validator and runs an access check on every invocation. The event payload
is not inspected, and the handler reports success whatever the check
decides or fails with; failures surface through logs and metrics.
"""

import logging
import os
from datetime import datetime, timezone
from typing import Any, Callable, Dict

from cloudwatch_integration import (
    log_event,
    record_access_decision,
    record_invocation_error,
)
from fhir_models import Extension
from healthlake_validator import HealthLakeEntityValidator
from http_client import new_http_client

# Configure logging
logger = logging.getLogger()
logger.setLevel(os.environ.get("LOG_LEVEL", "INFO"))

HANDLER_MESSAGE = "Logging out the handler"
VALIDATOR_REGION = "us-west-2"
VALIDATION_ERROR_REASON = "validation_error"

Handler = Callable[[Any, Any], Dict[str, Any]]


def build_access_handler(
    validator_factory: Callable[..., Any] = HealthLakeEntityValidator,
    http_client_factory: Callable[[], Any] = new_http_client,
) -> Handler:
    """
    Build the access validation handler.

    Args:
        validator_factory: Called with (access_key, secret_key, region, http_client)
        http_client_factory: Creates the HTTP transport handed to the validator

    Returns:
        Lambda handler function taking (event, context)
    """

    def handler(event: Any, context: Any) -> Dict[str, Any]:
        logger.info(HANDLER_MESSAGE)
        start_time = datetime.now(timezone.utc)
        request_id = getattr(context, "aws_request_id", "unknown")

        http_client = None
        try:
            http_client = http_client_factory()
            validator = validator_factory("", "", VALIDATOR_REGION, http_client)
            decision = validator.can_access_resource(True, [], [Extension()])
        except Exception as e:
            error_type = type(e).__name__
            logger.error(
                f"Access validation failed for request {request_id} ({error_type}): {str(e)}",
                exc_info=True,
            )
            record_invocation_error(error_type)
            log_event(
                "access_validation_error",
                request_id,
                {"error_type": error_type, "error": str(e)},
            )
            return {
                "success": True,
                "allowed": False,
                "reason": VALIDATION_ERROR_REASON,
                "entity_id": None,
                "error_type": error_type,
                "timestamp": datetime.now(timezone.utc).isoformat(),
            }
        finally:
            if http_client is not None:
                http_client.close()

        duration_ms = (datetime.now(timezone.utc) - start_time).total_seconds() * 1000
        record_access_decision(decision, duration_ms)
        log_event("access_validation_completed", request_id, decision.to_dict())

        return {
            "success": True,
            **decision.to_dict(),
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    return handler


lambda_handler = build_access_handler()
