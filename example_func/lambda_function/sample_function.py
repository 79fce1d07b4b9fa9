"""
Sample Lambda handler.

Logs a fixed message and calls the sample capability. The event payload is
not inspected and the handler always reports success.
"""

import logging
import os
from datetime import datetime, timezone
from typing import Any, Callable, Dict

from cloudwatch_integration import log_event, record_invocation_error
from sample_library import sample_func

# Configure logging
logger = logging.getLogger()
logger.setLevel(os.environ.get("LOG_LEVEL", "INFO"))

HANDLER_MESSAGE = "Logging out the handler"
SAMPLE_ARGUMENT = "the handler"


def build_sample_handler(
    capability: Callable[[str], None] = sample_func,
) -> Callable[[Any, Any], Dict[str, Any]]:
    """Build the sample handler around ``capability``."""

    def handler(event: Any, context: Any) -> Dict[str, Any]:
        logger.info(HANDLER_MESSAGE)
        result: Dict[str, Any] = {"success": True}

        try:
            capability(SAMPLE_ARGUMENT)
        except Exception as e:
            error_type = type(e).__name__
            logger.error(f"Sample capability failed ({error_type}): {str(e)}", exc_info=True)
            record_invocation_error(error_type)
            log_event(
                "sample_capability_error",
                getattr(context, "aws_request_id", "unknown"),
                {"error_type": error_type, "error": str(e)},
            )
            result["error_type"] = error_type

        result["timestamp"] = datetime.now(timezone.utc).isoformat()
        return result

    return handler


lambda_handler = build_sample_handler()
