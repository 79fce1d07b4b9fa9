# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: MIT-0

"""
CloudWatch metrics and structured log events for the FHIR example functions.

Access decisions are published with their reason as a dimension so allowed
and denied checks can be broken down per rule. Publishing never raises: a
metric failure is logged and the invocation carries on.
"""

import json
import logging
import os
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import boto3

logger = logging.getLogger(__name__)

METRICS_NAMESPACE = "FhirUtils/ExampleFunc"

# Global CloudWatch client for reuse across warm invocations
_cloudwatch_client = None


def get_cloudwatch_client():
    """Get CloudWatch client (lazy initialization)."""
    global _cloudwatch_client
    if _cloudwatch_client is None:
        try:
            _cloudwatch_client = boto3.client("cloudwatch")
        except Exception as e:
            logger.warning(f"Failed to initialize CloudWatch client: {e}")
    return _cloudwatch_client


def _dimensions(extra: Optional[Dict[str, str]] = None) -> List[Dict[str, str]]:
    dimensions = [
        {
            "Name": "FunctionName",
            "Value": os.environ.get("AWS_LAMBDA_FUNCTION_NAME", "unknown"),
        }
    ]
    for name, value in (extra or {}).items():
        dimensions.append({"Name": name, "Value": str(value)})
    return dimensions


def _put_metric_data(metric_data: List[Dict[str, Any]]) -> None:
    names = ", ".join(datum["MetricName"] for datum in metric_data)
    try:
        cw = get_cloudwatch_client()
        if cw:
            cw.put_metric_data(Namespace=METRICS_NAMESPACE, MetricData=metric_data)
    except Exception as e:
        logger.warning(f"Failed to put metrics {names}: {e}")


def put_simple_metric(
    metric_name: str,
    value: float,
    unit: str = "Count",
    dimensions: Optional[Dict[str, str]] = None,
) -> None:
    """
    Put a single metric to CloudWatch.

    Args:
        metric_name: Name of the metric
        value: Metric value
        unit: Metric unit (Count, Milliseconds, ...)
        dimensions: Dimensions added next to FunctionName
    """
    _put_metric_data(
        [
            {
                "MetricName": metric_name,
                "Value": value,
                "Unit": unit,
                "Dimensions": _dimensions(dimensions),
            }
        ]
    )


def record_access_decision(decision, duration_ms: float) -> None:
    """
    Publish the outcome of an access check in one call.

    ``AccessAllowed`` or ``AccessDenied`` is counted with a ``Reason``
    dimension; ``Duration`` covers validator construction and the check.
    """
    _put_metric_data(
        [
            {
                "MetricName": "AccessAllowed" if decision.allowed else "AccessDenied",
                "Value": 1,
                "Unit": "Count",
                "Dimensions": _dimensions({"Reason": decision.reason}),
            },
            {
                "MetricName": "Duration",
                "Value": duration_ms,
                "Unit": "Milliseconds",
                "Dimensions": _dimensions(),
            },
        ]
    )


def record_invocation_error(error_type: str) -> None:
    """Count a capability failure, keyed by exception class name."""
    put_simple_metric("InvocationError", 1, dimensions={"ErrorType": error_type})


def log_event(event_type: str, request_id: str, data: Dict[str, Any]) -> None:
    """
    Log one JSON line describing an invocation event.

    Args:
        event_type: Type of event being logged
        request_id: Lambda request id the event belongs to
        data: Event data; values JSON cannot encode are stringified
    """
    log_entry = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "event_type": event_type,
        "request_id": request_id,
        "data": data,
    }
    logger.info(json.dumps(log_entry, default=str))
