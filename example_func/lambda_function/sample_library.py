# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: MIT-0

"""Sample capability used by the sample Lambda function."""

import logging

logger = logging.getLogger(__name__)


def sample_func(name: str) -> None:
    """Record that the sample capability was reached from ``name``."""
    logger.debug(f"Sample function called from {name}")
