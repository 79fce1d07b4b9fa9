# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: MIT-0

"""
Input validation utilities for the access validator.

This module provides validation functions for AWS regions, entity
identifiers, FHIR extensions and resource references.
"""

import re
import logging
from typing import List, Any
from dataclasses import dataclass

logger = logging.getLogger(__name__)

REGION_PATTERN = re.compile(r"^[a-z]{2}(-gov)?-[a-z]+-\d{1}$")
REFERENCE_PATTERN = re.compile(r"^[A-Z][A-Za-z]+/[A-Za-z0-9\-\.]{1,64}$")
MAX_ENTITY_ID_LENGTH = 64


@dataclass
class ValidationResult:
    """Result of input validation."""

    is_valid: bool
    errors: List[str]


def validate_region(region: str) -> ValidationResult:
    """
    Validate an AWS region name such as ``us-west-2``.

    Args:
        region: Region name

    Returns:
        ValidationResult with validation status and any errors
    """
    errors = []

    if not isinstance(region, str):
        errors.append("Region must be a string")
        return ValidationResult(is_valid=False, errors=errors)

    if not region.strip():
        errors.append("Region cannot be empty")
        return ValidationResult(is_valid=False, errors=errors)

    if not REGION_PATTERN.match(region):
        errors.append(f"Invalid AWS region format: {region}")

    return ValidationResult(is_valid=len(errors) == 0, errors=errors)


def validate_entity_ids(entity_ids: Any) -> ValidationResult:
    """
    Validate the entity identifiers a caller is permitted to act for.

    An empty list is valid; it simply grants nothing.

    Args:
        entity_ids: List of entity identifier strings

    Returns:
        ValidationResult with validation status and any errors
    """
    errors = []

    if not isinstance(entity_ids, (list, tuple)):
        errors.append("Entity ids must be a list")
        return ValidationResult(is_valid=False, errors=errors)

    for index, entity_id in enumerate(entity_ids):
        if not isinstance(entity_id, str):
            errors.append(f"Entity id at index {index} must be a string")
        elif not entity_id.strip():
            errors.append(f"Entity id at index {index} cannot be empty")
        elif len(entity_id) > MAX_ENTITY_ID_LENGTH:
            errors.append(
                f"Entity id at index {index} too long (maximum {MAX_ENTITY_ID_LENGTH} characters)"
            )

    is_valid = len(errors) == 0

    if not is_valid:
        logger.warning(f"Invalid entity ids: {'; '.join(errors)}")

    return ValidationResult(is_valid=is_valid, errors=errors)


def validate_extensions(extensions: Any, extension_type: type) -> ValidationResult:
    """
    Validate that every item is an instance of the FHIR extension type.

    Args:
        extensions: List of extension records
        extension_type: Expected record class

    Returns:
        ValidationResult with validation status and any errors
    """
    errors = []

    if not isinstance(extensions, (list, tuple)):
        errors.append("Extensions must be a list")
        return ValidationResult(is_valid=False, errors=errors)

    for index, extension in enumerate(extensions):
        if not isinstance(extension, extension_type):
            errors.append(
                f"Extension at index {index} must be {extension_type.__name__}, "
                f"got {type(extension).__name__}"
            )

    is_valid = len(errors) == 0

    if not is_valid:
        logger.warning(f"Invalid extensions: {'; '.join(errors)}")

    return ValidationResult(is_valid=is_valid, errors=errors)


def validate_reference(reference: str) -> ValidationResult:
    """
    Validate a relative FHIR reference of the form ``Type/id``.

    Args:
        reference: Reference string

    Returns:
        ValidationResult with validation status and any errors
    """
    errors = []

    if not isinstance(reference, str) or not reference:
        errors.append("Reference must be a non-empty string")
        return ValidationResult(is_valid=False, errors=errors)

    if not REFERENCE_PATTERN.match(reference.strip()):
        errors.append(f"Reference must look like 'Type/id': {reference}")

    return ValidationResult(is_valid=len(errors) == 0, errors=errors)
