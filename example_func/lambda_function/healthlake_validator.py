# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: MIT-0

"""
HealthLake entity access validation.

This module decides whether a caller acting for a set of entities
(organizations) may access a FHIR resource. Ownership is read from an
extension on the resource; when the owner is not one of the caller's
entities, the owner's ``partOf`` hierarchy is walked in the AWS HealthLake
datastore to look for an inherited grant.
"""

import logging
import os
import time
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Optional

import boto3
import requests
from botocore.auth import SigV4Auth
from botocore.awsrequest import AWSRequest
from botocore.credentials import Credentials

from fhir_models import Extension, Reference, entity_references
from http_client import DEFAULT_TIMEOUT_SECONDS
from validators import (
    validate_region,
    validate_entity_ids,
    validate_extensions,
    validate_reference,
)

logger = logging.getLogger(__name__)

HEALTHLAKE_SERVICE = "healthlake"
ENTITY_EXTENSION_URL = "https://fhir.example.com/StructureDefinition/owning-entity"
DEFAULT_MAX_DEPTH = 5
DEFAULT_MAX_ATTEMPTS = 3
RETRY_BACKOFF_SECONDS = 0.5
RETRYABLE_STATUS_CODES = {429, 500, 502, 503, 504}
MISSING_STATUS_CODES = {404, 410}


class AccessValidationError(Exception):
    """Raised when an access check cannot be completed."""


class HealthLakeRequestError(AccessValidationError):
    """Raised when a HealthLake read fails."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


@dataclass
class AccessDecision:
    """Outcome of an access check."""

    allowed: bool
    reason: str
    entity_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "allowed": self.allowed,
            "reason": self.reason,
            "entity_id": self.entity_id,
        }


class HealthLakeEntityValidator:
    """
    Validates resource access against entity ownership stored in HealthLake.

    Args:
        access_key: AWS access key id; empty to use the default credential chain
        secret_key: AWS secret access key; empty to use the default credential chain
        region: AWS region of the HealthLake datastore
        http_client: requests session used for FHIR reads
        datastore_id: HealthLake datastore id (defaults to HEALTHLAKE_DATASTORE_ID)
        session_token: Optional session token for temporary static credentials
        entity_extension_url: Extension URL marking the owning entity
        max_depth: Maximum number of ``partOf`` hops to follow
        timeout: Per-request timeout in seconds
        max_attempts: Attempts per read for throttling and server errors
    """

    def __init__(
        self,
        access_key: str,
        secret_key: str,
        region: str,
        http_client: requests.Session,
        *,
        datastore_id: Optional[str] = None,
        session_token: Optional[str] = None,
        entity_extension_url: str = ENTITY_EXTENSION_URL,
        max_depth: int = DEFAULT_MAX_DEPTH,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    ) -> None:
        region_validation = validate_region(region)
        if not region_validation.is_valid:
            raise ValueError("; ".join(region_validation.errors))
        if max_depth < 0:
            raise ValueError(f"Maximum depth cannot be negative. Got: {max_depth}")
        if max_attempts < 1:
            raise ValueError(f"Maximum attempts must be at least 1. Got: {max_attempts}")

        self.region = region
        self.http_client = http_client
        self.datastore_id = datastore_id or os.environ.get("HEALTHLAKE_DATASTORE_ID")
        self.entity_extension_url = entity_extension_url
        self.max_depth = max_depth
        self.timeout = timeout
        self.max_attempts = max_attempts

        if access_key and secret_key:
            self._credentials = Credentials(access_key, secret_key, session_token)
        else:
            # Resolved on first remote read
            self._credentials = None

    @property
    def endpoint(self) -> str:
        """FHIR R4 base URL of the configured datastore."""
        if not self.datastore_id:
            raise AccessValidationError(
                "HealthLake datastore id not configured. Check HEALTHLAKE_DATASTORE_ID environment variable."
            )
        return (
            f"https://healthlake.{self.region}.amazonaws.com"
            f"/datastore/{self.datastore_id}/r4"
        )

    def can_access_resource(
        self,
        is_super_user: bool,
        entity_ids: List[str],
        extensions: List[Extension],
    ) -> AccessDecision:
        """
        Decide whether a caller may access a resource.

        Args:
            is_super_user: Caller bypasses entity checks
            entity_ids: Entities the caller acts for
            extensions: Extensions attached to the resource being accessed

        Returns:
            AccessDecision describing the outcome

        Raises:
            AccessValidationError: Invalid input or the hierarchy lookup failed
        """
        ids_validation = validate_entity_ids(entity_ids)
        if not ids_validation.is_valid:
            raise AccessValidationError("; ".join(ids_validation.errors))

        extensions_validation = validate_extensions(extensions, Extension)
        if not extensions_validation.is_valid:
            raise AccessValidationError("; ".join(extensions_validation.errors))

        if is_super_user:
            logger.info("Access granted to super user")
            return AccessDecision(allowed=True, reason="super_user")

        owners = entity_references(list(extensions), self.entity_extension_url)
        if not owners:
            logger.info("Access denied: resource carries no entity extension")
            return AccessDecision(allowed=False, reason="no_entity_extension")

        permitted = {entity_id.strip() for entity_id in entity_ids}
        if not permitted:
            logger.info("Access denied: caller has no entities")
            return AccessDecision(allowed=False, reason="no_entity_ids")

        for owner in owners:
            if owner.resource_id in permitted:
                logger.info(f"Access granted for entity {owner.resource_id}")
                return AccessDecision(
                    allowed=True, reason="direct", entity_id=owner.resource_id
                )

        for owner in owners:
            for ancestor_id in self._walk_ancestry(owner):
                if ancestor_id in permitted:
                    logger.info(
                        f"Access granted for entity {ancestor_id} via {owner.reference}"
                    )
                    return AccessDecision(
                        allowed=True, reason="inherited", entity_id=ancestor_id
                    )

        logger.info(
            f"Access denied: none of {[o.reference for o in owners]} is permitted"
        )
        return AccessDecision(allowed=False, reason="entity_not_permitted")

    def read_resource(
        self, resource_type: str, resource_id: str
    ) -> Optional[Dict[str, Any]]:
        """
        Read a single FHIR resource from the datastore.

        Args:
            resource_type: FHIR resource type, e.g. Organization
            resource_id: Logical id

        Returns:
            Resource JSON, or None when it does not exist

        Raises:
            HealthLakeRequestError: Read failed after all attempts
        """
        reference = f"{resource_type}/{resource_id}"
        reference_validation = validate_reference(reference)
        if not reference_validation.is_valid:
            raise AccessValidationError("; ".join(reference_validation.errors))

        url = f"{self.endpoint}/{reference}"
        last_error: Optional[str] = None
        last_status: Optional[int] = None

        for attempt in range(1, self.max_attempts + 1):
            try:
                response = self.http_client.get(
                    url, headers=self._signed_headers(url), timeout=self.timeout
                )
            except requests.RequestException as e:
                last_error = str(e)
                last_status = None
                logger.warning(
                    f"HealthLake read of {reference} failed (attempt {attempt}/{self.max_attempts}): {e}"
                )
            else:
                if response.status_code in MISSING_STATUS_CODES:
                    logger.info(f"HealthLake resource not found: {reference}")
                    return None
                if response.status_code < 300:
                    return response.json()
                last_error = response.text
                last_status = response.status_code
                if response.status_code not in RETRYABLE_STATUS_CODES:
                    break
                logger.warning(
                    f"HealthLake read of {reference} returned {response.status_code} "
                    f"(attempt {attempt}/{self.max_attempts})"
                )

            if attempt < self.max_attempts:
                time.sleep(RETRY_BACKOFF_SECONDS * attempt)

        raise HealthLakeRequestError(
            f"Failed to read {reference} from HealthLake: {last_error}",
            status_code=last_status,
        )

    def _walk_ancestry(self, reference: Reference) -> Iterator[str]:
        """Yield ids of the ``partOf`` ancestors of an entity, nearest first."""
        visited = {reference.relative}
        current = reference

        for _ in range(self.max_depth):
            resource = self.read_resource(current.resource_type, current.resource_id)
            if resource is None:
                return

            part_of = resource.get("partOf")
            if not part_of:
                return

            parent = Reference.from_dict(part_of)
            if not parent.resource_id or not parent.resource_type:
                return
            if parent.relative in visited:
                logger.warning(f"Cycle in entity hierarchy at {parent.relative}")
                return

            visited.add(parent.relative)
            yield parent.resource_id
            current = parent

    def _signed_headers(self, url: str) -> Dict[str, str]:
        """Build SigV4 headers for a GET request."""
        request = AWSRequest(
            method="GET", url=url, headers={"Accept": "application/fhir+json"}
        )
        SigV4Auth(self._get_credentials(), HEALTHLAKE_SERVICE, self.region).add_auth(
            request
        )
        return dict(request.headers.items())

    def _get_credentials(self) -> Credentials:
        if self._credentials is None:
            credentials = boto3.Session(region_name=self.region).get_credentials()
            if credentials is None:
                raise AccessValidationError("No AWS credentials available for HealthLake")
            self._credentials = credentials
        return self._credentials
