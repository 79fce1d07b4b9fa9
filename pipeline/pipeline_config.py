# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: MIT-0

"""
Configuration classes for the delivery pipeline.

This module provides the account, region and naming options shared by the
pipeline stack and its deployment stages.
"""

import re
from dataclasses import asdict, dataclass, field, fields
from typing import Any, Dict, List, Optional

ACCOUNT_FIELDS = (
    "code_commit_account",
    "tools_account",
    "dev_account",
    "qa_account",
    "staging_account",
    "production_account",
)


@dataclass
class PipelineOptions:
    """Options for the pipeline and the accounts it deploys to."""

    default_region: str = "us-west-2"
    stack_name_prefix: str = "main"
    stack_name: str = "FhirUtilsExample"

    # AWS accounts
    code_commit_account: str = "111111111111"
    tools_account: str = "222222222222"
    dev_account: str = "333333333333"
    qa_account: str = "444444444444"
    staging_account: str = "555555555555"
    production_account: str = "666666666666"

    # Source repository
    repos_name: str = "fhir-utils-example"
    repo_owner: str = "example-org"
    branch: str = "main"
    # Secrets Manager secret holding the GitHub token under the "github" key
    source_secret_name: str = "fhir-utils-example"

    cdk_bootstrap_qualifier: str = "hnb659fds"
    pipeline_name: Optional[str] = None

    # Stages deployed in order; production waits for manual approval
    stages: List[str] = field(
        default_factory=lambda: ["dev", "qa", "staging", "production"]
    )

    def __post_init__(self):
        """Initialize default values after dataclass creation."""
        if self.pipeline_name is None:
            self.pipeline_name = f"{self.stack_name_prefix}-{self.stack_name}-pipeline"

    @property
    def source_repository(self) -> str:
        return f"{self.repo_owner}/{self.repos_name}"

    def stage_account(self, stage: str) -> str:
        """Account id a stage deploys to."""
        if stage not in ("dev", "qa", "staging", "production"):
            raise ValueError(f"Unknown stage: {stage}")
        return getattr(self, f"{stage}_account")

    def validate(self) -> None:
        """Validate configuration parameters."""
        if not re.match(r"^[a-z]{2}(-gov)?-[a-z]+-\d{1}$", self.default_region or ""):
            raise ValueError(f"Invalid AWS region format: {self.default_region}")

        for field_name in ACCOUNT_FIELDS:
            value = getattr(self, field_name)
            if not isinstance(value, str) or not re.match(r"^\d{12}$", value):
                raise ValueError(
                    f"{field_name} must be a 12 digit AWS account id. Got: {value}"
                )

        if not self.stack_name_prefix:
            raise ValueError("Stack name prefix cannot be empty")

        if not self.stack_name:
            raise ValueError("Stack name cannot be empty")

        if not self.repos_name or not self.repo_owner:
            raise ValueError("Repository owner and name cannot be empty")

        if not self.pipeline_name:
            raise ValueError("Pipeline name cannot be empty")

        if not re.match(r"^[a-z0-9]{1,10}$", self.cdk_bootstrap_qualifier):
            raise ValueError(
                f"Invalid CDK bootstrap qualifier: {self.cdk_bootstrap_qualifier}"
            )

        if not self.stages:
            raise ValueError("At least one stage must be defined")

        for stage in self.stages:
            self.stage_account(stage)

        if len(set(self.stages)) != len(self.stages):
            raise ValueError(f"Stages must be unique. Got: {self.stages}")

    def to_context(self) -> Dict[str, Any]:
        """Plain values accepted back by ``get_config`` as overrides."""
        return asdict(self)


def get_config(
    stack_prefix: str,
    stack_name: str,
    overrides: Optional[Dict[str, Any]] = None,
) -> PipelineOptions:
    """
    Build the project pipeline options.

    Args:
        stack_prefix: Prefix for stack and pipeline names
        stack_name: Base stack name
        overrides: Field values replacing the defaults, e.g. from CDK context

    Returns:
        Validated PipelineOptions

    Raises:
        ValueError: An override names no option, or a value is invalid
    """
    values: Dict[str, Any] = {
        "stack_name_prefix": stack_prefix,
        "stack_name": stack_name,
        "pipeline_name": f"{stack_prefix}-{stack_name}-pipeline",
    }
    overrides = overrides or {}
    unknown = sorted(set(overrides) - {f.name for f in fields(PipelineOptions)})
    if unknown:
        raise ValueError(f"Unknown pipeline options: {', '.join(unknown)}")
    values.update(overrides)

    options = PipelineOptions(**values)
    options.validate()
    return options
