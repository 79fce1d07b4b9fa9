# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: MIT-0

"""Default HTTP transport for FHIR API calls."""

import requests

USER_AGENT = "fhir-utils-example/1.0.0"
DEFAULT_TIMEOUT_SECONDS = 10


def new_http_client() -> requests.Session:
    """Create a requests session preconfigured for FHIR JSON."""
    session = requests.Session()
    session.headers.update(
        {
            "Accept": "application/fhir+json",
            "User-Agent": USER_AGENT,
        }
    )
    return session
