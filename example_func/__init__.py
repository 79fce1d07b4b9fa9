"""Example FHIR utils functions and their CDK stack."""
