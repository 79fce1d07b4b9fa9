"""Delivery pipeline for the FHIR example functions."""
