"""
Lambda function module for the FHIR utils example.

This module provides two Lambda entry points: a HealthLake entity access
validation handler and a sample handler.
"""

__version__ = "1.0.0"
