"""
Core ingestion logic.

This module is framework-agnostic - it doesn't import FastAPI, Snowflake,
boto3 or kombu. The orchestrator talks to its collaborators through
protocols so it can be tested with in-memory stand-ins.
"""
