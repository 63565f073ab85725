"""
Backend package for the medquery web application.

This package exposes a FastAPI application that reuses the `medquery`
engine to provide HTTP endpoints for drug lookup, symptom triage and
follow-up questions.
"""
