"""
Pydantic schemas for API request/response validation.

Provides data models for the time sheet workflow, entry messages and
project approval settings endpoints.
"""
