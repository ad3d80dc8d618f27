"""
Test package for the time sheet review backend.

This package contains test suites for:
- The permission catalog and evaluator
- Entry and time sheet workflow rules
- Approval settings and multi-stage sequencing
- The HTTP endpoints, end to end against an in-memory database
"""
