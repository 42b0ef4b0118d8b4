"""
Tests for notifications app.

This package contains test modules for:
- test_services.py: Job-id deduplication and on-commit scheduling
- test_tasks.py: E-mail delivery task

Usage:
    pytest notifications/tests/
"""
