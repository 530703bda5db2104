"""Test suite for the pytest-cuke package.

This package contains unit and integration tests validating Gherkin
parsing, scope registration, plan building, event delivery, pytest
integration, and execution semantics of feature files.
"""
