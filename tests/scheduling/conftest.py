"""Pytest fixtures for scheduling tests.

The ``recorder`` fixture lives in the top-level tests/conftest.py so that
tests outside this package can use it too.
"""
