"""
Test support utilities for cadence tests.

Test doubles that are imported directly by test modules, as opposed to
the fixtures in ``tests/conftest.py`` which pytest injects.
"""
