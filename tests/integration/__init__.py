"""
Integration tests for the CalAIM portal backend.

These tests drive the HTTP handlers in sequence against mocked AWS
services to cover complete claim and visit lifecycles.
"""
