"""
Integration tests for genviz.

These tests drive the backend through its REST API while a Python viewer,
attached through the WebSocket endpoint, mirrors and renders the traces.

Run all integration tests:
    pytest tests/integration/ -v
"""
