"""
Test helpers package for console sync tests

Provides reusable helpers for:
- Remote payload factories (factories.py)
- In-memory console API behind httpx.MockTransport (console_api.py)
"""
