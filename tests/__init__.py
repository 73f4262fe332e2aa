"""Test suite for IndexLens.

This package contains hermetic tests following the pytest framework.
Tests are structured to mirror the src/ package hierarchy for discoverability.

Testing Philosophy:
    - Playwright is replaced by mocks and an in-memory listing fake
    - The chart API is served by httpx.MockTransport
    - Focus coverage on pagination, filtering and reduction invariants
"""
