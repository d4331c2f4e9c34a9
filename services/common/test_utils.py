"""
Common test utilities for integration tests.

Provides a base class with HTTP call detection rakes to prevent real external
HTTP calls during testing while allowing TestClient to work properly.
"""

from unittest.mock import patch

from fastapi.testclient import TestClient


class BaseSelectiveHTTPIntegrationTest:
    """Base class for integration tests that need to allow TestClient but block external HTTP calls."""

    def setup_method(self, method: object = None) -> None:
        # Only async httpx and urllib are patched: TestClient drives the app
        # through the sync httpx client
        self.http_patches = [
            patch(
                "httpx.AsyncClient._send_single_request",
                side_effect=AssertionError(
                    "Real HTTP call detected! AsyncClient._send_single_request was called"
                ),
            ),
            patch(
                "urllib.request.urlopen",
                side_effect=AssertionError(
                    "Real HTTP call detected! urllib.request.urlopen was called"
                ),
            ),
        ]

        for http_patch in self.http_patches:
            http_patch.start()

    def teardown_method(self, method: object = None) -> None:
        for http_patch in self.http_patches:
            http_patch.stop()

    def create_test_client(self, app, **kwargs) -> TestClient:  # type: ignore[no-untyped-def]
        """Create a FastAPI test client for the given app."""
        return TestClient(app, **kwargs)
