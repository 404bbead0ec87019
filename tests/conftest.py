"""Shared pytest fixtures for testing."""

from unittest.mock import patch

import httpx
import pytest
import respx

from s3engine import ClientConfig, S3Client, S3Credentials
from s3engine.credentials import CredentialsSnapshot

ACCESS_KEY = "AKIDEXAMPLE"
SECRET_KEY = "wJalrXUtnFEMI/K7MDENG/bPxRfiCYEXAMPLEKEY"
FIXED_DATE = "Tue, 27 Mar 2007 19:36:42 GMT"


# =============================================================================
# Configuration Fixtures
# =============================================================================


@pytest.fixture
def config():
    """Client configuration pointing at the default endpoint."""
    return ClientConfig(service_url="s3.amazonaws.com", max_error_retry=3)


@pytest.fixture
def credentials():
    """Long-lived test credentials."""
    return S3Credentials(ACCESS_KEY, SECRET_KEY)


@pytest.fixture
def snapshot():
    """Credentials snapshot with a plain secret."""
    return CredentialsSnapshot(ACCESS_KEY, SECRET_KEY)


# =============================================================================
# HTTP Fixtures
# =============================================================================


@pytest.fixture
def router():
    """respx router backing the mocked transports."""
    return respx.Router()


@pytest.fixture
def http_client(router):
    """Synchronous httpx client served by the router."""
    client = httpx.Client(transport=httpx.MockTransport(router.handler), follow_redirects=False)
    yield client
    client.close()


@pytest.fixture
def client(credentials, config, http_client):
    """S3Client wired to the mocked transport."""
    with S3Client(credentials, config, http_client=http_client) as s3_client:
        yield s3_client


# =============================================================================
# Time Fixtures
# =============================================================================


@pytest.fixture
def sleeps():
    """Record backoff pauses instead of sleeping."""
    with patch("s3engine.transport.time.sleep") as sleep:
        yield sleep


@pytest.fixture
def frozen_date():
    """Pin the x-amz-date header so signatures are reproducible."""
    with patch("s3engine.marshalling.formatted_current_timestamp", return_value=FIXED_DATE):
        yield FIXED_DATE
