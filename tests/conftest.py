"""Shared pytest fixtures for Dispatch tests."""
import sys
sys.dont_write_bytecode = True

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from dispatch.api.factory import create_app  # noqa: E402
from dispatch.channels.registry import default_registry  # noqa: E402
from dispatch.infra.credentials import CredentialIndex  # noqa: E402

from .helpers import (  # noqa: E402
    ADMIN_KEY,
    InMemoryLedger,
    make_shop_identity,
    make_website_identity,
)


@pytest.fixture
def website():
    return make_website_identity()


@pytest.fixture
def shop():
    return make_shop_identity()


@pytest.fixture
def credentials(website, shop):
    return CredentialIndex([website, shop], ADMIN_KEY)


@pytest.fixture
def ledger():
    return InMemoryLedger()


@pytest.fixture
def app(credentials, ledger):
    return create_app(credentials=credentials, ledger=ledger, adapters=default_registry(timeout=2))


@pytest.fixture
def client(app):
    return TestClient(app)
