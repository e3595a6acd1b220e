# tests/conftest.py

import pytest

from cqroute.config.settings import Settings
from cqroute.core.app import App
from tests.helpers import FakeSender


@pytest.fixture
def sender():
    return FakeSender()


@pytest.fixture
def settings():
    return Settings(environment="test")


@pytest.fixture
def app(settings, sender):
    return App(settings=settings, sender=sender)
