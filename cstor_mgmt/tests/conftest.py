"""Global test configuration and fixtures."""
import os
from unittest.mock import MagicMock

import pytest

from cstor_mgmt.controller.events import EventRecorder
from cstor_mgmt.controller.informer import Informer
from cstor_mgmt.kube.client import ResourceClient

from .common.fakes import FakeIstgtServer, ScriptRunner

# Never let a developer's .env or cluster leak into the tests
os.environ.pop('OPENEBS_IO_CSTOR_VOLUME_ID', None)
os.environ.pop('RESYNC_INTERVAL', None)


@pytest.fixture
def script_runner():
    """Runner double with no scripted responses."""
    return ScriptRunner()


@pytest.fixture
def mock_resource_client():
    """Resource client whose update_phase calls can be inspected."""
    return MagicMock(spec=ResourceClient)


@pytest.fixture
def mock_informer():
    return MagicMock(spec=Informer)


@pytest.fixture
def mock_recorder():
    return MagicMock(spec=EventRecorder)


@pytest.fixture
def istgt_server():
    """Running fake istgt control socket."""
    with FakeIstgtServer() as server:
        yield server

