"""
AppForge - Test Configuration and Fixtures
"""
import os
from typing import List

import pytest

# Set testing environment
os.environ['ENVIRONMENT'] = 'testing'
os.environ['TERMINAL_WS_URL'] = 'ws://terminal.test:3001'
os.environ['ANTHROPIC_API_KEY'] = 'test-api-key'

from appforge.modules.execution.connection import ConnectionManager
from appforge.modules.execution.local_fallback import LocalMaterializer
from appforge.schemas.project import ProjectConfiguration
from mocks.fake_terminal import FakeTransportFactory


@pytest.fixture
def factory() -> FakeTransportFactory:
    """Transport factory that answers every command with success"""
    return FakeTransportFactory()


@pytest.fixture
async def make_manager():
    """Build ConnectionManagers with fast retry settings; all are closed afterwards"""
    managers: List[ConnectionManager] = []

    def build(transport_factory, **overrides) -> ConnectionManager:
        options = dict(
            url='ws://terminal.test:3001',
            transport_factory=transport_factory,
            connect_timeout=1.0,
            max_retries=2,
            base_delay=0.01,
            max_delay=0.02,
        )
        options.update(overrides)
        manager = ConnectionManager(**options)
        managers.append(manager)
        return manager

    yield build

    for manager in managers:
        await manager.close()


@pytest.fixture
def materializer(tmp_path) -> LocalMaterializer:
    """Archive materializer writing into a temporary directory"""
    return LocalMaterializer(output_dir=tmp_path / 'downloads')


@pytest.fixture
def channel_options() -> dict:
    """No artificial pacing between commands or batches"""
    return {'command_timeout': 1.0, 'batch_delay': 0, 'command_delay': 0}


@pytest.fixture
def frontend_config() -> ProjectConfiguration:
    return ProjectConfiguration(type='frontend', language='typescript', name='demo')


@pytest.fixture
def backend_config() -> ProjectConfiguration:
    return ProjectConfiguration(type='backend', language='typescript', name='demo')


@pytest.fixture
def fullstack_config() -> ProjectConfiguration:
    return ProjectConfiguration(type='fullstack', language='typescript', name='demo')
