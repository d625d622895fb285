"""
Pytest fixtures for mssql-admin-core tests.

Unit tests run against an in-memory fake of the ODBC driver. Integration
tests need a real instance named by MSSQLADMIN_TEST_INSTANCE (plus optional
MSSQLADMIN_TEST_USERNAME / MSSQLADMIN_TEST_PASSWORD) and are skipped otherwise.
"""

import logging
import os

import pytest
from fakes import FakeDriver

from mssql_admin_core import AdminConfig, ConnectionBinder, InstanceSpec, clear_pool
from mssql_admin_core.config import ENV_PREFIX

logger = logging.getLogger(__name__)


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers", "integration: mark test as integration test requiring a SQL Server instance"
    )


@pytest.fixture(autouse=True)
def _isolate_settings(monkeypatch):
    """Keep MSSQLADMIN_* settings of the shell out of unit tests."""
    for name in AdminConfig.model_fields:
        monkeypatch.delenv(f"{ENV_PREFIX}{name.upper()}", raising=False)


@pytest.fixture(autouse=True)
def _clear_connection_pool():
    yield
    clear_pool()


@pytest.fixture
def driver() -> FakeDriver:
    return FakeDriver()


@pytest.fixture
def config(tmp_path) -> AdminConfig:
    scratch = tmp_path / "scratch"
    scratch.mkdir()
    return AdminConfig(scratch_dir=scratch)


@pytest.fixture
def binder(config: AdminConfig, driver: FakeDriver) -> ConnectionBinder:
    return ConnectionBinder(config, connect=driver.connect)


@pytest.fixture(scope="session")
def sql_instance() -> InstanceSpec:
    """
    Real instance for integration tests.

    Uses MSSQLADMIN_TEST_INSTANCE (host or host,port) and optional
    MSSQLADMIN_TEST_USERNAME / MSSQLADMIN_TEST_PASSWORD.
    """
    instance = os.environ.get("MSSQLADMIN_TEST_INSTANCE")
    if not instance:
        pytest.skip("MSSQLADMIN_TEST_INSTANCE is not set")
    spec = InstanceSpec.parse(
        instance,
        username=os.environ.get("MSSQLADMIN_TEST_USERNAME") or None,
        password=os.environ.get("MSSQLADMIN_TEST_PASSWORD") or None,
    )
    logger.info(f"Using SQL Server instance: {spec.name}")
    return spec


@pytest.fixture(scope="session")
def integration_config() -> AdminConfig:
    return AdminConfig(trust_server_certificate=True)
