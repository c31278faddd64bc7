"""
Root pytest configuration for typed_contracts tests.

Provides:
- Registry isolation (CONTRACTS restored after every test)
- Global config isolation
"""

import pytest
from typed_contracts import config as config_module
from typed_contracts.config import ContractConfig, ResponseMode
from typed_contracts.contracts.registry import CONTRACTS


@pytest.fixture(autouse=True)
def isolated_registry():
    """Keep contracts declared by a test out of the process-wide registry."""
    saved = list(CONTRACTS)
    CONTRACTS.clear()
    yield CONTRACTS
    CONTRACTS[:] = saved


@pytest.fixture(autouse=True)
def isolated_config(monkeypatch):
    """Fresh process-wide ContractConfig per test."""
    fresh = ContractConfig(response_mode=ResponseMode.STRICT)
    monkeypatch.setattr(config_module, '_config', fresh)
    return fresh


@pytest.fixture
def contract_config():
    """Explicit config object for blueprints under test."""
    return ContractConfig(response_mode=ResponseMode.STRICT)
