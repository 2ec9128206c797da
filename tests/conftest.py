"""
Pytest configuration and shared fixtures for toolrelay tests.
"""

import io
import sys
from pathlib import Path

import pytest

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from toolrelay_core.config import MCPServerDefinition  # noqa: E402
from toolrelay_core.logging import LogConfig, RelayLogger  # noqa: E402
from toolrelay_core.telemetry import reset_telemetry  # noqa: E402
from toolrelay_core.types import LogFormat, LogLevel  # noqa: E402

# =============================================================================
# Path Fixtures
# =============================================================================


@pytest.fixture(scope="session")
def project_root() -> Path:
    """Return the project root directory."""
    return Path(__file__).parent.parent


# =============================================================================
# Logging Fixtures
# =============================================================================


@pytest.fixture
def log_output() -> io.StringIO:
    """Buffer that captures logger output."""
    return io.StringIO()


@pytest.fixture
def relay_logger(log_output: io.StringIO) -> RelayLogger:
    """JSON logger at DEBUG level writing into ``log_output``."""
    return RelayLogger(LogConfig(level=LogLevel.DEBUG, format=LogFormat.JSON, output=log_output))


# =============================================================================
# Server Fixtures
# =============================================================================


@pytest.fixture
def alpha_config() -> MCPServerDefinition:
    """Configuration for a server named ``alpha``."""
    return MCPServerDefinition(name="alpha", url="http://localhost:9001/mcp")


@pytest.fixture
def beta_config() -> MCPServerDefinition:
    """Configuration for a server named ``beta``."""
    return MCPServerDefinition(name="beta", url="http://localhost:9002/mcp")


# =============================================================================
# Telemetry Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def clean_telemetry():
    """Every test starts and ends without global telemetry state."""
    reset_telemetry()
    yield
    reset_telemetry()


# =============================================================================
# Markers Configuration
# =============================================================================


def pytest_configure(config):
    """Configure custom markers."""
    config.addinivalue_line("markers", "integration: Integration tests")
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "property: Property-based tests")
    config.addinivalue_line("markers", "slow: Slow tests")
    config.addinivalue_line("markers", "mcp_client: MCP client integration tests")
