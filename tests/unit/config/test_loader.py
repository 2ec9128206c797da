"""Unit tests for configuration loading."""

import pytest

from toolrelay_core.config import (
    ConfigLoader,
    MCPServerDefinition,
    load_config,
    resolve_env_vars,
    validate_server_name,
)
from toolrelay_core.errors import RelayError
from toolrelay_core.types import LogFormat, LogLevel, MCPTransport

FULL_CONFIG = """
tools:
  mcp_servers:
    alpha:
      url: http://localhost:9001/mcp
      api_key: ${ALPHA_KEY}
    files:
      command: npx -y @modelcontextprotocol/server-filesystem
      args: ["/tmp"]
      timeout: 10
    legacy:
      url: http://localhost:9003/sse
      enabled: false
  disabled_tools:
    - "@mcp-alpha:delete_everything"
logging:
  level: DEBUG
  format: json
  components:
    stream: false
telemetry:
  enabled: false
generation:
  tool_call_timeout: 20
"""


class TestConfigLoader:
    """Tests for ConfigLoader.load."""

    def test_load_file(self, tmp_path, monkeypatch):
        monkeypatch.setenv("ALPHA_KEY", "s3cr3t")
        path = tmp_path / "toolrelay.yaml"
        path.write_text(FULL_CONFIG)

        config = ConfigLoader().load(path)

        servers = config.tools.mcp_servers
        assert set(servers) == {"alpha", "files", "legacy"}
        assert servers["alpha"].name == "alpha"
        assert servers["alpha"].api_key == "s3cr3t"
        assert servers["files"].args == ["/tmp"]
        assert servers["files"].timeout == 10
        assert servers["files"].resolved_transport() == MCPTransport.STDIO
        assert servers["legacy"].resolved_transport() == MCPTransport.SSE
        assert servers["legacy"].enabled is False
        assert config.tools.disabled_tools == ["@mcp-alpha:delete_everything"]
        assert config.logging.level == LogLevel.DEBUG
        assert config.logging.format == LogFormat.JSON
        assert config.logging.components.stream is False
        assert config.logging.components.turn is True
        assert config.telemetry.enabled is False
        assert config.generation.tool_call_timeout == 20
        assert config.generation.max_continuation_rounds == 1

    def test_missing_env_var(self, tmp_path, monkeypatch):
        monkeypatch.delenv("ALPHA_KEY", raising=False)
        path = tmp_path / "toolrelay.yaml"
        path.write_text(FULL_CONFIG)

        with pytest.raises(RelayError) as exc_info:
            ConfigLoader().load(path)
        assert "ALPHA_KEY" in exc_info.value.detail

    def test_explicit_missing_path_is_error(self, tmp_path):
        with pytest.raises(RelayError) as exc_info:
            ConfigLoader().load(tmp_path / "missing.yaml")
        assert exc_info.value.code == "CONFIG_INVALID"
        assert "not found" in exc_info.value.detail

    def test_defaults_when_nothing_found(self, tmp_path, monkeypatch):
        monkeypatch.delenv("TOOLRELAY_CONFIG_PATH", raising=False)
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("HOME", str(tmp_path))

        config = ConfigLoader().load()

        assert config.tools.mcp_servers == {}
        assert config.logging.level == LogLevel.INFO

    def test_env_var_path(self, tmp_path, monkeypatch):
        path = tmp_path / "custom.yaml"
        path.write_text("tools:\n  mcp_servers:\n    beta:\n      url: http://b/mcp\n")
        monkeypatch.setenv("TOOLRELAY_CONFIG_PATH", str(path))

        config = ConfigLoader().load()

        assert list(config.tools.mcp_servers) == ["beta"]

    def test_load_config_helper(self, tmp_path):
        path = tmp_path / "toolrelay.yaml"
        path.write_text("generation:\n  tool_call_timeout: 5\n")

        assert load_config(path).generation.tool_call_timeout == 5

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "toolrelay.yaml"
        path.write_text("tools: [unclosed")

        with pytest.raises(RelayError) as exc_info:
            ConfigLoader().load(path)
        assert "Invalid YAML" in exc_info.value.detail

    def test_reload(self, tmp_path):
        path = tmp_path / "toolrelay.yaml"
        path.write_text("logging:\n  level: INFO\n")
        loader = ConfigLoader()
        loader.load(path)

        path.write_text("logging:\n  level: ERROR\n")

        assert loader.reload().logging.level == LogLevel.ERROR
        assert loader.get().logging.level == LogLevel.ERROR

    def test_get_before_load(self):
        with pytest.raises(RelayError):
            ConfigLoader().get()


class TestConfigValidation:
    """Tests for ConfigLoader.validate."""

    def test_unknown_key_is_warning(self):
        result = ConfigLoader().validate({"surprise": 1})

        assert result.valid
        assert result.warnings[0].path == "surprise"

    @pytest.mark.parametrize(
        "data,path",
        [
            (
                {"tools": {"mcp_servers": {"al:pha": {"url": "http://a"}}}},
                "tools.mcp_servers.al:pha",
            ),
            ({"tools": {"mcp_servers": {"alpha": {}}}}, "tools.mcp_servers.alpha"),
            (
                {"tools": {"mcp_servers": {"alpha": {"url": "http://a", "timeout": 0}}}},
                "tools.mcp_servers.alpha.timeout",
            ),
            ({"tools": {"disabled_tools": "all"}}, "tools.disabled_tools"),
            ({"generation": {"max_continuation_rounds": 3}}, "generation.max_continuation_rounds"),
            ({"generation": {"tool_call_timeout": -1}}, "generation.tool_call_timeout"),
        ],
    )
    def test_invalid(self, data, path):
        result = ConfigLoader().validate(data)

        assert not result.valid
        assert path in [issue.path for issue in result.errors]

    def test_invalid_config_raises_on_load(self):
        with pytest.raises(RelayError) as exc_info:
            ConfigLoader().load_from_dict({"generation": {"max_continuation_rounds": 2}})
        assert exc_info.value.code == "CONFIG_INVALID"


class TestHelpers:
    """Tests for module-level helpers."""

    def test_resolve_env_vars_default(self, monkeypatch):
        monkeypatch.delenv("TOOLRELAY_TEST_UNSET", raising=False)
        assert resolve_env_vars("${TOOLRELAY_TEST_UNSET:-fallback}") == "fallback"

    def test_resolve_env_vars_custom_error(self, monkeypatch):
        monkeypatch.delenv("TOOLRELAY_TEST_UNSET", raising=False)
        with pytest.raises(RelayError) as exc_info:
            resolve_env_vars("${TOOLRELAY_TEST_UNSET:?set the token}")
        assert exc_info.value.detail == "set the token"

    @pytest.mark.parametrize("name", ["alpha", "my-server", "server_2"])
    def test_valid_server_names(self, name):
        assert validate_server_name(name) is None

    @pytest.mark.parametrize("name", ["", "a:b", "a b", "tab\tname", None])
    def test_invalid_server_names(self, name):
        assert validate_server_name(name) is not None

    def test_transport_inference(self):
        assert MCPServerDefinition(url="http://h/mcp").resolved_transport() == MCPTransport.HTTP
        assert MCPServerDefinition(url="http://h/sse/").resolved_transport() == MCPTransport.SSE
        assert MCPServerDefinition(command="uvx srv").resolved_transport() == MCPTransport.STDIO
