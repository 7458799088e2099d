import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from geousers.config import (  # noqa: E402
    ConfigurationError,
    Settings,
    apply_env_overrides,
    load_settings,
    resolve_config_path,
)


def test_defaults_from_minimal_mapping() -> None:
    settings = Settings.from_dict({"openweather": {"api_key": "key"}})

    assert settings.environment == "development"
    assert settings.api_prefix == "/api"
    assert settings.port == 8080
    assert settings.store.backend == "memory"
    assert settings.openweather.timeout == 5.0
    assert settings.openweather.base_url == "https://api.openweathermap.org/data/2.5"
    assert settings.rate_limit.requests == 100
    assert settings.rate_limit.window_seconds == 900
    assert settings.cors_origins == ("*",)


def test_missing_api_key_is_rejected() -> None:
    with pytest.raises(ConfigurationError, match="OPENWEATHER_API_KEY"):
        Settings.from_dict({})


@pytest.mark.parametrize(
    "data",
    [
        {"openweather": {"api_key": "k"}, "store": {"backend": "postgres"}},
        {"openweather": {"api_key": "k"}, "store": {"backend": "realtime_db"}},
        {"openweather": {"api_key": "k"}, "environment": "staging"},
        {"openweather": {"api_key": "k"}, "rate_limit": {"requests": 0}},
        {"openweather": {"api_key": "k", "base_url": "ftp://weather"}},
        {"openweather": "not-a-mapping"},
    ],
)
def test_invalid_settings_are_rejected(data: dict) -> None:
    with pytest.raises(ConfigurationError):
        Settings.from_dict(data)


def test_production_cors_allows_only_frontend() -> None:
    base = {"openweather": {"api_key": "k"}, "environment": "production"}

    assert Settings.from_dict(base).cors_origins == ()
    assert Settings.from_dict({**base, "frontend_base_url": "https://app.example.com"}).cors_origins == (
        "https://app.example.com",
    )


def test_api_prefix_is_normalised() -> None:
    settings = Settings.from_dict({"openweather": {"api_key": "k"}, "api_prefix": "v1/"})

    assert settings.api_prefix == "/v1"


def test_env_overrides_take_precedence() -> None:
    merged = apply_env_overrides(
        {"port": 9000, "openweather": {"api_key": "from-file", "timeout": 2}},
        {
            "OPENWEATHER_API_KEY": "from-env",
            "PORT": "9100",
            "USER_STORE": "realtime_db",
            "FIREBASE_DATABASE_URL": "https://db.example.test/",
            "TRUSTED_PROXIES": "10.0.0.1, 10.0.0.2",
            "LOG_LEVEL": "   ",
        },
    )
    settings = Settings.from_dict(merged)

    assert settings.openweather.api_key == "from-env"
    assert settings.openweather.timeout == 2.0
    assert settings.port == 9100
    assert settings.store.backend == "realtime_db"
    assert settings.store.database_url == "https://db.example.test"
    assert settings.trusted_proxies == ("10.0.0.1", "10.0.0.2")
    assert settings.log_level == "INFO"


def test_load_settings_reads_yaml_file(tmp_path: Path) -> None:
    config = tmp_path / "settings.yaml"
    config.write_text(
        "\n".join(
            [
                "environment: test",
                "openweather:",
                "  api_key: yaml-key",
                "store:",
                "  backend: memory",
                "rate_limit:",
                "  requests: 5",
                "  window_seconds: 60",
            ]
        ),
        encoding="utf-8",
    )

    settings = load_settings(config, environ={"PORT": "8181"})

    assert settings.environment == "test"
    assert settings.openweather.api_key == "yaml-key"
    assert settings.rate_limit.requests == 5
    assert settings.port == 8181


def test_load_settings_uses_env_config_path(tmp_path: Path) -> None:
    config = tmp_path / "custom.yaml"
    config.write_text("openweather:\n  api_key: custom\n", encoding="utf-8")

    settings = load_settings(environ={"GEOUSERS_CONFIG": str(config)})

    assert settings.openweather.api_key == "custom"


def test_load_settings_without_file_uses_environment(tmp_path: Path) -> None:
    settings = load_settings(
        environ={
            "GEOUSERS_CONFIG": str(tmp_path / "absent.yaml"),
            "OPENWEATHER_API_KEY": "env-key",
        }
    )

    assert settings.openweather.api_key == "env-key"


@pytest.mark.parametrize(
    ("variable", "value"),
    [
        ("PORT", "abc"),
        ("RATE_LIMIT_REQUESTS", "lots"),
        ("RATE_LIMIT_WINDOW_SECONDS", "1.5"),
    ],
)
def test_non_numeric_environment_values_are_configuration_errors(
    tmp_path: Path, variable: str, value: str
) -> None:
    environ = {
        "GEOUSERS_CONFIG": str(tmp_path / "absent.yaml"),
        "OPENWEATHER_API_KEY": "env-key",
        variable: value,
    }

    with pytest.raises(ConfigurationError, match="must be an integer"):
        load_settings(environ=environ)


def test_non_numeric_timeouts_are_configuration_errors() -> None:
    with pytest.raises(ConfigurationError, match="openweather.timeout"):
        Settings.from_dict({"openweather": {"api_key": "k", "timeout": "soon"}})
    with pytest.raises(ConfigurationError, match="store.timeout"):
        Settings.from_dict({"openweather": {"api_key": "k"}, "store": {"timeout": None}})


def test_explicit_missing_file_is_an_error(tmp_path: Path) -> None:
    with pytest.raises(ConfigurationError):
        load_settings(tmp_path / "absent.yaml", environ={"OPENWEATHER_API_KEY": "k"})


def test_non_mapping_yaml_is_rejected(tmp_path: Path) -> None:
    config = tmp_path / "settings.yaml"
    config.write_text("- just\n- a list\n", encoding="utf-8")

    with pytest.raises(ConfigurationError):
        load_settings(config, environ={})


def test_resolve_config_path_default() -> None:
    assert resolve_config_path(None) == (ROOT / "config" / "settings.yaml").resolve()
