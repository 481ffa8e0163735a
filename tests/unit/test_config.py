import pytest

from ddlplan.config import Settings, get_settings, reset_settings


@pytest.fixture(autouse=True)
def _fresh_settings():
    reset_settings()
    yield
    reset_settings()


def test_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("DDLPLAN_NAMING", raising=False)

    settings = Settings(_env_file=None)

    assert settings.database_url == "sqlite:///ddlplan.db"
    assert settings.naming == "camelcase"
    assert not settings.allow_table_drops
    assert settings.log_format == "console"


def test_reads_prefixed_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DDLPLAN_DATABASE_URL", "postgresql://localhost/app")
    monkeypatch.setenv("DDLPLAN_ALLOW_TABLE_DROPS", "true")
    monkeypatch.setenv("DDLPLAN_NAMING", "underscore")

    settings = get_settings()

    assert settings.database_url == "postgresql://localhost/app"
    assert settings.allow_table_drops
    assert settings.naming == "underscore"


def test_settings_are_cached_until_reset(monkeypatch: pytest.MonkeyPatch) -> None:
    first = get_settings()
    assert get_settings() is first

    reset_settings()

    assert get_settings() is not first


def test_rejects_unknown_naming(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DDLPLAN_NAMING", "kebab")

    with pytest.raises(ValueError):
        Settings(_env_file=None)
