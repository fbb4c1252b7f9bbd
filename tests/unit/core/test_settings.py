import logging

import pytest

from pires_cli.core.config import (
    SETTINGS_FIELDS,
    ConfigValidationError,
    Settings,
    load_settings,
    log_settings,
    resolve_config_file,
    validate_settings,
)


@pytest.fixture
def env_file(tmp_path):
    path = tmp_path / "custom.env"
    path.write_text(
        "CLI_ENVIRONMENT=staging\n"
        "CLI_GCP_PROJECT=file-project\n"
        "CLI_GCP_REGION=us-central1\n"
        "CLI_DATABASE_TYPE=postgresql\n"
        "CLI_VPN_CHECK_CONNECTION=true\n"
    )
    return path


def test_defaults_without_config_file(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)

    settings = load_settings(str(tmp_path / "missing.env"), environ={})

    assert settings.environment == "dev"
    assert settings.gcp_project == "change-here"
    assert settings.vpn_check_connection is False
    assert settings.config_file == str(tmp_path / "missing.env")


def test_config_file_values(env_file):
    settings = load_settings(str(env_file), environ={})

    assert settings.environment == "staging"
    assert settings.gcp_project == "file-project"
    assert settings.database_type == "postgresql"
    assert settings.vpn_check_connection is True


def test_environment_overrides_file(env_file):
    settings = load_settings(str(env_file), environ={"CLI_GCP_PROJECT": "env-project", "CLI_GCP_REGION": ""})

    assert settings.gcp_project == "env-project"
    # 空文字の環境変数は無視される
    assert settings.gcp_region == "us-central1"


def test_overrides_win_over_environment(env_file):
    settings = load_settings(
        str(env_file),
        overrides={"gcp_project": "flag-project", "environment": None},
        environ={"CLI_GCP_PROJECT": "env-project"},
    )

    assert settings.gcp_project == "flag-project"
    assert settings.environment == "staging"


def test_unknown_override_is_rejected(env_file):
    with pytest.raises(KeyError):
        load_settings(str(env_file), overrides={"nope": "x"}, environ={})


def test_fallback_to_dot_env_in_current_directory(tmp_path, monkeypatch):
    (tmp_path / ".env").write_text("CLI_GCP_PROJECT=fallback-project\n")
    monkeypatch.chdir(tmp_path)

    assert resolve_config_file("does-not-exist.env").name == ".env"
    assert load_settings("does-not-exist.env", environ={}).gcp_project == "fallback-project"


def test_gsa_account_is_derived():
    settings = Settings(gcp_project="my-project", gsa_base_account="app-gsa")

    assert settings.gsa_account == "app-gsa@my-project.iam.gserviceaccount.com"


def test_validation_collects_every_failure(env_file):
    with pytest.raises(ConfigValidationError) as excinfo:
        load_settings(
            str(env_file),
            overrides={
                "environment": "qa",
                "gcp_project": "My-Project",
                "vpn_address_target": "ftp://vpn.example.com",
                "gsa_base_account": "a_very_long_service_account_name_x",
            },
            environ={},
        )

    failures = {(e.field, e.rule) for e in excinfo.value.errors}
    assert ("environment", "oneof") in failures
    assert ("gcp_project", "lowercase") in failures
    assert ("vpn_address_target", "http_url") in failures
    assert ("gsa_base_account", "noUnderscore") in failures
    assert ("gsa_base_account", "max") in failures
    assert str(excinfo.value).startswith("Configuration validation failed:")


def test_validation_required():
    errors = validate_settings(Settings(gcp_region=""))

    assert [(e.field, e.rule) for e in errors] == [("gcp_region", "required")]


def test_validation_can_be_skipped(env_file):
    settings = load_settings(str(env_file), overrides={"environment": "qa"}, environ={}, validate=False)

    assert settings.environment == "qa"


def test_default_settings_are_valid():
    assert validate_settings(Settings()) == []


def test_log_settings_dumps_every_field(caplog):
    with caplog.at_level(logging.DEBUG, logger="pires_cli"):
        log_settings(Settings(gcp_project="my-project"), "test")

    assert "====> Values loaded in test" in caplog.text
    for name, _ in SETTINGS_FIELDS:
        assert f"Field: {name}," in caplog.text
    assert "Field: gsa_account, Value: todo-gsa@my-project.iam.gserviceaccount.com" in caplog.text
