"""
core.config

CLI 全体で使う設定値の読み込みと検証。

優先順位（低 → 高）:
1) Settings のデフォルト値
2) 設定ファイル（.env 形式。指定ファイルが無ければ `.` と `/app` の .env を探す）
3) 環境変数（CLI_ プレフィックス。例: CLI_GCP_PROJECT）
4) コマンドライン引数
"""

from __future__ import annotations

import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Callable, Mapping, Optional
from urllib.parse import urlparse

from dotenv import dotenv_values

from pires_cli.core.logging import get_logger

logger = get_logger(__name__)

DEFAULT_CONFIG_FILE = ".env"
FALLBACK_CONFIG_DIRS = (".", "/app")

SUPPORTED_ENVIRONMENTS = ("dev", "staging", "production")
SUPPORTED_DATABASE_TYPES = ("postgresql", "mongodb", "none")
GSA_BASE_ACCOUNT_MAX_LENGTH = 30

# Settings のフィールド名 -> 設定ファイル/環境変数のキー
ENV_KEYS = {
    "environment": "CLI_ENVIRONMENT",
    "gcp_project": "CLI_GCP_PROJECT",
    "gcp_region": "CLI_GCP_REGION",
    "database_type": "CLI_DATABASE_TYPE",
    "vpn_address_target": "CLI_VPN_HOST_TARGET",
    "gsa_base_account": "CLI_GSA_BASE_ACCOUNT",
    "vpn_check_connection": "CLI_VPN_CHECK_CONNECTION",
}

_TRUE_VALUES = ("1", "true", "t", "yes", "y", "on")


@dataclass(frozen=True)
class Settings:
    config_file: str = DEFAULT_CONFIG_FILE
    environment: str = "dev"
    gcp_project: str = "change-here"
    gcp_region: str = "change-here"
    database_type: str = "none"
    vpn_address_target: str = "http://change-here.com"
    gsa_base_account: str = "todo-gsa"
    vpn_check_connection: bool = False

    @property
    def gsa_account(self) -> str:
        return f"{self.gsa_base_account}@{self.gcp_project}.iam.gserviceaccount.com"


# デバッグ出力用のフィールド一覧（name, accessor）
SETTINGS_FIELDS: tuple[tuple[str, Callable[[Settings], Any]], ...] = (
    ("config_file", lambda s: s.config_file),
    ("environment", lambda s: s.environment),
    ("gcp_project", lambda s: s.gcp_project),
    ("gcp_region", lambda s: s.gcp_region),
    ("database_type", lambda s: s.database_type),
    ("vpn_address_target", lambda s: s.vpn_address_target),
    ("vpn_check_connection", lambda s: s.vpn_check_connection),
    ("gsa_base_account", lambda s: s.gsa_base_account),
    ("gsa_account", lambda s: s.gsa_account),
)


@dataclass(frozen=True)
class FieldError:
    field: str
    rule: str
    value: Any


class ConfigValidationError(ValueError):
    """設定値の検証に失敗したときに発生（失敗したフィールドをすべて保持）"""

    def __init__(self, errors: list[FieldError]):
        lines = ["Configuration validation failed:"]
        for err in errors:
            lines.append(f"  - Field '{err.field}': Failed on validation rule '{err.rule}'. Value: '{err.value}'")
        super().__init__("\n".join(lines))
        self.errors = errors


# -------------------------
# loading
# -------------------------
def resolve_config_file(config_file: Optional[str]) -> Optional[Path]:
    """
    読み込む設定ファイルを決める。

    指定ファイルが無い場合は FALLBACK_CONFIG_DIRS から `.env` を探す。
    どこにも無ければ None（デフォルト値と環境変数だけで動く）。
    """
    if config_file:
        path = Path(config_file)
        if path.is_file():
            return path
        logger.info(f"Config file '{config_file}' not found. Falling back to search for '{DEFAULT_CONFIG_FILE}' file.")

    for directory in FALLBACK_CONFIG_DIRS:
        candidate = Path(directory) / DEFAULT_CONFIG_FILE
        if candidate.is_file():
            logger.debug(f"Using fallback config file: {candidate}")
            return candidate

    logger.info(f"No '{DEFAULT_CONFIG_FILE}' config file found. Using defaults and environment variables.")
    return None


def _to_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in _TRUE_VALUES


def _collect(source: Mapping[str, Optional[str]]) -> dict[str, Any]:
    values: dict[str, Any] = {}
    for name, key in ENV_KEYS.items():
        raw = source.get(key)
        if raw is None or raw == "":
            continue
        values[name] = _to_bool(raw) if name == "vpn_check_connection" else raw.strip()
    return values


def load_settings(
    config_file: Optional[str] = DEFAULT_CONFIG_FILE,
    overrides: Optional[Mapping[str, Any]] = None,
    environ: Optional[Mapping[str, str]] = None,
    validate: bool = True,
) -> Settings:
    """
    デフォルト → 設定ファイル → 環境変数 → overrides の順に重ねて Settings を作る。

    Args:
        config_file (str, optional): 設定ファイルのパス
        overrides (Mapping, optional): コマンドライン引数など。値が None のキーは無視
        environ (Mapping, optional): 環境変数（テスト用。省略時は os.environ）
        validate (bool): True なら検証して失敗時に ConfigValidationError

    Returns:
        Settings: 確定した設定
    """
    environ = os.environ if environ is None else environ
    values: dict[str, Any] = {}

    resolved = resolve_config_file(config_file)
    if resolved is not None:
        logger.debug(f"Using config file: {resolved}")
        values.update(_collect(dotenv_values(resolved)))

    values.update(_collect(environ))

    known = {f.name for f in fields(Settings)}
    for key, value in (overrides or {}).items():
        if value is None:
            continue
        if key not in known:
            raise KeyError(f"Unknown setting: {key}")
        values[key] = value

    values.setdefault("config_file", str(config_file or DEFAULT_CONFIG_FILE))
    settings = replace(Settings(), **values)

    if validate:
        errors = validate_settings(settings)
        if errors:
            raise ConfigValidationError(errors)
    return settings


# -------------------------
# validation
# -------------------------
def _is_http_url(value: str) -> bool:
    parsed = urlparse(value)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def validate_settings(settings: Settings) -> list[FieldError]:
    errors: list[FieldError] = []

    def check(name: str, value: Any, rule: str, ok: bool) -> None:
        if not ok:
            errors.append(FieldError(field=name, rule=rule, value=value))

    def required_lowercase(name: str, value: str) -> bool:
        if not value:
            check(name, value, "required", False)
            return False
        check(name, value, "lowercase", value == value.lower())
        return True

    if required_lowercase("environment", settings.environment):
        check("environment", settings.environment, "oneof", settings.environment in SUPPORTED_ENVIRONMENTS)

    required_lowercase("gcp_project", settings.gcp_project)
    required_lowercase("gcp_region", settings.gcp_region)

    if required_lowercase("database_type", settings.database_type):
        check("database_type", settings.database_type, "oneof", settings.database_type in SUPPORTED_DATABASE_TYPES)

    target = settings.vpn_address_target
    if required_lowercase("vpn_address_target", target):
        check("vpn_address_target", target, "noUnderscore", "_" not in target)
        check("vpn_address_target", target, "http_url", _is_http_url(target))

    base = settings.gsa_base_account
    if required_lowercase("gsa_base_account", base):
        check("gsa_base_account", base, "noUnderscore", "_" not in base)
        check("gsa_base_account", base, "max", len(base) <= GSA_BASE_ACCOUNT_MAX_LENGTH)

    check("gsa_account", settings.gsa_account, "lowercase", settings.gsa_account == settings.gsa_account.lower())
    return errors


def log_settings(settings: Settings, context: str, log=None) -> None:
    """SETTINGS_FIELDS に沿って設定値を debug 出力する。"""
    log = log or logger
    log.debug(f"====> Values loaded in {context}")
    for name, accessor in SETTINGS_FIELDS:
        log.debug(f"Field: {name}, Value: {accessor(settings)}")
