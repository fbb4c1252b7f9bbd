"""
core.logging.app_logger

CLI 全体で共通して使うログユーティリティ。

- ロギング設定は YAML ファイルから dictConfig で読み込む
- Singleton パターンで logger インスタンスを管理
- 設定ファイルが見つからない場合は basicConfig にフォールバック

探索優先順位:
1) 明示的に渡された config_file
2) 環境変数 PIRES_CLI_LOG_CONFIG
3) <project_root>/config/logging_config.yaml
4) パッケージ同梱の logging_config.yaml
"""

from __future__ import annotations

import atexit
import logging
import logging.config
import os
import threading
from pathlib import Path
from typing import Optional

import yaml

LOG_CONFIG_ENV = "PIRES_CLI_LOG_CONFIG"
ROOT_LOGGER_NAME = "pires_cli"


class AppLogger:
    """
    アプリケーション用のロガー管理クラス（Singleton）。

    引数:
        project_root (Optional[str]): ログディレクトリと設定ファイル探索の基点
        config_file (Optional[str]): 明示的にロギング設定ファイルを指定したい場合のパス
        logger_name (str): 作成するロガーの名前
    """

    _instance = None
    _lock = threading.Lock()

    def __new__(cls, *args, **kwargs):
        with cls._lock:
            if cls._instance is None:
                cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(
        self,
        project_root: Optional[str] = None,
        config_file: Optional[str] = None,
        logger_name: str = ROOT_LOGGER_NAME,
    ):
        # 初期化済みでも logger_name だけは反映する
        if getattr(self, "_initialized", False):
            if getattr(self, "_logger_name", None) != logger_name:
                self.logger = logging.getLogger(logger_name)
                self._logger_name = logger_name
            return

        if project_root is None:
            project_root = os.getcwd()

        self.project_root = str(project_root)
        self._logger_name = logger_name

        try:
            (Path(self.project_root) / "logs").mkdir(parents=True, exist_ok=True)
        except OSError:
            # 読み取り専用の環境でも落とさない
            pass

        resolved = self._resolve_logging_config_path(project_root=self.project_root, config_file=config_file)
        self.config_path = resolved

        if resolved is not None:
            try:
                with resolved.open("r", encoding="utf-8") as f:
                    cfg = yaml.safe_load(f)
                if not isinstance(cfg, dict):
                    raise ValueError("Invalid config format (expected dict)")
                logging.config.dictConfig(cfg)
            except (yaml.YAMLError, ValueError, OSError) as e:
                logging.basicConfig(level=logging.INFO)
                logging.getLogger(ROOT_LOGGER_NAME).warning(
                    f"Error loading logging config {resolved}: {e}. Using default logging settings."
                )
        else:
            logging.basicConfig(level=logging.INFO)

        self.logger = logging.getLogger(logger_name)
        self.logger.debug(f"Logging configured from {resolved or 'basicConfig defaults'}")

        atexit.register(self.cleanup)

        self._initialized = True

    # -----------------------------
    # config path resolution
    # -----------------------------
    def _logging_config_candidates(self, project_root: str, config_file: Optional[str]) -> list[Path]:
        candidates: list[Path] = []

        if config_file:
            candidates.append(Path(config_file))

        env = os.getenv(LOG_CONFIG_ENV)
        if env:
            candidates.append(Path(env))

        if project_root:
            candidates.append(Path(project_root) / "config" / "logging_config.yaml")

        candidates.append(Path(__file__).resolve().parent / "logging_config.yaml")

        # de-dup while keeping order
        out: list[Path] = []
        seen: set[str] = set()
        for p in candidates:
            key = str(p)
            if key not in seen:
                seen.add(key)
                out.append(p)
        return out

    def _resolve_logging_config_path(self, project_root: str, config_file: Optional[str]) -> Optional[Path]:
        for p in self._logging_config_candidates(project_root=project_root, config_file=config_file):
            if p.is_file():
                return p
        return None

    # -----------------------------
    # logger facade
    # -----------------------------
    def set_level(self, level: int | str) -> None:
        """`pires_cli` 配下のロガー全体のレベルを変更する（-D/--debug 用）。"""
        if isinstance(level, str):
            level = getattr(logging, level.upper(), logging.INFO)
        logging.getLogger(ROOT_LOGGER_NAME).setLevel(level)
        self.logger.setLevel(level)

    def get_logger(self) -> logging.Logger:
        return self.logger

    def cleanup(self) -> None:
        for handler in self.logger.handlers[:]:
            self.logger.removeHandler(handler)
            handler.close()


def get_logger(name: str) -> logging.Logger:
    """
    モジュール用のロガーを返す。

    AppLogger の初期化（dictConfig）は CLI のエントリポイントで行うため、
    ここでは `pires_cli` 階層のロガーを取得するだけにとどめる。
    """
    if not name.startswith(ROOT_LOGGER_NAME):
        name = f"{ROOT_LOGGER_NAME}.{name}"
    return logging.getLogger(name)


# エイリアスとして公開
Logger = AppLogger
