"""
yamlmerge.yq

`yq` (https://mikefarah.gitbook.io/yq) を使った YAML の参照・インプレース編集。

yq 実行ファイルの解決は YqLocator が一度だけ行い、結果を使い回す。
"""

from __future__ import annotations

import os
import shutil
import threading
from pathlib import Path
from typing import Optional, Union

from pires_cli.constants import PERMISSION_DIR, YAML_PATCH_SUFFIXES, YAML_SUFFIXES
from pires_cli.core.logging import get_logger
from pires_cli.core.runner import CommandError, CommandRunner, SubprocessRunner
from pires_cli.yamlmerge.exceptions import YamlMergeError
from pires_cli.yamlmerge.files import has_any_suffix

logger = get_logger(__name__)

YQ_PATH_ENV = "PIRES_CLI_YQ"


class YqNotFoundError(YamlMergeError):
    """yq 実行ファイルが見つからないときに発生"""

    def __init__(self, searched: list[str]):
        super().__init__("yq executable not found. Searched: " + ", ".join(searched))
        self.searched = searched


class YqLocator:
    """
    yq 実行ファイルのパスを遅延解決する。

    探索順: 明示パス → 環境変数 PIRES_CLI_YQ → PATH 上の `yq`。
    最初に成功した結果をキャッシュし、以降の acquire() はそれを返す。
    """

    def __init__(self, explicit_path: Optional[str] = None) -> None:
        self.explicit_path = explicit_path
        self._path: Optional[str] = None
        self._lock = threading.Lock()

    def acquire(self) -> str:
        with self._lock:
            if self._path is None:
                self._path = self._locate()
                logger.debug(f"yq executable resolved at: {self._path}")
            return self._path

    def _locate(self) -> str:
        searched: list[str] = []
        for candidate in (self.explicit_path, os.getenv(YQ_PATH_ENV)):
            if not candidate:
                continue
            searched.append(candidate)
            if os.path.isfile(candidate) and os.access(candidate, os.X_OK):
                return candidate

        searched.append("yq (PATH)")
        found = shutil.which("yq")
        if found:
            return found
        raise YqNotFoundError(searched)


class YqClient:
    def __init__(self, runner: Optional[CommandRunner] = None, locator: Optional[YqLocator] = None) -> None:
        self.runner = runner or SubprocessRunner()
        self.locator = locator or YqLocator()

    def run(self, *args: str) -> str:
        """
        yq を実行して、前後の空白を除いた標準出力を返す。

        Raises:
            YqNotFoundError: yq が見つからない場合
            CommandError: yq が 0 以外で終了した場合
        """
        result = self.runner.run([self.locator.acquire(), *args])
        if not result.ok:
            raise CommandError(result, f"yq command failed (exit code {result.returncode})")
        if result.stderr:
            logger.warning(f"yq command stderr (exit code 0):\n{result.stderr}")
        return result.stdout.strip()

    def get_value(self, file_path: Union[str, Path], expression: str) -> str:
        """
        yq 式で YAML ファイルから値を取り出す。

        例: ".spec.replicas", ".metadata.name"
        """
        if not str(file_path):
            raise ValueError("File path cannot be empty")
        if not expression:
            raise ValueError("yq expression cannot be empty")
        return self.run("eval", expression, str(file_path))

    def modify_in_place(self, file_path: Union[str, Path], expression: str) -> None:
        """
        yq 式で YAML ファイルをインプレース編集する。

        対象ファイルや親ディレクトリが存在しない場合は先に作成する。

        例:
          - `.metadata.name = "new-name"`
          - `del(.metadata.annotations)`
          - `.spec.containers += [{"name": "sidecar", "image": "sidecar:latest"}]`
        """
        if not str(file_path):
            raise ValueError("File path cannot be empty")
        if not expression:
            raise ValueError("yq expression cannot be empty")

        path = Path(file_path)
        if not path.parent.exists():
            logger.debug(f"Directory '{path.parent}' not found, creating it.")
            path.parent.mkdir(mode=PERMISSION_DIR, parents=True, exist_ok=True)
        if not path.exists():
            logger.debug(f"File '{path}' not found, creating it.")
            path.touch()

        self.run("eval", "-i", expression, str(path))

    def apply_recursively(self, root_dir: Union[str, Path], expression: str) -> list[Path]:
        """
        root_dir 配下のすべての YAML ファイルに yq 式をインプレース適用する。

        Returns:
            list[Path]: 適用したファイルの一覧
        """
        if not str(root_dir):
            raise ValueError("Root directory path cannot be empty")
        if not expression:
            raise ValueError("yq expression cannot be empty")

        applied: list[Path] = []
        for path in sorted(Path(root_dir).rglob("*")):
            if path.is_dir():
                continue
            if not has_any_suffix(path.name, *YAML_SUFFIXES, *YAML_PATCH_SUFFIXES):
                logger.debug(f"Skipping non-YAML file: {path}")
                continue
            self.run("eval", "-i", expression, str(path))
            logger.debug(f"Successfully applied yq expression to: {path}")
            applied.append(path)
        return applied
