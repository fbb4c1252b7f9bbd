"""
gcp.gcloud

gcloud / psql コマンドの実行ラッパー。どちらも PATH 上にある前提。
"""

from __future__ import annotations

from typing import Optional

from pires_cli.core.logging import get_logger
from pires_cli.core.runner import CommandError, CommandResult, CommandRunner, SubprocessRunner

logger = get_logger(__name__)


class GcloudClient:
    def __init__(self, runner: Optional[CommandRunner] = None) -> None:
        self.runner = runner or SubprocessRunner()

    def run(self, *args: str) -> CommandResult:
        """
        gcloud を実行する。

        Raises:
            CommandError: 0 以外で終了した場合（stderr を含む）
        """
        return self._run("gcloud", args)

    def run_psql(self, *args: str, password: Optional[str] = None) -> CommandResult:
        """
        psql を実行する。password は PGPASSWORD 環境変数で渡す。

        Raises:
            CommandError: 0 以外で終了した場合（stderr を含む）
        """
        env = {"PGPASSWORD": password} if password else None
        return self._run("psql", args, env=env)

    def _run(self, executable: str, args: tuple[str, ...], env: Optional[dict[str, str]] = None) -> CommandResult:
        result = self.runner.run([executable, *args], env=env)
        if not result.ok:
            raise CommandError(result, f"{executable} command '{result.command_line}' failed (exit code {result.returncode})")
        if result.stderr:
            logger.info(f"{executable} command stderr (exit code 0):\n{result.stderr}")
        return result
