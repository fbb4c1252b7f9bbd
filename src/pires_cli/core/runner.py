"""
core.runner

外部コマンド（gcloud / psql / yq）の実行境界。

オーケストレーション側は CommandRunner を受け取って呼び出すだけにし、
テストではフェイクの runner を差し込めるようにしておく。
"""

from __future__ import annotations

import os
import shlex
import subprocess
from dataclasses import dataclass
from typing import Mapping, Optional, Protocol, Sequence

from pires_cli.core.logging import get_logger

logger = get_logger(__name__)

# シェルが「コマンドが見つからない」ときに返す終了コード
EXIT_COMMAND_NOT_FOUND = 127

# ログやエラーメッセージで値を伏せるオプション
SENSITIVE_FLAGS = ("--password",)
REDACTED = "******"


def redact_args(args: Sequence[str]) -> list[str]:
    """SENSITIVE_FLAGS の値（`--password x` / `--password=x`）を伏せた引数リストを返す。"""
    out: list[str] = []
    hide_next = False
    for arg in args:
        if hide_next:
            out.append(REDACTED)
            hide_next = False
            continue
        flag, sep, _ = arg.partition("=")
        if flag in SENSITIVE_FLAGS:
            if sep:
                out.append(f"{flag}={REDACTED}")
            else:
                out.append(arg)
                hide_next = True
            continue
        out.append(arg)
    return out


@dataclass(frozen=True)
class CommandResult:
    args: tuple[str, ...]
    stdout: str
    stderr: str
    returncode: int

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def command_line(self) -> str:
        return shlex.join(redact_args(self.args))


class CommandError(Exception):
    """外部コマンドが失敗したときに発生"""

    def __init__(self, result: CommandResult, message: Optional[str] = None):
        message = message or f"command '{result.command_line}' failed (exit code {result.returncode})"
        if result.stderr:
            message = f"{message}\nStderr: {result.stderr.strip()}"
        super().__init__(message)
        self.result = result

    @property
    def returncode(self) -> int:
        return self.result.returncode

    @property
    def stdout(self) -> str:
        return self.result.stdout

    @property
    def stderr(self) -> str:
        return self.result.stderr


class CommandRunner(Protocol):
    def run(self, args: Sequence[str], *, env: Optional[Mapping[str, str]] = None) -> CommandResult: ...


class SubprocessRunner:
    """subprocess.run で実際にコマンドを実行する runner。"""

    def __init__(self, timeout: Optional[float] = None) -> None:
        self.timeout = timeout

    def run(self, args: Sequence[str], *, env: Optional[Mapping[str, str]] = None) -> CommandResult:
        argv = tuple(str(a) for a in args)
        merged_env = None
        if env:
            merged_env = dict(os.environ)
            merged_env.update(env)

        logger.debug(f"Executing command: {shlex.join(redact_args(argv))}")
        try:
            completed = subprocess.run(
                list(argv),
                capture_output=True,
                text=True,
                env=merged_env,
                timeout=self.timeout,
                check=False,
            )
        except FileNotFoundError as e:
            result = CommandResult(args=argv, stdout="", stderr=str(e), returncode=EXIT_COMMAND_NOT_FOUND)
            raise CommandError(result, f"executable '{argv[0]}' not found in PATH") from e
        except subprocess.TimeoutExpired as e:
            result = CommandResult(args=argv, stdout="", stderr="", returncode=-1)
            raise CommandError(result, f"command '{result.command_line}' timed out after {self.timeout}s") from e

        return CommandResult(
            args=argv,
            stdout=completed.stdout or "",
            stderr=completed.stderr or "",
            returncode=completed.returncode,
        )
