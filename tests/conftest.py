import os
import sys

import pytest

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "../src")))

from pires_cli.core.runner import CommandResult  # noqa: E402


class FakeRunner:
    """
    CommandRunner のテスト用実装。

    queue() で積んだ結果を順番に返し、呼び出し引数を calls に記録する。
    結果が尽きたら空の成功結果を返す。
    """

    def __init__(self):
        self.calls = []
        self._responses = []

    def queue(self, stdout="", stderr="", returncode=0):
        self._responses.append((stdout, stderr, returncode))
        return self

    def run(self, args, *, env=None):
        argv = tuple(str(a) for a in args)
        self.calls.append((argv, dict(env) if env else None))
        stdout, stderr, returncode = self._responses.pop(0) if self._responses else ("", "", 0)
        return CommandResult(args=argv, stdout=stdout, stderr=stderr, returncode=returncode)

    @property
    def commands(self):
        return [argv for argv, _ in self.calls]


# === fixtures ===
@pytest.fixture
def fake_runner():
    return FakeRunner()


@pytest.fixture
def fixtures_dir():
    return os.path.join(os.path.dirname(__file__), "fixtures")


@pytest.fixture
def clean_cli_env(monkeypatch):
    """CLI_ で始まる環境変数を取り除く。"""
    for key in list(os.environ):
        if key.startswith("CLI_"):
            monkeypatch.delenv(key, raising=False)
