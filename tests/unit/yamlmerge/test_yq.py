import logging
import os
import threading

import pytest

from pires_cli.core.runner import CommandError
from pires_cli.yamlmerge.yq import YQ_PATH_ENV, YqClient, YqLocator, YqNotFoundError


@pytest.fixture
def yq_binary(tmp_path):
    path = tmp_path / "bin" / "yq"
    path.parent.mkdir()
    path.write_text("#!/bin/sh\nexit 0\n")
    path.chmod(0o755)
    return str(path)


@pytest.fixture
def client(fake_runner, yq_binary):
    return YqClient(runner=fake_runner, locator=YqLocator(explicit_path=yq_binary))


# -------------------------
# YqLocator
# -------------------------
def test_locator_prefers_explicit_path(yq_binary, monkeypatch):
    monkeypatch.setenv(YQ_PATH_ENV, "/does/not/exist")
    assert YqLocator(explicit_path=yq_binary).acquire() == yq_binary


def test_locator_uses_env_var(yq_binary, monkeypatch):
    monkeypatch.setenv(YQ_PATH_ENV, yq_binary)
    assert YqLocator().acquire() == yq_binary


def test_locator_falls_back_to_path(yq_binary, monkeypatch):
    monkeypatch.delenv(YQ_PATH_ENV, raising=False)
    monkeypatch.setenv("PATH", os.path.dirname(yq_binary))
    assert YqLocator().acquire() == yq_binary


def test_locator_not_found(tmp_path, monkeypatch):
    monkeypatch.delenv(YQ_PATH_ENV, raising=False)
    monkeypatch.setenv("PATH", str(tmp_path))

    with pytest.raises(YqNotFoundError) as excinfo:
        YqLocator(explicit_path=str(tmp_path / "missing-yq")).acquire()

    assert str(tmp_path / "missing-yq") in excinfo.value.searched


def test_locator_caches_first_success(yq_binary, monkeypatch):
    locator = YqLocator(explicit_path=yq_binary)
    first = locator.acquire()

    os.remove(yq_binary)

    assert locator.acquire() == first


def test_locator_acquire_is_safe_across_threads(yq_binary):
    locator = YqLocator(explicit_path=yq_binary)
    results = []

    threads = [threading.Thread(target=lambda: results.append(locator.acquire())) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert results == [yq_binary] * 8


# -------------------------
# YqClient
# -------------------------
def test_get_value(client, fake_runner, yq_binary):
    fake_runner.queue(stdout="web\n")

    assert client.get_value("pod.yaml", ".metadata.name") == "web"
    assert fake_runner.commands == [(yq_binary, "eval", ".metadata.name", "pod.yaml")]


def test_run_failure_raises_command_error(client, fake_runner):
    fake_runner.queue(stderr="Error: bad expression", returncode=1)

    with pytest.raises(CommandError) as excinfo:
        client.get_value("pod.yaml", ".[")

    assert excinfo.value.returncode == 1
    assert "bad expression" in str(excinfo.value)


def test_run_logs_stderr_on_success(client, fake_runner, caplog):
    fake_runner.queue(stdout="1", stderr="deprecated flag")

    with caplog.at_level(logging.WARNING, logger="pires_cli"):
        client.run("eval", ".a", "x.yaml")

    assert "deprecated flag" in caplog.text


@pytest.mark.parametrize("path, expression", [("", ".a"), ("x.yaml", "")])
def test_get_value_rejects_empty_arguments(client, path, expression):
    with pytest.raises(ValueError):
        client.get_value(path, expression)


def test_modify_in_place_creates_missing_file(client, fake_runner, tmp_path, yq_binary):
    target = tmp_path / "new" / "dir" / "values.yaml"

    client.modify_in_place(target, '.image.tag = "1.2.3"')

    assert target.is_file()
    assert fake_runner.commands == [(yq_binary, "eval", "-i", '.image.tag = "1.2.3"', str(target))]


def test_apply_recursively_targets_yaml_and_patch_files(client, fake_runner, tmp_path):
    (tmp_path / "a.yaml").write_text("a: 1\n")
    (tmp_path / "sub").mkdir()
    (tmp_path / "sub" / "b.yml").write_text("b: 1\n")
    (tmp_path / "sub" / "c.patch.yaml").write_text("- op: add\n")
    (tmp_path / "README.md").write_text("# docs\n")

    applied = client.apply_recursively(tmp_path, "del(.a)")

    assert sorted(p.name for p in applied) == ["a.yaml", "b.yml", "c.patch.yaml"]
    assert all(argv[1:4] == ("eval", "-i", "del(.a)") for argv in fake_runner.commands)
    assert len(fake_runner.commands) == 3


def test_apply_recursively_stops_on_failure(client, fake_runner, tmp_path):
    (tmp_path / "a.yaml").write_text("a: 1\n")
    (tmp_path / "b.yaml").write_text("b: 1\n")
    fake_runner.queue(returncode=1, stderr="boom")

    with pytest.raises(CommandError):
        client.apply_recursively(tmp_path, ".x = 1")

    assert len(fake_runner.commands) == 1
