import os
import stat
from datetime import datetime
from pathlib import Path

import pytest

from pires_cli.constants import GCP_FIREWALL_RULES_FORMAT, is_zone
from pires_cli.gcp.exceptions import GcpOperationError
from pires_cli.gcp.firewall import export_firewall_rules_to_csv
from pires_cli.gcp.gcloud import GcloudClient
from pires_cli.gcp.gke import connect_to_cluster
from pires_cli.gcp.reports import report_timestamp, write_report

CSV = "name,network,direction,priority\nallow-ssh,default,INGRESS,1000\n"


@pytest.fixture
def client(fake_runner):
    return GcloudClient(runner=fake_runner)


def test_report_timestamp():
    assert report_timestamp(datetime(2024, 1, 2, 3, 4, 5)) == "20240102-030405"


def test_write_report_creates_directory(tmp_path):
    path = write_report(tmp_path / "a" / "b", "report.txt", "hello")

    assert path.read_text() == "hello"
    assert stat.S_IMODE(os.stat(path).st_mode) == 0o644


def test_write_report_defaults_to_current_directory(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)

    path = write_report("", "report.txt", "hello")

    assert (tmp_path / "report.txt").read_text() == "hello"
    assert path == Path("report.txt")


def test_export_firewall_rules_to_csv(client, fake_runner, tmp_path):
    fake_runner.queue(stdout=CSV)

    path = export_firewall_rules_to_csv(client, "my-project", output_dir=tmp_path, now=datetime(2024, 1, 2, 3, 4, 5))

    assert path.name == "gcp-firewall-rules-my-project-20240102-030405.csv"
    assert path.read_text() == CSV
    assert fake_runner.commands == [
        (
            "gcloud", "compute", "firewall-rules", "list",
            "--project", "my-project",
            f"--format={GCP_FIREWALL_RULES_FORMAT}",
        )
    ]  # fmt: skip


def test_export_firewall_rules_rejects_output_type(client, fake_runner, tmp_path):
    with pytest.raises(ValueError, match="Unsupported output type"):
        export_firewall_rules_to_csv(client, "my-project", output_dir=tmp_path, output_type="json")
    assert fake_runner.calls == []


def test_export_firewall_rules_empty_output_warns(client, fake_runner, tmp_path, caplog):
    fake_runner.queue(stdout="")

    with caplog.at_level("WARNING", logger="pires_cli"):
        path = export_firewall_rules_to_csv(client, "my-project", output_dir=tmp_path)

    assert path.exists()
    assert "No firewall rules" in caplog.text


def test_export_firewall_rules_failure(client, fake_runner, tmp_path):
    fake_runner.queue(stderr="API not enabled", returncode=1)

    with pytest.raises(GcpOperationError, match="API not enabled"):
        export_firewall_rules_to_csv(client, "my-project", output_dir=tmp_path)


@pytest.mark.parametrize(
    "location, expected",
    [("us-central1-a", True), ("us-central1", False), ("europe-west4-b", True), ("global", False)],
)
def test_is_zone(location, expected):
    assert is_zone(location) is expected


@pytest.mark.parametrize(
    "location, flag",
    [("us-central1-a", "--zone"), ("us-central1", "--region")],
)
def test_connect_to_cluster(client, fake_runner, location, flag):
    connect_to_cluster(client, "my-project", location, "main")

    assert fake_runner.commands == [
        ("gcloud", "container", "clusters", "get-credentials", "main", flag, location, "--project", "my-project")
    ]


def test_connect_to_cluster_failure(client, fake_runner):
    fake_runner.queue(stderr="cluster not found", returncode=1)

    with pytest.raises(GcpOperationError, match="cluster not found"):
        connect_to_cluster(client, "my-project", "us-central1", "missing")
