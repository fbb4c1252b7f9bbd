from datetime import datetime

import pytest

from pires_cli.gcp.exceptions import GcpOperationError
from pires_cli.gcp.gcloud import GcloudClient
from pires_cli.gcp.postgresql import (
    build_audit_log_filter,
    build_conninfo,
    export_audit_logs,
    export_users_permissions,
    format_database_section,
    parse_table_grants,
)

NOW = datetime(2024, 5, 1, 12, 30, 45)


@pytest.fixture
def client(fake_runner):
    return GcloudClient(runner=fake_runner)


def test_build_conninfo():
    assert build_conninfo("10.0.0.5", "5432", "admin", "postgres") == (
        "host=10.0.0.5 port=5432 user=admin dbname=postgres sslmode=disable"
    )
    assert build_conninfo("db.example.com", "", "admin", "app", ssl_required=True).endswith("port=5432 user=admin dbname=app sslmode=require")


def test_parse_table_grants_groups_by_grantee_and_table():
    rows = [
        "app|public|orders|SELECT",
        "app|public|orders|INSERT",
        "app|public|users|SELECT",
        "reporting|public|orders|SELECT",
        "malformed row",
    ]

    assert parse_table_grants(rows) == {
        "app": {"public.orders": ["SELECT", "INSERT"], "public.users": ["SELECT"]},
        "reporting": {"public.orders": ["SELECT"]},
    }


def test_format_database_section():
    text = format_database_section("app", {"app": {"public.orders": ["SELECT", "INSERT"]}})

    assert " DATABASE: app" in text
    assert "  User/Role: app\n    - Table: public.orders\n      Permissions: SELECT, INSERT\n" in text


def test_format_database_section_without_permissions():
    assert "No specific user permissions found" in format_database_section("empty", {})


def test_export_users_permissions(client, fake_runner, tmp_path):
    fake_runner.queue(stdout="app\nprisma_migrate_shadow\nreporting\n")
    fake_runner.queue(stdout="app|public|orders|SELECT\napp|public|orders|UPDATE\n")
    fake_runner.queue(stderr="FATAL: permission denied for database reporting", returncode=2)

    path = export_users_permissions(
        client,
        "my-project",
        "nonprod-psql",
        "10.0.0.5",
        "admin",
        password="s3cret",
        output_dir=tmp_path / "reports",
        now=NOW,
    )

    assert path == tmp_path / "reports" / "my-project_nonprod-psql_database_permissions_20240501-123045.txt"
    report = path.read_text()
    assert report.startswith("User and Role Permissions Report for Instance: 'nonprod-psql'")
    assert "prisma_migrate_shadow" not in report
    assert "      Permissions: SELECT, UPDATE" in report
    assert "Could not query permissions in reporting" in report

    # データベース一覧 + app + reporting
    assert len(fake_runner.calls) == 3
    argv, env = fake_runner.calls[0]
    assert argv[0] == "psql"
    assert argv[1] == "host=10.0.0.5 port=5432 user=admin dbname=postgres sslmode=disable"
    assert env == {"PGPASSWORD": "s3cret"}
    assert "dbname=app " in fake_runner.calls[1][0][1]


def test_export_users_permissions_list_failure(client, fake_runner, tmp_path):
    fake_runner.queue(stderr="could not connect to server", returncode=2)

    with pytest.raises(GcpOperationError, match="database list"):
        export_users_permissions(client, "my-project", "nonprod-psql", "10.0.0.5", "admin", output_dir=tmp_path)

    assert list(tmp_path.iterdir()) == []


def test_export_users_permissions_invalid_regex(client):
    with pytest.raises(ValueError, match="Invalid regular expression"):
        export_users_permissions(client, "p", "i", "10.0.0.5", "admin", ignore_databases_regex="(")


def test_build_audit_log_filter():
    log_filter = build_audit_log_filter("my-project", "nonprod-psql")

    assert 'resource.labels.database_id="my-project:nonprod-psql"' in log_filter
    assert "cloudsql.googleapis.com%2Fpostgres.log" in log_filter
    assert 'textPayload:"statement: DELETE"' in log_filter


def test_export_audit_logs(client, fake_runner, tmp_path):
    fake_runner.queue(stdout="2024-05-01T12:00:00Z\tAUDIT: SESSION,1,1,WRITE,INSERT,,,statement: INSERT ...\n")

    path = export_audit_logs(client, "my-project", "nonprod-psql", output_dir=tmp_path, now=NOW)

    assert path.name == "my-project_nonprod-psql_audit_logs_20240501-123045.txt"
    assert "statement: INSERT" in path.read_text()
    argv = fake_runner.commands[0]
    assert argv[:3] == ("gcloud", "logging", "read")
    assert argv[-1] == "--format=value(timestamp,textPayload)"


def test_export_audit_logs_empty(client, fake_runner, tmp_path):
    fake_runner.queue(stdout="")

    with pytest.raises(GcpOperationError, match="cloudsql.enable_pgaudit"):
        export_audit_logs(client, "my-project", "nonprod-psql", output_dir=tmp_path)
