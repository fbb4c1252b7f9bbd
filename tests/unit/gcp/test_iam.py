import pytest

from pires_cli.gcp.exceptions import GcpOperationError, PermissionCheckError
from pires_cli.gcp.gcloud import GcloudClient
from pires_cli.gcp.iam import create_service_account, grant_role, service_account_email


@pytest.fixture
def client(fake_runner):
    return GcloudClient(runner=fake_runner)


def test_service_account_email():
    assert service_account_email("app-gsa", "my-project") == "app-gsa@my-project.iam.gserviceaccount.com"


def test_create_service_account(client, fake_runner):
    email = create_service_account(client, "my-project", "app-gsa", description="App workload")

    assert email == "app-gsa@my-project.iam.gserviceaccount.com"
    assert fake_runner.commands == [
        (
            "gcloud", "iam", "service-accounts", "create", "app-gsa",
            "--display-name", "app-gsa",
            "--project", "my-project",
            "--description", "App workload",
        )
    ]  # fmt: skip


def test_create_service_account_without_description(client, fake_runner):
    create_service_account(client, "my-project", "app-gsa")

    assert "--description" not in fake_runner.commands[0]


def test_create_service_account_already_exists(client, fake_runner, caplog):
    fake_runner.queue(stderr="ERROR: (gcloud.iam.service-accounts.create) Resource already exists", returncode=1)

    with caplog.at_level("WARNING", logger="pires_cli"):
        email = create_service_account(client, "my-project", "app-gsa")

    assert email == "app-gsa@my-project.iam.gserviceaccount.com"
    assert "already exists" in caplog.text


def test_create_service_account_failure(client, fake_runner):
    fake_runner.queue(stderr="ERROR: invalid account id", returncode=1)

    with pytest.raises(GcpOperationError, match="invalid account id"):
        create_service_account(client, "my-project", "Bad_ID")


def test_create_service_account_requires_arguments(client):
    with pytest.raises(ValueError):
        create_service_account(client, "my-project", "")


def test_grant_role(client, fake_runner):
    grant_role(client, "my-project", "serviceAccount:app-gsa@my-project.iam.gserviceaccount.com", "roles/cloudsql.editor")

    assert fake_runner.commands == [
        (
            "gcloud", "projects", "add-iam-policy-binding", "my-project",
            "--member", "serviceAccount:app-gsa@my-project.iam.gserviceaccount.com",
            "--role", "roles/cloudsql.editor",
            "--condition=None",
            "--project", "my-project",
        )
    ]  # fmt: skip


def test_grant_role_permission_denied(client, fake_runner):
    fake_runner.queue(
        stderr="ERROR: PERMISSION_DENIED: Policy update access denied. resourcemanager.projects.setIamPolicy",
        returncode=1,
    )

    with pytest.raises(PermissionCheckError, match="Permission denied to set IAM policy"):
        grant_role(client, "my-project", "user:someone@example.com", "roles/viewer")


def test_grant_role_other_failure(client, fake_runner):
    fake_runner.queue(stderr="ERROR: role not found", returncode=1)

    with pytest.raises(GcpOperationError):
        grant_role(client, "my-project", "user:someone@example.com", "roles/nope")


@pytest.mark.parametrize("member, role", [("", "roles/viewer"), ("user:a@example.com", "")])
def test_grant_role_requires_arguments(client, member, role):
    with pytest.raises(ValueError):
        grant_role(client, "my-project", member, role)
