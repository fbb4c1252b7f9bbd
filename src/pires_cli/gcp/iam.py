"""
gcp.iam

サービスアカウント作成と IAM ロール付与。
"""

from __future__ import annotations

from pires_cli.core.logging import get_logger
from pires_cli.core.runner import CommandError
from pires_cli.gcp.exceptions import GcpOperationError, PermissionCheckError
from pires_cli.gcp.gcloud import GcloudClient

logger = get_logger(__name__)


def service_account_email(account_id: str, project_id: str) -> str:
    return f"{account_id}@{project_id}.iam.gserviceaccount.com"


def create_service_account(client: GcloudClient, project_id: str, account_id: str, description: str = "") -> str:
    """
    サービスアカウントを作成してメールアドレスを返す。既に存在する場合は警告のみ。

    Raises:
        ValueError: project_id / account_id が空の場合
        GcpOperationError: 作成に失敗した場合
    """
    if not project_id or not account_id:
        raise ValueError("projectID and accountID are required to create a service account")

    logger.info(f"Creating service account '{account_id}' in project '{project_id}'...")

    args = [
        "iam", "service-accounts", "create", account_id,
        "--display-name", account_id,
        "--project", project_id,
    ]  # fmt: skip
    if description:
        args += ["--description", description]

    email = service_account_email(account_id, project_id)
    try:
        client.run(*args)
    except CommandError as e:
        if "already exists" in e.stderr:
            logger.warning(f"Service account '{email}' already exists.")
            return email
        raise GcpOperationError(f"Failed to create service account '{account_id}' on project '{project_id}': {e}") from e

    logger.info(f"Service account '{account_id}' created successfully. Email: {email} on project '{project_id}'.")
    return email


def grant_role(client: GcloudClient, project_id: str, member: str, role: str) -> None:
    """
    プロジェクトの IAM ポリシーで member に role を付与する（既に付与済みでもエラーにならない）。

    member 例: "user:name@company.com", "serviceAccount:sa@project.iam.gserviceaccount.com"
    role 例: "roles/storage.objectViewer", "projects/<PROJECT_ID>/roles/<CUSTOM_ROLE_ID>"

    Raises:
        ValueError: 引数が空の場合
        PermissionCheckError: setIamPolicy の権限が無い場合
        GcpOperationError: それ以外で付与に失敗した場合
    """
    if not project_id or not member or not role:
        raise ValueError("projectID, member, and role are required to grant IAM role")

    logger.info(f"Granting role '{role}' to member '{member}' on project '{project_id}'...")

    try:
        client.run(
            "projects", "add-iam-policy-binding", project_id,
            "--member", member,
            "--role", role,
            "--condition=None",
            "--project", project_id,
        )  # fmt: skip
    except CommandError as e:
        if "PERMISSION_DENIED" in e.stderr and "resourcemanager.projects.setIamPolicy" in e.stderr:
            raise PermissionCheckError(f"Permission denied to set IAM policy for project '{project_id}': {e}") from e
        raise GcpOperationError(
            f"Failed to grant role '{role}' to member '{member}' on project '{project_id}': {e}"
        ) from e

    logger.info(f"Successfully granted (or ensured) role '{role}' to member '{member}' on project '{project_id}'.")
