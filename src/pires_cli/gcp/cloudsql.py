"""
gcp.cloudsql

Cloud SQL のユーザー・データベース作成。
"""

from __future__ import annotations

from pires_cli.core.logging import get_logger
from pires_cli.core.runner import CommandError
from pires_cli.gcp.exceptions import GcpOperationError
from pires_cli.gcp.gcloud import GcloudClient

logger = get_logger(__name__)

DEFAULT_SOURCE_HOST = "%"
DEFAULT_CHARSET = "UTF8"
DEFAULT_COLLATION = "en_US.UTF8"


def create_user(
    client: GcloudClient,
    project_id: str,
    instance_id: str,
    user_name: str,
    password: str,
    host: str = DEFAULT_SOURCE_HOST,
) -> None:
    """
    Cloud SQL インスタンスにユーザーを作成する。既に存在する場合は警告のみ。

    Raises:
        ValueError: 必須引数またはパスワードが空の場合
        GcpOperationError: 作成に失敗した場合
    """
    if not project_id or not instance_id or not user_name:
        raise ValueError("projectID, instanceID and userName are required to create SQL user.")
    if not password:
        raise ValueError(f"No password provided for SQL user '{user_name}'.")

    host = host or DEFAULT_SOURCE_HOST
    logger.info(
        f"Creating SQL user '{user_name}' for instance '{instance_id}' on project '{project_id}' "
        f"(source-host: '{host}')..."
    )

    try:
        client.run(
            "sql", "users", "create", user_name,
            "--instance", instance_id,
            "--host", host,
            "--project", project_id,
            "--password", password,
        )  # fmt: skip
    except CommandError as e:
        if "already exists" in e.stderr:
            logger.warning(
                f"SQL user '{user_name}'@'{host}' already exists on instance '{instance_id}' on project '{project_id}'."
            )
            return
        raise GcpOperationError(
            f"Failed to create SQL user '{user_name}' on instance '{instance_id}' on project '{project_id}': {e}"
        ) from e

    logger.info(
        f"SQL user '{user_name}'@'{host}' created successfully for instance '{instance_id}' on project '{project_id}'."
    )


def create_database(
    client: GcloudClient,
    project_id: str,
    instance_id: str,
    db_name: str,
    charset: str = DEFAULT_CHARSET,
    collation: str = DEFAULT_COLLATION,
) -> None:
    """
    Cloud SQL インスタンスにデータベースを作成する。既に存在する場合は警告のみ。

    Raises:
        ValueError: 必須引数が空の場合
        GcpOperationError: 作成に失敗した場合
    """
    if not project_id or not instance_id or not db_name:
        raise ValueError("projectID, instanceID, and dbName are required to create SQL database.")

    logger.info(f"Creating SQL database '{db_name}' for instance '{instance_id}' on project '{project_id}' ...")

    args = [
        "sql", "databases", "create", db_name,
        "--instance", instance_id,
        "--project", project_id,
    ]  # fmt: skip
    if charset:
        args += ["--charset", charset]
    if collation:
        args += ["--collation", collation]

    try:
        client.run(*args)
    except CommandError as e:
        if "already exists" in e.stderr:
            logger.warning(
                f"SQL database '{db_name}' already exists on instance '{instance_id}' on project '{project_id}'."
            )
            return
        raise GcpOperationError(
            f"Failed to create SQL database '{db_name}' on instance '{instance_id}' on project '{project_id}': {e}"
        ) from e

    logger.info(f"SQL database '{db_name}' created successfully for instance '{instance_id}' on project '{project_id}'.")
