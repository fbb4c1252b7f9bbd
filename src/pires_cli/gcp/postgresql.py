"""
gcp.postgresql

Cloud SQL for PostgreSQL のユーザー権限レポートと監査ログのエクスポート。

- 権限レポート: psql で各データベースの information_schema.role_table_grants を集計
- 監査ログ: gcloud logging read で pgaudit の DML ログを取得
  （インスタンスで 'cloudsql.enable_pgaudit' フラグが有効である必要がある）
"""

from __future__ import annotations

import re
from datetime import datetime
from pathlib import Path
from typing import Optional, Union

from pires_cli.core.logging import get_logger
from pires_cli.core.runner import CommandError
from pires_cli.gcp.exceptions import GcpOperationError
from pires_cli.gcp.gcloud import GcloudClient
from pires_cli.gcp.reports import report_timestamp, write_report

logger = get_logger(__name__)

DEFAULT_PORT = "5432"
DEFAULT_IGNORE_DATABASES_REGEX = "^prisma_migrate"
FIELD_SEPARATOR = "|"
REPORT_RULE = "=" * 40

PGAUDIT_DOCS = "https://cloud.google.com/sql/docs/postgres/flags and https://cloud.google.com/sql/docs/postgres/pg-audit"

LIST_DATABASES_QUERY = "SELECT datname FROM pg_database WHERE datistemplate = false ORDER BY datname;"

TABLE_GRANTS_QUERY = """
SELECT
    grantee,
    table_schema,
    table_name,
    privilege_type
FROM
    information_schema.role_table_grants
WHERE
    grantee != 'postgres' AND grantee NOT LIKE 'pg_%' AND grantee NOT LIKE 'cloudsql%'
ORDER BY
    grantee, table_schema, table_name;
"""

# grantee -> table -> [privileges]
Permissions = dict[str, dict[str, list[str]]]


def build_conninfo(address: str, port: str, user: str, dbname: str, ssl_required: bool = False) -> str:
    sslmode = "require" if ssl_required else "disable"
    return f"host={address} port={port or DEFAULT_PORT} user={user} dbname={dbname} sslmode={sslmode}"


def _psql_query(client: GcloudClient, conninfo: str, query: str, password: Optional[str]) -> list[str]:
    result = client.run_psql(
        conninfo,
        "--no-psqlrc",
        "--tuples-only",
        "--no-align",
        f"--field-separator={FIELD_SEPARATOR}",
        "--command",
        query,
        password=password,
    )
    return [line for line in result.stdout.splitlines() if line.strip()]


def parse_table_grants(lines: list[str]) -> Permissions:
    """
    `grantee|schema|table|privilege` 形式の行を grantee -> table -> 権限リストにまとめる。

    列数が合わない行は警告を出して読み飛ばす。
    """
    permissions: Permissions = {}
    for line in lines:
        parts = [p.strip() for p in line.split(FIELD_SEPARATOR)]
        if len(parts) != 4:
            logger.warning(f"Failed to parse permission row: {line!r}")
            continue
        grantee, schema, table, privilege = parts
        tables = permissions.setdefault(grantee, {})
        tables.setdefault(f"{schema}.{table}", []).append(privilege)
    return permissions


def format_database_section(db_name: str, permissions: Permissions) -> str:
    lines = [REPORT_RULE, f" DATABASE: {db_name}", REPORT_RULE, ""]
    if not permissions:
        lines.append("No specific user permissions found on tables in this database.")
        lines.append("")
        return "\n".join(lines) + "\n"

    for grantee, tables in permissions.items():
        lines.append(f"  User/Role: {grantee}")
        for table, privileges in tables.items():
            lines.append(f"    - Table: {table}")
            lines.append(f"      Permissions: {', '.join(privileges)}")
        lines.append("")
    return "\n".join(lines) + "\n"


def export_users_permissions(
    client: GcloudClient,
    project_id: str,
    instance_id: str,
    address: str,
    user: str,
    password: Optional[str] = None,
    port: str = DEFAULT_PORT,
    output_dir: Union[str, Path, None] = "",
    ignore_databases_regex: str = DEFAULT_IGNORE_DATABASES_REGEX,
    ssl_required: bool = False,
    now: Optional[datetime] = None,
) -> Path:
    """
    全データベースのテーブル単位の権限を .txt レポートに書き出す。

    個別データベースへの接続・クエリ失敗はレポートに記録して次へ進む。

    Returns:
        Path: 書き出したレポートのパス

    Raises:
        ValueError: 必須引数が空、または ignore_databases_regex が不正な場合
        GcpOperationError: データベース一覧の取得に失敗した場合
    """
    if not instance_id or not address or not user:
        raise ValueError("instanceID, address and user are required to export PostgreSQL permissions.")

    try:
        ignore = re.compile(ignore_databases_regex) if ignore_databases_regex else None
    except re.error as e:
        raise ValueError(f"Invalid regular expression to ignore databases '{ignore_databases_regex}': {e}") from e

    logger.info(f"Exporting user permissions from instance '{instance_id}' in project '{project_id}'")

    try:
        db_names = _psql_query(
            client, build_conninfo(address, port, user, "postgres", ssl_required), LIST_DATABASES_QUERY, password
        )
    except CommandError as e:
        raise GcpOperationError(f"Failed to query for database list on instance '{instance_id}': {e}") from e

    sections = [f"User and Role Permissions Report for Instance: '{instance_id}'\n\n"]
    for db_name in (name.strip() for name in db_names):
        if ignore is not None and ignore.search(db_name):
            logger.info(f"Ignoring database: {db_name}")
            continue

        logger.info(f"Checking permissions in database: {db_name}")
        try:
            rows = _psql_query(
                client, build_conninfo(address, port, user, db_name, ssl_required), TABLE_GRANTS_QUERY, password
            )
        except CommandError as e:
            logger.warning(f"Could not query permissions in {db_name}: {e}")
            sections.append(
                "\n".join([REPORT_RULE, f" DATABASE: {db_name}", REPORT_RULE, ""])
                + f"\nCould not query permissions in {db_name}: {e.stderr.strip() or e}\n\n"
            )
            continue
        sections.append(format_database_section(db_name, parse_table_grants(rows)))

    file_name = f"{project_id}_{instance_id}_database_permissions_{report_timestamp(now)}.txt"
    path = write_report(output_dir, file_name, "".join(sections))
    logger.info(f"Successfully exported detailed database permissions to: {path}")
    return path


def build_audit_log_filter(project_id: str, instance_id: str) -> str:
    """pgaudit の INSERT / UPDATE / DELETE 文だけを拾う Cloud Logging フィルタ。"""
    return (
        'resource.type="cloudsql_database"\n'
        f'resource.labels.database_id="{project_id}:{instance_id}"\n'
        f'logName="projects/{project_id}/logs/cloudsql.googleapis.com%2Fpostgres.log"\n'
        '(textPayload:"statement: INSERT" OR textPayload:"statement: UPDATE" OR textPayload:"statement: DELETE")\n'
    )


def export_audit_logs(
    client: GcloudClient,
    project_id: str,
    instance_id: str,
    output_dir: Union[str, Path, None] = "",
    now: Optional[datetime] = None,
) -> Path:
    """
    DML の監査ログを取得して .txt に書き出す。

    Raises:
        ValueError: 必須引数が空の場合
        GcpOperationError: ログ取得に失敗した場合、またはログが 1 件も無い場合
    """
    if not project_id or not instance_id:
        raise ValueError("projectID and instanceID are required to export audit logs.")

    logger.info(f"Exporting audit logs for instance '{instance_id}' in project '{project_id}'")
    log_filter = build_audit_log_filter(project_id, instance_id)
    logger.info(f"Using log filter:\n{log_filter}")

    try:
        result = client.run(
            "logging", "read", log_filter,
            "--project", project_id,
            "--format=value(timestamp,textPayload)",
        )  # fmt: skip
    except CommandError as e:
        raise GcpOperationError(
            f"Failed to read audit logs for instance '{instance_id}' in project '{project_id}': {e}"
        ) from e

    if not result.stdout.strip():
        raise GcpOperationError(
            "No audit logs found. Ensure the 'cloudsql.enable_pgaudit' flag is enabled on your Cloud SQL instance. "
            f"More details: {PGAUDIT_DOCS}"
        )

    file_name = f"{project_id}_{instance_id}_audit_logs_{report_timestamp(now)}.txt"
    path = write_report(output_dir, file_name, result.stdout)
    logger.info(f"Successfully exported audit logs to: {path}")
    return path
