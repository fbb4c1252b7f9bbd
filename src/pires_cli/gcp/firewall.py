"""
gcp.firewall

VPC ファイアウォールルールを CSV にエクスポートする。
"""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Optional, Union

from pires_cli.constants import GCP_FIREWALL_RULES_FORMAT, GCP_FIREWALL_RULES_OUTPUT_TYPE, GCP_FIREWALL_RULES_PREFIX
from pires_cli.core.logging import get_logger
from pires_cli.core.runner import CommandError
from pires_cli.gcp.exceptions import GcpOperationError
from pires_cli.gcp.gcloud import GcloudClient
from pires_cli.gcp.reports import report_timestamp, write_report

logger = get_logger(__name__)

SUPPORTED_OUTPUT_TYPES = (GCP_FIREWALL_RULES_OUTPUT_TYPE,)


def export_firewall_rules_to_csv(
    client: GcloudClient,
    project_id: str,
    output_dir: Union[str, Path, None] = "",
    output_type: str = GCP_FIREWALL_RULES_OUTPUT_TYPE,
    now: Optional[datetime] = None,
) -> Path:
    """
    プロジェクトのファイアウォールルール一覧を CSV に書き出す。

    Args:
        client (GcloudClient): gcloud 実行クライアント
        project_id (str): 対象プロジェクト
        output_dir: 出力先ディレクトリ（空ならカレント）
        output_type (str): 出力形式。現状は "csv" のみ
        now (datetime, optional): ファイル名のタイムスタンプ

    Returns:
        Path: 書き出したファイルのパス

    Raises:
        ValueError: project_id が空、または未対応の output_type の場合
        GcpOperationError: gcloud の実行に失敗した場合
    """
    if not project_id:
        raise ValueError("projectID is required to export firewall rules.")
    if output_type not in SUPPORTED_OUTPUT_TYPES:
        raise ValueError(f"Unsupported output type '{output_type}'. Supported: {', '.join(SUPPORTED_OUTPUT_TYPES)}")

    logger.info(f"Exporting firewall rules for project '{project_id}'...")

    try:
        result = client.run(
            "compute", "firewall-rules", "list",
            "--project", project_id,
            f"--format={GCP_FIREWALL_RULES_FORMAT}",
        )  # fmt: skip
    except CommandError as e:
        raise GcpOperationError(f"Failed to list firewall rules for project '{project_id}': {e}") from e

    if not result.stdout.strip():
        logger.warning(f"No firewall rules returned for project '{project_id}'.")

    file_name = f"{GCP_FIREWALL_RULES_PREFIX}-{project_id}-{report_timestamp(now)}.{output_type}"
    path = write_report(output_dir, file_name, result.stdout)
    logger.info(f"Successfully exported firewall rules to: {path}")
    return path
