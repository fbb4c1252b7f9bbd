"""
gcp.gke

GKE クラスタの認証情報を kubeconfig に取り込む。
"""

from __future__ import annotations

from pires_cli.constants import is_zone
from pires_cli.core.logging import get_logger
from pires_cli.core.runner import CommandError
from pires_cli.gcp.exceptions import GcpOperationError
from pires_cli.gcp.gcloud import GcloudClient

logger = get_logger(__name__)


def connect_to_cluster(client: GcloudClient, project_id: str, location: str, cluster_name: str) -> None:
    """
    `gcloud container clusters get-credentials` を実行する。

    location がゾーン（us-central1-a）なら --zone、リージョンなら --region を付ける。

    Raises:
        ValueError: 引数が空の場合
        GcpOperationError: 取得に失敗した場合
    """
    if not project_id or not location or not cluster_name:
        raise ValueError("projectID, location and clusterName are required to connect to a GKE cluster.")

    location_flag = "--zone" if is_zone(location) else "--region"
    logger.info(f"Fetching credentials for cluster '{cluster_name}' ({location_flag[2:]}: {location}) on project '{project_id}'...")

    try:
        client.run(
            "container", "clusters", "get-credentials", cluster_name,
            location_flag, location,
            "--project", project_id,
        )  # fmt: skip
    except CommandError as e:
        raise GcpOperationError(
            f"Failed to get credentials for cluster '{cluster_name}' in '{location}' on project '{project_id}': {e}"
        ) from e

    logger.info(f"kubeconfig entry generated for cluster '{cluster_name}'.")
