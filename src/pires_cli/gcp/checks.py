"""
gcp.checks

gcloud の認証状態・管理者権限・必要コマンド・VPN 疎通の事前チェック。
"""

from __future__ import annotations

import shutil
from typing import Callable, Iterable, Optional

import requests

from pires_cli.constants import COMMANDS_TO_CHECK, GCP_REQUIRED_ROLE, VPN_TIMEOUT
from pires_cli.core.logging import get_logger
from pires_cli.core.runner import CommandError
from pires_cli.gcp.exceptions import PermissionCheckError, VpnConnectionError
from pires_cli.gcp.gcloud import GcloudClient

logger = get_logger(__name__)

# `gcloud config get-value account` が未設定時に返す値
_UNSET_ACCOUNT = "(unset)"


def check_gcloud_auth(client: GcloudClient) -> str:
    """
    gcloud のアクティブアカウントを返す。

    Raises:
        PermissionCheckError: gcloud が使えない、または未認証の場合
    """
    logger.debug("Checking gcloud authentication status...")
    try:
        result = client.run("config", "get-value", "account")
    except CommandError as e:
        raise PermissionCheckError(
            "Failed to check gcloud auth status. Ensure gcloud is installed and authenticated. "
            "Please run 'gcloud auth login' and 'gcloud auth application-default login' commands."
        ) from e

    account = result.stdout.strip()
    if not account or account == _UNSET_ACCOUNT:
        raise PermissionCheckError(
            "No active gcloud account. "
            "Please run 'gcloud auth login' and 'gcloud auth application-default login' commands."
        )

    logger.debug(f"gcloud is authenticated with account: {account}")
    return account


def check_admin_permissions(client: GcloudClient, project_id: str, required_role: str = GCP_REQUIRED_ROLE) -> str:
    """
    現在の gcloud ユーザーがプロジェクトに required_role を持っているか確認する。

    gcloud projects get-iam-policy <PROJECT_ID> \\
      --flatten="bindings[].members" \\
      --filter="bindings.role:<ROLE> AND bindings.members:user:<ACCOUNT>" \\
      --format="value(bindings.role)"

    Returns:
        str: チェックしたアカウント

    Raises:
        ValueError: project_id が空の場合
        PermissionCheckError: ロールが無い、またはポリシー取得に失敗した場合
    """
    if not project_id:
        raise ValueError("Project ID is required to check admin permissions.")

    logger.debug(f"Checking if current gcloud user has '{required_role}' on project '{project_id}'...")
    account = check_gcloud_auth(client)
    member = f"user:{account}"

    try:
        result = client.run(
            "projects",
            "get-iam-policy",
            project_id,
            "--flatten=bindings[].members",
            f"--filter=bindings.role:{required_role} AND bindings.members:{member}",
            "--format=value(bindings.role)",
        )
    except CommandError as e:
        raise PermissionCheckError(
            f"Execution of 'gcloud projects get-iam-policy' for project '{project_id}' failed."
        ) from e

    if required_role not in result.stdout.split():
        raise PermissionCheckError(
            f"Current gcloud user ('{account}') does NOT have '{required_role}' on project '{project_id}'. "
            "Insufficient permissions for administrative tasks."
        )

    logger.debug(f"Current gcloud user ('{account}') has '{required_role}' on project '{project_id}'.")
    return account


def check_required_commands(
    commands: Iterable[str] = COMMANDS_TO_CHECK, which: Callable[[str], Optional[str]] = shutil.which
) -> list[str]:
    """PATH に見つからないコマンドの一覧を返す。"""
    missing = [cmd for cmd in commands if which(cmd) is None]
    for cmd in missing:
        logger.warning(f"Required command '{cmd}' not found in PATH.")
    return missing


def check_vpn_connection(url: str, timeout: float = VPN_TIMEOUT, session: Optional[requests.Session] = None) -> int:
    """
    VPN 経由でしか届かない URL に HTTP リクエストを送り、疎通を確認する。

    応答が返ればステータスコードに関わらず疎通ありとみなす。

    Returns:
        int: HTTP ステータスコード

    Raises:
        VpnConnectionError: 接続できない、またはタイムアウトした場合
    """
    http = session or requests
    logger.debug(f"Checking VPN connectivity to {url} (timeout: {timeout}s)")
    try:
        response = http.get(url, timeout=timeout)
    except requests.RequestException as e:
        raise VpnConnectionError(url, e) from e
    logger.debug(f"VPN connectivity check to {url} returned HTTP {response.status_code}")
    return response.status_code
