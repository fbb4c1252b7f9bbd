"""
cli.main

pires-cli のエントリポイント（argparse）。

    pires-cli [global flags] gcp cloudsql create-user -i INSTANCE -u USER [-p PASSWORD]
    pires-cli [global flags] yaml merge base.yaml overlay.yaml -o merged.yaml

ライブラリ側は例外を投げるだけにして、ここでまとめてログ出力し終了コード 1 を返す。
"""

from __future__ import annotations

import argparse
import getpass
import logging
import os
import platform
import sys
from pathlib import Path
from typing import Callable, Optional, Sequence

from pires_cli.constants import CLI_NAME, CLI_VERSION, GCP_FIREWALL_RULES_OUTPUT_TYPE, GCP_REQUIRED_ROLE
from pires_cli.core.config import DEFAULT_CONFIG_FILE, Settings, load_settings, log_settings
from pires_cli.core.logging import AppLogger, get_logger
from pires_cli.core.runner import CommandRunner
from pires_cli.gcp import cloudsql, firewall, gke, iam, postgresql
from pires_cli.gcp.checks import check_admin_permissions, check_required_commands, check_vpn_connection
from pires_cli.gcp.gcloud import GcloudClient
from pires_cli.yamlmerge.files import copy_and_merge_yaml_dir, merge_yaml_files
from pires_cli.yamlmerge.merger import MergePolicy
from pires_cli.yamlmerge.yq import YqClient

logger = get_logger(__name__)

DEFAULT_GRANT_ROLE = "roles/cloudsql.editor"

# グローバルフラグ -> Settings のフィールド
GLOBAL_OVERRIDES = (
    "environment",
    "gcp_project",
    "gcp_region",
    "database_type",
    "vpn_address_target",
    "vpn_check_connection",
)


# -------------------------
# version
# -------------------------
def short_version() -> str:
    return CLI_VERSION


def long_version() -> str:
    return "\n".join(
        [
            f"{CLI_NAME} version {CLI_VERSION}",
            f"Operating System: {platform.system()}",
            f"System Arch: {platform.machine()}",
        ]
    )


# -------------------------
# parser
# -------------------------
def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=CLI_NAME,
        description="Command-line tool to perform Ops activities on GCP and Kubernetes manifests.",
    )
    parser.add_argument("-C", "--config-file", default=DEFAULT_CONFIG_FILE, help="config file path")
    parser.add_argument(
        "-E", "--environment", help="Name of environment. Supported values: dev, staging or production"
    )
    parser.add_argument("-P", "--gcp-project", help="GCP project ID")
    parser.add_argument("-R", "--gcp-region", help="GCP region")
    parser.add_argument(
        "-T", "--database-type", help="Database type. Supported values: postgresql, mongodb or none"
    )
    parser.add_argument(
        "-I",
        "--vpn-address-target",
        help="Address (http or https URL) for the VPN connectivity check",
    )
    parser.add_argument(
        "-J",
        "--vpn-check-connection",
        action="store_true",
        default=None,
        help="Check the VPN connection using --vpn-address-target before GCP operations",
    )
    parser.add_argument("-D", "--debug", action="store_true", help="Enable debug mode")
    version = parser.add_mutually_exclusive_group()
    version.add_argument("-v", "--version", action="store_true", help="Show short version")
    version.add_argument("-V", "--long-version", action="store_true", help="Show long version")

    commands = parser.add_subparsers(dest="command", metavar="COMMAND")
    _add_gcp_commands(commands)
    _add_yaml_commands(commands)
    return parser


def _add_gcp_commands(commands) -> None:
    gcp = commands.add_parser("gcp", help="Perform Google Cloud Platform operations")
    services = gcp.add_subparsers(dest="service", metavar="SERVICE")

    # cloudsql
    sql = services.add_parser("cloudsql", help="Manage Cloud SQL instances")
    sql_cmds = sql.add_subparsers(dest="action", metavar="ACTION")

    p = sql_cmds.add_parser("create-user", help="Create a SQL user on a Cloud SQL instance")
    p.add_argument("-i", "--instance", required=True, help="Cloud SQL instance ID (e.g. nonprod-psql)")
    p.add_argument("-u", "--username", required=True, help="Username for the new SQL user")
    p.add_argument("-p", "--password", help="Password for the new SQL user (prompted if omitted)")
    p.add_argument("-s", "--source-host", default=cloudsql.DEFAULT_SOURCE_HOST, help="Host the user can connect from")
    p.set_defaults(handler=cmd_cloudsql_create_user, needs_gcp=True)

    p = sql_cmds.add_parser("create-database", help="Create a database on a Cloud SQL instance")
    p.add_argument("-i", "--instance", required=True, help="Cloud SQL instance ID (e.g. nonprod-psql)")
    p.add_argument("-d", "--dbname", required=True, help="Name for the new database")
    p.add_argument("-c", "--charset", default=cloudsql.DEFAULT_CHARSET, help="Character set for the new database")
    p.add_argument("-l", "--collation", default=cloudsql.DEFAULT_COLLATION, help="Collation for the new database")
    p.set_defaults(handler=cmd_cloudsql_create_database, needs_gcp=True)

    p = sql_cmds.add_parser(
        "export-postgresql-users-permissions", help="Export table permissions of every PostgreSQL user/role"
    )
    p.add_argument("-i", "--instance", required=True, help="Cloud SQL instance ID (e.g. nonprod-psql)")
    p.add_argument("-u", "--username", required=True, help="Username to connect with")
    p.add_argument("-a", "--address", required=True, help="Address (IP or DNS) of the PostgreSQL instance")
    p.add_argument("-p", "--password", help="Password to connect with (prompted if omitted)")
    p.add_argument("-o", "--output-dir", default="", help="Output directory for the report (default: current)")
    p.add_argument("-t", "--port", default=postgresql.DEFAULT_PORT, help="Port of the PostgreSQL instance")
    p.add_argument(
        "-r",
        "--regex-ignore-databases",
        default=postgresql.DEFAULT_IGNORE_DATABASES_REGEX,
        help="Regular expression of databases to ignore",
    )
    p.add_argument("-s", "--ssl-required", action="store_true", help="Force SSL connection")
    p.set_defaults(handler=cmd_export_postgresql_users_permissions, needs_gcp=True)

    p = sql_cmds.add_parser("export-postgresql-audit-logs", help="Export pgaudit DML logs of an instance")
    p.add_argument("-i", "--instance", required=True, help="Cloud SQL instance ID (e.g. nonprod-psql)")
    p.add_argument("-o", "--output-dir", default="", help="Output directory for the audit logs (default: current)")
    p.set_defaults(handler=cmd_export_postgresql_audit_logs, needs_gcp=True)

    # iam
    iam_parser = services.add_parser("iam", help="Manage IAM service accounts and roles")
    iam_cmds = iam_parser.add_subparsers(dest="action", metavar="ACTION")

    p = iam_cmds.add_parser("create-sa", help="Create a service account")
    p.add_argument("-s", "--service-account-id", required=True, help="Unique ID for the new service account")
    p.add_argument("-d", "--sa-description", default="", help="Description for the service account")
    p.set_defaults(handler=cmd_iam_create_sa, needs_gcp=True)

    p = iam_cmds.add_parser("grant-role", help="Grant an IAM role to a member on the project")
    p.add_argument(
        "-m", "--member", required=True, help="Member (e.g. user:name@company.com, serviceAccount:sa@p.iam...)"
    )
    p.add_argument("-r", "--role", default=DEFAULT_GRANT_ROLE, help="IAM role to grant")
    p.set_defaults(handler=cmd_iam_grant_role, needs_gcp=True)

    # firewall
    fw = services.add_parser("firewall", help="VPC firewall rules")
    fw_cmds = fw.add_subparsers(dest="action", metavar="ACTION")

    p = fw_cmds.add_parser("export-rules", help="Export firewall rules of the project")
    p.add_argument("-o", "--output-dir", default="", help="Output directory (default: current)")
    p.add_argument(
        "-t",
        "--output-type",
        default=GCP_FIREWALL_RULES_OUTPUT_TYPE,
        choices=list(firewall.SUPPORTED_OUTPUT_TYPES),
        help="Output type",
    )
    p.set_defaults(handler=cmd_firewall_export_rules, needs_gcp=True)

    # gke
    gke_parser = services.add_parser("gke", help="Google Kubernetes Engine")
    gke_cmds = gke_parser.add_subparsers(dest="action", metavar="ACTION")

    p = gke_cmds.add_parser("get-credentials", help="Add a kubeconfig entry for a GKE cluster")
    p.add_argument("-l", "--location", required=True, help="Region or zone of the cluster")
    p.add_argument("-c", "--cluster", required=True, help="Cluster name")
    p.set_defaults(handler=cmd_gke_get_credentials, needs_gcp=True)


def _add_yaml_commands(commands) -> None:
    y = commands.add_parser("yaml", help="Merge and edit YAML manifests")
    y_cmds = y.add_subparsers(dest="action", metavar="ACTION")

    key_help = "Preferred root key order (default: Kubernetes manifest order)"

    p = y_cmds.add_parser("merge", help="Merge FILE2 into FILE1 and print or write the result")
    p.add_argument("file1", type=Path, help="Primary (base) YAML file")
    p.add_argument("file2", type=Path, help="Secondary (overriding) YAML file")
    p.add_argument("-o", "--output", type=Path, help="Write the result to this file instead of stdout")
    p.add_argument("-k", "--key-order", nargs="+", help=key_help)
    p.set_defaults(handler=cmd_yaml_merge, needs_gcp=False)

    p = y_cmds.add_parser("sync", help="Copy SOURCE_DIR into TARGET_DIR merging YAML files that already exist")
    p.add_argument("source_dir", type=Path)
    p.add_argument("target_dir", type=Path)
    p.add_argument("-k", "--key-order", nargs="+", help=key_help)
    p.set_defaults(handler=cmd_yaml_sync, needs_gcp=False)

    p = y_cmds.add_parser("get", help="Evaluate a yq expression against a file")
    p.add_argument("file", type=Path)
    p.add_argument("expression")
    p.set_defaults(handler=cmd_yaml_get, needs_gcp=False)

    p = y_cmds.add_parser("set", help="Apply a yq expression in place")
    p.add_argument("path", type=Path, help="File, or directory with --recursive")
    p.add_argument("expression")
    p.add_argument("-r", "--recursive", action="store_true", help="Apply to every YAML file under PATH")
    p.set_defaults(handler=cmd_yaml_set, needs_gcp=False)


# -------------------------
# handlers
# -------------------------
def _prompt_password(args: argparse.Namespace, prompt: str) -> str:
    if args.password:
        return args.password
    return getpass.getpass(prompt)


def cmd_cloudsql_create_user(args: argparse.Namespace, settings: Settings, client: GcloudClient) -> None:
    password = _prompt_password(args, f"Password for SQL user '{args.username}': ")
    cloudsql.create_user(client, settings.gcp_project, args.instance, args.username, password, args.source_host)


def cmd_cloudsql_create_database(args: argparse.Namespace, settings: Settings, client: GcloudClient) -> None:
    cloudsql.create_database(client, settings.gcp_project, args.instance, args.dbname, args.charset, args.collation)


def cmd_export_postgresql_users_permissions(
    args: argparse.Namespace, settings: Settings, client: GcloudClient
) -> None:
    password = _prompt_password(args, f"Password for PostgreSQL user '{args.username}': ")
    postgresql.export_users_permissions(
        client,
        settings.gcp_project,
        args.instance,
        args.address,
        args.username,
        password=password,
        port=args.port,
        output_dir=args.output_dir,
        ignore_databases_regex=args.regex_ignore_databases,
        ssl_required=args.ssl_required,
    )


def cmd_export_postgresql_audit_logs(args: argparse.Namespace, settings: Settings, client: GcloudClient) -> None:
    postgresql.export_audit_logs(client, settings.gcp_project, args.instance, output_dir=args.output_dir)


def cmd_iam_create_sa(args: argparse.Namespace, settings: Settings, client: GcloudClient) -> None:
    iam.create_service_account(client, settings.gcp_project, args.service_account_id, args.sa_description)


def cmd_iam_grant_role(args: argparse.Namespace, settings: Settings, client: GcloudClient) -> None:
    iam.grant_role(client, settings.gcp_project, args.member, args.role)


def cmd_firewall_export_rules(args: argparse.Namespace, settings: Settings, client: GcloudClient) -> None:
    firewall.export_firewall_rules_to_csv(
        client, settings.gcp_project, output_dir=args.output_dir, output_type=args.output_type
    )


def cmd_gke_get_credentials(args: argparse.Namespace, settings: Settings, client: GcloudClient) -> None:
    gke.connect_to_cluster(client, settings.gcp_project, args.location, args.cluster)


def cmd_yaml_merge(args: argparse.Namespace, runner: Optional[CommandRunner]) -> None:
    merged = merge_yaml_files(args.file1, args.file2, MergePolicy.from_keys(args.key_order))
    if args.output is None:
        sys.stdout.write(merged)
        return
    args.output.parent.mkdir(parents=True, exist_ok=True)
    args.output.write_text(merged, encoding="utf-8")
    logger.info(f"Merged {args.file1} and {args.file2} into {args.output}")


def cmd_yaml_sync(args: argparse.Namespace, runner: Optional[CommandRunner]) -> None:
    outcome = copy_and_merge_yaml_dir(args.source_dir, args.target_dir, MergePolicy.from_keys(args.key_order))
    logger.info(
        f"Synced {args.source_dir} into {args.target_dir}: "
        f"{len(outcome['merged'])} merged, {len(outcome['copied'])} copied"
    )


def cmd_yaml_get(args: argparse.Namespace, runner: Optional[CommandRunner]) -> None:
    print(YqClient(runner=runner).get_value(args.file, args.expression))


def cmd_yaml_set(args: argparse.Namespace, runner: Optional[CommandRunner]) -> None:
    client = YqClient(runner=runner)
    if args.recursive:
        modified = client.apply_recursively(args.path, args.expression)
        logger.info(f"Applied '{args.expression}' to {len(modified)} file(s) under {args.path}")
        return
    client.modify_in_place(args.path, args.expression)


# -------------------------
# gcp preflight
# -------------------------
def build_settings(args: argparse.Namespace) -> Settings:
    overrides = {name: getattr(args, name) for name in GLOBAL_OVERRIDES}
    return load_settings(args.config_file, overrides=overrides)


def preflight(settings: Settings, client: GcloudClient, vpn_check: Optional[Callable[[str], int]] = None) -> None:
    """gcp サブコマンドの前に設定を出力し、権限と（有効なら）VPN 疎通を確認する。"""
    vpn_check = vpn_check or check_vpn_connection
    log_settings(settings, "gcp command")
    check_required_commands()
    check_admin_permissions(client, settings.gcp_project, GCP_REQUIRED_ROLE)
    if settings.vpn_check_connection:
        status = vpn_check(settings.vpn_address_target)
        logger.info(f"VPN connection OK ({settings.vpn_address_target} returned HTTP {status})")


# -------------------------
# entrypoint
# -------------------------
def run(args: argparse.Namespace, parser: argparse.ArgumentParser, runner: Optional[CommandRunner] = None) -> int:
    if args.long_version:
        print(long_version())
        return 0
    if args.version:
        print(short_version())
        return 0

    handler = getattr(args, "handler", None)
    if handler is None:
        parser.print_help()
        return 0

    if args.needs_gcp:
        settings = build_settings(args)
        client = GcloudClient(runner=runner)
        preflight(settings, client)
        handler(args, settings, client)
    else:
        handler(args, runner)
    return 0


def main(argv: Optional[Sequence[str]] = None, runner: Optional[CommandRunner] = None) -> int:
    """
    CLI のエントリポイント。

    Args:
        argv: コマンドライン引数（省略時は sys.argv[1:]）
        runner: 外部コマンドの実行に使う CommandRunner（テスト用）

    Returns:
        int: 終了コード（成功 0、失敗 1）
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    app_logger = AppLogger(project_root=os.getcwd())
    if args.debug:
        app_logger.set_level(logging.DEBUG)

    try:
        return run(args, parser, runner)
    except KeyboardInterrupt:
        logger.error("Interrupted by user")
        return 1
    except Exception:
        logger.exception("UnHandled exception occurred")
        return 1


if __name__ == "__main__":
    sys.exit(main())
