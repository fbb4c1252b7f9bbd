# constants.py

# CLI identity (MAJOR.MINOR.PATCH, https://semver.org/)
CLI_NAME = "pires-cli"
CLI_VERSION = "0.2.0"

# 起動時に存在確認する外部コマンド
COMMANDS_TO_CHECK = ("git", "kubectl", "gcloud")

# Kubernetes マニフェストのキー出力順
K8S_YAML_MANIFESTS_PREFERRED_KEY_ORDER = (
    "apiVersion",
    "kind",
    "metadata",
    "namespace",
    "spec",
    "resources",
    "images",
    "patches",
)

# ファイル/ディレクトリのパーミッション
PERMISSION_DIR = 0o755
PERMISSION_FILE = 0o644

# GCP / gcloud
GCP_REQUIRED_ROLE = "roles/owner"
GCP_FIREWALL_RULES_OUTPUT_TYPE = "csv"
GCP_FIREWALL_RULES_PREFIX = "gcp-firewall-rules"
GCP_FIREWALL_RULES_FORMAT = (
    "csv(name,network,direction,priority,"
    "sourceRanges.list():label=SOURCE_RANGES,"
    "destinationRanges.list():label=DESTINATION_RANGES,"
    "allowed.list():label=ALLOWED,"
    "denied.list():label=DENIED,"
    "sourceTags.list():label=SOURCE_TAGS,"
    "targetTags.list():label=TARGET_TAGS,"
    "disabled)"
)

# レポートファイル名のタイムスタンプ
REPORT_TIMESTAMP_FORMAT = "%Y%m%d-%H%M%S"

# VPN 接続確認のタイムアウト（秒）
VPN_TIMEOUT = 15

# YAML ファイル判定
YAML_SUFFIXES = (".yaml", ".yml")
YAML_PATCH_SUFFIXES = (".patch.yaml", ".patch.yml")


def is_zone(location: str) -> bool:
    """
    GCP ロケーションがゾーン（例: us-central1-a）かどうかを判定する。

    Args:
        location (str): リージョンまたはゾーン

    Returns:
        bool: ハイフンがちょうど 2 つあればゾーンとみなす
    """
    return location.count("-") == 2
