# exceptions.py


class GcpError(Exception):
    """ベースとなる例外クラス"""

    pass


class PermissionCheckError(GcpError):
    """gcloud の認証・権限チェックに失敗したときに発生"""

    pass


class GcpOperationError(GcpError):
    """gcloud / psql による操作が失敗したときに発生"""

    pass


class VpnConnectionError(GcpError):
    """VPN 経由の疎通確認に失敗したときに発生"""

    def __init__(self, url: str, cause: Exception):
        super().__init__(f"Could not reach '{url}' through the VPN: {cause}")
        self.url = url
        self.cause = cause
