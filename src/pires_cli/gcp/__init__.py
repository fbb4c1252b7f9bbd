"""
GCP operations driven through the gcloud and psql command-line tools.
"""

from pires_cli.gcp.exceptions import GcpError, GcpOperationError, PermissionCheckError, VpnConnectionError
from pires_cli.gcp.gcloud import GcloudClient

__all__ = [
    "GcloudClient",
    "GcpError",
    "GcpOperationError",
    "PermissionCheckError",
    "VpnConnectionError",
]
