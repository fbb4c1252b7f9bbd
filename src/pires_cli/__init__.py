"""
pires_cli: Ops CLI for GCP administration tasks and YAML manifest merging.
"""

from pires_cli.constants import CLI_NAME, CLI_VERSION

__version__ = CLI_VERSION

__all__ = ["CLI_NAME", "CLI_VERSION", "__version__"]
