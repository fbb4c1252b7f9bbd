from pires_cli.core.logging.app_logger import AppLogger, Logger, get_logger

__all__ = ["AppLogger", "Logger", "get_logger"]
