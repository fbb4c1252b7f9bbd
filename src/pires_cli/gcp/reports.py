"""
gcp.reports

エクスポート結果をタイムスタンプ付きファイルとして書き出す共通処理。
"""

from __future__ import annotations

import os
from datetime import datetime
from pathlib import Path
from typing import Optional, Union

from pires_cli.constants import PERMISSION_DIR, PERMISSION_FILE, REPORT_TIMESTAMP_FORMAT


def report_timestamp(now: Optional[datetime] = None) -> str:
    return (now or datetime.now()).strftime(REPORT_TIMESTAMP_FORMAT)


def write_report(output_dir: Union[str, Path, None], file_name: str, content: str) -> Path:
    """
    output_dir/file_name に content を書き出す。

    output_dir が空ならカレントディレクトリ。存在しなければ作成する。
    """
    directory = Path(output_dir) if output_dir else Path(".")
    directory.mkdir(mode=PERMISSION_DIR, parents=True, exist_ok=True)

    path = directory / file_name
    path.write_text(content, encoding="utf-8")
    os.chmod(path, PERMISSION_FILE)
    return path
