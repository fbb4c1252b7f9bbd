"""
yamlmerge.files

ファイル/ディレクトリ単位の YAML コピー・マージ。
"""

from __future__ import annotations

import os
import shutil
from pathlib import Path
from typing import Union

from pires_cli.constants import PERMISSION_DIR, PERMISSION_FILE, YAML_PATCH_SUFFIXES, YAML_SUFFIXES
from pires_cli.core.logging import get_logger
from pires_cli.yamlmerge.codec import parse, serialize
from pires_cli.yamlmerge.merger import DEFAULT_POLICY, MergePolicy, merge_documents

logger = get_logger(__name__)

PathLike = Union[str, Path]


def has_any_suffix(name: str, *suffixes: str) -> bool:
    """foo.bar.baz.tar.gz のような長いサフィックスも含めて判定する。"""
    return any(name.endswith(suffix) for suffix in suffixes)


def is_yaml_file(filename: PathLike) -> bool:
    """
    .yaml / .yml ならTrue。ただし *.patch.yaml / *.patch.yml はマージ対象外なので False。
    """
    name = str(filename)
    if has_any_suffix(name, *YAML_PATCH_SUFFIXES):
        logger.debug(f"Skipping *.patch.yaml or *.patch.yml file: {name}")
        return False
    if has_any_suffix(name, *YAML_SUFFIXES):
        return True
    logger.debug(f"Skipping non-YAML file: {name}")
    return False


def file_exists(path: PathLike) -> bool:
    return Path(path).is_file()


def copy_file(src_file: PathLike, dest_file: PathLike) -> None:
    shutil.copyfile(src_file, dest_file)


def _write_text(path: Path, content: str) -> None:
    path.write_text(content, encoding="utf-8")
    os.chmod(path, PERMISSION_FILE)


def merge_yaml_files(file_path1: PathLike, file_path2: PathLike, policy: MergePolicy = DEFAULT_POLICY) -> str:
    """
    2 つの YAML ファイルをマージして YAML テキストを返す。

    Args:
        file_path1: primary（ベース）となるファイル
        file_path2: secondary（上書き側）となるファイル
        policy: ルートキーの優先順

    Raises:
        FileNotFoundError: どちらかのファイルが存在しない場合
        ParseError / StructureError / EncodeError: マージに失敗した場合
    """
    path1, path2 = Path(file_path1), Path(file_path2)
    for p in (path1, path2):
        if not p.is_file():
            raise FileNotFoundError(f"[ERROR] Could not read file {p}")

    primary = parse(path1.read_bytes(), source=str(path1))
    secondary = parse(path2.read_bytes(), source=str(path2))
    return serialize(merge_documents(primary, secondary, policy))


def copy_template_files(source_dir: PathLike, dest_dir: PathLike) -> list[Path]:
    """
    source_dir 配下をそのまま dest_dir にコピーする（ルート自体は含めない）。

    Returns:
        list[Path]: 書き込んだファイルの一覧
    """
    source, dest = Path(source_dir), Path(dest_dir)
    if not source.is_dir():
        raise NotADirectoryError(f"[ERROR] Source directory not found: {source}")
    dest.mkdir(mode=PERMISSION_DIR, parents=True, exist_ok=True)

    written: list[Path] = []
    for src_path in sorted(source.rglob("*")):
        dest_path = dest / src_path.relative_to(source)
        if src_path.is_dir():
            dest_path.mkdir(mode=PERMISSION_DIR, parents=True, exist_ok=True)
            continue
        dest_path.parent.mkdir(mode=PERMISSION_DIR, parents=True, exist_ok=True)
        copy_file(src_path, dest_path)
        os.chmod(dest_path, PERMISSION_FILE)
        written.append(dest_path)
    return written


def copy_and_merge_yaml_dir(
    source_dir: PathLike, target_dir: PathLike, policy: MergePolicy = DEFAULT_POLICY
) -> dict[str, list[Path]]:
    """
    source_dir 配下を target_dir にコピーする。

    コピー先に同名の YAML ファイルが既にある場合は、既存ファイルを primary、
    コピー元を secondary としてマージした結果で上書きする。それ以外は単純コピー。

    Returns:
        dict: {"merged": [...], "copied": [...]}
    """
    source, target = Path(source_dir), Path(target_dir)
    if not source.is_dir():
        raise NotADirectoryError(f"[ERROR] Source directory not found: {source}")

    outcome: dict[str, list[Path]] = {"merged": [], "copied": []}
    for src_path in sorted(source.rglob("*")):
        dest_path = target / src_path.relative_to(source)
        if src_path.is_dir():
            dest_path.mkdir(mode=PERMISSION_DIR, parents=True, exist_ok=True)
            continue

        dest_path.parent.mkdir(mode=PERMISSION_DIR, parents=True, exist_ok=True)

        if is_yaml_file(src_path) and file_exists(dest_path):
            logger.debug(f"YAML file exists at destination {dest_path}, merging with {src_path}.")
            merged = merge_yaml_files(dest_path, src_path, policy)
            _write_text(dest_path, merged)
            logger.debug(f"Merged YAML file: {dest_path} with {src_path}.")
            outcome["merged"].append(dest_path)
            continue

        copy_file(src_path, dest_path)
        os.chmod(dest_path, PERMISSION_FILE)
        logger.debug(f"Copied file {src_path} to {dest_path}")
        outcome["copied"].append(dest_path)

    return outcome
