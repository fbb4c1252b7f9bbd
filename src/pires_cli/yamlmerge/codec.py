"""
yamlmerge.codec

YAML テキスト <-> Document の変換。

- parse: `yaml.compose` で表現グラフを作る（スカラーのスタイルやタグは保持される）
- serialize: `yaml.serialize` でノードを書き戻す。配列の重複判定にも同じ関数を使う
"""

from __future__ import annotations

from typing import Union

import yaml

from pires_cli.yamlmerge.document import Document
from pires_cli.yamlmerge.exceptions import EncodeError, ParseError

DEFAULT_INDENT = 2


def parse(text: Union[str, bytes], source: str = "<string>") -> Document:
    """
    YAML テキストを 1 つの Document として読み込む。

    Args:
        text (str | bytes): YAML テキスト
        source (str): エラーメッセージに使う読み込み元の名前

    Returns:
        Document: 読み込んだドキュメント（空テキストなら root は None）

    Raises:
        ParseError: YAML として不正、または複数ドキュメントを含む場合
    """
    try:
        root = yaml.compose(text, Loader=yaml.SafeLoader)
    except yaml.YAMLError as e:
        raise ParseError(source, e) from e
    return Document(root=root, source=source)


def serialize(obj: Union[Document, yaml.Node, None], indent: int = DEFAULT_INDENT) -> str:
    """
    Document または単一ノードを YAML テキストに書き戻す。

    Raises:
        EncodeError: ノードツリーが不正で書き出せない場合
    """
    node = obj.root if isinstance(obj, Document) else obj
    if node is None:
        return ""
    try:
        return yaml.serialize(node, Dumper=yaml.SafeDumper, indent=indent, allow_unicode=True)
    except (yaml.YAMLError, AttributeError, TypeError, ValueError) as e:
        raise EncodeError(e) from e
