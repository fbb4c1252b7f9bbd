"""
yamlmerge.document

構造化ドキュメント（YAML の表現グラフ）を扱うための薄いラッパー。

ノード自体は PyYAML の `ScalarNode` / `SequenceNode` / `MappingNode` をそのまま使い、
`Document` はルートノードと読み込み元の名前だけを保持する。
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Optional

import yaml

STR_TAG = "tag:yaml.org,2002:str"
INT_TAG = "tag:yaml.org,2002:int"
BOOL_TAG = "tag:yaml.org,2002:bool"
NULL_TAG = "tag:yaml.org,2002:null"
SEQ_TAG = "tag:yaml.org,2002:seq"
MAP_TAG = "tag:yaml.org,2002:map"


@dataclass(frozen=True)
class Document:
    """ルートノードをちょうど 1 つ持つドキュメント。空ストリームの場合 root は None。"""

    root: Optional[yaml.Node]
    source: str = "<memory>"

    @property
    def is_mapping(self) -> bool:
        return isinstance(self.root, yaml.MappingNode)

    def to_python(self) -> Any:
        """ノードツリーを dict / list / スカラーに変換する（比較・デバッグ用）。"""
        if self.root is None:
            return None
        return yaml.SafeLoader("").construct_document(self.root)


# -------------------------
# node builders
# -------------------------
def scalar(value: Any, tag: Optional[str] = None, style: Optional[str] = None) -> yaml.ScalarNode:
    """
    Python の値からスカラーノードを作る。

    tag を省略した場合は値の型から推定する（bool / int / None / その他は str）。
    """
    if tag is None:
        if value is None:
            tag, value = NULL_TAG, "null"
        elif isinstance(value, bool):
            tag, value = BOOL_TAG, "true" if value else "false"
        elif isinstance(value, int):
            tag = INT_TAG
        else:
            tag = STR_TAG
    return yaml.ScalarNode(tag=tag, value=str(value), style=style)


def sequence(items: Iterable[yaml.Node]) -> yaml.SequenceNode:
    return yaml.SequenceNode(tag=SEQ_TAG, value=list(items))


def mapping(pairs: Iterable[tuple[str | yaml.Node, yaml.Node]]) -> yaml.MappingNode:
    value = []
    for key, node in pairs:
        key_node = key if isinstance(key, yaml.Node) else scalar(key, tag=STR_TAG)
        value.append((key_node, node))
    return yaml.MappingNode(tag=MAP_TAG, value=value)


def from_python(data: Any, source: str = "<memory>") -> Document:
    """Python オブジェクトを表現グラフに変換して Document にする。"""
    return Document(root=yaml.SafeDumper("", sort_keys=False).represent_data(data), source=source)
