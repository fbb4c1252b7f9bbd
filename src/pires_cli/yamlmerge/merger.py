"""
yamlmerge.merger

2 つの YAML ドキュメントをマージする。

- ルートのキー順は MergePolicy の優先順 → primary の残り → secondary の残り
- 両方にあるキーは、両方が配列ならシリアライズ結果で重複排除して連結、
  それ以外は secondary の値で上書き（ネストしたマッピングは再帰マージしない）
- 入力ノードは変更せず、毎回新しい出力ツリーを作る
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional

import yaml

from pires_cli.constants import K8S_YAML_MANIFESTS_PREFERRED_KEY_ORDER
from pires_cli.yamlmerge.codec import serialize
from pires_cli.yamlmerge.document import MAP_TAG, SEQ_TAG, Document
from pires_cli.yamlmerge.exceptions import StructureError

# key -> (key_node, value_node)
Lookup = dict[str, tuple[yaml.Node, yaml.Node]]


@dataclass(frozen=True)
class MergePolicy:
    """マージ結果のルートキーの優先順。"""

    key_order: tuple[str, ...] = K8S_YAML_MANIFESTS_PREFERRED_KEY_ORDER

    @classmethod
    def from_keys(cls, keys: Optional[Iterable[str]]) -> "MergePolicy":
        if not keys:
            return cls()
        return cls(key_order=tuple(keys))


DEFAULT_POLICY = MergePolicy()


def merge_documents(primary: Document, secondary: Document, policy: MergePolicy = DEFAULT_POLICY) -> Document:
    """
    2 つのドキュメントのルートマッピングをマージした新しいドキュメントを返す。

    Args:
        primary (Document): ベースとなるドキュメント
        secondary (Document): 上書き側のドキュメント
        policy (MergePolicy): ルートキーの優先順

    Returns:
        Document: マージ結果

    Raises:
        StructureError: どちらかのルートがマッピングでない場合
        EncodeError: 配列要素の比較用シリアライズに失敗した場合
    """
    primary_lookup = mapping_to_lookup(primary)
    secondary_lookup = mapping_to_lookup(secondary)
    merged = merge_mapping_preserving_key_order(primary_lookup, secondary_lookup, policy)
    return Document(root=merged, source=f"{primary.source} + {secondary.source}")


def mapping_to_lookup(document: Document) -> Lookup:
    """
    ルートマッピングを key -> (key_node, value_node) の辞書に変換する。

    同じキーが複数回現れた場合は後勝ち（位置は最初の出現のまま）。
    """
    root = document.root
    if not isinstance(root, yaml.MappingNode):
        raise StructureError(source=document.source)

    lookup: Lookup = {}
    for key_node, value_node in root.value:
        if not isinstance(key_node, yaml.ScalarNode):
            raise StructureError("expected scalar mapping key at document root", source=document.source)
        lookup[key_node.value] = (key_node, value_node)
    return lookup


def merge_mapping_preserving_key_order(
    primary_lookup: Lookup, secondary_lookup: Lookup, policy: MergePolicy = DEFAULT_POLICY
) -> yaml.MappingNode:
    merged = yaml.MappingNode(tag=MAP_TAG, value=[])
    seen: set[str] = set()

    def add(key: str, key_node: yaml.Node, value_node: yaml.Node) -> None:
        merged.value.append((key_node, value_node))
        seen.add(key)

    for key in policy.key_order:
        if key in seen:
            continue
        if key in primary_lookup and key in secondary_lookup:
            key_node, primary_value = primary_lookup[key]
            add(key, key_node, merge_values_for_key(key, primary_value, secondary_lookup[key][1]))
        elif key in primary_lookup:
            add(key, *primary_lookup[key])
        elif key in secondary_lookup:
            add(key, *secondary_lookup[key])

    for lookup in (primary_lookup, secondary_lookup):
        for key, (key_node, value_node) in lookup.items():
            if key in seen:
                continue
            # ポリシー外のキーが両方にある場合もキー単位のルールを適用する（primary の値をそのまま残さない）
            if lookup is primary_lookup and key in secondary_lookup:
                value_node = merge_values_for_key(key, value_node, secondary_lookup[key][1])
            add(key, key_node, value_node)

    return merged


def merge_values_for_key(key: str, value1: yaml.Node, value2: yaml.Node) -> yaml.Node:
    """配列同士なら重複排除して連結、それ以外は value2 で上書き。"""
    if isinstance(value1, yaml.SequenceNode) and isinstance(value2, yaml.SequenceNode):
        return merge_arrays_uniquely(value1, value2)
    return value2


def merge_arrays_uniquely(array1: yaml.SequenceNode, array2: yaml.SequenceNode) -> yaml.SequenceNode:
    """
    array1 → array2 の順に要素を追加し、シリアライズ結果が既出の要素は飛ばす。

    比較はテキストの完全一致なので、意味的に同じでも表記（クォート等）が
    異なる要素は別物として両方残る。
    """
    merged = yaml.SequenceNode(tag=SEQ_TAG, value=[])
    seen: set[str] = set()

    for item in (*array1.value, *array2.value):
        serialized = serialize(item)
        if serialized in seen:
            continue
        seen.add(serialized)
        merged.value.append(item)

    return merged
