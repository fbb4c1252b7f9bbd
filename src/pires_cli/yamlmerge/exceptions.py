# exceptions.py


class YamlMergeError(Exception):
    """ベースとなる例外クラス"""

    pass


class ParseError(YamlMergeError):
    """YAML テキストとして解釈できないときに発生"""

    def __init__(self, source: str, cause: Exception):
        super().__init__(f"Failed to parse YAML from {source}: {cause}")
        self.source = source
        self.cause = cause


class StructureError(YamlMergeError):
    """ドキュメントのルートがマッピングでないときに発生"""

    def __init__(self, message: str = "expected mapping at document root", source: str | None = None):
        if source:
            message = f"{message} ({source})"
        super().__init__(message)
        self.source = source


class EncodeError(YamlMergeError):
    """ノードを YAML テキストへ書き戻せないときに発生"""

    def __init__(self, cause: Exception):
        super().__init__(f"Failed to encode YAML node: {cause}")
        self.cause = cause
