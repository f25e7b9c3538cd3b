"""
埋め込み JSON への null-safe なアクセサ。

欠けたキー / 辞書でも配列でもないノード / 範囲外インデックスはすべて None。
"""
from __future__ import annotations

from typing import Any, Optional


def dig(node: Any, *path: Any) -> Any:
    current = node
    for key in path:
        if current is None:
            return None
        if isinstance(current, list):
            try:
                index = int(key)
            except (TypeError, ValueError):
                return None
            if index < 0 or index >= len(current):
                return None
            current = current[index]
        elif isinstance(current, dict):
            current = current.get(key)
        else:
            return None
    return current


def dig_str(node: Any, *path: Any) -> Optional[str]:
    value = dig(node, *path)
    return value if isinstance(value, str) else None


def dig_number(node: Any, *path: Any) -> Optional[float]:
    value = dig(node, *path)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    try:
        return float(value)
    except OverflowError:
        return None
