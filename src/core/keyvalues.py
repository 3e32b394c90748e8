"""Helpers for nested key-value product metadata.

The Steam SDK decodes product info into nested dicts keyed by string. These
helpers walk that tree by slash-separated path.
"""

from __future__ import annotations

from typing import Any, List, Mapping, Optional


def find_path(tree: Any, path: str) -> Optional[Any]:
    """Return the node at ``path`` (e.g. ``"common/store_tags"``) or None."""

    node = tree
    for part in path.split("/"):
        if not part:
            continue
        if not isinstance(node, Mapping) or part not in node:
            return None
        node = node[part]
    return node


def store_tags(app_info: Mapping[str, Any]) -> Optional[List[str]]:
    """Return the store tag values of an app, or None if it has none."""

    tags = find_path(app_info, "common/store_tags")
    if not isinstance(tags, Mapping):
        return None
    return [str(value) for value in tags.values()]


def format_tree(tree: Mapping[str, Any], indent: int = 0) -> str:
    """Render a key-value tree as indented ``"key": "value"`` lines."""

    pad = "\t" * indent
    lines = []
    for key, value in tree.items():
        if isinstance(value, Mapping):
            lines.append(f'{pad}"{key}": {{')
            if value:
                lines.append(format_tree(value, indent + 1))
            lines.append(f"{pad}}}")
        else:
            lines.append(f'{pad}"{key}": "{value}"')
    return "\n".join(lines)
