"""Folder tree reconstruction from flat folder listings.

The server gives no parent identifier for a folder. The only link between
a folder and its parent is the ancestry path (``tree``): the segment before
the folder's own trailing segment identifies the parent.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from qbank_folders.folders.models import Folder, FolderId

logger = logging.getLogger(__name__)

DEFAULT_TREE_SEPARATOR = "/"


def coerce_id(value: Any) -> FolderId:
    """Normalise a folder identifier so numeric strings match integer keys."""
    if isinstance(value, bool):
        raise TypeError("Folder identifier cannot be a boolean")
    if isinstance(value, int):
        return value
    text = str(value).strip()
    return int(text) if text.isdigit() else text


def tree_segments(tree: str | None, separator: str = DEFAULT_TREE_SEPARATOR) -> list[str]:
    """Split an ancestry path into its non-empty segments."""
    if not tree:
        return []
    return [segment for segment in str(tree).split(separator) if segment.strip()]


def parent_id(tree: str | None, separator: str = DEFAULT_TREE_SEPARATOR) -> FolderId | None:
    """Return the identity of the parent encoded in an ancestry path, if any."""
    segments = tree_segments(tree, separator)
    if len(segments) < 2:
        return None
    return coerce_id(segments[-2])


def _is_ancestor_or_self(folder: Folder, candidate: Folder) -> bool:
    """Tell whether folder is candidate or one of its already linked ancestors."""
    node: Folder | None = candidate
    while node is not None:
        if node is folder:
            return True
        node = node.parent
    return False


def build_tree(
    folders_by_id: Mapping[Any, Folder],
    separator: str = DEFAULT_TREE_SEPARATOR,
) -> list[Folder]:
    """Link folders to their parents and return the roots.

    Parents are found by key lookup, so the input order only decides the
    order of children and roots, which follows the mapping's iteration
    order. A folder whose parent is not in the mapping is a root of this
    view, which is the normal case for the top of a depth-bounded listing.
    A folder whose path would make it its own ancestor is also a root.

    Existing tree links of the given folders are reset first, so building
    twice from the same mapping yields the same edges.

    Args:
        folders_by_id: Folders keyed by identifier.
        separator: Separator of the ancestry path segments.

    Returns:
        Root folders in input order.
    """
    by_id: dict[FolderId, Folder] = {
        coerce_id(key): folder for key, folder in folders_by_id.items()
    }
    for folder in by_id.values():
        folder.detach()

    parents: dict[str, FolderId | None] = {}
    roots: list[Folder] = []
    for folder in by_id.values():
        if folder.tree not in parents:
            parents[folder.tree] = parent_id(folder.tree, separator)
        parent_key = parents[folder.tree]
        parent = by_id.get(parent_key) if parent_key is not None else None
        if parent is None or _is_ancestor_or_self(folder, parent):
            if parent is not None:
                logger.warning(
                    "[build_tree] cyclic ancestry path; folder_id:%s;tree:%s",
                    folder.id,
                    folder.tree,
                )
            roots.append(folder)
            continue
        parent.add_child(folder)

    logger.debug(
        "[build_tree] built folder tree; folder_count:%d;root_count:%d",
        len(by_id),
        len(roots),
    )
    return roots
