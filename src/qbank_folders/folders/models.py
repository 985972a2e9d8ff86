"""Data models for QBank folders and their properties."""

from __future__ import annotations

import weakref
from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import Any

# Folder record field names
FIELD_FOLDER_ID = "folderId"
FIELD_NAME = "name"
FIELD_TREE = "tree"
FIELD_OWNER = "owner"
FIELD_CREATED = "created"
FIELD_UPDATED = "updated"
FIELD_PROPERTIES = "properties"

# Property record field names
FIELD_SYSTEM_NAME = "systemName"
FIELD_VALUE = "value"

# Result record keys
RESULT_DATA = "data"
RESULT_FOLDER = "folder"
RESULT_FOLDERS = "folders"

FolderId = int | str


@dataclass(frozen=True)
class Property:
    """A folder property: system name paired with a value."""

    system_name: str
    value: Any


@dataclass(frozen=True)
class SimpleFolder:
    """A folder without properties or children.

    Instances are immutable; an edit is made through the API, which returns
    a freshly read folder.

    Attributes:
        id: Folder identifier.
        name: Display name.
        tree: Ancestry path of the folder, ending with the folder itself.
        owner: Owner of the folder.
        created: Creation time as epoch seconds.
        updated: Last update time as epoch seconds.
    """

    id: FolderId
    name: str
    tree: str
    owner: Any
    created: int
    updated: int


@dataclass(frozen=True)
class Folder(SimpleFolder):
    """A folder with its properties and its place in a folder tree.

    Record fields are immutable. Only the tree links change, through
    add_child and detach. Children are owned by the folder; the parent is
    only weakly referenced.
    """

    properties: list[Property] = field(default_factory=list)
    children: list[Folder] = field(default_factory=list, repr=False, compare=False)
    _parent: weakref.ReferenceType[Folder] | None = field(
        default=None, init=False, repr=False, compare=False
    )

    @property
    def parent(self) -> Folder | None:
        return self._parent() if self._parent is not None else None

    def add_child(self, child: Folder) -> None:
        self.children.append(child)
        object.__setattr__(child, "_parent", weakref.ref(self))

    def detach(self) -> None:
        """Forget tree links so the folder can be placed in a new tree."""
        self.children.clear()
        object.__setattr__(self, "_parent", None)

    def get_property(self, system_name: str) -> Any:
        """Return the value of a property, the last one winning on duplicates."""
        value = None
        for prop in self.properties:
            if prop.system_name == system_name:
                value = prop.value
        return value

    def walk(self) -> Iterator[Folder]:
        """Yield this folder and all its descendants, depth first."""
        yield self
        for child in self.children:
            yield from child.walk()

    def find(self, folder_id: FolderId) -> Folder | None:
        for folder in self.walk():
            if str(folder.id) == str(folder_id):
                return folder
        return None
