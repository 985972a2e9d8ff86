"""Folder API — public folder operations on top of the call dispatcher."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from qbank_folders.folders.mapper import (
    RecordFormatError,
    map_folders,
    map_full_folder,
    map_simple_folder,
)
from qbank_folders.folders.models import (
    FIELD_FOLDER_ID,
    RESULT_DATA,
    RESULT_FOLDER,
    RESULT_FOLDERS,
    Folder,
    FolderId,
    SimpleFolder,
)
from qbank_folders.folders.tree import DEFAULT_TREE_SEPARATOR, build_tree
from qbank_folders.rpc.dispatcher import Dispatcher, dispatcher_from_config
from qbank_folders.rpc.errors import NOOP_CODE, translate
from qbank_folders.rpc.models import CallDescriptor, CallResult, CallStatus, ResultReference

if TYPE_CHECKING:
    from qbank_folders.config import AppConfig

logger = logging.getLogger(__name__)

# Deepest folder structure the server returns; there is no unbounded depth.
DEFAULT_MAX_FOLDER_DEPTH = 23
DEFAULT_FOLDER_TYPE = 1
ROOT_FOLDER_ID = 0

# Remote operation names
OP_GET_FOLDER_STRUCTURE = "getfolderstructure"
OP_GET_FOLDER_INFORMATION = "getfolderinformation"
OP_GET_FOLDERS_BY_OBJECT = "getfoldersbyobjectid"
OP_CREATE_FOLDER = "createfolder"
OP_EDIT_FOLDER = "editfolder"
OP_DELETE_FOLDER = "deletefolder"
OP_ADD_OBJECT = "addobjecttofolder"
OP_REMOVE_OBJECT = "removeobjectfromfolder"

# Batch call names
CALL_SUBFOLDERS = "subfolders"
CALL_FOLDER = "folder"
CALL_CREATION = "creation"
CALL_EDIT = "edit"


def _folder_record(result: CallResult) -> dict[str, Any]:
    record = result.payload.get(RESULT_FOLDER)
    if not isinstance(record, dict):
        raise RecordFormatError(f"Result of call '{result.name}' carries no folder record")
    return record


class FolderAPI:
    """Reads and modifies QBank folders.

    Every operation makes exactly one call to the dispatcher, either a single
    call or a batch.
    """

    def __init__(
        self,
        dispatcher: Dispatcher,
        max_folder_depth: int = DEFAULT_MAX_FOLDER_DEPTH,
        tree_separator: str = DEFAULT_TREE_SEPARATOR,
    ) -> None:
        """Initialise the folder API.

        Args:
            dispatcher: Dispatcher used for all remote calls.
            max_folder_depth: Depth requested when no depth is given.
            tree_separator: Separator of the ancestry path segments.
        """
        self._dispatcher = dispatcher
        self._max_folder_depth = max_folder_depth
        self._separator = tree_separator

    # ------------------------------------------------------------------
    # Listings
    # ------------------------------------------------------------------

    def _fetch_structure(
        self, root_id: FolderId | None, depth: int | None, fetch_properties: bool
    ) -> list[dict[str, Any]] | None:
        arguments = {
            "folderId": ROOT_FOLDER_ID if root_id is None else root_id,
            "depth": self._max_folder_depth if depth is None else depth,
            "fetchProperties": fetch_properties,
        }
        payload = self._dispatcher.call(OP_GET_FOLDER_STRUCTURE, arguments)
        data = payload.get(RESULT_DATA)
        if not isinstance(data, list):
            logger.info(
                "[_fetch_structure] no folder listing returned; folder_id:%s", arguments["folderId"]
            )
            return None
        return data

    def list_folders(
        self, root_id: FolderId | None = None, depth: int | None = None
    ) -> dict[FolderId, SimpleFolder] | None:
        """Get a flat listing of folders below a root folder.

        Args:
            root_id: Folder to consider as root (default: the top folder).
            depth: Levels of folders to fetch (default: the deepest supported).

        Returns:
            SimpleFolders keyed by identifier in server order, or None if
            the server returned no listing.
        """
        data = self._fetch_structure(root_id, depth, fetch_properties=False)
        if data is None:
            return None
        return map_folders(data, include_properties=False, separator=self._separator)

    def list_folder_tree(
        self, root_id: FolderId | None = None, depth: int | None = None
    ) -> list[Folder] | None:
        """Get folders below a root folder as trees of Folders with properties.

        Folders whose parent lies outside the fetched listing are returned
        as roots.

        Returns:
            Root folders, or None if the server returned no listing.
        """
        data = self._fetch_structure(root_id, depth, fetch_properties=True)
        if data is None:
            return None
        folders = map_folders(data, include_properties=True, separator=self._separator)
        roots = build_tree(folders, self._separator)
        logger.info(
            "[list_folder_tree] built tree; folder_count:%d;root_count:%d",
            len(folders),
            len(roots),
        )
        return roots

    def get_folders(
        self,
        root_id: FolderId | None = None,
        depth: int | None = None,
        hierarchical: bool = False,
    ) -> dict[FolderId, SimpleFolder] | list[Folder] | None:
        """Get folders below a root folder, as a flat mapping or as trees.

        Args:
            root_id: Folder to consider as root (default: the top folder).
            depth: Levels of folders to fetch (default: the deepest supported).
            hierarchical: Return root Folders with linked children instead of
                a flat mapping of SimpleFolders.

        Returns:
            The result of list_folder_tree when hierarchical, otherwise that
            of list_folders. None if the server returned no listing.
        """
        if hierarchical:
            return self.list_folder_tree(root_id, depth)
        return self.list_folders(root_id, depth)

    def get_folders_by_object(self, object_id: int) -> list[SimpleFolder]:
        """Get all folders an object is in.

        Returns:
            SimpleFolders, empty if the object is in no folder.
        """
        payload = self._dispatcher.call(OP_GET_FOLDERS_BY_OBJECT, {"objectId": object_id})
        records = payload.get(RESULT_FOLDERS)
        if not isinstance(records, list):
            return []
        return [map_simple_folder(record, separator=self._separator) for record in records]

    # ------------------------------------------------------------------
    # Single folders
    # ------------------------------------------------------------------

    def _folder_call(self, folder_id: FolderId) -> CallDescriptor:
        return CallDescriptor(CALL_FOLDER, OP_GET_FOLDER_INFORMATION, {"folderId": folder_id})

    def _subfolders_call(self, folder_id: FolderId, fetch_properties: bool) -> CallDescriptor:
        return CallDescriptor(
            CALL_SUBFOLDERS,
            OP_GET_FOLDER_STRUCTURE,
            {
                "folderId": folder_id,
                "depth": self._max_folder_depth,
                "fetchProperties": fetch_properties,
            },
        )

    def get_simple_folder(self, folder_id: FolderId) -> SimpleFolder:
        """Get a single folder without properties.

        Raises:
            QBankApplicationError: The server could not get the folder.
        """
        batch = self._dispatcher.call_batch([self._folder_call(folder_id)])
        translate(batch[CALL_FOLDER], "get_folder")
        return map_simple_folder(_folder_record(batch[CALL_FOLDER]), folder_id, self._separator)

    def get_full_folder(self, folder_id: FolderId) -> Folder:
        """Get a single folder with its properties, detached from any tree.

        Raises:
            QBankApplicationError: The server could not get the folder.
        """
        batch = self._dispatcher.call_batch([self._folder_call(folder_id)])
        translate(batch[CALL_FOLDER], "get_folder")
        return map_full_folder(_folder_record(batch[CALL_FOLDER]), folder_id, self._separator)

    def _get_with_subfolders(
        self, folder_id: FolderId, include_properties: bool
    ) -> tuple[Any, dict[FolderId, Any]]:
        batch = self._dispatcher.call_batch(
            [self._subfolders_call(folder_id, include_properties), self._folder_call(folder_id)]
        )
        translate(batch[CALL_FOLDER], "get_folder")
        translate(batch[CALL_SUBFOLDERS], "get_folder")

        record = _folder_record(batch[CALL_FOLDER])
        if include_properties:
            folder: Any = map_full_folder(record, folder_id, self._separator)
        else:
            folder = map_simple_folder(record, folder_id, self._separator)

        data = batch[CALL_SUBFOLDERS].payload.get(RESULT_DATA)
        folders: dict[FolderId, Any] = {}
        if isinstance(data, list):
            folders = map_folders(data, include_properties, separator=self._separator)
        # The explicitly fetched folder wins over its subtree record.
        folders[folder.id] = folder
        return folder, folders

    def get_folder_tree(self, folder_id: FolderId) -> Folder:
        """Get a folder with its properties and all of its subfolders.

        Returns:
            The folder, with its descendants attached as children.
        """
        folder, folders = self._get_with_subfolders(folder_id, include_properties=True)
        build_tree(folders, self._separator)
        logger.info(
            "[get_folder_tree] built subtree; folder_id:%s;folder_count:%d",
            folder.id,
            len(folders),
        )
        return folder

    def get_folder_subfolders(self, folder_id: FolderId) -> dict[FolderId, SimpleFolder]:
        """Get a folder and all of its subfolders as a flat mapping of SimpleFolders."""
        _, folders = self._get_with_subfolders(folder_id, include_properties=False)
        return folders

    def get_folder(
        self, folder_id: FolderId, simple: bool = True, recursive: bool = False
    ) -> SimpleFolder | Folder | dict[FolderId, SimpleFolder]:
        """Get a folder.

        Args:
            folder_id: Identifier of the folder.
            simple: Get a SimpleFolder instead of a Folder with properties.
            recursive: Also get the folder's subfolders.

        Returns:
            A SimpleFolder or Folder. When recursive, a Folder with its
            subtree attached, or a flat mapping of SimpleFolders if simple.

        Raises:
            QBankConnectionError: If the API cannot be reached.
            QBankApplicationError: If the server could not get the folder.
        """
        if recursive:
            if simple:
                return self.get_folder_subfolders(folder_id)
            return self.get_folder_tree(folder_id)
        if simple:
            return self.get_simple_folder(folder_id)
        return self.get_full_folder(folder_id)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def create_folder(
        self,
        name: str,
        parent_id: FolderId = ROOT_FOLDER_ID,
        folder_type: int = DEFAULT_FOLDER_TYPE,
    ) -> SimpleFolder:
        """Create a folder and return it as stored by the server.

        Args:
            name: Name of the new folder.
            parent_id: Identifier of the parent folder.
            folder_type: Type of folder to create.

        Returns:
            The new folder, read back after creation.
        """
        batch = self._dispatcher.call_batch(
            [
                CallDescriptor(
                    CALL_CREATION,
                    OP_CREATE_FOLDER,
                    {"name": name, "parentId": parent_id, "folderType": folder_type},
                ),
                CallDescriptor(
                    CALL_FOLDER,
                    OP_GET_FOLDER_INFORMATION,
                    {"folderId": ResultReference(CALL_CREATION, FIELD_FOLDER_ID)},
                ),
            ]
        )
        translate(batch[CALL_CREATION], "create_folder")
        translate(batch[CALL_FOLDER], "create_folder")
        new_id = batch[CALL_CREATION].payload.get(FIELD_FOLDER_ID)
        folder = map_simple_folder(_folder_record(batch[CALL_FOLDER]), new_id, self._separator)
        logger.info("[create_folder] created folder; folder_id:%s;name:%s", folder.id, name)
        return folder

    def edit_folder(
        self,
        folder_id: FolderId,
        name: str,
        properties: dict[str, Any] | None = None,
    ) -> SimpleFolder:
        """Rename a folder and set its properties.

        Args:
            folder_id: Identifier of the folder.
            name: New name of the folder.
            properties: Property values keyed by system name.

        Returns:
            The folder, read back after the edit.
        """
        batch = self._dispatcher.call_batch(
            [
                CallDescriptor(
                    CALL_EDIT,
                    OP_EDIT_FOLDER,
                    {"folderId": folder_id, "name": name, "properties": properties or {}},
                ),
                CallDescriptor(
                    CALL_FOLDER,
                    OP_GET_FOLDER_INFORMATION,
                    {"folderId": ResultReference(CALL_EDIT, FIELD_FOLDER_ID)},
                ),
            ]
        )
        translate(batch[CALL_EDIT], "edit_folder")
        translate(batch[CALL_FOLDER], "edit_folder")
        return map_simple_folder(_folder_record(batch[CALL_FOLDER]), folder_id, self._separator)

    def delete_folder(self, folder_id: FolderId) -> bool:
        """Delete a folder.

        Any failure reported by the server is returned as False.

        Returns:
            True if the folder was deleted, False if not.

        Raises:
            QBankConnectionError: If the API cannot be reached.
        """
        result = self._dispatcher.call_result(OP_DELETE_FOLDER, {"folderId": folder_id})
        if not result.succeeded:
            error = result.error
            logger.warning(
                "[delete_folder] folder not deleted; folder_id:%s;code:%s;type:%s",
                folder_id,
                error.code if error else None,
                error.type if error else None,
            )
            return False
        return True

    def _toggle_membership(
        self, operation: str, action: str, folder_id: FolderId, object_id: int
    ) -> bool:
        result = self._dispatcher.call_result(
            operation,
            {"folderId": folder_id, "objectId": object_id},
            noop_codes=(NOOP_CODE,),
        )
        translate(result, action)
        if result.status is CallStatus.NOOP:
            logger.info(
                "[%s] nothing to do; folder_id:%s;object_id:%s", action, folder_id, object_id
            )
        return result.succeeded

    def add_object_to_folder(self, folder_id: FolderId, object_id: int) -> bool:
        """Add an object to a folder.

        Returns:
            True if the object was added, False if it already was in the folder.

        Raises:
            QBankApplicationError: If the server failed for any other reason.
        """
        return self._toggle_membership(OP_ADD_OBJECT, "add_object_to_folder", folder_id, object_id)

    def remove_object_from_folder(self, folder_id: FolderId, object_id: int) -> bool:
        """Remove an object from a folder.

        Returns:
            True if the object was removed, False if it was not in the folder.
        """
        return self._toggle_membership(
            OP_REMOVE_OBJECT, "remove_object_from_folder", folder_id, object_id
        )


def folder_api_from_config(config: AppConfig) -> FolderAPI:
    """Construct a FolderAPI from application configuration.

    Creates the transport and dispatcher from the config, then wires them
    into a FolderAPI.

    Args:
        config: Application configuration instance.

    Returns:
        Configured FolderAPI instance.
    """
    return FolderAPI(
        dispatcher=dispatcher_from_config(config),
        max_folder_depth=config.max_folder_depth,
        tree_separator=config.tree_separator,
    )
