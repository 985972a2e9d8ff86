"""Unit tests for folders/api.py — FolderAPI operations."""

from unittest.mock import MagicMock, patch

import pytest

from qbank_folders.config import AppConfig
from qbank_folders.folders.api import FolderAPI, folder_api_from_config
from qbank_folders.folders.models import Folder, Property, SimpleFolder
from qbank_folders.rpc.dispatcher import Dispatcher
from qbank_folders.rpc.errors import QBankApplicationError, QBankConnectionError

JAN_1_2020 = 1577836800
JAN_2_2020 = 1577923200

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _make_api(server_batch: bool = True) -> tuple[FolderAPI, MagicMock]:
    """Return (api, mock_transport)."""
    mock_transport = MagicMock()
    api = FolderAPI(dispatcher=Dispatcher(mock_transport, server_batch=server_batch))
    return api, mock_transport


def _record(folder_id: int | None, tree: str, name: str = "Pics", **extra: object) -> dict:
    record: dict = {
        "name": name,
        "tree": tree,
        "owner": "u1",
        "created": "2020-01-01T00:00:00Z",
        "updated": "2020-01-02T00:00:00Z",
    }
    if folder_id is not None:
        record["folderId"] = folder_id
    record.update(extra)
    return record


def _error(code: int, message: str = "Failed", type: str = "Error") -> dict:
    return {"success": False, "error": {"message": message, "code": code, "type": type}}


def _batch(**results: dict) -> dict:
    return {"success": True, "results": results}


# ---------------------------------------------------------------------------
# Listings
# ---------------------------------------------------------------------------


class TestListFolders:
    def test_flat_listing_defaults_to_top_folder_and_max_depth(self) -> None:
        api, transport = _make_api()
        transport.call.return_value = {
            "success": True,
            "data": [_record(1, "1", "Top"), _record(2, "1/2", "Child")],
        }

        folders = api.list_folders()

        transport.call.assert_called_once_with(
            "getfolderstructure", {"folderId": 0, "depth": 23, "fetchProperties": False}
        )
        assert folders is not None
        assert list(folders) == [1, 2]
        assert type(folders[2]) is SimpleFolder
        assert folders[2].name == "Child"

    def test_returns_none_for_non_collection_result(self) -> None:
        api, transport = _make_api()
        transport.call.return_value = {"success": True, "data": False}

        assert api.list_folders(5, 2) is None

    def test_missing_listing_is_logged_by_fetch_step(
        self, caplog: pytest.LogCaptureFixture
    ) -> None:
        api, transport = _make_api()
        transport.call.return_value = {"success": True, "data": None}

        with caplog.at_level("INFO", logger="qbank_folders.folders.api"):
            assert api.get_folders(5) is None

        assert "[_fetch_structure] no folder listing returned; folder_id:5" in caplog.text

    def test_empty_collection_is_not_none(self) -> None:
        api, transport = _make_api()
        transport.call.return_value = {"success": True, "data": []}

        assert api.list_folders() == {}

    def test_tree_listing_fetches_properties_and_builds_roots(self) -> None:
        api, transport = _make_api()
        transport.call.return_value = {
            "success": True,
            "data": [
                _record(7, "1/7", "A", properties=[{"systemName": "k", "value": "v"}]),
                _record(8, "1/7/8", "B", properties=[]),
                _record(9, "1/9", "C", properties=[]),
            ],
        }

        roots = api.list_folder_tree(root_id=1, depth=2)

        args = transport.call.call_args[0]
        assert args == ("getfolderstructure", {"folderId": 1, "depth": 2, "fetchProperties": True})
        assert roots is not None
        assert [r.id for r in roots] == [7, 9]
        assert roots[0].properties == [Property("k", "v")]
        assert [c.name for c in roots[0].children] == ["B"]

    def test_tree_listing_returns_none_for_non_collection_result(self) -> None:
        api, transport = _make_api()
        transport.call.return_value = {"success": True}

        assert api.list_folder_tree() is None

    def test_get_folders_dispatches_on_hierarchical(self) -> None:
        api, transport = _make_api()
        transport.call.return_value = {"success": True, "data": [_record(1, "1", properties=[])]}

        flat = api.get_folders(hierarchical=False)
        tree = api.get_folders(hierarchical=True)

        assert isinstance(flat, dict)
        assert isinstance(tree, list)
        assert isinstance(tree[0], Folder)

    def test_application_error_propagates(self) -> None:
        api, transport = _make_api()
        transport.call.return_value = _error(5, "Unknown folder")

        with pytest.raises(QBankApplicationError, match="Unknown folder"):
            api.list_folders(404)


class TestGetFoldersByObject:
    def test_maps_simple_folders(self) -> None:
        api, transport = _make_api()
        transport.call.return_value = {
            "success": True,
            "folders": [_record(3, "1/3"), _record(4, "1/4")],
        }

        folders = api.get_folders_by_object(77)

        transport.call.assert_called_once_with("getfoldersbyobjectid", {"objectId": 77})
        assert [f.id for f in folders] == [3, 4]

    def test_returns_empty_list_when_none(self) -> None:
        api, transport = _make_api()
        transport.call.return_value = {"success": True, "folders": None}

        assert api.get_folders_by_object(77) == []


# ---------------------------------------------------------------------------
# Single folders
# ---------------------------------------------------------------------------


class TestGetFolder:
    def test_simple_non_recursive(self) -> None:
        api, transport = _make_api()
        transport.call.return_value = {
            "results": {"folder": {"success": True, "folder": _record(None, "0")}}
        }

        folder = api.get_folder(42, simple=True, recursive=False)

        assert type(folder) is SimpleFolder
        assert folder.id == 42
        assert folder.name == "Pics"
        assert folder.tree == "0"
        assert folder.owner == "u1"
        assert folder.created == JAN_1_2020
        assert folder.updated == JAN_2_2020
        assert not hasattr(folder, "properties")
        sent = transport.call.call_args[0]
        assert sent[0] == "batch"
        assert sent[1]["calls"] == [
            {"name": "folder", "function": "getfolderinformation", "arguments": {"folderId": 42}}
        ]

    def test_full_non_recursive_has_properties(self) -> None:
        api, transport = _make_api()
        record = _record(42, "1/42", properties=[{"systemName": "color", "value": "red"}])
        transport.call.return_value = _batch(folder={"success": True, "folder": record})

        folder = api.get_folder(42, simple=False)

        assert isinstance(folder, Folder)
        assert folder.get_property("color") == "red"

    def test_failure_raises_with_call_name(self) -> None:
        api, transport = _make_api()
        transport.call.return_value = _batch(folder=_error(3, "Unknown folder", "NotFound"))

        with pytest.raises(QBankApplicationError) as exc_info:
            api.get_folder(42)

        assert exc_info.value.call_name == "folder"
        assert exc_info.value.error_type == "NotFound"

    def test_recursive_full_builds_subtree_rooted_at_folder(self) -> None:
        api, transport = _make_api()
        transport.call.return_value = _batch(
            subfolders={
                "success": True,
                "data": [
                    _record(42, "1/42", "Stale", properties=[]),
                    _record(43, "1/42/43", "Child", properties=[]),
                    _record(44, "1/42/43/44", "Grandchild", properties=[]),
                ],
            },
            folder={
                "success": True,
                "folder": _record(
                    42, "1/42", "Fresh", properties=[{"systemName": "k", "value": 1}]
                ),
            },
        )

        folder = api.get_folder(42, simple=False, recursive=True)

        calls = transport.call.call_args[0][1]["calls"]
        assert [c["name"] for c in calls] == ["subfolders", "folder"]
        assert calls[0]["arguments"] == {"folderId": 42, "depth": 23, "fetchProperties": True}
        assert isinstance(folder, Folder)
        assert folder.name == "Fresh"
        assert folder.properties == [Property("k", 1)]
        assert [c.name for c in folder.children] == ["Child"]
        assert [c.name for c in folder.children[0].children] == ["Grandchild"]
        assert folder.children[0].parent is folder

    def test_recursive_simple_returns_flat_mapping_with_folder(self) -> None:
        api, transport = _make_api()
        transport.call.return_value = _batch(
            subfolders={"success": True, "data": [_record(43, "1/42/43", "Child")]},
            folder={"success": True, "folder": _record(42, "1/42", "Self")},
        )

        folders = api.get_folder(42, simple=True, recursive=True)

        assert isinstance(folders, dict)
        assert set(folders) == {42, 43}
        assert folders[42].name == "Self"
        assert transport.call.call_args[0][1]["calls"][0]["arguments"]["fetchProperties"] is False

    def test_recursive_with_failed_subfolders_raises(self) -> None:
        api, transport = _make_api()
        transport.call.return_value = _batch(
            subfolders=_error(2, "Too deep"),
            folder={"success": True, "folder": _record(42, "1/42")},
        )

        with pytest.raises(QBankApplicationError) as exc_info:
            api.get_folder(42, simple=False, recursive=True)

        assert exc_info.value.call_name == "subfolders"

    def test_recursive_without_subfolder_listing_returns_lone_folder(self) -> None:
        api, transport = _make_api()
        transport.call.return_value = _batch(
            subfolders={"success": True, "data": None},
            folder={"success": True, "folder": _record(42, "1/42", properties=[])},
        )

        folder = api.get_folder(42, simple=False, recursive=True)

        assert isinstance(folder, Folder)
        assert folder.children == []


# ---------------------------------------------------------------------------
# Mutations
# ---------------------------------------------------------------------------


class TestCreateFolder:
    def test_creates_then_reads_back_with_reference(self) -> None:
        api, transport = _make_api()
        transport.call.return_value = _batch(
            creation={"success": True, "folderId": 50},
            folder={"success": True, "folder": _record(None, "1/50", "Server Name")},
        )

        folder = api.create_folder("Client Name", parent_id=1)

        calls = transport.call.call_args[0][1]["calls"]
        assert calls[0] == {
            "name": "creation",
            "function": "createfolder",
            "arguments": {"name": "Client Name", "parentId": 1, "folderType": 1},
        }
        assert calls[1]["arguments"] == {"folderId": "$creation.folderId"}
        assert folder.id == 50
        assert folder.name == "Server Name"

    def test_creation_failure_is_reported_first(self) -> None:
        api, transport = _make_api()
        transport.call.return_value = _batch(
            creation=_error(10, "Name taken"),
            folder=_error(3, "Unknown folder"),
        )

        with pytest.raises(QBankApplicationError) as exc_info:
            api.create_folder("Dup")

        assert exc_info.value.call_name == "creation"
        assert exc_info.value.message == "Name taken"

    def test_local_chaining_skips_read_after_failed_creation(self) -> None:
        api, transport = _make_api(server_batch=False)
        transport.call.return_value = _error(10, "Name taken")

        with pytest.raises(QBankApplicationError, match="Name taken"):
            api.create_folder("Dup")

        transport.call.assert_called_once()


class TestEditFolder:
    def test_edits_then_reads_back(self) -> None:
        api, transport = _make_api()
        transport.call.return_value = _batch(
            edit={"success": True, "folderId": 9},
            folder={"success": True, "folder": _record(9, "1/9", "Renamed")},
        )

        folder = api.edit_folder(9, "Renamed", {"color": "red"})

        calls = transport.call.call_args[0][1]["calls"]
        assert calls[0]["arguments"] == {
            "folderId": 9,
            "name": "Renamed",
            "properties": {"color": "red"},
        }
        assert calls[1]["arguments"] == {"folderId": "$edit.folderId"}
        assert type(folder) is SimpleFolder
        assert folder.name == "Renamed"

    def test_read_back_failure_raises(self) -> None:
        api, transport = _make_api()
        transport.call.return_value = _batch(
            edit={"success": True, "folderId": 9},
            folder=_error(4, "Denied"),
        )

        with pytest.raises(QBankApplicationError) as exc_info:
            api.edit_folder(9, "Renamed")

        assert exc_info.value.call_name == "folder"


class TestDeleteFolder:
    def test_returns_true_on_success(self) -> None:
        api, transport = _make_api()
        transport.call.return_value = {"success": True}

        assert api.delete_folder(7) is True
        transport.call.assert_called_once_with("deletefolder", {"folderId": 7})

    @pytest.mark.parametrize("code", [1, 3, 99, 500])
    def test_any_application_error_returns_false(self, code: int) -> None:
        api, transport = _make_api()
        transport.call.return_value = _error(code)

        assert api.delete_folder(7) is False

    def test_connection_error_propagates(self) -> None:
        api, transport = _make_api()
        transport.call.side_effect = QBankConnectionError("down")

        with pytest.raises(QBankConnectionError):
            api.delete_folder(7)


class TestObjectMembership:
    def test_add_returns_true_on_success(self) -> None:
        api, transport = _make_api()
        transport.call.return_value = {"success": True}

        assert api.add_object_to_folder(1, 2) is True
        transport.call.assert_called_once_with("addobjecttofolder", {"folderId": 1, "objectId": 2})

    def test_add_returns_false_on_code_99(self) -> None:
        api, transport = _make_api()
        transport.call.return_value = _error(99, "Already in folder")

        assert api.add_object_to_folder(1, 2) is False

    def test_add_raises_on_other_codes(self) -> None:
        api, transport = _make_api()
        transport.call.return_value = _error(12, "Denied")

        with pytest.raises(QBankApplicationError) as exc_info:
            api.add_object_to_folder(1, 2)

        assert exc_info.value.code == 12

    def test_remove_returns_false_on_code_99(self) -> None:
        api, transport = _make_api()
        transport.call.return_value = _error(99, "Not in folder")

        assert api.remove_object_from_folder(1, 2) is False
        assert transport.call.call_args[0][0] == "removeobjectfromfolder"

    def test_remove_raises_on_other_codes(self) -> None:
        api, transport = _make_api()
        transport.call.return_value = _error(3)

        with pytest.raises(QBankApplicationError):
            api.remove_object_from_folder(1, 2)

    def test_connection_error_propagates(self) -> None:
        api, transport = _make_api()
        transport.call.side_effect = QBankConnectionError("down")

        with pytest.raises(QBankConnectionError):
            api.remove_object_from_folder(1, 2)


class TestFolderApiFromConfig:
    def test_wires_dispatcher_and_settings(self) -> None:
        config = AppConfig(
            api_url="https://qbank.example.com", max_folder_depth=5, tree_separator="."
        )
        with patch("qbank_folders.folders.api.dispatcher_from_config") as mock_factory:
            api = folder_api_from_config(config)

        mock_factory.assert_called_once_with(config)
        assert api._dispatcher is mock_factory.return_value
        assert api._max_folder_depth == 5
        assert api._separator == "."
