"""HTTP trigger blueprint — health check and folder listing endpoints."""

import json
import logging
from dataclasses import asdict
from typing import Any

import azure.functions as func

from qbank_folders import __version__
from qbank_folders.config import TRUE_VALUES, load_config
from qbank_folders.folders.api import folder_api_from_config
from qbank_folders.folders.models import Folder, SimpleFolder
from qbank_folders.rpc.errors import QBankApplicationError, QBankConnectionError

logger = logging.getLogger(__name__)

bp = func.Blueprint()


def _simple_folder_to_dict(folder: SimpleFolder) -> dict[str, Any]:
    return {
        "id": folder.id,
        "name": folder.name,
        "tree": folder.tree,
        "owner": folder.owner,
        "created": folder.created,
        "updated": folder.updated,
    }


def _folder_to_dict(folder: Folder) -> dict[str, Any]:
    body = _simple_folder_to_dict(folder)
    body["properties"] = [asdict(prop) for prop in folder.properties]
    body["children"] = [_folder_to_dict(child) for child in folder.children]
    return body


def _json_response(body: dict[str, Any], status_code: int) -> func.HttpResponse:
    return func.HttpResponse(json.dumps(body), status_code=status_code, mimetype="application/json")


@bp.route(route="health", methods=["GET"], auth_level=func.AuthLevel.ANONYMOUS)
def health_check(req: func.HttpRequest) -> func.HttpResponse:
    """Health check endpoint.

    Returns service status and version.
    """
    logger.info("[health_check] health check requested")

    try:
        return _json_response({"status": "ok", "version": __version__}, 200)

    except Exception:
        logger.error("[health_check] health check failed", exc_info=True)
        return _json_response({"status": "error", "message": "Internal server error"}, 500)


@bp.route(route="folders", methods=["GET"], auth_level=func.AuthLevel.FUNCTION)
def list_folders(req: func.HttpRequest) -> func.HttpResponse:
    """Folder listing endpoint.

    Query parameters:
        root: Folder to consider as root (default: the top folder).
        depth: Levels of folders to fetch (default: the configured maximum).
        hierarchical: "true" to return nested trees with properties.
    """
    logger.info("[list_folders] folder listing requested")

    try:
        root = req.params.get("root")
        depth = req.params.get("depth")
        hierarchical = req.params.get("hierarchical", "false").strip().lower() in TRUE_VALUES
        root_id = int(root) if root else None
        depth_value = int(depth) if depth else None
    except ValueError:
        return _json_response({"status": "error", "message": "Invalid root or depth"}, 400)

    try:
        api = folder_api_from_config(load_config())
        if hierarchical:
            roots = api.list_folder_tree(root_id, depth_value)
            folders = None if roots is None else [_folder_to_dict(r) for r in roots]
        else:
            flat = api.list_folders(root_id, depth_value)
            folders = None if flat is None else [_simple_folder_to_dict(f) for f in flat.values()]
        return _json_response({"status": "ok", "folders": folders}, 200)

    except QBankConnectionError:
        logger.error("[list_folders] QBank unreachable", exc_info=True)
        return _json_response({"status": "error", "message": "QBank unreachable"}, 502)

    except QBankApplicationError as exc:
        body = {"status": "error", "message": exc.message, "code": exc.code, "type": exc.error_type}
        return _json_response(body, 400)

    except Exception:
        logger.error("[list_folders] folder listing failed", exc_info=True)
        return _json_response({"status": "error", "message": "Internal server error"}, 500)
