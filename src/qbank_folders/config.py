"""Application configuration loaded from environment variables."""

import os
from dataclasses import dataclass

TRUE_VALUES = frozenset({"1", "true", "yes", "on"})


@dataclass(frozen=True)
class AppConfig:
    """Centralized application configuration.

    The API URL has no default and will cause a KeyError at startup if the
    corresponding environment variable is missing. Protocol constants have
    sensible defaults but can be overridden via environment variables.
    """

    # Required — no default, fail at startup if missing
    api_url: str

    # Protocol constants — defaults provided, overridable via env
    request_timeout: float = 30.0
    server_batch: bool = True
    max_folder_depth: int = 23
    tree_separator: str = "/"


def load_config() -> AppConfig:
    """Construct an AppConfig from environment variables.

    Required environment variables:
        QB_API_URL: Base URL of the QBank API (e.g. "https://qbank.example.com/v2").

    Optional environment variables (with defaults):
        QB_REQUEST_TIMEOUT: Socket timeout in seconds per round trip (default: 30).
        QB_SERVER_BATCH: Whether the server chains batch references itself
            (default: true). When false, batches are executed call by call.
        QB_MAX_FOLDER_DEPTH: Depth used when fetching folder structures (default: 23).
        QB_TREE_SEPARATOR: Separator of the ancestry path segments (default: "/").

    Returns:
        Configured AppConfig instance.
    """
    return AppConfig(
        api_url=os.environ["QB_API_URL"].rstrip("/"),
        request_timeout=float(os.environ.get("QB_REQUEST_TIMEOUT", "30")),
        server_batch=os.environ.get("QB_SERVER_BATCH", "true").strip().lower() in TRUE_VALUES,
        max_folder_depth=int(os.environ.get("QB_MAX_FOLDER_DEPTH", "23")),
        tree_separator=os.environ.get("QB_TREE_SEPARATOR", "/"),
    )
