# core_operations.py

"""
This module provides the I/O collaborators of the application: a small JSON file
key-value store used to persist instances, fetched payloads, sessions and custom
comparison types, and the HTTP client used to fetch payloads from instances and to
post migrated values back to them.
"""

# --- Standard Library Imports ---
import json         # For working with JSON data.
import logging      # For logging events and errors.
import os           # For file paths and environment variables.
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

# --- Third-Party Imports ---
import requests     # HTTP client used to talk to the instances.


# --- Global Configuration ---
# Root directory for all persisted data, loaded from environment variable or defaults.
FILES_DIRECTORY = os.getenv("JSD_DATA_DIR", "saved_configs")
# Timeout, in seconds, applied to every request sent to an instance.
REQUEST_TIMEOUT = float(os.getenv("JSD_REQUEST_TIMEOUT", "30"))
DEFAULT_REQUEST_BODY = {"action": "fetch"}


# --- Logger Setup ---
logger = logging.getLogger(__name__)


class InstanceRequestError(Exception):
    """Raised when an instance cannot be reached or answers with an error."""

    def __init__(self, instance_id: str, message: str):
        super().__init__(f"Instance {instance_id}: {message}")
        self.instance_id = instance_id
        self.message = message


@dataclass(frozen=True)
class FetchOutcome:
    instance_id: str
    data: Any = None
    error: Optional[str] = None
    timestamp: str = ""

    @property
    def ok(self) -> bool:
        return self.error is None


# --- Data Storage ---
class JsonStore:
    """
    Key-value blob store persisting each key as `<directory>/<key>.json`.
    """

    def __init__(self, directory: str = FILES_DIRECTORY):
        self.directory = directory

    def _path(self, key: str) -> str:
        return os.path.join(self.directory, f"{key}.json")

    def save(self, key: str, data: Any) -> None:
        """
        Saves Python data (list or dictionary) under `key`.

        The file is written to a temporary name first and then moved in place, so a
        reader never sees a half-written file.
        """
        destination = self._path(key)
        try:
            os.makedirs(self.directory, exist_ok=True)
            temporary = f"{destination}.tmp"
            with open(temporary, "w", encoding="utf-8") as file:
                json.dump(data, file, indent=4)
            os.replace(temporary, destination)
        except Exception as e:
            logger.error(f"Error saving '{key}' to JSON: {e}", exc_info=True)
            raise

    def load(self, key: str, default: Any = None) -> Any:
        """
        Loads the data stored under `key`.

        Returns:
            Any: The loaded data, or `default` when nothing was stored yet.

        Raises:
            json.JSONDecodeError: If the file exists but is corrupted.
        """
        source = self._path(key)
        try:
            with open(source, "r", encoding="utf-8") as file:
                return json.load(file)
        except FileNotFoundError:
            logger.debug(f"No stored data for '{key}' at {source}.")
            return default
        except json.JSONDecodeError as e:
            logger.error(f"Error decoding JSON from file: {source}. File might be corrupted or malformed. {e}", exc_info=True)
            raise


# --- Instance HTTP Client ---
def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def _post(instance: Dict[str, Any], endpoint: str, body: Any, timeout: float) -> Any:
    instance_id = instance.get("id", "?")
    url = f"{instance['url'].rstrip('/')}{endpoint}"
    logger.debug(f"POST {url} for instance {instance_id}")
    try:
        response = requests.post(
            url,
            params={"authkey": instance.get("authKey", "")},
            json=body,
            headers={"Content-Type": "application/json"},
            timeout=timeout,
        )
        response.raise_for_status()
    except requests.HTTPError as e:
        status = e.response.status_code if e.response is not None else "?"
        reason = e.response.reason if e.response is not None else str(e)
        raise InstanceRequestError(instance_id, f"HTTP {status} {reason}") from e
    except requests.RequestException as e:
        raise InstanceRequestError(instance_id, f"request failed: {e}") from e

    if not response.content:
        return None
    try:
        return response.json()
    except ValueError as e:
        raise InstanceRequestError(instance_id, "response is not valid JSON") from e


def fetch_instance_data(instance: Dict[str, Any], endpoint: str,
                        request_body: Optional[Dict[str, Any]] = None,
                        timeout: float = REQUEST_TIMEOUT) -> Any:
    """
    Fetches the payload of one instance for a comparison type.

    Args:
        instance (dict): Instance record with 'id', 'url' and 'authKey'.
        endpoint (str): Fetch endpoint of the comparison type (e.g., "/api/settings").
        request_body (dict, optional): JSON body. Defaults to {"action": "fetch"}.
        timeout (float): Request timeout in seconds.

    Returns:
        Any: The parsed JSON payload.

    Raises:
        InstanceRequestError: On transport errors, non-2xx answers or invalid JSON.
    """
    logger.info(f"Fetching {endpoint} from instance {instance.get('id')}.")
    return _post(instance, endpoint, request_body or DEFAULT_REQUEST_BODY, timeout)


def post_instance_data(instance: Dict[str, Any], endpoint: str, data: Any,
                       timeout: float = REQUEST_TIMEOUT) -> Any:
    """
    Posts a write-back payload to an instance and returns its parsed answer (or None).

    Raises:
        InstanceRequestError: On transport errors, non-2xx answers or invalid JSON.
    """
    logger.info(f"Posting to {endpoint} on instance {instance.get('id')}.")
    return _post(instance, endpoint, data, timeout)


def fetch_all(instances: List[Dict[str, Any]], endpoint: str,
              request_body: Optional[Dict[str, Any]] = None,
              timeout: float = REQUEST_TIMEOUT, max_workers: int = 8) -> List[FetchOutcome]:
    """
    Fetches the same endpoint from several instances in parallel.

    A failing instance is reported in its own outcome and never prevents the others
    from completing. Outcomes are returned in the order of `instances`.
    """
    if not instances:
        return []

    def _fetch_one(instance: Dict[str, Any]) -> FetchOutcome:
        instance_id = instance.get("id", "?")
        try:
            data = fetch_instance_data(instance, endpoint, request_body, timeout)
            return FetchOutcome(instance_id=instance_id, data=data, timestamp=utc_timestamp())
        except InstanceRequestError as e:
            logger.error(f"Fetch failed for instance {instance_id}: {e.message}")
            return FetchOutcome(instance_id=instance_id, error=e.message, timestamp=utc_timestamp())

    with ThreadPoolExecutor(max_workers=min(max_workers, len(instances))) as executor:
        return list(executor.map(_fetch_one, instances))
