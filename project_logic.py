# project_logic.py

"""
This module provides the application logic behind the UI: it keeps the registered
instances, the cache of payloads fetched from them, the comparison sessions and the
comparison type registry, persists them through the JSON store, and orchestrates the
fetch, compare and migrate use cases on top of the comparison engine.
"""

# --- Standard Library Imports ---
import logging      # For logging events and errors.
import threading    # For serializing mutations of the repositories.
import time
from dataclasses import asdict, dataclass, replace
from typing import Any, Dict, List, Optional

# --- Third-Party Imports ---
from pyecharts import options as opts
from pyecharts.charts import Bar

# --- Local Application Imports ---
import core_operations as core
from compare_functions import (
    ComparisonSession,
    Summary,
    ValidationError,
    assemble_session,
    build_migration_payload,
    run_comparison,
)
from comparison_types import ComparisonType, ComparisonTypeRegistry

# --- Storage Keys ---
INSTANCES_KEY = "instances"
INSTANCE_DATA_KEY = "instance_data"
SESSIONS_KEY = "sessions"
CUSTOM_TYPES_KEY = "custom_types"

# --- Logger Setup ---
logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Instance:
    id: str
    name: str
    url: str
    authKey: str = ""
    isActive: bool = True
    lastSync: Optional[str] = None
    status: str = "disconnected"

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Instance":
        return cls(
            id=str(data["id"]),
            name=data.get("name", ""),
            url=data.get("url", ""),
            authKey=data.get("authKey", ""),
            isActive=bool(data.get("isActive", True)),
            lastSync=data.get("lastSync"),
            status=data.get("status", "disconnected"),
        )


class ProjectLogic:
    def __init__(self, store: Optional[core.JsonStore] = None, timeout: float = core.REQUEST_TIMEOUT):
        self._store = store or core.JsonStore()
        self._timeout = timeout
        self._lock = threading.RLock()

        self._instances: List[Instance] = [
            Instance.from_dict(entry) for entry in self._store.load(INSTANCES_KEY, [])
        ]
        self._instance_data: Dict[str, Dict[str, Any]] = self._store.load(INSTANCE_DATA_KEY, {})

        stored_sessions = self._store.load(SESSIONS_KEY, {})
        self._sessions: List[ComparisonSession] = [
            ComparisonSession.from_dict(entry) for entry in stored_sessions.get("sessions", [])
        ]
        self._active_session_id: Optional[str] = stored_sessions.get("activeSessionId")

        stored_types = self._store.load(CUSTOM_TYPES_KEY, {})
        self.types = ComparisonTypeRegistry(
            stored_types.get("customTypes", []),
            stored_types.get("builtInEndpoints", {}),
        )

        logger.info(
            f"ProjectLogic initialized with {len(self._instances)} instance(s) "
            f"and {len(self._sessions)} session(s)."
        )

    # --- Persistence ---
    def _save_instances(self) -> None:
        self._store.save(INSTANCES_KEY, [instance.to_dict() for instance in self._instances])

    def _save_instance_data(self) -> None:
        self._store.save(INSTANCE_DATA_KEY, self._instance_data)

    def _save_sessions(self) -> None:
        self._store.save(SESSIONS_KEY, {
            "sessions": [session.to_dict() for session in self._sessions],
            "activeSessionId": self._active_session_id,
        })

    def _save_types(self) -> None:
        self._store.save(CUSTOM_TYPES_KEY, {
            "customTypes": [custom_type.to_dict() for custom_type in self.types.custom_types()],
            "builtInEndpoints": self.types.endpoint_overrides(),
        })

    # --- Instance Management ---
    def list_instances(self, active_only: bool = False) -> List[Instance]:
        with self._lock:
            return [i for i in self._instances if i.isActive or not active_only]

    def get_instance(self, instance_id: str) -> Optional[Instance]:
        with self._lock:
            return next((i for i in self._instances if i.id == instance_id), None)

    def add_instance(self, name: str, url: str, auth_key: str = "", is_active: bool = True) -> Instance:
        """Registers a new instance. The id is a millisecond timestamp."""
        if not name or not url:
            raise ValidationError("Instance name and URL are required")
        with self._lock:
            instance_id = str(int(time.time() * 1000))
            while any(i.id == instance_id for i in self._instances):
                instance_id = str(int(instance_id) + 1)
            instance = Instance(id=instance_id, name=name, url=url, authKey=auth_key, isActive=is_active)
            self._instances.append(instance)
            self._save_instances()
        logger.info(f"Instance '{name}' added with id {instance.id}.")
        return instance

    def update_instance(self, instance_id: str, **changes: Any) -> Instance:
        with self._lock:
            for index, instance in enumerate(self._instances):
                if instance.id == instance_id:
                    updated = replace(instance, **changes)
                    self._instances[index] = updated
                    self._save_instances()
                    return updated
        raise ValidationError(f"Instance not found: {instance_id}")

    def remove_instance(self, instance_id: str) -> None:
        with self._lock:
            self._instances = [i for i in self._instances if i.id != instance_id]
            self._instance_data.pop(instance_id, None)
            self._save_instances()
            self._save_instance_data()
        logger.info(f"Instance {instance_id} removed.")

    def toggle_instance_active(self, instance_id: str) -> Instance:
        instance = self.get_instance(instance_id)
        if instance is None:
            raise ValidationError(f"Instance not found: {instance_id}")
        return self.update_instance(instance_id, isActive=not instance.isActive)

    # --- Payload Cache ---
    def get_instance_data(self, instance_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            return self._instance_data.get(instance_id)

    def set_instance_data(self, instance_id: str, data: Any, type_key: str, timestamp: Optional[str] = None) -> None:
        """Stores the payload of a comparison type for an instance, overwriting any previous one."""
        with self._lock:
            self._instance_data[instance_id] = {
                "instanceId": instance_id,
                "typeKey": type_key,
                "data": data,
                "timestamp": timestamp or core.utc_timestamp(),
            }
            self._save_instance_data()

    def _payload_snapshot(self, instance_ids: List[str], type_key: str) -> Dict[str, Any]:
        """Cached payloads of `type_key`. Entries fetched for another type count as missing."""
        payloads = {}
        with self._lock:
            for instance_id in instance_ids:
                entry = self._instance_data.get(instance_id)
                if not entry or "data" not in entry or entry.get("error"):
                    continue
                if entry.get("typeKey") != type_key:
                    logger.warning(
                        f"Cached payload of instance {instance_id} was fetched for "
                        f"'{entry.get('typeKey')}', not '{type_key}'; treating it as missing."
                    )
                    continue
                payloads[instance_id] = entry["data"]
        return payloads

    def fetch_instances(self, instance_ids: List[str], type_key: str) -> Dict[str, Any]:
        """
        Fetches the payload of a comparison type from each instance and refreshes the cache.

        An instance that fails keeps no payload in the cache (it is compared as missing
        every unit) and its status is set to 'error'; the other instances are unaffected.

        Returns:
            dict: {"success": [instance ids], "errors": {instance id: message}}
        """
        comparison_type = self.types.require(type_key)
        results: Dict[str, Any] = {"success": [], "errors": {}}

        instances = []
        for instance_id in instance_ids:
            instance = self.get_instance(instance_id)
            if instance is None:
                results["errors"][instance_id] = "Instance not found"
                continue
            instances.append(instance.to_dict())
            self.update_instance(instance_id, status="loading")

        outcomes = core.fetch_all(
            instances,
            comparison_type.fetch_endpoint,
            comparison_type.request_body,
            timeout=self._timeout,
        )

        with self._lock:
            for outcome in outcomes:
                if outcome.ok:
                    self._instance_data[outcome.instance_id] = {
                        "instanceId": outcome.instance_id,
                        "typeKey": type_key,
                        "data": outcome.data,
                        "timestamp": outcome.timestamp,
                    }
                    self.update_instance(outcome.instance_id, status="connected", lastSync=outcome.timestamp)
                    results["success"].append(outcome.instance_id)
                else:
                    self._instance_data[outcome.instance_id] = {
                        "instanceId": outcome.instance_id,
                        "typeKey": type_key,
                        "timestamp": outcome.timestamp,
                        "error": outcome.error,
                    }
                    self.update_instance(outcome.instance_id, status="error")
                    results["errors"][outcome.instance_id] = outcome.error
            self._save_instance_data()

        logger.info(
            f"Fetched {comparison_type.label}: {len(results['success'])} succeeded, "
            f"{len(results['errors'])} failed."
        )
        return results

    # --- Comparison Sessions ---
    def create_comparison_session(self, instance_ids: List[str], type_key: str,
                                  base_instance_id: Optional[str] = None,
                                  name: Optional[str] = None) -> ComparisonSession:
        """
        Runs the comparison engine over the cached payloads and records a new active session.

        Raises:
            ValidationError: If fewer than 2 instances are selected. No session is created.
            MalformedConfigError: If the comparison type cannot be compared.
        """
        comparison_type = self.types.require(type_key)
        payloads = self._payload_snapshot(list(instance_ids), type_key)
        results, summary = run_comparison(payloads, instance_ids, comparison_type.mode(), base_instance_id)
        session = assemble_session(
            results, summary, instance_ids, comparison_type.fetch_endpoint,
            name=name, type_label=comparison_type.label,
            base_instance_id=base_instance_id if base_instance_id in instance_ids else None,
        )

        with self._lock:
            self._sessions.append(session)
            self._active_session_id = session.id
            self._save_sessions()

        logger.info(f"Session '{session.name}' ({session.id}) created with {summary.total_differences} differences.")
        return session

    def list_sessions(self) -> List[ComparisonSession]:
        with self._lock:
            return list(self._sessions)

    def get_session(self, session_id: str) -> Optional[ComparisonSession]:
        with self._lock:
            return next((s for s in self._sessions if s.id == session_id), None)

    @property
    def active_session_id(self) -> Optional[str]:
        return self._active_session_id

    def get_active_session(self) -> Optional[ComparisonSession]:
        if self._active_session_id is None:
            return None
        return self.get_session(self._active_session_id)

    def set_active_session(self, session_id: str) -> None:
        with self._lock:
            if self.get_session(session_id) is None:
                raise ValidationError(f"Session not found: {session_id}")
            self._active_session_id = session_id
            self._save_sessions()

    def delete_session(self, session_id: str) -> bool:
        with self._lock:
            before = len(self._sessions)
            self._sessions = [s for s in self._sessions if s.id != session_id]
            if self._active_session_id == session_id:
                self._active_session_id = None
            deleted = len(self._sessions) != before
            self._save_sessions()
        if deleted:
            logger.info(f"Session {session_id} deleted.")
        else:
            logger.warning(f"Session {session_id} not found; nothing deleted.")
        return deleted

    # --- Migration ---
    def _comparison_type_for_session(self, session: ComparisonSession, type_key: Optional[str]) -> ComparisonType:
        if type_key:
            return self.types.require(type_key)
        for comparison_type in self.types.list_types():
            if comparison_type.fetch_endpoint == session.endpoint:
                return comparison_type
        raise ValidationError(f"No comparison type matches endpoint {session.endpoint}")

    def preview_migration(self, session_id: str, source_instance_id: str, paths: List[str],
                          type_key: Optional[str] = None) -> Any:
        """Returns the payload a migration would post, without sending it."""
        session = self.get_session(session_id)
        if session is None:
            raise ValidationError(f"Session not found: {session_id}")
        comparison_type = self._comparison_type_for_session(session, type_key)
        return build_migration_payload(session, source_instance_id, paths, comparison_type.mode())

    def migrate(self, session_id: str, source_instance_id: str, target_instance_ids: List[str],
                paths: List[str], type_key: Optional[str] = None) -> Dict[str, Any]:
        """
        Writes the source instance's values of the selected differences to the targets.

        Args:
            session_id (str): Session whose values are migrated.
            source_instance_id (str): Instance the values are read from.
            target_instance_ids (List[str]): Instances the payload is posted to.
            paths (List[str]): Result paths (or item identifiers) selected for migration.
            type_key (str, optional): Comparison type; inferred from the session endpoint if omitted.

        Returns:
            dict: {"payload": posted payload, "success": [ids], "errors": {id: message}}

        Raises:
            ValidationError: If the selection is incomplete or nothing can be migrated.
        """
        targets = [t for t in target_instance_ids if t]
        if not targets:
            raise ValidationError("Select at least one target instance")
        if source_instance_id in targets:
            raise ValidationError("Source and target instances must differ")
        if not paths:
            raise ValidationError("Select at least one difference to migrate")

        session = self.get_session(session_id)
        if session is None:
            raise ValidationError(f"Session not found: {session_id}")
        comparison_type = self._comparison_type_for_session(session, type_key)
        payload = build_migration_payload(session, source_instance_id, paths, comparison_type.mode())

        results: Dict[str, Any] = {"payload": payload, "success": [], "errors": {}}
        for target_id in targets:
            instance = self.get_instance(target_id)
            if instance is None:
                results["errors"][target_id] = "Instance not found"
                continue
            try:
                core.post_instance_data(instance.to_dict(), comparison_type.save_endpoint, payload,
                                        timeout=self._timeout)
                results["success"].append(target_id)
            except core.InstanceRequestError as e:
                logger.error(f"Migration to {target_id} failed: {e.message}")
                results["errors"][target_id] = e.message

        logger.info(
            f"Migrated {len(paths)} difference(s) from {source_instance_id}: "
            f"{len(results['success'])} target(s) updated, {len(results['errors'])} failed."
        )
        return results

    # --- Comparison Types ---
    def add_custom_type(self, **kwargs: Any) -> ComparisonType:
        with self._lock:
            custom_type = self.types.add_custom_type(**kwargs)
            self._save_types()
        return custom_type

    def update_custom_type(self, key: str, **changes: Any) -> ComparisonType:
        with self._lock:
            custom_type = self.types.update_custom_type(key, **changes)
            self._save_types()
        return custom_type

    def delete_custom_type(self, key: str) -> bool:
        with self._lock:
            deleted = self.types.delete_custom_type(key)
            self._save_types()
        return deleted

    def update_built_in_endpoints(self, key: str, **changes: Any) -> ComparisonType:
        with self._lock:
            comparison_type = self.types.update_built_in_endpoints(key, **changes)
            self._save_types()
        return comparison_type


# --- Charts ---
def build_summary_chart(summary: Summary, title: str = "Comparison Overview") -> Bar:
    """Bar chart of added, deleted and modified counts for a session summary."""
    return (
        Bar(init_opts=opts.InitOpts(width="100%", height="320px"))
        .add_xaxis(["Added", "Deleted", "Modified"])
        .add_yaxis(
            "Differences",
            [
                opts.BarItem(name="Added", value=summary.added,
                             itemstyle_opts=opts.ItemStyleOpts(color="#28a745")),
                opts.BarItem(name="Deleted", value=summary.deleted,
                             itemstyle_opts=opts.ItemStyleOpts(color="#dc3545")),
                opts.BarItem(name="Modified", value=summary.edited,
                             itemstyle_opts=opts.ItemStyleOpts(color="#ffc107")),
            ],
        )
        .set_global_opts(
            title_opts=opts.TitleOpts(
                title=title,
                subtitle=f"{summary.total_differences} difference(s) in total",
            ),
            legend_opts=opts.LegendOpts(is_show=False),
        )
    )
