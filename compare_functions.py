# compare_functions.py

"""
This module provides the comparison engine used to reconcile JSON payloads fetched
from several instances. It walks nested objects or identified record arrays, decides
per comparison unit whether the instances disagree, classifies each difference as
added/deleted/edited and assembles the results into a comparison session.

The engine is pure: it performs no I/O and never mutates the payloads it is given.
"""

# --- Standard Library Imports ---
import copy       # For detaching migrated values from the session.
import json       # For canonical serialization used in equality checks.
import logging    # For logging events and errors.
import threading  # For guarding the session id counter.
import time       # For timestamp-based session ids.
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

# --- Third-Party Imports ---
from deepdiff import DeepDiff # Used for the field-level breakdown of edited values.


# --- Logger Setup ---
logger = logging.getLogger(__name__)


# --- Constants ---
MISSING = "MISSING"  # Literal written into a result's values map for absent units.

DIFFERENCE_TYPES = ("added", "deleted", "edited")


class _Absent:
    """Marker for a value that does not exist in a payload. Never a JSON value."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "<absent>"

    def __bool__(self) -> bool:
        return False


ABSENT = _Absent()


# --- Errors ---
class ComparisonError(Exception):
    """Base class for errors raised by the comparison engine."""


class ValidationError(ComparisonError, ValueError):
    """Raised when a comparison run is rejected because of its inputs."""


class MalformedConfigError(ComparisonError, ValueError):
    """Raised when a comparison mode is configured in a way that cannot produce units."""


# --- Comparison Modes ---
@dataclass(frozen=True)
class GenericObject:
    """Compare every dotted path discovered in nested object payloads."""


@dataclass(frozen=True)
class ArrayByIdentifier:
    """Compare arrays of records matched across instances by `identifier_field`."""
    identifier_field: str
    fields: Tuple[str, ...] = ()
    item_label: str = "Item"

    def __post_init__(self):
        object.__setattr__(self, "fields", tuple(self.fields or ()))


@dataclass(frozen=True)
class FieldSubsetOfObject:
    """Compare an explicit list of dotted field paths of an object payload."""
    fields: Tuple[str, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "fields", tuple(self.fields or ()))


Mode = Union[GenericObject, ArrayByIdentifier, FieldSubsetOfObject]


# --- Result Records ---
@dataclass(frozen=True)
class DifferenceResult:
    path: str
    type: str
    values: Dict[str, Any]
    affected_instances: Tuple[str, ...]
    description: str
    identifier: Any = None  # Raw identifier value of an array-mode item.

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "path": self.path,
            "type": self.type,
            "values": dict(self.values),
            "affectedInstances": list(self.affected_instances),
            "description": self.description,
        }
        if self.identifier is not None:
            data["identifier"] = self.identifier
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "DifferenceResult":
        return cls(
            path=data["path"],
            type=data["type"],
            values=dict(data.get("values", {})),
            affected_instances=tuple(data.get("affectedInstances", ())),
            description=data.get("description", ""),
            identifier=data.get("identifier"),
        )


@dataclass(frozen=True)
class Summary:
    total_differences: int = 0
    added: int = 0
    deleted: int = 0
    edited: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {
            "totalDifferences": self.total_differences,
            "added": self.added,
            "deleted": self.deleted,
            "edited": self.edited,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Summary":
        return cls(
            total_differences=int(data.get("totalDifferences", 0)),
            added=int(data.get("added", 0)),
            deleted=int(data.get("deleted", 0)),
            edited=int(data.get("edited", 0)),
        )


@dataclass(frozen=True)
class ComparisonSession:
    id: str
    name: str
    instance_ids: Tuple[str, ...]
    endpoint: str
    timestamp: str
    results: Tuple[DifferenceResult, ...] = ()
    summary: Summary = field(default_factory=Summary)
    base_instance_id: Optional[str] = None

    def get_result(self, path: str) -> Optional[DifferenceResult]:
        for result in self.results:
            if result.path == path:
                return result
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "instanceIds": list(self.instance_ids),
            "endpoint": self.endpoint,
            "timestamp": self.timestamp,
            "results": [result.to_dict() for result in self.results],
            "summary": self.summary.to_dict(),
            "baseInstanceId": self.base_instance_id,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ComparisonSession":
        return cls(
            id=str(data["id"]),
            name=data.get("name", ""),
            instance_ids=tuple(data.get("instanceIds", ())),
            endpoint=data.get("endpoint", ""),
            timestamp=data.get("timestamp", ""),
            results=tuple(DifferenceResult.from_dict(r) for r in data.get("results", [])),
            summary=Summary.from_dict(data.get("summary", {})),
            base_instance_id=data.get("baseInstanceId"),
        )


# --- Equality ---
def canonical_json(value: Any) -> str:
    """
    Serializes a JSON-compatible value with sorted keys and no insignificant whitespace.

    Two values are considered equal by the engine iff their canonical forms are equal,
    so object key order never produces a difference. Integral floats are written as
    integers, so 1 and 1.0 are the same JSON number.
    """
    return json.dumps(_normalize_numbers(value), sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def _normalize_numbers(value: Any) -> Any:
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, dict):
        return {key: _normalize_numbers(item) for key, item in value.items()}
    if isinstance(value, list):
        return [_normalize_numbers(item) for item in value]
    return value


def values_equal(first: Any, second: Any) -> bool:
    """Compares two present values. Booleans and strings take a direct comparison."""
    if type(first) is type(second) and isinstance(first, (bool, str)):
        return first == second
    return canonical_json(first) == canonical_json(second)


def _distinct_key(value: Any) -> Any:
    # Absence is its own distinct value; the tuple can never collide with a JSON string.
    if value is ABSENT:
        return ("absent",)
    return canonical_json(value)


# --- Path Collector ---
def collect_paths(payloads: Iterable[Any]) -> List[str]:
    """
    Enumerates every dotted field path reachable through nested objects.

    Args:
        payloads (Iterable[Any]): Payloads to walk. Non-dict payloads contribute nothing.

    Returns:
        List[str]: The union of paths found in any payload, in first-seen order.
                   Arrays and scalars are leaves and are never descended into.
    """
    seen: Dict[str, None] = {}

    def _walk(node: Dict[str, Any], prefix: str) -> None:
        for key, value in node.items():
            path = f"{prefix}.{key}" if prefix else str(key)
            seen.setdefault(path, None)
            if isinstance(value, dict):
                _walk(value, path)

    for payload in payloads:
        if isinstance(payload, dict):
            _walk(payload, "")
    return list(seen)


# --- Path Resolver ---
def get_value_at_path(obj: Any, path: str) -> Any:
    """
    Returns the value at a dotted path, or ABSENT when any step cannot be resolved.

    Dicts are walked by key and lists by integer index. JSON null is a present value.
    """
    current = obj
    for part in path.split("."):
        if isinstance(current, dict):
            if part not in current:
                return ABSENT
            current = current[part]
        elif isinstance(current, list):
            try:
                index = int(part)
            except ValueError:
                return ABSENT
            if index < 0 or index >= len(current):
                return ABSENT
            current = current[index]
        else:
            return ABSENT
    return current


# --- Identity Extractor ---
def _stringify_identifier(raw: Any) -> str:
    if raw is ABSENT or raw is None:
        return ""
    if isinstance(raw, str):
        return raw
    return canonical_json(raw)


def build_identity_maps(
    payloads: Mapping[str, Any],
    instance_ids: Sequence[str],
    identifier_field: str,
) -> Tuple[Dict[str, Dict[str, Dict[str, Any]]], List[str]]:
    """
    Builds, per instance, a map from identifier value to record.

    Args:
        payloads (Mapping[str, Any]): Instance id to payload (expected to be a list of records).
        instance_ids (Sequence[str]): Instances to index, in declared order.
        identifier_field (str): Dotted path of the identifier inside each record.

    Returns:
        tuple: (maps, identifiers)
               - maps: instance id -> {identifier: record}. Missing payloads give an empty map.
               - identifiers: union of all identifiers seen, in first-seen order.
    """
    maps: Dict[str, Dict[str, Dict[str, Any]]] = {}
    union: Dict[str, None] = {}

    for instance_id in instance_ids:
        records = payloads.get(instance_id)
        item_map: Dict[str, Dict[str, Any]] = {}
        if records is None:
            maps[instance_id] = item_map
            continue
        if not isinstance(records, list):
            logger.warning(f"Payload for instance '{instance_id}' is not an array; treating it as empty.")
            maps[instance_id] = item_map
            continue

        for record in records:
            if not isinstance(record, dict):
                logger.warning(f"Skipping non-object record in instance '{instance_id}': {record!r}")
                continue
            identifier = _stringify_identifier(get_value_at_path(record, identifier_field))
            if not identifier:
                logger.warning(f"Skipping record without '{identifier_field}' in instance '{instance_id}'.")
                continue
            if identifier in item_map:
                logger.warning(f"Duplicate identifier '{identifier}' in instance '{instance_id}', overwriting previous entry.")
            item_map[identifier] = record
            union.setdefault(identifier, None)

        maps[instance_id] = item_map

    return maps, list(union)


def extract_fields(record: Dict[str, Any], fields: Sequence[str]) -> Dict[str, Any]:
    """Returns the sub-object of `fields` present in `record`; all of it when no fields are given."""
    if not fields:
        return record
    subset = {}
    for field_path in fields:
        value = get_value_at_path(record, field_path)
        if value is not ABSENT:
            subset[field_path] = value
    return subset


# --- Difference Classifier ---
def _format_value(value: Any) -> str:
    return canonical_json(value)


def classify_difference(
    unit: str,
    values: Mapping[str, Any],
    instance_ids: Sequence[str],
    base_instance_id: Optional[str] = None,
    *,
    require_full_presence: bool = False,
    label: Optional[str] = None,
) -> Optional[DifferenceResult]:
    """
    Decides whether one comparison unit differs across instances and classifies it.

    Args:
        unit (str): The dotted path or item identifier being compared.
        values (Mapping[str, Any]): Instance id to value, ABSENT when the unit is missing.
                                    Instances not present in the mapping count as ABSENT.
        instance_ids (Sequence[str]): All instances of the run, in declared order.
        base_instance_id (str, optional): Reference instance for base-relative comparison.
        require_full_presence (bool): Also report the unit whenever any instance lacks it
                                      (array mode).
        label (str, optional): Prefix used in the description. Defaults to 'Setting at "<unit>"'.

    Returns:
        DifferenceResult or None: None when the unit is unchanged.
    """
    ordered = [(instance_id, values.get(instance_id, ABSENT)) for instance_id in instance_ids]
    present = [instance_id for instance_id, value in ordered if value is not ABSENT]
    missing = [instance_id for instance_id, value in ordered if value is ABSENT]
    by_id = dict(ordered)

    has_base = base_instance_id is not None and base_instance_id in by_id
    base_value = by_id.get(base_instance_id, ABSENT) if has_base else ABSENT
    base_present = base_value is not ABSENT

    if has_base and base_present:
        has_difference = any(
            value is ABSENT or not values_equal(value, base_value)
            for instance_id, value in ordered
            if instance_id != base_instance_id
        )
    else:
        has_difference = len({_distinct_key(value) for _, value in ordered}) > 1

    if require_full_presence and missing:
        has_difference = True

    if not has_difference:
        return None

    label = label or f'Setting at "{unit}"'
    if missing and present:
        if has_base:
            if not base_present:
                diff_type = "added"
                description = f"{label} added in {len(present)} instance(s) (not present in base)"
            else:
                diff_type = "deleted"
                description = (
                    f"{label} deleted in {len(missing)} instance(s) "
                    f"(present in base with value {_format_value(base_value)})"
                )
        elif len(missing) < len(present):
            diff_type = "added"
            description = f"{label} added in {len(present)} instance(s), missing in {len(missing)}"
        else:
            diff_type = "deleted"
            description = f"{label} deleted in {len(missing)} instance(s), present in {len(present)}"
    else:
        diff_type = "edited"
        if has_base and base_present:
            differing = [
                instance_id for instance_id, value in ordered
                if instance_id != base_instance_id and not values_equal(value, base_value)
            ]
            description = (
                f"{label} edited: differs from base value {_format_value(base_value)} "
                f"in {len(differing)} instance(s)"
            )
        else:
            distinct = len({_distinct_key(value) for _, value in ordered})
            description = f"{label} edited: {distinct} distinct values across {len(present)} instance(s)"

    logger.debug(f"Difference on '{unit}': {diff_type} ({len(present)} present, {len(missing)} missing)")
    return DifferenceResult(
        path=unit,
        type=diff_type,
        values={instance_id: (MISSING if value is ABSENT else value) for instance_id, value in ordered},
        affected_instances=tuple(present),
        description=description,
    )


# --- Comparison Orchestrator ---
def _validate_mode(mode: Any) -> None:
    if isinstance(mode, ArrayByIdentifier):
        if not mode.identifier_field:
            raise MalformedConfigError("ArrayByIdentifier mode requires an identifier field")
    elif isinstance(mode, FieldSubsetOfObject):
        if not mode.fields:
            raise MalformedConfigError("FieldSubsetOfObject mode requires at least one field")
    elif not isinstance(mode, GenericObject):
        raise MalformedConfigError(f"Unsupported comparison mode: {mode!r}")


def run_comparison(
    payloads: Mapping[str, Any],
    instance_ids: Sequence[str],
    mode: Mode,
    base_instance_id: Optional[str] = None,
) -> Tuple[List[DifferenceResult], Summary]:
    """
    Compares the payloads of the given instances and returns the differences.

    Args:
        payloads (Mapping[str, Any]): Instance id to fetched payload. Instances without a
                                      payload are treated as missing every unit.
        instance_ids (Sequence[str]): Instances to compare; order drives the values maps.
        mode (Mode): GenericObject, ArrayByIdentifier or FieldSubsetOfObject.
        base_instance_id (str, optional): Reference instance. Ignored when not in `instance_ids`.

    Returns:
        tuple: (results, summary)

    Raises:
        ValidationError: If fewer than 2 instances are supplied.
        MalformedConfigError: If the mode cannot produce comparison units.
    """
    instance_ids = list(instance_ids)
    if len(instance_ids) < 2:
        raise ValidationError("at least 2 instances required")
    _validate_mode(mode)

    if base_instance_id is not None and base_instance_id not in instance_ids:
        logger.warning(f"Base instance '{base_instance_id}' is not part of the comparison; comparing pairwise.")
        base_instance_id = None

    logger.info(
        f"Starting comparison: mode={type(mode).__name__}, instances={instance_ids}, base={base_instance_id}"
    )

    results: List[DifferenceResult] = []

    if isinstance(mode, ArrayByIdentifier):
        maps, identifiers = build_identity_maps(payloads, instance_ids, mode.identifier_field)
        for identifier in identifiers:
            values = {}
            for instance_id in instance_ids:
                record = maps[instance_id].get(identifier)
                values[instance_id] = ABSENT if record is None else extract_fields(record, mode.fields)
            result = classify_difference(
                identifier, values, instance_ids, base_instance_id,
                require_full_presence=True,
                label=f'{mode.item_label} "{identifier}"',
            )
            if result:
                first_record = next(maps[i][identifier] for i in instance_ids if identifier in maps[i])
                raw_identifier = get_value_at_path(first_record, mode.identifier_field)
                results.append(replace(result, identifier=raw_identifier))
    else:
        if isinstance(mode, FieldSubsetOfObject):
            units = list(mode.fields)
        else:
            units = collect_paths(payloads.get(instance_id) for instance_id in instance_ids)
        for path in units:
            values = {
                instance_id: (get_value_at_path(payloads[instance_id], path) if instance_id in payloads else ABSENT)
                for instance_id in instance_ids
            }
            result = classify_difference(path, values, instance_ids, base_instance_id)
            if result:
                results.append(result)

    summary = summarize(results)
    logger.info(
        f"Completed comparison: {summary.total_differences} differences "
        f"(A:{summary.added}, D:{summary.deleted}, E:{summary.edited})"
    )
    return results, summary


def summarize(results: Iterable[DifferenceResult]) -> Summary:
    """Counts results by type."""
    counts = {diff_type: 0 for diff_type in DIFFERENCE_TYPES}
    for result in results:
        if result.type in counts:
            counts[result.type] += 1
        else:
            logger.warning(f"Unknown difference type encountered: {result.type} for {result.path}")
    return Summary(
        total_differences=sum(counts.values()),
        added=counts["added"],
        deleted=counts["deleted"],
        edited=counts["edited"],
    )


# --- Session Assembly ---
_session_id_lock = threading.Lock()
_last_session_id = 0


def _next_session_id() -> str:
    global _last_session_id
    with _session_id_lock:
        candidate = time.time_ns() // 1000
        if candidate <= _last_session_id:
            candidate = _last_session_id + 1
        _last_session_id = candidate
    return str(candidate)


def assemble_session(
    results: Sequence[DifferenceResult],
    summary: Summary,
    instance_ids: Sequence[str],
    endpoint: str,
    name: Optional[str] = None,
    type_label: str = "comparison",
    base_instance_id: Optional[str] = None,
) -> ComparisonSession:
    """
    Wraps a comparison run into an immutable session record.

    The id is a strictly increasing microsecond timestamp. When no name is given one is
    generated from the type label and the creation time. `base_instance_id` records the
    reference instance of a base-relative run.
    """
    now = datetime.now(timezone.utc)
    session_name = name or f"{type_label} comparison - {now.astimezone().strftime('%Y-%m-%d %H:%M:%S')}"
    return ComparisonSession(
        id=_next_session_id(),
        name=session_name,
        instance_ids=tuple(instance_ids),
        endpoint=endpoint,
        timestamp=now.isoformat(),
        results=tuple(results),
        summary=summary,
        base_instance_id=base_instance_id,
    )


# --- Value Detail (DeepDiff) ---
def _deepdiff_path_to_dotted(path: str) -> str:
    """Converts a DeepDiff path such as root['a'][0]['b'] into a.0.b."""
    parts = []
    for key in path[len("root"):].strip("[]").split("]["):
        if not key:
            continue
        parts.append(key[1:-1] if key[:1] in ("'", '"') else key)
    return ".".join(parts)


def describe_value_changes(reference: Any, current: Any) -> List[Dict[str, Any]]:
    """
    Breaks an edited value down into field-level changes using DeepDiff.

    Args:
        reference (Any): Value from the reference instance (base, or first present instance).
        current (Any): Value from the instance being inspected.

    Returns:
        list: Dictionaries with 'field', 'status' ('changed', 'added', 'removed',
              'type_changed'), 'reference_value' and 'current_value'. The root value
              itself is reported with field "".
    """
    reference_missing = reference is ABSENT or reference == MISSING
    current_missing = current is ABSENT or current == MISSING
    if reference_missing or current_missing:
        if reference_missing and current_missing:
            return []
        return [{
            "field": "",
            "status": "added" if reference_missing else "removed",
            "reference_value": None if reference_missing else reference,
            "current_value": None if current_missing else current,
        }]

    diff_output = DeepDiff(reference, current, verbose_level=2)
    changes = []

    for diff_type, entries in diff_output.items():
        if diff_type in ("values_changed", "type_changes"):
            status = "changed" if diff_type == "values_changed" else "type_changed"
            for path, details in entries.items():
                changes.append({
                    "field": _deepdiff_path_to_dotted(path),
                    "status": status,
                    "reference_value": details.get("old_value"),
                    "current_value": details.get("new_value"),
                })
        elif diff_type in ("dictionary_item_added", "iterable_item_added"):
            for path, value in entries.items():
                changes.append({
                    "field": _deepdiff_path_to_dotted(path),
                    "status": "added",
                    "reference_value": None,
                    "current_value": value,
                })
        elif diff_type in ("dictionary_item_removed", "iterable_item_removed"):
            for path, value in entries.items():
                changes.append({
                    "field": _deepdiff_path_to_dotted(path),
                    "status": "removed",
                    "reference_value": value,
                    "current_value": None,
                })
        else:
            logger.debug(f"Ignoring DeepDiff category '{diff_type}' in value detail.")

    changes.sort(key=lambda change: change["field"])
    return changes


# --- Migration Payload ---
def _set_nested(target: Dict[str, Any], path: str, value: Any) -> None:
    parts = path.split(".")
    current = target
    for part in parts[:-1]:
        if not isinstance(current.get(part), dict):
            current[part] = {}
        current = current[part]
    current[parts[-1]] = value


def build_migration_payload(
    session: ComparisonSession,
    source_instance_id: str,
    paths: Sequence[str],
    mode: Mode,
) -> Union[Dict[str, Any], List[Dict[str, Any]]]:
    """
    Builds the write-back payload for the selected units from the source instance's values.

    Object modes rebuild a nested object from the dotted paths. Array mode produces one
    record per identifier carrying the identifier field and the compared fields.

    Raises:
        ValidationError: If the source is not part of the session or nothing can be migrated.
    """
    if source_instance_id not in session.instance_ids:
        raise ValidationError(f"Source instance '{source_instance_id}' is not part of session '{session.id}'")

    selected = []
    for path in paths:
        result = session.get_result(path)
        if result is None:
            logger.warning(f"Path '{path}' is not a difference of session '{session.id}', skipping.")
            continue
        if source_instance_id not in result.affected_instances:
            logger.warning(f"Path '{path}' is missing in source '{source_instance_id}', skipping.")
            continue
        unit = result.identifier if result.identifier is not None else path
        selected.append((unit, copy.deepcopy(result.values[source_instance_id])))

    if not selected:
        raise ValidationError("Nothing to migrate: no selected path has a value in the source instance")

    if isinstance(mode, ArrayByIdentifier):
        records = []
        for identifier, sub_object in selected:
            record: Dict[str, Any] = {}
            _set_nested(record, mode.identifier_field, identifier)
            if isinstance(sub_object, dict):
                for field_path, value in sub_object.items():
                    _set_nested(record, field_path, value)
            records.append(record)
        return records

    migration_data: Dict[str, Any] = {}
    # Parents first, so nested selections are written inside the parent's object.
    for path, value in sorted(selected, key=lambda item: item[0].count(".")):
        _set_nested(migration_data, path, value)
    return migration_data
