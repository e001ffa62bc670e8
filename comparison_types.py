# comparison_types.py

"""
This module defines the comparison types the application supports. It acts as a central
registry, mapping each type to the endpoints used to fetch and write back its data, the
request body sent on fetch, and the comparison mode the engine runs it with.

Built-in types cover settings, code tables and feature toggles. Operators can register
custom types describing any other endpoint.
"""

import logging # For logging events and errors.
import time
from dataclasses import dataclass, replace
from typing import Any, Dict, List, Optional

from compare_functions import (
    ArrayByIdentifier,
    FieldSubsetOfObject,
    GenericObject,
    MalformedConfigError,
    Mode,
    collect_paths,
)


# --- Logger Setup ---
logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ComparisonType:
    key: str
    label: str
    fetch_endpoint: str
    save_endpoint: str
    description: str = ""
    name: str = ""
    comparison_fields: tuple = ()
    identifier_field: Optional[str] = None
    request_body: Optional[Dict[str, Any]] = None
    item_label: str = "Item"
    is_custom: bool = False
    generic: bool = False  # Compare every discovered path instead of a field subset.

    def mode(self) -> Mode:
        """Returns the engine mode this type is compared with."""
        if self.identifier_field:
            return ArrayByIdentifier(self.identifier_field, self.comparison_fields, item_label=self.item_label)
        if self.generic:
            return GenericObject()
        return FieldSubsetOfObject(self.comparison_fields)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.key,
            "name": self.name,
            "label": self.label,
            "fetchEndpoint": self.fetch_endpoint,
            "saveEndpoint": self.save_endpoint,
            "description": self.description,
            "comparisonFields": list(self.comparison_fields),
            "identifierField": self.identifier_field,
            "requestBody": self.request_body,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ComparisonType":
        return cls(
            key=data["id"],
            name=data.get("name") or data["id"],
            label=data.get("label", data["id"]),
            fetch_endpoint=data.get("fetchEndpoint", ""),
            save_endpoint=data.get("saveEndpoint", ""),
            description=data.get("description", ""),
            comparison_fields=tuple(data.get("comparisonFields") or ()),
            identifier_field=data.get("identifierField") or None,
            request_body=data.get("requestBody"),
            is_custom=True,
        )


# --- BUILT-IN TYPE DEFINITIONS ---
BUILT_IN_TYPES: Dict[str, ComparisonType] = {
    "settings": ComparisonType(
        key="settings",
        label="Settings",
        fetch_endpoint="/api/settings",
        save_endpoint="/TurnOn",
        description="Compare application configuration settings",
        generic=True,
    ),
    "codeTable": ComparisonType(
        key="codeTable",
        label="Code Tables",
        fetch_endpoint="/api/code-table",
        save_endpoint="/TurnOn",
        description="Compare lookup tables and reference data",
        generic=True,
    ),
    "featureToggle": ComparisonType(
        key="featureToggle",
        label="Feature Toggles",
        fetch_endpoint="/GetAllFeatureFlags",
        save_endpoint="/TurnOnToggles",
        description="Compare feature flags and toggles",
        comparison_fields=("CurrentValue",),
        identifier_field="FeatureName",
        item_label="Feature",
    ),
}


def suggest_fields(sample: Any) -> List[str]:
    """
    Lists the dotted paths of a sample payload, to offer as comparison fields.
    For an array the first record is used.
    """
    if isinstance(sample, list):
        sample = sample[0] if sample else {}
    return collect_paths([sample])


class ComparisonTypeRegistry:
    """Holds the built-in types (with endpoint overrides) and the custom types."""

    def __init__(self, custom_types: Optional[List[Dict[str, Any]]] = None,
                 endpoint_overrides: Optional[Dict[str, Dict[str, Any]]] = None):
        self._custom: Dict[str, ComparisonType] = {}
        self._overrides: Dict[str, Dict[str, Any]] = dict(endpoint_overrides or {})
        for entry in custom_types or []:
            custom_type = ComparisonType.from_dict(entry)
            self._custom[custom_type.key] = custom_type
        logger.info(f"Comparison type registry loaded with {len(self._custom)} custom type(s).")

    def get(self, key: str) -> Optional[ComparisonType]:
        if key in BUILT_IN_TYPES:
            built_in = BUILT_IN_TYPES[key]
            override = self._overrides.get(key)
            if override:
                return replace(
                    built_in,
                    fetch_endpoint=override.get("fetchEndpoint") or built_in.fetch_endpoint,
                    save_endpoint=override.get("saveEndpoint") or built_in.save_endpoint,
                    request_body=override.get("requestBody", built_in.request_body),
                )
            return built_in
        return self._custom.get(key)

    def require(self, key: str) -> ComparisonType:
        comparison_type = self.get(key)
        if comparison_type is None:
            raise MalformedConfigError(f"Unknown comparison type: {key}")
        return comparison_type

    def list_types(self) -> List[ComparisonType]:
        return [self.get(key) for key in BUILT_IN_TYPES] + list(self._custom.values())

    def custom_types(self) -> List[ComparisonType]:
        return list(self._custom.values())

    def endpoint_overrides(self) -> Dict[str, Dict[str, Any]]:
        return dict(self._overrides)

    def update_built_in_endpoints(self, key: str, fetch_endpoint: Optional[str] = None,
                                  save_endpoint: Optional[str] = None,
                                  request_body: Optional[Dict[str, Any]] = None) -> ComparisonType:
        """Overrides the endpoints and request body of a built-in type."""
        if key not in BUILT_IN_TYPES:
            raise MalformedConfigError(f"'{key}' is not a built-in comparison type")
        override = dict(self._overrides.get(key, {}))
        if fetch_endpoint:
            override["fetchEndpoint"] = fetch_endpoint
        if save_endpoint:
            override["saveEndpoint"] = save_endpoint
        if request_body is not None:
            override["requestBody"] = request_body
        self._overrides[key] = override
        logger.info(f"Endpoints updated for built-in type '{key}'.")
        return self.get(key)

    def add_custom_type(self, name: str, label: str, fetch_endpoint: str, save_endpoint: str,
                        comparison_fields: List[str], identifier_field: Optional[str] = None,
                        description: str = "", request_body: Optional[Dict[str, Any]] = None) -> ComparisonType:
        """
        Registers a user-defined comparison type.

        Args:
            name (str): Internal name of the type.
            label (str): Display name.
            fetch_endpoint (str): Path used to fetch the payload from each instance.
            save_endpoint (str): Path used to write migrated values back.
            comparison_fields (List[str]): Dotted fields to compare. At least one is required.
            identifier_field (str, optional): Record identifier. When set the payload is an
                                              array of records compared item by item.
            description (str): Free text shown in the UI.
            request_body (dict, optional): JSON body sent on fetch.

        Returns:
            ComparisonType: The registered type.

        Raises:
            MalformedConfigError: If a required attribute is missing.
        """
        fields = self._validate(name, label, fetch_endpoint, save_endpoint, comparison_fields)
        key = f"custom_{time.time_ns() // 1000}"
        custom_type = ComparisonType(
            key=key,
            name=name,
            label=label,
            fetch_endpoint=fetch_endpoint,
            save_endpoint=save_endpoint,
            description=description,
            comparison_fields=fields,
            identifier_field=identifier_field or None,
            request_body=request_body,
            is_custom=True,
        )
        self._custom[key] = custom_type
        logger.info(f"Custom comparison type '{label}' registered as {key}.")
        return custom_type

    def update_custom_type(self, key: str, **changes: Any) -> ComparisonType:
        current = self._custom.get(key)
        if current is None:
            raise MalformedConfigError(f"Unknown custom comparison type: {key}")
        if "comparison_fields" in changes:
            changes["comparison_fields"] = tuple(changes["comparison_fields"] or ())
        if "identifier_field" in changes:
            changes["identifier_field"] = changes["identifier_field"] or None
        updated = replace(current, **changes)
        self._validate(updated.name, updated.label, updated.fetch_endpoint, updated.save_endpoint,
                       list(updated.comparison_fields))
        self._custom[key] = updated
        logger.info(f"Custom comparison type {key} updated.")
        return updated

    def delete_custom_type(self, key: str) -> bool:
        removed = self._custom.pop(key, None)
        if removed is None:
            logger.warning(f"Custom comparison type {key} not found; nothing deleted.")
            return False
        logger.info(f"Custom comparison type '{removed.label}' deleted.")
        return True

    @staticmethod
    def _validate(name: str, label: str, fetch_endpoint: str, save_endpoint: str,
                  comparison_fields: List[str]) -> tuple:
        if not name or not label or not fetch_endpoint or not save_endpoint:
            raise MalformedConfigError("Name, label, fetch endpoint and save endpoint are required")
        fields = tuple(f.strip() for f in comparison_fields or [] if f and f.strip())
        if not fields:
            raise MalformedConfigError("At least one comparison field is required")
        return fields
