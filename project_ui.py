# project_ui.py
"""
This module handles the Graphical User Interface (GUI) for the application using PyWebIO.
It defines the layout and the user interaction flows for managing instances, fetching and
comparing their payloads, reviewing comparison sessions, migrating values between instances
and maintaining the comparison types. All state changes go through `project_logic`.
"""

# --- Standard Library Imports ---
import html
import json
import logging
from typing import Any, Dict, List, Optional

# --- Third-Party Imports ---
from pywebio.input import *
from pywebio.output import *

# --- Local Application Imports ---
from app_logging import get_app_log_content, get_logger
from compare_functions import (
    ABSENT,
    ComparisonError,
    ComparisonSession,
    DifferenceResult,
    describe_value_changes,
)
from comparison_types import BUILT_IN_TYPES, suggest_fields
from core_operations import InstanceRequestError
from project_logic import ProjectLogic, build_summary_chart

# --- Logger Setup ---
logger = logging.getLogger(__name__)

APP_NAME = "JSON Sync Diff"

# Row background per difference type, shared by the results table and the detail popup.
ROW_STYLES = {
    "added": "background-color: #d4edda;",
    "deleted": "background-color: #f8d7da;",
    "removed": "background-color: #f8d7da;",
    "edited": "background-color: #fff3cd;",
    "changed": "background-color: #fff3cd;",
    "type_changed": "background-color: #fff3cd;",
}


class ProjectUI:
    def __init__(self, project_logic: ProjectLogic, app_scope_name: str):
        self._project_logic = project_logic
        self.logger = get_logger()
        self.app_scope_name = app_scope_name
        self.logger.info("ProjectUI initialized with ProjectLogic instance.")

    # --- Dropdown Data Preparation Functions ---
    def list_instances_for_dropdown(self, active_only: bool = True) -> List[Dict[str, Any]]:
        """Formats the registered instances for a dropdown or checkbox list."""
        instances = self._project_logic.list_instances(active_only=active_only)
        return [{"label": f"{i.name} ({i.url})", "value": i.id} for i in instances]

    def list_types_for_dropdown(self) -> List[Dict[str, Any]]:
        """Formats the comparison types for a dropdown menu."""
        return [
            {"label": f"{t.label}{' (custom)' if t.is_custom else ''}", "value": t.key}
            for t in self._project_logic.types.list_types()
        ]

    def instance_name(self, instance_id: str) -> str:
        instance = self._project_logic.get_instance(instance_id)
        return instance.name if instance else instance_id

    # --- GUI Layout and Navigation Functions ---
    def app_main_menu(self):
        """
        Displays the primary navigation: instance management, comparisons, sessions and
        comparison types.
        """
        with use_scope(self.app_scope_name, clear=True):
            self.header(APP_NAME)

            put_markdown("**Instances**")
            put_buttons(
                [
                    {"label": "Manage Instances", "value": "instances"},
                    {"label": "Add Instance", "value": "add_instance"},
                ],
                onclick=[self.manage_instances, self.add_instance],
            )
            put_markdown("---")

            put_markdown("**Compare**")
            put_buttons(
                [
                    {"label": "New Comparison", "value": "compare", "color": "primary"},
                    {"label": "Comparison Sessions", "value": "sessions"},
                ],
                onclick=[self.new_comparison, self.list_sessions],
            )
            active = self._project_logic.get_active_session()
            if active:
                put_buttons(
                    [{"label": f"Open active session: {active.name}", "value": active.id, "color": "success"}],
                    onclick=lambda _: self.display_session(self._project_logic.get_active_session()),
                )
            put_markdown("---")

            put_markdown("**Comparison Types**")
            put_buttons(
                [
                    {"label": "Manage Comparison Types", "value": "types"},
                    {"label": "Add Custom Type", "value": "add_type"},
                ],
                onclick=[self.manage_comparison_types, self.add_custom_type],
            )

    # --- Instance Management ---
    def manage_instances(self):
        """Lists the registered instances with actions to toggle or remove each of them."""
        with use_scope(self.app_scope_name, clear=True):
            self.header(APP_NAME)
            put_markdown("## Instances")
            instances = self._project_logic.list_instances()
            if not instances:
                put_text("No instances registered yet.")
            else:
                table_data = []
                for instance in instances:
                    table_data.append([
                        instance.name,
                        instance.url,
                        "Yes" if instance.isActive else "No",
                        instance.status,
                        instance.lastSync or "Never",
                        put_buttons(
                            [
                                {"label": "Deactivate" if instance.isActive else "Activate", "value": "toggle"},
                                {"label": "Remove", "value": "remove", "color": "danger"},
                            ],
                            onclick=lambda action, i=instance.id: self.on_instance_action(i, action),
                            small=True,
                        ),
                    ])
                put_table(
                    table_data,
                    header=["Name", "URL", "Active", "Status", "Last Sync", "Actions"],
                )

            put_buttons(
                [
                    {"label": "Add Instance", "value": "add", "color": "primary"},
                    {"label": "Back to Main Menu", "value": "back"},
                ],
                onclick=[self.add_instance, self.app_main_menu],
            )

    def on_instance_action(self, instance_id: str, action: str):
        try:
            if action == "toggle":
                instance = self._project_logic.toggle_instance_active(instance_id)
                toast(f"{instance.name} is now {'active' if instance.isActive else 'inactive'}.", color="success")
            elif action == "remove":
                confirmed = actions(
                    f"Remove instance {self.instance_name(instance_id)}? Its cached data is discarded.",
                    buttons=[
                        {"label": "Remove", "value": True, "color": "danger"},
                        {"label": "Cancel", "value": False, "color": "secondary"},
                    ],
                )
                if confirmed:
                    self._project_logic.remove_instance(instance_id)
                    toast("Instance removed.", color="success")
        except ComparisonError as e:
            self.logger.error(f"Instance action '{action}' failed for {instance_id}: {e}")
            toast(str(e), color="error")
        self.manage_instances()

    def add_instance(self):
        """Prompts for the connection details of a new instance."""
        with use_scope(self.app_scope_name, clear=True):
            self.header(APP_NAME)
            data = input_group(
                "Add Instance",
                [
                    input("Name", name="name", required=True, placeholder="Production"),
                    input("Base URL", name="url", type=URL, required=True,
                          placeholder="https://prod.example.com"),
                    input("Auth key", name="auth_key", type=PASSWORD),
                    checkbox(name="active", options=[{"label": "Active", "value": "active", "selected": True}]),
                    actions(
                        name="actions",
                        buttons=[
                            {"label": "Add", "value": "add", "color": "primary"},
                            {"label": "Cancel", "value": "cancel", "color": "secondary"},
                        ],
                    ),
                ],
            )
            if data["actions"] == "cancel":
                self.app_main_menu()
                return

            try:
                instance = self._project_logic.add_instance(
                    data["name"].strip(), data["url"].strip(), data["auth_key"] or "",
                    is_active="active" in data.get("active", []),
                )
                toast(f"Instance {instance.name} added.", color="success")
            except ComparisonError as e:
                self.logger.error(f"Failed to add instance: {e}")
                popup("Error Adding Instance", str(e))
            self.manage_instances()

    # --- Comparison Flow ---
    def new_comparison(self):
        """
        Asks for a comparison type, the instances to compare and an optional base instance,
        fetches fresh payloads and creates a comparison session from them.
        """
        instance_options = self.list_instances_for_dropdown(active_only=True)
        if len(instance_options) < 2:
            popup("Not Enough Instances", "At least 2 active instances are required to run a comparison.")
            self.logger.warning("Comparison requested with fewer than 2 active instances.")
            self.app_main_menu()
            return

        def validate(data):
            if len(data.get("instance_ids") or []) < 2:
                return ("instance_ids", "Select at least 2 instances.")
            if data.get("base_instance_id") and data["base_instance_id"] not in data["instance_ids"]:
                return ("base_instance_id", "The base instance must be one of the selected instances.")
            return None

        with use_scope(self.app_scope_name, clear=True):
            self.header(APP_NAME)
            selection = input_group(
                "New Comparison",
                [
                    select("Comparison type", name="type_key", options=self.list_types_for_dropdown()),
                    checkbox("Instances to compare", name="instance_ids", options=instance_options, inline=True),
                    select(
                        "Base instance",
                        name="base_instance_id",
                        options=[{"label": "(none, compare all instances with each other)", "value": ""}]
                        + instance_options,
                    ),
                    input("Session name", name="name", placeholder="Optional"),
                    checkbox(
                        name="options",
                        options=[{"label": "Fetch fresh data before comparing", "value": "fetch", "selected": True}],
                    ),
                    actions(name="submit", buttons=["Compare", "Cancel"]),
                ],
                validate=lambda data: validate(data) if data.get("submit") == "Compare" else None,
            )

        if selection["submit"] == "Cancel":
            self.app_main_menu()
            return

        instance_ids = selection["instance_ids"]
        type_key = selection["type_key"]

        with use_scope(self.app_scope_name, clear=True):
            self.header(APP_NAME)
            put_progressbar("bar")
            if "fetch" in selection.get("options", []):
                put_text(f"Fetching data from {len(instance_ids)} instance(s)...")
                with put_loading():
                    fetch_results = self._project_logic.fetch_instances(instance_ids, type_key)
                for instance_id, error in fetch_results["errors"].items():
                    toast(f"{self.instance_name(instance_id)}: {error}", color="error", duration=5)
            set_progressbar("bar", 0.5)

            try:
                session = self._project_logic.create_comparison_session(
                    instance_ids, type_key,
                    base_instance_id=selection.get("base_instance_id") or None,
                    name=(selection.get("name") or "").strip() or None,
                )
            except ComparisonError as e:
                self.logger.error(f"Comparison failed: {e}")
                popup("Comparison Error", str(e))
                self.app_main_menu()
                return
            set_progressbar("bar", 1)

        toast(f"Found {session.summary.total_differences} difference(s).", color="success")
        self.display_session(session)

    def display_session(self, session: Optional[ComparisonSession]):
        """
        Displays a session: the summary chart, then one row per difference with its values
        per instance. Each row offers a detailed, field-level view of the values.
        """
        if session is None:
            toast("No session selected.", color="warn")
            self.app_main_menu()
            return

        instance_ids = list(session.instance_ids)
        with use_scope(self.app_scope_name, clear=True):
            self.header(APP_NAME)
            put_markdown(f"## {session.name}")
            put_text(f"Endpoint: {session.endpoint} | Created: {session.timestamp}")
            put_html(build_summary_chart(session.summary, title="Differences").render_notebook())

            if not session.results:
                put_text("✅ All instances are in sync.").style("color: green; font-weight: bold;")
            else:
                table_html_parts = ["""
                <table border="1" style="border-collapse: collapse; width: 100%;">
                    <thead><tr>
                        <th style="padding: 8px; text-align: left;">Type</th>
                        <th style="padding: 8px; text-align: left;">Path</th>
                """]
                for instance_id in instance_ids:
                    table_html_parts.append(
                        f'<th style="padding: 8px; text-align: left;">{html.escape(self.instance_name(instance_id))}</th>'
                    )
                table_html_parts.append('<th style="padding: 8px; text-align: left;">Description</th></tr></thead><tbody>')

                for result in session.results:
                    table_html_parts.append(f"<tr style='{ROW_STYLES.get(result.type, '')}'>")
                    table_html_parts.append(f'<td style="padding: 8px;">{result.type.capitalize()}</td>')
                    table_html_parts.append(f'<td style="padding: 8px;">{html.escape(result.path)}</td>')
                    for instance_id in instance_ids:
                        if instance_id in result.affected_instances:
                            cell = self.format_value_for_html(result.values.get(instance_id))
                        else:
                            cell = "<em>missing</em>"
                        table_html_parts.append(f'<td style="padding: 8px;">{cell}</td>')
                    table_html_parts.append(f'<td style="padding: 8px;">{html.escape(result.description)}</td></tr>')
                table_html_parts.append("</tbody></table><br>")
                put_html("".join(table_html_parts))

                put_markdown("**Field-level details**")
                put_buttons(
                    [{"label": result.path, "value": index} for index, result in enumerate(session.results)],
                    onclick=lambda index: self.show_value_detail_popup(session, session.results[index]),
                    small=True,
                )

            put_buttons(
                [
                    {"label": "Migrate Values", "value": "migrate", "color": "primary"},
                    {"label": "Back to Main Menu", "value": "back"},
                ],
                onclick=[lambda: self.migrate_values(session), self.app_main_menu],
            )

    def format_value_for_html(self, value):
        """Helper to format complex values (dicts/lists) for HTML display with expand/collapse."""
        if isinstance(value, (dict, list)):
            json_str = json.dumps(value, indent=2)
            summary_text = html.escape(json_str[:25].replace('\n', '').replace('\r', '')) + ("..." if len(json_str) > 25 else "")
            return f"""
            <details>
                <summary style="cursor: pointer; white-space: pre;">{summary_text}</summary>
                <pre style="margin: 0; padding: 5px; background-color: #f8f8f8; border: 1px solid #ddd; overflow-x: auto;"><code>{html.escape(json_str)}</code></pre>
            </details>
            """
        return html.escape(json.dumps(value))

    def show_value_detail_popup(self, session: ComparisonSession, result: DifferenceResult):
        """
        Displays, for one difference, what each instance changes relative to the reference
        instance. The reference is the base instance when it holds the value, otherwise the
        first instance that has it.
        """
        popup_title = f"Differences for {result.path}"
        present = list(result.affected_instances)
        if session.base_instance_id in present:
            reference_id = session.base_instance_id
        elif present:
            reference_id = present[0]
        else:
            popup(popup_title, content="No instance holds a value for this difference.")
            return
        reference_value = result.values[reference_id]

        table_html_parts = [f"""
        <p>Reference instance: <strong>{html.escape(self.instance_name(reference_id))}</strong></p>
        <table border="1" style="border-collapse: collapse; width: 100%;">
            <thead>
                <tr>
                    <th style="padding: 8px; text-align: left;">Instance</th>
                    <th style="padding: 8px; text-align: left;">Status</th>
                    <th style="padding: 8px; text-align: left;">Field</th>
                    <th style="padding: 8px; text-align: left;">Reference Value</th>
                    <th style="padding: 8px; text-align: left;">Current Value</th>
                </tr>
            </thead>
            <tbody>
        """]
        has_content = False
        for instance_id in session.instance_ids:
            if instance_id == reference_id:
                continue
            current_value = result.values[instance_id] if instance_id in present else ABSENT
            for change in describe_value_changes(reference_value, current_value):
                has_content = True
                field_to_display = change["field"] or "(Root Value)"
                table_html_parts.append(f"""
                <tr style='{ROW_STYLES.get(change["status"], "")}'>
                    <td style="padding: 8px;">{html.escape(self.instance_name(instance_id))}</td>
                    <td style="padding: 8px;">{change["status"].replace("_", " ").capitalize()}</td>
                    <td style="padding: 8px;">{html.escape(field_to_display)}</td>
                    <td style="padding: 8px;">{self.format_value_for_html(change["reference_value"])}</td>
                    <td style="padding: 8px;">{self.format_value_for_html(change["current_value"])}</td>
                </tr>
                """)
        table_html_parts.append("</tbody></table><br>")

        if not has_content:
            popup(popup_title, content="All instances match the reference value.")
        else:
            popup(popup_title, content=put_html("".join(table_html_parts)), size="large")

    # --- Migration ---
    def migrate_values(self, session: ComparisonSession):
        """
        Lets the user pick a source instance, the differences to copy from it and the target
        instances, then previews or posts the migration payload.
        """
        instance_options = [{"label": self.instance_name(i), "value": i} for i in session.instance_ids]
        path_options = [
            {"label": f"[{r.type}] {r.path}", "value": r.path} for r in session.results
        ]
        if not path_options:
            toast("This session has no differences to migrate.", color="warn")
            self.display_session(session)
            return

        def validate(data):
            if not data.get("target_ids"):
                return ("target_ids", "Select at least one target instance.")
            if data["source_id"] in data["target_ids"]:
                return ("target_ids", "The source instance cannot be a target.")
            if not data.get("paths"):
                return ("paths", "Select at least one difference.")
            return None

        with use_scope(self.app_scope_name, clear=True):
            self.header(APP_NAME)
            selection = input_group(
                "Migrate Values",
                [
                    select("Source instance (values are copied from here)", name="source_id", options=instance_options),
                    checkbox("Target instances", name="target_ids", options=instance_options, inline=True),
                    checkbox("Differences to migrate", name="paths", options=path_options),
                    actions(
                        name="submit",
                        buttons=[
                            {"label": "Preview", "value": "preview", "color": "secondary"},
                            {"label": "Migrate", "value": "migrate", "color": "primary"},
                            {"label": "Cancel", "value": "cancel", "color": "secondary"},
                        ],
                    ),
                ],
                validate=lambda data: validate(data) if data.get("submit") != "cancel" else None,
            )

        if selection["submit"] == "cancel":
            self.display_session(session)
            return

        try:
            if selection["submit"] == "preview":
                payload = self._project_logic.preview_migration(session.id, selection["source_id"], selection["paths"])
                popup("Migration Preview", put_code(json.dumps(payload, indent=2), language="json"), size="large")
                self.migrate_values(session)
                return

            with use_scope(self.app_scope_name, clear=True):
                self.header(APP_NAME)
                with put_loading():
                    results = self._project_logic.migrate(
                        session.id, selection["source_id"], selection["target_ids"], selection["paths"]
                    )
        except (ComparisonError, InstanceRequestError) as e:
            self.logger.error(f"Migration failed: {e}")
            popup("Migration Error", str(e))
            self.display_session(session)
            return

        for target_id in results["success"]:
            toast(f"Migrated to {self.instance_name(target_id)}", color="success")
        for target_id, error in results["errors"].items():
            popup(f"Error Migrating to {self.instance_name(target_id)}", error)
        if results["errors"]:
            toast("Some targets failed. Check pop-ups and logs for details.", color="error", duration=5)
        else:
            toast("All selected targets updated successfully!", color="success", duration=3)
        self.display_session(session)

    # --- Session Management ---
    def list_sessions(self):
        """Lists the stored comparison sessions, newest first."""
        with use_scope(self.app_scope_name, clear=True):
            self.header(APP_NAME)
            put_markdown("## Comparison Sessions")
            sessions = sorted(self._project_logic.list_sessions(), key=lambda s: s.timestamp, reverse=True)
            if not sessions:
                put_text("No comparison sessions yet.")
            else:
                active_id = self._project_logic.active_session_id
                table_data = []
                for session in sessions:
                    summary = session.summary
                    table_data.append([
                        f"{'★ ' if session.id == active_id else ''}{session.name}",
                        session.endpoint,
                        ", ".join(self.instance_name(i) for i in session.instance_ids),
                        f"Total:{summary.total_differences} (A:{summary.added}, D:{summary.deleted}, M:{summary.edited})",
                        put_buttons(
                            [
                                {"label": "Open", "value": "open"},
                                {"label": "Delete", "value": "delete", "color": "danger"},
                            ],
                            onclick=lambda action, s=session.id: self.on_session_action(s, action),
                            small=True,
                        ),
                    ])
                put_table(table_data, header=["Name", "Endpoint", "Instances", "Summary", "Actions"])

            put_buttons([{"label": "Back to Main Menu", "value": "back"}], onclick=lambda _: self.app_main_menu())

    def on_session_action(self, session_id: str, action: str):
        if action == "open":
            self._project_logic.set_active_session(session_id)
            self.display_session(self._project_logic.get_session(session_id))
            return
        if self._project_logic.delete_session(session_id):
            toast("Session deleted.", color="success")
        self.list_sessions()

    # --- Comparison Type Management ---
    def manage_comparison_types(self):
        """Lists built-in and custom comparison types with their endpoints and fields."""
        with use_scope(self.app_scope_name, clear=True):
            self.header(APP_NAME)
            put_markdown("## Comparison Types")
            table_data = []
            for comparison_type in self._project_logic.types.list_types():
                if comparison_type.is_custom:
                    type_actions = put_buttons(
                        [{"label": "Delete", "value": "delete", "color": "danger"}],
                        onclick=lambda _, k=comparison_type.key: self.delete_custom_type(k),
                        small=True,
                    )
                else:
                    type_actions = put_buttons(
                        [{"label": "Edit Endpoints", "value": "edit"}],
                        onclick=lambda _, k=comparison_type.key: self.edit_built_in_endpoints(k),
                        small=True,
                    )
                if comparison_type.identifier_field:
                    compared = f"{comparison_type.identifier_field}: {', '.join(comparison_type.comparison_fields) or '(whole record)'}"
                else:
                    compared = ", ".join(comparison_type.comparison_fields) or "(all fields)"
                table_data.append([
                    comparison_type.label,
                    comparison_type.fetch_endpoint,
                    comparison_type.save_endpoint,
                    compared,
                    comparison_type.description,
                    type_actions,
                ])
            put_table(table_data, header=["Type", "Fetch", "Save", "Compared Fields", "Description", "Actions"])

            put_buttons(
                [
                    {"label": "Add Custom Type", "value": "add", "color": "primary"},
                    {"label": "Suggest Fields", "value": "suggest"},
                    {"label": "Back to Main Menu", "value": "back"},
                ],
                onclick=[self.add_custom_type, self.show_field_suggestions, self.app_main_menu],
            )

    def show_field_suggestions(self):
        """Shows the field paths found in an instance's cached payload."""
        cached = [
            option for option in self.list_instances_for_dropdown(active_only=False)
            if (self._project_logic.get_instance_data(option["value"]) or {}).get("data") is not None
        ]
        if not cached:
            toast("No cached payloads yet. Run a comparison first.", color="warn")
            return
        instance_id = select("Suggest fields from the cached payload of", options=cached)
        fields = suggest_fields(self._project_logic.get_instance_data(instance_id)["data"])
        popup(f"Fields in {self.instance_name(instance_id)}", put_code("\n".join(fields) or "(no fields)"))

    def add_custom_type(self):
        """Prompts for the definition of a custom comparison type."""

        def validate(data):
            if data.get("request_body", "").strip():
                try:
                    json.loads(data["request_body"])
                except ValueError:
                    return ("request_body", "Request body must be valid JSON.")
            if not [f for f in data.get("comparison_fields", "").replace(",", "\n").splitlines() if f.strip()]:
                return ("comparison_fields", "At least one comparison field is required.")
            return None

        with use_scope(self.app_scope_name, clear=True):
            self.header(APP_NAME)
            data = input_group(
                "Add Custom Comparison Type",
                [
                    input("Name", name="name", required=True, placeholder="user_roles"),
                    input("Label", name="label", required=True, placeholder="User Roles"),
                    input("Fetch endpoint", name="fetch_endpoint", required=True, placeholder="/api/roles"),
                    input("Save endpoint", name="save_endpoint", required=True, placeholder="/api/roles/save"),
                    textarea("Comparison fields (one per line or comma separated)", name="comparison_fields",
                             rows=4, placeholder="permissions\nsettings.enabled"),
                    input("Identifier field (set when the payload is an array of records)", name="identifier_field"),
                    input("Description", name="description"),
                    textarea("Request body (JSON, optional)", name="request_body", rows=3,
                             placeholder='{"action": "fetch"}'),
                    actions(name="submit", buttons=["Save", "Cancel"]),
                ],
                validate=lambda data: validate(data) if data.get("submit") == "Save" else None,
            )

        if data["submit"] == "Cancel":
            self.manage_comparison_types()
            return

        try:
            custom_type = self._project_logic.add_custom_type(
                name=data["name"].strip(),
                label=data["label"].strip(),
                fetch_endpoint=data["fetch_endpoint"].strip(),
                save_endpoint=data["save_endpoint"].strip(),
                comparison_fields=data["comparison_fields"].replace(",", "\n").splitlines(),
                identifier_field=data["identifier_field"].strip() or None,
                description=data["description"].strip(),
                request_body=json.loads(data["request_body"]) if data["request_body"].strip() else None,
            )
            toast(f"Comparison type {custom_type.label} added.", color="success")
        except ComparisonError as e:
            self.logger.error(f"Failed to add custom type: {e}")
            popup("Error Adding Comparison Type", str(e))
        self.manage_comparison_types()

    def delete_custom_type(self, key: str):
        if self._project_logic.delete_custom_type(key):
            toast("Comparison type deleted.", color="success")
        self.manage_comparison_types()

    def edit_built_in_endpoints(self, key: str):
        """Overrides the endpoints used by a built-in comparison type."""
        current = self._project_logic.types.get(key)
        with use_scope(self.app_scope_name, clear=True):
            self.header(APP_NAME)
            data = input_group(
                f"Endpoints for {BUILT_IN_TYPES[key].label}",
                [
                    input("Fetch endpoint", name="fetch_endpoint", value=current.fetch_endpoint, required=True),
                    input("Save endpoint", name="save_endpoint", value=current.save_endpoint, required=True),
                    actions(name="submit", buttons=["Save", "Cancel"]),
                ],
            )
        if data["submit"] == "Save":
            self._project_logic.update_built_in_endpoints(
                key, fetch_endpoint=data["fetch_endpoint"].strip(), save_endpoint=data["save_endpoint"].strip()
            )
            toast("Endpoints updated.", color="success")
        self.manage_comparison_types()

    # --- Header and Log ---
    def show_app_log_popup(self):
        """Displays the content of the application log file in a scrollable popup."""
        log_content = get_app_log_content()
        styled_log_content = put_code(log_content).style('overflow-y: auto; max-height: 400px; text-align: left;')
        popup("Application Log", styled_log_content, size='large')

    def header(self, app_name: str):
        """
        Displays the application header with the app name, the instance counts and the
        button for viewing the application log.
        """
        put_html('<div class="top-gradient-bar"></div>')

        instances = self._project_logic.list_instances()
        active = sum(1 for i in instances if i.isActive)
        header_elements = [
            put_text(app_name).style("font-size: 1.5em; font-weight: bold; margin-right: auto;"),
            put_text(f"Instances: {active} active / {len(instances)}").style("margin-right: 20px;"),
            put_buttons(
                [{"label": "Main Menu", "value": "menu"}],
                onclick=lambda val: self.app_main_menu(),
            ),
            put_buttons(
                [{"label": "Show App Log", "value": "show_log", "color": "warning"}],
                onclick=lambda val: self.show_app_log_popup(),
            ),
        ]

        put_row(
            header_elements,
        ).style(
            "display: flex; justify-content: space-between; align-items: center; padding: 10px 20px; background: linear-gradient(0.25turn, #143052, #07172B); color: white;"
        )
