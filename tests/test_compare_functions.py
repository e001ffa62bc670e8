"""Tests for the comparison engine."""

import itertools
import json

import pytest

from compare_functions import (
    ABSENT,
    MISSING,
    ArrayByIdentifier,
    ComparisonSession,
    FieldSubsetOfObject,
    GenericObject,
    MalformedConfigError,
    ValidationError,
    assemble_session,
    build_identity_maps,
    build_migration_payload,
    canonical_json,
    classify_difference,
    collect_paths,
    describe_value_changes,
    extract_fields,
    get_value_at_path,
    run_comparison,
    summarize,
    values_equal,
)


def _by_path(results):
    return {result.path: result for result in results}


class TestGenericObjectComparison:
    """Pairwise and base-relative comparison of nested objects."""

    def test_single_edited_path(self):
        results, summary = run_comparison(
            {"a": {"x": 1, "y": 2}, "b": {"x": 1, "y": 3}}, ["a", "b"], GenericObject()
        )
        assert [r.path for r in results] == ["y"]
        assert results[0].type == "edited"
        assert results[0].values == {"a": 2, "b": 3}
        assert results[0].affected_instances == ("a", "b")
        assert summary.edited == 1 and summary.total_differences == 1

    def test_base_value_appears_in_description(self):
        results, _ = run_comparison(
            {"a": {"x": 1, "y": 2}, "b": {"x": 1, "y": 3}}, ["a", "b"], GenericObject(), base_instance_id="a"
        )
        assert len(results) == 1
        assert results[0].type == "edited"
        assert "base value 2" in results[0].description

    def test_missing_in_one_of_two_is_deleted(self):
        results, summary = run_comparison({"a": {"x": 1}, "b": {}}, ["a", "b"], GenericObject())
        result = results[0]
        assert result.type == "deleted"
        assert result.values == {"a": 1, "b": MISSING}
        assert result.affected_instances == ("a",)
        assert result.description == 'Setting at "x" deleted in 1 instance(s), present in 1'
        assert summary.deleted == 1

    def test_present_in_majority_is_added(self):
        results, _ = run_comparison({"a": {"x": 1}, "b": {"x": 1}, "c": {}}, ["a", "b", "c"], GenericObject())
        assert results[0].type == "added"
        assert results[0].description == 'Setting at "x" added in 2 instance(s), missing in 1'

    def test_missing_in_base_is_added(self):
        results, _ = run_comparison(
            {"a": {"x": 1}, "b": {"x": 1}, "c": {}}, ["a", "b", "c"], GenericObject(), base_instance_id="c"
        )
        assert results[0].type == "added"
        assert "(not present in base)" in results[0].description

    def test_missing_against_present_base_is_deleted(self):
        results, _ = run_comparison(
            {"a": {"x": 1}, "b": {"x": 1}, "c": {}}, ["a", "b", "c"], GenericObject(), base_instance_id="a"
        )
        assert results[0].type == "deleted"
        assert results[0].description == 'Setting at "x" deleted in 1 instance(s) (present in base with value 1)'

    def test_key_order_is_not_a_difference(self):
        results, summary = run_comparison(
            {"a": {"x": {"p": 1, "q": 2}}, "b": {"x": {"q": 2, "p": 1}}}, ["a", "b"], GenericObject()
        )
        assert results == []
        assert summary.total_differences == 0

    def test_boolean_and_number_are_distinct(self):
        results, _ = run_comparison({"a": {"x": True}, "b": {"x": 1}}, ["a", "b"], GenericObject())
        assert results[0].type == "edited"

    def test_integral_float_equals_integer(self):
        payloads = {"a": json.loads('{"timeout": 1, "ratio": [2]}'), "b": json.loads('{"timeout": 1.0, "ratio": [2.0]}')}
        results, summary = run_comparison(payloads, ["a", "b"], GenericObject())
        assert results == []
        assert summary.total_differences == 0

    def test_base_relative_counts_only_instances_differing_from_base(self):
        payloads = {"a": {"x": 1}, "b": {"x": 1}, "c": {"x": 2}}
        results, _ = run_comparison(payloads, ["a", "b", "c"], GenericObject(), base_instance_id="a")
        assert len(results) == 1
        assert results[0].type == "edited"
        assert "base value 1" in results[0].description
        assert results[0].description.endswith("in 1 instance(s)")

    def test_null_is_a_present_value(self):
        results, _ = run_comparison({"a": {"x": None}, "b": {}}, ["a", "b"], GenericObject())
        assert results[0].values == {"a": None, "b": MISSING}
        assert results[0].affected_instances == ("a",)

    def test_nested_change_reports_parent_and_leaf(self):
        results, _ = run_comparison({"a": {"x": {"p": 1}}, "b": {"x": {"p": 2}}}, ["a", "b"], GenericObject())
        assert [r.path for r in results] == ["x", "x.p"]

    def test_instance_without_payload_misses_every_path(self):
        results, _ = run_comparison({"a": {"x": 1, "y": 2}}, ["a", "b"], GenericObject())
        assert {r.type for r in results} == {"deleted"}
        assert all(r.values["b"] == MISSING for r in results)

    def test_base_outside_selection_is_ignored(self):
        payloads = {"a": {"x": 1}, "b": {"x": 2}}
        with_foreign_base, _ = run_comparison(payloads, ["a", "b"], GenericObject(), base_instance_id="zz")
        pairwise, _ = run_comparison(payloads, ["a", "b"], GenericObject())
        assert with_foreign_base == pairwise

    def test_identical_payloads_have_no_differences(self):
        payload = {"x": 1, "nested": {"list": [1, 2, {"k": "v"}]}}
        results, summary = run_comparison({"a": payload, "b": json.loads(json.dumps(payload))}, ["a", "b"], GenericObject())
        assert results == []
        assert summary.total_differences == 0

    def test_payloads_are_not_mutated(self):
        payloads = {"a": {"x": {"p": 1}}, "b": {"y": [1, 2]}}
        snapshot = json.dumps(payloads, sort_keys=True)
        run_comparison(payloads, ["a", "b"], GenericObject())
        assert json.dumps(payloads, sort_keys=True) == snapshot


class TestRunComparisonInvariants:
    """Guards and invariants shared by every mode."""

    PAYLOADS = {
        "a": {"x": 1, "y": {"z": 2}, "only_a": True},
        "b": {"x": 2, "y": {"z": 2}},
        "c": {"x": 1, "y": {"z": 3}, "only_c": None},
    }

    def test_identical_values_give_no_result_in_any_order(self):
        payloads = {"a": {"x": {"p": 1}}, "b": {"x": {"p": 1.0}}, "c": {"x": {"p": 1}}}
        for order in itertools.permutations(["a", "b", "c"]):
            results, _ = run_comparison(payloads, list(order), GenericObject())
            assert results == [], order

    def test_classification_does_not_depend_on_instance_order(self):
        outcomes = set()
        for order in itertools.permutations(["a", "b", "c"]):
            results, _ = run_comparison(self.PAYLOADS, list(order), GenericObject())
            outcomes.add(tuple((r.path, r.type, r.description) for r in sorted(results, key=lambda r: r.path)))
        assert len(outcomes) == 1

    def test_requires_two_instances(self):
        with pytest.raises(ValidationError, match="at least 2 instances required"):
            run_comparison({"a": {"x": 1}}, ["a"], GenericObject())

    def test_requires_identifier_for_array_mode(self):
        with pytest.raises(MalformedConfigError):
            run_comparison({"a": [], "b": []}, ["a", "b"], ArrayByIdentifier(""))

    def test_requires_fields_for_subset_mode(self):
        with pytest.raises(MalformedConfigError):
            run_comparison({"a": {}, "b": {}}, ["a", "b"], FieldSubsetOfObject(()))

    def test_summary_counts_match_results(self):
        results, summary = run_comparison(self.PAYLOADS, ["a", "b", "c"], GenericObject())
        assert summary.total_differences == len(results)
        assert summary.total_differences == summary.added + summary.deleted + summary.edited
        assert summary == summarize(results)

    def test_values_cover_every_instance(self):
        results, _ = run_comparison(self.PAYLOADS, ["a", "b", "c"], GenericObject())
        for result in results:
            assert list(result.values) == ["a", "b", "c"]

    def test_affected_instances_are_the_present_ones(self):
        results, _ = run_comparison(self.PAYLOADS, ["a", "b", "c"], GenericObject())
        only_a = _by_path(results)["only_a"]
        assert only_a.affected_instances == ("a",)
        assert only_a.values["b"] == MISSING and only_a.values["c"] == MISSING


class TestFieldSubsetOfObject:
    def test_only_listed_fields_are_compared(self):
        results, _ = run_comparison(
            {"a": {"s": {"b": 1}, "c": 1, "z": 1}, "b": {"s": {"b": 2}, "c": 1, "z": 2}},
            ["a", "b"],
            FieldSubsetOfObject(["s.b", "c"]),
        )
        assert [r.path for r in results] == ["s.b"]
        assert results[0].values == {"a": 1, "b": 2}

    def test_listed_field_missing_everywhere_is_not_reported(self):
        results, _ = run_comparison({"a": {"c": 1}, "b": {"c": 1}}, ["a", "b"], FieldSubsetOfObject(["nope"]))
        assert results == []


class TestArrayByIdentifier:
    """Records matched across instances by identifier."""

    MODE = ArrayByIdentifier("id", ("v",), item_label="Feature")

    def test_edited_and_deleted_items(self):
        results, summary = run_comparison(
            {
                "a": [{"id": "f1", "v": True}, {"id": "f2", "v": 1}],
                "b": [{"id": "f1", "v": False}],
            },
            ["a", "b"],
            self.MODE,
        )
        by_path = _by_path(results)
        assert by_path["f1"].type == "edited"
        assert by_path["f1"].values == {"a": {"v": True}, "b": {"v": False}}
        assert by_path["f2"].type == "deleted"
        assert by_path["f2"].description.startswith('Feature "f2" deleted in 1 instance(s)')
        assert summary.edited == 1 and summary.deleted == 1

    def test_unlisted_fields_are_ignored(self):
        results, _ = run_comparison(
            {"a": [{"id": "f1", "v": 1, "note": "x"}], "b": [{"id": "f1", "v": 1, "note": "y"}]},
            ["a", "b"],
            self.MODE,
        )
        assert results == []

    def test_item_missing_from_one_instance_is_reported_even_if_fields_absent(self):
        results, _ = run_comparison(
            {"a": [{"id": "f1"}], "b": [{"id": "f1"}], "c": []},
            ["a", "b", "c"],
            self.MODE,
        )
        assert results[0].type == "added"
        assert results[0].values["c"] == MISSING

    def test_without_fields_the_whole_record_is_compared(self):
        results, _ = run_comparison(
            {"a": [{"id": 1, "note": "x"}], "b": [{"id": 1, "note": "y"}]},
            ["a", "b"],
            ArrayByIdentifier("id"),
        )
        assert results[0].path == "1"
        assert results[0].values["a"] == {"id": 1, "note": "x"}


class TestIdentityExtractor:
    def test_last_duplicate_wins(self):
        maps, identifiers = build_identity_maps(
            {"a": [{"id": "x", "v": 1}, {"id": "x", "v": 2}]}, ["a"], "id"
        )
        assert maps["a"]["x"]["v"] == 2
        assert identifiers == ["x"]

    def test_records_without_identifier_are_skipped(self):
        maps, identifiers = build_identity_maps(
            {"a": [{"v": 1}, {"id": None}, {"id": ""}, "text", {"id": "ok"}]}, ["a"], "id"
        )
        assert list(maps["a"]) == ["ok"]
        assert identifiers == ["ok"]

    def test_non_array_payload_gives_empty_map(self):
        maps, identifiers = build_identity_maps({"a": {"id": "x"}, "b": None}, ["a", "b"], "id")
        assert maps == {"a": {}, "b": {}}
        assert identifiers == []

    def test_union_keeps_first_seen_order(self):
        _, identifiers = build_identity_maps(
            {"a": [{"id": "2"}, {"id": "1"}], "b": [{"id": "3"}, {"id": "1"}]}, ["a", "b"], "id"
        )
        assert identifiers == ["2", "1", "3"]

    def test_extract_fields_keeps_present_fields_only(self):
        record = {"id": 1, "s": {"on": True}, "n": None}
        assert extract_fields(record, ["s.on", "n", "gone"]) == {"s.on": True, "n": None}
        assert extract_fields(record, []) is record


class TestPathHelpers:
    def test_collect_paths_descends_into_objects_only(self):
        paths = collect_paths([{"a": {"b": 1}, "l": [{"x": 1}]}, {"c": 2}, [1, 2], None])
        assert paths == ["a", "a.b", "l", "c"]

    def test_get_value_at_path(self):
        payload = {"a": {"b": [10, {"c": "deep"}]}, "n": None}
        assert get_value_at_path(payload, "a.b.1.c") == "deep"
        assert get_value_at_path(payload, "n") is None
        assert get_value_at_path(payload, "a.zz") is ABSENT
        assert get_value_at_path(payload, "a.b.5") is ABSENT
        assert get_value_at_path(payload, "a.b.x") is ABSENT
        assert get_value_at_path(payload, "n.deeper") is ABSENT

    def test_values_equal(self):
        assert values_equal({"a": 1, "b": 2}, {"b": 2, "a": 1})
        assert not values_equal(True, 1)
        assert not values_equal("1", 1)
        assert values_equal([1, {"x": None}], [1, {"x": None}])
        assert values_equal(1, 1.0)
        assert not values_equal(True, 1.0)
        assert not values_equal(1, 1.5)
        assert canonical_json({"a": [2.0]}) == canonical_json({"a": [2]})


class TestClassifyDifference:
    def test_unchanged_unit_returns_none(self):
        assert classify_difference("x", {"a": 1, "b": 1}, ["a", "b"]) is None

    def test_absent_everywhere_returns_none(self):
        assert classify_difference("x", {}, ["a", "b"]) is None

    def test_full_presence_requirement(self):
        result = classify_difference("x", {"a": 1, "b": ABSENT}, ["a", "b"], require_full_presence=True, label="Item")
        assert result.type == "deleted"
        assert result.description.startswith("Item deleted")


class TestDescribeValueChanges:
    def test_changed_field(self):
        changes = describe_value_changes({"a": 1, "b": 2}, {"a": 1, "b": 3})
        assert changes == [{"field": "b", "status": "changed", "reference_value": 2, "current_value": 3}]

    def test_added_and_removed_fields(self):
        changes = describe_value_changes({"keep": 1, "old": 2}, {"keep": 1, "new": 3})
        statuses = {change["field"]: change["status"] for change in changes}
        assert statuses == {"new": "added", "old": "removed"}

    def test_type_change_at_root(self):
        changes = describe_value_changes(1, "1")
        assert changes[0]["field"] == ""
        assert changes[0]["status"] == "type_changed"

    def test_missing_current_value(self):
        changes = describe_value_changes({"a": 1}, ABSENT)
        assert changes == [{"field": "", "status": "removed", "reference_value": {"a": 1}, "current_value": None}]

    def test_missing_reference_value(self):
        changes = describe_value_changes(MISSING, 5)
        assert changes[0]["status"] == "added"
        assert changes[0]["current_value"] == 5

    def test_equal_values(self):
        assert describe_value_changes({"a": [1, 2]}, {"a": [1, 2]}) == []


class TestSessionAndMigration:
    @staticmethod
    def _session(payloads, mode, instance_ids=("a", "b")):
        results, summary = run_comparison(payloads, list(instance_ids), mode)
        return assemble_session(results, summary, instance_ids, "/api/settings", type_label="Settings")

    def test_session_fields_and_generated_name(self):
        session = self._session({"a": {"x": 1}, "b": {"x": 2}}, GenericObject())
        assert session.instance_ids == ("a", "b")
        assert session.endpoint == "/api/settings"
        assert session.name.startswith("Settings comparison - ")
        assert session.summary.edited == 1
        assert session.get_result("x") is session.results[0]
        assert session.get_result("nope") is None

    def test_session_ids_increase(self):
        first = self._session({"a": {}, "b": {}}, GenericObject())
        second = self._session({"a": {}, "b": {}}, GenericObject())
        assert int(second.id) > int(first.id)

    def test_session_survives_json_round_trip(self):
        session = self._session({"a": {"x": 1, "y": True}, "b": {"x": 2}}, GenericObject())
        restored = ComparisonSession.from_dict(json.loads(json.dumps(session.to_dict())))
        assert restored == session

    def test_object_migration_payload_is_nested(self):
        session = self._session({"a": {"x": {"p": 1}, "y": 2}, "b": {"x": {"p": 2}, "y": 3}}, GenericObject())
        payload = build_migration_payload(session, "a", ["y", "x.p"], GenericObject())
        assert payload == {"y": 2, "x": {"p": 1}}

    def test_parent_and_child_selected_together(self):
        session = self._session({"a": {"x": {"p": 1, "q": 1}}, "b": {"x": {"p": 2, "q": 1}}}, GenericObject())
        payload = build_migration_payload(session, "b", ["x.p", "x"], GenericObject())
        assert payload == {"x": {"p": 2, "q": 1}}

    def test_array_migration_payload_lists_records(self):
        mode = ArrayByIdentifier("id", ("v",))
        session = self._session(
            {"a": [{"id": "f1", "v": True}, {"id": "f2", "v": 1}], "b": [{"id": "f1", "v": False}]}, mode
        )
        assert build_migration_payload(session, "b", ["f1"], mode) == [{"id": "f1", "v": False}]

    def test_numeric_identifier_is_written_back_unchanged(self):
        mode = ArrayByIdentifier("id", ("v",))
        session = self._session({"a": [{"id": 5, "v": 1}], "b": [{"id": 5, "v": 2}]}, mode)
        assert session.results[0].path == "5"
        assert session.results[0].identifier == 5
        assert build_migration_payload(session, "a", ["5"], mode) == [{"id": 5, "v": 1}]

        restored = ComparisonSession.from_dict(json.loads(json.dumps(session.to_dict())))
        assert restored.results[0].identifier == 5
        assert build_migration_payload(restored, "b", ["5"], mode) == [{"id": 5, "v": 2}]

    def test_session_keeps_its_base_instance(self):
        results, summary = run_comparison({"a": {"x": 1}, "b": {"x": 2}}, ["a", "b"], GenericObject(), "b")
        session = assemble_session(results, summary, ("a", "b"), "/api/settings", base_instance_id="b")
        assert session.base_instance_id == "b"
        assert session.to_dict()["baseInstanceId"] == "b"
        assert ComparisonSession.from_dict(json.loads(json.dumps(session.to_dict()))).base_instance_id == "b"
        assert self._session({"a": {"x": 1}, "b": {"x": 2}}, GenericObject()).base_instance_id is None

    def test_paths_missing_in_source_are_skipped(self):
        mode = ArrayByIdentifier("id", ("v",))
        session = self._session({"a": [{"id": "f2", "v": 1}], "b": []}, mode)
        with pytest.raises(ValidationError, match="Nothing to migrate"):
            build_migration_payload(session, "b", ["f2"], mode)

    def test_source_must_belong_to_session(self):
        session = self._session({"a": {"x": 1}, "b": {"x": 2}}, GenericObject())
        with pytest.raises(ValidationError):
            build_migration_payload(session, "zz", ["x"], GenericObject())
