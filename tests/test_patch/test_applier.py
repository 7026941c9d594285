"""Tests for applying operations to snapshots (patchsmith.patch.applier).

Covers:
- CreateFile: new file, identical content no-op, conflicting content
- EnsureConfigValue: each merge strategy, missing files and keys
- ListInsert: append, dedupe, dedupe_on, non-list targets
- RawEdit: replace, expected guard, overlap between edits
- Files present on disk but left out of the snapshot
- OwnershipLedger naming both parties in conflicts
"""

from __future__ import annotations

import pytest

from patchsmith.patch import (
    EXISTING_OWNER,
    AlreadyExistsConflict,
    OwnershipLedger,
    RawEditOverlapConflict,
    Status,
    ValueConflict,
    create_file,
    ensure_config_value,
    list_insert,
    raw_edit,
)
from patchsmith.snapshot import ProjectSnapshot

from conftest import SAMPLE_CONFIG_JSON

pytestmark = pytest.mark.unit


def _apply_all(applier, snapshot, ops, ledger=None):
    ledger = ledger or OwnershipLedger()
    outcomes = []
    for op in ops:
        outcome = applier.apply(snapshot, op, ledger)
        ledger.record(op, outcome.status)
        snapshot = outcome.snapshot
        outcomes.append(outcome)
    return snapshot, outcomes


class TestCreateFile:
    def test_creates_new_file(self, applier, make_snapshot):
        base = make_snapshot({})
        outcome = applier.apply(base, create_file("lib/foo.ex", "x\n"))
        assert outcome.status is Status.APPLIED
        assert outcome.snapshot.read("lib/foo.ex") == "x\n"
        assert not base.exists("lib/foo.ex")

    def test_identical_content_is_noop(self, applier, make_snapshot):
        base = make_snapshot({"lib/foo.ex": "x\n"})
        outcome = applier.apply(base, create_file("lib/foo.ex", "x\n"))
        assert outcome.status is Status.NOOP
        assert outcome.snapshot is base

    def test_existing_project_file_conflicts(self, applier, make_snapshot):
        base = make_snapshot({"lib/foo.ex": "old\n"})
        outcome = applier.apply(base, create_file("lib/foo.ex", "new\n").with_provenance("gen1"))
        assert outcome.status is Status.CONFLICT
        assert isinstance(outcome.conflict, AlreadyExistsConflict)
        assert outcome.conflict.generators == [EXISTING_OWNER, "gen1"]
        assert outcome.conflict.existing_content == "old\n"
        assert outcome.conflict.incoming_content == "new\n"

    def test_conflict_names_both_generators(self, applier, make_snapshot):
        _, outcomes = _apply_all(
            applier,
            make_snapshot({}),
            [
                create_file("lib/foo.ex", "a\n").with_provenance("gen_a"),
                create_file("lib/foo.ex", "b\n").with_provenance("gen_b"),
            ],
        )
        assert outcomes[1].conflict.generators == ["gen_a", "gen_b"]

    def test_template_content(self, applier, make_snapshot):
        op = create_file("hello.txt", template="greeting/hello.txt.j2", context={"name": "big-world"})
        outcome = applier.apply(make_snapshot({}), op)
        assert outcome.snapshot.read("hello.txt") == "Hello, BigWorld!\n"

    def test_missing_template_fails(self, applier, make_snapshot):
        op = create_file("hello.txt", template="greeting/missing.txt.j2").with_provenance("g")
        outcome = applier.apply(make_snapshot({}), op)
        assert outcome.status is Status.FAILED
        assert outcome.failure.generator == "g"
        assert "greeting/missing.txt.j2" in outcome.failure.message

    def test_unparseable_config_content_fails(self, applier, make_snapshot):
        outcome = applier.apply(make_snapshot({}), create_file("bad.json", '{"a": '))
        assert outcome.status is Status.FAILED
        assert outcome.failure.path == "bad.json"


class TestEnsureConfigValue:
    def test_sets_missing_key(self, applier, make_snapshot):
        base = make_snapshot({"config/config.json": SAMPLE_CONFIG_JSON})
        outcome = applier.apply(base, ensure_config_value("config/config.json", ["port"], 4000))
        assert outcome.status is Status.APPLIED
        assert outcome.snapshot.config_value("config/config.json", ["port"]) == 4000
        assert "// things registered by generators" in outcome.snapshot.read("config/config.json")

    def test_equal_value_is_noop(self, applier, make_snapshot):
        base = make_snapshot({"config/config.json": SAMPLE_CONFIG_JSON})
        outcome = applier.apply(base, ensure_config_value("config/config.json", ["app"], "Demo"))
        assert outcome.status is Status.NOOP

    def test_dotenv_values_compare_as_strings(self, applier, make_snapshot):
        base = make_snapshot({".env": "PORT=4000\n"})
        outcome = applier.apply(base, ensure_config_value(".env", ["PORT"], 4000))
        assert outcome.status is Status.NOOP

    def test_fail_strategy_conflicts_with_project(self, applier, make_snapshot):
        base = make_snapshot({"config/config.json": SAMPLE_CONFIG_JSON})
        op = ensure_config_value("config/config.json", ["app"], "Other").with_provenance("gen1")
        outcome = applier.apply(base, op)
        assert outcome.status is Status.CONFLICT
        assert isinstance(outcome.conflict, ValueConflict)
        assert outcome.conflict.generators == [EXISTING_OWNER, "gen1"]
        assert outcome.conflict.existing == "Demo"
        assert outcome.conflict.incoming == "Other"

    def test_value_conflict_names_earlier_generator(self, applier, make_snapshot):
        _, outcomes = _apply_all(
            applier,
            make_snapshot({".env": ""}),
            [
                ensure_config_value(".env", ["MODE"], "a").with_provenance("gen_a"),
                ensure_config_value(".env", ["MODE"], "b").with_provenance("gen_b"),
            ],
        )
        assert outcomes[0].status is Status.APPLIED
        assert outcomes[1].conflict.generators == ["gen_a", "gen_b"]

    def test_prefer_existing(self, applier, make_snapshot):
        base = make_snapshot({".env": "MODE=dev\n"})
        outcome = applier.apply(base, ensure_config_value(".env", ["MODE"], "prod", "prefer_existing"))
        assert outcome.status is Status.NOOP
        assert outcome.snapshot.read(".env") == "MODE=dev\n"

    def test_prefer_incoming(self, applier, make_snapshot):
        base = make_snapshot({".env": "MODE=dev\n"})
        outcome = applier.apply(base, ensure_config_value(".env", ["MODE"], "prod", "prefer_incoming"))
        assert outcome.status is Status.APPLIED
        assert outcome.snapshot.read(".env") == "MODE=prod\n"

    def test_merge_list(self, applier, make_snapshot):
        base = make_snapshot({"config/config.json": SAMPLE_CONFIG_JSON})
        op = ensure_config_value("config/config.json", ["things"], ["Bar", "Baz"], "merge_list")
        outcome = applier.apply(base, op)
        assert outcome.status is Status.APPLIED
        assert outcome.snapshot.config_value("config/config.json", ["things"]) == ["Bar", "Baz"]

        again = applier.apply(outcome.snapshot, op)
        assert again.status is Status.NOOP

    def test_merge_list_on_scalar_conflicts(self, applier, make_snapshot):
        base = make_snapshot({"config/config.json": SAMPLE_CONFIG_JSON})
        op = ensure_config_value("config/config.json", ["app"], ["x"], "merge_list")
        assert applier.apply(base, op).status is Status.CONFLICT

    @pytest.mark.parametrize(
        "text, value",
        [
            ('{"debug": true}', 1),
            ('{"debug": 1}', True),
            ('{"debug": 1}', 1.0),
            ('{"debug": [1]}', [True]),
        ],
    )
    def test_values_of_different_json_types_conflict(self, applier, make_snapshot, text, value):
        base = make_snapshot({"c.json": text})
        outcome = applier.apply(base, ensure_config_value("c.json", ["debug"], value))
        assert outcome.status is Status.CONFLICT

    def test_merge_list_keeps_booleans_and_numbers_apart(self, applier, make_snapshot):
        base = make_snapshot({"c.json": '{"xs": [true, 2]}'})
        op = ensure_config_value("c.json", ["xs"], [1, 2], "merge_list")
        outcome = applier.apply(base, op)
        assert outcome.status is Status.APPLIED
        assert outcome.snapshot.read("c.json").count("true") == 1
        assert outcome.snapshot.config_value("c.json", ["xs"])[2] == 1

    def test_missing_config_file_is_created(self, applier, make_snapshot):
        outcome = applier.apply(make_snapshot({}), ensure_config_value(".env.example", ["A"], "1"))
        assert outcome.status is Status.APPLIED
        assert outcome.snapshot.read(".env.example") == "A=1\n"

    def test_text_file_has_no_keys(self, applier, make_snapshot):
        base = make_snapshot({"lib/bar.ex": "x\n"})
        outcome = applier.apply(base, ensure_config_value("lib/bar.ex", ["a"], 1))
        assert outcome.status is Status.FAILED

    def test_unparseable_config_fails(self, applier, make_snapshot):
        base = make_snapshot({"config/config.json": '{"a": '})
        outcome = applier.apply(base, ensure_config_value("config/config.json", ["a"], 1))
        assert outcome.status is Status.FAILED
        assert outcome.failure.path == "config/config.json"


class TestListInsert:
    def test_appends_item(self, applier, make_snapshot):
        base = make_snapshot({"config/config.json": SAMPLE_CONFIG_JSON})
        outcome = applier.apply(base, list_insert("config/config.json", ["things"], "Foo"))
        assert outcome.status is Status.APPLIED
        assert outcome.snapshot.config_value("config/config.json", ["things"]) == ["Bar", "Foo"]

    def test_existing_item_is_noop(self, applier, make_snapshot):
        base = make_snapshot({"config/config.json": SAMPLE_CONFIG_JSON})
        outcome = applier.apply(base, list_insert("config/config.json", ["things"], "Bar"))
        assert outcome.status is Status.NOOP

    def test_two_generators_inserting_same_item_do_not_conflict(self, applier, make_snapshot):
        snapshot, outcomes = _apply_all(
            applier,
            make_snapshot({"config/config.json": SAMPLE_CONFIG_JSON}),
            [
                list_insert("config/config.json", ["things"], "Foo").with_provenance("a"),
                list_insert("config/config.json", ["things"], "Foo").with_provenance("b"),
            ],
        )
        assert [o.status for o in outcomes] == [Status.APPLIED, Status.NOOP]
        assert snapshot.config_value("config/config.json", ["things"]) == ["Bar", "Foo"]

    def test_dedupe_on_field(self, applier, make_snapshot):
        base = make_snapshot({"deps.json": '{"deps": [{"name": "web", "version": "1.0"}]}'})
        op = list_insert("deps.json", ["deps"], {"name": "web", "version": "2.0"}, dedupe_on="name")
        assert applier.apply(base, op).status is Status.NOOP

    def test_number_is_not_a_duplicate_of_boolean(self, applier, make_snapshot):
        base = make_snapshot({"c.json": '{"xs": [true, 2.5]}'})
        outcome = applier.apply(base, list_insert("c.json", ["xs"], 1))
        assert outcome.status is Status.APPLIED
        assert applier.apply(base, list_insert("c.json", ["xs"], 2.5)).status is Status.NOOP

    def test_missing_list_is_created(self, applier, make_snapshot):
        outcome = applier.apply(make_snapshot({}), list_insert("config/new.json", ["xs"], 1))
        assert outcome.snapshot.config_value("config/new.json", ["xs"]) == [1]

    def test_non_list_target_fails(self, applier, make_snapshot):
        base = make_snapshot({"config/config.json": SAMPLE_CONFIG_JSON})
        outcome = applier.apply(base, list_insert("config/config.json", ["app"], "x"))
        assert outcome.status is Status.FAILED
        assert "not a list" in outcome.failure.message

    def test_dotenv_rejects_lists(self, applier, make_snapshot):
        outcome = applier.apply(make_snapshot({".env": "A=1\n"}), list_insert(".env", ["A"], "x"))
        assert outcome.status is Status.FAILED


class TestRawEdit:
    def test_replaces_line(self, applier, make_snapshot):
        base = make_snapshot({"mix.exs": "a\nb\nc\n"})
        outcome = applier.apply(base, raw_edit("mix.exs", [1], "B\n", expected="b\n"))
        assert outcome.status is Status.APPLIED
        assert outcome.snapshot.read("mix.exs") == "a\nB\nc\n"

    def test_already_replaced_is_noop(self, applier, make_snapshot):
        base = make_snapshot({"mix.exs": "a\nB\nc\n"})
        outcome = applier.apply(base, raw_edit("mix.exs", [1], "B\n", expected="b\n"))
        assert outcome.status is Status.NOOP

    def test_expected_mismatch_fails_with_location(self, applier, make_snapshot):
        base = make_snapshot({"mix.exs": "a\nx\nc\n"})
        outcome = applier.apply(base, raw_edit("mix.exs", [1], "B\n", expected="b\n"))
        assert outcome.status is Status.FAILED
        assert outcome.failure.location == "/1"

    def test_missing_node_fails(self, applier, make_snapshot):
        outcome = applier.apply(make_snapshot({"mix.exs": "a\n"}), raw_edit("mix.exs", [5], "x\n"))
        assert outcome.status is Status.FAILED

    def test_missing_file_fails(self, applier, make_snapshot):
        outcome = applier.apply(make_snapshot({}), raw_edit("mix.exs", [0], "x\n"))
        assert outcome.status is Status.FAILED

    def test_edit_breaking_syntax_fails(self, applier, make_snapshot):
        base = make_snapshot({"c.json": '{"a": 1}'})
        outcome = applier.apply(base, raw_edit("c.json", [0], "{"))
        assert outcome.status is Status.FAILED

    def test_overlapping_edits_from_two_generators_conflict(self, applier, make_snapshot):
        _, outcomes = _apply_all(
            applier,
            make_snapshot({"mix.exs": "a\nb\n"}),
            [
                raw_edit("mix.exs", [0], "A\n").with_provenance("gen_a"),
                raw_edit("mix.exs", [0], "Z\n").with_provenance("gen_b"),
            ],
        )
        assert outcomes[0].status is Status.APPLIED
        assert isinstance(outcomes[1].conflict, RawEditOverlapConflict)
        assert outcomes[1].conflict.generators == ["gen_a", "gen_b"]

    def test_overlapping_edits_from_one_generator_conflict(self, applier, make_snapshot):
        snapshot, outcomes = _apply_all(
            applier,
            make_snapshot({"mix.exs": "a\nb\n"}),
            [
                raw_edit("mix.exs", [0], "A\n").with_provenance("gen_a"),
                raw_edit("mix.exs", [0], "Z\n").with_provenance("gen_a"),
            ],
        )
        assert outcomes[1].status is Status.CONFLICT
        assert outcomes[1].conflict.generators == ["gen_a", "gen_a"]
        assert snapshot.read("mix.exs") == "A\nb\n"

    def test_overlapping_edit_with_same_text_is_noop(self, applier, make_snapshot):
        snapshot, outcomes = _apply_all(
            applier,
            make_snapshot({"mix.exs": "a\nb\n"}),
            [
                raw_edit("mix.exs", [0], "A\n").with_provenance("gen_a"),
                raw_edit("mix.exs", [0], "A\n").with_provenance("gen_b"),
            ],
        )
        assert [o.status for o in outcomes] == [Status.APPLIED, Status.NOOP]
        assert snapshot.read("mix.exs") == "A\nb\n"

    def test_disjoint_edits_both_apply(self, applier, make_snapshot):
        snapshot, outcomes = _apply_all(
            applier,
            make_snapshot({"mix.exs": "a\nb\n"}),
            [
                raw_edit("mix.exs", [0], "A\n").with_provenance("gen_a"),
                raw_edit("mix.exs", [1], "B\n").with_provenance("gen_b"),
            ],
        )
        assert [o.status for o in outcomes] == [Status.APPLIED, Status.APPLIED]
        assert snapshot.read("mix.exs") == "A\nB\n"


class TestUnloadedFiles:
    @pytest.fixture
    def partial(self, parsers) -> ProjectSnapshot:
        loaded = ProjectSnapshot.from_texts("/virtual/project", {"README.md": "# Demo\n"}, parsers)
        return ProjectSnapshot(
            loaded.root,
            {p: loaded.get(p) for p in loaded},
            skipped=("big.json", "logo.txt"),
            unlisted=("notes.md",),
            excluded_dirs=("deps", "apps/web/_build"),
        )

    @pytest.mark.parametrize("path", ["big.json", "logo.txt", "notes.md", "deps/x/y.txt", "apps/web/_build/a.txt"])
    def test_create_file_conflicts_with_disk(self, applier, partial, path):
        outcome = applier.apply(partial, create_file(path, "{}\n").with_provenance("gen1"))
        assert outcome.status is Status.CONFLICT
        assert isinstance(outcome.conflict, AlreadyExistsConflict)
        assert outcome.conflict.generators == [EXISTING_OWNER, "gen1"]
        assert outcome.conflict.incoming_content == "{}\n"
        assert not outcome.snapshot.exists(path)

    @pytest.mark.parametrize(
        "op",
        [
            ensure_config_value("big.json", ["a"], 1),
            list_insert("deps/pkg.json", ["xs"], 1),
            raw_edit("notes.md", [0], "x\n"),
        ],
    )
    def test_edits_fail(self, applier, partial, op):
        outcome = applier.apply(partial, op)
        assert outcome.status is Status.FAILED
        assert "not loaded" in outcome.failure.message

    def test_neighbouring_paths_are_new(self, applier, partial):
        outcome = applier.apply(partial, create_file("deps2/x.txt", "x\n"))
        assert outcome.status is Status.APPLIED
        assert outcome.snapshot.is_unloaded("deps/x.txt")


class TestOwnershipLedger:
    def test_key_owner_falls_back_to_parent_key_then_file(self):
        ledger = OwnershipLedger()
        op = ensure_config_value("c.json", ["deps"], {}).with_provenance("gen_a")
        ledger.record(op, Status.APPLIED)
        assert ledger.key_owner("c.json", ("deps", "web")) == "gen_a"
        assert ledger.key_owner("c.json", ("other",)) == "gen_a"
        assert ledger.key_owner("d.json", ("x",)) == EXISTING_OWNER

    def test_only_applied_operations_are_recorded(self):
        ledger = OwnershipLedger()
        ledger.record(create_file("a.txt", "x").with_provenance("g"), Status.CONFLICT)
        assert ledger.file_owner("a.txt") == EXISTING_OWNER
