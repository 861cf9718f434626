# Rev 0.2.2
from __future__ import annotations

from datetime import date

import pytest

from lifeplan.models.records import tree_from_records, tree_to_records
from lifeplan.models.types import Status
from lifeplan.services.tree_store import ReorderScope, TreeStore

from conftest import TODAY, MemoryGateway, iv, sample_tree, sequential_ids


def _invariants_hold(store: TreeStore) -> None:
    for p in store.projects:
        for i, t in enumerate(p.children):
            assert t.order == i
            if t.interval.is_complete:
                assert t.interval.start <= t.interval.end
                if p.interval.is_complete:
                    assert p.interval.contains(t.interval)
            dated = [s.interval for s in t.children if s.interval.is_complete]
            if dated:
                assert t.interval.start == min(x.start for x in dated)
                assert t.interval.end == max(x.end for x in dated)
            for j, s in enumerate(t.children):
                assert s.order == j
                if s.interval.is_complete:
                    assert s.interval.start <= s.interval.end


# --- loading / scenario ------------------------------------------------------

def test_loaded_tree_is_normalized(store):
    p = store.get_project("P")
    t2 = store.get_task("T2")
    assert t2.interval == iv("2024-02-01", "2024-02-03")
    assert p.interval.start <= date(2024, 1, 1)
    assert p.interval.end >= date(2024, 2, 3)
    _invariants_hold(store)


def test_subtask_end_extension_propagates_upward(store):
    s1 = store.update_subtask("S1", end="2024-03-10")
    assert s1.interval == iv("2024-02-01", "2024-03-10")
    assert store.get_task("T2").interval.end == date(2024, 3, 10)
    assert store.get_project("P").interval.end >= date(2024, 3, 10)
    _invariants_hold(store)


def test_new_task_defaults(store):
    task = store.add_task("P", "t3")
    assert task.order == 2
    assert task.interval.is_unset
    assert task.status is Status.BACKLOG
    assert store.get_project("P").children[-1].id == task.id


def test_add_under_unknown_parent_returns_none(store):
    assert store.add_task("nope") is None
    assert store.add_subtask("P", "T1-missing") is None
    assert store.add_subtask("other-project", "T2") is None


def test_add_project_appends_with_dense_order(store):
    p = store.add_project("second")
    assert p.order == 1
    assert [x.id for x in store.projects] == ["P", p.id]
    assert store.get_project(p.id).verified is False


# --- updates -----------------------------------------------------------------

def test_project_shrink_clamps_every_descendant(store):
    store.update_project("P", start="2024-01-03", end="2024-01-20")
    p = store.get_project("P")
    assert p.interval == iv("2024-01-03", "2024-01-20")
    for t in p.children:
        assert p.interval.contains(t.interval)
        for s in t.children:
            assert p.interval.contains(s.interval)
    _invariants_hold(store)


def test_inverted_update_is_corrected(store):
    t1 = store.update_task("T1", start="2024-01-09", end="2024-01-02")
    assert t1.interval == iv("2024-01-02", "2024-01-09")


def test_setting_only_start_past_end_keeps_interval_valid(store):
    t1 = store.update_task("T1", start="2024-01-20")
    assert t1.interval.start <= t1.interval.end


def test_first_date_on_undated_task_fills_default_end(store):
    task = store.add_task("P")
    task = store.update_task(task.id, start="2024-01-10")
    assert task.interval == iv("2024-01-10", "2024-01-11")


def test_malformed_date_is_treated_as_unset(store):
    task = store.add_task("P")
    task = store.update_task(task.id, start="garbage")
    assert task.interval.is_unset


def test_malformed_date_keeps_existing_endpoint(store, caplog):
    task = store.update_task("T1", start="garbage")
    assert task.interval == iv("2024-01-01", "2024-01-05")
    assert "Unparseable date" in caplog.text
    task = store.update_task("T1", start="31/12/2023", end="2024-01-09")
    assert task.interval == iv("2024-01-01", "2024-01-09")


def test_unknown_field_raises(store):
    with pytest.raises(ValueError):
        store.update_task("T1", colour="red")
    with pytest.raises(ValueError):
        store.update_project("P", points=3)


def test_wrong_kind_update_returns_none(store):
    assert store.update_project("T1", name="x") is None
    assert store.update_subtask("missing", name="x") is None
    assert store.update_node("missing", name="x") is None


def test_deleting_last_subtask_reverts_to_explicit_interval(store):
    store.update_task("T2", start="2024-02-10", end="2024-02-12")
    assert store.get_task("T2").own_interval == iv("2024-02-10", "2024-02-12")
    assert store.get_subtask("S1").interval == iv("2024-02-10", "2024-02-10")
    store.update_subtask("S1", start="2024-02-01", end="2024-02-20")
    assert store.get_task("T2").interval == iv("2024-02-01", "2024-02-20")
    assert store.delete_subtask("S1") is True
    assert store.get_task("T2").interval == iv("2024-02-10", "2024-02-12")


def test_deleting_last_subtask_of_undated_task_keeps_derived_dates(store):
    task = store.add_task("P", "t3")
    sub = store.add_subtask("P", task.id, "s")
    store.update_subtask(sub.id, start="2024-02-05", end="2024-02-07")
    assert store.get_task(task.id).interval == iv("2024-02-05", "2024-02-07")
    reloaded = TreeStore(tree_from_records(tree_to_records(store.tree)), today=lambda: TODAY)
    try:
        for s in (store, reloaded):
            assert s.delete_subtask(sub.id) is True
            assert s.get_task(task.id).interval == iv("2024-02-05", "2024-02-07")
    finally:
        reloaded.close()


def test_verified_rolls_up_and_back(store):
    sub = store.add_subtask("P", "T2", "s2")
    store.update_subtask("S1", verified=True)
    store.update_subtask(sub.id, verified=True)
    store.update_task("T1", verified=True)
    assert store.get_task("T2").verified is True
    assert store.get_project("P").verified is True

    store.update_subtask("S1", verified=False)
    assert store.get_task("T2").verified is False
    assert store.get_project("P").verified is False

    store.update_subtask("S1", verified=True)
    assert store.get_task("T2").verified is True
    assert store.get_project("P").verified is True


def test_points_roll_up(store):
    sub = store.add_subtask("P", "T2")
    store.update_subtask("S1", points=3)
    store.update_subtask(sub.id, points=2.5)
    assert store.get_task("T2").points == 5.5
    store.update_task("T1", points=8)
    assert store.get_task("T1").points == 8


def test_unaffected_projects_are_shared(store):
    other = store.add_project("other")
    before = store.get_project(other.id)
    store.update_subtask("S1", end="2024-03-01")
    assert store.get_project(other.id) is before


# --- batch -------------------------------------------------------------------

def test_batch_applies_downward_clamp_last(store, gateway):
    store.flush()
    saved_before = len(gateway.saved)
    results = store.apply_batch([
        ("P", {"start": "2024-01-01", "end": "2024-02-10"}),
        ("S1", {"end": "2024-03-10"}),
    ])
    store.flush()
    assert all(r is not None for r in results)
    assert store.get_project("P").interval == iv("2024-01-01", "2024-02-10")
    assert store.get_subtask("S1").interval == iv("2024-02-01", "2024-02-10")
    assert len(gateway.saved) == saved_before + 1
    _invariants_hold(store)


def test_batch_reports_unknown_ids(store):
    results = store.apply_batch([("missing", {"name": "x"}), ("T1", {"name": "renamed"})])
    assert results[0] is None
    assert results[1].name == "renamed"


# --- delete ------------------------------------------------------------------

def test_delete_renumbers_siblings(store):
    store.add_task("P", "t3")
    assert store.delete_task("T1") is True
    assert [(t.id, t.order) for t in store.get_project("P").children][0] == ("T2", 0)
    _invariants_hold(store)


def test_delete_project_drops_descendants(store):
    assert store.delete_project("P") is True
    assert store.find("T2") is None
    assert store.find("S1") is None


@pytest.mark.parametrize("method", ["delete_project", "delete_task", "delete_subtask"])
def test_delete_unknown_returns_false(store, method):
    assert getattr(store, method)("missing") is False


# --- reorder -----------------------------------------------------------------

@pytest.fixture()
def five_tasks(empty_store):
    p = empty_store.add_project("p")
    ids = [empty_store.add_task(p.id, f"t{i}").id for i in range(5)]
    return empty_store, p.id, ids


def test_reorder_round_trip_restores_order(five_tasks):
    store, pid, ids = five_tasks
    scope = ReorderScope("task", pid)
    assert store.reorder(scope, 2, 0) is True
    assert [t.id for t in store.get_project(pid).children][:3] == [ids[2], ids[0], ids[1]]
    assert store.reorder(scope, 0, 2) is True
    assert [t.id for t in store.get_project(pid).children] == ids


def test_reorder_forward_uses_post_removal_index(five_tasks):
    store, pid, ids = five_tasks
    store.reorder(ReorderScope("task", pid), 0, 3)
    children = store.get_project(pid).children
    assert [t.id for t in children] == [ids[1], ids[2], ids[3], ids[0], ids[4]]
    assert [t.order for t in children] == [0, 1, 2, 3, 4]


@pytest.mark.parametrize("src, dst", [(-1, 0), (0, 5), (5, 0)])
def test_reorder_out_of_range_is_rejected(five_tasks, src, dst):
    store, pid, ids = five_tasks
    assert store.reorder(ReorderScope("task", pid), src, dst) is False
    assert [t.id for t in store.get_project(pid).children] == ids


def test_reorder_rejects_mismatched_scope(store):
    assert store.reorder(ReorderScope("subtask", "P"), 0, 0) is False
    assert store.reorder(ReorderScope("task", "missing"), 0, 1) is False


def test_reorder_node_requires_same_parent_and_kind(store):
    other = store.add_task("P", "t3")
    assert store.reorder_node(other.id, "T1") is True
    assert store.get_project("P").children[0].id == other.id
    assert store.reorder_node("S1", "T1") is False
    p2 = store.add_project("p2")
    t_other = store.add_task(p2.id)
    assert store.reorder_node(t_other.id, "T1") is False


def test_reorder_subtasks_keeps_task_derivation(store):
    sub = store.add_subtask("P", "T2", "s2")
    assert store.reorder(ReorderScope("subtask", "T2"), 1, 0) is True
    assert [s.id for s in store.get_task("T2").children] == [sub.id, "S1"]
    _invariants_hold(store)


# --- listeners / persistence ---------------------------------------------------

def test_listeners_see_each_commit(store):
    seen = []
    store.add_listener(seen.append)
    store.update_task("T1", name="renamed")
    assert seen and seen[-1] is store.tree


def test_saves_are_submitted_in_order(store, gateway):
    store.update_task("T1", name="a")
    store.update_task("T1", name="b")
    store.flush()
    assert gateway.saved[-1] is store.tree


def test_gateway_failure_keeps_memory_tree(caplog):
    gw = MemoryGateway(fail=True)
    store = TreeStore(sample_tree(), gateway=gw, id_factory=sequential_ids(), today=lambda: TODAY)
    try:
        task = store.update_task("T1", name="still here")
        store.flush()
        assert task.name == "still here"
        assert store.get_task("T1").name == "still here"
        assert "Saving roadmap raised" in caplog.text
    finally:
        store.close()


def test_from_gateway_loads_and_normalizes():
    gw = MemoryGateway(sample_tree())
    store = TreeStore.from_gateway(gw, today=lambda: TODAY)
    try:
        assert store.get_task("T2").interval == iv("2024-02-01", "2024-02-03")
    finally:
        store.close()


def test_store_without_gateway_keeps_working(empty_store):
    p = empty_store.add_project("solo")
    empty_store.flush()
    assert [x.id for x in empty_store.projects] == [p.id]
    assert empty_store.find("missing") is None
