"""Tests for the state differencer."""

from tabsync.reconciliation.apply import sort_operations
from tabsync.reconciliation.differ import diff, diff_states
from tabsync.reconciliation.models import (
    EMPTY_STATE,
    AddGroup,
    AddItem,
    DeleteGroup,
    DeleteItem,
    MoveItem,
    NormalizedGroup,
    NormalizedItem,
    NormalizedState,
    UpdateGroup,
    UpdateItem,
)


def item(item_id, url, index, *, title=None, pinned=False, renamed=False, group_id=None):
    return NormalizedItem(
        id=item_id,
        url=url,
        title=title if title is not None else url,
        pinned=pinned,
        renamed=renamed,
        index=index,
        group_id=group_id,
    )


def group(group_id, title, color, index=0, collapsed=False):
    return NormalizedGroup(
        id=group_id, title=title, color=color, collapsed=collapsed, index=index
    )


def state(*items, groups=()):
    return NormalizedState(items=tuple(items), groups=tuple(groups))


class TestIdentity:
    def test_same_state_yields_no_operations(self):
        work = group("g", "Work", "blue")
        s = state(
            item("1", "https://a/", 0, pinned=True),
            item("2", "https://b/", 1, group_id="g"),
            groups=[work],
        )

        assert diff(s, s) == []
        assert diff_states(s, s).has_changes is False

    def test_ids_are_never_compared_across_sides(self):
        tabs = state(item("101", "https://a/", 0), groups=[group("7", "Work", "blue")])
        bookmarks = state(item("bm-1", "https://a/", 0), groups=[group("f1", "Work", "blue")])

        assert diff(tabs, bookmarks) == []

    def test_duplicate_urls_match_by_occurrence(self):
        source = state(item("1", "https://a/", 0), item("2", "https://a/", 1))
        target = state(item("x", "https://a/", 0), item("y", "https://a/", 1))

        assert diff(source, target) == []

    def test_empty_states(self):
        assert diff(EMPTY_STATE, EMPTY_STATE) == []


class TestItemOperations:
    def test_add_and_delete(self):
        source = state(item("1", "https://a/", 0), item("2", "https://new/", 1))
        target = state(item("x", "https://a/", 0), item("y", "https://gone/", 1))

        operations = diff(source, target)

        assert DeleteItem(item_id="y") in operations
        assert AddItem(item=source.items[1], group=None) in operations
        assert len(operations) == 2

    def test_add_carries_source_group(self):
        work = group("g", "Work", "blue")
        source = state(item("1", "https://a/", 0, group_id="g"), groups=[work])

        operations = diff(source, EMPTY_STATE)

        assert AddItem(item=source.items[0], group=work) in operations
        assert AddGroup(group=work) in operations

    def test_pinned_change(self):
        source = state(item("1", "https://a/", 0, pinned=True))
        target = state(item("x", "https://a/", 0))

        assert diff(source, target) == [UpdateItem(item_id="x", changes={"pinned": True})]

    def test_group_membership_compared_by_key(self):
        source = state(
            item("1", "https://a/", 0, group_id="g1"), groups=[group("g1", "Work", "blue")]
        )
        target = state(
            item("x", "https://a/", 0, group_id="f9"), groups=[group("f9", "Work", "red")]
        )

        operations = diff(source, target)

        update = next(op for op in operations if isinstance(op, UpdateItem))
        assert update.changes == {"group_id": "g1"}
        assert update.group == source.groups[0]
        assert DeleteGroup(group_id="f9") in operations
        assert AddGroup(group=source.groups[0]) in operations

    def test_leaving_a_group(self):
        source = state(item("1", "https://a/", 0))
        target = state(
            item("x", "https://a/", 0, group_id="f"), groups=[group("f", "Work", "blue")]
        )

        operations = diff(source, target)

        assert UpdateItem(item_id="x", changes={"group_id": None}) in operations

    def test_reorder_emits_moves_for_displaced_items(self):
        source = state(
            item("1", "https://a/", 0), item("2", "https://b/", 1), item("3", "https://c/", 2)
        )
        target = state(
            item("x", "https://b/", 0), item("y", "https://a/", 1), item("z", "https://c/", 2)
        )

        moves = [op for op in diff(source, target) if isinstance(op, MoveItem)]

        assert moves == [MoveItem(item_id="y", new_index=0), MoveItem(item_id="x", new_index=1)]

    def test_no_moves_when_order_matches(self):
        source = state(item("1", "https://a/", 0), item("2", "https://b/", 1))
        target = state(item("x", "https://a/", 3), item("y", "https://b/", 8))

        assert diff(source, target) == []


class TestRenameTracking:
    def test_first_title_divergence_marks_renamed(self):
        source = state(item("1", "https://a/", 0, title="Custom"))
        target = state(item("x", "https://a/", 0, title="Page title"))

        assert diff(source, target) == [
            UpdateItem(item_id="x", changes={"title": "Custom", "renamed": True})
        ]

    def test_renamed_target_keeps_its_title(self):
        source = state(item("1", "https://a/", 0, title="Page title"))
        target = state(item("x", "https://a/", 0, title="Custom", renamed=True))

        assert diff(source, target) == []

    def test_renamed_source_propagates_flag(self):
        source = state(item("1", "https://a/", 0, title="Custom", renamed=True))
        target = state(item("x", "https://a/", 0, title="Custom"))

        assert diff(source, target) == [UpdateItem(item_id="x", changes={"renamed": True})]

    def test_rename_round_trip_does_not_flip_back(self):
        live = state(item("101", "https://a/", 0, title="Page title"))
        bookmarks = state(item("bm", "https://a/", 0, title="Custom", renamed=True))

        # Pull direction: the live item picks up the rename.
        pulled = diff(bookmarks, live)
        assert pulled == [UpdateItem(item_id="101", changes={"title": "Custom", "renamed": True})]

        # Push direction afterwards: a renamed target is never un-renamed.
        live_after = state(item("101", "https://a/", 0, title="Custom", renamed=True))
        assert diff(live_after, bookmarks) == []
        assert diff(live, bookmarks) == []


class TestGroupOperations:
    def test_collapsed_and_index_are_diffed(self):
        source = state(
            groups=[group("g1", "Work", "blue", index=1, collapsed=True), group("g2", "Fun", "red")]
        )
        target = state(
            groups=[group("f1", "Work", "blue", index=0), group("f2", "Fun", "red", index=1)]
        )

        operations = diff(source, target)

        assert UpdateGroup(group_id="f1", changes={"collapsed": True, "index": 1}) in operations
        assert UpdateGroup(group_id="f2", changes={"index": 0}) in operations

    def test_item_operations_come_before_group_operations(self):
        source = state(
            item("1", "https://a/", 0, group_id="g"), groups=[group("g", "Work", "blue")]
        )

        operations = diff(source, EMPTY_STATE)

        assert isinstance(operations[0], AddItem)
        assert isinstance(operations[-1], AddGroup)


class TestSaveScenario:
    def test_new_workspace_gets_group_before_member(self):
        live = state(
            item("1", "https://a/", 0, title="A"),
            item("2", "https://b/", 1, title="B", group_id="55"),
            groups=[group("55", "Work", "blue")],
        )

        ordered = sort_operations(diff(live, EMPTY_STATE))

        assert ordered[0] == AddGroup(group=live.groups[0])
        add_b = ordered.index(AddItem(item=live.items[1], group=live.groups[0]))
        assert add_b > 0
        assert [type(op) for op in ordered] == [AddGroup, AddItem, AddItem]
