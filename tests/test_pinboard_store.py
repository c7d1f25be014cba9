import json

from clipkeep.database.kv_store import StorageKeys
from clipkeep.models.clipboarditem import ClipboardItem
from clipkeep.models.pinboard import Pinboard, ShareStatus
from clipkeep.services.events import Topic
from clipkeep.services.item_store import ItemStore
from clipkeep.services.pinboard_store import PinboardStore

from conftest import seed_items


def assert_membership_consistent(item_store, pinboard_store):
    for item in item_store.items:
        assert item.isPinned == bool(item.pinboardIds)
        for pid in item.pinboardIds:
            assert item.itemId in pinboard_store.get(pid).itemIds
    for pinboard in pinboard_store.pinboards:
        for iid in pinboard.itemIds:
            assert pinboard.pinboardId in item_store.get(iid).pinboardIds


def test_create_assigns_sort_order(pinboard_store):
    first = pinboard_store.create("Work")
    second = pinboard_store.create("Home", icon_name="house.fill", color="green")

    assert (first.sortOrder, second.sortOrder) == (0, 1)
    assert second.iconName == "house.fill"
    assert [p.name for p in pinboard_store.pinboards] == ["Work", "Home"]


def test_add_item_updates_both_sides(item_store, pinboard_store):
    item = item_store.insert(ClipboardItem.text("remember"))
    board = pinboard_store.create("Keep")

    assert pinboard_store.add_item(board.pinboardId, item.itemId) is True
    assert pinboard_store.add_item(board.pinboardId, item.itemId) is True

    assert pinboard_store.get(board.pinboardId).itemIds == [item.itemId]
    assert item_store.get(item.itemId).isPinned is True
    assert_membership_consistent(item_store, pinboard_store)


def test_add_item_with_unknown_ids_changes_nothing(item_store, pinboard_store):
    item = item_store.insert(ClipboardItem.text("x"))
    board = pinboard_store.create("Board")

    assert pinboard_store.add_item("p_missing", item.itemId) is False
    assert pinboard_store.add_item(board.pinboardId, "i_missing") is False
    assert item_store.get(item.itemId).pinboardIds == []
    assert pinboard_store.get(board.pinboardId).itemIds == []


def test_remove_item_unpins_when_last_pinboard(item_store, pinboard_store):
    item = item_store.insert(ClipboardItem.text("x"))
    a = pinboard_store.create("A")
    b = pinboard_store.create("B")
    pinboard_store.add_item(a.pinboardId, item.itemId)
    pinboard_store.add_item(b.pinboardId, item.itemId)

    assert pinboard_store.remove_item(a.pinboardId, item.itemId) is True
    assert item_store.get(item.itemId).isPinned is True

    assert pinboard_store.remove_item(b.pinboardId, item.itemId) is True
    assert item_store.get(item.itemId).isPinned is False
    assert pinboard_store.remove_item(b.pinboardId, item.itemId) is False
    assert_membership_consistent(item_store, pinboard_store)


def test_deleting_item_cascades_to_pinboards(item_store, pinboard_store):
    item = item_store.insert(ClipboardItem.text("gone soon"))
    other = item_store.insert(ClipboardItem.text("stays"))
    board = pinboard_store.create("Board")
    pinboard_store.add_item(board.pinboardId, item.itemId)
    pinboard_store.add_item(board.pinboardId, other.itemId)

    item_store.delete(item.itemId)

    assert pinboard_store.get(board.pinboardId).itemIds == [other.itemId]
    assert_membership_consistent(item_store, pinboard_store)


def test_deleting_pinboard_cascades_to_items(item_store, pinboard_store, events):
    item = item_store.insert(ClipboardItem.text("member"))
    board = pinboard_store.create("Temp")
    keep = pinboard_store.create("Keep")
    pinboard_store.add_item(board.pinboardId, item.itemId)
    seen = []
    events.subscribe(seen.append)

    assert pinboard_store.delete(board.pinboardId) is True

    assert pinboard_store.get(board.pinboardId) is None
    assert item_store.get(item.itemId).isPinned is False
    assert [p.pinboardId for p in pinboard_store.pinboards] == [keep.pinboardId]
    assert [(e.topic, e.action) for e in seen] == [
        (Topic.PINBOARDS, "deleted"),
        (Topic.ITEMS, "unpinned"),
    ]
    assert pinboard_store.delete(board.pinboardId) is False


def test_cascades_are_persisted(kv, settings_store, item_store, pinboard_store):
    item = item_store.insert(ClipboardItem.text("member"))
    board = pinboard_store.create("Board")
    pinboard_store.add_item(board.pinboardId, item.itemId)
    pinboard_store.delete(board.pinboardId)

    items = ItemStore(kv, settings_store)
    pinboards = PinboardStore(kv, items)
    assert items.get(item.itemId).pinboardIds == []
    assert pinboards.pinboards == []


def test_reorder_assigns_dense_sort_order(pinboard_store, clock):
    a = pinboard_store.create("A")
    b = pinboard_store.create("B")
    c = pinboard_store.create("C")
    clock.advance(hours=1)

    ordered = pinboard_store.reorder([c.pinboardId, a.pinboardId, "p_unknown"])

    assert [p.name for p in ordered] == ["C", "A", "B"]
    assert [p.sortOrder for p in ordered] == [0, 1, 2]
    assert all(p.modifiedDate == clock() for p in ordered)
    assert [p.name for p in pinboard_store.pinboards] == ["C", "A", "B"]
    assert b.pinboardId in {p.pinboardId for p in ordered}


def test_load_sorts_by_sort_order(kv, item_store):
    boards = [Pinboard(name="second", sortOrder=1), Pinboard(name="first", sortOrder=0)]
    kv.set(StorageKeys.PINBOARDS, json.dumps([b.to_record() for b in boards]))
    store = PinboardStore(kv, item_store)
    assert [p.name for p in store.pinboards] == ["first", "second"]


def test_reorder_items(item_store, pinboard_store):
    items = [item_store.insert(ClipboardItem.text(f"n{n}")) for n in range(3)]
    board = pinboard_store.create("Board")
    for item in items:
        pinboard_store.add_item(board.pinboardId, item.itemId)

    updated = pinboard_store.reorder_items(board.pinboardId, [items[2].itemId, "i_missing"])

    assert updated.itemIds == [items[2].itemId, items[0].itemId, items[1].itemId]
    assert [i.itemId for i in pinboard_store.items_for(board.pinboardId)] == updated.itemIds


def test_rename_and_update_metadata(pinboard_store, clock):
    board = pinboard_store.create("Old")
    clock.advance(minutes=1)

    renamed = pinboard_store.rename(board.pinboardId, "New")
    assert renamed.name == "New"
    assert renamed.modifiedDate == clock()

    changed = renamed.model_copy(update={"color": "red", "itemIds": ["i_bogus"]})
    assert pinboard_store.update(changed) is True
    stored = pinboard_store.get(board.pinboardId)
    assert stored.color == "red"
    assert stored.itemIds == []
    assert pinboard_store.rename("p_missing", "x") is None


def test_share_status(pinboard_store):
    board = pinboard_store.create("Team")

    shared = pinboard_store.set_share_status(board.pinboardId, ShareStatus.SHARED,
                                             share_url="https://share/abc",
                                             shared_with=["ann", "bob", "ann"])
    assert shared.is_shared
    assert shared.sharedWith == ["ann", "bob"]

    private = pinboard_store.set_share_status(board.pinboardId, ShareStatus.PRIVATE)
    assert private.shareUrl is None
    assert private.sharedWith == []


def test_dangling_references_are_skipped_and_repaired(kv, settings_store, clock):
    item = ClipboardItem.text("real").model_copy(update={"pinboardIds": ["p_gone"]})
    seed_items(kv, [item])
    board = Pinboard(name="Imported", itemIds=["i_gone", item.itemId])
    kv.set(StorageKeys.PINBOARDS, json.dumps([board.to_record()]))

    items = ItemStore(kv, settings_store, clock=clock)
    pinboards = PinboardStore(kv, items, clock=clock)

    assert [i.itemId for i in pinboards.items_for(board.pinboardId)] == [item.itemId]

    # i_gone on the board, p_gone on the item, and the missing item-side link
    assert pinboards.reconcile() == 3
    assert pinboards.get(board.pinboardId).itemIds == [item.itemId]
    assert items.get(item.itemId).pinboardIds == [board.pinboardId]
    assert pinboards.reconcile() == 0
