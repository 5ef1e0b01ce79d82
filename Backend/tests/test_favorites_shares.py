import pytest

from clouddrive.errors import AlreadyShared, InvalidRequest, NotFound, UserNotFound
from clouddrive.favorites import toggle_favorite
from clouddrive.shares import grant_share, list_shared_with
from clouddrive.trash import soft_delete


def test_toggle_twice_restores_state(store, alice, make_node):
    node = make_node(alice, "a.txt")

    assert toggle_favorite(store, alice.id, node.id) is True
    assert store.query_favorites(alice.id) == {node.id}

    assert toggle_favorite(store, alice.id, node.id) is False
    assert store.query_favorites(alice.id) == set()


def test_favorites_are_per_user(store, alice, bob, make_node):
    node = make_node(alice, "a.txt")
    toggle_favorite(store, alice.id, node.id)
    assert store.query_favorites(bob.id) == set()


def test_duplicate_favorite_insert_is_absorbed(store, alice, make_node):
    node = make_node(alice, "a.txt")
    assert store.insert_favorite(alice.id, node.id) is True
    assert store.insert_favorite(alice.id, node.id) is False
    assert store.query_favorites(alice.id) == {node.id}


def test_cannot_favorite_foreign_node(store, alice, bob, make_node):
    node = make_node(alice, "a.txt")
    with pytest.raises(NotFound):
        toggle_favorite(store, bob.id, node.id)


def test_share_grant(store, alice, bob, make_node):
    node = make_node(alice, "a.txt")

    share = grant_share(store, alice.id, node.id, "Bob@Example.com", "edit")

    assert share.shared_by == alice.id
    assert share.shared_with == bob.id
    assert share.permission == "edit"
    shared = list_shared_with(store, bob.id)
    assert [(s.id, n.id) for s, n in shared] == [(share.id, node.id)]


def test_share_twice_is_rejected(store, alice, bob, make_node):
    node = make_node(alice, "a.txt")
    grant_share(store, alice.id, node.id, "bob@example.com")

    with pytest.raises(AlreadyShared):
        grant_share(store, alice.id, node.id, "bob@example.com", "edit")


def test_share_with_unknown_email(store, alice, make_node):
    node = make_node(alice, "a.txt")
    with pytest.raises(UserNotFound):
        grant_share(store, alice.id, node.id, "nobody@example.com")


def test_share_with_self_or_bad_permission(store, alice, bob, make_node):
    node = make_node(alice, "a.txt")
    with pytest.raises(InvalidRequest):
        grant_share(store, alice.id, node.id, "alice@example.com")
    with pytest.raises(InvalidRequest):
        grant_share(store, alice.id, node.id, "bob@example.com", "owner")


def test_trashed_shares_are_hidden(store, alice, bob, make_node):
    node = make_node(alice, "a.txt")
    grant_share(store, alice.id, node.id, "bob@example.com")
    soft_delete(store, alice.id, node.id)
    assert list_shared_with(store, bob.id) == []
