from __future__ import annotations

from app.services import SqlChatStore
from app.services import chat as chat_service
from taskboard.realtime.store import ChatStore


def test_sql_store_covers_what_the_hub_calls(session_factory, db_session, make_user) -> None:
    alice_id, _ = make_user("Alice")
    bob_id, _ = make_user("Bob")
    store: ChatStore = SqlChatStore(session_factory)
    for content in ("one", "two"):
        chat_service.create_message(db_session, from_user_id=alice_id, to_user_id=bob_id, content=content)

    assert store.get_user(bob_id).name == "Bob"
    assert store.get_user(9999) is None
    assert store.get_unread_counts_for_user(bob_id).to_payload() == {"total": 2, "byUser": {str(alice_id): 2}}

    assert store.mark_messages_as_read(bob_id, alice_id) == 2
    assert store.mark_messages_as_read(bob_id, alice_id) == 0
    assert store.get_unread_counts_for_user(bob_id).total == 0
    assert not hasattr(store, "get_task_group_unread_counts")
