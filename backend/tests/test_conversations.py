"""Tests for ConversationStore and the Message lifecycle."""

import pytest

from app.models import Message, MessageRole, MessageStateError, MessageStatus
from app.services.conversations import ConversationStore


@pytest.fixture
def store() -> ConversationStore:
    return ConversationStore()


def test_unknown_note_has_empty_thread(store: ConversationStore) -> None:
    assert store.get_thread("nope") == []


def test_append_keeps_order(store: ConversationStore) -> None:
    first = Message.from_user("one")
    second = Message(content="two", role=MessageRole.ASSISTANT)

    store.append_or_replace("n1", first)
    store.append_or_replace("n1", second)

    assert [m.content for m in store.get_thread("n1")] == ["one", "two"]


def test_threads_are_independent(store: ConversationStore) -> None:
    store.append_or_replace("a", Message.from_user("for a"))

    assert store.get_thread("b") == []


def test_placeholder_is_replaced_in_place(store: ConversationStore) -> None:
    user = Message.from_user("Hello")
    placeholder = Message.placeholder("Thinking...")
    store.append_or_replace("n1", user)
    store.append_or_replace("n1", placeholder)

    store.append_or_replace("n1", placeholder.resolve("Hi there"))

    thread = store.get_thread("n1")
    assert len(thread) == 2
    assert thread[1].id == placeholder.id
    assert thread[1].content == "Hi there"
    assert thread[1].status == MessageStatus.COMPLETE


def test_settled_message_cannot_change(store: ConversationStore) -> None:
    placeholder = Message.placeholder("Thinking...")
    store.append_or_replace("n1", placeholder)
    settled = placeholder.resolve("answer")
    store.append_or_replace("n1", settled)

    with pytest.raises(MessageStateError):
        store.append_or_replace("n1", settled.model_copy(update={"content": "rewritten"}))

    assert store.get_message("n1", placeholder.id).content == "answer"


def test_replaying_identical_settled_message_is_noop(store: ConversationStore) -> None:
    seen = []
    store.subscribe(lambda note_id, message: seen.append(message.id))
    message = Message.from_user("hi")
    store.append_or_replace("n1", message)

    store.append_or_replace("n1", message)

    assert len(store.get_thread("n1")) == 1
    assert seen == [message.id]


def test_get_thread_returns_a_copy(store: ConversationStore) -> None:
    store.append_or_replace("n1", Message.from_user("hi"))

    store.get_thread("n1").clear()

    assert len(store.get_thread("n1")) == 1


def test_drop_thread(store: ConversationStore) -> None:
    store.append_or_replace("n1", Message.from_user("hi"))

    assert store.drop_thread("n1") is True
    assert store.drop_thread("n1") is False
    assert store.get_thread("n1") == []


class TestMessage:
    def test_user_messages_are_always_complete(self) -> None:
        with pytest.raises(ValueError):
            Message(content="x", role=MessageRole.USER, status=MessageStatus.PENDING)

    def test_placeholder_flags(self) -> None:
        placeholder = Message.placeholder("Thinking...")

        assert placeholder.is_loading
        assert not placeholder.is_settled

    def test_fail_keeps_id_and_marks_failed(self) -> None:
        placeholder = Message.placeholder("Thinking...")

        failed = placeholder.fail("Sorry")

        assert failed.id == placeholder.id
        assert failed.status == MessageStatus.FAILED
        assert not failed.is_loading

    def test_settling_twice_raises(self) -> None:
        resolved = Message.placeholder("Thinking...").resolve("done")

        with pytest.raises(MessageStateError):
            resolved.fail("late failure")
