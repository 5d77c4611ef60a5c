"""Tests for aichat_client.client."""

import pytest

from aichat_client.client import ChatClient, make_title
from aichat_client.models import CompletionMessage
from aichat_client.storage import ConversationStore


@pytest.fixture
def store(tmp_path):
    return ConversationStore(tmp_path / "conversations.json")


@pytest.fixture
def chat_client(config_manager, http_client, store):
    return ChatClient(config_manager=config_manager, http_client=http_client, store=store)


class TestMakeTitle:
    def test_short(self):
        assert make_title("What is a Taylor series?") == "What is a Taylor series?"

    def test_truncated(self):
        assert make_title("a" * 40) == "a" * 30 + "..."

    def test_whitespace_collapsed(self):
        assert make_title("line one\nline two") == "line one line two"


class TestContext:
    def test_starts_with_system_prompt(self, chat_client, config_manager):
        context = chat_client.get_context("c1")
        assert len(context) == 1
        assert context[0].role == "system"
        assert context[0].content == config_manager.get_config().system_prompt

    def test_set_context_prepends_system_prompt(self, chat_client):
        chat_client.set_context("c1", [CompletionMessage(role="user", content="hi")])
        context = chat_client.get_context("c1")
        assert [m.role for m in context] == ["system", "user"]

    def test_set_context_keeps_existing_system_prompt(self, chat_client):
        chat_client.set_context("c1", [CompletionMessage(role="system", content="custom")])
        assert [m.content for m in chat_client.get_context("c1")] == ["custom"]

    def test_reset_context(self, chat_client):
        chat_client.set_context("c1", [CompletionMessage(role="user", content="hi")])
        chat_client.reset_context("c1")
        assert len(chat_client.get_context("c1")) == 1


class TestSendMessage:
    def test_first_message(self, chat_client, recorder, store):
        conversation = chat_client.new_conversation()
        reply = chat_client.send_message(conversation, "What is the derivative of x^2?")

        assert reply.text == "Hello!"
        assert not reply.is_user
        assert [m.is_user for m in conversation.messages] == [True, False]
        assert conversation.title == "What is the derivative of x^2?"

        saved = store.get_conversation(conversation.id)
        assert saved is not None
        assert len(saved.messages) == 2

        roles = [m["role"] for m in recorder.last_json["messages"]]
        assert roles == ["system", "user"]

    def test_context_accumulates(self, chat_client, recorder):
        conversation = chat_client.new_conversation()
        chat_client.send_message(conversation, "first question")
        chat_client.send_message(conversation, "second question")

        messages = recorder.last_json["messages"]
        assert [m["role"] for m in messages] == ["system", "user", "assistant", "user"]
        assert messages[-1]["content"] == "second question"
        assert conversation.title == "first question"
        assert len(chat_client.get_context(conversation.id)) == 5

    def test_context_restored_from_history(self, config_manager, http_client, store, recorder):
        first = ChatClient(config_manager=config_manager, http_client=http_client, store=store)
        conversation = first.new_conversation()
        first.send_message(conversation, "remember me")

        second = ChatClient(config_manager=config_manager, http_client=http_client, store=store)
        loaded = second.get_conversation(conversation.id)
        second.send_message(loaded, "do you remember?")

        messages = recorder.last_json["messages"]
        assert [m["content"] for m in messages[1:]] == ["remember me", "Hello!", "do you remember?"]

    def test_custom_title_kept(self, chat_client):
        conversation = chat_client.new_conversation(title="Physics")
        chat_client.send_message(conversation, "hi")
        assert conversation.title == "Physics"

    def test_web_search_flag(self, chat_client, recorder):
        chat_client.send_message(chat_client.new_conversation(), "news?", web_search=True)
        assert recorder.last_json["web_search"] is True

    def test_delete_conversation(self, chat_client, store):
        conversation = chat_client.new_conversation()
        chat_client.send_message(conversation, "hi")
        assert chat_client.delete_conversation(conversation.id)
        assert chat_client.list_conversations() == []
