# =============================================================================
# tests/test_chat_api.py - Chat Endpoint Tests
# =============================================================================
# Tests for /api/chat with a mocked OpenAI client behind the coach:
# - A chat turn stores both messages and indexes the reply
# - Model failures produce a stored fallback reply, never an error
# - History, conversation listing/deletion and feedback
#
# Run with: pytest tests/test_chat_api.py -v
# =============================================================================

import openai

from lib.vector_store import vector_store
from tests.conftest import register


def send(client, headers, message="How is my progress going?", conversation_id=None):
    payload = {"message": message}
    if conversation_id:
        payload["conversation_id"] = conversation_id
    response = client.post("/api/chat/message", json=payload, headers=headers)
    assert response.status_code == 200, response.text
    return response.json()


# =============================================================================
# Chat Turns
# =============================================================================

class TestSendMessage:

    def test_new_conversation(self, client, auth, fake_db):
        body = send(client, auth.headers)

        assert body["success"] is True
        assert body["conversation_id"].startswith("conv_")
        assert body["user_message"]["type"] == "user"
        assert body["user_message"]["content"] == "How is my progress going?"
        assert body["ai_message"]["type"] == "ai"
        assert body["ai_message"]["content"] == "Let's plan your next step together."
        assert body["ai_message"]["metadata"]["intent"] == "progress_check"
        assert "embedding" not in body["ai_message"]

        stored = sorted(fake_db.messages.values(), key=lambda m: m["_seq"])
        assert [m["type"] for m in stored] == ["user", "ai"]
        assert all(m["embedding"] == [0.1, 0.2, 0.3] for m in stored)
        assert vector_store.stats()["vectors"] == 1

    def test_history_is_sent_to_the_model(self, client, auth, openai_client):
        first = send(client, auth.headers, message="I started running")
        send(client, auth.headers, message="What should I do next?", conversation_id=first["conversation_id"])

        messages = openai_client.chat.completions.create.call_args.kwargs["messages"]

        assert [m["role"] for m in messages] == ["system", "user", "assistant", "user"]
        assert messages[1]["content"] == "I started running"
        assert messages[-1]["content"] == "What should I do next?"

    def test_goals_reach_the_prompt(self, client, auth, openai_client):
        client.post(
            "/api/goals",
            json={"title": "Learn Spanish", "category": "learning", "type": "long-term"},
            headers=auth.headers,
        )

        send(client, auth.headers, message="Any tips for my Spanish practice?")

        system_prompt = openai_client.chat.completions.create.call_args.kwargs["messages"][0]["content"]
        assert "Learn Spanish (learning) - 0% complete" in system_prompt

    def test_fallback_when_model_fails(self, client, auth, openai_client, fake_db):
        openai_client.chat.completions.create.side_effect = openai.OpenAIError("connection reset")

        body = send(client, auth.headers, message="I feel stuck")

        metadata = body["ai_message"]["metadata"]
        assert metadata["intent"] == "fallback"
        assert metadata["confidence"] == 0.5
        assert metadata["fallback_reason"] == "COACH_ERROR"

        ai_row = next(m for m in fake_db.messages.values() if m["type"] == "ai")
        assert "embedding" not in ai_row
        assert vector_store.stats()["vectors"] == 0

    def test_without_embeddings(self, client, auth, openai_client, fake_db):
        openai_client.embeddings.create.side_effect = openai.OpenAIError("quota")

        send(client, auth.headers)

        assert all("embedding" not in m for m in fake_db.messages.values())

    def test_empty_message_rejected(self, client, auth):
        response = client.post("/api/chat/message", json={"message": "   "}, headers=auth.headers)

        assert response.status_code == 400
        assert response.json()["code"] == "VALIDATION_ERROR"


# =============================================================================
# History and Conversations
# =============================================================================

class TestHistory:

    def test_history_limit_and_order(self, client, auth):
        send(client, auth.headers, message="first", conversation_id="conv_a")
        send(client, auth.headers, message="second", conversation_id="conv_b")

        body = client.get("/api/chat/history", params={"limit": 3}, headers=auth.headers).json()

        assert body["total"] == 3
        assert [m["content"] for m in body["messages"]][1] == "second"

    def test_history_by_conversation(self, client, auth):
        send(client, auth.headers, message="first", conversation_id="conv_a")
        send(client, auth.headers, message="second", conversation_id="conv_b")

        body = client.get("/api/chat/history", params={"conversation_id": "conv_a"}, headers=auth.headers).json()

        assert [m["content"] for m in body["messages"]][0] == "first"
        assert body["total"] == 2

    def test_limit_bounds(self, client, auth):
        assert client.get("/api/chat/history", params={"limit": 101}, headers=auth.headers).status_code == 400

    def test_list_conversations(self, client, auth):
        send(client, auth.headers, message="first", conversation_id="conv_a")
        send(client, auth.headers, message="second", conversation_id="conv_b")

        body = client.get("/api/chat/conversations", headers=auth.headers).json()

        assert body["total"] == 2
        assert [c["conversation_id"] for c in body["conversations"]] == ["conv_b", "conv_a"]
        summary = body["conversations"][0]
        assert summary["message_count"] == 2
        assert summary["last_message_type"] == "ai"

    def test_delete_conversation(self, client, auth, fake_db):
        conversation_id = send(client, auth.headers)["conversation_id"]

        response = client.delete(f"/api/chat/conversations/{conversation_id}", headers=auth.headers)

        assert response.json()["deleted_count"] == 2
        assert fake_db.messages == {}
        assert vector_store.stats()["vectors"] == 0

    def test_delete_unknown_conversation(self, client, auth):
        response = client.delete("/api/chat/conversations/conv_0", headers=auth.headers)

        assert response.status_code == 404
        assert response.json()["code"] == "CONVERSATION_NOT_FOUND"


# =============================================================================
# Feedback
# =============================================================================

class TestFeedback:

    def test_feedback_merges_metadata(self, client, auth):
        ai_message = send(client, auth.headers)["ai_message"]

        response = client.post(
            "/api/chat/feedback",
            json={"message_id": ai_message["id"], "rating": 5, "feedback": "Very useful"},
            headers=auth.headers,
        )

        metadata = response.json()["data"]["metadata"]
        assert metadata["user_rating"] == 5
        assert metadata["user_feedback"] == "Very useful"
        assert metadata["feedback_date"]
        assert metadata["intent"] == "progress_check"

    def test_feedback_on_someone_elses_message(self, client, auth):
        ai_message = send(client, auth.headers)["ai_message"]
        other = register(client, name="Grace Hopper", email="grace@example.com").json()

        response = client.post(
            "/api/chat/feedback",
            json={"message_id": ai_message["id"], "rating": 1},
            headers={"Authorization": f"Bearer {other['token']}"},
        )

        assert response.status_code == 404
        assert response.json()["code"] == "MESSAGE_NOT_FOUND"
