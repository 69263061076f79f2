import pytest

from app.services.openrouter import ChatMessage
from app.services.refinement import StoryParts, parse_refine_response, refine_story


def test_parse_picks_changed_sections_and_response():
    raw = (
        "== HOOK ==\nWho left the cake?\n\n"
        "== BODY ==\n(Not yet written)\n\n"
        "response: I sharpened the hook."
    )
    result = parse_refine_response(raw)

    assert result.hook == "Who left the cake?"
    assert result.body is None
    assert result.cta is None
    assert result.response == "I sharpened the hook."
    assert result.parsed() == {"response": "I sharpened the hook.", "hook": "Who left the cake?"}


def test_parse_multiline_body_and_cta():
    raw = "== BODY ==\nLine one.\nLine two.\n\n== CTA ==\nFollow for more.\nresponse: Done."
    result = parse_refine_response(raw)
    assert result.body == "Line one.\nLine two."
    assert result.cta == "Follow for more."
    assert result.response == "Done."


def test_plain_conversation_becomes_the_response():
    result = parse_refine_response("  The hook already works well.  ")
    assert result.response == "The hook already works well."
    assert result.parsed() == {"response": "The hook already works well."}


def test_sections_without_response_line_leave_response_empty():
    result = parse_refine_response("== CTA ==\nSubscribe now.")
    assert result.cta == "Subscribe now."
    assert result.response == ""


def test_refine_story_sends_current_parts_and_history(fake_chat):
    gateway = fake_chat("== HOOK ==\nNew hook.\nresponse: Updated.")
    history = [ChatMessage("user", "make it scarier"), ChatMessage("assistant", "Sure.")]

    result = refine_story("  shorter hook please ", StoryParts(hook="Old hook.", body="Body."), gateway, history)

    assert result.hook == "New hook."
    assert result.response == "Updated."
    assert result.completion.model == "fake/chat-model"

    messages = gateway.calls[0]["messages"]
    assert gateway.calls[0]["operation"] == "story_refinement"
    assert "Old hook." in messages[0].content
    assert "(Not yet written)" in messages[0].content
    assert [m.role for m in messages] == ["system", "user", "assistant", "user"]
    assert messages[-1].content == "shorter hook please"


def test_refine_story_rejects_blank_message(fake_chat):
    with pytest.raises(ValueError):
        refine_story("   ", StoryParts(), fake_chat())
