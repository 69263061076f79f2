"""Tests for keyword story generation and scene splitting."""

import pytest

from app.core.exceptions import GatewayError
from app.services.openrouter import DEFAULT_PARAMS
from app.services.scene_split import split_story_into_scenes
from app.services.story_generation import (
    LENGTH_INSTRUCTIONS,
    LEVEL_CONSTRAINTS,
    TONE_INSTRUCTIONS,
    StoryKeywords,
    build_story_messages,
    generate_story,
)


def test_story_messages_carry_keywords_tone_and_length():
    keywords = StoryKeywords(topic="new neighbor", genre="daily life", mood="warm", tone="polite", length="short")
    system, user = build_story_messages(keywords)

    assert system.role == "system" and user.role == "user"
    assert "Topic: new neighbor" in system.content
    assert "Genre: daily life" in system.content
    assert TONE_INSTRUCTIONS["polite"] in system.content
    assert LENGTH_INSTRUCTIONS["short"] in system.content
    assert "twist" in system.content
    assert "scary" not in user.content


def test_unknown_length_falls_back_to_medium_and_no_tone_uses_default_register():
    system, _ = build_story_messages(StoryKeywords(topic="t", genre="g", mood="m", length="epic"))
    assert LENGTH_INSTRUCTIONS["medium"] in system.content
    assert "natural spoken register" in system.content


def test_scary_mood_switches_to_horror_rules():
    keywords = StoryKeywords(topic="elevator", genre="horror", mood="scary")
    assert keywords.is_horror
    system, user = build_story_messages(keywords)
    assert "dread" in system.content
    assert "scary sseol" in user.content


def test_default_options_use_middle_level_and_cap_the_cast():
    system, _ = build_story_messages(StoryKeywords(topic="t", genre="g", mood="m"))
    for rule in LEVEL_CONSTRAINTS[2]:
        assert rule in system.content
    assert "three characters or fewer" in system.content
    assert "Story settings" not in system.content
    assert "Additional request" not in system.content


def test_story_options_reach_the_system_prompt():
    keywords = StoryKeywords(
        topic="t",
        genre="g",
        mood="m",
        level=1,
        narrator_age="30s",
        narrator_gender="female",
        ending_style="bittersweet",
        limit_characters=False,
        additional_request="  Set it in Busan.  ",
    )
    system, _ = build_story_messages(keywords)

    assert "Narrator: a female in their 30s" in system.content
    assert "bittersweet ending" in system.content
    assert LEVEL_CONSTRAINTS[1][0] in system.content
    assert LEVEL_CONSTRAINTS[2][0] not in system.content
    assert "three characters or fewer" not in system.content
    assert "# Additional request\nSet it in Busan." in system.content


def test_narrator_defaults_fill_the_missing_half():
    assert StoryKeywords(topic="t", genre="g", mood="m", narrator_gender="female").story_settings() == [
        "Narrator: a female in their 20s"
    ]
    assert StoryKeywords(topic="t", genre="g", mood="m", narrator_age="40s").story_settings() == [
        "Narrator: a male in their 40s"
    ]


def test_unknown_level_uses_the_default_rules():
    system, _ = build_story_messages(StoryKeywords(topic="t", genre="g", mood="m", level=7))
    assert LEVEL_CONSTRAINTS[2][0] in system.content


def test_generate_story_strips_text_and_uses_story_params(fake_chat):
    gateway = fake_chat("  The bell rang at midnight.  \n")
    result = generate_story(StoryKeywords(topic="t", genre="g", mood="m"), gateway)

    assert result.story == "The bell rang at midnight."
    assert result.completion.model == "fake/chat-model"
    call = gateway.calls[0]
    assert call["operation"] == "story_generation"
    assert call["params"] == DEFAULT_PARAMS["story_generation"]


def test_blank_story_reply_is_a_gateway_error(fake_chat):
    with pytest.raises(GatewayError) as exc_info:
        generate_story(StoryKeywords(topic="t", genre="g", mood="m"), fake_chat("   "))
    assert exc_info.value.error_type == "empty_response"


def test_scene_split_parses_markers_into_scenes(fake_chat):
    gateway = fake_chat("scene 1\nI moved in.\nThe hall was quiet.\n\nscene 2\n(Lady)\"Hello. I am\nnext door.\"\n")
    result = split_story_into_scenes("  I moved in. The hall was quiet.  ", gateway)

    assert len(result.scenes) == 2
    assert [s.display_text for s in result.scenes[1].statements] == ['(Lady)"Hello. I am"', '(Lady)"next door."']
    assert result.raw_content.startswith("scene 1")
    call = gateway.calls[0]
    assert call["operation"] == "scene_splitting"
    assert "I moved in. The hall was quiet." in call["messages"][-1].content


def test_scene_split_without_markers_returns_no_scenes(fake_chat):
    result = split_story_into_scenes("a story", fake_chat("Sorry, I cannot split this."))
    assert result.scenes == []


@pytest.mark.parametrize("story", ["", "   \n"])
def test_scene_split_rejects_blank_story(fake_chat, story):
    gateway = fake_chat()
    with pytest.raises(ValueError):
        split_story_into_scenes(story, gateway)
    assert gateway.calls == []
