import pytest

from app.prompts import loader


def test_list_prompts_domain():
    names = loader.list_prompts(domain="placement")
    assert set(names) == {"prompt_image_analysis", "prompt_image_placement_system", "prompt_image_placement"}


def test_list_prompts_unknown_domain_is_empty():
    assert loader.list_prompts(domain="nonexistent") == []


def test_every_prompt_resolves_to_a_string():
    for name in loader.list_prompts():
        assert loader.get_prompt(name).strip()


def test_unknown_prompt_raises_key_error():
    with pytest.raises(KeyError):
        loader.get_prompt("prompt_that_does_not_exist")


def test_required_variables_are_checked_when_validating():
    assert loader.check_required_variables("prompt_hook_user", {}) == ["label"]
    with pytest.raises(ValueError):
        loader.render_prompt("prompt_hook_user", validate=True)


def test_strict_undefined_rejects_missing_variables():
    with pytest.raises(Exception):
        loader.render_prompt("prompt_scene_split_user")


def test_placement_prompt_lists_scenes_lines_and_image_count():
    rendered = loader.render_prompt(
        "prompt_image_placement",
        scenes=[{"index": 0, "statements": [{"index": 0, "display_text": "The bell rang."}]}],
        images=[
            {"index": 0, "description": "A doorway at night", "mood": "tense", "subjects": ["door"], "dominant_colors": []},
            {"index": 1, "description": "A cake", "mood": None, "subjects": [], "dominant_colors": ["white"]},
        ],
    )
    assert "[Scene 0]" in rendered
    assert "(0) The bell rang." in rendered
    assert "[Image 1] A cake" in rendered
    assert "mood: tense" in rendered
    assert "colors: white" in rendered
    assert "each of the 2 images" in rendered


def test_invalid_template_raises_and_is_not_silently_ignored(tmp_path, monkeypatch):
    domain_dir = tmp_path / "v1" / "story"
    domain_dir.mkdir(parents=True)
    (domain_dir / "bad_template.yaml").write_text("bad_prompt: '{% if foo %} missing endif'\n")

    monkeypatch.setattr(loader, "_PROMPTS_DIR", tmp_path)
    loader.clear_cache()
    try:
        with pytest.raises(ValueError):
            loader._load_versioned_prompts()
    finally:
        monkeypatch.undo()
        loader.clear_cache()
