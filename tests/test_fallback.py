from app.placement.fallback import (
    FALLBACK_PREFIX,
    create_fallback_placements,
    fill_missing_placements,
    is_fallback,
)
from app.placement.models import ImagePlacement, PlacementType
from app.placement.scene_model import build_scene_model


def test_full_fallback_spreads_images_evenly():
    scenes = build_scene_model([["a"], ["b"]])
    result = create_fallback_placements(5, scenes)

    assert [p.image_index for p in result] == [0, 1, 2, 3, 4]
    assert [p.phrase_index for p in result] == [0, 0, 0, 1, 1]
    assert all(p.type is PlacementType.PHRASE for p in result)
    assert all(p.confidence == 0.3 for p in result)
    assert all(p.reason.startswith(FALLBACK_PREFIX) for p in result)


def test_full_fallback_without_scenes_uses_scene_zero():
    result = create_fallback_placements(5, [])
    assert [p.image_index for p in result] == [0, 1, 2, 3, 4]
    assert {p.phrase_index for p in result} == {0}


def test_full_fallback_with_fewer_images_than_scenes():
    scenes = build_scene_model([["a"], ["b"], ["c"], ["d"]])
    result = create_fallback_placements(2, scenes)
    assert [p.phrase_index for p in result] == [0, 2]


def test_fill_prefers_unused_scenes():
    scenes = build_scene_model([["a"], ["b"], ["c"]])
    existing = [ImagePlacement(1, PlacementType.PHRASE, 0, 0.9, "model")]

    result = fill_missing_placements(existing, 3, scenes)

    assert [p.image_index for p in result] == [0, 1, 2]
    assert result[1] is existing[0]
    assert result[0].phrase_index == 1
    assert result[2].phrase_index == 2
    assert result[0].confidence == 0.5
    assert is_fallback(result[0]) and is_fallback(result[2])
    assert not is_fallback(result[1])


def test_fill_counts_statement_placements_as_using_a_scene():
    scenes = build_scene_model([["a", "b"], ["c"]])
    existing = [ImagePlacement(0, PlacementType.STATEMENT, 0, 0.8, "model", (1,))]
    result = fill_missing_placements(existing, 2, scenes)
    assert result[1].phrase_index == 1


def test_fill_spreads_evenly_once_every_scene_is_used():
    scenes = build_scene_model([["a"], ["b"]])
    existing = [
        ImagePlacement(0, PlacementType.PHRASE, 0, 0.9, "model"),
        ImagePlacement(1, PlacementType.PHRASE, 1, 0.9, "model"),
    ]
    result = fill_missing_placements(existing, 4, scenes)
    # floor(2 / 4 * 2) = 1, floor(3 / 4 * 2) = 1
    assert [p.phrase_index for p in result[2:]] == [1, 1]


def test_fill_leaves_complete_sets_untouched():
    scenes = build_scene_model([["a"]])
    existing = [ImagePlacement(0, PlacementType.PHRASE, 0, 0.9, "model")]
    assert fill_missing_placements(existing, 1, scenes) == existing
