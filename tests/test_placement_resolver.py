"""Tests for placement sanitizing and conflict resolution."""

import pytest

from app.placement.models import ImagePlacement, PlacementType
from app.placement.resolver import (
    DEFAULT_CONFIDENCE,
    DEFAULT_REASON,
    resolve_phrase_conflicts,
    resolve_placements,
    resolve_statement_conflicts,
    sanitize_candidates,
)
from app.placement.scene_model import build_scene_model


def _by_image(placements):
    return {p.image_index: p for p in placements}


class TestSanitizeCandidates:
    def test_drops_out_of_range_and_non_integer_image_indices(self, two_scenes):
        raw = [
            {"imageIndex": -1, "phraseIndex": 0},
            {"imageIndex": 3, "phraseIndex": 0},
            {"imageIndex": 1.5, "phraseIndex": 0},
            {"imageIndex": "0", "phraseIndex": 0},
            {"imageIndex": True, "phraseIndex": 0},
            {"phraseIndex": 0},
            "not a dict",
            None,
        ]
        assert sanitize_candidates(raw, two_scenes, image_count=3) == []

    def test_accepts_integral_float_image_index(self, two_scenes):
        result = sanitize_candidates([{"imageIndex": 2.0, "phraseIndex": 1}], two_scenes, image_count=3)
        assert [p.image_index for p in result] == [2]

    def test_first_candidate_for_an_image_wins(self, two_scenes):
        raw = [
            {"imageIndex": 0, "phraseIndex": 0, "confidence": 0.2},
            {"imageIndex": 0, "phraseIndex": 1, "confidence": 0.99},
        ]
        result = sanitize_candidates(raw, two_scenes, image_count=1)
        assert len(result) == 1
        assert result[0].phrase_index == 0
        assert result[0].confidence == 0.2

    def test_defaults_for_missing_fields(self, two_scenes):
        (placement,) = sanitize_candidates([{"imageIndex": 0}], two_scenes, image_count=1)
        assert placement.type is PlacementType.PHRASE
        assert placement.phrase_index == 0
        assert placement.confidence == DEFAULT_CONFIDENCE
        assert placement.reason == DEFAULT_REASON
        assert placement.statement_indices is None

    @pytest.mark.parametrize(
        "phrase_index, expected",
        [(-4, 0), (99, 1), ("abc", 0), (None, 0), (1.7, 1), (float("inf"), 1)],
    )
    def test_phrase_index_is_clamped(self, two_scenes, phrase_index, expected):
        (placement,) = sanitize_candidates(
            [{"imageIndex": 0, "phraseIndex": phrase_index}], two_scenes, image_count=1
        )
        assert placement.phrase_index == expected

    @pytest.mark.parametrize("confidence, expected", [(1.4, 1.0), (-0.2, 0.0), ("high", 0.7), (0.42, 0.42)])
    def test_confidence_is_clamped_or_defaulted(self, two_scenes, confidence, expected):
        (placement,) = sanitize_candidates(
            [{"imageIndex": 0, "confidence": confidence}], two_scenes, image_count=1
        )
        assert placement.confidence == expected

    def test_only_literal_statement_type_yields_statement(self, two_scenes):
        raw = [
            {"imageIndex": 0, "type": "STATEMENT", "phraseIndex": 0},
            {"imageIndex": 1, "type": "statement", "phraseIndex": 1, "statementIndices": [1]},
        ]
        result = _by_image(sanitize_candidates(raw, two_scenes, image_count=2))
        assert result[0].type is PlacementType.PHRASE
        assert result[1].type is PlacementType.STATEMENT

    def test_statement_indices_are_filtered_clamped_deduped_and_sorted(self, two_scenes):
        raw = [
            {
                "imageIndex": 0,
                "type": "statement",
                "phraseIndex": 1,
                "statementIndices": [7, -1, "x", 1, 1, 0, None, 2.0],
            }
        ]
        (placement,) = sanitize_candidates(raw, two_scenes, image_count=1)
        # scene 1 has three lines, so 7 clamps to 2
        assert placement.statement_indices == (0, 1, 2)

    @pytest.mark.parametrize("indices", [[], [-3], "0,1", None])
    def test_statement_without_usable_lines_defaults_to_line_zero(self, two_scenes, indices):
        raw = [{"imageIndex": 0, "type": "statement", "phraseIndex": 0, "statementIndices": indices}]
        (placement,) = sanitize_candidates(raw, two_scenes, image_count=1)
        assert placement.statement_indices == (0,)

    def test_blank_reason_gets_placeholder(self, two_scenes):
        (placement,) = sanitize_candidates([{"imageIndex": 0, "reason": "   "}], two_scenes, image_count=1)
        assert placement.reason == DEFAULT_REASON


class TestPhraseConflicts:
    def test_simple_conflict_reassigns_loser_to_free_scene(self, two_scenes):
        raw = [
            {"imageIndex": 0, "type": "phrase", "phraseIndex": 0, "confidence": 0.9, "reason": "opening"},
            {"imageIndex": 1, "type": "phrase", "phraseIndex": 0, "confidence": 0.6, "reason": "door"},
        ]
        result = _by_image(resolve_placements(raw, two_scenes, image_count=2))

        assert result[0].phrase_index == 0
        assert result[0].confidence == 0.9
        assert result[1].phrase_index == 1
        assert result[1].confidence == pytest.approx(0.54)
        assert result[1].reason.startswith("door")
        assert "reassigned" in result[1].reason

    def test_tie_goes_to_first_encountered(self, two_scenes):
        raw = [
            {"imageIndex": 1, "phraseIndex": 0, "confidence": 0.8},
            {"imageIndex": 0, "phraseIndex": 0, "confidence": 0.8},
        ]
        result = _by_image(resolve_placements(raw, two_scenes, image_count=2))
        assert result[1].phrase_index == 0
        assert result[0].phrase_index == 1

    def test_losers_take_lowest_free_scenes_in_order(self):
        scenes = build_scene_model([["a"], ["b"], ["c"], ["d"]])
        placements = [
            ImagePlacement(0, PlacementType.PHRASE, 2, 0.9, "r"),
            ImagePlacement(1, PlacementType.PHRASE, 2, 0.5, "r"),
            ImagePlacement(2, PlacementType.PHRASE, 2, 0.4, "r"),
            ImagePlacement(3, PlacementType.PHRASE, 1, 0.3, "r"),
        ]
        result = _by_image(resolve_phrase_conflicts(placements, len(scenes)))
        assert result[0].phrase_index == 2
        assert result[1].phrase_index == 0
        assert result[2].phrase_index == 3
        assert result[3].phrase_index == 1

    def test_loser_becomes_statement_when_no_scene_is_free(self):
        scenes = build_scene_model([["only line", "second line"]])
        placements = [
            ImagePlacement(0, PlacementType.PHRASE, 0, 0.9, "winner"),
            ImagePlacement(1, PlacementType.PHRASE, 0, 0.5, "loser"),
        ]
        result = _by_image(resolve_phrase_conflicts(placements, len(scenes)))
        assert result[1].type is PlacementType.STATEMENT
        assert result[1].statement_indices == (0,)
        assert result[1].phrase_index == 0
        assert result[1].confidence == pytest.approx(0.35)
        assert "converted to statement" in result[1].reason

    def test_statement_placements_pass_through(self, two_scenes):
        placements = [
            ImagePlacement(0, PlacementType.STATEMENT, 0, 0.9, "r", (0,)),
            ImagePlacement(1, PlacementType.PHRASE, 0, 0.4, "r"),
        ]
        assert resolve_phrase_conflicts(placements, len(two_scenes)) == placements


class TestStatementConflicts:
    def test_statement_overlap_reduces_loser(self, three_line_scene):
        raw = [
            {"imageIndex": 0, "type": "statement", "phraseIndex": 0, "statementIndices": [0, 1], "confidence": 0.8},
            {"imageIndex": 1, "type": "statement", "phraseIndex": 0, "statementIndices": [1, 2], "confidence": 0.5},
        ]
        result = _by_image(resolve_placements(raw, three_line_scene, image_count=2))
        assert result[0].statement_indices == (0, 1)
        assert result[1].statement_indices == (2,)
        assert result[1].confidence == 0.5
        assert result[1].type is PlacementType.STATEMENT

    def test_total_line_loss_converts_to_phrase(self):
        scenes = build_scene_model([["lonely line"]])
        raw = [
            {"imageIndex": 1, "type": "statement", "phraseIndex": 0, "statementIndices": [1], "confidence": 0.3},
            {"imageIndex": 0, "type": "statement", "phraseIndex": 0, "statementIndices": [1], "confidence": 0.9},
        ]
        result = _by_image(resolve_placements(raw, scenes, image_count=2))
        assert result[0].type is PlacementType.STATEMENT
        assert result[0].statement_indices == (0,)
        assert result[1].type is PlacementType.PHRASE
        assert result[1].phrase_index == 0
        assert result[1].statement_indices is None
        assert result[1].confidence == pytest.approx(0.24)
        assert "converted to scene" in result[1].reason

    def test_line_tie_goes_to_first_encountered(self, three_line_scene):
        placements = [
            ImagePlacement(0, PlacementType.STATEMENT, 0, 0.6, "r", (1,)),
            ImagePlacement(1, PlacementType.STATEMENT, 0, 0.6, "r", (1, 2)),
        ]
        result = _by_image(resolve_statement_conflicts(placements))
        assert result[0].statement_indices == (1,)
        assert result[1].statement_indices == (2,)

    def test_same_line_index_in_different_scenes_does_not_conflict(self, two_scenes):
        placements = [
            ImagePlacement(0, PlacementType.STATEMENT, 0, 0.6, "r", (0,)),
            ImagePlacement(1, PlacementType.STATEMENT, 1, 0.9, "r", (0,)),
        ]
        assert resolve_statement_conflicts(placements) == placements

    def test_conversion_can_reintroduce_scene_conflict(self):
        scenes = build_scene_model([["one", "two"]])
        raw = [
            {"imageIndex": 0, "type": "phrase", "phraseIndex": 0, "confidence": 0.9},
            {"imageIndex": 1, "type": "statement", "phraseIndex": 0, "statementIndices": [0], "confidence": 0.8},
            {"imageIndex": 2, "type": "statement", "phraseIndex": 0, "statementIndices": [0], "confidence": 0.4},
        ]
        result = resolve_placements(raw, scenes, image_count=3)
        phrase_scenes = [p.phrase_index for p in result if p.type is PlacementType.PHRASE]
        # Stage C runs once; the converted image shares scene 0 with image 0
        assert phrase_scenes == [0, 0]


def test_penalties_compound_across_demotions():
    scenes = build_scene_model([["one", "two"]])
    raw = [
        {"imageIndex": 0, "type": "phrase", "phraseIndex": 0, "confidence": 0.9},
        {"imageIndex": 1, "type": "phrase", "phraseIndex": 0, "confidence": 0.5},
        {"imageIndex": 2, "type": "statement", "phraseIndex": 0, "statementIndices": [0], "confidence": 0.8},
    ]
    result = _by_image(resolve_placements(raw, scenes, image_count=3))
    # image 1: phrase -> statement (x0.7), then loses line 0 -> phrase (x0.8)
    assert result[1].type is PlacementType.PHRASE
    assert result[1].confidence == pytest.approx(0.5 * 0.7 * 0.8)
    assert "converted to statement" in result[1].reason
    assert "converted to scene" in result[1].reason
