"""Property-based tests for placement resolution and fallback.

Candidates are generated the way a misbehaving model would produce them:
missing fields, wrong types, out-of-range indices and duplicates.
"""

from collections import Counter

import pytest
from hypothesis import assume, given, settings, strategies as st

from app.placement.fallback import create_fallback_placements, fill_missing_placements, is_fallback
from app.placement.models import PlacementType
from app.placement.resolver import resolve_conflicts, resolve_placements
from app.placement.scene_model import build_scene_model

scene_shapes = st.lists(st.integers(min_value=1, max_value=4), min_size=1, max_size=5)

loose_number = st.one_of(
    st.none(),
    st.booleans(),
    st.integers(min_value=-3, max_value=8),
    st.floats(min_value=-2, max_value=8),
    st.just(float("nan")),
    st.text(max_size=3),
)

candidate = st.fixed_dictionaries(
    {
        "imageIndex": st.one_of(st.integers(min_value=-1, max_value=7), st.none(), st.text(max_size=2)),
    },
    optional={
        "type": st.sampled_from(["phrase", "statement", "Statement", "", None]),
        "phraseIndex": loose_number,
        "statementIndices": st.one_of(st.none(), st.lists(loose_number, max_size=4)),
        "confidence": st.one_of(loose_number, st.floats(min_value=0, max_value=1)),
        "reason": st.one_of(st.none(), st.text(max_size=10)),
    },
)


def _scenes(shape):
    return build_scene_model([[f"line {s}-{i}" for i in range(n)] for s, n in enumerate(shape)])


def _phrase_conflicts(placements):
    counts = Counter(p.phrase_index for p in placements if p.type is PlacementType.PHRASE)
    return {scene for scene, count in counts.items() if count > 1}


@pytest.mark.property
class TestResolverProperties:
    @given(shape=scene_shapes, image_count=st.integers(min_value=1, max_value=6), raw=st.lists(candidate, max_size=10))
    @settings(max_examples=200, deadline=None)
    def test_output_is_in_range_and_unique_per_image(self, shape, image_count, raw):
        scenes = _scenes(shape)
        result = resolve_placements(raw, scenes, image_count)

        image_indices = [p.image_index for p in result]
        assert len(image_indices) == len(set(image_indices))
        for p in result:
            assert 0 <= p.image_index < image_count
            assert 0 <= p.phrase_index < len(scenes)
            assert 0.0 <= p.confidence <= 1.0
            assert p.reason
            if p.type is PlacementType.STATEMENT:
                indices = list(p.statement_indices)
                assert indices and indices == sorted(set(indices))
                assert all(0 <= i <= scenes[p.phrase_index].max_statement_index for i in indices)
            else:
                assert p.statement_indices is None

    @given(shape=scene_shapes, image_count=st.integers(min_value=1, max_value=6), raw=st.lists(candidate, max_size=10))
    @settings(max_examples=200, deadline=None)
    def test_every_line_has_at_most_one_owner(self, shape, image_count, raw):
        result = resolve_placements(raw, _scenes(shape), image_count)
        owned = [key for p in result for key in p.claimed_lines()]
        assert len(owned) == len(set(owned))

    @given(shape=scene_shapes, image_count=st.integers(min_value=1, max_value=6), raw=st.lists(candidate, max_size=10))
    @settings(max_examples=200, deadline=None)
    def test_scene_conflicts_only_come_from_line_loss_conversions(self, shape, image_count, raw):
        result = resolve_placements(raw, _scenes(shape), image_count)
        for scene in _phrase_conflicts(result):
            converted = [
                p for p in result
                if p.phrase_index == scene and "(converted to scene: statement conflict)" in p.reason
            ]
            assert converted

    @given(shape=scene_shapes, image_count=st.integers(min_value=1, max_value=6), raw=st.lists(candidate, max_size=10))
    @settings(max_examples=200, deadline=None)
    def test_resolution_is_idempotent(self, shape, image_count, raw):
        scenes = _scenes(shape)
        once = resolve_placements(raw, scenes, image_count)
        assume(not _phrase_conflicts(once))
        assert resolve_conflicts(once, len(scenes)) == once

    @given(shape=scene_shapes, image_count=st.integers(min_value=1, max_value=6), raw=st.lists(candidate, max_size=10))
    @settings(max_examples=100, deadline=None)
    def test_resolution_is_deterministic(self, shape, image_count, raw):
        scenes = _scenes(shape)
        assert resolve_placements(raw, scenes, image_count) == resolve_placements(raw, scenes, image_count)


@pytest.mark.property
class TestFallbackProperties:
    @given(shape=st.lists(st.integers(min_value=1, max_value=3), max_size=6), image_count=st.integers(0, 20))
    @settings(max_examples=100, deadline=None)
    def test_full_fallback_places_every_image(self, shape, image_count):
        scenes = _scenes(shape)
        result = create_fallback_placements(image_count, scenes)
        assert [p.image_index for p in result] == list(range(image_count))
        for p in result:
            assert is_fallback(p)
            assert p.confidence == 0.3
            assert 0 <= p.phrase_index < max(1, len(scenes))

    @given(
        shape=scene_shapes,
        image_count=st.integers(min_value=1, max_value=8),
        raw=st.lists(candidate, max_size=10),
    )
    @settings(max_examples=150, deadline=None)
    def test_resolve_then_fill_covers_every_image_exactly_once(self, shape, image_count, raw):
        scenes = _scenes(shape)
        resolved = resolve_placements(raw, scenes, image_count)
        final = fill_missing_placements(resolved, image_count, scenes)
        assert [p.image_index for p in final] == list(range(image_count))
        for p in final:
            assert 0 <= p.phrase_index < len(scenes)
