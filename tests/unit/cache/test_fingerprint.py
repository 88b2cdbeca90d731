# tests/unit/cache/test_fingerprint.py — v2
"""Tests for cache/fingerprint.py — SimHash determinism and a labelled corpus."""

from __future__ import annotations

import itertools

import pytest

from nutriresolve.cache.fingerprint import (
    DEFAULT_THRESHOLD,
    DEFAULT_WIDTH,
    SimilarityHasher,
    content_tokens,
    normalize_text,
)
from nutriresolve.core.models import SimilarityFingerprint

SALMON = (
    "Lemon Herb Grilled Salmon. Ingredients: salmon fillet, lemon, fresh dill, "
    "olive oil, garlic, sea salt, black pepper. Pat the salmon dry and season "
    "with salt and pepper. Whisk olive oil, lemon juice, minced garlic and "
    "chopped dill. Marinate the salmon for twenty minutes. Grill skin side down "
    "over medium heat for six minutes. Flip carefully and finish for three "
    "minutes. Rest briefly before serving with lemon wedges."
)

CURRY = (
    "Coconut Chickpea Curry. Ingredients: chickpeas, coconut milk, red curry "
    "paste, baby spinach, onion, ginger, basmati rice, lime. Rinse the basmati "
    "rice and cook it in salted water. Soften the onion and grated ginger in a "
    "little oil. Fry the curry paste until fragrant. Add the chickpeas and "
    "coconut milk and simmer for fifteen minutes. Stir the spinach through "
    "until wilted. Squeeze over lime and serve over the rice."
)

TERIYAKI = (
    "Teriyaki Salmon Rice Bowl. salmon fillet, soy sauce, mirin, honey, ginger, "
    "jasmine rice, cucumber, sesame seeds. Simmer soy sauce, mirin, honey and "
    "ginger into a glaze. Sear salmon skin side down for four minutes, flip and "
    "brush with glaze. Serve over jasmine rice with sliced cucumber and sesame seeds."
)

# Pairs a reader would call "the same recipe": the kind of small edit a
# model makes when asked for "something different" and barely complies.
SIMILAR_PAIRS = [
    pytest.param(
        "Simple Veggie Stir-Fry: mixed vegetables, olive oil, garlic, soy sauce.",
        "simple veggie stir fry mixed vegetables olive oil garlic soy sauce",
        id="punctuation-and-case",
    ),
    pytest.param(
        "Heat oil. Add garlic. Add vegetables. Stir-fry 5 minutes.",
        "Add garlic. Heat oil. Add vegetables. Stir-fry 5 minutes.",
        id="step-order",
    ),
    pytest.param(SALMON, SALMON.replace("fresh dill", "fresh parsley"), id="ingredient-swap"),
    pytest.param(SALMON, SALMON.replace("six minutes", "seven minutes"), id="number-changed"),
    pytest.param(SALMON, SALMON + " Serve warm.", id="words-added"),
    pytest.param(
        SALMON,
        SALMON.replace(
            "Grill skin side down over medium heat",
            "Place skin side down on the grill over medium heat",
        ),
        id="step-reworded",
    ),
    pytest.param(CURRY, CURRY.replace("fifteen minutes", "twenty minutes"), id="curry-timing"),
    pytest.param(CURRY, CURRY + " Garnish with coriander.", id="curry-garnish"),
]

DIFFERENT_PAIRS = [
    pytest.param(
        "Simple Veggie Stir-Fry mixed vegetables olive oil garlic soy sauce",
        "Basic Protein Bowl quinoa chicken breast broccoli olive oil",
        id="shared-oil",
    ),
    pytest.param(
        "Chocolate lava cake with raspberry coulis and vanilla cream",
        "Spicy beef pho with rice noodles star anise and fresh basil",
        id="dessert-vs-soup",
    ),
    pytest.param(
        "Greek salad cucumber tomato feta kalamata olives oregano",
        "Overnight oats rolled oats almond milk chia seeds blueberries honey",
        id="salad-vs-oats",
    ),
    pytest.param(SALMON, CURRY, id="salmon-vs-curry"),
    pytest.param(SALMON, TERIYAKI, id="two-salmon-dishes"),
]


def _distance(hasher: SimilarityHasher, a: str, b: str) -> int:
    return hasher.distance(hasher.fingerprint(a), hasher.fingerprint(b))


class TestNormalizeText:
    def test_lowercases_and_strips_punctuation(self):
        assert normalize_text("Stir-Fry, Now!") == "stir fry now"

    def test_collapses_whitespace(self):
        assert normalize_text("  a \n\t b  ") == "a b"


class TestContentTokens:
    def test_drops_function_words(self):
        assert content_tokens("Grill the salmon with a lemon") == ["grill", "salmon", "lemon"]

    def test_keeps_everything_when_only_function_words(self):
        assert content_tokens("And then the") == ["and", "then", "the"]


class TestFingerprint:
    def test_defaults(self):
        hasher = SimilarityHasher()
        assert (hasher.width, hasher.threshold) == (DEFAULT_WIDTH, DEFAULT_THRESHOLD)
        assert hasher.fingerprint("banana bread").width == DEFAULT_WIDTH

    def test_deterministic(self, hasher):
        text = "Basic Protein Bowl quinoa chicken broccoli"
        assert hasher.fingerprint(text) == hasher.fingerprint(text)
        assert SimilarityHasher().fingerprint(text) == hasher.fingerprint(text)

    def test_width_and_hex(self):
        fp = SimilarityHasher(width=64, threshold=3).fingerprint("banana bread")
        assert fp.width == 64
        assert fp.value < 2**64
        assert len(fp.hex()) == 16

    def test_empty_is_zero(self, hasher):
        assert hasher.fingerprint("").value == 0
        assert hasher.fingerprint("?!").value == 0

    def test_function_words_do_not_move_bits(self, hasher):
        assert _distance(hasher, "Grill the salmon with lemon", "grill salmon, lemon") == 0

    def test_small_edit_is_not_an_avalanche(self, hasher):
        # A digest would flip about half the bits for a one-word change
        assert _distance(hasher, SALMON, SALMON.replace("dill", "parsley")) < hasher.width // 4

    @pytest.mark.parametrize(("a", "b"), SIMILAR_PAIRS)
    def test_similar_pairs_within_threshold(self, hasher, a, b):
        assert hasher.is_near_duplicate(hasher.fingerprint(a), hasher.fingerprint(b))

    @pytest.mark.parametrize(("a", "b"), DIFFERENT_PAIRS)
    def test_different_pairs_beyond_threshold(self, hasher, a, b):
        assert _distance(hasher, a, b) > hasher.threshold

    def test_corpus_separates(self, hasher):
        similar = [_distance(hasher, *p.values) for p in SIMILAR_PAIRS]
        different = [_distance(hasher, *p.values) for p in DIFFERENT_PAIRS]
        assert max(similar) < min(different)

    @pytest.mark.parametrize(("width", "threshold"), [(12, 3), (0, 0), (520, 3), (64, 64), (64, -1)])
    def test_invalid_configuration(self, width, threshold):
        with pytest.raises(ValueError):
            SimilarityHasher(width=width, threshold=threshold)


class TestDistance:
    def test_known_values(self):
        a = SimilarityFingerprint(value=0b1011, width=8)
        b = SimilarityFingerprint(value=0b0001, width=8)
        assert SimilarityHasher.distance(a, b) == 2
        assert SimilarityHasher.distance(a, a) == 0

    def test_metric_properties(self, hasher):
        texts = [t for pair in SIMILAR_PAIRS + DIFFERENT_PAIRS for t in pair.values]
        fps = [hasher.fingerprint(t) for t in texts]
        for a, b in itertools.product(fps, repeat=2):
            assert hasher.distance(a, b) == hasher.distance(b, a)
        for a, b, c in itertools.product(fps[:6], repeat=3):
            assert hasher.distance(a, c) <= hasher.distance(a, b) + hasher.distance(b, c)

    def test_closest(self, hasher):
        target = hasher.fingerprint("quinoa chicken broccoli")
        window = [hasher.fingerprint(p.values[0]) for p in DIFFERENT_PAIRS]
        assert hasher.closest(target, []) is None
        assert hasher.closest(target, window + [target]) == 0
        assert hasher.closest(target, window) == min(hasher.distance(target, w) for w in window)

    def test_threshold_boundary(self):
        hasher = SimilarityHasher(width=8, threshold=3)
        base = SimilarityFingerprint(value=0, width=8)
        assert hasher.is_near_duplicate(base, SimilarityFingerprint(value=0b111, width=8))
        assert not hasher.is_near_duplicate(base, SimilarityFingerprint(value=0b1111, width=8))
