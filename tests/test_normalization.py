"""
Tests for entity normalization, predicate limiting and node IDs.
"""

from cognify_server.utils.normalization import (
    generate_node_id,
    limit_predicate_length,
    node_id_for,
    normalize_entity,
)


class TestNormalizeEntity:

    def test_lowercases_trims_and_drops_stopwords(self):
        assert normalize_entity("  The Cell  Membrane ") == "cell membrane"
        assert normalize_entity("Theory of Relativity") == "theory relativity"

    def test_only_stopwords_becomes_empty(self):
        assert normalize_entity("the") == ""
        assert normalize_entity("  of the  ") == ""

    def test_stopwords_inside_words_are_kept(self):
        assert normalize_entity("Theater") == "theater"


class TestLimitPredicateLength:

    def test_short_predicate_unchanged(self):
        assert limit_predicate_length("  is part of ") == "is part of"

    def test_long_predicate_truncated(self):
        result = limit_predicate_length("is the main source of energy for")
        assert len(result.split()) <= 3
        assert result == "is the main"

    def test_trailing_stopwords_removed_after_truncation(self):
        assert limit_predicate_length("leads to the formation of") == "leads"
        assert limit_predicate_length("is made of cellulose") == "is made"

    def test_at_least_one_word_kept(self):
        assert limit_predicate_length("of the a an", max_words=3) == "of"

    def test_custom_limit(self):
        assert limit_predicate_length("one two three four", max_words=2) == "one two"


class TestNodeIds:

    def test_id_is_deterministic(self):
        assert generate_node_id("cell membrane") == generate_node_id("cell membrane")

    def test_id_ignores_case_and_outer_whitespace(self):
        assert generate_node_id("  Cell Membrane ") == generate_node_id("cell membrane")

    def test_id_is_sixteen_hex_chars(self):
        node_id = generate_node_id("chlorophyll")
        assert len(node_id) == 16
        int(node_id, 16)

    def test_different_labels_get_different_ids(self):
        assert generate_node_id("chlorophyll") != generate_node_id("chloroplast")

    def test_node_id_for_normalizes_first(self):
        assert node_id_for("The Chloroplast") == node_id_for("chloroplast")
