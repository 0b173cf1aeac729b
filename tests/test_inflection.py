"""Tests for suffix inflection and component naming."""

import pytest

from sanity2strapi.services.inflection import (
    component_collection_name,
    component_key,
    pluralize,
    singularize,
)


@pytest.mark.parametrize(
    "word,plural",
    [
        ("post", "posts"),
        ("category", "categories"),
        ("box", "boxes"),
        ("brush", "brushes"),
        ("match", "matches"),
        ("status", "statuses"),
    ],
)
def test_pluralize(word, plural):
    assert pluralize(word) == plural


@pytest.mark.parametrize(
    "word,singular",
    [
        ("posts", "post"),
        ("categories", "category"),
        ("boxes", "box"),
        ("class", "class"),
        ("person", "person"),
    ],
)
def test_singularize(word, singular):
    assert singularize(word) == singular


def test_lossy_round_trip_for_words_ending_in_e():
    assert singularize(pluralize("page")) == "pag"


def test_component_key_is_stable_for_field_name():
    assert component_key("tags") == "tag.tagses"
    assert component_key("seo") == "seo.seos"
    assert component_key("tags") == component_key("tags")


def test_component_collection_name():
    assert component_collection_name("seo.seos") == "components_seo_seoses"


@pytest.mark.parametrize("word", ["post", "category", "box", "tag", "author", "brush", "match", "buzz"])
def test_regular_nouns_round_trip(word):
    assert singularize(pluralize(word)) == word
    assert pluralize(singularize(pluralize(word))) == pluralize(word)
