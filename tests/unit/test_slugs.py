import pytest

from siteforge.domain.slugs import FALLBACK_SLUG, slug_candidates, slugify, translation_slug


@pytest.mark.parametrize(
    "title,expected",
    [
        ("Hello, World!", "hello-world"),
        ("  Spaces   everywhere  ", "spaces-everywhere"),
        ("Already-hyphenated title", "already-hyphenated-title"),
        ("a -- b", "a-b"),
        ("Déjà vu", "dj-vu"),
        ("2024 Recap", "2024-recap"),
    ],
)
def test_slugify(title, expected):
    assert slugify(title) == expected


@pytest.mark.parametrize("title", ["", "!!!", "---", "日本語"])
def test_empty_slug_falls_back(title):
    assert slugify(title) == FALLBACK_SLUG


def test_candidates():
    assert list(slug_candidates("post", 3)) == ["post", "post-1", "post-2"]


def test_candidates_respect_limit():
    assert len(list(slug_candidates("x", 50))) == 50


def test_translation_slug():
    assert translation_slug("hello-world", "FR") == "hello-world-fr"
