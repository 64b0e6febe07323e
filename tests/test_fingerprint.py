# File: tests/test_fingerprint.py
"""Fingerprint engine: hashing, classification and significance direction."""
from datetime import datetime, timezone

import pytest

from adaptive_crawler.change.fingerprint import FingerprintEngine, content_hash, content_sketch
from adaptive_crawler.crawler.models import ChangeType
from adaptive_crawler.errors import EmptyContentError

URL = "http://example.com/page"

ORIGINAL = "\n\n".join(f"Paragraph number {i} with some text." for i in range(10))


def fixed_clock():
    return datetime(2024, 1, 1, tzinfo=timezone.utc)


@pytest.fixture()
def engine():
    return FingerprintEngine(min_significance=10, clock=fixed_clock)


def test_content_hash_is_sha256_hex():
    assert content_hash("abc") == "ba7816bf8f01cfea414140de5dae2223b00361a396177a9cb410ff61f20015ad"
    assert content_hash("abc") == content_hash(b"abc")


def test_first_sighting_is_added(engine):
    result = engine.classify(URL, ORIGINAL, None)
    assert result.change_type is ChangeType.ADDED
    assert result.significance == 100
    assert result.is_significant
    assert result.version.url == URL
    assert result.version.captured_at == fixed_clock()
    assert result.version.size_bytes == len(ORIGINAL.encode("utf-8"))


def test_identical_content_is_unchanged(engine):
    first = engine.classify(URL, ORIGINAL, None).version
    again = engine.classify(URL, ORIGINAL, first.content_hash, first.sketch)
    assert again.change_type is ChangeType.UNCHANGED
    assert again.significance == 0
    assert not again.is_significant
    assert again.version.content_hash == first.content_hash


@pytest.mark.parametrize("body", ["", "   \n\t  ", b""])
def test_empty_content_raises(engine, body):
    with pytest.raises(EmptyContentError):
        engine.classify(URL, body, None)


def test_bigger_edit_scores_higher(engine):
    first = engine.classify(URL, ORIGINAL, None).version
    paragraphs = ORIGINAL.split("\n\n")

    small = "\n\n".join(paragraphs[:-1] + ["A replaced final paragraph."])
    large = "\n\n".join([f"Rewritten paragraph {i}." for i in range(7)] + paragraphs[7:])

    small_result = engine.classify(URL, small, first.content_hash, first.sketch)
    large_result = engine.classify(URL, large, first.content_hash, first.sketch)

    assert small_result.change_type is ChangeType.MODIFIED
    assert large_result.change_type is ChangeType.MODIFIED
    assert 0 < small_result.significance < large_result.significance <= 100
    assert small_result.significance == 10
    assert large_result.significance == 70


def test_minor_change_below_threshold_not_significant():
    engine = FingerprintEngine(min_significance=20)
    first = engine.classify(URL, ORIGINAL, None).version
    edited = ORIGINAL.replace("Paragraph number 3", "Paragraph number three")
    result = engine.classify(URL, edited, first.content_hash, first.sketch)
    assert result.change_type is ChangeType.MODIFIED
    assert result.significance == 10
    assert not result.is_significant


def test_whitespace_only_edit_has_floor_significance(engine):
    first = engine.classify(URL, ORIGINAL, None).version
    result = engine.classify(URL, ORIGINAL.replace("some text", "some   text"), first.content_hash, first.sketch)
    assert result.change_type is ChangeType.MODIFIED
    assert result.significance == 1


def test_modified_without_prior_sketch_is_fully_significant(engine):
    result = engine.classify(URL, ORIGINAL, content_hash("something else"))
    assert result.change_type is ChangeType.MODIFIED
    assert result.significance == 100


def test_sketch_ignores_case_and_spacing():
    assert content_sketch("Hello   World\n\nSecond") == content_sketch("hello world\n\n  second ")
