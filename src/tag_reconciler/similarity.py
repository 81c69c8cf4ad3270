from __future__ import annotations

import re

from rapidfuzz.distance import Levenshtein

CONTAINMENT_SCORE = 0.8

_REPEATED_SPACES = re.compile(r" {2,}")


def normalize_for_match(text: str) -> str:
    """
    Reduce a tag value to its comparison form.

    Lowercases, spells out '&' as 'and', drops apostrophes, turns hyphens
    into spaces and collapses runs of spaces. Casing is plain str.lower(),
    with no locale-specific folding.
    """
    s = text.lower()
    s = s.replace("&", "and")
    s = s.replace("'", "")
    s = s.replace("-", " ")
    s = _REPEATED_SPACES.sub(" ", s)
    return s.strip()


def similarity(a: str | None, b: str | None) -> float:
    """
    Similarity of two tag values in [0, 1].

    Empty input on either side scores 0.0. Identical normalized forms score
    1.0, containment of one in the other scores 0.8, and anything else falls
    back to normalized Levenshtein distance.
    """
    if not a or not b:
        return 0.0

    left = normalize_for_match(a)
    right = normalize_for_match(b)

    if left == right:
        return 1.0

    if left in right or right in left:
        return CONTAINMENT_SCORE

    longest = max(len(left), len(right))
    if longest == 0:
        return 1.0

    distance = Levenshtein.distance(left, right)
    return max(0.0, 1.0 - distance / longest)


## Tests


def test_normalize_for_match():
    assert normalize_for_match("  Guns N' Roses ") == "guns n roses"
    assert normalize_for_match("Simon & Garfunkel") == "simon and garfunkel"
    assert normalize_for_match("Jay-Z") == "jay z"
    assert normalize_for_match("A -  B") == "a b"


def test_similarity_empty():
    assert similarity("", "Nirvana") == 0.0
    assert similarity("Nirvana", "") == 0.0
    assert similarity(None, "Nirvana") == 0.0


def test_similarity_exact_after_normalization():
    assert similarity("Guns N' Roses", "guns n roses") == 1.0
    assert similarity("AC-DC", "ac dc") == 1.0


def test_similarity_containment():
    assert similarity("Nevermind", "Nevermind (Remastered)") == CONTAINMENT_SCORE
    assert similarity("Nevermind (Remastered)", "Nevermind") == CONTAINMENT_SCORE


def test_similarity_levenshtein():
    # "kitten" -> "sitting" is three edits over seven characters
    assert abs(similarity("kitten", "sitting") - (1 - 3 / 7)) < 1e-9


def test_similarity_whitespace_only_input():
    # normalizes to two empty strings, which compare equal
    assert similarity("  ", " ") == 1.0
