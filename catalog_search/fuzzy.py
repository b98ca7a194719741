"""Typo-tolerant matching of a search query against a product or brand name.

:func:`score` returns a relevance value in ``[0, 1]`` built from layered
checks, cheapest and most confident first:

    1) substring containment of the query in the text -> ``1.0``;
    2) a whitespace token of the text starting with the query -> ``0.95``;
    3) a token within one or two edits of the query (Levenshtein) ->
       ``similarity * 0.8``;
    4) for multi-word queries, the whole query against the head of the text
       -> ``similarity * 0.7`` when the similarity exceeds ``0.6``.

Typo leniency grows with the query: queries shorter than four characters
tolerate a single edit, longer ones two, and one-character queries never take
the edit-distance branch at all.

Comparison is plain code-point equality after lowercasing. Accented letters
stay distinct from their unaccented forms.
"""
from __future__ import annotations

import logging

logger = logging.getLogger(__name__)

EXACT_SCORE = 1.0
PREFIX_SCORE = 0.95
TYPO_FACTOR = 0.8
PHRASE_FACTOR = 0.7
PHRASE_MIN_SIMILARITY = 0.6
# Extra characters of the text compared against a multi-word query.
PHRASE_WINDOW = 5
# Queries at least this long tolerate two edits instead of one.
LONG_QUERY_LENGTH = 4
MIN_FUZZY_QUERY_LENGTH = 2


def levenshtein_distance(a: str, b: str) -> int:
    """Classic dynamic-programming edit distance between ``a`` and ``b``."""
    len_a = len(a)
    len_b = len(b)
    dist = [[0] * (len_a + 1) for _ in range(len_b + 1)]
    for i in range(len_b + 1):
        dist[i][0] = i
    for j in range(len_a + 1):
        dist[0][j] = j
    for i in range(1, len_b + 1):
        for j in range(1, len_a + 1):
            cost = 0 if b[i - 1] == a[j - 1] else 1
            dist[i][j] = min(
                dist[i - 1][j - 1] + cost,
                dist[i][j - 1] + 1,
                dist[i - 1][j] + 1,
            )
    return dist[len_b][len_a]


def _max_typos(query: str) -> int:
    return 2 if len(query) >= LONG_QUERY_LENGTH else 1


def _token_score(query: str, token: str) -> float:
    if token.startswith(query):
        return PREFIX_SCORE
    if len(query) < MIN_FUZZY_QUERY_LENGTH:
        return 0.0
    distance = levenshtein_distance(query, token[: max(len(query) + 2, len(token))])
    similarity = 1 - distance / max(len(query), len(token))
    if distance <= _max_typos(query):
        return similarity * TYPO_FACTOR
    return 0.0


def _phrase_score(query: str, text: str) -> float:
    distance = levenshtein_distance(query, text[: len(query) + PHRASE_WINDOW])
    similarity = 1 - distance / max(len(query), len(text))
    if similarity > PHRASE_MIN_SIMILARITY:
        return similarity * PHRASE_FACTOR
    return 0.0


def score(query: str, text: str | None) -> float:
    """Return how well ``query`` matches ``text`` as a float in ``[0, 1]``.

    Never raises; a missing ``text`` behaves like an empty string and scores
    ``0.0`` against any non-empty query.
    """

    q = (query or "").lower().strip()
    t = (text or "").lower()

    if q in t:
        return EXACT_SCORE

    best_score = 0.0
    for token in t.split():
        best_score = max(best_score, _token_score(q, token))

    if " " in q:
        best_score = max(best_score, _phrase_score(q, t))

    logger.debug("score q=%r text=%r -> %.4f", q, t, best_score)
    return best_score
