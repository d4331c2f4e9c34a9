"""
Relevance scoring for chat search.

The same formula is installed in the database as
``calculate_search_relevance`` by the search-index migration; change both
together.
"""

from typing import Iterable, Optional

TITLE_CONTAINS_SCORE = 3
TITLE_PREFIX_SCORE = 2
BASELINE_SCORE = 1
MESSAGE_MATCH_SCORE = 2


def title_score(title: Optional[str], query: str) -> int:
    """
    Score the title component: 3 for a substring match, otherwise 1.

    The prefix branch can never win because every prefix match is also a
    substring match. It is kept so scores stay identical to the database
    function.
    """
    normalized_title = (title or "").lower()
    if query in normalized_title:
        return TITLE_CONTAINS_SCORE
    elif normalized_title.startswith(query):
        return TITLE_PREFIX_SCORE
    return BASELINE_SCORE


def calculate_relevance(
    title: Optional[str], message_texts: Iterable[Optional[str]], query: str
) -> int:
    """
    Score a thread for ``query`` (already trimmed and lower-cased).

    Returns a value in 1..5: the title component plus 2 when any message
    text fragment contains the query.
    """
    score = title_score(title, query)
    if any(text and query in text.lower() for text in message_texts):
        score += MESSAGE_MATCH_SCORE
    return score


def matches(
    title: Optional[str], message_texts: Iterable[Optional[str]], query: str
) -> bool:
    if query in (title or "").lower():
        return True
    return any(text and query in text.lower() for text in message_texts)
