"""
News event scoring for the market event analysis system.
Lexicon sentiment, keyword impact, event-type classification and event similarity.
"""

import logging
import re
from functools import lru_cache
from typing import Dict, Iterable, List, Optional, Set

from emers.interfaces.data_interfaces import RawNewsItem
from emers.interfaces.event_interfaces import EventRecord, EventType, NEWS_EVENT_TYPES

logger = logging.getLogger(__name__)

POSITIVE_TERMS = (
    "growth", "grow", "grows", "increase", "increases", "increased", "positive",
    "rise", "rises", "rising", "record", "profit", "profits", "profitable",
    "exceed", "exceeds", "exceeded", "beat", "beats", "success", "successful",
    "gain", "gains", "surge", "surges", "surged", "soar", "soars", "soared",
    "rally", "rallies", "upgrade", "upgraded", "strong", "stronger",
    "outperform", "outperforms", "jump", "jumps", "jumped",
)

NEGATIVE_TERMS = (
    "decline", "declines", "declined", "decrease", "decreases", "decreased",
    "negative", "fall", "falls", "fell", "loss", "losses", "miss", "misses",
    "missed", "below", "fail", "fails", "failed", "drop", "drops", "dropped",
    "cut", "cuts", "plunge", "plunges", "plunged", "downgrade", "downgraded",
    "weak", "weaker", "slump", "slumps", "crash", "crashes",
)

HIGH_IMPACT_KEYWORDS = (
    "earnings", "merger", "acquisition", "bankruptcy", "lawsuit", "fda",
    "recall", "guidance", "dividend", "ceo", "layoff", "layoffs",
    "investigation", "fraud", "scandal", "settlement", "buyback", "ipo",
)

CLASSIFICATION_KEYWORDS: Dict[EventType, tuple] = {
    EventType.MERGER_ACQUISITION: ("merger", "mergers", "acquisition", "acquisitions",
                                   "takeover", "acquire", "acquires", "acquired"),
    EventType.EARNINGS: ("earnings", "profit", "revenue", "quarterly", "results"),
    EventType.SCANDAL: ("scandal", "fraud", "lawsuit", "investigation"),
    EventType.LEADERSHIP: ("ceo", "executive", "chairman", "president", "appointed",
                           "resigned", "resignation"),
    EventType.SPLIT_DIVIDEND: ("split", "dividend", "buyback"),
    EventType.IPO: ("ipo", "initial public offering", "debut", "public trading"),
    EventType.LAYOFFS: ("layoff", "layoffs", "job cut", "job cuts", "downsizing", "reduction"),
    EventType.PRODUCT_LAUNCH: ("launch", "launches", "new product", "release", "unveil",
                               "unveils", "breakthrough"),
    EventType.PARTNERSHIP: ("partnership", "alliance", "joint venture", "collaborate"),
    EventType.REGULATORY: ("regulation", "compliance", "regulatory", "law", "legal", "policy"),
}

TITLE_WEIGHT = 2.0
DESCRIPTION_WEIGHT = 1.0
MAX_KEYWORD_BONUS = 3.0


@lru_cache(maxsize=None)
def _word_pattern(term: str) -> "re.Pattern":
    return re.compile(r"(?<![a-z])" + re.escape(term) + r"(?![a-z])")


def count_terms(text: str, terms: Iterable[str]) -> int:
    """Whole-word, case-insensitive occurrences of any of ``terms`` in ``text``."""
    if not text:
        return 0
    lowered = text.lower()
    return sum(len(_word_pattern(term).findall(lowered)) for term in terms)


def contains_term(text: str, term: str) -> bool:
    return bool(text) and _word_pattern(term).search(text.lower()) is not None


def tokenize(text: str, min_length: int = 4) -> Set[str]:
    """Lowercase alphabetic tokens of at least ``min_length`` characters."""
    return {w for w in re.findall(r"[a-z]+", (text or "").lower()) if len(w) >= min_length}


def _jaccard(a: Set[str], b: Set[str]) -> float:
    union = a | b
    if not union:
        return 0.0
    return len(a & b) / len(union)


class NewsScorer:
    """
    Deterministic scorer turning news text into events.

    Features:
    - Lexicon sentiment with title matches weighted twice the description
    - Impact score from sentiment strength and high-impact keywords
    - Keyword classification into ten corporate event types
    - Weighted event similarity for historical matching
    """

    def score_sentiment(self, title: str, description: str = "") -> float:
        """
        Sentiment in [-1, 1]; 0 when no lexicon term appears.

        Example:
            "Company beats earnings, stock surges" scores 1.0
        """
        pos = (TITLE_WEIGHT * count_terms(title, POSITIVE_TERMS)
               + DESCRIPTION_WEIGHT * count_terms(description, POSITIVE_TERMS))
        neg = (TITLE_WEIGHT * count_terms(title, NEGATIVE_TERMS)
               + DESCRIPTION_WEIGHT * count_terms(description, NEGATIVE_TERMS))
        if pos + neg == 0:
            return 0.0
        return (pos - neg) / (pos + neg)

    def impact_score(self, title: str, description: str = "",
                     sentiment: Optional[float] = None) -> float:
        """
        Impact in [0, 10]: ``5 + 2|sentiment| + min(3, keyword hits)``.

        Each distinct high-impact keyword found in the title or description counts once.
        """
        if sentiment is None:
            sentiment = self.score_sentiment(title, description)
        hits = sum(1 for kw in HIGH_IMPACT_KEYWORDS
                   if contains_term(title, kw) or contains_term(description, kw))
        score = 5.0 + 2.0 * abs(sentiment) + min(MAX_KEYWORD_BONUS, float(hits))
        return max(0.0, min(10.0, score))

    def classify_event(self, title: str, description: str = "") -> EventType:
        """Highest keyword score wins; ties go to the earlier type; UNKNOWN when nothing matches."""
        best_type, best_score = EventType.UNKNOWN, 0
        for event_type in NEWS_EVENT_TYPES:
            score = sum(1 for kw in CLASSIFICATION_KEYWORDS[event_type]
                        if contains_term(title, kw) or contains_term(description, kw))
            if score > best_score:
                best_type, best_score = event_type, score
        return best_type

    def classify_record(self, event: EventRecord) -> EventType:
        return self.classify_event(event.title, event.description)

    @staticmethod
    def event_similarity(first: EventRecord, second: EventRecord) -> float:
        """
        Similarity in [0, 1].

        Weights: sentiment 0.3, impact 0.4, title keyword overlap 0.2 and
        description keyword overlap 0.1.
        """
        sentiment_sim = 1.0 - abs(first.sentiment - second.sentiment) / 2.0
        impact_sim = 1.0 - abs(first.impact_score - second.impact_score) / 100.0
        title_sim = _jaccard(tokenize(first.title), tokenize(second.title))
        desc_sim = _jaccard(tokenize(first.description), tokenize(second.description))
        score = 0.3 * sentiment_sim + 0.4 * impact_sim + 0.2 * title_sim + 0.1 * desc_sim
        return max(0.0, min(1.0, score))

    def score_news_item(self, item: RawNewsItem) -> EventRecord:
        """Turn a raw news item into an EventRecord (impact rescaled to 0-100)."""
        sentiment = self.score_sentiment(item.title, item.description)
        impact = self.impact_score(item.title, item.description, sentiment)
        return EventRecord(
            date=item.date,
            title=item.title,
            description=item.description,
            source_url=item.url,
            sentiment=sentiment,
            impact_score=int(round(impact * 10)),
            event_type=self.classify_event(item.title, item.description),
        )

    def score_news_items(self, items: List[RawNewsItem]) -> List[EventRecord]:
        events = [self.score_news_item(item) for item in items]
        logger.debug(f"Scored {len(events)} news items")
        return events
