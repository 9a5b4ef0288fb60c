"""
Unit tests for the news scorer.
"""

import pytest

from emers.events.news_scorer import NewsScorer, count_terms, tokenize
from emers.interfaces.data_interfaces import RawNewsItem
from emers.interfaces.event_interfaces import EventRecord, EventType


class TestNewsScorer:
    """Test cases for NewsScorer."""

    @pytest.fixture
    def scorer(self):
        return NewsScorer()

    def test_positive_headline(self, scorer):
        title = "Company beats earnings, stock surges"

        assert scorer.score_sentiment(title, "") == pytest.approx(1.0)
        assert scorer.impact_score(title, "") == pytest.approx(8.0)

    def test_negative_headline(self, scorer):
        assert scorer.score_sentiment("Shares plunge after guidance cut") == pytest.approx(-1.0)

    def test_mixed_sentiment_weights_title_twice(self, scorer):
        # title: one positive (x2); description: one negative (x1)
        score = scorer.score_sentiment("Revenue growth", "margins decline")
        assert score == pytest.approx((2 - 1) / (2 + 1))

    def test_neutral_text_scores_zero(self, scorer):
        assert scorer.score_sentiment("Company holds annual meeting", "") == 0.0
        assert scorer.impact_score("Company holds annual meeting", "") == pytest.approx(5.0)

    def test_terms_match_whole_words_only(self):
        assert count_terms("Beating estimates", ("beat",)) == 0
        assert count_terms("BEAT, beat; beat!", ("beat",)) == 3

    def test_impact_keyword_bonus_is_capped(self, scorer):
        title = "CEO fraud lawsuit follows merger and bankruptcy"
        impact = scorer.impact_score(title, "", sentiment=0.0)
        assert impact == pytest.approx(8.0)

    def test_sentiment_and_impact_ranges(self, scorer):
        for title in ("Record profit soars", "Crash and losses", "Nothing to see", ""):
            assert -1.0 <= scorer.score_sentiment(title) <= 1.0
            assert 0.0 <= scorer.impact_score(title) <= 10.0

    @pytest.mark.parametrize("title,expected", [
        ("Acme announces merger with Globex", EventType.MERGER_ACQUISITION),
        ("Quarterly earnings released", EventType.EARNINGS),
        ("Regulators open fraud investigation", EventType.SCANDAL),
        ("New CEO appointed", EventType.LEADERSHIP),
        ("Board approves stock split", EventType.SPLIT_DIVIDEND),
        ("Startup prices its IPO", EventType.IPO),
        ("Company announces layoffs", EventType.LAYOFFS),
        ("Acme unveils new product", EventType.PRODUCT_LAUNCH),
        ("Firms form strategic partnership", EventType.PARTNERSHIP),
        ("New regulatory compliance rules", EventType.REGULATORY),
        ("Weather was pleasant", EventType.UNKNOWN),
    ])
    def test_classification(self, scorer, title, expected):
        assert scorer.classify_event(title) == expected

    def test_classification_tie_goes_to_earlier_type(self, scorer):
        # one merger keyword and one earnings keyword
        assert scorer.classify_event("Merger talk lifts earnings") == EventType.MERGER_ACQUISITION

    def test_event_similarity(self):
        a = EventRecord("2024-01-02", "Acme earnings beat estimates", "Strong quarter", sentiment=0.8,
                        impact_score=80)
        b = EventRecord("2024-04-02", "Acme earnings beat expectations", "Strong quarter", sentiment=0.6,
                        impact_score=70)
        c = EventRecord("2024-05-02", "Factory fire halts output", "", sentiment=-0.9, impact_score=10)

        identical = NewsScorer.event_similarity(a, a)
        assert identical == pytest.approx(1.0)
        assert NewsScorer.event_similarity(a, b) > NewsScorer.event_similarity(a, c)
        assert NewsScorer.event_similarity(a, b) == pytest.approx(NewsScorer.event_similarity(b, a))
        assert 0.0 <= NewsScorer.event_similarity(a, c) <= 1.0

    def test_tokenize_drops_short_words(self):
        assert tokenize("The CEO quits amid probe") == {"quits", "amid", "probe"}

    def test_score_news_item(self, scorer):
        item = RawNewsItem(symbol="ACME", date="2024-03-01", title="Company beats earnings, stock surges",
                           description="", url="https://example.com/a")
        event = scorer.score_news_item(item)

        assert event.impact_score == 80
        assert event.sentiment == pytest.approx(1.0)
        assert event.event_type == EventType.EARNINGS
        assert event.source_url == "https://example.com/a"
