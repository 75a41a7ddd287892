"""Tests for decision-maker scoring and selection."""

import pytest

from lib.contact_discovery.models import CandidateContact, ContactSource
from lib.contact_discovery.scoring import (
    ScoringPolicy,
    analyze_contact_quality,
    score_and_rank_contacts,
    score_contact,
    select_best_contacts,
)

pytestmark = pytest.mark.no_db


def _c(email, **kw):
    return CandidateContact(email=email, **kw)


class TestScoreContact:

    def test_founder_scraped(self):
        """Founder & CEO on a scraped page: 30 + 40 + 15 = 85, tier A."""
        s = score_contact(_c("ceo@acme.com", title="Founder & CEO", source="scraped"))
        assert s.confidence_score == 85
        assert s.tier == "A"
        b = s.score_breakdown
        assert (b.base_score, b.title_bonus, b.source_bonus, b.linkedin_bonus, b.role_penalty) == (30, 40, 15, 0, 0)

    def test_info_pattern(self):
        """Generic pattern address: 30 + 0 + 0 + 0 - 20 = 10, tier D."""
        s = score_contact(_c("info@acme.com", source=ContactSource.PATTERN))
        assert s.confidence_score == 10
        assert s.tier == "D"

    def test_content_title_and_linkedin(self):
        s = score_contact(_c(
            "jane@acme.com", title="Senior Editor", source="linkedin_search",
            linkedin_url="https://linkedin.com/in/jane",
        ))
        # 30 + 30 + 20 + 15
        assert s.confidence_score == 95
        assert s.tier == "A+"

    def test_marketing_and_other_titles(self):
        assert score_contact(_c("a@acme.com", title="Growth Lead", source="x")).score_breakdown.title_bonus == 20
        assert score_contact(_c("a@acme.com", title="Engineer", source="x")).score_breakdown.title_bonus == 10
        assert score_contact(_c("a@acme.com", role="engineer", source="x")).score_breakdown.title_bonus == 0

    def test_source_bonuses(self):
        def bonus(source):
            return score_contact(_c("jane@acme.com", source=source)).score_breakdown.source_bonus
        assert bonus("snov_domain_search") == 20
        assert bonus("scraped_team_page") == 15
        assert bonus("claude_analysis") == 10
        assert bonus("generated") == 0
        assert bonus("something_new") == 5

    def test_score_clamped(self):
        policy = ScoringPolicy(base_score=95)
        s = score_contact(_c("ceo@acme.com", title="CEO", source="linkedin",
                             linkedin_url="https://linkedin.com/in/x"), policy)
        assert s.confidence_score == 100
        low = score_contact(_c("info@acme.com", source="pattern"), ScoringPolicy(base_score=0))
        assert low.confidence_score == 0

    def test_score_always_in_range(self):
        titles = [None, "CEO", "Editor", "Marketing", "Intern"]
        sources = ["scraped", "pattern", "linkedin", "claude_analysis", "other"]
        emails = ["info@acme.com", "jane@acme.com", "contact-us@acme.com"]
        for t in titles:
            for src in sources:
                for e in emails:
                    for li in (None, "https://linkedin.com/in/x"):
                        s = score_contact(_c(e, title=t, source=src, linkedin_url=li))
                        assert 0 <= s.confidence_score <= 100


class TestSelectBestContacts:

    def _scored(self, *emails, title="Editor", source="scraped_author"):
        return score_and_rank_contacts([_c(e, title=title, source=source) for e in emails])

    def test_two_distinct_local_parts_kept(self):
        scored = self._scored("jane@acme.com", "jane.doe@acme.com", source="unknown")
        # 30 + 30 + 5 = 65 each; stable order
        assert [s.confidence_score for s in scored] == [65, 65]
        selected = select_best_contacts(scored)
        assert [s.email for s in selected] == ["jane@acme.com", "jane.doe@acme.com"]

    def test_identical_local_parts_keep_one(self):
        scored = self._scored("jane@acme.com", "jane@news.acme.com")
        selected = select_best_contacts(scored)
        assert [s.email for s in selected] == ["jane@acme.com"]

    def test_never_more_than_two(self):
        scored = self._scored("a@acme.com", "b@acme.com", "c@acme.com", "d@acme.com")
        assert len(select_best_contacts(scored, max_contacts=5)) == 2

    def test_max_contacts_one(self):
        scored = self._scored("a@acme.com", "b@acme.com")
        assert len(select_best_contacts(scored, max_contacts=1)) == 1

    def test_fallback_to_top_when_below_threshold(self):
        scored = score_and_rank_contacts([
            _c("info@acme.com", source="pattern"),
            _c("hello@acme.com", source="scraped"),
        ])
        selected = select_best_contacts(scored)
        assert len(selected) == 1
        assert selected[0].email == "hello@acme.com"

    def test_second_below_threshold_dropped(self):
        scored = score_and_rank_contacts([
            _c("ceo@acme.com", title="CEO", source="scraped"),
            _c("info@acme.com", source="pattern"),
        ])
        assert [s.email for s in select_best_contacts(scored)] == ["ceo@acme.com"]

    def test_empty(self):
        assert select_best_contacts([]) == []

    def test_ranking_is_descending_and_stable(self):
        scored = score_and_rank_contacts([
            _c("info@acme.com", source="pattern"),
            _c("a@acme.com", source="scraped"),
            _c("b@acme.com", source="scraped"),
            _c("ceo@acme.com", title="CEO", source="scraped"),
        ])
        assert [s.email for s in scored] == ["ceo@acme.com", "a@acme.com", "b@acme.com", "info@acme.com"]


class TestAnalyzeContactQuality:

    def test_empty(self):
        q = analyze_contact_quality([])
        assert q["needs_manual_search"] is True
        assert q["best_contact_tier"] == "D"

    def test_content_decision_maker(self):
        scored = score_and_rank_contacts([
            _c("jane@acme.com", title="Managing Editor", source="scraped"),
            _c("info@acme.com", source="pattern"),
        ])
        q = analyze_contact_quality(scored)
        assert q["has_decision_maker"] is True
        assert q["has_content_decision_maker"] is True
        assert q["best_contact_score"] == 85
        assert q["total_high_quality"] == 1
        assert q["needs_manual_search"] is False
