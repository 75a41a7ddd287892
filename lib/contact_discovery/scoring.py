"""Decision-maker scoring and selection.

score = clamp(base + title bonus + source bonus + linkedin bonus + role penalty, 0, 100)

Constants are heuristics, not fitted to data, so they live in ScoringPolicy
and can be tuned per deployment.
"""

from typing import Optional

from loguru import logger
from pydantic import BaseModel

from lib.contact_discovery.models import CandidateContact, ScoreBreakdown, ScoredContact

DECISION_MAKER_TITLES = (
    "founder", "ceo", "chief executive", "owner", "president", "principal",
    "editor-in-chief", "editorial director", "managing editor",
)

CONTENT_DECISION_TITLES = (
    "editor", "content director", "content manager", "managing partner",
    "head of content", "editorial", "publisher", "writer", "author",
    "blog manager", "communications director",
)

MARKETING_TITLES = (
    "marketing", "communications", "pr manager", "outreach", "partnerships",
    "business development", "growth", "digital marketing",
)

ROLE_ALIASES = ("info", "contact", "hello", "team", "support", "general", "admin")

# Professional network and paid structured APIs
STRUCTURED_SOURCES = (
    "linkedin", "linkedin_search", "domain_search", "name_search",
    "snov_domain_search", "snov_email_finder", "hunter_domain_search",
    "hunter_email_finder", "google_linkedin_search", "apollo",
)
SCRAPED_SOURCES = ("scraped", "scraped_author", "scraped_team_page")
AI_SOURCES = ("claude_analysis",)
PATTERN_SOURCES = ("pattern", "generated")


class ScoringPolicy(BaseModel):
    """Tunable scoring constants."""

    base_score: int = 30

    decision_maker_bonus: int = 40
    content_decision_bonus: int = 30
    marketing_bonus: int = 20
    other_title_bonus: int = 10

    structured_source_bonus: int = 20
    scraped_source_bonus: int = 15
    ai_source_bonus: int = 10
    pattern_source_bonus: int = 0
    unknown_source_bonus: int = 5

    linkedin_bonus: int = 15
    role_penalty: int = -20

    tier_a_plus: int = 90
    tier_a: int = 70
    tier_b: int = 50
    tier_c: int = 30

    selection_threshold: int = 50

    decision_maker_titles: tuple[str, ...] = DECISION_MAKER_TITLES
    content_decision_titles: tuple[str, ...] = CONTENT_DECISION_TITLES
    marketing_titles: tuple[str, ...] = MARKETING_TITLES
    role_aliases: tuple[str, ...] = ROLE_ALIASES


DEFAULT_POLICY = ScoringPolicy()


def _title_text(title: Optional[str], role: Optional[str]) -> str:
    return f"{title or ''} {role or ''}".lower()


def title_bonus(title: Optional[str], role: Optional[str], policy: ScoringPolicy = DEFAULT_POLICY) -> int:
    if not title and not role:
        return 0
    combined = _title_text(title, role)
    if any(k in combined for k in policy.decision_maker_titles):
        return policy.decision_maker_bonus
    if any(k in combined for k in policy.content_decision_titles):
        return policy.content_decision_bonus
    if any(k in combined for k in policy.marketing_titles):
        return policy.marketing_bonus
    if title:
        return policy.other_title_bonus
    return 0


def source_bonus(source: str, policy: ScoringPolicy = DEFAULT_POLICY) -> int:
    source = (source or "").lower()
    if source in STRUCTURED_SOURCES:
        return policy.structured_source_bonus
    if source in SCRAPED_SOURCES:
        return policy.scraped_source_bonus
    if source in AI_SOURCES:
        return policy.ai_source_bonus
    if source in PATTERN_SOURCES:
        return policy.pattern_source_bonus
    return policy.unknown_source_bonus


def role_penalty(email: str, policy: ScoringPolicy = DEFAULT_POLICY) -> int:
    local = email.split("@", 1)[0].lower()
    if any(local == alias or local.startswith(alias) for alias in policy.role_aliases):
        return policy.role_penalty
    return 0


def tier_for(score: int, policy: ScoringPolicy = DEFAULT_POLICY) -> str:
    if score >= policy.tier_a_plus:
        return "A+"
    if score >= policy.tier_a:
        return "A"
    if score >= policy.tier_b:
        return "B"
    if score >= policy.tier_c:
        return "C"
    return "D"


def score_contact(contact: CandidateContact, policy: ScoringPolicy = DEFAULT_POLICY) -> ScoredContact:
    t_bonus = title_bonus(contact.title, contact.role, policy)
    s_bonus = source_bonus(contact.source, policy)
    l_bonus = policy.linkedin_bonus if contact.linkedin_url else 0
    penalty = role_penalty(contact.email, policy)
    final = max(0, min(100, policy.base_score + t_bonus + s_bonus + l_bonus + penalty))

    return ScoredContact(
        **contact.model_dump(exclude={"confidence_score", "score_breakdown", "tier", "verification_status"}),
        confidence_score=final,
        score_breakdown=ScoreBreakdown(
            base_score=policy.base_score,
            title_bonus=t_bonus,
            source_bonus=s_bonus,
            linkedin_bonus=l_bonus,
            role_penalty=penalty,
            final_score=final,
        ),
        tier=tier_for(final, policy),
    )


def score_and_rank_contacts(
    contacts: list[CandidateContact], policy: ScoringPolicy = DEFAULT_POLICY,
) -> list[ScoredContact]:
    """Score and sort descending. Equal scores keep discovery order."""
    scored = sorted(
        (score_contact(c, policy) for c in contacts),
        key=lambda c: c.confidence_score,
        reverse=True,
    )
    if scored:
        tiers = {t: sum(1 for c in scored if c.tier == t) for t in ("A+", "A", "B", "C", "D")}
        logger.debug(f"Scored {len(scored)} contacts: {tiers}")
    return scored


def select_best_contacts(
    scored: list[ScoredContact],
    max_contacts: int = 2,
    policy: ScoringPolicy = DEFAULT_POLICY,
) -> list[ScoredContact]:
    """Pick at most two distinct contacts from a ranked list.

    The top contact is taken when it clears the threshold; the runner-up
    only if it also clears it and has a different local part. When nothing
    clears the threshold the top contact is returned anyway.
    """
    if not scored:
        return []
    ranked = sorted(scored, key=lambda c: c.confidence_score, reverse=True)
    best = ranked[0]
    selected: list[ScoredContact] = []

    if best.confidence_score >= policy.selection_threshold:
        selected.append(best)

    if len(ranked) > 1 and selected and len(selected) < min(max_contacts, 2):
        second = ranked[1]
        if second.confidence_score >= policy.selection_threshold and second.local_part != best.local_part:
            selected.append(second)

    if not selected:
        selected.append(best)
    return selected


def analyze_contact_quality(contacts: list[ScoredContact], policy: ScoringPolicy = DEFAULT_POLICY) -> dict:
    """Summary used to decide whether a prospect needs manual research."""
    if not contacts:
        return {
            "has_decision_maker": False,
            "has_content_decision_maker": False,
            "best_contact_score": 0,
            "best_contact_tier": "D",
            "total_high_quality": 0,
            "needs_manual_search": True,
        }

    best = max(contacts, key=lambda c: c.confidence_score)
    high_quality = [c for c in contacts if c.confidence_score >= policy.tier_a]
    has_content = any(
        any(k in _title_text(c.title, c.role) for k in policy.content_decision_titles)
        for c in high_quality
    )
    return {
        "has_decision_maker": bool(high_quality),
        "has_content_decision_maker": has_content,
        "best_contact_score": best.confidence_score,
        "best_contact_tier": best.tier,
        "total_high_quality": len(high_quality),
        "needs_manual_search": best.confidence_score < policy.selection_threshold,
    }
