"""Badge catalogue and evaluation.

Thresholds MUST match the dashboard's badge strip exactly. Badges are pure
functions of a member row (plus an optional rank context) and are never
persisted.

Tiers within one category are not mutually exclusive: a member with 12k
general messages holds Echo, Resonance and Shockwave at once, and Veteran
does not hide Consistent. The two rank badges are the exception: Top 10% is
only achieved when Top 1% is not.
"""

from __future__ import annotations

import math
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Literal

from commstats.gamification.schemas import Badge
from commstats.ranking.rank_service import RankContext
from commstats.stats.records import UserRecord

BadgeTier = Literal["bronze", "silver", "gold", "achievement"]

SECONDS_PER_DAY = 86_400

EARLY_ADOPTER_CUTOFF = datetime(2024, 6, 1, tzinfo=timezone.utc)
RISING_STAR_MAX_DAYS = 45


@dataclass(frozen=True)
class EvaluationContext:
    """Everything a rule may look at besides the member row."""

    now: datetime
    rank: RankContext | None = None


Predicate = Callable[[UserRecord, EvaluationContext], bool]


@dataclass(frozen=True)
class BadgeRule:
    id: str
    label: str
    description: str
    color: str
    tier: BadgeTier
    check: Predicate

    def evaluate(self, user: UserRecord, ctx: EvaluationContext) -> Badge:
        return Badge(
            id=self.id,
            label=self.label,
            description=self.description,
            color=self.color,
            tier=self.tier,
            achieved=bool(self.check(user, ctx)),
        )


def activity_days(user: UserRecord) -> int:
    """Days between first and last message, rounded up, at least 1."""
    if user.first_message_date is None or user.last_message_date is None:
        return 1
    span = (user.last_message_date - user.first_message_date).total_seconds()
    return max(1, math.ceil(span / SECONDS_PER_DAY))


def joined_days(user: UserRecord, now: datetime) -> int:
    """Days since joining, rounded up; falls back to activity_days."""
    if user.joined_at is None:
        return activity_days(user)
    return math.ceil((now - user.joined_at).total_seconds() / SECONDS_PER_DAY)


def _ratio(part: int, total: int) -> float:
    return part / total if total > 0 else 0.0


def _top_fraction(ctx: EvaluationContext, limit: float) -> bool:
    return ctx.rank is not None and ctx.rank.total_users > 0 and ctx.rank.fraction <= limit


def _chat_rule(rule_id: str, label: str, description: str, color: str, tier: BadgeTier,
               field: str, threshold: int) -> BadgeRule:
    return BadgeRule(
        rule_id, label, description, color, tier,
        lambda u, _ctx: getattr(u, field) >= threshold,
    )


# ---------------------------------------------------------------------------
# Tier badges (chat volume per channel)
# ---------------------------------------------------------------------------

TIER_BADGES: tuple[BadgeRule, ...] = (
    _chat_rule("gen-bronze", "Echo", "1k+ General messages", "#B45309", "bronze", "general_chat", 1000),
    _chat_rule("gen-silver", "Resonance", "5k+ General messages", "#9CA3AF", "silver", "general_chat", 5000),
    _chat_rule("gen-gold", "Shockwave", "10k+ General messages", "#F59E0B", "gold", "general_chat", 10000),
    _chat_rule("dev-bronze", "Test Subject", "100+ Devnet messages", "#BFDBFE", "bronze", "devnet_chat", 100),
    _chat_rule("dev-silver", "Lab Tech", "300+ Devnet messages", "#93C5FD", "silver", "devnet_chat", 300),
    _chat_rule("dev-gold", "Architect", "500+ Devnet messages", "#60A5FA", "gold", "devnet_chat", 500),
    _chat_rule("rep-bronze", "Vigilante", "10+ Reports", "#FCA5A5", "bronze", "report_chat", 10),
    _chat_rule("rep-silver", "Sheriff", "30+ Reports", "#F87171", "silver", "report_chat", 30),
    _chat_rule("rep-gold", "Judge Dredd", "50+ Reports", "#EF4444", "gold", "report_chat", 50),
)


# ---------------------------------------------------------------------------
# Achievements
# ---------------------------------------------------------------------------

ACHIEVEMENTS: tuple[BadgeRule, ...] = (
    # Tenure
    BadgeRule(
        "early-adopter", "Early Adopter", "Joined before June 2024", "#fff", "achievement",
        lambda u, _ctx: u.first_message_date is not None and u.first_message_date < EARLY_ADOPTER_CUTOFF,
    ),
    BadgeRule(
        "veteran", "Veteran", "Active for 90+ days", "#a3a3a3", "achievement",
        lambda u, _ctx: activity_days(u) >= 90,
    ),
    BadgeRule(
        "consistent", "Consistent", "Active for 30+ days", "#fff", "achievement",
        lambda u, _ctx: activity_days(u) >= 30,
    ),
    # Volume
    BadgeRule(
        "relentless", "Relentless", "5000+ Total Messages", "#ef4444", "achievement",
        lambda u, _ctx: u.total_messages >= 5000,
    ),
    BadgeRule(
        "diamond", "Diamond", "1000+ Total Messages", "#38bdf8", "achievement",
        lambda u, _ctx: u.total_messages >= 1000,
    ),
    # Specialization
    BadgeRule(
        "artistic-soul", "Artistic Soul", "100+ Art submissions", "#f472b6", "achievement",
        lambda u, _ctx: u.art >= 100,
    ),
    BadgeRule(
        "voice-seismic", "Voice of Seismic", "500+ Tweets", "#818cf8", "achievement",
        lambda u, _ctx: u.tweet >= 500,
    ),
    BadgeRule(
        "balanced-force", "Balanced Force", "Balanced contributions", "#34d399", "achievement",
        lambda u, _ctx: (
            u.total_messages > 200
            and _ratio(u.art, u.total_messages) >= 0.4
            and _ratio(u.tweet, u.total_messages) >= 0.4
        ),
    ),
    # Rank
    BadgeRule(
        "top-1-percent", "Top 1% Elite", "Top 1% Contributor", "#fbbf24", "achievement",
        lambda _u, ctx: _top_fraction(ctx, 0.01),
    ),
    BadgeRule(
        "top-10-percent", "Top 10%", "Top 10% Contributor", "#fbbf24", "achievement",
        lambda _u, ctx: _top_fraction(ctx, 0.1) and not _top_fraction(ctx, 0.01),
    ),
    # Momentum
    BadgeRule(
        "high-octane", "High Octane", ">15 Msgs/Day", "#f59e0b", "achievement",
        lambda u, _ctx: u.total_messages / activity_days(u) > 15,
    ),
    BadgeRule(
        "rising-star", "Rising Star", "New but active", "#facc15", "achievement",
        lambda u, ctx: joined_days(u, ctx.now) < RISING_STAR_MAX_DAYS and u.total_messages > 300,
    ),
)

BADGE_CATALOGUE: tuple[BadgeRule, ...] = TIER_BADGES + ACHIEVEMENTS


def _context(now: datetime | None, rank: RankContext | None) -> EvaluationContext:
    return EvaluationContext(now=now or datetime.now(timezone.utc), rank=rank)


def evaluate_tier_badges(user: UserRecord) -> list[Badge]:
    """Chat-volume tier badges, achieved or not."""
    ctx = _context(None, None)
    return [rule.evaluate(user, ctx) for rule in TIER_BADGES]


def evaluate_achievements(
    user: UserRecord,
    rank: RankContext | None = None,
    now: datetime | None = None,
) -> list[Badge]:
    """Tenure, volume, specialization, rank and momentum achievements."""
    ctx = _context(now, rank)
    return [rule.evaluate(user, ctx) for rule in ACHIEVEMENTS]


def evaluate_badges(
    user: UserRecord,
    rank: RankContext | None = None,
    now: datetime | None = None,
) -> list[Badge]:
    """Evaluate the full catalogue in display order."""
    ctx = _context(now, rank)
    return [rule.evaluate(user, ctx) for rule in BADGE_CATALOGUE]
