"""Streaming aggregation of community rows into a MetricsSnapshot.

One ``SnapshotAccumulator`` lives for exactly one cycle: rows are folded in
batch by batch as the scanner yields them, then :meth:`finalize` produces an
immutable :class:`MetricsSnapshot`. Every per-row update is a sum or a count,
so the result does not depend on row order.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable
from datetime import datetime, timedelta, timezone

from commstats.stats.magnitude import magnitude_label, parse_magnitude, resolve_magnitude
from commstats.stats.records import UserRecord
from commstats.stats.schemas import MetricsSnapshot, RegionStat

# Holding the base tier (any spelling: "Magnitude 1", "Magnitude 1.0") is
# what makes a non-bot count as a human member.
BASE_TIER_MAGNITUDE = 1.0

# Tracked as flat counts next to the magnitude tiers.
VERIFIED_TAG = "Verified"
LEADER_TAG = "Leader"

ACTIVE_WINDOW_7D = timedelta(days=7)
ACTIVE_WINDOW_30D = timedelta(days=30)


def holds_base_tier(user: UserRecord) -> bool:
    return any(parse_magnitude(role) == BASE_TIER_MAGNITUDE for role in user.roles or ())


class SnapshotAccumulator:
    """Running totals for a single aggregation cycle."""

    def __init__(self, now: datetime | None = None) -> None:
        self.now = now or datetime.now(timezone.utc)
        self._cutoff_7d = self.now - ACTIVE_WINDOW_7D
        self._cutoff_30d = self.now - ACTIVE_WINDOW_30D

        self.total_users = 0
        self.human_users = 0
        self.bot_users = 0
        self.total_contributions = 0
        self.tweet_messages = 0
        self.art_messages = 0
        self.total_chat_messages = 0
        self.active_users_7d = 0
        self.active_users_30d = 0
        self.active_contributors = 0

        self._regions: dict[str, list[int]] = {}
        self._roles: Counter[str] = Counter()

    def add(self, user: UserRecord) -> None:
        """Fold one row into the running totals."""
        self.total_users += 1

        if user.is_bot:
            self.bot_users += 1
        elif holds_base_tier(user):
            self.human_users += 1

        total = user.total_messages
        self.total_contributions += total
        self.tweet_messages += user.tweet
        self.art_messages += user.art
        self.total_chat_messages += user.total_chat

        if total > 0:
            self.active_contributors += 1

        last_active = user.last_message_date
        if last_active is not None:
            if last_active >= self._cutoff_7d:
                self.active_users_7d += 1
            if last_active >= self._cutoff_30d:
                self.active_users_30d += 1

        if user.is_bot:
            return

        if user.region:
            region = self._regions.setdefault(user.region, [0, 0])
            region[0] += 1
            region[1] += total

        if user.roles is not None:
            if VERIFIED_TAG in user.roles:
                self._roles[VERIFIED_TAG] += 1
            if LEADER_TAG in user.roles:
                self._roles[LEADER_TAG] += 1

            highest = resolve_magnitude(user.roles)
            if highest is not None:
                self._roles[magnitude_label(highest)] += 1

    def add_batch(self, users: Iterable[UserRecord]) -> None:
        for user in users:
            self.add(user)

    def finalize(self) -> MetricsSnapshot:
        """Produce the immutable snapshot for this cycle."""
        avg = self.total_contributions / self.active_contributors if self.active_contributors > 0 else 0.0

        regions = sorted(
            (
                RegionStat(region=name, user_count=count, total_contributions=contributions)
                for name, (count, contributions) in self._regions.items()
            ),
            key=lambda r: (-r.user_count, r.region),
        )

        return MetricsSnapshot(
            total_users=self.total_users,
            human_users=self.human_users,
            bot_users=self.bot_users,
            total_contributions=self.total_contributions,
            tweet_messages=self.tweet_messages,
            art_messages=self.art_messages,
            total_chat_messages=self.total_chat_messages,
            active_users_7d=self.active_users_7d,
            active_users_30d=self.active_users_30d,
            avg_messages_per_active_user=avg,
            region_stats=regions,
            role_stats=dict(self._roles),
            created_at=self.now,
        )


def accumulate(users: Iterable[UserRecord], now: datetime | None = None) -> MetricsSnapshot:
    """Fold a finite row stream into a snapshot in one pass."""
    acc = SnapshotAccumulator(now)
    acc.add_batch(users)
    return acc.finalize()
