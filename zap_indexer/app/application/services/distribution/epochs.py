from __future__ import annotations

import time
from dataclasses import dataclass
from datetime import datetime, timezone

from zap_indexer.app.domain.errors import DistributionEnded

_MAX_BPS = 10_000


@dataclass(frozen=True)
class EmissionSchedule:
    epoch_period: int
    tokens_per_epoch: int
    decimals: int
    distribution_start_time: int
    total_number_of_epochs: int
    tokens_for_retroactive_distribution: int | None = None
    developer_token_ratio_bps: int = 1_500
    initial_trader_token_ratio_bps: int = 0

    @property
    def has_retroactive_epoch(self) -> bool:
        return self.tokens_for_retroactive_distribution is not None


@dataclass(frozen=True)
class EpochInfo:
    """
    Window and token budget of one epoch.

    All amounts are in the reward token's smallest unit. The developer share
    is carved out first; the trader share (initial epoch only) is taken from
    what is left; liquidity providers get the rest.
    """

    schedule: EmissionSchedule
    epoch_number: int

    @classmethod
    def current(cls, schedule: EmissionSchedule, now: float | None = None) -> "EpochInfo":
        """The epoch that contains ``now`` (unix seconds)."""
        now = time.time() if now is None else now
        elapsed = int(now) - schedule.distribution_start_time
        if elapsed < 0:
            return cls(schedule, 0)
        n = elapsed // schedule.epoch_period
        if schedule.has_retroactive_epoch:
            n += 1
        return cls(schedule, n)

    @property
    def is_initial(self) -> bool:
        return self.epoch_number == 0

    @property
    def distribution_ended(self) -> bool:
        return self.epoch_number >= self.schedule.total_number_of_epochs

    def ensure_active(self) -> None:
        if self.epoch_number < 0:
            raise ValueError("epoch_number must be non-negative")
        if self.distribution_ended:
            raise DistributionEnded(
                f"Epoch {self.epoch_number} is past the last epoch "
                f"({self.schedule.total_number_of_epochs - 1})"
            )

    # ---------------------------------------------------------------------
    # window
    # ---------------------------------------------------------------------

    @property
    def _regular_index(self) -> int:
        return self.epoch_number - 1 if self.schedule.has_retroactive_epoch else self.epoch_number

    @property
    def start_time(self) -> int:
        if self.is_initial and self.schedule.has_retroactive_epoch:
            return 0
        return self.schedule.distribution_start_time + self._regular_index * self.schedule.epoch_period

    @property
    def end_time(self) -> int:
        if self.is_initial and self.schedule.has_retroactive_epoch:
            return self.schedule.distribution_start_time
        return self.start_time + self.schedule.epoch_period

    @property
    def start(self) -> datetime:
        return datetime.fromtimestamp(self.start_time, tz=timezone.utc)

    @property
    def end(self) -> datetime:
        return datetime.fromtimestamp(self.end_time, tz=timezone.utc)

    # ---------------------------------------------------------------------
    # budget
    # ---------------------------------------------------------------------

    def tokens_for_epoch(self) -> int:
        if self.is_initial and self.schedule.has_retroactive_epoch:
            tokens = self.schedule.tokens_for_retroactive_distribution or 0
        else:
            tokens = self.schedule.tokens_per_epoch
        return tokens * 10**self.schedule.decimals

    def tokens_for_developers(self) -> int:
        return self.tokens_for_epoch() * self.schedule.developer_token_ratio_bps // _MAX_BPS

    def tokens_for_users(self) -> int:
        return self.tokens_for_epoch() - self.tokens_for_developers()

    def tokens_for_traders(self) -> int:
        if not self.is_initial:
            return 0
        return self.tokens_for_users() * self.schedule.initial_trader_token_ratio_bps // _MAX_BPS

    def tokens_for_liquidity_providers(self) -> int:
        return self.tokens_for_users() - self.tokens_for_traders()
