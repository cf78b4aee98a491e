"""
Job Service

Purpose
-------
Job memberships, the cooldown-gated ``work`` action with its pass/fail
roll, work taxes with probabilistic evasion, periodic salaries and
job-scoped leveling.

Domain
------
- Joining and leaving share a 1 h job-change cooldown
- A player may hold several jobs; exactly one of them can be active
- ``work``:
    - fail roll: a 90-180 coin penalty (never more than the balance) and
      the work cooldown, no rewards
    - success: per currency, gross roll, tax ``max(1, floor(gross*rate))``,
      optional evasion refunding ``floor(tax*reduction)``, net credited
    - XP credited to the player and to the job; job levels every
      ``xp_per_level`` up to ``max_level`` and re-derives its rank
- Weekly (7 d) and monthly (30 d) salaries from the active job

Random draw order per successful work: fail trial, then for coins and
tokens (gross, evasion trial when taxed), then XP.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any, Dict, Optional

from ember.domain.models.jobs import JobRecord
from ember.modules.catalog.definitions import JobDefinition
from ember.modules.shared.base_service import BaseService
from ember.modules.shared.formulas import calculate_tax
from ember.modules.shared.outcomes import FailureKind, FailureReason, Outcome

if TYPE_CHECKING:
    from logging import Logger

    from ember.core.clock import Clock
    from ember.core.randomness import RandomSource
    from ember.domain.models.profile import PlayerProfile
    from ember.modules.catalog.catalog import GameCatalog

CURRENCIES = ("coins", "tokens")


class JobService(BaseService):
    """
    Job and work engine.

    Public Methods
    --------------
    - join() / leave() -> Membership changes (cooldown-gated)
    - set_active() -> Switch between held jobs
    - work() -> One work shift
    - claim_weekly_salary() / claim_monthly_salary() -> Periodic pay
    - active_job_info() -> Read model of the active job
    """

    def __init__(
        self,
        catalog: GameCatalog,
        random_source: RandomSource,
        clock: Clock,
        logger: Optional[Logger] = None,
    ) -> None:
        super().__init__(catalog, logger=logger)
        self.random = random_source
        self.clock = clock

    # ========================================================================
    # MEMBERSHIP
    # ========================================================================

    def _change_cooldown(self, profile: PlayerProfile, now: datetime) -> Optional[Outcome]:
        last_change = profile.jobs.last_job_change_at
        if last_change is None:
            return None
        ready_at = last_change + self.catalog.rules.jobs.change_cooldown
        if ready_at <= now:
            return None
        return Outcome.cooldown(FailureReason.JOB_CHANGE_COOLDOWN, ready_at - now)

    def join(self, profile: PlayerProfile, job_id: str) -> Outcome:
        job = self.catalog.jobs.get(job_id)
        if job is None:
            return self.fail("join_job", FailureReason.INVALID_JOB, profile, job_id=job_id)

        now = self.clock.now()
        cooldown = self._change_cooldown(profile, now)
        if cooldown is not None:
            self.log_rejection("join_job", cooldown, profile)
            return cooldown

        if profile.jobs.active_job_id == job_id:
            return self.fail("join_job", FailureReason.ALREADY_ACTIVE, profile, FailureKind.CONFLICT)
        if profile.jobs.holds(job_id):
            return self.fail("join_job", FailureReason.ALREADY_MEMBER, profile, FailureKind.CONFLICT)

        record = JobRecord(
            job_id=job_id,
            rank=job.starting_rank,
            joined_at=now,
            illegal=job.illegal,
        )
        profile.jobs.memberships.append(record)
        profile.jobs.active_job_id = job_id
        profile.jobs.last_job_change_at = now

        self.log_operation("join_job", profile, job_id=job_id)
        return Outcome.ok(job_id=job_id, job_name=job.name, rank=record.rank, active=True)

    def leave(self, profile: PlayerProfile, job_id: str) -> Outcome:
        now = self.clock.now()
        cooldown = self._change_cooldown(profile, now)
        if cooldown is not None:
            self.log_rejection("leave_job", cooldown, profile)
            return cooldown

        if not profile.jobs.holds(job_id):
            return self.fail("leave_job", FailureReason.NOT_MEMBER, profile, job_id=job_id)

        profile.jobs.remove(job_id)
        profile.jobs.last_job_change_at = now

        self.log_operation("leave_job", profile, job_id=job_id)
        return Outcome.ok(job_id=job_id)

    def set_active(self, profile: PlayerProfile, job_id: str) -> Outcome:
        if not profile.jobs.holds(job_id):
            return self.fail("set_active_job", FailureReason.NOT_MEMBER, profile, job_id=job_id)
        profile.jobs.active_job_id = job_id
        self.log_operation("set_active_job", profile, job_id=job_id)
        return Outcome.ok(job_id=job_id)

    # ========================================================================
    # WORK
    # ========================================================================

    def _active(self, operation: str, profile: PlayerProfile):
        """Return (record, definition) or a failed Outcome."""
        record = profile.jobs.active
        if record is None:
            return self.fail(operation, FailureReason.NO_ACTIVE_JOB, profile)
        return record, self.catalog.job(record.job_id)

    def work(self, profile: PlayerProfile) -> Outcome:
        """
        Work one shift in the active job.

        A failed shift is an applied action, not a rejection: the Outcome is
        successful with ``worked=False`` and the ``penalty`` paid.
        """
        active = self._active("work", profile)
        if isinstance(active, Outcome):
            return active
        record, job = active

        now = self.clock.now()
        if record.on_cooldown(now):
            outcome = Outcome.cooldown(FailureReason.WORK_COOLDOWN, record.cooldown_until - now)
            self.log_rejection("work", outcome, profile)
            return outcome

        if self.random.chance(job.fail_chance):
            return self._fail_shift(profile, record, job, now)

        rewards: Dict[str, int] = {}
        taxes: Dict[str, int] = {}
        evaded: Dict[str, int] = {}
        for currency in CURRENCIES:
            span = job.rewards[currency]
            if span.is_zero:
                continue
            gross = self.random.randint(span.minimum, span.maximum)
            if gross <= 0:
                continue

            tax, saved = 0, 0
            if job.taxes and job.taxes.rate > 0 and currency in job.taxes.applies_to:
                evasion = job.tax_evasion
                dodged = evasion is not None and self.random.chance(evasion.chance)
                tax, saved = calculate_tax(
                    gross,
                    job.taxes.rate,
                    evaded=dodged,
                    reduction=evasion.reduction if evasion else 0.0,
                )
                if dodged:
                    evaded[currency] = saved
                if tax > 0:
                    taxes[currency] = tax

            net = gross - tax
            profile.credit(**{currency: net})
            rewards[currency] = net
            if currency == "coins":
                record.stats.coins_earned += net
            record.stats.taxes_paid += tax

        levels_gained = 0
        xp_span = job.rewards["xp"]
        if not xp_span.is_zero:
            xp = self.random.randint(xp_span.minimum, xp_span.maximum)
            if xp > 0:
                profile.add_xp(xp, self.catalog.rules.leveling)
                rewards["xp"] = xp
                levels_gained = self._add_job_xp(record, job, xp)

        record.stats.times_worked += 1
        record.last_worked_at = now
        record.cooldown_until = now + job.cooldown

        self.log_operation(
            "work", profile,
            job_id=job.job_id, rewards=rewards, taxes=taxes, job_level=record.level,
        )
        return Outcome.ok(
            worked=True,
            job_id=job.job_id,
            job_name=job.name,
            rewards=rewards,
            taxes=taxes,
            tax_evasion=evaded or None,
            job_level=record.level,
            job_levels_gained=levels_gained,
            rank=record.rank,
            next_work_at=record.cooldown_until,
        )

    def _fail_shift(
        self, profile: PlayerProfile, record: JobRecord, job: JobDefinition, now: datetime
    ) -> Outcome:
        rolled = self.random.randint(job.fail_penalty.minimum, job.fail_penalty.maximum)
        penalty = min(rolled, profile.coins)
        if penalty > 0:
            profile.debit(coins=penalty)

        record.stats.fails += 1
        record.last_worked_at = now
        record.cooldown_until = now + job.cooldown

        self.log_operation("work", profile, job_id=job.job_id, worked=False, penalty=penalty)
        return Outcome.ok(
            worked=False,
            job_id=job.job_id,
            job_name=job.name,
            penalty=penalty,
            next_work_at=record.cooldown_until,
        )

    @staticmethod
    def _add_job_xp(record: JobRecord, job: JobDefinition, amount: int) -> int:
        record.xp += amount
        record.total_xp += amount
        record.stats.xp_earned += amount

        gained = 0
        while record.xp >= job.xp_per_level and record.level < job.max_level:
            record.xp -= job.xp_per_level
            record.level += 1
            record.rank = job.rank_for_level(record.level)
            gained += 1
        return gained

    # ========================================================================
    # SALARY
    # ========================================================================

    def claim_weekly_salary(self, profile: PlayerProfile) -> Outcome:
        return self._claim_salary(profile, "weekly")

    def claim_monthly_salary(self, profile: PlayerProfile) -> Outcome:
        return self._claim_salary(profile, "monthly")

    def _claim_salary(self, profile: PlayerProfile, period: str) -> Outcome:
        operation = f"claim_{period}_salary"
        active = self._active(operation, profile)
        if isinstance(active, Outcome):
            return active
        _, job = active

        salary = job.salary(period)
        if salary is None or (salary.coins <= 0 and salary.tokens <= 0):
            return self.fail(operation, FailureReason.NO_SALARY, profile, job_id=job.job_id)

        now = self.clock.now()
        attr = f"last_{period}_salary_at"
        last_claim = getattr(profile.jobs, attr)
        if last_claim is not None:
            ready_at = last_claim + self.catalog.rules.jobs.salary_interval(period)
            if ready_at > now:
                outcome = Outcome.cooldown(FailureReason.SALARY_COOLDOWN, ready_at - now)
                self.log_rejection(operation, outcome, profile)
                return outcome

        profile.credit(coins=salary.coins, tokens=salary.tokens)
        setattr(profile.jobs, attr, now)

        paid = {"coins": salary.coins, "tokens": salary.tokens}
        self.log_operation(operation, profile, job_id=job.job_id, **paid)
        return Outcome.ok(job_id=job.job_id, job_name=job.name, period=period, salary=paid)

    # ========================================================================
    # READ MODELS
    # ========================================================================

    def active_job_info(self, profile: PlayerProfile) -> Dict[str, Any]:
        record = profile.jobs.active
        if record is None:
            return {"has_job": False}
        job = self.catalog.jobs.get(record.job_id)
        return {
            "has_job": True,
            "job_id": record.job_id,
            "name": job.name if job else record.job_id,
            "level": record.level,
            "xp": record.xp,
            "xp_per_level": job.xp_per_level if job else None,
            "total_xp": record.total_xp,
            "rank": record.rank,
            "illegal": record.illegal,
            "stats": record.stats.to_dict(),
            "cooldown_until": record.cooldown_until,
            "ready": not record.on_cooldown(self.clock.now()),
        }
