"""
Rule Monitor — periodic driver of the alerting pipeline.

Per tick, for every rule in the evaluation pool (sequentially):
1. Skip if the rule is cooling down
2. Evaluate all conditions (logical AND)
3. On success: record cooldown, persist last_triggered, dispatch actions

A failure on one rule is logged and the tick moves on to the next.
"""

from datetime import datetime, timezone
from typing import Optional

import structlog
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from fundwatch import metrics
from fundwatch.alerting.cooldown import CooldownTracker
from fundwatch.alerting.dispatcher import ActionDispatcher
from fundwatch.alerting.evaluator import ConditionEvaluator
from fundwatch.alerting.schemas import ActionResult, AlertRule
from fundwatch.clock import Clock, system_clock
from fundwatch.storage.stores import RuleStore

logger = structlog.get_logger(__name__)

MONITOR_JOB_ID = "rule_monitor"


class RuleMonitor:
    """
    Evaluates active rules on a fixed interval.

    `tick()` may be awaited directly (tests drive time through it); `start()`
    registers it as an APScheduler interval job that also runs immediately.
    """

    def __init__(
        self,
        rules: RuleStore,
        evaluator: ConditionEvaluator,
        dispatcher: ActionDispatcher,
        cooldowns: Optional[CooldownTracker] = None,
        clock: Clock = system_clock,
        interval_seconds: int = 60,
    ):
        self._rules = rules
        self._evaluator = evaluator
        self._dispatcher = dispatcher
        self.cooldowns = cooldowns or CooldownTracker()
        self._clock = clock
        self._interval_seconds = interval_seconds
        self._pool: set[str] = set()
        self._scheduler: Optional[AsyncIOScheduler] = None

    # ── Evaluation pool ──────────────────────────────────────────────

    def activate(self, rule_id: str) -> None:
        self._pool.add(rule_id)
        logger.debug("rule_activated", rule_id=rule_id)

    def deactivate(self, rule_id: str) -> None:
        """Remove from the pool and forget its cooldown."""
        self._pool.discard(rule_id)
        self.cooldowns.discard(rule_id)
        logger.debug("rule_deactivated", rule_id=rule_id)

    def is_active(self, rule_id: str) -> bool:
        return rule_id in self._pool

    @property
    def active_rule_ids(self) -> list[str]:
        return sorted(self._pool)

    # ── Tick ─────────────────────────────────────────────────────────

    async def tick(self, now: Optional[datetime] = None) -> list[str]:
        """Evaluate every active rule once. Returns the ids of rules that fired."""
        now = now or self._clock()
        metrics.increment("ticks_total")
        fired: list[str] = []

        for rule_id in sorted(self._pool):
            rule = self._rules.get(rule_id)
            if rule is None or not rule.enabled:
                # Deleted or disabled behind our back.
                self._pool.discard(rule_id)
                continue

            try:
                if await self.should_trigger(rule, now):
                    await self.trigger(rule, now)
                    fired.append(rule_id)
            except Exception as e:
                metrics.increment("rule_evaluation_errors_total")
                logger.error(
                    "rule_evaluation_failed",
                    rule_id=rule_id,
                    rule_name=rule.name,
                    error=str(e),
                )

        if fired:
            logger.info("monitor_tick_completed", evaluated=len(self._pool), fired=len(fired))
        return fired

    async def should_trigger(self, rule: AlertRule, now: datetime, record: bool = True) -> bool:
        """Cooldown check, then the rule's conditions. `record=False` leaves metrics alone."""
        suppressed, _reason = self.cooldowns.should_suppress(rule, now)
        if suppressed:
            if record:
                metrics.increment("rules_suppressed_total")
            return False

        if record:
            metrics.increment("rules_evaluated_total")
        return await self._evaluator.evaluate_all(rule.conditions, now)

    async def trigger(self, rule: AlertRule, now: datetime) -> list[ActionResult]:
        """Fire a rule: cooldown, persisted last_triggered, then actions."""
        # Re-read: CRUD may have replaced or disabled the rule while conditions
        # were awaited. A rule that left the pool keeps no cooldown entry.
        if self.is_active(rule.id):
            self.cooldowns.record_fired(rule.id, now)

        current = self._rules.get(rule.id)
        if current is not None:
            updated = current.model_copy(update={"last_triggered": now})
            await self._rules.replace(updated)
        else:
            updated = rule.model_copy(update={"last_triggered": now})

        metrics.increment("rules_triggered_total")
        logger.info(
            "rule_triggered",
            rule_id=updated.id,
            rule_name=updated.name,
            priority=updated.priority.value,
            actions=len(updated.actions),
        )
        return await self._dispatcher.dispatch(updated, now)

    async def test_rule(self, rule_id: str, now: Optional[datetime] = None) -> bool:
        """Would this rule fire right now? Nothing is recorded or sent."""
        rule = self._rules.require(rule_id)
        return await self.should_trigger(rule, now or self._clock(), record=False)

    # ── Lifecycle ────────────────────────────────────────────────────

    @property
    def running(self) -> bool:
        return self._scheduler is not None and self._scheduler.running

    def start(self) -> None:
        """Register the interval job; the first tick runs immediately."""
        if self.running:
            return
        self._scheduler = AsyncIOScheduler()
        self._scheduler.add_job(
            self.tick,
            IntervalTrigger(seconds=self._interval_seconds),
            id=MONITOR_JOB_ID,
            next_run_time=datetime.now(timezone.utc),
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
        self._scheduler.start()
        logger.info("rule_monitor_started", interval_seconds=self._interval_seconds)

    def stop(self) -> None:
        if self._scheduler is None:
            return
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)
        self._scheduler = None
        logger.info("rule_monitor_stopped")
