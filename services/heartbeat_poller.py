"""
Heartbeat poller: the long-running loop that keeps daily summaries current.

Every cycle asks the heartbeat source which users were active since the
watermark, advances the watermark to the instant the cycle started, then
refreshes each active user's eligible participations concurrently (bounded).
Users whose refresh failed are carried into the following cycles with their
activity window until every date syncs.
A failure anywhere below the cycle is logged and contained; the loop itself
never stops until asked to.
"""
import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from loguru import logger
from sqlalchemy.exc import SQLAlchemyError

from config import get_max_concurrent_refreshes, get_poll_interval_seconds, get_trailing_window
from database.db_session import get_session_factory
from helpers.timezone_utils import utcnow
from models.challenge import Challenge
from models.daily_summary import ChallengeParticipantDailySummary
from models.poller_state import HEARTBEAT_WATERMARK_KEY, PollerState
from services.day_window import dates_for_participant
from services.eligibility import get_eligible_participations
from services.errors import ParticipantUnavailable


@dataclass
class PollCycleResult:
    window_start: datetime
    cycle_started: datetime
    users_seen: int = 0
    users_retried: int = 0
    reports: list = field(default_factory=list)
    failures: dict = field(default_factory=dict)  # user id or (user id, participant id) -> exception
    query_failed: bool = False


class HeartbeatPoller:
    def __init__(self, heartbeat_source, synchronizer, session_factory=None, poll_interval=None,
                 trailing_window=None, max_concurrent_refreshes=None, clock=utcnow):
        self.heartbeat_source = heartbeat_source
        self.synchronizer = synchronizer
        self.session_factory = session_factory or get_session_factory()
        self.poll_interval = timedelta(
            seconds=poll_interval if poll_interval is not None else get_poll_interval_seconds()
        )
        self.trailing_window = trailing_window if trailing_window is not None else get_trailing_window()
        self.clock = clock
        self.last_polled_at = None
        self.pending_retries = {}  # user id -> HeartbeatActivity whose refresh failed
        self._refresh_limiter = asyncio.Semaphore(
            max_concurrent_refreshes or get_max_concurrent_refreshes()
        )
        self._stop_event = asyncio.Event()

    @property
    def stopping(self):
        return self._stop_event.is_set()

    def stop(self):
        """Ask the loop to exit once the in-flight cycle has finished."""
        if not self._stop_event.is_set():
            logger.info("Heartbeat poller stop requested")
        self._stop_event.set()

    async def initialize_watermark(self):
        """
        Pick the starting watermark: the persisted one, else the newest summary
        update, else the earliest challenge start, else now. Never in the future.
        """
        now = self.clock()
        source = "persisted watermark"
        async with self.session_factory() as session:
            watermark = await PollerState.get_value(HEARTBEAT_WATERMARK_KEY, session)
            if watermark is None:
                source = "last summary update"
                watermark = await ChallengeParticipantDailySummary.last_successful_summary_at(session)
            if watermark is None:
                source = "first challenge start"
                watermark = await Challenge.first_challenge_start_at(session)

        if watermark is None:
            source = "current time"
            watermark = now
        elif watermark > now:
            logger.warning(f"Watermark from {source} ({watermark}) is in the future, clamping to {now}")
            watermark = now

        self.last_polled_at = watermark
        logger.info(f"Heartbeat watermark initialized to {watermark} from {source}")
        return watermark

    def _advance_watermark(self, instant):
        if self.last_polled_at is None or instant > self.last_polled_at:
            self.last_polled_at = instant

    async def _persist_watermark(self):
        try:
            async with self.session_factory() as session:
                await PollerState.set_value(HEARTBEAT_WATERMARK_KEY, self.last_polled_at, session)
        except SQLAlchemyError as e:
            # The in-memory watermark still advances; persisting is retried next cycle
            logger.error(f"Failed to persist heartbeat watermark {self.last_polled_at}: {e}")

    def _work_for_cycle(self, activity):
        """New activity merged with the windows of users whose last refresh failed."""
        work = dict(self.pending_retries)
        for user in activity:
            pending = work.get(user.user_id)
            work[user.user_id] = user if pending is None else pending.merged_with(user)
        return list(work.values())

    async def poll_once(self) -> PollCycleResult:
        """Run one full cycle. Never raises for failures inside the cycle."""
        if self.last_polled_at is None:
            await self.initialize_watermark()

        cycle_started = self.clock()
        window_start = self.last_polled_at
        result = PollCycleResult(window_start=window_start, cycle_started=cycle_started)

        try:
            activity = await self.heartbeat_source.users_with_heartbeats_since(window_start)
        except Exception as e:
            # Leave the watermark where it is so this window is queried again
            logger.error(f"Heartbeat query since {window_start} failed: {e}")
            result.query_failed = True
            return result

        self._advance_watermark(cycle_started)
        await self._persist_watermark()

        result.users_seen = len(activity)
        work = self._work_for_cycle(activity)
        result.users_retried = len(self.pending_retries)
        if not work:
            logger.debug(f"No new heartbeats since {window_start}")
            return result

        logger.info(
            f"Found {len(activity)} users with heartbeats since {window_start}, "
            f"retrying {result.users_retried} users with failed refreshes"
        )

        outcomes = await asyncio.gather(
            *(self._refresh_user_bounded(user, cycle_started) for user in work),
            return_exceptions=True
        )
        for user, outcome in zip(work, outcomes):
            if isinstance(outcome, BaseException):
                logger.opt(exception=outcome).error(f"Refresh failed for user {user.user_id}: {outcome}")
                result.failures[user.user_id] = outcome
                self.pending_retries[user.user_id] = user
                continue
            reports, failures = outcome
            result.reports.extend(reports)
            result.failures.update(failures)
            # Retried until it succeeds or the participation falls out of the trailing window
            if failures:
                self.pending_retries[user.user_id] = user
            else:
                self.pending_retries.pop(user.user_id, None)

        logger.info(
            f"Poll cycle done: {result.users_seen} users, {len(result.reports)} participations synced, "
            f"{len(result.failures)} failures, {len(self.pending_retries)} users pending retry"
        )
        return result

    async def _refresh_user_bounded(self, user, now):
        async with self._refresh_limiter:
            return await self.refresh_user(user, now)

    async def refresh_user(self, user, now):
        """
        Refresh every eligible participation of one active user.

        Returns (reports, failures); failures are keyed by (user id, participant id).
        """
        async with self.session_factory() as session:
            participations = await get_eligible_participations(
                user.user_id, session, now, self.trailing_window
            )

        if not participations:
            logger.debug(f"User {user.user_id} has no participations to refresh")
            return [], {}

        outcomes = await asyncio.gather(
            *(self.refresh_participation(participant, user) for participant in participations),
            return_exceptions=True
        )

        reports = []
        failures = {}
        for participant, outcome in zip(participations, outcomes):
            key = (user.user_id, participant.id)
            if isinstance(outcome, ParticipantUnavailable):
                logger.warning(f"Skipping participant {participant.id} of user {user.user_id}: {outcome}")
                failures[key] = outcome
            elif isinstance(outcome, BaseException):
                logger.opt(exception=outcome).error(
                    f"Unexpected error refreshing participant {participant.id} of user {user.user_id}: {outcome}"
                )
                failures[key] = outcome
            else:
                reports.append(outcome)
                for day, error in outcome.failed.items():
                    failures[(user.user_id, participant.id, day)] = error
        return reports, failures

    async def refresh_participation(self, participant, user):
        dates = dates_for_participant(
            participant, user.earliest_heartbeat_utc, user.latest_heartbeat_utc
        )
        logger.debug(f"Participant {participant.id}: dates to sync {[d.isoformat() for d in dates]}")
        return await self.synchronizer.sync_participant(participant, dates)

    async def run_forever(self):
        """Poll until stop() is called; each cycle starts one interval after the previous one."""
        await self.initialize_watermark()
        logger.info(f"Heartbeat poller started (interval {self.poll_interval.total_seconds()}s)")

        while not self.stopping:
            cycle_started = self.clock()
            try:
                await self.poll_once()
            except Exception as e:
                logger.exception(f"Unexpected error in poll cycle: {e}")
            await self._sleep_until(cycle_started + self.poll_interval)

        logger.info("Heartbeat poller stopped")

    async def _sleep_until(self, when):
        delay = max(0.0, (when - self.clock()).total_seconds())
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=delay)
        except asyncio.TimeoutError:
            pass
