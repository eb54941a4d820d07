"""
Daily summary synchronizer.

For each local date of a participant, fetch the authoritative total from the
summary API and upsert the (date, participant) row. Each date is independent
and idempotent, so dates are synced concurrently and a failing date never
affects its siblings.
"""
import asyncio
from dataclasses import dataclass, field

from loguru import logger
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from database.db_session import get_session_factory
from helpers.timezone_utils import get_timezone, local_day_bounds_utc, utcnow
from models.daily_summary import ChallengeParticipantDailySummary
from services.errors import MissingCredential, StoreError


@dataclass
class SyncReport:
    participant_id: int
    synced: list = field(default_factory=list)
    failed: dict = field(default_factory=dict)  # date -> exception

    @property
    def ok(self):
        return not self.failed


class DailySummarySynchronizer:
    def __init__(self, summary_client, credential_lookup, session_factory=None,
                 request_limiter: asyncio.Semaphore = None, clock=utcnow):
        """
        Args:
            summary_client: object with an async fetch_summary(...)
            credential_lookup: async callable user_id -> api key or None
            session_factory: async session maker for the challenge store
            request_limiter: caps in-flight summary API calls across all participants
            clock: returns the naive UTC instant stamped on written rows
        """
        self.summary_client = summary_client
        self.credential_lookup = credential_lookup
        self.session_factory = session_factory or get_session_factory()
        self.request_limiter = request_limiter or asyncio.Semaphore(8)
        self.clock = clock

    async def sync_participant(self, participant, dates) -> SyncReport:
        """
        Sync every date for one participant.

        Raises InvalidTimezone or MissingCredential before any date is touched;
        per-date failures are collected in the returned report instead.
        """
        report = SyncReport(participant_id=participant.id)
        if not dates:
            return report

        get_timezone(participant.timezone)

        user_id = participant.person.tracking_id
        api_key = await self.credential_lookup(user_id)
        if not api_key:
            raise MissingCredential(user_id)

        results = await asyncio.gather(
            *(self._sync_date_isolated(participant, day, api_key) for day in dates)
        )
        for day, error in zip(dates, results):
            if error is None:
                report.synced.append(day)
            else:
                report.failed[day] = error

        logger.info(
            f"Participant {participant.id} ({user_id}): synced {len(report.synced)} day(s), "
            f"{len(report.failed)} failed"
        )
        return report

    async def _sync_date_isolated(self, participant, day, api_key):
        try:
            await self.sync_date(participant, day, api_key)
            return None
        except StoreError as e:
            logger.error(f"Store error saving {day} for participant {participant.id}: {e}")
            return e
        except Exception as e:
            # UpstreamError lands here too; the date is retried next cycle
            logger.warning(f"Could not sync {day} for participant {participant.id}: {e}")
            return e

    async def sync_date(self, participant, day, api_key):
        """Fetch and store one (date, participant) summary."""
        challenge = participant.team.challenge
        start_utc, end_utc = local_day_bounds_utc(day, participant.timezone)

        async with self.request_limiter:
            payload = await self.summary_client.fetch_summary(
                participant.person.tracking_id,
                api_key,
                start_utc,
                end_utc,
                editor=challenge.editor_constraint,
                language=challenge.language_constraint
            )

        summary = await self.store_summary(participant.id, day, participant.timezone, payload)
        logger.debug(f"Stored summary for participant {participant.id} on {day}: {summary.total_seconds}s")
        return summary

    async def store_summary(self, participant_id, day, timezone, payload):
        """Upsert with full-replace semantics; a lost insert race is retried as an update."""
        try:
            try:
                async with self.session_factory() as session:
                    return await ChallengeParticipantDailySummary.upsert(
                        day, participant_id, timezone, payload, self.clock(), session
                    )
            except IntegrityError:
                logger.debug(f"Concurrent insert for participant {participant_id} on {day}, retrying as update")
                async with self.session_factory() as session:
                    return await ChallengeParticipantDailySummary.upsert(
                        day, participant_id, timezone, payload, self.clock(), session
                    )
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to store summary for participant {participant_id} on {day}: {e}") from e
