"""
Call scheduler: turns active schedules into placed wake-up calls.

Each tick sends advance-notice texts, claims and places the occurrences that
became due, and places retries whose backoff has elapsed. Inserting the call
history row for ``(schedule, occurrence, attempt)`` is the claim, so running
ticks concurrently or repeating one never places the same attempt twice.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from sqlalchemy.ext.asyncio import AsyncSession

from wakecall.auth.models import User
from wakecall.auth.repository import UserRepository
from wakecall.calls.dialer import CallDialer
from wakecall.calls.models import CallHistory
from wakecall.calls.repository import CallHistoryRepository
from wakecall.calls.retry import RetryPolicy
from wakecall.calls.state import CallStatus
from wakecall.config import Settings, get_settings
from wakecall.personalization.models import Personalization
from wakecall.personalization.repository import PersonalizationRepository
from wakecall.schedules.models import Schedule
from wakecall.schedules.recurrence import RecurrenceError
from wakecall.schedules.repository import ScheduleRepository
from wakecall.shared.logging import call_context, get_logger
from wakecall.telephony.config import TelephonyConfig
from wakecall.telephony.interface import SmsRequest, TelephonyProvider, TelephonyProviderError
from wakecall.voice.script import ScriptGenerator, get_script_generator
from wakecall.voice.tts import SpeechSynthesizer, get_speech_synthesizer
from wakecall.voices.catalog import DEFAULT_VOICE_ID

logger = get_logger(__name__)


@dataclass(frozen=True)
class CallSchedulerConfig:
    """Configuration for the call scheduler."""

    interval_seconds: int = 60
    catchup: timedelta = timedelta(minutes=15)
    advance_notice: timedelta = timedelta(minutes=30)

    @classmethod
    def from_settings(cls, settings: Settings) -> "CallSchedulerConfig":
        return cls(
            interval_seconds=settings.scheduler_interval_seconds,
            catchup=timedelta(minutes=settings.scheduler_catchup_minutes),
            advance_notice=timedelta(minutes=settings.advance_notice_minutes),
        )


@dataclass
class SchedulerTickResult:
    notices_sent: int = 0
    calls_placed: int = 0
    calls_failed: int = 0
    already_claimed: int = 0
    retries_placed: int = 0


class CallScheduler:
    """Places due wake-up calls; one instance per tick and session."""

    def __init__(
        self,
        session: AsyncSession,
        telephony_provider: TelephonyProvider,
        telephony_config: TelephonyConfig,
        config: CallSchedulerConfig | None = None,
        retry_policy: RetryPolicy | None = None,
        script_generator: ScriptGenerator | None = None,
        synthesizer: SpeechSynthesizer | None = None,
    ) -> None:
        settings = get_settings()
        self._session = session
        self._provider = telephony_provider
        self._telephony_config = telephony_config
        self._config = config or CallSchedulerConfig.from_settings(settings)
        self._retry_policy = retry_policy or RetryPolicy.from_settings(settings)
        self._dialer = CallDialer(
            telephony_provider,
            telephony_config,
            script_generator or get_script_generator(),
            synthesizer or get_speech_synthesizer(),
        )
        self._schedules = ScheduleRepository(session)
        self._history = CallHistoryRepository(session)
        self._users = UserRepository(session)
        self._personalizations = PersonalizationRepository(session)

    async def run_once(self, now: datetime | None = None) -> SchedulerTickResult:
        """Run a single scheduler tick.

        A failure on one schedule or retry is logged and rolled back; the rest
        of the tick still runs.
        """
        now = now or datetime.now(timezone.utc)
        result = SchedulerTickResult()

        schedule_ids = [s.id for s in await self._schedules.list_active()]
        for schedule_id in schedule_ids:
            schedule = await self._session.get(Schedule, schedule_id)
            if schedule is None or not schedule.is_active:
                continue
            with call_context(schedule_id=schedule_id):
                try:
                    if schedule.advance_notice:
                        await self._send_advance_notice(schedule, now, result)
                    await self._run_schedule(schedule, now, result)
                except RecurrenceError:
                    logger.exception("Schedule has invalid timing; skipped")
                except Exception:
                    logger.exception("Schedule tick failed")
                    await self._session.rollback()

        retry_ids = [h.id for h in await self._history.list_due_retries(now)]
        for history_id in retry_ids:
            with call_context(history_id=history_id):
                try:
                    await self._run_retry(history_id, now, result)
                except Exception:
                    logger.exception("Retry failed")
                    await self._session.rollback()

        logger.info(
            "Scheduler tick complete",
            extra={
                "now": now.isoformat(),
                "notices_sent": result.notices_sent,
                "calls_placed": result.calls_placed,
                "calls_failed": result.calls_failed,
                "already_claimed": result.already_claimed,
                "retries_placed": result.retries_placed,
            },
        )
        return result

    async def _send_advance_notice(
        self,
        schedule: Schedule,
        now: datetime,
        result: SchedulerTickResult,
    ) -> None:
        upcoming = schedule.next_occurrence(now)
        if upcoming is None or upcoming - now > self._config.advance_notice:
            return
        if schedule.notice_sent_for == upcoming:
            return

        user = await self._users.get_by_id(schedule.user_id)
        if user is None or not user.phone or not user.phone_verified:
            return

        # Marked before sending: a notice goes out at most once per occurrence.
        schedule.notice_sent_for = upcoming
        await self._session.commit()

        local = schedule.recurrence.local_wall_time(upcoming)
        body = f"Heads up! Your wake-up call is coming at {local:%H:%M}. Get ready to rise and shine."
        try:
            await self._provider.send_sms(
                SmsRequest(
                    to=user.phone,
                    from_number=self._telephony_config.twilio_from_number,
                    body=body,
                )
            )
        except TelephonyProviderError as e:
            logger.warning(
                "Advance notice SMS failed",
                extra={"schedule_id": schedule.id, "error": str(e)},
            )
            return

        result.notices_sent += 1
        logger.info(
            "Advance notice sent",
            extra={"schedule_id": schedule.id, "occurrence_at": upcoming.isoformat()},
        )

    async def _run_schedule(
        self,
        schedule: Schedule,
        now: datetime,
        result: SchedulerTickResult,
    ) -> None:
        due = schedule.recurrence.due_occurrences(
            now,
            self._config.catchup,
            not_before=schedule.not_before,
        )
        for occurrence_at in due:
            if schedule.last_occurrence_at is not None and occurrence_at <= schedule.last_occurrence_at:
                continue
            await self._run_occurrence(schedule, occurrence_at, now, result)

    def _ineligibility(
        self,
        user: User,
        personalization: Personalization | None,
        free_call: bool,
    ) -> str | None:
        if not user.phone or not user.phone_verified:
            return "PHONE_NOT_VERIFIED"
        if personalization is None:
            return "PERSONALIZATION_REQUIRED"
        if not free_call and user.call_credits <= 0:
            return "INSUFFICIENT_CREDITS"
        return None

    async def _run_occurrence(
        self,
        schedule: Schedule,
        occurrence_at: datetime,
        now: datetime,
        result: SchedulerTickResult,
    ) -> None:
        user = await self._users.get_by_id(schedule.user_id)
        if user is None:
            return
        personalization = await self._personalizations.get_for_user(user.id)

        history = CallHistory(
            user_id=user.id,
            schedule_id=schedule.id,
            occurrence_at=occurrence_at,
            attempt_number=1,
            call_time=schedule.recurrence.local_wall_time(occurrence_at).isoformat(),
            timezone=schedule.timezone,
            voice=personalization.voice if personalization else DEFAULT_VOICE_ID,
            status=CallStatus.PENDING.value,
        )
        if not await self._history.claim(history):
            result.already_claimed += 1
            logger.info(
                "Occurrence already claimed",
                extra={"schedule_id": schedule.id, "occurrence_at": occurrence_at.isoformat()},
            )
            return

        schedule.last_occurrence_at = occurrence_at
        if not schedule.is_recurring:
            schedule.is_active = False
        await self._session.commit()

        free_call = not await self._history.has_scheduled_call(user.id)
        reason = self._ineligibility(user, personalization, free_call)
        if reason is not None:
            history.status = CallStatus.FAILED.value
            history.error_code = reason
            await self._session.commit()
            result.calls_failed += 1
            logger.warning(
                "Occurrence not placed",
                extra={"schedule_id": schedule.id, "user_id": user.id, "reason": reason},
            )
            return

        placed = await self._dial(history, user, personalization)
        self._record_on_schedule(schedule, history, now)

        if placed:
            result.calls_placed += 1
            if not free_call:
                history.charged = await self._users.deduct_credit(user.id)
        else:
            result.calls_failed += 1
            history.next_retry_at = self._retry_policy.plan(
                history.status,
                history.attempt_number,
                now,
                occurrence_at,
                enabled=schedule.call_retry,
            )
        await self._session.commit()

    async def _dial(
        self,
        history: CallHistory,
        user: User,
        personalization: Personalization | None,
    ) -> bool:
        """Dial, recording any unexpected failure on ``history`` so it can be retried."""
        try:
            return await self._dialer.dial(history, user, personalization)
        except Exception:
            logger.exception(
                "Unexpected error placing call",
                extra={"history_id": history.id, "user_id": user.id},
            )
            history.status = CallStatus.FAILED.value
            history.error_code = "CALL_INITIATION_FAILED"
            return False

    async def _run_retry(self, previous_id: int, now: datetime, result: SchedulerTickResult) -> None:
        previous = await self._history.get_by_id(previous_id)
        if previous is None or previous.next_retry_at is None:
            return
        schedule = (
            await self._session.get(Schedule, previous.schedule_id)
            if previous.schedule_id is not None
            else None
        )
        if schedule is None or not schedule.call_retry or (schedule.is_recurring and not schedule.is_active):
            previous.next_retry_at = None
            await self._session.commit()
            return

        user = await self._users.get_by_id(previous.user_id)
        if user is None:
            return
        personalization = await self._personalizations.get_for_user(user.id)

        history = CallHistory(
            user_id=user.id,
            schedule_id=schedule.id,
            occurrence_at=previous.occurrence_at,
            attempt_number=previous.attempt_number + 1,
            call_time=previous.call_time,
            timezone=previous.timezone,
            voice=previous.voice,
            status=CallStatus.PENDING.value,
        )
        if not await self._history.claim(history):
            result.already_claimed += 1
            return
        await self._session.commit()

        if not user.phone or not user.phone_verified:
            history.status = CallStatus.FAILED.value
            history.error_code = "PHONE_NOT_VERIFIED"
            await self._session.commit()
            return

        placed = await self._dial(history, user, personalization)
        self._record_on_schedule(schedule, history, now)
        if placed:
            result.retries_placed += 1
        else:
            history.next_retry_at = self._retry_policy.plan(
                history.status,
                history.attempt_number,
                now,
                history.occurrence_at,
            )
        await self._session.commit()
        logger.info(
            "Retry attempt processed",
            extra={
                "schedule_id": schedule.id,
                "attempt_number": history.attempt_number,
                "placed": placed,
            },
        )

    @staticmethod
    def _record_on_schedule(schedule: Schedule, history: CallHistory, now: datetime) -> None:
        schedule.last_called = now
        schedule.last_call_sid = history.call_sid
        schedule.last_call_status = history.status
