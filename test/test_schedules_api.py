"""
Tests for schedule management (API and service).
"""

from datetime import date, datetime, timedelta, timezone

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from conftest import auth_headers, make_user
from wakecall.notifications.email import LogEmailSender
from wakecall.schedules.schemas import ScheduleIn
from wakecall.schedules.service import MAX_SCHEDULES_PER_USER, ScheduleService
from wakecall.shared.exceptions import ValidationError

NOW = datetime(2025, 6, 2, 6, 0, tzinfo=timezone.utc)  # Monday

DAILY = {
    "wakeup_time": "07:00",
    "timezone": "UTC",
    "weekdays": ["mon", "tue", "wed", "thu", "fri", "sat", "sun"],
}


@pytest.mark.asyncio
async def test_create_requires_verified_phone(client: AsyncClient, db_session: AsyncSession) -> None:
    user = await make_user(db_session, phone_verified=False)

    response = await client.post("/api/schedules", json=DAILY, headers=auth_headers(user))

    assert response.status_code == 403
    assert response.json()["detail"]["code"] == "PHONE_NOT_VERIFIED"


@pytest.mark.asyncio
async def test_create_requires_auth(client: AsyncClient) -> None:
    response = await client.post("/api/schedules", json=DAILY)

    assert response.status_code == 401
    assert response.json()["detail"]["code"] == "MISSING_CREDENTIALS"


@pytest.mark.asyncio
async def test_create_and_list(
    client: AsyncClient,
    db_session: AsyncSession,
    email_sender: LogEmailSender,
) -> None:
    user = await make_user(db_session)
    headers = auth_headers(user)

    response = await client.post(
        "/api/schedules",
        json={**DAILY, "weekdays": "Fri,mon", "advance_notice": True},
        headers=headers,
    )

    assert response.status_code == 201
    body = response.json()
    assert body["wakeup_time"] == "07:00"
    assert body["weekdays"] == ["mon", "fri"]
    assert body["is_active"] is True
    assert body["advance_notice"] is True
    assert body["date"] is None
    assert body["next_call_at"] is not None

    listed = await client.get("/api/schedules", headers=headers)
    assert listed.status_code == 200
    assert [s["id"] for s in listed.json()] == [body["id"]]


@pytest.mark.asyncio
async def test_welcome_email_sent_once(
    client: AsyncClient,
    db_session: AsyncSession,
    email_sender: LogEmailSender,
) -> None:
    user = await make_user(db_session)
    headers = auth_headers(user)

    await client.post("/api/schedules", json=DAILY, headers=headers)
    await client.post("/api/schedules", json={**DAILY, "wakeup_time": "08:00"}, headers=headers)

    assert len(email_sender.sent) == 1
    assert email_sender.sent[0].to == user.email
    assert "Jordan Rivers" in email_sender.sent[0].text

    await db_session.refresh(user)
    assert user.welcome_email_sent is True


@pytest.mark.asyncio
async def test_schedule_limit(client: AsyncClient, db_session: AsyncSession) -> None:
    user = await make_user(db_session)
    headers = auth_headers(user)

    for hour in range(MAX_SCHEDULES_PER_USER):
        response = await client.post(
            "/api/schedules",
            json={**DAILY, "wakeup_time": f"0{hour + 5}:00"},
            headers=headers,
        )
        assert response.status_code == 201

    response = await client.post("/api/schedules", json={**DAILY, "wakeup_time": "09:30"}, headers=headers)

    assert response.status_code == 400
    assert response.json()["detail"]["code"] == "SCHEDULE_LIMIT"


@pytest.mark.asyncio
async def test_duplicate_rejected(client: AsyncClient, db_session: AsyncSession) -> None:
    user = await make_user(db_session)
    headers = auth_headers(user)

    first = await client.post("/api/schedules", json=DAILY, headers=headers)
    second = await client.post(
        "/api/schedules",
        json={**DAILY, "weekdays": list(reversed(DAILY["weekdays"]))},
        headers=headers,
    )

    assert second.status_code == 409
    detail = second.json()["detail"]
    assert detail["code"] == "DUPLICATE_SCHEDULE"
    assert detail["details"]["schedule_id"] == first.json()["id"]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "payload",
    [
        {**DAILY, "timezone": "Mars/Olympus_Mons"},
        {**DAILY, "wakeup_time": "25:00"},
        {**DAILY, "weekdays": ["someday"]},
        {**DAILY, "weekdays": []},
    ],
)
async def test_invalid_payload(client: AsyncClient, db_session: AsyncSession, payload: dict) -> None:
    user = await make_user(db_session)

    response = await client.post("/api/schedules", json=payload, headers=auth_headers(user))

    assert response.status_code == 422
    assert response.json()["detail"]["code"] == "VALIDATION_ERROR"


@pytest.mark.asyncio
async def test_update(client: AsyncClient, db_session: AsyncSession) -> None:
    user = await make_user(db_session)
    headers = auth_headers(user)
    created = (await client.post("/api/schedules", json=DAILY, headers=headers)).json()

    response = await client.put(
        f"/api/schedules/{created['id']}",
        json={**DAILY, "wakeup_time": "06:15", "timezone": "Europe/Rome", "call_retry": False},
        headers=headers,
    )

    assert response.status_code == 200
    body = response.json()
    assert body["wakeup_time"] == "06:15"
    assert body["timezone"] == "Europe/Rome"
    assert body["call_retry"] is False


@pytest.mark.asyncio
async def test_toggle(client: AsyncClient, db_session: AsyncSession) -> None:
    user = await make_user(db_session)
    headers = auth_headers(user)
    created = (await client.post("/api/schedules", json=DAILY, headers=headers)).json()

    paused = await client.post(f"/api/schedules/{created['id']}/toggle", headers=headers)
    assert paused.json()["is_active"] is False
    assert paused.json()["next_call_at"] is None

    resumed = await client.post(f"/api/schedules/{created['id']}/toggle", headers=headers)
    assert resumed.json()["is_active"] is True
    assert resumed.json()["next_call_at"] is not None


@pytest.mark.asyncio
async def test_delete(client: AsyncClient, db_session: AsyncSession) -> None:
    user = await make_user(db_session)
    headers = auth_headers(user)
    created = (await client.post("/api/schedules", json=DAILY, headers=headers)).json()

    response = await client.delete(f"/api/schedules/{created['id']}", headers=headers)
    assert response.status_code == 204

    missing = await client.get(f"/api/schedules/{created['id']}", headers=headers)
    assert missing.status_code == 404
    assert missing.json()["detail"]["code"] == "SCHEDULE_NOT_FOUND"


@pytest.mark.asyncio
async def test_other_users_schedule_is_hidden(client: AsyncClient, db_session: AsyncSession) -> None:
    owner = await make_user(db_session)
    intruder = await make_user(db_session, email="night@example.com", phone="+14155550999")
    created = (await client.post("/api/schedules", json=DAILY, headers=auth_headers(owner))).json()

    for method, suffix in (("get", ""), ("delete", ""), ("post", "/toggle"), ("post", "/skip-next")):
        response = await client.request(
            method.upper(),
            f"/api/schedules/{created['id']}{suffix}",
            headers=auth_headers(intruder),
        )
        assert response.status_code == 404


class TestScheduleService:
    @pytest.mark.asyncio
    async def test_next_call_at(self, db_session: AsyncSession) -> None:
        user = await make_user(db_session)
        service = ScheduleService(db_session)

        out = await service.create(user, ScheduleIn(**DAILY), now=NOW)

        assert out.next_call_at == datetime(2025, 6, 2, 7, 0, tzinfo=timezone.utc)

    @pytest.mark.asyncio
    async def test_skip_next_recurring(self, db_session: AsyncSession) -> None:
        user = await make_user(db_session)
        service = ScheduleService(db_session)
        created = await service.create(user, ScheduleIn(**{**DAILY, "weekdays": "mon,tue"}), now=NOW)

        skipped = await service.skip_next(user, created.id, now=NOW)

        assert skipped.is_active is True
        assert skipped.next_call_at == datetime(2025, 6, 3, 7, 0, tzinfo=timezone.utc)

    @pytest.mark.asyncio
    async def test_skip_next_one_time_deactivates(self, db_session: AsyncSession) -> None:
        user = await make_user(db_session)
        service = ScheduleService(db_session)
        created = await service.create(
            user,
            ScheduleIn(wakeup_time="07:00", timezone="UTC", is_recurring=False, date=date(2025, 6, 3)),
            now=NOW,
        )

        skipped = await service.skip_next(user, created.id, now=NOW)

        assert skipped.is_active is False
        assert skipped.next_call_at is None
        with pytest.raises(ValidationError):
            await service.skip_next(user, created.id, now=NOW)

    @pytest.mark.asyncio
    async def test_one_time_defaults_to_next_local_day(self, db_session: AsyncSession) -> None:
        user = await make_user(db_session)
        service = ScheduleService(db_session)

        today = await service.create(
            user,
            ScheduleIn(wakeup_time="07:00", timezone="UTC", is_recurring=False),
            now=NOW,
        )
        tomorrow = await service.create(
            user,
            ScheduleIn(wakeup_time="05:00", timezone="UTC", is_recurring=False),
            now=NOW,
        )

        assert today.date == date(2025, 6, 2)
        assert tomorrow.date == date(2025, 6, 3)
        assert tomorrow.next_call_at == datetime(2025, 6, 3, 5, 0, tzinfo=timezone.utc)

    @pytest.mark.asyncio
    async def test_one_time_in_the_past_rejected(self, db_session: AsyncSession) -> None:
        user = await make_user(db_session)
        service = ScheduleService(db_session)

        with pytest.raises(ValidationError):
            await service.create(
                user,
                ScheduleIn(wakeup_time="07:00", timezone="UTC", is_recurring=False, date=date(2025, 6, 1)),
                now=NOW,
            )

    @pytest.mark.asyncio
    async def test_resume_does_not_replay_missed_calls(self, db_session: AsyncSession) -> None:
        user = await make_user(db_session)
        service = ScheduleService(db_session)
        created = await service.create(user, ScheduleIn(**DAILY), now=NOW)

        await service.toggle(user, created.id, now=NOW)
        later = NOW + timedelta(hours=1, minutes=5)  # 07:05, after today's call
        resumed = await service.toggle(user, created.id, now=later)

        assert resumed.is_active is True
        assert resumed.next_call_at == datetime(2025, 6, 3, 7, 0, tzinfo=timezone.utc)
