from datetime import timedelta
from decimal import Decimal

from medbook.config.constants import NO_AVAILABILITY_MESSAGE
from medbook.db.crud.doctor import set_verified
from medbook.db.models import AppointmentModel
from tests._helpers import auth_headers, next_weekday, utc_today


def _rule(day, start="09:00", end="17:00", duration=30, active=True):
    return {
        "day_of_week": day,
        "start_time": start,
        "end_time": end,
        "slot_duration_minutes": duration,
        "is_active": active,
    }


async def test_day_availability(client, doctor, weekday_rules, monday):
    r = await client.get(f"/doctors/{doctor.id}/availability", params={"date": monday.isoformat()})

    body = r.json()
    assert r.status_code == 200
    assert body["configured"] is True
    assert body["day_of_week"] == 1
    assert body["slot_duration_minutes"] == 30
    assert len(body["availability"]) == 16
    assert body["availability"][0] == {"start_time": "09:00", "end_time": "09:30", "available": True}
    assert body["doctor"]["id"] == doctor.id


async def test_day_without_rule(client, doctor, weekday_rules):
    sunday = next_weekday(0)
    r = await client.get(f"/doctors/{doctor.id}/availability", params={"date": sunday.isoformat()})

    body = r.json()
    assert r.status_code == 200
    assert body["availability"] == []
    assert body["configured"] is False
    assert body["message"] == NO_AVAILABILITY_MESSAGE


async def test_availability_for_unknown_doctor(client):
    r = await client.get("/doctors/999/availability", params={"date": "2030-01-07"})
    assert r.status_code == 404


async def test_availability_requires_date(client, doctor):
    r = await client.get(f"/doctors/{doctor.id}/availability")
    assert r.status_code == 422


async def test_doctor_replaces_schedule(client, doctor, weekday_rules):
    r = await client.put(
        "/doctors/availability",
        json={"availability": [_rule(2, "8:00", "12:00", 20), _rule(6, "10:00", "14:00", 60)]},
        headers=auth_headers(doctor),
    )

    assert r.status_code == 200
    assert [(a["day_of_week"], a["start_time"]) for a in r.json()["availability"]] == [(2, "08:00"), (6, "10:00")]

    current = await client.get("/doctors/availability", headers=auth_headers(doctor))
    assert [a["day_of_week"] for a in current.json()["availability"]] == [2, 6]

    monday = next_weekday(1)
    day = await client.get(f"/doctors/{doctor.id}/availability", params={"date": monday.isoformat()})
    assert day.json()["configured"] is False


async def test_invalid_schedule_is_rejected_atomically(client, doctor, weekday_rules):
    r = await client.put(
        "/doctors/availability",
        json={"availability": [_rule(2), _rule(3, duration=5)]},
        headers=auth_headers(doctor),
    )

    assert r.status_code == 400
    assert r.json()["errors"] == [
        {
            "field": "availability[1].slot_duration_minutes",
            "message": "Slot duration must be between 15 and 120 minutes",
        }
    ]

    current = await client.get("/doctors/availability", headers=auth_headers(doctor))
    assert [a["day_of_week"] for a in current.json()["availability"]] == [1, 2, 3, 4, 5]


async def test_patient_cannot_edit_schedule(client, patient):
    r = await client.put(
        "/doctors/availability", json={"availability": [_rule(1)]}, headers=auth_headers(patient)
    )
    assert r.status_code == 403


async def test_public_listing_shows_verified_only(client, db, doctor, other_doctor):
    await set_verified(db, other_doctor.id, False)

    r = await client.get("/doctors/")
    body = r.json()
    assert body["total"] == 1
    assert body["doctors"][0]["id"] == doctor.id
    assert body["doctors"][0]["consultation_fee"] == 100.0


async def test_listing_filters(client, doctor, other_doctor):
    by_specialization = await client.get("/doctors/", params={"specialization": "neuro"})
    assert [d["id"] for d in by_specialization.json()["doctors"]] == [other_doctor.id]

    by_name = await client.get("/doctors/", params={"search": "house"})
    assert by_name.json()["total"] == 2  # both fixture doctors share a surname


async def test_get_doctor(client, doctor):
    r = await client.get(f"/doctors/{doctor.id}")
    assert r.status_code == 200
    assert r.json()["license_number"] == "LIC-1"

    assert (await client.get("/doctors/9999")).status_code == 404


async def test_dashboard(client, db, patient, doctor):
    today = utc_today()
    for day, start, status in [
        (today, "09:00", "scheduled"),
        (today, "10:00", "completed"),
        (today + timedelta(days=3), "11:00", "confirmed"),
    ]:
        db.add(
            AppointmentModel(
                patient_id=patient.id,
                doctor_id=doctor.id,
                appointment_date=day,
                start_time=start,
                end_time=start[:3] + "30",
                status=status,
                consultation_fee=Decimal("100.00"),
                follow_up_required=False,
            )
        )
    await db.commit()

    r = await client.get("/doctors/dashboard", headers=auth_headers(doctor))

    body = r.json()
    assert r.status_code == 200
    assert [a["start_time"] for a in body["today_appointments"]] == ["09:00", "10:00"]
    assert body["today_appointments"][0]["patient"]["first_name"] == "Pat"
    assert [a["start_time"] for a in body["upcoming_appointments"]] == ["11:00"]
    assert body["monthly_stats"]["completed"] == 1


async def test_admin_verification_flow(client, admin, doctor, other_doctor):
    r = await client.put(
        f"/doctors/admin/{other_doctor.id}/verify",
        json={"is_verified": False},
        headers=auth_headers(admin),
    )
    assert r.status_code == 200
    assert r.json()["is_verified"] is False

    pending = await client.get(
        "/doctors/admin/all", params={"is_verified": "false"}, headers=auth_headers(admin)
    )
    assert [d["id"] for d in pending.json()["doctors"]] == [other_doctor.id]

    stats = await client.get("/doctors/admin/stats", headers=auth_headers(admin))
    assert stats.json() == {"total": 2, "verified": 1, "pending": 1}


async def test_verify_unknown_doctor(client, admin):
    r = await client.put("/doctors/admin/999/verify", json={"is_verified": True}, headers=auth_headers(admin))
    assert r.status_code == 404


async def test_admin_routes_need_admin(client, doctor):
    assert (await client.get("/doctors/admin/stats", headers=auth_headers(doctor))).status_code == 403
    assert (await client.get("/doctors/admin/all")).status_code == 401
