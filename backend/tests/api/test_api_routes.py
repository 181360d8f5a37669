from datetime import datetime, timezone


def create_patient(api_client, auth_headers, telefono="3401234567"):
    res = api_client.post(
        "/patients",
        json={"nome": "Laura", "cognome": "Ferri", "telefono": telefono, "email": "laura@example.com"},
        headers=auth_headers,
    )
    assert res.status_code == 201, res.text
    return res.json()["id"]


def create_request(api_client, auth_headers, patient_id, urgenza="media"):
    res = api_client.post(
        "/requests",
        json={"patient_id": patient_id, "motivo": "Pulizia", "urgenza": urgenza},
        headers=auth_headers,
    )
    assert res.status_code == 201, res.text
    return res.json()["id"]


def create_slot(api_client, auth_headers, start, end):
    res = api_client.post(
        "/slots",
        json={"start_time": start.isoformat(), "end_time": end.isoformat()},
        headers=auth_headers,
    )
    assert res.status_code == 201, res.text
    return res.json()["slot_id"]


def utc(hour, minute=0):
    return datetime(2026, 3, 2, hour, minute, tzinfo=timezone.utc)


def test_health_is_public(api_client):
    res = api_client.get("/health")

    assert res.status_code == 200
    assert res.json() == {"status": "ok"}


def test_login_and_token_required(api_client):
    assert api_client.get("/patients").status_code == 401
    assert api_client.post("/auth/login", json={"password": "wrong"}).status_code == 401
    bad_token = {"Authorization": "Bearer not-a-token"}
    assert api_client.get("/patients", headers=bad_token).status_code == 401


def test_patient_crud(api_client, auth_headers):
    patient_id = create_patient(api_client, auth_headers)

    duplicate = api_client.post(
        "/patients",
        json={"nome": "Altro", "cognome": "Nome", "telefono": "3401234567"},
        headers=auth_headers,
    )
    updated = api_client.patch(
        f"/patients/{patient_id}",
        json={"nome": "Laura", "cognome": "Ferri", "telefono": "3409999999", "note": "Allergica"},
        headers=auth_headers,
    )
    found = api_client.get("/patients", params={"q": "ferri laura"}, headers=auth_headers)

    assert duplicate.status_code == 409, duplicate.text
    assert updated.status_code == 200, updated.text
    assert updated.json()["note"] == "Allergica"
    assert [p["id"] for p in found.json()] == [patient_id]

    deleted = api_client.delete(f"/patients/{patient_id}", headers=auth_headers)
    assert deleted.status_code == 200, deleted.text
    assert api_client.get(f"/patients/{patient_id}", headers=auth_headers).status_code == 404


def test_booking_flow(api_client, auth_headers):
    patient_id = create_patient(api_client, auth_headers)
    first = create_request(api_client, auth_headers, patient_id, "alta")
    second = create_request(api_client, auth_headers, patient_id)
    slot_id = create_slot(api_client, auth_headers, utc(9), utc(9, 30))
    other_slot = create_slot(api_client, auth_headers, utc(10), utc(10, 30))

    booked = api_client.post(f"/requests/{first}/schedule", json={"slot_id": slot_id}, headers=auth_headers)
    taken = api_client.post(f"/requests/{second}/schedule", json={"slot_id": slot_id}, headers=auth_headers)
    missing = api_client.post("/requests/missing/schedule", json={"slot_id": slot_id}, headers=auth_headers)

    assert booked.status_code == 200, booked.text
    appointment_id = booked.json()["appointment_id"]
    assert taken.status_code == 409
    assert taken.json()["detail"] == "Slot non disponibile"
    assert missing.status_code == 404

    by_request = api_client.get(f"/appointments/by-request/{first}", headers=auth_headers)
    assert by_request.status_code == 200, by_request.text
    assert by_request.json()["slot"]["id"] == slot_id
    assert by_request.json()["request"]["patient"]["cognome"] == "Ferri"

    moved = api_client.post(
        f"/appointments/{appointment_id}/reschedule", json={"slot_id": other_slot}, headers=auth_headers
    )
    assert moved.status_code == 200, moved.text
    slot = api_client.get(f"/slots/{slot_id}", headers=auth_headers).json()
    assert slot["is_available"] is True

    cancelled = api_client.post(f"/appointments/{appointment_id}/cancel", headers=auth_headers)
    assert cancelled.status_code == 200, cancelled.text
    request = api_client.get(f"/requests/{first}", headers=auth_headers).json()
    assert request["stato"] == "waiting"
    assert api_client.get("/appointments", headers=auth_headers).json() == []


def test_schedule_next_uses_injected_clock(api_client, auth_headers):
    patient_id = create_patient(api_client, auth_headers)
    request_id = create_request(api_client, auth_headers, patient_id)
    create_slot(api_client, auth_headers, utc(6), utc(6, 30))
    upcoming = create_slot(api_client, auth_headers, utc(8), utc(8, 30))

    next_slot = api_client.get("/slots/next", headers=auth_headers)
    booked = api_client.post(f"/requests/{request_id}/schedule-next", headers=auth_headers)

    assert next_slot.status_code == 200
    assert next_slot.json()["id"] == upcoming
    assert booked.status_code == 200, booked.text
    assert api_client.get("/slots/next", headers=auth_headers).status_code == 204

    again = api_client.post(f"/requests/{request_id}/schedule-next", headers=auth_headers)
    assert again.status_code == 409


def test_slot_block_and_overlap(api_client, auth_headers):
    block = api_client.post(
        "/slots/block",
        json={"date": "2026-03-03", "start_minute": 540, "end_minute": 660, "slot_duration_minutes": 30},
        headers=auth_headers,
    )
    repeat = api_client.post(
        "/slots/block",
        json={"date": "2026-03-03", "start_minute": 540, "end_minute": 600},
        headers=auth_headers,
    )
    overlap = api_client.post(
        "/slots",
        json={
            "start_time": datetime(2026, 3, 3, 8, 15, tzinfo=timezone.utc).isoformat(),
            "end_time": datetime(2026, 3, 3, 8, 45, tzinfo=timezone.utc).isoformat(),
        },
        headers=auth_headers,
    )
    listed = api_client.get(
        "/slots",
        params={"start": "2026-03-03T00:00:00+00:00", "end": "2026-03-03T23:59:00+00:00"},
        headers=auth_headers,
    )

    assert block.status_code == 201, block.text
    assert block.json() == {"success": True, "created": 4, "skipped": 0}
    assert repeat.json()["skipped"] == 2
    assert overlap.status_code == 409
    assert len(listed.json()) == 4
    assert listed.json()[0]["start_time"].startswith("2026-03-03T08:00:00")


def test_waiting_list_routes(api_client, auth_headers):
    patient_id = create_patient(api_client, auth_headers)
    low = create_request(api_client, auth_headers, patient_id, "bassa")
    high = create_request(api_client, auth_headers, patient_id, "alta")

    listed = api_client.get("/requests", headers=auth_headers)
    rejected = api_client.post(f"/requests/{low}/reject", json={"note": "Annullata"}, headers=auth_headers)
    again = api_client.post(f"/requests/{low}/reject", json={}, headers=auth_headers)
    note = api_client.patch(f"/requests/{high}/note", json={"note": "Mattina"}, headers=auth_headers)
    waiting = api_client.get("/requests", params={"stato": "waiting"}, headers=auth_headers)
    removed = api_client.delete(f"/requests/{high}", headers=auth_headers)

    assert [item["id"] for item in listed.json()] == [high, low]
    assert rejected.json()["stato"] == "rejected"
    assert again.status_code == 409
    assert note.json()["note"] == "Mattina"
    assert [item["id"] for item in waiting.json()] == [high]
    assert removed.status_code == 200
    patient_requests = api_client.get(f"/patients/{patient_id}/requests", headers=auth_headers)
    assert [item["id"] for item in patient_requests.json()] == [low]


def test_delete_booked_slot_is_refused(api_client, auth_headers):
    patient_id = create_patient(api_client, auth_headers)
    request_id = create_request(api_client, auth_headers, patient_id)
    slot_id = create_slot(api_client, auth_headers, utc(9), utc(9, 30))
    api_client.post(f"/requests/{request_id}/schedule", json={"slot_id": slot_id}, headers=auth_headers)

    refused = api_client.delete(f"/slots/{slot_id}", headers=auth_headers)
    missing = api_client.delete("/slots/missing", headers=auth_headers)

    assert refused.status_code == 409
    assert missing.status_code == 404
