import pytest
from fastapi.testclient import TestClient

from clinic_scheduler.auth.dependencies import get_current_actor
from clinic_scheduler.auth.jwt_handler import create_access_token
from clinic_scheduler.database import get_db
from clinic_scheduler.main import app
from clinic_scheduler.routes.common import get_lifecycle


@pytest.fixture
def client(db, clinic, lifecycle, monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setattr('clinic_scheduler.routes.availability_routes.ensure_database_ready', lambda: None)
    monkeypatch.setattr('clinic_scheduler.routes.appointment_routes.ensure_database_ready', lambda: None)

    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_lifecycle] = lambda: lifecycle
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def test_root(client) -> None:
    response = client.get('/')

    assert response.status_code == 200
    assert response.json() == {'status': 'Clinic Scheduler API Running'}


def test_requests_without_token_are_rejected(client) -> None:
    response = client.get('/appointments')

    assert response.status_code in (401, 403)


def test_invalid_token_is_rejected(client) -> None:
    response = client.get('/auth/me', headers={'Authorization': 'Bearer not-a-token'})

    assert response.status_code == 401
    assert response.json() == {'detail': 'Invalid token'}


def test_me_resolves_patient_client(client, clinic) -> None:
    token = create_access_token('pat@example.test', 'patient')

    response = client.get('/auth/me', headers={'Authorization': f'Bearer {token}'})

    assert response.status_code == 200
    assert response.json()['client_id'] == clinic.client.id
    assert response.json()['role'] == 'patient'


def test_slots_endpoint(client, clinic) -> None:
    response = client.get(
        '/availability/slots',
        params={'staff_id': clinic.staff.id, 'location_id': clinic.location.id, 'date': '2026-01-05'},
    )

    assert response.status_code == 200
    body = response.json()
    assert len(body) == 16
    assert body[0]['time'] == '09:00'
    assert body[0]['available'] is True


def test_booking_conflict_is_reported_as_409(client, clinic) -> None:
    app.dependency_overrides[get_current_actor] = lambda: clinic.patient
    payload = {
        'organization_id': clinic.org.id,
        'location_id': clinic.location.id,
        'client_id': clinic.client.id,
        'staff_id': clinic.staff.id,
        'service_id': clinic.free_service.id,
        'start_time': '2026-01-05T10:00:00Z',
    }

    first = client.post('/appointments', json=payload)
    second = client.post('/appointments', json=payload)

    assert first.status_code == 201
    assert first.json()['appointment']['status'] == 'scheduled'
    assert second.status_code == 409
    assert second.json() == {'detail': 'This time conflicts with an existing booking.'}


def test_invalid_window_payload_is_422(client, clinic) -> None:
    app.dependency_overrides[get_current_actor] = lambda: clinic.admin

    response = client.post(
        f'/availability/staff/{clinic.staff.id}/windows',
        json={'day_of_week': 9, 'start_time': '09:00', 'end_time': '10:00'},
    )

    assert response.status_code == 422
