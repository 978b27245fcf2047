from datetime import timedelta

from expiry_tracker.models.reminder import ReminderStatus
from expiry_tracker.reminders import repository
from expiry_tracker.utils.timezone import today_local

from tests.conftest import auth_headers_for
from tests.helpers import reminders_for

API = "/api/v1/items"


def food_body(days_ahead=60, **overrides):
    body = {
        "name": "Greek yogurt",
        "category": "DAIRY",
        "storage_type": "REFRIGERATOR",
        "expiry_date": (today_local() + timedelta(days=days_ahead)).isoformat(),
        "quantity": "2 cups",
    }
    body.update(overrides)
    return body


def document_body(days_ahead=60, **overrides):
    body = {
        "name": "Passport",
        "document_type": "PASSPORT",
        "expiry_date": (today_local() + timedelta(days=days_ahead)).isoformat(),
        "document_number": "X1234567",
    }
    body.update(overrides)
    return body


def create_food(client, headers, **kwargs):
    response = client.post(f"{API}/food", json=food_body(**kwargs), headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


def test_create_food_item_schedules_reminders(client, db, queue, auth_headers):
    data = create_food(client, auth_headers)

    assert data["type"] == "FOOD"
    assert data["category"] == "DAIRY"
    assert data["status"] == "ACTIVE"
    assert len(queue.submitted) == 4
    assert len(reminders_for(db, data["id"], ReminderStatus.PENDING)) == 4


def test_create_document(client, queue, auth_headers):
    response = client.post(f"{API}/document", json=document_body(days_ahead=3), headers=auth_headers)

    assert response.status_code == 201
    data = response.json()
    assert data["type"] == "DOCUMENT"
    assert data["document_type"] == "PASSPORT"
    assert data["status"] == "EXPIRING_SOON"
    # Only the 1-day reminder is still ahead
    assert [job["payload"]["offset_days"] for job in queue.submitted] == [1]


def test_item_write_succeeds_when_queue_is_down(client, db, queue, auth_headers):
    queue.fail_submit = True

    data = create_food(client, auth_headers)

    assert data["id"]
    assert reminders_for(db, data["id"], ReminderStatus.PENDING) == []


def test_validation_errors(client, auth_headers):
    response = client.post(f"{API}/food", json=food_body(category="CHEESE"), headers=auth_headers)
    assert response.status_code == 422

    response = client.post(f"{API}/food", json=food_body(name=""), headers=auth_headers)
    assert response.status_code == 422


def test_requires_authentication(client):
    assert client.get(f"{API}/").status_code == 401


def test_list_filters_and_pagination(client, auth_headers):
    create_food(client, auth_headers, name="Milk", days_ahead=10)
    create_food(client, auth_headers, name="Cheese", days_ahead=40)
    client.post(f"{API}/document", json=document_body(), headers=auth_headers)

    everything = client.get(f"{API}/", headers=auth_headers).json()
    assert everything["total"] == 3
    assert [i["name"] for i in everything["items"]] == ["Milk", "Cheese", "Passport"]

    food = client.get(f"{API}/", params={"type": "FOOD"}, headers=auth_headers).json()
    assert {i["name"] for i in food["items"]} == {"Milk", "Cheese"}

    search = client.get(f"{API}/", params={"search": "chee"}, headers=auth_headers).json()
    assert [i["name"] for i in search["items"]] == ["Cheese"]

    before = (today_local() + timedelta(days=20)).isoformat()
    soon = client.get(f"{API}/", params={"expiring_before": before}, headers=auth_headers).json()
    assert [i["name"] for i in soon["items"]] == ["Milk"]

    page = client.get(
        f"{API}/", params={"limit": 2, "page": 2, "sort_by": "name", "sort_order": "desc"}, headers=auth_headers
    ).json()
    assert page["total_pages"] == 2
    assert [i["name"] for i in page["items"]] == ["Cheese"]

    assert client.get(f"{API}/", params={"limit": 500}, headers=auth_headers).status_code == 422


def test_expiring_and_stats(client, auth_headers):
    create_food(client, auth_headers, name="Bread", days_ahead=2)
    create_food(client, auth_headers, name="Old milk", days_ahead=-3)
    client.post(f"{API}/document", json=document_body(days_ahead=90), headers=auth_headers)

    expiring = client.get(f"{API}/expiring", headers=auth_headers).json()
    assert [i["name"] for i in expiring["items"]] == ["Bread"]

    stats = client.get(f"{API}/stats", headers=auth_headers).json()
    assert stats["total"] == 3
    assert stats["total_food"] == 2
    assert stats["total_documents"] == 1
    assert stats["expired"] == 1
    assert stats["expired_food"] == 1
    assert stats["expiring_soon"] == 1


def test_other_users_items_are_forbidden(client, make_user, auth_headers):
    item = create_food(client, auth_headers)
    intruder = auth_headers_for(make_user())

    assert client.get(f"{API}/food/{item['id']}", headers=intruder).status_code == 403
    assert client.delete(f"{API}/food/{item['id']}", headers=intruder).status_code == 403


def test_get_item_by_type(client, auth_headers):
    item = create_food(client, auth_headers)

    assert client.get(f"{API}/food/{item['id']}", headers=auth_headers).json()["name"] == "Greek yogurt"
    assert client.get(f"{API}/document/{item['id']}", headers=auth_headers).status_code == 404
    assert client.get(f"{API}/car/{item['id']}", headers=auth_headers).status_code == 404
    assert client.get(f"{API}/food/99999", headers=auth_headers).status_code == 404


def test_editing_expiry_reschedules(client, db, queue, auth_headers):
    item = create_food(client, auth_headers, days_ahead=60)
    old_times = {r.scheduled_for for r in reminders_for(db, item["id"], ReminderStatus.PENDING)}
    new_expiry = (today_local() + timedelta(days=90)).isoformat()

    response = client.patch(f"{API}/food/{item['id']}", json={"expiry_date": new_expiry}, headers=auth_headers)

    assert response.status_code == 200
    pending = reminders_for(db, item["id"], ReminderStatus.PENDING)
    assert len(pending) == 4
    assert not old_times & {r.scheduled_for for r in pending}
    assert len(queue.cancelled) == 4


def test_editing_other_fields_keeps_reminders(client, db, queue, auth_headers):
    item = create_food(client, auth_headers)

    response = client.patch(f"{API}/food/{item['id']}", json={"name": "Skyr"}, headers=auth_headers)

    assert response.json()["name"] == "Skyr"
    assert queue.cancelled == []
    assert len(queue.submitted) == 4


def test_delete_cancels_pending_reminders(client, db, queue, auth_headers):
    item = create_food(client, auth_headers)
    job_ids = {job["job_id"] for job in queue.submitted}

    response = client.delete(f"{API}/food/{item['id']}", headers=auth_headers)

    assert response.status_code == 200
    assert set(queue.cancelled) == job_ids
    assert reminders_for(db, status=ReminderStatus.PENDING) == []
    assert len(reminders_for(db, status=ReminderStatus.CANCELLED)) == 4
    assert client.get(f"{API}/food/{item['id']}", headers=auth_headers).status_code == 404


def test_photo_upload_and_removal(client, image_host, auth_headers):
    item = create_food(client, auth_headers)

    response = client.post(
        f"{API}/food/{item['id']}/photo",
        files={"file": ("yogurt.jpg", b"\xff\xd8\xff fake jpeg", "image/jpeg")},
        headers=auth_headers,
    )
    assert response.status_code == 200
    assert response.json()["photo_url"].startswith("https://images.test/")

    response = client.delete(f"{API}/food/{item['id']}/photo", headers=auth_headers)
    assert response.status_code == 200
    assert response.json()["photo_url"] is None
    assert image_host.deleted == image_host.uploaded


def test_photo_rejects_non_images_and_host_errors(client, image_host, auth_headers):
    item = create_food(client, auth_headers)

    response = client.post(
        f"{API}/food/{item['id']}/photo",
        files={"file": ("notes.txt", b"hello", "text/plain")},
        headers=auth_headers,
    )
    assert response.status_code == 400

    image_host.fail = True
    response = client.post(
        f"{API}/food/{item['id']}/photo",
        files={"file": ("yogurt.png", b"png", "image/png")},
        headers=auth_headers,
    )
    assert response.status_code == 502


def test_required_fields_cannot_be_nulled(client, auth_headers):
    food = create_food(client, auth_headers)
    document = client.post(f"{API}/document", json=document_body(), headers=auth_headers).json()

    for field in ("name", "category", "storage_type", "expiry_date"):
        response = client.patch(f"{API}/food/{food['id']}", json={field: None}, headers=auth_headers)
        assert response.status_code == 422
        assert response.json()["detail"][0]["loc"][-1] == field

    response = client.patch(f"{API}/document/{document['id']}", json={"document_type": None}, headers=auth_headers)
    assert response.status_code == 422

    # Optional fields can still be cleared
    response = client.patch(f"{API}/food/{food['id']}", json={"quantity": None}, headers=auth_headers)
    assert response.status_code == 200
    assert response.json()["quantity"] is None


def test_new_item_never_inherits_deleted_item_reminders(client, db, queue, auth_headers):
    old = create_food(client, auth_headers, days_ahead=60)
    sent = reminders_for(db, old["id"], ReminderStatus.PENDING)[0]
    repository.mark_sent(db, sent.id)
    client.delete(f"{API}/food/{old['id']}", headers=auth_headers)
    queue.submitted.clear()

    new = create_food(client, auth_headers, days_ahead=60)

    assert new["id"] != old["id"]
    assert len(queue.submitted) == 4
    assert len(reminders_for(db, new["id"], ReminderStatus.PENDING)) == 4
