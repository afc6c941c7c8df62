from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from portal.core.config import settings
from portal.models.user import UserType
from portal.services.auth_service import create_user


async def upload(client, card_id, headers, name="report.pdf", body=b"%PDF data", **data):
    return await client.post(
        f"/submissions/{card_id}",
        files={"file": (name, body, "application/pdf")},
        data=data,
        headers=headers,
    )


@pytest.mark.asyncio
async def test_upload_stores_file_and_metadata(client, staff_headers, staff_user, cs_card):
    res = await upload(client, cs_card["id"], staff_headers, title="Week 1", description="First week", type="Outline")
    assert res.status_code == 201, res.text
    item = res.json()
    assert item["title"] == "Week 1"
    assert item["name"] == "report.pdf"
    assert item["type"] == "Outline"
    assert item["size"] == len(b"%PDF data")
    assert item["user"]["id"] == staff_user.id
    assert item["path"].startswith(f"/uploads/cards/{cs_card['id']}/")
    assert item["url"] == item["path"]

    stored = Path(settings.UPLOAD_DIR) / item["path"][len("/uploads/"):]
    assert stored.read_bytes() == b"%PDF data"


@pytest.mark.asyncio
async def test_upload_defaults(client, staff_headers, cs_card):
    item = (await upload(client, cs_card["id"], staff_headers)).json()
    assert item["title"] == "report.pdf"
    assert item["type"] == "Document"


@pytest.mark.asyncio
async def test_upload_rejects_disallowed_extension(client, staff_headers, cs_card):
    res = await upload(client, cs_card["id"], staff_headers, name="virus.exe")
    assert res.status_code == 400
    assert "not allowed" in res.json()["detail"]


@pytest.mark.asyncio
async def test_upload_rejects_empty_file(client, staff_headers, cs_card):
    res = await upload(client, cs_card["id"], staff_headers, body=b"")
    assert res.status_code == 400


@pytest.mark.asyncio
async def test_upload_to_expired_card(client, admin_headers, staff_headers, cs_dept):
    past = (datetime.now(timezone.utc) - timedelta(hours=1)).isoformat()
    card = (await client.post(
        "/cards", json={"title": "Closed", "departmentId": cs_dept.id, "expiresAt": past}, headers=admin_headers,
    )).json()
    res = await upload(client, card["id"], staff_headers)
    assert res.status_code == 400
    assert "expired" in res.json()["detail"]


@pytest.mark.asyncio
async def test_upload_other_department_forbidden(client, it_staff_headers, cs_card):
    res = await upload(client, cs_card["id"], it_staff_headers)
    assert res.status_code == 403


@pytest.mark.asyncio
async def test_upload_with_mismatched_department(client, staff_headers, cs_card, it_dept):
    res = await upload(client, cs_card["id"], staff_headers, departmentId=str(it_dept.id))
    assert res.status_code == 400


@pytest.mark.asyncio
async def test_my_submissions_include_card_title(client, staff_headers, cs_card):
    await upload(client, cs_card["id"], staff_headers)
    res = await client.get("/submissions/my", headers=staff_headers)
    assert res.status_code == 200
    data = res.json()
    assert len(data) == 1
    assert data[0]["card_title"] == "Course Outlines"


@pytest.mark.asyncio
async def test_list_card_submissions(client, staff_headers, head_headers, cs_card):
    await upload(client, cs_card["id"], staff_headers, name="a.pdf")
    await upload(client, cs_card["id"], staff_headers, name="b.pdf")
    res = await client.get(f"/submissions/{cs_card['id']}", headers=head_headers)
    assert res.status_code == 200
    assert {f["name"] for f in res.json()} == {"a.pdf", "b.pdf"}


@pytest.mark.asyncio
async def test_details_access_rules(client, staff_headers, head_headers, it_staff_headers, cs_card):
    item = (await upload(client, cs_card["id"], staff_headers)).json()

    assert (await client.get(f"/submissions/details/{item['id']}", headers=staff_headers)).status_code == 200
    assert (await client.get(f"/submissions/details/{item['id']}", headers=head_headers)).status_code == 200
    assert (await client.get(f"/submissions/details/{item['id']}", headers=it_staff_headers)).status_code == 403
    assert (await client.get("/submissions/details/9999", headers=staff_headers)).status_code == 404


@pytest.mark.asyncio
async def test_delete_removes_stored_file(client, staff_headers, cs_card):
    item = (await upload(client, cs_card["id"], staff_headers)).json()
    stored = Path(settings.UPLOAD_DIR) / item["path"][len("/uploads/"):]
    assert stored.exists()

    res = await client.delete(f"/submissions/{item['id']}", headers=staff_headers)
    assert res.status_code == 204
    assert not stored.exists()
    assert (await client.get("/submissions/my", headers=staff_headers)).json() == []


@pytest.mark.asyncio
async def test_other_staff_cannot_delete(client, session, headers_for, staff_headers, cs_card, cs_dept):
    colleague = await create_user(
        session, username="colleague", email="colleague@psu.edu", password="Secret123!",
        user_type=UserType.STAFF, department_id=cs_dept.id,
    )
    item = (await upload(client, cs_card["id"], staff_headers)).json()
    res = await client.delete(f"/submissions/{item['id']}", headers=headers_for(colleague))
    assert res.status_code == 403
