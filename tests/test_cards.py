from datetime import datetime, timedelta, timezone

import pytest


@pytest.mark.asyncio
async def test_create_card_shapes_response(client, cs_card, cs_dept):
    assert cs_card["title"] == "Course Outlines"
    assert cs_card["allowedFileTypes"] == "pdf,docx"
    assert cs_card["departmentNames"] == "Computer Science"
    assert cs_card["displayDepartment"]["code"] == "CS"
    assert cs_card["file_count"] == 0
    assert cs_card["is_expired"] is False


@pytest.mark.asyncio
async def test_card_requires_title_and_department(client, admin_headers, cs_dept):
    res = await client.post("/cards", json={"title": "  ", "departmentIds": [cs_dept.id]}, headers=admin_headers)
    assert res.status_code == 422

    res = await client.post("/cards", json={"title": "No departments"}, headers=admin_headers)
    assert res.status_code == 422


@pytest.mark.asyncio
async def test_card_with_unknown_department(client, admin_headers):
    res = await client.post("/cards", json={"title": "X", "departmentId": 999}, headers=admin_headers)
    assert res.status_code == 400


@pytest.mark.asyncio
async def test_head_creates_card_only_for_own_department(client, head_headers, head_user, cs_dept, it_dept):
    ok = await client.post(
        "/cards",
        json={"title": "Lab Reports", "departmentId": cs_dept.id, "headId": head_user.id},
        headers=head_headers,
    )
    assert ok.status_code == 201, ok.text
    assert ok.json()["head_id"] == head_user.id

    other = await client.post("/cards", json={"title": "Nope", "departmentId": it_dept.id}, headers=head_headers)
    assert other.status_code == 403


@pytest.mark.asyncio
async def test_staff_cannot_create_cards(client, staff_headers, cs_dept):
    res = await client.post("/cards", json={"title": "X", "departmentId": cs_dept.id}, headers=staff_headers)
    assert res.status_code == 403


@pytest.mark.asyncio
async def test_head_id_must_be_a_head(client, admin_headers, cs_dept, staff_user):
    res = await client.post(
        "/cards",
        json={"title": "X", "departmentId": cs_dept.id, "headId": staff_user.id},
        headers=admin_headers,
    )
    assert res.status_code == 400


@pytest.mark.asyncio
async def test_list_cards_scoped_to_department(client, admin_headers, staff_headers, it_staff_headers, cs_card, it_dept):
    it_card = await client.post("/cards", json={"title": "IT Policies", "departmentId": it_dept.id}, headers=admin_headers)
    assert it_card.status_code == 201

    everything = await client.get("/cards", headers=admin_headers)
    assert {c["title"] for c in everything.json()} == {"Course Outlines", "IT Policies"}

    only_cs = await client.get("/cards", params={"departmentId": it_dept.id}, headers=staff_headers)
    assert [c["title"] for c in only_cs.json()] == ["Course Outlines"]

    only_it = await client.get("/cards", headers=it_staff_headers)
    assert [c["title"] for c in only_it.json()] == ["IT Policies"]


@pytest.mark.asyncio
async def test_list_cards_search_and_sort(client, admin_headers, cs_dept, cs_card):
    await client.post("/cards", json={"title": "Attendance", "departmentId": cs_dept.id}, headers=admin_headers)

    by_title = await client.get("/cards", params={"sort": "title"}, headers=admin_headers)
    assert [c["title"] for c in by_title.json()] == ["Attendance", "Course Outlines"]

    search = await client.get("/cards", params={"search": "outline"}, headers=admin_headers)
    assert [c["title"] for c in search.json()] == ["Course Outlines"]

    bad = await client.get("/cards", params={"sort": "size"}, headers=admin_headers)
    assert bad.status_code == 400


@pytest.mark.asyncio
async def test_card_detail_access(client, staff_headers, it_staff_headers, cs_card):
    ok = await client.get(f"/cards/{cs_card['id']}", headers=staff_headers)
    assert ok.status_code == 200
    assert ok.json()["files"] == []

    denied = await client.get(f"/cards/{cs_card['id']}", headers=it_staff_headers)
    assert denied.status_code == 403

    missing = await client.get("/cards/9999", headers=staff_headers)
    assert missing.status_code == 404


@pytest.mark.asyncio
async def test_update_card(client, admin_headers, cs_card, it_dept):
    res = await client.put(
        f"/cards/{cs_card['id']}",
        json={"title": "Outlines 2025", "departmentIds": [it_dept.id], "allowedFileTypes": ".PDF"},
        headers=admin_headers,
    )
    assert res.status_code == 200, res.text
    data = res.json()
    assert data["title"] == "Outlines 2025"
    assert data["departmentNames"] == "Information Technology"
    assert data["allowedFileTypes"] == "pdf"


@pytest.mark.asyncio
async def test_staff_cannot_update_or_delete(client, staff_headers, cs_card):
    assert (await client.put(f"/cards/{cs_card['id']}", json={"title": "x"}, headers=staff_headers)).status_code == 403
    assert (await client.delete(f"/cards/{cs_card['id']}", headers=staff_headers)).status_code == 403


@pytest.mark.asyncio
async def test_head_cannot_change_card_shared_with_other_departments(client, admin_headers, head_headers, cs_dept, it_dept):
    shared = await client.post(
        "/cards", json={"title": "Shared Forms", "departmentIds": [cs_dept.id, it_dept.id]}, headers=admin_headers,
    )
    assert shared.status_code == 201, shared.text
    card_id = shared.json()["id"]

    # still visible to the CS head
    assert (await client.get(f"/cards/{card_id}", headers=head_headers)).status_code == 200

    assert (await client.put(f"/cards/{card_id}", json={"title": "Renamed"}, headers=head_headers)).status_code == 403
    assert (await client.delete(f"/cards/{card_id}", headers=head_headers)).status_code == 403
    assert (await client.get(f"/cards/{card_id}", headers=admin_headers)).json()["title"] == "Shared Forms"


@pytest.mark.asyncio
async def test_head_manages_own_department_card(client, head_headers, cs_card):
    res = await client.put(f"/cards/{cs_card['id']}", json={"title": "Outlines v2"}, headers=head_headers)
    assert res.status_code == 200, res.text
    assert res.json()["title"] == "Outlines v2"
    assert (await client.delete(f"/cards/{cs_card['id']}", headers=head_headers)).status_code == 204


@pytest.mark.asyncio
async def test_expired_card_flag(client, admin_headers, cs_dept):
    past = (datetime.now(timezone.utc) - timedelta(days=1)).isoformat()
    res = await client.post(
        "/cards",
        json={"title": "Old", "departmentId": cs_dept.id, "expiresAt": past},
        headers=admin_headers,
    )
    assert res.status_code == 201
    assert res.json()["is_expired"] is True


@pytest.mark.asyncio
async def test_delete_card_removes_submissions(client, admin_headers, staff_headers, cs_card):
    upload = await client.post(
        f"/submissions/{cs_card['id']}",
        files={"file": ("a.pdf", b"data", "application/pdf")},
        headers=staff_headers,
    )
    assert upload.status_code == 201
    file_id = upload.json()["id"]

    res = await client.delete(f"/cards/{cs_card['id']}", headers=admin_headers)
    assert res.status_code == 204

    assert (await client.get(f"/cards/{cs_card['id']}", headers=admin_headers)).status_code == 404
    assert (await client.get(f"/submissions/details/{file_id}", headers=admin_headers)).status_code == 404


@pytest.mark.asyncio
async def test_analytics(client, admin_headers, staff_headers, head_headers, cs_card):
    await client.post(
        f"/submissions/{cs_card['id']}",
        files={"file": ("a.pdf", b"12345", "application/pdf")},
        headers=staff_headers,
    )
    res = await client.get("/cards/analytics", headers=admin_headers)
    assert res.status_code == 200
    data = res.json()
    assert data["totalCards"] == 1
    assert data["cardsByDepartment"] == {"Computer Science": 1}
    assert data["totalSubmissions"] == 1
    assert data["totalFiles"] == 1
    assert data["totalBytes"] == 5
    assert data["recentCards"][0]["title"] == "Course Outlines"

    assert (await client.get("/cards/analytics", headers=head_headers)).status_code == 403


@pytest.mark.asyncio
async def test_user_status(client, head_headers, staff_headers, cs_card):
    before = await client.get(f"/cards/{cs_card['id']}/status", headers=head_headers)
    assert before.status_code == 200
    assert before.json()["pendingCount"] == 1
    assert before.json()["submittedCount"] == 0

    await client.post(
        f"/submissions/{cs_card['id']}",
        files={"file": ("a.docx", b"doc", "application/octet-stream")},
        headers=staff_headers,
    )
    after = (await client.get(f"/cards/{cs_card['id']}/status", headers=head_headers)).json()
    assert after["submittedCount"] == 1
    assert after["users"][0]["name"] == "Sam Staff"
    assert after["users"][0]["hasSubmitted"] is True


@pytest.mark.asyncio
async def test_card_files_endpoint_filters_and_pages(client, admin_headers, staff_headers, cs_card):
    for name, body in [("big.pdf", b"x" * 300), ("small.pdf", b"x" * 10), ("mid.docx", b"x" * 100)]:
        res = await client.post(
            f"/submissions/{cs_card['id']}",
            files={"file": (name, body, "application/octet-stream")},
            data={"type": "Report" if name.endswith("docx") else "PDF"},
            headers=staff_headers,
        )
        assert res.status_code == 201, res.text

    res = await client.get(
        f"/cards/{cs_card['id']}/files",
        params={"sort": "size", "direction": "asc", "page_size": 2},
        headers=admin_headers,
    )
    assert res.status_code == 200
    data = res.json()
    assert [f["name"] for f in data["files"]] == ["small.pdf", "mid.docx"]
    assert data["total"] == 3
    assert data["pages"] == 2
    assert data["type_options"] == ["PDF", "Report"]
    assert data["my_count"] == 0

    mine = (await client.get(
        f"/cards/{cs_card['id']}/files", params={"mine": "true", "type": "PDF"}, headers=staff_headers,
    )).json()
    assert mine["filtered"] == 2
    assert mine["my_count"] == 3

    bad = await client.get(f"/cards/{cs_card['id']}/files", params={"sort": "bogus"}, headers=admin_headers)
    assert bad.status_code == 400
