import pytest


@pytest.mark.asyncio
async def test_admin_lists_everyone(client, admin_headers, head_user, staff_user, it_staff_user):
    res = await client.get("/users", headers=admin_headers)
    assert res.status_code == 200
    assert len(res.json()) == 4


@pytest.mark.asyncio
async def test_head_lists_own_department_only(client, head_headers, staff_user, it_staff_user):
    res = await client.get("/users", headers=head_headers)
    assert res.status_code == 200
    assert {u["username"] for u in res.json()} == {"head", "staff"}


@pytest.mark.asyncio
async def test_list_users_search_and_type(client, admin_headers, head_user, staff_user):
    res = await client.get("/users", params={"search": "SAM"}, headers=admin_headers)
    assert [u["username"] for u in res.json()] == ["staff"]

    heads = await client.get("/users", params={"user_type": "HEAD"}, headers=admin_headers)
    assert [u["username"] for u in heads.json()] == ["head"]


@pytest.mark.asyncio
async def test_staff_cannot_list_users(client, staff_headers):
    assert (await client.get("/users", headers=staff_headers)).status_code == 403


@pytest.mark.asyncio
async def test_admin_creates_verified_user(client, admin_headers, cs_dept):
    res = await client.post(
        "/users",
        json={
            "username": "newhead",
            "email": "newhead@psu.edu",
            "password": "LongEnough1",
            "userType": "HEAD",
            "departmentId": cs_dept.id,
            "firstName": "New",
        },
        headers=admin_headers,
    )
    assert res.status_code == 201, res.text
    assert res.json()["is_verified"] is True
    assert res.json()["department"]["name"] == "Computer Science"

    login = await client.post("/auth/login", json={"email": "newhead@psu.edu", "password": "LongEnough1"})
    assert login.status_code == 200
    assert login.json()["redirect"] == "/headdashboard"


@pytest.mark.asyncio
async def test_create_user_assignment_rules(client, admin_headers, cs_dept, staff_user):
    staff_no_dept = {"username": "x", "email": "x@psu.edu", "password": "LongEnough1", "userType": "STAFF"}
    assert (await client.post("/users", json=staff_no_dept, headers=admin_headers)).status_code == 400

    admin_with_dept = {**staff_no_dept, "userType": "ADMIN", "departmentId": cs_dept.id}
    assert (await client.post("/users", json=admin_with_dept, headers=admin_headers)).status_code == 400

    duplicate = {**staff_no_dept, "email": "staff@psu.edu", "departmentId": cs_dept.id}
    assert (await client.post("/users", json=duplicate, headers=admin_headers)).status_code == 409


@pytest.mark.asyncio
async def test_get_user_visibility(client, staff_headers, head_headers, it_staff_headers, staff_user):
    assert (await client.get(f"/users/{staff_user.id}", headers=staff_headers)).status_code == 200
    assert (await client.get(f"/users/{staff_user.id}", headers=head_headers)).status_code == 200
    assert (await client.get(f"/users/{staff_user.id}", headers=it_staff_headers)).status_code == 403
    assert (await client.get("/users/9999", headers=staff_headers)).status_code == 404


@pytest.mark.asyncio
async def test_self_update_profile(client, staff_headers, staff_user):
    res = await client.put(
        f"/users/{staff_user.id}",
        json={"firstName": "Samuel", "email": "samuel@psu.edu"},
        headers=staff_headers,
    )
    assert res.status_code == 200, res.text
    assert res.json()["first_name"] == "Samuel"
    assert res.json()["email"] == "samuel@psu.edu"
    assert res.json()["last_name"] == "Staff"


@pytest.mark.asyncio
async def test_only_admin_changes_role_or_department(client, staff_headers, admin_headers, staff_user, it_dept):
    res = await client.put(f"/users/{staff_user.id}", json={"departmentId": it_dept.id}, headers=staff_headers)
    assert res.status_code == 403

    res = await client.put(f"/users/{staff_user.id}", json={"departmentId": it_dept.id}, headers=admin_headers)
    assert res.status_code == 200
    assert res.json()["department"]["code"] == "IT"

    res = await client.put(f"/users/{staff_user.id}", json={"userType": "ADMIN"}, headers=admin_headers)
    assert res.status_code == 200
    assert res.json()["user_type"] == "ADMIN"
    assert res.json()["department_id"] is None


@pytest.mark.asyncio
async def test_cannot_edit_someone_else(client, staff_headers, head_user):
    res = await client.put(f"/users/{head_user.id}", json={"firstName": "X"}, headers=staff_headers)
    assert res.status_code == 403


@pytest.mark.asyncio
async def test_update_email_conflict(client, staff_headers, staff_user, head_user):
    res = await client.put(f"/users/{staff_user.id}", json={"email": "head@psu.edu"}, headers=staff_headers)
    assert res.status_code == 409


@pytest.mark.asyncio
async def test_avatar_upload(client, staff_headers, staff_user):
    png = b"\x89PNG\r\n\x1a\n" + b"0" * 32
    res = await client.post(
        f"/users/{staff_user.id}/avatar",
        files={"file": ("me.png", png, "image/png")},
        headers=staff_headers,
    )
    assert res.status_code == 200, res.text
    assert res.json()["avatar"].startswith(f"/uploads/avatars/{staff_user.id}/")

    bad = await client.post(
        f"/users/{staff_user.id}/avatar",
        files={"file": ("me.txt", b"hello", "text/plain")},
        headers=staff_headers,
    )
    assert bad.status_code == 400


@pytest.mark.asyncio
async def test_delete_user(client, admin_headers, admin_user, staff_user, staff_headers, cs_card):
    await client.post(
        f"/submissions/{cs_card['id']}",
        files={"file": ("a.pdf", b"data", "application/pdf")},
        headers=staff_headers,
    )

    assert (await client.delete(f"/users/{admin_user.id}", headers=admin_headers)).status_code == 400
    assert (await client.delete(f"/users/{staff_user.id}", headers=staff_headers)).status_code == 403

    res = await client.delete(f"/users/{staff_user.id}", headers=admin_headers)
    assert res.status_code == 204
    assert (await client.get(f"/users/{staff_user.id}", headers=admin_headers)).status_code == 404

    card = (await client.get(f"/cards/{cs_card['id']}", headers=admin_headers)).json()
    assert card["files"] == []
