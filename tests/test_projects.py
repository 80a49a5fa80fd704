def create_project(c, title="Roadmap", **extra):
    r = c.post("/projects", json={"title": title, **extra})
    assert r.status_code == 201, r.text
    return r.json()


def test_invite_scenario(make_user):
    a = make_user("a@test.com", "Alice")
    b = make_user("b@test.com", "Bob")
    project = create_project(a, description="Q3 work")

    r = a.post(f"/projects/{project['id']}/invite", json={"email": "b@test.com"})
    assert r.status_code == 201
    assert r.json()["role"] == "member"

    r = b.get(f"/projects/{project['id']}")
    assert r.status_code == 200
    members = {m["email"]: m for m in r.json()["members"]}
    assert members["b@test.com"]["role"] == "member"
    assert members["a@test.com"]["role"] == "admin"
    assert [p["id"] for p in b.get("/projects").json()] == [project["id"]]


def test_project_detail_lists_boards(make_user):
    a = make_user("a@test.com")
    project = create_project(a)
    board = a.post("/boards", json={"title": "Sprint", "projectId": project["id"]}).json()
    detail = a.get(f"/projects/{project['id']}").json()
    assert [b["id"] for b in detail["boards"]] == [board["id"]]
    assert detail["ownerId"] == a.user["id"]


def test_non_member_is_forbidden(make_user):
    a = make_user("a@test.com")
    c = make_user("c@test.com")
    project = create_project(a)
    r = c.get(f"/projects/{project['id']}")
    assert r.status_code == 403
    assert r.json() == {"error": "Forbidden"}
    assert c.patch(f"/projects/{project['id']}", json={"title": "x"}).status_code == 403
    assert c.post(f"/projects/{project['id']}/invite", json={"email": "c@test.com"}).status_code == 403


def test_missing_project_is_404(make_user):
    a = make_user("a@test.com")
    r = a.get("/projects/00000000-0000-0000-0000-000000000000")
    assert r.status_code == 404
    assert r.json() == {"error": "Project not found"}


def test_member_can_invite(make_user):
    a = make_user("a@test.com")
    b = make_user("b@test.com")
    make_user("c@test.com")
    project = create_project(a)
    a.post(f"/projects/{project['id']}/invite", json={"email": "b@test.com"})
    r = b.post(f"/projects/{project['id']}/invite", json={"email": "c@test.com"})
    assert r.status_code == 201


def test_invite_errors(make_user):
    a = make_user("a@test.com")
    make_user("b@test.com")
    project = create_project(a)
    r = a.post(f"/projects/{project['id']}/invite", json={"email": "ghost@test.com"})
    assert r.status_code == 404
    assert r.json() == {"error": "User not found"}
    assert a.post(f"/projects/{project['id']}/invite", json={"email": "b@test.com"}).status_code == 201
    r = a.post(f"/projects/{project['id']}/invite", json={"email": "b@test.com"})
    assert r.status_code == 400
    r = a.post(f"/projects/{project['id']}/invite", json={"email": "a@test.com"})
    assert r.status_code == 400


def test_owner_cannot_be_removed(make_user):
    a = make_user("a@test.com")
    project = create_project(a)
    r = a.delete(f"/projects/{project['id']}/members/{a.user['id']}")
    assert r.status_code == 400
    assert r.json() == {"error": "Cannot remove the project owner"}
    members = a.get(f"/projects/{project['id']}").json()["members"]
    assert [m["id"] for m in members] == [a.user["id"]]


def test_remove_member(make_user, published):
    a = make_user("a@test.com")
    b = make_user("b@test.com")
    project = create_project(a)
    a.post(f"/projects/{project['id']}/invite", json={"email": "b@test.com"})
    published.clear()

    r = a.delete(f"/projects/{project['id']}/members/{b.user['id']}")
    assert r.status_code == 200
    assert b.get(f"/projects/{project['id']}").status_code == 403
    assert (f"project-{project['id']}", "PROJECT_UPDATED") in published
    assert (f"user-{b.user['id']}", "USER_UPDATED") in published
    assert a.delete(f"/projects/{project['id']}/members/{b.user['id']}").status_code == 404


def test_plain_member_cannot_remove_others_but_can_leave(make_user):
    a = make_user("a@test.com")
    b = make_user("b@test.com")
    c = make_user("c@test.com")
    project = create_project(a)
    for email in ("b@test.com", "c@test.com"):
        a.post(f"/projects/{project['id']}/invite", json={"email": email})
    assert b.delete(f"/projects/{project['id']}/members/{c.user['id']}").status_code == 403
    assert b.delete(f"/projects/{project['id']}/members/{b.user['id']}").status_code == 200


def test_update_and_delete_project(make_user, published):
    a = make_user("a@test.com")
    b = make_user("b@test.com")
    project = create_project(a)
    board = a.post("/boards", json={"title": "Sprint", "projectId": project["id"]}).json()
    a.post(f"/projects/{project['id']}/invite", json={"email": "b@test.com"})

    r = a.patch(f"/projects/{project['id']}", json={"title": "Renamed", "description": ""})
    assert r.status_code == 200
    assert r.json()["title"] == "Renamed"
    assert r.json()["description"] is None

    assert b.delete(f"/projects/{project['id']}").status_code == 403
    published.clear()
    assert a.delete(f"/projects/{project['id']}").status_code == 200
    assert a.get(f"/projects/{project['id']}").status_code == 404
    assert a.get(f"/boards/{board['id']}").status_code == 404
    assert (f"board-{board['id']}", "BOARD_UPDATED") in published


def test_only_managers_can_invite_admins(make_user):
    a = make_user("a@test.com")
    b = make_user("b@test.com")
    c = make_user("c@test.com")
    make_user("d@test.com")
    make_user("e@test.com")
    project = create_project(a)
    a.post(f"/projects/{project['id']}/invite", json={"email": "b@test.com"})
    a.post(f"/projects/{project['id']}/invite", json={"email": "d@test.com"})

    r = b.post(f"/projects/{project['id']}/invite", json={"email": "c@test.com", "role": "admin"})
    assert r.status_code == 403
    assert r.json() == {"error": "Only project admins can invite admins"}
    assert c.get(f"/projects/{project['id']}").status_code == 403

    r = a.post(f"/projects/{project['id']}/invite", json={"email": "c@test.com", "role": "admin"})
    assert r.status_code == 201
    assert r.json()["role"] == "admin"
    r = c.post(f"/projects/{project['id']}/invite", json={"email": "e@test.com", "role": "admin"})
    assert r.status_code == 201
    d_id = next(m["id"] for m in a.get(f"/projects/{project['id']}").json()["members"] if m["email"] == "d@test.com")
    assert c.delete(f"/projects/{project['id']}/members/{d_id}").status_code == 200
