from app.samaj.permissions import ALL_PERMISSIONS

URL = "/api/admin/roles"


def _role_id(client, headers, key):
    roles = client.get(f"{URL}/", headers=headers).json["data"]
    return next(r["id"] for r in roles if r["roleKey"] == key)


def test_catalogue_needs_permission(client, admin_headers, member_headers):
    assert client.get(f"{URL}/permissions", headers=member_headers).status_code == 403
    r = client.get(f"{URL}/permissions", headers=admin_headers)
    assert r.json["data"]["allPermissions"] == ALL_PERMISSIONS
    assert {"key": "canManageRoles", "label": "Manage roles"} in r.json["data"]["categories"]["settings"]


def test_list_puts_system_roles_first(client, admin_headers):
    client.post(f"{URL}/", headers=admin_headers, json={"roleName": "Auditor", "permissions": ["canViewUsers"]})
    r = client.get(f"{URL}/", headers=admin_headers)
    assert [x["roleKey"] for x in r.json["data"]][-1] == "auditor"
    assert {x["roleKey"] for x in r.json["data"][:3]} == {"admin", "user", "committee"}
    admin = next(x for x in r.json["data"] if x["roleKey"] == "admin")
    assert admin["userCount"] == 1
    assert admin["enabledPermissionsCount"] == len(ALL_PERMISSIONS)


def test_create_validation_and_duplicates(client, admin_headers):
    r = client.post(f"{URL}/", headers=admin_headers, json={"roleName": "ab", "permissions": {"canFly": True}})
    assert r.status_code == 400
    messages = [e["message"] for e in r.json["errors"]]
    assert "Role name must be between 3 and 50 characters" in messages
    assert "At least one permission must be enabled" in messages

    r = client.post(
        f"{URL}/",
        headers=admin_headers,
        json={"roleName": "Event Team", "permissions": {"canCreateEvents": True, "canEditEvents": False}},
    )
    assert r.status_code == 201
    data = r.json["data"]
    assert data["roleKey"] == "event_team"
    assert data["permissions"]["canCreateEvents"] is True
    assert data["permissions"]["canEditEvents"] is False
    assert data["isSystemRole"] is False

    r = client.post(f"{URL}/", headers=admin_headers, json={"roleName": "event team", "permissions": ["canViewUsers"]})
    assert r.status_code == 409


def test_update_custom_and_system_roles(client, admin_headers):
    role = client.post(f"{URL}/", headers=admin_headers, json={"roleName": "Helpers", "permissions": ["canViewUsers"]})
    role_id = role.json["data"]["id"]

    r = client.patch(
        f"{URL}/{role_id}",
        headers=admin_headers,
        json={"roleName": "Volunteers", "permissions": ["canViewUsers", "canSearchUsers"]},
    )
    assert r.json["data"]["roleName"] == "Volunteers"
    assert r.json["data"]["enabledPermissionsCount"] == 2

    user_role = _role_id(client, admin_headers, "user")
    r = client.patch(f"{URL}/{user_role}", headers=admin_headers, json={"roleName": "Members"})
    assert r.status_code == 400
    assert r.json["message"] == "Cannot rename system roles"

    admin_role = _role_id(client, admin_headers, "admin")
    r = client.patch(f"{URL}/{admin_role}", headers=admin_headers, json={"permissions": ["canManageRoles"]})
    assert r.status_code == 400
    assert r.json["message"] == "Admin role must keep: canManageSettings"

    r = client.get("/api/admin/activity-logs/?actionType=role_updated", headers=admin_headers)
    assert r.json["total"] == 1
    assert r.json["data"][0]["details"]["changes"]["permissions"]["added"] == ["canSearchUsers"]


def test_delete_rules(client, admin_headers, ids):
    assert client.delete(f"{URL}/{_role_id(client, admin_headers, 'user')}", headers=admin_headers).status_code == 400

    role_id = client.post(
        f"{URL}/", headers=admin_headers, json={"roleName": "Temporary", "permissions": ["canViewUsers"]}
    ).json["data"]["id"]
    client.patch(f"{URL}/users/{ids['member']}/assign", headers=admin_headers, json={"roleId": role_id})
    r = client.delete(f"{URL}/{role_id}", headers=admin_headers)
    assert r.status_code == 400
    assert r.json["message"] == "Cannot delete role. 1 active users are assigned to this role"

    client.patch(
        f"{URL}/users/{ids['member']}/assign",
        headers=admin_headers,
        json={"roleId": _role_id(client, admin_headers, "user")},
    )
    assert client.delete(f"{URL}/{role_id}", headers=admin_headers).status_code == 200

    r = client.get(f"{URL}/?includeInactive=true", headers=admin_headers)
    assert any(x["id"] == role_id and x["isActive"] is False for x in r.json["data"])
    r = client.patch(f"{URL}/users/{ids['member']}/assign", headers=admin_headers, json={"roleId": role_id})
    assert r.status_code == 400


def test_assign_changes_effective_permissions(client, admin_headers, member_headers, ids):
    committee = _role_id(client, admin_headers, "committee")
    assert client.get("/api/users/", headers=member_headers).status_code == 403

    r = client.patch(f"{URL}/users/{ids['member']}/assign", headers=admin_headers, json={"roleId": committee})
    assert r.json["user"]["role"] == "committee"
    assert r.json["user"]["roleRef"]["roleKey"] == "committee"
    assert client.get("/api/users/", headers=member_headers).status_code == 200

    assert client.patch(f"{URL}/users/{ids['member']}/assign", headers=admin_headers, json={}).status_code == 400
    r = client.patch(f"{URL}/users/9999/assign", headers=admin_headers, json={"roleId": committee})
    assert r.status_code == 404


def test_initialize_is_idempotent(client, admin_headers):
    r = client.post(f"{URL}/initialize", headers=admin_headers)
    assert sorted(x["roleKey"] for x in r.json["data"]) == ["admin", "committee", "user"]
    assert "permissions" not in r.json["data"][0]
    assert len(client.get(f"{URL}/", headers=admin_headers).json["data"]) == 3
