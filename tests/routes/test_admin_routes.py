from conftest import application_payload, as_decimal


def _submit(client, path="/grants/applications", **overrides):
    resp = client.post(path, json=application_payload(**overrides))
    assert resp.status_code in (201, 202)
    return resp.json()["applicationId"]


def test_admin_routes_require_token(client):
    assert client.get("/admin/dashboard").status_code == 401
    assert client.get("/admin/applications").status_code == 401


def test_admin_routes_reject_non_admin(client, user_headers):
    resp = client.get("/admin/dashboard", headers=user_headers)
    assert resp.status_code == 403
    assert resp.json()["detail"] == "Access denied. Admin privileges required."


def test_admin_routes_reject_bad_token(client):
    resp = client.get("/admin/dashboard", headers={"Authorization": "Bearer not-a-token"})
    assert resp.status_code == 401


def test_dashboard_payload(client, admin_headers):
    grant_id = _submit(client, fundingInfo={"fundingAmount": 200000})
    _submit(client, path="/applications", fundingInfo={"fundingAmount": 5000, "fundingType": "Education"})
    client.patch(
        f"/admin/applications/{grant_id}/status",
        json={"status": "APPROVED"},
        headers=admin_headers,
    )

    resp = client.get("/admin/dashboard", headers=admin_headers)

    assert resp.status_code == 200
    body = resp.json()
    assert body["counts"] == {"total": 2, "pending": 1, "approved": 1, "rejected": 0, "underReview": 0}
    assert body["fundingStats"]["approvedCount"] == 1
    assert as_decimal(body["fundingStats"]["totalApproved"]) == as_decimal(200000)
    assert as_decimal(body["fundingStats"]["avgAmount"]) == as_decimal(200000)
    assert len(body["recentApplications"]) == 2
    assert "ssn" not in body["recentApplications"][0]
    assert {d["fundingType"] for d in body["fundingTypeDistribution"]} == {"Business", "Education"}


def test_list_applications_with_query_params(client, admin_headers):
    for i in range(3):
        _submit(client, fundingInfo={"fundingAmount": 100000 + i})
    _submit(client, path="/applications", fundingInfo={"fundingType": "Education"})

    resp = client.get(
        "/admin/applications",
        params={"fundingType": "Business", "sortBy": "fundingAmount", "sortDir": "asc", "page": 1, "limit": 2},
        headers=admin_headers,
    )

    assert resp.status_code == 200
    body = resp.json()
    assert body["totalCount"] == 3
    assert body["pageCount"] == 2
    assert body["pageSize"] == 2
    amounts = [as_decimal(item["fundingInfo"]["fundingAmount"]) for item in body["items"]]
    assert amounts == [as_decimal(100000), as_decimal(100001)]


def test_list_applications_rejects_bad_sort(client, admin_headers):
    resp = client.get("/admin/applications", params={"sortBy": "ssn"}, headers=admin_headers)
    assert resp.status_code == 400
    assert resp.json()["kind"] == "INVALID_QUERY"


def test_get_application_details(client, admin_headers):
    app_id = _submit(client)

    resp = client.get(f"/admin/applications/{app_id}", headers=admin_headers)

    assert resp.status_code == 200
    body = resp.json()
    assert body["personalInfo"]["ssnLast4"] == "6789"
    assert "ssn" not in body["personalInfo"]
    assert client.get("/admin/applications/missing", headers=admin_headers).status_code == 404


def test_update_status(client, admin_headers, published):
    app_id = _submit(client)

    resp = client.patch(
        f"/admin/applications/{app_id}/status",
        json={"status": "UNDER_REVIEW", "notes": "Checking documents"},
        headers=admin_headers,
    )

    assert resp.status_code == 200
    body = resp.json()
    assert body["message"] == "Application status updated successfully"
    assert body["application"]["status"] == "UNDER_REVIEW"
    assert body["application"]["notes"] == "Checking documents"
    history = body["application"]["statusHistory"]
    assert history[-1]["status"] == "UNDER_REVIEW"
    assert history[-1]["changedBy"] == "admin-1"
    assert published[-1] == ("status_changed", app_id, "admin-1")


def test_update_status_errors(client, admin_headers, published):
    app_id = _submit(client)

    bad = client.patch(f"/admin/applications/{app_id}/status", json={"status": "DONE"}, headers=admin_headers)
    missing = client.patch("/admin/applications/missing/status", json={"status": "APPROVED"}, headers=admin_headers)

    assert bad.status_code == 400
    assert bad.json()["kind"] == "INVALID_STATUS"
    assert missing.status_code == 404
    assert missing.json()["detail"] == "Application not found"
    assert [e for e in published if e[0] == "status_changed"] == []


def test_grant_crud(client, admin_headers):
    created = client.post(
        "/admin/grants",
        json={"title": "Arts Fund", "description": "Community murals", "category": "Arts", "amount": 2500},
        headers=admin_headers,
    )
    assert created.status_code == 201
    grant_id = created.json()["grant"]["id"]

    updated = client.put(f"/admin/grants/{grant_id}", json={"featured": True}, headers=admin_headers)
    assert updated.status_code == 200
    assert updated.json()["grant"]["featured"] is True
    assert updated.json()["grant"]["title"] == "Arts Fund"

    deleted = client.delete(f"/admin/grants/{grant_id}", headers=admin_headers)
    assert deleted.status_code == 200
    assert deleted.json()["grantId"] == grant_id

    assert client.delete(f"/admin/grants/{grant_id}", headers=admin_headers).status_code == 404
