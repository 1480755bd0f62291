import json
from io import BytesIO

from openpyxl import Workbook, load_workbook

from backoffice.services import spreadsheet


XLSX = spreadsheet.XLSX_MEDIA_TYPE


def _xlsx(rows) -> bytes:
    wb = Workbook()
    ws = wb.active
    for values in rows:
        ws.append(values)
    buf = BytesIO()
    wb.save(buf)
    return buf.getvalue()


def _employee(client, headers, **overrides):
    data = {
        "full_name": "Ayşe Yılmaz",
        "national_id": "12345678901",
        "birth_date": "1990-04-12",
        "social_security_no": "SGK-001",
        "start_date": "2022-01-10",
        "phone": "+90 555 000 00 00",
    }
    data.update(overrides)
    resp = client.post("/employees", json=data, headers=headers)
    assert resp.status_code == 201, resp.text
    return resp.json()


# ---------- auth ----------
def test_healthz(client):
    assert client.get("/healthz").json() == {"status": "ok"}


def test_login_and_me(client, auth_headers):
    me = client.get("/auth/me", headers=auth_headers)
    assert me.status_code == 200
    assert me.json()["email"] == "admin@example.com"
    assert "password_hash" not in me.json()


def test_login_rejects_bad_password(client, admin):
    resp = client.post("/auth/login", json={"email": "admin@example.com", "password": "nope"})
    assert resp.status_code == 401


def test_protected_routes_require_token(client):
    assert client.get("/employees").status_code == 401
    bad = {"Authorization": "Bearer not-a-jwt"}
    assert client.get("/employees", headers=bad).status_code == 401


def test_register_then_use_token(client):
    resp = client.post("/auth/register", json={"email": "new@example.com", "name": "New", "password": "secret1"})
    assert resp.status_code == 201
    body = resp.json()
    assert body["user"]["role"] == "USER"
    headers = {"Authorization": f"Bearer {body['access_token']}"}
    assert client.get("/employees", headers=headers).status_code == 200


def test_password_reset_flow(client, admin, credentials):
    assert client.post("/auth/password/forgot", json={"email": "ghost@example.com"}).json() == {"status": "ok"}
    assert client.post("/auth/password/forgot", json={"email": "admin@example.com"}).json() == {"status": "ok"}
    token = credentials.reset_tokens.list()[0].token

    resp = client.post("/auth/password/reset", json={"token": token, "new_password": "changed-pass"})
    assert resp.status_code == 200
    again = client.post("/auth/password/reset", json={"token": token, "new_password": "changed-again"})
    assert again.status_code == 400
    assert again.json()["error"] == "invalid_token"

    login = client.post("/auth/login", json={"email": "admin@example.com", "password": "changed-pass"})
    assert login.status_code == 200


# ---------- users ----------
def test_users_admin_only(client, auth_headers):
    resp = client.post(
        "/users",
        json={"email": "staff@example.com", "name": "Staff", "password": "secret1"},
        headers=auth_headers,
    )
    assert resp.status_code == 201
    listed = client.get("/users", headers=auth_headers).json()
    assert {u["email"] for u in listed} == {"admin@example.com", "staff@example.com"}
    assert [u["id"] for u in listed] == sorted(u["id"] for u in listed)

    login = client.post("/auth/login", json={"email": "staff@example.com", "password": "secret1"})
    staff_headers = {"Authorization": f"Bearer {login.json()['access_token']}"}
    assert client.get("/users", headers=staff_headers).status_code == 403


def test_admin_cannot_delete_self(client, auth_headers, admin):
    assert client.delete(f"/users/{admin.id}", headers=auth_headers).status_code == 400


# ---------- employees / inventory ----------
def test_employee_crud(client, auth_headers):
    emp = _employee(client, auth_headers)
    dup = client.post("/employees", json={**emp, "full_name": "Other"}, headers=auth_headers)
    assert dup.status_code == 409
    assert dup.json()["error"] == "conflict"

    patched = client.patch(f"/employees/{emp['id']}", json={"phone": "+90 555 111 11 11"}, headers=auth_headers)
    assert patched.json()["phone"] == "+90 555 111 11 11"
    assert patched.json()["full_name"] == emp["full_name"]

    assert client.delete(f"/employees/{emp['id']}", headers=auth_headers).status_code == 200
    missing = client.get(f"/employees/{emp['id']}", headers=auth_headers)
    assert missing.status_code == 404
    assert missing.json()["error"] == "not_found"


def test_employee_validation_error_shape(client, auth_headers):
    resp = client.post("/employees", json={"full_name": "X"}, headers=auth_headers)
    assert resp.status_code == 422


def test_assignment_with_missing_employee_is_dangling(client, auth_headers):
    item = client.post("/inventory", json={"name": "Kamera", "quantity": 3, "unit": "adet"}, headers=auth_headers).json()
    resp = client.post(
        "/assignments",
        json={"employee_id": "E1", "date": "2024-05-01", "items": [{"inventory_id": item["id"], "quantity": 1}]},
        headers=auth_headers,
    )
    assert resp.status_code == 409
    body = resp.json()
    assert body["error"] == "dangling_reference"
    assert body["details"]["id"] == "E1"
    assert client.get("/assignments", headers=auth_headers).json() == []


def test_inventory_delete_blocked_while_assigned(client, auth_headers):
    emp = _employee(client, auth_headers)
    item = client.post("/inventory", json={"name": "Kamera", "quantity": 3, "unit": "adet"}, headers=auth_headers).json()
    assignment = client.post(
        "/assignments",
        json={"employee_id": emp["id"], "date": "2024-05-01", "items": [{"inventory_id": item["id"], "quantity": 1}]},
        headers=auth_headers,
    ).json()

    blocked = client.delete(f"/inventory/{item['id']}", headers=auth_headers)
    assert blocked.status_code == 409
    assert blocked.json()["error"] == "referenced_entity"

    listed = client.get(f"/employees/{emp['id']}/assignments", headers=auth_headers).json()
    assert [a["id"] for a in listed] == [assignment["id"]]

    outcome = client.delete(f"/employees/{emp['id']}?cascade=true", headers=auth_headers).json()
    assert outcome["removed_dependents"] == [assignment["id"]]
    assert client.delete(f"/inventory/{item['id']}", headers=auth_headers).status_code == 200


def test_employee_documents(client, auth_headers):
    emp = _employee(client, auth_headers)
    resp = client.post(
        f"/employees/{emp['id']}/files",
        files=[("files", ("Kimlik.pdf", b"%PDF-1.4 id", "application/pdf"))],
        headers=auth_headers,
    )
    assert resp.status_code == 200
    result = resp.json()[0]
    assert result["ok"] is True

    doc = client.get(f"/employees/{emp['id']}/files/{result['document_id']}", headers=auth_headers)
    assert doc.content == b"%PDF-1.4 id"
    assert doc.headers["content-type"] == "application/pdf"


# ---------- proposals ----------
def test_proposal_totals_and_status_filter(client, auth_headers):
    payload = {
        "customer_name": "Acme",
        "project_name": "Launch film",
        "date": "2024-06-01",
        "discount": {"type": "percentage", "value": 10},
        "topics": [
            {"title": "Crew", "services": [{"name": "Camera", "quantity": 2, "days": 1, "unit_price": 1000}]},
        ],
    }
    created = client.post("/proposals", json=payload, headers=auth_headers)
    assert created.status_code == 201
    body = created.json()
    assert body["status"] == "draft"
    assert float(body["subtotal"]) == 2000
    assert float(body["total_amount"]) == 1800
    assert body["created_by"] == "Admin"

    client.patch(f"/proposals/{body['id']}", json={"status": "approved"}, headers=auth_headers)
    assert client.get("/proposals?status=draft", headers=auth_headers).json() == []
    approved = client.get("/proposals?status=approved", headers=auth_headers).json()
    assert [p["id"] for p in approved] == [body["id"]]


# ---------- rate cards ----------
def _card_payload(name="Acme"):
    return {
        "customer_name": name,
        "start_date": "2024-01-01",
        "end_date": "2024-12-31",
        "categories": [{"name": "Crew", "services": [{"name": "Camera Operator", "price": 5000}]}],
    }


def test_ratecard_export(client, auth_headers):
    card = client.post("/ratecards", json=_card_payload("Çekim Evi"), headers=auth_headers).json()
    resp = client.get(f"/ratecards/{card['id']}/export", headers=auth_headers)
    assert resp.status_code == 200
    assert resp.headers["content-type"] == XLSX
    assert 'filename="rate-card-Cekim Evi.xlsx"' in resp.headers["content-disposition"]
    ws = load_workbook(BytesIO(resp.content)).worksheets[0]
    assert [c.value for c in ws[5]][:3] == ["Kategori", "Hizmet Adı", "Birim Fiyat"]
    assert [c.value for c in ws[6]][:3] == ["Crew", "Camera Operator", "5000"]


def test_ratecard_pdf_document(client, auth_headers):
    card = client.post("/ratecards", json=_card_payload(), headers=auth_headers).json()
    resp = client.get(f"/ratecards/{card['id']}/document", headers=auth_headers)
    assert resp.status_code == 200
    assert resp.content.startswith(b"%PDF")
    assert 'filename="rate-card-Acme.pdf"' in resp.headers["content-disposition"]


def test_ratecard_template_preview_and_import(client, auth_headers):
    template = client.get("/ratecards/template", headers=auth_headers)
    assert template.status_code == 200

    files = {"file": ("template.xlsx", template.content, XLSX)}
    preview = client.post("/ratecards/preview", files=files, headers=auth_headers)
    assert preview.status_code == 200
    assert preview.json()["customer_name"] == "Test Müşteri"
    assert client.get("/ratecards", headers=auth_headers).json() == []

    imported = client.post("/ratecards/import", files=files, headers=auth_headers)
    assert imported.status_code == 201
    card = imported.json()
    assert card["source_file"]
    assert len(card["categories"]) == 3

    duplicate = client.post("/ratecards/import", files=files, headers=auth_headers)
    assert duplicate.status_code == 409


def test_ratecard_preview_reports_row_errors(client, auth_headers):
    data = _xlsx([
        ["Müşteri Adı:", "Acme"],
        ["Başlangıç Tarihi:", "-"],
        ["Bitiş Tarihi:", "-"],
        [],
        ["Kategori", "Hizmet Adı", "Birim Fiyat"],
        ["Crew", "Camera", "abc"],
    ])
    resp = client.post("/ratecards/preview", files={"file": ("x.xlsx", data, XLSX)}, headers=auth_headers)
    assert resp.status_code == 400
    body = resp.json()
    assert body["error"] == "validation_error"
    assert body["details"][0]["row"] == 6


def test_ratecard_upload_multi_customer(client, auth_headers, today):
    client.post("/ratecards", json=_card_payload("Globex"), headers=auth_headers)
    data = _xlsx([
        ["Müşteri", "Kategori", "Hizmet", "Birim Fiyat"],
        ["Acme", "Crew", "Camera", "1.250,00"],
        ["Globex", "Post", "Edit", "400"],
    ])
    resp = client.post("/ratecards/upload", files={"file": ("bulk.xlsx", data, XLSX)}, headers=auth_headers)
    assert resp.status_code == 200
    results = {r["customer_name"]: r for r in resp.json()}
    assert results["Acme"]["ok"] is True
    assert results["Globex"]["ok"] is False

    acme = client.get(f"/ratecards/{results['Acme']['id']}", headers=auth_headers).json()
    assert acme["start_date"] == today.isoformat()
    assert float(acme["categories"][0]["services"][0]["price"]) == 1250


def test_ratecard_rejects_empty_upload(client, auth_headers):
    resp = client.post("/ratecards/preview", files={"file": ("x.xlsx", b"", XLSX)}, headers=auth_headers)
    assert resp.status_code == 400


# ---------- notes ----------
def test_note_with_files_and_pdf(client, auth_headers):
    resp = client.post(
        "/notes",
        data={"customer_name": "Acme", "subject": "Kickoff", "content": "Toplantı notları", "date": "2024-03-15"},
        files=[
            ("files", ("plan.pdf", b"%PDF plan", "application/pdf")),
            ("files", ("photo.jpg", b"jpeg", "image/jpeg")),
        ],
        headers=auth_headers,
    )
    assert resp.status_code == 201, resp.text
    body = resp.json()
    note = body["note"]
    assert [u["ok"] for u in body["uploads"]] == [True, True]
    assert [f["path"] for f in note["files"]] == ["plan.pdf", "photo.jpg"]
    assert note["created_by"] == "Admin"

    got = client.get(f"/notes/{note['id']}/files/plan.pdf", headers=auth_headers)
    assert got.content == b"%PDF plan"

    pdf = client.get(f"/notes/{note['id']}/download", headers=auth_headers)
    assert pdf.content.startswith(b"%PDF")
    assert 'filename="Not-Acme-15.03.2024.pdf"' in pdf.headers["content-disposition"]

    kept = client.put(
        f"/notes/{note['id']}",
        data={"subject": "Kickoff v2", "existing_files": json.dumps(["plan.pdf"])},
        headers=auth_headers,
    )
    assert kept.status_code == 200, kept.text
    updated = kept.json()["note"]
    assert updated["subject"] == "Kickoff v2"
    assert [f["path"] for f in updated["files"]] == ["plan.pdf"]
    assert client.get(f"/notes/{note['id']}/files/photo.jpg", headers=auth_headers).status_code == 404


def test_note_keep_list_must_be_json(client, auth_headers):
    note = client.post(
        "/notes",
        data={"customer_name": "Acme", "subject": "S", "content": "C", "date": "2024-03-15"},
        headers=auth_headers,
    ).json()["note"]
    resp = client.put(f"/notes/{note['id']}", data={"existing_files": "plan.pdf"}, headers=auth_headers)
    assert resp.status_code == 400
