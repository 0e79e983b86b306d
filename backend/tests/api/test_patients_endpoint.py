"""API tests for patients endpoints (no demo data)."""

import pytest
from httpx import AsyncClient


@pytest.mark.asyncio
async def test_patients_list_is_empty_without_seed(client: AsyncClient) -> None:
    response = await client.get("/api/v1/patients")

    assert response.status_code == 200
    assert response.json() == []


@pytest.mark.asyncio
async def test_create_and_get_patient(client: AsyncClient, sample_patient_data) -> None:
    response = await client.post("/api/v1/patients", json=sample_patient_data)

    assert response.status_code == 201
    created = response.json()
    assert created["name"] == "Jane Doe"
    assert created["email"] == "jane@x.com"
    assert created["phone"] == "555-0100"
    assert created["attachments"] == []

    response = await client.get(f"/api/v1/patients/{created['id']}")
    assert response.status_code == 200
    assert response.json()["id"] == created["id"]


@pytest.mark.asyncio
async def test_create_requires_name_email_phone(client: AsyncClient) -> None:
    response = await client.post("/api/v1/patients", json={"name": "No Contact"})

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_create_rejects_invalid_email(client: AsyncClient, sample_patient_data) -> None:
    response = await client.post(
        "/api/v1/patients", json={**sample_patient_data, "email": "not-an-email"}
    )

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_email_is_normalized_and_unique(client: AsyncClient, sample_patient_data) -> None:
    first = await client.post(
        "/api/v1/patients", json={**sample_patient_data, "email": "  Jane@X.com "}
    )
    assert first.status_code == 201
    assert first.json()["email"] == "jane@x.com"

    duplicate = await client.post(
        "/api/v1/patients",
        json={**sample_patient_data, "name": "Jane Again", "email": "JANE@x.com"},
    )
    assert duplicate.status_code == 400
    assert duplicate.json()["detail"] == "Email already registered"


@pytest.mark.asyncio
async def test_list_is_ordered_by_name(client: AsyncClient) -> None:
    for name, email in [("Zoe Zed", "zoe@x.com"), ("Adam Alpha", "adam@x.com")]:
        response = await client.post(
            "/api/v1/patients", json={"name": name, "email": email, "phone": "555-0111"}
        )
        assert response.status_code == 201

    response = await client.get("/api/v1/patients")

    assert [p["name"] for p in response.json()] == ["Adam Alpha", "Zoe Zed"]


@pytest.mark.asyncio
async def test_get_missing_patient(client: AsyncClient) -> None:
    response = await client.get("/api/v1/patients/999")

    assert response.status_code == 404


@pytest.mark.asyncio
async def test_update_patient_partial(client: AsyncClient, sample_patient_data) -> None:
    created = (await client.post("/api/v1/patients", json=sample_patient_data)).json()

    response = await client.put(
        f"/api/v1/patients/{created['id']}",
        json={"phone": "555-0199", "notes": "Prefers morning visits"},
    )

    assert response.status_code == 200
    updated = response.json()
    assert updated["phone"] == "555-0199"
    assert updated["notes"] == "Prefers morning visits"
    assert updated["name"] == "Jane Doe"
    assert updated["email"] == "jane@x.com"


@pytest.mark.asyncio
async def test_update_rejects_null_required_field(
    client: AsyncClient, sample_patient_data
) -> None:
    created = (await client.post("/api/v1/patients", json=sample_patient_data)).json()

    response = await client.put(f"/api/v1/patients/{created['id']}", json={"name": None})

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_update_email_conflict(client: AsyncClient, sample_patient_data) -> None:
    await client.post("/api/v1/patients", json=sample_patient_data)
    other = (
        await client.post(
            "/api/v1/patients",
            json={"name": "John Roe", "email": "john@x.com", "phone": "555-0101"},
        )
    ).json()

    response = await client.put(f"/api/v1/patients/{other['id']}", json={"email": "JANE@x.com"})

    assert response.status_code == 400


@pytest.mark.asyncio
async def test_update_missing_patient(client: AsyncClient) -> None:
    response = await client.put("/api/v1/patients/999", json={"phone": "555-0100"})

    assert response.status_code == 404


@pytest.mark.asyncio
async def test_delete_patient_then_not_found(client: AsyncClient, sample_patient_data) -> None:
    created = (await client.post("/api/v1/patients", json=sample_patient_data)).json()
    upload = await client.post(
        f"/api/v1/patients/{created['id']}/attachments",
        files={"file": ("xray.png", b"\x89PNG" + b"\x00" * 60, "image/png")},
    )
    assert upload.status_code == 201

    response = await client.delete(f"/api/v1/patients/{created['id']}")
    assert response.status_code == 204

    assert (await client.get(f"/api/v1/patients/{created['id']}")).status_code == 404
    attachments = await client.get(f"/api/v1/patients/{created['id']}/attachments")
    assert attachments.status_code == 404


@pytest.mark.asyncio
async def test_delete_patient_removes_stored_files(
    client: AsyncClient, sample_patient_data, tmp_storage_dir
) -> None:
    created = (await client.post("/api/v1/patients", json=sample_patient_data)).json()
    await client.post(
        f"/api/v1/patients/{created['id']}/attachments",
        files={"file": ("scan.jpg", b"\xff\xd8\xff" * 20, "image/jpeg")},
    )
    assert len(list(tmp_storage_dir.iterdir())) == 1

    await client.delete(f"/api/v1/patients/{created['id']}")

    assert list(tmp_storage_dir.iterdir()) == []


@pytest.mark.asyncio
async def test_delete_missing_patient(client: AsyncClient) -> None:
    response = await client.delete("/api/v1/patients/999")

    assert response.status_code == 404


class TestPatientRoles:
    """Role checks applied to patient routes."""

    @pytest.mark.asyncio
    async def test_dentist_can_read_but_not_create(
        self, client: AsyncClient, act_as, sample_patient_data
    ) -> None:
        act_as("dentist")

        assert (await client.get("/api/v1/patients")).status_code == 200
        response = await client.post("/api/v1/patients", json=sample_patient_data)
        assert response.status_code == 403
        assert response.json()["detail"] == "Insufficient permissions"

    @pytest.mark.asyncio
    async def test_receptionist_can_create_and_update(
        self, client: AsyncClient, act_as, sample_patient_data
    ) -> None:
        act_as("receptionist")

        created = await client.post("/api/v1/patients", json=sample_patient_data)
        assert created.status_code == 201
        response = await client.put(
            f"/api/v1/patients/{created.json()['id']}", json={"phone": "555-0142"}
        )
        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_only_admin_deletes(
        self, client: AsyncClient, act_as, sample_patient_data
    ) -> None:
        created = (await client.post("/api/v1/patients", json=sample_patient_data)).json()

        for role in ("dentist", "receptionist"):
            act_as(role)
            response = await client.delete(f"/api/v1/patients/{created['id']}")
            assert response.status_code == 403

        act_as("admin")
        assert (await client.delete(f"/api/v1/patients/{created['id']}")).status_code == 204
