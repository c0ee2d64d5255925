"""Public session API tests, including a full stakeholder interview end to end."""

import pytest

from discovery.api.dependencies import get_gateway
from discovery.gateway.fake import GatewayFake

pytestmark = pytest.mark.integration


def _answers(batch: dict) -> list[dict]:
    return [
        {
            "questionId": q["id"],
            "questionText": q["text"],
            "selectedOptionIds": [q["options"][0]["id"]],
            "selectedLabels": [q["options"][0]["label"]],
        }
        for q in batch["questions"]
    ]


@pytest.fixture
async def invitation(client, admin_headers, create_engagement):
    """Engagement "Acme Rollout" with one invited stakeholder, Jane Doe."""
    engagement = await create_engagement(context="Acme is rolling out a field-service platform.")
    response = await client.post(
        f"/api/admin/engagements/{engagement['id']}/sessions",
        json={"stakeholderName": "Jane Doe", "stakeholderRole": "Operations Director"},
        headers=admin_headers,
    )
    return {"engagement_id": engagement["id"], "token": response.json()["session"]["token"]}


async def test_full_interview_end_to_end(client, admin_headers, invitation):
    token = invitation["token"]

    meta = await client.get(f"/api/session/{token}")
    assert meta.status_code == 200
    session = meta.json()["session"]
    assert session["stakeholderName"] == "Jane Doe"
    assert session["engagementName"] == "Acme Rollout"
    assert session["engagementDescription"] == "Field-service rollout"
    assert session["status"] == "pending"

    first = (await client.post(f"/api/session/{token}/start")).json()["batch"]
    assert first["batchNumber"] == 1
    assert first["isComplete"] is False
    assert "allowNoneOfTheAbove" in first["questions"][0]

    second = (await client.post(f"/api/session/{token}/answer", json={"answers": _answers(first)})).json()["batch"]
    assert second["batchNumber"] == 2

    third = (await client.post(f"/api/session/{token}/answer", json={"answers": _answers(second)})).json()["batch"]
    assert third["batchNumber"] == 3
    assert third["isComplete"] is True

    submit = await client.post(f"/api/session/{token}/submit", json={"answers": _answers(third)})
    assert submit.status_code == 200
    assert submit.json() == {"submitted": True}

    detail = (
        await client.get(f"/api/admin/engagements/{invitation['engagement_id']}", headers=admin_headers)
    ).json()["engagement"]
    assert detail["sessions"][0]["status"] == "completed"
    assert detail["sessions"][0]["completed_at"] is not None
    result = detail["results"][0]
    assert len(result["answers_structured"]) == 9
    assert result["answers_structured"][0]["questionId"] == "q1_1"
    assert result["ai_summary"].startswith("Jane Doe completed 9 answers")
    assert result["priority_level"] == "high"

    listing = (await client.get("/api/admin/engagements", headers=admin_headers)).json()["engagements"]
    assert listing[0]["completed_count"] == 1

    again = await client.post(f"/api/session/{token}/start")
    assert again.status_code == 400
    assert again.json()["detail"] == "This session has already been completed"


async def test_start_twice_resumes_the_same_round(client, invitation):
    token = invitation["token"]

    first = (await client.post(f"/api/session/{token}/start")).json()["batch"]
    resumed = (await client.post(f"/api/session/{token}/start")).json()["batch"]

    assert resumed["batchNumber"] == first["batchNumber"] == 1
    meta = (await client.get(f"/api/session/{token}")).json()["session"]
    assert meta["status"] == "in_progress"


async def test_unknown_token_returns_404(client):
    for response in (
        await client.get("/api/session/" + "0" * 64),
        await client.post("/api/session/" + "0" * 64 + "/start"),
    ):
        assert response.status_code == 404
        assert response.json()["detail"] == "Invalid session token"


async def test_answer_without_answers_returns_400(client, invitation):
    token = invitation["token"]
    await client.post(f"/api/session/{token}/start")

    response = await client.post(f"/api/session/{token}/answer", json={"answers": []})

    assert response.status_code == 400


async def test_submit_without_body_before_start_reports_missing_state(client, invitation):
    response = await client.post(f"/api/session/{invitation['token']}/submit")

    assert response.status_code == 400
    assert response.json()["detail"].startswith("Session state not found")


async def test_submit_survives_summary_failure(app, client, admin_headers, invitation):
    token = invitation["token"]
    app.dependency_overrides[get_gateway] = lambda: GatewayFake(scenario="summary_failure")
    first = (await client.post(f"/api/session/{token}/start")).json()["batch"]

    response = await client.post(f"/api/session/{token}/submit", json={"answers": _answers(first)})

    assert response.status_code == 200
    detail = (
        await client.get(f"/api/admin/engagements/{invitation['engagement_id']}", headers=admin_headers)
    ).json()["engagement"]
    assert detail["results"][0]["ai_summary"] == ""
    assert len(detail["results"][0]["answers_structured"]) == 3


async def test_llm_failure_on_start_returns_500(app, client, invitation):
    app.dependency_overrides[get_gateway] = lambda: GatewayFake(scenario="llm_failure")

    response = await client.post(f"/api/session/{invitation['token']}/start")

    assert response.status_code == 500
    assert "debug_id" in response.json()
