"""Tests for the public and admin question endpoints."""
from datetime import datetime, timedelta, UTC

import pytest

from superoptimised.models.base import QuestionType


class TestAdminQuestions:

    @pytest.mark.asyncio
    async def test_create_normalizes_config(self, client, admin_headers):
        response = await client.post("/admin/questions", headers=admin_headers, json={
            "title": "  Which colour?  ",
            "questionType": "multi-choice",
            "questionData": {"options": ["red", "green", "blue"]},
            "isActive": True,
        })

        assert response.status_code == 201
        data = response.json()
        assert data["title"] == "Which colour?"
        assert data["questionType"] == "multi-choice"
        assert data["questionData"]["maxSelections"] == 3
        assert data["questionData"]["options"][0] == {"id": "red", "label": "red"}

    @pytest.mark.asyncio
    async def test_create_rejects_bad_config(self, client, admin_headers):
        response = await client.post("/admin/questions", headers=admin_headers, json={
            "title": "Scale",
            "questionType": "rating-scale",
            "questionData": {"min": 5, "max": 1},
        })

        assert response.status_code == 400
        assert "rating-scale" in response.json()["detail"]

    @pytest.mark.asyncio
    async def test_create_rejects_inverted_schedule(self, client, admin_headers):
        now = datetime.now(UTC)
        response = await client.post("/admin/questions", headers=admin_headers, json={
            "title": "Window",
            "questionType": "binary",
            "questionData": {"optionA": "Yes", "optionB": "No"},
            "scheduledStart": now.isoformat(),
            "scheduledEnd": (now - timedelta(hours=1)).isoformat(),
        })

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_non_admin_is_forbidden(self, client, user_factory, auth_headers):
        user = await user_factory()

        response = await client.get("/admin/questions", headers=auth_headers(user))

        assert response.status_code == 403
        assert response.json()["detail"] == "admin_access_required"

    @pytest.mark.asyncio
    async def test_anonymous_is_unauthorized(self, client):
        response = await client.get("/admin/questions")

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_delete_deactivates(self, client, admin_headers, question_factory):
        question = await question_factory()

        response = await client.delete(f"/admin/questions/{question.question_id}", headers=admin_headers)

        assert response.status_code == 200
        assert response.json()["isActive"] is False
        public = await client.get(f"/questions/{question.question_id}")
        assert public.status_code == 404
        admin_view = await client.get(f"/admin/questions/{question.question_id}", headers=admin_headers)
        assert admin_view.status_code == 200

    @pytest.mark.asyncio
    async def test_reorder(self, client, admin_headers, question_factory):
        first = await question_factory(title="First")
        second = await question_factory(title="Second")

        response = await client.post("/admin/questions/reorder", headers=admin_headers, json=[
            {"questionId": str(first.question_id), "displayOrder": 2},
            {"questionId": str(second.question_id), "displayOrder": 1},
        ])

        assert response.json() == {"success": True, "updated": 2}
        listing = await client.get("/questions")
        assert [q["title"] for q in listing.json()] == ["Second", "First"]

    @pytest.mark.asyncio
    async def test_analytics_counts_voters(self, client, admin_headers, question_factory):
        question = await question_factory()
        for choice in ("A", "B"):
            client.cookies.clear()
            await client.post("/votes", json={
                "questionId": str(question.question_id), "response": {"selectedOption": choice},
            })

        response = await client.get(f"/admin/questions/{question.question_id}/analytics", headers=admin_headers)

        data = response.json()
        assert data["totalResponses"] == 2
        assert data["uniqueVoters"] == 2
        assert sum(data["responsesOverTime"].values()) == 2


class TestPublicQuestions:

    @pytest.mark.asyncio
    async def test_lists_only_live_questions(self, client, question_factory):
        await question_factory(title="Live")
        await question_factory(title="Hidden", is_active=False)
        await question_factory(title="Later", scheduled_start=datetime.now(UTC) + timedelta(days=1))

        response = await client.get("/questions")

        assert [q["title"] for q in response.json()] == ["Live"]

    @pytest.mark.asyncio
    async def test_category_filter(self, client, question_factory):
        await question_factory(title="Pricing", category="business")
        await question_factory(title="Stack", category="tech")

        response = await client.get("/questions", params={"category": "tech"})

        assert [q["title"] for q in response.json()] == ["Stack"]

    @pytest.mark.asyncio
    async def test_binary_results(self, client, question_factory):
        question = await question_factory(question_data={"optionA": "Ship", "optionB": "Wait"})
        for choice in ("A", "A", "B", "A"):
            client.cookies.clear()
            await client.post("/votes", json={
                "questionId": str(question.question_id), "response": {"selectedOption": choice},
            })

        response = await client.get(f"/questions/{question.question_id}/results")

        data = response.json()
        assert data["totalResponses"] == 4
        assert data["options"] == [
            {"option": "A", "label": "Ship", "count": 3, "percentage": 75},
            {"option": "B", "label": "Wait", "count": 1, "percentage": 25},
        ]

    @pytest.mark.asyncio
    async def test_rating_results(self, client, question_factory):
        question = await question_factory(QuestionType.RATING_SCALE)
        for rating in (2, 4, 4):
            client.cookies.clear()
            await client.post("/votes", json={
                "questionId": str(question.question_id), "response": {"rating": rating},
            })

        response = await client.get(f"/questions/{question.question_id}/results")

        data = response.json()
        assert data["averageRating"] == 3.33
        assert data["distribution"] == {"2": 1, "4": 2}

    @pytest.mark.asyncio
    async def test_results_for_unknown_question(self, client):
        response = await client.get("/questions/00000000-0000-0000-0000-000000000000/results")

        assert response.status_code == 404
