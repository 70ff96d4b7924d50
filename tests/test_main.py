import datetime as dt
import io
import json
import os
import sys
import threading
import unittest
from unittest.mock import MagicMock, patch

from bson import ObjectId

# Add the project root to sys.path so we can import main
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

# no live MongoDB during tests
with patch("backend.mongo.connect", side_effect=RuntimeError("storage disabled for tests")):
    import main

from mentor.errors import AuthenticationError, NetworkError
from mentor.mentor_ai import SCHEDULE_INSIGHT_FALLBACK, MentorAIUtil
from mentor.session import SessionStore


def quiz_reply(n=5):
    item = {
        "question": "Which colour has the longest wavelength?",
        "options": ["Blue", "Green", "Red", "Violet"],
        "correctAnswer": 2,
        "explanation": "Red light has the longest visible wavelength.",
        "memoryTip": "Red is relaxed, long waves",
    }
    return "Here is your quiz:\n```json\n" + json.dumps([item] * n) + "\n```"


class TestMain(unittest.TestCase):
    def setUp(self):
        self.app = main.server.test_client()
        self.app.testing = True

        # Mock Mongo
        main.mongo = MagicMock()
        self.mock_mongo = main.mongo

        # Mock the completion endpoint, keep the real orchestration
        self.gemini = MagicMock()
        main.ai_util = MentorAIUtil(gemini=self.gemini)

        main.sessions = SessionStore()
        self.exam_date = (dt.date.today() + dt.timedelta(days=14)).isoformat()

    def start_session(self, **extra):
        response = self.app.post("/api/startSession", json=dict({"username": "Alex"}, **extra))
        self.assertEqual(response.status_code, 201)
        return json.loads(response.data)["sessionID"]

    def onboard(self, session_id):
        self.app.post(f"/api/onboarding/{session_id}/next")
        self.app.post(f"/api/onboarding/{session_id}/next", json={"value": self.exam_date})
        self.app.post(f"/api/onboarding/{session_id}/next", json={"value": "Grade 10"})
        self.app.post(f"/api/onboarding/{session_id}/next", json={"value": "Physics"})
        response = self.app.post(f"/api/onboarding/{session_id}/skip")
        self.assertEqual(response.status_code, 200)
        return json.loads(response.data)

    def test_hello(self):
        response = self.app.get("/api/hello")
        self.assertEqual(json.loads(response.data), {"message": "API Working!"})

    def test_start_session_requires_name(self):
        response = self.app.post("/api/startSession", json={})
        self.assertEqual(response.status_code, 422)
        self.assertEqual(json.loads(response.data)["error"], "Please enter your name")

    def test_unknown_session(self):
        response = self.app.get(f"/api/chat/{ObjectId()}")
        self.assertEqual(response.status_code, 404)

    def test_onboarding_flow(self):
        session_id = self.start_session()

        response = self.app.post(f"/api/onboarding/{session_id}/next")
        self.assertEqual(json.loads(response.data)["state"], "awaiting_exam_date")

        response = self.app.post(f"/api/onboarding/{session_id}/next")
        data = json.loads(response.data)
        self.assertFalse(data["advanced"])
        self.assertEqual(data["message"], "Please choose your exam date")

        self.app.post(f"/api/onboarding/{session_id}/field", json={"name": "examDate", "value": self.exam_date})
        self.app.post(f"/api/onboarding/{session_id}/next")
        self.app.post(f"/api/onboarding/{session_id}/next", json={"value": "Grade 10"})
        response = self.app.post(f"/api/onboarding/{session_id}/back")
        data = json.loads(response.data)
        self.assertEqual(data["state"], "awaiting_academic_level")
        self.assertEqual(data["onboarding"]["academicLevel"], "Grade 10")

        self.app.post(f"/api/onboarding/{session_id}/next")
        self.app.post(f"/api/onboarding/{session_id}/next", json={"value": "Physics"})
        response = self.app.post(f"/api/onboarding/{session_id}/skip")
        data = json.loads(response.data)
        self.assertEqual(data["state"], "confirmed")
        self.assertEqual(data["configuration"]["subject"], "Physics")
        self.assertIn("14 days", data["greeting"]["text"])
        self.assertFalse(data["studyPlanSaved"])
        self.mock_mongo.user_study_plans.insert_one.assert_not_called()

        response = self.app.post(f"/api/onboarding/{session_id}/next")
        self.assertEqual(response.status_code, 409)

    def test_exam_date_cannot_be_cleared_after_its_step(self):
        session_id = self.start_session()
        self.app.post(f"/api/onboarding/{session_id}/next")
        self.app.post(f"/api/onboarding/{session_id}/next", json={"value": self.exam_date})
        self.app.post(f"/api/onboarding/{session_id}/next", json={"value": "Grade 10"})

        for value in ("", "2020-01-01"):
            response = self.app.post(
                f"/api/onboarding/{session_id}/field", json={"name": "examDate", "value": value}
            )
            self.assertEqual(response.status_code, 409)

        self.app.post(f"/api/onboarding/{session_id}/next", json={"value": "Physics"})
        response = self.app.post(f"/api/onboarding/{session_id}/skip")
        self.assertEqual(response.status_code, 200)
        data = json.loads(response.data)
        self.assertEqual(data["configuration"]["examDate"], self.exam_date)

        self.assertEqual(self.app.get(f"/api/onboarding/{session_id}").status_code, 200)
        self.assertEqual(self.app.get(f"/api/timetable/{session_id}").status_code, 200)

    def test_onboarding_saves_study_plan_for_signed_in_user(self):
        session_id = self.start_session(userId="user-1")
        self.mock_mongo.user_study_plans.insert_one.return_value.inserted_id = ObjectId()

        data = self.onboard(session_id)

        self.assertTrue(data["studyPlanSaved"])
        row = self.mock_mongo.user_study_plans.insert_one.call_args[0][0]
        self.assertEqual(row["user_id"], "user-1")
        self.assertEqual(row["subject"], "Physics")

    def test_syllabus_upload(self):
        session_id = self.start_session()
        for value in (None, self.exam_date, "Grade 10", "Physics"):
            body = {"value": value} if value else None
            self.app.post(f"/api/onboarding/{session_id}/next", json=body)

        response = self.app.post(
            f"/api/onboarding/{session_id}/files",
            data={"files": [
                (io.BytesIO(b"\x89PNG"), "diagram.png", "image/png"),
                (io.BytesIO(b"hello"), "notes.txt", "text/plain"),
            ]},
            content_type="multipart/form-data",
        )
        self.assertEqual(response.status_code, 200)
        data = json.loads(response.data)
        self.assertEqual([f["name"] for f in data["accepted"]], ["diagram.png"])
        self.assertEqual(data["rejected"], ["notes.txt is not a supported file type"])

        file_id = data["accepted"][0]["id"]
        response = self.app.delete(f"/api/onboarding/{session_id}/files/{file_id}")
        self.assertEqual(json.loads(response.data)["onboarding"]["syllabusFiles"], [])

    def test_upload_before_syllabus_step(self):
        session_id = self.start_session()
        response = self.app.post(
            f"/api/onboarding/{session_id}/files",
            data={"files": (io.BytesIO(b"\x89PNG"), "diagram.png", "image/png")},
            content_type="multipart/form-data",
        )
        self.assertEqual(response.status_code, 409)

    def test_chat(self):
        session_id = self.start_session()
        self.onboard(session_id)
        self.gemini.generate_text.return_value = "Light is an electromagnetic wave."

        response = self.app.post(f"/api/chat/{session_id}", json={"message": "What is light?"})

        self.assertEqual(response.status_code, 200)
        data = json.loads(response.data)
        self.assertEqual(data["reply"]["text"], "Light is an electromagnetic wave.")
        self.assertIn("Physics", self.gemini.generate_text.call_args[0][0])

        history = json.loads(self.app.get(f"/api/chat/{session_id}").data)
        self.assertEqual([m["isBot"] for m in history], [True, False, True])
        self.assertEqual(history[1]["text"], "What is light?")

    def test_concurrent_chat_is_rejected_without_orphan_message(self):
        session_id = self.start_session()
        self.onboard(session_id)
        started = threading.Event()
        release = threading.Event()

        def slow_reply(*args, **kwargs):
            started.set()
            release.wait(5)
            return "First answer"

        self.gemini.generate_text.side_effect = slow_reply
        statuses = []

        def first_send():
            client = main.server.test_client()
            statuses.append(client.post(f"/api/chat/{session_id}", json={"message": "first"}).status_code)

        worker = threading.Thread(target=first_send)
        worker.start()
        self.assertTrue(started.wait(5))
        try:
            response = self.app.post(f"/api/chat/{session_id}", json={"message": "second"})
            self.assertEqual(response.status_code, 409)
        finally:
            release.set()
            worker.join(5)

        self.assertEqual(statuses, [200])
        history = json.loads(self.app.get(f"/api/chat/{session_id}").data)
        self.assertEqual([m["text"] for m in history[1:]], ["first", "First answer"])

    def test_add_exam_insight_runs_under_the_session_guard(self):
        session_id = self.start_session()
        self.onboard(session_id)
        session = main.sessions.get(session_id)
        self.gemini.generate_text.return_value = "Study steadily."

        with session.flights.guard("scheduleInsight"):
            response = self.app.post(
                f"/api/timetable/{session_id}/add", json={"subject": "History", "examDate": self.exam_date}
            )

        self.assertEqual(response.status_code, 201)
        self.assertEqual(json.loads(response.data)["insight"], SCHEDULE_INSIGHT_FALLBACK)
        self.assertEqual(self.gemini.generate_text.call_count, 1)

    def test_chat_before_onboarding(self):
        session_id = self.start_session()
        response = self.app.post(f"/api/chat/{session_id}", json={"message": "hi"})
        self.assertEqual(response.status_code, 409)
        self.gemini.generate_text.assert_not_called()

    def test_chat_network_failure_is_shown_in_history(self):
        session_id = self.start_session()
        self.onboard(session_id)
        self.gemini.generate_text.side_effect = NetworkError("connection reset")

        response = self.app.post(f"/api/chat/{session_id}", json={"message": "What is light?"})

        self.assertEqual(response.status_code, 502)
        data = json.loads(response.data)
        self.assertIn("trouble connecting", data["error"])
        history = json.loads(self.app.get(f"/api/chat/{session_id}").data)
        self.assertEqual(history[-1]["text"], data["error"])

    def test_ai_not_initialized(self):
        main.ai_util = None
        session_id = self.start_session()
        response = self.app.get(f"/api/insight/{session_id}")
        self.assertEqual(response.status_code, 500)

    def test_quiz(self):
        session_id = self.start_session()
        self.onboard(session_id)
        self.gemini.generate_text.return_value = quiz_reply()

        response = self.app.post(f"/api/quiz/{session_id}", json={"topic": "Light"})
        self.assertEqual(response.status_code, 201)
        state = json.loads(response.data)
        self.assertEqual(state["total"], 5)
        self.assertNotIn("correctAnswer", state)

        response = self.app.post(f"/api/quiz/{session_id}/answer", json={"answer": 2})
        feedback = json.loads(response.data)
        self.assertTrue(feedback["isCorrect"])
        self.assertEqual(feedback["score"], 1)

        response = self.app.post(f"/api/quiz/{session_id}/answer", json={"answer": 1})
        self.assertEqual(response.status_code, 409)

        response = self.app.post(f"/api/quiz/{session_id}/next")
        self.assertEqual(json.loads(response.data)["index"], 1)

    def test_quiz_with_short_reply(self):
        session_id = self.start_session()
        self.onboard(session_id)
        self.gemini.generate_text.return_value = quiz_reply(4)

        response = self.app.post(f"/api/quiz/{session_id}", json={"topic": "Light"})

        self.assertEqual(response.status_code, 502)
        response = self.app.get(f"/api/quiz/{session_id}")
        self.assertEqual(response.status_code, 422)

    def test_flashcards(self):
        session_id = self.start_session()
        cards = [{"question": f"Q{i}", "answer": f"A{i}"} for i in range(5)]
        self.gemini.generate_text.return_value = json.dumps(cards)

        response = self.app.post(
            f"/api/tools/{session_id}/flashcards", json={"topic": "Cells", "difficulty": "beginner"}
        )

        self.assertEqual(response.status_code, 200)
        self.assertEqual(json.loads(response.data)[4], {"question": "Q4", "answer": "A4"})

    def test_resources(self):
        session_id = self.start_session()
        resources = [{"title": f"T{i}", "type": "video", "description": "d"} for i in range(6)]
        self.gemini.generate_text.return_value = json.dumps(resources)

        response = self.app.post(f"/api/tools/{session_id}/resources", json={"topic": "Cells"})

        self.assertEqual(len(json.loads(response.data)), 6)

    def test_timetable(self):
        session_id = self.start_session()
        self.onboard(session_id)
        later = (dt.date.today() + dt.timedelta(days=40)).isoformat()
        self.gemini.generate_text.side_effect = ["Low priority, review weekly.", "Balance both exams."]

        response = self.app.post(f"/api/timetable/{session_id}/add", json={"subject": "History", "examDate": later})

        self.assertEqual(response.status_code, 201)
        data = json.loads(response.data)
        self.assertEqual(data["entry"]["priority"], "low")
        self.assertEqual(data["entry"]["aiRecommendation"], "Low priority, review weekly.")
        self.assertEqual(data["insight"], "Balance both exams.")
        self.assertEqual([e["subject"] for e in data["timetable"]], ["Physics", "History"])
        self.assertEqual(data["timetable"][0]["daysLeft"], 14)

        exam_id = data["entry"]["id"]
        response = self.app.post(f"/api/timetable/{session_id}/{exam_id}/hours", json={"hours": 5})
        self.assertEqual(json.loads(response.data)["progress"], 50)

    def test_timetable_add_fails_when_recommendation_fails(self):
        session_id = self.start_session()
        self.onboard(session_id)
        self.gemini.generate_text.side_effect = NetworkError("down")

        response = self.app.post(
            f"/api/timetable/{session_id}/add", json={"subject": "History", "examDate": self.exam_date}
        )

        self.assertEqual(response.status_code, 502)
        timetable = json.loads(self.app.get(f"/api/timetable/{session_id}").data)
        self.assertEqual(len(timetable), 1)

    def test_timetable_add_requires_fields(self):
        session_id = self.start_session()
        response = self.app.post(f"/api/timetable/{session_id}/add", json={"subject": "History"})
        self.assertEqual(response.status_code, 422)
        self.assertEqual(json.loads(response.data)["error"], "Please fill in both subject and exam date")

    def test_timer(self):
        session_id = self.start_session()
        data = json.loads(self.app.post(f"/api/timer/{session_id}/start").data)
        self.assertTrue(data["running"])
        data = json.loads(self.app.post(f"/api/timer/{session_id}/pause").data)
        self.assertFalse(data["running"])
        data = json.loads(self.app.post(f"/api/timer/{session_id}/reset").data)
        self.assertEqual(data["display"], "00:00:00")

    def test_end_session(self):
        session_id = self.start_session()
        response = self.app.delete(f"/api/endSession/{session_id}")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(self.app.get(f"/api/timer/{session_id}").status_code, 404)

    def test_subjects_fall_back_to_defaults(self):
        main.mongo = None
        data = json.loads(self.app.get("/api/subjects").data)
        self.assertIn("Physics", [row["name"] for row in data])

    def test_subjects_from_storage(self):
        self.mock_mongo.subjects.find.return_value.sort.return_value = [{"_id": ObjectId(), "name": "Astronomy"}]
        data = json.loads(self.app.get("/api/subjects").data)
        self.assertEqual([row["name"] for row in data], ["Astronomy"])

    def test_sign_in_failure(self):
        with patch("main.storage.sign_in", side_effect=AuthenticationError()):
            response = self.app.post("/api/signIn", json={"email": "a@b.c", "password": "nope"})
        self.assertEqual(response.status_code, 401)
        self.assertEqual(json.loads(response.data)["error"], "Invalid email or password")


if __name__ == "__main__":
    unittest.main()
