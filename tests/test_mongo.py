import datetime as dt
import unittest
from unittest.mock import MagicMock, patch

from bson import ObjectId
from pymongo.errors import DuplicateKeyError
from werkzeug.security import generate_password_hash

from backend import mongo
from mentor.errors import AuthenticationError, ValidationError
from mentor.models import ExamConfiguration


class TestMongo(unittest.TestCase):
    def setUp(self):
        self.db = MagicMock()

    def test_connect_requires_settings(self):
        with patch.dict("os.environ", {}, clear=True):
            with self.assertRaises(RuntimeError):
                mongo.connect()

    def test_list_subjects(self):
        oid = ObjectId()
        self.db.subjects.find.return_value.sort.return_value = [
            {"_id": oid, "name": "Physics", "description": "Forces"},
            {"_id": ObjectId(), "name": ""},
        ]
        rows = mongo.list_subjects(self.db)
        self.assertEqual(rows, [{"id": str(oid), "name": "Physics", "description": "Forces"}])

    def test_list_academic_levels(self):
        oid = ObjectId()
        self.db.academic_levels.find.return_value.sort.return_value = [
            {"_id": oid, "name": "Grade 10", "grade_level": 10},
        ]
        rows = mongo.list_academic_levels(self.db)
        self.assertEqual(rows[0]["gradeLevel"], 10)
        self.assertEqual(rows[0]["id"], str(oid))

    def test_insert_study_plan(self):
        oid = ObjectId()
        self.db.user_study_plans.insert_one.return_value.inserted_id = oid
        cfg = ExamConfiguration(subject="Physics", academic_level="Grade 10", exam_date=dt.date(2030, 5, 1))

        plan_id = mongo.insert_study_plan(self.db, "user-1", cfg)

        self.assertEqual(plan_id, str(oid))
        row = self.db.user_study_plans.insert_one.call_args[0][0]
        self.assertEqual(row["user_id"], "user-1")
        self.assertEqual(row["exam_date"], "2030-05-01")

    def test_sign_up_hashes_password(self):
        oid = ObjectId()
        self.db.profiles.insert_one.return_value.inserted_id = oid

        profile = mongo.sign_up(self.db, " Alex@Example.com ", "secret1", "Alex")

        self.assertEqual(profile, {"userId": str(oid), "email": "alex@example.com", "fullName": "Alex"})
        stored = self.db.profiles.insert_one.call_args[0][0]
        self.assertNotEqual(stored["password_hash"], "secret1")

    def test_sign_up_validation(self):
        with self.assertRaises(ValidationError):
            mongo.sign_up(self.db, "not-an-email", "secret1")
        with self.assertRaises(ValidationError):
            mongo.sign_up(self.db, "a@b.c", "123")
        self.db.profiles.insert_one.side_effect = DuplicateKeyError("dup")
        with self.assertRaises(ValidationError):
            mongo.sign_up(self.db, "a@b.c", "secret1")

    def test_sign_in(self):
        oid = ObjectId()
        self.db.profiles.find_one.return_value = {
            "_id": oid,
            "email": "alex@example.com",
            "password_hash": generate_password_hash("secret1"),
            "full_name": "Alex",
        }
        self.assertEqual(mongo.sign_in(self.db, "alex@example.com", "secret1")["userId"], str(oid))
        with self.assertRaises(AuthenticationError):
            mongo.sign_in(self.db, "alex@example.com", "wrong")

    def test_sign_in_unknown_user(self):
        self.db.profiles.find_one.return_value = None
        with self.assertRaises(AuthenticationError):
            mongo.sign_in(self.db, "ghost@example.com", "secret1")


if __name__ == "__main__":
    unittest.main()
