import datetime as dt
import logging
import os
from typing import Any, Dict, List, Optional

from pymongo import ASCENDING, MongoClient
from pymongo.errors import DuplicateKeyError, ServerSelectionTimeoutError
from pymongo.server_api import ServerApi
from werkzeug.security import check_password_hash, generate_password_hash

from mentor.errors import AuthenticationError, ValidationError
from mentor.models import ExamConfiguration

logger = logging.getLogger(__name__)

_client: MongoClient | None = None

# used when the lookup collections are empty or storage is down
DEFAULT_SUBJECTS = [
    "Biology",
    "Chemistry",
    "Computer Science",
    "Economics",
    "English Literature",
    "Geography",
    "History",
    "Mathematics",
    "Other",
    "Physics",
    "Psychology",
]

DEFAULT_ACADEMIC_LEVELS = [
    "Grade 9",
    "Grade 10",
    "Grade 11",
    "Grade 12",
    "Undergraduate",
    "Graduate",
    "Professional",
]


def connect(timeout_ms: int = 5000) -> Any:
    global _client
    uri = os.getenv("MONGO_URI")
    db_name = os.getenv("MONGO_DB")

    if not uri:
        raise RuntimeError("MONGO_URI environment variable is not set")
    if not db_name:
        raise RuntimeError("MONGO_DB environment variable is not set")

    if _client is None:
        _client = MongoClient(
            uri,
            tls=True,
            serverSelectionTimeoutMS=timeout_ms,
            server_api=ServerApi('1')
        )
        try:
            _client.admin.command("ping")
        except ServerSelectionTimeoutError as exc:
            _client = None
            raise RuntimeError("Unable to connect to MongoDB") from exc
        logger.info("Connected to MongoDB")

    db = _client[db_name]
    db.profiles.create_index([("email", ASCENDING)], unique=True)
    return db


def list_subjects(db: Any) -> List[Dict[str, Any]]:
    docs = db.subjects.find({}, {"name": 1, "description": 1}).sort("name", ASCENDING)
    return [
        {"id": str(doc["_id"]), "name": doc.get("name", ""), "description": doc.get("description")}
        for doc in docs
        if doc.get("name")
    ]


def list_academic_levels(db: Any) -> List[Dict[str, Any]]:
    docs = db.academic_levels.find(
        {}, {"name": 1, "grade_level": 1, "description": 1}
    ).sort("grade_level", ASCENDING)
    return [
        {
            "id": str(doc["_id"]),
            "name": doc.get("name", ""),
            "gradeLevel": doc.get("grade_level"),
            "description": doc.get("description"),
        }
        for doc in docs
        if doc.get("name")
    ]


def insert_study_plan(
    db: Any,
    user_id: str,
    configuration: ExamConfiguration,
    study_hours_per_day: Optional[float] = None,
) -> str:
    row = {
        "user_id": user_id,
        "subject": configuration.subject,
        "academic_level": configuration.academic_level,
        "exam_date": configuration.exam_date.isoformat(),
        "study_hours_per_day": study_hours_per_day,
        "created_at": dt.datetime.now(dt.timezone.utc),
    }
    result = db.user_study_plans.insert_one(row)
    return str(result.inserted_id)


def _normalize_email(email: Optional[str]) -> str:
    return (email or "").strip().lower()


def sign_up(db: Any, email: Optional[str], password: Optional[str], full_name: Optional[str] = None) -> Dict[str, Any]:
    email_n = _normalize_email(email)
    if not email_n or "@" not in email_n:
        raise ValidationError("Please enter a valid email address")
    if not password or len(password) < 6:
        raise ValidationError("Password must be at least 6 characters")

    profile = {
        "email": email_n,
        "full_name": (full_name or "").strip() or None,
        "password_hash": generate_password_hash(password),
        "created_at": dt.datetime.now(dt.timezone.utc),
    }
    try:
        result = db.profiles.insert_one(profile)
    except DuplicateKeyError as exc:
        raise ValidationError("An account with this email already exists") from exc
    return {"userId": str(result.inserted_id), "email": email_n, "fullName": profile["full_name"]}


def sign_in(db: Any, email: Optional[str], password: Optional[str]) -> Dict[str, Any]:
    email_n = _normalize_email(email)
    if not email_n or not password:
        raise ValidationError("Email and password are required")

    doc = db.profiles.find_one({"email": email_n})
    if not doc or not check_password_hash(doc.get("password_hash", ""), password):
        raise AuthenticationError()
    return {"userId": str(doc["_id"]), "email": email_n, "fullName": doc.get("full_name")}
