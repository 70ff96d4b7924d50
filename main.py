import datetime as dt
import logging

from flask import Flask, jsonify, request
from pymongo.errors import PyMongoError

from backend import mongo as storage
from mentor import config
from mentor.errors import (
    InvalidTransitionError,
    MentorError,
    RequestInFlightError,
    ValidationError,
)
from mentor.file_utils import FileUtils
from mentor.mentor_ai import SCHEDULE_INSIGHT_FALLBACK, MentorAIUtil
from mentor.models import MentorContext
from mentor.onboarding import OnboardingState, parse_exam_date
from mentor.prompts import days_until_exam, greeting_text
from mentor.quiz import QuizSession
from mentor.session import SessionStore

logger = logging.getLogger(__name__)

server = Flask(__name__, static_folder="frontend/dist", static_url_path="")

try:
    mongo = storage.connect()
except RuntimeError as e:
    logger.warning("Storage unavailable: %s", e)
    mongo = None

try:
    ai_util = MentorAIUtil()
except RuntimeError as e:
    logger.warning("AI module unavailable: %s", e)
    ai_util = None

sessions = SessionStore()
file_utils = FileUtils()


@server.errorhandler(MentorError)
def handle_mentor_error(e):
    return jsonify({"error": e.message}), e.status_code


def _body():
    return request.get_json(silent=True) or {}


def _ai_unavailable():
    return jsonify({"error": "AI module not initialized"}), 500


def _storage_unavailable():
    return jsonify({"error": "Storage not initialized"}), 500


@server.route("/api/hello")
def hello():
    return jsonify({"message": "API Working!"})


# ---------- accounts and lookups ----------

@server.route("/api/signUp", methods=["POST"])
def sign_up():
    if mongo is None:
        return _storage_unavailable()
    body = _body()
    profile = storage.sign_up(mongo, body.get("email"), body.get("password"), body.get("fullName"))
    return jsonify(profile), 201


@server.route("/api/signIn", methods=["POST"])
def sign_in():
    if mongo is None:
        return _storage_unavailable()
    body = _body()
    return jsonify(storage.sign_in(mongo, body.get("email"), body.get("password")))


@server.route("/api/subjects", methods=["GET"])
def get_subjects():
    rows = []
    if mongo is not None:
        try:
            rows = storage.list_subjects(mongo)
        except PyMongoError as e:
            logger.warning("Could not load subjects: %s", e)
    if not rows:
        rows = [{"id": name, "name": name, "description": None} for name in storage.DEFAULT_SUBJECTS]
    return jsonify(rows)


@server.route("/api/academicLevels", methods=["GET"])
def get_academic_levels():
    rows = []
    if mongo is not None:
        try:
            rows = storage.list_academic_levels(mongo)
        except PyMongoError as e:
            logger.warning("Could not load academic levels: %s", e)
    if not rows:
        rows = [
            {"id": name, "name": name, "gradeLevel": None, "description": None}
            for name in storage.DEFAULT_ACADEMIC_LEVELS
        ]
    return jsonify(rows)


# ---------- sessions ----------

@server.route("/api/startSession", methods=["POST"])
def start_session():
    body = _body()
    username = str(body.get("username") or "").strip()
    if not username:
        raise ValidationError("Please enter your name")
    session = sessions.create(username, user_id=body.get("userId"))
    logger.info("Started session %s", session.id)
    return jsonify(session.to_dict()), 201


@server.route("/api/endSession/<sessionID>", methods=["DELETE"])
def end_session(sessionID):
    sessions.discard(sessionID)
    logger.info("Ended session %s", sessionID)
    return jsonify({"sessionID": sessionID, "ended": True})


# ---------- onboarding ----------

def _onboarding_reply(session, result=None):
    out = {"onboarding": session.onboarding.to_dict() if session.onboarding else None}
    if result is not None:
        out["advanced"] = result.advanced
        out["message"] = result.message
        out["state"] = result.state.value
    if result is not None and result.configuration is not None:
        out.update(_finish_onboarding(session, result.configuration))
    return jsonify(out)


def _finish_onboarding(session, configuration):
    text = greeting_text(MentorContext(username=session.username, configuration=configuration))
    session.complete_onboarding(configuration)
    greeting = session.conversation.add_assistant_message(text)
    out = {
        "configuration": configuration.to_dict(),
        "greeting": greeting.to_dict(),
        "studyPlanSaved": False,
    }
    if session.user_id and mongo is not None:
        try:
            out["studyPlanID"] = storage.insert_study_plan(mongo, session.user_id, configuration)
            out["studyPlanSaved"] = True
        except PyMongoError as e:
            logger.warning("Could not save study plan for session %s: %s", session.id, e)
    return out


@server.route("/api/onboarding/<sessionID>", methods=["GET"])
def get_onboarding(sessionID):
    session = sessions.get(sessionID)
    return jsonify(session.to_dict())


@server.route("/api/onboarding/<sessionID>/field", methods=["POST"])
def set_onboarding_field(sessionID):
    session = sessions.get(sessionID)
    body = _body()
    with session.lock:
        machine = session.require_onboarding()
        machine.set_field(body.get("name"), body.get("value"))
        return _onboarding_reply(session)


@server.route("/api/onboarding/<sessionID>/next", methods=["POST"])
def next_onboarding_step(sessionID):
    session = sessions.get(sessionID)
    body = _body()
    with session.lock:
        machine = session.require_onboarding()
        if "value" in body:
            result = machine.submit(body["value"])
        else:
            result = machine.advance()
        return _onboarding_reply(session, result)


@server.route("/api/onboarding/<sessionID>/back", methods=["POST"])
def previous_onboarding_step(sessionID):
    session = sessions.get(sessionID)
    with session.lock:
        result = session.require_onboarding().back()
        return _onboarding_reply(session, result)


@server.route("/api/onboarding/<sessionID>/skip", methods=["POST"])
def skip_onboarding_step(sessionID):
    session = sessions.get(sessionID)
    with session.lock:
        result = session.require_onboarding().skip()
        return _onboarding_reply(session, result)


@server.route("/api/onboarding/<sessionID>/files", methods=["POST"])
def upload_syllabus(sessionID):
    # multipart/form-data, field "files"
    session = sessions.get(sessionID)
    uploads = [
        (fs.filename, fs.mimetype or "", fs.read())
        for fs in request.files.getlist("files")
        if fs and fs.filename
    ]
    if not uploads:
        raise ValidationError("No files provided")
    with session.lock:
        machine = session.require_onboarding()
        if machine.state is not OnboardingState.AWAITING_SYLLABUS:
            raise InvalidTransitionError("Files can only be added at the syllabus step")
        batch = file_utils.process_files(uploads)
        machine.add_files(batch.accepted)
        return jsonify({
            "accepted": [f.to_dict() for f in batch.accepted],
            "rejected": batch.rejected,
            "onboarding": machine.to_dict(),
        })


@server.route("/api/onboarding/<sessionID>/files/<fileID>", methods=["DELETE"])
def remove_syllabus_file(sessionID, fileID):
    session = sessions.get(sessionID)
    with session.lock:
        machine = session.require_onboarding()
        removed = machine.remove_file(fileID)
        return jsonify({"removed": removed.to_dict(), "onboarding": machine.to_dict()})


# ---------- chat ----------

@server.route("/api/chat/<sessionID>", methods=["GET"])
def get_chat(sessionID):
    session = sessions.get(sessionID)
    return jsonify([m.to_dict() for m in session.conversation.messages()])


@server.route("/api/chat/<sessionID>", methods=["POST"])
def send_chat(sessionID):
    if not ai_util:
        return _ai_unavailable()
    session = sessions.get(sessionID)
    text = str(_body().get("message") or "").strip()
    if not text:
        raise ValidationError("Please type a message first")
    context = session.context()

    # both messages go in under the chat guard, so a rejected send leaves no trace
    def exchange():
        user_message = session.conversation.add_user_message(text)
        try:
            reply = ai_util.chat(context, text)
        except MentorError as e:
            logger.warning("Chat failed for session %s: %s", sessionID, e.detail or e.message)
            return user_message, session.conversation.add_assistant_message(e.message), e
        return user_message, session.conversation.add_assistant_message(reply), None

    user_message, reply_message, error = session.run("chat", exchange)
    out = {"userMessage": user_message.to_dict(), "reply": reply_message.to_dict()}
    if error is not None:
        out["error"] = error.message
        return jsonify(out), error.status_code
    return jsonify(out)


@server.route("/api/insight/<sessionID>", methods=["GET"])
def get_insight(sessionID):
    if not ai_util:
        return _ai_unavailable()
    session = sessions.get(sessionID)
    context = session.context()
    text = session.run("insight", lambda: ai_util.insight(context))
    return jsonify({"insight": text})


@server.route("/api/quizQuestion/<sessionID>", methods=["GET"])
def get_quiz_question(sessionID):
    if not ai_util:
        return _ai_unavailable()
    session = sessions.get(sessionID)
    context = session.context()
    item = session.run("quizQuestion", lambda: ai_util.quiz_question(context))
    return jsonify(item.to_dict())


# ---------- quiz ----------

@server.route("/api/quiz/<sessionID>", methods=["POST"])
def create_quiz(sessionID):
    if not ai_util:
        return _ai_unavailable()
    session = sessions.get(sessionID)
    body = _body()
    topic = str(body.get("topic") or "").strip()
    level = body.get("level")
    if not level and session.configuration is not None:
        level = session.configuration.academic_level
    items = session.run("quiz", lambda: ai_util.quiz(topic, level))
    with session.lock:
        session.quiz = QuizSession(topic, items)
        return jsonify(session.quiz.to_dict()), 201


def _current_quiz(session):
    if session.quiz is None:
        raise ValidationError("Generate a quiz first")
    return session.quiz


@server.route("/api/quiz/<sessionID>", methods=["GET"])
def get_quiz(sessionID):
    session = sessions.get(sessionID)
    with session.lock:
        return jsonify(_current_quiz(session).to_dict())


@server.route("/api/quiz/<sessionID>/answer", methods=["POST"])
def answer_quiz(sessionID):
    session = sessions.get(sessionID)
    with session.lock:
        feedback = _current_quiz(session).answer(_body().get("answer"))
        return jsonify(feedback.to_dict())


@server.route("/api/quiz/<sessionID>/next", methods=["POST"])
def next_quiz_question(sessionID):
    session = sessions.get(sessionID)
    with session.lock:
        quiz = _current_quiz(session)
        quiz.next_question()
        return jsonify(quiz.to_dict())


# ---------- study tools ----------

@server.route("/api/tools/<sessionID>/flashcards", methods=["POST"])
def create_flashcards(sessionID):
    if not ai_util:
        return _ai_unavailable()
    session = sessions.get(sessionID)
    body = _body()
    cards = session.run(
        "flashcards",
        lambda: ai_util.flashcards(body.get("topic"), body.get("difficulty", "medium")),
    )
    return jsonify([c.to_dict() for c in cards])


@server.route("/api/tools/<sessionID>/studyPlan", methods=["POST"])
def create_study_plan(sessionID):
    if not ai_util:
        return _ai_unavailable()
    session = sessions.get(sessionID)
    body = _body()
    text = session.run(
        "studyPlan",
        lambda: ai_util.study_plan(body.get("topic"), body.get("difficulty", "medium")),
    )
    return jsonify({"plan": text})


@server.route("/api/tools/<sessionID>/summary", methods=["POST"])
def create_summary(sessionID):
    if not ai_util:
        return _ai_unavailable()
    session = sessions.get(sessionID)
    body = _body()
    subject = session.configuration.subject if session.configuration else None
    text = session.run("summary", lambda: ai_util.study_summary(body.get("topic"), subject))
    return jsonify({"summary": text})


@server.route("/api/tools/<sessionID>/resources", methods=["POST"])
def find_resources(sessionID):
    if not ai_util:
        return _ai_unavailable()
    session = sessions.get(sessionID)
    body = _body()
    subject = session.configuration.subject if session.configuration else None
    found = session.run("resources", lambda: ai_util.resources(body.get("topic"), subject))
    return jsonify([r.to_dict() for r in found])


# ---------- timetable ----------

def _timetable(session, now=None):
    now = now or dt.datetime.now()
    return [
        dict(e.to_dict(), daysLeft=days_until_exam(e.exam_date, now))
        for e in session.registry.entries()
    ]


@server.route("/api/timetable/<sessionID>", methods=["GET"])
def get_timetable(sessionID):
    session = sessions.get(sessionID)
    return jsonify(_timetable(session))


@server.route("/api/timetable/<sessionID>/add", methods=["POST"])
def add_exam(sessionID):
    if not ai_util:
        return _ai_unavailable()
    session = sessions.get(sessionID)
    body = _body()
    subject = str(body.get("subject") or "").strip()
    exam_date = body.get("examDate")
    if not subject or not exam_date:
        raise ValidationError("Please fill in both subject and exam date")

    def recommend():
        date_v = parse_exam_date(exam_date)
        if date_v is None:
            raise ValidationError("Please fill in both subject and exam date")
        return ai_util.exam_recommendation(subject, days_until_exam(date_v))

    recommendation = session.run("addExam", recommend)
    entry = session.registry.add(subject, exam_date, recommendation)
    try:
        insight = session.run(
            "scheduleInsight",
            lambda: ai_util.schedule_insight(session.username, session.registry.entries()),
        )
    except RequestInFlightError:
        insight = SCHEDULE_INSIGHT_FALLBACK
    return jsonify({"entry": entry.to_dict(), "timetable": _timetable(session), "insight": insight}), 201


@server.route("/api/timetable/<sessionID>/<examID>/hours", methods=["POST"])
def update_study_hours(sessionID, examID):
    session = sessions.get(sessionID)
    entry = session.registry.update_study_hours(examID, _body().get("hours"))
    return jsonify(entry.to_dict())


@server.route("/api/timetable/<sessionID>/insight", methods=["GET"])
def get_schedule_insight(sessionID):
    if not ai_util:
        return _ai_unavailable()
    session = sessions.get(sessionID)
    entries = session.registry.entries()
    text = session.run("scheduleInsight", lambda: ai_util.schedule_insight(session.username, entries))
    return jsonify({"insight": text})


@server.route("/api/timetable/<sessionID>/optimize", methods=["POST"])
def optimize_schedule(sessionID):
    if not ai_util:
        return _ai_unavailable()
    session = sessions.get(sessionID)
    entries = session.registry.entries()
    text = session.run("optimize", lambda: ai_util.optimized_schedule(session.username, entries))
    return jsonify({"schedule": text})


# ---------- study timer ----------

@server.route("/api/timer/<sessionID>", methods=["GET"])
def get_timer(sessionID):
    return jsonify(sessions.get(sessionID).timer.to_dict())


@server.route("/api/timer/<sessionID>/start", methods=["POST"])
def start_timer(sessionID):
    timer = sessions.get(sessionID).timer
    timer.start()
    return jsonify(timer.to_dict())


@server.route("/api/timer/<sessionID>/pause", methods=["POST"])
def pause_timer(sessionID):
    timer = sessions.get(sessionID).timer
    timer.pause()
    return jsonify(timer.to_dict())


@server.route("/api/timer/<sessionID>/reset", methods=["POST"])
def reset_timer(sessionID):
    timer = sessions.get(sessionID).timer
    timer.reset()
    return jsonify(timer.to_dict())


@server.route("/", defaults={"path": ""})
@server.route("/<path:path>")
def spa(path):
    if path.startswith("api"):
        return jsonify({"error": "API route not found"}), 404

    return server.send_static_file("index.html")


if __name__ == '__main__':
    # env comes from the shell, or: python set_env_vars.py --exec python main.py
    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(message)s")
    server.run(port=config.PORT, debug=config.DEBUG)
