from __future__ import annotations

import logging
from functools import wraps
from typing import Any

from flask import Flask, abort, current_app, g, jsonify, render_template, request, send_file, session
from pydantic import ValidationError as SchemaError
from werkzeug.exceptions import RequestEntityTooLarge

from config import (
    APP_NAME,
    DEV_SECRET_KEY,
    DASH_DEBUG,
    DASH_HOST,
    DASH_PORT,
    FAVORITES_QUICK_ACCESS,
    LOCAL_STORE_DIR,
    MAX_UPLOAD_MB,
    NOTIFICATION_PREVIEW_LIMIT,
    SECRET_KEY,
    UPLOAD_DIR,
)
from database import db
from errors import ClassroomError, NotFoundError, PermissionDenied, UploadError, ValidationError
from models import (
    AnnouncementAudience,
    AssignmentType,
    Course,
    ItemType,
    QuestionType,
    QuizAnswer,
    QuizQuestion,
    RubricCriterion,
    User,
    UserRole,
)
from services.ai_service import GenerateQuizQuestionsInput, generate_quiz_questions, to_quiz_questions
from services.content import content_stats
from services.error_handler import classify_error, error_title
from services.favorites import Favorites
from services.file_upload import FileUploadService, generate_file_path, validate_file
from services.local_store import LocalStore
from services.navigation import build_breadcrumbs, dashboard_path, footer_links, nav_links_for
from services.recent_items import (
    RecentItems,
    recent_item_from_assignment,
    recent_item_from_course,
    recent_item_from_lesson,
    recent_item_from_user,
)
from services.theme import ThemeSettings

logger = logging.getLogger("classroomhq.dashboard")

app = Flask(__name__, template_folder="templates")
app.config.update(
    SECRET_KEY=SECRET_KEY,
    MAX_CONTENT_LENGTH=MAX_UPLOAD_MB * 1024 * 1024 + 64 * 1024,
    UPLOAD_DIR=UPLOAD_DIR,
    LOCAL_STORE_DIR=LOCAL_STORE_DIR,
)


def _safe_int(value: Any, default: int = 0) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _safe_float(value: Any, default: float | None = None) -> float | None:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "y", "on"}
    return bool(value)


def _json_ok(data: Any = None, message: str | None = None, status_code: int = 200):
    payload = {"ok": True}
    if data is not None:
        payload["data"] = data
    if message:
        payload["message"] = message
    return jsonify(payload), status_code


def _json_error(message: str, status_code: int = 400, exc: BaseException | None = None):
    error_type = classify_error(exc if exc is not None else Exception(message))
    return jsonify({
        "ok": False,
        "error": message,
        "errorType": error_type.value,
        "toast": {"title": error_title(error_type), "description": message, "variant": "destructive"},
    }), status_code


def _body() -> dict:
    return request.get_json(silent=True) or {}


@app.errorhandler(ClassroomError)
def _handle_domain_error(exc: ClassroomError):
    if exc.status_code >= 500:
        logger.error("%s on %s %s: %s", type(exc).__name__, request.method, request.path, exc)
    return _json_error(str(exc), exc.status_code, exc)


@app.errorhandler(RequestEntityTooLarge)
def _handle_too_large(exc):
    return _json_error(f"File size exceeds {MAX_UPLOAD_MB}MB limit", 413, UploadError("invalid size"))

# ── Session helpers ───────────────────────────────────────

def _current_user() -> User | None:
    if "user" not in g:
        user_id = session.get("user_id")
        g.user = db.get_user(user_id) if user_id else None
        if user_id and g.user is None:
            session.pop("user_id", None)
    return g.user


def login_required(view):
    @wraps(view)
    def wrapper(*args, **kwargs):
        if _current_user() is None:
            raise PermissionDenied("Unauthorized: please sign in.")
        return current_app.ensure_sync(view)(*args, **kwargs)

    return wrapper


def roles_required(*roles: UserRole):
    def decorator(view):
        @wraps(view)
        def wrapper(*args, **kwargs):
            user = _current_user()
            if user is None:
                raise PermissionDenied("Unauthorized: please sign in.")
            if user.role not in roles:
                raise PermissionDenied("Forbidden: you do not have permission for this action.")
            return current_app.ensure_sync(view)(*args, **kwargs)

        return wrapper

    return decorator


def _store() -> LocalStore:
    return LocalStore(current_app.config["LOCAL_STORE_DIR"])


def _uploads() -> FileUploadService:
    return FileUploadService(current_app.config["UPLOAD_DIR"])


def _recent(user: User) -> RecentItems:
    return RecentItems(_store(), user.id)


def _course_or_404(course_id: str) -> Course:
    course = db.get_course(course_id)
    if course is None:
        raise NotFoundError(f"Course not found: {course_id}")
    return course


def _can_manage(course: Course, user: User) -> bool:
    return user.role == UserRole.SUPER_ADMIN or (
        user.role == UserRole.TEACHER and course.teacher_id == user.id
    )


def _ensure_member(course: Course, user: User) -> None:
    if not db.is_course_member(course.id, user):
        raise PermissionDenied("Forbidden: you are not a member of this course.")


def _ensure_manager(course: Course, user: User) -> None:
    if not _can_manage(course, user):
        raise PermissionDenied("Forbidden: only the course teacher or an admin can do this.")


def _assignment_payload(assignment, user: User) -> dict:
    data = assignment.to_dict()
    if user.role == UserRole.STUDENT:
        for question in data["questions"]:
            question.pop("correctAnswer", None)
    return data


def _parse_questions(raw: Any) -> list[QuizQuestion] | None:
    if raw is None:
        return None
    if not isinstance(raw, list):
        raise ValidationError("Invalid quiz questions: expected a list.")
    questions: list[QuizQuestion] = []
    for entry in raw:
        try:
            questions.append(QuizQuestion(
                id=str(entry.get("id") or ""),
                question_text=str(entry["questionText"]).strip(),
                question_type=QuestionType(entry.get("questionType", QuestionType.MULTIPLE_CHOICE.value)),
                correct_answer=entry["correctAnswer"],
                points=float(entry.get("points", 0)),
                options=entry.get("options"),
            ))
        except (AttributeError, KeyError, TypeError, ValueError):
            raise ValidationError("Invalid quiz question: questionText and correctAnswer are required.") from None
    return questions


def _parse_rubric(raw: Any) -> list[RubricCriterion] | None:
    if raw is None:
        return None
    if not isinstance(raw, list):
        raise ValidationError("Invalid rubric: expected a list.")
    try:
        return [
            RubricCriterion(str(r.get("id") or ""), str(r["description"]), float(r.get("points", 0)))
            for r in raw
        ]
    except (AttributeError, KeyError, TypeError, ValueError):
        raise ValidationError("Invalid rubric: every criterion needs a description and points.") from None

# ── Pages ─────────────────────────────────────────────────

@app.route("/")
def index():
    user = _current_user()
    path = request.args.get("path") or (dashboard_path(user.role) if user else "/")
    theme = ThemeSettings(_store(), user.id if user else None)
    return render_template(
        "index.html",
        app_name=APP_NAME,
        user=user,
        nav_links=nav_links_for(
            user.role if user else None,
            {"messages": db.unread_message_count(user.id)} if user else None,
            path,
        ),
        footer=footer_links(path) if user else [],
        breadcrumbs=build_breadcrumbs(path, _course_names(), _user_names()) if user else [],
        theme_classes=" ".join(theme.css_classes()),
    )


def _course_names() -> dict[str, str]:
    return {c.id: c.name for c in db.list_courses()}


def _user_names() -> dict[str, str]:
    return {u.id: u.name for u in db.list_users()}

# ── Auth ──────────────────────────────────────────────────

@app.route("/api/auth/login", methods=["POST"])
def api_login():
    body = _body()
    user = db.authenticate(str(body.get("email") or ""), body.get("password"))
    session.clear()
    session["user_id"] = user.id
    logger.info("User %s signed in", user.email)
    return _json_ok({"user": user.to_dict(), "dashboard": dashboard_path(user.role)}, "Signed in")


@app.route("/api/auth/register", methods=["POST"])
def api_register():
    body = _body()
    user = db.register_student(body.get("name"), body.get("email"), body.get("password"), body.get("avatarUrl"))
    session.clear()
    session["user_id"] = user.id
    return _json_ok({"user": user.to_dict(), "dashboard": dashboard_path(user.role)}, "Account created", 201)


@app.route("/api/auth/logout", methods=["POST"])
def api_logout():
    session.clear()
    return _json_ok(message="Signed out")


@app.route("/api/me")
@login_required
def api_me():
    return _json_ok(_current_user().to_dict())


@app.route("/api/me", methods=["PATCH"])
@login_required
def api_update_me():
    body = _body()
    user = db.update_user(
        _current_user().id,
        name=body.get("name"),
        avatar_url=body.get("avatarUrl"),
        bio=body.get("bio"),
    )
    return _json_ok(user.to_dict(), "Profile updated")

# ── Page shell ────────────────────────────────────────────

@app.route("/api/shell")
@login_required
def api_shell():
    user = _current_user()
    path = request.args.get("path") or dashboard_path(user.role)
    badges = {"messages": db.unread_message_count(user.id)}
    favorites = Favorites(_store(), user.id)
    return _json_ok({
        "user": user.to_dict(),
        "dashboard": dashboard_path(user.role),
        "navLinks": nav_links_for(user.role, badges, path),
        "footerLinks": footer_links(path),
        "breadcrumbs": build_breadcrumbs(path, _course_names(), _user_names()),
        "unreadNotifications": db.unread_notification_count(user.id),
        "notifications": [
            n.to_dict() for n in db.list_notifications(user.id, NOTIFICATION_PREVIEW_LIMIT)
        ],
        "theme": ThemeSettings(_store(), user.id).config.to_dict(),
        "favorites": [f.to_dict() for f in favorites.items[:FAVORITES_QUICK_ACCESS]],
    })

# ── Users ─────────────────────────────────────────────────

@app.route("/api/users")
@roles_required(UserRole.SUPER_ADMIN)
def api_users():
    return _json_ok([u.to_dict() for u in db.list_users(request.args.get("role") or None)])


@app.route("/api/users", methods=["POST"])
@roles_required(UserRole.SUPER_ADMIN)
def api_user_create():
    body = _body()
    user = db.create_user(
        body.get("name"),
        body.get("email"),
        body.get("role") or UserRole.STUDENT.value,
        password=body.get("password"),
        avatar_url=body.get("avatarUrl"),
    )
    return _json_ok(user.to_dict(), "User created", 201)


@app.route("/api/users/bulk", methods=["POST"])
@roles_required(UserRole.SUPER_ADMIN)
def api_users_bulk():
    rows = _body().get("students")
    if not isinstance(rows, list) or not rows:
        return _json_error("students must be a non-empty list", 400)
    results = db.bulk_create_students(rows)
    created = sum(1 for r in results if r["success"])
    return _json_ok(results, f"Created {created} of {len(results)} students")


@app.route("/api/users/<user_id>")
@login_required
def api_user_detail(user_id: str):
    viewer = _current_user()
    user = db.get_user(user_id)
    if user is None:
        raise NotFoundError(f"User not found: {user_id}")
    if viewer.id != user.id:
        _recent(viewer).add(**recent_item_from_user(user))
    return _json_ok(user.to_dict())


@app.route("/api/users/<user_id>", methods=["PATCH"])
@roles_required(UserRole.SUPER_ADMIN)
def api_user_update(user_id: str):
    body = _body()
    user = db.update_user(
        user_id,
        name=body.get("name"),
        role=body.get("role"),
        avatar_url=body.get("avatarUrl"),
        bio=body.get("bio"),
    )
    return _json_ok(user.to_dict(), "User updated")


@app.route("/api/users/<user_id>", methods=["DELETE"])
@roles_required(UserRole.SUPER_ADMIN)
def api_user_delete(user_id: str):
    if user_id == _current_user().id:
        return _json_error("You cannot delete your own account", 400)
    db.delete_user(user_id)
    return _json_ok({"id": user_id}, "User deleted")

# ── Courses & enrollments ─────────────────────────────────

@app.route("/api/courses")
@login_required
def api_courses():
    return _json_ok([c.to_dict() for c in db.list_courses_for_user(_current_user())])


@app.route("/api/courses", methods=["POST"])
@roles_required(UserRole.SUPER_ADMIN, UserRole.TEACHER)
def api_course_create():
    user = _current_user()
    body = _body()
    teacher_id = body.get("teacherId") if user.role == UserRole.SUPER_ADMIN else user.id
    course = db.create_course(
        body.get("name"),
        body.get("description") or "",
        teacher_id=teacher_id,
        cost=_safe_float(body.get("cost"), 0.0),
        category=body.get("category"),
        prerequisites=body.get("prerequisites") or [],
    )
    return _json_ok(course.to_dict(), "Course created", 201)


@app.route("/api/courses/<course_id>")
@login_required
def api_course_detail(course_id: str):
    user = _current_user()
    course = _course_or_404(course_id)
    _ensure_member(course, user)
    _recent(user).add(**recent_item_from_course(course))
    return _json_ok(course.to_dict())


@app.route("/api/courses/<course_id>", methods=["PATCH"])
@roles_required(UserRole.SUPER_ADMIN, UserRole.TEACHER)
def api_course_update(course_id: str):
    user = _current_user()
    course = _course_or_404(course_id)
    _ensure_manager(course, user)
    body = _body()
    changes = {
        "name": body.get("name"),
        "description": body.get("description"),
        "category": body.get("category"),
        "cost": body.get("cost"),
        "prerequisites": body.get("prerequisites"),
    }
    if user.role == UserRole.SUPER_ADMIN and "teacherId" in body:
        changes["teacher_id"] = body.get("teacherId")
    return _json_ok(db.update_course(course_id, **changes).to_dict(), "Course updated")


@app.route("/api/courses/<course_id>", methods=["DELETE"])
@roles_required(UserRole.SUPER_ADMIN)
def api_course_delete(course_id: str):
    db.delete_course(course_id)
    return _json_ok({"id": course_id}, "Course deleted")


@app.route("/api/enrollments")
@roles_required(UserRole.SUPER_ADMIN, UserRole.TEACHER)
def api_enrollments():
    user = _current_user()
    course_id = request.args.get("courseId") or None
    if user.role == UserRole.TEACHER:
        if not course_id:
            return _json_error("courseId is required", 400)
        _ensure_manager(_course_or_404(course_id), user)
    enrollments = db.list_enrollments(course_id, request.args.get("studentId") or None)
    return _json_ok([e.to_dict() for e in enrollments])


@app.route("/api/courses/<course_id>/enrollments", methods=["POST"])
@roles_required(UserRole.SUPER_ADMIN)
def api_enroll(course_id: str):
    student_id = str(_body().get("studentId") or "").strip()
    if not student_id:
        return _json_error("studentId is required", 400)
    enrollment = db.enroll_student(course_id, student_id)
    return _json_ok(enrollment.to_dict(), "Student enrolled", 201)


@app.route("/api/courses/<course_id>/enrollments/<student_id>", methods=["DELETE"])
@roles_required(UserRole.SUPER_ADMIN)
def api_unenroll(course_id: str, student_id: str):
    db.unenroll_student(course_id, student_id)
    return _json_ok({"id": db.enrollment_id(course_id, student_id)}, "Student unenrolled")

# ── Lessons ───────────────────────────────────────────────

@app.route("/api/courses/<course_id>/lessons")
@login_required
def api_lessons(course_id: str):
    course = _course_or_404(course_id)
    _ensure_member(course, _current_user())
    return _json_ok([l.to_dict() for l in db.list_lessons(course_id)])


@app.route("/api/courses/<course_id>/lessons", methods=["POST"])
@roles_required(UserRole.SUPER_ADMIN, UserRole.TEACHER)
def api_lesson_create(course_id: str):
    _ensure_manager(_course_or_404(course_id), _current_user())
    body = _body()
    lesson = db.create_lesson(
        course_id,
        body.get("title"),
        body.get("contentMarkdown") or "",
        order=_safe_int(body["order"]) if body.get("order") is not None else None,
        video_url=body.get("videoUrl"),
        file_url=body.get("fileUrl"),
        file_name=body.get("fileName"),
    )
    return _json_ok(lesson.to_dict(), "Lesson created", 201)


def _lesson_with_course(lesson_id: str):
    lesson = db.get_lesson(lesson_id)
    if lesson is None:
        raise NotFoundError(f"Lesson not found: {lesson_id}")
    return lesson, _course_or_404(lesson.course_id)


@app.route("/api/lessons/<lesson_id>")
@login_required
def api_lesson_detail(lesson_id: str):
    user = _current_user()
    lesson, course = _lesson_with_course(lesson_id)
    _ensure_member(course, user)
    _recent(user).add(**recent_item_from_lesson(lesson, course.name))
    data = lesson.to_dict()
    data["stats"] = content_stats(lesson.content_markdown)
    return _json_ok(data)


@app.route("/api/lessons/<lesson_id>", methods=["PATCH"])
@roles_required(UserRole.SUPER_ADMIN, UserRole.TEACHER)
def api_lesson_update(lesson_id: str):
    _, course = _lesson_with_course(lesson_id)
    _ensure_manager(course, _current_user())
    body = _body()
    lesson = db.update_lesson(
        lesson_id,
        title=body.get("title"),
        content_markdown=body.get("contentMarkdown"),
        order=body.get("order"),
        video_url=body.get("videoUrl"),
        file_url=body.get("fileUrl"),
        file_name=body.get("fileName"),
    )
    return _json_ok(lesson.to_dict(), "Lesson updated")


@app.route("/api/lessons/<lesson_id>", methods=["DELETE"])
@roles_required(UserRole.SUPER_ADMIN, UserRole.TEACHER)
def api_lesson_delete(lesson_id: str):
    _, course = _lesson_with_course(lesson_id)
    _ensure_manager(course, _current_user())
    db.delete_lesson(lesson_id)
    return _json_ok({"id": lesson_id}, "Lesson deleted")

# ── Assignments ───────────────────────────────────────────

def _assignment_with_course(assignment_id: str):
    assignment = db.get_assignment(assignment_id)
    if assignment is None:
        raise NotFoundError(f"Assignment not found: {assignment_id}")
    return assignment, _course_or_404(assignment.course_id)


@app.route("/api/courses/<course_id>/assignments")
@login_required
def api_assignments(course_id: str):
    user = _current_user()
    _ensure_member(_course_or_404(course_id), user)
    return _json_ok([_assignment_payload(a, user) for a in db.list_assignments(course_id)])


@app.route("/api/courses/<course_id>/assignments", methods=["POST"])
@roles_required(UserRole.SUPER_ADMIN, UserRole.TEACHER)
def api_assignment_create(course_id: str):
    _ensure_manager(_course_or_404(course_id), _current_user())
    body = _body()
    assignment = db.create_assignment(
        course_id,
        body.get("title"),
        body.get("dueDate"),
        description=body.get("description") or "",
        assignment_type=body.get("type") or AssignmentType.STANDARD.value,
        questions=_parse_questions(body.get("questions")),
        rubric=_parse_rubric(body.get("rubric")),
        manual_total_points=_safe_float(body.get("totalPoints")),
        assignment_file_url=body.get("assignmentFileUrl"),
        assignment_file_name=body.get("assignmentFileName"),
        external_link=body.get("externalLink"),
    )
    return _json_ok(assignment.to_dict(), "Assignment created", 201)


@app.route("/api/assignments/<assignment_id>")
@login_required
def api_assignment_detail(assignment_id: str):
    user = _current_user()
    assignment, course = _assignment_with_course(assignment_id)
    _ensure_member(course, user)
    _recent(user).add(**recent_item_from_assignment(assignment, course.name))
    return _json_ok(_assignment_payload(assignment, user))


@app.route("/api/assignments/<assignment_id>", methods=["PATCH"])
@roles_required(UserRole.SUPER_ADMIN, UserRole.TEACHER)
def api_assignment_update(assignment_id: str):
    _, course = _assignment_with_course(assignment_id)
    _ensure_manager(course, _current_user())
    body = _body()
    assignment = db.update_assignment(
        assignment_id,
        questions=_parse_questions(body.get("questions")),
        rubric=_parse_rubric(body.get("rubric")),
        manual_total_points=_safe_float(body.get("totalPoints")),
        title=body.get("title"),
        description=body.get("description"),
        due_date=body.get("dueDate"),
        type=body.get("type"),
        assignment_file_url=body.get("assignmentFileUrl"),
        assignment_file_name=body.get("assignmentFileName"),
        external_link=body.get("externalLink"),
    )
    return _json_ok(assignment.to_dict(), "Assignment updated")


@app.route("/api/assignments/<assignment_id>", methods=["DELETE"])
@roles_required(UserRole.SUPER_ADMIN, UserRole.TEACHER)
def api_assignment_delete(assignment_id: str):
    _, course = _assignment_with_course(assignment_id)
    _ensure_manager(course, _current_user())
    db.delete_assignment(assignment_id)
    return _json_ok({"id": assignment_id}, "Assignment deleted")


@app.route("/api/assignments/<assignment_id>/generate-quiz", methods=["POST"])
@roles_required(UserRole.SUPER_ADMIN, UserRole.TEACHER)
async def api_generate_quiz(assignment_id: str):
    _, course = _assignment_with_course(assignment_id)
    _ensure_manager(course, _current_user())
    body = _body()
    try:
        data = GenerateQuizQuestionsInput(
            lessonContent=str(body.get("lessonContent") or ""),
            numberOfQuestions=body.get("numberOfQuestions", 5),
        )
    except SchemaError as exc:
        raise ValidationError(
            "Invalid input: lesson content is required and the number of questions must be 1-10."
        ) from exc

    output = await generate_quiz_questions(data)
    questions = to_quiz_questions(output, assignment_id)
    if _as_bool(request.args.get("save")):
        assignment = db.add_quiz_questions(assignment_id, questions)
        return _json_ok(assignment.to_dict(), f"Added {len(questions)} AI-generated questions")
    return _json_ok([q.to_dict() for q in questions], f"Generated {len(questions)} questions")

# ── Submissions ───────────────────────────────────────────

@app.route("/api/assignments/<assignment_id>/submissions", methods=["POST"])
@roles_required(UserRole.STUDENT)
def api_submit(assignment_id: str):
    body = _body()
    answers = [
        QuizAnswer(str(a.get("questionId")), a.get("studentAnswer"))
        for a in (body.get("quizAnswers") or [])
        if isinstance(a, dict) and a.get("questionId")
    ]
    submission = db.submit_assignment(
        assignment_id,
        _current_user().id,
        content=body.get("content"),
        file_url=body.get("fileUrl"),
        file_name=body.get("fileName"),
        quiz_answers=answers,
    )
    return _json_ok(submission.to_dict(), "Submission received", 201)


@app.route("/api/assignments/<assignment_id>/submissions")
@login_required
def api_submissions(assignment_id: str):
    user = _current_user()
    _, course = _assignment_with_course(assignment_id)
    if _can_manage(course, user):
        submissions = db.list_submissions(assignment_id=assignment_id)
    else:
        _ensure_member(course, user)
        submissions = db.list_submissions(assignment_id=assignment_id, student_id=user.id)
    return _json_ok([s.to_dict() for s in submissions])


@app.route("/api/submissions/<submission_id>/grade", methods=["POST"])
@roles_required(UserRole.SUPER_ADMIN, UserRole.TEACHER)
def api_grade(submission_id: str):
    submission = db.get_submission(submission_id)
    if submission is None:
        raise NotFoundError("Submission not found.")
    _, course = _assignment_with_course(submission.assignment_id)
    _ensure_manager(course, _current_user())
    body = _body()
    graded = db.grade_submission(submission_id, body.get("grade"), body.get("feedback"))
    return _json_ok(graded.to_dict(), "Submission graded")


@app.route("/api/admin/grades", methods=["POST"])
@roles_required(UserRole.SUPER_ADMIN)
def api_admin_grade():
    body = _body()
    submission = db.admin_update_or_create_submission(
        str(body.get("studentId") or ""),
        str(body.get("assignmentId") or ""),
        body.get("grade"),
        body.get("feedback"),
    )
    return _json_ok(submission.to_dict(), "Grade recorded")

# ── Announcements, notifications, messages ────────────────

@app.route("/api/announcements")
@login_required
def api_announcements():
    return _json_ok([a.to_dict() for a in db.list_announcements_for(_current_user())])


@app.route("/api/announcements", methods=["POST"])
@roles_required(UserRole.SUPER_ADMIN, UserRole.TEACHER)
def api_announcement_create():
    user = _current_user()
    body = _body()
    audience = body.get("type") or AnnouncementAudience.ALL.value
    course_id = body.get("courseId")
    if user.role == UserRole.TEACHER:
        if audience != AnnouncementAudience.COURSE_SPECIFIC.value or not course_id:
            raise PermissionDenied("Forbidden: teachers can only post course announcements.")
        _ensure_manager(_course_or_404(course_id), user)
    announcement = db.create_announcement(user, body.get("message"), audience, course_id, body.get("link"))
    return _json_ok(announcement.to_dict(), "Announcement posted", 201)


@app.route("/api/notifications")
@login_required
def api_notifications():
    user = _current_user()
    limit = _safe_int(request.args.get("limit"), 0) or None
    return _json_ok({
        "items": [n.to_dict() for n in db.list_notifications(user.id, limit)],
        "unread": db.unread_notification_count(user.id),
    })


@app.route("/api/notifications/<notification_id>/read", methods=["POST"])
@login_required
def api_notification_read(notification_id: str):
    if not db.mark_notification_read(notification_id, _current_user().id):
        raise NotFoundError(f"Notification not found: {notification_id}")
    return _json_ok({"id": notification_id})


@app.route("/api/notifications/read-all", methods=["POST"])
@login_required
def api_notifications_read_all():
    return _json_ok({"updated": db.mark_all_notifications_read(_current_user().id)})


@app.route("/api/notifications", methods=["DELETE"])
@login_required
def api_notifications_clear():
    return _json_ok({"deleted": db.clear_notifications(_current_user().id)})


@app.route("/api/messages")
@login_required
def api_messages():
    user = _current_user()
    messages = db.list_direct_messages(user.id, request.args.get("with") or None)
    return _json_ok({
        "items": [m.to_dict() for m in messages],
        "unread": db.unread_message_count(user.id),
    })


@app.route("/api/messages", methods=["POST"])
@login_required
def api_message_send():
    body = _body()
    message = db.send_direct_message(
        _current_user(),
        str(body.get("recipientId") or ""),
        body.get("content"),
    )
    return _json_ok(message.to_dict(), "Message sent", 201)


@app.route("/api/messages/<message_id>/read", methods=["POST"])
@login_required
def api_message_read(message_id: str):
    if not db.mark_message_read(message_id, _current_user().id):
        raise NotFoundError(f"Message not found: {message_id}")
    return _json_ok({"id": message_id})

# ── Favorites, recent items, theme ────────────────────────

def _item_type(value: Any) -> ItemType | None:
    if not value:
        return None
    try:
        return ItemType(value)
    except ValueError:
        raise ValidationError(f"Invalid item type: {value}") from None


@app.route("/api/favorites")
@login_required
def api_favorites():
    favorites = Favorites(_store(), _current_user().id)
    item_type = _item_type(request.args.get("type"))
    items = favorites.by_type(item_type) if item_type else favorites.items
    return _json_ok([f.to_dict() for f in items])


@app.route("/api/favorites/toggle", methods=["POST"])
@login_required
def api_favorite_toggle():
    body = _body()
    item_id = str(body.get("id") or "").strip()
    item_type = _item_type(body.get("type"))
    if not item_id or item_type is None:
        return _json_error("id and type are required", 400)
    favorites = Favorites(_store(), _current_user().id)
    favorited = favorites.toggle(
        item_id, item_type, str(body.get("title") or ""), str(body.get("url") or ""), body.get("metadata"),
    )
    return _json_ok({"id": item_id, "favorited": favorited})


@app.route("/api/favorites/<item_id>", methods=["DELETE"])
@login_required
def api_favorite_remove(item_id: str):
    Favorites(_store(), _current_user().id).remove(item_id)
    return _json_ok({"id": item_id})


@app.route("/api/favorites", methods=["DELETE"])
@login_required
def api_favorites_clear():
    Favorites(_store(), _current_user().id).clear()
    return _json_ok(message="Favorites cleared")


@app.route("/api/recent")
@login_required
def api_recent():
    recent = _recent(_current_user())
    item_type = _item_type(request.args.get("type"))
    limit = _safe_int(request.args.get("limit"), 0) or None
    items = recent.by_type(item_type)[:limit] if item_type else recent.get(limit)
    return _json_ok([i.to_dict() for i in items])


@app.route("/api/recent/<item_id>", methods=["DELETE"])
@login_required
def api_recent_remove(item_id: str):
    _recent(_current_user()).remove(item_id)
    return _json_ok({"id": item_id})


@app.route("/api/recent", methods=["DELETE"])
@login_required
def api_recent_clear():
    _recent(_current_user()).clear()
    return _json_ok(message="Recent items cleared")


@app.route("/api/theme")
@login_required
def api_theme():
    theme = ThemeSettings(_store(), _current_user().id)
    return _json_ok({**theme.config.to_dict(), "classes": theme.css_classes()})


@app.route("/api/theme", methods=["PATCH"])
@login_required
def api_theme_update():
    theme = ThemeSettings(_store(), _current_user().id)
    theme.update(_body())
    return _json_ok({**theme.config.to_dict(), "classes": theme.css_classes()}, "Theme updated")


_THEME_ACTIONS = {
    "toggle-mode": ThemeSettings.toggle_mode,
    "increase-font": ThemeSettings.increase_font_size,
    "decrease-font": ThemeSettings.decrease_font_size,
    "toggle-reduced-motion": ThemeSettings.toggle_reduced_motion,
    "toggle-high-contrast": ThemeSettings.toggle_high_contrast,
    "reset": ThemeSettings.reset,
}


@app.route("/api/theme/<action>", methods=["POST"])
@login_required
def api_theme_action(action: str):
    handler = _THEME_ACTIONS.get(action)
    if handler is None:
        raise NotFoundError(f"Unknown theme action: {action}")
    theme = ThemeSettings(_store(), _current_user().id)
    handler(theme)
    return _json_ok({**theme.config.to_dict(), "classes": theme.css_classes()})

# ── Content & uploads ─────────────────────────────────────

@app.route("/api/content/stats", methods=["POST"])
@login_required
def api_content_stats():
    return _json_ok(content_stats(str(_body().get("content") or "")))


@app.route("/api/uploads", methods=["POST"])
@login_required
def api_upload():
    user = _current_user()
    upload = request.files.get("file")
    if upload is None or not upload.filename:
        return _json_error("file is required", 400)
    course_id = (request.form.get("courseId") or "general").strip()
    if course_id != "general":
        _ensure_member(_course_or_404(course_id), user)

    allowed = [t.strip() for t in (request.form.get("allowedTypes") or "").split(",") if t.strip()]
    upload.stream.seek(0, 2)
    size = upload.stream.tell()
    upload.stream.seek(0)
    valid, error = validate_file(upload.filename, upload.mimetype, size, allowed)
    if not valid:
        raise UploadError(error)

    result = _uploads().upload_file(
        upload.stream,
        generate_file_path(user.id, course_id, upload.filename),
        size=size,
        content_type=upload.mimetype,
        name=upload.filename,
    )
    return _json_ok(result.to_dict(), "File uploaded", 201)


@app.route("/api/uploads", methods=["DELETE"])
@login_required
def api_upload_delete():
    user = _current_user()
    path = str(request.args.get("path") or "")
    uploads = _uploads()
    if user.role != UserRole.SUPER_ADMIN and uploads.relative_parts(path)[:2] != ("uploads", user.id):
        raise PermissionDenied("Forbidden: you can only delete your own files.")
    uploads.delete_file(path)
    return _json_ok({"path": path}, "File deleted")


@app.route("/files/<path:path>")
@login_required
def serve_file(path: str):
    try:
        target = _uploads().open_path(path)
    except NotFoundError:
        abort(404)
    return send_file(target)


def run():
    if SECRET_KEY == DEV_SECRET_KEY and not DASH_DEBUG:
        logger.warning("SECRET_KEY is the development default; set SECRET_KEY in .env")
    app.run(host=DASH_HOST, port=DASH_PORT, debug=DASH_DEBUG)


if __name__ == "__main__":
    run()
