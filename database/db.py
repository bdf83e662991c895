import json
import logging
import math
import sqlite3
import uuid
from contextlib import contextmanager
from typing import Any, Iterable

from werkzeug.security import check_password_hash, generate_password_hash

from config import DB_PATH, SCHEMA_PATH
from errors import NotFoundError, PermissionDenied, ValidationError
from models import (
    Announcement,
    AnnouncementAudience,
    Assignment,
    AssignmentType,
    Course,
    DirectMessage,
    Enrollment,
    Lesson,
    Notification,
    NotificationType,
    QuestionType,
    QuizAnswer,
    QuizQuestion,
    RubricCriterion,
    Submission,
    User,
    UserRole,
    now_ms,
    utc_now,
)
from services.grading import assignment_total_points, grade_quiz

logger = logging.getLogger("classroomhq.db")

# ── Connection ────────────────────────────────────────────

@contextmanager
def get_db():
    DB_PATH.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(DB_PATH)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()

def init_db():
    """Create all tables from schema.sql"""
    with get_db() as conn:
        conn.executescript(SCHEMA_PATH.read_text(encoding="utf-8"))
    logger.info("Database initialized at %s", DB_PATH)


def _new_id() -> str:
    return str(uuid.uuid4())


def _iso_now() -> str:
    return utc_now().isoformat()


def _json_list(raw: str | None) -> list:
    if not raw:
        return []
    try:
        value = json.loads(raw)
    except (TypeError, ValueError):
        return []
    return value if isinstance(value, list) else []


def _require(value: Any, field: str) -> str:
    text = str(value).strip() if value is not None else ""
    if not text:
        raise ValidationError(f"{field} is required.")
    return text


def _insert_notification(
    conn: sqlite3.Connection,
    user_id: str,
    ntype: NotificationType | str,
    message: str,
    link: str | None = None,
    course_id: str | None = None,
) -> Notification:
    notification = Notification(
        id=_new_id(),
        user_id=user_id,
        type=ntype.value if isinstance(ntype, NotificationType) else str(ntype),
        message=message,
        read=False,
        timestamp=now_ms(),
        course_id=course_id,
        link=link,
    )
    conn.execute(
        """INSERT INTO notifications (id, user_id, course_id, type, message, link, read, timestamp)
           VALUES (?, ?, ?, ?, ?, ?, 0, ?)""",
        (notification.id, user_id, course_id, notification.type, message, link, notification.timestamp),
    )
    return notification

# ── Users ─────────────────────────────────────────────────

def _user_from_row(row: sqlite3.Row) -> User:
    return User(
        id=row["id"],
        name=row["name"],
        email=row["email"],
        role=UserRole(row["role"]),
        avatar_url=row["avatar_url"],
        bio=row["bio"],
    )


def _parse_role(value: Any) -> UserRole:
    try:
        return value if isinstance(value, UserRole) else UserRole(str(value))
    except ValueError:
        raise ValidationError(f"Invalid role: {value}") from None


def create_user(
    name: str,
    email: str,
    role: UserRole | str,
    password: str | None = None,
    avatar_url: str | None = None,
    user_id: str | None = None,
) -> User:
    name = _require(name, "Name")
    email = _require(email, "Email").lower()
    if "@" not in email:
        raise ValidationError(f"Invalid email address: {email}")
    role = _parse_role(role)
    user = User(id=user_id or _new_id(), name=name, email=email, role=role, avatar_url=avatar_url)
    password_hash = generate_password_hash(password) if password else None

    with get_db() as conn:
        exists = conn.execute("SELECT 1 FROM users WHERE email = ?", (email,)).fetchone()
        if exists:
            raise ValidationError(f"Email already in use: {email}")
        conn.execute(
            """INSERT INTO users (id, name, email, role, password_hash, avatar_url)
               VALUES (?, ?, ?, ?, ?, ?)""",
            (user.id, user.name, user.email, user.role.value, password_hash, avatar_url),
        )
    logger.info("Created user %s (%s)", user.email, user.role.value)
    return user


def register_student(name: str, email: str, password: str | None, avatar_url: str | None = None) -> User:
    if not password:
        raise ValidationError("Password is required.")
    return create_user(name, email, UserRole.STUDENT, password=password, avatar_url=avatar_url)


def bulk_create_students(rows: Iterable[dict]) -> list[dict]:
    """Create students one by one; a failing row never stops the batch."""
    results: list[dict] = []
    for row in rows:
        email = str(row.get("email") or "").strip()
        try:
            user = create_user(
                row.get("name"),
                email,
                UserRole.STUDENT,
                password=row.get("password"),
            )
            results.append({"success": True, "email": user.email, "userId": user.id})
        except ValidationError as exc:
            logger.warning("Bulk student create failed for %s: %s", email or "<blank>", exc)
            results.append({"success": False, "email": email, "error": str(exc)})
    return results


def get_user(user_id: str) -> User | None:
    with get_db() as conn:
        row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
        return _user_from_row(row) if row else None


def get_user_by_email(email: str) -> User | None:
    with get_db() as conn:
        row = conn.execute(
            "SELECT * FROM users WHERE email = ?",
            (str(email).strip().lower(),),
        ).fetchone()
        return _user_from_row(row) if row else None


def authenticate(email: str, password: str | None) -> User:
    if not password:
        raise ValidationError("Password is required.")
    with get_db() as conn:
        row = conn.execute(
            "SELECT * FROM users WHERE email = ?",
            (str(email or "").strip().lower(),),
        ).fetchone()
    if not row or not row["password_hash"] or not check_password_hash(row["password_hash"], password):
        raise PermissionDenied("Unauthorized: invalid email or password.")
    return _user_from_row(row)


def list_users(role: UserRole | str | None = None) -> list[User]:
    with get_db() as conn:
        if role:
            rows = conn.execute(
                "SELECT * FROM users WHERE role = ? ORDER BY name COLLATE NOCASE",
                (_parse_role(role).value,),
            ).fetchall()
        else:
            rows = conn.execute("SELECT * FROM users ORDER BY name COLLATE NOCASE").fetchall()
        return [_user_from_row(r) for r in rows]


def update_user(user_id: str, **changes) -> User:
    allowed = {"name": "name", "avatar_url": "avatar_url", "bio": "bio", "role": "role"}
    sets: list[str] = []
    params: list[Any] = []
    for key, column in allowed.items():
        if key not in changes or changes[key] is None:
            continue
        value = changes[key]
        if key == "role":
            value = _parse_role(value).value
        elif key == "name":
            value = _require(value, "Name")
        sets.append(f"{column} = ?")
        params.append(value)

    with get_db() as conn:
        if sets:
            result = conn.execute(
                f"UPDATE users SET {', '.join(sets)} WHERE id = ?",
                (*params, user_id),
            )
            if result.rowcount == 0:
                raise NotFoundError(f"User not found: {user_id}")
        row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
    if not row:
        raise NotFoundError(f"User not found: {user_id}")
    return _user_from_row(row)


def delete_user(user_id: str) -> None:
    with get_db() as conn:
        result = conn.execute("DELETE FROM users WHERE id = ?", (user_id,))
        if result.rowcount == 0:
            raise NotFoundError(f"User not found: {user_id}")
    logger.info("Deleted user %s", user_id)

# ── Courses ───────────────────────────────────────────────

def _course_from_row(conn: sqlite3.Connection, row: sqlite3.Row) -> Course:
    student_ids = [
        r["student_id"]
        for r in conn.execute(
            """SELECT student_id FROM enrollments
               WHERE course_id = ?
               ORDER BY enrollment_date, student_id""",
            (row["id"],),
        ).fetchall()
    ]
    return Course(
        id=row["id"],
        name=row["name"],
        description=row["description"] or "",
        teacher_id=row["teacher_id"],
        cost=float(row["cost"] or 0),
        category=row["category"],
        student_ids=student_ids,
        prerequisites=[str(p) for p in _json_list(row["prerequisites"])],
    )


def _check_teacher(conn: sqlite3.Connection, teacher_id: str | None) -> None:
    if not teacher_id:
        return
    row = conn.execute("SELECT role FROM users WHERE id = ?", (teacher_id,)).fetchone()
    if not row:
        raise NotFoundError(f"Teacher not found: {teacher_id}")
    if row["role"] != UserRole.TEACHER.value:
        raise ValidationError(f"User {teacher_id} is not a teacher.")


def create_course(
    name: str,
    description: str = "",
    teacher_id: str | None = None,
    cost: float = 0.0,
    category: str | None = None,
    prerequisites: list[str] | None = None,
    course_id: str | None = None,
) -> Course:
    name = _require(name, "Course name")
    if float(cost or 0) < 0:
        raise ValidationError("Course cost cannot be negative.")
    new_id = course_id or _new_id()
    with get_db() as conn:
        _check_teacher(conn, teacher_id)
        conn.execute(
            """INSERT INTO courses (id, name, description, teacher_id, category, cost, prerequisites)
               VALUES (?, ?, ?, ?, ?, ?, ?)""",
            (new_id, name, description or "", teacher_id, category,
             float(cost or 0), json.dumps(list(prerequisites or []))),
        )
        row = conn.execute("SELECT * FROM courses WHERE id = ?", (new_id,)).fetchone()
        course = _course_from_row(conn, row)
    logger.info("Created course %s (%s)", course.name, course.id)
    return course


def get_course(course_id: str) -> Course | None:
    with get_db() as conn:
        row = conn.execute("SELECT * FROM courses WHERE id = ?", (course_id,)).fetchone()
        return _course_from_row(conn, row) if row else None


def list_courses() -> list[Course]:
    with get_db() as conn:
        rows = conn.execute("SELECT * FROM courses ORDER BY name COLLATE NOCASE").fetchall()
        return [_course_from_row(conn, r) for r in rows]


def list_courses_for_user(user: User) -> list[Course]:
    if user.role == UserRole.SUPER_ADMIN:
        return list_courses()
    with get_db() as conn:
        if user.role == UserRole.TEACHER:
            rows = conn.execute(
                "SELECT * FROM courses WHERE teacher_id = ? ORDER BY name COLLATE NOCASE",
                (user.id,),
            ).fetchall()
        else:
            rows = conn.execute(
                """SELECT c.* FROM courses c
                   JOIN enrollments e ON e.course_id = c.id
                   WHERE e.student_id = ?
                   ORDER BY c.name COLLATE NOCASE""",
                (user.id,),
            ).fetchall()
        return [_course_from_row(conn, r) for r in rows]


def update_course(course_id: str, **changes) -> Course:
    sets: list[str] = []
    params: list[Any] = []
    for key in ("name", "description", "teacher_id", "category", "cost", "prerequisites"):
        if key not in changes or changes[key] is None:
            continue
        value = changes[key]
        if key == "name":
            value = _require(value, "Course name")
        elif key == "cost":
            value = float(value)
            if value < 0:
                raise ValidationError("Course cost cannot be negative.")
        elif key == "prerequisites":
            value = json.dumps(list(value))
        sets.append(f"{key} = ?")
        params.append(value)

    with get_db() as conn:
        if "teacher_id" in changes:
            _check_teacher(conn, changes["teacher_id"])
        row = conn.execute("SELECT id FROM courses WHERE id = ?", (course_id,)).fetchone()
        if not row:
            raise NotFoundError(f"Course not found: {course_id}")
        if sets:
            conn.execute(f"UPDATE courses SET {', '.join(sets)} WHERE id = ?", (*params, course_id))
        row = conn.execute("SELECT * FROM courses WHERE id = ?", (course_id,)).fetchone()
        return _course_from_row(conn, row)


def delete_course(course_id: str) -> None:
    with get_db() as conn:
        result = conn.execute("DELETE FROM courses WHERE id = ?", (course_id,))
        if result.rowcount == 0:
            raise NotFoundError(f"Course not found: {course_id}")
    logger.info("Deleted course %s", course_id)


def is_course_member(course_id: str, user: User) -> bool:
    if user.role == UserRole.SUPER_ADMIN:
        return True
    with get_db() as conn:
        if user.role == UserRole.TEACHER:
            row = conn.execute(
                "SELECT 1 FROM courses WHERE id = ? AND teacher_id = ?",
                (course_id, user.id),
            ).fetchone()
        else:
            row = conn.execute(
                "SELECT 1 FROM enrollments WHERE course_id = ? AND student_id = ?",
                (course_id, user.id),
            ).fetchone()
        return row is not None

# ── Enrollments ───────────────────────────────────────────

def enrollment_id(course_id: str, student_id: str) -> str:
    return f"enroll-{course_id}-{student_id}"


def _enrollment_from_row(row: sqlite3.Row) -> Enrollment:
    return Enrollment(
        id=row["id"],
        student_id=row["student_id"],
        course_id=row["course_id"],
        enrollment_date=row["enrollment_date"],
        grade=row["grade"],
    )


def enroll_student(course_id: str, student_id: str) -> Enrollment:
    """Enroll a student; enrolling twice returns the existing enrollment."""
    with get_db() as conn:
        course = conn.execute("SELECT id, name FROM courses WHERE id = ?", (course_id,)).fetchone()
        if not course:
            raise NotFoundError(f"Course not found: {course_id}")
        student = conn.execute("SELECT role FROM users WHERE id = ?", (student_id,)).fetchone()
        if not student:
            raise NotFoundError(f"Student not found: {student_id}")
        if student["role"] != UserRole.STUDENT.value:
            raise ValidationError(f"User {student_id} is not a student.")

        existing = conn.execute(
            "SELECT * FROM enrollments WHERE course_id = ? AND student_id = ?",
            (course_id, student_id),
        ).fetchone()
        if existing:
            return _enrollment_from_row(existing)

        enrollment = Enrollment(
            id=enrollment_id(course_id, student_id),
            student_id=student_id,
            course_id=course_id,
            enrollment_date=_iso_now(),
        )
        conn.execute(
            """INSERT INTO enrollments (id, student_id, course_id, enrollment_date)
               VALUES (?, ?, ?, ?)""",
            (enrollment.id, student_id, course_id, enrollment.enrollment_date),
        )
        _insert_notification(
            conn,
            student_id,
            NotificationType.ENROLLMENT_UPDATE,
            f"You have been enrolled in {course['name']}.",
            link=f"/student/courses/{course_id}",
            course_id=course_id,
        )
    logger.info("Enrolled student %s in course %s", student_id, course_id)
    return enrollment


def unenroll_student(course_id: str, student_id: str) -> None:
    with get_db() as conn:
        result = conn.execute(
            "DELETE FROM enrollments WHERE course_id = ? AND student_id = ?",
            (course_id, student_id),
        )
        if result.rowcount == 0:
            raise NotFoundError(f"Enrollment not found: {enrollment_id(course_id, student_id)}")
    logger.info("Unenrolled student %s from course %s", student_id, course_id)


def list_enrollments(course_id: str | None = None, student_id: str | None = None) -> list[Enrollment]:
    with get_db() as conn:
        sql = "SELECT * FROM enrollments WHERE 1 = 1"
        params: list = []
        if course_id:
            sql += " AND course_id = ?"
            params.append(course_id)
        if student_id:
            sql += " AND student_id = ?"
            params.append(student_id)
        sql += " ORDER BY enrollment_date DESC"
        rows = conn.execute(sql, tuple(params)).fetchall()
        return [_enrollment_from_row(r) for r in rows]

# ── Lessons ───────────────────────────────────────────────

def _lesson_from_row(row: sqlite3.Row) -> Lesson:
    return Lesson(
        id=row["id"],
        course_id=row["course_id"],
        title=row["title"],
        content_markdown=row["content_markdown"] or "",
        order=int(row["sort_order"] or 0),
        video_url=row["video_url"],
        file_url=row["file_url"],
        file_name=row["file_name"],
    )


def create_lesson(
    course_id: str,
    title: str,
    content_markdown: str = "",
    order: int | None = None,
    video_url: str | None = None,
    file_url: str | None = None,
    file_name: str | None = None,
) -> Lesson:
    title = _require(title, "Lesson title")
    with get_db() as conn:
        if not conn.execute("SELECT 1 FROM courses WHERE id = ?", (course_id,)).fetchone():
            raise NotFoundError(f"Course not found: {course_id}")
        if order is None:
            order = int(conn.execute(
                "SELECT COALESCE(MAX(sort_order), 0) + 1 FROM lessons WHERE course_id = ?",
                (course_id,),
            ).fetchone()[0])
        lesson = Lesson(_new_id(), course_id, title, content_markdown or "", int(order),
                        video_url, file_url, file_name)
        conn.execute(
            """INSERT INTO lessons
                 (id, course_id, title, content_markdown, video_url, file_url, file_name, sort_order)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
            (lesson.id, course_id, lesson.title, lesson.content_markdown,
             video_url, file_url, file_name, lesson.order),
        )
    return lesson


def get_lesson(lesson_id: str) -> Lesson | None:
    with get_db() as conn:
        row = conn.execute("SELECT * FROM lessons WHERE id = ?", (lesson_id,)).fetchone()
        return _lesson_from_row(row) if row else None


def list_lessons(course_id: str) -> list[Lesson]:
    with get_db() as conn:
        rows = conn.execute(
            "SELECT * FROM lessons WHERE course_id = ? ORDER BY sort_order, title",
            (course_id,),
        ).fetchall()
        return [_lesson_from_row(r) for r in rows]


def update_lesson(lesson_id: str, **changes) -> Lesson:
    columns = {
        "title": "title",
        "content_markdown": "content_markdown",
        "video_url": "video_url",
        "file_url": "file_url",
        "file_name": "file_name",
        "order": "sort_order",
    }
    sets: list[str] = []
    params: list[Any] = []
    for key, column in columns.items():
        if key not in changes or changes[key] is None:
            continue
        value = changes[key]
        if key == "title":
            value = _require(value, "Lesson title")
        elif key == "order":
            value = int(value)
        sets.append(f"{column} = ?")
        params.append(value)

    with get_db() as conn:
        if sets:
            result = conn.execute(f"UPDATE lessons SET {', '.join(sets)} WHERE id = ?", (*params, lesson_id))
            if result.rowcount == 0:
                raise NotFoundError(f"Lesson not found: {lesson_id}")
        row = conn.execute("SELECT * FROM lessons WHERE id = ?", (lesson_id,)).fetchone()
    if not row:
        raise NotFoundError(f"Lesson not found: {lesson_id}")
    return _lesson_from_row(row)


def delete_lesson(lesson_id: str) -> None:
    with get_db() as conn:
        result = conn.execute("DELETE FROM lessons WHERE id = ?", (lesson_id,))
        if result.rowcount == 0:
            raise NotFoundError(f"Lesson not found: {lesson_id}")

# ── Assignments ───────────────────────────────────────────

def _question_from_row(row: sqlite3.Row) -> QuizQuestion:
    raw_answer = row["correct_answer"]
    try:
        answer = json.loads(raw_answer)
    except (TypeError, ValueError):
        answer = raw_answer
    options = row["options"]
    return QuizQuestion(
        id=row["id"],
        assignment_id=row["assignment_id"],
        question_text=row["question_text"],
        question_type=QuestionType(row["question_type"]),
        options=_json_list(options) if options is not None else None,
        correct_answer=answer,
        points=float(row["points"] or 0),
    )


def _assignment_from_row(conn: sqlite3.Connection, row: sqlite3.Row) -> Assignment:
    questions = [
        _question_from_row(q)
        for q in conn.execute(
            "SELECT * FROM quiz_questions WHERE assignment_id = ? ORDER BY position",
            (row["id"],),
        ).fetchall()
    ]
    rubric = [
        RubricCriterion(r["id"], r["description"], float(r["points"] or 0))
        for r in conn.execute(
            "SELECT * FROM rubric_criteria WHERE assignment_id = ? ORDER BY position",
            (row["id"],),
        ).fetchall()
    ]
    return Assignment(
        id=row["id"],
        course_id=row["course_id"],
        title=row["title"],
        description=row["description"] or "",
        due_date=row["due_date"],
        type=AssignmentType(row["type"]),
        total_points=float(row["total_points"] or 0),
        questions=questions,
        rubric=rubric,
        assignment_file_url=row["assignment_file_url"],
        assignment_file_name=row["assignment_file_name"],
        external_link=row["external_link"],
    )


def _write_questions(conn: sqlite3.Connection, assignment_id: str,
                     questions: list[QuizQuestion], start: int = 0) -> None:
    for position, q in enumerate(questions, start=start):
        if not q.id:
            q.id = _new_id()
        q.assignment_id = assignment_id
        conn.execute(
            """INSERT INTO quiz_questions
                 (id, assignment_id, question_text, question_type, options,
                  correct_answer, points, position)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
            (q.id, assignment_id, q.question_text, q.question_type.value,
             json.dumps(q.options) if q.options is not None else None,
             json.dumps(q.correct_answer), float(q.points), position),
        )


def _write_rubric(conn: sqlite3.Connection, assignment_id: str, rubric: list[RubricCriterion]) -> None:
    for position, r in enumerate(rubric):
        if not r.id:
            r.id = _new_id()
        conn.execute(
            """INSERT INTO rubric_criteria (id, assignment_id, description, points, position)
               VALUES (?, ?, ?, ?, ?)""",
            (r.id, assignment_id, r.description, float(r.points), position),
        )


def _notify_course_students(conn: sqlite3.Connection, course_id: str, ntype: NotificationType,
                            message: str, link: str | None) -> int:
    rows = conn.execute("SELECT student_id FROM enrollments WHERE course_id = ?", (course_id,)).fetchall()
    for row in rows:
        _insert_notification(conn, row["student_id"], ntype, message, link=link, course_id=course_id)
    return len(rows)


def create_assignment(
    course_id: str,
    title: str,
    due_date: str,
    description: str = "",
    assignment_type: AssignmentType | str = AssignmentType.STANDARD,
    questions: list[QuizQuestion] | None = None,
    rubric: list[RubricCriterion] | None = None,
    manual_total_points: float | None = None,
    assignment_file_url: str | None = None,
    assignment_file_name: str | None = None,
    external_link: str | None = None,
) -> Assignment:
    title = _require(title, "Assignment title")
    due_date = _require(due_date, "Due date")
    try:
        assignment_type = AssignmentType(assignment_type)
    except ValueError:
        raise ValidationError(f"Invalid assignment type: {assignment_type}") from None
    questions = list(questions or [])
    rubric = list(rubric or [])
    total = assignment_total_points(assignment_type, questions, rubric, manual_total_points)
    new_id = _new_id()

    with get_db() as conn:
        course = conn.execute("SELECT id FROM courses WHERE id = ?", (course_id,)).fetchone()
        if not course:
            raise NotFoundError(f"Course not found: {course_id}")
        conn.execute(
            """INSERT INTO assignments
                 (id, course_id, title, description, due_date, type, total_points,
                  assignment_file_url, assignment_file_name, external_link)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (new_id, course_id, title, description or "", due_date, assignment_type.value, total,
             assignment_file_url, assignment_file_name, external_link),
        )
        _write_questions(conn, new_id, questions)
        _write_rubric(conn, new_id, rubric)
        notified = _notify_course_students(
            conn,
            course_id,
            NotificationType.NEW_ASSIGNMENT,
            f"New assignment posted: {title}",
            f"/student/courses/{course_id}",
        )
        row = conn.execute("SELECT * FROM assignments WHERE id = ?", (new_id,)).fetchone()
        assignment = _assignment_from_row(conn, row)
    logger.info("Created assignment %s in course %s (notified %s students)", new_id, course_id, notified)
    return assignment


def get_assignment(assignment_id: str) -> Assignment | None:
    with get_db() as conn:
        row = conn.execute("SELECT * FROM assignments WHERE id = ?", (assignment_id,)).fetchone()
        return _assignment_from_row(conn, row) if row else None


def list_assignments(course_id: str) -> list[Assignment]:
    with get_db() as conn:
        rows = conn.execute(
            "SELECT * FROM assignments WHERE course_id = ? ORDER BY due_date, title",
            (course_id,),
        ).fetchall()
        return [_assignment_from_row(conn, r) for r in rows]


def update_assignment(
    assignment_id: str,
    questions: list[QuizQuestion] | None = None,
    rubric: list[RubricCriterion] | None = None,
    manual_total_points: float | None = None,
    **changes,
) -> Assignment:
    with get_db() as conn:
        row = conn.execute("SELECT * FROM assignments WHERE id = ?", (assignment_id,)).fetchone()
        if not row:
            raise NotFoundError(f"Assignment not found: {assignment_id}")
        current = _assignment_from_row(conn, row)

        sets: list[str] = []
        params: list[Any] = []
        for key in ("title", "description", "due_date", "assignment_file_url",
                    "assignment_file_name", "external_link"):
            if key in changes and changes[key] is not None:
                value = changes[key]
                if key in ("title", "due_date"):
                    value = _require(value, key.replace("_", " ").capitalize())
                sets.append(f"{key} = ?")
                params.append(value)

        assignment_type = current.type
        if changes.get("type") is not None:
            try:
                assignment_type = AssignmentType(changes["type"])
            except ValueError:
                raise ValidationError(f"Invalid assignment type: {changes['type']}") from None
            sets.append("type = ?")
            params.append(assignment_type.value)

        if questions is not None:
            conn.execute("DELETE FROM quiz_questions WHERE assignment_id = ?", (assignment_id,))
            _write_questions(conn, assignment_id, list(questions))
        if rubric is not None:
            conn.execute("DELETE FROM rubric_criteria WHERE assignment_id = ?", (assignment_id,))
            _write_rubric(conn, assignment_id, list(rubric))

        # An explicit total on update overrides question and rubric sums.
        if manual_total_points is not None:
            total = float(manual_total_points)
            if not math.isfinite(total) or total < 0:
                raise ValidationError("Total points must be a non-negative number.")
        else:
            total = assignment_total_points(
                assignment_type,
                list(questions) if questions is not None else current.questions,
                list(rubric) if rubric is not None else current.rubric,
                current.total_points,
            )
        sets.append("total_points = ?")
        params.append(total)
        conn.execute(f"UPDATE assignments SET {', '.join(sets)} WHERE id = ?", (*params, assignment_id))

        row = conn.execute("SELECT * FROM assignments WHERE id = ?", (assignment_id,)).fetchone()
        return _assignment_from_row(conn, row)


def add_quiz_questions(assignment_id: str, questions: list[QuizQuestion]) -> Assignment:
    """Append questions (e.g. AI-generated ones) and recompute the point total."""
    with get_db() as conn:
        row = conn.execute("SELECT * FROM assignments WHERE id = ?", (assignment_id,)).fetchone()
        if not row:
            raise NotFoundError(f"Assignment not found: {assignment_id}")
        start = int(conn.execute(
            "SELECT COALESCE(MAX(position), -1) + 1 FROM quiz_questions WHERE assignment_id = ?",
            (assignment_id,),
        ).fetchone()[0])
        _write_questions(conn, assignment_id, list(questions), start=start)
        conn.execute(
            """UPDATE assignments
               SET total_points = (SELECT COALESCE(SUM(points), 0)
                                   FROM quiz_questions WHERE assignment_id = ?)
               WHERE id = ?""",
            (assignment_id, assignment_id),
        )
        row = conn.execute("SELECT * FROM assignments WHERE id = ?", (assignment_id,)).fetchone()
        return _assignment_from_row(conn, row)


def delete_assignment(assignment_id: str) -> None:
    with get_db() as conn:
        result = conn.execute("DELETE FROM assignments WHERE id = ?", (assignment_id,))
        if result.rowcount == 0:
            raise NotFoundError(f"Assignment not found: {assignment_id}")

# ── Submissions ───────────────────────────────────────────

def _submission_from_row(row: sqlite3.Row) -> Submission:
    answers = [
        QuizAnswer(
            question_id=str(a.get("questionId")),
            student_answer=a.get("studentAnswer"),
            is_correct=a.get("isCorrect"),
            auto_grade_score=a.get("autoGradeScore"),
        )
        for a in _json_list(row["quiz_answers"])
        if isinstance(a, dict)
    ]
    return Submission(
        id=row["id"],
        assignment_id=row["assignment_id"],
        student_id=row["student_id"],
        submitted_at=row["submitted_at"],
        content=row["content"],
        file_url=row["file_url"],
        file_name=row["file_name"],
        quiz_answers=answers,
        grade=row["grade"],
        feedback=row["feedback"],
    )


def submit_assignment(
    assignment_id: str,
    student_id: str,
    content: str | None = None,
    file_url: str | None = None,
    file_name: str | None = None,
    quiz_answers: list[QuizAnswer] | None = None,
) -> Submission:
    """Store (or replace) a student's submission; quiz answers are auto-graded."""
    assignment = get_assignment(assignment_id)
    if not assignment:
        raise NotFoundError("Assignment or course context not found for submission.")

    grade = None
    answers = list(quiz_answers or [])
    if answers:
        answers, grade = grade_quiz(assignment.questions, answers)

    submitted_at = _iso_now()
    with get_db() as conn:
        enrolled = conn.execute(
            "SELECT 1 FROM enrollments WHERE course_id = ? AND student_id = ?",
            (assignment.course_id, student_id),
        ).fetchone()
        if not enrolled:
            raise PermissionDenied("Forbidden: student is not enrolled in this course.")
        existing = conn.execute(
            "SELECT id FROM submissions WHERE assignment_id = ? AND student_id = ?",
            (assignment_id, student_id),
        ).fetchone()
        submission_id = existing["id"] if existing else _new_id()
        conn.execute(
            """INSERT INTO submissions
                 (id, assignment_id, student_id, submitted_at, content, file_url,
                  file_name, quiz_answers, grade, feedback)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, NULL)
               ON CONFLICT(assignment_id, student_id) DO UPDATE SET
                 submitted_at = excluded.submitted_at,
                 content      = excluded.content,
                 file_url     = excluded.file_url,
                 file_name    = excluded.file_name,
                 quiz_answers = excluded.quiz_answers,
                 grade        = excluded.grade,
                 feedback     = NULL""",
            (submission_id, assignment_id, student_id, submitted_at, content, file_url, file_name,
             json.dumps([a.to_dict() for a in answers]), grade),
        )
        teacher = conn.execute(
            "SELECT teacher_id FROM courses WHERE id = ?", (assignment.course_id,)
        ).fetchone()
        if teacher and teacher["teacher_id"]:
            _insert_notification(
                conn,
                teacher["teacher_id"],
                NotificationType.SUBMISSION_RECEIVED,
                f"New submission for {assignment.title}",
                link=f"/teacher/courses/{assignment.course_id}",
                course_id=assignment.course_id,
            )
        row = conn.execute("SELECT * FROM submissions WHERE id = ?", (submission_id,)).fetchone()
        return _submission_from_row(row)


def get_submission(submission_id: str) -> Submission | None:
    with get_db() as conn:
        row = conn.execute("SELECT * FROM submissions WHERE id = ?", (submission_id,)).fetchone()
        return _submission_from_row(row) if row else None


def list_submissions(assignment_id: str | None = None, student_id: str | None = None) -> list[Submission]:
    with get_db() as conn:
        sql = "SELECT * FROM submissions WHERE 1 = 1"
        params: list = []
        if assignment_id:
            sql += " AND assignment_id = ?"
            params.append(assignment_id)
        if student_id:
            sql += " AND student_id = ?"
            params.append(student_id)
        sql += " ORDER BY submitted_at DESC"
        rows = conn.execute(sql, tuple(params)).fetchall()
        return [_submission_from_row(r) for r in rows]


def _check_grade(grade: float, total_points: float) -> float:
    try:
        grade = float(grade)
    except (TypeError, ValueError):
        raise ValidationError("Grade must be a number.") from None
    if not math.isfinite(grade) or grade < 0 or grade > total_points:
        raise ValidationError(f"Grade must be between 0 and {total_points:g}.")
    return grade


def grade_submission(submission_id: str, grade: float, feedback: str | None = None) -> Submission:
    with get_db() as conn:
        row = conn.execute(
            """SELECT s.*, a.total_points, a.title, a.course_id
               FROM submissions s
               JOIN assignments a ON a.id = s.assignment_id
               WHERE s.id = ?""",
            (submission_id,),
        ).fetchone()
        if not row:
            raise NotFoundError("Submission not found.")
        grade = _check_grade(grade, float(row["total_points"] or 0))
        conn.execute(
            "UPDATE submissions SET grade = ?, feedback = ? WHERE id = ?",
            (grade, feedback, submission_id),
        )
        _insert_notification(
            conn,
            row["student_id"],
            NotificationType.SUBMISSION_GRADED,
            f"Your submission for {row['title']} was graded: {grade:g}/{float(row['total_points'] or 0):g}",
            link=f"/student/courses/{row['course_id']}",
            course_id=row["course_id"],
        )
        updated = conn.execute("SELECT * FROM submissions WHERE id = ?", (submission_id,)).fetchone()
        return _submission_from_row(updated)


def admin_update_or_create_submission(
    student_id: str,
    assignment_id: str,
    grade: float,
    feedback: str | None = None,
) -> Submission:
    assignment = get_assignment(assignment_id)
    if not assignment:
        raise NotFoundError(f"Assignment not found: {assignment_id}")
    grade = _check_grade(grade, assignment.total_points)

    with get_db() as conn:
        existing = conn.execute(
            "SELECT * FROM submissions WHERE assignment_id = ? AND student_id = ?",
            (assignment_id, student_id),
        ).fetchone()
        if existing:
            conn.execute(
                "UPDATE submissions SET grade = ?, feedback = ? WHERE id = ?",
                (grade, feedback if feedback else (existing["feedback"] or ""), existing["id"]),
            )
            submission_id = existing["id"]
        else:
            submission_id = _new_id()
            conn.execute(
                """INSERT INTO submissions
                     (id, assignment_id, student_id, submitted_at, content, grade, feedback)
                   VALUES (?, ?, ?, ?, 'Administratively recorded.', ?, ?)""",
                (submission_id, assignment_id, student_id, _iso_now(), grade, feedback or ""),
            )
        row = conn.execute("SELECT * FROM submissions WHERE id = ?", (submission_id,)).fetchone()
        return _submission_from_row(row)

# ── Announcements ─────────────────────────────────────────

def _announcement_from_row(row: sqlite3.Row) -> Announcement:
    return Announcement(
        id=row["id"],
        message=row["message"],
        timestamp=int(row["timestamp"]),
        type=row["type"],
        author_id=row["author_id"],
        course_id=row["course_id"],
        link=row["link"],
    )


def create_announcement(
    author: User,
    message: str,
    audience: AnnouncementAudience | str = AnnouncementAudience.ALL,
    course_id: str | None = None,
    link: str | None = None,
) -> Announcement:
    message = _require(message, "Announcement message")
    try:
        audience = AnnouncementAudience(audience)
    except ValueError:
        raise ValidationError(f"Invalid announcement audience: {audience}") from None
    if audience == AnnouncementAudience.COURSE_SPECIFIC and not course_id:
        raise ValidationError("Course is required for course-specific announcements.")

    announcement = Announcement(
        id=_new_id(),
        message=message,
        timestamp=now_ms(),
        type=audience.value,
        author_id=author.id,
        course_id=course_id if audience == AnnouncementAudience.COURSE_SPECIFIC else None,
        link=link,
    )
    with get_db() as conn:
        if announcement.course_id and not conn.execute(
            "SELECT 1 FROM courses WHERE id = ?", (announcement.course_id,)
        ).fetchone():
            raise NotFoundError(f"Course not found: {announcement.course_id}")
        conn.execute(
            """INSERT INTO announcements (id, message, type, author_id, course_id, link, timestamp)
               VALUES (?, ?, ?, ?, ?, ?, ?)""",
            (announcement.id, message, announcement.type, author.id,
             announcement.course_id, link, announcement.timestamp),
        )
        if announcement.course_id:
            _notify_course_students(
                conn,
                announcement.course_id,
                NotificationType.ANNOUNCEMENT,
                f"New announcement: {message[:60]}",
                link or "/announcements",
            )
    return announcement


def list_announcements_for(user: User) -> list[Announcement]:
    """Announcements visible to a user, newest first."""
    with get_db() as conn:
        if user.role == UserRole.SUPER_ADMIN:
            rows = conn.execute("SELECT * FROM announcements ORDER BY timestamp DESC, rowid DESC").fetchall()
            return [_announcement_from_row(r) for r in rows]

        audience = (
            AnnouncementAudience.TEACHERS.value
            if user.role == UserRole.TEACHER
            else AnnouncementAudience.STUDENTS.value
        )
        rows = conn.execute(
            """SELECT * FROM announcements a
               WHERE a.type IN ('all', ?)
                  OR a.author_id = ?
                  OR (a.type = 'course_specific' AND (
                        EXISTS (SELECT 1 FROM enrollments e
                                WHERE e.course_id = a.course_id AND e.student_id = ?)
                     OR EXISTS (SELECT 1 FROM courses c
                                WHERE c.id = a.course_id AND c.teacher_id = ?)))
               ORDER BY a.timestamp DESC, a.rowid DESC""",
            (audience, user.id, user.id, user.id),
        ).fetchall()
        return [_announcement_from_row(r) for r in rows]

# ── Notifications ─────────────────────────────────────────

def _notification_from_row(row: sqlite3.Row) -> Notification:
    return Notification(
        id=row["id"],
        user_id=row["user_id"],
        type=row["type"],
        message=row["message"],
        read=bool(row["read"]),
        timestamp=int(row["timestamp"]),
        course_id=row["course_id"],
        link=row["link"],
    )


def add_notification(user_id: str, ntype: NotificationType | str, message: str,
                     link: str | None = None, course_id: str | None = None) -> Notification:
    with get_db() as conn:
        return _insert_notification(conn, user_id, ntype, _require(message, "Message"), link, course_id)


def list_notifications(user_id: str, limit: int | None = None) -> list[Notification]:
    with get_db() as conn:
        sql = "SELECT * FROM notifications WHERE user_id = ? ORDER BY timestamp DESC, rowid DESC"
        params: tuple = (user_id,)
        if limit is not None:
            sql += " LIMIT ?"
            params = (user_id, int(limit))
        rows = conn.execute(sql, params).fetchall()
        return [_notification_from_row(r) for r in rows]


def unread_notification_count(user_id: str) -> int:
    with get_db() as conn:
        return int(conn.execute(
            "SELECT COUNT(*) FROM notifications WHERE user_id = ? AND read = 0",
            (user_id,),
        ).fetchone()[0])


def mark_notification_read(notification_id: str, user_id: str) -> bool:
    with get_db() as conn:
        result = conn.execute(
            "UPDATE notifications SET read = 1 WHERE id = ? AND user_id = ?",
            (notification_id, user_id),
        )
        return result.rowcount > 0


def mark_all_notifications_read(user_id: str) -> int:
    with get_db() as conn:
        result = conn.execute(
            "UPDATE notifications SET read = 1 WHERE user_id = ? AND read = 0",
            (user_id,),
        )
        return result.rowcount


def clear_notifications(user_id: str) -> int:
    with get_db() as conn:
        result = conn.execute("DELETE FROM notifications WHERE user_id = ?", (user_id,))
        return result.rowcount

# ── Direct messages ───────────────────────────────────────

def _message_from_row(row: sqlite3.Row) -> DirectMessage:
    return DirectMessage(
        id=row["id"],
        sender_id=row["sender_id"],
        recipient_id=row["recipient_id"],
        content=row["content"],
        timestamp=int(row["timestamp"]),
        read=bool(row["read"]),
    )


def send_direct_message(sender: User, recipient_id: str, content: str) -> DirectMessage:
    content = _require(content, "Message content")
    if recipient_id == sender.id:
        raise ValidationError("Cannot send a message to yourself.")
    message = DirectMessage(_new_id(), sender.id, recipient_id, content, now_ms(), False)
    with get_db() as conn:
        if not conn.execute("SELECT 1 FROM users WHERE id = ?", (recipient_id,)).fetchone():
            raise NotFoundError(f"Recipient not found: {recipient_id}")
        conn.execute(
            """INSERT INTO direct_messages (id, sender_id, recipient_id, content, read, timestamp)
               VALUES (?, ?, ?, ?, 0, ?)""",
            (message.id, sender.id, recipient_id, content, message.timestamp),
        )
        _insert_notification(
            conn,
            recipient_id,
            NotificationType.NEW_MESSAGE,
            f'New message from {sender.name}: "{content[:30]}..."',
            link="/messages",
        )
    return message


def list_direct_messages(user_id: str, other_user_id: str | None = None) -> list[DirectMessage]:
    """Messages sent or received by a user, oldest first."""
    with get_db() as conn:
        if other_user_id:
            rows = conn.execute(
                """SELECT * FROM direct_messages
                   WHERE (sender_id = ? AND recipient_id = ?)
                      OR (sender_id = ? AND recipient_id = ?)
                   ORDER BY timestamp ASC, rowid ASC""",
                (user_id, other_user_id, other_user_id, user_id),
            ).fetchall()
        else:
            rows = conn.execute(
                """SELECT * FROM direct_messages
                   WHERE sender_id = ? OR recipient_id = ?
                   ORDER BY timestamp ASC, rowid ASC""",
                (user_id, user_id),
            ).fetchall()
        return [_message_from_row(r) for r in rows]


def mark_message_read(message_id: str, user_id: str) -> bool:
    """Only the recipient can mark a message as read."""
    with get_db() as conn:
        result = conn.execute(
            "UPDATE direct_messages SET read = 1 WHERE id = ? AND recipient_id = ?",
            (message_id, user_id),
        )
        return result.rowcount > 0


def unread_message_count(user_id: str) -> int:
    with get_db() as conn:
        return int(conn.execute(
            "SELECT COUNT(*) FROM direct_messages WHERE recipient_id = ? AND read = 0",
            (user_id,),
        ).fetchone()[0])
