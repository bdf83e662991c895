"""
Shared record types for ClassroomHQ.

Every entity the dashboard, the database layer and the client caches pass
around is defined here so that field names stay consistent everywhere.
`to_dict()` produces the JSON shape returned by the HTTP API (camelCase, as
the browser expects); `from_dict()` exists where records are read back from
JSON (favorites and recent items live in the local store).
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class UserRole(str, Enum):
    SUPER_ADMIN = "SuperAdmin"
    TEACHER = "Teacher"
    STUDENT = "Student"


class AssignmentType(str, Enum):
    STANDARD = "standard"
    QUIZ = "quiz"


class QuestionType(str, Enum):
    MULTIPLE_CHOICE = "multiple-choice"
    TRUE_FALSE = "true-false"
    SHORT_ANSWER = "short-answer"


class AnnouncementAudience(str, Enum):
    ALL = "all"
    STUDENTS = "students"
    TEACHERS = "teachers"
    COURSE_SPECIFIC = "course_specific"


class NotificationType(str, Enum):
    SUCCESS = "success"
    ERROR = "error"
    INFO = "info"
    WARNING = "warning"
    NEW_ASSIGNMENT = "new_assignment"
    GRADE_UPDATE = "grade_update"
    ANNOUNCEMENT = "announcement"
    NEW_MESSAGE = "new_message"
    SUBMISSION_RECEIVED = "submission_received"
    SUBMISSION_GRADED = "submission_graded"
    ENROLLMENT_UPDATE = "enrollment_update"


class ItemType(str, Enum):
    COURSE = "course"
    ASSIGNMENT = "assignment"
    LESSON = "lesson"
    USER = "user"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def now_ms() -> int:
    return int(utc_now().timestamp() * 1000)


def parse_timestamp(value: Any) -> datetime | None:
    """Accept ISO strings, epoch milliseconds or datetimes; return aware UTC."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, (int, float)):
        dt = datetime.fromtimestamp(float(value) / 1000.0, tz=timezone.utc)
    else:
        try:
            dt = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
        except ValueError:
            return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


@dataclass
class User:
    id: str
    name: str
    email: str
    role: UserRole
    avatar_url: str | None = None
    bio: str | None = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "role": self.role.value,
            "avatarUrl": self.avatar_url,
            "bio": self.bio,
        }


@dataclass
class Course:
    id: str
    name: str
    description: str
    teacher_id: str | None
    cost: float = 0.0
    category: str | None = None
    student_ids: list[str] = field(default_factory=list)
    prerequisites: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "teacherId": self.teacher_id,
            "studentIds": list(self.student_ids),
            "category": self.category,
            "cost": self.cost,
            "prerequisites": list(self.prerequisites),
        }


@dataclass
class Enrollment:
    id: str
    student_id: str
    course_id: str
    enrollment_date: str
    grade: str | None = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "studentId": self.student_id,
            "courseId": self.course_id,
            "enrollmentDate": self.enrollment_date,
            "grade": self.grade,
        }


@dataclass
class Lesson:
    id: str
    course_id: str
    title: str
    content_markdown: str
    order: int
    video_url: str | None = None
    file_url: str | None = None
    file_name: str | None = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "courseId": self.course_id,
            "title": self.title,
            "contentMarkdown": self.content_markdown,
            "videoUrl": self.video_url,
            "fileUrl": self.file_url,
            "fileName": self.file_name,
            "order": self.order,
        }


@dataclass
class QuizQuestion:
    id: str
    question_text: str
    question_type: QuestionType
    correct_answer: str | list[str]
    points: float
    options: list[str] | None = None
    assignment_id: str | None = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "assignmentId": self.assignment_id,
            "questionText": self.question_text,
            "questionType": self.question_type.value,
            "options": self.options,
            "correctAnswer": self.correct_answer,
            "points": self.points,
        }


@dataclass
class RubricCriterion:
    id: str
    description: str
    points: float

    def to_dict(self) -> dict:
        return {"id": self.id, "description": self.description, "points": self.points}


@dataclass
class Assignment:
    id: str
    course_id: str
    title: str
    description: str
    due_date: str
    type: AssignmentType
    total_points: float
    questions: list[QuizQuestion] = field(default_factory=list)
    rubric: list[RubricCriterion] = field(default_factory=list)
    assignment_file_url: str | None = None
    assignment_file_name: str | None = None
    external_link: str | None = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "courseId": self.course_id,
            "title": self.title,
            "description": self.description,
            "dueDate": self.due_date,
            "type": self.type.value,
            "totalPoints": self.total_points,
            "questions": [q.to_dict() for q in self.questions],
            "rubric": [r.to_dict() for r in self.rubric],
            "assignmentFileUrl": self.assignment_file_url,
            "assignmentFileName": self.assignment_file_name,
            "externalLink": self.external_link,
        }


@dataclass
class QuizAnswer:
    question_id: str
    student_answer: str | list[str]
    is_correct: bool | None = None
    auto_grade_score: float | None = None

    def to_dict(self) -> dict:
        return {
            "questionId": self.question_id,
            "studentAnswer": self.student_answer,
            "isCorrect": self.is_correct,
            "autoGradeScore": self.auto_grade_score,
        }


@dataclass
class Submission:
    id: str
    assignment_id: str
    student_id: str
    submitted_at: str
    content: str | None = None
    file_url: str | None = None
    file_name: str | None = None
    quiz_answers: list[QuizAnswer] = field(default_factory=list)
    grade: float | None = None
    feedback: str | None = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "assignmentId": self.assignment_id,
            "studentId": self.student_id,
            "submittedAt": self.submitted_at,
            "content": self.content,
            "fileUrl": self.file_url,
            "fileName": self.file_name,
            "quizAnswers": [a.to_dict() for a in self.quiz_answers],
            "grade": self.grade,
            "feedback": self.feedback,
        }


@dataclass
class Announcement:
    id: str
    message: str
    timestamp: int
    type: str
    author_id: str | None = None
    course_id: str | None = None
    link: str | None = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "message": self.message,
            "timestamp": self.timestamp,
            "type": self.type,
            "userId": self.author_id,
            "courseId": self.course_id,
            "link": self.link,
        }


@dataclass
class Notification:
    id: str
    user_id: str
    type: str
    message: str
    read: bool
    timestamp: int
    course_id: str | None = None
    link: str | None = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "userId": self.user_id,
            "courseId": self.course_id,
            "type": self.type,
            "message": self.message,
            "link": self.link,
            "read": self.read,
            "timestamp": self.timestamp,
        }


@dataclass
class DirectMessage:
    id: str
    sender_id: str
    recipient_id: str
    content: str
    timestamp: int
    read: bool = False

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "senderId": self.sender_id,
            "recipientId": self.recipient_id,
            "content": self.content,
            "timestamp": self.timestamp,
            "read": self.read,
        }


def _item_fields(data: dict) -> tuple[str, ItemType, str, str, dict]:
    return (
        str(data["id"]),
        ItemType(data["type"]),
        str(data.get("title") or ""),
        str(data.get("url") or ""),
        dict(data.get("metadata") or {}),
    )


@dataclass
class FavoriteItem:
    id: str
    type: ItemType
    title: str
    url: str
    added_at: datetime
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "type": self.type.value,
            "title": self.title,
            "url": self.url,
            "addedAt": self.added_at.isoformat(),
            "metadata": dict(self.metadata),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "FavoriteItem":
        item_id, item_type, title, url, metadata = _item_fields(data)
        added_at = parse_timestamp(data.get("addedAt")) or utc_now()
        return cls(item_id, item_type, title, url, added_at, metadata)


@dataclass
class RecentItem:
    id: str
    type: ItemType
    title: str
    url: str
    accessed_at: datetime
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "type": self.type.value,
            "title": self.title,
            "url": self.url,
            "accessedAt": self.accessed_at.isoformat(),
            "metadata": dict(self.metadata),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "RecentItem":
        item_id, item_type, title, url, metadata = _item_fields(data)
        accessed_at = parse_timestamp(data.get("accessedAt"))
        if accessed_at is None:
            raise ValueError(f"recent item {item_id} has no accessedAt")
        return cls(item_id, item_type, title, url, accessed_at, metadata)
