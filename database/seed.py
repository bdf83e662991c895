"""
seed.py: load demo users, courses and coursework into the database.
Run once:  python -m database.seed   (or: python run_all.py --seed)

Safe to run repeatedly: nothing is inserted when the admin account exists.
"""
import logging
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))

from database.db import (
    create_announcement,
    create_assignment,
    create_course,
    create_lesson,
    create_user,
    enroll_student,
    get_user_by_email,
    init_db,
    send_direct_message,
)
from models import AnnouncementAudience, AssignmentType, QuestionType, QuizQuestion, RubricCriterion, UserRole

logger = logging.getLogger("classroomhq.seed")

DEMO_PASSWORD = "password123"


def seed():
    # ── Init schema ───────────────────────────────────────
    init_db()
    if get_user_by_email("admin@classroomhq.test"):
        logger.info("Demo data already present, skipping seed")
        return

    # ── Users ─────────────────────────────────────────────
    admin = create_user("Ada Admin", "admin@classroomhq.test", UserRole.SUPER_ADMIN,
                        password=DEMO_PASSWORD, user_id="user-admin")
    teacher = create_user("Tomas Teacher", "teacher@classroomhq.test", UserRole.TEACHER,
                          password=DEMO_PASSWORD, user_id="user-teacher-1")
    students = [
        create_user(name, email, UserRole.STUDENT, password=DEMO_PASSWORD, user_id=uid)
        for uid, name, email in (
            ("user-student-1", "Sam Student", "sam@classroomhq.test"),
            ("user-student-2", "Priya Patel", "priya@classroomhq.test"),
            ("user-student-3", "Leo Martins", "leo@classroomhq.test"),
        )
    ]

    # ── Courses & enrollments ─────────────────────────────
    algebra = create_course(
        "Algebra I", "Linear equations, inequalities and functions.",
        teacher_id=teacher.id, cost=120, category="Mathematics", course_id="course-1",
    )
    biology = create_course(
        "Intro to Biology", "Cells, genetics and ecosystems.",
        teacher_id=teacher.id, cost=90, category="Science",
        prerequisites=[], course_id="course-2",
    )
    for student in students:
        enroll_student(algebra.id, student.id)
    enroll_student(biology.id, students[0].id)

    # ── Lessons ───────────────────────────────────────────
    create_lesson(
        algebra.id, "Solving Linear Equations",
        "<p>A linear equation has the form <strong>ax + b = c</strong>. "
        "Isolate x by undoing addition first, then multiplication.</p>",
    )
    create_lesson(
        algebra.id, "Inequalities",
        "<p>Inequalities behave like equations, except the sign flips "
        "when multiplying or dividing by a negative number.</p>",
    )
    create_lesson(
        biology.id, "The Cell",
        "<p>The cell is the basic unit of life. Plant cells have a cell wall "
        "and chloroplasts; animal cells do not.</p>",
    )

    # ── Assignments ───────────────────────────────────────
    create_assignment(
        algebra.id, "Chapter 1 Quiz", "2026-11-15T23:59:00+00:00",
        description="Ten minutes, no calculator.",
        assignment_type=AssignmentType.QUIZ,
        questions=[
            QuizQuestion("", "Solve 2x + 3 = 7", QuestionType.MULTIPLE_CHOICE, "2", 10,
                         options=["1", "2", "3", "4"]),
            QuizQuestion("", "Dividing an inequality by -1 flips the sign.",
                         QuestionType.TRUE_FALSE, "true", 5),
            QuizQuestion("", "Name the letter usually used for the unknown.",
                         QuestionType.SHORT_ANSWER, ["x", "variable"], 5),
        ],
    )
    create_assignment(
        biology.id, "Cell Diagram", "2026-11-20T23:59:00+00:00",
        description="Draw and label a plant cell.",
        rubric=[
            RubricCriterion("", "All organelles labelled", 6),
            RubricCriterion("", "Neat and accurate drawing", 4),
        ],
    )

    # ── Announcements & messages ──────────────────────────
    create_announcement(admin, "Welcome to ClassroomHQ!", AnnouncementAudience.ALL)
    create_announcement(teacher, "Quiz on Friday, revise chapter 1.",
                        AnnouncementAudience.COURSE_SPECIFIC, course_id=algebra.id)
    send_direct_message(teacher, students[0].id, "Great work on last week's homework, keep it up!")

    logger.info("Seed complete: %s users, 2 courses", 2 + len(students))


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    seed()
