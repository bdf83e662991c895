"""
Tests for the SQLite system of record.

Each test gets a fresh database file in a temporary directory.
"""

import tempfile
import unittest
from pathlib import Path
from unittest import mock

from database import db
from errors import NotFoundError, PermissionDenied, ValidationError
from models import (
    AnnouncementAudience,
    AssignmentType,
    QuestionType,
    QuizAnswer,
    QuizQuestion,
    RubricCriterion,
    UserRole,
)


class DatabaseTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        patcher = mock.patch.object(db, "DB_PATH", Path(self._tmp.name) / "test.db")
        patcher.start()
        self.addCleanup(patcher.stop)
        self.addCleanup(self._tmp.cleanup)
        db.init_db()

        self.admin = db.create_user("Ada Admin", "admin@example.com", UserRole.SUPER_ADMIN, password="pw")
        self.teacher = db.create_user("Tom Teacher", "teacher@example.com", UserRole.TEACHER, password="pw")
        self.student = db.create_user("Sam Student", "sam@example.com", UserRole.STUDENT, password="pw")
        self.course = db.create_course("Algebra", "Equations", teacher_id=self.teacher.id)


class TestUsers(DatabaseTestCase):
    def test_duplicate_email_rejected(self) -> None:
        with self.assertRaises(ValidationError):
            db.create_user("Other", "SAM@example.com", UserRole.STUDENT)

    def test_authenticate(self) -> None:
        self.assertEqual(db.authenticate("Sam@Example.com", "pw").id, self.student.id)
        with self.assertRaises(PermissionDenied):
            db.authenticate("sam@example.com", "wrong")
        with self.assertRaises(PermissionDenied):
            db.authenticate("ghost@example.com", "pw")

    def test_invalid_role(self) -> None:
        with self.assertRaises(ValidationError):
            db.create_user("X", "x@example.com", "Janitor")

    def test_bulk_create_reports_each_row(self) -> None:
        results = db.bulk_create_students([
            {"name": "Amy", "email": "amy@example.com", "password": "pw"},
            {"name": "Dup", "email": "sam@example.com"},
            {"name": "", "email": "blank@example.com"},
        ])
        self.assertEqual([r["success"] for r in results], [True, False, False])
        self.assertIn("userId", results[0])
        self.assertIn("already in use", results[1]["error"])
        self.assertEqual(db.get_user(results[0]["userId"]).role, UserRole.STUDENT)

    def test_list_update_delete(self) -> None:
        self.assertEqual([u.name for u in db.list_users(UserRole.TEACHER)], ["Tom Teacher"])
        updated = db.update_user(self.student.id, bio="Likes maths")
        self.assertEqual(updated.bio, "Likes maths")
        db.delete_user(self.student.id)
        self.assertIsNone(db.get_user(self.student.id))
        with self.assertRaises(NotFoundError):
            db.delete_user(self.student.id)


class TestCoursesAndEnrollments(DatabaseTestCase):
    def test_enroll_is_idempotent_and_notifies(self) -> None:
        first = db.enroll_student(self.course.id, self.student.id)
        second = db.enroll_student(self.course.id, self.student.id)
        self.assertEqual(first.id, f"enroll-{self.course.id}-{self.student.id}")
        self.assertEqual(first.id, second.id)
        self.assertEqual(db.get_course(self.course.id).student_ids, [self.student.id])

        notes = db.list_notifications(self.student.id)
        self.assertEqual(len(notes), 1)
        self.assertEqual(notes[0].type, "enrollment_update")

    def test_only_students_can_enroll(self) -> None:
        with self.assertRaises(ValidationError):
            db.enroll_student(self.course.id, self.teacher.id)
        with self.assertRaises(NotFoundError):
            db.enroll_student("missing", self.student.id)

    def test_courses_for_user(self) -> None:
        other = db.create_course("Biology", "Cells")
        db.enroll_student(self.course.id, self.student.id)
        self.assertEqual(len(db.list_courses_for_user(self.admin)), 2)
        self.assertEqual([c.id for c in db.list_courses_for_user(self.teacher)], [self.course.id])
        self.assertEqual([c.id for c in db.list_courses_for_user(self.student)], [self.course.id])
        self.assertFalse(db.is_course_member(other.id, self.student))
        self.assertTrue(db.is_course_member(other.id, self.admin))

    def test_delete_course_cascades(self) -> None:
        db.enroll_student(self.course.id, self.student.id)
        db.create_lesson(self.course.id, "Intro")
        db.delete_course(self.course.id)
        self.assertEqual(db.list_enrollments(student_id=self.student.id), [])
        self.assertEqual(db.list_lessons(self.course.id), [])

    def test_unenroll(self) -> None:
        db.enroll_student(self.course.id, self.student.id)
        db.unenroll_student(self.course.id, self.student.id)
        with self.assertRaises(NotFoundError):
            db.unenroll_student(self.course.id, self.student.id)

    def test_negative_cost_rejected(self) -> None:
        with self.assertRaises(ValidationError):
            db.create_course("Free?", cost=-1)


class TestLessons(DatabaseTestCase):
    def test_lessons_ordered(self) -> None:
        db.create_lesson(self.course.id, "Second", order=2)
        db.create_lesson(self.course.id, "First", order=1)
        third = db.create_lesson(self.course.id, "Third")
        self.assertEqual(third.order, 3)
        self.assertEqual([l.title for l in db.list_lessons(self.course.id)], ["First", "Second", "Third"])

        db.update_lesson(third.id, order=0)
        self.assertEqual(db.list_lessons(self.course.id)[0].title, "Third")


class TestAssignmentsAndSubmissions(DatabaseTestCase):
    def _quiz(self):
        return db.create_assignment(
            self.course.id, "Quiz 1", "2026-12-01",
            assignment_type=AssignmentType.QUIZ,
            questions=[
                QuizQuestion("", "2 + 2?", QuestionType.MULTIPLE_CHOICE, "4", 10, ["3", "4", "5", "6"]),
                QuizQuestion("", "Sky is blue", QuestionType.TRUE_FALSE, "true", 10),
            ],
        )

    def test_quiz_total_from_questions_and_students_notified(self) -> None:
        db.enroll_student(self.course.id, self.student.id)
        quiz = self._quiz()
        self.assertEqual(quiz.total_points, 20.0)
        self.assertEqual(len(quiz.questions), 2)
        self.assertEqual(quiz.questions[0].options, ["3", "4", "5", "6"])
        types = [n.type for n in db.list_notifications(self.student.id)]
        self.assertIn("new_assignment", types)

    def test_rubric_and_manual_totals(self) -> None:
        rubric = db.create_assignment(
            self.course.id, "Essay", "2026-12-01",
            rubric=[RubricCriterion("", "Clarity", 6), RubricCriterion("", "Sources", 4)],
        )
        self.assertEqual(rubric.total_points, 10.0)
        manual = db.create_assignment(self.course.id, "Project", "2026-12-01", manual_total_points=50)
        self.assertEqual(manual.total_points, 50.0)
        updated = db.update_assignment(manual.id, title="Big Project")
        self.assertEqual((updated.title, updated.total_points), ("Big Project", 50.0))

    def test_explicit_total_wins_on_update(self) -> None:
        essay = db.create_assignment(
            self.course.id, "Essay", "2026-12-01",
            rubric=[RubricCriterion("", "Clarity", 6), RubricCriterion("", "Sources", 4)],
        )
        updated = db.update_assignment(essay.id, manual_total_points=25)
        self.assertEqual(updated.total_points, 25.0)
        self.assertEqual(len(updated.rubric), 2)

        # Without an explicit total the rubric sum applies again.
        resummed = db.update_assignment(essay.id, rubric=[RubricCriterion("", "Clarity", 8)])
        self.assertEqual(resummed.total_points, 8.0)

        with self.assertRaises(ValidationError):
            db.update_assignment(essay.id, manual_total_points=-5)

    def test_add_quiz_questions_recomputes_total(self) -> None:
        quiz = self._quiz()
        updated = db.add_quiz_questions(quiz.id, [
            QuizQuestion("ai-gen-1", "Capital of France?", QuestionType.MULTIPLE_CHOICE, "Paris", 10,
                         ["Paris", "Rome", "Madrid", "Berlin"]),
        ])
        self.assertEqual(updated.total_points, 30.0)
        self.assertEqual(updated.questions[-1].id, "ai-gen-1")

    def test_submit_quiz_is_auto_graded(self) -> None:
        db.enroll_student(self.course.id, self.student.id)
        quiz = self._quiz()
        q1, q2 = quiz.questions
        submission = db.submit_assignment(
            quiz.id, self.student.id,
            quiz_answers=[QuizAnswer(q1.id, "4"), QuizAnswer(q2.id, "false")],
        )
        self.assertEqual(submission.grade, 10.0)
        self.assertEqual([a.is_correct for a in submission.quiz_answers], [True, False])
        teacher_notes = [n.type for n in db.list_notifications(self.teacher.id)]
        self.assertIn("submission_received", teacher_notes)

    def test_submit_requires_enrollment(self) -> None:
        quiz = self._quiz()
        with self.assertRaises(PermissionDenied):
            db.submit_assignment(quiz.id, self.student.id, content="hi")

    def test_grade_submission_range_and_notification(self) -> None:
        db.enroll_student(self.course.id, self.student.id)
        quiz = self._quiz()
        submission = db.submit_assignment(quiz.id, self.student.id, content="done")
        with self.assertRaises(ValidationError) as ctx:
            db.grade_submission(submission.id, 25)
        self.assertEqual(str(ctx.exception), "Grade must be between 0 and 20.")

        graded = db.grade_submission(submission.id, 18, "Nice")
        self.assertEqual((graded.grade, graded.feedback), (18.0, "Nice"))
        self.assertEqual(db.list_notifications(self.student.id)[0].type, "submission_graded")

    def test_admin_update_or_create(self) -> None:
        quiz = self._quiz()
        created = db.admin_update_or_create_submission(self.student.id, quiz.id, 12)
        self.assertEqual(created.content, "Administratively recorded.")
        self.assertEqual(created.grade, 12.0)

        updated = db.admin_update_or_create_submission(self.student.id, quiz.id, 15, "Regraded")
        self.assertEqual(updated.id, created.id)
        self.assertEqual((updated.grade, updated.feedback), (15.0, "Regraded"))

        with self.assertRaises(ValidationError) as ctx:
            db.admin_update_or_create_submission(self.student.id, quiz.id, -1)
        self.assertEqual(str(ctx.exception), "Grade must be between 0 and 20.")

    def test_non_finite_grades_rejected(self) -> None:
        db.enroll_student(self.course.id, self.student.id)
        quiz = self._quiz()
        with self.assertRaises(ValidationError):
            db.admin_update_or_create_submission(self.student.id, quiz.id, float("nan"))
        self.assertEqual(db.list_submissions(assignment_id=quiz.id), [])

        submission = db.submit_assignment(quiz.id, self.student.id, content="done")
        for bad in (float("nan"), float("inf"), "nan"):
            with self.assertRaises(ValidationError):
                db.grade_submission(submission.id, bad)
        self.assertIsNone(db.get_submission(submission.id).grade)


class TestCommunication(DatabaseTestCase):
    def test_direct_message_notifies_recipient(self) -> None:
        content = "Please remember to bring your calculator tomorrow"
        db.send_direct_message(self.teacher, self.student.id, content)
        note = db.list_notifications(self.student.id)[0]
        self.assertEqual(note.type, "new_message")
        self.assertEqual(note.link, "/messages")
        self.assertEqual(note.message, f'New message from Tom Teacher: "{content[:30]}..."')
        self.assertEqual(db.unread_message_count(self.student.id), 1)

    def test_messages_oldest_first_and_read_by_recipient_only(self) -> None:
        first = db.send_direct_message(self.teacher, self.student.id, "one")
        db.send_direct_message(self.student, self.teacher.id, "two")
        thread = db.list_direct_messages(self.student.id, self.teacher.id)
        self.assertEqual([m.content for m in thread], ["one", "two"])

        self.assertFalse(db.mark_message_read(first.id, self.teacher.id))
        self.assertTrue(db.mark_message_read(first.id, self.student.id))
        self.assertEqual(db.unread_message_count(self.student.id), 0)

    def test_cannot_message_self(self) -> None:
        with self.assertRaises(ValidationError):
            db.send_direct_message(self.student, self.student.id, "hi me")

    def test_announcement_visibility(self) -> None:
        other = db.create_course("Biology", "Cells")
        db.enroll_student(self.course.id, self.student.id)
        db.create_announcement(self.admin, "For everyone")
        db.create_announcement(self.admin, "Teachers only", AnnouncementAudience.TEACHERS)
        db.create_announcement(self.teacher, "Algebra quiz Friday",
                               AnnouncementAudience.COURSE_SPECIFIC, course_id=self.course.id)
        db.create_announcement(self.admin, "Biology trip",
                               AnnouncementAudience.COURSE_SPECIFIC, course_id=other.id)

        student_view = [a.message for a in db.list_announcements_for(self.student)]
        self.assertEqual(student_view, ["Algebra quiz Friday", "For everyone"])
        teacher_view = [a.message for a in db.list_announcements_for(self.teacher)]
        self.assertEqual(teacher_view, ["Algebra quiz Friday", "Teachers only", "For everyone"])
        self.assertEqual(len(db.list_announcements_for(self.admin)), 4)

        self.assertIn("announcement", [n.type for n in db.list_notifications(self.student.id)])

    def test_course_announcement_needs_course(self) -> None:
        with self.assertRaises(ValidationError):
            db.create_announcement(self.admin, "Hi", AnnouncementAudience.COURSE_SPECIFIC)

    def test_notification_read_state(self) -> None:
        db.add_notification(self.student.id, "info", "One")
        second = db.add_notification(self.student.id, "info", "Two")
        self.assertEqual([n.message for n in db.list_notifications(self.student.id)], ["Two", "One"])
        self.assertEqual(len(db.list_notifications(self.student.id, limit=1)), 1)

        self.assertTrue(db.mark_notification_read(second.id, self.student.id))
        self.assertFalse(db.mark_notification_read(second.id, self.teacher.id))
        self.assertEqual(db.unread_notification_count(self.student.id), 1)
        self.assertEqual(db.mark_all_notifications_read(self.student.id), 1)
        self.assertEqual(db.clear_notifications(self.student.id), 2)


if __name__ == "__main__":
    unittest.main()
