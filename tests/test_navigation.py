"""
Unit tests for role-based navigation and breadcrumbs.

Navigation contract:
- One permission table drives every role's sidebar
- Dashboards and /admin/reports are active only on exact match
- Breadcrumbs resolve course/user ids to names; the last crumb has no href
"""

import unittest

from models import UserRole
from services.navigation import build_breadcrumbs, dashboard_path, footer_links, is_active, nav_links_for

COURSE_UUID = "3f2b8c1e-9a4d-4e2f-8b7a-1c2d3e4f5a6b"
USER_UUID = "a1b2c3d4-e5f6-4a7b-8c9d-0e1f2a3b4c5d"


class TestNavLinks(unittest.TestCase):
    def test_dashboard_paths(self) -> None:
        self.assertEqual(dashboard_path(UserRole.SUPER_ADMIN), "/admin/dashboard")
        self.assertEqual(dashboard_path(UserRole.TEACHER), "/teacher/dashboard")
        self.assertEqual(dashboard_path("Student"), "/student/dashboard")
        self.assertEqual(dashboard_path(None), "/")

    def test_student_links(self) -> None:
        links = nav_links_for(UserRole.STUDENT)
        self.assertEqual(
            [l["name"] for l in links],
            ["Dashboard", "Announcements", "Calendar", "Messages",
             "My Courses", "Live Class", "Attendance", "Payments"],
        )
        self.assertEqual(links[0]["href"], "/student/dashboard")
        self.assertNotIn("/admin/users", [l["href"] for l in links])

    def test_admin_and_teacher_links(self) -> None:
        admin = [l["href"] for l in nav_links_for(UserRole.SUPER_ADMIN)]
        self.assertIn("/admin/users", admin)
        self.assertIn("/admin/reports", admin)
        self.assertNotIn("/teacher/courses", admin)

        teacher = [l["name"] for l in nav_links_for(UserRole.TEACHER)]
        self.assertEqual(teacher[-3:], ["My Courses", "Attendance", "Reports"])

    def test_no_role_has_no_links(self) -> None:
        self.assertEqual(nav_links_for(None), [])

    def test_message_badge_only_when_unread(self) -> None:
        with_badge = {l["name"]: l for l in nav_links_for(UserRole.TEACHER, {"messages": 3})}
        self.assertEqual(with_badge["Messages"]["badge"], 3)

        without = {l["name"]: l for l in nav_links_for(UserRole.TEACHER, {"messages": 0})}
        self.assertNotIn("badge", without["Messages"])

    def test_is_active(self) -> None:
        self.assertTrue(is_active("/admin/dashboard", "/admin/dashboard"))
        self.assertFalse(is_active("/admin/dashboard", "/admin/dashboard/extra"))
        self.assertTrue(is_active("/admin/reports", "/admin/reports"))
        self.assertFalse(is_active("/admin/reports", "/admin/reports/weekly"))
        self.assertTrue(is_active("/admin/users", "/admin/users/42"))
        self.assertFalse(is_active("/messages", "/announcements"))

    def test_active_flag_attached_for_path(self) -> None:
        links = {l["href"]: l for l in nav_links_for(UserRole.SUPER_ADMIN, path="/admin/courses/1")}
        self.assertTrue(links["/admin/courses"]["active"])
        self.assertFalse(links["/admin/dashboard"]["active"])

        footer = footer_links("/settings")
        self.assertEqual([l["name"] for l in footer], ["Profile", "Settings"])
        self.assertTrue(footer[1]["active"])


class TestBreadcrumbs(unittest.TestCase):
    def test_role_dashboard(self) -> None:
        self.assertEqual(
            build_breadcrumbs("/admin/dashboard"),
            [{"label": "Admin", "href": "/admin"}, {"label": "Admin Dashboard", "href": None}],
        )

    def test_course_uuid_resolves_to_name(self) -> None:
        crumbs = build_breadcrumbs(f"/teacher/courses/{COURSE_UUID}", {COURSE_UUID: "Algebra I"})
        self.assertEqual([c["label"] for c in crumbs], ["Teacher", "Courses", "Algebra I"])
        self.assertEqual(crumbs[1]["href"], "/teacher/courses")
        self.assertIsNone(crumbs[-1]["href"])

    def test_unknown_uuid_fallbacks(self) -> None:
        self.assertEqual(build_breadcrumbs(f"/admin/courses/{COURSE_UUID}")[-1]["label"], "Course")
        self.assertEqual(build_breadcrumbs(f"/admin/users/{USER_UUID}")[-1]["label"], "User")
        self.assertEqual(build_breadcrumbs(f"/student/assignments/{COURSE_UUID}")[-1]["label"], "Details")

    def test_user_uuid_resolves_to_name(self) -> None:
        crumbs = build_breadcrumbs(f"/admin/users/{USER_UUID}", user_names={USER_UUID: "Sam Student"})
        self.assertEqual(crumbs[-1]["label"], "Sam Student")

    def test_known_non_uuid_id_resolves(self) -> None:
        crumbs = build_breadcrumbs("/student/courses/course-1", {"course-1": "Biology"})
        self.assertEqual(crumbs[-1]["label"], "Biology")

    def test_route_groups_dropped_and_segments_formatted(self) -> None:
        crumbs = build_breadcrumbs("/(app)/student/live-class/weekly-review")
        self.assertEqual([c["label"] for c in crumbs], ["Student", "Live Class", "Weekly review"])
        self.assertEqual(crumbs[0]["href"], "/student")

    def test_root_path_has_no_crumbs(self) -> None:
        self.assertEqual(build_breadcrumbs("/"), [])


if __name__ == "__main__":
    unittest.main()
