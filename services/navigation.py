"""
services/navigation.py

Role-based sidebar links and breadcrumb trails.

All role filtering comes from the single NAV_LINKS table; the dashboard
entry is resolved per role at lookup time.
"""
from __future__ import annotations

import re
from dataclasses import dataclass

from models import UserRole

DASHBOARD = "__dashboard__"

_ALL = (UserRole.SUPER_ADMIN, UserRole.TEACHER, UserRole.STUDENT)


@dataclass(frozen=True)
class NavLink:
    name: str
    href: str
    roles: tuple[UserRole, ...]
    badge_key: str | None = None


NAV_LINKS: tuple[NavLink, ...] = (
    # Common
    NavLink("Dashboard", DASHBOARD, _ALL),
    NavLink("Announcements", "/announcements", _ALL),
    NavLink("Calendar", "/calendar", _ALL),
    NavLink("Messages", "/messages", _ALL, badge_key="messages"),
    # Super admin
    NavLink("Users", "/admin/users", (UserRole.SUPER_ADMIN,)),
    NavLink("Courses", "/admin/courses", (UserRole.SUPER_ADMIN,)),
    NavLink("Enrollments", "/admin/enrollments", (UserRole.SUPER_ADMIN,)),
    NavLink("Attendance", "/admin/attendance", (UserRole.SUPER_ADMIN,)),
    NavLink("Payments", "/admin/payments", (UserRole.SUPER_ADMIN,)),
    NavLink("Reports", "/admin/reports", (UserRole.SUPER_ADMIN,)),
    # Teacher
    NavLink("My Courses", "/teacher/courses", (UserRole.TEACHER,)),
    NavLink("Attendance", "/teacher/attendance", (UserRole.TEACHER,)),
    NavLink("Reports", "/teacher/reports", (UserRole.TEACHER,)),
    # Student
    NavLink("My Courses", "/student/courses", (UserRole.STUDENT,)),
    NavLink("Live Class", "/student/live-class", (UserRole.STUDENT,)),
    NavLink("Attendance", "/student/attendance", (UserRole.STUDENT,)),
    NavLink("Payments", "/student/payments", (UserRole.STUDENT,)),
)

_DASHBOARDS = {
    UserRole.SUPER_ADMIN: "/admin/dashboard",
    UserRole.TEACHER: "/teacher/dashboard",
    UserRole.STUDENT: "/student/dashboard",
}


def dashboard_path(role: UserRole | str | None) -> str:
    if not role:
        return "/"
    try:
        return _DASHBOARDS.get(UserRole(role), "/")
    except ValueError:
        return "/"


def is_active(href: str, path: str) -> bool:
    """Dashboards and /admin/reports match exactly, everything else by prefix."""
    if href.endswith("dashboard") or href == "/admin/reports":
        return path == href
    return path.startswith(href)


def nav_links_for(
    role: UserRole | str | None,
    badges: dict[str, int] | None = None,
    path: str | None = None,
) -> list[dict]:
    if not role:
        return []
    role = UserRole(role)
    badges = badges or {}
    links: list[dict] = []
    for link in NAV_LINKS:
        if role not in link.roles:
            continue
        href = dashboard_path(role) if link.href == DASHBOARD else link.href
        entry = {"name": link.name, "href": href}
        count = badges.get(link.badge_key, 0) if link.badge_key else 0
        if count > 0:
            entry["badge"] = count
        if path is not None:
            entry["active"] = is_active(href, path)
        links.append(entry)
    return links


def footer_links(path: str | None = None) -> list[dict]:
    links = [{"name": "Profile", "href": "/profile"}, {"name": "Settings", "href": "/settings"}]
    if path is not None:
        for link in links:
            link["active"] = is_active(link["href"], path)
    return links

# ── Breadcrumbs ───────────────────────────────────────────

ROUTE_LABELS = {
    "admin": "Admin",
    "teacher": "Teacher",
    "student": "Student",
    "dashboard": "Dashboard",
    "courses": "Courses",
    "users": "Users",
    "enrollments": "Enrollments",
    "attendance": "Attendance",
    "payments": "Payments",
    "reports": "Reports",
    "messages": "Messages",
    "announcements": "Announcements",
    "calendar": "Calendar",
    "settings": "Settings",
    "profile": "Profile",
    "live-class": "Live Class",
    "lessons": "Lessons",
    "assignments": "Assignments",
}

_UUID_RE = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$",
    re.IGNORECASE,
)
_ROLE_SEGMENTS = ("admin", "teacher", "student")


def _segment_label(
    segment: str,
    previous: str | None,
    course_names: dict[str, str],
    user_names: dict[str, str],
) -> str:
    if _UUID_RE.match(segment):
        if previous == "courses":
            return course_names.get(segment) or "Course"
        if previous == "users":
            return user_names.get(segment) or "User"
        return "Details"
    # Seeded ids such as "course-1" resolve like UUIDs when they are known.
    if previous == "courses" and segment in course_names:
        return course_names[segment]
    if previous == "users" and segment in user_names:
        return user_names[segment]
    if segment in ROUTE_LABELS:
        return ROUTE_LABELS[segment]
    return segment[:1].upper() + segment[1:].replace("-", " ")


def build_breadcrumbs(
    path: str,
    course_names: dict[str, str] | None = None,
    user_names: dict[str, str] | None = None,
) -> list[dict]:
    course_names = course_names or {}
    user_names = user_names or {}
    segments = [
        s for s in (path or "").split("/")
        if s and not s.startswith("(") and not s.endswith(")")
    ]

    crumbs: list[dict] = []
    current = ""
    for index, segment in enumerate(segments):
        current += f"/{segment}"
        previous = segments[index - 1] if index > 0 else None
        label = _segment_label(segment, previous, course_names, user_names)
        if segment == "dashboard" and previous in _ROLE_SEGMENTS:
            label = f"{previous.capitalize()} Dashboard"
        is_last = index == len(segments) - 1
        crumbs.append({"label": label, "href": None if is_last else current})
    return crumbs
