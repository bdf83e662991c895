"""
services/recent_items.py

Recently viewed courses, assignments, lessons and users, per user.
Newest first, capped at RECENT_ITEMS_MAX, entries older than
RECENT_ITEMS_CLEANUP_DAYS are dropped on every load and save.
"""
from __future__ import annotations

import logging
from datetime import datetime, timedelta

from config import RECENT_ITEMS_CLEANUP_DAYS, RECENT_ITEMS_MAX
from models import Assignment, Course, ItemType, Lesson, RecentItem, User, utc_now
from services.local_store import LocalStore, user_key

logger = logging.getLogger("classroomhq.recent")


def _cleanup(items: list[RecentItem], now: datetime | None = None) -> list[RecentItem]:
    cutoff = (now or utc_now()) - timedelta(days=RECENT_ITEMS_CLEANUP_DAYS)
    return [item for item in items if item.accessed_at > cutoff][:RECENT_ITEMS_MAX]


class RecentItems:
    def __init__(self, store: LocalStore, user_id: str | None):
        self.store = store
        self.user_id = user_id
        self.items: list[RecentItem] = self._load()

    @property
    def key(self) -> str | None:
        return user_key("recent-items", self.user_id) if self.user_id else None

    def _load(self) -> list[RecentItem]:
        if not self.key:
            return []
        raw = self.store.get(self.key)
        if not isinstance(raw, list):
            return []
        items: list[RecentItem] = []
        for entry in raw:
            try:
                items.append(RecentItem.from_dict(entry))
            except (KeyError, TypeError, ValueError) as exc:
                logger.warning("Dropping malformed recent item for %s: %s", self.user_id, exc)
        return _cleanup(items)

    def _save(self) -> None:
        if not self.key:
            return
        self.items = _cleanup(self.items)
        self.store.set(self.key, [item.to_dict() for item in self.items])

    def add(
        self,
        item_id: str,
        item_type: ItemType,
        title: str,
        url: str,
        metadata: dict | None = None,
    ) -> RecentItem | None:
        """Record an access; re-visiting an item moves it to the front."""
        if not self.user_id:
            return None
        item = RecentItem(item_id, ItemType(item_type), title, url, utc_now(), dict(metadata or {}))
        self.items = [item] + [i for i in self.items if i.id != item_id]
        self._save()
        return item

    def remove(self, item_id: str) -> None:
        self.items = [i for i in self.items if i.id != item_id]
        self._save()

    def clear(self) -> None:
        self.items = []
        if self.key:
            self.store.remove(self.key)

    def by_type(self, item_type: ItemType | str) -> list[RecentItem]:
        item_type = ItemType(item_type)
        return [i for i in self.items if i.type == item_type]

    def get(self, limit: int | None = None) -> list[RecentItem]:
        return list(self.items if limit is None else self.items[:limit])

    def contains(self, item_id: str) -> bool:
        return any(i.id == item_id for i in self.items)

# ── Item builders ─────────────────────────────────────────

def recent_item_from_course(course: Course) -> dict:
    return {
        "item_id": course.id,
        "item_type": ItemType.COURSE,
        "title": course.name,
        "url": f"/courses/{course.id}",
        "metadata": {"description": course.description},
    }


def recent_item_from_assignment(assignment: Assignment, course_name: str | None = None) -> dict:
    return {
        "item_id": assignment.id,
        "item_type": ItemType.ASSIGNMENT,
        "title": assignment.title,
        "url": f"/courses/{assignment.course_id}/assignments/{assignment.id}",
        "metadata": {"courseName": course_name, "dueDate": assignment.due_date},
    }


def recent_item_from_lesson(lesson: Lesson, course_name: str | None = None) -> dict:
    return {
        "item_id": lesson.id,
        "item_type": ItemType.LESSON,
        "title": lesson.title,
        "url": f"/courses/{lesson.course_id}/lessons/{lesson.id}",
        "metadata": {"courseName": course_name},
    }


def recent_item_from_user(user: User) -> dict:
    return {
        "item_id": user.id,
        "item_type": ItemType.USER,
        "title": user.name,
        "url": f"/users/{user.id}",
        "metadata": {"role": user.role.value},
    }
