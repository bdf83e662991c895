"""
services/favorites.py

Starred courses, assignments, lessons and users, per user, newest first.
"""
from __future__ import annotations

import logging

from models import Assignment, Course, FavoriteItem, ItemType, Lesson, User, utc_now
from services.local_store import LocalStore, user_key

logger = logging.getLogger("classroomhq.favorites")


class Favorites:
    def __init__(self, store: LocalStore, user_id: str | None):
        self.store = store
        self.user_id = user_id
        self.items: list[FavoriteItem] = self._load()

    @property
    def key(self) -> str | None:
        return user_key("favorites", self.user_id) if self.user_id else None

    def _load(self) -> list[FavoriteItem]:
        if not self.key:
            return []
        raw = self.store.get(self.key)
        if not isinstance(raw, list):
            return []
        items: list[FavoriteItem] = []
        for entry in raw:
            try:
                items.append(FavoriteItem.from_dict(entry))
            except (KeyError, TypeError, ValueError) as exc:
                logger.warning("Dropping malformed favorite for %s: %s", self.user_id, exc)
        return items

    def _save(self) -> None:
        if self.key:
            self.store.set(self.key, [item.to_dict() for item in self.items])

    def add(
        self,
        item_id: str,
        item_type: ItemType,
        title: str,
        url: str,
        metadata: dict | None = None,
    ) -> FavoriteItem | None:
        if not self.user_id:
            return None
        existing = next((i for i in self.items if i.id == item_id), None)
        if existing:
            return existing
        item = FavoriteItem(item_id, ItemType(item_type), title, url, utc_now(), dict(metadata or {}))
        self.items.insert(0, item)
        self._save()
        return item

    def remove(self, item_id: str) -> None:
        self.items = [i for i in self.items if i.id != item_id]
        self._save()

    def toggle(self, item_id: str, item_type: ItemType, title: str, url: str,
               metadata: dict | None = None) -> bool:
        """Flip the favorite state; returns True when the item is now a favorite."""
        if self.is_favorited(item_id):
            self.remove(item_id)
            return False
        return self.add(item_id, item_type, title, url, metadata) is not None

    def is_favorited(self, item_id: str) -> bool:
        return any(i.id == item_id for i in self.items)

    def by_type(self, item_type: ItemType | str) -> list[FavoriteItem]:
        item_type = ItemType(item_type)
        return [i for i in self.items if i.type == item_type]

    def clear(self) -> None:
        self.items = []
        if self.key:
            self.store.remove(self.key)

# ── Item builders ─────────────────────────────────────────

def favorite_from_course(course: Course) -> dict:
    return {
        "item_id": course.id,
        "item_type": ItemType.COURSE,
        "title": course.name,
        "url": f"/courses/{course.id}",
        "metadata": {"description": course.description},
    }


def favorite_from_assignment(assignment: Assignment, course_name: str | None = None) -> dict:
    return {
        "item_id": assignment.id,
        "item_type": ItemType.ASSIGNMENT,
        "title": assignment.title,
        "url": f"/courses/{assignment.course_id}/assignments/{assignment.id}",
        "metadata": {"courseName": course_name, "dueDate": assignment.due_date},
    }


def favorite_from_lesson(lesson: Lesson, course_name: str | None = None) -> dict:
    return {
        "item_id": lesson.id,
        "item_type": ItemType.LESSON,
        "title": lesson.title,
        "url": f"/courses/{lesson.course_id}/lessons/{lesson.id}",
        "metadata": {"courseName": course_name},
    }


def favorite_from_user(user: User) -> dict:
    return {
        "item_id": user.id,
        "item_type": ItemType.USER,
        "title": user.name,
        "url": f"/users/{user.id}",
        "metadata": {"role": user.role.value},
    }
