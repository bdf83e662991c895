"""
Unit tests for per-user UI state kept in the local store.

Contract:
- Missing/corrupt store files read as None
- Recent items: newest first, deduplicated, capped, 30-day cutoff
- Favorites: no duplicates, toggle flips state
- Theme: defaults, validated merges, mode cycle, clamped font size
"""

import tempfile
import unittest
from datetime import timedelta
from pathlib import Path

from config import RECENT_ITEMS_MAX
from models import Course, ItemType, User, UserRole, utc_now
from services.favorites import Favorites, favorite_from_course
from services.local_store import LocalStore, user_key
from services.recent_items import RecentItems, recent_item_from_course, recent_item_from_user
from services.theme import ThemeConfig, ThemeSettings


class StoreTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.store = LocalStore(Path(self._tmp.name))

    def tearDown(self) -> None:
        self._tmp.cleanup()


class TestLocalStore(StoreTestCase):
    def test_missing_key_reads_none(self) -> None:
        self.assertIsNone(self.store.get("nope"))

    def test_set_get_remove(self) -> None:
        self.store.set("classroomhq-favorites-u1", [{"id": "c1"}])
        self.assertEqual(self.store.get("classroomhq-favorites-u1"), [{"id": "c1"}])
        self.store.remove("classroomhq-favorites-u1")
        self.assertIsNone(self.store.get("classroomhq-favorites-u1"))
        # removing twice is fine
        self.store.remove("classroomhq-favorites-u1")

    def test_corrupt_file_reads_none(self) -> None:
        self.store.set("k", {"a": 1})
        next(Path(self._tmp.name).glob("k.json")).write_text("{not json", encoding="utf-8")
        self.assertIsNone(self.store.get("k"))

    def test_user_key(self) -> None:
        self.assertEqual(user_key("recent-items", "u9"), "classroomhq-recent-items-u9")


class TestRecentItems(StoreTestCase):
    def test_add_moves_to_front_without_duplicates(self) -> None:
        recent = RecentItems(self.store, "u1")
        recent.add("a", ItemType.COURSE, "A", "/courses/a")
        recent.add("b", ItemType.COURSE, "B", "/courses/b")
        recent.add("a", ItemType.COURSE, "A", "/courses/a")
        self.assertEqual([i.id for i in recent.get()], ["a", "b"])

        reloaded = RecentItems(self.store, "u1")
        self.assertEqual([i.id for i in reloaded.get()], ["a", "b"])

    def test_capped_at_max(self) -> None:
        recent = RecentItems(self.store, "u1")
        for n in range(RECENT_ITEMS_MAX + 5):
            recent.add(f"i{n}", ItemType.LESSON, f"L{n}", f"/x/{n}")
        self.assertEqual(len(recent.get()), RECENT_ITEMS_MAX)
        self.assertEqual(recent.get(1)[0].id, f"i{RECENT_ITEMS_MAX + 4}")

    def test_old_items_dropped_on_load(self) -> None:
        old = (utc_now() - timedelta(days=31)).isoformat()
        fresh = (utc_now() - timedelta(days=2)).isoformat()
        self.store.set("classroomhq-recent-items-u1", [
            {"id": "old", "type": "course", "title": "Old", "url": "/courses/old", "accessedAt": old},
            {"id": "new", "type": "course", "title": "New", "url": "/courses/new", "accessedAt": fresh},
            {"id": "bad", "type": "spaceship", "title": "?", "url": "/", "accessedAt": fresh},
        ])
        recent = RecentItems(self.store, "u1")
        self.assertEqual([i.id for i in recent.get()], ["new"])

    def test_by_type_remove_clear_contains(self) -> None:
        recent = RecentItems(self.store, "u1")
        course = Course("c1", "Algebra", "Equations", "t1")
        user = User("u2", "Sam", "sam@example.com", UserRole.STUDENT)
        recent.add(**recent_item_from_course(course))
        recent.add(**recent_item_from_user(user))

        self.assertEqual([i.url for i in recent.by_type("course")], ["/courses/c1"])
        self.assertEqual(recent.by_type(ItemType.USER)[0].url, "/users/u2")
        self.assertTrue(recent.contains("c1"))

        recent.remove("c1")
        self.assertFalse(recent.contains("c1"))
        recent.clear()
        self.assertEqual(RecentItems(self.store, "u1").get(), [])

    def test_anonymous_user_persists_nothing(self) -> None:
        recent = RecentItems(self.store, None)
        self.assertIsNone(recent.add("a", ItemType.COURSE, "A", "/courses/a"))
        self.assertEqual(recent.get(), [])
        self.assertEqual(list(Path(self._tmp.name).glob("*.json")), [])


class TestFavorites(StoreTestCase):
    def test_add_is_idempotent_and_newest_first(self) -> None:
        favorites = Favorites(self.store, "u1")
        favorites.add("a", ItemType.COURSE, "A", "/courses/a")
        favorites.add("b", ItemType.LESSON, "B", "/courses/a/lessons/b")
        favorites.add("a", ItemType.COURSE, "A", "/courses/a")
        self.assertEqual([f.id for f in favorites.items], ["b", "a"])
        self.assertEqual([f.id for f in Favorites(self.store, "u1").items], ["b", "a"])

    def test_toggle_and_by_type(self) -> None:
        favorites = Favorites(self.store, "u1")
        course = Course("c1", "Algebra", "Equations", "t1")
        self.assertTrue(favorites.toggle(**favorite_from_course(course)))
        self.assertTrue(favorites.is_favorited("c1"))
        self.assertEqual(len(favorites.by_type("course")), 1)
        self.assertEqual(favorites.by_type(ItemType.USER), [])

        self.assertFalse(favorites.toggle(**favorite_from_course(course)))
        self.assertFalse(favorites.is_favorited("c1"))

    def test_favorites_are_per_user(self) -> None:
        Favorites(self.store, "u1").add("a", ItemType.COURSE, "A", "/courses/a")
        self.assertEqual(Favorites(self.store, "u2").items, [])

    def test_clear(self) -> None:
        favorites = Favorites(self.store, "u1")
        favorites.add("a", ItemType.COURSE, "A", "/courses/a")
        favorites.clear()
        self.assertEqual(Favorites(self.store, "u1").items, [])


class TestTheme(StoreTestCase):
    def test_defaults(self) -> None:
        theme = ThemeSettings(self.store, "u1")
        self.assertEqual(theme.config, ThemeConfig("system", "md", False, False))
        self.assertEqual(theme.css_classes(), ["text-md"])

    def test_toggle_mode_cycles(self) -> None:
        theme = ThemeSettings(self.store, "u1")
        theme.update({"mode": "light"})
        self.assertEqual(theme.toggle_mode().mode, "dark")
        self.assertEqual(theme.toggle_mode().mode, "system")
        self.assertEqual(theme.toggle_mode().mode, "light")

    def test_font_size_clamped(self) -> None:
        theme = ThemeSettings(self.store, "u1")
        theme.increase_font_size()
        self.assertEqual(theme.increase_font_size().font_size, "lg")
        theme.decrease_font_size()
        theme.decrease_font_size()
        self.assertEqual(theme.decrease_font_size().font_size, "sm")

    def test_invalid_values_ignored_and_persisted(self) -> None:
        theme = ThemeSettings(self.store, "u1")
        theme.update({"mode": "neon", "fontSize": "lg", "highContrast": True, "reducedMotion": "yes"})
        reloaded = ThemeSettings(self.store, "u1")
        self.assertEqual(reloaded.config, ThemeConfig("system", "lg", False, True))
        self.assertEqual(reloaded.css_classes(), ["text-lg", "high-contrast"])

    def test_reset(self) -> None:
        theme = ThemeSettings(self.store, "u1")
        theme.toggle_reduced_motion()
        theme.reset()
        self.assertEqual(ThemeSettings(self.store, "u1").config, ThemeConfig())


if __name__ == "__main__":
    unittest.main()
