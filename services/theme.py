"""
services/theme.py

Display preferences: colour mode, font size, reduced motion, high contrast.
"""
from __future__ import annotations

from dataclasses import asdict, dataclass

from services.local_store import LocalStore, user_key

MODES = ("light", "dark", "system")
FONT_SIZES = ("sm", "md", "lg")

_FIELD_KEYS = {
    "mode": "mode",
    "fontSize": "font_size",
    "reducedMotion": "reduced_motion",
    "highContrast": "high_contrast",
}


@dataclass
class ThemeConfig:
    mode: str = "system"
    font_size: str = "md"
    reduced_motion: bool = False
    high_contrast: bool = False

    def to_dict(self) -> dict:
        return {
            "mode": self.mode,
            "fontSize": self.font_size,
            "reducedMotion": self.reduced_motion,
            "highContrast": self.high_contrast,
        }


def _valid(field_name: str, value) -> bool:
    if field_name == "mode":
        return value in MODES
    if field_name == "font_size":
        return value in FONT_SIZES
    return isinstance(value, bool)


def merge_theme(base: ThemeConfig, partial: dict) -> ThemeConfig:
    """Apply known, valid keys (camelCase or snake_case) over `base`."""
    values = asdict(base)
    for key, value in (partial or {}).items():
        field_name = _FIELD_KEYS.get(key, key)
        if field_name in values and _valid(field_name, value):
            values[field_name] = value
    return ThemeConfig(**values)


class ThemeSettings:
    def __init__(self, store: LocalStore, user_id: str | None = None):
        self.store = store
        self.user_id = user_id
        stored = store.get(self.key)
        self.config = merge_theme(ThemeConfig(), stored if isinstance(stored, dict) else {})

    @property
    def key(self) -> str:
        return user_key("theme-config", self.user_id) if self.user_id else "classroomhq-theme-config"

    def update(self, partial: dict) -> ThemeConfig:
        self.config = merge_theme(self.config, partial)
        self.store.set(self.key, self.config.to_dict())
        return self.config

    def reset(self) -> ThemeConfig:
        self.config = ThemeConfig()
        self.store.remove(self.key)
        return self.config

    def toggle_mode(self) -> ThemeConfig:
        next_mode = MODES[(MODES.index(self.config.mode) + 1) % len(MODES)]
        return self.update({"mode": next_mode})

    def increase_font_size(self) -> ThemeConfig:
        index = min(FONT_SIZES.index(self.config.font_size) + 1, len(FONT_SIZES) - 1)
        return self.update({"font_size": FONT_SIZES[index]})

    def decrease_font_size(self) -> ThemeConfig:
        index = max(FONT_SIZES.index(self.config.font_size) - 1, 0)
        return self.update({"font_size": FONT_SIZES[index]})

    def toggle_reduced_motion(self) -> ThemeConfig:
        return self.update({"reduced_motion": not self.config.reduced_motion})

    def toggle_high_contrast(self) -> ThemeConfig:
        return self.update({"high_contrast": not self.config.high_contrast})

    def css_classes(self) -> list[str]:
        classes = [f"text-{self.config.font_size}"]
        if self.config.mode in ("light", "dark"):
            classes.append(self.config.mode)
        if self.config.reduced_motion:
            classes.append("reduce-motion")
        if self.config.high_contrast:
            classes.append("high-contrast")
        return classes
