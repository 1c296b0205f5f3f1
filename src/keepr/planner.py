"""
Shared-activity planner: ideas for things to do together, each planned
for a day and later marked completed with an optional memory.
"""

from __future__ import annotations

import calendar
from collections import Counter
from datetime import date
from enum import Enum
from typing import Optional

from pydantic import ValidationInfo, field_validator

from .controller import RecordStore
from .keepr_env import KeeprConfig, KeeprEnvironment
from .model import Backend
from .record import Record, optional_text, required_text

CATEGORIES = ["date", "trip", "home", "food", "culture", "sport", "other"]


class IdeaStatus(str, Enum):
    PLANNED = "planned"
    COMPLETED = "completed"


class IdeaFilter(str, Enum):
    ALL = "all"
    PLANNED = "planned"
    COMPLETED = "completed"


class Idea(Record):
    title: str
    description: Optional[str] = None
    category: str = "other"
    day: date
    status: IdeaStatus = IdeaStatus.PLANNED
    memory: Optional[str] = None

    @field_validator("title")
    @classmethod
    def _required(cls, v, info: ValidationInfo):
        return required_text(v, info)

    @field_validator("description", "memory")
    @classmethod
    def _optional(cls, v, info: ValidationInfo):
        return optional_text(v, info)

    @field_validator("category")
    @classmethod
    def _category(cls, v):
        return (v or "other").strip().lower() or "other"

    @property
    def is_completed(self) -> bool:
        return self.status is IdeaStatus.COMPLETED


def _matches(status_filter: IdeaFilter | str):
    status_filter = IdeaFilter(status_filter)
    if status_filter is IdeaFilter.ALL:
        return lambda idea: True
    return lambda idea: idea.status.value == status_filter.value


class Planner:
    def __init__(self, env: Optional[KeeprEnvironment], backend: Backend):
        self.env = env
        config = env.config if env else KeeprConfig()
        self.first_weekday = config.ui.first_weekday
        self.ideas: RecordStore[Idea] = RecordStore(Idea, backend, "ideas")
        self.search_text = ""
        self.selected_filter = IdeaFilter.ALL

    def add_idea(
        self,
        title: str,
        day: date,
        description: Optional[str] = None,
        category: str = "other",
    ) -> Optional[Idea]:
        return self.ideas.add(
            title=title, day=day, description=description, category=category
        )

    def update_idea(self, idea_id: str, **changes) -> Optional[Idea]:
        return self.ideas.update(idea_id, **changes)

    def delete_idea(self, idea_id: str) -> bool:
        return self.ideas.delete(idea_id)

    def toggle_status(self, idea_id: str) -> Optional[Idea]:
        idea = self.ideas.get(idea_id)
        if idea is None:
            raise KeyError(idea_id)
        status = IdeaStatus.PLANNED if idea.is_completed else IdeaStatus.COMPLETED
        return self.ideas.set_fields(idea_id, status=status)

    def add_memory(self, idea_id: str, memory: str) -> Optional[Idea]:
        return self.ideas.update(idea_id, memory=memory)

    # ---------------- derived views ----------------

    def filtered_ideas(self) -> list[Idea]:
        needle = self.search_text.strip().casefold()

        def found(idea: Idea) -> bool:
            if not needle:
                return True
            haystack = [
                idea.title,
                idea.day.isoformat(),
                idea.day.strftime("%B %-d, %Y"),
                idea.day.strftime("%b %-d"),
            ]
            return any(needle in text.casefold() for text in haystack)

        records = self.ideas.filtered(_matches(self.selected_filter), found)
        return self.ideas.sorted_by("day", records=records)

    def ideas_for_date(
        self, day: date, status_filter: IdeaFilter | str = IdeaFilter.ALL
    ) -> list[Idea]:
        return self.ideas.filtered(lambda i: i.day == day, _matches(status_filter))

    def upcoming(
        self,
        today: Optional[date] = None,
        status_filter: IdeaFilter | str = IdeaFilter.PLANNED,
    ) -> list[Idea]:
        today = today or date.today()
        records = self.ideas.filtered(lambda i: i.day >= today, _matches(status_filter))
        return self.ideas.sorted_by("day", records=records)

    def completed_with_memories(self, search_text: str = "") -> list[Idea]:
        records = self.ideas.filtered(lambda i: i.is_completed and bool(i.memory))
        records = self.ideas.search(search_text, "title", "memory", records=records)
        return self.ideas.sorted_by("day", descending=True, records=records)

    def month_counts(
        self,
        year: int,
        month: int,
        status_filter: IdeaFilter | str = IdeaFilter.ALL,
    ) -> dict[date, int]:
        """Number of ideas on each day of the month that has any."""
        records = self.ideas.filtered(
            lambda i: (i.day.year, i.day.month) == (year, month),
            _matches(status_filter),
        )
        return {
            day: len(ideas)
            for day, ideas in self.ideas.grouped_by_day("day", records=records).items()
        }

    def month_grid(self, year: int, month: int) -> list[list[date]]:
        return calendar.Calendar(self.first_weekday).monthdatescalendar(year, month)

    def stats(self) -> dict:
        ideas = self.ideas.all()
        statuses = Counter(i.status.value for i in ideas)
        return {
            "ideas": len(ideas),
            "planned": statuses.get(IdeaStatus.PLANNED.value, 0),
            "completed": statuses.get(IdeaStatus.COMPLETED.value, 0),
            "memories": len(self.completed_with_memories()),
            "categories": dict(self.ideas.count_by("category").most_common()),
        }
