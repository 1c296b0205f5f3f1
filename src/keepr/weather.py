"""
Weather-mood color calendar: one entry per day recording the weather,
the temperature and how the day felt. Each weather kind has a calendar
color; monthly and period statistics are derived from the entries.
"""

from __future__ import annotations

import calendar
import json
from datetime import date, datetime, time
from enum import Enum
from pathlib import Path
from statistics import mean
from typing import Optional

from pydantic import ValidationInfo, field_validator

from .controller import Period, RecordStore, most_common
from .keepr_env import KeeprConfig, KeeprEnvironment
from .model import Backend
from .record import Record, in_range, limit, not_in_future, optional_text
from .shared import WEATHER_TO_COLOR, log_msg


class Weather(str, Enum):
    SUNNY = "sunny"
    PARTLY_CLOUDY = "partly_cloudy"
    CLOUDY = "cloudy"
    RAINY = "rainy"
    STORMY = "stormy"
    SNOWY = "snowy"
    FOGGY = "foggy"
    WINDY = "windy"

    @property
    def display_name(self) -> str:
        return self.value.replace("_", " ").title()

    @property
    def color(self) -> str:
        return WEATHER_TO_COLOR[self.value]


class Mood(str, Enum):
    JOYFUL = "joyful"
    CALM = "calm"
    NEUTRAL = "neutral"
    TIRED = "tired"
    SAD = "sad"
    IRRITATED = "irritated"


class WeatherEntry(Record):
    day: date
    time_of_day: Optional[time] = None
    weather: Weather
    temperature: float
    mood: Mood
    location: Optional[str] = None
    tag: Optional[str] = None
    comment: Optional[str] = None

    @field_validator("day")
    @classmethod
    def _past_or_today(cls, v, info: ValidationInfo):
        return not_in_future(v, info)

    @field_validator("temperature")
    @classmethod
    def _temperature(cls, v, info: ValidationInfo):
        return in_range(
            v,
            info,
            limit(info, "temperature_min", -60.0),
            limit(info, "temperature_max", 60.0),
        )

    @field_validator("location")
    @classmethod
    def _location(cls, v, info: ValidationInfo):
        return optional_text(v, info, limit(info, "location_max", 60))

    @field_validator("tag")
    @classmethod
    def _tag(cls, v, info: ValidationInfo):
        return optional_text(v, info, limit(info, "tag_max", 30))

    @field_validator("comment")
    @classmethod
    def _comment(cls, v, info: ValidationInfo):
        return optional_text(v, info, limit(info, "comment_max", 500))

    @property
    def color(self) -> str:
        return self.weather.color


class WeatherCalendar:
    def __init__(self, env: Optional[KeeprEnvironment], backend: Backend):
        self.env = env
        config = env.config if env else KeeprConfig()
        self.first_weekday = config.ui.first_weekday
        limits = config.weather.model_dump()
        self.entries: RecordStore[WeatherEntry] = RecordStore(
            WeatherEntry, backend, "weather", limits
        )

    # ---------------- entries ----------------

    def entry_for(self, day: date) -> Optional[WeatherEntry]:
        for entry in self.entries:
            if entry.day == day:
                return entry
        return None

    def today_entry(self) -> Optional[WeatherEntry]:
        return self.entry_for(date.today())

    def record_day(
        self,
        weather: Weather | str,
        temperature: float,
        mood: Mood | str,
        day: Optional[date] = None,
        time_of_day: Optional[time] = None,
        location: Optional[str] = None,
        tag: Optional[str] = None,
        comment: Optional[str] = None,
    ) -> Optional[WeatherEntry]:
        """
        Save the entry for `day` (default today), replacing any entry
        already recorded for that day.
        """
        day = day or date.today()
        fields = dict(
            day=day,
            time_of_day=time_of_day,
            weather=weather,
            temperature=temperature,
            mood=mood,
            location=location,
            tag=tag,
            comment=comment,
        )
        existing = self.entry_for(day)
        if existing is None:
            if time_of_day is None and day == date.today():
                fields["time_of_day"] = datetime.now().time().replace(second=0, microsecond=0)
            return self.entries.add(**fields)
        return self.entries.update(existing.id, **fields)

    def update_entry(self, entry_id: str, **changes) -> Optional[WeatherEntry]:
        current = self.entries.get(entry_id)
        if current is None:
            raise KeyError(entry_id)
        new_day = changes.get("day")
        clash = self.entry_for(new_day) if new_day is not None else None
        if clash is None or clash.id == entry_id:
            return self.entries.update(entry_id, **changes)
        # moving onto a recorded day replaces that day's entry, in one save
        updated = self.entries.revised(entry_id, **changes)
        records = [
            updated if e.id == entry_id else e
            for e in self.entries
            if e.id != clash.id
        ]
        return updated if self.entries.replace_all(records) else None

    def delete_entry(self, entry_id: str) -> bool:
        return self.entries.delete(entry_id)

    # ---------------- calendar ----------------

    def month_entries(self, year: int, month: int) -> list[WeatherEntry]:
        records = self.entries.filtered(
            lambda e: (e.day.year, e.day.month) == (year, month)
        )
        return self.entries.sorted_by("day", records=records)

    def month_grid(self, year: int, month: int) -> list[list[date]]:
        return calendar.Calendar(self.first_weekday).monthdatescalendar(year, month)

    def month_colors(self, year: int, month: int) -> dict[date, str]:
        return {e.day: e.color for e in self.month_entries(year, month)}

    def color_distribution(self, year: int, month: int) -> dict[str, int]:
        counts = self.entries.count_by(
            lambda e: e.weather.display_name, records=self.month_entries(year, month)
        )
        return dict(counts.most_common())

    def most_used_color(self, year: int, month: int) -> Optional[str]:
        distribution = self.color_distribution(year, month)
        if not distribution:
            return None
        return max(distribution.items(), key=lambda kv: kv[1])[0]

    # ---------------- statistics ----------------

    def period_entries(
        self, period: Period | str = Period.MONTH, today: Optional[date] = None
    ) -> list[WeatherEntry]:
        return self.entries.sorted_by(
            "day", records=self.entries.in_period("day", period, today)
        )

    def period_stats(
        self, period: Period | str = Period.MONTH, today: Optional[date] = None
    ) -> dict:
        entries = self.period_entries(period, today)
        weather_counts = self.entries.count_by("weather", records=entries)
        mood_counts = self.entries.count_by("mood", records=entries)
        return {
            "entries": len(entries),
            "average_temperature": (
                round(mean(e.temperature for e in entries), 1) if entries else 0.0
            ),
            "most_common_weather": most_common(weather_counts),
            "most_common_mood": most_common(mood_counts),
            "moods": {mood: mood_counts.get(mood, 0) for mood in Mood},
            "weather": dict(weather_counts.most_common()),
            "temperatures": [(e.day, e.temperature) for e in entries],
        }

    # ---------------- export ----------------

    def export_payload(
        self, period: Period | str = Period.ALL, today: Optional[date] = None
    ) -> dict:
        entries = self.period_entries(period, today)
        return {
            "time_range": Period(period).value,
            "export_date": datetime.now().isoformat(timespec="seconds"),
            "total_entries": len(entries),
            "entries": [
                {**e.to_dict(), "color": e.color} for e in entries
            ],
        }

    def export_json(
        self,
        path: Path | str,
        period: Period | str = Period.ALL,
        today: Optional[date] = None,
    ) -> Path:
        path = Path(path)
        payload = self.export_payload(period, today)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(
            json.dumps(payload, ensure_ascii=False, indent=2), encoding="utf-8"
        )
        log_msg(f"exported {payload['total_entries']} weather entries to {path}")
        return path
