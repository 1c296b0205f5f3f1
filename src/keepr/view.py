from datetime import date
from enum import Enum
from typing import Iterable, Optional

from rich import box
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from .shared import (
    CHECKED,
    DAY_COLOR,
    DIM_COLOR,
    DONE_COLOR,
    FAVORITE,
    FAVORITE_COLOR,
    HEADER_COLOR,
    OPEN_COLOR,
    PRIORITY,
    PRIORITY_COLOR,
    STATUS_TO_COLOR,
    TITLE_COLOR,
    TODAY_COLOR,
    UNCHECKED,
    fmt_date,
    fmt_time,
    truncate_string,
)

ID_WIDTH = 6


def short_id(record_id: str) -> str:
    return record_id[:ID_WIDTH]


def _table(title: str, *columns: str) -> Table:
    table = Table(
        title=f"[bold {TITLE_COLOR}]{title}[/bold {TITLE_COLOR}]",
        box=box.SIMPLE_HEAD,
        header_style=f"bold {HEADER_COLOR}",
        show_edge=False,
    )
    table.add_column("id", style=DIM_COLOR, no_wrap=True)
    for column in columns:
        table.add_column(column)
    return table


def _flag(on: bool, char: str, color: str) -> str:
    return f"[{color}]{char}[/{color}]" if on else " "


def movies_table(
    movies, datefmt: str = "%Y-%m-%d", title: str = "Movies", rating_max: int = 10
) -> Table:
    table = _table(title, "", "watched", "title", "genre", "rating", "review")
    for m in movies:
        table.add_row(
            short_id(m.id),
            _flag(m.is_favorite, FAVORITE, FAVORITE_COLOR),
            fmt_date(m.watch_date, datefmt),
            m.title,
            m.genre,
            f"{m.rating}/{rating_max}",
            truncate_string(m.review or "", 40),
        )
    return table


def wishlist_table(priority, regular) -> Table:
    table = _table("Wishlist", "", "title", "genre", "note")
    for w in [*priority, *regular]:
        table.add_row(
            short_id(w.id),
            _flag(w.is_priority, PRIORITY, PRIORITY_COLOR),
            w.title,
            w.genre or "",
            truncate_string(w.note or "", 40),
        )
    return table


def ideas_table(ideas, datefmt: str = "%Y-%m-%d", title: str = "Ideas") -> Table:
    table = _table(title, "day", "status", "title", "category", "memory")
    for i in ideas:
        color = STATUS_TO_COLOR[i.status.value]
        table.add_row(
            short_id(i.id),
            fmt_date(i.day, datefmt),
            f"[{color}]{i.status.value}[/{color}]",
            i.title,
            i.category,
            truncate_string(i.memory or "", 40),
        )
    return table


def purchases_table(
    purchases, tracker, today: Optional[date] = None, datefmt: str = "%Y-%m-%d"
) -> Table:
    table = _table(
        "Purchases", "", "bought", "name", "category", "life", "replace by", "status"
    )
    for p in purchases:
        status = tracker.status(p, today).value
        color = STATUS_TO_COLOR[status]
        table.add_row(
            short_id(p.id),
            _flag(p.is_favorite, FAVORITE, FAVORITE_COLOR),
            fmt_date(p.purchase_date, datefmt),
            p.name,
            p.category.value,
            f"{p.service_life_years}y",
            fmt_date(p.replacement_date, datefmt),
            f"[{color}]{status}[/{color}]",
        )
    return table


def weather_table(entries, datefmt: str = "%Y-%m-%d", ampm: bool = False) -> Table:
    table = _table("Weather", "day", "time", "weather", "temp", "mood", "tag")
    for e in entries:
        table.add_row(
            short_id(e.id),
            fmt_date(e.day, datefmt),
            fmt_time(e.time_of_day, ampm) if e.time_of_day else "",
            Text(f"■ {e.weather.display_name}", style=e.color),
            f"{e.temperature:g}°",
            e.mood.value,
            e.tag or "",
        )
    return table


def products_table(products) -> Table:
    table = _table("Grocery list", "", "name", "qty", "category")
    for p in products:
        color = DONE_COLOR if p.is_completed else OPEN_COLOR
        mark = CHECKED if p.is_completed else UNCHECKED
        name = f"[strike]{p.name}[/strike]" if p.is_completed else p.name
        table.add_row(
            short_id(p.id),
            f"[{color}]{mark}[/{color}]",
            name,
            str(p.quantity),
            p.category or "",
        )
    return table


def categories_table(categories, counts: dict[str, int]) -> Table:
    table = _table("Categories", "name", "products")
    for c in categories:
        table.add_row(short_id(c.id), c.name, str(counts.get(c.name, 0)))
    return table


def month_calendar(
    year: int,
    month: int,
    grid: list[list[date]],
    colors: Optional[dict[date, str]] = None,
    marks: Optional[dict[date, str]] = None,
    today: Optional[date] = None,
) -> Table:
    """
    A month as a grid of day numbers. `colors` paints the background of a
    day, `marks` appends a short marker (e.g. an idea count).
    """
    colors = colors or {}
    marks = marks or {}
    today = today or date.today()
    title = date(year, month, 1).strftime("%B %Y")
    table = Table(
        title=f"[bold {TITLE_COLOR}]{title}[/bold {TITLE_COLOR}]",
        box=box.SIMPLE,
        show_edge=False,
        pad_edge=False,
    )
    for day in grid[0]:
        table.add_column(day.strftime("%a")[:2], justify="right", style=DAY_COLOR)
    for week in grid:
        cells = []
        for day in week:
            if day.month != month:
                cells.append(Text(""))
                continue
            label = f"{day.day}{marks.get(day, '')}"
            style = ""
            if day in colors:
                style = f"black on {colors[day]}"
            if day == today:
                style = f"bold {TODAY_COLOR} {style}".strip()
            cells.append(Text(label, style=style))
        table.add_row(*cells)
    return table


def _fmt_value(value) -> str:
    if isinstance(value, Enum):
        return str(value.value)
    if isinstance(value, float):
        return f"{value:g}"
    if value is None:
        return "-"
    return str(value)


def stats_panel(title: str, stats: dict) -> Panel:
    table = Table.grid(padding=(0, 2))
    table.add_column(style=f"bold {HEADER_COLOR}")
    table.add_column()
    for key, value in stats.items():
        label = key.replace("_", " ")
        if isinstance(value, dict):
            rendered = ", ".join(
                f"{_fmt_value(k)}: {_fmt_value(v)}" for k, v in value.items()
            )
            table.add_row(label, rendered or "-")
        elif isinstance(value, list):
            table.add_row(label, str(len(value)))
        else:
            table.add_row(label, _fmt_value(value))
    return Panel(table, title=title, border_style=DIM_COLOR, expand=False)


def legend(pairs: Iterable[tuple[str, str]]) -> Text:
    text = Text()
    for name, color in pairs:
        text.append("■ ", style=color)
        text.append(f"{name}  ")
    return text
