import inspect
import textwrap
import shutil
import os
from datetime import date, datetime, timedelta
from pathlib import Path
from dateutil.parser import parse as dateutil_parse
from dateutil.parser import parserinfo, ParserError

ELLIPSIS_CHAR = "…"

FAVORITE = "♥"  # Flag for favorites
PRIORITY = "★"  # Flag for priority wishlist entries
CHECKED = "✔"
UNCHECKED = "○"

CORNSILK = "#FFF8DC"
DARK_GRAY = "#A9A9A9"
DARK_ORANGE = "#FF8C00"
GOLD = "#FFD700"
LEMON_CHIFFON = "#FFFACD"
LIGHT_CORAL = "#F08080"
LIGHT_SKY_BLUE = "#87CEFA"
LIME_GREEN = "#32CD32"
MEDIUM_PURPLE = "#9370DB"
ORANGE_RED = "#FF4500"
PALE_GREEN = "#98FB98"
SLATE_GREY = "#708090"
SNOW = "#FFFAFA"
TOMATO = "#FF6347"

# Colors for UI elements
DAY_COLOR = LEMON_CHIFFON
HEADER_COLOR = LIGHT_SKY_BLUE
DIM_COLOR = DARK_GRAY
TODAY_COLOR = TOMATO
TITLE_COLOR = CORNSILK
FAVORITE_COLOR = LIGHT_CORAL
PRIORITY_COLOR = GOLD
DONE_COLOR = DARK_GRAY
OPEN_COLOR = PALE_GREEN

STATUS_TO_COLOR = {
    "planned": LIGHT_SKY_BLUE,
    "completed": DARK_GRAY,
    "normal": LIME_GREEN,
    "soon": GOLD,
    "overdue": ORANGE_RED,
}

# calendar swatch for each weather kind
WEATHER_TO_COLOR = {
    "sunny": DARK_ORANGE,
    "partly_cloudy": LIGHT_SKY_BLUE,
    "cloudy": SLATE_GREY,
    "rainy": LIME_GREEN,
    "stormy": MEDIUM_PURPLE,
    "snowy": SNOW,
    "foggy": DARK_GRAY,
    "windy": LIGHT_CORAL,
}


def parse(s, yearfirst: bool = True, dayfirst: bool = False):
    """
    Parse free-form date/datetime text using the configured ordering rules.
    Dates (no time component) are returned as ``date`` objects; timestamps are
    returned as naive ``datetime`` values with the midnight shortcut collapsed
    back to just the date. Raises ``ValueError`` when the text is not a date.
    """
    if isinstance(s, datetime):
        return s.date() if s.hour == s.minute == 0 else s
    if isinstance(s, date):
        return s
    text = str(s or "").strip().lower()
    if text in ("today", "now"):
        return date.today()
    if text == "yesterday":
        return date.today() - timedelta(days=1)
    if text == "tomorrow":
        return date.today() + timedelta(days=1)
    pi = parserinfo(dayfirst=dayfirst, yearfirst=yearfirst)
    try:
        dt = dateutil_parse(text, parserinfo=pi)
    except (ParserError, OverflowError) as e:
        raise ValueError(f"cannot parse {s!r} as a date: {e}") from e
    if dt.hour == dt.minute == 0:
        return dt.date()
    return dt


def parse_date(s, yearfirst: bool = True, dayfirst: bool = False) -> date:
    """Like ``parse`` but always returns the date part."""
    parsed = parse(s, yearfirst=yearfirst, dayfirst=dayfirst)
    return parsed.date() if isinstance(parsed, datetime) else parsed


def date_format(yearfirst: bool = True, dayfirst: bool = False) -> str:
    _yr = "%Y"
    _dm = "%d-%m" if dayfirst else "%m-%d"
    return f"{_yr}-{_dm}" if yearfirst else f"{_dm}-{_yr}"


def fmt_date(d: date | None, fmt: str = "%Y-%m-%d") -> str:
    if d is None:
        return ""
    return d.strftime(fmt)


def fmt_time(dt: datetime | None, ampm: bool = False) -> str:
    if dt is None:
        return ""
    if ampm:
        return dt.strftime("%I:%M%p").lstrip("0").lower()
    return dt.strftime("%H:%M")


def truncate_string(s: str, max_length: int) -> str:
    if len(s) > max_length:
        return f"{s[: max_length - 2]} {ELLIPSIS_CHAR}"
    else:
        return s



def plural(count: int, singular: str, plural_form: str | None = None) -> str:
    word = singular if count == 1 else (plural_form or f"{singular}s")
    return f"{count} {word}"


def _get_runtime_home() -> Path:
    override = os.environ.get("KEEPR_HOME")
    if override:
        return Path(override).expanduser()
    from keepr.keepr_env import KeeprEnvironment

    return KeeprEnvironment().home


def _resolve_log_file_path(file_path: str | Path) -> Path:
    path = Path(file_path)
    if path.is_absolute():
        return path
    return _get_runtime_home() / path


def _default_log_relative_path(kind: str) -> Path:
    """Return logs/log_<YYMMDD>.md style paths under the runtime home."""
    suffix = datetime.now().strftime("%y%m%d")
    return Path("logs") / f"{kind}_{suffix}.md"


def _caller_name(frame) -> str:
    func_name = frame.f_code.co_name
    if "self" in frame.f_locals:  # instance method
        cls_name = frame.f_locals["self"].__class__.__name__
        return f"{cls_name}.{func_name}"
    if "cls" in frame.f_locals:  # classmethod
        cls_name = frame.f_locals["cls"].__name__
        return f"{cls_name}.{func_name}"
    return func_name


def _write_log(
    kind: str,
    caller_name: str,
    msg: str,
    file_path: str | Path | None,
    print_output: bool,
):
    lines = [
        f"- {datetime.now().strftime('%H:%M:%S')} {kind}_msg ({caller_name}):  ",
    ]
    # Wrap the message text
    lines.extend(
        [
            f"\n{x}"
            for x in textwrap.wrap(
                msg.strip(),
                width=max(shutil.get_terminal_size()[0] - 6, 40),
                initial_indent="   ",
                subsequent_indent="   ",
            )
        ]
    )
    lines.append("\n\n")

    # Best-effort file logging; fall back to console when the file is unwritable.
    if file_path is None:
        file_path = _default_log_relative_path(kind)
    log_path = _resolve_log_file_path(file_path)

    try:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        with open(log_path, "a", encoding="utf-8") as f:
            f.writelines(lines)
    except OSError:
        print_output = True

    if print_output:
        print("".join(lines))


def log_msg(
    msg: str,
    file_path: str | Path | None = None,
    print_output: bool = False,
):
    """
    Log a message and save it directly to a file.

    Args:
        msg (str): The message to log.
        file_path (str | Path | None, optional): Overrides the default path when
            provided. Defaults to ``None`` which writes to ``logs/log_<YYMMDD>.md``.
        print_output (bool, optional): If True, also print to console.
    """
    frame = inspect.stack()[1].frame
    _write_log("log", _caller_name(frame), msg, file_path, print_output)
