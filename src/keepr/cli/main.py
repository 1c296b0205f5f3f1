import sys
import os
import click
from pathlib import Path
from rich import print
from typing import Optional

from datetime import date, datetime

from keepr.controller import Period
from keepr.grocery import GroceryList
from keepr.keepr_env import KeeprEnvironment
from keepr.model import DatabaseManager, backend_for
from keepr.movies import GENRES, DateFilter, FavoritesSort, MovieDiary, MovieSort
from keepr.planner import CATEGORIES, IdeaFilter, Planner
from keepr.purchases import (
    PurchaseCategory,
    PurchaseSort,
    PurchaseStatus,
    PurchaseTracker,
)
from keepr.record import RecordValidationError
from keepr.shared import date_format, parse_date, plural
from keepr.versioning import get_version
from keepr.weather import Mood, Weather, WeatherCalendar
from keepr import view


class _DateParam(click.ParamType):
    name = "date"

    def convert(self, value, param, ctx):
        if value is None:
            return None
        if isinstance(value, date):
            return value
        session = ctx.find_object(Session) if ctx else None
        ui = session.env.config.ui if session else None
        try:
            if ui:
                return parse_date(value, yearfirst=ui.yearfirst, dayfirst=ui.dayfirst)
            return parse_date(value)
        except ValueError:
            self.fail(f"Expected a date such as 2025-03-14 or 'today', not {value!r}", param, ctx)


class _TimeParam(click.ParamType):
    name = "time"

    def convert(self, value, param, ctx):
        if value is None:
            return None
        s = str(value).strip().lower()
        for fmt in ("%H:%M", "%I:%M%p", "%I%p"):
            try:
                return datetime.strptime(s, fmt).time()
            except ValueError:
                pass
        self.fail("Expected HH:MM, e.g. 18:30 or 6:30pm", param, ctx)


class _MonthParam(click.ParamType):
    name = "YYYY-MM"

    def convert(self, value, param, ctx):
        if value is None:
            return None
        if isinstance(value, tuple):
            return value
        try:
            month = datetime.strptime(str(value).strip(), "%Y-%m")
        except ValueError:
            self.fail("Expected YYYY-MM", param, ctx)
        return month.year, month.month


_DATE = _DateParam()
_TIME = _TimeParam()
_MONTH = _MonthParam()

VERSION = get_version()


class Session:
    """
    Environment, database and books for one invocation. Nothing is
    created on disk until a command actually needs it, so `--help`
    leaves the home directory alone.
    """

    def __init__(self, verbose: bool = False):
        self.verbose = verbose
        self._env: Optional[KeeprEnvironment] = None
        self._dbm: Optional[DatabaseManager] = None
        self._backend = None
        self._books = {}

    @property
    def env(self) -> KeeprEnvironment:
        if self._env is None:
            env = KeeprEnvironment()
            env.ensure(init_config=True, init_db_fn=ensure_database)
            env.load_config()
            self._env = env
            if self.verbose:
                print(f"[blue]keepr {VERSION} using home directory:[/blue] {env.home}")
        return self._env

    @property
    def backend(self):
        if self._backend is None:
            self._dbm = DatabaseManager(self.env.db_path, self.env)
            self._backend = backend_for(self.env, self._dbm)
        return self._backend

    @property
    def datefmt(self) -> str:
        ui = self.env.config.ui
        return date_format(ui.yearfirst, ui.dayfirst)

    def book(self, cls):
        if cls not in self._books:
            self._books[cls] = cls(self.env, self.backend)
        return self._books[cls]

    def close(self):
        if self._dbm is not None:
            self._dbm.close()
            self._dbm = None


def ensure_database(db_path: Path):
    print(f"[yellow]⚠️ [/yellow]Database not found. Creating new database at {db_path}")
    DatabaseManager(db_path).close()


def _invalid(e: RecordValidationError):
    print("[red]✘ Invalid entry:[/red]")
    for message in e.messages:
        print(f"  {message}")
    sys.exit(1)


def _attempt(fn, *args, **kwargs):
    try:
        return fn(*args, **kwargs)
    except RecordValidationError as e:
        _invalid(e)


def _lookup(store, prefix: str, what: str):
    record = store.find(prefix)
    if record is None:
        print(f"[red]✘ No single {what} matches id {prefix!r}.[/red]")
        sys.exit(1)
    return record


def _done(result, message: str):
    if result is None or result is False:
        print("[yellow]Nothing was saved; see the log for details.[/yellow]")
        return
    print(f"[green]✔ {message}[/green]")


def _changes(**options) -> dict:
    changes = {k: v for k, v in options.items() if v is not None}
    if not changes:
        print("[yellow]Nothing to change.[/yellow]")
        sys.exit(0)
    return changes


def _this_month() -> tuple[int, int]:
    today = date.today()
    return today.year, today.month


@click.group()
@click.version_option(VERSION, prog_name="keepr", message="%(prog)s version %(version)s")
@click.option(
    "--home",
    help="Override the keepr workspace directory (equivalent to setting $KEEPR_HOME).",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output")
@click.pass_context
def cli(ctx, home, verbose):
    """keepr – personal record books from the command line."""
    if home:
        os.environ["KEEPR_HOME"] = (
            home  # Must be set before KeeprEnvironment is instantiated
        )
    session = Session(verbose=verbose)
    ctx.obj = session
    ctx.call_on_close(session.close)


pass_session = click.make_pass_decorator(Session)


# ─── movies ─────────────────────────────────────────────────


@cli.group()
def movies():
    """The movie diary."""


@movies.command("add")
@click.argument("title")
@click.option("--genre", "-g", required=True, help=f"e.g. {', '.join(GENRES[:4])} ...")
@click.option("--date", "-d", "watch_date", type=_DATE, default="today", show_default=True)
@click.option("--rating", "-r", type=int, default=7, show_default=True)
@click.option("--review")
@click.option("--location", "watch_location")
@click.option("--note", "notes", multiple=True, help="May be repeated.")
@click.option("--favorite", is_flag=True)
@pass_session
def movies_add(session, title, genre, watch_date, rating, review, watch_location, notes, favorite):
    """Add a watched movie."""
    diary = session.book(MovieDiary)
    movie = _attempt(
        diary.add_movie,
        title=title,
        genre=genre,
        watch_date=watch_date,
        rating=rating,
        review=review,
        watch_location=watch_location,
        notes=list(notes),
        is_favorite=favorite,
    )
    _done(movie, f"Added {title!r}.")


@movies.command("list")
@click.option("--search", "-s", default="")
@click.option("--genre", "-g", "genres", multiple=True)
@click.option("--min-rating", type=int)
@click.option("--max-rating", type=int)
@click.option(
    "--period",
    type=click.Choice([d.value for d in DateFilter]),
    default=DateFilter.ALL.value,
    show_default=True,
)
@click.option(
    "--sort",
    type=click.Choice([s.value for s in MovieSort]),
    default=MovieSort.DATE_DESC.value,
    show_default=True,
)
@pass_session
def movies_list(session, search, genres, min_rating, max_rating, period, sort):
    """List watched movies."""
    diary = session.book(MovieDiary)
    diary.search_text = search
    diary.genres = set(genres)
    low, high = diary.rating_bounds
    diary.rating_range = (
        min_rating if min_rating is not None else low,
        max_rating if max_rating is not None else high,
    )
    diary.date_filter = DateFilter(period)
    diary.sort_option = MovieSort(sort)
    found = diary.filtered_movies()
    if not found:
        print("[yellow]No movies found.[/yellow]")
        return
    print(view.movies_table(found, session.datefmt, rating_max=diary.rating_bounds[1]))


@movies.command("favorites")
@click.option(
    "--sort",
    type=click.Choice([s.value for s in FavoritesSort]),
    default=FavoritesSort.DATE_ADDED.value,
    show_default=True,
)
@pass_session
def movies_favorites(session, sort):
    """List favorite movies."""
    diary = session.book(MovieDiary)
    print(
        view.movies_table(
            diary.favorites(sort),
            session.datefmt,
            title="Favorites",
            rating_max=diary.rating_bounds[1],
        )
    )


@movies.command("edit")
@click.argument("movie_id")
@click.option("--title")
@click.option("--genre", "-g")
@click.option("--date", "-d", "watch_date", type=_DATE)
@click.option("--rating", "-r", type=int)
@click.option("--review")
@click.option("--location", "watch_location")
@pass_session
def movies_edit(session, movie_id, **options):
    """Change fields of a movie."""
    diary = session.book(MovieDiary)
    movie = _lookup(diary.movies, movie_id, "movie")
    changes = _changes(**options)
    _done(_attempt(diary.update_movie, movie.id, **changes), f"Updated {movie.title!r}.")


@movies.command("note")
@click.argument("movie_id")
@click.argument("text")
@pass_session
def movies_note(session, movie_id, text):
    """Append a note to a movie."""
    diary = session.book(MovieDiary)
    movie = _lookup(diary.movies, movie_id, "movie")
    _done(_attempt(diary.add_note, movie.id, text), f"Noted {movie.title!r}.")


@movies.command("favorite")
@click.argument("movie_id")
@pass_session
def movies_favorite(session, movie_id):
    """Toggle the favorite flag of a movie."""
    diary = session.book(MovieDiary)
    movie = _lookup(diary.movies, movie_id, "movie")
    updated = diary.toggle_favorite(movie.id)
    state = "a favorite" if updated and updated.is_favorite else "not a favorite"
    _done(updated, f"{movie.title!r} is now {state}.")


@movies.command("delete")
@click.argument("movie_id")
@pass_session
def movies_delete(session, movie_id):
    """Delete a movie from the diary."""
    diary = session.book(MovieDiary)
    movie = _lookup(diary.movies, movie_id, "movie")
    _done(diary.delete_movie(movie.id), f"Deleted {movie.title!r}.")


@movies.command("stats")
@pass_session
def movies_stats(session):
    """Summary of the diary and wishlist."""
    print(view.stats_panel("Movies", session.book(MovieDiary).stats()))


# ─── wishlist ───────────────────────────────────────────────


@cli.group()
def wishlist():
    """Movies to watch."""


@wishlist.command("add")
@click.argument("title")
@click.option("--genre", "-g")
@click.option("--note")
@click.option("--priority", is_flag=True)
@pass_session
def wishlist_add(session, title, genre, note, priority):
    """Add a movie to the wishlist."""
    diary = session.book(MovieDiary)
    wish = _attempt(diary.add_wishlist, title=title, genre=genre, note=note, is_priority=priority)
    _done(wish, f"Added {title!r} to the wishlist.")


@wishlist.command("list")
@pass_session
def wishlist_list(session):
    """List the wishlist, priority entries first."""
    diary = session.book(MovieDiary)
    if not len(diary.wishlist):
        print("[yellow]The wishlist is empty.[/yellow]")
        return
    print(view.wishlist_table(diary.priority_movies(), diary.regular_movies()))


@wishlist.command("edit")
@click.argument("wish_id")
@click.option("--title")
@click.option("--genre", "-g")
@click.option("--note")
@pass_session
def wishlist_edit(session, wish_id, **options):
    """Change fields of a wishlist entry."""
    diary = session.book(MovieDiary)
    wish = _lookup(diary.wishlist, wish_id, "wishlist entry")
    changes = _changes(**options)
    _done(_attempt(diary.update_wishlist, wish.id, **changes), f"Updated {wish.title!r}.")


@wishlist.command("priority")
@click.argument("wish_id")
@pass_session
def wishlist_priority(session, wish_id):
    """Toggle the priority flag of a wishlist entry."""
    diary = session.book(MovieDiary)
    wish = _lookup(diary.wishlist, wish_id, "wishlist entry")
    updated = diary.toggle_priority(wish.id)
    state = "a priority" if updated and updated.is_priority else "not a priority"
    _done(updated, f"{wish.title!r} is now {state}.")


@wishlist.command("watched")
@click.argument("wish_id")
@click.option("--date", "-d", "watch_date", type=_DATE, default="today", show_default=True)
@click.option("--rating", "-r", type=int, default=7, show_default=True)
@click.option("--genre", "-g")
@pass_session
def wishlist_watched(session, wish_id, watch_date, rating, genre):
    """Move a wishlist entry into the diary."""
    diary = session.book(MovieDiary)
    wish = _lookup(diary.wishlist, wish_id, "wishlist entry")
    movie = _attempt(diary.watched, wish.id, watch_date=watch_date, rating=rating, genre=genre)
    _done(movie, f"Moved {wish.title!r} into the diary.")


@wishlist.command("delete")
@click.argument("wish_id")
@pass_session
def wishlist_delete(session, wish_id):
    """Delete a wishlist entry."""
    diary = session.book(MovieDiary)
    wish = _lookup(diary.wishlist, wish_id, "wishlist entry")
    _done(diary.delete_wishlist(wish.id), f"Deleted {wish.title!r}.")


@wishlist.command("stats")
@pass_session
def wishlist_stats(session):
    """Wishlist counts."""
    stats = session.book(MovieDiary).stats()
    print(
        view.stats_panel(
            "Wishlist", {"wishlist": stats["wishlist"], "priority": stats["priority"]}
        )
    )


# ─── planner ────────────────────────────────────────────────


@cli.group()
def planner():
    """Ideas for things to do together."""


@planner.command("add")
@click.argument("title")
@click.option("--date", "-d", "day", type=_DATE, required=True)
@click.option("--description")
@click.option("--category", "-c", type=click.Choice(CATEGORIES), default="other", show_default=True)
@pass_session
def planner_add(session, title, day, description, category):
    """Plan an idea for a day."""
    book = session.book(Planner)
    idea = _attempt(book.add_idea, title=title, day=day, description=description, category=category)
    _done(idea, f"Planned {title!r}.")


@planner.command("list")
@click.option("--search", "-s", default="")
@click.option(
    "--status",
    type=click.Choice([f.value for f in IdeaFilter]),
    default=IdeaFilter.ALL.value,
    show_default=True,
)
@click.option("--upcoming", is_flag=True, help="Only ideas from today on.")
@pass_session
def planner_list(session, search, status, upcoming):
    """List ideas by day."""
    book = session.book(Planner)
    if upcoming:
        found = book.upcoming(status_filter=status)
    else:
        book.search_text = search
        book.selected_filter = IdeaFilter(status)
        found = book.filtered_ideas()
    if not found:
        print("[yellow]No ideas found.[/yellow]")
        return
    print(view.ideas_table(found, session.datefmt))


@planner.command("memories")
@click.option("--search", "-s", default="")
@pass_session
def planner_memories(session, search):
    """Completed ideas that have a memory."""
    book = session.book(Planner)
    print(view.ideas_table(book.completed_with_memories(search), session.datefmt, title="Memories"))


@planner.command("calendar")
@click.option("--month", "-m", type=_MONTH, help="Defaults to the current month.")
@click.option(
    "--status",
    type=click.Choice([f.value for f in IdeaFilter]),
    default=IdeaFilter.ALL.value,
    show_default=True,
)
@pass_session
def planner_calendar(session, month, status):
    """Month calendar with the number of ideas per day."""
    book = session.book(Planner)
    year, month = month or _this_month()
    counts = book.month_counts(year, month, status)
    marks = {day: f"·{n}" for day, n in counts.items()}
    print(view.month_calendar(year, month, book.month_grid(year, month), marks=marks))


@planner.command("edit")
@click.argument("idea_id")
@click.option("--title")
@click.option("--date", "-d", "day", type=_DATE)
@click.option("--description")
@click.option("--category", "-c", type=click.Choice(CATEGORIES))
@pass_session
def planner_edit(session, idea_id, **options):
    """Change fields of an idea."""
    book = session.book(Planner)
    idea = _lookup(book.ideas, idea_id, "idea")
    changes = _changes(**options)
    _done(_attempt(book.update_idea, idea.id, **changes), f"Updated {idea.title!r}.")


@planner.command("done")
@click.argument("idea_id")
@pass_session
def planner_done(session, idea_id):
    """Toggle an idea between planned and completed."""
    book = session.book(Planner)
    idea = _lookup(book.ideas, idea_id, "idea")
    updated = book.toggle_status(idea.id)
    _done(updated, f"{idea.title!r} is now {updated.status.value if updated else idea.status.value}.")


@planner.command("memory")
@click.argument("idea_id")
@click.argument("text")
@pass_session
def planner_memory(session, idea_id, text):
    """Record a memory for an idea."""
    book = session.book(Planner)
    idea = _lookup(book.ideas, idea_id, "idea")
    _done(_attempt(book.add_memory, idea.id, text), f"Saved a memory for {idea.title!r}.")


@planner.command("delete")
@click.argument("idea_id")
@pass_session
def planner_delete(session, idea_id):
    """Delete an idea."""
    book = session.book(Planner)
    idea = _lookup(book.ideas, idea_id, "idea")
    _done(book.delete_idea(idea.id), f"Deleted {idea.title!r}.")


@planner.command("stats")
@pass_session
def planner_stats(session):
    """Planner counts."""
    print(view.stats_panel("Planner", session.book(Planner).stats()))


# ─── purchases ──────────────────────────────────────────────


@cli.group()
def purchases():
    """Purchases and when to replace them."""


@purchases.command("add")
@click.argument("name")
@click.option("--date", "-d", "purchase_date", type=_DATE, default="today", show_default=True)
@click.option(
    "--category",
    "-c",
    type=click.Choice([c.value for c in PurchaseCategory]),
    default=PurchaseCategory.OTHER.value,
    show_default=True,
)
@click.option("--years", "-y", "service_life_years", type=int, default=1, show_default=True)
@click.option("--comment", default="")
@click.option("--favorite", is_flag=True)
@pass_session
def purchases_add(session, name, purchase_date, category, service_life_years, comment, favorite):
    """Record a purchase and its expected service life."""
    tracker = session.book(PurchaseTracker)
    purchase = _attempt(
        tracker.add_purchase,
        name=name,
        purchase_date=purchase_date,
        category=category,
        service_life_years=service_life_years,
        comment=comment,
        is_favorite=favorite,
    )
    _done(purchase, f"Added {name!r}.")


@purchases.command("list")
@click.option("--category", "-c", type=click.Choice([c.value for c in PurchaseCategory]))
@click.option("--status", type=click.Choice([s.value for s in PurchaseStatus]))
@click.option(
    "--sort",
    type=click.Choice([s.value for s in PurchaseSort]),
    default=PurchaseSort.DATE.value,
    show_default=True,
)
@click.option("--favorites", is_flag=True)
@pass_session
def purchases_list(session, category, status, sort, favorites):
    """List purchases with their replacement status."""
    tracker = session.book(PurchaseTracker)
    if favorites:
        found = tracker.favorites()
    else:
        found = tracker.listing(category=category, status=status, sort=sort)
    if not found:
        print("[yellow]No purchases found.[/yellow]")
        return
    print(view.purchases_table(found, tracker, datefmt=session.datefmt))


@purchases.command("edit")
@click.argument("purchase_id")
@click.option("--name")
@click.option("--date", "-d", "purchase_date", type=_DATE)
@click.option("--category", "-c", type=click.Choice([c.value for c in PurchaseCategory]))
@click.option("--years", "-y", "service_life_years", type=int)
@click.option("--comment")
@pass_session
def purchases_edit(session, purchase_id, **options):
    """Change fields of a purchase."""
    tracker = session.book(PurchaseTracker)
    purchase = _lookup(tracker.purchases, purchase_id, "purchase")
    changes = _changes(**options)
    _done(_attempt(tracker.update_purchase, purchase.id, **changes), f"Updated {purchase.name!r}.")


@purchases.command("favorite")
@click.argument("purchase_id")
@pass_session
def purchases_favorite(session, purchase_id):
    """Toggle the favorite flag of a purchase."""
    tracker = session.book(PurchaseTracker)
    purchase = _lookup(tracker.purchases, purchase_id, "purchase")
    updated = tracker.toggle_favorite(purchase.id)
    state = "a favorite" if updated and updated.is_favorite else "not a favorite"
    _done(updated, f"{purchase.name!r} is now {state}.")


@purchases.command("delete")
@click.argument("purchase_id")
@pass_session
def purchases_delete(session, purchase_id):
    """Delete a purchase."""
    tracker = session.book(PurchaseTracker)
    purchase = _lookup(tracker.purchases, purchase_id, "purchase")
    _done(tracker.delete_purchase(purchase.id), f"Deleted {purchase.name!r}.")


@purchases.command("stats")
@pass_session
def purchases_stats(session):
    """Counts by category, status and service life."""
    tracker = session.book(PurchaseTracker)
    stats = tracker.stats()
    stats["service_life"] = tracker.by_service_life()
    print(view.stats_panel("Purchases", stats))


# ─── weather ────────────────────────────────────────────────


@cli.group()
def weather():
    """The weather-mood color calendar."""


@weather.command("add")
@click.argument("kind", type=click.Choice([w.value for w in Weather]))
@click.argument("temperature", type=float)
@click.argument("mood", type=click.Choice([m.value for m in Mood]))
@click.option("--date", "-d", "day", type=_DATE, default="today", show_default=True)
@click.option("--time", "-t", "time_of_day", type=_TIME)
@click.option("--location", "-l")
@click.option("--tag")
@click.option("--comment")
@pass_session
def weather_add(session, kind, temperature, mood, day, time_of_day, location, tag, comment):
    """Record the weather for a day, replacing any earlier entry for it."""
    book = session.book(WeatherCalendar)
    entry = _attempt(
        book.record_day,
        weather=kind,
        temperature=temperature,
        mood=mood,
        day=day,
        time_of_day=time_of_day,
        location=location,
        tag=tag,
        comment=comment,
    )
    _done(entry, f"Recorded {Weather(kind).display_name.lower()} for {day:%b %-d}.")


@weather.command("list")
@click.option(
    "--period",
    type=click.Choice([p.value for p in Period if p is not Period.CUSTOM]),
    default=Period.MONTH.value,
    show_default=True,
)
@pass_session
def weather_list(session, period):
    """List weather entries for a period."""
    book = session.book(WeatherCalendar)
    found = book.period_entries(period)
    if not found:
        print("[yellow]No weather entries found.[/yellow]")
        return
    print(view.weather_table(found, session.datefmt, session.env.config.ui.ampm))


@weather.command("calendar")
@click.option("--month", "-m", type=_MONTH, help="Defaults to the current month.")
@pass_session
def weather_calendar(session, month):
    """Month calendar colored by weather."""
    book = session.book(WeatherCalendar)
    year, month = month or _this_month()
    print(
        view.month_calendar(
            year, month, book.month_grid(year, month), colors=book.month_colors(year, month)
        )
    )
    print(view.legend((w.display_name, w.color) for w in Weather))
    distribution = book.color_distribution(year, month)
    if distribution:
        print(view.stats_panel("This month", distribution))


@weather.command("edit")
@click.argument("entry_id")
@click.option("--kind", "weather", type=click.Choice([w.value for w in Weather]))
@click.option("--temperature", type=float)
@click.option("--mood", type=click.Choice([m.value for m in Mood]))
@click.option("--date", "-d", "day", type=_DATE)
@click.option("--time", "-t", "time_of_day", type=_TIME)
@click.option("--location", "-l")
@click.option("--tag")
@click.option("--comment")
@pass_session
def weather_edit(session, entry_id, **options):
    """Change fields of a weather entry."""
    book = session.book(WeatherCalendar)
    entry = _lookup(book.entries, entry_id, "weather entry")
    changes = _changes(**options)
    _done(_attempt(book.update_entry, entry.id, **changes), f"Updated the entry for {entry.day:%b %-d}.")


@weather.command("delete")
@click.argument("entry_id")
@pass_session
def weather_delete(session, entry_id):
    """Delete a weather entry."""
    book = session.book(WeatherCalendar)
    entry = _lookup(book.entries, entry_id, "weather entry")
    _done(book.delete_entry(entry.id), f"Deleted the entry for {entry.day:%b %-d}.")


@weather.command("stats")
@click.option(
    "--period",
    type=click.Choice([p.value for p in Period if p is not Period.CUSTOM]),
    default=Period.MONTH.value,
    show_default=True,
)
@pass_session
def weather_stats(session, period):
    """Temperature, weather and mood summary for a period."""
    stats = session.book(WeatherCalendar).period_stats(period)
    print(view.stats_panel(f"Weather ({period})", stats))


# ─── grocery ────────────────────────────────────────────────


@cli.group()
def grocery():
    """The grocery list."""


@grocery.command("add")
@click.argument("name")
@click.option("--qty", "-q", "quantity", type=int, default=1, show_default=True)
@click.option("--category", "-c")
@pass_session
def grocery_add(session, name, quantity, category):
    """Add a product."""
    groceries = session.book(GroceryList)
    product = _attempt(groceries.add_product, name=name, quantity=quantity, category=category)
    _done(product, f"Added {name!r}.")


@grocery.command("list")
@click.option("--search", "-s", default="")
@click.option("--category", "-c")
@pass_session
def grocery_list(session, search, category):
    """List products, open items first."""
    groceries = session.book(GroceryList)
    groceries.search_text = search
    groceries.category = category
    found = groceries.filtered_products()
    if not found:
        print("[yellow]No products found.[/yellow]")
        return
    done, total = groceries.progress()
    print(view.products_table(found))
    print(f"[dim]{done} of {plural(total, 'product')} done[/dim]")


@grocery.command("edit")
@click.argument("product_id")
@click.option("--name")
@click.option("--qty", "-q", "quantity", type=int)
@click.option("--category", "-c")
@pass_session
def grocery_edit(session, product_id, **options):
    """Change fields of a product."""
    groceries = session.book(GroceryList)
    product = _lookup(groceries.products, product_id, "product")
    changes = _changes(**options)
    _done(_attempt(groceries.update_product, product.id, **changes), f"Updated {product.name!r}.")


@grocery.command("check")
@click.argument("product_id")
@pass_session
def grocery_check(session, product_id):
    """Toggle a product between open and done."""
    groceries = session.book(GroceryList)
    product = _lookup(groceries.products, product_id, "product")
    updated = groceries.toggle_completed(product.id)
    state = "done" if updated and updated.is_completed else "open"
    _done(updated, f"{product.name!r} is now {state}.")


@grocery.command("delete")
@click.argument("product_id")
@pass_session
def grocery_delete(session, product_id):
    """Delete a product."""
    groceries = session.book(GroceryList)
    product = _lookup(groceries.products, product_id, "product")
    _done(groceries.delete_product(product.id), f"Deleted {product.name!r}.")


@grocery.command("clear")
@click.option("--all", "everything", is_flag=True, help="Remove open products too.")
@click.confirmation_option(prompt="Remove products from the list?")
@pass_session
def grocery_clear(session, everything):
    """Remove the products that are done (or all of them)."""
    groceries = session.book(GroceryList)
    if everything:
        _done(groceries.clear_all(), "Cleared the list.")
        return
    completed, _ = groceries.progress()
    if not completed:
        print("[yellow]No completed products to remove.[/yellow]")
        return
    removed = groceries.delete_completed()
    _done(removed or None, f"Removed {plural(removed, 'product')}.")


@grocery.command("categories")
@pass_session
def grocery_categories(session):
    """List categories with their product counts."""
    groceries = session.book(GroceryList)
    print(view.categories_table(groceries.sorted_categories(), groceries.category_counts()))


@grocery.command("category-add")
@click.argument("name")
@pass_session
def grocery_category_add(session, name):
    """Add a category."""
    groceries = session.book(GroceryList)
    _done(_attempt(groceries.add_category, name), f"Added category {name!r}.")


@grocery.command("category-rename")
@click.argument("category_id")
@click.argument("name")
@pass_session
def grocery_category_rename(session, category_id, name):
    """Rename a category and the products filed under it."""
    groceries = session.book(GroceryList)
    category = _lookup(groceries.categories, category_id, "category")
    _done(
        _attempt(groceries.rename_category, category.id, name),
        f"Renamed {category.name!r} to {name!r}.",
    )


@grocery.command("category-delete")
@click.argument("category_id")
@click.option("--move-to", help="Category for the products left behind.")
@pass_session
def grocery_category_delete(session, category_id, move_to):
    """Delete a category; its products move or become uncategorized."""
    groceries = session.book(GroceryList)
    category = _lookup(groceries.categories, category_id, "category")
    _done(groceries.delete_category(category.id, move_to), f"Deleted category {category.name!r}.")


@grocery.command("stats")
@pass_session
def grocery_stats(session):
    """Progress and products per category."""
    groceries = session.book(GroceryList)
    done, total = groceries.progress()
    stats = {"products": total, "done": done, "categories": groceries.category_counts()}
    print(view.stats_panel("Grocery", stats))


# ─── workspace ──────────────────────────────────────────────


@cli.command()
@click.option(
    "--period",
    type=click.Choice([p.value for p in Period if p is not Period.CUSTOM]),
    default=Period.ALL.value,
    show_default=True,
)
@click.option("--output", "-o", type=click.Path(dir_okay=False), help="Defaults to <home>/exports.")
@pass_session
def export(session, period, output):
    """Export weather entries as JSON."""
    book = session.book(WeatherCalendar)
    if output is None:
        stamp = datetime.now().strftime("%y%m%d%H%M")
        output = session.env.export_dir / f"weather_{period}_{stamp}.json"
    path = book.export_json(output, period)
    print(f"[green]✔ Exported to {path}[/green]")


@cli.command()
@pass_session
def info(session):
    """Show the workspace, storage backend and record counts."""
    env = session.env
    print(f"[bold]keepr[/bold] {VERSION}")
    print(f"home:    {env.home}")
    print(f"config:  {env.config_path}")
    print(f"db:      {env.db_path} ({env.config.storage.backend})")
    diary = session.book(MovieDiary)
    counts = {
        "movies": len(diary.movies),
        "wishlist": len(diary.wishlist),
        "ideas": len(session.book(Planner).ideas),
        "purchases": len(session.book(PurchaseTracker).purchases),
        "weather": len(session.book(WeatherCalendar).entries),
        "products": len(session.book(GroceryList).products),
    }
    print(view.stats_panel("Records", counts))
