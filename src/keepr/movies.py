"""
Movie diary: watched movies plus a wishlist of movies to see.
"""

from __future__ import annotations

from datetime import date
from enum import Enum
from statistics import mean
from typing import Optional

from pydantic import Field, ValidationInfo, field_validator

from .controller import Period, RecordStore, in_bounds, period_bounds
from .keepr_env import KeeprConfig, KeeprEnvironment
from .model import Backend
from .record import (
    Record,
    in_range,
    limit,
    not_in_future,
    optional_text,
    required_text,
)
from .shared import log_msg

GENRES = [
    "Action",
    "Adventure",
    "Animation",
    "Biography",
    "Comedy",
    "Crime",
    "Documentary",
    "Drama",
    "Family",
    "Fantasy",
    "History",
    "Horror",
    "Music",
    "Mystery",
    "Romance",
    "Sci-Fi",
    "Sport",
    "Thriller",
    "War",
    "Western",
]


class Movie(Record):
    title: str
    genre: str
    watch_date: date
    rating: int = 7
    review: Optional[str] = None
    watch_location: Optional[str] = None
    notes: list[str] = Field(default_factory=list)
    is_favorite: bool = False

    @field_validator("title", "genre")
    @classmethod
    def _required(cls, v, info: ValidationInfo):
        return required_text(v, info)

    @field_validator("review", "watch_location")
    @classmethod
    def _optional(cls, v, info: ValidationInfo):
        return optional_text(v, info)

    @field_validator("watch_date")
    @classmethod
    def _watched_already(cls, v, info: ValidationInfo):
        return not_in_future(v, info)

    @field_validator("rating")
    @classmethod
    def _rating(cls, v, info: ValidationInfo):
        return in_range(
            v, info, limit(info, "rating_min", 1), limit(info, "rating_max", 10)
        )

    @field_validator("notes")
    @classmethod
    def _notes(cls, v):
        return [n.strip() for n in v if n and n.strip()]


class WishlistMovie(Record):
    title: str
    genre: Optional[str] = None
    note: Optional[str] = None
    is_priority: bool = False

    @field_validator("title")
    @classmethod
    def _required(cls, v, info: ValidationInfo):
        return required_text(v, info)

    @field_validator("genre", "note")
    @classmethod
    def _optional(cls, v, info: ValidationInfo):
        return optional_text(v, info)


class MovieSort(str, Enum):
    DATE_DESC = "date_desc"
    DATE_ASC = "date_asc"
    TITLE = "title"
    RATING = "rating"
    UPDATED = "updated"


class FavoritesSort(str, Enum):
    DATE_ADDED = "date_added"
    WATCH_DATE = "watch_date"
    TITLE = "title"
    RATING = "rating"


class DateFilter(str, Enum):
    ALL = "all"
    WEEK = "week"
    MONTH = "month"
    YEAR = "year"


_MOVIE_SORTS = {
    MovieSort.DATE_DESC: ("watch_date", True),
    MovieSort.DATE_ASC: ("watch_date", False),
    MovieSort.TITLE: ("title", False),
    MovieSort.RATING: ("rating", True),
    MovieSort.UPDATED: ("modified", True),
}

_FAVORITE_SORTS = {
    FavoritesSort.DATE_ADDED: ("modified", True),
    FavoritesSort.WATCH_DATE: ("watch_date", True),
    FavoritesSort.TITLE: ("title", False),
    FavoritesSort.RATING: ("rating", True),
}


class MovieDiary:
    def __init__(self, env: Optional[KeeprEnvironment], backend: Backend):
        self.env = env
        config = env.config if env else KeeprConfig()
        self.rating_bounds = (config.movies.rating_min, config.movies.rating_max)
        limits = {"rating_min": self.rating_bounds[0], "rating_max": self.rating_bounds[1]}
        self.movies: RecordStore[Movie] = RecordStore(Movie, backend, "movies", limits)
        self.wishlist: RecordStore[WishlistMovie] = RecordStore(
            WishlistMovie, backend, "wishlist"
        )
        self.clear_filters()
        self.sort_option = MovieSort.DATE_DESC

    # ---------------- diary ----------------

    def add_movie(
        self,
        title: str,
        genre: str,
        watch_date: date,
        rating: int = 7,
        review: Optional[str] = None,
        watch_location: Optional[str] = None,
        notes: Optional[list[str]] = None,
        is_favorite: bool = False,
    ) -> Optional[Movie]:
        return self.movies.add(
            title=title,
            genre=genre,
            watch_date=watch_date,
            rating=rating,
            review=review,
            watch_location=watch_location,
            notes=notes or [],
            is_favorite=is_favorite,
        )

    def update_movie(self, movie_id: str, **changes) -> Optional[Movie]:
        return self.movies.update(movie_id, **changes)

    def delete_movie(self, movie_id: str) -> bool:
        return self.movies.delete(movie_id)

    def toggle_favorite(self, movie_id: str) -> Optional[Movie]:
        return self.movies.toggle(movie_id, "is_favorite")

    def add_note(self, movie_id: str, note: str) -> Optional[Movie]:
        movie = self.movies.get(movie_id)
        if movie is None:
            raise KeyError(movie_id)
        return self.movies.update(movie_id, notes=[*movie.notes, note])

    # ---------------- filters ----------------

    def clear_filters(self):
        self.search_text = ""
        self.genres: set[str] = set()
        self.rating_range = self.rating_bounds
        self.date_filter = DateFilter.ALL

    def has_active_filters(self) -> bool:
        return (
            bool(self.search_text.strip())
            or bool(self.genres)
            or tuple(self.rating_range) != tuple(self.rating_bounds)
            or self.date_filter is not DateFilter.ALL
        )

    def filtered_movies(self, today: Optional[date] = None) -> list[Movie]:
        records = self.movies.search(
            self.search_text, "title", "genre", "review", "watch_location"
        )
        low, high = self.rating_range
        predicates = [lambda m: low <= m.rating <= high]
        if self.genres:
            wanted = {g.casefold() for g in self.genres}
            predicates.append(lambda m: m.genre.casefold() in wanted)
        if self.date_filter is not DateFilter.ALL:
            bounds = period_bounds(Period(self.date_filter.value), today)
            predicates.append(lambda m: in_bounds(m.watch_date, bounds))
        records = self.movies.filtered(*predicates, records=records)
        key, descending = _MOVIE_SORTS[MovieSort(self.sort_option)]
        return self.movies.sorted_by(key, descending, records=records)

    def favorites(self, sort: FavoritesSort | str = FavoritesSort.DATE_ADDED) -> list[Movie]:
        key, descending = _FAVORITE_SORTS[FavoritesSort(sort)]
        return self.movies.sorted_by(
            key, descending, records=self.movies.filtered(lambda m: m.is_favorite)
        )

    def genres_in_use(self) -> list[str]:
        return sorted({m.genre for m in self.movies}, key=str.casefold)

    # ---------------- wishlist ----------------

    def add_wishlist(
        self,
        title: str,
        genre: Optional[str] = None,
        note: Optional[str] = None,
        is_priority: bool = False,
    ) -> Optional[WishlistMovie]:
        return self.wishlist.add(
            title=title, genre=genre, note=note, is_priority=is_priority
        )

    def update_wishlist(self, wish_id: str, **changes) -> Optional[WishlistMovie]:
        return self.wishlist.update(wish_id, **changes)

    def delete_wishlist(self, wish_id: str) -> bool:
        return self.wishlist.delete(wish_id)

    def toggle_priority(self, wish_id: str) -> Optional[WishlistMovie]:
        return self.wishlist.toggle(wish_id, "is_priority")

    def priority_movies(self) -> list[WishlistMovie]:
        return self.wishlist.sorted_by(
            "modified", True, records=self.wishlist.filtered(lambda w: w.is_priority)
        )

    def regular_movies(self) -> list[WishlistMovie]:
        return self.wishlist.sorted_by(
            "modified", True, records=self.wishlist.filtered(lambda w: not w.is_priority)
        )

    def watched(
        self,
        wish_id: str,
        watch_date: Optional[date] = None,
        rating: int = 7,
        genre: Optional[str] = None,
    ) -> Optional[Movie]:
        """Move a wishlist entry into the diary."""
        wish = self.wishlist.get(wish_id)
        if wish is None:
            raise KeyError(wish_id)
        movie = self.add_movie(
            title=wish.title,
            genre=genre or wish.genre or "",
            watch_date=watch_date or date.today(),
            rating=rating,
            review=wish.note,
        )
        if movie is None:
            return None
        if self.wishlist.delete(wish_id):
            return movie
        # the wishlist kept the entry, so take the movie back out of the diary
        if not self.movies.delete(movie.id):
            log_msg(f"{wish.title!r} added to the diary but still on the wishlist")
        return None

    # ---------------- statistics ----------------

    def stats(self) -> dict:
        movies = self.movies.all()
        return {
            "movies": len(movies),
            "favorites": sum(1 for m in movies if m.is_favorite),
            "average_rating": round(mean(m.rating for m in movies), 1) if movies else 0.0,
            "genres": dict(self.movies.count_by("genre").most_common()),
            "wishlist": len(self.wishlist),
            "priority": sum(1 for w in self.wishlist if w.is_priority),
        }
