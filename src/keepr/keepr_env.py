from pathlib import Path
import os
import tomllib
from pydantic import BaseModel, Field, ValidationError
from typing import Optional, Callable
from jinja2 import Template


# ─── Config Schema ─────────────────────────────────────────────────
class UIConfig(BaseModel):
    ampm: bool = False
    dayfirst: bool = False
    yearfirst: bool = True
    # 0 = Monday ... 6 = Sunday
    first_weekday: int = Field(0, ge=0, le=6)


class StorageConfig(BaseModel):
    backend: str = Field("blob", pattern="^(blob|rows)$")


class MoviesConfig(BaseModel):
    rating_min: int = 1
    rating_max: int = 10


class PurchasesConfig(BaseModel):
    soon_months: int = Field(6, ge=0)


class WeatherConfig(BaseModel):
    temperature_min: float = -60.0
    temperature_max: float = 60.0
    location_max: int = 60
    tag_max: int = 30
    comment_max: int = 500


class KeeprConfig(BaseModel):
    title: str = "Keepr Configuration"
    ui: UIConfig = UIConfig()
    storage: StorageConfig = StorageConfig()
    movies: MoviesConfig = MoviesConfig()
    purchases: PurchasesConfig = PurchasesConfig()
    weather: WeatherConfig = WeatherConfig()


# ─── Commented Template ────────────────────────────────────
CONFIG_TEMPLATE = """\
title = "{{ title }}"

[ui]
# ampm: bool = true | false
ampm = {{ ui.ampm | lower }}

# dayfirst: bool = true | false
dayfirst = {{ ui.dayfirst | lower }}

# yearfirst: bool = true | false
yearfirst = {{ ui.yearfirst | lower }}

# first_weekday: int = 0 (Monday) ... 6 (Sunday)
# used for the month calendars of the planner and weather books
first_weekday = {{ ui.first_weekday }}

[storage]
# backend: str = 'blob' | 'rows'
#   blob: each collection is saved as one JSON array under a single key
#   rows: each record is saved as its own row
# Either way the whole collection is rewritten after every change.
backend = "{{ storage.backend }}"

[movies]
# bounds for the rating of a watched movie
rating_min = {{ movies.rating_min }}
rating_max = {{ movies.rating_max }}

[purchases]
# a purchase is flagged "soon" this many months before the end
# of its service life and "overdue" after it.
soon_months = {{ purchases.soon_months }}

[weather]
# temperature bounds (degrees) for a weather entry
temperature_min = {{ weather.temperature_min }}
temperature_max = {{ weather.temperature_max }}

# maximum lengths of the optional text fields
location_max = {{ weather.location_max }}
tag_max = {{ weather.tag_max }}
comment_max = {{ weather.comment_max }}
"""

# ─── Save Config with Comments ───────────────────────────────


def render_config(config: KeeprConfig) -> str:
    template = Template(CONFIG_TEMPLATE)
    return template.render(**config.model_dump()).strip() + "\n"


def save_config_from_template(config: KeeprConfig, path: Path):
    path.write_text(render_config(config), encoding="utf-8")
    print(f"✅ Config with comments written to: {path}")


# ─── Main Environment Class ───────────────────────────────


class KeeprEnvironment:
    def __init__(self, home: Optional[Path | str] = None):
        self._home = Path(home).expanduser() if home else self._resolve_home()
        self._config: Optional[KeeprConfig] = None

    @property
    def home(self) -> Path:
        return self._home

    @property
    def config_path(self) -> Path:
        return self.home / "config.toml"

    @property
    def db_path(self) -> Path:
        return self.home / "keepr.db"

    @property
    def export_dir(self) -> Path:
        return self.home / "exports"

    def ensure(
        self,
        init_config: bool = True,
        init_db_fn: Optional[Callable[[Path], None]] = None,
    ):
        self.home.mkdir(parents=True, exist_ok=True)

        if init_config and not self.config_path.exists():
            save_config_from_template(KeeprConfig(), self.config_path)

        if init_db_fn and not self.db_path.exists():
            init_db_fn(self.db_path)

    def load_config(self) -> KeeprConfig:
        # Step 1: Create the file if it doesn't exist
        if not self.config_path.exists():
            config = KeeprConfig()
            self.home.mkdir(parents=True, exist_ok=True)
            self.config_path.write_text(render_config(config), encoding="utf-8")
            print(f"✅ Created new config file at {self.config_path}")
            self._config = config
            return config

        # Step 2: Try to load and validate the config
        try:
            with open(self.config_path, "rb") as f:
                data = tomllib.load(f)
            config = KeeprConfig.model_validate(data)
        except (ValidationError, tomllib.TOMLDecodeError) as e:
            print(f"⚠️ Config error in {self.config_path}: {e}\nUsing defaults.")
            config = KeeprConfig()

        # Step 3: Always regenerate the canonical version
        rendered = render_config(config)
        current_text = self.config_path.read_text(encoding="utf-8")

        if rendered != current_text:
            self.config_path.write_text(rendered, encoding="utf-8")
            print(f"✅ Updated {self.config_path} with any missing defaults.")

        self._config = config
        return config

    @property
    def config(self) -> KeeprConfig:
        if self._config is None:
            return self.load_config()
        return self._config

    def _resolve_home(self) -> Path:
        env_home = os.getenv("KEEPR_HOME")
        if env_home:
            return Path(env_home).expanduser()

        cwd = Path.cwd()
        if (cwd / "config.toml").exists() and (cwd / "keepr.db").exists():
            return cwd

        xdg_home = os.getenv("XDG_CONFIG_HOME")
        if xdg_home:
            return Path(xdg_home).expanduser() / "keepr"
        else:
            return Path.home() / ".config" / "keepr"
