from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from learnloop.domain.constants import (
    CATEGORIES_FILE_NAME,
    DECKS_DIR_NAME,
    DEFAULT_CHAT_PATTERN,
    DEFAULT_GLOBAL_COOLDOWN_SECONDS,
    DEFAULT_MAX_CARDS_PER_SESSION,
    DEFAULT_MAX_NEW_CARDS_PER_SESSION,
    DEFAULT_TIMER_INTERVAL_MINUTES,
    PROGRESS_DIR_NAME,
    TOMBSTONES_FILE_NAME,
)
from learnloop.domain.triggers import TriggerKind


def config_file_candidates() -> list[Path]:
    """TOML locations checked in order; the first existing one is used."""
    return [
        Path.home() / ".config/learnloop/config.toml",
        Path.home() / ".learnloop.toml",
    ]


class TriggerRule(BaseModel):
    """
    How one event kind turns into reviews.

    threshold: events needed before a review is attempted.
    cooldown_seconds: minimum gap between two reviews caused by this kind.
    whitelist: exact subjects that count; empty means every subject counts.
    """

    enabled: bool = False
    threshold: int = Field(default=1, ge=1)
    cooldown_seconds: float = Field(default=0, ge=0)
    whitelist: list[str] = Field(default_factory=list)

    @field_validator("whitelist", mode="before")
    @classmethod
    def split_whitelist(cls, v: Any) -> list[str]:
        # "stone, dirt" from env or TOML strings
        if v is None:
            return []
        if isinstance(v, str):
            return [s.strip() for s in v.split(",") if s.strip()]
        return v

    def allows(self, subject: str | None) -> bool:
        if not self.whitelist:
            return True
        return subject is not None and subject in self.whitelist


class TriggerSettings(BaseModel):
    """Per-kind trigger rules plus the limits shared by every kind."""

    global_cooldown_seconds: float = Field(default=DEFAULT_GLOBAL_COOLDOWN_SECONDS, ge=0)
    timer_interval_minutes: float = Field(default=DEFAULT_TIMER_INTERVAL_MINUTES, ge=1)
    chat_pattern: str = DEFAULT_CHAT_PATTERN

    death: TriggerRule = Field(default_factory=lambda: TriggerRule(enabled=True, threshold=2))
    advancement: TriggerRule = Field(default_factory=lambda: TriggerRule(cooldown_seconds=60))
    block_break: TriggerRule = Field(
        default_factory=lambda: TriggerRule(
            threshold=100,
            whitelist=["stone", "dirt", "oak_log", "iron_ore", "diamond_ore"],
        )
    )
    block_place: TriggerRule = Field(default_factory=lambda: TriggerRule(threshold=50))
    entity_kill: TriggerRule = Field(
        default_factory=lambda: TriggerRule(
            threshold=10,
            whitelist=["zombie", "skeleton", "creeper", "spider", "enderman"],
        )
    )
    chat: TriggerRule = Field(default_factory=lambda: TriggerRule(threshold=10))
    timer: TriggerRule = Field(default_factory=TriggerRule)

    def rule(self, kind: TriggerKind) -> TriggerRule:
        return getattr(self, TriggerKind.from_value(kind).value)

    @property
    def timer_interval_seconds(self) -> float:
        return self.timer_interval_minutes * 60


class AppConfig(BaseSettings):
    """
    Configuration model for learnloop.
    Supports loading from:
    1. Environment variables (LEARNLOOP_*, nested with __)
    2. Config file (~/.config/learnloop/config.toml or ~/.learnloop.toml)
    3. Manual overrides (CLI)
    """

    model_config = SettingsConfigDict(
        env_prefix="LEARNLOOP_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    # Paths
    data_dir: Path = Field(default_factory=lambda: Path.home() / ".config/learnloop")
    builtin_decks_dir: Path | None = None
    log_dir: Path | None = None

    # Review
    algorithm: Literal["sm2", "adaptive", "ladder", "simple"] = "sm2"
    max_cards_per_session: int = Field(default=DEFAULT_MAX_CARDS_PER_SESSION, ge=1)
    max_new_cards_per_session: int = Field(default=DEFAULT_MAX_NEW_CARDS_PER_SESSION, ge=0)

    triggers: TriggerSettings = Field(default_factory=TriggerSettings)

    verbose: int = 1

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        from pydantic_settings import TomlConfigSettingsSource

        # Earlier sources win: overrides, then env, then the TOML file
        toml_file = next((f for f in config_file_candidates() if f.exists()), None)

        if toml_file:
            return (
                init_settings,
                env_settings,
                TomlConfigSettingsSource(settings_cls, toml_file=toml_file),
            )
        return (init_settings, env_settings)

    @field_validator("data_dir", "builtin_decks_dir", "log_dir", mode="before")
    @classmethod
    def expand_path(cls, v: Any) -> Path | None:
        if v is None or v == "":
            return None
        return Path(v).expanduser()

    @field_validator("algorithm", mode="before")
    @classmethod
    def normalise_algorithm(cls, v: Any) -> Any:
        return v.strip().lower() if isinstance(v, str) else v

    @property
    def progress_dir(self) -> Path:
        return self.data_dir / PROGRESS_DIR_NAME

    @property
    def decks_dir(self) -> Path:
        return self.data_dir / DECKS_DIR_NAME

    @property
    def categories_file(self) -> Path:
        return self.data_dir / CATEGORIES_FILE_NAME

    @property
    def tombstones_file(self) -> Path:
        return self.data_dir / TOMBSTONES_FILE_NAME


def resolve_config(cli_overrides: dict[str, Any] | None = None) -> AppConfig:
    """
    Multi-layered configuration resolution.
    1. Defaults in AppConfig
    2. ~/.config/learnloop/config.toml (if exists)
    3. Environment variables (LEARNLOOP_*)
    4. cli_overrides (passed from Typer)
    """
    # Typer passes None for options the user did not give
    overrides = {k: v for k, v in (cli_overrides or {}).items() if v is not None}
    config = AppConfig(**overrides)

    if config.log_dir is None:
        config.log_dir = config.data_dir / "logs"

    return config
