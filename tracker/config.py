"""Configuration management."""

from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field


class ColumnLayout(BaseModel):
    """1-based column positions in the tracker sheet."""

    progress: int = 1
    role: int = 2
    company: int = 3
    term: int = 4
    location: int = 5
    recruiter_contacted: int = 6
    round1: int = 7
    round2: int = 8
    round3: int = 9
    thank_you_sent: int = 10
    offer: int = 11
    date_applied: int = 12
    platform: int = 13
    thread_id: int = 14

    @property
    def yes_no(self) -> list[int]:
        """Columns tracked by hand with Yes/No values."""
        return [
            self.recruiter_contacted,
            self.round1,
            self.round2,
            self.round3,
            self.thank_you_sent,
            self.offer,
        ]

    @property
    def width(self) -> int:
        return max(self.model_dump().values())


class Colors(BaseModel):
    in_progress: str = "#FFF9C4"
    yes: str = "#C8E6C9"


DEFAULT_QUERY_PHRASES = [
    "application received",
    "job application",
    "we received your application",
    "thanks for your application",
    "your application is on the way",
    "job application submitted",
    "application submitted",
    "submission confirmation",
    "you applied to",
    "we've received your application",
    "application confirmation",
    "has been submitted",
    "received your submission",
    "application acknowledgment",
    "you're in!",
    "thank you for applying",
    "application complete",
    "job interest received",
    "Job Application:",
    "thank you for your application to",
    "we have received your application",
    "your application has been received",
    "application received and reviewed",
    "thank you for applying to",
    "we're excited that you are interested",
    "what happens next",
    "we will review your application",
]


class Config(BaseModel):
    """Application configuration."""

    spreadsheet_id: str
    sheet_name: str = "Internship Tracker Template"
    log_sheet_name: str = "Log"
    thread_header: str = "Thread ID"
    columns: ColumnLayout = Field(default_factory=ColumnLayout)

    processed_label: str = "Jobs/Processed"
    query_window: str = "2d"
    query_phrases: list[str] = Field(default_factory=lambda: list(DEFAULT_QUERY_PHRASES))

    unknown: str = "Unknown"
    default_term: str = "Spring 2026"
    default_location: str = "Not Specified"
    platform: str = "Email"
    progress_value: str = "In Progress"
    progress_aliases: list[str] = Field(default_factory=lambda: ["In progess"])
    colors: Colors = Field(default_factory=Colors)

    watermark_key: str = "lastProcessed"
    state_db_path: Optional[Path] = None
    log_level: str = "INFO"


_config: Optional[Config] = None


def load_config(config_path: Optional[Path] = None) -> Config:
    """Load configuration from YAML file."""
    global _config

    if _config is not None:
        return _config

    if config_path is None:
        config_path = Path(__file__).parent.parent / "config" / "config.yaml"

    if not config_path.exists():
        raise FileNotFoundError(
            f"Config file not found: {config_path}. "
            "Copy config/config.yaml.example to config/config.yaml and fill in your settings."
        )

    with open(config_path) as f:
        data = yaml.safe_load(f) or {}

    _config = Config(**data)
    return _config


def get_config() -> Config:
    """Get the loaded configuration."""
    if _config is None:
        return load_config()
    return _config
