"""Configuration models for a recording session."""

from __future__ import annotations

import json
import os
from enum import Enum
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, field_validator


class ViewportConfig(BaseModel):
    width: int = 1280
    height: int = 720


class MergePolicy(str, Enum):
    """What happens to stored elements a new recording did not register again."""

    RETAIN = "retain"
    MARK_STALE = "mark_stale"
    REMOVE = "remove"


class RecordingConfig(BaseModel):
    # Target
    target_url: str
    scenario: str = ""
    target_url_pattern: Optional[str] = None
    site_name: str = ""

    # Browser
    headless: bool = False
    auto_scroll: bool = True
    viewport: ViewportConfig = Field(default_factory=ViewportConfig)
    user_agent: Optional[str] = None
    navigation_timeout_ms: int = 30000
    tool_timeout_seconds: float = 60.0
    max_scrolls: int = 20
    observe_limit: int = 80

    # Agent loop
    max_turns: int = 25
    ai_model: str = "claude-opus-4-6"
    ai_max_tokens: int = 8192

    # Persistence
    output_dir: str = "./output"
    database_url: Optional[str] = None
    merge_policy: MergePolicy = MergePolicy.RETAIN

    @field_validator("max_turns")
    @classmethod
    def positive_turns(cls, v: int) -> int:
        if v < 1:
            raise ValueError("max_turns must be at least 1")
        return v

    @field_validator("database_url", mode="before")
    @classmethod
    def resolve_env_database_url(cls, v: Optional[str]) -> Optional[str]:
        if isinstance(v, str) and v.startswith("env:"):
            env_var = v[4:]
            resolved = os.environ.get(env_var)
            if resolved is None:
                raise ValueError(f"Environment variable '{env_var}' not set")
            return resolved
        return v or None

    @classmethod
    def load(cls, path: str | Path) -> "RecordingConfig":
        """Load config from a JSON file."""
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")
        with open(path) as f:
            data = json.load(f)
        return cls(**data)

    def save(self, path: str | Path) -> None:
        """Save config to a JSON file."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            json.dump(self.model_dump(mode="json"), f, indent=2)
