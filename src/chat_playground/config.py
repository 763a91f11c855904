"""Configuration management for Chat Playground."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, model_validator

API_KEY_ENV = "CHAT_PLAYGROUND_API_KEY"


class ServerConfig(BaseModel):
    base_url: str = "http://localhost:8000"
    api_key: str = ""
    completions_path: str = "/v1/chat/completions"
    conversations_path: str = "/api/v1/admin/conversations"
    timeout: float = 120.0  # request-level bound, seconds
    connect_timeout: float = 30.0
    max_retries: int = 2  # retryable statuses only, before the first byte

    @model_validator(mode="after")
    def _api_key_from_env(self) -> "ServerConfig":
        if not self.api_key:
            self.api_key = os.environ.get(API_KEY_ENV, "")
        return self


class ChatConfig(BaseModel):
    model: str = "grok-4"
    stream: bool = True
    reasoning_effort: str = ""  # empty = not sent
    reasoning_field: str = "thinking"  # request key for the effort value
    title_length: int = 30
    preview_length: int = 50


class RenderConfig(BaseModel):
    reasoning_tag: str = "think"
    summary_label: str = "💭 Thinking process"
    placeholder_suffixes: list[str] = Field(
        default_factory=lambda: ["/image/", "/video/"]
    )
    show_pending_reasoning: bool = True
    markdown_extensions: list[str] = Field(
        default_factory=lambda: ["extra", "nl2br", "sane_lists"]
    )


class StoreConfig(BaseModel):
    backend: str = "remote"  # "remote" | "sqlite"
    db_path: str = "~/.chat_playground/conversations.db"


class PlaygroundConfig(BaseModel):
    server: ServerConfig = Field(default_factory=ServerConfig)
    chat: ChatConfig = Field(default_factory=ChatConfig)
    render: RenderConfig = Field(default_factory=RenderConfig)
    store: StoreConfig = Field(default_factory=StoreConfig)


CONFIG_FILENAME = "chat_playground.yaml"


def load_config(
    config_path: str | Path | None = None,
) -> tuple[PlaygroundConfig, Path | None]:
    """Load configuration from a YAML file.

    Returns (config, resolved_path).  *resolved_path* is ``None`` when
    no file was found and built-in defaults are used.

    Search order (first match wins):
      1. Explicit ``--config`` path
      2. Current working directory: ``./chat_playground.yaml``
      3. User config dir: ``~/.chat_playground/chat_playground.yaml``
    """
    if config_path is None:
        for d in (Path.cwd(), Path.home() / ".chat_playground"):
            p = d / CONFIG_FILENAME
            if p.exists():
                config_path = p
                break

    resolved: Path | None = Path(config_path) if config_path else None
    if resolved and resolved.exists():
        with open(resolved) as f:
            raw: dict[str, Any] = yaml.safe_load(f) or {}
        return PlaygroundConfig.model_validate(raw), resolved.resolve()

    if config_path is not None:
        raise FileNotFoundError(f"Config file not found: {config_path}")

    return PlaygroundConfig(), None
