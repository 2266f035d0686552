"""LLM route configuration loaded from a JSON file."""
from __future__ import annotations

from pathlib import Path
from typing import Dict

from pydantic import BaseModel, Field


GENERATOR_KEY = "interview_chat.response_generator"
EVALUATOR_KEY = "interview_chat.evaluator"


class LlmRoute(BaseModel):
    """LLM endpoint configuration."""

    name: str
    base_url: str
    endpoint: str
    model: str
    timeout_s: float = Field(ge=0.1)
    max_retries: int = Field(default=2, ge=0)
    api_key_env: str | None = None
    response_format: str | None = None
    temperature: float | None = Field(default=None, ge=0.0, le=2.0)
    extra_headers: Dict[str, str] = Field(default_factory=dict)
    sequential: bool = False
    enforce_json: bool = True


class AppConfig(BaseModel):  # LLM routing configuration root
    llm_routes: Dict[str, LlmRoute]
    registry: Dict[str, str]


def load_config(path: Path) -> AppConfig:  # Load configuration from disk
    data = path.read_text(encoding="utf-8")
    return AppConfig.model_validate_json(data)


def resolve_route(cfg: AppConfig, target: str) -> LlmRoute:  # Look up the route bound to a registry key
    if target not in cfg.registry:
        raise KeyError(f"Registry entry missing for '{target}'")
    route_id = cfg.registry[target]
    if route_id not in cfg.llm_routes:
        raise KeyError(f"Route '{route_id}' missing for '{target}'")
    return cfg.llm_routes[route_id]
