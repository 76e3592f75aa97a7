"""Configuration loader: YAML files + environment variables."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

import yaml
from dotenv import load_dotenv

from techpulse.core.models import (
    AIConfig,
    AIProvider,
    AppConfig,
    AuthConfig,
    RateLimitRule,
    RateLimitSettings,
    SnippetConfig,
)


def _find_project_root() -> Path:
    """Walk up from cwd to find a directory containing pyproject.toml."""
    cwd = Path.cwd()
    for p in [cwd, *cwd.parents]:
        if (p / "pyproject.toml").exists():
            return p
    return cwd


def _build_rate_limits(data: dict) -> RateLimitSettings:
    defaults = RateLimitSettings()
    rules = dict(defaults.rules)
    for name, rule in (data.get("rules") or {}).items():
        rules[name] = RateLimitRule(**rule)
    return RateLimitSettings(
        rules=rules,
        cleanup_probability=float(data.get("cleanup_probability", defaults.cleanup_probability)),
        log_sample_every=int(data.get("log_sample_every", defaults.log_sample_every)),
        warning_ratio=float(data.get("warning_ratio", defaults.warning_ratio)),
    )


def load_config(config_path: Optional[str] = None) -> AppConfig:
    """Load configuration from YAML + environment variables.

    Priority: env vars > .env file > YAML defaults.
    """
    root = _find_project_root()
    load_dotenv(root / ".env")

    yaml_path = Path(config_path) if config_path else root / "config" / "default.yaml"
    yaml_data: dict = {}
    if yaml_path.exists():
        with open(yaml_path) as f:
            yaml_data = yaml.safe_load(f) or {}

    # AI config with env overrides
    ai_data = yaml_data.get("ai", {})
    provider_str = os.getenv("TECHPULSE_AI_PROVIDER", ai_data.get("provider", "anthropic"))
    ai = AIConfig(
        provider=AIProvider(provider_str),
        model=os.getenv("TECHPULSE_AI_MODEL", ai_data.get("model", "claude-sonnet-4-5-20250929")),
        max_tokens=int(ai_data.get("max_tokens", 2000)),
        temperature=float(ai_data.get("temperature", 0.7)),
    )

    # Secrets only come from the environment
    auth_data = yaml_data.get("auth", {})
    auth = AuthConfig(
        secret_key=os.getenv("TECHPULSE_SECRET_KEY", ""),
        admin_hash=os.getenv("TECHPULSE_ADMIN_HASH", ""),
        admin_password=os.getenv("TECHPULSE_ADMIN_PASSWORD", ""),
        token_max_age=int(auth_data.get("token_max_age", 86400)),
    )

    rate_limits = _build_rate_limits(yaml_data.get("rate_limits", {}))

    snip_data = yaml_data.get("snippets", {})
    snippets = SnippetConfig(**snip_data)

    cors_env = os.getenv("TECHPULSE_CORS_ORIGINS", "")
    if cors_env:
        cors_origins = [o.strip() for o in cors_env.split(",") if o.strip()]
    else:
        cors_origins = list(yaml_data.get("cors_origins", []))

    db_path = os.getenv("TECHPULSE_DB_PATH", yaml_data.get("db_path", "data/techpulse.db"))

    return AppConfig(
        site_name=yaml_data.get("site_name", "TechPulse"),
        ai=ai,
        auth=auth,
        rate_limits=rate_limits,
        snippets=snippets,
        cors_origins=cors_origins,
        db_path=db_path,
    )


def resolve_db_path(db_path: str) -> str:
    """Absolute DB path; relative paths land under /app on container hosts."""
    if os.path.isabs(db_path):
        return db_path
    if os.path.exists("/app"):
        return os.path.join("/app", db_path)
    return os.path.abspath(db_path)
