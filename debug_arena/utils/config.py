"""Runtime settings read from the environment."""

from __future__ import annotations

from dataclasses import dataclass
import os
from typing import Mapping

from debug_arena.constants.network_constants import DEFAULT_HOST, DEFAULT_PORT, PISTON_EXECUTE_URL

_ENV_PREFIX = "DEBUG_ARENA_"


@dataclass(slots=True, frozen=True)
class ArenaSettings:
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    log_level: str = "INFO"
    piston_url: str = PISTON_EXECUTE_URL
    supabase_url: str | None = None
    supabase_key: str | None = None
    supabase_token: str | None = None

    @property
    def uses_hosted_storage(self) -> bool:
        return bool(self.supabase_url and self.supabase_key)


def load_settings(environ: Mapping[str, str] | None = None) -> ArenaSettings:
    env = os.environ if environ is None else environ

    def read(name: str) -> str | None:
        value = env.get(f"{_ENV_PREFIX}{name}", "").strip()
        return value or None

    raw_port = read("PORT")
    try:
        port = int(raw_port) if raw_port else DEFAULT_PORT
    except ValueError as exc:
        raise ValueError(f"{_ENV_PREFIX}PORT must be an integer, got '{raw_port}'.") from exc

    return ArenaSettings(
        host=read("HOST") or DEFAULT_HOST,
        port=port,
        log_level=(read("LOG_LEVEL") or "INFO").upper(),
        piston_url=read("PISTON_URL") or PISTON_EXECUTE_URL,
        supabase_url=read("SUPABASE_URL"),
        supabase_key=read("SUPABASE_KEY"),
        supabase_token=read("SUPABASE_TOKEN"),
    )
