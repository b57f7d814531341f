"""Configuration loading and management."""

import os
from dataclasses import dataclass, field, fields, replace
from pathlib import Path

import yaml

DEFAULT_BASE_URL = "https://api.ultracontext.ai"
DEFAULT_OUT_DIR = "teams/demo/fabio/log"


@dataclass
class QueryConfig:
    team_root: Path = field(default_factory=lambda: Path.home() / "team")
    default_limit: int = 20
    max_limit: int = 200
    text_limit: int = 600


@dataclass
class SyncConfig:
    db_path: Path = field(default_factory=lambda: Path.home() / ".ultracontext" / "daemon.db")
    cache_backend: str = "cli"
    out_dir: Path = field(default_factory=lambda: Path.cwd() / DEFAULT_OUT_DIR)
    base_url: str = field(
        default_factory=lambda: normalize_base_url(os.environ.get("ULTRACONTEXT_BASE_URL", DEFAULT_BASE_URL))
    )
    api_key: str | None = None
    credentials_file: Path = field(
        default_factory=lambda: Path.home() / ".ultracontext" / "config.toml"
    )
    source: str = "all"
    engineer_id: str | None = None
    host: str | None = None
    limit: int = 120
    skip_raw: bool = False
    dry_run: bool = False
    concurrency: int = 6
    timeout_seconds: float = 30.0
    interval_seconds: int = 300

    def with_overrides(self, **overrides: object) -> "SyncConfig":
        """Return a copy with every non-None override applied."""
        known = {f.name for f in fields(self)}
        unknown = set(overrides) - known
        if unknown:
            raise ValueError(f"Unknown sync options: {sorted(unknown)}")

        changes = {key: value for key, value in overrides.items() if value is not None}
        if "out_dir" in changes:
            changes["out_dir"] = Path.cwd() / expand_path(str(changes["out_dir"]))
        if "db_path" in changes:
            changes["db_path"] = expand_path(str(changes["db_path"])).resolve()
        if "base_url" in changes:
            changes["base_url"] = normalize_base_url(str(changes["base_url"]))
        if "api_key" in changes:
            changes["api_key"] = str(changes["api_key"]).strip() or None
        return replace(self, **changes)


@dataclass
class Config:
    query: QueryConfig = field(default_factory=QueryConfig)
    sync: SyncConfig = field(default_factory=SyncConfig)


def expand_env_var(value: str) -> str:
    """Expand environment variables in string (e.g. ${VAR})."""
    if value.startswith("${") and value.endswith("}"):
        env_var = value[2:-1]
        return os.environ.get(env_var, value)
    return value


def expand_path(path_str: str) -> Path:
    """Expand ~ and environment variables in path."""
    return Path(os.path.expandvars(os.path.expanduser(path_str)))


def normalize_base_url(value: str) -> str:
    return value.strip().rstrip("/")


def load_config(config_path: Path | None = None) -> Config:
    """Load configuration from YAML file."""
    if config_path is None:
        search_paths = [
            Path.cwd() / "config.yaml",
            Path.home() / ".config" / "task-siphon" / "config.yaml",
            Path("/etc/task-siphon/config.yaml"),
        ]
        for path in search_paths:
            if path.exists():
                config_path = path
                break

    if config_path is None or not config_path.exists():
        return Config()

    with open(config_path) as f:
        data = yaml.safe_load(f) or {}

    query_data = data.get("query", {}) or {}
    query = QueryConfig(
        team_root=expand_path(query_data.get("team_root", "~/team")),
        default_limit=int(query_data.get("default_limit", 20)),
        max_limit=int(query_data.get("max_limit", 200)),
        text_limit=int(query_data.get("text_limit", 600)),
    )

    sync_data = data.get("sync", {}) or {}
    defaults = SyncConfig()

    api_key = sync_data.get("api_key")
    if api_key:
        api_key = expand_env_var(str(api_key)).strip()
        # Unset ${VAR} references stay unexpanded; treat them as absent
        if api_key.startswith("${"):
            api_key = None

    out_dir = sync_data.get("out_dir")
    sync = SyncConfig(
        db_path=expand_path(sync_data["db_path"]) if sync_data.get("db_path") else defaults.db_path,
        cache_backend=str(sync_data.get("cache_backend", "cli")),
        out_dir=Path.cwd() / expand_path(out_dir) if out_dir else defaults.out_dir,
        base_url=normalize_base_url(expand_env_var(str(sync_data.get("base_url", defaults.base_url)))),
        api_key=api_key or None,
        credentials_file=(
            expand_path(sync_data["credentials_file"])
            if sync_data.get("credentials_file")
            else defaults.credentials_file
        ),
        source=str(sync_data.get("source", "all")),
        engineer_id=sync_data.get("engineer_id"),
        host=sync_data.get("host"),
        limit=int(sync_data.get("limit", 120)),
        skip_raw=bool(sync_data.get("skip_raw", False)),
        dry_run=bool(sync_data.get("dry_run", False)),
        concurrency=int(sync_data.get("concurrency", 6)),
        timeout_seconds=float(sync_data.get("timeout_seconds", 30.0)),
        interval_seconds=int(sync_data.get("interval_seconds", 300)),
    )

    return Config(query=query, sync=sync)
