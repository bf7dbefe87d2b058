import os
from dataclasses import dataclass
from typing import List, Mapping, Optional

# Basic settings helper to read environment configuration.


def _as_bool(val: str | None, default: bool = False) -> bool:
    if val is None:
        return default
    return val.lower() in ("1", "true", "yes", "on")


def _as_float(val: str | None, default: float) -> float:
    if val is None or not val.strip():
        return default
    try:
        return float(val)
    except ValueError:
        return default


DEFAULT_API_VERSION = "2024-01-01"
DEFAULT_PLACES_CACHE_PATH = os.path.join(os.path.dirname(__file__), "data", "places_cache.sqlite")

PROJECT_ID_VARS = ("SANITY_PROJECT_ID", "NEXT_PUBLIC_SANITY_PROJECT_ID", "SANITY_STUDIO_PROJECT_ID")
DATASET_VARS = ("SANITY_DATASET", "SANITY_STUDIO_DATASET")
TOKEN_VAR = "SANITY_WRITE_TOKEN"
PLACES_API_KEY_VAR = "GOOGLE_PLACES_API_KEY"


class Settings:
    def __init__(self) -> None:
        self.DEDUP_THRESHOLD_METERS: float = _as_float(os.getenv("DEDUP_THRESHOLD_METERS"), 50.0)
        self.ENRICH_RATE_LIMIT_MS: float = _as_float(os.getenv("ENRICH_RATE_LIMIT_MS"), 100.0)
        self.SEARCH_RATE_LIMIT_MS: float = _as_float(os.getenv("SEARCH_RATE_LIMIT_MS"), 200.0)
        self.PLACES_CACHE_ENABLED: bool = _as_bool(os.getenv("PLACES_CACHE_ENABLED"), False)
        self.PLACES_CACHE_PATH: str = os.getenv("PLACES_CACHE_PATH") or DEFAULT_PLACES_CACHE_PATH
        self.SANITY_API_VERSION: str = os.getenv("SANITY_API_VERSION") or DEFAULT_API_VERSION
        self.LOG_LEVEL: str = (os.getenv("LOG_LEVEL") or "INFO").upper()


settings = Settings()


class ConfigurationError(Exception):
    """Raised before any network or store call when required settings are absent."""

    def __init__(self, missing: List[str]):
        self.missing = list(missing)
        super().__init__("Missing configuration: " + "; ".join(self.missing))


def _first_env(env: Mapping[str, str], names) -> Optional[str]:
    for name in names:
        value = env.get(name)
        if value and value.strip():
            return value.strip()
    return None


@dataclass(frozen=True)
class StoreConfig:
    """Connection settings for the document store (project/dataset pair plus credential)."""

    project_id: str
    dataset: str
    token: Optional[str] = None
    api_version: str = DEFAULT_API_VERSION
    use_cdn: bool = False

    @classmethod
    def from_env(
        cls,
        dataset: Optional[str] = None,
        require_token: bool = True,
        environ: Optional[Mapping[str, str]] = None,
    ) -> "StoreConfig":
        """
        Resolve the store configuration from the environment at call time.

        Every missing setting is collected before raising, so callers can
        report the complete list in one go.
        """
        env = os.environ if environ is None else environ
        missing: List[str] = []

        project_id = _first_env(env, PROJECT_ID_VARS)
        if not project_id:
            missing.append("Missing SANITY_PROJECT_ID environment variable")

        resolved_dataset = dataset or _first_env(env, DATASET_VARS)
        if not resolved_dataset:
            missing.append("Missing SANITY_DATASET environment variable")

        token = _first_env(env, (TOKEN_VAR,))
        if require_token and not token:
            missing.append("Missing SANITY_WRITE_TOKEN environment variable (required for imports)")

        if missing:
            raise ConfigurationError(missing)

        return cls(
            project_id=project_id or "",
            dataset=resolved_dataset or "",
            token=token,
            api_version=_first_env(env, ("SANITY_API_VERSION",)) or DEFAULT_API_VERSION,
            use_cdn=_as_bool(env.get("SANITY_USE_CDN"), False),
        )


def resolve_places_api_key(environ: Optional[Mapping[str, str]] = None) -> str:
    env = os.environ if environ is None else environ
    key = _first_env(env, (PLACES_API_KEY_VAR,))
    if not key:
        raise ConfigurationError(["Missing GOOGLE_PLACES_API_KEY environment variable"])
    return key
