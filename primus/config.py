"""Primus — application configuration.

Loads .env variables into a typed config object.
API keys are not required at load time; the orchestrator reports missing
credentials before any network call.
"""

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv


_CREDENTIAL_VARS = {
    "twelvedata_api_key": "TWELVEDATA_API_KEY",
    "openai_api_key": "OPENAI_API_KEY",
}

_DEFAULT_FOREX_PAIRS = "EUR/USD,GBP/USD,USD/JPY,AUD/USD,NZD/USD,USD/CAD"
_DEFAULT_GOLD_PAIRS = ("XAU/USD",)


@dataclass(frozen=True)
class Config:
    """Typed configuration loaded from environment variables."""

    twelvedata_api_key: str
    openai_api_key: str
    twelvedata_base_url: str = "https://api.twelvedata.com"
    openai_model: str = "gpt-4o-mini"
    openai_base_url: Optional[str] = None
    forex_pairs: tuple[str, ...] = tuple(_DEFAULT_FOREX_PAIRS.split(","))
    gold_pairs: tuple[str, ...] = _DEFAULT_GOLD_PAIRS
    active_strategies: tuple[str, ...] = ("swing", "scalping")
    db_path: str = "data/primus.db"
    chart_dir: str = "data/charts"
    chart_bars: int = 80
    prompt_bars: int = 60
    zone_warning_margin: float = 0.1
    min_confidence: float = 0.5
    contradiction_penalty: float = 0.5
    zone_limits_path: Optional[str] = None
    log_level: str = "INFO"
    api_port: int = 8080

    @property
    def all_pairs(self) -> tuple[str, ...]:
        """Every instrument the service accepts, forex first."""
        return self.forex_pairs + self.gold_pairs

    def market_for(self, pair: str) -> str:
        """Return ``"gold"`` or ``"forex"`` for a configured instrument."""
        return "gold" if pair in self.gold_pairs else "forex"

    def missing_credentials(self) -> list[str]:
        """Names of credential variables that are empty."""
        return [
            env_name
            for attr, env_name in _CREDENTIAL_VARS.items()
            if not getattr(self, attr)
        ]


def _split_csv(raw: str) -> tuple[str, ...]:
    return tuple(p.strip() for p in raw.split(",") if p.strip())


def _env_number(name: str, default: str, cast, minimum=None):
    raw = os.environ.get(name, default)
    try:
        value = cast(raw)
    except ValueError as exc:
        raise ValueError(
            f"Environment variable {name} must be a {cast.__name__}, got '{raw}'"
        ) from exc
    if minimum is not None and value < minimum:
        raise ValueError(f"Environment variable {name} must be >= {minimum}, got {value}")
    return value


def load_config(env_path: str | None = None) -> Config:
    """Load configuration from environment variables.

    Raises ``ValueError`` naming the variable when a numeric setting cannot
    be parsed or a bar count is below 1.
    """
    load_dotenv(dotenv_path=env_path)

    return Config(
        twelvedata_api_key=os.environ.get("TWELVEDATA_API_KEY", ""),
        openai_api_key=os.environ.get("OPENAI_API_KEY", ""),
        twelvedata_base_url=os.environ.get(
            "TWELVEDATA_BASE_URL", "https://api.twelvedata.com"
        ).rstrip("/"),
        openai_model=os.environ.get("OPENAI_MODEL", "gpt-4o-mini"),
        openai_base_url=os.environ.get("OPENAI_BASE_URL") or None,
        forex_pairs=_split_csv(os.environ.get("FOREX_PAIRS", _DEFAULT_FOREX_PAIRS)),
        active_strategies=_split_csv(
            os.environ.get("ACTIVE_STRATEGIES", "swing,scalping")
        ),
        db_path=os.environ.get("DB_PATH", "data/primus.db"),
        chart_dir=os.environ.get("CHART_DIR", "data/charts"),
        chart_bars=_env_number("CHART_BARS", "80", int, minimum=1),
        prompt_bars=_env_number("PROMPT_BARS", "60", int, minimum=1),
        zone_warning_margin=_env_number("ZONE_WARNING_MARGIN", "0.1", float),
        min_confidence=_env_number("MIN_CONFIDENCE", "0.5", float),
        contradiction_penalty=_env_number("CONTRADICTION_PENALTY", "0.5", float),
        zone_limits_path=os.environ.get("ZONE_LIMITS_PATH") or None,
        log_level=os.environ.get("LOG_LEVEL", "INFO"),
        api_port=_env_number("API_PORT", "8080", int),
    )
