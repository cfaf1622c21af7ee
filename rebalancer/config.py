"""
Configuration for the Solana two-token rebalancing bot.
"""

import json
import math
import os
from dataclasses import dataclass
from typing import List, Mapping, Optional, Tuple

import yaml
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

# Rebalancing parameters
DEFAULT_THRESHOLD_PERCENT = 1.7   # Deviation from 50% that triggers a swap
TARGET_ALLOCATION_PERCENT = 50.0  # 50/50 target between the two tokens

# Scheduling and persistence defaults (overridable from config.yml)
DEFAULT_CHECK_INTERVAL_SECONDS = 10
DEFAULT_VALUE_FILE = "portfolio_value.json"
DEFAULT_SNAPSHOT_FILE = "portfolio_initial_snapshot.json"

# Price oracle defaults
DEFAULT_PRICE_RETRIES = 3
DEFAULT_PRICE_RETRY_DELAY_SECONDS = 3.0
DEFAULT_PRICE_TIMEOUT_SECONDS = 5.0

# Logging configuration
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FILE = os.getenv("LOG_FILE", "logs/rebalance_bot.log")
CONFIG_FILE = os.getenv("CONFIG_FILE", "config.yml")


@dataclass(frozen=True)
class Settings:
    """Validated runtime settings. Built once at startup."""

    rpc_url: str
    keypair_secret: bytes
    token_mints: Tuple[str, str]
    threshold_percent: float = DEFAULT_THRESHOLD_PERCENT
    dry_run: bool = False
    check_interval_seconds: float = DEFAULT_CHECK_INTERVAL_SECONDS
    value_file: str = DEFAULT_VALUE_FILE
    snapshot_file: str = DEFAULT_SNAPSHOT_FILE
    price_retries: int = DEFAULT_PRICE_RETRIES
    price_retry_delay_seconds: float = DEFAULT_PRICE_RETRY_DELAY_SECONDS
    price_timeout_seconds: float = DEFAULT_PRICE_TIMEOUT_SECONDS


def load_yaml_config(file_path: str) -> dict:
    """Load YAML configuration from a file safely.

    A missing file is not an error: every YAML setting has a default.
    """
    try:
        with open(file_path, 'r', encoding='utf-8') as file:
            data = yaml.safe_load(file)
    except FileNotFoundError:
        return {}
    except yaml.YAMLError as e:
        raise ValueError(f"Error parsing YAML file {file_path}: {e}")

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"YAML file {file_path} must contain a mapping")
    return data


def require_env(environ: Mapping[str, str], name: str) -> str:
    """Return a required environment variable or raise naming it."""
    value = environ.get(name)
    if not value:
        raise ValueError(f"Missing required environment variable: {name}")
    return value


def parse_keypair_secret(raw: str) -> bytes:
    """Decode a JSON array of byte values (0-255) into raw key bytes."""
    try:
        parsed = json.loads(raw)
        if not isinstance(parsed, list):
            raise ValueError("expected a JSON array")

        for value in parsed:
            # bool is an int subclass; JSON true/false are not byte values
            if isinstance(value, bool) or not isinstance(value, int):
                raise ValueError("secret array must contain integers")
            if value < 0 or value > 255:
                raise ValueError("secret array values must be in [0, 255]")

        return bytes(parsed)
    except ValueError as e:
        # json.JSONDecodeError is a ValueError subclass
        raise ValueError(f"Invalid SOLANA_KEYPAIR_SECRET: {e}") from e


def parse_token_mints(raw: str) -> List[str]:
    """Split a comma-separated mint list, dropping blanks."""
    mints = [mint.strip() for mint in raw.split(",")]
    mints = [mint for mint in mints if mint]

    if not mints:
        raise ValueError("TOKEN_MINTS must list at least one mint address")

    return mints


def parse_threshold(raw: Optional[str]) -> float:
    """Parse the rebalance threshold percent, defaulting to 1.7."""
    if not raw:
        return DEFAULT_THRESHOLD_PERCENT

    try:
        parsed = float(raw)
    except ValueError:
        parsed = float("nan")

    if not math.isfinite(parsed) or parsed < 0:
        raise ValueError("REBALANCE_THRESHOLD_PERCENT must be a non-negative number")

    return parsed


def parse_bool(raw: Optional[str], default: bool = False) -> bool:
    if raw is None or raw == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _yaml_number(yaml_config: dict, key: str, default, cast, minimum: float, strict: bool = False):
    raw = yaml_config.get(key, default)
    try:
        value = cast(raw)
    except (TypeError, ValueError):
        raise ValueError(f"{key} in config file must be a number")
    if value < minimum or (strict and value == minimum):
        bound = ">" if strict else ">="
        raise ValueError(f"{key} in config file must be {bound} {minimum}")
    return value


def validate_config(environ: Optional[Mapping[str, str]] = None,
                    config_file: Optional[str] = None) -> Settings:
    """
    Validate configuration settings and build the runtime Settings.

    Args:
        environ: Environment mapping (defaults to os.environ)
        config_file: YAML config path (defaults to CONFIG_FILE)

    Returns:
        Frozen Settings instance

    Raises:
        ValueError: naming the offending setting
    """
    if environ is None:
        environ = os.environ
    yaml_config = load_yaml_config(config_file or CONFIG_FILE)

    rpc_url = require_env(environ, "SOLANA_RPC_URL")
    keypair_secret = parse_keypair_secret(require_env(environ, "SOLANA_KEYPAIR_SECRET"))
    token_mints = parse_token_mints(require_env(environ, "TOKEN_MINTS"))
    threshold = parse_threshold(environ.get("REBALANCE_THRESHOLD_PERCENT"))

    if len(token_mints) != 2:
        raise ValueError("TOKEN_MINTS must specify exactly two mint addresses for this strategy")

    return Settings(
        rpc_url=rpc_url,
        keypair_secret=keypair_secret,
        token_mints=(token_mints[0], token_mints[1]),
        threshold_percent=threshold,
        dry_run=parse_bool(environ.get("DRY_RUN")),
        check_interval_seconds=_yaml_number(
            yaml_config, "check_interval_seconds", DEFAULT_CHECK_INTERVAL_SECONDS, float, 0, strict=True
        ),
        value_file=str(yaml_config.get("value_file", DEFAULT_VALUE_FILE)),
        snapshot_file=str(yaml_config.get("snapshot_file", DEFAULT_SNAPSHOT_FILE)),
        price_retries=_yaml_number(yaml_config, "price_retries", DEFAULT_PRICE_RETRIES, int, 0),
        price_retry_delay_seconds=_yaml_number(
            yaml_config, "price_retry_delay_seconds", DEFAULT_PRICE_RETRY_DELAY_SECONDS, float, 0
        ),
        price_timeout_seconds=_yaml_number(
            yaml_config, "price_timeout_seconds", DEFAULT_PRICE_TIMEOUT_SECONDS, float, 0, strict=True
        ),
    )
