"""Configuration loading, writing, and provider client construction.

Reads ``config.toml`` using stdlib ``tomllib`` and writes it using
``tomli_w``.  The file never holds secrets: it names the environment
variables that do, and :func:`require_env` resolves them when a client is
built.  Depends only on ``models``, ``errors`` and ``providers``.
"""

from __future__ import annotations

import logging
import os
import tomllib
from collections.abc import Mapping
from pathlib import Path

import tomli_w

from personal_finance.errors import ConfigError
from personal_finance.models import AppConfig, KuberaConfig, LunchMoneyConfig
from personal_finance.providers.kubera import KuberaClient
from personal_finance.providers.lunch_money import LunchMoneyClient

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "config.toml"

_HEADER = """\
# personal-finance configuration
#
# Credentials are read from the environment variables named below;
# never put tokens or secrets in this file.

"""


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(root: Path) -> AppConfig:
    """Load ``config.toml`` from *root* and return an :class:`AppConfig`.

    Missing sections and keys fall back to the dataclass defaults.

    Args:
        root: Directory containing ``config.toml``.

    Raises:
        FileNotFoundError: If ``config.toml`` does not exist.
        ConfigError: If a value has the wrong type.
    """
    data = _read_toml(Path(root) / CONFIG_FILENAME)

    general = data.get("general", {})
    lm = data.get("lunch_money", {})
    kb = data.get("kubera", {})

    lm_defaults = LunchMoneyConfig()
    kb_defaults = KuberaConfig()

    try:
        return AppConfig(
            output_dir=str(general.get("output_dir", "output")),
            lunch_money=LunchMoneyConfig(
                base_url=str(lm.get("base_url", lm_defaults.base_url)),
                token_env=str(lm.get("token_env", lm_defaults.token_env)),
                timeout=float(lm.get("timeout", lm_defaults.timeout)),
            ),
            kubera=KuberaConfig(
                base_url=str(kb.get("base_url", kb_defaults.base_url)),
                api_key_env=str(kb.get("api_key_env", kb_defaults.api_key_env)),
                api_secret_env=str(kb.get("api_secret_env", kb_defaults.api_secret_env)),
                portfolio_id_env=str(kb.get("portfolio_id_env", kb_defaults.portfolio_id_env)),
                timeout=float(kb.get("timeout", kb_defaults.timeout)),
            ),
        )
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"invalid value in {CONFIG_FILENAME}: {exc}") from exc


def save_config(root: Path, config: AppConfig) -> Path:
    """Write *config* to ``root/config.toml``, replacing any existing file."""
    path = Path(root) / CONFIG_FILENAME
    path.write_text(_HEADER + tomli_w.dumps(_config_to_toml(config)), encoding="utf-8")
    return path


def initialize(target_dir: Path) -> bool:
    """Create *target_dir* and a default ``config.toml`` inside it.

    Idempotent: an existing ``config.toml`` is **not** overwritten.

    Returns:
        True if a new config file was written.
    """
    target_dir = Path(target_dir)
    target_dir.mkdir(parents=True, exist_ok=True)
    if (target_dir / CONFIG_FILENAME).exists():
        return False
    save_config(target_dir, AppConfig())
    return True


def require_env(name: str, environ: Mapping[str, str] | None = None) -> str:
    """Return the non-empty value of environment variable *name*.

    Raises:
        ConfigError: If the variable is unset or empty.
    """
    env = os.environ if environ is None else environ
    value = env.get(name, "")
    if not value:
        raise ConfigError(f"environment variable {name!r} must be set")
    return value


def build_lunch_money_client(
    config: AppConfig, environ: Mapping[str, str] | None = None
) -> LunchMoneyClient:
    """Construct a Lunch Money client from *config* and the environment."""
    token = require_env(config.lunch_money.token_env, environ)
    logger.debug("Using Lunch Money API at %s", config.lunch_money.base_url)
    return LunchMoneyClient.from_config(config.lunch_money, token=token)


def build_kubera_client(
    config: AppConfig, environ: Mapping[str, str] | None = None
) -> KuberaClient:
    """Construct a Kubera client from *config* and the environment."""
    kb = config.kubera
    api_key = require_env(kb.api_key_env, environ)
    api_secret = require_env(kb.api_secret_env, environ)
    portfolio_id = require_env(kb.portfolio_id_env, environ)
    logger.debug("Using Kubera API at %s for portfolio %s", kb.base_url, portfolio_id)
    return KuberaClient.from_config(
        kb, api_key=api_key, api_secret=api_secret, portfolio_id=portfolio_id
    )


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _read_toml(path: Path) -> dict:
    """Read and parse a TOML file."""
    with open(path, "rb") as f:
        try:
            return tomllib.load(f)
        except tomllib.TOMLDecodeError as exc:
            raise ConfigError(f"cannot parse {path}: {exc}") from exc


def _config_to_toml(config: AppConfig) -> dict:
    lm = config.lunch_money
    kb = config.kubera
    return {
        "general": {"output_dir": config.output_dir},
        "lunch_money": {
            "base_url": lm.base_url,
            "token_env": lm.token_env,
            "timeout": lm.timeout,
        },
        "kubera": {
            "base_url": kb.base_url,
            "api_key_env": kb.api_key_env,
            "api_secret_env": kb.api_secret_env,
            "portfolio_id_env": kb.portfolio_id_env,
            "timeout": kb.timeout,
        },
    }
