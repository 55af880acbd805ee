"""
Configuration module for the Kondate menu service
==================================================

This module centralizes all configuration for the meal planning service that
integrates:
- An OpenAI-compatible chat completions API (menu and recipe generation)
- A per-locale ingredient lexicon (YAML, see lexicons/)

CONFIGURATION:
- data/config.yaml: User-specific settings (LLM model, lexicon, pipeline knobs)
- data/secrets.yaml: Credentials (chat API key)

Usage:
    from config import CHAT_MODEL, LEXICON_PATH, get_config_value

SETUP:
    1. data/config.yaml is created from config.yaml.example on first run
    2. Set OPENAI_API_KEY (env var or data/secrets.yaml)
"""

import os
import logging
import logging.handlers
from pathlib import Path
from typing import Dict, Any, Optional

import yaml


# =============================================================================
# USER CONFIGURATION LOADING
# =============================================================================

# Project root directory (where this file lives)
PROJECT_ROOT = Path(__file__).parent

# Data directory - the only location written at runtime
DATA_DIR = Path(os.getenv("KONDATE_DATA_DIR", str(PROJECT_ROOT / "data")))

CONFIG_PATH = DATA_DIR / "config.yaml"
SECRETS_PATH = DATA_DIR / "secrets.yaml"
EXAMPLE_CONFIG_PATH = PROJECT_ROOT / "config.yaml.example"

# Bundled lexicons, one YAML file per locale
LEXICON_DIR = PROJECT_ROOT / "lexicons"


def _config_error(title: str, *lines: str) -> str:
    body = "\n".join(lines)
    return (
        f"\n{'='*60}\n"
        f"ERROR: {title}\n"
        f"{'='*60}\n"
        f"{body}\n"
        f"{'='*60}"
    )


def _load_user_config() -> Dict[str, Any]:
    """
    Load user configuration from data/config.yaml.

    A missing config.yaml is created from config.yaml.example so the service
    can boot on first run. Anything else that is wrong fails immediately.

    Returns:
        Dict containing user configuration

    Raises:
        FileNotFoundError: If neither config.yaml nor the example exists
        ValueError: If YAML is invalid or missing required fields
    """
    config_path = CONFIG_PATH

    if not config_path.exists():
        if EXAMPLE_CONFIG_PATH.exists():
            import shutil
            DATA_DIR.mkdir(parents=True, exist_ok=True)
            shutil.copy2(EXAMPLE_CONFIG_PATH, config_path)
            print(f"[config] Created {config_path} from config.yaml.example")
        else:
            raise FileNotFoundError(_config_error(
                "config.yaml not found",
                f"Expected location: {config_path}",
                f"Also missing: {EXAMPLE_CONFIG_PATH}",
            ))

    try:
        with open(config_path, 'r', encoding='utf-8') as f:
            config = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ValueError(_config_error(
            "config.yaml has invalid YAML syntax",
            f"File: {config_path}",
            f"Error: {e}",
        )) from e

    if config is None:
        raise ValueError(_config_error(
            "config.yaml is empty",
            f"File: {config_path}",
            "Please copy config.yaml.example and customize it.",
        ))

    required_sections = ["llm", "pipeline"]
    missing_sections = [s for s in required_sections if s not in config]
    if missing_sections:
        raise ValueError(_config_error(
            "config.yaml missing required sections",
            f"Missing: {missing_sections}",
            f"Required sections: {required_sections}",
        ))

    required_fields = [
        ("llm", "chat_model"),
        ("llm", "api_url"),
        ("pipeline", "locale"),
    ]
    missing_fields = [
        f"{section}.{field}"
        for section, field in required_fields
        if field not in (config.get(section) or {})
    ]
    if missing_fields:
        raise ValueError(_config_error(
            "config.yaml missing required fields",
            f"Missing: {missing_fields}",
        ))

    return config


# Load user config at module initialization (FAIL FAST)
USER_CONFIG = _load_user_config()

# Use standard logging for config.py (foundational module)
logger = logging.getLogger(__name__)


# =============================================================================
# SECRETS
# =============================================================================
"""
Credential storage in data/secrets.yaml.
Environment variables take priority over file-based secrets.
"""


def load_secrets() -> Dict[str, Any]:
    """
    Load secrets from data/secrets.yaml.

    Returns:
        dict with key 'chat_api_key' (may be None).
        Returns empty dict if the file doesn't exist.
    """
    if not SECRETS_PATH.exists():
        return {}

    try:
        with open(SECRETS_PATH, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        logger.warning(f"⚠️ Failed to load secrets from {SECRETS_PATH}: {e}")
        return {}

    return {
        'chat_api_key': (data.get('llm') or {}).get('api_key'),
    }


def load_chat_api_key() -> Optional[str]:
    """
    Load the chat API key from environment variable or secrets file.

    Priority order:
    1. Environment variable OPENAI_API_KEY
    2. File: data/secrets.yaml (llm.api_key)

    Returns:
        str: The API key if found, None otherwise
    """
    env_key = os.getenv("OPENAI_API_KEY", "").strip()
    if env_key:
        logger.debug("🔑 Using OPENAI_API_KEY from env var")
        return env_key

    file_key = load_secrets().get('chat_api_key')
    if file_key:
        logger.debug(f"🔑 Using chat API key from {SECRETS_PATH}")
        return file_key

    logger.warning("⚠️ No OPENAI_API_KEY found in env var or data/secrets.yaml")
    return None


# =============================================================================
# CHAT LLM CONFIGURATION
# =============================================================================

CHAT_API_URL = os.getenv("CHAT_API_URL", USER_CONFIG["llm"]["api_url"]).rstrip("/")
CHAT_MODEL = os.getenv("CHAT_MODEL", USER_CONFIG["llm"]["chat_model"])
CHAT_TIMEOUT = USER_CONFIG["llm"].get("timeout", 60)  # seconds
CHAT_API_KEY = load_chat_api_key()

# Sampling parameters sent with every chat completion
CHAT_SAMPLING = {
    "top_p": 0.95,
    "presence_penalty": 0.2,
    "frequency_penalty": 0.2,
}


# =============================================================================
# PIPELINE CONFIGURATION
# =============================================================================

LOCALE = USER_CONFIG["pipeline"]["locale"]

# Explicit lexicon file wins over the bundled one for the locale
LEXICON_PATH = Path(
    USER_CONFIG["pipeline"].get("lexicon_path")
    or LEXICON_DIR / f"{LOCALE}.yaml"
)

# Retry Configuration
RETRY_CONFIG = {
    "max_llm_retries": 3,          # Attempts per chat completion call
    "max_parse_retries": 1,        # Stricter-prompt retries on malformed JSON
}

# Sampling temperatures per call site
TEMPERATURE_CONFIG = {
    "menu": 0.7,
    "menu_strict": 0.4,
    "recipe": 0.6,
    "recipe_strict": 0.3,
    "suggestion": 0.7,
}

# Request limits for /generate-menu
MENU_REQUEST_LIMITS = {
    "max_people_per_group": 10,
    "min_days": 1,
    "max_days": 14,
}

# HTTP surface
HTTP_CONFIG = {
    "allowed_origins": os.getenv("ALLOWED_ORIGINS", "*"),
    "max_content_length": 1024 * 1024,  # 1MB JSON bodies
}


def get_pipeline_config() -> dict:
    """
    Get complete pipeline configuration as a dictionary.

    Values under `pipeline:` in config.yaml override the built-in defaults
    section by section.

    Returns:
        dict: Complete configuration for the pipeline
    """
    overrides = USER_CONFIG.get("pipeline") or {}
    sections = {
        "retries": RETRY_CONFIG,
        "temperatures": TEMPERATURE_CONFIG,
        "menu_request": MENU_REQUEST_LIMITS,
        "http": HTTP_CONFIG,
    }
    merged = {}
    for name, defaults in sections.items():
        merged[name] = {**defaults, **(overrides.get(name) or {})}
    return merged


def get_config_value(section: str, key: str, default=None):
    """
    Get a configuration value by section and key with graceful degradation.

    Args:
        section: Configuration section name
        key: Configuration key name
        default: Default value if not found

    Returns:
        Configuration value or default
    """
    try:
        config = get_pipeline_config()
        return config.get(section, {}).get(key, default)
    except (AttributeError, TypeError) as e:
        logger.warning(f"⚠️  Configuration access failed for {section}.{key}: {e}")
        logger.warning(f"   Using default value: {default}")
        return default


def reload_user_config() -> Dict[str, Any]:
    """
    Reload data/config.yaml into the in-memory USER_CONFIG.

    Note: modules that imported individual constants (e.g., CHAT_MODEL) may still
    hold older values; prefer get_config_value() for tunable knobs.

    Returns:
        dict: The reloaded USER_CONFIG
    """
    global USER_CONFIG, CHAT_API_URL, CHAT_MODEL, CHAT_API_KEY, LOCALE, LEXICON_PATH

    USER_CONFIG = _load_user_config()

    CHAT_API_URL = os.getenv("CHAT_API_URL", USER_CONFIG["llm"]["api_url"]).rstrip("/")
    CHAT_MODEL = os.getenv("CHAT_MODEL", USER_CONFIG["llm"]["chat_model"])
    CHAT_API_KEY = load_chat_api_key()
    LOCALE = USER_CONFIG["pipeline"]["locale"]
    LEXICON_PATH = Path(
        USER_CONFIG["pipeline"].get("lexicon_path")
        or LEXICON_DIR / f"{LOCALE}.yaml"
    )

    logger.info("🔄 User config reloaded from disk")
    return USER_CONFIG


def print_config_summary() -> None:
    """
    Print a summary of the current configuration.
    Useful for debugging and verification.
    """
    print("\n" + "=" * 60)
    print("📋 CONFIGURATION SUMMARY")
    print("=" * 60)
    print(f"Chat API URL:       {CHAT_API_URL}")
    print(f"Chat Model:         {CHAT_MODEL}")
    print(f"Chat Key:           {'✓ Set' if CHAT_API_KEY else '✗ Not set'}")
    print(f"Locale:             {LOCALE}")
    print(f"Lexicon:            {LEXICON_PATH}")
    print(f"Data Dir:           {DATA_DIR}")
    print("=" * 60 + "\n")


# =============================================================================
# LOGGING CONFIGURATION
# =============================================================================
"""Centralized logging configuration for all modules."""
LOGGING_CONFIG = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "standard": {
            "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        },
        "detailed": {
            "format": "%(asctime)s - %(name)s - %(levelname)s - %(filename)s:%(lineno)d - %(message)s"
        }
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "level": "INFO",
            "formatter": "standard",
            "stream": "ext://sys.stdout"
        },
        "file": {
            "class": "logging.handlers.RotatingFileHandler",
            "level": "DEBUG",
            "formatter": "detailed",
            "filename": str(DATA_DIR / "logs" / "kondate.log"),
            "maxBytes": 10485760,  # 10MB
            "backupCount": 5,
            "encoding": "utf-8"
        }
    },
    "root": {
        "level": "DEBUG",
        "handlers": ["console", "file"]
    }
}


if __name__ == "__main__":
    print_config_summary()
