"""
Environment configuration for the Book Builder service.

Variables are read once at startup, checked, and exposed as an AppConfig.
Critical problems (an unknown store or AI provider, a mongo store without a
usable URL) stop the startup; everything else is reported and defaulted.
"""

import os
from typing import Callable, Dict, List, Optional, Tuple
from dataclasses import dataclass, field
from dotenv import load_dotenv

from logger import get_logger

# Load environment variables
load_dotenv()

logger = get_logger(__name__)

DOCUMENT_STORES = ("memory", "mongo")
AI_PROVIDERS = ("openai", "gemini")
MONGO_SCHEMES = ("mongodb://", "mongodb+srv://")

# name -> (minimum, maximum, critical when malformed)
INTEGER_VARS: Dict[str, Tuple[int, int, bool]] = {
    "PORT": (1, 65535, False),
    "TIGHTNESS_ANALYSIS_ATTEMPTS": (1, 5, False),
}

PROVIDER_KEYS = {
    "openai": "OPENAI_API_KEY",
    "gemini": "GEMINI_API_KEY",
}


def _env(name: str, default: str = "") -> str:
    return os.getenv(name, default).strip()


@dataclass
class ConfigValidationError:
    """Represents a configuration validation error."""
    key: str
    message: str
    is_critical: bool = True


@dataclass
class AppConfig:
    """Application configuration with validated values."""

    # Document store
    document_store: str = "memory"
    mongodb_url: str = ""
    mongodb_database: str = "book_builder"
    mongodb_collection: str = "documents"

    # AI
    ai_provider: str = "openai"
    openai_api_key: str = ""
    openai_model_name: str = "gpt-4o-mini"
    gemini_api_key: str = ""
    gemini_model_name: str = "gemini-2.5-flash"
    tightness_analysis_attempts: int = 2

    # Server
    host: str = "0.0.0.0"
    port: int = 8000
    debug: bool = False
    log_level: str = "INFO"
    cors_origins: List[str] = field(default_factory=lambda: ["*"])

    @property
    def ai_model_name(self) -> str:
        return self.openai_model_name if self.ai_provider == "openai" else self.gemini_model_name


class ConfigValidator:
    """Checks the environment and builds an AppConfig from it."""

    def __init__(self):
        self.errors: List[ConfigValidationError] = []
        self.warnings: List[str] = []
        self.config: Optional[AppConfig] = None

    def _fail(self, key: str, message: str, critical: bool = True) -> None:
        self.errors.append(ConfigValidationError(key=key, message=message, is_critical=critical))

    def validate(self) -> bool:
        """
        Run every check, collecting errors and warnings.

        Returns:
            bool: True if no critical error was found
        """
        self.errors = []
        self.warnings = []

        checks: List[Callable[[], None]] = [
            self._check_document_store,
            self._check_ai_provider,
            self._check_integers,
        ]
        for check in checks:
            check()

        return not any(e.is_critical for e in self.errors)

    def _check_document_store(self) -> None:
        store = _env("DOCUMENT_STORE", "memory").lower()
        if store not in DOCUMENT_STORES:
            self._fail("DOCUMENT_STORE", f"Invalid DOCUMENT_STORE: {store}. Must be one of {', '.join(DOCUMENT_STORES)}")
            return

        if store == "memory":
            self.warnings.append("DOCUMENT_STORE=memory: data is kept in process and lost on restart")
            return

        url = _env("MONGODB_URL")
        if not url:
            self._fail("MONGODB_URL", "MONGODB_URL is required when DOCUMENT_STORE=mongo")
        elif not url.startswith(MONGO_SCHEMES):
            self._fail("MONGODB_URL", f"Invalid MONGODB_URL. Must start with {' or '.join(MONGO_SCHEMES)}")

    def _check_ai_provider(self) -> None:
        provider = _env("AI_PROVIDER", "openai").lower()
        if provider not in AI_PROVIDERS:
            self._fail("AI_PROVIDER", f"Invalid AI_PROVIDER: {provider}. Must be one of {', '.join(AI_PROVIDERS)}")
            return

        key_name = PROVIDER_KEYS[provider]
        if not _env(key_name):
            self.warnings.append(f"{key_name} not set: AI summaries, analysis and scaffolding will fail")

    def _check_integers(self) -> None:
        for name, (low, high, critical) in INTEGER_VARS.items():
            raw = _env(name)
            if not raw:
                continue
            try:
                value = int(raw)
            except ValueError:
                self._fail(name, f"Invalid {name}: {raw}. Must be a number", critical)
                continue
            if not low <= value <= high:
                if name == "PORT":
                    self._fail(name, f"Invalid PORT: {value}. Must be between {low} and {high}", critical)
                else:
                    self.warnings.append(f"{name}={value} is outside recommended range [{low}, {high}]")

    def load_config(self) -> AppConfig:
        """Build an AppConfig from the environment, defaulting anything malformed."""
        def as_int(name: str, default: int) -> int:
            try:
                return int(_env(name)) if _env(name) else default
            except ValueError:
                return default

        origins = [o.strip() for o in _env("CORS_ORIGINS", "*").split(",") if o.strip()]

        self.config = AppConfig(
            document_store=_env("DOCUMENT_STORE", "memory").lower(),
            mongodb_url=_env("MONGODB_URL"),
            mongodb_database=_env("MONGODB_DATABASE", "book_builder"),
            mongodb_collection=_env("MONGODB_COLLECTION", "documents"),
            ai_provider=_env("AI_PROVIDER", "openai").lower(),
            openai_api_key=_env("OPENAI_API_KEY"),
            openai_model_name=_env("OPENAI_MODEL_NAME", "gpt-4o-mini"),
            gemini_api_key=_env("GEMINI_API_KEY"),
            gemini_model_name=_env("GEMINI_MODEL_NAME", "gemini-2.5-flash"),
            tightness_analysis_attempts=as_int("TIGHTNESS_ANALYSIS_ATTEMPTS", 2),
            host=_env("HOST", "0.0.0.0"),
            port=as_int("PORT", 8000),
            debug=_env("DEBUG").lower() in ("true", "1", "yes"),
            log_level=_env("LOG_LEVEL", "INFO").upper(),
            cors_origins=origins or ["*"],
        )
        return self.config

    def report(self) -> None:
        """Log the outcome of the last validate() call."""
        for error in self.errors:
            if error.is_critical:
                logger.error(f"Config error: {error.message}", key=error.key)
            else:
                logger.warning(f"Config problem: {error.message}", key=error.key)
        for warning in self.warnings:
            logger.warning(f"Config warning: {warning}")
        if not self.errors and not self.warnings:
            logger.info("Configuration OK")


def validate_config_on_startup() -> AppConfig:
    """
    Validate and load configuration.

    Raises:
        ValueError: On a critical error (not SystemExit, so serverless
            handlers can keep running in degraded mode)
    """
    validator = ConfigValidator()
    is_valid = validator.validate()
    config = validator.load_config()
    validator.report()

    if not is_valid:
        problems = [f"{e.key}: {e.message}" for e in validator.errors if e.is_critical]
        raise ValueError(f"Cannot start application due to configuration errors: {'; '.join(problems)}")

    return config


def load_config() -> AppConfig:
    """AppConfig for the environment as it is now. No validation, no caching."""
    return ConfigValidator().load_config()


_config: Optional[AppConfig] = None


def get_config() -> AppConfig:
    """Validated configuration, loaded on first use."""
    global _config
    if _config is None:
        _config = validate_config_on_startup()
    return _config


def reset_config() -> None:
    """Forget the cached configuration so the next get_config() re-reads the environment."""
    global _config
    _config = None
