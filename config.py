"""
Configuration validation and management for the Robotics Troubleshooting Advisor.

This module validates all required environment variables on startup
and provides centralized configuration access.
"""

import os
from typing import Optional, List
from dataclasses import dataclass, field
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

SUPPORTED_PROVIDERS = ("gemini", "openai")
SUPPORTED_SESSION_BACKENDS = ("memory", "redis")


@dataclass
class ConfigValidationError:
    """Represents a configuration validation error."""
    key: str
    message: str
    is_critical: bool = True


@dataclass
class AppConfig:
    """Application configuration with validated values."""

    # Text generation
    llm_provider: str = "gemini"
    gemini_api_key: str = ""
    gemini_model_name: str = "gemini-2.0-flash"
    openai_api_key: str = ""
    openai_model_name: str = "gpt-4o-mini"

    # Sampling (moderate temperature, short replies)
    temperature: float = 0.5
    max_tokens: int = 400
    history_window: int = 8

    # Session storage
    session_backend: str = "memory"
    redis_url: str = "redis://localhost:6379/0"
    session_key_prefix: str = "advisor"

    # Server Configuration
    host: str = "0.0.0.0"
    port: int = 8000
    debug: bool = False
    log_level: str = "INFO"

    # CORS
    cors_origins: List[str] = field(default_factory=lambda: ["*"])


class ConfigValidator:
    """Validates and loads application configuration."""

    PROVIDER_KEYS = {
        "gemini": ("GEMINI_API_KEY", "Required for chat generation with Gemini"),
        "openai": ("OPENAI_API_KEY", "Required for chat generation with OpenAI"),
    }

    def __init__(self):
        self.errors: List[ConfigValidationError] = []
        self.warnings: List[str] = []
        self.config: Optional[AppConfig] = None

    def validate(self) -> bool:
        """
        Validate all configuration values.

        Returns:
            bool: True if all critical validations pass
        """
        self.errors = []
        self.warnings = []

        provider = self._validate_provider()
        var_name, description = self.PROVIDER_KEYS[provider]
        value = os.getenv(var_name)
        if not value or value.strip() == "":
            self.errors.append(ConfigValidationError(
                key=var_name,
                message=f"Missing required environment variable: {var_name}. {description}",
                is_critical=True
            ))

        self._validate_session_backend()
        self._validate_port()
        self._validate_numeric_values()

        return len([e for e in self.errors if e.is_critical]) == 0

    def _validate_provider(self) -> str:
        """Validate LLM_PROVIDER and return the effective provider."""
        provider = os.getenv("LLM_PROVIDER", "gemini").strip().lower()
        if provider not in SUPPORTED_PROVIDERS:
            self.errors.append(ConfigValidationError(
                key="LLM_PROVIDER",
                message=f"Invalid LLM_PROVIDER: {provider}. Must be one of {', '.join(SUPPORTED_PROVIDERS)}",
                is_critical=True
            ))
            return "gemini"
        return provider

    def _validate_session_backend(self) -> None:
        """Validate SESSION_BACKEND and the Redis URL when it is needed."""
        backend = os.getenv("SESSION_BACKEND", "memory").strip().lower()
        if backend not in SUPPORTED_SESSION_BACKENDS:
            self.errors.append(ConfigValidationError(
                key="SESSION_BACKEND",
                message=f"Invalid SESSION_BACKEND: {backend}. Must be one of {', '.join(SUPPORTED_SESSION_BACKENDS)}",
                is_critical=True
            ))
            return

        if backend == "memory":
            self.warnings.append(
                "SESSION_BACKEND=memory: sessions live in process memory and are lost on restart"
            )
            return

        url = os.getenv("REDIS_URL", "")
        if not url:
            self.errors.append(ConfigValidationError(
                key="REDIS_URL",
                message="Missing required environment variable: REDIS_URL. Required when SESSION_BACKEND=redis",
                is_critical=True
            ))
        elif not (url.startswith("redis://") or url.startswith("rediss://")):
            self.errors.append(ConfigValidationError(
                key="REDIS_URL",
                message=f"Invalid REDIS_URL format: {url}. Must start with redis:// or rediss://",
                is_critical=True
            ))

    def _validate_port(self) -> None:
        """Validate port number."""
        port_str = os.getenv("PORT", "8000")
        try:
            port = int(port_str)
            if port < 1 or port > 65535:
                self.errors.append(ConfigValidationError(
                    key="PORT",
                    message=f"Invalid PORT: {port}. Must be between 1 and 65535",
                    is_critical=False
                ))
        except ValueError:
            self.errors.append(ConfigValidationError(
                key="PORT",
                message=f"Invalid PORT: {port_str}. Must be a number",
                is_critical=False
            ))

    def _validate_numeric_values(self) -> None:
        """Validate numeric configuration values."""
        numeric_vars = [
            ("LLM_TEMPERATURE", float, 0.0, 1.0),
            ("LLM_MAX_TOKENS", int, 16, 4096),
            ("HISTORY_WINDOW", int, 0, 50),
        ]

        for var_name, cast, min_val, max_val in numeric_vars:
            value_str = os.getenv(var_name)
            if value_str:
                try:
                    value = cast(value_str)
                    if value < min_val or value > max_val:
                        self.warnings.append(
                            f"{var_name}={value} is outside recommended range [{min_val}, {max_val}]"
                        )
                except ValueError:
                    self.errors.append(ConfigValidationError(
                        key=var_name,
                        message=f"Invalid {var_name}: {value_str}. Must be a number",
                        is_critical=False
                    ))

    def load_config(self) -> AppConfig:
        """
        Load and return validated configuration.

        Returns:
            AppConfig: Loaded configuration object
        """
        def safe_int(value: str, default: int) -> int:
            try:
                return int(value) if value else default
            except (ValueError, TypeError):
                return default

        def safe_float(value: str, default: float) -> float:
            try:
                return float(value) if value else default
            except (ValueError, TypeError):
                return default

        def safe_bool(value: str, default: bool) -> bool:
            if not value:
                return default
            return value.lower() in ("true", "1", "yes")

        cors_origins_str = os.getenv("CORS_ORIGINS", "*")
        cors_origins = [o.strip() for o in cors_origins_str.split(",") if o.strip()]

        self.config = AppConfig(
            llm_provider=os.getenv("LLM_PROVIDER", "gemini").strip().lower(),
            gemini_api_key=os.getenv("GEMINI_API_KEY", ""),
            gemini_model_name=os.getenv("GEMINI_MODEL_NAME", "gemini-2.0-flash"),
            openai_api_key=os.getenv("OPENAI_API_KEY", ""),
            openai_model_name=os.getenv("OPENAI_MODEL_NAME", "gpt-4o-mini"),
            temperature=safe_float(os.getenv("LLM_TEMPERATURE"), 0.5),
            max_tokens=safe_int(os.getenv("LLM_MAX_TOKENS"), 400),
            history_window=safe_int(os.getenv("HISTORY_WINDOW"), 8),
            session_backend=os.getenv("SESSION_BACKEND", "memory").strip().lower(),
            redis_url=os.getenv("REDIS_URL", "redis://localhost:6379/0"),
            session_key_prefix=os.getenv("SESSION_KEY_PREFIX", "advisor"),
            host=os.getenv("HOST", "0.0.0.0"),
            port=safe_int(os.getenv("PORT"), 8000),
            debug=safe_bool(os.getenv("DEBUG"), False),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            cors_origins=cors_origins,
        )

        return self.config

    def print_status(self) -> None:
        """Print configuration status to console."""
        print("\n" + "=" * 60)
        print("CONFIGURATION VALIDATION")
        print("=" * 60)

        if self.errors:
            print("\n[X] ERRORS:")
            for error in self.errors:
                critical = "[CRITICAL]" if error.is_critical else "[WARNING]"
                print(f"  {critical} {error.key}: {error.message}")

        if self.warnings:
            print("\n[!] WARNINGS:")
            for warning in self.warnings:
                print(f"  - {warning}")

        if not self.errors and not self.warnings:
            print("\n[OK] All configuration values are valid!")

        print("=" * 60 + "\n")


def validate_config_on_startup() -> AppConfig:
    """
    Validate configuration on application startup.

    Raises:
        ValueError: If critical configuration is missing (instead of SystemExit for serverless compatibility)

    Returns:
        AppConfig: Validated configuration
    """
    validator = ConfigValidator()
    is_valid = validator.validate()
    config = validator.load_config()

    validator.print_status()

    if not is_valid:
        error_msgs = [f"{error.key}: {error.message}" for error in validator.errors if error.is_critical]
        raise ValueError(
            f"Cannot start application due to configuration errors. "
            f"Missing or invalid: {', '.join(error_msgs)}"
        )

    return config


# Global config instance
_config: Optional[AppConfig] = None


def get_config() -> AppConfig:
    """
    Get the global configuration instance.

    Returns:
        AppConfig: Application configuration
    """
    global _config
    if _config is None:
        _config = validate_config_on_startup()
    return _config


def reset_config() -> None:
    """Drop the cached configuration so the next get_config() re-reads the environment."""
    global _config
    _config = None
