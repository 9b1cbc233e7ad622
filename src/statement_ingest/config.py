"""
Configuration management (SSOT).

This module defines ALL configuration for the statement ingestion pipeline.
All config keys are defined here; no other module should invent config keys
or read process environment directly.

Key invariants:
- The API key is required for any outbound call, but loading a config
  without one is allowed (the client fails fast when it is used)
- The API key never appears in repr(), logs, or results
- Configuration is passed explicitly into the pipeline entry points
"""

import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

DEFAULT_BASE_URL = "https://api.perplexity.ai"
DEFAULT_MODEL = "sonar"


class ConfigValidationError(Exception):
    """Raised when configuration validation fails."""

    pass


@dataclass
class LLMConfig:
    """Text-generation service configuration.

    SSOT for LLM settings:
    - api_key: Bearer credential (required for any call)
    - model: Overridable model identifier
    - base_url: OpenAI-compatible endpoint root
    - debug_logging: Enables fingerprint-only diagnostic output
    - timeout_seconds: None means the pipeline imposes no deadline
    """

    api_key: str | None = field(default=None, repr=False)
    model: str = DEFAULT_MODEL
    base_url: str = DEFAULT_BASE_URL
    debug_logging: bool = False
    timeout_seconds: float | None = None

    @property
    def has_credentials(self) -> bool:
        """Check if an API key is configured."""
        return bool(self.api_key and self.api_key.strip())

    @property
    def completions_url(self) -> str:
        """Full URL of the chat completions endpoint."""
        return f"{self.base_url.rstrip('/')}/chat/completions"


@dataclass
class PrivacyConfig:
    """PII redaction settings applied before text leaves the process."""

    # Mask emails, card numbers, phones, labelled names
    redact_pii: bool = True
    # Also mask long digit runs and identity-document lines
    strict: bool = False
    # Extra literal words to mask (case-insensitive)
    extra_redact_words: list[str] = field(default_factory=list)


@dataclass
class ExtractionConfig:
    """Extraction behavior settings."""

    # Numbered text longer than this is split into several requests
    chunk_threshold: int = 20000
    # Maximum characters per chunk (split on line boundaries)
    chunk_size: int = 8000
    # Infer credit sign from refund-like wording when no direction is given
    infer_sign_from_text: bool = True
    # Drop negative card-payment receipts (transfers, not expenses)
    exclude_payment_receipts: bool = True
    # Parse locally with patterns; no outbound calls, no API key needed
    disable_external: bool = False


@dataclass
class Config:
    """Application configuration (SSOT).

    All configuration is centralized here. No other module should define
    configuration keys or defaults.
    """

    llm: LLMConfig = field(default_factory=LLMConfig)
    privacy: PrivacyConfig = field(default_factory=PrivacyConfig)
    extraction: ExtractionConfig = field(default_factory=ExtractionConfig)

    def validate(self) -> list[str]:
        """Validate configuration completeness and consistency.

        Returns:
            List of validation errors (empty if valid)
        """
        errors: list[str] = []

        if not self.llm.has_credentials and not self.extraction.disable_external:
            errors.append("llm.api_key is required (or set PERPLEXITY_API_KEY)")
        if not self.llm.model:
            errors.append("llm.model must not be empty")
        if not self.llm.base_url:
            errors.append("llm.base_url must not be empty")
        if self.llm.timeout_seconds is not None and self.llm.timeout_seconds <= 0:
            errors.append("llm.timeout_seconds must be positive when set")

        if self.extraction.chunk_size <= 0:
            errors.append("extraction.chunk_size must be positive")
        if self.extraction.chunk_threshold < self.extraction.chunk_size:
            errors.append("extraction.chunk_threshold must be >= extraction.chunk_size")

        return errors


def _split_words(raw: str | list | None) -> list[str]:
    if raw is None:
        return []
    if isinstance(raw, list):
        return [str(w).strip() for w in raw if str(w).strip()]
    return [w.strip() for w in str(raw).split(",") if w.strip()]


def load_config(config_path: Path | None = None) -> Config:
    """
    Load configuration from YAML file.

    A missing file yields defaults. Environment variables override
    config values:
    - PERPLEXITY_API_KEY
    - PERPLEXITY_MODEL
    - PERPLEXITY_BASE_URL
    - LLM_TIMEOUT (request timeout in seconds)
    - DEBUG_AI_PARSE ("1" enables fingerprint diagnostics)
    - AI_STRICT_PRIVACY ("1" enables strict redaction)
    - AI_EXTRA_REDACT_WORDS (comma-separated)
    - AI_DISABLE_EXTERNAL ("1" parses statements locally, without the service)
    """
    if config_path is not None and config_path.exists():
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
    else:
        data = {}

    # LLM config
    llm_data = data.get("llm", {}) or {}
    timeout_raw = os.environ.get("LLM_TIMEOUT", llm_data.get("timeout_seconds"))
    try:
        timeout_seconds = float(timeout_raw) if timeout_raw not in (None, "") else None
    except ValueError:
        raise ConfigValidationError(f"Invalid timeout value: {timeout_raw!r}")

    debug_logging = bool(llm_data.get("debug_logging", False))
    if os.environ.get("DEBUG_AI_PARSE") == "1":
        debug_logging = True

    llm = LLMConfig(
        api_key=os.environ.get("PERPLEXITY_API_KEY", llm_data.get("api_key")),
        model=os.environ.get("PERPLEXITY_MODEL", llm_data.get("model", DEFAULT_MODEL)),
        base_url=os.environ.get(
            "PERPLEXITY_BASE_URL", llm_data.get("base_url", DEFAULT_BASE_URL)
        ),
        debug_logging=debug_logging,
        timeout_seconds=timeout_seconds,
    )

    # Privacy config
    privacy_data = data.get("privacy", {}) or {}
    strict = bool(privacy_data.get("strict", False))
    if os.environ.get("AI_STRICT_PRIVACY") == "1":
        strict = True
    extra_words = _split_words(privacy_data.get("extra_redact_words"))
    extra_words += _split_words(os.environ.get("AI_EXTRA_REDACT_WORDS"))

    privacy = PrivacyConfig(
        redact_pii=bool(privacy_data.get("redact_pii", True)),
        strict=strict,
        extra_redact_words=extra_words,
    )

    # Extraction config
    extraction_data = data.get("extraction", {}) or {}
    disable_external = bool(extraction_data.get("disable_external", False))
    if os.environ.get("AI_DISABLE_EXTERNAL") == "1":
        disable_external = True

    extraction = ExtractionConfig(
        chunk_threshold=int(extraction_data.get("chunk_threshold", 20000)),
        chunk_size=int(extraction_data.get("chunk_size", 8000)),
        infer_sign_from_text=bool(extraction_data.get("infer_sign_from_text", True)),
        exclude_payment_receipts=bool(extraction_data.get("exclude_payment_receipts", True)),
        disable_external=disable_external,
    )

    return Config(llm=llm, privacy=privacy, extraction=extraction)


def create_default_config(config_path: Path) -> None:
    """Create a default configuration file."""
    default_config = """# Statement Ingestion Pipeline Configuration
#
# Credentials are best supplied via the PERPLEXITY_API_KEY environment
# variable rather than written to this file.

# Text-generation service (OpenAI-compatible chat completions)
llm:
  api_key: null                            # Or set PERPLEXITY_API_KEY
  model: "sonar"                           # Or set PERPLEXITY_MODEL
  base_url: "https://api.perplexity.ai"
  debug_logging: false                     # Log prompt fingerprints and sizes only
  timeout_seconds: null                    # null: caller owns the deadline

# PII redaction before any text is sent out
privacy:
  redact_pii: true
  strict: false                            # Also mask long digit runs and ID lines
  extra_redact_words: []                   # e.g. ["ACME Corp", "John"]

# Extraction behavior
extraction:
  chunk_threshold: 20000                   # Split numbered text above this size
  chunk_size: 8000                         # Max characters per request
  infer_sign_from_text: true               # "REFUND ..." without direction -> negative
  exclude_payment_receipts: true           # Drop negative card payment receipts
  disable_external: false                  # Or set AI_DISABLE_EXTERNAL=1; local parsing only
"""

    config_path.parent.mkdir(parents=True, exist_ok=True)
    with open(config_path, "w") as f:
        f.write(default_config)
