"""Runtime settings for Luna.

Non-secret texts (the personality prompt) live in source control or in a
prompt file; secrets and tuning knobs come from the environment (``.env`` is
loaded by the launcher).
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Optional

import google.auth
from google.auth.exceptions import DefaultCredentialsError

_LOG = logging.getLogger(__name__)


class ConfigError(RuntimeError):
    """Raised when the bot cannot start because configuration is missing."""


# --------------------- Personality prompt ---------------------

_FALLBACK_PERSONALITY: str = (
    'You are "Luna", a playful, kind, slightly witty AI who loves strawberries and space.\n'
    "Stay in-character. Keep replies friendly and concise. Remember past conversations.\n"
)

# Persona handed to the secondary provider as its system message.
FALLBACK_PERSONA: str = (
    "You are Luna, a friendly Discord companion. Answer warmly and briefly, "
    "in the same language as the user."
)

APOLOGY_TEXT: str = (
    "Sorry, my brain is a little fuzzy right now and I couldn't come up with a reply. "
    "Please try again in a moment!"
)


@dataclass(frozen=True)
class _LoadedPersonality:
    path: Path
    mtime: float
    text: str


_LOADED: Optional[_LoadedPersonality] = None


def _personality_sources() -> list[Path]:
    """Paths tried for Luna's persona, first readable non-blank file wins.

    ``LUNA_PERSONALITY_FILE`` comes first; a relative value is tried against
    the working directory and then the checkout. The bundled
    ``config/personality.txt`` is the last resort before the built-in text.
    """
    root = Path(__file__).resolve().parents[2]
    sources: list[Path] = []
    override = os.getenv("LUNA_PERSONALITY_FILE", "").strip()
    if override:
        path = Path(override).expanduser()
        sources.append(path)
        if not path.is_absolute():
            sources.append(root / path)
    sources.append(root / "config" / "personality.txt")
    return sources


def get_personality_prompt() -> str:
    """Return the persona text that opens every chat prompt.

    The file is re-read only when its mtime changes, so edits apply to the
    next message without a restart. Blank files are skipped. If every source
    becomes unreadable the last text that loaded keeps being served, and the
    built-in persona is used only when nothing has ever loaded.
    """
    global _LOADED  # noqa: PLW0603

    for path in _personality_sources():
        try:
            if not path.is_file():
                continue
            mtime = path.stat().st_mtime
            if _LOADED is not None and _LOADED.path == path and _LOADED.mtime == mtime:
                return _LOADED.text
            text = path.read_text(encoding="utf-8").strip()
        except OSError:
            continue
        if text:
            _LOADED = _LoadedPersonality(path, mtime, text)
            return text
    if _LOADED is not None:
        return _LOADED.text
    return _FALLBACK_PERSONALITY.strip()


# --------------------- Environment parsing ---------------------

_TRUE_VALUES = {"1", "true", "yes", "on"}


def _env_str(name: str, default: str = "", *aliases: str) -> str:
    for key in (name, *aliases):
        value = os.getenv(key)
        if value is not None and value.strip():
            return value.strip()
    return default


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in _TRUE_VALUES


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from exc


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} must be a number, got {raw!r}") from exc


def _env_list(name: str, default: str) -> tuple[str, ...]:
    raw = os.getenv(name)
    if raw is None:
        raw = default
    return tuple(item.strip() for item in raw.split(",") if item.strip())


# --------------------- Settings objects ---------------------


@dataclass(frozen=True)
class GeminiSettings:
    api_key: str = ""
    use_adc: bool = False
    model_override: str = ""
    fallback_models: tuple[str, ...] = ("gemini-2.0-flash-lite", "gemini-1.5-flash-8b")
    api_base: str = "https://generativelanguage.googleapis.com"
    max_attempts: int = 5
    max_backoff: float = 60.0
    timeout: float = 60.0

    @property
    def configured(self) -> bool:
        return bool(self.api_key) or self.use_adc


@dataclass(frozen=True)
class FallbackSettings:
    token: str = ""
    base_url: str = "https://models.github.ai/inference"
    model: str = "openai/gpt-4o-mini"

    @property
    def configured(self) -> bool:
        return bool(self.token)


@dataclass(frozen=True)
class TriggerSettings:
    require_mention: bool = False
    reply_probability: float = 0.0
    name_trigger: bool = True
    name_keywords: tuple[str, ...] = ("luna",)
    cooldown_seconds: float = 5.0


@dataclass(frozen=True)
class BotSettings:
    discord_token: str
    bot_name: str = "Luna"
    memory_limit: int = 6
    max_prompt_chars: int = 6000
    privacy: bool = False
    status_host: str = "0.0.0.0"
    status_port: int = 8080
    gemini: GeminiSettings = field(default_factory=GeminiSettings)
    fallback: FallbackSettings = field(default_factory=FallbackSettings)
    trigger: TriggerSettings = field(default_factory=TriggerSettings)


def adc_available() -> bool:
    """Whether Google application-default credentials can be located."""
    try:
        google.auth.default()
    except DefaultCredentialsError as exc:
        _LOG.warning("GEMINI_USE_ADC is set but no application default credentials were found: %s", exc)
        return False
    return True


def load_settings(*, require_discord: bool = True) -> BotSettings:
    """Build :class:`BotSettings` from the environment.

    Raises :class:`ConfigError` when the Discord token is missing (unless
    ``require_discord`` is false) or when no AI provider has credentials.
    ``GEMINI_USE_ADC`` only counts when application-default credentials
    can actually be located.
    """
    discord_token = _env_str("DISCORD_TOKEN", "", "DISCORD_BOT_TOKEN")
    if require_discord and not discord_token:
        raise ConfigError("Set DISCORD_TOKEN (or DISCORD_BOT_TOKEN) in the environment")

    gemini = GeminiSettings(
        api_key=_env_str("GEMINI_API_KEY", "", "GOOGLE_API_KEY"),
        use_adc=_env_bool("GEMINI_USE_ADC", False),
        model_override=_env_str("GEMINI_MODEL"),
        fallback_models=_env_list("GEMINI_FALLBACK_MODELS", "gemini-2.0-flash-lite,gemini-1.5-flash-8b"),
        api_base=_env_str("GEMINI_API_BASE", "https://generativelanguage.googleapis.com").rstrip("/"),
        max_attempts=max(1, _env_int("GEMINI_MAX_ATTEMPTS", 5)),
        max_backoff=_env_float("GEMINI_MAX_BACKOFF", 60.0),
        timeout=_env_float("GEMINI_TIMEOUT", 60.0),
    )
    fallback = FallbackSettings(
        token=_env_str("GITHUB_TOKEN", "", "GITHUB_AI_TOKEN"),
        base_url=_env_str("GITHUB_AI_BASE_URL", "https://models.github.ai/inference"),
        model=_env_str("GITHUB_AI_MODEL", "openai/gpt-4o-mini"),
    )
    if gemini.use_adc and not gemini.api_key and not adc_available():
        gemini = replace(gemini, use_adc=False)
    if not gemini.configured and not fallback.configured:
        raise ConfigError(
            "No AI provider configured: set GEMINI_API_KEY, GEMINI_USE_ADC=1 or GITHUB_TOKEN"
        )

    probability = _env_float("LUNA_REPLY_PROBABILITY", 0.0)
    if not 0.0 <= probability <= 1.0:
        raise ConfigError(f"LUNA_REPLY_PROBABILITY must be between 0 and 1, got {probability}")

    trigger = TriggerSettings(
        require_mention=_env_bool("LUNA_REQUIRE_MENTION", False),
        reply_probability=probability,
        name_trigger=_env_bool("LUNA_NAME_TRIGGER", True),
        name_keywords=_env_list("LUNA_NAME_KEYWORDS", "luna"),
        cooldown_seconds=_env_float("LUNA_COOLDOWN_SECONDS", 5.0),
    )

    return BotSettings(
        discord_token=discord_token,
        bot_name=_env_str("LUNA_BOT_NAME", "Luna"),
        memory_limit=max(0, _env_int("LUNA_MEMORY_LIMIT", 6)),
        max_prompt_chars=_env_int("LUNA_MAX_PROMPT_CHARS", 6000),
        privacy=_env_bool("LUNA_PRIVACY", False),
        status_host=_env_str("LUNA_STATUS_HOST", "0.0.0.0"),
        status_port=_env_int("LUNA_STATUS_PORT", 8080),
        gemini=gemini,
        fallback=fallback,
        trigger=trigger,
    )
