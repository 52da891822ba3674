"""Config loading for CallGuard.

Reads `.callguard/config.yaml` (or `~/.callguard/config.yaml`).
Raises SystemExit on parse errors or missing `version` field.
If no config file is found, returns default values (safe to run without config).

Config search order:
  1. `config_path` argument (if provided, for testing or explicit override)
  2. CALLGUARD_CONFIG environment variable (if set)
  3. `.callguard/config.yaml` (working directory, for development)
  4. `~/.callguard/config.yaml` (home directory, for deployments)

Environment variable overrides:
  CALLGUARD_PORT: overrides server.port (takes precedence over config file value)
  CALLGUARD_CONFIG: sets an explicit config file path to try first

Section parsing is lenient: a value of the wrong type, or an unknown enum
value, falls back to that field's default. Only the file-level checks in
load_config() are fatal.

INVARIANT: every config object is frozen. The engine reads config, it never
mutates it.
"""

from __future__ import annotations

import dataclasses
import os
import sys
from dataclasses import dataclass, field
from typing import Any, Optional, Union

import yaml

from callguard.constants import DEFAULT_HOST, DEFAULT_PORT
from callguard.models.detection import DestructiveCategory, MatchCategory, Severity, SeverityAction
from callguard.scanner.patterns import compile_user_pattern
from callguard.utils.logger import get_logger

logger = get_logger(__name__)

# ─── Version constants ────────────────────────────────────────────────────────

SUPPORTED_CONFIG_VERSION = 1

SUPPORTED_VERSIONS: frozenset[int] = frozenset({1})

VALID_LOG_LEVELS: frozenset[str] = frozenset({"debug", "info", "warn", "error"})

DEFAULT_CONFIG_PATHS = [
    ".callguard/config.yaml",
    os.path.expanduser("~/.callguard/config.yaml"),
]


# ─── Field parsers ───────────────────────────────────────────────────────────


def _as_bool(value: Any, default: bool) -> bool:
    return value if isinstance(value, bool) else default


def _as_action(value: Any, default: Optional[SeverityAction]) -> Optional[SeverityAction]:
    try:
        return SeverityAction(value)
    except (ValueError, TypeError):
        return default


def _as_severity(value: Any) -> Optional[Severity]:
    try:
        return Severity(value)
    except (ValueError, TypeError):
        return None


def _as_str_tuple(value: Any) -> tuple[str, ...]:
    if not isinstance(value, list):
        return ()
    return tuple(item for item in value if isinstance(item, str))


def _section(raw: Any) -> dict:
    return raw if isinstance(raw, dict) else {}


# ─── Dataclasses ─────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class SeverityActions:
    """Per-severity action map. An unset entry falls back to the category action."""

    critical: Optional[SeverityAction] = None
    high: Optional[SeverityAction] = None
    medium: Optional[SeverityAction] = None
    low: Optional[SeverityAction] = None

    def for_severity(self, severity: Severity) -> Optional[SeverityAction]:
        return getattr(self, severity.value)

    @classmethod
    def from_dict(cls, raw: Any, defaults: "SeverityActions") -> "SeverityActions":
        if not isinstance(raw, dict):
            return defaults
        return cls(
            critical=_as_action(raw.get("critical"), defaults.critical),
            high=_as_action(raw.get("high"), defaults.high),
            medium=_as_action(raw.get("medium"), defaults.medium),
            low=_as_action(raw.get("low"), defaults.low),
        )


@dataclass(frozen=True)
class SecretCategories:
    api_keys: bool = True
    cloud_credentials: bool = True
    private_keys: bool = True
    tokens: bool = True

    @classmethod
    def from_dict(cls, raw: Any) -> "SecretCategories":
        if not isinstance(raw, dict):
            return cls()
        return cls(
            api_keys=raw.get("apiKeys") is not False,
            cloud_credentials=raw.get("cloudCredentials") is not False,
            private_keys=raw.get("privateKeys") is not False,
            tokens=raw.get("tokens") is not False,
        )


@dataclass(frozen=True)
class PiiCategories:
    """SSN and card numbers on by default; email and phone are opt-in."""

    ssn: bool = True
    credit_card: bool = True
    email: bool = False
    phone: bool = False

    @classmethod
    def from_dict(cls, raw: Any) -> "PiiCategories":
        if not isinstance(raw, dict):
            return cls()
        return cls(
            ssn=raw.get("ssn") is not False,
            credit_card=raw.get("creditCard") is not False,
            email=raw.get("email") is True,
            phone=raw.get("phone") is True,
        )


@dataclass(frozen=True)
class DestructiveCategories:
    file_delete: bool = True
    git_destructive: bool = True
    sql_destructive: bool = True
    system_destructive: bool = True
    process_kill: bool = True
    network_destructive: bool = True
    privilege_escalation: bool = True

    def is_enabled(self, category: DestructiveCategory) -> bool:
        return getattr(self, category.value)

    @classmethod
    def from_dict(cls, raw: Any) -> "DestructiveCategories":
        if not isinstance(raw, dict):
            return cls()
        return cls(
            file_delete=raw.get("fileDelete") is not False,
            git_destructive=raw.get("gitDestructive") is not False,
            sql_destructive=raw.get("sqlDestructive") is not False,
            system_destructive=raw.get("systemDestructive") is not False,
            process_kill=raw.get("processKill") is not False,
            network_destructive=raw.get("networkDestructive") is not False,
            privilege_escalation=raw.get("privilegeEscalation") is not False,
        )


@dataclass(frozen=True)
class SecretsConfig:
    """API keys, cloud credentials, tokens and private keys."""

    enabled: bool = True
    action: SeverityAction = SeverityAction.REDACT
    severity_actions: SeverityActions = field(default_factory=lambda: SeverityActions(
        critical=SeverityAction.BLOCK,
        high=SeverityAction.REDACT,
        medium=SeverityAction.REDACT,
        low=SeverityAction.WARN,
    ))
    categories: SecretCategories = field(default_factory=SecretCategories)

    @classmethod
    def from_dict(cls, raw: Any) -> "SecretsConfig":
        if not isinstance(raw, dict):
            return cls()
        defaults = cls()
        return cls(
            enabled=raw.get("enabled") is not False,
            action=_as_action(raw.get("action"), defaults.action),
            severity_actions=SeverityActions.from_dict(raw.get("severityActions"), defaults.severity_actions),
            categories=SecretCategories.from_dict(raw.get("categories")),
        )


@dataclass(frozen=True)
class PiiConfig:
    """SSN, credit card, email and phone detection."""

    enabled: bool = True
    action: SeverityAction = SeverityAction.REDACT
    severity_actions: SeverityActions = field(default_factory=lambda: SeverityActions(
        critical=SeverityAction.BLOCK,
        high=SeverityAction.REDACT,
        medium=SeverityAction.WARN,
        low=SeverityAction.WARN,
    ))
    categories: PiiCategories = field(default_factory=PiiCategories)
    phone_region: str = "US"

    @classmethod
    def from_dict(cls, raw: Any) -> "PiiConfig":
        if not isinstance(raw, dict):
            return cls()
        defaults = cls()
        region = raw.get("phoneRegion")
        return cls(
            enabled=raw.get("enabled") is not False,
            action=_as_action(raw.get("action"), defaults.action),
            severity_actions=SeverityActions.from_dict(raw.get("severityActions"), defaults.severity_actions),
            categories=PiiCategories.from_dict(raw.get("categories")),
            phone_region=region.upper() if isinstance(region, str) and region else defaults.phone_region,
        )


@dataclass(frozen=True)
class DestructiveConfig:
    """Destructive shell, git and SQL command detection."""

    enabled: bool = True
    action: SeverityAction = SeverityAction.CONFIRM
    severity_actions: SeverityActions = field(default_factory=lambda: SeverityActions(
        critical=SeverityAction.BLOCK,
        high=SeverityAction.CONFIRM,
        medium=SeverityAction.CONFIRM,
        low=SeverityAction.WARN,
    ))
    categories: DestructiveCategories = field(default_factory=DestructiveCategories)

    @classmethod
    def from_dict(cls, raw: Any) -> "DestructiveConfig":
        if not isinstance(raw, dict):
            return cls()
        defaults = cls()
        return cls(
            enabled=raw.get("enabled") is not False,
            action=_as_action(raw.get("action"), defaults.action),
            severity_actions=SeverityActions.from_dict(raw.get("severityActions"), defaults.severity_actions),
            categories=DestructiveCategories.from_dict(raw.get("categories")),
        )


@dataclass(frozen=True)
class CustomPattern:
    """User-supplied rule. ``action``, when set, bypasses severity resolution."""

    name: str
    pattern: str
    severity: Optional[Severity] = None
    action: Optional[SeverityAction] = None

    @property
    def type(self) -> str:
        return f"custom_{self.name}"


@dataclass(frozen=True)
class Allowlist:
    tools: tuple[str, ...] = ()
    patterns: tuple[str, ...] = ()
    sessions: tuple[str, ...] = ()

    @classmethod
    def from_dict(cls, raw: Any) -> "Allowlist":
        raw = _section(raw)
        return cls(
            tools=_as_str_tuple(raw.get("tools")),
            patterns=_as_str_tuple(raw.get("patterns")),
            sessions=_as_str_tuple(raw.get("sessions")),
        )


@dataclass(frozen=True)
class LoggingConfig:
    log_detections: bool = True
    log_level: str = "warn"

    @classmethod
    def from_dict(cls, raw: Any) -> "LoggingConfig":
        raw = _section(raw)
        level = raw.get("logLevel")
        return cls(
            log_detections=_as_bool(raw.get("logDetections"), True),
            log_level=level if level in VALID_LOG_LEVELS else "warn",
        )


@dataclass(frozen=True)
class ServerConfig:
    """HTTP hook sidecar binding."""

    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT

    @classmethod
    def from_dict(cls, raw: Any) -> "ServerConfig":
        raw = _section(raw)
        host = raw.get("host")
        port = raw.get("port")
        return cls(
            host=host if isinstance(host, str) and host else DEFAULT_HOST,
            port=port if isinstance(port, int) and not isinstance(port, bool) else DEFAULT_PORT,
        )


CategoryConfig = Union[SecretsConfig, PiiConfig, DestructiveConfig]


@dataclass(frozen=True)
class GuardConfig:
    """Root CallGuard configuration."""

    version: int = SUPPORTED_CONFIG_VERSION
    filter_inputs: bool = True
    filter_outputs: bool = True
    secrets: SecretsConfig = field(default_factory=SecretsConfig)
    pii: PiiConfig = field(default_factory=PiiConfig)
    destructive: DestructiveConfig = field(default_factory=DestructiveConfig)
    custom_patterns: tuple[CustomPattern, ...] = ()
    allowlist: Allowlist = field(default_factory=Allowlist)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    server: ServerConfig = field(default_factory=ServerConfig)
    path: Optional[str] = None

    @classmethod
    def defaults(cls) -> "GuardConfig":
        """Return a GuardConfig with all default values."""
        return cls()

    @classmethod
    def from_dict(cls, raw: Any, path: Optional[str] = None) -> "GuardConfig":
        """Build a GuardConfig from a parsed mapping, leniently.

        Accepts ``filterInputs``/``filterOutputs`` and the legacy
        ``filterToolInputs``/``filterToolOutputs`` spellings.
        """
        raw = _section(raw)
        filter_inputs = raw.get("filterInputs", raw.get("filterToolInputs"))
        filter_outputs = raw.get("filterOutputs", raw.get("filterToolOutputs"))
        version = raw.get("version")
        return cls(
            version=version if isinstance(version, int) else SUPPORTED_CONFIG_VERSION,
            filter_inputs=filter_inputs is not False,
            filter_outputs=filter_outputs is not False,
            secrets=SecretsConfig.from_dict(raw.get("secrets")),
            pii=PiiConfig.from_dict(raw.get("pii")),
            destructive=DestructiveConfig.from_dict(raw.get("destructive")),
            custom_patterns=_parse_custom_patterns(raw.get("customPatterns")),
            allowlist=Allowlist.from_dict(raw.get("allowlist")),
            logging=LoggingConfig.from_dict(raw.get("logging")),
            server=ServerConfig.from_dict(raw.get("server")),
            path=path,
        )

    def category_config(self, category: MatchCategory) -> CategoryConfig:
        """Config section that resolves actions for a text-pattern category.

        Custom patterns resolve through the secrets section.
        """
        if category is MatchCategory.SECRETS:
            return self.secrets
        if category is MatchCategory.PII:
            return self.pii
        if category is MatchCategory.CUSTOM:
            return self.secrets
        raise ValueError(f"Unknown match category: {category!r}")

    def custom_pattern_for(self, match_type: str) -> Optional[CustomPattern]:
        for custom in self.custom_patterns:
            if custom.type == match_type:
                return custom
        return None


def _parse_custom_patterns(raw: Any) -> tuple[CustomPattern, ...]:
    if not isinstance(raw, list):
        return ()
    parsed: list[CustomPattern] = []
    for item in raw:
        if not isinstance(item, dict):
            continue
        name = item.get("name")
        pattern = item.get("pattern")
        if not isinstance(pattern, str) or not pattern:
            continue
        parsed.append(CustomPattern(
            name=name if isinstance(name, str) else "custom",
            pattern=pattern,
            severity=_as_severity(item.get("severity")),
            action=_as_action(item.get("action"), None),
        ))
    return tuple(parsed)


def get_action_for_severity(severity: Severity, section: CategoryConfig) -> SeverityAction:
    """Severity-specific action of ``section``, else the section's default action."""
    return section.severity_actions.for_severity(severity) or section.action


# ─── Config loading ───────────────────────────────────────────────────────────


def _config_error(msg: str) -> SystemExit:
    print(msg, file=sys.stderr)
    return SystemExit(1)


def load_config(config_path: Optional[str] = None) -> GuardConfig:
    """Load and validate CallGuard configuration.

    Search order:
      1. ``config_path`` argument (if provided)
      2. ``CALLGUARD_CONFIG`` environment variable (if set)
      3. ``.callguard/config.yaml`` (current working directory)
      4. ``~/.callguard/config.yaml`` (home directory)

    If no file is found at any of these paths, returns default GuardConfig
    (not an error). If a file is found but invalid, writes error to stderr and
    raises SystemExit(1).

    Returns:
        GuardConfig with all values populated (file values merged onto defaults).

    Raises:
        SystemExit(1): On unreadable file, YAML parse error, non-mapping
                       document, missing ``version`` field, unsupported
                       version, or invalid ``CALLGUARD_PORT``.
    """
    search_paths: list[str] = []
    if config_path:
        search_paths.append(config_path)
    env_config = os.environ.get("CALLGUARD_CONFIG")
    if env_config:
        search_paths.append(env_config)
    search_paths.extend(DEFAULT_CONFIG_PATHS)

    found_path: Optional[str] = None
    for candidate in search_paths:
        expanded = os.path.expanduser(candidate)
        if os.path.isfile(expanded):
            found_path = expanded
            break

    # ── No config file found ─────────────────────────────────────────────────
    if found_path is None:
        logger.info("No config file found, using defaults", searched=search_paths)
        return _apply_env_overrides(GuardConfig.defaults())

    # ── Parse config file ─────────────────────────────────────────────────────
    logger.info("Loading config", path=found_path)

    try:
        with open(found_path) as fh:
            raw = yaml.safe_load(fh)
    except yaml.YAMLError as exc:
        raise _config_error(
            f"CONFIG ERROR: Failed to parse {found_path}: {exc}\n"
            "CallGuard refuses to start with an invalid config. "
            "Check the YAML syntax and try again."
        )
    except OSError as exc:
        raise _config_error(f"CONFIG ERROR: Could not read {found_path}: {exc}")

    if not isinstance(raw, dict):
        if raw is None:
            raise _config_error(
                f"CONFIG ERROR: {found_path} is missing the required 'version' field.\n"
                "Add 'version: 1' to the top of your config file."
            )
        raise _config_error(
            f"CONFIG ERROR: {found_path} is not a valid YAML mapping.\n"
            "The config file must be a YAML dictionary at the top level."
        )

    # ── Version validation ────────────────────────────────────────────────────
    version = raw.get("version")
    if version is None:
        raise _config_error(
            f"CONFIG ERROR: {found_path} is missing the required 'version' field.\n"
            "Add 'version: 1' to the top of your config file."
        )
    if version not in SUPPORTED_VERSIONS:
        raise _config_error(
            f"CONFIG ERROR: Unsupported config version: {version}. "
            f"Supported versions: {sorted(SUPPORTED_VERSIONS)}."
        )

    config = _apply_env_overrides(GuardConfig.from_dict(raw, path=found_path))

    # Invalid custom patterns stay in the config and are skipped per scan.
    for custom in config.custom_patterns:
        if compile_user_pattern(custom.pattern) is None:
            logger.warning(
                "Custom pattern does not compile under RE2; it will be ignored",
                name=custom.name,
            )

    if config.server.host == "0.0.0.0":
        logger.warning(
            "SECURITY WARNING: CallGuard is configured to bind on 0.0.0.0 (all interfaces). "
            "Recommended: use server.host: '127.0.0.1' for local-only access."
        )

    logger.info(
        "Config loaded",
        path=found_path,
        version=config.version,
        custom_patterns=len(config.custom_patterns),
    )
    return config


def _apply_env_overrides(config: GuardConfig) -> GuardConfig:
    """Return ``config`` with environment variable overrides applied.

    Overrides:
      CALLGUARD_PORT: replaces config.server.port (integer; raises SystemExit(1) if invalid)
    """
    env_port = os.environ.get("CALLGUARD_PORT")
    if not env_port:
        return config
    try:
        port = int(env_port)
    except ValueError:
        raise _config_error(
            f"CONFIG ERROR: CALLGUARD_PORT environment variable is not a valid "
            f"integer: {env_port!r}"
        )
    return dataclasses.replace(config, server=dataclasses.replace(config.server, port=port))
