"""
Configuration module for TransactLab SDK.

Configuration is read from an encrypted vault file when one exists, otherwise
from environment variables. Recognized environment variables always override
the vault:

- TL_API_KEY: Sandbox secret (required)
- TL_WEBHOOK_SECRET: Webhook signature secret (required)
- TL_SUCCESS_URL / TL_CANCEL_URL / TL_CALLBACK_URL: Redirect targets (required)
- TL_FRONTEND_URL: Frontend base used for checkout URLs
- TL_ENVIRONMENT: sandbox or production (default: sandbox)
- TL_BASE_URL: API base URL (default: derived from TL_ENVIRONMENT)
- TL_MAX_RETRIES, TL_BACKOFF_MS, TL_TIMEOUT_MS: Retry and timeout policy
- TL_IDEMPOTENCY, TL_IDEMPOTENCY_TTL: Client-side idempotency cache
"""

import copy
import json
import logging
import os
import threading
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from pydantic import ValidationError as PydanticValidationError

from . import vault
from .exceptions import ConfigError, InvalidConfigError, MissingEnvError
from .models import Configuration, default_base_url

logger = logging.getLogger("transactlab_sdk.config")

DEFAULT_VAULT_PATH = ".vault"

REQUIRED_ENV = [
    "TL_API_KEY",
    "TL_WEBHOOK_SECRET",
    "TL_SUCCESS_URL",
    "TL_CANCEL_URL",
    "TL_CALLBACK_URL",
]


def _parse_int(name: str, raw: str) -> int:
    try:
        return int(raw.strip())
    except ValueError:
        raise InvalidConfigError(
            f"{name} must be an integer, got {raw!r}", errors={name: "not an integer"}
        )


def _parse_flag(name: str, raw: str) -> bool:
    return raw.strip().lower() != "false"


def _parse_str(name: str, raw: str) -> str:
    return raw


# Environment variable -> (dotted camelCase path, parser)
ENV_OVERRIDES: Dict[str, Tuple[str, Callable[[str, str], Any]]] = {
    "TL_API_KEY": ("apiKey", _parse_str),
    "TL_WEBHOOK_SECRET": ("webhookSecret", _parse_str),
    "TL_SUCCESS_URL": ("urls.success", _parse_str),
    "TL_CANCEL_URL": ("urls.cancel", _parse_str),
    "TL_CALLBACK_URL": ("urls.callback", _parse_str),
    "TL_FRONTEND_URL": ("urls.frontend", _parse_str),
    "TL_ENVIRONMENT": ("environment", _parse_str),
    "TL_BASE_URL": ("baseUrl", _parse_str),
    "TL_MAX_RETRIES": ("retries.maxAttempts", _parse_int),
    "TL_BACKOFF_MS": ("retries.backoffMs", _parse_int),
    "TL_TIMEOUT_MS": ("timeout", _parse_int),
    "TL_IDEMPOTENCY": ("idempotency.enabled", _parse_flag),
    "TL_IDEMPOTENCY_TTL": ("idempotency.ttlSeconds", _parse_int),
}


def set_nested(data: Dict[str, Any], path: str, value: Any) -> None:
    """
    Set a value in a nested dict using dot notation.

    Args:
        data: Target dictionary (modified in place)
        path: Property path (e.g., 'urls.success')
        value: Value to set
    """
    keys = path.split(".")
    current = data
    for key in keys[:-1]:
        if not isinstance(current.get(key), dict):
            current[key] = {}
        current = current[key]
    current[keys[-1]] = value


def deep_merge(base: Dict[str, Any], updates: Mapping[str, Any]) -> Dict[str, Any]:
    """Return a copy of ``base`` with ``updates`` merged in recursively."""
    merged = copy.deepcopy(base)
    for key, value in updates.items():
        if isinstance(value, Mapping) and isinstance(merged.get(key), dict):
            merged[key] = deep_merge(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def _to_camel(key: str) -> str:
    head, *rest = key.split("_")
    return head + "".join(part[:1].upper() + part[1:] for part in rest)


def _camelize_keys(data: Mapping[str, Any]) -> Dict[str, Any]:
    # Partial updates may use snake_case keys
    result: Dict[str, Any] = {}
    for key, value in data.items():
        if isinstance(value, Mapping):
            value = _camelize_keys(value)
        result[_to_camel(key)] = value
    return result


def validate_config(data: Mapping[str, Any]) -> Configuration:
    """
    Build a validated Configuration.

    Args:
        data: Raw configuration (camelCase or snake_case keys)

    Returns:
        Immutable Configuration

    Raises:
        InvalidConfigError: If any validation rule is violated
    """
    try:
        return Configuration.model_validate(dict(data))
    except PydanticValidationError as e:
        errors = {
            ".".join(str(part) for part in err["loc"]) or "config": err["msg"]
            for err in e.errors()
        }
        summary = "; ".join(f"{loc}: {msg}" for loc, msg in errors.items())
        raise InvalidConfigError(f"Invalid configuration: {summary}", errors=errors) from e


def merge_config(current: Configuration, partial: Mapping[str, Any]) -> Configuration:
    """
    Merge partial fields into ``current`` and validate the result.

    ``current`` is never modified; a validation failure raises and leaves the
    caller with the old value.
    """
    merged = deep_merge(current.to_dict(), _camelize_keys(partial))
    return validate_config(merged)


class ConfigStore:
    """
    Loads, validates and holds the SDK configuration.

    The committed configuration is an immutable value; ``load``, ``update`` and
    ``reload`` build a new value and swap it in under a lock, so a failed
    validation never leaves a partially updated configuration behind.

    Examples:
        >>> store = ConfigStore()
        >>> config = store.load(vault_password=os.getenv("TL_VAULT_PASSWORD"))
        >>> config.retries.max_attempts
        3
    """

    def __init__(
        self,
        vault_path: str = DEFAULT_VAULT_PATH,
        environ: Optional[Mapping[str, str]] = None,
    ):
        """
        Initialize configuration store.

        Args:
            vault_path: Path of the encrypted vault file
            environ: Environment mapping (default: os.environ)
        """
        self.vault_path = vault_path
        self._environ = environ if environ is not None else os.environ
        self._lock = threading.RLock()
        self._config: Optional[Configuration] = None

    @property
    def current(self) -> Optional[Configuration]:
        """Last committed configuration, or None before the first load."""
        return self._config

    def vault_exists(self) -> bool:
        return os.path.exists(self.vault_path)

    def load(self, vault_password: Optional[str] = None) -> Configuration:
        """
        Load configuration from vault or environment.

        Args:
            vault_password: Password for vault decryption

        Returns:
            Validated configuration

        Raises:
            VaultDecryptError: Vault exists but cannot be decrypted
            MissingEnvError: No vault and required variables are missing
            InvalidConfigError: Merged configuration is invalid
        """
        if self.vault_exists():
            raw = self._load_from_vault(vault_password)
            source = "vault"
        else:
            raw = self._load_from_env()
            source = "environment"

        raw = self._apply_env_overrides(raw)
        config = validate_config(raw)

        with self._lock:
            self._config = config

        logger.info(
            "Configuration loaded from %s (environment=%s, base_url=%s)",
            source,
            config.environment,
            config.base_url,
        )
        return config

    def reload(self, vault_password: Optional[str] = None) -> Configuration:
        """Re-read configuration sources. On failure the current configuration is kept."""
        with self._lock:
            return self.load(vault_password)

    def update(self, partial: Mapping[str, Any]) -> Configuration:
        """
        Merge partial fields into the current configuration.

        Args:
            partial: Fields to change (nested mappings are merged)

        Returns:
            New validated configuration

        Raises:
            ConfigError: If no configuration has been loaded
            InvalidConfigError: If the merged configuration is invalid
        """
        with self._lock:
            if self._config is None:
                raise ConfigError("Configuration not loaded")
            config = merge_config(self._config, partial)
            self._config = config

        logger.info("Configuration updated (%s)", ", ".join(sorted(partial.keys())))
        return config

    def save(self, config: Configuration, password: str) -> None:
        """
        Encrypt and save configuration to the vault.

        Args:
            config: Configuration to save
            password: Vault password
        """
        if not password:
            raise ConfigError("Vault password required to save configuration")
        vault.write_vault(self.vault_path, json.dumps(config.to_dict()), password)

    def _load_from_vault(self, password: Optional[str]) -> Dict[str, Any]:
        plaintext = vault.read_vault(self.vault_path, password or "")
        try:
            data = json.loads(plaintext)
        except json.JSONDecodeError as e:
            raise InvalidConfigError(f"Vault content is not valid JSON: {e}") from e
        if not isinstance(data, dict):
            raise InvalidConfigError("Vault content must be a JSON object")
        return data

    def _load_from_env(self) -> Dict[str, Any]:
        missing: List[str] = [name for name in REQUIRED_ENV if not self._environ.get(name)]
        if missing:
            raise MissingEnvError(missing)

        environment = self._environ.get("TL_ENVIRONMENT") or "sandbox"
        return {
            "environment": environment,
            "baseUrl": default_base_url(environment),
        }

    def _apply_env_overrides(self, raw: Dict[str, Any]) -> Dict[str, Any]:
        data = copy.deepcopy(raw)
        for name, (path, parse) in ENV_OVERRIDES.items():
            value = self._environ.get(name)
            if value:
                set_nested(data, path, parse(name, value))
        return data
