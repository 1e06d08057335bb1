from __future__ import annotations

import base64
import binascii
import hashlib
import json
import logging
import os
import stat
from collections.abc import Callable
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any

from cryptography.fernet import Fernet, InvalidToken

from .errors import ConfigurationError

logger = logging.getLogger(__name__)

FEDX_DIR = os.path.expanduser(os.getenv("FEDX_HOME", "~/.fedx"))
CONFIG_PATH = os.path.join(FEDX_DIR, "config.json")

_SENSITIVE_KEYS = ("client_secret", "keycloak_client_secret")
_FERNET_SALT = b"fedx-config"
_cached_cipher: Fernet | None = None
_cached_cipher_key: str | None = None


class EncryptedConfigError(ConfigurationError):
    """Raised when encrypted configuration cannot be decrypted."""


def _derive_fernet_key(raw: str) -> bytes | None:
    """Return a urlsafe base64 Fernet key derived from ``raw``."""

    normalized = raw.strip().encode("utf-8")
    if not normalized:
        return None

    try:
        decoded = base64.urlsafe_b64decode(normalized)
    except (binascii.Error, ValueError):
        decoded = b""

    if len(decoded) == 32:
        return normalized

    return base64.urlsafe_b64encode(
        hashlib.pbkdf2_hmac("sha256", normalized, _FERNET_SALT, 390_000, dklen=32)
    )


def _get_cipher() -> Fernet | None:
    global _cached_cipher, _cached_cipher_key

    key = os.getenv("FEDX_CONFIG_ENCRYPTION_KEY")
    if key != _cached_cipher_key:
        _cached_cipher = None
        _cached_cipher_key = key

    if not key:
        return None

    if _cached_cipher is not None:
        return _cached_cipher

    derived = _derive_fernet_key(key)
    if not derived:
        logger.warning("FEDX_CONFIG_ENCRYPTION_KEY is empty; storing secrets in plaintext.")
        return None

    _cached_cipher = Fernet(derived)
    return _cached_cipher


def encrypt_field(value: str | None) -> str | None:
    """Encrypt ``value`` when an encryption key is configured."""

    if value is None or value == "":
        return value

    cipher = _get_cipher()
    if cipher is None:
        return value

    token = cipher.encrypt(value.encode("utf-8"))
    return f"enc:{token.decode('utf-8')}"


def decrypt_field(value: str | None) -> str | None:
    """Decrypt ``value`` produced by :func:`encrypt_field`."""

    if value is None or value == "" or not value.startswith("enc:"):
        return value

    cipher = _get_cipher()
    if cipher is None:
        raise EncryptedConfigError(
            "Encrypted fedx configuration detected but FEDX_CONFIG_ENCRYPTION_KEY is not set."
        )

    try:
        decrypted = cipher.decrypt(value[4:].encode("utf-8"))
    except InvalidToken as exc:
        raise EncryptedConfigError(
            "Unable to decrypt fedx configuration; verify FEDX_CONFIG_ENCRYPTION_KEY."
        ) from exc
    return decrypted.decode("utf-8")


def _secure_path(path: Path) -> None:
    if not path.exists():
        return

    try:
        if os.name == "nt":
            os.chmod(path, stat.S_IREAD | stat.S_IWRITE)
        else:
            mode = stat.S_IMODE(path.stat().st_mode)
            if mode & (stat.S_IRWXG | stat.S_IRWXO):
                logger.warning("Config file %s is group/world-accessible; resetting to 0o600.", path)
            path.chmod(0o600)
    except PermissionError as exc:
        logger.warning("Unable to enforce secure permissions for %s: %s", path, exc)


def _transform_sensitive(
    profile: dict[str, Any], transform: Callable[[str], str | None]
) -> dict[str, Any]:
    payload = dict(profile)
    for key in _SENSITIVE_KEYS:
        value = payload.get(key)
        if isinstance(value, str):
            payload[key] = transform(value)
    return payload


@dataclass
class Profile:
    """Credentials used to reach Graph, ARM and the Keycloak admin API."""

    name: str
    tenant_id: str | None = None
    client_id: str | None = None
    client_secret_env: str | None = None
    client_secret: str | None = field(default=None, repr=False)
    use_device_code: bool = False
    keycloak_client_id: str | None = None
    keycloak_client_secret_env: str | None = None
    keycloak_client_secret: str | None = field(default=None, repr=False)

    def resolve_client_secret(self) -> str | None:
        if self.client_secret_env:
            value = os.getenv(self.client_secret_env)
            if value:
                return value
        return self.client_secret

    def resolve_keycloak_client_secret(self) -> str | None:
        if self.keycloak_client_secret_env:
            value = os.getenv(self.keycloak_client_secret_env)
            if value:
                return value
        return self.keycloak_client_secret


_PROFILE_FIELDS = {f.name for f in fields(Profile)}


@dataclass
class ConfigData:
    default_profile: str | None = None
    profiles: dict[str, Profile] = field(default_factory=dict)

    def default(self) -> Profile | None:
        if self.default_profile and self.default_profile in self.profiles:
            return self.profiles[self.default_profile]
        return None


class ConfigStore:
    def __init__(self, path: str | os.PathLike[str] | None = None) -> None:
        self.path = Path(path) if path else Path(CONFIG_PATH)

    def _read(self) -> dict[str, Any]:
        if not self.path.exists():
            return {"default": None, "profiles": {}}
        _secure_path(self.path)
        with self.path.open("r", encoding="utf-8") as handle:
            raw = json.load(handle)
        raw["profiles"] = {
            name: _transform_sensitive(profile, decrypt_field)
            for name, profile in raw.get("profiles", {}).items()
        }
        return raw

    def _write(self, data: dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(".tmp")
        with tmp.open("w", encoding="utf-8") as handle:
            json.dump(data, handle, indent=2)
        tmp.replace(self.path)
        _secure_path(self.path)

    def load(self) -> ConfigData:
        raw = self._read()
        profiles = {
            name: Profile(
                name=name,
                **{k: v for k, v in data.items() if k in _PROFILE_FIELDS and k != "name"},
            )
            for name, data in raw.get("profiles", {}).items()
        }
        return ConfigData(default_profile=raw.get("default"), profiles=profiles)

    def save(self, cfg: ConfigData) -> None:
        self._write(
            {
                "default": cfg.default_profile,
                "profiles": {
                    name: _transform_sensitive(asdict(profile), encrypt_field)
                    for name, profile in cfg.profiles.items()
                },
            }
        )

    def add_or_update_profile(self, profile: Profile, *, set_default: bool = False) -> ConfigData:
        """Persist ``profile`` and optionally set it as default."""

        cfg = self.load()
        cfg.profiles[profile.name] = profile
        if set_default or not cfg.default_profile:
            cfg.default_profile = profile.name
        self.save(cfg)
        return cfg

    def set_default_profile(self, name: str) -> ConfigData:
        """Mark the profile ``name`` as the default profile."""

        cfg = self.load()
        if name not in cfg.profiles:
            raise KeyError(f"Profile '{name}' not found")
        cfg.default_profile = name
        self.save(cfg)
        return cfg

    def delete_profile(self, name: str) -> ConfigData:
        cfg = self.load()
        if name not in cfg.profiles:
            raise KeyError(f"Profile '{name}' not found")
        del cfg.profiles[name]
        if cfg.default_profile == name:
            cfg.default_profile = None
        self.save(cfg)
        return cfg


__all__ = [
    "CONFIG_PATH",
    "ConfigData",
    "ConfigStore",
    "EncryptedConfigError",
    "Profile",
    "decrypt_field",
    "encrypt_field",
]
