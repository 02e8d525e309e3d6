"""
Configuration for the servald.io module.

Defines ClientSettings, a frozen dataclass carrying runtime configuration for the HTTP
transport used by the list clients. Defaults target a servald daemon on localhost.

Precedence
- environment (SERVALD_*) > TOML (servald.toml or pyproject [tool.servald.client]) > defaults

Notes
- Invalid or unparsable values are ignored and the previous value is kept.
- Timeouts belong to the transport; the streaming decoder itself never times out.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any

try:  # Python 3.11+ stdlib TOML parser
    import tomllib  # type: ignore
except Exception:  # pragma: no cover - environments without tomllib
    tomllib = None  # type: ignore[assignment]

DEFAULT_BASE_URL = "http://127.0.0.1:4110"


@dataclass(frozen=True)
class ClientSettings:
    """
    Runtime settings for servald RESTful clients.

    Attributes:
        base_url (str): Scheme, host and port of the servald HTTP server.
        username (str | None): RESTful API user (HTTP basic auth); None disables auth.
        password (str | None): RESTful API password.
        timeout (float): Read/write/pool timeout in seconds.
        connect_timeout (float): Connection timeout in seconds.
        read_chunk_size (int): Bytes requested per read while streaming a body (>=1).
        verify_ssl (bool): Verify TLS certificates for https base URLs.

    Examples:
        >>> from servald.io.config import ClientSettings
        >>> ClientSettings(base_url="http://localhost:4110", username="api")  # doctest: +ELLIPSIS
        ClientSettings(...)
    """

    base_url: str = DEFAULT_BASE_URL
    username: str | None = None
    password: str | None = None
    timeout: float = 30.0
    connect_timeout: float = 10.0
    read_chunk_size: int = 64 * 1024
    verify_ssl: bool = True

    @property
    def auth(self) -> tuple[str, str] | None:
        if self.username is None:
            return None
        return (self.username, self.password or "")

    # Configuration loaders (env/TOML) with precedence: env > TOML > defaults.

    @classmethod
    def _apply_mapping(cls, base: ClientSettings, cfg: dict[str, Any] | None) -> ClientSettings:
        """Apply a loose config mapping onto ClientSettings, returning a new instance."""
        if not isinstance(cfg, dict):
            return base

        s = base

        def _bool(v: Any) -> bool:
            if isinstance(v, bool):
                return v
            if isinstance(v, (int, float)):
                return bool(v)
            if isinstance(v, str):
                return v.strip().lower() in {"1", "true", "t", "yes", "y", "on"}
            return False

        if "base_url" in cfg and isinstance(cfg["base_url"], str) and cfg["base_url"]:
            s = replace(s, base_url=cfg["base_url"].rstrip("/"))

        for key in ("username", "password"):
            if key in cfg and isinstance(cfg[key], str):
                s = replace(s, **{key: cfg[key]})

        for key in ("timeout", "connect_timeout"):
            if key in cfg:
                try:
                    value = float(cfg[key])
                except (TypeError, ValueError):
                    continue
                if value > 0:
                    s = replace(s, **{key: value})

        if "read_chunk_size" in cfg:
            try:
                size = int(cfg["read_chunk_size"])
            except (TypeError, ValueError):
                size = 0
            if size >= 1:
                s = replace(s, read_chunk_size=size)

        if "verify_ssl" in cfg:
            s = replace(s, verify_ssl=_bool(cfg["verify_ssl"]))

        return s

    @classmethod
    def from_env(
        cls, base: ClientSettings | None = None, prefix: str = "SERVALD_"
    ) -> ClientSettings:
        """
        Build ClientSettings from environment variables. Precedence is env > base (if provided) > defaults.

        Recognized variables:
            - SERVALD_BASE_URL
            - SERVALD_USERNAME
            - SERVALD_PASSWORD
            - SERVALD_TIMEOUT
            - SERVALD_CONNECT_TIMEOUT
            - SERVALD_READ_CHUNK_SIZE
            - SERVALD_VERIFY_SSL (1/0/true/false/yes/no/on/off)
        """
        s = base or cls()
        mapping: dict[str, Any] = {}
        for key in (
            "base_url",
            "username",
            "password",
            "timeout",
            "connect_timeout",
            "read_chunk_size",
            "verify_ssl",
        ):
            v = os.getenv(prefix + key.upper())
            if v:
                mapping[key] = v
        return cls._apply_mapping(s, mapping)

    @classmethod
    def from_toml(cls, path: str | os.PathLike[str] | None = None) -> ClientSettings:
        """
        Build ClientSettings from a TOML file.

        Search order when `path` is None:
            1) ./servald.toml (with either a [client] table or top-level keys)
            2) ./pyproject.toml under [tool.servald.client]

        Returns defaults if no file is present or tomllib is unavailable.
        """
        s = cls()
        if tomllib is None:
            return s

        def _load_toml(p: Path) -> dict[str, Any] | None:
            try:
                with p.open("rb") as fh:
                    return tomllib.load(fh)  # type: ignore[union-attr]
            except (OSError, ValueError):
                return None

        cand: list[Path] = []
        if path is not None:
            cand.append(Path(path))
        else:
            cand.append(Path.cwd() / "servald.toml")
            cand.append(Path.cwd() / "pyproject.toml")

        cfg: dict[str, Any] | None = None
        for p in cand:
            if not p.exists():
                continue
            data = _load_toml(p)
            if not isinstance(data, dict):
                continue
            if p.name == "pyproject.toml":
                tool = data.get("tool", {})
                cfg = tool.get("servald", {}).get("client") if isinstance(tool, dict) else None
            elif isinstance(data.get("client"), dict):
                cfg = data["client"]
            else:
                cfg = data
            if cfg:
                break

        return cls._apply_mapping(s, cfg)

    @classmethod
    def load(cls, path: str | os.PathLike[str] | None = None) -> ClientSettings:
        """
        Load ClientSettings applying precedence: environment > TOML > defaults.

        Args:
            path: Optional explicit TOML path. If None, search defaults (servald.toml, pyproject.toml).
        """
        s = cls.from_toml(path)
        return cls.from_env(base=s)
