# ABOUTME: Runtime configuration for the character builder, read from the environment
# ABOUTME: Honors a .env file via python-dotenv; invalid values fail loudly

import os
from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path
from typing import Mapping, Optional

from dotenv import load_dotenv

from dnd_builder.core.errors import InvalidArgumentError

STORAGE_MEMORY = "memory"
STORAGE_JSON = "json"
STORAGE_BACKENDS = (STORAGE_MEMORY, STORAGE_JSON)

DEFAULT_VAULT_PATH = Path.home() / ".dnd_builder" / "character_vault.json"
DEFAULT_SESSION_TTL_MINUTES = 60

TRUTHY = ("true", "1", "yes")


@dataclass
class BuilderConfig:
    """
    Settings for building the service and its stores.

    Attributes:
        data_path: Rules data directory (None means the bundled srd data)
        vault_path: JSON vault file used when storage is "json"
        session_ttl_minutes: Lifetime of a creation session
        storage: "memory" or "json"
        debug: Whether debug file logging is enabled
    """
    data_path: Optional[Path] = None
    vault_path: Path = DEFAULT_VAULT_PATH
    session_ttl_minutes: int = DEFAULT_SESSION_TTL_MINUTES
    storage: str = STORAGE_JSON
    debug: bool = False

    @property
    def session_ttl(self) -> timedelta:
        return timedelta(minutes=self.session_ttl_minutes)

    @classmethod
    def from_env(
        cls,
        environ: Optional[Mapping[str, str]] = None,
        load_env_file: bool = True
    ) -> "BuilderConfig":
        """
        Build a configuration from environment variables.

        Variables:
            DND_BUILDER_DATA_PATH: rules data directory
            DND_BUILDER_VAULT_PATH: JSON vault file
            DND_BUILDER_SESSION_TTL_MINUTES: session lifetime, positive integer
            DND_BUILDER_STORAGE: "memory" or "json"
            DEBUG_MODE: "true", "1" or "yes" to enable debug logging

        Args:
            environ: Mapping to read instead of os.environ (mainly for tests)
            load_env_file: Whether to load a .env file first

        Raises:
            InvalidArgumentError: If a value is malformed
        """
        if load_env_file:
            load_dotenv()
        env = os.environ if environ is None else environ

        data_path = env.get("DND_BUILDER_DATA_PATH")
        vault_path = env.get("DND_BUILDER_VAULT_PATH")

        raw_ttl = env.get("DND_BUILDER_SESSION_TTL_MINUTES", str(DEFAULT_SESSION_TTL_MINUTES))
        try:
            ttl = int(raw_ttl)
        except ValueError:
            raise InvalidArgumentError(
                f"DND_BUILDER_SESSION_TTL_MINUTES must be an integer, got {raw_ttl!r}"
            )
        if ttl <= 0:
            raise InvalidArgumentError(
                f"DND_BUILDER_SESSION_TTL_MINUTES must be positive, got {ttl}"
            )

        storage = env.get("DND_BUILDER_STORAGE", STORAGE_JSON).strip().lower()
        if storage not in STORAGE_BACKENDS:
            raise InvalidArgumentError(
                f"DND_BUILDER_STORAGE must be one of {', '.join(STORAGE_BACKENDS)}, got {storage!r}"
            )

        return cls(
            data_path=Path(data_path).expanduser() if data_path else None,
            vault_path=Path(vault_path).expanduser() if vault_path else DEFAULT_VAULT_PATH,
            session_ttl_minutes=ttl,
            storage=storage,
            debug=env.get("DEBUG_MODE", "false").strip().lower() in TRUTHY,
        )
