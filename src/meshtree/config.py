"""Settings consumed by the built-in backends.

Settings are read once (usually via :meth:`Settings.from_env`) and handed to
plugin factories through the :class:`~meshtree.plugins.resolver.ServiceResolver`.
A plugin reload picks up whatever ``Settings`` instance the resolver holds at
that moment, so swapping it in the resolver is how reconfiguration happens.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

_API_KEY_SUFFIX = "_API_KEY"


def _default_data_dir() -> Path:
    return Path.home() / ".meshtree"


@dataclass(frozen=True)
class Settings:
    """Backend configuration.  ``None`` means "not configured"."""

    local_root: str | None = None
    """Root directory for the "Local Files" plugin."""

    obsidian_vault_path: str | None = None
    """Vault directory for the "Obsidian" plugin."""

    notes_database_url: str | None = None
    """SQLAlchemy URL for the "Notes" plugin."""

    data_dir: Path = field(default_factory=_default_data_dir)
    """Directory for local state (default notes database lives here)."""

    api_keys: dict[str, str] = field(default_factory=dict)
    """Provider API keys keyed by lower-case provider name, e.g. ``"claude"``."""

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> Settings:
        """Build settings from ``MESHTREE_*``, ``OBSIDIAN_VAULT_PATH`` and ``*_API_KEY``."""
        env = dict(os.environ if environ is None else environ)

        api_keys = {
            key[: -len(_API_KEY_SUFFIX)].lower(): value
            for key, value in env.items()
            if key.endswith(_API_KEY_SUFFIX) and value.strip()
        }

        data_dir = env.get("MESHTREE_DATA_DIR")
        return cls(
            local_root=env.get("MESHTREE_LOCAL_ROOT") or None,
            obsidian_vault_path=env.get("OBSIDIAN_VAULT_PATH") or None,
            notes_database_url=env.get("MESHTREE_NOTES_URL") or None,
            data_dir=Path(data_dir) if data_dir else _default_data_dir(),
            api_keys=api_keys,
        )

    def api_key(self, provider: str) -> str | None:
        """Look up the API key for *provider* (case-insensitive)."""
        return self.api_keys.get(provider.lower()) or None
