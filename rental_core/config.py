"""Environment-driven settings for the rental record store."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Mapping, Optional

from .models import DEFAULT_SCHEMAS

DEFAULT_DATA_DIR = "data"
ENV_PREFIX = "RENTAL_STORE_"


def _env_flag(value: Optional[str], default: bool) -> bool:
    if value is None or not value.strip():
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


@dataclass
class StoreSettings:
    data_dir: Path = Path(DEFAULT_DATA_DIR)
    collection_paths: Dict[str, Path] = field(default_factory=dict)
    cache: bool = True

    @classmethod
    def from_env(
        cls,
        environ: Optional[Mapping[str, str]] = None,
        *,
        data_dir: Optional[Path] = None,
    ) -> "StoreSettings":
        """Build settings from ``RENTAL_STORE_*`` variables.

        ``RENTAL_STORE_<NAME>_PATH`` overrides the file of one collection, e.g.
        ``RENTAL_STORE_BOOKINGS_PATH=/srv/rental/BookingStorage.json``.
        """
        env = os.environ if environ is None else environ
        base = Path(data_dir or env.get(f"{ENV_PREFIX}DATA_DIR") or DEFAULT_DATA_DIR)
        paths: Dict[str, Path] = {}
        for name in DEFAULT_SCHEMAS:
            override = env.get(f"{ENV_PREFIX}{name.upper()}_PATH")
            if override:
                paths[name] = Path(override)
        return cls(
            data_dir=base,
            collection_paths=paths,
            cache=_env_flag(env.get(f"{ENV_PREFIX}CACHE"), True),
        )
