"""Crash-safe storage of the publish state."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from monopub.errors import StateError
from monopub.state.models import PackagePublishState, PackageStatus, PublishState, utc_now_iso

logger = logging.getLogger(__name__)

STATE_DIR = ".monopub"
STATE_FILE = "publish-state.json"


def default_state_path(root: Path) -> Path:
    """State file location for a workspace root."""
    return root / STATE_DIR / STATE_FILE


class StateStore:
    """Durable record of one run's package states.

    Every write goes to a temporary file that is flushed, fsynced, and
    renamed over the previous record, so a crash leaves either the old or
    the new document on disk.

    Attributes:
        path: State file path.
    """

    def __init__(self, path: Path) -> None:
        self.path = path

    @property
    def _tmp_path(self) -> Path:
        return self.path.with_name(self.path.name + ".tmp")

    def exists(self) -> bool:
        return self.path.exists()

    def load(self) -> PublishState | None:
        """Load the persisted state.

        Returns:
            The state, or None when no record exists.

        Raises:
            StateError: If the record exists but cannot be parsed.
        """
        try:
            content = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            logger.debug("No publish state found at %s", self.path)
            return None
        except OSError as e:
            raise StateError(f"Cannot read publish state {self.path}: {e}") from e
        except UnicodeDecodeError as e:
            raise StateError(f"Corrupt publish state {self.path}: not valid UTF-8") from e

        try:
            state = PublishState.model_validate_json(content)
        except ValidationError as e:
            raise StateError(f"Corrupt publish state {self.path}: {e}") from e

        logger.debug("Loaded publish state from %s", self.path)
        return state

    def save(self, state: PublishState) -> None:
        """Atomically write the state.

        Raises:
            StateError: If the record cannot be written.
        """
        state.last_updated = utc_now_iso()
        payload = state.model_dump_json(indent=2, exclude_none=True) + "\n"
        tmp = self._tmp_path
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with tmp.open("w", encoding="utf-8") as handle:
                handle.write(payload)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp, self.path)
        except OSError as e:
            tmp.unlink(missing_ok=True)
            raise StateError(f"Cannot write publish state {self.path}: {e}") from e

    def update(self, state: PublishState, name: str, **changes: Any) -> PackagePublishState:
        """Merge changes into one package's state and save.

        Returns only after the record is on disk.

        Args:
            state: In-memory state to mutate.
            name: Package name.
            **changes: PackagePublishState fields to set.

        Returns:
            The updated package state.
        """
        unknown = set(changes) - set(PackagePublishState.model_fields)
        if unknown:
            raise ValueError(f"Unknown package state fields: {', '.join(sorted(unknown))}")

        current = state.packages.get(name) or PackagePublishState()
        merged = PackagePublishState.model_validate(
            {**current.model_dump(), **changes, "timestamp": utc_now_iso()}
        )
        state.packages[name] = merged
        self.save(state)
        return merged

    def reset(self, state: PublishState) -> PublishState:
        """Replace any prior record with a fresh run's state."""
        self.clear()
        self.save(state)
        return state

    def clear(self) -> None:
        """Delete the persisted record."""
        try:
            self.path.unlink()
            logger.debug("Cleared publish state at %s", self.path)
        except FileNotFoundError:
            pass


def get_packages_needing_recovery(state: PublishState) -> list[str]:
    """Names of packages that failed or were interrupted mid-publish."""
    return sorted(
        name
        for name, pkg in state.packages.items()
        if pkg.status == PackageStatus.FAILED or pkg.needs_recovery
    )


def get_published_packages(state: PublishState) -> list[str]:
    """Names of packages already published."""
    return state.names_with_status(PackageStatus.PUBLISHED)
