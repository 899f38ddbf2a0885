"""Queue persistence across restarts."""

import json
import logging
from pathlib import Path

from pydantic import ValidationError

from castqueue.queue.models import QueueSnapshot
from castqueue.utils.errors import PersistenceError

logger = logging.getLogger(__name__)


class QueueStore:
    """Saves and loads a queue snapshot as JSON.

    Example:
        >>> store = QueueStore(Path("~/.local/share/castqueue"))
        >>> store.save(queue.snapshot())
        >>> queue.restore(store.load(), resolver)
    """

    FILE_NAME = "queue.json"

    def __init__(self, data_dir: Path) -> None:
        """Initialize queue store.

        Args:
            data_dir: Directory for the queue file
        """
        self.data_dir = data_dir
        self.path = data_dir / self.FILE_NAME

    def save(self, snapshot: QueueSnapshot) -> Path:
        """Save snapshot to disk.

        Uses atomic write (write to temp file, then rename) to prevent corruption.

        Returns:
            Path to saved queue file

        Raises:
            PersistenceError: If the file cannot be written
        """
        temp_file = self.path.with_suffix(".tmp")

        try:
            self.data_dir.mkdir(parents=True, exist_ok=True)
            with temp_file.open("w") as f:
                json.dump(snapshot.model_dump(mode="json"), f, indent=2)

            temp_file.replace(self.path)
            return self.path

        except OSError as e:
            if temp_file.exists():
                temp_file.unlink()
            raise PersistenceError(f"Failed to save queue: {e}") from e

    def load(self) -> QueueSnapshot:
        """Load the saved snapshot.

        Returns:
            Saved snapshot, or an empty one if the file is missing or corrupt
        """
        if not self.path.exists():
            return QueueSnapshot()

        try:
            with self.path.open("r") as f:
                data = json.load(f)
            return QueueSnapshot.model_validate(data)
        except (json.JSONDecodeError, ValidationError, OSError) as e:
            logger.warning("Ignoring unreadable queue file %s: %s", self.path, e)
            return QueueSnapshot()
