"""JSON file-backed persistence for the whole chirpy document.

Every operation reads the document from disk; every mutation writes it back
in full. Reads take the shared side of the file's lock, writes the exclusive
side. Read-modify-write sequences must go through ``transaction()`` so the
exclusive lock covers the whole sequence.
"""

import json
import logging
import os
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from pydantic import ValidationError

from chirpy.document import Document
from chirpy.errors import CorruptStore, IOFailure
from chirpy.locks import lock_for

logger = logging.getLogger(__name__)


class JsonDocumentStore:

    def __init__(self, path):
        self.path = Path(path)
        self._lock = lock_for(self.path)
        self.ensure()

    def ensure(self):
        """Create the data file holding an empty document if it does not exist yet."""
        with self._lock.write():
            if self.path.exists():
                return
            self._write(Document())
            logger.info(f"Created empty data file at {self.path}")

    def load(self) -> Document:
        with self._lock.read():
            return self._read()

    def save(self, document: Document):
        with self._lock.write():
            self._write(document)

    @contextmanager
    def transaction(self) -> Iterator[Document]:
        """Load, let the caller mutate, then save, all under the exclusive lock.

        If the body raises, nothing is written.
        """
        with self._lock.write():
            document = self._read()
            yield document
            self._write(document)

    def _read(self) -> Document:
        if not self.path.exists():
            return Document()
        try:
            text = self.path.read_text(encoding="utf-8")
        except UnicodeDecodeError as e:
            logger.warning(f"Data file {self.path} is corrupt: {e}")
            raise CorruptStore(f"Malformed data file {self.path}") from e
        except OSError as e:
            raise IOFailure(f"Could not read {self.path}: {e}") from e
        if not text.strip():
            return Document()
        try:
            return Document.model_validate(json.loads(text))
        except (json.JSONDecodeError, ValidationError) as e:
            logger.warning(f"Data file {self.path} is corrupt: {e}")
            raise CorruptStore(f"Malformed data file {self.path}") from e

    def _write(self, document: Document):
        payload = json.dumps(document.model_dump(mode="json"), ensure_ascii=False, indent=2)
        tmp_name = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp"
            )
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, self.path)
        except OSError as e:
            if tmp_name and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise IOFailure(f"Could not write {self.path}: {e}") from e
