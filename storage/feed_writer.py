"""Writer for the normalized showtime feed."""
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Union

from processor.errors import SerializationError
from processor.models import OutputDocument

logger = logging.getLogger(__name__)


class FeedWriter:
    """Serializes the output document to a JSON file."""

    def __init__(self, output_path: Union[str, Path] = 'data/events.json'):
        """
        Initialize the writer.

        Args:
            output_path: Destination file, replaced wholesale on each write
        """
        self.output_path = Path(output_path)
        logger.info(f"Initialized FeedWriter for path: {self.output_path}")

    def write(self, document: OutputDocument) -> Path:
        """
        Write the document, replacing any previous output.

        The JSON is written to a temporary file beside the target and moved
        into place, so readers never see a partial document.

        Args:
            document: Output document from the run

        Returns:
            Path of the written file

        Raises:
            SerializationError: If the document cannot be encoded or written
        """
        tmp_path = None
        try:
            payload = json.dumps(document.to_dict(), indent=2, ensure_ascii=False)

            self.output_path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(
                dir=self.output_path.parent,
                prefix=f".{self.output_path.name}.",
                suffix='.tmp',
            )
            with os.fdopen(fd, 'w', encoding='utf-8') as handle:
                handle.write(payload)
                handle.write('\n')
            os.replace(tmp_path, self.output_path)
            tmp_path = None

        except (OSError, TypeError, ValueError) as e:
            logger.error(f"Failed to write feed to {self.output_path}: {e}")
            raise SerializationError(str(self.output_path), e) from e

        finally:
            if tmp_path is not None and os.path.exists(tmp_path):
                os.remove(tmp_path)

        logger.info(
            f"Wrote {len(document.events)} events to {self.output_path}"
        )
        return self.output_path
