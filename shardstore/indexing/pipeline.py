"""
Indexing pipeline helpers: text processors, file line reading and batched embedding.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Callable, Iterator, List, Optional, Sequence, Tuple

from tqdm import tqdm

from shardstore.embeddings.base import Embedder
from shardstore.errors import ShardStoreError

# fn(text, source_path, line_number) -> replacement text, or None to veto
Processor = Callable[[str, Optional[str], Optional[int]], Optional[str]]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProcessedText:
    """
    One unit of input after the pre/post-processors ran.

    `embed_text` is what gets embedded, `stored_text` what the Document keeps.
    Both derive from `source_text` independently. `None` in either marks a veto.
    """

    source_text: str
    embed_text: str | None
    stored_text: str | None
    source_path: str | None = None
    line_number: int | None = None

    @property
    def vetoed_by_preprocessor(self) -> bool:
        return self.embed_text is None

    @property
    def vetoed_by_postprocessor(self) -> bool:
        return self.embed_text is not None and self.stored_text is None

    @property
    def accepted(self) -> bool:
        return self.embed_text is not None and self.stored_text is not None


def process_text(
    text: str,
    preprocessor: Processor | None = None,
    postprocessor: Processor | None = None,
    source_path: str | None = None,
    line_number: int | None = None,
) -> ProcessedText:
    """Run the preprocessor, then (unless it vetoed) the postprocessor, on `text`."""
    embed_text = preprocessor(text, source_path, line_number) if preprocessor else text
    if embed_text is None:
        return ProcessedText(text, None, None, source_path, line_number)
    stored_text = postprocessor(text, source_path, line_number) if postprocessor else text
    return ProcessedText(text, embed_text, stored_text, source_path, line_number)


def read_lines(path: str | os.PathLike) -> Iterator[Tuple[int, str]]:
    """Yield `(line_number, line)` for non-blank lines, numbering from 1."""
    with open(path, "r", encoding="utf-8") as fh:
        for line_number, raw in enumerate(fh, start=1):
            line = raw.rstrip("\r\n")
            if not line.strip():
                continue
            yield line_number, line


def collect_file_texts(
    path: str | os.PathLike,
    preprocessor: Processor | None = None,
    postprocessor: Processor | None = None,
    logger_: logging.Logger | None = None,
) -> List[ProcessedText]:
    """
    Process a file line by line.

    A preprocessor veto skips that line only. A postprocessor veto stops
    reading; lines accepted before it are still returned.
    """
    log = logger_ or logger
    source_path = os.fspath(path)
    accepted: List[ProcessedText] = []
    skipped = 0

    for line_number, line in read_lines(path):
        processed = process_text(line, preprocessor, postprocessor, source_path, line_number)
        if processed.vetoed_by_preprocessor:
            skipped += 1
            continue
        if processed.vetoed_by_postprocessor:
            log.warning(
                "Postprocessor veto, remaining file skipped",
                extra={"path": source_path, "line_number": line_number},
            )
            break
        accepted.append(processed)

    log.info(
        "Processed file",
        extra={"path": source_path, "accepted": len(accepted), "skipped": skipped},
    )
    return accepted


def embed_in_batches(
    texts: Sequence[str],
    embedder: Embedder,
    batch_size: int,
    show_progress: bool = False,
) -> List[List[float]]:
    """Embed `texts` through `embedder.get_vectors`, `batch_size` at a time, preserving order."""
    vectors: List[List[float]] = []
    for i in tqdm(
        range(0, len(texts), batch_size),
        desc="Embedding",
        unit="batch",
        disable=not show_progress,
    ):
        batch = list(texts[i : i + batch_size])
        embedded = embedder.get_vectors(batch)
        if len(embedded) != len(batch):
            raise ShardStoreError(
                f"Embedding provider returned {len(embedded)} vectors for {len(batch)} texts"
            )
        vectors.extend(embedded)
    return vectors


__all__ = [
    "Processor",
    "ProcessedText",
    "process_text",
    "read_lines",
    "collect_file_texts",
    "embed_in_batches",
]
