"""CSV ingestion pipeline.

Implements the upload flow for `code,description` files:
- Validate the upload (extension, non-empty, header present)
- Stream rows with standard CSV quoting, up to a row ceiling
- Embed each accepted row's description (failures count against that row only)
- Persist rows in fixed-size chunks, each chunk its own transaction
- Pace chunk submissions so the embedding service is not saturated

Counters are folded into an immutable `IngestionResult`; nothing is shared
between invocations.
"""

from __future__ import annotations

import asyncio
import csv
import io
import logging
from collections.abc import Iterator
from dataclasses import dataclass, replace
from typing import BinaryIO

from codes.errors import (
    EmbeddingDimensionMismatch,
    EmbeddingError,
    MalformedInput,
    StoreUnitFailure,
    ValidationFailed,
)
from codes.records import CodeRecord
from config.settings import Settings
from database.vector_store import VectorStore
from embeddings.client import EmbeddingsClient

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IngestionResult:
    """Outcome of one ingestion invocation."""

    successful: int = 0
    failed: int = 0
    truncated: bool = False

    @property
    def total(self) -> int:
        return self.successful + self.failed

    def add_successful(self, count: int) -> "IngestionResult":
        return replace(self, successful=self.successful + count)

    def add_failed(self, count: int = 1) -> "IngestionResult":
        return replace(self, failed=self.failed + count)

    def mark_truncated(self) -> "IngestionResult":
        return replace(self, truncated=True)


@dataclass
class _ChunkState:
    """Rows waiting for persistence plus the number of chunks already submitted."""

    pending: list[CodeRecord]
    submitted: int = 0


def parse_row(fields: list[str]) -> CodeRecord:
    """Turn raw CSV fields into a record, or raise ValidationFailed.

    Fields are trimmed and trailing blank fields dropped; exactly two non-blank
    values (code, description) must remain.
    """
    values = [f.strip() for f in fields]
    while values and not values[-1]:
        values.pop()
    if len(values) != 2:
        raise ValidationFailed(
            f"expected 2 columns (code, description), got {len(values)}"
        )
    return CodeRecord.new(values[0], values[1])


class CsvIngestionPipeline:
    """Ingests `code,description` CSV uploads into the vector store."""

    def __init__(
        self,
        store: VectorStore,
        embedder: EmbeddingsClient,
        max_rows: int = 1000,
        chunk_size: int = 100,
        chunk_delay: float = 0.1,
    ):
        if max_rows < 1:
            raise ValueError("max_rows must be at least 1")
        if chunk_size < 1:
            raise ValueError("chunk_size must be at least 1")
        self.store = store
        self.embedder = embedder
        self.max_rows = max_rows
        self.chunk_size = chunk_size
        self.chunk_delay = chunk_delay

    @classmethod
    def from_settings(
        cls, settings: Settings, store: VectorStore, embedder: EmbeddingsClient
    ) -> "CsvIngestionPipeline":
        return cls(
            store=store,
            embedder=embedder,
            max_rows=settings.csv_max_rows,
            chunk_size=settings.csv_chunk_size,
            chunk_delay=settings.csv_chunk_delay,
        )

    # -----------------------------
    # Validating
    # -----------------------------

    @staticmethod
    def _validate_filename(filename: str | None) -> None:
        if not filename or not filename.lower().endswith(".csv"):
            raise MalformedInput("File must be a CSV")

    @staticmethod
    def _read_header(reader: Iterator[list[str]]) -> list[str]:
        try:
            for fields in reader:
                if not fields:
                    continue
                if not any(f.strip() for f in fields):
                    raise MalformedInput("CSV header row is missing")
                return fields
        except (UnicodeDecodeError, csv.Error) as e:
            raise MalformedInput(f"Unable to read CSV header: {e}") from e
        raise MalformedInput("File is empty")

    # -----------------------------
    # Embedding / Persisting
    # -----------------------------

    async def _embed_row(
        self, record: CodeRecord, row_number: int
    ) -> CodeRecord | None:
        loop = asyncio.get_running_loop()
        try:
            embedding = await loop.run_in_executor(
                None, self.embedder.embed, record.description
            )
        except EmbeddingError as e:
            logger.error(f"Error processing row {row_number}: {e}")
            return None
        return record.with_embedding(embedding)

    async def _persist_chunk(
        self, state: _ChunkState, result: IngestionResult
    ) -> IngestionResult:
        """Persist pending rows as one unit; a failed unit counts all its rows as failed."""
        chunk = state.pending
        if not chunk:
            return result

        if state.submitted:
            await asyncio.sleep(self.chunk_delay)

        state.pending = []
        state.submitted += 1
        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(None, self.store.insert_batch, chunk)
        except (StoreUnitFailure, EmbeddingDimensionMismatch) as e:
            logger.error(
                f"❌ Chunk {state.submitted} ({len(chunk)} rows) failed and was rolled back: {e}"
            )
            return result.add_failed(len(chunk))

        result = result.add_successful(len(chunk))
        logger.info(
            f"✅ Chunk {state.submitted} committed: {result.successful} codes processed so far ({result.failed} failed)"
        )
        return result

    # -----------------------------
    # Streaming
    # -----------------------------

    @staticmethod
    async def _next_row(reader: Iterator[list[str]]) -> list[str] | None:
        """Read the next CSV record off the event loop; None at end of stream."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, next, reader, None)

    def _limit_reached(self, rows_read: int) -> bool:
        if rows_read < self.max_rows:
            return False
        logger.warning(
            f"CSV upload exceeded maximum row limit of {self.max_rows}. Stopping processing."
        )
        return True

    async def _stream_rows(self, reader: Iterator[list[str]]) -> IngestionResult:
        result = IngestionResult()
        state = _ChunkState(pending=[])
        rows_read = 0

        while True:
            try:
                fields = await self._next_row(reader)
            except csv.Error as e:
                # The reader drops the offending record and resumes on the next line.
                if self._limit_reached(rows_read):
                    result = result.mark_truncated()
                    break
                rows_read += 1
                logger.warning(f"Skipping unparseable row {rows_read}: {e}")
                result = result.add_failed()
                continue
            except UnicodeDecodeError as e:
                # Rows decoded alongside the bad bytes are lost with them; the
                # pending chunk holds everything read before that block.
                result = await self._persist_chunk(state, result)
                logger.error(
                    f"Aborting CSV upload after row {rows_read}: {e} "
                    f"({result.successful} committed, {result.failed} failed)"
                )
                raise MalformedInput(
                    f"Unable to decode CSV as UTF-8 after row {rows_read}: {e}",
                    partial=result,
                ) from e

            if fields is None:
                break
            if not fields:
                continue
            if self._limit_reached(rows_read):
                result = result.mark_truncated()
                break
            rows_read += 1

            try:
                record = parse_row(fields)
            except ValidationFailed as e:
                logger.warning(f"Skipping malformed row {rows_read}: {e}")
                result = result.add_failed()
                continue

            embedded = await self._embed_row(record, rows_read)
            if embedded is None:
                result = result.add_failed()
                continue

            state.pending.append(embedded)
            if len(state.pending) >= self.chunk_size:
                result = await self._persist_chunk(state, result)

        return await self._persist_chunk(state, result)

    async def ingest(self, filename: str | None, stream: BinaryIO) -> IngestionResult:
        """Run the full pipeline for one uploaded file.

        Args:
            filename: Original file name; must end with .csv
            stream: Binary stream with UTF-8 CSV content (header line first)

        Returns:
            Counters of persisted and failed rows.

        Raises:
            MalformedInput: the file is unusable, or the stream stopped decoding
                mid-way (`partial` then holds what was committed)
        """
        self._validate_filename(filename)

        loop = asyncio.get_running_loop()
        text_stream = io.TextIOWrapper(stream, encoding="utf-8-sig", newline="")
        try:
            reader = csv.reader(text_stream)
            await loop.run_in_executor(None, self._read_header, reader)
            logger.info(f"🚀 Starting CSV ingestion of {filename}")
            result = await self._stream_rows(reader)
        finally:
            text_stream.detach()

        logger.info(
            f"🎉 CSV upload completed: {result.successful} codes processed successfully, "
            f"{result.failed} failed{' (row limit reached)' if result.truncated else ''}"
        )
        return result
