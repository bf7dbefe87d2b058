"""
Write places to the document store.

`upload_places` checks and writes one document at a time and reports exact
counts. `upload_places_batch` submits one transaction per chunk; its created
/ updated counts are approximate because the store does not report which
`createIfNotExists` mutations were no-ops.
"""
from __future__ import annotations

import logging
import re
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence

from domain.models import Place
from storage.store_client import StoreError

logger = logging.getLogger(__name__)

DOCUMENT_ID_MAX_LENGTH = 100
DEFAULT_BATCH_SIZE = 100

_NON_ID_CHARS = re.compile(r"[^a-z0-9-]")
_HYPHEN_RUN = re.compile(r"-+")

ACTION_CREATED = "created"
ACTION_UPDATED = "updated"
ACTION_SKIPPED = "skipped"
ACTION_FAILED = "failed"


@dataclass
class UploadOptions:
    replace: bool = False
    missing_only: bool = False
    dry_run: bool = False
    batch_size: int = DEFAULT_BATCH_SIZE
    on_progress: Optional[Callable[[int, int, Place], None]] = None


@dataclass
class UploadResult:
    success: bool
    action: str
    document_id: Optional[str] = None
    error: Optional[str] = None


@dataclass
class UploadError:
    document_id: str
    error: str


@dataclass
class BatchUploadStats:
    total: int = 0
    created: int = 0
    updated: int = 0
    skipped: int = 0
    failed: int = 0
    errors: List[UploadError] = field(default_factory=list)
    duration_ms: int = 0
    approximate: bool = False

    def record(self, result: UploadResult) -> None:
        if result.action == ACTION_CREATED:
            self.created += 1
        elif result.action == ACTION_UPDATED:
            self.updated += 1
        elif result.action == ACTION_SKIPPED:
            self.skipped += 1
        else:
            self.failed += 1
            self.errors.append(UploadError(document_id=result.document_id or "unknown", error=result.error or ""))


def _sanitize_id(value: str) -> str:
    value = _NON_ID_CHARS.sub("-", value.lower())
    value = _HYPHEN_RUN.sub("-", value).strip("-")
    return value[:DOCUMENT_ID_MAX_LENGTH].strip("-")


def generate_document_id(place: Place) -> str:
    """
    Stable store id: "<first domain>-<slug>", restricted to [a-z0-9-].

    Falls back to "place-<epoch ms>" when nothing usable remains.
    """
    domain = place.domains[0] if place.domains else "place"
    return _sanitize_id(f"{domain}-{place.slug or ''}") or f"place-{int(time.time() * 1000)}"


def assign_document_ids(places: Sequence[Place]) -> List[str]:
    """Generate ids for a batch, suffixing repeats with -2, -3, ..."""
    ids: List[str] = []
    counts: Dict[str, int] = {}
    taken: set[str] = set()
    for place in places:
        base = generate_document_id(place)
        doc_id = base
        if doc_id in taken:
            n = counts.get(base, 1)
            while doc_id in taken:
                n += 1
                suffix = f"-{n}"
                doc_id = base[: DOCUMENT_ID_MAX_LENGTH - len(suffix)] + suffix
            counts[base] = n
            logger.warning("Document id %s already used in this batch; using %s for %r", base, doc_id, place.name)
        taken.add(doc_id)
        ids.append(doc_id)
    return ids


def _upload_one(place: Place, document_id: str, client: Any, options: UploadOptions) -> UploadResult:
    try:
        exists = client.document_exists(document_id)

        if exists and options.missing_only:
            return UploadResult(success=True, action=ACTION_SKIPPED, document_id=document_id)

        if options.dry_run:
            if not exists:
                action = ACTION_CREATED
            else:
                action = ACTION_UPDATED if options.replace else ACTION_SKIPPED
            return UploadResult(success=True, action=action, document_id=document_id)

        document = place.to_document(document_id)
        if not exists:
            client.create(document)
            return UploadResult(success=True, action=ACTION_CREATED, document_id=document_id)
        if options.replace:
            client.create_or_replace(document)
            return UploadResult(success=True, action=ACTION_UPDATED, document_id=document_id)
        return UploadResult(success=True, action=ACTION_SKIPPED, document_id=document_id)
    except (StoreError, OSError) as exc:
        logger.warning("Upload failed for %s: %s", document_id, exc)
        return UploadResult(success=False, action=ACTION_FAILED, document_id=document_id, error=str(exc))


def upload_place(place: Place, client: Any, options: Optional[UploadOptions] = None) -> UploadResult:
    opts = options or UploadOptions()
    return _upload_one(place, generate_document_id(place), client, opts)


def upload_places(places: Sequence[Place], client: Any, options: Optional[UploadOptions] = None) -> BatchUploadStats:
    """Upload one by one with exact per-document accounting."""
    opts = options or UploadOptions()
    started = time.monotonic()
    stats = BatchUploadStats(total=len(places))

    for index, (place, document_id) in enumerate(zip(places, assign_document_ids(places)), start=1):
        if opts.on_progress:
            opts.on_progress(index, len(places), place)
        stats.record(_upload_one(place, document_id, client, opts))

    stats.duration_ms = int((time.monotonic() - started) * 1000)
    logger.info(
        "Upload finished: %d created, %d updated, %d skipped, %d failed",
        stats.created,
        stats.updated,
        stats.skipped,
        stats.failed,
    )
    return stats


def upload_places_batch(
    places: Sequence[Place],
    client: Any,
    options: Optional[UploadOptions] = None,
) -> BatchUploadStats:
    """
    Upload using one store transaction per `batch_size` chunk.

    With `replace` every document counts as updated, otherwise as created;
    a failed commit marks its whole chunk as failed with a single error.
    """
    opts = options or UploadOptions()
    if opts.dry_run:
        stats = upload_places(places, client, opts)
        stats.approximate = False
        return stats

    started = time.monotonic()
    stats = BatchUploadStats(total=len(places), approximate=True)
    ids = assign_document_ids(places)
    size = max(1, opts.batch_size)

    for start in range(0, len(places), size):
        chunk = list(zip(places[start:start + size], ids[start:start + size]))
        tx = client.transaction()
        for place, document_id in chunk:
            document = place.to_document(document_id)
            if opts.replace:
                tx.create_or_replace(document)
            else:
                tx.create_if_not_exists(document)
        try:
            tx.commit()
        except (StoreError, OSError) as exc:
            logger.warning("Transaction of %d documents failed: %s", len(chunk), exc)
            stats.failed += len(chunk)
            stats.errors.append(UploadError(document_id=f"batch-{start // size + 1}", error=str(exc)))
            continue
        if opts.replace:
            stats.updated += len(chunk)
        else:
            stats.created += len(chunk)
        if opts.on_progress:
            opts.on_progress(min(start + size, len(places)), len(places), chunk[-1][0])

    stats.duration_ms = int((time.monotonic() - started) * 1000)
    logger.info(
        "Batch upload finished (approximate counts): %d created, %d updated, %d failed",
        stats.created,
        stats.updated,
        stats.failed,
    )
    return stats
