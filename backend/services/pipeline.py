"""
End-to-end run: normalize -> validate -> dedupe -> (enrich) -> (upload).
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, List, Optional, Sequence

from domain.models import Place, RawRecord
from services.deduplicator import DeduplicationResult, deduplicate_within_batch
from services.normalizer import DataNormalizer, NormalizerOptions
from services.places_enrichment import EnrichmentResult, PlacesEnricher
from services.uploader import BatchUploadStats, UploadOptions, upload_places, upload_places_batch
from services.validator import BatchValidation, validate_places
from settings import settings

logger = logging.getLogger(__name__)


@dataclass
class PipelineOptions:
    normalizer: NormalizerOptions = field(default_factory=NormalizerOptions)
    dedup_threshold_m: float = field(default_factory=lambda: settings.DEDUP_THRESHOLD_METERS)
    keep_duplicates: bool = False
    # Validation is advisory unless set: drop records with errors before dedup.
    drop_invalid: bool = False
    upload: UploadOptions = field(default_factory=UploadOptions)
    use_batch_upload: bool = False


@dataclass
class PipelineReport:
    places: List[Place]
    validation: BatchValidation
    deduplication: DeduplicationResult
    enrichment: Optional[EnrichmentResult] = None
    upload: Optional[BatchUploadStats] = None


def run_pipeline(
    raws: Sequence[RawRecord],
    options: Optional[PipelineOptions] = None,
    enricher: Optional[PlacesEnricher] = None,
    store_client: Any = None,
) -> PipelineReport:
    opts = options or PipelineOptions()

    places = DataNormalizer(opts.normalizer).normalize_all(raws)
    logger.info("Normalized %d records", len(places))

    validation = validate_places(places)
    if opts.drop_invalid:
        places = [r.place for r in validation.results if r.validation.valid]

    dedup = deduplicate_within_batch(places, opts.dedup_threshold_m)
    if not opts.keep_duplicates:
        places = list(dedup.unique)

    enrichment = None
    if enricher is not None:
        enrichment = enricher.enrich(places)
        places = enrichment.places

    upload = None
    if store_client is not None:
        uploader = upload_places_batch if opts.use_batch_upload else upload_places
        upload = uploader(places, store_client, opts.upload)

    return PipelineReport(
        places=places,
        validation=validation,
        deduplication=dedup,
        enrichment=enrichment,
        upload=upload,
    )
