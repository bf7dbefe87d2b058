"""
Place processing API routes.

Stateless helpers over the pipeline stages: normalize raw records, validate
an NDJSON stream, deduplicate a batch of place documents.
"""
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel

from domain.models import Place, raw_record_from_dict
from services.deduplicator import deduplicate_within_batch
from services.normalizer import DataNormalizer, NormalizerOptions
from services.validator import validate_ndjson_content
from settings import settings

router = APIRouter()


class NormalizeRequest(BaseModel):
    records: List[Dict[str, Any]]
    domain: Optional[str] = None
    default_category: Optional[str] = None
    include_raw_data: bool = False


class NormalizeResponse(BaseModel):
    documents: List[Dict[str, Any]]


class LineErrorModel(BaseModel):
    line: int
    error: str


class ValidateResponse(BaseModel):
    valid: bool
    record_count: int
    line_errors: List[LineErrorModel]


class DeduplicateRequest(BaseModel):
    documents: List[Dict[str, Any]]
    threshold_meters: Optional[float] = None


class DuplicateModel(BaseModel):
    name: str
    slug: str
    matched_against: str
    matched_name: str
    distance_m: float


class DeduplicateResponse(BaseModel):
    unique: List[Dict[str, Any]]
    duplicates: List[DuplicateModel]


@router.post("/normalize", response_model=NormalizeResponse)
async def normalize_records(payload: NormalizeRequest):
    """Normalize raw scrape / takeout / provider records into place documents."""
    raws = []
    for index, record in enumerate(payload.records):
        try:
            raws.append(raw_record_from_dict(record))
        except ValueError as exc:
            raise HTTPException(status_code=422, detail=f"records[{index}]: {exc}")

    normalizer = DataNormalizer(
        NormalizerOptions(
            domain=payload.domain,
            default_category=payload.default_category,
            include_raw_data=payload.include_raw_data,
        )
    )
    return NormalizeResponse(documents=[p.to_document() for p in normalizer.normalize_all(raws)])


@router.post("/validate", response_model=ValidateResponse)
async def validate_stream(request: Request):
    """Validate an NDJSON body line by line."""
    body = await request.body()
    try:
        content = body.decode("utf-8")
    except UnicodeDecodeError:
        raise HTTPException(status_code=400, detail="Body must be UTF-8 encoded NDJSON")

    result = validate_ndjson_content(content)
    return ValidateResponse(
        valid=result.valid,
        record_count=result.record_count,
        line_errors=[LineErrorModel(line=e.line, error=e.error) for e in result.line_errors],
    )


@router.post("/deduplicate", response_model=DeduplicateResponse)
async def deduplicate_documents(payload: DeduplicateRequest):
    places: List[Place] = []
    for index, doc in enumerate(payload.documents):
        try:
            places.append(Place.from_document(doc))
        except ValueError as exc:
            raise HTTPException(status_code=422, detail=f"documents[{index}]: {exc}")

    threshold = payload.threshold_meters
    if threshold is None:
        threshold = settings.DEDUP_THRESHOLD_METERS
    result = deduplicate_within_batch(places, threshold)
    return DeduplicateResponse(
        unique=[p.to_document() for p in result.unique],
        duplicates=[
            DuplicateModel(
                name=d.place.name,
                slug=d.place.slug,
                matched_against=d.matched_against,
                matched_name=d.matched_name,
                distance_m=round(d.distance_m, 2),
            )
            for d in result.duplicates
        ],
    )
