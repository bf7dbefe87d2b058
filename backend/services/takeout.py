"""
Convert a saved-places GeoJSON export (FeatureCollection) into Places.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, List, Mapping, Optional, Union

from domain.models import Place, TakeoutFeature
from services.normalizer import DataNormalizer, NormalizerOptions

logger = logging.getLogger(__name__)


@dataclass
class ConvertOptions:
    domain: Optional[str] = None
    default_category: Optional[str] = None
    # Skip features whose coordinates are [0, 0].
    require_coordinates: bool = False


@dataclass
class ConvertResult:
    places: List[Place] = field(default_factory=list)
    skipped: int = 0
    errors: List[str] = field(default_factory=list)


def convert_takeout(geojson: Mapping[str, Any], options: Optional[ConvertOptions] = None) -> ConvertResult:
    """
    Convert every feature of a FeatureCollection.

    Features without a title, with unreadable geometry, or (when
    `require_coordinates` is set) without coordinates are skipped and counted.
    """
    if not isinstance(geojson, Mapping) or geojson.get("type") != "FeatureCollection":
        raise ValueError("Input is not a GeoJSON FeatureCollection")
    features = geojson.get("features")
    if not isinstance(features, list):
        raise ValueError("FeatureCollection has no features array")

    opts = options or ConvertOptions()
    normalizer = DataNormalizer(
        NormalizerOptions(domain=opts.domain, default_category=opts.default_category)
    )
    result = ConvertResult()

    for index, raw_feature in enumerate(features):
        try:
            feature = TakeoutFeature.from_feature(raw_feature)
        except (ValueError, TypeError, AttributeError) as exc:
            result.skipped += 1
            result.errors.append(f"Feature {index}: {exc}")
            continue

        if not feature.title:
            result.skipped += 1
            result.errors.append(f"Feature {index}: missing Title property")
            continue

        if opts.require_coordinates and not feature.has_coordinates:
            result.skipped += 1
            result.errors.append(f"{feature.title}: Missing valid coordinates")
            continue

        result.places.append(normalizer.normalize(feature))

    if result.skipped:
        logger.warning("Takeout conversion skipped %d of %d features", result.skipped, len(features))
    logger.info("Converted %d places from takeout export", len(result.places))
    return result


def convert_takeout_file(path: Union[str, Path], options: Optional[ConvertOptions] = None) -> ConvertResult:
    with open(path, "r", encoding="utf-8") as fh:
        geojson = json.load(fh)
    return convert_takeout(geojson, options)
