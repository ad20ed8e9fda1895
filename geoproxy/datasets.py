from enum import Enum
from typing import Dict, List, Optional, Tuple
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from geoproxy.settings import Settings


class DatasetKind(str, Enum):
    flood = "flood"
    water = "water"


# Unmatched and root paths resolve here; it is the dataset earlier
# single-endpoint deployments served.
DEFAULT_KIND = DatasetKind.flood


def _defaults(record_count: int) -> List[Tuple[str, str]]:
    return [
        ("f", "geojson"),
        ("returnGeometry", "true"),
        ("outFields", "*"),
        ("where", "1=1"),
        ("resultRecordCount", str(record_count)),
    ]


DEFAULT_PARAMS: Dict[DatasetKind, List[Tuple[str, str]]] = {
    DatasetKind.flood: _defaults(200),
    DatasetKind.water: _defaults(1000),
}


def upstream_for(settings: Settings, kind: DatasetKind) -> Optional[str]:
    if kind is DatasetKind.flood:
        return settings.upstream_flood or None
    if kind is DatasetKind.water:
        return settings.upstream_water
    return None


def select_dataset(path: str, settings: Settings) -> DatasetKind:
    """Pick the dataset kind from the last path segment.

    Only kinds with a configured upstream are routable; anything else
    (including ``/``) resolves to DEFAULT_KIND.
    """
    trimmed = (path or "").rstrip("/")
    last = trimmed.rsplit("/", 1)[-1].strip().lower()
    try:
        kind = DatasetKind(last)
    except ValueError:
        return DEFAULT_KIND
    if upstream_for(settings, kind) is None:
        return DEFAULT_KIND
    return kind


def merge_params(query: str, kind: DatasetKind) -> str:
    """Fill dataset defaults for absent keys; inbound values always win.

    A key present with an empty value counts as present.
    """
    pairs = parse_qsl(query or "", keep_blank_values=True)
    present = {k for k, _ in pairs}
    for key, value in DEFAULT_PARAMS[kind]:
        if key not in present:
            pairs.append((key, value))
    return urlencode(pairs, safe="*")


def upstream_url(base: str, merged_query: str) -> str:
    # The base URL's own query string is replaced, not extended.
    parts = urlsplit(base)
    return urlunsplit((parts.scheme, parts.netloc, parts.path, merged_query, ""))
