"""
Catalog discovery - map human readable model/variable descriptions to dataset URLs.

The archive publishes a static STAC catalog: catalogs and collections link to
child catalogs and items, and each item carries assets pointing at parquet
datasets. This module walks that tree and turns items into CatalogEntry rows.
"""

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional
from urllib.parse import urljoin
import json
import logging

import requests

logger = logging.getLogger(__name__)

LINK_RELS_TO_FOLLOW = ("child", "item")
PARQUET_MEDIA_TYPES = ("application/x-parquet", "application/vnd.apache.parquet")


@dataclass
class CatalogEntry:
    id: str
    title: str
    description: str
    model_id: str
    variables: List[str] = field(default_factory=list)
    href: str = ""

    def matches_text(self, text: str) -> bool:
        text = text.lower()
        return text in self.title.lower() or text in self.description.lower()


def load_json(source: str, timeout: float = 30) -> Dict:
    """Load a JSON document from a local path or an http(s) URL."""
    if source.startswith(("http://", "https://")):
        response = requests.get(source, timeout=timeout)
        response.raise_for_status()
        return response.json()
    with open(source) as f:
        return json.load(f)


def read_catalog(source: str, follow_links: bool = True, max_depth: int = 3) -> List[Dict]:
    """
    Load a STAC document and, optionally, everything it links to.

    Args:
        source: Path or URL of the root catalog
        follow_links: Follow "child" and "item" links
        max_depth: Maximum link depth below the root

    Returns:
        List of loaded documents, root first. Each gets a "_source" key holding
        the location it was read from.
    """
    documents: List[Dict] = []
    seen = set()
    pending = [(source, 0)]

    while pending:
        location, depth = pending.pop(0)
        if location in seen:
            continue
        seen.add(location)

        doc = load_json(location)
        doc["_source"] = location
        documents.append(doc)
        logger.debug(f"Read catalog document {location}")

        if not follow_links or depth >= max_depth:
            continue
        for link in doc.get("links", []):
            if link.get("rel") in LINK_RELS_TO_FOLLOW and link.get("href"):
                pending.append((urljoin(location, link["href"]), depth + 1))

    logger.info(f"Read {len(documents)} catalog documents from {source}")
    return documents


def _dataset_href(assets: Dict) -> Optional[str]:
    for asset in assets.values():
        href = asset.get("href", "")
        media_type = asset.get("type", "")
        if href.startswith("s3://") or any(t in media_type for t in PARQUET_MEDIA_TYPES):
            return href
    return None


def _items(documents: Iterable[Dict]):
    for doc in documents:
        if doc.get("type") == "Feature":
            yield doc
        for feature in doc.get("features", []):
            yield feature


def catalog_entries(documents: Iterable[Dict]) -> List[CatalogEntry]:
    """Extract one CatalogEntry per STAC item that points at a parquet dataset."""
    entries = []
    for item in _items(documents):
        href = _dataset_href(item.get("assets", {}))
        if href is None:
            continue
        props = item.get("properties", {})
        variables = props.get("variables")
        if variables is None:
            variables = [props["variable"]] if "variable" in props else []
        entries.append(CatalogEntry(
            id=item.get("id", ""),
            title=props.get("title") or item.get("title") or item.get("id", ""),
            description=props.get("description") or item.get("description", ""),
            model_id=props.get("model_id") or item.get("id", ""),
            variables=list(variables),
            href=href,
        ))
    return entries


def find_dataset_url(
    entries: Iterable[CatalogEntry],
    model_id: Optional[str] = None,
    variable: Optional[str] = None,
    text: Optional[str] = None,
) -> str:
    """
    Return the dataset URL of the single entry matching all given criteria.

    Raises:
        LookupError: if nothing matches, or matches point at different URLs
    """
    found = [
        e for e in entries
        if (model_id is None or e.model_id == model_id)
        and (variable is None or variable in e.variables)
        and (text is None or e.matches_text(text))
    ]
    hrefs = sorted(set(e.href for e in found))
    if not hrefs:
        raise LookupError(f"No catalog entry for model_id={model_id}, variable={variable}, text={text}")
    if len(hrefs) > 1:
        raise LookupError(f"Ambiguous catalog query, candidates: {[e.id for e in found]}")
    return hrefs[0]
