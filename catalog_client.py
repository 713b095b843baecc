"""Fetches the public catalog from the Sustain Sports API."""
import asyncio
import logging
from typing import Optional

import httpx

from catalog import CatalogSnapshot

logger = logging.getLogger(__name__)


async def fetch_catalog(base_url: str, client: Optional[httpx.AsyncClient] = None) -> CatalogSnapshot:
    """Load products and categories concurrently and join them into one snapshot."""
    owns_client = client is None
    if owns_client:
        client = httpx.AsyncClient(base_url=base_url)
    try:
        products_resp, categories_resp = await asyncio.gather(
            client.get("/api/products"),
            client.get("/api/categories"),
        )
        products_resp.raise_for_status()
        categories_resp.raise_for_status()
    finally:
        if owns_client:
            await client.aclose()
    snapshot = CatalogSnapshot(products=products_resp.json(), categories=categories_resp.json())
    logger.debug("Fetched %d products, %d categories", len(snapshot.products), len(snapshot.categories))
    return snapshot
