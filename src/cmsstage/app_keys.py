"""Application keys for type-safe app configuration access."""

from aiohttp import web

from cmsstage.auth import HeaderRequesterResolver
from cmsstage.core.pipeline import CatalogHolder, ContentPipeline

pipeline_key = web.AppKey("pipeline", ContentPipeline)
catalog_key = web.AppKey("catalog", CatalogHolder)
requester_resolver_key = web.AppKey("requester_resolver", HeaderRequesterResolver)
