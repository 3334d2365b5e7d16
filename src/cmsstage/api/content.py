"""Content endpoint.

Serves every path through the content pipeline. Handles conditional
requests for responses that carry an ETag.
"""

from aiohttp import web

from cmsstage.app_keys import pipeline_key, requester_resolver_key
from cmsstage.core.pipeline import ContentRequest


def create_content_routes() -> list[web.RouteDef]:
    return [
        web.get("/{path:.*}", show_content),
    ]


async def show_content(request: web.Request) -> web.Response:
    pipeline = request.app[pipeline_key]
    requester = request.app[requester_resolver_key].resolve(request)

    content_request = ContentRequest(
        host=request.host,
        path=request.path,
        query=dict(request.query),
        requester=requester,
        target=request.raw_path,
    )
    result = await pipeline.handle(content_request)

    etag = result.headers.get("ETag")
    if etag is not None and request.headers.get("If-None-Match") == etag:
        return web.Response(
            status=304,
            headers={"ETag": etag, "Cache-Control": result.headers["Cache-Control"]},
        )

    return web.Response(status=result.status, headers=result.headers, body=result.body)
