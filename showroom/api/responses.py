from typing import Any, Callable
from fastapi import Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from showroom.application.schemas import ActionResult, ResultKind
from showroom.infrastructure.cache import ViewCache

STATUS_FOR_KIND = {
    ResultKind.OK: 200,
    ResultKind.VALIDATION: 422,
    ResultKind.BUSINESS: 409,
    ResultKind.NOT_FOUND: 404,
    ResultKind.INFRASTRUCTURE: 503,
}

def respond(result: ActionResult, success_status: int = 200) -> JSONResponse:
    """Serialize a mutation result; the HTTP status follows the result kind."""
    status_code = success_status if result.success else STATUS_FOR_KIND.get(result.kind, 400)
    return JSONResponse(status_code=status_code, content=result.model_dump(mode="json", exclude_none=True))

def cached_view(cache: ViewCache, path: str, request: Request, build: Callable[[], Any]) -> Any:
    """Serve ``path`` from the view cache, building and storing it on a miss."""
    query = str(request.query_params)
    cached = cache.get(path, query)
    if cached is not None:
        return cached
    value = jsonable_encoder(build())
    cache.set(path, value, query)
    return value
