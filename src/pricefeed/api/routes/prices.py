"""JSON endpoints for prices, hashing, alerts and yield analytics.

Decimal values are always serialized as strings.
"""

from __future__ import annotations

import json
from typing import Any

import structlog
from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import JSONResponse

from pricefeed.api.rate_limit import rate_limit
from pricefeed.exceptions import ValidationError
from pricefeed.service import PriceFeedService

log = structlog.get_logger(__name__)

router = APIRouter()


def _service(request: Request) -> PriceFeedService:
    return request.app.state.service


async def _read_json(request: Request) -> dict[str, Any]:
    """Parse a JSON object body or raise ValidationError."""
    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ValidationError("Invalid input: body is not valid JSON") from e
    if not isinstance(body, dict):
        raise ValidationError("Invalid input: expected a JSON object")
    return body


@router.get("/price/{asset}", dependencies=[Depends(rate_limit)])
async def get_price(asset: str, request: Request) -> JSONResponse:
    """Latest price for an asset, served from cache when available."""
    service = _service(request)
    point = await service.get_current(asset)
    return JSONResponse(content={
        "asset": service.validate(asset),
        "price": str(point.value),
        "observed_at": point.observed_at,
    })


@router.get("/price/{asset}/history")
async def get_price_history(asset: str, request: Request) -> JSONResponse:
    """All recorded points for an asset, oldest first."""
    service = _service(request)
    history = await service.get_history(asset)
    return JSONResponse(content={
        "asset": service.validate(asset),
        "history": [p.to_dict() for p in history],
    })


@router.post("/price/hash", dependencies=[Depends(rate_limit)])
async def post_price_hash(request: Request) -> JSONResponse:
    """Deterministic digest of an (asset, price) pair."""
    body = await _read_json(request)
    digest = _service(request).hash_price(body.get("asset"), body.get("price"))
    return JSONResponse(content={"hash": digest})


@router.post("/price/alert")
async def post_price_alert(request: Request) -> JSONResponse:
    """Subscribe (or replace) a threshold alert for an asset."""
    body = await _read_json(request)
    subscription = await _service(request).subscribe(body.get("asset"), body.get("threshold"))
    return JSONResponse(
        status_code=201,
        content={"asset": subscription.asset, "threshold": str(subscription.threshold)},
    )


@router.delete("/price/alert/{asset}")
async def delete_price_alert(asset: str, request: Request) -> Response:
    """Remove the alert for an asset. 404 when none is active."""
    removed = await _service(request).unsubscribe(asset)
    if not removed:
        return JSONResponse(status_code=404, content={"detail": "No alert for asset"})
    return Response(status_code=204)


@router.post("/price/refresh")
async def post_refresh_all(request: Request) -> JSONResponse:
    """Refresh every supported asset now; reports each asset independently."""
    results = await _service(request).refresh_all()
    content = {}
    for asset, result in results.items():
        if result.ok and result.point is not None:
            content[asset] = {"price": str(result.point.value), "observed_at": result.point.observed_at}
        else:
            content[asset] = {"error": str(result.error)}
    return JSONResponse(content=content)


@router.get("/yield/analytics")
async def get_yield_analytics(request: Request) -> JSONResponse:
    """Yield rate (price / 100) for every supported asset."""
    rates = await _service(request).get_yields()
    return JSONResponse(content={"yield_rates": {a: str(r) for a, r in rates.items()}})


@router.get("/yield/{asset}")
async def get_yield(asset: str, request: Request) -> JSONResponse:
    service = _service(request)
    rate = await service.get_yield(asset)
    return JSONResponse(content={"asset": service.validate(asset), "yield_rate": str(rate)})
