from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from momentracker.api.deps import get_trending_service
from momentracker.api.v1.dto.mappers import (
    to_market_status_out,
    to_symbol_retention_out,
    to_trending_dimensions_out,
)
from momentracker.api.v1.dto.quotes import parse_symbols_param
from momentracker.api.v1.dto.trending import DimensionsListOut, StableSymbolsOut, SymbolDimensionsOut
from momentracker.application.trending.service import TrendingApplicationService

router = APIRouter()


@router.get("/dimensions", response_model=DimensionsListOut)
async def list_dimensions(
    symbols: str = Query(..., description="comma separated symbols"),
    service: TrendingApplicationService = Depends(get_trending_service),
) -> DimensionsListOut:
    requested = parse_symbols_param(symbols)
    dimensions_by_symbol = await service.calculate_many(requested)
    return DimensionsListOut(
        items=[
            SymbolDimensionsOut(
                symbol=symbol,
                dimensions=to_trending_dimensions_out(dimensions) if dimensions is not None else None,
            )
            for symbol, dimensions in dimensions_by_symbol.items()
        ]
    )


@router.get("/evaluate", response_model=StableSymbolsOut)
async def evaluate_symbols(
    symbols: str = Query(..., description="comma separated symbols"),
    service: TrendingApplicationService = Depends(get_trending_service),
) -> StableSymbolsOut:
    requested = parse_symbols_param(symbols)
    evaluated = await service.evaluate_symbols(requested)
    return StableSymbolsOut(items=[to_symbol_retention_out(item) for item in evaluated])


@router.get("/stable", response_model=StableSymbolsOut)
async def list_stable_symbols(
    service: TrendingApplicationService = Depends(get_trending_service),
) -> StableSymbolsOut:
    retained = await service.stable_symbols()
    return StableSymbolsOut(
        items=[to_symbol_retention_out(item) for item in retained],
        market=to_market_status_out(service.market_status()),
    )
