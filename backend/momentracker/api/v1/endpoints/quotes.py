from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends, Query

from momentracker.api.deps import get_quote_service
from momentracker.api.errors import raise_api_error
from momentracker.api.v1.dto.mappers import to_daily_quote_out
from momentracker.api.v1.dto.quotes import DailyQuoteOut, DailyQuotesOut, parse_symbols_param
from momentracker.application.quotes.service import QuoteResolutionService

router = APIRouter()


@router.get("", response_model=DailyQuotesOut)
async def list_quotes(
    symbols: str = Query(..., description="comma separated symbols"),
    service: QuoteResolutionService = Depends(get_quote_service),
) -> DailyQuotesOut:
    requested = parse_symbols_param(symbols)
    records = await service.resolve_many(requested)
    return DailyQuotesOut(items=[to_daily_quote_out(record) for record in records])


@router.get("/{symbol}", response_model=DailyQuoteOut)
async def get_quote(
    symbol: str,
    service: QuoteResolutionService = Depends(get_quote_service),
) -> DailyQuoteOut:
    requested = parse_symbols_param(symbol)[0]
    try:
        record = await service.resolve(requested)
    except ValueError as exc:
        raise_api_error(status_code=400, code=str(exc), message="invalid symbol")
    if record is None:
        raise_api_error(
            status_code=404,
            code="QUOTE_UNRESOLVED",
            message=f"no quote data available for {requested}",
        )
    return to_daily_quote_out(record)


@router.get("/{symbol}/history", response_model=DailyQuotesOut)
async def get_quote_history(
    symbol: str,
    start: date | None = Query(default=None, alias="from", description="first trade date, YYYY-MM-DD"),
    end: date | None = Query(default=None, alias="to", description="last trade date, YYYY-MM-DD"),
    service: QuoteResolutionService = Depends(get_quote_service),
) -> DailyQuotesOut:
    requested = parse_symbols_param(symbol)[0]
    try:
        records = await service.list_history(requested, start=start, end=end)
    except ValueError as exc:
        raise_api_error(
            status_code=400,
            code=str(exc),
            message="from must not be after to, and the range is limited to one year",
            details={"from": start.isoformat() if start else None, "to": end.isoformat() if end else None},
        )
    return DailyQuotesOut(items=[to_daily_quote_out(record) for record in records])
