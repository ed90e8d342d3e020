from __future__ import annotations

from typing import Annotated

from fastapi import Depends, FastAPI, Query, Request
from fastapi.responses import JSONResponse
from loguru import logger
from sqlalchemy.orm import Session

from . import schemas
from .core.config import settings
from .db import get_db, init_db
from .domain import Clock
from .errors import (
    AuthorizationError,
    IntegrityError,
    NotFoundError,
    OracleError,
    SwapCastError,
)
from .services.ledger import PositionLedger
from .services.market_service import MarketQuery, MarketService
from .services.protocol import system_clock
from .services.settlement import SettlementEngine

app = FastAPI(title="SwapCast API", version="0.1.0", debug=settings.debug)


def error_status(exc: SwapCastError) -> int:
    """Map an error family onto the HTTP status surfaced to clients."""

    if isinstance(exc, NotFoundError):
        return 404
    if isinstance(exc, AuthorizationError):
        return 403
    if isinstance(exc, OracleError):
        return 503
    if isinstance(exc, IntegrityError):
        return 500
    return 409


@app.exception_handler(SwapCastError)
async def swapcast_error_handler(request: Request, exc: SwapCastError) -> JSONResponse:
    status_code = error_status(exc)
    if status_code >= 500:
        logger.error("{} {} failed: {}", request.method, request.url.path, exc)
    payload = schemas.ErrorResponse(kind=exc.kind, detail=str(exc), retryable=exc.retryable)
    return JSONResponse(status_code=status_code, content=payload.model_dump())


@app.on_event("startup")
def on_startup() -> None:
    """Initialize database connections when the API boots."""

    init_db()


@app.get("/healthz", tags=["system"])
def healthcheck() -> dict[str, str]:
    """Basic readiness probe consumed by infrastructure monitors."""

    return {"status": "ok"}


def get_clock() -> Clock:
    return system_clock


def _market_query(
    *,
    status: Annotated[
        str | None,
        Query(
            description="Market status filter",
            pattern="^(open|pending|pending_resolution|resolved|all)$",
        ),
    ] = None,
    limit: Annotated[int, Query(ge=1, le=200)] = 50,
    offset: Annotated[int, Query(ge=0)] = 0,
) -> MarketQuery:
    """Normalize shared market listing query parameters."""

    return MarketQuery(status=status, limit=limit, offset=offset)


def _market_service(db: Session = Depends(get_db), clock: Clock = Depends(get_clock)) -> MarketService:
    """Provide the market service wired with a SQLAlchemy session."""

    return MarketService(db, clock=clock)


def _ledger(db: Session = Depends(get_db), clock: Clock = Depends(get_clock)) -> PositionLedger:
    return PositionLedger(db, clock=clock)


@app.get("/markets", response_model=schemas.MarketList, tags=["markets"])
def list_markets(
    *,
    query: MarketQuery = Depends(_market_query),
    service: MarketService = Depends(_market_service),
):
    """List markets, optionally filtered by lifecycle state."""

    result = service.list_markets(query)
    return schemas.MarketList(total=result.total, items=list(result.markets))


@app.get("/markets/{market_id}", response_model=schemas.Market, tags=["markets"])
def get_market(market_id: int, service: MarketService = Depends(_market_service)):
    return service.get_market(market_id)


@app.get("/positions/{position_id}", response_model=schemas.Position, tags=["positions"])
def get_position(position_id: int, service: MarketService = Depends(_market_service)):
    return service.get_position(position_id)


@app.get(
    "/accounts/{address}/positions",
    response_model=schemas.PositionList,
    tags=["positions"],
)
def list_account_positions(address: str, service: MarketService = Depends(_market_service)):
    """Positions currently held by ``address``."""

    positions = service.positions_for_owner(address)
    return schemas.PositionList(total=len(positions), items=positions)


@app.get("/overview", response_model=schemas.Overview, tags=["system"])
def protocol_overview(service: MarketService = Depends(_market_service)):
    """Aggregate protocol counters for dashboards."""

    return service.overview()


@app.post(
    "/positions/{position_id}/claim",
    response_model=schemas.ClaimResponse,
    tags=["positions"],
)
def claim_reward(
    position_id: int,
    body: schemas.ClaimRequest,
    ledger: PositionLedger = Depends(_ledger),
):
    """Settle a winning position and pay its holder."""

    receipt = SettlementEngine(ledger).claim_receipt(position_id, body.caller)
    ledger.session.commit()
    return schemas.ClaimResponse(
        position_id=receipt.position_id,
        market_id=receipt.market_id,
        amount_paid=receipt.amount_paid,
    )
