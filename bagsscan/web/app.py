"""FastAPI backend сканера: выборка токенов, ручные операции, трейдинг и push-канал."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, Literal, get_args

from fastapi import Depends, FastAPI, HTTPException, Query, Request, WebSocket, WebSocketDisconnect, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from loguru import logger
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from starlette.exceptions import HTTPException as StarletteHTTPException

from bagsscan.context import AppContext, build_context
from bagsscan.loader import on_shutdown, on_startup
from bagsscan.models import now_ms
from bagsscan.services.core.registry import AssetQuery, SortField
from bagsscan.services.trading.engine import TradingEngine, position_as_dict

TRADING_UNAVAILABLE = "Trading not available. Set TRADING__AGENT_PRIVATE_KEY and BAGS__API_KEY."
SORT_ALIASES: dict[str, str] = {
    "marketCap": "market_cap",
    "mcapGrowth": "mcap_growth",
    "holderGrowth": "holder_growth",
    "holderCount": "holder_count",
    "createdAt": "created_at",
}


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class AddTokenRequest(CamelModel):
    mint_address: str | None = None
    creator_address: str | None = None


class BuyRequest(CamelModel):
    mint_address: str | None = None
    token_name: str | None = None
    token_symbol: str | None = None


class ScanRecentRequest(CamelModel):
    limit: int | None = None


def get_ctx(request: Request) -> AppContext:
    return request.app.state.ctx


def get_trading(ctx: AppContext = Depends(get_ctx)) -> TradingEngine:
    if ctx.trading is None:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=TRADING_UNAVAILABLE)
    return ctx.trading


def create_app(ctx: AppContext | None = None, *, manage_lifecycle: bool = True) -> FastAPI:
    """Собирает приложение; при manage_lifecycle lifespan запускает и гасит сервисы."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if app.state.ctx is None:
            app.state.ctx = build_context()
        if manage_lifecycle:
            await on_startup(app.state.ctx)
        try:
            yield
        finally:
            if manage_lifecycle:
                await on_shutdown(app.state.ctx)

    app = FastAPI(title="bagsscan API", lifespan=lifespan)
    app.state.ctx = ctx

    @app.exception_handler(StarletteHTTPException)
    async def _http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content={"success": False, "error": exc.detail})

    @app.exception_handler(RequestValidationError)
    async def _validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"success": False, "error": "Invalid request"},
        )

    _register_scanner_routes(app)
    _register_trading_routes(app)
    return app


def _register_scanner_routes(app: FastAPI) -> None:
    @app.get("/health")
    async def health() -> dict[str, Any]:
        return {"status": "ok", "timestamp": now_ms()}

    @app.get("/scanner/tokens")
    async def scanner_tokens(
        ctx: AppContext = Depends(get_ctx),
        min_mcap: float = Query(0.0, alias="minMcap"),
        max_mcap: float | None = Query(None, alias="maxMcap"),
        min_holders: int = Query(0, alias="minHolders"),
        min_mcap_growth: float | None = Query(None, alias="minMcapGrowth"),
        min_holder_growth: float | None = Query(None, alias="minHolderGrowth"),
        max_age_hours: float | None = Query(None, alias="maxAgeHours"),
        sort_by: str = Query("market_cap", alias="sortBy"),
        sort_order: Literal["asc", "desc"] = Query("desc", alias="sortOrder"),
        limit: int = Query(50, ge=1, le=1000),
    ) -> dict[str, Any]:
        sort_field = SORT_ALIASES.get(sort_by, sort_by)
        if sort_field not in get_args(SortField):
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Unknown sortBy: {sort_by}")
        filters = AssetQuery(
            min_market_cap=min_mcap,
            max_market_cap=max_mcap,
            min_holders=min_holders,
            min_mcap_growth=min_mcap_growth,
            min_holder_growth=min_holder_growth,
            max_age_hours=max_age_hours,
            sort_by=sort_field,
            sort_order=sort_order,
            limit=limit,
        )
        views = await ctx.registry.query(filters)
        return {"success": True, "tokens": [view.as_dict() for view in views], "count": len(views)}

    @app.post("/scanner/add-token")
    async def scanner_add_token(payload: AddTokenRequest, ctx: AppContext = Depends(get_ctx)) -> dict[str, Any]:
        if not payload.mint_address:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="mintAddress is required")
        try:
            asset = await ctx.registry.add(payload.mint_address, payload.creator_address, source="manual")
        except Exception as exc:  # noqa: BLE001
            logger.exception("Ручная регистрация {addr} упала: {error}", addr=payload.mint_address, error=exc)
            raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to add token") from exc
        if asset is None:
            return {"success": True, "added": False, "message": "Token already tracked or excluded"}
        return {"success": True, "added": True, "message": f"Token {asset.symbol} added"}

    @app.post("/scanner/update-all")
    async def scanner_update_all(ctx: AppContext = Depends(get_ctx)) -> dict[str, Any]:
        ran = await ctx.refresh_task.run_once()
        if not ran:
            return {"success": True, "skipped": True, "message": "Update already in progress"}
        return {"success": True, "skipped": False, "message": "All tokens updated"}

    @app.post("/scanner/scan-recent")
    async def scanner_scan_recent(
        payload: ScanRecentRequest | None = None,
        ctx: AppContext = Depends(get_ctx),
    ) -> dict[str, Any]:
        limit = payload.limit if payload else None
        try:
            registered = await ctx.monitor.scan_recent(limit)
        except Exception as exc:  # noqa: BLE001
            logger.exception("Скан последних запусков упал: {error}", error=exc)
            raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail="Recent scan failed") from exc
        return {"success": True, "registered": registered}

    @app.get("/scanner/status")
    async def scanner_status(ctx: AppContext = Depends(get_ctx)) -> dict[str, Any]:
        return {"success": True, **ctx.monitor.status()}

    @app.get("/scanner/archive")
    async def scanner_archive(
        ctx: AppContext = Depends(get_ctx),
        limit: int = Query(100, ge=1, le=1000),
    ) -> dict[str, Any]:
        archived = await ctx.registry.list_archived(limit)
        return {"success": True, "tokens": [item.model_dump() for item in archived], "count": len(archived)}

    @app.websocket("/scanner/updates")
    async def scanner_updates(websocket: WebSocket) -> None:
        ctx: AppContext = websocket.app.state.ctx
        await websocket.accept()

        async def forward(event: dict[str, Any]) -> None:
            await websocket.send_json(event)

        ctx.bus.subscribe(forward)
        try:
            await websocket.send_json({"type": "connected", "timestamp": now_ms()})
            while True:
                await websocket.receive_text()
        except WebSocketDisconnect:
            logger.debug("Наблюдатель push-канала отключился")
        finally:
            ctx.bus.unsubscribe(forward)


def _register_trading_routes(app: FastAPI) -> None:
    @app.get("/trading/opportunities")
    async def trading_opportunities(engine: TradingEngine = Depends(get_trading)) -> dict[str, Any]:
        opportunities = await engine.get_opportunities()
        return {
            "success": True,
            "opportunities": [item.as_dict() for item in opportunities],
            "count": len(opportunities),
        }

    @app.get("/trading/status")
    async def trading_status(engine: TradingEngine = Depends(get_trading)) -> dict[str, Any]:
        return {"success": True, **engine.status()}

    @app.post("/trading/enable")
    async def trading_enable(engine: TradingEngine = Depends(get_trading)) -> dict[str, Any]:
        engine.enable()
        return {"success": True, "message": "Trading enabled - trades will now execute"}

    @app.post("/trading/disable")
    async def trading_disable(engine: TradingEngine = Depends(get_trading)) -> dict[str, Any]:
        engine.disable()
        return {"success": True, "message": "Trading disabled - monitoring continues"}

    @app.post("/trading/start-monitoring")
    async def trading_start_monitoring(engine: TradingEngine = Depends(get_trading)) -> dict[str, Any]:
        engine.start_monitoring()
        return {"success": True, "message": "Monitoring started"}

    @app.post("/trading/stop")
    async def trading_stop(engine: TradingEngine = Depends(get_trading)) -> dict[str, Any]:
        await engine.stop_monitoring()
        return {"success": True, "message": "Trading stopped"}

    @app.get("/trading/positions")
    async def trading_positions(
        engine: TradingEngine = Depends(get_trading),
        position_status: str | None = Query(None, alias="status"),
    ) -> dict[str, Any]:
        try:
            positions = await engine.list_positions(position_status)
        except ValueError as exc:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
        return {"success": True, "positions": [position_as_dict(item) for item in positions], "count": len(positions)}

    @app.post("/trading/config")
    async def trading_config(patch: dict[str, Any], engine: TradingEngine = Depends(get_trading)) -> dict[str, Any]:
        try:
            config = engine.update_config(patch)
        except ValueError as exc:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
        return {"success": True, "config": config.public_dict()}

    @app.post("/trading/buy")
    async def trading_buy(payload: BuyRequest, engine: TradingEngine = Depends(get_trading)) -> JSONResponse:
        if not (payload.mint_address and payload.token_name and payload.token_symbol):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="mintAddress, tokenName, and tokenSymbol are required",
            )
        result = await engine.execute_buy(payload.mint_address, payload.token_name, payload.token_symbol)
        code = status.HTTP_200_OK if result.success else status.HTTP_400_BAD_REQUEST
        return JSONResponse(status_code=code, content=result.as_dict())


__all__ = ["create_app", "get_ctx", "get_trading"]
