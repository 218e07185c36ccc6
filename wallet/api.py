from contextlib import asynccontextmanager
from typing import Any, Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Query, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .admin import AdminReportService
from .config import Settings, setup_logging
from .models import (
    RedeemRequest, RedemptionResult, HousingWallet, RedemptionRecord,
    CreateTransactionRequest, BeamBalanceResponse, BeamTransactionRequest,
    BeamTransactionResponse, AdminClient, AdminTransaction, AdminStats,
)
from .resources import WalletResources
from .service import (
    WalletService, WalletServiceError, WalletValidationError, ClientNotFoundError,
    InsufficientBalanceError, LedgerUnavailableError,
)


def get_resources(request: Request) -> WalletResources:
    return request.app.state.resources


def get_wallet_service(resources: WalletResources = Depends(get_resources)) -> WalletService:
    return WalletService(resources.storage, resources.beam)


def get_admin_service(resources: WalletResources = Depends(get_resources)) -> AdminReportService:
    return AdminReportService(resources.storage, resources.beam)


def bearer_token(authorization: Optional[str] = Header(default=None)) -> Optional[str]:
    if authorization and authorization.lower().startswith("bearer "):
        return authorization[7:].strip() or None
    return None


def _describe_validation_error(exc: RequestValidationError) -> str:
    parts = []
    for error in exc.errors():
        field = ".".join(str(p) for p in error.get("loc", ())[1:])
        parts.append(f"{field}: {error.get('msg')}" if field else str(error.get("msg")))
    return "Invalid request: " + "; ".join(parts)


def create_app(
    settings: Optional[Settings] = None,
    resources: Optional[WalletResources] = None,
    **kwargs: Any,
) -> FastAPI:
    settings = settings or Settings.from_env()
    setup_logging(settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        app.state.resources.close()

    app = FastAPI(
        title="Readyaimgo Wallet API",
        description="Housing Wallet redemptions, BEAM Coin balances and admin reporting",
        version="1.0.0",
        lifespan=lifespan,
        **kwargs,
    )
    app.state.resources = resources or WalletResources(settings)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException):
        return JSONResponse({"error": exc.detail}, status_code=exc.status_code, headers=exc.headers)

    @app.exception_handler(RequestValidationError)
    async def validation_error(request: Request, exc: RequestValidationError):
        return JSONResponse({"error": _describe_validation_error(exc)}, status_code=status.HTTP_400_BAD_REQUEST)

    @app.exception_handler(WalletServiceError)
    async def wallet_error(request: Request, exc: WalletServiceError):
        return JSONResponse({"error": str(exc) or "Internal error"}, status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)

    @app.get("/health", tags=["System"])
    def health_check():
        return {"status": "healthy", "service": "readyaimgo-wallet"}

    @app.post("/housing-wallet-redeem", response_model=RedemptionResult, tags=["Housing Wallet"])
    def redeem_housing_credits(
        request: RedeemRequest, service: WalletService = Depends(get_wallet_service)
    ) -> RedemptionResult:
        try:
            return service.redeem(request.client_id, request.credits, request.description)
        except ClientNotFoundError:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Client not found")
        except (WalletValidationError, InsufficientBalanceError) as e:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    @app.get("/housing-wallet", response_model=HousingWallet, tags=["Housing Wallet"])
    def get_housing_wallet(
        client_id: Optional[str] = Query(default=None, alias="clientId"),
        service: WalletService = Depends(get_wallet_service),
    ) -> HousingWallet:
        try:
            return service.get_housing_wallet(client_id)
        except ClientNotFoundError:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Client not found")
        except WalletValidationError as e:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    @app.get("/transactions", response_model=list[RedemptionRecord], tags=["Transactions"])
    def list_transactions(
        client_id: Optional[str] = Query(default=None, alias="clientId"),
        service: WalletService = Depends(get_wallet_service),
    ) -> list[RedemptionRecord]:
        try:
            return service.list_transactions(client_id)
        except WalletValidationError as e:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    @app.post("/transactions", response_model=RedemptionRecord, tags=["Transactions"])
    def create_transaction(
        request: CreateTransactionRequest, service: WalletService = Depends(get_wallet_service)
    ) -> RedemptionRecord:
        try:
            return service.record_transaction(request.client_id, request.type, request.amount, request.description)
        except WalletValidationError as e:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    @app.get(
        "/beam-coin",
        response_model=BeamBalanceResponse,
        response_model_exclude_none=True,
        tags=["BEAM Coin"],
    )
    def get_beam_balance(
        client_id: Optional[str] = Query(default=None, alias="clientId"),
        token: Optional[str] = Depends(bearer_token),
        service: WalletService = Depends(get_wallet_service),
    ) -> BeamBalanceResponse:
        try:
            return service.beam_balance(client_id, id_token=token)
        except WalletValidationError as e:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
        except LedgerUnavailableError as e:
            raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))

    @app.get("/beam-coin/transactions", tags=["BEAM Coin"])
    def get_beam_transactions(
        client_id: Optional[str] = Query(default=None, alias="clientId"),
        token: Optional[str] = Depends(bearer_token),
        service: WalletService = Depends(get_wallet_service),
    ) -> list:
        try:
            return service.beam_transactions(client_id, id_token=token)
        except WalletValidationError as e:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
        except LedgerUnavailableError as e:
            raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))

    @app.post("/beam-coin/transactions", response_model=BeamTransactionResponse, tags=["BEAM Coin"])
    def create_beam_transaction(
        request: BeamTransactionRequest,
        token: Optional[str] = Depends(bearer_token),
        service: WalletService = Depends(get_wallet_service),
    ) -> BeamTransactionResponse:
        try:
            return service.beam_transaction(
                request.client_id, request.type, request.amount, request.description, id_token=token
            )
        except WalletValidationError as e:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
        except LedgerUnavailableError as e:
            raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))

    @app.get("/admin/clients", response_model=list[AdminClient], tags=["Admin"])
    def admin_clients(
        search: Optional[str] = None,
        plan: Optional[str] = None,
        sort_by: str = Query(default="beamCoinBalance", alias="sortBy"),
        order: str = Query(default="desc", pattern="^(asc|desc)$"),
        admin: AdminReportService = Depends(get_admin_service),
    ) -> list[AdminClient]:
        try:
            return admin.clients(search=search, plan=plan, sort_by=sort_by, descending=order == "desc")
        except WalletValidationError as e:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    @app.get("/admin/transactions", response_model=list[AdminTransaction], tags=["Admin"])
    def admin_transactions(
        limit: int = Query(default=100, gt=0, le=1000),
        type: Optional[str] = None,
        uid: Optional[str] = None,
        admin: AdminReportService = Depends(get_admin_service),
    ) -> list[AdminTransaction]:
        return admin.transactions(limit=limit, type=type, uid=uid)

    @app.get("/admin/stats", response_model=AdminStats, tags=["Admin"])
    def admin_stats(admin: AdminReportService = Depends(get_admin_service)) -> AdminStats:
        return admin.stats()

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
