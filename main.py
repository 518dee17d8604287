from fastapi import FastAPI, HTTPException, Request, Depends, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
import structlog
import time
from contextlib import asynccontextmanager
from typing import List

from models import (
    AccountCreateRequest,
    AccountResponse,
    ErrorResponse,
    FeeResponse,
    FeeUpdateRequest,
    HealthResponse,
    TransactionHistoryResponse,
    TransactionRecordRequest,
    TransactionRecordResponse,
    TransferRequest,
    TransferResponse,
)
from accounts import Account
from exceptions import (
    AccountNotFoundError,
    DuplicateAccountError,
    InvalidArgumentError,
    InvalidStateError,
    LedgerError,
    LogicError,
)
from services import LedgerService, get_ledger_service
from repositories import get_account_repository
from config import get_settings
from logging_config import configure_logging

settings = get_settings()
configure_logging(settings)

logger = structlog.get_logger()

# Rate limiting
limiter = Limiter(key_func=get_remote_address)


# Application lifespan
@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting Ledger API", version=settings.app_version)
    yield
    logger.info("Shutting down Ledger API")

app = FastAPI(
    title=settings.app_name,
    description="In-memory ledger with fee-charging transfers between accounts",
    version=settings.app_version,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=settings.allowed_methods,
    allow_headers=settings.allowed_headers,
)


# Request logging middleware
@app.middleware("http")
async def log_requests(request: Request, call_next):
    start_time = time.time()

    if settings.enable_detailed_logging:
        logger.info(
            "Request started",
            method=request.method,
            url=str(request.url),
            client_ip=request.client.host if request.client else None
        )

    response = await call_next(request)

    process_time = time.time() - start_time
    logger.info(
        "Request completed",
        method=request.method,
        url=str(request.url),
        status_code=response.status_code,
        process_time=round(process_time, 4)
    )

    return response


# Dependency injection
def get_service(account_repo=Depends(get_account_repository)) -> LedgerService:
    return get_ledger_service(account_repo)


def to_account_response(account: Account) -> AccountResponse:
    return AccountResponse(
        id=account.id,
        balance=account.get_balance(),
        locked=account.is_locked,
        transactions_count=len(account.get_transaction_history())
    )


@app.get(
    "/health",
    response_model=HealthResponse,
    summary="Health Check",
    description="Check API health and get ledger statistics"
)
async def health_check(service: LedgerService = Depends(get_service)):
    accounts_count = await service.account_repo.get_accounts_count()
    return HealthResponse(
        status="healthy",
        accounts_count=accounts_count,
        transfer_fee=service.get_fee()
    )


@app.post(
    "/accounts",
    response_model=AccountResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Open Account",
    responses={409: {"description": "Account id already in use"}}
)
async def open_account(
    account_request: AccountCreateRequest,
    service: LedgerService = Depends(get_service)
):
    account = await service.open_account(account_request.id, account_request.balance)
    return to_account_response(account)


@app.get("/accounts", response_model=List[AccountResponse], summary="List Accounts")
async def list_accounts(service: LedgerService = Depends(get_service)):
    return [to_account_response(account) for account in await service.list_accounts()]


@app.get("/accounts/{account_id}", response_model=AccountResponse, summary="Get Account")
async def get_account(account_id: int, service: LedgerService = Depends(get_service)):
    account = await service.get_account(account_id)
    return to_account_response(account)


@app.get(
    "/accounts/{account_id}/transactions",
    response_model=TransactionHistoryResponse,
    summary="Transaction History"
)
async def get_transaction_history(account_id: int, service: LedgerService = Depends(get_service)):
    account = await service.get_account(account_id)
    return TransactionHistoryResponse(
        account_id=account.id,
        transactions=[
            TransactionRecordResponse.from_record(record)
            for record in account.get_transaction_history()
        ]
    )


@app.post(
    "/accounts/{account_id}/transactions",
    response_model=AccountResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Record Transaction"
)
async def record_transaction(
    account_id: int,
    record_request: TransactionRecordRequest,
    service: LedgerService = Depends(get_service)
):
    account = await service.record_transaction(
        account_id, record_request.amount, record_request.description
    )
    return to_account_response(account)


# Main transfer endpoint
@app.post(
    "/transfers",
    response_model=TransferResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Transfer Funds",
    description="Move funds between two accounts, charging the configured fee to the source",
    responses={
        201: {"description": "Transfer attempted; success is false for declined transfers"},
        400: {"description": "Negative transfer sum"},
        404: {"description": "Account not found"},
        422: {"description": "Self transfer or sum below minimum"},
        429: {"description": "Rate limit exceeded"},
    }
)
@limiter.limit(f"{settings.rate_limit_per_minute}/minute")
async def create_transfer(
    request: Request,
    transfer_request: TransferRequest,
    service: LedgerService = Depends(get_service)
):
    success, from_account, to_account = await service.transfer(
        transfer_request.from_account_id,
        transfer_request.to_account_id,
        transfer_request.sum
    )

    return TransferResponse(
        success=success,
        fee=service.get_fee(),
        from_balance=from_account.get_balance(),
        to_balance=to_account.get_balance()
    )


@app.get("/transfers/fee", response_model=FeeResponse, summary="Current Transfer Fee")
async def get_fee(service: LedgerService = Depends(get_service)):
    return FeeResponse(fee=service.get_fee())


@app.put("/transfers/fee", response_model=FeeResponse, summary="Update Transfer Fee")
async def update_fee(fee_request: FeeUpdateRequest, service: LedgerService = Depends(get_service)):
    return FeeResponse(fee=service.set_fee(fee_request.fee))


def error_response(status_code: int, detail: str, error_code: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(detail=detail, error_code=error_code).model_dump(mode="json")
    )


LEDGER_ERROR_STATUS = {
    InvalidArgumentError: (status.HTTP_400_BAD_REQUEST, "INVALID_ARGUMENT"),
    LogicError: (422, "LOGIC_ERROR"),
    InvalidStateError: (status.HTTP_409_CONFLICT, "INVALID_STATE"),
    AccountNotFoundError: (status.HTTP_404_NOT_FOUND, "ACCOUNT_NOT_FOUND"),
    DuplicateAccountError: (status.HTTP_409_CONFLICT, "DUPLICATE_ACCOUNT"),
}


@app.exception_handler(LedgerError)
async def ledger_exception_handler(request: Request, exc: LedgerError):
    status_code, error_code = LEDGER_ERROR_STATUS.get(
        type(exc), (status.HTTP_400_BAD_REQUEST, "LEDGER_ERROR")
    )
    logger.warning(
        "Ledger request rejected",
        error=str(exc),
        error_code=error_code,
        url=str(request.url),
        method=request.method
    )
    return error_response(status_code, str(exc), error_code)


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    return error_response(exc.status_code, str(exc.detail), f"HTTP_{exc.status_code}")


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    logger.error(
        "Unhandled exception",
        error=str(exc),
        url=str(request.url),
        method=request.method,
        exc_info=True
    )
    return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error", "INTERNAL_ERROR")


@app.get("/", include_in_schema=False)
async def root():
    return {"message": settings.app_name, "docs": "/docs"}

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower()
    )
