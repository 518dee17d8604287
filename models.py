from pydantic import BaseModel, ConfigDict, Field
from typing import List
from datetime import datetime


class TransactionRecord(BaseModel):
    """Immutable amount/description pair stored in an account history."""

    model_config = ConfigDict(frozen=True)

    amount: int = Field(..., description="Signed amount applied to the balance")
    description: str = Field("", description="Free-form description")
    timestamp: datetime = Field(default_factory=datetime.now, description="Creation time")


class AccountCreateRequest(BaseModel):
    id: int = Field(..., ge=0, description="Unique account identifier")
    balance: int = Field(0, description="Opening balance")


class TransactionRecordRequest(BaseModel):
    amount: int = Field(..., description="Signed amount (negative for a withdrawal)")
    description: str = Field(
        "",
        max_length=500,
        description="Transaction description"
    )


class TransactionRecordResponse(BaseModel):
    amount: int
    description: str
    timestamp: datetime

    @classmethod
    def from_record(cls, record: TransactionRecord) -> "TransactionRecordResponse":
        return cls(
            amount=record.amount,
            description=record.description,
            timestamp=record.timestamp
        )


class AccountResponse(BaseModel):
    id: int = Field(..., description="Account identifier")
    balance: int = Field(..., description="Current balance")
    locked: bool = Field(..., description="Whether the account is currently locked")
    transactions_count: int = Field(..., description="Number of recorded transactions")


class TransferRequest(BaseModel):
    from_account_id: int = Field(..., description="Source account")
    to_account_id: int = Field(..., description="Destination account")
    sum: int = Field(..., description="Amount credited to the destination")


class TransferResponse(BaseModel):
    success: bool = Field(..., description="False when the fee is too high or funds are insufficient")
    fee: int = Field(..., description="Fee charged to the source on success")
    from_balance: int = Field(..., description="Source balance after the attempt")
    to_balance: int = Field(..., description="Destination balance after the attempt")
    timestamp: datetime = Field(default_factory=datetime.now)


class FeeUpdateRequest(BaseModel):
    fee: int = Field(..., description="New transfer fee")


class FeeResponse(BaseModel):
    fee: int


class TransactionHistoryResponse(BaseModel):
    account_id: int
    transactions: List[TransactionRecordResponse]


class ErrorResponse(BaseModel):
    detail: str = Field(..., description="Error description")
    error_code: str = Field(..., description="Machine-readable error code")
    timestamp: datetime = Field(default_factory=datetime.now, description="Error timestamp")


class HealthResponse(BaseModel):
    status: str = Field(..., description="Service health status")
    timestamp: datetime = Field(default_factory=datetime.now)
    accounts_count: int = Field(..., description="Number of accounts in system")
    transfer_fee: int = Field(..., description="Fee currently charged per transfer")
