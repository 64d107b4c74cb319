from __future__ import annotations

import math
from datetime import date, datetime
from typing import Optional

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    computed_field,
    field_validator,
    model_validator,
)

from .models import (
    BankAccountType,
    ContractFrequency,
    TransactionStatus,
    TxnType,
)
from .services.severity import Severity


def _positive_finite(v: float | None) -> float | None:
    if v is None:
        return v
    if not math.isfinite(v):
        raise ValueError("amount must be finite")
    if v <= 0:
        raise ValueError("amount must be positive")
    return v


class CompanyCreate(BaseModel):
    name: str = Field(min_length=1, max_length=160)
    document: Optional[str] = Field(default=None, max_length=32)


class CompanyOut(BaseModel):
    id: int
    name: str
    document: Optional[str]
    is_active: bool

    model_config = ConfigDict(from_attributes=True)


class BankAccountCreate(BaseModel):
    company_id: int = Field(..., gt=0)
    name: str = Field(min_length=1, max_length=100)
    type: BankAccountType = BankAccountType.CHECKING
    bank_name: Optional[str] = Field(default=None, max_length=120)
    account_number: Optional[str] = Field(default=None, max_length=40)
    current_balance: float = Field(
        default=0,
        validation_alias=AliasChoices("current_balance", "balance"),
    )
    credit_limit: Optional[float] = None
    available_credit: Optional[float] = None
    is_active: bool = True

    @model_validator(mode="after")
    def credit_card_requires_limit(self):
        if self.type == BankAccountType.CREDIT_CARD and self.credit_limit is None:
            raise ValueError("credit_limit is required for credit card accounts")
        return self


class BankAccountOut(BaseModel):
    id: int
    company_id: int
    name: str
    type: BankAccountType
    bank_name: Optional[str]
    account_number: Optional[str]
    current_balance: float
    credit_limit: Optional[float]
    available_credit: Optional[float]
    is_active: bool

    model_config = ConfigDict(from_attributes=True)


class ContractCreate(BaseModel):
    company_id: int = Field(..., gt=0)
    name: str = Field(min_length=1, max_length=160)
    description: Optional[str] = None
    type: TxnType
    amount: float
    frequency: ContractFrequency
    start_date: date
    end_date: Optional[date] = None
    total_installments: Optional[int] = Field(default=None, ge=1)
    auto_generate: bool = True
    is_active: bool = True
    bank_account_id: Optional[int] = None
    category_id: Optional[int] = None
    contact_id: Optional[int] = None
    payment_method: Optional[str] = Field(default=None, max_length=40)

    @field_validator("type")
    def contract_type(cls, v: TxnType):
        if v == TxnType.TRANSFER:
            raise ValueError("contracts are either revenue or expense")
        return v

    @field_validator("amount")
    def amount_finite(cls, v: float):
        return _positive_finite(v)

    @model_validator(mode="after")
    def end_after_start(self):
        if self.end_date is not None and self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


class ContractUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=160)
    description: Optional[str] = None
    amount: Optional[float] = None
    frequency: Optional[ContractFrequency] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    total_installments: Optional[int] = Field(default=None, ge=1)
    auto_generate: Optional[bool] = None
    is_active: Optional[bool] = None
    bank_account_id: Optional[int] = None
    category_id: Optional[int] = None
    contact_id: Optional[int] = None
    payment_method: Optional[str] = Field(default=None, max_length=40)

    @field_validator("amount")
    def amount_finite(cls, v: float | None):
        return _positive_finite(v)


class ContractOut(BaseModel):
    id: int
    company_id: int
    name: str
    description: Optional[str]
    type: TxnType
    amount: float
    frequency: ContractFrequency
    start_date: date
    end_date: Optional[date]
    total_installments: Optional[int]
    auto_generate: bool
    is_active: bool
    bank_account_id: Optional[int]
    category_id: Optional[int]
    contact_id: Optional[int]
    payment_method: Optional[str]
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ContractPreviewItem(BaseModel):
    installment: int
    due_date: date
    is_future: bool
    is_materialized: bool


class ContractPreviewOut(BaseModel):
    contract_id: int
    items: list[ContractPreviewItem]
    total_count: int


class RecurringTotalsOut(BaseModel):
    company_id: int
    monthly_revenue: float
    monthly_expense: float
    active_contracts: int

    @computed_field(return_type=float)
    def monthly_net(self) -> float:
        return round(self.monthly_revenue - self.monthly_expense, 2)


class TransactionCreate(BaseModel):
    company_id: int = Field(..., gt=0)
    type: TxnType
    amount: float
    description: str = Field(min_length=1, max_length=255)
    due_date: date
    payment_date: Optional[date] = None
    status: TransactionStatus = TransactionStatus.PENDING
    bank_account_id: Optional[int] = None
    account_from_id: Optional[int] = None
    account_to_id: Optional[int] = None
    category_id: Optional[int] = None
    contact_id: Optional[int] = None
    payment_method: Optional[str] = Field(default=None, max_length=40)
    notes: Optional[str] = None

    @field_validator("amount")
    def amount_finite(cls, v: float):
        return _positive_finite(v)

    @model_validator(mode="after")
    def normalize_accounts(self):
        # revenue lands in account_to_id, expense leaves account_from_id, as generated rows do
        if self.type == TxnType.TRANSFER:
            if self.account_from_id is None or self.account_to_id is None:
                raise ValueError("transfers require account_from_id and account_to_id")
            if self.bank_account_id is None:
                self.bank_account_id = self.account_from_id
        elif self.type == TxnType.REVENUE:
            if self.account_from_id is not None:
                raise ValueError("revenue must not set account_from_id")
            self.account_to_id = self.account_to_id or self.bank_account_id
            self.bank_account_id = self.bank_account_id or self.account_to_id
        else:
            if self.account_to_id is not None:
                raise ValueError("expense must not set account_to_id")
            self.account_from_id = self.account_from_id or self.bank_account_id
            self.bank_account_id = self.bank_account_id or self.account_from_id
        return self


class TransactionOut(BaseModel):
    id: int
    company_id: int
    type: TxnType
    amount: float
    description: str
    due_date: date
    payment_date: Optional[date]
    status: TransactionStatus
    contract_id: Optional[int]
    bank_account_id: Optional[int]
    account_from_id: Optional[int]
    account_to_id: Optional[int]
    category_id: Optional[int]
    contact_id: Optional[int]
    payment_method: Optional[str]

    model_config = ConfigDict(from_attributes=True)


class AggregatedTransactionOut(BaseModel):
    id: Optional[int]
    description: Optional[str]
    type: TxnType
    status: TransactionStatus
    amount: float
    due_date: date
    days_overdue: int
    is_overdue: bool
    severity: Optional[Severity]
    contract_id: Optional[int] = None
    bank_account_id: Optional[int] = None
    party_name: str


class OverdueBucketOut(BaseModel):
    total: float
    count: int
    average_days_overdue: int
    oldest_date: Optional[date]
    transactions: list[AggregatedTransactionOut]


class PendingBucketOut(OverdueBucketOut):
    count_overdue: int
    count_on_time: int


class FlaggedRowOut(BaseModel):
    transaction_id: Optional[int]
    reason: str

    model_config = ConfigDict(from_attributes=True)


class OverdueSummaryOut(BaseModel):
    company_id: int
    as_of: date
    revenues: OverdueBucketOut
    expenses: OverdueBucketOut
    flagged: list[FlaggedRowOut] = Field(default_factory=list)
    degraded: bool = False
    error: Optional[str] = None


class PendingSummaryOut(BaseModel):
    company_id: int
    as_of: date
    revenues: PendingBucketOut
    expenses: PendingBucketOut
    flagged: list[FlaggedRowOut] = Field(default_factory=list)
    degraded: bool = False
    error: Optional[str] = None


class ProjectedBalanceOut(BaseModel):
    account_id: int
    settled_balance: float
    pending_revenue: float
    pending_expense: float
    projected_balance: Optional[float]

    model_config = ConfigDict(from_attributes=True)


class GenerationRequest(BaseModel):
    as_of: Optional[date] = None
    company_id: Optional[int] = Field(default=None, gt=0)
    contract_id: Optional[int] = Field(default=None, gt=0)


class SkippedContractOut(BaseModel):
    contract_id: int
    contract_name: str
    reason: str

    model_config = ConfigDict(from_attributes=True)


class OccurrenceFailureOut(BaseModel):
    contract_id: int
    due_date: date
    error: str

    model_config = ConfigDict(from_attributes=True)


class ContractGenerationDetailOut(BaseModel):
    contract_id: int
    contract_name: str
    generated: int
    skipped: int
    failed: int
    first_due_date: Optional[date]
    last_due_date: Optional[date]

    model_config = ConfigDict(from_attributes=True)


class GenerationResultOut(BaseModel):
    as_of: date
    contracts_processed: int
    transactions_generated: int
    skipped_contracts: list[SkippedContractOut]
    failures: list[OccurrenceFailureOut]
    details: list[ContractGenerationDetailOut]
    warning: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)
