from __future__ import annotations

from datetime import date, datetime
from enum import Enum

from sqlalchemy import (
    CheckConstraint,
    Date,
    DateTime,
    Enum as SAEnum,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    Index,
    Boolean,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .core.database import Base
from .utils.dates import now_local_naive


class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(DateTime, default=now_local_naive, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=now_local_naive, onupdate=now_local_naive, nullable=False)


class Company(Base, TimestampMixin):
    """Tenant. Every other row is scoped by ``company_id``."""

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(160), nullable=False)
    document: Mapped[str | None] = mapped_column(String(32))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    accounts: Mapped[list["BankAccount"]] = relationship(back_populates="company")
    contracts: Mapped[list["Contract"]] = relationship(back_populates="company")

    __table_args__ = (UniqueConstraint("name", name="uq_company_name"),)


class BankAccountType(str, Enum):
    CHECKING = "checking"
    SAVINGS = "savings"
    INVESTMENT = "investment"
    CREDIT_CARD = "credit_card"


class BankAccount(Base, TimestampMixin):
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    company_id: Mapped[int] = mapped_column(ForeignKey("company.id"), nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    bank_name: Mapped[str | None] = mapped_column(String(120))
    account_number: Mapped[str | None] = mapped_column(String(40))
    type: Mapped[BankAccountType] = mapped_column(SAEnum(BankAccountType, name="bank_account_type"), nullable=False)
    # settled balance; only reconciliation or an explicit adjustment changes it
    current_balance: Mapped[float] = mapped_column(Numeric(18, 4), default=0, nullable=False)
    credit_limit: Mapped[float | None] = mapped_column(Numeric(18, 4))
    available_credit: Mapped[float | None] = mapped_column(Numeric(18, 4))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime)

    company: Mapped["Company"] = relationship(back_populates="accounts")

    @property
    def settled_balance(self) -> float:
        """Settled figure used for projections (available credit for credit cards)."""
        if self.type == BankAccountType.CREDIT_CARD:
            if self.available_credit is not None:
                return float(self.available_credit)
            if self.credit_limit is not None:
                return float(self.credit_limit)
        return float(self.current_balance or 0)

    __table_args__ = (
        UniqueConstraint("company_id", "name", name="uq_bank_account_name"),
        CheckConstraint(
            "type != 'CREDIT_CARD' OR credit_limit IS NOT NULL",
            name="ck_credit_card_requires_limit",
        ),
    )


class TxnType(str, Enum):
    REVENUE = "revenue"
    EXPENSE = "expense"
    TRANSFER = "transfer"


class Category(Base, TimestampMixin):
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    company_id: Mapped[int] = mapped_column(ForeignKey("company.id"), nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    type: Mapped[TxnType] = mapped_column(SAEnum(TxnType, name="txn_type"), nullable=False)

    __table_args__ = (
        UniqueConstraint("company_id", "type", "name", name="uq_category_name"),
        CheckConstraint("type != 'TRANSFER'", name="ck_category_not_transfer"),
    )


class Contact(Base, TimestampMixin):
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    company_id: Mapped[int] = mapped_column(ForeignKey("company.id"), nullable=False)
    name: Mapped[str] = mapped_column(String(160), nullable=False)
    document: Mapped[str | None] = mapped_column(String(32))


class ContractFrequency(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    SEMIANNUAL = "semiannual"
    YEARLY = "yearly"


class Contract(Base, TimestampMixin):
    """Recurrence rule. The generation job reads it and never writes to it."""

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    company_id: Mapped[int] = mapped_column(ForeignKey("company.id"), nullable=False)
    name: Mapped[str] = mapped_column(String(160), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    type: Mapped[TxnType] = mapped_column(SAEnum(TxnType, name="txn_type"), nullable=False)
    amount: Mapped[float] = mapped_column(Numeric(18, 4), nullable=False)
    frequency: Mapped[ContractFrequency] = mapped_column(SAEnum(ContractFrequency, name="contract_frequency"), nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date | None] = mapped_column(Date)
    total_installments: Mapped[int | None] = mapped_column(Integer)
    auto_generate: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    bank_account_id: Mapped[int | None] = mapped_column(ForeignKey("bankaccount.id"))
    category_id: Mapped[int | None] = mapped_column(ForeignKey("category.id"))
    contact_id: Mapped[int | None] = mapped_column(ForeignKey("contact.id"))
    payment_method: Mapped[str | None] = mapped_column(String(40))
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime)

    company: Mapped["Company"] = relationship(back_populates="contracts")
    bank_account: Mapped["BankAccount | None"] = relationship("BankAccount")
    transactions: Mapped[list["Transaction"]] = relationship(back_populates="contract")

    __table_args__ = (
        CheckConstraint("type != 'TRANSFER'", name="ck_contract_not_transfer"),
        CheckConstraint("amount > 0", name="ck_contract_amount_positive"),
        CheckConstraint(
            "total_installments IS NULL OR total_installments > 0",
            name="ck_contract_installments_positive",
        ),
        Index("ix_contract_company_active", "company_id", "is_active"),
    )


class TransactionStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    OVERDUE = "overdue"
    CANCELLED = "cancelled"


# statuses that still move money in the future
UNSETTLED_STATUSES = (TransactionStatus.PENDING, TransactionStatus.OVERDUE)


class Transaction(Base, TimestampMixin):
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    company_id: Mapped[int] = mapped_column(ForeignKey("company.id"), nullable=False)
    type: Mapped[TxnType] = mapped_column(SAEnum(TxnType, name="txn_type"), nullable=False)
    amount: Mapped[float] = mapped_column(Numeric(18, 4), nullable=False)
    description: Mapped[str] = mapped_column(String(255), nullable=False)
    due_date: Mapped[date] = mapped_column(Date, nullable=False)
    payment_date: Mapped[date | None] = mapped_column(Date)
    status: Mapped[TransactionStatus] = mapped_column(
        SAEnum(TransactionStatus, name="txn_status"),
        nullable=False,
        default=TransactionStatus.PENDING,
    )
    contract_id: Mapped[int | None] = mapped_column(ForeignKey("contract.id", ondelete="SET NULL"))
    bank_account_id: Mapped[int | None] = mapped_column(ForeignKey("bankaccount.id"))
    account_from_id: Mapped[int | None] = mapped_column(ForeignKey("bankaccount.id"))
    account_to_id: Mapped[int | None] = mapped_column(ForeignKey("bankaccount.id"))
    category_id: Mapped[int | None] = mapped_column(ForeignKey("category.id"))
    contact_id: Mapped[int | None] = mapped_column(ForeignKey("contact.id"))
    payment_method: Mapped[str | None] = mapped_column(String(40))
    notes: Mapped[str | None] = mapped_column(Text)
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime)

    contract: Mapped["Contract | None"] = relationship(back_populates="transactions")
    contact: Mapped["Contact | None"] = relationship("Contact")

    __table_args__ = (
        CheckConstraint(
            "(type = 'TRANSFER' AND account_from_id IS NOT NULL AND account_to_id IS NOT NULL)"
            " OR (type = 'EXPENSE' AND account_to_id IS NULL)"
            " OR (type = 'REVENUE' AND account_from_id IS NULL)",
            name="ck_txn_account_rules",
        ),
        CheckConstraint("amount >= 0", name="ck_txn_amount_not_negative"),
        Index("ix_txn_company_status_due", "company_id", "status", "due_date"),
        # one live row per (contract, due date); cancelled or deleted rows do not block a replacement
        Index(
            "uq_txn_contract_due_date",
            "contract_id",
            "due_date",
            unique=True,
            sqlite_where=text("status != 'CANCELLED' AND deleted_at IS NULL"),
            postgresql_where=text("status != 'CANCELLED' AND deleted_at IS NULL"),
        ),
    )

    def touches_account(self, account_id: int) -> bool:
        return account_id in (self.bank_account_id, self.account_from_id, self.account_to_id)
