"""
Pydantic schemas for Settlement entity.
"""
from pydantic import Field
from typing import List, Optional
import enum
from jeongchongmu.schemas.base import WireModel


class SettlementMethod(str, enum.Enum):
    """Rule used to divide an expense among participants."""
    N_BUN_1 = "N_BUN_1"  # equal split
    DIRECT = "DIRECT"
    PERCENT = "PERCENT"
    ITEM = "ITEM"  # decided by item vote


class SettlementStatus(str, enum.Enum):
    """Settlement lifecycle status."""
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"


class DirectEntry(WireModel):
    """Amount a participant pays under a DIRECT split."""
    user_id: int
    amount: int = Field(ge=0)


class PercentEntry(WireModel):
    """Ratio (percent, e.g. 60.5) a participant pays under a PERCENT split."""
    user_id: int
    ratio: float = Field(ge=0)


class SettlementCreateRequest(WireModel):
    """Schema for settlement creation."""
    expense_id: int
    method: SettlementMethod
    participant_user_ids: List[int]
    direct_entries: Optional[List[DirectEntry]] = None
    percent_entries: Optional[List[PercentEntry]] = None


class SettlementDetail(WireModel):
    """Who sends how much to whom."""
    debtor_id: int
    debtor_name: str
    creditor_id: int
    creditor_name: str
    amount: int = Field(gt=0)
    is_sent: bool = False
    creditor_bank_name: Optional[str] = None
    creditor_account_number: Optional[str] = None
    transfer_url: Optional[str] = None

    model_config = {**WireModel.model_config, "frozen": True}


class Settlement(WireModel):
    """Schema for settlement response."""
    settlement_id: int
    expense_id: int
    method: SettlementMethod
    status: SettlementStatus = SettlementStatus.PENDING
    total_amount: int
    details: List[SettlementDetail] = []

    @property
    def all_sent(self) -> bool:
        return all(detail.is_sent for detail in self.details)

    @property
    def is_completed(self) -> bool:
        return self.status == SettlementStatus.COMPLETED


class TransferConfirmRequest(WireModel):
    """Schema for confirming that a debtor sent money to a creditor."""
    debtor_id: int
    creditor_id: int


class SettlementSummary(WireModel):
    """Totals the current user should receive and send."""
    to_receive: int = 0
    to_send: int = 0
