from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Annotated, Any, Dict, List, Literal, Optional

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field
from pydantic.alias_generators import to_camel

from mulapos.core.money import money

SessionStatus = Literal["draft", "opened", "closed"]
MovementType = Literal["in", "out"]
SaleStatus = Literal["pending", "completed", "cancelled"]
MessageType = Literal["storage", "snapshot", "cleared", "ended", "ledger"]


class _Wire(BaseModel):
    # camelCase en almacenamiento y respuestas (totalSales, openingBalance...)
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def wire(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


def _to_money(v):
    try:
        return money(v)
    except (InvalidOperation, TypeError, ValueError):
        raise ValueError("invalid amount")


Money = Annotated[Decimal, BeforeValidator(_to_money)]


class Product(_Wire):
    id: str
    name: str
    price: Money
    category: str
    barcode: Optional[str] = None


class CartItem(Product):
    quantity: int = Field(..., gt=0)

    @property
    def line_total(self) -> Decimal:
        return money(self.price * self.quantity)


class DeviceConfig(_Wire):
    name: str
    cash_control: bool = True
    receipt_printer: bool = True
    barcode_scanner: bool = True


class PosSession(_Wire):
    id: str
    name: str
    started_at: datetime
    ended_at: Optional[datetime] = None
    status: SessionStatus = "draft"
    opening_balance: Money = Decimal("0.00")
    closing_balance: Optional[Money] = None
    total_sales: Money = Decimal("0.00")
    total_cash: Money = Decimal("0.00")
    total_card: Money = Decimal("0.00")
    total_transactions: int = 0
    cashier: str
    config: DeviceConfig


class CashMovement(_Wire):
    id: str
    session_id: str
    type: MovementType
    amount: Money = Field(..., ge=0)
    reason: str
    timestamp: datetime


class SessionDetails(_Wire):
    id: str
    name: str


class SessionSnapshot(_Wire):
    hash: str
    cart: List[CartItem] = Field(default_factory=list)
    timestamp: int  # epoch ms


class SaleLine(_Wire):
    id: str
    name: str
    price: Money
    quantity: int


class CompletedSale(_Wire):
    id: str
    customer: str
    amount: Money
    status: SaleStatus = "completed"
    date: date
    payment_method: Optional[str] = None
    items: List[SaleLine] = Field(default_factory=list)
    notes: Optional[str] = None


class ChannelMessage(BaseModel):
    seq: int
    type: MessageType
    hash: Optional[str] = None
    payload: Dict[str, Any] = Field(default_factory=dict)


# ====== Requests ======
class OpenSessionIn(BaseModel):
    opening_balance: Money = Field(default=Decimal("500"), ge=0)


class CloseSessionIn(BaseModel):
    closing_balance: Money = Field(default=Decimal("0"), ge=0)


class CashMovementIn(BaseModel):
    type: MovementType
    amount: Money
    reason: str = ""


class AddItemIn(BaseModel):
    product_id: Optional[str] = None
    barcode: Optional[str] = None


class SetQuantityIn(BaseModel):
    quantity: int


class PayIn(BaseModel):
    method: str
    customer: Optional[str] = None
