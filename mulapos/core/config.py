from typing import List, Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

# Los agregados de sesión sólo separan efectivo y tarjeta
PaymentMethod = Literal["cash", "card"]


class Settings(BaseSettings):
    app_name: str = Field(default="MulaPOS", alias="APP_NAME")
    app_env: str = Field(default="dev", alias="APP_ENV")
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")
    database_url: str = Field(default="sqlite:///./mulapos.db", alias="DATABASE_URL")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    company_name: str = Field(default="MulaERP", alias="COMPANY_NAME")
    currency: str = Field(default="MYR", alias="CURRENCY")

    # Terminal / dispositivo
    cashier_name: str = Field(default="Demo User", alias="CASHIER_NAME")
    device_name: str = Field(default="Main POS", alias="DEVICE_NAME")
    cash_control: bool = Field(default=True, alias="CASH_CONTROL")
    receipt_printer: bool = Field(default=True, alias="RECEIPT_PRINTER")
    barcode_scanner: bool = Field(default=True, alias="BARCODE_SCANNER")
    default_customer: str = Field(default="Walk-in Customer", alias="DEFAULT_CUSTOMER")
    payment_methods: List[PaymentMethod] = Field(default=["cash", "card"], alias="PAYMENT_METHODS")
    receipt_delay_seconds: float = Field(default=1.5, alias="RECEIPT_DELAY_SECONDS")
    idempotency_ttl_seconds: float = Field(default=3600, alias="IDEMPOTENCY_TTL_SECONDS")

    # Display del cliente
    display_poll_seconds: float = Field(default=5.0, alias="DISPLAY_POLL_SECONDS")
    long_poll_seconds: float = Field(default=25.0, alias="LONG_POLL_SECONDS")
    channel_history: int = Field(default=256, alias="CHANNEL_HISTORY")

    class Config:
        env_file = ".env"
        populate_by_name = True

    @field_validator("payment_methods", mode="before")
    @classmethod
    def lower_methods(cls, v):
        return [m.strip().lower() if isinstance(m, str) else m for m in v]

    @property
    def currency_symbol(self) -> str:
        return "RM" if self.currency.upper() == "MYR" else "$"
