# storefront/models/payment.py
from decimal import Decimal
from enum import Enum
from typing import Annotated, Any, List, Literal, Optional, Union
from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from pydantic import ValidationError as PydanticValidationError
from .order import PaymentResult
from ..exceptions import InvalidCapture, InvalidAmount
from ..utils.money import Money

COMPLETED = "COMPLETED"


class CaptureSource(str, Enum):
    PAYPAL = "paypal"
    MANUAL = "manual"


class Capture(BaseModel):
    """Gateway attestation that funds were collected"""
    external_id: str = Field(min_length=1)
    status: str = Field(min_length=1)
    update_time: Optional[str] = None
    payer_email: Optional[str] = None
    captured_amount: Decimal
    source: CaptureSource = CaptureSource.PAYPAL

    model_config = ConfigDict(frozen=True)

    @property
    def is_completed(self) -> bool:
        return self.status.upper() == COMPLETED

    @property
    def amount(self) -> Money:
        """Captured amount; sub-cent values are never rounded in the payer's favour"""
        try:
            return Money.exact(self.captured_amount, field="capturedAmount")
        except InvalidAmount as e:
            raise InvalidCapture(e.message, field=e.field)

    def to_payment_result(self) -> PaymentResult:
        return PaymentResult(
            external_id=self.external_id,
            status=self.status,
            update_time=self.update_time,
            payer_email=self.payer_email,
        )


# Boundary payloads

class _Amount(BaseModel):
    value: Any
    currency_code: Optional[str] = None


class _PayPalCapture(BaseModel):
    id: Optional[str] = None
    status: Optional[str] = None
    amount: _Amount


class _PayPalPayments(BaseModel):
    captures: List[_PayPalCapture] = []


class _PurchaseUnit(BaseModel):
    reference_id: Optional[str] = None
    amount: Optional[_Amount] = None
    payments: Optional[_PayPalPayments] = None


class _Payer(BaseModel):
    email_address: Optional[str] = None


class PayPalCapturePayload(BaseModel):
    """Order details returned by the PayPal checkout widget after capture"""
    source: Literal["paypal"]
    id: str = Field(min_length=1)
    status: str = Field(min_length=1)
    update_time: Optional[str] = None
    payer: _Payer = _Payer()
    purchase_units: List[_PurchaseUnit] = Field(min_length=1)

    def captured_value(self) -> Decimal:
        captures = [
            capture
            for unit in self.purchase_units if unit.payments
            for capture in unit.payments.captures
        ]
        if captures:
            values = [capture.amount.value for capture in captures]
        else:
            values = [unit.amount.value for unit in self.purchase_units if unit.amount]
        if not values:
            raise InvalidCapture("Capture carries no amount", field="purchase_units")
        total = Money.zero()
        for value in values:
            total = total.add(Money.exact(value, field="purchase_units.amount.value"))
        return total.to_decimal()

    def references(self, order_id: str) -> bool:
        """True when every purchase unit was created for this store order"""
        return all(unit.reference_id == order_id for unit in self.purchase_units)

    def to_capture(self) -> Capture:
        return Capture(
            external_id=self.id,
            status=self.status,
            update_time=self.update_time,
            payer_email=self.payer.email_address,
            captured_amount=self.captured_value(),
            source=CaptureSource.PAYPAL,
        )


class ManualCapturePayload(BaseModel):
    """Flat capture used by the test/manual payment path"""
    source: Literal["manual"]
    external_id: str = Field(alias="externalId", min_length=1)
    status: str = Field(min_length=1)
    update_time: Optional[str] = Field(default=None, alias="updateTime")
    payer_email: Optional[str] = Field(default=None, alias="payerEmail")
    captured_amount: Any = Field(alias="capturedAmount")

    model_config = ConfigDict(populate_by_name=True)

    def to_capture(self) -> Capture:
        amount = Money.exact(self.captured_amount, field="capturedAmount")
        return Capture(
            external_id=self.external_id,
            status=self.status,
            update_time=self.update_time,
            payer_email=self.payer_email,
            captured_amount=amount.to_decimal(),
            source=CaptureSource.MANUAL,
        )


CapturePayload = Annotated[
    Union[PayPalCapturePayload, ManualCapturePayload],
    Field(discriminator="source"),
]

_capture_adapter = TypeAdapter(CapturePayload)


def parse_capture(payload: Any) -> Capture:
    """Validate a client-submitted capture payload into a Capture"""
    if not isinstance(payload, dict):
        raise InvalidCapture("Capture payload must be an object")
    try:
        parsed = _capture_adapter.validate_python(payload)
    except PydanticValidationError as e:
        first = e.errors()[0]
        field = ".".join(str(part) for part in first.get("loc", ())) or None
        raise InvalidCapture(f"Malformed capture: {first.get('msg')}", field=field)
    try:
        return parsed.to_capture()
    except InvalidAmount as e:
        raise InvalidCapture(e.message, field=e.field)
