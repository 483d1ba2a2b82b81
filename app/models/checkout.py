from pydantic import BaseModel, ConfigDict, Field
from typing import List, Optional

class NormalizedItem(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    description: str
    quantity: int = 1
    price: float = 0.0
    line_index: int = Field(alias="lineIndex")

    def to_metadata(self) -> dict:
        return self.model_dump(by_alias=True)

class CartSummary(BaseModel):
    items: List[NormalizedItem]
    total_amount: float

class Customer(BaseModel):
    full_name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None

class ReceiptItem(BaseModel):
    name: str
    quantity: int
    price: float

class Receipt(BaseModel):
    """Template model handed to the email provider."""

    model_config = ConfigDict(populate_by_name=True)

    full_name: str = Field("", alias="fullName")
    phone: str = ""
    email: str
    delivery_method: str = Field("", alias="deliveryMethod")
    amount: float
    reference: Optional[str] = None
    items: List[ReceiptItem]

    def to_template_model(self) -> dict:
        return self.model_dump(by_alias=True)
