"""
Database Schemas for the reseller back office

Each Pydantic model corresponds to a MongoDB collection. Collection name is the
lowercase class name. References to other documents are stored as ObjectIds and
travel over the wire as id strings.
"""
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class User(BaseModel):
    email: EmailStr
    password_hash: str = Field(..., description="BCrypt hash of the password")


class Source(BaseModel):
    name: str = Field(..., min_length=1, description="Supplier name")
    description: Optional[str] = None


class SourceUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None


class Product(BaseModel):
    name: str = Field(..., min_length=1)
    price: float = Field(..., ge=0, description="Sale price")
    discount_price: Optional[float] = Field(None, ge=0)
    buying_price: float = Field(..., ge=0, description="Cost paid to the source")
    source: str = Field(..., description="Source id")
    image: Optional[str] = None
    description: Optional[str] = None
    short_description: Optional[str] = None


class ProductUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = Field(None, min_length=1)
    price: Optional[float] = Field(None, ge=0)
    discount_price: Optional[float] = Field(None, ge=0)
    buying_price: Optional[float] = Field(None, ge=0)
    source: Optional[str] = None
    image: Optional[str] = None
    description: Optional[str] = None
    short_description: Optional[str] = None


class OrderLine(BaseModel):
    product: str = Field(..., description="Product id")
    quantity: int = Field(..., ge=1)
    adjusted_price: Optional[float] = Field(None, ge=0, description="Unit price override")


class Order(BaseModel):
    title: str = Field(..., min_length=1)
    customer_name: str = Field(..., min_length=1)
    email: Optional[str] = None
    phone: str = Field(..., min_length=1)
    address: str = Field(..., min_length=1)
    delivery_charge: float = Field(0, ge=0)
    payment_method: Optional[str] = None
    products: List[OrderLine] = Field(default_factory=list)
    total_amount: Optional[float] = Field(None, description="Checked against the recomputed total")
    total_profit: Optional[float] = Field(None, description="Checked against the recomputed profit")


class OrderUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    title: Optional[str] = Field(None, min_length=1)
    customer_name: Optional[str] = Field(None, min_length=1)
    email: Optional[str] = None
    phone: Optional[str] = Field(None, min_length=1)
    address: Optional[str] = Field(None, min_length=1)
    delivery_charge: Optional[float] = Field(None, ge=0)
    payment_method: Optional[str] = None
    products: Optional[List[OrderLine]] = None
    total_amount: Optional[float] = None
    total_profit: Optional[float] = None


class UpdateRequest(BaseModel):
    id: str
    data: Dict[str, Any]


# Auth payloads
class SignupRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"


class UserOut(BaseModel):
    id: str
    email: EmailStr


# Invoice view
class CompanyInfo(BaseModel):
    name: str
    address: str = ""
    website: str = ""


class InvoiceItem(BaseModel):
    description: str
    quantity: int
    price: float
    total: float


class InvoiceData(BaseModel):
    invoice_number: str
    invoice_date: str
    invoice_to: str
    phone: str
    address: str
    items: List[InvoiceItem]
    sub_total: float
    delivery_fee: float = 0
    total_due: float
    payment_method: str = ""
    currency: str = "BDT"
    thank_you_message: Optional[str] = None
    admin_name: str = ""
    company_info: CompanyInfo
