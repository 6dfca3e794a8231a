"""
Database Schemas for the Food Ordering API

Each Pydantic model below corresponds to a MongoDB collection.
The collection name is the lowercase class name (e.g., User -> "user").
Order line items are stored inline on the order.
"""
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class OrderStatus(str, Enum):
    NEW = "NEW"
    PAID = "PAID"
    FAILED = "FAILED"


def split_csv(value):
    """Accept either a list or a comma-separated string."""
    if value is None:
        return []
    if isinstance(value, str):
        return [part.strip() for part in value.split(",") if part.strip()]
    return value


class User(BaseModel):
    name: str = Field(..., description="Full name")
    email: str = Field(..., description="Unique email address, stored lower-case")
    password_hash: str = Field(..., description="BCrypt password hash")
    address: str = Field("", description="Delivery address")
    is_admin: bool = Field(False, description="Admin privileges")
    is_blocked: bool = False

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.strip().lower()


class Food(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(..., description="Food name")
    price: float = Field(..., ge=0)
    tags: List[str] = []
    favorite: bool = False
    image_url: Optional[str] = Field(None, alias="imageUrl")
    origins: List[str] = []
    cook_time: Optional[str] = Field(None, alias="cookTime")

    @field_validator("tags", "origins", mode="before")
    @classmethod
    def split_lists(cls, v):
        return split_csv(v)


class OrderFood(BaseModel):
    """Snapshot of the food as it was when the order was placed."""
    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str
    price: float = Field(..., ge=0)
    image_url: Optional[str] = Field(None, alias="imageUrl")


class OrderItem(BaseModel):
    food: OrderFood
    quantity: int = Field(..., ge=1)
    price: float = Field(..., ge=0, description="Unit price")


class Order(BaseModel):
    model_config = ConfigDict(use_enum_values=True)

    user_id: str = Field(..., description="Owner of the order")
    name: str = ""
    address: str = ""
    items: List[OrderItem]
    total_price: float = Field(..., ge=0)
    payment_id: Optional[str] = None
    status: OrderStatus = OrderStatus.NEW
