from __future__ import annotations

from typing import Literal

from pydantic import Field

from .common import NonNegativeFloat, NonNegativeInt, ObjectIdField, PositiveInt, RequestModel

CategoryType = Literal["Therapy Type", "Age Group", "Learning Type"]
DiscountType = Literal["percentage", "fixed", "none"]
TaxClass = Literal["standard", "reduced", "zero"]
ProductStatus = Literal["draft", "active", "inactive", "discontinued"]


class CategoryIn(RequestModel):
    name: str = Field(..., min_length=1, max_length=50)
    description: str | None = Field(default=None, max_length=500)
    categoryType: CategoryType = "Therapy Type"
    parent: ObjectIdField | None = None
    image: str | None = None
    isActive: bool = True


class AssignProductsIn(RequestModel):
    products: list[ObjectIdField] = Field(..., min_length=1)


class ProductImage(RequestModel):
    url: str = Field(..., min_length=1)
    alt: str | None = None
    isMain: bool = False


class ProductIn(RequestModel):
    name: str = Field(..., min_length=1, max_length=100)
    sku: str | None = Field(default=None, max_length=64)
    barcode: str | None = None
    quantity: NonNegativeInt = 0
    description: str = Field(..., min_length=1, max_length=2000)
    shortDescription: str | None = Field(default=None, max_length=200)
    price: NonNegativeFloat
    discountType: DiscountType = "none"
    discountPercentage: NonNegativeFloat = 0
    taxClass: TaxClass = "standard"
    vatAmount: NonNegativeFloat = 20
    images: list[ProductImage] = Field(default_factory=list)
    category: ObjectIdField
    status: ProductStatus = "draft"
    isActive: bool = True
    isFeatured: bool = False


class StockIn(RequestModel):
    quantity: NonNegativeInt


class InventoryIn(RequestModel):
    product: ObjectIdField
    sku: str = Field(..., min_length=1, max_length=64)
    barcode: str | None = None
    quantity: NonNegativeInt = 0
    reservedQuantity: NonNegativeInt = 0
    lowStockThreshold: PositiveInt = 5
    location: str = "Main Warehouse"


class InventoryStockIn(RequestModel):
    productId: ObjectIdField | None = None
    productName: str | None = None
    newStock: NonNegativeInt
    notes: str | None = Field(default=None, max_length=500)
