"""
api/routes/v1/products.py -- Product catalog routes.

Routes (fixed paths are registered before /products/{product_id} so FastAPI
does not try to parse "search" or "categories" as an id):
  POST   /products                               -- create
  GET    /products                               -- list all
  GET    /products/search?name=                  -- name contains, ignoring case
  GET    /products/category/{category}           -- exact category, ignoring case
  GET    /products/price-range?min_price=&max_price=
  GET    /products/categories                    -- distinct categories
  GET    /products/low-stock?threshold=          -- stock below threshold
  GET    /products/available?min_price=          -- in stock, price >= min, cheapest first
  GET    /products/{product_id}
  PUT    /products/{product_id}                  -- full replacement
  DELETE /products/{product_id}

Every route requires a bearer token.
"""

from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, Response

from api.models import ProductCreate, ProductResponse
from auth.dependencies import get_current_user
from catalog.models import Product
from catalog.service import CatalogService

router = APIRouter(dependencies=[Depends(get_current_user)])


def _service(request: Request) -> CatalogService:
    return request.app.state.catalog_service


def _rows(products: list[Product]) -> list[ProductResponse]:
    return [ProductResponse.from_product(p) for p in products]


@router.post("/products", response_model=ProductResponse, status_code=201)
def create_product(request: Request, body: ProductCreate) -> ProductResponse:
    return ProductResponse.from_product(_service(request).create_product(body.to_product()))


@router.get("/products", response_model=list[ProductResponse])
def list_products(request: Request) -> list[ProductResponse]:
    return _rows(_service(request).list_products())


@router.get("/products/search", response_model=list[ProductResponse])
def search_products(request: Request, name: str = Query(min_length=1, max_length=255)) -> list[ProductResponse]:
    return _rows(_service(request).search_by_name(name))


@router.get("/products/category/{category}", response_model=list[ProductResponse])
def products_by_category(request: Request, category: str) -> list[ProductResponse]:
    return _rows(_service(request).filter_by_category(category))


@router.get("/products/price-range", response_model=list[ProductResponse])
def products_by_price_range(
    request: Request,
    min_price: Optional[Decimal] = Query(default=None, ge=0),
    max_price: Optional[Decimal] = Query(default=None, ge=0),
) -> list[ProductResponse]:
    return _rows(_service(request).filter_by_price_range(min_price, max_price))


@router.get("/products/categories", response_model=list[str])
def list_categories(request: Request) -> list[str]:
    return _service(request).list_categories()


@router.get("/products/low-stock", response_model=list[ProductResponse])
def low_stock(request: Request, threshold: int = Query(default=10, ge=0)) -> list[ProductResponse]:
    return _rows(_service(request).list_low_stock(threshold))


@router.get("/products/available", response_model=list[ProductResponse])
def available_products(
    request: Request,
    min_price: Decimal = Query(default=Decimal("0"), ge=0),
) -> list[ProductResponse]:
    return _rows(_service(request).list_available(min_price))


@router.get("/products/{product_id}", response_model=ProductResponse)
def get_product(request: Request, product_id: int) -> ProductResponse:
    return ProductResponse.from_product(_service(request).get_product(product_id))


@router.put("/products/{product_id}", response_model=ProductResponse)
def update_product(request: Request, product_id: int, body: ProductCreate) -> ProductResponse:
    product = _service(request).update_product(product_id, **body.model_dump())
    return ProductResponse.from_product(product)


@router.delete("/products/{product_id}", status_code=204)
def delete_product(request: Request, product_id: int) -> Response:
    _service(request).delete_product(product_id)
    return Response(status_code=204)
