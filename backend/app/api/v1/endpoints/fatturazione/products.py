"""
Prodotti endpoints - catalogo usato per compilare le righe fattura
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.schemas.fatturazione.common import DeleteResult
from app.schemas.fatturazione.product import (
    ProductCategory,
    ProductCreate,
    ProductResponse,
    ProductUpdate,
    ProductUsageStats,
)
from app.services.fatturazione.product_service import (
    ProductService,
    product_categories,
    search_products,
)

from .common import get_product_service

router = APIRouter(prefix="/products", tags=["fatturazione-prodotti"])


@router.get("", response_model=List[ProductResponse])
def list_products(
    search: Optional[str] = Query(None, description="Cerca su nome, descrizione e categoria"),
    category: Optional[str] = None,
    include_inactive: bool = False,
    service: ProductService = Depends(get_product_service),
):
    if category:
        products = service.products_by_category(category, active_only=not include_inactive)
    else:
        products = service.list_products(include_inactive=include_inactive)
    if search:
        products = search_products(products, search, active_only=not include_inactive)
    return products


@router.get("/categories", response_model=List[ProductCategory])
def list_categories(service: ProductService = Depends(get_product_service)):
    return product_categories(service.list_products())


@router.get("/{product_id}", response_model=ProductResponse)
def get_product(product_id: str, service: ProductService = Depends(get_product_service)):
    product = service.get_product(product_id)
    if not product:
        raise HTTPException(status_code=404, detail="Prodotto non trovato")
    return product


@router.get("/{product_id}/usage", response_model=ProductUsageStats)
def get_product_usage(product_id: str, service: ProductService = Depends(get_product_service)):
    if not service.get_product(product_id):
        raise HTTPException(status_code=404, detail="Prodotto non trovato")
    return service.usage_stats(product_id)


@router.post("", response_model=ProductResponse, status_code=status.HTTP_201_CREATED)
def create_product(data: ProductCreate, service: ProductService = Depends(get_product_service)):
    return service.create_product(data)


@router.put("/{product_id}", response_model=ProductResponse)
def update_product(
    product_id: str,
    update: ProductUpdate,
    service: ProductService = Depends(get_product_service),
):
    product = service.update_product(product_id, update)
    if not product:
        raise HTTPException(status_code=404, detail="Prodotto non trovato")
    return product


@router.delete("/{product_id}", response_model=DeleteResult)
def delete_product(product_id: str, service: ProductService = Depends(get_product_service)):
    """Elimina il prodotto, o lo disattiva se usato in fatture"""
    result = service.delete_product(product_id)
    if not result:
        raise HTTPException(status_code=404, detail="Prodotto non trovato")
    return result


@router.post("/{product_id}/restore", response_model=ProductResponse)
def restore_product(product_id: str, service: ProductService = Depends(get_product_service)):
    product = service.restore_product(product_id)
    if not product:
        raise HTTPException(status_code=404, detail="Prodotto non trovato")
    return product
