"""
Clienti endpoints
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.schemas.fatturazione.common import DeleteResult
from app.schemas.fatturazione.customer import (
    CustomerCreate,
    CustomerDeactivate,
    CustomerResponse,
    CustomerStats,
    CustomerUpdate,
)
from app.services.fatturazione.customer_service import CustomerService, customer_overview

from .common import get_customer_service

router = APIRouter(prefix="/customers", tags=["fatturazione-clienti"])


@router.get("", response_model=List[CustomerResponse])
def list_customers(
    search: Optional[str] = Query(None, description="Cerca su nome, email, telefono, CF, P.IVA, indirizzo"),
    include_inactive: bool = False,
    refresh: bool = False,
    service: CustomerService = Depends(get_customer_service),
):
    if refresh:
        service.cache.refresh()
    return service.list_customers(include_inactive=include_inactive, search=search)


@router.get("/overview")
def customers_overview(service: CustomerService = Depends(get_customer_service)):
    """Conteggi attivi/inattivi e completezza anagrafiche"""
    return customer_overview(service.cache.get())


@router.get("/{customer_id}", response_model=CustomerResponse)
def get_customer(customer_id: str, service: CustomerService = Depends(get_customer_service)):
    customer = service.get_customer(customer_id)
    if not customer:
        raise HTTPException(status_code=404, detail="Cliente non trovato")
    return customer


@router.get("/{customer_id}/stats", response_model=CustomerStats)
def get_customer_stats(customer_id: str, service: CustomerService = Depends(get_customer_service)):
    if not service.get_customer(customer_id):
        raise HTTPException(status_code=404, detail="Cliente non trovato")
    return service.customer_stats(customer_id)


@router.post("", response_model=CustomerResponse, status_code=status.HTTP_201_CREATED)
def create_customer(data: CustomerCreate, service: CustomerService = Depends(get_customer_service)):
    return service.create_customer(data)


@router.put("/{customer_id}", response_model=CustomerResponse)
def update_customer(
    customer_id: str,
    update: CustomerUpdate,
    service: CustomerService = Depends(get_customer_service),
):
    customer = service.update_customer(customer_id, update)
    if not customer:
        raise HTTPException(status_code=404, detail="Cliente non trovato")
    return customer


@router.post("/{customer_id}/delete", response_model=DeleteResult)
def delete_customer(
    customer_id: str,
    data: Optional[CustomerDeactivate] = None,
    service: CustomerService = Depends(get_customer_service),
):
    """Elimina il cliente, o lo disattiva se ha fatture associate"""
    result = service.delete_customer(customer_id, reason=data.reason if data else None)
    if not result:
        raise HTTPException(status_code=404, detail="Cliente non trovato")
    return result


@router.delete("/{customer_id}", response_model=DeleteResult)
def delete_customer_default(customer_id: str, service: CustomerService = Depends(get_customer_service)):
    result = service.delete_customer(customer_id)
    if not result:
        raise HTTPException(status_code=404, detail="Cliente non trovato")
    return result


@router.post("/{customer_id}/reactivate", response_model=CustomerResponse)
def reactivate_customer(customer_id: str, service: CustomerService = Depends(get_customer_service)):
    customer = service.reactivate_customer(customer_id)
    if not customer:
        raise HTTPException(status_code=404, detail="Cliente non trovato")
    return customer
