"""
Fatturazione module endpoints
Clienti, prodotti, fatture, dashboard/report e guida in linea
"""
from fastapi import APIRouter, Depends

from app.api.auth import get_current_auth_user_id

from . import customers, dashboard, help, invoices, products

router = APIRouter(
    prefix="/fatturazione",
    tags=["fatturazione"],
    dependencies=[Depends(get_current_auth_user_id)],
)

router.include_router(customers.router)
router.include_router(products.router)
router.include_router(invoices.router)
router.include_router(dashboard.router)
router.include_router(help.router)
