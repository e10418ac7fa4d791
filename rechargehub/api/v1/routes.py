from fastapi import APIRouter
from rechargehub.api.v1.endpoints import operators, orders, payments, plans, users

router = APIRouter()

router.include_router(operators.router, prefix="/operators", tags=["operators"])
router.include_router(plans.router, prefix="/plans", tags=["plans"])
router.include_router(orders.router, prefix="/orders", tags=["orders"])
router.include_router(payments.router, prefix="/payments", tags=["payments"])
router.include_router(users.router, prefix="/users", tags=["users"])
