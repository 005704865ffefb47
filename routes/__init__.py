from .user import router as user_router
from .doctors import router as doctors_router
from .products import router as products_router
from .visits import router as visits_router
from .ledger import router as ledger_router
from .cash_flow import router as cash_flow_router
from .sales import router as sales_router
from .dashboard import router as dashboard_router
from fastapi import APIRouter

# Create main router
router = APIRouter()

# Include auth and field rep routes
router.include_router(user_router, tags=["Authentication & Field Reps"])

# Include doctor and chemist routes
router.include_router(doctors_router, prefix="/doctors", tags=["Doctors & Chemists"])

# Include product and stock ledger routes
router.include_router(products_router, prefix="/products", tags=["Products & Stock"])

# Include visit routes
router.include_router(visits_router, prefix="/visits", tags=["Visits"])

# Include account ledger routes
router.include_router(ledger_router, prefix="/ledger", tags=["Account Ledger"])

# Include cash flow routes
router.include_router(cash_flow_router, prefix="/cash-flow", tags=["Cash Flow"])

# Include sales register and dashboard routes
router.include_router(sales_router, prefix="/sales", tags=["Sales"])
router.include_router(dashboard_router, prefix="/dashboard", tags=["Dashboard"])

__all__ = ["router"]
