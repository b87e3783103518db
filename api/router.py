from fastapi import APIRouter

from api.v1.attendance import router as attendance_router
from api.v1.auth import router as auth_router
from api.v1.cancellations import router as cancellations_router
from api.v1.catalog import router as catalog_router
from api.v1.checkout import router as checkout_router
from api.v1.customers import router as customers_router
from api.v1.enrollments import router as enrollments_router
from api.v1.payments import router as payments_router
from api.v1.sessions import router as sessions_router
from api.v1.terms import router as terms_router
from api.v1.webhooks import router as webhooks_router

router = APIRouter()

# Include v1 routers
router.include_router(auth_router, prefix="/v1")
router.include_router(customers_router, prefix="/v1")

# Catalogue
router.include_router(terms_router, prefix="/v1")
router.include_router(sessions_router, prefix="/v1")
router.include_router(catalog_router, prefix="/v1")

# Enrollment and payment
router.include_router(checkout_router, prefix="/v1")
router.include_router(enrollments_router, prefix="/v1")
router.include_router(webhooks_router, prefix="/v1")
router.include_router(payments_router, prefix="/v1")

# Class day operations
router.include_router(attendance_router, prefix="/v1")
router.include_router(cancellations_router, prefix="/v1")
