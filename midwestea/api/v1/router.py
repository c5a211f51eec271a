# midwestea/api/v1/router.py
# Master router -- registers all endpoint routers under /api
# Each endpoint module owns its own router; prefixes and tags live here

from fastapi import APIRouter

from midwestea.api.v1.endpoints import (
    admin,
    auth,
    checkout,
    classes,
    courses,
    cron,
    logs,
    students,
    transactions,
    waitlist,
    webhooks,
)

api_router = APIRouter()

# Reconciliation & Accounting Export
api_router.include_router(transactions.router, prefix="/transactions", tags=["Transactions"])
api_router.include_router(transactions.export_router, tags=["Transactions"])

# Checkout (public)
api_router.include_router(checkout.router, prefix="/checkout", tags=["Checkout"])

# Classes & Courses
api_router.include_router(classes.router, prefix="/classes", tags=["Classes"])
api_router.include_router(courses.router, prefix="/courses", tags=["Courses"])

# Waitlist
api_router.include_router(waitlist.router, prefix="/waitlist", tags=["Waitlist"])

# Students
api_router.include_router(students.router, prefix="/students", tags=["Students"])

# Audit Logs
api_router.include_router(logs.router, prefix="/logs", tags=["Logs"])

# Auth
api_router.include_router(auth.router, prefix="/auth", tags=["Authentication"])

# Payment Webhooks
api_router.include_router(webhooks.router, prefix="/webhooks", tags=["Webhooks"])

# Admin
api_router.include_router(admin.router, prefix="/admin", tags=["Admin"])

# Scheduled Jobs
api_router.include_router(cron.router, prefix="/cron", tags=["Cron"])
