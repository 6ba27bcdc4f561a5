import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from centerdesk.api.v1.audit_logs.router import router as audit_logs_router
from centerdesk.api.v1.fees.router import router as fees_router
from centerdesk.api.v1.payments.router import router as payments_router
from centerdesk.api.v1.portal.router import router as portal_router
from centerdesk.api.v1.referrals.router import router as referrals_router
from centerdesk.api.v1.students.router import router as students_router
from centerdesk.core.config import settings


def create_app() -> FastAPI:
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = FastAPI(title="Tutorial Center Backend")

    # CORS: allow the dashboard and portal frontends to call this API
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Routers
    app.include_router(students_router)
    app.include_router(fees_router)
    app.include_router(payments_router)
    app.include_router(audit_logs_router)
    app.include_router(portal_router)
    app.include_router(referrals_router)

    return app


app = create_app()
