import logging

import uvicorn
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

import models.event_listener  # noqa: F401
from core.catch_error_middleware import ErrorHandlerMiddleware
from core.exception_handler import ValidationErrorHandler
from core.lifespan import lifespan
from core.settings import settings
from realtime.chat_routes import router as chat_socket_router
from routes.admin_routes import router as admin_router
from routes.booking_routes import router as booking_router
from routes.chat_routes import router as chat_router
from routes.payment_routes import router as payment_router
from routes.profile_routes import router as profile_router
from routes.property_routes import router as property_router
from routes.review_routes import router as review_router
from routes.webhooks_routes import router as webhook_router
from schemas.schema import HealthOut

logging.basicConfig(level=logging.INFO)
app = FastAPI(
    lifespan=lifespan,
    title=settings.PROJECT_NAME,
    version="1.0.0",
)

app.include_router(property_router, prefix="/v1")
app.include_router(booking_router, prefix="/v1")
app.include_router(payment_router, prefix="/v1")
app.include_router(webhook_router, prefix="/v1")
app.include_router(chat_router, prefix="/v1")
app.include_router(chat_socket_router, prefix="/v1")
app.include_router(profile_router, prefix="/v1")
app.include_router(review_router, prefix="/v1")
app.include_router(admin_router, prefix="/v1")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_HOSTS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health", tags=["System"], response_model=HealthOut)
async def health_check():
    return HealthOut()


app.add_exception_handler(
    RequestValidationError,
    ValidationErrorHandler(),
)

app.add_middleware(ErrorHandlerMiddleware)


if __name__ == "__main__":
    uvicorn.run(app, host="127.0.0.1", port=8001)
