import logging

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from hackhub.core.config import CORS_ORIGINS, LOG_LEVEL
from hackhub.core.logging_middleware import LoggingMiddleware
from hackhub.core.responses import register_exception_handlers
from hackhub.db.documents import close_client
from hackhub.db.init_db import init_db
from hackhub.routers.announcements import router as announcements_router
from hackhub.routers.auth import router as auth_router
from hackhub.routers.certificates import router as certificates_router
from hackhub.routers.chat import router as chat_router
from hackhub.routers.enrollments import router as enrollments_router
from hackhub.routers.events import router as events_router
from hackhub.routers.submissions import router as submissions_router
from hackhub.routers.teams import router as teams_router
from hackhub.routers.users import router as users_router

logging.basicConfig(level=LOG_LEVEL)

app = FastAPI(title="HackHub")

# Middleware
app.add_middleware(LoggingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)


# Health check
@app.get("/health")
def health():
    return {"status": "ok"}


@app.on_event("startup")
def on_startup():
    init_db()


@app.on_event("shutdown")
def on_shutdown():
    close_client()


# Include routers
app.include_router(auth_router, prefix="/auth", tags=["auth"])
app.include_router(users_router, prefix="/users", tags=["users"])
app.include_router(events_router, prefix="/events", tags=["events"])
# enrollment routes hang off /events/{event_id}/...
app.include_router(enrollments_router, prefix="/events", tags=["enrollments"])
app.include_router(teams_router, prefix="/teams", tags=["teams"])
app.include_router(submissions_router, prefix="/submissions", tags=["submissions"])
app.include_router(announcements_router, prefix="/announcements", tags=["announcements"])
app.include_router(certificates_router, prefix="/certificates", tags=["certificates"])
app.include_router(chat_router, prefix="/chat", tags=["chat"])


if __name__ == "__main__":
    uvicorn.run("hackhub.main:app", host="0.0.0.0", port=8000, reload=True)
