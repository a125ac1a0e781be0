import logging
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from config import FRONTEND_ORIGINS, LOG_LEVEL
from database import ensure_indexes, get_db
from routes import (
    auth_routes,
    connection_routes,
    course_routes,
    quiz_routes,
    report_routes,
    roster_routes,
    settings_routes,
    student_routes,
)

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger("main")

app = FastAPI(title="QuizQuest API", version="1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=FRONTEND_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
async def startup_event():
    try:
        ensure_indexes(get_db())
        logger.info("Application startup complete.")
    except Exception as e:
        logger.critical(f"Failed to prepare database on startup: {e}")
        raise


@app.on_event("shutdown")
async def shutdown_event():
    logger.info("Application shutting down.")


# Every error leaves the API as {"success": false, "message": ...}
@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.detail}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "message": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    message = "Invalid request!"
    if errors:
        first = errors[0]
        field = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
        message = f"{field}: {first.get('msg')}" if field else str(first.get("msg"))
    logger.warning(f"Rejected {request.method} {request.url.path}: {message}")
    return JSONResponse(status_code=400, content={"success": False, "message": message})


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception(f"Unexpected error on {request.method} {request.url.path}")
    return JSONResponse(status_code=500, content={"success": False, "message": "Internal server error"})


app.include_router(auth_routes.router)
app.include_router(quiz_routes.router)
app.include_router(student_routes.router)
app.include_router(report_routes.router)
app.include_router(roster_routes.router)
app.include_router(connection_routes.router)
app.include_router(course_routes.router)
app.include_router(settings_routes.router)


@app.get("/")
async def root():
    return {"success": True, "message": "Backend OK", "time": datetime.now(timezone.utc).isoformat()}


@app.get("/api")
async def api_root():
    return {"success": True, "message": "QuizQuest API is running."}


@app.get("/test")
async def test():
    db = get_db()
    try:
        collections = db.list_collection_names()
        status = "connected"
    except Exception as e:
        logger.error(f"Database check failed: {e}")
        collections = []
        status = "error"
    return {
        "success": status == "connected",
        "backend": "FastAPI",
        "database": "MongoDB",
        "database_url": "env:DATABASE_URL",
        "database_name": db.name,
        "connection_status": status,
        "collections": collections,
    }


if __name__ == "__main__":
    import os
    import uvicorn
    uvicorn.run("main:app", host="0.0.0.0", port=int(os.environ.get("PORT", 8000)))
