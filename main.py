import logging
from contextlib import asynccontextmanager

import firebase_admin
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from firebase_admin import credentials
from starlette.middleware.cors import CORSMiddleware
from starlette.responses import JSONResponse

from config import FIREBASE_CREDENTIALS, CORS_ORIGINS, LOG_LEVEL
from context import RequestContextMiddleware
from routes.posts import router as posts_router
from services.errors import PostsError
from services.firestore import FirestoreDB
from services.posts import PostService

logging.basicConfig(level=LOG_LEVEL,
                    format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Initialize Firebase Admin SDK
    cred = credentials.Certificate(FIREBASE_CREDENTIALS)
    firebase_app = firebase_admin.initialize_app(cred)

    # Initialize dependencies
    firestore = FirestoreDB(firebase_app)
    app.state.firestore = firestore
    app.state.post_service = PostService(firestore)
    logger.info("Firebase app '%s' initialized", firebase_app.name)

    yield
    # Cleanup resources
    await firestore.close()
    firebase_admin.delete_app(firebase_app)


async def posts_error_handler(request: Request, exc: PostsError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_content())


async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = []
    for error in exc.errors():
        loc = [str(part) for part in error.get("loc", ())]
        errors.append({
            "msg": error.get("msg", "Invalid value"),
            "param": ".".join(loc[1:]),
            "location": loc[0] if loc else "body",
        })
    return JSONResponse(status_code=400, content={"errors": errors})


def register_exception_handlers(app: FastAPI):
    app.add_exception_handler(PostsError, posts_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)


app = FastAPI(lifespan=lifespan)

# middleware to set request context
app.add_middleware(RequestContextMiddleware)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

# Include routers
app.include_router(posts_router, prefix="/api/posts", tags=["posts"])
