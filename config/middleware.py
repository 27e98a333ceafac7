# middleware.py
import os
from fastapi.middleware.cors import CORSMiddleware

DEFAULT_ORIGINS = [
    "http://localhost:5173",
    "http://localhost:3000",
]

def add_cors_middleware(app):
    extra = [o.strip() for o in os.getenv("CORS_ORIGINS", "").split(",") if o.strip()]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=DEFAULT_ORIGINS + extra,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
