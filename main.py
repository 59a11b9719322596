from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from logging_config import setup_logging

setup_logging()

app = FastAPI(title="Boiler Room API")

# Permissive CORS; the frontend and the Render worker both call in
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

from boil_api import router as boil_router
app.include_router(boil_router)

@app.get("/health")
def health():
    return {"status":"ok"}
