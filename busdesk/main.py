from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from busdesk.src import schemas
from busdesk.src.constants import API_TITLE, API_VERSION
from busdesk.api.controller import app_dashboard


app = FastAPI(title=API_TITLE, version=API_VERSION)

origins = ["*"]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.mount("/dashboard", app_dashboard, "Dashboard API")


# Health check endpoint
@app.get("/health", tags=["Health Check"], response_model=schemas.HealthStatus)
async def health_check():
    return {"status": "OK", "version": API_VERSION}
