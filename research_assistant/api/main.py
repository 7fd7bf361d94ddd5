from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from research_assistant.api.routes import research
from research_assistant.config import settings

app = FastAPI(title="Research Assistant")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)

app.include_router(research.router)


@app.get("/api/health")
async def health():
    return {"status": "ok", "service": "research-assistant"}
