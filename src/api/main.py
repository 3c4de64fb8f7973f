import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from src.api.routes.key_moments import router as key_moments_router
from src.api.routes.summarize import router as summarize_router
from src.api.routes.transcripts import router as transcripts_router
from src.api.routes.videos import router as videos_router

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

app = FastAPI(
    title="Video Digest API",
    description="Key-moment selection, frame narration and map-reduce summaries for recordings",
    version="0.1.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:3000",
        "http://localhost:8501",
    ],
    allow_origin_regex=r"http://localhost:\d+",
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(transcripts_router)
app.include_router(key_moments_router)
app.include_router(summarize_router)
app.include_router(videos_router)


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn

    from src.config import settings

    uvicorn.run(app, host=settings.api_host, port=settings.api_port)
