import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from core.config import Settings
from core.scanner import Scanner

logger = logging.getLogger(__name__)

description = """
## PhishScope Risk API

Estimates phishing/fraud risk for a URL by running six independent probes
(URL patterns, security headers, TLS certificate, vulnerability indicators,
WHOIS, DNS) and combining them into one safe score and a risk grade.

* `GET /analyze?url=<target>`: full assessment
* `GET /health`: liveness check
"""


def create_app(settings: Optional[Settings] = None, scanner: Optional[Scanner] = None) -> FastAPI:
    """
    Builds the FastAPI application.

    Args:
        settings (Settings, optional): Runtime settings; read from the environment if None.
        scanner (Scanner, optional): A ready scanner. If None, one is created on startup
                                     and closed on shutdown.

    Returns:
        FastAPI: The configured application.
    """
    settings = settings or Settings.from_env()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        own_scanner = getattr(app.state, "scanner", None) is None
        if own_scanner:
            app.state.scanner = Scanner(settings)
        try:
            yield
        finally:
            if own_scanner:
                await app.state.scanner.aclose()
                app.state.scanner = None

    app = FastAPI(
        title="PhishScope Risk API",
        description=description,
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.scanner = scanner

    @app.get("/health", tags=["health"])
    async def health():
        return {"status": "ok"}

    @app.get("/analyze", tags=["analyze"])
    async def analyze(request: Request, url: Optional[str] = None):
        """
        Assesses the phishing risk of `url`.

        Returns the assessment with one section per probe, `totalScore` (0-100,
        higher is safer), `overallGrade` (from the summed risk) and `meta` totals.
        """
        if not url:
            return JSONResponse(status_code=400, content={"error": "missing url parameter"})

        try:
            result = await request.app.state.scanner.analyze(url)
        except Exception:
            logger.exception(f"Analysis failed for {url}")
            return JSONResponse(status_code=500, content={"error": "analysis failed"})
        return JSONResponse(content=result.to_dict())

    return app
