"""FastAPI server exposing the generation pipeline."""
import asyncio
import logging

from dotenv import load_dotenv

load_dotenv()

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from amplifier import providers
from amplifier.config.catalog import get_catalog
from amplifier.config.settings import EnvSettingsProvider
from amplifier.errors import PreconditionError, ProviderError
from amplifier.generation.context_store import ContextStore, run_housekeeping
from amplifier.generation.orchestrator import GenerationOrchestrator
from amplifier.models import GenerationResult, PostData, ResponseType
from amplifier.profile_cache import ProfileCache
from amplifier.prompts.style_check import StyleCheck, validate_style_prompt
from amplifier.usage import UsageTracker

_log = logging.getLogger(__name__)

app = FastAPI(title="amplifier API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["https://x.com", "https://twitter.com"],
    allow_methods=["GET", "POST", "DELETE"],
    allow_headers=["*"],
)

# ── Wiring ───────────────────────────────────────────────────────────────────

catalog = get_catalog()
settings_provider = EnvSettingsProvider(catalog)
store = ContextStore()
profiles = ProfileCache()
usage_tracker = UsageTracker(catalog)
orchestrator = GenerationOrchestrator(
    settings_provider,
    catalog,
    store,
    profiles=profiles,
    usage=usage_tracker,
)

_housekeeping: asyncio.Task | None = None


@app.on_event("startup")
async def _startup() -> None:
    global _housekeeping
    await profiles.init()
    await profiles.cleanup_expired()
    _housekeeping = asyncio.create_task(run_housekeeping(store))
    _log.info("catalog v%s (%s), profile db=%s", catalog.version, catalog.source, profiles.db_path)


@app.on_event("shutdown")
async def _shutdown() -> None:
    if _housekeeping is not None:
        _housekeeping.cancel()


# ── Endpoints ────────────────────────────────────────────────────────────────

class GenerateRequest(BaseModel):
    post: PostData
    response_type: ResponseType = "reply"
    feedback: str | None = None
    force_regenerate: bool = False


class ValidatePromptRequest(BaseModel):
    prompt: str


@app.get("/api/health")
async def health() -> dict:
    return {"status": "ok", "contexts": len(store), "catalog_version": catalog.version}


@app.post("/api/generate", response_model=GenerationResult)
async def generate(req: GenerateRequest) -> GenerationResult:
    try:
        return await orchestrator.generate(
            req.post,
            req.response_type,
            feedback=req.feedback,
            force_regenerate=req.force_regenerate,
        )
    except PreconditionError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    except ProviderError as exc:
        raise HTTPException(status_code=502, detail=exc.message)


@app.delete("/api/contexts/{post_key:path}")
async def clear_context(post_key: str) -> dict:
    orchestrator.clear_context(post_key)
    return {"cleared": post_key}


@app.post("/api/test-connection")
async def check_connection() -> dict:
    settings = await settings_provider.get_settings()
    connected = await providers.test_connection(settings.provider, settings.api_key or "")
    return {"connected": connected}


@app.post("/api/validate-prompt", response_model=StyleCheck)
async def validate_prompt(req: ValidatePromptRequest) -> StyleCheck:
    settings = await settings_provider.get_settings()
    if not settings.api_key:
        raise HTTPException(status_code=400, detail="API key not configured")
    return await validate_style_prompt(settings.provider, settings.api_key, req.prompt)


@app.get("/api/catalog/arguments")
async def list_arguments() -> list[dict]:
    return [a.model_dump() for a in catalog.include_arguments()]


@app.get("/api/catalog/call-to-actions")
async def list_call_to_actions() -> list[dict]:
    return [c.model_dump() for c in catalog.call_to_actions()]
