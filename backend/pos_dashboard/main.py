# backend/pos_dashboard/main.py
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import importlib, logging

from pos_dashboard.config import load_settings
from pos_dashboard.services.sync_state import SyncState
from pos_dashboard.upstream.client import UpstreamClient

settings = load_settings()
logging.basicConfig(level=settings.log_level)

app = FastAPI(title="POS Monitoring Dashboard API", version="0.1.0")

app.state.settings = settings
app.state.upstream = UpstreamClient.from_settings(settings)
app.state.sync_state = SyncState()

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_allow_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("shutdown")
def _close_upstream():
    app.state.upstream.close()


# ---- Router mounting helper (logs reasons for optional modules; no silent failures) ----
def _mount_optional(module_path: str):
    try:
        mod = importlib.import_module(module_path)
        router = getattr(mod, "router")
        app.include_router(router)
        logging.info("Mounted router: %s", module_path)
    except Exception as e:
        logging.warning("Skip router %s due to error: %s", module_path, e)

# ===== Required: dashboard aggregation (fail fast to avoid a half-broken system) =====
from pos_dashboard.api.dashboard import router as dashboard_router  # noqa: E402
app.include_router(dashboard_router)
logging.info("Mounted router: pos_dashboard.api.dashboard")

# ===== Optional modules (mount if present; if missing or failing, log the reason) =====
_optional_modules = [
    "pos_dashboard.api.health",  # /api/health (upstream probe)
    "pos_dashboard.api.auth",    # /api/auth/verify (online/offline tokens)
]

for mod in _optional_modules:
    _mount_optional(mod)
