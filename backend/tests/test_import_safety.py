"""
test_import_safety.py — Import and circular-import checks.

Verifies that:
  1. Every service, model and API module imports cleanly in isolation.
  2. Importing the app never opens a database connection (the engine is lazy
     and init_db is only called from the lifespan hook).
  3. The pure engine modules do not pull in FastAPI.

No database, network, or external services are required.
"""

import importlib
import sys
import pytest


SERVICE_MODULES = [
    "app.services.domain_values",
    "app.services.overlay_resolver",
    "app.services.size_range_resolver",
    "app.services.combination_engine",
    "app.services.code_synthesizer",
    "app.services.catalog_weight_resolver",
    "app.services.expansion_pipeline",
    "app.services.spec_repository",
    "app.services.review_output_service",
    "app.services.logging_config",
    "app.services.middleware",
    "app.services.perf_monitor",
]

OTHER_MODULES = [
    "app.config",
    "app.db",
    "app.models.orm_models",
    "app.models.pms_schema",
    "app.api.deps",
    "app.api.review_output_routes",
    "app.main",
]


@pytest.mark.parametrize("module", SERVICE_MODULES + OTHER_MODULES)
def test_module_imports(module):
    assert importlib.import_module(module) is not None


def test_app_import_leaves_pool_empty():
    from app.db import engine
    importlib.import_module("app.main")
    assert engine.pool.checkedout() == 0


@pytest.mark.parametrize("module", [
    "app.services.combination_engine",
    "app.services.code_synthesizer",
    "app.services.size_range_resolver",
])
def test_engine_modules_are_framework_free(module):
    mod = importlib.import_module(module)
    source_globals = vars(mod)
    assert not any(
        getattr(v, "__module__", "").startswith("fastapi") for v in source_globals.values()
    )


def test_routes_registered():
    from app.main import app
    paths = {route.path for route in app.routes}
    assert {
        "/api/review-output/generate",
        "/api/review-output/load",
        "/api/review-output/update-unit-weight",
        "/api/review-output/filter",
        "/health",
        "/metrics",
    } <= paths
    assert "app.main" in sys.modules
