from fastapi import APIRouter, Depends

from au_payroll.api.deps import get_store
from au_payroll.providers import JsonDataStore

router = APIRouter(prefix="/health", tags=["health"])


@router.get("", summary="Liveness probe with bundled tax table years")
def healthcheck(store: JsonDataStore = Depends(get_store)) -> dict:
    return {"status": "ok", "tax_tables": store.tax_tables.available_versions()}
