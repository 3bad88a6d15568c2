# Settings & Probe API
#
# - Flat app settings (UI preferences)
# - Remote model listing for a key/base pair typed into the source form

from typing import Any, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from ..probe import query_models
from ..vault import CredentialStore
from .security import verify_session_token
from .source_routes import get_store

router = APIRouter(
    prefix="/api",
    tags=["settings"],
    dependencies=[Depends(verify_session_token)],
)


class SettingValue(BaseModel):
    value: Any = None


class ModelQueryRequest(BaseModel):
    api_key: Optional[str] = None
    api_base: Optional[str] = None


@router.get("/settings/{key}")
def get_setting(key: str, store: CredentialStore = Depends(get_store)):
    return {"key": key, "value": store.get_setting(key)}


@router.put("/settings/{key}")
def set_setting(
    key: str,
    body: SettingValue,
    store: CredentialStore = Depends(get_store),
):
    store.set_setting(key, body.value)
    return {"success": True, "key": key, "value": body.value}


@router.post("/models/query")
def query_remote_models(request: ModelQueryRequest):
    """Probe <api_base>/v1/models; failures come back as success=false."""
    return query_models(request.api_key, request.api_base).to_dict()
