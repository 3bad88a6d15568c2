# Source API - endpoints the UI shell uses to manage API sources
#
# - List / get / create / update / delete sources
# - Activate a source (store + environment fan-out)
# - Read back the exported environment
#
# Handlers are plain ``def`` so FastAPI runs the blocking key derivation
# and file I/O in its threadpool.

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import BaseModel, ConfigDict, Field

from ..activation import SourceSwitcher
from ..vault import CredentialStore, ProfileInput
from .security import verify_session_token

router = APIRouter(
    prefix="/api",
    tags=["sources"],
    dependencies=[Depends(verify_session_token)],
)


def get_store(request: Request) -> CredentialStore:
    return request.app.state.store


def get_switcher(request: Request) -> SourceSwitcher:
    return request.app.state.switcher


# Request Models
class CreateSourceRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str = Field("", max_length=200)
    api_key: str
    api_base: str = ""
    model: Optional[str] = None
    is_default: bool = False


class UpdateSourceRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = Field(None, max_length=200)
    api_key: Optional[str] = None
    api_base: Optional[str] = None
    model: Optional[str] = None
    is_default: Optional[bool] = None


# Endpoints

@router.get("/sources")
def list_sources(store: CredentialStore = Depends(get_store)):
    """List all sources with decrypted keys, in insertion order."""
    return {"sources": [s.to_dict() for s in store.list_all()]}


@router.get("/sources/active")
def get_active_source(store: CredentialStore = Depends(get_store)):
    """Get the active source, or null when none is active."""
    active = store.get_active()
    return {"source": active.to_dict() if active else None}


@router.get("/sources/{source_id}")
def get_source(source_id: int, store: CredentialStore = Depends(get_store)):
    source = store.get_by_id(source_id)
    if source is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="API source not found",
        )
    return source.to_dict()


@router.post("/sources", status_code=status.HTTP_201_CREATED)
def create_source(
    request: CreateSourceRequest,
    store: CredentialStore = Depends(get_store),
):
    """Create a source. Setting is_default clears it on every other source."""
    source_id = store.save(ProfileInput(**request.model_dump()))
    return {"success": True, "id": source_id}


@router.put("/sources/{source_id}")
def update_source(
    source_id: int,
    request: UpdateSourceRequest,
    store: CredentialStore = Depends(get_store),
):
    """
    Update a source. Only the fields present in the body change; the key is
    re-encrypted only when api_key is supplied.
    """
    changes = request.model_dump(exclude_unset=True)
    # null is only meaningful for model (clears it)
    changes = {k: v for k, v in changes.items() if v is not None or k == "model"}
    store.save(ProfileInput(id=source_id, **changes))
    return {"success": True, "id": source_id}


@router.delete("/sources/{source_id}")
def delete_source(source_id: int, store: CredentialStore = Depends(get_store)):
    """Delete a source. Deleting the active source leaves none active."""
    if not store.delete_by_id(source_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="API source not found",
        )
    return {"success": True, "message": "API source deleted"}


@router.post("/sources/{source_id}/activate")
def activate_source(
    source_id: int,
    switcher: SourceSwitcher = Depends(get_switcher),
):
    """Switch the active source and export its credential."""
    return switcher.switch(source_id).to_dict()


@router.get("/environment")
def verify_environment(switcher: SourceSwitcher = Depends(get_switcher)):
    """Read back the exported variables as consumer tools see them."""
    return {"success": True, "variables": switcher.verify_environment()}
