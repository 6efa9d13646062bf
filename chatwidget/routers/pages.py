from pathlib import Path
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.templating import Jinja2Templates
from sqlalchemy.orm import Session

from ..config import get_settings
from ..dependencies import get_db
from ..services.embeds import get_public_design, public_embed_config

router = APIRouter()
templates = Jinja2Templates(directory=str(Path(__file__).resolve().parents[1] / "templates"))
settings = get_settings()


@router.get("/embed/{embed_id}")
def embed_page(
    request: Request,
    embed_id: str,
    session_id: Optional[str] = Query(None, alias="sessionId"),
    mobile: bool = Query(False),
    db: Session = Depends(get_db),
):
    design = get_public_design(db, embed_id)
    if not design:
        return templates.TemplateResponse(
            request,
            "embed_unavailable.html",
            {"embed_id": embed_id},
            status_code=404,
        )
    config = public_embed_config(design)
    return templates.TemplateResponse(
        request,
        "embed.html",
        {
            "config": config,
            "embed_config": {**config, "sessionId": session_id, "mobile": mobile},
            "api_base_url": settings.app_base_url,
        },
    )
