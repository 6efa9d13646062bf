from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ...dependencies import get_current_user, get_db, get_owned_chatbot
from ...models import ChatbotConfig, EmbedDesign
from ...schemas import ComponentVisibilityUpdate, EmbedDesignCreate, EmbedDesignRead, EmbedDesignUpdate
from ...schemas.embed import EmbedComponentRead
from ...services.embeds import create_embed_design, set_component_visibility, update_embed_design

router = APIRouter()


def _owned_design(db: Session, chatbot: ChatbotConfig, embed_id: str) -> EmbedDesign:
    design = (
        db.query(EmbedDesign)
        .filter(EmbedDesign.embed_id == embed_id, EmbedDesign.chatbot_config_id == chatbot.id)
        .first()
    )
    if not design:
        raise HTTPException(status_code=404, detail="Embed design not found")
    return design


@router.get("/{guid}/embeds", response_model=list[EmbedDesignRead])
def list_designs(guid: str, db: Session = Depends(get_db), current_user=Depends(get_current_user)):
    chatbot = get_owned_chatbot(db, current_user.id, guid)
    return (
        db.query(EmbedDesign)
        .filter(EmbedDesign.chatbot_config_id == chatbot.id)
        .order_by(EmbedDesign.created_at.desc(), EmbedDesign.id.desc())
        .all()
    )


@router.post("/{guid}/embeds", response_model=EmbedDesignRead, status_code=201)
def create_design(
    guid: str,
    payload: EmbedDesignCreate,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user),
):
    chatbot = get_owned_chatbot(db, current_user.id, guid)
    design = create_embed_design(db, chatbot, payload)
    db.refresh(design)
    return design


@router.get("/{guid}/embeds/{embed_id}", response_model=EmbedDesignRead)
def get_design(guid: str, embed_id: str, db: Session = Depends(get_db), current_user=Depends(get_current_user)):
    chatbot = get_owned_chatbot(db, current_user.id, guid)
    return _owned_design(db, chatbot, embed_id)


@router.put("/{guid}/embeds/{embed_id}", response_model=EmbedDesignRead)
def update_design(
    guid: str,
    embed_id: str,
    payload: EmbedDesignUpdate,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user),
):
    chatbot = get_owned_chatbot(db, current_user.id, guid)
    design = update_embed_design(db, _owned_design(db, chatbot, embed_id), payload)
    db.refresh(design)
    return design


@router.delete("/{guid}/embeds/{embed_id}")
def delete_design(guid: str, embed_id: str, db: Session = Depends(get_db), current_user=Depends(get_current_user)):
    chatbot = get_owned_chatbot(db, current_user.id, guid)
    db.delete(_owned_design(db, chatbot, embed_id))
    db.commit()
    return {"success": True}


@router.patch("/{guid}/embeds/{embed_id}/components/{component_name}", response_model=EmbedComponentRead)
def update_component(
    guid: str,
    embed_id: str,
    component_name: str,
    payload: ComponentVisibilityUpdate,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user),
):
    chatbot = get_owned_chatbot(db, current_user.id, guid)
    design = _owned_design(db, chatbot, embed_id)
    return set_component_visibility(db, design, component_name, payload.is_visible, payload.display_order)
