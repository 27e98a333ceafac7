from fastapi import APIRouter, Depends, HTTPException, Body, Query
from fastapi.responses import PlainTextResponse
from sqlalchemy import orm
from config.database import get_db
from shared_utils.auth import require_admin
from chatbot.engine import ConversationEngine
from .schema import (
    WhatsappChatResponse, WhatsappMessageResponse,
    WhatsappSettingsUpdate, WhatsappSettingsResponse,
)
from .sender import WhatsAppSender, load_settings_snapshot, reset_settings_cache
from . import crud
from typing import List, Optional, Dict, Any
import logging

router = APIRouter(prefix="/api/whatsapp", tags=["whatsapp"])
logger = logging.getLogger(__name__)

NON_TEXT_PLACEHOLDER = "(Media or non-text message)"


# ==================== Settings ====================

@router.get("/settings", response_model=Optional[WhatsappSettingsResponse], dependencies=[Depends(require_admin)])
def read_settings(db: orm.Session = Depends(get_db)):
    return crud.get_whatsapp_settings(db)


@router.post("/settings", response_model=WhatsappSettingsResponse, dependencies=[Depends(require_admin)])
def save_settings(payload: WhatsappSettingsUpdate, db: orm.Session = Depends(get_db)):
    try:
        settings = crud.save_whatsapp_settings(db, payload.model_dump(exclude_unset=True))
        reset_settings_cache()
        logger.info("✅ WhatsApp settings saved")
        return settings
    except Exception as e:
        db.rollback()
        logger.error(f"❌ Error saving WhatsApp settings: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to save WhatsApp settings")


# ==================== Webhook ====================

def extract_incoming_messages(payload: Dict[str, Any]) -> List[Dict[str, str]]:
    """Flatten a Cloud API webhook body into (phone, text) pairs"""
    messages = []
    for entry in payload.get("entry") or []:
        for change in entry.get("changes") or []:
            value = change.get("value") or {}
            for message in value.get("messages") or []:
                phone_number = message.get("from")
                if not phone_number:
                    continue
                text = (message.get("text") or {}).get("body")
                messages.append({
                    "phone_number": phone_number,
                    "text": text if text else NON_TEXT_PLACEHOLDER,
                })
    return messages


@router.post("/webhook")
def receive_webhook(payload: Dict[str, Any] = Body(...), db: orm.Session = Depends(get_db)):
    if "entry" not in payload:
        raise HTTPException(status_code=400, detail="Invalid webhook payload")

    engine = ConversationEngine(db)
    sender = WhatsAppSender(db)

    for incoming in extract_incoming_messages(payload):
        phone_number = incoming["phone_number"]
        logger.info(f"📩 Incoming WhatsApp message from {phone_number}")

        reply = engine.process_incoming_message(phone_number, incoming["text"])
        if not reply:
            continue

        result = sender.send_text(phone_number, reply)
        try:
            chat = crud.find_chat_by_phone_number(db, phone_number)
            if chat is not None:
                crud.create_whatsapp_message(
                    db,
                    chat,
                    content=reply,
                    direction="outgoing",
                    status="sent" if result["sent"] else "failed",
                    message_id=result.get("message_id"),
                )
        except Exception as e:
            db.rollback()
            logger.error(f"❌ Error recording reply to {phone_number}: {str(e)}")

    return PlainTextResponse("OK", status_code=200)


@router.get("/webhook")
def verify_webhook(
    mode: Optional[str] = Query(None, alias="hub.mode"),
    token: Optional[str] = Query(None, alias="hub.verify_token"),
    challenge: Optional[str] = Query(None, alias="hub.challenge"),
    db: orm.Session = Depends(get_db),
):
    settings = load_settings_snapshot(db)
    if not settings or not settings.get("webhook_verify_token"):
        raise HTTPException(status_code=400, detail="Webhook verification is not configured")

    if mode == "subscribe" and token == settings["webhook_verify_token"]:
        logger.info("✅ WhatsApp webhook verified")
        return PlainTextResponse(challenge or "", status_code=200)

    logger.warning("Webhook verification failed")
    raise HTTPException(status_code=403, detail="Verification failed")


# ==================== Chats ====================

@router.get("/chats", response_model=List[WhatsappChatResponse])
def read_chats(consultant_id: Optional[int] = None, db: orm.Session = Depends(get_db)):
    return crud.get_whatsapp_chats(db, consultant_id=consultant_id)


@router.get("/chats/{chat_id}/messages", response_model=List[WhatsappMessageResponse])
def read_chat_messages(
    chat_id: int,
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db: orm.Session = Depends(get_db),
):
    if not crud.get_whatsapp_chat(db, chat_id):
        raise HTTPException(status_code=404, detail="Chat not found")
    return crud.get_chat_messages(db, chat_id, limit=limit, offset=offset)


@router.post("/chats/{chat_id}/read", response_model=WhatsappChatResponse)
def mark_chat_read(chat_id: int, db: orm.Session = Depends(get_db)):
    try:
        chat = crud.get_whatsapp_chat(db, chat_id)
        if not chat:
            raise HTTPException(status_code=404, detail="Chat not found")
        return crud.mark_chat_read(db, chat)
    except HTTPException:
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"Error marking chat {chat_id} as read: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to mark chat as read")
