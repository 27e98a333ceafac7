"""
Chatbot conversation engine
Routes an inbound WhatsApp message through the chat, lead and session records
and walks the flow graph one message at a time
"""
import os
import threading
import logging
from contextlib import contextmanager
from typing import Optional, Dict, List
from sqlalchemy.orm import Session
from leads import crud as lead_crud
from whatsapp_chats import crud as chat_crud
from . import crud
from .models import ChatbotSession, NodeType
from .conditions import ConditionEvaluator
from .graph import find_start_node
from .actions import ActionDispatcher

logger = logging.getLogger(__name__)

NO_FLOW_REPLY = "Thank you for your message. A consultant will respond to you shortly."
NOT_READY_REPLY = "Our chatbot is currently being set up. A consultant will respond to you shortly."
ERROR_REPLY = "Sorry, we encountered an error. A consultant will respond to you shortly."
CLOSING_REPLY = "Thank you for chatting with us. A consultant will follow up with you shortly."

DEFAULT_CONSULTANT_ID = int(os.getenv("DEFAULT_CONSULTANT_ID", "1"))

# phone number -> [lock, holders]; an entry is dropped once nobody holds or waits on it
_phone_locks: Dict[str, List] = {}
_phone_locks_guard = threading.Lock()


@contextmanager
def _phone_lock(phone_number: str):
    """Serialize message handling for one phone number"""
    with _phone_locks_guard:
        entry = _phone_locks.get(phone_number)
        if entry is None:
            entry = [threading.Lock(), 0]
            _phone_locks[phone_number] = entry
        entry[1] += 1
    try:
        with entry[0]:
            yield
    finally:
        with _phone_locks_guard:
            entry[1] -= 1
            if entry[1] == 0:
                del _phone_locks[phone_number]


class ConversationEngine:
    """Processes inbound messages against the stored chatbot flows"""

    def __init__(self, db: Session, dispatcher: Optional[ActionDispatcher] = None):
        self.db = db
        self.dispatcher = dispatcher or ActionDispatcher()

    def process_incoming_message(self, phone_number: str, message: str) -> Optional[str]:
        """
        Handle one inbound message

        Args:
            phone_number: sender's phone number as delivered by WhatsApp
            message: message text

        Returns:
            Reply text, or None when the message could not be processed
        """
        with _phone_lock(phone_number):
            try:
                chat = chat_crud.find_chat_by_phone_number(self.db, phone_number)

                if chat is None:
                    lead = self._find_or_create_lead(phone_number)
                    if lead is None:
                        return None
                    chat = chat_crud.create_whatsapp_chat(
                        self.db,
                        lead_id=lead.id,
                        phone_number=phone_number,
                        consultant_id=lead.consultant_id,
                    )
                    logger.info(f"💬 New chat {chat.id} for {phone_number} (lead {lead.id})")

                chat_crud.create_whatsapp_message(
                    self.db, chat, content=message, direction="incoming", status="received"
                )

                session = crud.get_active_chatbot_session(self.db, chat.id)
                if session is not None:
                    return self.continue_conversation_flow(session, message)
                return self.start_new_conversation_flow(chat.id, message)

            except Exception as e:
                self.db.rollback()
                logger.error(f"❌ Error processing incoming message from {phone_number}: {e}")
                return None

    def _find_or_create_lead(self, phone_number: str):
        try:
            lead = lead_crud.find_lead_by_phone(self.db, phone_number)
            if lead is None:
                lead = lead_crud.create_lead(
                    self.db,
                    full_name="WhatsApp User",
                    phone=phone_number,
                    whatsapp_number=phone_number,
                    consultant_id=DEFAULT_CONSULTANT_ID,
                    created_by=DEFAULT_CONSULTANT_ID,
                    status="New",
                    priority="Medium",
                    source="WhatsApp",
                )
                logger.info(f"👤 Created lead {lead.id} for {phone_number}")
            return lead
        except Exception as e:
            self.db.rollback()
            logger.error(f"❌ Error finding or creating lead for {phone_number}: {e}")
            return None

    def start_new_conversation_flow(self, chat_id: int, message: str) -> str:
        """Pick a flow for the message and open a session at its start node"""
        try:
            flow = None
            text = (message or "").lower()
            for candidate in crud.get_active_chatbot_flows(self.db):
                keywords = candidate.trigger_keywords or []
                if any(keyword and keyword.lower() in text for keyword in keywords):
                    flow = candidate
                    break

            if flow is None:
                flow = crud.get_default_chatbot_flow(self.db)

            if flow is None:
                return NO_FLOW_REPLY

            start_node = find_start_node(crud.get_chatbot_nodes(self.db, flow.id))
            if start_node is None:
                logger.warning(f"Flow {flow.id} has no start node")
                return NOT_READY_REPLY

            session = crud.create_chatbot_session(self.db, chat_id, flow.id, start_node.id)
            logger.info(f"🤖 Session {session.id} started on flow '{flow.name}' for chat {chat_id}")

            self._dispatch_actions(start_node, session, message)
            return start_node.message

        except Exception as e:
            self.db.rollback()
            logger.error(f"❌ Error starting conversation flow for chat {chat_id}: {e}")
            return ERROR_REPLY

    def continue_conversation_flow(self, session: ChatbotSession, message: str) -> str:
        """Move an active session one step along the flow"""
        session_id = session.id
        try:
            current_node = crud.get_chatbot_node(self.db, session.current_node_id) if session.current_node_id else None
            if current_node is None:
                logger.warning(f"Session {session.id} points to missing node {session.current_node_id}")
                crud.end_chatbot_session(self.db, session)
                return ERROR_REPLY

            conditions = crud.get_chatbot_conditions(self.db, current_node.id)
            next_node_id = ConditionEvaluator.select_next_node_id(conditions, message)

            if next_node_id is None:
                crud.end_chatbot_session(self.db, session)
                logger.info(f"Session {session.id} closed at node {current_node.id}")
                return CLOSING_REPLY

            next_node = crud.get_chatbot_node(self.db, next_node_id)
            if next_node is None:
                logger.warning(f"Condition target node {next_node_id} not found (session {session.id})")
                crud.end_chatbot_session(self.db, session)
                return ERROR_REPLY
            if next_node.flow_id != session.flow_id:
                logger.warning(
                    f"Condition target node {next_node.id} belongs to flow {next_node.flow_id}, "
                    f"not flow {session.flow_id} (session {session.id})"
                )
                crud.end_chatbot_session(self.db, session)
                return ERROR_REPLY

            variables = {**(session.variables or {}), "lastMessage": message}
            crud.advance_chatbot_session(self.db, session, next_node.id, variables)

            self._dispatch_actions(next_node, session, message)

            if next_node.type == NodeType.END.value:
                crud.end_chatbot_session(self.db, session)
                logger.info(f"Session {session.id} reached end node {next_node.id}")

            return next_node.message

        except Exception as e:
            self.db.rollback()
            logger.error(f"❌ Error continuing session {session_id}: {e}")
            return ERROR_REPLY

    def _dispatch_actions(self, node, session: ChatbotSession, message: str):
        actions = crud.get_chatbot_actions(self.db, node.id)
        context = {
            "chat_id": session.chat_id,
            "session_id": session.id,
            "flow_id": session.flow_id,
            "message": message,
            "variables": dict(session.variables or {}),
        }
        self.dispatcher.dispatch(node, actions, context)
