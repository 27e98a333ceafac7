from sqlalchemy import or_
from sqlalchemy.orm import Session
from typing import Optional, List, Dict, Any
from datetime import datetime
from .models import (
    ChatbotFlow, ChatbotNode, ChatbotCondition, ChatbotAction,
    ChatbotSession, CannedResponse,
)

# ---------------- Flows ----------------

def get_chatbot_flows(db: Session) -> List[ChatbotFlow]:
    return db.query(ChatbotFlow).order_by(ChatbotFlow.id.asc()).all()

def get_active_chatbot_flows(db: Session) -> List[ChatbotFlow]:
    return (db.query(ChatbotFlow)
            .filter(ChatbotFlow.is_active == True)  # noqa: E712
            .order_by(ChatbotFlow.id.asc())
            .all())

def get_default_chatbot_flow(db: Session) -> Optional[ChatbotFlow]:
    return (db.query(ChatbotFlow)
            .filter(ChatbotFlow.is_default == True, ChatbotFlow.is_active == True)  # noqa: E712
            .order_by(ChatbotFlow.id.asc())
            .first())

def get_chatbot_flow(db: Session, flow_id: int) -> Optional[ChatbotFlow]:
    return db.query(ChatbotFlow).filter(ChatbotFlow.id == flow_id).first()

def get_chatbot_flows_by_consultant(db: Session, consultant_id: int) -> List[ChatbotFlow]:
    return (db.query(ChatbotFlow)
            .filter(ChatbotFlow.created_by == consultant_id)
            .order_by(ChatbotFlow.id.asc())
            .all())

def _clear_other_defaults(db: Session, keep_id: Optional[int] = None):
    query = db.query(ChatbotFlow).filter(ChatbotFlow.is_default == True)  # noqa: E712
    if keep_id is not None:
        query = query.filter(ChatbotFlow.id != keep_id)
    query.update({ChatbotFlow.is_default: False}, synchronize_session=False)

def create_chatbot_flow(db: Session, data: Dict[str, Any], created_by: Optional[int] = None) -> ChatbotFlow:
    if data.get("is_default"):
        _clear_other_defaults(db)
    flow = ChatbotFlow(**data, created_by=created_by)
    db.add(flow)
    db.commit()
    db.refresh(flow)
    return flow

def update_chatbot_flow(db: Session, flow: ChatbotFlow, changes: Dict[str, Any]) -> ChatbotFlow:
    if changes.get("is_default"):
        _clear_other_defaults(db, keep_id=flow.id)
    for key, value in changes.items():
        setattr(flow, key, value)
    db.commit()
    db.refresh(flow)
    return flow

def delete_chatbot_flow(db: Session, flow: ChatbotFlow) -> None:
    # Sessions reference the flow; remove them with it
    db.query(ChatbotSession).filter(ChatbotSession.flow_id == flow.id).delete(synchronize_session=False)
    db.delete(flow)
    db.commit()

# ---------------- Nodes ----------------

def get_chatbot_nodes(db: Session, flow_id: int) -> List[ChatbotNode]:
    return (db.query(ChatbotNode)
            .filter(ChatbotNode.flow_id == flow_id)
            .order_by(ChatbotNode.id.asc())
            .all())

def get_chatbot_node(db: Session, node_id: int) -> Optional[ChatbotNode]:
    return db.query(ChatbotNode).filter(ChatbotNode.id == node_id).first()

def create_chatbot_node(db: Session, data: Dict[str, Any]) -> ChatbotNode:
    node = ChatbotNode(**data)
    db.add(node)
    db.commit()
    db.refresh(node)
    return node

def update_chatbot_node(db: Session, node: ChatbotNode, changes: Dict[str, Any]) -> ChatbotNode:
    for key, value in changes.items():
        setattr(node, key, value)
    db.commit()
    db.refresh(node)
    return node

def delete_chatbot_node(db: Session, node: ChatbotNode) -> None:
    db.delete(node)
    db.commit()

# ---------------- Conditions ----------------

def get_chatbot_conditions(db: Session, node_id: int) -> List[ChatbotCondition]:
    """Conditions in evaluation order"""
    return (db.query(ChatbotCondition)
            .filter(ChatbotCondition.node_id == node_id)
            .order_by(ChatbotCondition.priority.asc(), ChatbotCondition.id.asc())
            .all())

def get_chatbot_conditions_for_flow(db: Session, flow_id: int) -> List[ChatbotCondition]:
    return (db.query(ChatbotCondition)
            .join(ChatbotNode, ChatbotCondition.node_id == ChatbotNode.id)
            .filter(ChatbotNode.flow_id == flow_id)
            .order_by(ChatbotCondition.priority.asc(), ChatbotCondition.id.asc())
            .all())

def get_chatbot_condition(db: Session, condition_id: int) -> Optional[ChatbotCondition]:
    return db.query(ChatbotCondition).filter(ChatbotCondition.id == condition_id).first()

def create_chatbot_condition(db: Session, data: Dict[str, Any]) -> ChatbotCondition:
    condition = ChatbotCondition(**data)
    db.add(condition)
    db.commit()
    db.refresh(condition)
    return condition

def update_chatbot_condition(db: Session, condition: ChatbotCondition, changes: Dict[str, Any]) -> ChatbotCondition:
    for key, value in changes.items():
        setattr(condition, key, value)
    db.commit()
    db.refresh(condition)
    return condition

def delete_chatbot_condition(db: Session, condition: ChatbotCondition) -> None:
    db.delete(condition)
    db.commit()

# ---------------- Actions ----------------

def get_chatbot_actions(db: Session, node_id: int) -> List[ChatbotAction]:
    return (db.query(ChatbotAction)
            .filter(ChatbotAction.node_id == node_id)
            .order_by(ChatbotAction.id.asc())
            .all())

def get_chatbot_action(db: Session, action_id: int) -> Optional[ChatbotAction]:
    return db.query(ChatbotAction).filter(ChatbotAction.id == action_id).first()

def create_chatbot_action(db: Session, data: Dict[str, Any]) -> ChatbotAction:
    action = ChatbotAction(**data)
    db.add(action)
    db.commit()
    db.refresh(action)
    return action

def update_chatbot_action(db: Session, action: ChatbotAction, changes: Dict[str, Any]) -> ChatbotAction:
    for key, value in changes.items():
        setattr(action, key, value)
    db.commit()
    db.refresh(action)
    return action

def delete_chatbot_action(db: Session, action: ChatbotAction) -> None:
    db.delete(action)
    db.commit()

# ---------------- Sessions ----------------

def get_chatbot_sessions(db: Session, chat_id: Optional[int] = None) -> List[ChatbotSession]:
    query = db.query(ChatbotSession)
    if chat_id is not None:
        query = query.filter(ChatbotSession.chat_id == chat_id)
    return query.order_by(ChatbotSession.id.asc()).all()

def get_chatbot_session(db: Session, session_id: int) -> Optional[ChatbotSession]:
    return db.query(ChatbotSession).filter(ChatbotSession.id == session_id).first()

def get_active_chatbot_session(db: Session, chat_id: int) -> Optional[ChatbotSession]:
    return (db.query(ChatbotSession)
            .filter(ChatbotSession.chat_id == chat_id, ChatbotSession.is_active == True)  # noqa: E712
            .first())

def create_chatbot_session(db: Session, chat_id: int, flow_id: int, start_node_id: int) -> ChatbotSession:
    session = ChatbotSession(
        chat_id=chat_id,
        flow_id=flow_id,
        start_node_id=start_node_id,
        current_node_id=start_node_id,
        variables={},
        is_active=True,
    )
    db.add(session)
    db.commit()
    db.refresh(session)
    return session

def advance_chatbot_session(db: Session, session: ChatbotSession, node_id: int, variables: Dict[str, Any]) -> ChatbotSession:
    session.current_node_id = node_id
    # New dict so the JSON column registers the change
    session.variables = dict(variables)
    db.commit()
    db.refresh(session)
    return session

def end_chatbot_session(db: Session, session: ChatbotSession) -> ChatbotSession:
    session.is_active = False
    session.ended_at = datetime.utcnow()
    db.commit()
    db.refresh(session)
    return session

# ---------------- Canned responses ----------------

def get_canned_responses(db: Session) -> List[CannedResponse]:
    return db.query(CannedResponse).order_by(CannedResponse.id.asc()).all()

def get_canned_responses_by_consultant(db: Session, consultant_id: int) -> List[CannedResponse]:
    """A consultant sees their own responses plus the global ones"""
    return (db.query(CannedResponse)
            .filter(or_(CannedResponse.created_by == consultant_id, CannedResponse.is_global == True))  # noqa: E712
            .order_by(CannedResponse.id.asc())
            .all())

def get_canned_response(db: Session, response_id: int) -> Optional[CannedResponse]:
    return db.query(CannedResponse).filter(CannedResponse.id == response_id).first()

def get_canned_response_by_shortcut(db: Session, shortcut: str) -> Optional[CannedResponse]:
    return (db.query(CannedResponse)
            .filter(CannedResponse.shortcut == shortcut)
            .order_by(CannedResponse.id.asc())
            .first())

def create_canned_response(db: Session, data: Dict[str, Any], created_by: Optional[int] = None) -> CannedResponse:
    response = CannedResponse(**data, created_by=created_by)
    db.add(response)
    db.commit()
    db.refresh(response)
    return response

def update_canned_response(db: Session, response: CannedResponse, changes: Dict[str, Any]) -> CannedResponse:
    for key, value in changes.items():
        setattr(response, key, value)
    db.commit()
    db.refresh(response)
    return response

def delete_canned_response(db: Session, response: CannedResponse) -> None:
    db.delete(response)
    db.commit()
