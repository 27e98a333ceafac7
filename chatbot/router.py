from fastapi import APIRouter, Request, Depends, HTTPException
from sqlalchemy import orm
from config.database import get_db
from shared_utils.auth import get_current_user_id, can_modify
from .schema import (
    ChatbotFlowCreate, ChatbotFlowUpdate, ChatbotFlowResponse, FlowValidationResponse,
    ChatbotNodeCreate, ChatbotNodeUpdate, ChatbotNodeResponse,
    ChatbotConditionCreate, ChatbotConditionUpdate, ChatbotConditionResponse,
    ChatbotActionCreate, ChatbotActionUpdate, ChatbotActionResponse,
    ChatbotSessionResponse,
    CannedResponseCreate, CannedResponseUpdate, CannedResponseResponse,
)
from .graph import FlowGraph
from . import crud
from typing import List, Optional
import logging

router = APIRouter(prefix="/api/whatsapp/chatbot", tags=["chatbot"])
canned_router = APIRouter(prefix="/api/whatsapp/canned-responses", tags=["canned-responses"])
logger = logging.getLogger(__name__)


# ==================== Flows ====================

@router.get("/flows", response_model=List[ChatbotFlowResponse])
def read_flows(db: orm.Session = Depends(get_db)):
    try:
        return crud.get_chatbot_flows(db)
    except Exception as e:
        logger.error(f"Error fetching chatbot flows: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to fetch chatbot flows")


@router.get("/flows/consultant/{consultant_id}", response_model=List[ChatbotFlowResponse])
def read_flows_by_consultant(consultant_id: int, db: orm.Session = Depends(get_db)):
    return crud.get_chatbot_flows_by_consultant(db, consultant_id)


@router.get("/flows/{flow_id}", response_model=ChatbotFlowResponse)
def read_flow(flow_id: int, db: orm.Session = Depends(get_db)):
    flow = crud.get_chatbot_flow(db, flow_id)
    if not flow:
        raise HTTPException(status_code=404, detail="Chatbot flow not found")
    return flow


@router.post("/flows", response_model=ChatbotFlowResponse, status_code=201)
def create_flow(payload: ChatbotFlowCreate, request: Request, db: orm.Session = Depends(get_db)):
    try:
        flow = crud.create_chatbot_flow(db, payload.model_dump(), created_by=get_current_user_id(request))
        logger.info(f"✅ Chatbot flow {flow.id} '{flow.name}' created")
        return flow
    except Exception as e:
        db.rollback()
        logger.error(f"❌ Error creating chatbot flow: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to create chatbot flow")


@router.put("/flows/{flow_id}", response_model=ChatbotFlowResponse)
def update_flow(flow_id: int, payload: ChatbotFlowUpdate, request: Request, db: orm.Session = Depends(get_db)):
    try:
        flow = crud.get_chatbot_flow(db, flow_id)
        if not flow:
            raise HTTPException(status_code=404, detail="Chatbot flow not found")
        if not can_modify(request, flow.created_by):
            raise HTTPException(status_code=403, detail="You are not allowed to modify this flow")
        return crud.update_chatbot_flow(db, flow, payload.model_dump(exclude_unset=True))
    except HTTPException:
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"Error updating chatbot flow {flow_id}: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to update chatbot flow")


@router.delete("/flows/{flow_id}")
def delete_flow(flow_id: int, request: Request, db: orm.Session = Depends(get_db)):
    try:
        flow = crud.get_chatbot_flow(db, flow_id)
        if not flow:
            raise HTTPException(status_code=404, detail="Chatbot flow not found")
        if not can_modify(request, flow.created_by):
            raise HTTPException(status_code=403, detail="You are not allowed to delete this flow")
        crud.delete_chatbot_flow(db, flow)
        logger.info(f"🗑️ Chatbot flow {flow_id} deleted")
        return {"message": f"Chatbot flow {flow_id} deleted successfully"}
    except HTTPException:
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"Error deleting chatbot flow {flow_id}: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to delete chatbot flow")


@router.get("/flows/{flow_id}/validate", response_model=FlowValidationResponse)
def validate_flow(flow_id: int, db: orm.Session = Depends(get_db)):
    flow = crud.get_chatbot_flow(db, flow_id)
    if not flow:
        raise HTTPException(status_code=404, detail="Chatbot flow not found")

    graph = FlowGraph.load(db, flow_id)
    issues = graph.validate(db)
    start_node = graph.start_node()
    return FlowValidationResponse(
        flow_id=flow_id,
        valid=not issues,
        start_node_id=start_node.id if start_node else None,
        issues=issues,
    )


# ==================== Nodes ====================

@router.get("/flows/{flow_id}/nodes", response_model=List[ChatbotNodeResponse])
def read_nodes(flow_id: int, db: orm.Session = Depends(get_db)):
    if not crud.get_chatbot_flow(db, flow_id):
        raise HTTPException(status_code=404, detail="Chatbot flow not found")
    return crud.get_chatbot_nodes(db, flow_id)


@router.get("/nodes/{node_id}", response_model=ChatbotNodeResponse)
def read_node(node_id: int, db: orm.Session = Depends(get_db)):
    node = crud.get_chatbot_node(db, node_id)
    if not node:
        raise HTTPException(status_code=404, detail="Chatbot node not found")
    return node


@router.post("/nodes", response_model=ChatbotNodeResponse, status_code=201)
def create_node(payload: ChatbotNodeCreate, db: orm.Session = Depends(get_db)):
    try:
        if not crud.get_chatbot_flow(db, payload.flow_id):
            raise HTTPException(status_code=404, detail="Chatbot flow not found")
        return crud.create_chatbot_node(db, payload.model_dump(mode="json"))
    except HTTPException:
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"❌ Error creating chatbot node: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to create chatbot node")


@router.put("/nodes/{node_id}", response_model=ChatbotNodeResponse)
def update_node(node_id: int, payload: ChatbotNodeUpdate, db: orm.Session = Depends(get_db)):
    try:
        node = crud.get_chatbot_node(db, node_id)
        if not node:
            raise HTTPException(status_code=404, detail="Chatbot node not found")
        return crud.update_chatbot_node(db, node, payload.model_dump(mode="json", exclude_unset=True))
    except HTTPException:
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"Error updating chatbot node {node_id}: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to update chatbot node")


@router.delete("/nodes/{node_id}")
def delete_node(node_id: int, db: orm.Session = Depends(get_db)):
    try:
        node = crud.get_chatbot_node(db, node_id)
        if not node:
            raise HTTPException(status_code=404, detail="Chatbot node not found")
        crud.delete_chatbot_node(db, node)
        return {"message": f"Chatbot node {node_id} deleted successfully"}
    except HTTPException:
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"Error deleting chatbot node {node_id}: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to delete chatbot node")


# ==================== Conditions ====================

def _check_condition_target(db: orm.Session, node, next_node_id):
    if next_node_id is None:
        return
    target = crud.get_chatbot_node(db, next_node_id)
    if target is None:
        raise HTTPException(status_code=422, detail=f"Target node {next_node_id} not found")
    if target.flow_id != node.flow_id:
        raise HTTPException(
            status_code=422,
            detail=f"Target node {next_node_id} belongs to another flow",
        )


@router.get("/nodes/{node_id}/conditions", response_model=List[ChatbotConditionResponse])
def read_conditions(node_id: int, db: orm.Session = Depends(get_db)):
    if not crud.get_chatbot_node(db, node_id):
        raise HTTPException(status_code=404, detail="Chatbot node not found")
    return crud.get_chatbot_conditions(db, node_id)


@router.post("/conditions", response_model=ChatbotConditionResponse, status_code=201)
def create_condition(payload: ChatbotConditionCreate, db: orm.Session = Depends(get_db)):
    try:
        node = crud.get_chatbot_node(db, payload.node_id)
        if not node:
            raise HTTPException(status_code=404, detail="Chatbot node not found")
        _check_condition_target(db, node, payload.next_node_id)
        return crud.create_chatbot_condition(db, payload.model_dump(mode="json"))
    except HTTPException:
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"❌ Error creating chatbot condition: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to create chatbot condition")


@router.put("/conditions/{condition_id}", response_model=ChatbotConditionResponse)
def update_condition(condition_id: int, payload: ChatbotConditionUpdate, db: orm.Session = Depends(get_db)):
    try:
        condition = crud.get_chatbot_condition(db, condition_id)
        if not condition:
            raise HTTPException(status_code=404, detail="Chatbot condition not found")
        changes = payload.model_dump(mode="json", exclude_unset=True)
        if "next_node_id" in changes:
            _check_condition_target(db, crud.get_chatbot_node(db, condition.node_id), changes["next_node_id"])
        return crud.update_chatbot_condition(db, condition, changes)
    except HTTPException:
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"Error updating chatbot condition {condition_id}: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to update chatbot condition")


@router.delete("/conditions/{condition_id}")
def delete_condition(condition_id: int, db: orm.Session = Depends(get_db)):
    try:
        condition = crud.get_chatbot_condition(db, condition_id)
        if not condition:
            raise HTTPException(status_code=404, detail="Chatbot condition not found")
        crud.delete_chatbot_condition(db, condition)
        return {"message": f"Chatbot condition {condition_id} deleted successfully"}
    except HTTPException:
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"Error deleting chatbot condition {condition_id}: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to delete chatbot condition")


# ==================== Actions ====================

@router.get("/nodes/{node_id}/actions", response_model=List[ChatbotActionResponse])
def read_actions(node_id: int, db: orm.Session = Depends(get_db)):
    if not crud.get_chatbot_node(db, node_id):
        raise HTTPException(status_code=404, detail="Chatbot node not found")
    return crud.get_chatbot_actions(db, node_id)


@router.post("/actions", response_model=ChatbotActionResponse, status_code=201)
def create_action(payload: ChatbotActionCreate, db: orm.Session = Depends(get_db)):
    try:
        if not crud.get_chatbot_node(db, payload.node_id):
            raise HTTPException(status_code=404, detail="Chatbot node not found")
        return crud.create_chatbot_action(db, payload.model_dump())
    except HTTPException:
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"❌ Error creating chatbot action: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to create chatbot action")


@router.put("/actions/{action_id}", response_model=ChatbotActionResponse)
def update_action(action_id: int, payload: ChatbotActionUpdate, db: orm.Session = Depends(get_db)):
    try:
        action = crud.get_chatbot_action(db, action_id)
        if not action:
            raise HTTPException(status_code=404, detail="Chatbot action not found")
        return crud.update_chatbot_action(db, action, payload.model_dump(exclude_unset=True))
    except HTTPException:
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"Error updating chatbot action {action_id}: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to update chatbot action")


@router.delete("/actions/{action_id}")
def delete_action(action_id: int, db: orm.Session = Depends(get_db)):
    try:
        action = crud.get_chatbot_action(db, action_id)
        if not action:
            raise HTTPException(status_code=404, detail="Chatbot action not found")
        crud.delete_chatbot_action(db, action)
        return {"message": f"Chatbot action {action_id} deleted successfully"}
    except HTTPException:
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"Error deleting chatbot action {action_id}: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to delete chatbot action")


# ==================== Sessions ====================

@router.get("/sessions", response_model=List[ChatbotSessionResponse])
def read_sessions(chat_id: Optional[int] = None, db: orm.Session = Depends(get_db)):
    return crud.get_chatbot_sessions(db, chat_id=chat_id)


@router.post("/sessions/{session_id}/end", response_model=ChatbotSessionResponse)
def end_session(session_id: int, db: orm.Session = Depends(get_db)):
    try:
        session = crud.get_chatbot_session(db, session_id)
        if not session:
            raise HTTPException(status_code=404, detail="Chatbot session not found")
        if not session.is_active:
            return session
        session = crud.end_chatbot_session(db, session)
        logger.info(f"Session {session_id} ended by operator")
        return session
    except HTTPException:
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"Error ending chatbot session {session_id}: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to end chatbot session")


# ==================== Canned responses ====================

@canned_router.get("", response_model=List[CannedResponseResponse])
def read_canned_responses(db: orm.Session = Depends(get_db)):
    return crud.get_canned_responses(db)


@canned_router.get("/consultant/{consultant_id}", response_model=List[CannedResponseResponse])
def read_canned_responses_by_consultant(consultant_id: int, db: orm.Session = Depends(get_db)):
    return crud.get_canned_responses_by_consultant(db, consultant_id)


@canned_router.get("/shortcut/{shortcut}", response_model=CannedResponseResponse)
def read_canned_response_by_shortcut(shortcut: str, db: orm.Session = Depends(get_db)):
    response = crud.get_canned_response_by_shortcut(db, shortcut)
    if not response:
        raise HTTPException(status_code=404, detail="Canned response not found")
    return response


@canned_router.post("", response_model=CannedResponseResponse, status_code=201)
def create_canned_response(payload: CannedResponseCreate, request: Request, db: orm.Session = Depends(get_db)):
    try:
        return crud.create_canned_response(db, payload.model_dump(), created_by=get_current_user_id(request))
    except Exception as e:
        db.rollback()
        logger.error(f"❌ Error creating canned response: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to create canned response")


@canned_router.put("/{response_id}", response_model=CannedResponseResponse)
def update_canned_response(response_id: int, payload: CannedResponseUpdate, request: Request, db: orm.Session = Depends(get_db)):
    try:
        response = crud.get_canned_response(db, response_id)
        if not response:
            raise HTTPException(status_code=404, detail="Canned response not found")
        if not can_modify(request, response.created_by):
            raise HTTPException(status_code=403, detail="You are not allowed to modify this canned response")
        return crud.update_canned_response(db, response, payload.model_dump(exclude_unset=True))
    except HTTPException:
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"Error updating canned response {response_id}: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to update canned response")


@canned_router.delete("/{response_id}")
def delete_canned_response(response_id: int, request: Request, db: orm.Session = Depends(get_db)):
    try:
        response = crud.get_canned_response(db, response_id)
        if not response:
            raise HTTPException(status_code=404, detail="Canned response not found")
        if not can_modify(request, response.created_by):
            raise HTTPException(status_code=403, detail="You are not allowed to delete this canned response")
        crud.delete_canned_response(db, response)
        return {"message": f"Canned response {response_id} deleted successfully"}
    except HTTPException:
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"Error deleting canned response {response_id}: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to delete canned response")
