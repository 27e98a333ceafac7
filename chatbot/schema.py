from pydantic import BaseModel, field_validator
from typing import Optional, List, Dict, Any
from datetime import datetime
from .models import NodeType, ConditionType


def reject_null(v):
    """Partial updates may omit a required column but never null it"""
    if v is None:
        raise ValueError("may not be null")
    return v

# ---------------- Flows ----------------

class ChatbotFlowBase(BaseModel):
    name: str
    description: Optional[str] = None
    trigger_keywords: List[str] = []
    is_active: bool = True
    is_default: bool = False

    @field_validator('trigger_keywords')
    @classmethod
    def clean_keywords(cls, v):
        # Blank keywords would match every message
        return [keyword.strip() for keyword in v if keyword and keyword.strip()]

class ChatbotFlowCreate(ChatbotFlowBase):
    pass

class ChatbotFlowUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    trigger_keywords: Optional[List[str]] = None
    is_active: Optional[bool] = None
    is_default: Optional[bool] = None

    @field_validator('trigger_keywords')
    @classmethod
    def clean_keywords(cls, v):
        reject_null(v)
        return [keyword.strip() for keyword in v if keyword and keyword.strip()]

    @field_validator('name', 'is_active', 'is_default')
    @classmethod
    def not_null(cls, v):
        return reject_null(v)

class ChatbotFlowResponse(ChatbotFlowBase):
    id: int
    created_by: Optional[int] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class FlowValidationResponse(BaseModel):
    flow_id: int
    valid: bool
    start_node_id: Optional[int] = None
    issues: List[str] = []

# ---------------- Nodes ----------------

class ChatbotNodeBase(BaseModel):
    type: NodeType
    message: str = ""
    position: Optional[int] = None
    variables: Optional[List[str]] = None

class ChatbotNodeCreate(ChatbotNodeBase):
    flow_id: int

class ChatbotNodeUpdate(BaseModel):
    type: Optional[NodeType] = None
    message: Optional[str] = None
    position: Optional[int] = None
    variables: Optional[List[str]] = None

    @field_validator('type', 'message')
    @classmethod
    def not_null(cls, v):
        return reject_null(v)

class ChatbotNodeResponse(ChatbotNodeBase):
    id: int
    flow_id: int
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True

# ---------------- Conditions ----------------

class ChatbotConditionBase(BaseModel):
    type: ConditionType
    value: Optional[str] = None
    next_node_id: Optional[int] = None
    priority: int = 0

class ChatbotConditionCreate(ChatbotConditionBase):
    node_id: int

class ChatbotConditionUpdate(BaseModel):
    type: Optional[ConditionType] = None
    value: Optional[str] = None
    next_node_id: Optional[int] = None
    priority: Optional[int] = None

    @field_validator('type', 'priority')
    @classmethod
    def not_null(cls, v):
        return reject_null(v)

class ChatbotConditionResponse(ChatbotConditionBase):
    id: int
    node_id: int
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True

# ---------------- Actions ----------------

class ChatbotActionBase(BaseModel):
    type: str
    parameters: Optional[Dict[str, Any]] = None

class ChatbotActionCreate(ChatbotActionBase):
    node_id: int

class ChatbotActionUpdate(BaseModel):
    type: Optional[str] = None
    parameters: Optional[Dict[str, Any]] = None

    @field_validator('type')
    @classmethod
    def not_null(cls, v):
        return reject_null(v)

class ChatbotActionResponse(ChatbotActionBase):
    id: int
    node_id: int
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True

# ---------------- Sessions ----------------

class ChatbotSessionResponse(BaseModel):
    id: int
    chat_id: int
    flow_id: int
    start_node_id: Optional[int] = None
    current_node_id: Optional[int] = None
    variables: Dict[str, Any] = {}
    is_active: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None

    class Config:
        from_attributes = True

# ---------------- Canned responses ----------------

class CannedResponseBase(BaseModel):
    shortcut: str
    content: str
    is_global: bool = False

class CannedResponseCreate(CannedResponseBase):
    pass

class CannedResponseUpdate(BaseModel):
    shortcut: Optional[str] = None
    content: Optional[str] = None
    is_global: Optional[bool] = None

    @field_validator('shortcut', 'content', 'is_global')
    @classmethod
    def not_null(cls, v):
        return reject_null(v)

class CannedResponseResponse(CannedResponseBase):
    id: int
    created_by: Optional[int] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
