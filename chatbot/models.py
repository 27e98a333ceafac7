from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, Text, JSON, Index
from sqlalchemy.orm import relationship
from config.database import Base
from whatsapp_chats.models import WhatsappChat
from datetime import datetime
import enum


class NodeType(str, enum.Enum):
    START = "start"
    MESSAGE = "message"
    QUESTION = "question"
    CONDITION = "condition"
    ACTION = "action"
    END = "end"


class ConditionType(str, enum.Enum):
    CONTAINS = "contains"
    EQUALS = "equals"
    REGEX = "regex"
    DEFAULT = "default"


class ChatbotFlow(Base):
    __tablename__ = "chatbot_flows"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    trigger_keywords = Column(JSON, nullable=False, default=list)  # ["hi", "hello", ...]
    is_active = Column(Boolean, default=True, nullable=False)
    is_default = Column(Boolean, default=False, nullable=False)
    created_by = Column(Integer, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    nodes = relationship(
        "ChatbotNode",
        back_populates="flow",
        cascade="all, delete-orphan",
        order_by="ChatbotNode.id",
    )

    def __repr__(self):
        return f"<ChatbotFlow(id={self.id}, name={self.name})>"


class ChatbotNode(Base):
    __tablename__ = "chatbot_nodes"

    id = Column(Integer, primary_key=True, index=True)
    flow_id = Column(Integer, ForeignKey("chatbot_flows.id", ondelete="CASCADE"), nullable=False, index=True)
    type = Column(String(20), nullable=False)  # NodeType value
    message = Column(Text, nullable=False, default="")
    position = Column(Integer, nullable=True)
    variables = Column(JSON, nullable=True)  # names of variables the node collects
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    flow = relationship("ChatbotFlow", back_populates="nodes")
    conditions = relationship(
        "ChatbotCondition",
        back_populates="node",
        cascade="all, delete-orphan",
        order_by=lambda: [ChatbotCondition.priority, ChatbotCondition.id],
    )
    actions = relationship(
        "ChatbotAction",
        back_populates="node",
        cascade="all, delete-orphan",
        order_by="ChatbotAction.id",
    )

    def __repr__(self):
        return f"<ChatbotNode(id={self.id}, flow_id={self.flow_id}, type={self.type})>"


class ChatbotCondition(Base):
    __tablename__ = "chatbot_conditions"

    id = Column(Integer, primary_key=True, index=True)
    node_id = Column(Integer, ForeignKey("chatbot_nodes.id", ondelete="CASCADE"), nullable=False, index=True)
    type = Column(String(20), nullable=False)  # ConditionType value
    value = Column(Text, nullable=True)
    # Plain integer: a deleted target shows up as a missing node at runtime
    next_node_id = Column(Integer, nullable=True)
    priority = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    node = relationship("ChatbotNode", back_populates="conditions")

    def __repr__(self):
        return f"<ChatbotCondition(id={self.id}, node_id={self.node_id}, type={self.type})>"


class ChatbotAction(Base):
    __tablename__ = "chatbot_actions"

    id = Column(Integer, primary_key=True, index=True)
    node_id = Column(Integer, ForeignKey("chatbot_nodes.id", ondelete="CASCADE"), nullable=False, index=True)
    type = Column(String(50), nullable=False)
    parameters = Column(JSON, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    node = relationship("ChatbotNode", back_populates="actions")

    def __repr__(self):
        return f"<ChatbotAction(id={self.id}, node_id={self.node_id}, type={self.type})>"


class ChatbotSession(Base):
    __tablename__ = "chatbot_sessions"

    id = Column(Integer, primary_key=True, index=True)
    chat_id = Column(Integer, ForeignKey("whatsapp_chats.id", ondelete="CASCADE"), nullable=False, index=True)
    flow_id = Column(Integer, ForeignKey("chatbot_flows.id", ondelete="CASCADE"), nullable=False)
    start_node_id = Column(Integer, nullable=True)
    current_node_id = Column(Integer, nullable=True)
    variables = Column(JSON, nullable=False, default=dict)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
    ended_at = Column(DateTime, nullable=True)

    chat = relationship(WhatsappChat)
    flow = relationship("ChatbotFlow")

    def __repr__(self):
        return f"<ChatbotSession(id={self.id}, chat_id={self.chat_id}, active={self.is_active})>"


class CannedResponse(Base):
    __tablename__ = "canned_responses"

    id = Column(Integer, primary_key=True, index=True)
    shortcut = Column(String(100), nullable=False, index=True)
    content = Column(Text, nullable=False)
    is_global = Column(Boolean, default=False, nullable=False)
    created_by = Column(Integer, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    def __repr__(self):
        return f"<CannedResponse(id={self.id}, shortcut={self.shortcut})>"


# At most one active session per chat
Index(
    "uq_chatbot_sessions_active_chat",
    ChatbotSession.chat_id,
    unique=True,
    sqlite_where=ChatbotSession.is_active == True,  # noqa: E712
    postgresql_where=ChatbotSession.is_active == True,  # noqa: E712
)
