"""
Node action dispatch
Actions are opaque payloads handed to a handler when a node is entered
"""
import logging
from typing import Callable, Dict, Any, List, Optional
from .models import ChatbotNode, ChatbotAction

logger = logging.getLogger(__name__)

ActionHandler = Callable[[ChatbotNode, List[ChatbotAction], Dict[str, Any]], None]


def log_actions(node: ChatbotNode, actions: List[ChatbotAction], context: Dict[str, Any]) -> None:
    for action in actions:
        logger.info(
            f"[Chatbot] Node {node.id} action '{action.type}' "
            f"(chat {context.get('chat_id')}): {action.parameters}"
        )


class ActionDispatcher:
    """Forwards node actions to a handler; handler failures never reach the caller"""

    def __init__(self, handler: Optional[ActionHandler] = None):
        self.handler = handler or log_actions

    def dispatch(self, node: ChatbotNode, actions: List[ChatbotAction], context: Dict[str, Any]) -> bool:
        if not actions:
            return True
        try:
            self.handler(node, actions, context)
            return True
        except Exception as e:
            logger.error(f"❌ Action handler failed for node {node.id}: {e}")
            return False
