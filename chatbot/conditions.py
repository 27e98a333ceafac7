"""
Condition evaluation for chatbot nodes
Decides which node a conversation moves to given the latest inbound message
"""
import re
import logging
from typing import Iterable, Optional
from .models import ChatbotCondition, ConditionType

logger = logging.getLogger(__name__)


class ConditionEvaluator:
    """Evaluates node conditions against an inbound message"""

    @staticmethod
    def matches(condition: ChatbotCondition, message: str) -> bool:
        """
        Check a single condition against a message

        contains/equals compare case-insensitively, regex searches with
        IGNORECASE, default always matches. An invalid regex never matches.
        """
        condition_type = condition.type
        expected = condition.value or ""
        text = message or ""

        if condition_type == ConditionType.CONTAINS.value:
            return expected.lower() in text.lower()

        if condition_type == ConditionType.EQUALS.value:
            return text.lower() == expected.lower()

        if condition_type == ConditionType.REGEX.value:
            try:
                return re.search(expected, text, re.IGNORECASE) is not None
            except re.error as e:
                logger.warning(f"Invalid regex in condition {condition.id}: {expected!r} - {e}")
                return False

        if condition_type == ConditionType.DEFAULT.value:
            return True

        logger.warning(f"Unknown condition type {condition_type!r} on condition {condition.id}")
        return False

    @staticmethod
    def select_next_node_id(conditions: Iterable[ChatbotCondition], message: str) -> Optional[int]:
        """
        Pick the next node id for a message

        Args:
            conditions: the node's conditions in stored order
            message: latest inbound message text

        Returns:
            The first met condition's target. If that is empty, the first
            default condition's target. None when neither yields a node.
        """
        conditions = list(conditions)
        next_node_id = None

        for condition in conditions:
            if ConditionEvaluator.matches(condition, message):
                logger.debug(f"Condition {condition.id} ({condition.type}) matched")
                next_node_id = condition.next_node_id
                break

        if next_node_id is None:
            for condition in conditions:
                if condition.type == ConditionType.DEFAULT.value:
                    next_node_id = condition.next_node_id
                    break

        return next_node_id
