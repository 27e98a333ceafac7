"""
Flow graph loading and validation
Nodes live in an id-indexed map, edges are the conditions' next_node_id
"""
from sqlalchemy.orm import Session
from typing import Dict, List, Optional, Iterable
from .models import ChatbotNode, ChatbotCondition, NodeType
from . import crud


def find_start_node(nodes: Iterable[ChatbotNode]) -> Optional[ChatbotNode]:
    """First node in stored order that is a start node or sits at position 1"""
    for node in nodes:
        if node.type == NodeType.START.value or node.position == 1:
            return node
    return None


class FlowGraph:
    """A flow's nodes and conditions, indexed by id"""

    def __init__(self, flow_id: int, nodes: List[ChatbotNode], conditions: List[ChatbotCondition]):
        self.flow_id = flow_id
        self.nodes: Dict[int, ChatbotNode] = {node.id: node for node in nodes}
        self.order: List[int] = [node.id for node in nodes]
        self.edges: Dict[int, List[ChatbotCondition]] = {node.id: [] for node in nodes}
        for condition in conditions:
            self.edges.setdefault(condition.node_id, []).append(condition)

    @classmethod
    def load(cls, db: Session, flow_id: int) -> "FlowGraph":
        nodes = crud.get_chatbot_nodes(db, flow_id)
        conditions = crud.get_chatbot_conditions_for_flow(db, flow_id)
        return cls(flow_id, nodes, conditions)

    def start_node(self) -> Optional[ChatbotNode]:
        return find_start_node(self.nodes[node_id] for node_id in self.order)

    def validate(self, db: Session) -> List[str]:
        """Human readable problems with the flow; empty when the flow is sound"""
        issues = []

        if not self.nodes:
            issues.append("Flow has no nodes")
            return issues

        if self.start_node() is None:
            issues.append("Flow has no start node (type 'start' or position 1)")

        for node_id in self.order:
            node = self.nodes[node_id]
            outgoing = self.edges.get(node_id, [])

            if not outgoing and node.type != NodeType.END.value:
                issues.append(f"Node {node_id} has no conditions and is not an end node")

            for condition in outgoing:
                target_id = condition.next_node_id
                if target_id is None or target_id in self.nodes:
                    continue
                target = crud.get_chatbot_node(db, target_id)
                if target is None:
                    issues.append(f"Condition {condition.id} on node {node_id} points to missing node {target_id}")
                else:
                    issues.append(
                        f"Condition {condition.id} on node {node_id} points to node {target_id} "
                        f"of flow {target.flow_id}"
                    )

        return issues
