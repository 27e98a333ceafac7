"""
Tests for the chatbot conversation engine
Drives ConversationEngine directly against the test database
"""
import threading
import pytest
from sqlalchemy.orm import sessionmaker
from chatbot import engine as engine_module
from chatbot.engine import (
    ConversationEngine,
    NO_FLOW_REPLY, NOT_READY_REPLY, ERROR_REPLY, CLOSING_REPLY,
)
from chatbot.actions import ActionDispatcher
from chatbot.models import ChatbotFlow, ChatbotNode, ChatbotCondition, ChatbotAction, ChatbotSession
from leads.models import Lead
from whatsapp_chats.models import WhatsappChat, WhatsappMessage

PHONE = "971500000001"


def active_sessions(db_session):
    return db_session.query(ChatbotSession).filter(ChatbotSession.is_active == True).all()  # noqa: E712


@pytest.mark.integration
class TestMessageRouting:
    def test_new_number_creates_lead_and_chat(self, db_session):
        engine = ConversationEngine(db_session)
        engine.process_incoming_message(PHONE, "hello")

        lead = db_session.query(Lead).one()
        assert lead.full_name == "WhatsApp User"
        assert lead.phone == PHONE
        assert lead.whatsapp_number == PHONE
        assert lead.consultant_id == 1
        assert lead.created_by == 1
        assert lead.status == "New"
        assert lead.priority == "Medium"
        assert lead.source == "WhatsApp"

        chat = db_session.query(WhatsappChat).one()
        assert chat.phone_number == PHONE
        assert chat.lead_id == lead.id
        assert chat.consultant_id == lead.consultant_id

    def test_two_messages_do_not_duplicate_lead_or_chat(self, db_session):
        engine = ConversationEngine(db_session)
        engine.process_incoming_message(PHONE, "first")
        engine.process_incoming_message(PHONE, "second")

        assert db_session.query(Lead).count() == 1
        assert db_session.query(WhatsappChat).count() == 1

    def test_existing_lead_is_reused(self, db_session, sample_lead):
        engine = ConversationEngine(db_session)
        engine.process_incoming_message(sample_lead.whatsapp_number, "hi")

        assert db_session.query(Lead).count() == 1
        chat = db_session.query(WhatsappChat).one()
        assert chat.lead_id == sample_lead.id
        # Chat inherits the lead's consultant
        assert chat.consultant_id == 5

    def test_incoming_message_is_recorded(self, db_session):
        engine = ConversationEngine(db_session)
        engine.process_incoming_message(PHONE, "hello there")

        message = db_session.query(WhatsappMessage).one()
        assert message.content == "hello there"
        assert message.direction == "incoming"
        assert message.status == "received"
        chat = db_session.query(WhatsappChat).one()
        assert chat.unread_count == 1

    def test_no_flow_returns_fallback_and_no_session(self, db_session):
        engine = ConversationEngine(db_session)
        reply = engine.process_incoming_message(PHONE, "anything")

        assert reply == NO_FLOW_REPLY
        assert db_session.query(ChatbotSession).count() == 0

    def test_persistence_failure_returns_none(self, db_session, mocker):
        mocker.patch(
            "chatbot.engine.chat_crud.find_chat_by_phone_number",
            side_effect=RuntimeError("database is gone"),
        )
        engine = ConversationEngine(db_session)
        assert engine.process_incoming_message(PHONE, "hi") is None

    def test_lead_failure_returns_none(self, db_session, mocker):
        mocker.patch("chatbot.engine.lead_crud.create_lead", side_effect=RuntimeError("boom"))
        engine = ConversationEngine(db_session)

        assert engine.process_incoming_message(PHONE, "hi") is None
        assert db_session.query(WhatsappChat).count() == 0


@pytest.mark.integration
class TestWelcomeScenario:
    def test_hi_starts_session(self, db_session, welcome_flow):
        engine = ConversationEngine(db_session)
        reply = engine.process_incoming_message(PHONE, "hi")

        assert reply == "Hello!"
        sessions = active_sessions(db_session)
        assert len(sessions) == 1
        session = sessions[0]
        assert session.flow_id == welcome_flow["flow"].id
        assert session.start_node_id == welcome_flow["start"].id
        assert session.current_node_id == welcome_flow["start"].id
        assert session.variables == {}

    def test_course_reaches_end_node(self, db_session, welcome_flow):
        engine = ConversationEngine(db_session)
        engine.process_incoming_message(PHONE, "hi")
        reply = engine.process_incoming_message(PHONE, "tell me about a course")

        assert reply == "Thanks!"
        assert active_sessions(db_session) == []
        session = db_session.query(ChatbotSession).one()
        assert session.current_node_id == welcome_flow["end"].id
        assert session.variables == {"lastMessage": "tell me about a course"}
        assert session.ended_at is not None

    def test_unmatched_message_closes_session(self, db_session, welcome_flow):
        engine = ConversationEngine(db_session)
        engine.process_incoming_message(PHONE, "hi")
        reply = engine.process_incoming_message(PHONE, "xyz")

        assert reply == "Thank you for chatting with us. A consultant will follow up with you shortly."
        assert reply == CLOSING_REPLY
        assert active_sessions(db_session) == []

    def test_new_session_after_previous_ended(self, db_session, welcome_flow):
        engine = ConversationEngine(db_session)
        engine.process_incoming_message(PHONE, "hi")
        engine.process_incoming_message(PHONE, "xyz")
        reply = engine.process_incoming_message(PHONE, "hi again")

        assert reply == "Hello!"
        assert db_session.query(ChatbotSession).count() == 2
        assert len(active_sessions(db_session)) == 1

    def test_keyword_match_is_case_insensitive_substring(self, db_session, welcome_flow):
        engine = ConversationEngine(db_session)
        assert engine.process_incoming_message(PHONE, "Oh HI there") == "Hello!"

    def test_inactive_flow_is_ignored(self, db_session, welcome_flow):
        flow = welcome_flow["flow"]
        flow.is_active = False
        db_session.commit()

        engine = ConversationEngine(db_session)
        assert engine.process_incoming_message(PHONE, "hi") == NO_FLOW_REPLY


@pytest.mark.integration
class TestFlowSelection:
    def _flow(self, db_session, name, keywords, message, is_default=False, is_active=True):
        flow = ChatbotFlow(name=name, trigger_keywords=keywords, is_default=is_default, is_active=is_active)
        db_session.add(flow)
        db_session.commit()
        db_session.add(ChatbotNode(flow_id=flow.id, type="start", message=message, position=1))
        db_session.commit()
        return flow

    def test_default_flow_used_without_keyword(self, db_session):
        self._flow(db_session, "Sales", ["price"], "Prices!")
        self._flow(db_session, "Fallback", [], "Hi, how can we help?", is_default=True)

        engine = ConversationEngine(db_session)
        assert engine.process_incoming_message(PHONE, "good morning") == "Hi, how can we help?"

    def test_keyword_flow_beats_default(self, db_session):
        self._flow(db_session, "Fallback", [], "Hi, how can we help?", is_default=True)
        self._flow(db_session, "Sales", ["price"], "Prices!")

        engine = ConversationEngine(db_session)
        assert engine.process_incoming_message(PHONE, "what is the PRICE?") == "Prices!"

    def test_first_keyword_flow_in_id_order_wins(self, db_session):
        self._flow(db_session, "One", ["course"], "First flow")
        self._flow(db_session, "Two", ["course"], "Second flow")

        engine = ConversationEngine(db_session)
        assert engine.process_incoming_message(PHONE, "course") == "First flow"

    def test_inactive_default_flow_is_ignored(self, db_session):
        self._flow(db_session, "Fallback", [], "Hi", is_default=True, is_active=False)

        engine = ConversationEngine(db_session)
        assert engine.process_incoming_message(PHONE, "hello") == NO_FLOW_REPLY

    def test_flow_without_start_node(self, db_session):
        flow = ChatbotFlow(name="Draft", trigger_keywords=["draft"], is_active=True)
        db_session.add(flow)
        db_session.commit()
        db_session.add(ChatbotNode(flow_id=flow.id, type="message", message="not a start", position=2))
        db_session.commit()

        engine = ConversationEngine(db_session)
        assert engine.process_incoming_message(PHONE, "draft") == NOT_READY_REPLY
        assert db_session.query(ChatbotSession).count() == 0


@pytest.mark.integration
class TestContinuation:
    def test_default_condition_used_when_nothing_matches(self, db_session, welcome_flow):
        other = ChatbotNode(flow_id=welcome_flow["flow"].id, type="question", message="What is your name?", position=3)
        db_session.add(other)
        db_session.commit()
        db_session.add(ChatbotCondition(node_id=welcome_flow["start"].id, type="default", next_node_id=other.id))
        db_session.commit()

        engine = ConversationEngine(db_session)
        engine.process_incoming_message(PHONE, "hi")
        reply = engine.process_incoming_message(PHONE, "xyz")

        assert reply == "What is your name?"
        session = active_sessions(db_session)[0]
        assert session.current_node_id == other.id

    def test_node_without_conditions_always_ends_session(self, db_session, welcome_flow):
        question = ChatbotNode(flow_id=welcome_flow["flow"].id, type="question", message="Anything else?", position=3)
        db_session.add(question)
        db_session.commit()
        db_session.add(ChatbotCondition(node_id=welcome_flow["start"].id, type="default", next_node_id=question.id))
        db_session.commit()

        engine = ConversationEngine(db_session)
        for text in ["course", "default", "anything at all"]:
            engine.process_incoming_message(PHONE, "hi")
            assert engine.process_incoming_message(PHONE, "go on") == "Anything else?"
            assert engine.process_incoming_message(PHONE, text) == CLOSING_REPLY
            assert active_sessions(db_session) == []

    def test_variables_merge_last_message(self, db_session, welcome_flow):
        question = ChatbotNode(flow_id=welcome_flow["flow"].id, type="question", message="Name?", position=3)
        db_session.add(question)
        db_session.commit()
        db_session.add(ChatbotCondition(node_id=welcome_flow["start"].id, type="default", next_node_id=question.id))
        db_session.add(ChatbotCondition(node_id=question.id, type="default", next_node_id=question.id))
        db_session.commit()

        engine = ConversationEngine(db_session)
        engine.process_incoming_message(PHONE, "hi")
        session = active_sessions(db_session)[0]
        session.variables = {"course": "Python"}
        db_session.commit()

        engine.process_incoming_message(PHONE, "first answer")
        engine.process_incoming_message(PHONE, "second answer")

        db_session.refresh(session)
        assert session.variables == {"course": "Python", "lastMessage": "second answer"}

    def test_missing_target_node_ends_session_with_error(self, db_session, welcome_flow):
        condition = welcome_flow["condition"]
        condition.next_node_id = 424242
        db_session.commit()

        engine = ConversationEngine(db_session)
        engine.process_incoming_message(PHONE, "hi")
        reply = engine.process_incoming_message(PHONE, "course")

        assert reply == ERROR_REPLY
        assert active_sessions(db_session) == []

    def test_missing_current_node_ends_session_with_error(self, db_session, welcome_flow):
        engine = ConversationEngine(db_session)
        engine.process_incoming_message(PHONE, "hi")
        session = active_sessions(db_session)[0]
        session.current_node_id = 424242
        db_session.commit()

        assert engine.process_incoming_message(PHONE, "course") == ERROR_REPLY
        assert active_sessions(db_session) == []

    def test_target_in_another_flow_ends_session_with_error(self, db_session, welcome_flow):
        other = ChatbotFlow(name="Elsewhere", trigger_keywords=["elsewhere"], is_active=True)
        db_session.add(other)
        db_session.commit()
        foreign = ChatbotNode(flow_id=other.id, type="question", message="Foreign", position=1)
        db_session.add(foreign)
        db_session.commit()
        db_session.add(ChatbotCondition(node_id=welcome_flow["start"].id, type="contains", value="jump", next_node_id=foreign.id, priority=-1))
        db_session.commit()

        engine = ConversationEngine(db_session)
        engine.process_incoming_message(PHONE, "hi")
        session = active_sessions(db_session)[0]

        assert engine.process_incoming_message(PHONE, "jump") == ERROR_REPLY
        db_session.refresh(session)
        assert session.is_active is False
        assert session.current_node_id == welcome_flow["start"].id

    def test_continue_failure_returns_apology(self, db_session, welcome_flow, mocker):
        engine = ConversationEngine(db_session)
        engine.process_incoming_message(PHONE, "hi")

        mocker.patch("chatbot.engine.crud.get_chatbot_conditions", side_effect=RuntimeError("boom"))
        assert engine.process_incoming_message(PHONE, "course") == ERROR_REPLY

    def test_start_failure_returns_apology(self, db_session, welcome_flow, mocker):
        mocker.patch("chatbot.engine.crud.create_chatbot_session", side_effect=RuntimeError("boom"))
        engine = ConversationEngine(db_session)
        assert engine.process_incoming_message(PHONE, "hi") == ERROR_REPLY


@pytest.mark.integration
class TestActionDispatch:
    def test_actions_dispatched_on_node_entry(self, db_session, welcome_flow):
        db_session.add(ChatbotAction(node_id=welcome_flow["end"].id, type="assign_consultant", parameters={"team": "sales"}))
        db_session.commit()

        calls = []
        engine = ConversationEngine(
            db_session,
            dispatcher=ActionDispatcher(lambda node, actions, context: calls.append((node.id, [a.type for a in actions], context))),
        )
        engine.process_incoming_message(PHONE, "hi")
        engine.process_incoming_message(PHONE, "course")

        assert len(calls) == 1
        node_id, types, context = calls[0]
        assert node_id == welcome_flow["end"].id
        assert types == ["assign_consultant"]
        assert context["message"] == "course"
        assert context["flow_id"] == welcome_flow["flow"].id

    def test_failing_handler_does_not_change_reply(self, db_session, welcome_flow):
        db_session.add(ChatbotAction(node_id=welcome_flow["start"].id, type="tag", parameters={"tag": "new"}))
        db_session.commit()

        def broken_handler(node, actions, context):
            raise ValueError("handler exploded")

        engine = ConversationEngine(db_session, dispatcher=ActionDispatcher(broken_handler))
        assert engine.process_incoming_message(PHONE, "hi") == "Hello!"
        assert len(active_sessions(db_session)) == 1


@pytest.mark.integration
@pytest.mark.slow
class TestConcurrentDelivery:
    def test_simultaneous_first_messages_share_one_lead_chat_and_session(self, db_session, welcome_flow):
        make_session = sessionmaker(autocommit=False, autoflush=False, bind=db_session.get_bind())
        barrier = threading.Barrier(2)
        replies = []

        def deliver(text):
            session = make_session()
            try:
                barrier.wait()
                replies.append(ConversationEngine(session).process_incoming_message(PHONE, text))
            finally:
                session.close()

        threads = [threading.Thread(target=deliver, args=(text,)) for text in ("hi", "hi there")]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=30)

        assert sorted(replies) == sorted(["Hello!", CLOSING_REPLY])
        db_session.expire_all()
        assert db_session.query(Lead).count() == 1
        assert db_session.query(WhatsappChat).count() == 1
        assert db_session.query(WhatsappMessage).filter(WhatsappMessage.direction == "incoming").count() == 2
        assert db_session.query(ChatbotSession).count() == 1

    def test_phone_locks_are_released_after_use(self, db_session):
        engine = ConversationEngine(db_session)
        for index in range(5):
            engine.process_incoming_message(f"97150000010{index}", "hello")

        assert engine_module._phone_locks == {}
