"""事件接收方测试：EventRecorder 的按序记录与 drain，以及任意满足 EventSink 协议的接收方。"""

from datetime import datetime

from src.core.events import EventRecorder
from src.core.orchestrator import ChatOrchestrator
from src.models.protocol import ConversationEnded, Message, make_system_message


def test_recorder_drain_clears_buffer():
    recorder = EventRecorder()
    recorder.on_system_message(make_system_message("a"))
    recorder.on_conversation_ended(ConversationEnded(goal="g", final_members=["patchy"]))

    events = recorder.drain()
    assert [e.type for e in events] == ["system_message", "conversation_ended"]
    assert recorder.drain() == []


def test_to_wire_is_json_ready():
    event = EventRecorder()
    event.on_conversation_ended(
        ConversationEnded(goal="g", final_members=["patchy"], end_time=datetime(2024, 1, 1))
    )
    (ended,) = event.drain()
    wire = ended.to_wire()
    assert wire["type"] == "conversation_ended"
    assert wire["data"]["final_members"] == ["patchy"]
    assert wire["data"]["end_time"].startswith("2024-01-01")


def test_system_message_factory():
    message = make_system_message("hi", system_id="sys")
    assert message.role == "system"
    assert message.author_id == "sys"
    assert message.audience == ["*"]
    assert message.id.startswith("sys_")


class ListSink:
    """只实现 EventSink 协议两个方法的最简接收方。"""

    def __init__(self):
        self.messages: list[Message] = []
        self.ended: list[ConversationEnded] = []

    def on_system_message(self, message: Message) -> None:
        self.messages.append(message)

    def on_conversation_ended(self, event: ConversationEnded) -> None:
        self.ended.append(event)


def test_plain_sink_with_orchestrator():
    sink = ListSink()
    orch = ChatOrchestrator(lookup_agent=lambda _id: None, sink=sink)
    orch.handle(Message(author_id="user", content="Objective: achieved"))

    assert [m.content for m in sink.messages] == ["Chat created with cortex", "Conversation completed"]
    assert len(sink.ended) == 1
    assert sink.ended[0].goal == "Complete the assigned task"
    assert sink.ended[0].final_members == []
