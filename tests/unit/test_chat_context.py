"""Unit tests for system prompt and message list construction."""

from semantic_chat.domain.base_enums import ChatRole
from semantic_chat.domain.chat import ChatMessage
from semantic_chat.domain.semantic_model import (
    MeasureDescriptor,
    RelationshipDescriptor,
    SemanticModelSnapshot,
    TableDescriptor,
)
from semantic_chat.repositories.chat_context import NO_METADATA_NOTE, ChatContextRepository


def make_snapshot() -> SemanticModelSnapshot:
    return SemanticModelSnapshot(
        tables=[
            TableDescriptor(name="Sales", columns=[{"name": "Amount"}, {"name": "Region"}]),
            TableDescriptor(name="Calendar"),
        ],
        measures=[
            MeasureDescriptor(name="Total Sales", table="Sales", expression="SUM(Sales[Amount])"),
            MeasureDescriptor(name="Floating"),
        ],
        relationships=[
            RelationshipDescriptor(name="r", from_="Sales[DateKey]", to="Calendar[DateKey]"),
        ],
        sample_data={"Sales": [{"Sales[Amount]": "10", "Sales[Region]": "Nordic"}]},
    )


class TestSystemPrompt:

    def test_empty_snapshot(self):
        prompt = ChatContextRepository().build_system_prompt(SemanticModelSnapshot())
        assert prompt.endswith(NO_METADATA_NOTE)
        assert "## Tables:" not in prompt

    def test_tables_and_columns(self):
        prompt = ChatContextRepository().build_system_prompt(make_snapshot())
        assert "- **Sales**" in prompt
        assert "  Columns: Amount, Region" in prompt
        assert "- **Calendar**" in prompt

    def test_sample_data_as_json(self):
        prompt = ChatContextRepository().build_system_prompt(make_snapshot())
        assert "Sample data (top 1 rows):" in prompt
        assert '"Sales[Region]": "Nordic"' in prompt

    def test_measures(self):
        prompt = ChatContextRepository().build_system_prompt(make_snapshot())
        assert "- **Total Sales** (Sales)\n  Expression: SUM(Sales[Amount])" in prompt
        assert "- **Floating**\n" in prompt

    def test_relationships(self):
        prompt = ChatContextRepository().build_system_prompt(make_snapshot())
        assert "## Relationships:\n- Sales[DateKey] → Calendar[DateKey]" in prompt

    def test_instructions_mention_dax_prefix(self):
        prompt = ChatContextRepository().build_system_prompt(make_snapshot())
        assert '"DAX: <query>"' in prompt

    def test_sections_omitted_when_empty(self):
        snapshot = SemanticModelSnapshot(tables=[TableDescriptor(name="Only")])
        prompt = ChatContextRepository().build_system_prompt(snapshot)
        assert "## Measures:" not in prompt
        assert "## Relationships:" not in prompt


def test_build_messages_order():
    history = [
        ChatMessage(role=ChatRole.USER, content="first"),
        ChatMessage(role=ChatRole.ASSISTANT, content="answer"),
    ]
    messages = ChatContextRepository().build_messages(make_snapshot(), history, "second")

    assert [m.role for m in messages] == [ChatRole.SYSTEM, ChatRole.USER, ChatRole.ASSISTANT, ChatRole.USER]
    assert messages[-1].content == "second"
    assert messages[1:3] == history
