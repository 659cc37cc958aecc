"""
Chat Context Repository.

Builds the chat-completion context from a semantic model snapshot:
- System prompt with tables, columns, sample rows, measures and relationships
- Usage instructions, including the "DAX: <query>" execution convention
- Message list: system prompt, then history, then the new user message
"""

import json
from typing import List, Sequence

from ..domain.base_enums import ChatRole
from ..domain.chat import ChatMessage
from ..domain.semantic_model import SemanticModelSnapshot

ASSISTANT_INTRO = (
    "You are a semantic model assistant with access to both the model structure and actual data. "
)

NO_METADATA_NOTE = "The semantic model is not connected or has no metadata available."

INSTRUCTIONS = """
## Instructions:
- You can see sample data above to help answer questions about the data.
- If the user asks about specific data values, trends, or analysis, use the sample data and structure to provide informed responses.
- You can help write DAX queries to analyze the data.
- When suggesting DAX queries, tell the user they can execute them by typing "DAX: <query>" in the chat.
- Be specific and reference actual column names and table names from the model.
- Sample data shown is limited to a few rows - encourage users to run DAX queries for complete analysis.
"""


class ChatContextRepository:
    """Repository for chat prompt construction. Pure text building, no I/O."""

    def build_system_prompt(self, snapshot: SemanticModelSnapshot) -> str:
        if snapshot.is_empty:
            return ASSISTANT_INTRO + NO_METADATA_NOTE

        sections = [ASSISTANT_INTRO + "Here is the semantic model structure and sample data:\n"]

        if snapshot.tables:
            sections.append(self._tables_section(snapshot))
        if snapshot.measures:
            sections.append(self._measures_section(snapshot))
        if snapshot.relationships:
            sections.append(self._relationships_section(snapshot))

        sections.append(INSTRUCTIONS)
        return "\n".join(sections)

    def _tables_section(self, snapshot: SemanticModelSnapshot) -> str:
        lines = ["## Tables:"]
        for table in snapshot.tables:
            lines.append(f"- **{table.name}**")
            if table.columns:
                lines.append(f"  Columns: {', '.join(column.name for column in table.columns)}")

            samples = snapshot.sample_data.get(table.name)
            if samples:
                # Indent the JSON block under its table bullet
                sample_json = json.dumps(samples, indent=2, ensure_ascii=False, default=str)
                lines.append(f"  Sample data (top {len(samples)} rows):")
                lines.append("  ```")
                lines.append("  " + sample_json.replace("\n", "\n  "))
                lines.append("  ```")
        return "\n".join(lines) + "\n"

    def _measures_section(self, snapshot: SemanticModelSnapshot) -> str:
        lines = ["## Measures:"]
        for measure in snapshot.measures:
            line = f"- **{measure.name}**"
            if measure.table:
                line += f" ({measure.table})"
            if measure.expression:
                line += f"\n  Expression: {measure.expression}"
            lines.append(line)
        return "\n".join(lines) + "\n"

    def _relationships_section(self, snapshot: SemanticModelSnapshot) -> str:
        lines = ["## Relationships:"]
        lines.extend(
            f"- {relationship.from_} → {relationship.to}"
            for relationship in snapshot.relationships
        )
        return "\n".join(lines) + "\n"

    def build_messages(
        self,
        snapshot: SemanticModelSnapshot,
        history: Sequence[ChatMessage],
        user_message: str,
    ) -> List[ChatMessage]:
        return [
            ChatMessage(role=ChatRole.SYSTEM, content=self.build_system_prompt(snapshot)),
            *history,
            ChatMessage(role=ChatRole.USER, content=user_message),
        ]
