"""
AI insights

Case summaries and free-form questions answered by a hosted language model,
with every answer archived alongside the case.
"""

import logging
from typing import List, Optional, Protocol

from evidence_sync.core.activity import ActivityRecorder
from evidence_sync.core.identity import new_record_id
from evidence_sync.infrastructure.store import RemoteStore, RemoteStoreError
from evidence_sync.models import (
    AIChatMessage,
    AIInsight,
    Case,
    ChatRole,
    InsightType,
    Officer,
)

logger = logging.getLogger(__name__)

SYSTEM_INSTRUCTION = """
You are an advanced digital forensic assistant helping investigators analyze
extracted device data.
1. Use neutral terminology: "anomaly", "inconsistency", "unusual pattern", "outlier".
2. Base every answer strictly on the provided JSON context.
3. Keep an objective tone suitable for a legal report.
4. Format responses as Markdown.
"""

REPORT_TASK = """Generate a comprehensive investigator-ready case summary report.
Include:
1. Executive Summary
2. Key Entities (Persons of Interest)
3. Timeline of Significant Events
4. Communication Analysis (Who talks to whom?)
5. Potential Anomalies or Inconsistencies (e.g., gaps in time, foreign numbers)

Format as clean Markdown."""


class AIService(Protocol):
    """Hosted completion endpoint; may raise on any failure"""

    async def complete(self, prompt: str, system_instruction: str) -> str:
        ...


def case_context(case: Case) -> str:
    """Evidence of a case as compact JSON for a prompt"""
    return case.model_dump_json(exclude={"team_messages", "activity_log"})


class CaseAnalyst:
    """Runs AI requests for a case and archives their output"""

    def __init__(
        self,
        service: Optional[AIService],
        store: Optional[RemoteStore],
        activity: Optional[ActivityRecorder] = None,
    ):
        self.service = service
        self.store = store
        self.activity = activity or ActivityRecorder(store)

    async def _complete(self, prompt: str) -> Optional[str]:
        if self.service is None:
            logger.warning("AI service not configured")
            return None
        try:
            return await self.service.complete(prompt, SYSTEM_INSTRUCTION)
        except Exception as e:
            logger.error(f"AI service error: {e}")
            return None

    async def generate_report(self, case: Case, actor: Officer) -> str:
        """
        Summarize a case and archive the summary as an insight.

        Returns:
            Report markdown, or a readable error message if the service failed
        """
        prompt = f"CONTEXT (EXTRACTION DATA):\n{case_context(case)}\n\nTASK:\n{REPORT_TASK}\n"
        text = await self._complete(prompt)
        if not text:
            return "Failed to generate report: the AI service is unavailable."

        insight = AIInsight(
            id=new_record_id(),
            type=InsightType.REPORT,
            title=f"AI Case Report - {case.name}",
            content=text,
            generated_by=actor.id,
        )
        await self._archive("ai_insights", case.id, insight.model_dump())
        await self.activity.record(case, actor, "Generated Report", "AI Summary")
        return text

    async def ask(self, case: Case, query: str) -> str:
        """Answer a question about the case; both sides are archived"""
        question = AIChatMessage(id=new_record_id(), role=ChatRole.USER, text=query)
        await self._archive("ai_chat_logs", case.id, question.model_dump())

        prompt = (
            f"CONTEXT (EXTRACTION DATA):\n{case_context(case)}\n\n"
            f"USER QUERY:\n{query}\n\nPlease analyze the data and answer the query.\n"
        )
        text = await self._complete(prompt) or "An error occurred during analysis."

        answer = AIChatMessage(id=new_record_id(), role=ChatRole.MODEL, text=text)
        await self._archive("ai_chat_logs", case.id, answer.model_dump())
        return text

    async def _archive(self, table: str, case_id: str, row: dict) -> None:
        if self.store is None:
            return
        try:
            await self.store.upsert(table, [{**row, "case_id": case_id}], "id")
        except RemoteStoreError as e:
            logger.error(f"Error saving to {table} for {case_id}: {e}")

    async def chat_history(self, case_id: str) -> List[AIChatMessage]:
        rows = await self._read("ai_chat_logs", case_id, descending=False)
        return [AIChatMessage.model_validate(row) for row in rows]

    async def insights(self, case_id: str) -> List[AIInsight]:
        """Archived insights, newest first"""
        rows = await self._read("ai_insights", case_id, descending=True)
        return [AIInsight.model_validate(row) for row in rows]

    async def _read(self, table: str, case_id: str, descending: bool) -> List[dict]:
        if self.store is None:
            return []
        try:
            return await self.store.select_where(table, {"case_id": case_id}, "timestamp", descending)
        except RemoteStoreError as e:
            logger.error(f"Error fetching {table} for {case_id}: {e}")
            return []
