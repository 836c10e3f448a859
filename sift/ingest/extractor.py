"""
Structured Extractor

Turns a dump (text and/or an image) into a confidence-scored Proposal by
asking the generative model for a fixed JSON shape.

This is the only place where loosely typed data enters the pipeline:
the response is parsed leniently here, once, and everything downstream
works with validated models.
"""

import json
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from ..common.errors import ExtractionError
from ..common.llm_client import LLMClient, MediaPart
from ..common.llm_utils import (
    coerce_confidence,
    coerce_datetime,
    coerce_str,
    coerce_str_list,
    parse_llm_json,
)
from ..common.schemas import CandidateItem, DetectedPerson, Proposal
from ..common.timeutil import utcnow

logger = logging.getLogger("sift.ingest.extractor")


SYSTEM_PROMPT = """You turn a personal note, forwarded message or photo of a notice into structured calendar data.
Output ONLY valid JSON. Never invent dates that are not stated or clearly implied."""


EXTRACTION_PROMPT = """Analyze this input. Extract event details, tasks, or notes.

Current date and time (UTC): {now}
If dates are relative (e.g. "tomorrow", "next Friday"), calculate them from the current date.

{context_block}{people_block}Respond with a valid JSON object with these keys:
- "title": Short title for the event or note (required)
- "start_time": ISO 8601 datetime, or null if no date is given
- "end_time": ISO 8601 datetime, or null
- "location": Where it happens, or null
- "category": One word such as "school", "work", "health", "family", "social", or null
- "confidence_score": Number between 0 and 1, how sure you are that this is a correct, complete event (required)
- "missing_info": List of fields you could not determine (e.g. ["start_time", "location"])
- "people": List of people mentioned, each with "name", "relationship", "category", optional "grade", "school", "birth_date", "notes", and either "person_id" (if it is one of the known people) or "is_new": true
- "actionable_items": List of follow-ups, each with "title", "description", "kind" ("todo" or "info"), "due_date" (todo, ISO 8601 or null), "expires_at" (info, ISO 8601 or null), "priority" ("low", "medium", "high" or null), "category"
- "full_text": If the input is an image, the full transcribed text of it; otherwise null

Rules:
- If an existing event already covers this input (see EXISTING_EVENT lines), lower confidence_score
- Use the known people list to fill person_id whenever a mention matches
- If a field is not clearly present, use null or an empty list

Input:
{text}

JSON:"""


class StructuredExtractor:
    """Extracts a Proposal from a dump using the configured LLM."""

    def __init__(self, llm_client: LLMClient, max_tokens: int = 2048, timeout: float = 60.0):
        self._llm = llm_client
        self._max_tokens = max_tokens
        self._timeout = timeout

    @property
    def is_available(self) -> bool:
        return self._llm is not None and self._llm.is_available

    def build_prompt(
        self,
        text: str,
        context: Sequence[str] = (),
        known_people: Sequence[Dict[str, Any]] = (),
        now: Optional[datetime] = None,
    ) -> str:
        context_block = ""
        if context:
            context_block = (
                "Here is the user's past history regarding this topic:\n"
                + "\n".join(context)
                + "\nUse this to infer category and preferences.\n\n"
            )

        people_block = ""
        if known_people:
            people_block = (
                "Known people (map mentions to these ids):\n"
                + json.dumps(list(known_people), ensure_ascii=False, default=str)
                + "\n\n"
            )

        return EXTRACTION_PROMPT.format(
            now=(now or utcnow()).isoformat(),
            context_block=context_block,
            people_block=people_block,
            text=text or "(no text, see attached image)",
        )

    def extract(
        self,
        text: str,
        media: Optional[MediaPart] = None,
        context: Sequence[str] = (),
        known_people: Sequence[Dict[str, Any]] = (),
        now: Optional[datetime] = None,
    ) -> Proposal:
        """
        Run extraction.

        Raises:
            ExtractionError: the model is unavailable, the call failed, or
                the response lacks a title or a confidence score
        """
        if not self.is_available:
            raise ExtractionError("LLM client is not available")
        if not (text and text.strip()) and media is None:
            raise ExtractionError("Nothing to extract: dump has neither text nor media")

        prompt = self.build_prompt(text, context=context, known_people=known_people, now=now)
        try:
            raw = self._llm.generate(
                prompt,
                system=SYSTEM_PROMPT,
                media=[media] if media is not None else [],
                json_output=True,
                max_tokens=self._max_tokens,
                timeout=self._timeout,
            )
        except Exception as e:
            raise ExtractionError(f"Model call failed: {e}") from e

        return self.parse_response(raw)

    def parse_response(self, raw: str) -> Proposal:
        """Leniently parse a model response into a Proposal"""
        data = parse_llm_json(raw)
        if not data:
            raise ExtractionError("Model response was not a JSON object")

        title = coerce_str(data.get("title"))
        confidence = coerce_confidence(data.get("confidence_score"))
        if title is None:
            raise ExtractionError("Model response has no title")
        if confidence is None:
            raise ExtractionError("Model response has no usable confidence_score")

        start = coerce_datetime(data.get("start_time"))
        end = coerce_datetime(data.get("end_time"))
        if start is not None and end is not None and end < start:
            logger.info("Dropping end_time before start_time for %r", title)
            end = None

        return Proposal(
            title=title,
            start_time=start,
            end_time=end,
            location=coerce_str(data.get("location")),
            category=coerce_str(data.get("category")),
            confidence_score=confidence,
            missing_info=coerce_str_list(data.get("missing_info")),
            people=self._parse_people(data.get("people")),
            actionable_items=self._parse_items(data.get("actionable_items")),
            full_text=coerce_str(data.get("full_text")),
        )

    def _parse_people(self, value: Any) -> List[DetectedPerson]:
        if not isinstance(value, list):
            return []

        people = []
        for entry in value:
            if isinstance(entry, str):
                entry = {"name": entry}
            if not isinstance(entry, dict):
                continue
            entry = dict(entry)
            # Some models answer in camelCase
            if "personId" in entry and "person_id" not in entry:
                entry["person_id"] = entry.pop("personId")
            if "birthDate" in entry and "birth_date" not in entry:
                entry["birth_date"] = entry.pop("birthDate")
            for key in ("name", "relationship", "category", "grade", "school", "birth_date", "notes", "person_id"):
                if key in entry:
                    entry[key] = coerce_str(entry[key]) if key != "name" else (coerce_str(entry[key]) or "")
            entry["is_new"] = bool(entry.get("is_new"))
            try:
                people.append(DetectedPerson.model_validate(entry))
            except ValueError as e:
                logger.debug("Skipping malformed person %r: %s", entry, e)
        return people

    def _parse_items(self, value: Any) -> List[CandidateItem]:
        if not isinstance(value, list):
            return []

        items = []
        for entry in value:
            if not isinstance(entry, dict):
                continue
            title = coerce_str(entry.get("title"))
            if title is None:
                continue
            kind = str(entry.get("kind") or "todo").lower()
            items.append(
                CandidateItem(
                    title=title,
                    description=coerce_str(entry.get("description")),
                    kind=kind if kind in ("todo", "info") else "todo",
                    due_date=coerce_datetime(entry.get("due_date")),
                    expires_at=coerce_datetime(entry.get("expires_at")),
                    priority=coerce_str(entry.get("priority")),
                    category=coerce_str(entry.get("category")),
                )
            )
        return items
