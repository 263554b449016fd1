"""
Prompt templates and output formats for the compression strategies.

Strategies in progressive order (lightest first):
1. Tool invocation compression
2-3. Large message offloading
4. Previous round conversation summary
5. Current round large message summary
6. Current round message compression

The offload hints embed the offload UUID verbatim; other parts of the host
system search replacement messages for it, so the hint wording around
``working_context_offload_uuid:`` / ``uuid:`` is part of the contract.
"""

import re
from dataclasses import dataclass
from functools import cached_property

DEFAULT_PLAN_TOOL_NAMES = (
    "create_plan",
    "revise_current_plan",
    "update_subtask_state",
    "finish_subtask",
    "view_subtasks",
    "finish_plan",
    "view_historical_plans",
    "recover_historical_plan",
)

RELOAD_TOOL_NAME = "context_reload"

_OFFLOAD_UUID_PATTERN = re.compile(
    r"(?:working_context_offload_uuid|uuid):\s*([0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12})"
)


def extract_offload_uuids(text: str) -> list[str]:
    """Find offload UUIDs referenced by hints in text, in order of appearance."""
    seen: list[str] = []
    for match in _OFFLOAD_UUID_PATTERN.finditer(text):
        if match.group(1) not in seen:
            seen.append(match.group(1))
    return seen


_PLAN_TOOLS_TEXT = ", ".join(DEFAULT_PLAN_TOOL_NAMES)


@dataclass(frozen=True)
class PromptCatalog:
    """Strategy prompts and replacement formats.

    Any field can be overridden, e.g. ``PromptCatalog(conversation_summary_prompt_start=...)``
    or ``dataclasses.replace(catalog, ...)``. Format fields use ``str.format``
    placeholders: ``{summary}``, ``{preview}``, ``{uuid}``, ``{hint}``. The current
    round prompts take ``{original_chars}``, ``{target_chars}`` and ``{percent}``.
    """

    plan_tool_names: tuple[str, ...] = DEFAULT_PLAN_TOOL_NAMES

    # Strategy 1: tool invocation compression
    tool_invocation_prompt_start: str = (
        "Please intelligently compress and summarize the following tool invocation history"
    )
    tool_invocation_prompt_end: str = (
        "Above is a history of tool invocations. \n"
        "Please intelligently compress and summarize the following tool invocation history:\n"
        "    Summarize the tool responses while preserving key invocation details, "
        "including the tool name, its purpose, and its output.\n"
        "    For repeated calls to the same tool, consolidate the different parameters "
        "and results, highlighting essential variations and outcomes.\n"
        f"    Special handling for plan-related tools ({_PLAN_TOOLS_TEXT}): Use minimal "
        "compression - only keep a brief description indicating that plan-related tool calls "
        "were made, without preserving detailed parameters, results, or intermediate states."
    )
    tool_invocation_format: str = (
        "<compressed_history>{summary}</compressed_history>\n"
        "<hint> You can use this information as historical context for future reference "
        "in carrying out your tasks\n"
    )
    tool_invocation_offload_hint: str = (
        "<hint> The original tools invocation is stored in the offload with "
        "working_context_offload_uuid: {uuid}. if you need to retrieve it, please use the "
        f"{RELOAD_TOOL_NAME} tool to get it. \n"
    )

    # Strategy 2-3: large message offloading
    large_message_offload_format: str = (
        "{preview}\n"
        "<hint> This message content has been offloaded due to large size. The original "
        "content is stored with working_context_offload_uuid: {uuid}. If you need to retrieve "
        f"the full content, please use the {RELOAD_TOOL_NAME} tool with this UUID.</hint>"
    )

    # Strategy 4: previous round conversation summary
    conversation_summary_prompt_start: str = (
        "Please intelligently summarize the following conversation history. Preserve key "
        "information, decisions, and context that would be important for future reference."
    )
    conversation_summary_prompt_end: str = (
        "Above is a conversation history. \n"
        "Please provide a concise summary that:\n"
        "    - Preserves important decisions, conclusions, and key information\n"
        "    - Maintains context that would be needed for future interactions\n"
        "    - Consolidates repeated or similar information\n"
        "    - Highlights any important outcomes or results"
    )
    conversation_summary_format: str = (
        "<conversation_summary>{summary}</conversation_summary>\n"
        "<hint> This is a summary of previous conversation rounds. You can use this "
        "information as historical context for future reference.\n"
    )
    conversation_summary_offload_hint: str = (
        "<hint> The original conversation is stored in the offload with "
        "working_context_offload_uuid: {uuid}. If you need to retrieve the full conversation, "
        f"please use the {RELOAD_TOOL_NAME} tool with this UUID.</hint>"
    )

    # Strategy 5: current round large message summary
    large_message_summary_prompt_start: str = (
        "Please intelligently summarize the following message content. This message exceeds "
        "the size threshold and needs to be compressed while preserving all critical "
        "information."
    )
    large_message_summary_prompt_end: str = (
        "Above is a large message that needs to be summarized.\n"
        "Please provide a concise summary that:\n"
        "    - Preserves all critical information and key details\n"
        "    - Maintains important context that would be needed for future reference\n"
        "    - Highlights any important outcomes, results, or status information\n"
        "    - Retains tool call information if present (tool names, IDs, key parameters)"
    )
    large_message_summary_format: str = (
        "<compressed_large_message>{summary}</compressed_large_message>{hint}"
    )
    large_message_summary_offload_hint: str = (
        "\n<hint> The original message is stored in the offload with "
        "working_context_offload_uuid: {uuid}. If you need to retrieve the full content, "
        f"please use the {RELOAD_TOOL_NAME} tool with this UUID.</hint>"
    )

    # Strategy 6: current round message compression
    current_round_prompt_start: str = (
        "Please compress and summarize the following current round messages (tool calls and "
        "results).\n"
        "\n"
        "IMPORTANT COMPRESSION REQUIREMENT:\n"
        "The original content contains approximately {original_chars} characters. You MUST "
        "compress it to approximately {target_chars} characters ({percent:.0f}% of original). "
        "This is a STRICT requirement - your output should be approximately {target_chars} "
        "characters.\n"
        "\n"
        "Compression guidelines:\n"
        "- Keep tool names, IDs, and important parameters\n"
        "- Retain key results, outcomes, and status information\n"
        "- Maintain logical flow and relationships between tool calls\n"
        "- Remove redundant or less critical information first\n"
        "\n"
        "Special handling for plan-related tools:\n"
        f"- For plan-related tools ({_PLAN_TOOLS_TEXT}):\n"
        "  * Keep brief descriptions of what plan operations were performed\n"
        "  * Retain key task information and outcomes, but reduce detailed parameters\n"
        "\n"
        "To achieve the target character count ({target_chars} characters):\n"
        "1. Count your output characters as you write\n"
        "2. Consolidate similar or repeated information\n"
        "3. Use concise language while preserving meaning\n"
        "4. Merge related tool calls and results when appropriate\n"
        "5. Remove verbose descriptions but keep essential facts\n"
        "6. Adjust detail level to meet the character limit"
    )
    current_round_prompt_end: str = (
        "Above are the current round messages that need to be summarized.\n"
        "\n"
        "Please provide a summary that:\n"
        "    - Preserves all critical information and key details\n"
        "    - Retains tool call information (tool names, IDs, key parameters)\n"
        "    - For plan-related tools: focuses on task-related information with concise "
        "descriptions\n"
        "    - STRICTLY adheres to the target character count: approximately {target_chars} "
        "characters ({percent:.0f}% of original {original_chars} characters)\n"
        "\n"
        "CRITICAL: Your output MUST be approximately {target_chars} characters. Count your "
        "characters carefully and adjust the level of detail to meet this requirement."
    )
    current_round_format: str = (
        "<compressed_current_round>{summary}</compressed_current_round>{hint}"
    )
    current_round_offload_hint: str = (
        "\n<hint> The above is a compressed summary of the current round tool calls and "
        "results. You should use this summary as context to continue reasoning and answer "
        "the user's questions, rather than directly returning this compressed content. The "
        "original detailed tool calls and results have been offloaded with uuid: {uuid}. If "
        "you need to retrieve the full original content for specific details, you can use "
        f"the {RELOAD_TOOL_NAME} tool with this UUID.</hint>"
    )

    def is_plan_tool(self, name: str) -> bool:
        return name in self.plan_tool_names

    @cached_property
    def offload_hint_markers(self) -> tuple[str, ...]:
        """Fixed hint text that precedes the UUID in each replacement format.

        A marker runs from the last ``<hint>`` before ``{uuid}`` up to the
        placeholder, so it is independent of the UUID and of the summary.
        """
        templates = (
            self.tool_invocation_offload_hint,
            self.large_message_offload_format,
            self.conversation_summary_offload_hint,
            self.large_message_summary_offload_hint,
            self.current_round_offload_hint,
        )
        markers = []
        for template in templates:
            head = template.split("{uuid}", 1)[0]
            start = head.rfind("<hint>")
            marker = head[start:] if start >= 0 else head.rsplit("}", 1)[-1]
            marker = marker.replace("{{", "{").replace("}}", "}")
            if marker.strip() and marker not in markers:
                markers.append(marker)
        return tuple(markers)

    def carries_offload_hint(self, text: str) -> bool:
        """True if text contains one of this catalog's offload hints."""
        return any(marker in text for marker in self.offload_hint_markers)

    def format_tool_invocation(self, summary: str, uuid: str) -> str:
        return (
            self.tool_invocation_format.format(summary=summary)
            + self.tool_invocation_offload_hint.format(uuid=uuid)
        )

    def format_large_message_offload(self, preview: str, uuid: str) -> str:
        return self.large_message_offload_format.format(preview=preview, uuid=uuid)

    def format_conversation_summary(self, summary: str, uuid: str) -> str:
        return (
            self.conversation_summary_format.format(summary=summary)
            + self.conversation_summary_offload_hint.format(uuid=uuid)
        )

    def format_large_message_summary(self, summary: str, uuid: str) -> str:
        hint = self.large_message_summary_offload_hint.format(uuid=uuid)
        return self.large_message_summary_format.format(summary=summary, hint=hint)

    def current_round_prompts(self, original_chars: int, target_chars: int) -> tuple[str, str]:
        """Build the strategy 6 prompt pair stating the exact size target."""
        percent = (target_chars / original_chars * 100) if original_chars else 100.0
        values = {
            "original_chars": original_chars,
            "target_chars": target_chars,
            "percent": percent,
        }
        return (
            self.current_round_prompt_start.format(**values),
            self.current_round_prompt_end.format(**values),
        )

    def format_current_round(self, summary: str, uuid: str) -> str:
        hint = self.current_round_offload_hint.format(uuid=uuid)
        return self.current_round_format.format(summary=summary, hint=hint)


DEFAULT_PROMPTS = PromptCatalog()
