"""
System-prompt enrichment for the tool-calling LLM.

Appends what the pipeline detected (intent, entities, suggested tool and
its arguments, warnings) so the model can pick the right tool on the
first try.  The base prompt itself is never modified.
"""

from __future__ import annotations

import json

from nlpipe.schemas.pipeline import PipelineContext

ENRICHMENT_HEADER = "\n\n---\n**Detected Context:**\n\n"
ENRICHMENT_INSTRUCTION = (
    "\n**Instruction:** Use this information to choose the best tool and "
    "arguments. If the suggested tool fits the question, call it with the "
    "detected arguments.\n"
)


def _pct(value: float) -> int:
    return round(value * 100)


def enrich_system_prompt(base_prompt: str, ctx: PipelineContext) -> str:
    """
    ``base_prompt`` plus a block describing the pipeline's findings.

    Cached answers need no tool call, so on a cache hit the base prompt
    comes back unchanged.
    """
    if ctx.metadata.cache_hit:
        return base_prompt

    lines: list[str] = []
    intent = ctx.intent
    if intent is not None:
        label = f"{intent.type} ({intent.subtype})" if intent.subtype else f"{intent.type}"
        lines.append(f"- **Intent:** {label} - Confidence: {_pct(intent.confidence)}%")

        if intent.entities:
            lines.append("- **Detected entities:**")
            lines.extend(
                f'  - {e.type}: "{e.name}" (confidence: {_pct(e.confidence)}%)'
                for e in intent.entities
            )

    plan = ctx.query_plan
    if plan is not None and plan.tool_name != "none":
        lines.append(f"- **Suggested tool:** {plan.tool_name}")
        arguments = plan.parameters.to_arguments()
        if arguments:
            lines.append(
                f"- **Detected arguments:** {json.dumps(arguments, indent=2, ensure_ascii=False)}"
            )

    if ctx.metadata.warnings:
        lines.append(f"- **Warnings:** {', '.join(ctx.metadata.warnings)}")

    body = "\n".join(lines) + "\n" if lines else ""
    return base_prompt + ENRICHMENT_HEADER + body + ENRICHMENT_INSTRUCTION
