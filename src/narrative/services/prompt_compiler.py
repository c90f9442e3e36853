from __future__ import annotations

from typing import Iterable, List

from ..domain.models import Attachment, SFLField, SFLMode, SFLTenor


def _reference_material(attachments: Iterable[Attachment]) -> str:
    blocks: List[str] = []
    for att in attachments:
        if att.status != "done" or not att.analysis:
            continue
        blocks.append(f"\n### Attachment: {att.name} ({att.type})\n{att.analysis}")
    return "\n".join(blocks)


def compile_sfl_prompt(
    field: SFLField,
    tenor: SFLTenor,
    mode: SFLMode,
    attachments: Iterable[Attachment] = (),
) -> str:
    """Flatten the three facets and finished attachment analyses into one instruction.

    Pure and total: called on every edit to refresh the live preview. Only
    ``done`` attachments with analysis text contribute, in insertion order.
    """
    reference = _reference_material(attachments)
    reference_section = f"\n# REFERENCE MATERIAL\n{reference}\n" if reference else ""

    text = f"""
# CONTEXT (Field)
**Topic:** {field.topic}
**Task:** {field.task_type}
**Domain:** {field.domain_specifics}
**Keywords:** {field.keywords}

{reference_section}

# PERSONA & AUDIENCE (Tenor)
**Role:** {tenor.ai_persona}
**Audience:** {', '.join(tenor.target_audience)}
**Tone:** {tenor.desired_tone}
**Stance:** {tenor.interpersonal_stance}

# FORMAT & STRUCTURE (Mode)
**Format:** {mode.output_format}
**Structure:** {mode.rhetorical_structure}
**Length:** {mode.length_constraint}
**Directives:** {mode.textual_directives}

---
**INSTRUCTION:**
Based on the framework and reference material above, please execute the task.
"""
    return text.strip()
