# manifest_builder/prompts.py
from pathlib import Path
from textwrap import dedent
from typing import Optional

from manifest_builder.data_models import ManifestFormat
from manifest_builder.errors import ConfigurationError

SYSTEM_PROMPT = dedent("""\
   You are Build Agent, an elite software engineer generating production-grade code.
   You receive a MASTER PLAN describing the whole application and a TASK describing
   the piece of work to deliver now. Follow the master plan for stack, structure and
   conventions.

   ## Rules:
   - Deliver complete files. Never use placeholders such as "... existing code ...".
   - Paths are relative to the project root. Never use absolute paths, "~" or "..".
   - Keep secrets out of client code and out of generated files.
   - Database migrations and scripts are written, never executed.

   ## Output:
   Your whole reply is parsed by a program. Return ONLY the structure described in
   the RESPONSE FORMAT section of the user message. No markdown, no prose, no code fences.
   If unsure, return a minimal valid structure with an empty "files" list and a
   diagnostic "notes".
""")

JSON_RESPONSE_FORMAT = dedent("""\
   {
     "files": [{"path": "string", "content": "string"}],
     "notes": "string"
   }
   Return ONLY this JSON object.""")

YAML_RESPONSE_FORMAT = dedent("""\
   files:
     - path: string
       content: |
         string (block scalar, indented)
   notes: string
   Return ONLY this YAML document.""")

RESPONSE_FORMATS = {
    ManifestFormat.JSON: JSON_RESPONSE_FORMAT,
    ManifestFormat.YAML: YAML_RESPONSE_FORMAT,
}

USER_PROMPT_TEMPLATE = dedent("""\
   MASTER PLAN:
   {master_plan}

   TASK:
   {task}

   RESPONSE FORMAT (STRICT):
   {response_format}
""")


def build_user_prompt(master_plan: str, task: str, manifest_format: ManifestFormat) -> str:
    """Embeds the master plan verbatim, the task and the exact response schema."""
    # str.format does not re-scan substituted values, so braces in the plan are safe.
    return USER_PROMPT_TEMPLATE.format(
        master_plan=master_plan,
        task=task,
        response_format=RESPONSE_FORMATS[manifest_format],
    )


def load_system_prompt(system_prompt_path: Optional[Path] = None) -> str:
    """Returns the override file's content when one is configured, else SYSTEM_PROMPT."""
    if system_prompt_path is None:
        return SYSTEM_PROMPT
    try:
        content = Path(system_prompt_path).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigurationError(f"System prompt file '{system_prompt_path}' cannot be read: {e}") from e
    if not content.strip():
        raise ConfigurationError(f"System prompt file '{system_prompt_path}' is empty.")
    return content
