from typing import List, Optional

# Import Rich components
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from manifest_builder.config_utils import BuilderConfig
from manifest_builder.data_models import AttemptOutcome, ProviderAttempt

OUTCOME_STYLES = {
    AttemptOutcome.ACCEPTED: "[bold green]accepted[/bold green]",
    AttemptOutcome.PROVIDER_ERROR: "[bold red]provider error[/bold red]",
    AttemptOutcome.PARSE_ERROR: "[yellow]parse error[/yellow]",
    AttemptOutcome.VALIDATION_ERROR: "[yellow]validation error[/yellow]",
}


def display_run_header(config: BuilderConfig, console_obj):
    """Displays the run header panel."""
    providers = config.configured_providers
    providers_str = " → ".join(providers) if providers else "[bold red]none configured[/bold red]"
    models = {"openai": config.openai_model, "anthropic": config.anthropic_model}
    models_str = " | ".join(f"{name}: [dim]{models[name]}[/dim]" for name in providers)
    if not models_str:
        models_str = "[dim]Set OPENAI_API_KEY or ANTHROPIC_API_KEY.[/dim]"
    empty_policy_str = " (empty manifests accepted)" if config.allow_empty_manifest else ""

    instructions = f"""  📁 [bold bright_blue]Output Root: [/bold bright_blue][bold green]{config.output_root.resolve()}[/bold green]
  📄 [bold bright_blue]Master Plan: [/bold bright_blue][bold green]{config.master_plan_path}[/bold green]
  🧩 [bold bright_blue]Format: [/bold bright_blue]{config.manifest_format.value}[dim]{empty_policy_str}[/dim]

  🧠 [bold bright_blue]Providers: [/bold bright_blue][bold magenta]{providers_str}[/bold magenta]
     {models_str}

  🎯 [bold white]Task:[/bold white] {escape(config.task)}"""

    console_obj.print(Panel(
        instructions,
        border_style="blue",
        padding=(1, 2),
        title="[bold blue]🏗  Build Agent[/bold blue]",
        title_align="left"
    ))
    console_obj.print()


def display_run_summary(attempts: List[ProviderAttempt], console_obj, written_paths: Optional[List[str]] = None):
    """Displays one row per provider attempt, then the written file count."""
    table = Table(title="Provider Attempts", show_lines=False)
    table.add_column("#", justify="right", style="dim")
    table.add_column("Provider", style="magenta")
    table.add_column("Outcome")
    table.add_column("Raw chars", justify="right")
    table.add_column("Details", overflow="fold")

    for attempt in attempts:
        table.add_row(
            str(attempt.ordinal),
            attempt.provider,
            OUTCOME_STYLES[attempt.outcome],
            str(len(attempt.raw_text)) if attempt.raw_text is not None else "-",
            escape(attempt.error or ""),
        )
    console_obj.print(table)

    if written_paths is not None:
        console_obj.print(f"[bold blue]✓[/bold blue] {len(written_paths)} file(s) written.")
