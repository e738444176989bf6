#!/usr/bin/env python3

"""
Build Agent: generates a project's files from a master plan with an LLM.

Reads the master plan and a short task, asks the configured providers
(OpenAI first, then Anthropic) for a manifest of files and writes it under
the output root. Raw provider replies are kept as AI_RAW_<provider>.txt.

Exit codes: 0 files written, 1 configuration error, 2 no valid manifest,
3 write error, 4 empty manifest accepted (nothing written).
"""
import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import litellm
from rich.console import Console
from rich.markup import escape

from manifest_builder.config_utils import DEFAULT_CONFIG_FILE, build_config, list_config
from manifest_builder.data_models import ManifestFormat
from manifest_builder.errors import ConfigurationError, NoValidManifest, WriteError
from manifest_builder.pipeline import BuildPipeline, load_master_plan
from manifest_builder.ui_display import display_run_header, display_run_summary

__version__ = "0.1.0"

EXIT_OK = 0
EXIT_CONFIGURATION_ERROR = 1
EXIT_NO_VALID_MANIFEST = 2
EXIT_WRITE_ERROR = 3
EXIT_NOTHING_WRITTEN = 4

# Suppress LiteLLM debug info
litellm.suppress_debug_info = True
logging.getLogger("LiteLLM").setLevel(logging.WARNING)
logging.getLogger("litellm").setLevel(logging.WARNING)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Build Agent: generates a project's files from a master plan with an LLM.",
        formatter_class=argparse.RawTextHelpFormatter
    )
    parser.add_argument('--version', action='version', version=f'%(prog)s {__version__}')
    parser.add_argument('--task', type=str, help='Task for this run (overrides TASK).')
    parser.add_argument('--master-plan', metavar='PATH', type=str, help='Master plan document (overrides MASTER_PLAN_PATH).')
    parser.add_argument('--root', metavar='DIR', type=str, help='Output root for generated files (overrides BUILDER_OUTPUT_ROOT).')
    parser.add_argument(
        '--format', choices=[f.value for f in ManifestFormat],
        help='Manifest serialization requested from the model (overrides MANIFEST_FORMAT).'
    )
    parser.add_argument(
        '--allow-empty', action='store_true', default=None,
        help='Accept a manifest with no files instead of falling back to the next provider.'
    )
    parser.add_argument('--debug', action='store_true', default=None, help='Print provider request parameters to stderr.')
    parser.add_argument('--config', metavar='PATH', type=str, default=str(DEFAULT_CONFIG_FILE), help='TOML configuration file.')
    parser.add_argument('--show-config', action='store_true', help='Print the resolved configuration before running.')
    return parser.parse_args(argv)


def runtime_overrides_from_args(args: argparse.Namespace) -> Dict[str, Any]:
    """Maps CLI flags onto configuration parameter names. Unset flags are left out."""
    overrides = {
        "task": args.task,
        "master_plan_path": args.master_plan,
        "output_root": args.root,
        "manifest_format": args.format,
        "allow_empty_manifest": args.allow_empty,
        "debug": args.debug,
    }
    return {k: v for k, v in overrides.items() if v is not None}


def main(argv: Optional[List[str]] = None) -> int:
    console = Console()
    args = parse_args(argv)

    config = build_config(runtime_overrides_from_args(args), console, config_path=Path(args.config))
    display_run_header(config, console)
    if args.show_config:
        list_config(config, console)

    pipeline = BuildPipeline(config, console)
    try:
        pipeline.check_configured()
        master_plan = load_master_plan(config.master_plan_path)
        result = asyncio.run(pipeline.run(master_plan, config.task))
    except ConfigurationError as e:
        console.print(f"[bold red]✗ ERROR:[/bold red] {escape(str(e))}")
        return EXIT_CONFIGURATION_ERROR
    except NoValidManifest as e:
        display_run_summary(e.attempts, console)
        return EXIT_NO_VALID_MANIFEST
    except WriteError as e:
        display_run_summary(pipeline.attempts, console)
        console.print(f"[bold red]✗ ERROR:[/bold red] {escape(str(e))}")
        console.print("[dim]Files written before the failure were left in place.[/dim]")
        return EXIT_WRITE_ERROR

    display_run_summary(result.attempts, console, result.written_paths)
    if not result.written_paths:
        console.print(f"[yellow]⚠ Manifest from {result.provider} contained no files. Nothing was written.[/yellow]")
        return EXIT_NOTHING_WRITTEN
    console.print(f"[bold blue]✨ Done. Manifest provided by {result.provider}.[/bold blue]")
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
