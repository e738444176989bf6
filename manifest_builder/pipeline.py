"""
Build Pipeline - turns a master plan and a task into files on disk

    master plan + task → prompt → provider text → payload → manifest → files

Providers are tried one at a time, in priority order. A provider error, an
unparseable reply or a reply that is not a valid manifest moves on to the next
provider; the first valid manifest is written and no other provider is called.

Usage:
    pipeline = BuildPipeline(config, console)
    result = asyncio.run(pipeline.run(master_plan, task))
"""
import asyncio
from pathlib import Path
from typing import Iterable, List, Optional, Union

from rich.markup import escape

from manifest_builder.config_utils import BuilderConfig, NOTES_FILENAME, RAW_OUTPUT_FILENAME_TEMPLATE
from manifest_builder.data_models import AttemptOutcome, Manifest, PipelineResult, ProviderAttempt
from manifest_builder.errors import (
    ConfigurationError,
    NoValidManifest,
    ParseError,
    ProviderError,
    ValidationError,
)
from manifest_builder.file_utils import materialize_manifest, read_local_file, write_diagnostic
from manifest_builder.llm_interaction import TextGenerator, build_generators
from manifest_builder.manifest_parser import parse_manifest
from manifest_builder.manifest_validator import validate_manifest
from manifest_builder.prompts import build_user_prompt, load_system_prompt
from manifest_builder.response_extractor import extract_candidates


def load_master_plan(master_plan_path: Union[str, Path]) -> str:
    """Reads the whole master plan. Any failure is a ConfigurationError."""
    try:
        return read_local_file(master_plan_path)
    except FileNotFoundError as e:
        raise ConfigurationError(f"Master plan not found at {master_plan_path}") from e
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigurationError(f"Master plan at {master_plan_path} cannot be read: {e}") from e


class BuildPipeline:
    """
    Drives one run: prompt construction, provider fallback, extraction,
    parsing, validation and materialization.
    """

    def __init__(
        self,
        config: BuilderConfig,
        console_obj,
        generators: Optional[Iterable[TextGenerator]] = None
    ):
        """
        Args:
            config: Resolved run configuration
            console_obj: Rich console used for all progress output
            generators: Providers in priority order (defaults to those configured in config)
        """
        self.config = config
        self.console = console_obj
        self.generators: List[TextGenerator] = (
            list(generators) if generators is not None else build_generators(config)
        )
        # Attempt log of the latest run, also readable after a terminal error
        self.attempts: List[ProviderAttempt] = []

    def _record_attempt(
        self,
        generator: TextGenerator,
        ordinal: int,
        outcome: AttemptOutcome,
        raw_text: Optional[str] = None,
        error: Optional[Exception] = None
    ):
        self.attempts.append(ProviderAttempt(
            provider=generator.name,
            ordinal=ordinal,
            outcome=outcome,
            raw_text=raw_text,
            error=str(error) if error else None,
        ))

    def check_configured(self):
        if not self.generators:
            raise ConfigurationError("Neither OPENAI_API_KEY nor ANTHROPIC_API_KEY is set.")

    def _to_manifest(self, raw_text: str) -> Manifest:
        manifest_format = self.config.manifest_format
        first_error: Optional[ParseError] = None
        # The first candidate that parses is the payload; later ones are only fallbacks.
        for payload in extract_candidates(raw_text, manifest_format):
            try:
                data = parse_manifest(payload, manifest_format)
            except ParseError as e:
                first_error = first_error or e
                continue
            return validate_manifest(data, allow_empty=self.config.allow_empty_manifest)
        raise first_error

    async def run(self, master_plan: str, task: str) -> PipelineResult:
        """
        Runs the pipeline once.

        Returns:
            PipelineResult for the first valid manifest

        Raises:
            ConfigurationError: no provider configured (nothing is called or written)
            NoValidManifest: every provider failed; raw outputs are left on disk
            WriteError: a file could not be written; earlier files stay written
        """
        self.check_configured()
        self.attempts = []
        system_instruction = load_system_prompt(self.config.system_prompt_path)
        prompt = build_user_prompt(master_plan, task, self.config.manifest_format)
        root = self.config.output_root

        for ordinal, generator in enumerate(self.generators, start=1):
            verb = "Trying" if ordinal == 1 else "Falling back to"
            self.console.print(f"[dim]↪ {verb} {generator.name}...[/dim]")

            try:
                raw_text = await generator.generate(system_instruction, prompt)
            except ProviderError as e:
                self.console.print(f"[bold red]✗[/bold red] {generator.name} error: {escape(str(e))}")
                self._record_attempt(generator, ordinal, AttemptOutcome.PROVIDER_ERROR, error=e)
                continue

            # Saved before parsing so it survives whatever happens next.
            raw_filename = RAW_OUTPUT_FILENAME_TEMPLATE.format(provider=generator.name)
            await asyncio.to_thread(write_diagnostic, root, raw_filename, raw_text, self.console)

            try:
                manifest = self._to_manifest(raw_text)
            except ParseError as e:
                self.console.print(f"[yellow]⚠ {generator.name} reply could not be parsed: {escape(str(e))}[/yellow]")
                self._record_attempt(generator, ordinal, AttemptOutcome.PARSE_ERROR, raw_text, e)
                continue
            except ValidationError as e:
                self.console.print(f"[yellow]⚠ {generator.name} reply is not a valid manifest: {escape(str(e))}[/yellow]")
                self._record_attempt(generator, ordinal, AttemptOutcome.VALIDATION_ERROR, raw_text, e)
                continue

            self._record_attempt(generator, ordinal, AttemptOutcome.ACCEPTED, raw_text)
            self.console.print(
                f"[bold blue]✓[/bold blue] Manifest from {generator.name}: {len(manifest.files)} file(s)"
            )
            written_paths = await asyncio.to_thread(
                materialize_manifest, manifest, root, self.console, self.config.max_file_size_bytes
            )
            if manifest.notes:
                await asyncio.to_thread(
                    write_diagnostic, root, NOTES_FILENAME,
                    f"[provider: {generator.name}] {manifest.notes}", self.console
                )
            return PipelineResult(
                provider=generator.name,
                written_paths=written_paths,
                notes=manifest.notes,
                attempts=self.attempts,
            )

        raw_files = ", ".join(RAW_OUTPUT_FILENAME_TEMPLATE.format(provider=g.name) for g in self.generators)
        self.console.print("[bold red]✗[/bold red] ERROR: No provider returned a valid manifest with {files:[...]}.")
        self.console.print(f"[dim]See {raw_files} for details.[/dim]")
        raise NoValidManifest(self.attempts)


async def run_pipeline(
    master_plan: str,
    task: str,
    config: BuilderConfig,
    console_obj,
    generators: Optional[Iterable[TextGenerator]] = None
) -> PipelineResult:
    return await BuildPipeline(config, console_obj, generators).run(master_plan, task)
