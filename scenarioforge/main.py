import argparse
import json
import logging
import os
import sys
from typing import List, Optional

import yaml

from scenarioforge import config
from scenarioforge.compiler.compiler import CompileOptions, Compiler
from scenarioforge.driver.page import PlaywrightBrowser
from scenarioforge.errors import ScenarioForgeError, SchemaValidationError
from scenarioforge.llm.parser import ScenarioGenerator
from scenarioforge.models.ir import CompilationArtifact, Credentials, TestScenario
from scenarioforge.pipeline.orchestrator import Pipeline
from scenarioforge.validator.validator import ScenarioValidator

LOGGER = logging.getLogger("scenarioforge")


def load_scenario(path: str) -> TestScenario:
    """Load a scenario from a YAML or JSON file (JSON is valid YAML)."""
    with open(path, "r", encoding="utf-8") as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise SchemaValidationError(f"{path}: {e}") from e
    if not isinstance(data, dict):
        raise SchemaValidationError(f"{path}: expected a scenario mapping")
    data.setdefault("id", os.path.splitext(os.path.basename(path))[0])
    try:
        return TestScenario.model_validate(data)
    except ValueError as e:
        raise SchemaValidationError(f"{path}: {e}") from e


def write_artifact(artifact: CompilationArtifact, output_dir: str) -> List[str]:
    os.makedirs(output_dir, exist_ok=True)
    written = []
    for po in artifact.page_objects:
        path = os.path.join(output_dir, f"{po.name}.py")
        with open(path, "w", encoding="utf-8") as f:
            f.write(po.source)
        written.append(path)
    path = os.path.join(output_dir, artifact.test_file_name)
    with open(path, "w", encoding="utf-8") as f:
        f.write(artifact.test_source)
    written.append(path)
    return written


def _compile_options(args) -> CompileOptions:
    return CompileOptions(
        file_name=getattr(args, "file_name", None),
        suite_id=getattr(args, "suite_id", None),
        emit_page_objects=not args.no_page_objects,
        selector_strategy=args.selector_strategy,
    )


def _browser(args) -> PlaywrightBrowser:
    return PlaywrightBrowser(
        headless=not args.headed,
        ignore_https_errors=args.ignore_https_errors,
        navigation_timeout_ms=config.NAVIGATION_TIMEOUT_MS,
        step_timeout_ms=config.STEP_TIMEOUT_MS,
    )


def process_generate(args) -> int:
    """Handler for generate command"""
    if not config.check_api_key():
        LOGGER.error("OPENAI_API_KEY environment variable is not set. "
                     "Please export OPENAI_API_KEY='sk-...' or create a .env file.")
        return 2

    credentials = None
    if args.username:
        credentials = Credentials(username=args.username, password=args.password)

    generator = ScenarioGenerator(
        api_key=config.OPENAI_API_KEY,
        base_url=config.OPENAI_BASE_URL,
        model=config.OPENAI_MODEL,
    )
    with _browser(args) as browser:
        pipeline = Pipeline(generator, browser, compile_options=_compile_options(args))
        result = pipeline.run(args.objective, args.url, credentials=credentials, run_id=args.run_id)

    for compilation in result.compilations:
        for path in write_artifact(compilation.artifacts, args.output_dir):
            print(f"Saved to {path}")
    for error in result.errors:
        LOGGER.warning("%s stage: %s: %s", error.stage, error.kind, error.message)

    os.makedirs(args.output_dir, exist_ok=True)
    envelope_path = os.path.join(args.output_dir, f"{result.run_id}.json")
    with open(envelope_path, "w", encoding="utf-8") as f:
        json.dump(result.model_dump(by_alias=True, mode="json"), f, indent=2, ensure_ascii=False)
    print(f"Saved run result to {envelope_path}")
    return 0


def process_validate(args) -> int:
    """Handler for validate command"""
    scenario = load_scenario(args.scenario)
    with _browser(args) as browser:
        report = ScenarioValidator().validate(scenario, args.url, browser)
    print(json.dumps(report.model_dump(by_alias=True, mode="json"), indent=2, ensure_ascii=False))
    return 0


def process_compile(args) -> int:
    """Handler for compile command"""
    scenario = load_scenario(args.scenario)
    artifact = Compiler().compile(scenario, _compile_options(args))
    for path in write_artifact(artifact, args.output_dir):
        print(f"Saved to {path}")
    return 0


def _add_compile_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--output-dir", default="generated", help="Directory for generated test files")
    parser.add_argument("--no-page-objects", action="store_true", help="Do not factor repeated targets into page objects")
    parser.add_argument("--selector-strategy", choices=["locator", "role-first"], default="locator",
                        help="How selectors are rendered in generated code")


def _add_browser_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--url", required=True, help="Application URL to validate against")
    parser.add_argument("--headed", action="store_true", default=not config.BROWSER_HEADLESS,
                        help="Show the browser window")
    parser.add_argument("--ignore-https-errors", action="store_true", help="Ignore HTTPS certificate errors")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Turn a test objective into a validated Playwright test")
    parser.add_argument("-v", "--verbose", action="count", default=0, help="More log output")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    parser_gen = subparsers.add_parser("generate", help="Generate, validate and compile tests for an objective")
    parser_gen.add_argument("objective", help="Natural language test objective")
    _add_browser_arguments(parser_gen)
    parser_gen.add_argument("--username", help="Login username passed to the model")
    parser_gen.add_argument("--password", help="Login password passed to the model")
    parser_gen.add_argument("--run-id", help="Run identifier (generated when omitted)")
    parser_gen.add_argument("--file-name", help="Test file name")
    parser_gen.add_argument("--suite-id", help="Suite identifier")
    _add_compile_arguments(parser_gen)

    parser_val = subparsers.add_parser("validate", help="Validate a scenario file against a live page")
    parser_val.add_argument("scenario", help="Scenario file (yaml or json)")
    _add_browser_arguments(parser_val)

    parser_comp = subparsers.add_parser("compile", help="Compile a scenario file into test code")
    parser_comp.add_argument("scenario", help="Scenario file (yaml or json)")
    parser_comp.add_argument("--file-name", help="Test file name")
    parser_comp.add_argument("--suite-id", help="Suite identifier")
    _add_compile_arguments(parser_comp)
    return parser


def log_level_for(verbose: int, configured: str = "") -> int:
    """-v/-vv win over LOG_LEVEL; an unknown LOG_LEVEL falls back to WARNING."""
    if verbose >= 2:
        return logging.DEBUG
    if verbose >= 1:
        return logging.INFO
    level = logging.getLevelName(configured.strip().upper()) if configured else logging.WARNING
    return level if isinstance(level, int) else logging.WARNING


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(level=log_level_for(args.verbose, config.LOG_LEVEL), format="%(levelname)s %(message)s")

    handlers = {
        "generate": process_generate,
        "validate": process_validate,
        "compile": process_compile,
    }
    handler = handlers.get(args.command)
    if handler is None:
        parser.print_help()
        return 1

    try:
        return handler(args)
    except KeyboardInterrupt:
        LOGGER.warning("Interrupted by user.")
        return 130
    except ScenarioForgeError as e:
        LOGGER.error("%s: %s", e.kind, e.message)
        return 2


if __name__ == "__main__":
    sys.exit(main())
