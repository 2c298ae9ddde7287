import argparse
import logging
import sys

from planforge.config import load_config
from planforge.driver.playwright_engine import PlaywrightEngine
from planforge.errors import MalformedPlanError
from planforge.library.repository import ObjectLibrary
from planforge.library.store import FileStore
from planforge.pipeline import Pipeline
from planforge.providers.api import APIProvider, FileProvider


def build_planner(config):
    if config.planner == "llm":
        # Lazy import so the rules planner works without an API key
        from planforge.llm.planner import LLMStepPlanner
        return LLMStepPlanner(base_url=config.base_url, test_data=config.test_data)
    return None


def process_generate(args) -> int:
    """Handler for generate command"""
    config = load_config(args.config)
    if args.base_url:
        config.base_url = args.base_url
    if args.headed:
        config.headless = False

    if args.source == 'api':
        if not args.api_url:
            print("Error: --api-url is required when source is 'api'")
            return 2
        provider = APIProvider(args.api_url)
    else:
        if not args.plan:
            print("Error: a plan file is required when source is 'file'")
            return 2
        provider = FileProvider(args.plan)

    plan_text = provider.get_plan()

    def engine_factory():
        return PlaywrightEngine(headless=config.headless, timeout_ms=config.action_timeout_ms,
                                storage_state=args.storage_state, ignore_https_errors=args.ignore_https_errors)

    store = FileStore(args.root)
    pipeline = Pipeline(config, engine_factory, store=store)
    planner = build_planner(config)
    if planner is not None:
        pipeline.planner = planner

    try:
        results = pipeline.generate(plan_text, args.scenario, max_workers=args.workers)
    except MalformedPlanError as e:
        print(f"Error: malformed plan: {e}")
        return 2

    failed = 0
    for idx, result in enumerate(results):
        label = f"[{idx+1}/{len(results)}] {result.scenario.qualified_name}"
        if result.ok:
            print(f"{label}: {result.test_file.file_name} ({', '.join(result.test_file.imports)})")
        else:
            failed += 1
            print(f"{label}: FAILED {type(result.error).__name__}: {result.error}")
    return 1 if failed else 0


def process_pages(args) -> int:
    """Handler for pages command"""
    config = load_config(args.config)
    library = ObjectLibrary(FileStore(args.root), config.pages_dir)
    names = library.discover()
    if not names:
        print(f"No page objects in {config.pages_dir}")
        return 0
    for name, definition in library.resolve(names).items():
        print(f"{name}: {len(definition.locators)} locators, {len(definition.actions)} methods")
        if args.verbose:
            for method in definition.actions:
                print(f"  - {method.name}({', '.join(method.params)})")
    return 0


def main(argv=None):
    parser = argparse.ArgumentParser(description="Generate Playwright tests and page objects from markdown test plans")
    parser.add_argument("--config", default=None, help="Path to planforge.yaml")
    parser.add_argument("--root", default=".", help="Project root the pages/tests directories live in")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    parser_gen = subparsers.add_parser("generate", help="Generate test files for plan scenarios")
    parser_gen.add_argument("plan", nargs="?", help="Path to the markdown plan (for file mode)")
    parser_gen.add_argument("--scenario", help="Scenario selector: '*', '1.2', 'Group/Scenario' or a scenario name")
    parser_gen.add_argument("--source", choices=['file', 'api'], default='file', help="Source of the plan")
    parser_gen.add_argument("--api-url", help="API URL for fetching the plan")
    parser_gen.add_argument("--base-url", help="Override base_url from the config")
    parser_gen.add_argument("--workers", type=int, default=1, help="Scenarios generated in parallel")
    parser_gen.add_argument("--headed", action="store_true", help="Show the browser")
    parser_gen.add_argument("--storage-state", help="Playwright storage state file (e.g. a saved login)")
    parser_gen.add_argument("--ignore-https-errors", action="store_true", help="Ignore HTTPS certificate errors")

    subparsers.add_parser("pages", help="List page objects in the library")

    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command == "generate":
        return process_generate(args)
    elif args.command == "pages":
        return process_pages(args)
    parser.print_help()
    return 0


if __name__ == "__main__":
    sys.exit(main())
