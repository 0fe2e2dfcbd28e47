import argparse
import asyncio
import sys

from codegen_agent.agent import generate_program
from codegen_agent.config import Settings, configure_logging, load_env
from codegen_agent.openrouter_client import OpenRouterClient
from codegen_agent.toolchain_registry import ToolchainRegistry


def build_parser(settings: Settings) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Generate a program with an LLM until it builds")
    parser.add_argument("assignment", help="What the program should do")
    parser.add_argument(
        "--qa",
        action=argparse.BooleanOptionalAction,
        default=settings.enable_qa,
        help="Run the QA pass after a successful build (default from codegen_enable_qa)",
    )
    parser.add_argument("--max-attempts", type=int, default=settings.max_attempts, help="Attempt budget")
    parser.add_argument(
        "--toolchain",
        default=settings.toolchain,
        choices=ToolchainRegistry().list_names(),
        help="Toolchain preset",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    load_env()
    settings = Settings.from_env()
    configure_logging(settings.log_level)
    args = build_parser(settings).parse_args(argv)

    llm = OpenRouterClient(api_key=settings.api_key, model=settings.model)
    result = asyncio.run(
        generate_program(
            args.assignment,
            bool(args.qa),
            llm=llm,
            settings=settings,
            toolchain=ToolchainRegistry().get(args.toolchain),
            max_attempts=args.max_attempts,
        )
    )

    print(result.final_source)
    if result.qa_report:
        print("\n# QA report\n")
        print(result.qa_report)
    status = "succeeded" if result.succeeded else f"failed: {result.error}"
    print(f"\n# {status} after {result.attempt_count} attempt(s)", file=sys.stderr)
    return 0 if result.succeeded else 1


if __name__ == "__main__":
    sys.exit(main())
