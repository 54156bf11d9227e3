"""
Main entry point for heygpt.

Can be called with: python -m heygpt, or through the ``heygpt`` script.

With no prompt (and nothing piped in) it starts an interactive session;
otherwise it answers the prompt once and exits.
"""

import argparse
import logging
import sys

from dotenv import load_dotenv

from .config import load_config
from .errors import ConfigError, HeyGptError
from .log import configure_logging
from .prompt import make_line_reader
from .session import Session
from .transport import CompletionClient

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_USAGE = 2
EXIT_INTERRUPTED = 130


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="heygpt",
        description="Ask a chat model from the terminal and stream its answer.",
    )
    parser.add_argument(
        "prompt",
        nargs="*",
        help="The prompt to ask. Leave it empty to start an interactive session",
    )
    parser.add_argument("--model", help="The model to query (default: gpt-3.5-turbo)")
    parser.add_argument(
        "--api-key",
        help="API key (default: $OPENAI_API_KEY or api_key in ~/.heygpt.toml)",
    )
    parser.add_argument(
        "--api-base-url",
        help="API base URL (default: https://api.openai.com/v1)",
    )
    parser.add_argument(
        "--temperature",
        type=float,
        help="Sampling temperature between 0 and 2. Alter this or --top-p, not both",
    )
    parser.add_argument(
        "--top-p",
        type=float,
        help="Nucleus sampling probability mass. Alter this or --temperature, not both",
    )
    parser.add_argument(
        "--no-stream",
        action="store_true",
        help="Wait for the whole answer instead of streaming it",
    )
    parser.add_argument(
        "-s",
        "--system",
        action="store_true",
        help="Start with a 'system' message (interactive mode only)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Log debug output to stderr",
    )
    return parser


def read_prompt(words, stdin=None):
    """Join the positional words with any piped stdin.

    Returns None when neither supplies anything, which means interactive mode.
    """
    if stdin is None:
        stdin = sys.stdin
    parts = []
    if words:
        parts.append(" ".join(words))
    if not stdin.isatty():
        piped = stdin.read().strip()
        if piped:
            parts.append(piped)
    if not parts:
        return None
    return "\n\n".join(parts)


def main(argv=None, client_factory=CompletionClient, stdin=None, output=None) -> int:
    """Main entry point for heygpt; returns the process exit code."""
    parser = build_parser()
    args = parser.parse_args(argv)

    configure_logging(args.verbose)
    load_dotenv()

    try:
        config = load_config(
            {
                "model": args.model,
                "api_key": args.api_key,
                "api_base_url": args.api_base_url,
                "temperature": args.temperature,
                "top_p": args.top_p,
                "stream": False if args.no_stream else None,
            }
        )
    except ConfigError as e:
        print(f"error: {e}", file=sys.stderr)
        return EXIT_FAILURE

    prompt = read_prompt(args.prompt, stdin)
    if prompt is not None and args.system:
        parser.print_usage(sys.stderr)
        print("error: --system is only supported in interactive mode", file=sys.stderr)
        return EXIT_USAGE

    try:
        client = client_factory(config)
        session = Session(client, output=output, stream=config.stream)
        logger.debug(f"Using model {config.model} at {config.api_base_url}")

        if prompt is not None:
            session.run_once(prompt)
            return EXIT_OK

        read_line = make_line_reader()
        if args.system and not session.start_system(read_line):
            return EXIT_OK
        session.run_interactive(read_line)
        return EXIT_OK
    except HeyGptError as e:
        # AuthError, and any failure of a one-shot exchange
        print(f"error: {e}", file=sys.stderr)
        return EXIT_FAILURE
    except KeyboardInterrupt:
        print(file=sys.stderr)
        return EXIT_INTERRUPTED


def run():
    sys.exit(main())


if __name__ == "__main__":
    run()
