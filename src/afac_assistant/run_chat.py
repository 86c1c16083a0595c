"""
CLI entrypoint: chat with the AFAC assistant, print learning stats, or run one learning cycle.
"""

from __future__ import annotations

import argparse
import json
import sys
from typing import Optional

from .app import AssistantApp, demo_store
from .config import configure_logging, load_settings
from .models import UserIdentity


def build_app(config_path: Optional[str] = None, in_memory: bool = False) -> AssistantApp:
    """
    Load settings and wire the application.

    Inputs:
        config_path: Optional YAML settings file.
        in_memory: Ignore Supabase credentials and use the demo store.

    Outputs:
        AssistantApp, not yet started.
    """

    settings = load_settings(config_path)
    configure_logging(settings.log_level)
    store = demo_store() if in_memory else None
    return AssistantApp(settings=settings, store=store)


def interactive_loop(app: AssistantApp, user: Optional[UserIdentity]) -> None:
    """
    Simple REPL: one assistant reply per line of input.

    Inputs:
        app: Started AssistantApp.
        user: Identity to answer as, or None for an anonymous visitor.

    Outputs:
        None. Prints assistant responses until the user exits.
    """

    print("AFAC Assistant\nType 'quit' to exit.\n")
    sys.stdout.flush()

    while True:
        try:
            sys.stdout.write("You: ")
            sys.stdout.flush()
            user_text = input().strip()
        except (EOFError, KeyboardInterrupt):
            print("\nGoodbye!")
            break

        if not user_text:
            continue
        if user_text.lower() in {"quit", "exit"}:
            print("Goodbye!")
            break

        print(f"Assistant: {app.respond(user_text, user)}\n")
        sys.stdout.flush()


def main(argv: Optional[list] = None) -> None:
    """
    Parse CLI args and run the requested command.
    """

    parser = argparse.ArgumentParser(description="Chat with the AFAC farming assistant.")
    parser.add_argument("--config", help="YAML settings file (defaults to $AFAC_CONFIG_FILE).")
    parser.add_argument(
        "--in-memory",
        action="store_true",
        help="Use the built-in demo store instead of Supabase.",
    )
    parser.add_argument("--user-id", help="Answer as this authenticated user id.")
    parser.add_argument("--name", help="Display name for --user-id.")
    parser.add_argument("--email", help="E-mail address for --user-id.")
    parser.add_argument("--stats", action="store_true", help="Print learning statistics and exit.")
    parser.add_argument("--learn", action="store_true", help="Run one learning cycle and exit.")
    parser.add_argument(
        "--no-scheduler",
        action="store_true",
        help="Do not start the hourly learning thread while chatting.",
    )
    args = parser.parse_args(argv)

    app = build_app(args.config, in_memory=args.in_memory)
    user = None
    if args.user_id:
        user = UserIdentity(id=args.user_id, email=args.email, full_name=args.name)

    if args.stats:
        print(json.dumps(app.learning_stats().to_dict(), indent=2))
        return

    if args.learn:
        app.scheduler.run_once()
        print(json.dumps(app.learning_stats().to_dict(), indent=2))
        app.engine.close()
        return

    if not args.no_scheduler:
        app.start()
    try:
        interactive_loop(app, user)
    finally:
        app.stop()


if __name__ == "__main__":
    main()
