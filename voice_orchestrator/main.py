"""
Command line interface for the voice orchestrator.
"""

import asyncio
import argparse
import os
from typing import Optional

from .config import get_framework_config, print_config_summary, validate_environment
from .factory import ProviderFactory
from .models.data_models import StateSnapshot
from .orchestrator import TurnCoordinator
from .utils.error_handling import ComponentError
from .utils.logging_config import setup_logging
from .voice_chat import VoiceChat


def create_parser() -> argparse.ArgumentParser:
    """Create CLI argument parser."""
    parser = argparse.ArgumentParser(
        description="Voice Turn-Taking Orchestrator",
        formatter_class=argparse.RawDescriptionHelpFormatter
    )

    subparsers = parser.add_subparsers(dest='command', help='Commands')

    call = subparsers.add_parser(
        'call',
        help='Hands-free call: listen, reply, speak, with barge-in'
    )
    call.add_argument('--duration', type=float, default=None,
                      help='End the call after N seconds (default: until Ctrl+C)')
    call.add_argument('--echo', action='store_true',
                      help='Use the echo backend instead of the configured one')

    chat = subparsers.add_parser(
        'chat',
        help='Dictate one message at a time and hear the replies'
    )
    chat.add_argument('--echo', action='store_true',
                      help='Use the echo backend instead of the configured one')
    chat.add_argument('--no-voice', action='store_true',
                      help='Print replies without speaking them')
    chat.add_argument('--turns', type=int, default=None,
                      help='Stop after N messages')

    subparsers.add_parser(
        'config',
        help='Show configuration'
    )

    return parser


def _print_banner(title: str) -> None:
    print("\n" + "=" * 60)
    print(title)
    print("=" * 60 + "\n")


def _print_error(error: ComponentError) -> None:
    print(f"\n⚠️  {error.component}: {error.message}")


async def cmd_call(args) -> None:
    """Run one call until Ctrl+C or the requested duration."""
    _print_banner("Call Mode (Ctrl+C to hang up)")

    config = get_framework_config()
    if args.echo:
        config.response.provider = 'echo'

    providers = ProviderFactory.create_all_providers(config)
    response = providers['response']
    if not await response.initialize():
        print("❌ Failed to initialize response backend")
        return

    last_state: Optional[str] = None

    def on_state_change(snapshot: StateSnapshot) -> None:
        nonlocal last_state
        if snapshot.state.value != last_state:
            last_state = snapshot.state.value
            mic = "🎙️ " if snapshot.is_listening else "  "
            print(f"\n{mic} [{snapshot.state.value}]")

    coordinator = TurnCoordinator(
        providers['recognition'],
        providers['synthesis'],
        response,
        config=config,
        on_state_change=on_state_change,
        on_transcript=lambda text: print(f"\r📝 {text}", end="", flush=True),
        on_committed_utterance=lambda text: print(f"\n👤 {text}"),
        on_error=_print_error,
    )

    try:
        coordinator.start_call()
        if args.duration:
            await asyncio.sleep(args.duration)
        else:
            await asyncio.Event().wait()
    finally:
        await coordinator.cleanup()


async def cmd_chat(args) -> None:
    """Dictation loop: speak, wait for the silence commit, hear the reply."""
    _print_banner("Chat Mode (Ctrl+C to quit)")

    config = get_framework_config()
    if args.echo:
        config.response.provider = 'echo'

    providers = ProviderFactory.create_all_providers(config)
    response = providers['response']
    if not await response.initialize():
        print("❌ Failed to initialize response backend")
        return

    loop = asyncio.get_running_loop()
    pending: Optional[asyncio.Future] = None

    def on_final_transcript(text: str) -> None:
        if pending is not None and not pending.done():
            pending.set_result(text)

    chat = VoiceChat(
        providers['recognition'],
        providers['synthesis'],
        config=config,
        voice_enabled=not args.no_voice,
        on_final_transcript=on_final_transcript,
        on_transcript=lambda text: print(f"\r📝 {text}", end="", flush=True),
        on_error=_print_error,
    )

    turn = 0
    try:
        while args.turns is None or turn < args.turns:
            pending = loop.create_future()
            print("\n🎙️  Listening...")
            chat.start_listening()
            text = await pending
            turn += 1
            print(f"\n👤 {text}")

            try:
                reply = await response.respond(text)
            except Exception as e:
                print(f"❌ Reply failed: {e}")
                continue

            print(f"🤖 {reply}")
            chat.speak_message(str(turn), reply)
            while chat.is_speaking:
                await asyncio.sleep(0.1)
    finally:
        await chat.cleanup()
        await response.cleanup()


def cmd_config() -> None:
    """Show configuration."""
    _print_banner("Configuration")
    print_config_summary()


async def async_main() -> None:
    """Async main function."""
    parser = create_parser()
    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        return

    if args.command == 'config':
        cmd_config()
        return

    validation = validate_environment()
    for warning in validation['warnings']:
        print(f"⚠️  {warning}")

    if args.command == 'call':
        await cmd_call(args)
    elif args.command == 'chat':
        await cmd_chat(args)
    else:
        print(f"Unknown command: {args.command}")
        parser.print_help()


def main():
    """Synchronous entry point."""
    log_level = os.getenv("LOG_LEVEL", "INFO")
    try:
        setup_logging(level=log_level)
    except Exception as e:
        print(f"⚠️  Failed to setup logging: {e}")

    try:
        asyncio.run(async_main())
    except KeyboardInterrupt:
        print("\n⚠️  Interrupted by user")


if __name__ == '__main__':
    main()
