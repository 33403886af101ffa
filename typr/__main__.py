"""Entry point for running typr as a module: python -m typr"""

import argparse
import json
import logging
import sys
from pathlib import Path

# Load .env file if it exists (before importing config)
from dotenv import load_dotenv

env_path = Path.cwd() / ".env"
if env_path.exists():
    load_dotenv(env_path)

from typr.app import DictationApp, build_machine, run_toggle
from typr.config import Config, GestureMode, Settings
from typr.errors import ConfigurationError
from typr.platform import create_platform
from typr.registry import JsonSessionRegistry

USAGE = """Typr - dictation with press-and-hold recording

Usage:
  typr config     - Show current configuration
  typr shortcuts  - Show keyboard shortcut setup instructions
  typr toggle     - Toggle recording (used by shortcuts)
  typr listen     - Run the gesture listener (double-tap-and-hold Shift)
  typr serve      - Run the HTTP key bridge for external hotkey daemons

Quick Start:
  1. Add your OpenAI key to ~/.typr-settings.json
  2. typr shortcuts   # Setup keyboard shortcut
  3. Use your shortcut to record!

How it works:
  - First press: Starts recording
  - Second press: Stops recording and types the result"""


def setup_logging(verbose: bool, log_file: Path | None = None) -> None:
    """Configure logging based on verbosity setting."""
    level = logging.INFO if verbose else logging.WARNING

    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_file is not None:
        try:
            file_handler = logging.FileHandler(log_file, encoding="utf-8")
            file_handler.setLevel(logging.INFO)
            handlers.append(file_handler)
            level = min(level, logging.INFO)
        except OSError as e:
            print(f"⚠️  Cannot write log file {log_file}: {e}", file=sys.stderr)

    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
        handlers=handlers,
    )
    handlers[0].setLevel(logging.INFO if verbose else logging.WARNING)

    # Reduce noise from all third-party libraries
    for name in ("urllib3", "httpx", "httpcore", "uvicorn.access", "sounddevice"):
        logging.getLogger(name).setLevel(logging.ERROR)


def shortcut_instructions(config: Config, platform: str | None = None) -> str:
    platform = platform or sys.platform
    command = f"{sys.executable} -m typr toggle"

    if platform.startswith("linux"):
        instructions = f"""🐧 Linux Setup:
1. For i3: Add to ~/.config/i3/config:
   bindsym --release Mod4+Shift+space exec "{command}"
   (Note: --release flag prevents multiple fires)
   Then run: i3-msg reload

2. For GNOME: Settings > Keyboard > Custom Shortcuts
   - Name: Typr Toggle
   - Command: {command}
   - Shortcut: Super+Shift+Space

3. For KDE: System Settings > Shortcuts > Custom Shortcuts"""
    elif platform == "darwin":
        instructions = f"""🍎 macOS Setup:
1. Install a shortcut manager like Karabiner-Elements or BetterTouchTool
2. Or use Automator + System Settings:
   - Create new 'Quick Action' in Automator
   - Add 'Run Shell Script' action
   - Script: {command}
   - Save as 'Typr Toggle'
   - System Settings > Keyboard > Shortcuts > Services
   - Assign ⌘⇧Space to 'Typr Toggle'
3. Or run `{sys.executable} -m typr serve` and let Hammerspoon post
   {{"isActive": true/false}} and {{"type": "escape"}} to http://127.0.0.1:3433"""
    else:
        instructions = "Manual setup required for your OS"

    log_hint = f"   tail -f {config.log_file}    # Watch logs" if config.log_file else ""
    return f"""🔗 Global Shortcut Setup
========================

To enable toggle recording, bind this command to a keyboard shortcut:
Command: {command}

{instructions}

💡 How it works:
   - First press: Starts recording
   - Second press: Stops recording and types the result

📊 Monitor logs in real-time:
{log_hint}"""


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="typr", description="Dictation into any window")
    commands = parser.add_subparsers(dest="command")

    commands.add_parser("toggle", help="Start recording, or stop the running recording")
    commands.add_parser("config", help="Print the current settings")
    commands.add_parser("shortcuts", help="Print keyboard shortcut setup instructions")

    listen = commands.add_parser("listen", help="Run the keyboard gesture listener")
    listen.add_argument("--mode", choices=[mode.value for mode in GestureMode])
    listen.add_argument("--source", choices=["pynput", "xinput"], default="pynput")

    serve = commands.add_parser("serve", help="Run the HTTP key bridge")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=3433)
    return parser


def cmd_toggle(config: Config) -> int:
    settings = Settings.load(config.settings_file)
    registry = JsonSessionRegistry(config.state_file)
    platform = create_platform(config)
    machine = build_machine(config, settings, platform=platform, registry=registry)
    try:
        run_toggle(machine, registry, platform)
    finally:
        machine.shutdown()
    return 0


def cmd_listen(config: Config, mode: str | None, source_name: str) -> int:
    if mode:
        config.gesture.mode = GestureMode(mode)

    source = None
    if source_name == "xinput":
        from typr.keys import XInputKeySource

        xinput = XInputKeySource()
        xinput.start()
        source = xinput

    app = DictationApp(config, source=source)
    try:
        app.run()
    finally:
        app.shutdown()
    return 0


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)

    # Load configuration (supports environment variables)
    config = Config.from_env()

    setup_logging(config.verbose, config.log_file)

    try:
        if args.command == "toggle":
            return cmd_toggle(config)
        if args.command == "listen":
            return cmd_listen(config, args.mode, args.source)
        if args.command == "serve":
            from typr.server import serve

            return serve(args.host, args.port)
        if args.command == "config":
            settings = Settings.load(config.settings_file)
            print(json.dumps(settings.to_json(), indent=2))
            return 0
        if args.command == "shortcuts":
            print(shortcut_instructions(config))
            return 0
        print(USAGE)
        return 0
    except ConfigurationError as e:
        logging.error("Initialization failed: %s", e)
        print(f"❌ {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("\n👋 Interrupted")
        return 130


if __name__ == "__main__":
    sys.exit(main())
