"""
Run a scripted sequence of browser actions from a YAML or JSON file.

Example script:

    options:
      timeout: 5000
    steps:
      - navigate: https://example.com
      - wait: "#content"
      - click: "#more"
      - extract: {name: title, script: "() => document.title"}
"""

import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import click
import yaml

from nocturne.config import SessionOptions
from nocturne.driver import BrowserDriver
from nocturne.logging_utils import setup_logging
from nocturne.polling import Clock
from nocturne.session import Session

logger = logging.getLogger(__name__)

STEP_KINDS = ("navigate", "click", "type", "upload", "wait", "extract")


def get_log_path() -> Path:
    """Logs are stored under '~/.nocturne/logs/'."""
    log_dir = Path.home() / '.nocturne' / 'logs'
    log_dir.mkdir(parents=True, exist_ok=True)
    return log_dir / 'nocturne-run.log'


def load_script(path) -> Dict[str, Any]:
    """
    Load an action script and normalize it to {"options": {...}, "steps": [...]}.

    A bare list is taken as the steps with no options.
    """
    script_path = Path(path)
    text = script_path.read_text(encoding="utf-8")
    if script_path.suffix.lower() == ".json":
        data = json.loads(text)
    else:
        data = yaml.safe_load(text)

    if isinstance(data, list):
        return {"options": {}, "steps": data}
    if not isinstance(data, dict):
        raise ValueError("Action script must be a list of steps or a mapping with 'steps'")
    steps = data.get("steps") or []
    options = data.get("options") or {}
    if not isinstance(steps, list):
        raise ValueError("'steps' must be a list")
    if not isinstance(options, dict):
        raise ValueError("'options' must be a mapping")
    return {"options": options, "steps": steps}


def _pair(index: int, kind: str, value: Any) -> Tuple[str, str]:
    if isinstance(value, dict):
        value = [value.get("selector"), value.get("text", value.get("path"))]
    if not isinstance(value, (list, tuple)) or len(value) != 2:
        raise ValueError(f"step {index} {kind} requires [selector, value]")
    return str(value[0]), str(value[1])


def _parse_step(index: int, step: Any) -> Tuple[str, Any]:
    if not isinstance(step, dict) or len(step) != 1:
        raise ValueError(f"step {index} must be a mapping with exactly one action")
    kind, value = next(iter(step.items()))
    kind = str(kind).strip().lower()
    if kind not in STEP_KINDS:
        raise ValueError(f"step {index} has unsupported action: {kind}")
    if kind in ("type", "upload"):
        return kind, _pair(index, kind, value)
    if kind == "extract":
        if isinstance(value, dict):
            name = str(value.get("name") or f"step_{index}")
            js = value.get("script")
        else:
            name, js = f"step_{index}", value
        if not js:
            raise ValueError(f"step {index} extract requires a script")
        return kind, (name, str(js))
    return kind, value


def build_session(
    script: Dict[str, Any],
    *,
    results: Dict[str, Any],
    errors: List[BaseException],
    driver: Optional[BrowserDriver] = None,
    clock: Optional[Clock] = None,
    **overrides: Any,
) -> Session:
    """Queue every step of `script` on a new Session; extracted values land in `results`."""
    parsed = [_parse_step(index, step) for index, step in enumerate(script.get("steps") or [])]
    options = SessionOptions.from_mapping(script.get("options") or {})
    session = Session(options, driver=driver, clock=clock, **overrides)
    session.error(errors.append)

    for kind, value in parsed:
        if kind == "navigate":
            session.navigate(str(value))
        elif kind == "click":
            session.click(str(value))
        elif kind in ("type", "upload"):
            selector, payload = value
            getattr(session, kind)(selector, payload)
        elif kind == "wait":
            session.wait(value)
        elif kind == "extract":
            name, js = value
            session.evaluate(js, callback=lambda result, key=name: results.__setitem__(key, result))
    return session


async def run_script(
    script: Dict[str, Any],
    *,
    driver: Optional[BrowserDriver] = None,
    clock: Optional[Clock] = None,
    **overrides: Any,
) -> Tuple[Dict[str, Any], List[BaseException]]:
    results: Dict[str, Any] = {}
    errors: List[BaseException] = []
    session = build_session(
        script,
        results=results,
        errors=errors,
        driver=driver,
        clock=clock,
        **overrides,
    )
    try:
        await session.run()
    finally:
        await session.close()
    return results, errors


@click.command()
@click.argument('script_path', type=click.Path(exists=True, dir_okay=False))
@click.option('--timeout', type=int, default=None, help='Wait/poll timeout in milliseconds.')
@click.option('--interval', type=int, default=None, help='Poll interval in milliseconds.')
@click.option('--headed', is_flag=True, help='Show the browser window.')
@click.option('--output', '-o', type=click.Path(dir_okay=False), default=None,
              help='Write extracted values as JSON to this file.')
@click.option('--verbose', '-v', is_flag=True, help='Enable verbose logging.')
def run(script_path, timeout, interval, headed, output, verbose):
    """
    Runs the action script at SCRIPT_PATH in a headless browser session.
    """
    setup_logging(log_file_path=get_log_path(), verbose=verbose)

    try:
        script = load_script(script_path)
    except Exception as e:
        logger.error(f"Failed to parse action script: {e}")
        click.echo(f"Error: Failed to parse action script: {e}")
        sys.exit(1)

    overrides: Dict[str, Any] = {"timeout_ms": timeout, "interval_ms": interval}
    if headed:
        overrides["headless"] = False

    try:
        results, errors = asyncio.run(run_script(script, **overrides))
    except KeyboardInterrupt:
        click.echo("\nInterrupted by user.")
        sys.exit(130)
    except Exception as e:
        logger.error(f"Action script failed: {e}")
        click.echo(f"Error: {e}")
        sys.exit(1)

    rendered = json.dumps(results, indent=2, default=str)
    if output:
        Path(output).write_text(rendered + "\n", encoding="utf-8")
        click.echo(f"Wrote {len(results)} extracted value(s) to {output}")
    else:
        click.echo(rendered)

    if errors:
        for error in errors:
            click.echo(f"Error: {error}")
        sys.exit(1)


if __name__ == "__main__":
    run()
