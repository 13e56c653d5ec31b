"""
Command-line entrypoint for leoverse.

Architectural role:
- Parses flags and environment, builds the session, remote client,
  orchestrator, and relay, and wires them together explicitly.
- Prints operator-facing progress to stdout; library modules log via `logging`.

Subcommands:
- `generate PROMPT`: one generation, images downloaded to the output directory.
- `relay`: process every pending Airtable record.
- `attach --prompt TEXT IMAGE`: upload an existing image to the matching record.
- `version`: print the installed version.

Cancellation:
- SIGINT fires the shared cancel token; the poll loop unwinds at its next wait
  boundary and the process exits with status 130.
- `--timeout` / `GENERATION_TIMEOUT` arms a deadline on the same token.

Exit status:
- 0 on success.
- 1 on configuration failure, failed top-level generation, or when every
  attempted relay item failed.
- 130 when canceled by the operator.
"""

from dotenv import load_dotenv

load_dotenv()

import argparse
import logging
import signal
import sys
import tempfile
import time
from importlib.metadata import PackageNotFoundError, version as package_version
from pathlib import Path

from leoverse.airtable.relay import DatastoreRelay, FieldNames
from leoverse.core.cancel import CancelToken
from leoverse.core.config import AirtableSettings, LeonardoSettings, resolve_cookie
from leoverse.core.errors import Canceled, LeoverseError, NotConfigured
from leoverse.core.remote import RemoteClient
from leoverse.leonardo.download import download_all
from leoverse.leonardo.generation import GenerationOrchestrator, GenerationParams
from leoverse.leonardo.session import Session

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_CANCELED = 130


# =========================================================
# ARGUMENTS
# =========================================================

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="leoverse", description="Leonardo.ai image generation client")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    parser.add_argument("--proxy", default=None, help="Proxy URL for all remote calls")

    sub = parser.add_subparsers(dest="command", required=True)

    gen = sub.add_parser("generate", help="Generate images for one prompt")
    gen.add_argument("prompt")
    _add_generation_flags(gen)
    gen.add_argument("--negative-prompt", default="")
    gen.add_argument("--model", default=None, help="Leonardo model id")
    gen.add_argument("--width", type=int, default=None)
    gen.add_argument("--height", type=int, default=None)
    gen.add_argument("--num-images", type=int, default=None)

    relay = sub.add_parser("relay", help="Generate images for pending Airtable records")
    _add_generation_flags(relay)

    attach = sub.add_parser("attach", help="Attach an existing image to the record with a prompt")
    attach.add_argument("--prompt", required=True)
    attach.add_argument("image")

    sub.add_parser("version", help="Print version")
    return parser


def _add_generation_flags(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--cookie", default=None, help="Leonardo.ai cookie, token, or session JSON")
    parser.add_argument("--output-dir", default=None, help="Download directory (default: $OUTPUT_DIR or output)")
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Give up polling after this many seconds (default: $GENERATION_TIMEOUT, 0 = never)",
    )


# =========================================================
# WIRING
# =========================================================

def build_client(args, settings: LeonardoSettings, datastore: AirtableSettings | None = None) -> RemoteClient:
    session = None
    if args.command in ("generate", "relay"):
        cookie = resolve_cookie(getattr(args, "cookie", None), settings)
        if not cookie:
            raise NotConfigured(
                f"no cookie: pass --cookie, set LEONARDO_COOKIE, or create {settings.cookie_file}"
            )
        session = Session(cookie)

    return RemoteClient(
        session=session,
        datastore=datastore,
        graphql_url=settings.graphql_url,
        timeout=settings.request_timeout,
        proxy=args.proxy,
    )


def params_from_args(args, prompt: str) -> GenerationParams:
    params = GenerationParams(prompt=prompt, negative_prompt=getattr(args, "negative_prompt", "") or "")
    for attr, flag in (("model_id", "model"), ("width", "width"), ("height", "height"), ("num_images", "num_images")):
        value = getattr(args, flag, None)
        if value is not None:
            setattr(params, attr, value)
    return params


def arm_deadline(cancel: CancelToken, args, settings: LeonardoSettings) -> None:
    timeout = args.timeout if getattr(args, "timeout", None) is not None else settings.generation_timeout
    if timeout and timeout > 0:
        cancel.cancel_after(timeout)


def generate_to_dir(
    orchestrator: GenerationOrchestrator,
    client: RemoteClient,
    params: GenerationParams,
    output_dir: str | Path,
    cancel: CancelToken,
) -> list[Path]:
    """Run one generation and download every image into `output_dir`."""
    print(f"Generating image for prompt: {params.prompt!r}")
    images = orchestrator.generate(params, cancel=cancel)

    print(f"\nGeneration completed in {orchestrator.elapsed:.0f}s")
    print(f"Generated {len(images)} images:")
    for index, image in enumerate(images, start=1):
        print(f"{index}. {image.url}")

    paths = download_all(images, output_dir, http=client.http)
    for path in paths:
        print(f"Downloaded to: {path}")
    return paths


# =========================================================
# COMMANDS
# =========================================================

def cmd_generate(args, cancel: CancelToken) -> int:
    settings = LeonardoSettings()
    client = build_client(args, settings)
    orchestrator = GenerationOrchestrator(client, poll_interval=settings.poll_interval)
    output_dir = args.output_dir or settings.output_dir

    arm_deadline(cancel, args, settings)
    try:
        generate_to_dir(orchestrator, client, params_from_args(args, args.prompt), output_dir, cancel)
    finally:
        cancel.close()
    return EXIT_OK


def cmd_relay(args, cancel: CancelToken) -> int:
    settings = LeonardoSettings()
    datastore = AirtableSettings().require()
    client = build_client(args, settings, datastore)
    orchestrator = GenerationOrchestrator(client, poll_interval=settings.poll_interval)
    relay = DatastoreRelay(client, fields=FieldNames.from_settings(datastore))
    output_root = Path(args.output_dir or settings.output_dir)

    def handler(prompt: str) -> list[Path]:
        if cancel.cancelled:
            raise Canceled(cancel.reason)
        item_cancel = cancel.child()
        arm_deadline(item_cancel, args, settings)
        try:
            output_root.mkdir(parents=True, exist_ok=True)
            target = tempfile.mkdtemp(prefix=time.strftime("relay-%Y%m%d-%H%M%S-"), dir=output_root)
            return generate_to_dir(orchestrator, client, GenerationParams(prompt=prompt), target, item_cancel)
        finally:
            item_cancel.close()

    summary = relay.process_all(handler)
    if cancel.cancelled:
        raise Canceled(cancel.reason)

    for record_id, error in summary.errors.items():
        print(f"Error processing record {record_id}: {error}")
    print(
        f"Processing completed. Total records: {summary.total}, "
        f"Processed: {summary.processed}, Skipped: {summary.skipped}"
    )
    if summary.incomplete:
        print(f"Records with attachments but no completed flag: {', '.join(summary.incomplete)}")
    return EXIT_FAILURE if summary.all_failed else EXIT_OK


def cmd_attach(args, cancel: CancelToken) -> int:
    datastore = AirtableSettings().require()
    client = build_client(args, LeonardoSettings(), datastore)
    relay = DatastoreRelay(client, fields=FieldNames.from_settings(datastore))
    record_id = relay.attach_for_prompt(args.prompt, args.image)
    print(f"Attached {args.image} to record {record_id}")
    return EXIT_OK


def cmd_version(args, cancel: CancelToken) -> int:
    try:
        v = package_version("leoverse")
    except PackageNotFoundError:
        v = "dev"
    print(v)
    return EXIT_OK


COMMANDS = {
    "generate": cmd_generate,
    "relay": cmd_relay,
    "attach": cmd_attach,
    "version": cmd_version,
}


# =========================================================
# MAIN
# =========================================================

def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    cancel = CancelToken()
    previous = signal.getsignal(signal.SIGINT)

    def on_interrupt(signum, frame):
        print("\nInterrupted, stopping...")
        cancel.cancel("interrupted by user")

    try:
        signal.signal(signal.SIGINT, on_interrupt)
    except ValueError:
        # Not the main thread (embedded use); rely on KeyboardInterrupt.
        previous = None

    try:
        return COMMANDS[args.command](args, cancel)
    except Canceled as exc:
        print(f"Canceled: {exc.reason}")
        return EXIT_CANCELED
    except NotConfigured as exc:
        print(f"Configuration error: {exc}")
        return EXIT_FAILURE
    except LeoverseError as exc:
        logger.debug("Command %s failed", args.command, exc_info=True)
        print(f"Error: {exc}")
        return EXIT_FAILURE
    except (OSError, LookupError) as exc:
        print(f"Error: {exc}")
        return EXIT_FAILURE
    finally:
        if previous is not None:
            signal.signal(signal.SIGINT, previous)


if __name__ == "__main__":
    sys.exit(main())
