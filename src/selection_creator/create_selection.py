#!/usr/bin/env python3
"""
Selection creator run

Reads images → Extracts metadata → Uploads to S3 → Presigns URLs →
Writes Selection/SelectionItem records → Marks the event's selection available
"""

import argparse
import json
import sys
from typing import Any, Callable, Dict, Optional

from dotenv import load_dotenv

from .core import (
    PipelineState,
    RunResult,
    SelectionConfig,
    SelectionCreatorError,
    enable_debug_logging,
    get_logger,
    route_logs_to,
)
from .core.config import load_config
from .core.factories import SelectionPipelineFactory
from .core.models import ProcessorType


EXIT_OK = 0
EXIT_UNEXPECTED = 1
EXIT_INTERRUPTED = 130


def add_run_arguments(parser: argparse.ArgumentParser) -> None:
    """Register the run options; every value falls back to the environment, then a prompt."""
    parser.add_argument("--input-dir", help="Directory holding the images (env: INPUT_DIR)")
    parser.add_argument("--region", help="AWS region (env: AWS_REGION)")
    parser.add_argument("--bucket", help="Destination S3 bucket (env: S3_BUCKET)")
    parser.add_argument("--username", help="Owner of the selection (env: USERNAME)")
    parser.add_argument("--event-id", help="Event identifier (env: EVENT_ID)")
    parser.add_argument("--event-title", help="Event title (env: EVENT_TITLE)")
    parser.add_argument(
        "--max-photos",
        type=int,
        dest="max_number_of_photos",
        help="Maximum number of photos the user may select (env: MAX_NUMBER_OF_PHOTOS)",
    )
    parser.add_argument("--selection-table", help="Selection table (env: DYNAMODB_TABLE_SELECTION)")
    parser.add_argument(
        "--selection-item-table", help="SelectionItem table (env: DYNAMODB_TABLE_SELECTION_ITEM)"
    )
    parser.add_argument("--events-table", help="Events table (env: EVENTS_TABLE)")
    parser.add_argument(
        "--processor",
        type=str,
        default=None,
        choices=[p.value for p in ProcessorType],
        help="Item execution strategy (default: multithread)",
    )
    parser.add_argument(
        "--concurrency", type=int, default=None, help="Maximum simultaneous item operations"
    )
    parser.add_argument(
        "--no-input", action="store_true", help="Never prompt; missing settings are an error"
    )
    parser.add_argument("--json", action="store_true", help="Print the run result as JSON")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")


def config_overrides(args: argparse.Namespace) -> Dict[str, Any]:
    names = (
        "input_dir", "region", "bucket", "username", "event_id", "event_title",
        "max_number_of_photos", "selection_table", "selection_item_table",
        "events_table", "processor", "concurrency",
    )
    overrides = {name: getattr(args, name, None) for name in names}
    overrides["debug"] = args.debug
    return overrides


def print_summary(result: RunResult, as_json: bool = False) -> None:
    """Print the final summary the operator sees."""
    if as_json:
        print(json.dumps(result.model_dump(mode="json"), indent=2))
        return

    if result.state == PipelineState.NO_IMAGES_FOUND:
        print("No images found to process.")
        print(f"Selection ID: {result.selection_id}")
        return

    print("Photo selection processing complete!")
    print(f"Selection ID: {result.selection_id}")
    print(f"Processed {result.total_images} images")
    print(
        f"Uploaded {result.uploaded_count}, presigned {result.url_count}, "
        f"recorded {result.items_written}/{result.items_attempted}"
    )
    if result.failures:
        print(f"Skipped or degraded {len(result.failures)} item(s):")
        for failure in result.failures:
            print(f"  [{failure.stage}] {failure.file_name}: {failure.error}")
    if result.duplicate_image_names:
        print(f"Duplicate image names: {', '.join(result.duplicate_image_names)}")


def run_selection(config: SelectionConfig, **pipeline_overrides: Any) -> RunResult:
    """Build the pipeline for ``config`` and run it once."""
    pipeline = SelectionPipelineFactory.create_pipeline(config, **pipeline_overrides)
    return pipeline.run(config)


def run(
    args: argparse.Namespace,
    prompt: Optional[Callable[[str], str]] = input,
) -> int:
    """
    Execute the ``run`` command and return the process exit code.

    Fatal pipeline errors map to their exception's ``exit_code``; per-item
    failures do not affect the exit code.
    """
    logger = get_logger("selection-creator")
    if args.json:
        # Keep stdout parseable
        route_logs_to(sys.stderr)
    try:
        load_dotenv()
        if args.debug:
            enable_debug_logging(
                "selection-creator", "selection-creator.pipeline", "selection-creator.executor"
            )

        config = load_config(
            config_overrides(args), prompt=None if args.no_input else prompt
        )
        result = run_selection(config)
        print_summary(result, as_json=args.json)
        return EXIT_OK

    except KeyboardInterrupt:
        logger.warning("Processing interrupted by user.")
        return EXIT_INTERRUPTED
    except SelectionCreatorError as e:
        logger.error(f"{type(e).__name__}: {e}", exc_info=args.debug)
        return e.exit_code
    except Exception as e:
        logger.error(f"Processing failed: {e}", exc_info=True)
        return EXIT_UNEXPECTED


def main() -> None:
    """Standalone entry point equivalent to ``selection-creator run``."""
    parser = argparse.ArgumentParser(
        description="Upload an event's photos and create a selection for them"
    )
    add_run_arguments(parser)
    sys.exit(run(parser.parse_args()))


if __name__ == "__main__":
    main()
