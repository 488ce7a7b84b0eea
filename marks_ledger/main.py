"""Main module entrypoint for local runtime execution.

This module validates startup configuration and either launches the FastAPI
service or runs one event replay.
"""

import argparse

import uvicorn
from loguru import logger

from marks_ledger.bootstrap import bootstrap_create_application, bootstrap_create_runtime
from marks_ledger.config import config_load_settings


def main() -> None:
    """Run selected runtime command with validated startup configuration.

    Raises:
        SettingsLoadError: Raised when configuration validation fails.
        SystemExit: Raised with code 1 when a replay run fails.
    """

    argument_parser = argparse.ArgumentParser(description="Marks ledger runtime entrypoint")
    argument_parser.add_argument(
        "command",
        nargs="?",
        default="api",
        choices=("api", "replay-run"),
        help="Runtime command: `api` starts server, `replay-run` replays one event batch",
        type=str,
    )
    argument_parser.add_argument(
        "--batch-path",
        dest="batch_path",
        type=str,
        help="Optional JSON Lines batch override for `replay-run`",
    )
    argument_parser.add_argument(
        "--run-type",
        dest="run_type",
        default="manual",
        choices=("manual", "scheduled"),
        help="Run type recorded for `replay-run`",
    )
    parsed_arguments = argument_parser.parse_args()

    if parsed_arguments.command == "replay-run":
        runtime = bootstrap_create_runtime(
            run_type=parsed_arguments.run_type,
            batch_path=parsed_arguments.batch_path,
        )
        try:
            execution_result = runtime.replay_orchestrator.job_execute(job_name="event_replay")
        except RuntimeError as error:
            logger.error("replay run failed | error={}", error)
            raise SystemExit(1) from error
        logger.info("replay run finished | run={} | status={}", execution_result.run_id, execution_result.status)
        return

    settings = config_load_settings()
    application = bootstrap_create_application()
    uvicorn.run(
        application,
        host=settings.application_host,
        port=settings.application_port,
    )


if __name__ == "__main__":
    main()
