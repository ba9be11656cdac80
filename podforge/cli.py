"""
PodForge command line.

Usage:
    podforge serve --port 8000
    podforge submit --user demo --topic "history of the metro" --run
    podforge process-job 42
    podforge sweep
    podforge validate
"""

import argparse
import asyncio
import json
import sys

from dotenv import load_dotenv

from .config.settings import get_settings
from .config.startup_validation import run_startup_validation
from .errors import JobFailedError
from .models import JobTrigger
from .services.job_queue import SubmissionRequest
from .utils.logger import configure_logging, get_logger

logger = get_logger(__name__)


def cmd_serve(args, settings):
    import uvicorn

    uvicorn.run(
        "podforge.api.app:create_app",
        factory=True,
        host=args.host or settings.host,
        port=args.port or settings.port,
        reload=args.reload,
    )


async def cmd_submit(args, settings) -> int:
    from .pipeline import build_pipeline

    pipeline = build_pipeline(settings, inline_wait=True)
    request = SubmissionRequest(
        style="solo",
        purpose=args.purpose,
        inputs={
            "topic": args.topic,
            "duration": args.duration,
            "depth": args.depth,
        },
    )
    job = pipeline.submitter.submit(args.user, request)
    print(f"Queued job {job.id}")

    if not args.run:
        return 0
    return await _process(pipeline, job.id)


async def cmd_process_job(args, settings) -> int:
    from .pipeline import build_pipeline

    pipeline = build_pipeline(settings, inline_wait=True)
    return await _process(pipeline, args.job_id)


async def _process(pipeline, job_id: int) -> int:
    try:
        result = await pipeline.orchestrator.run(JobTrigger(job_id=job_id))
    except JobFailedError as e:
        print(f"Job {job_id} failed: {e} (trace {e.trace_id})")
        return 1

    print(json.dumps(result.model_dump(mode="json"), indent=2))
    pod = pipeline.store.get_pod(result.pod_id)
    print(f"Pod {pod.id}: {pod.title} [{pod.processing_status.value}]")
    return 0


async def cmd_sweep(args, settings) -> int:
    from .pipeline import build_pipeline

    pipeline = build_pipeline(settings, inline_wait=True)
    actions = await pipeline.sweeper.sweep()
    for action in actions:
        print(f"Pod {action.pod_id}: {action.action} {[w.value for w in action.workers]}")
    if not actions:
        print("No stalled pods")
    return 0


def cmd_validate(args, settings) -> int:
    validation = run_startup_validation(settings, require_tts=args.require_tts)
    validation.log_summary()
    for name, result in validation.services.items():
        print(f"  {name}: {result.status.value} - {result.message}")
    return 0 if validation.is_valid else 1


def main(argv=None):
    """Main entry point."""
    load_dotenv()

    parser = argparse.ArgumentParser(
        prog="podforge",
        description="PodForge - AI micro-podcast generation",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    serve_parser = subparsers.add_parser("serve", help="Start the HTTP service")
    serve_parser.add_argument("--host", default=None, help="Host")
    serve_parser.add_argument("--port", type=int, default=None, help="Port")
    serve_parser.add_argument("--reload", action="store_true", help="Auto-reload")

    submit_parser = subparsers.add_parser("submit", help="Queue a creation job")
    submit_parser.add_argument("--user", required=True, help="User id")
    submit_parser.add_argument("--topic", required=True, help="Topic of the pod")
    submit_parser.add_argument("--purpose", default="learn", help="Purpose (learn, explore, reflect...)")
    submit_parser.add_argument("--duration", default="3-5 min", help="Target duration label")
    submit_parser.add_argument("--depth", default="standard", help="Narrative depth")
    submit_parser.add_argument("--run", action="store_true", help="Process the job right away")

    process_parser = subparsers.add_parser("process-job", help="Run the orchestrator for a job")
    process_parser.add_argument("job_id", type=int, help="Job id")

    subparsers.add_parser("sweep", help="Re-dispatch or fail stalled pods")

    validate_parser = subparsers.add_parser("validate", help="Check credentials and services")
    validate_parser.add_argument("--require-tts", action="store_true", help="Treat missing TTS as an error")

    args = parser.parse_args(argv)

    settings = get_settings()
    configure_logging(settings.log_dir, settings.log_level)

    if args.command == "serve":
        cmd_serve(args, settings)
        return 0
    elif args.command == "submit":
        return asyncio.run(cmd_submit(args, settings))
    elif args.command == "process-job":
        return asyncio.run(cmd_process_job(args, settings))
    elif args.command == "sweep":
        return asyncio.run(cmd_sweep(args, settings))
    elif args.command == "validate":
        return cmd_validate(args, settings)

    parser.print_help()
    return 2


if __name__ == "__main__":
    sys.exit(main())
