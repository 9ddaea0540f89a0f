import argparse
import json
import sys
from pathlib import Path
from typing import Any, List

from request_pipeline.errors import RetryRejectedError, SubmissionNotFoundError
from request_pipeline.flow import retry_flow, submission_batch_flow
from request_pipeline.persist import get_store
from request_pipeline.results import SubmissionResult


def read_payloads(path: Path) -> List[dict[str, Any]]:
    """Accepts a JSON object, a JSON array of objects, or JSON lines."""
    if not path.exists():
        raise FileNotFoundError(f"Input file not found: {path}")

    raw = path.read_text(encoding="utf-8").strip()
    if not raw:
        raise ValueError("Input file is empty.")

    try:
        data = json.loads(raw)
    except json.JSONDecodeError:
        data = [json.loads(line) for line in raw.splitlines() if line.strip()]

    payloads = data if isinstance(data, list) else [data]
    if not all(isinstance(p, dict) for p in payloads):
        raise ValueError("Every payload must be a JSON object.")
    return payloads


def print_summary(results: List[SubmissionResult]) -> None:
    ok = sum(1 for r in results if r.ok)
    failed = len(results) - ok

    print("\nBatch Summary")
    print("=" * 40)
    print(f"Total   : {len(results)}")
    print(f"Success : {ok}")
    print(f"Failed  : {failed}")
    print()

    if failed:
        print("Failures:")
        for i, r in enumerate(results, 1):
            if not r.ok:
                print(
                    f"- #{i} step={r.failed_step}: {r.error_message}\n"
                    f"  submission: {r.submission_id or '(not created)'}"
                )
        print()


def print_result(result: SubmissionResult) -> None:
    print(json.dumps(result.model_dump(mode="json"), indent=2))


def main(argv: List[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Submit, retry and inspect art requests")
    sub = parser.add_subparsers(dest="command", required=True)

    p_submit = sub.add_parser("submit", help="Submit payloads from a JSON / JSONL file")
    p_submit.add_argument("input_file", type=Path)

    p_retry = sub.add_parser("retry", help="Retry a submission in error status")
    p_retry.add_argument("submission_id")

    p_show = sub.add_parser("show", help="Print a stored submission record")
    p_show.add_argument("submission_id")

    args = parser.parse_args(argv)

    if args.command == "submit":
        results = submission_batch_flow(read_payloads(args.input_file))
        print_summary(results)
        return 0 if all(r.ok for r in results) else 1

    if args.command == "retry":
        try:
            result = retry_flow(args.submission_id)
        except (SubmissionNotFoundError, RetryRejectedError) as e:
            print(f"Cannot retry: {e}", file=sys.stderr)
            return 2
        print_result(result)
        return 0 if result.ok else 1

    record = get_store().get(args.submission_id)
    if record is None:
        print(f"Submission not found: {args.submission_id}", file=sys.stderr)
        return 2
    print(json.dumps(record.model_dump(mode="json", by_alias=True), indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
