# app_cli/grade_file.py
from __future__ import annotations
import argparse, json, logging, os, sys
from grading_core.engine import grade_attempt_sync
from grading_core.question_bank import load_test
from grading_core.reporting import summarize_result
from grading_core.validators import validate_test

def main(argv=None) -> int:
    ap = argparse.ArgumentParser(description="Grade an answers file against a test file.")
    ap.add_argument("--test", required=True, help="test definition JSON")
    ap.add_argument("--answers", required=True, help="JSON object of question id -> answer")
    ap.add_argument("--user-id", default="cli-student")
    ap.add_argument("--time-spent", type=int, default=0, help="seconds")
    ap.add_argument("--out", default=None, help="write the graded result JSON here")
    args = ap.parse_args(argv)

    logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO").upper(), format="[%(levelname)s] %(message)s")

    test = load_test(args.test)
    for issue in validate_test(test):
        logging.warning("test %s: %s", test.id, issue)
    with open(args.answers, "r", encoding="utf-8") as f:
        answers = json.load(f)
    if not isinstance(answers, dict):
        print("answers file must hold a JSON object", file=sys.stderr); return 2

    result = grade_attempt_sync(test, args.user_id, answers, time_spent_seconds=args.time_spent)
    payload = {"result": result.to_dict(), "summary": summarize_result(result)}
    text = json.dumps(payload, indent=2, ensure_ascii=False)
    if args.out:
        with open(args.out, "w", encoding="utf-8") as f:
            f.write(text)
        print(f"Score {result.score}%. Result saved to: {args.out}")
    else:
        print(text)
    return 0

if __name__ == "__main__": sys.exit(main())
