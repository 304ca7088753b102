"""Lightweight CLI helpers for inspecting interview session tables."""
from __future__ import annotations

import argparse

from storage.proctoring_logs import list_proctoring_logs
from storage.sessions import list_sessions


def tail_proctoring(limit: int = 20) -> None:
    for log in list_proctoring_logs(limit=limit):
        print(f"[{log.timestamp.isoformat()}] session={log.session_id} {log.event_type} severity={log.severity}")


def tail_sessions(limit: int = 20) -> None:
    for session in list_sessions(limit=limit):
        flags = []
        if session.is_interrupted:
            flags.append("interrupted")
        if session.is_flagged:
            flags.append("flagged")
        print(
            f"{session.session_id} job={session.job_id} user={session.candidate_user_id} "
            f"status={session.status} warnings={session.warning_count} "
            f"malpractice={session.malpractice_count} score={session.overall_score} "
            f"{','.join(flags)}".rstrip()
        )


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser()
    parser.add_argument("--tail-proctoring", type=int, help="Show the latest proctoring events")
    parser.add_argument("--tail-sessions", type=int, help="Show the most recent interview sessions")
    args = parser.parse_args(argv)

    if args.tail_proctoring:
        tail_proctoring(args.tail_proctoring)
    if args.tail_sessions:
        tail_sessions(args.tail_sessions)


if __name__ == "__main__":
    main()
