#!/usr/bin/env python
"""Rewrite confirmed work-session rows from the event log."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.append(str(ROOT_DIR))

from workdesk.db import SessionLocal  # noqa: E402
from workdesk.models import ProjectTeamMember  # noqa: E402
from workdesk.services.work_sessions import format_duration  # noqa: E402
from workdesk.services.work_store import resync_session_state  # noqa: E402


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--project-id", type=int, help="Only rebuild members of this project")
    parser.add_argument("--user-id", type=int, help="Only rebuild rows for this user")
    return parser.parse_args()


def main() -> int:
    args = parse_args()
    session = SessionLocal()
    try:
        query = session.query(ProjectTeamMember.project_id, ProjectTeamMember.user_id)
        if args.project_id:
            query = query.filter(ProjectTeamMember.project_id == args.project_id)
        if args.user_id:
            query = query.filter(ProjectTeamMember.user_id == args.user_id)
        pairs = query.all()
        for project_id, user_id in pairs:
            state = resync_session_state(session, project_id, user_id)
            if state is None:
                continue
            print(
                f"project={project_id} user={user_id} status={state.status.value} "
                f"cycle={state.cycle} accumulated={format_duration(state.accumulated_seconds)}"
            )
        print(f"Rebuilt {len(pairs)} work session rows.")
    finally:
        session.close()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
