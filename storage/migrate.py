"""SQLite schema migrations."""
from __future__ import annotations

import os
import sqlite3
from typing import Iterable

SCHEMA: Iterable[str] = [
    """
CREATE TABLE IF NOT EXISTS users (
  user_id TEXT PRIMARY KEY,
  email TEXT NOT NULL UNIQUE,
  name TEXT NOT NULL DEFAULT '',
  role TEXT NOT NULL DEFAULT 'CANDIDATE',
  is_profile_complete INTEGER NOT NULL DEFAULT 0,
  created_at TEXT NOT NULL
);
""",
    """
CREATE TABLE IF NOT EXISTS jobs (
  job_id TEXT PRIMARY KEY,
  company_id TEXT NOT NULL,
  title TEXT NOT NULL,
  role_category TEXT NOT NULL DEFAULT '',
  description TEXT NOT NULL DEFAULT '',
  interview_start TEXT NOT NULL,
  interview_end TEXT NOT NULL,
  tab_tracking INTEGER NOT NULL DEFAULT 1,
  eye_tracking INTEGER NOT NULL DEFAULT 0,
  multi_face_detection INTEGER NOT NULL DEFAULT 0,
  full_screen_mode INTEGER NOT NULL DEFAULT 0,
  no_text_typing INTEGER NOT NULL DEFAULT 0,
  plan_at_creation TEXT NOT NULL DEFAULT 'FREE',
  custom_questions TEXT NOT NULL DEFAULT '[]',
  ai_requirements TEXT,
  timezone TEXT NOT NULL DEFAULT 'UTC',
  created_at TEXT NOT NULL
);
""",
    """
CREATE TABLE IF NOT EXISTS candidates (
  candidate_id TEXT PRIMARY KEY,
  job_id TEXT NOT NULL REFERENCES jobs(job_id) ON DELETE CASCADE,
  email TEXT NOT NULL,
  name TEXT NOT NULL DEFAULT '',
  status TEXT NOT NULL DEFAULT 'PENDING',
  interview_start TEXT,
  interview_end TEXT,
  is_reinterviewed INTEGER NOT NULL DEFAULT 0,
  resume_text TEXT,
  interview_token TEXT NOT NULL UNIQUE,
  invited_at TEXT,
  created_at TEXT NOT NULL,
  UNIQUE (job_id, email)
);
""",
    """
CREATE TABLE IF NOT EXISTS interview_sessions (
  session_id TEXT PRIMARY KEY,
  candidate_user_id TEXT NOT NULL,
  job_id TEXT NOT NULL REFERENCES jobs(job_id) ON DELETE CASCADE,
  status TEXT NOT NULL DEFAULT 'ONGOING',
  has_started INTEGER NOT NULL DEFAULT 0,
  warning_count INTEGER NOT NULL DEFAULT 0,
  malpractice_count INTEGER NOT NULL DEFAULT 0,
  is_interrupted INTEGER NOT NULL DEFAULT 0,
  is_flagged INTEGER NOT NULL DEFAULT 0,
  start_time TEXT,
  end_time TEXT,
  overall_score INTEGER,
  version INTEGER NOT NULL DEFAULT 0,
  created_at TEXT NOT NULL,
  UNIQUE (candidate_user_id, job_id)
);
""",
    """
CREATE TABLE IF NOT EXISTS interview_responses (
  response_id INTEGER PRIMARY KEY AUTOINCREMENT,
  session_id TEXT NOT NULL REFERENCES interview_sessions(session_id) ON DELETE CASCADE,
  question_text TEXT NOT NULL,
  candidate_answer TEXT NOT NULL,
  ai_acknowledgment TEXT,
  tech_score INTEGER,
  comm_score INTEGER,
  overfit_score INTEGER,
  ai_flagged INTEGER NOT NULL DEFAULT 0,
  turn_feedback TEXT,
  timestamp TEXT NOT NULL
);
""",
    """
CREATE TABLE IF NOT EXISTS proctoring_logs (
  log_id INTEGER PRIMARY KEY AUTOINCREMENT,
  session_id TEXT NOT NULL REFERENCES interview_sessions(session_id) ON DELETE CASCADE,
  event_type TEXT NOT NULL,
  severity TEXT NOT NULL,
  timestamp TEXT NOT NULL
);
""",
    """
CREATE TABLE IF NOT EXISTS final_evaluations (
  evaluation_id INTEGER PRIMARY KEY AUTOINCREMENT,
  session_id TEXT NOT NULL UNIQUE REFERENCES interview_sessions(session_id) ON DELETE CASCADE,
  overall_score INTEGER NOT NULL,
  is_fit INTEGER NOT NULL,
  reasoning TEXT NOT NULL,
  behavioral_note TEXT NOT NULL DEFAULT '',
  metrics TEXT NOT NULL DEFAULT '[]',
  created_at TEXT NOT NULL,
  updated_at TEXT NOT NULL
);
""",
    """
CREATE TABLE IF NOT EXISTS notifications (
  notification_id INTEGER PRIMARY KEY AUTOINCREMENT,
  company_id TEXT NOT NULL,
  title TEXT NOT NULL,
  message TEXT NOT NULL,
  created_at TEXT NOT NULL
);
""",
    "CREATE INDEX IF NOT EXISTS idx_responses_session ON interview_responses(session_id, response_id);",
    "CREATE INDEX IF NOT EXISTS idx_proctoring_session ON proctoring_logs(session_id, log_id);",
]


def migrate(db_path: str = "data/interview.db") -> None:
    """Apply schema migrations to the SQLite database."""

    directory = os.path.dirname(db_path) or "."
    os.makedirs(directory, exist_ok=True)
    conn = sqlite3.connect(db_path)
    try:
        cur = conn.cursor()
        for stmt in SCHEMA:
            cur.execute(stmt)
        conn.commit()
    finally:
        conn.close()


if __name__ == "__main__":
    from config.settings import settings

    migrate(settings.DB_PATH)
