from observability.admin_cli import main
from storage.proctoring_logs import insert_proctoring_log
from storage.sessions import create_if_absent, update_session


def test_tail_commands_print_rows(seeded, capsys):
    session, _ = create_if_absent(seeded.user_id, seeded.job_id)
    update_session(session.session_id, session.version, status="PAUSED", is_flagged=True, warning_count=3)
    insert_proctoring_log(session_id=session.session_id, event_type="MULTIPLE_FACES", severity="high")

    main(["--tail-proctoring", "5", "--tail-sessions", "5"])
    out = capsys.readouterr().out
    assert f"session={session.session_id} MULTIPLE_FACES severity=high" in out
    assert "status=PAUSED warnings=3" in out
    assert "flagged" in out


def test_no_flags_prints_nothing(capsys):
    main([])
    assert capsys.readouterr().out == ""
