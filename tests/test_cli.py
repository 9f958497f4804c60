import pytest

from doinggreat.cli import build_parser, main
from conftest import TEST_USER_ID


def run(app, capsys, *argv):
    code = main(list(argv), app=app)
    out, err = capsys.readouterr()
    return code, out, err


def test_parser_requires_a_command():
    with pytest.raises(SystemExit):
        build_parser().parse_args([])
    args = build_parser().parse_args(["log", "Tea", "--ago", "600"])
    assert (args.text, args.ago, args.no_wait) == ("Tea", 600, False)


def test_log_waits_for_praise(app, backend, capsys):
    code, out, _ = run(app, capsys, "log", "Walked the dog")

    assert code == 0
    assert "Logged (Just now): Walked the dog" in out
    assert "> NICE WORK today." in out
    assert "next: Keep going" in out
    assert app.repository.fetch_all()[0].is_synced


def test_first_log_without_text_stores_placeholder(app, capsys):
    _, out, _ = run(app, capsys, "log", "--no-wait")
    assert "Tip: say what you did" in out
    assert "I installed this app" in out
    assert "Logged (Just now): Did something worth noting" in out
    assert app.repository.fetch_all()[0].text == "Did something worth noting"


def test_log_no_wait_then_sync(app, backend, capsys):
    _, out, _ = run(app, capsys, "log", "Drank water", "--ago", "3600", "--no-wait")
    assert "Logged (1 hour ago): Drank water" in out
    assert "Saved locally" in out
    assert backend.moments == {}

    _, out, _ = run(app, capsys, "sync")
    assert "1 moment(s) still pending" in out
    _, out, _ = run(app, capsys, "sync")
    assert "0 moment(s) still pending" in out
    assert app.repository.fetch_all()[0].praise


def test_log_blocked_by_daily_limit(app, capsys):
    app.paywall.mark_daily_limit_reached()
    with pytest.raises(SystemExit):
        main(["log", "One more"], app=app)
    assert "Limit reached. Resets in" in capsys.readouterr().err


def test_log_hitting_limit_on_server(app, backend, capsys):
    backend.daily_limit = 0
    code, _, err = run(app, capsys, "log", "Too many")
    assert code == 0
    assert "Daily limit reached" in err
    assert app.paywall.should_block_moment_creation()


def test_list_groups_by_day(app, backend, capsys):
    backend.add_moment("from server", praise="Yay.", tags=["fun"])
    _, out, _ = run(app, capsys, "list")
    assert "Today" in out
    assert "from server" in out
    assert "#fun" in out

    _, out, _ = run(app, capsys, "list", "--tag", "fun")
    assert "from server" in out


def test_list_empty(app, capsys):
    _, out, _ = run(app, capsys, "list", "--favorites")
    assert "No moments yet." in out


def test_refresh_pages(app, backend, capsys):
    for i in range(60):
        backend.add_moment(f"m{i}", days_ago=i / 24)
    _, out, _ = run(app, capsys, "refresh", "--pages", "2")
    assert "60 moments in local store" in out


def test_favorite_and_delete(app, backend, capsys):
    server = backend.add_moment("keeper", praise="Ok.")
    run(app, capsys, "refresh")
    client_id = app.repository.fetch_all()[0].client_id

    _, out, _ = run(app, capsys, "favorite", client_id)
    assert f"Favorited {client_id}" in out
    assert backend.moments[server["id"]]["isFavorite"] is True

    _, out, _ = run(app, capsys, "delete", client_id)
    assert f"Deleted {client_id}" in out
    assert backend.moments == {}

    with pytest.raises(SystemExit):
        main(["favorite", client_id], app=app)


def test_timeline(app, backend, capsys):
    backend.add_day(0, count=3, text="Busy and good.")
    backend.add_day(1, text=None)
    _, out, _ = run(app, capsys, "timeline")
    assert "3 moment(s)  Busy and good." in out
    assert "(summary in progress)" in out


def test_stats_and_profile(app, backend, capsys):
    backend.add_moment("counted")
    _, out, _ = run(app, capsys, "stats")
    assert "Total: 1" in out
    assert "Streak: 1 (longest 4)" in out

    _, out, _ = run(app, capsys, "profile", "--haptics", "off")
    assert "Plan: free (Limited to 3 moments per day)" in out
    assert "Haptics: off" in out
    assert f"User: {TEST_USER_ID[:4]}...{TEST_USER_ID[-4:]}" in out


def test_feedback(app, backend, capsys):
    code, out, _ = run(app, capsys, "feedback", "Idea", "Dark mode")
    assert code == 0
    assert "Thanks" in out
    assert backend.feedback[0]["title"] == "Idea"

    code, _, err = run(app, capsys, "feedback", "Idea", "  ")
    assert code == 1
    assert "Invalid Input: Text is required" in err


def test_api_errors_become_friendly_messages(app, capsys):
    app.api_client.base_url = "http://testserver/gone"
    code, _, err = run(app, capsys, "profile")
    assert code == 1
    assert "Not Found:" in err


def test_galaxy(app, capsys):
    _, out, _ = run(app, capsys, "galaxy")
    assert "Canvas 800x800, 0 week(s)" in out

    run(app, capsys, "log", "a", "--no-wait")
    _, out, _ = run(app, capsys, "galaxy")
    assert "week   0" in out
    assert "1 star(s), 0 line(s)" in out


def test_whoami_and_reset(app, capsys):
    _, out, _ = run(app, capsys, "whoami")
    assert out.strip() == TEST_USER_ID

    _, out, _ = run(app, capsys, "whoami", "--reset")
    assert out.strip() != TEST_USER_ID


def test_whoami_reset_starts_a_new_journey(app, backend, capsys):
    run(app, capsys, "log", "Walked the dog")
    app.paywall.mark_daily_limit_reached()
    app.subscription.set_premium(True)

    _, out, _ = run(app, capsys, "whoami", "--reset")

    assert out.strip() != TEST_USER_ID
    assert out.strip() == app.user_id_provider.user_id
    assert app.repository.fetch_all() == []
    assert app.paywall.is_daily_limit_reached is False
    assert app.subscription.has_active_subscription is False
    # server data of the old identity is left alone
    assert len(backend.moments) == 1


def test_sync_reports_limit(app, backend, capsys):
    run(app, capsys, "log", "Late one", "--no-wait")
    backend.daily_limit = 0

    _, out, err = run(app, capsys, "sync")

    assert "0 moment(s) still pending" in out
    assert "Limit reached. Resets in" in err
    assert app.repository.fetch_all()[0].sync_error == "Daily limit reached"


def test_reset_db(app, capsys):
    run(app, capsys, "log", "temp", "--no-wait")
    with pytest.raises(SystemExit):
        main(["reset-db"], app=app)
    _, out, _ = run(app, capsys, "reset-db", "--confirm")
    assert "Deleted 1 local moment(s)." in out
