#!/usr/bin/env python3
"""
Command-line shell over the moments client.

Log a moment and wait for its praise, browse and reconcile the local store,
and inspect the journey, stats and galaxy layout. Local state lives under
YADG_STATE_DIR (default ~/.doinggreat); the API is YADG_API_BASE_URL.

  doinggreat log "Walked the dog" --ago 1800
  doinggreat list --favorites
  doinggreat sync --watch
  doinggreat reset-db --confirm
"""
import argparse
import logging
import sys

from doinggreat.app import App, describe_config
from doinggreat.core.dates import format_iso8601, time_ago_text
from doinggreat.core.errors import APIError, user_friendly_error
from doinggreat.core.logging_config import setup_logging
from doinggreat.db.models import Moment
from doinggreat.features.home import DEFAULT_TIMER_PHRASES, HomeState, LogMomentForm, minutes_since
from doinggreat.galaxy.layout import GalaxyLayoutEngine
from doinggreat.schemas.moment import highlight_segments
from doinggreat.services.user_service import plan_description

logger = logging.getLogger("doinggreat.cli")


def print_moment(m: Moment) -> None:
    star = "*" if m.is_favorite else " "
    state = "synced" if m.is_synced else (m.sync_error or "pending")
    tags = f"  #{' #'.join(m.tags)}" if m.tags else ""
    print(f"{star} {m.client_id}  {format_iso8601(m.happened_at)}  [{state}]  {m.text}{tags}")


def print_praise(m: Moment) -> None:
    enriched = m.praise_enriched
    if enriched and enriched.cards:
        for card in enriched.cards:
            # Primary highlights in caps, secondary in underscores
            parts = []
            for text, emphasis in highlight_segments(card):
                if emphasis == "primary":
                    parts.append(text.upper())
                elif emphasis == "secondary":
                    parts.append(f"_{text}_")
                else:
                    parts.append(text)
            print(f"  > {''.join(parts)}")
    else:
        print(f"  > {m.display_praise}")
    if m.action:
        print(f"  next: {m.action}")


def find_moment(app: App, client_id: str) -> Moment:
    moment = app.repository.fetch_by_client_id(client_id)
    if moment is None:
        print(f"Moment not found: {client_id}", file=sys.stderr)
        sys.exit(1)
    return moment


def cmd_log(app: App, args) -> None:
    if app.paywall.should_block_moment_creation():
        print(f"Limit reached. Resets in {app.paywall.time_until_reset_formatted}.", file=sys.stderr)
        sys.exit(1)
    form = LogMomentForm(is_first_log=not app.repository.fetch_all())
    # No editor here, so the first-log prefill is only a hint
    if args.text is None and form.moment_text:
        print(f"Tip: say what you did, e.g. doinggreat log \"{form.moment_text}\"")
    form.moment_text = args.text or ""
    if args.ago:
        form.set_time_ago(args.ago)
    session = form.submit(app.new_praise_session)
    print(f"Logged ({form.time_display_text}): {session.moment.text}")
    print(f"  > {session.offline_praise}")
    if args.no_wait:
        print("Saved locally. Run `doinggreat sync` to finish.")
        return
    session.sync_and_fetch_praise()
    if session.is_showing_ai_praise:
        print_praise(session.moment)
    if session.sync_error:
        print(f"  ({session.sync_error})", file=sys.stderr)
    if session.is_limit_blocked:
        print(f"Limit reached. Resets in {app.paywall.time_until_reset_formatted}.", file=sys.stderr)


def cmd_list(app: App, args) -> None:
    if args.tag:
        moments = app.repository.fetch_by_tag(args.tag)
        for m in moments:
            print_moment(m)
        return
    state = app.moments_list()
    state.set_favorites_filter(args.favorites)
    state.load_moments(background=False)
    for section in state.grouped_moments:
        print(section.display_date())
        for m in section.moments:
            print_moment(m)
    if not state.moments:
        print("No moments yet.")
    if app.moment_service.is_limit_reached:
        print("Older moments are available on the premium plan.")


def cmd_refresh(app: App, args) -> None:
    state = app.moments_list()
    state.refresh()
    if state.show_error:
        raise_error(state.error)
    pages = 1
    while state.can_load_more and pages < args.pages:
        state.load_next_page()
        pages += 1
    print(f"{len(state.moments)} moments in local store")


def cmd_sync(app: App, args) -> None:
    if args.watch:
        app.sync_service.start()
        app.sync_service.wait()
    else:
        remaining = app.sync_service.sync_pending_once()
        print(f"{remaining} moment(s) still pending")
    if app.paywall.should_block_moment_creation():
        print(f"Limit reached. Resets in {app.paywall.time_until_reset_formatted}.", file=sys.stderr)


def cmd_favorite(app: App, args) -> None:
    moment = find_moment(app, args.client_id)
    app.moment_service.toggle_favorite(moment)
    print(f"{'Favorited' if moment.is_favorite else 'Unfavorited'} {moment.client_id}")


def cmd_delete(app: App, args) -> None:
    moment = find_moment(app, args.client_id)
    app.moment_service.delete_moment(moment)
    print(f"Deleted {moment.client_id}")


def cmd_timeline(app: App, args) -> None:
    journey = app.journey()
    journey.load_timeline()
    pages = 1
    while journey.can_load_more and pages < args.pages and not journey.show_error:
        journey.load_next_page()
        pages += 1
    if journey.show_error:
        raise_error(journey.error)
    for day in journey.items:
        summary = day.text or "(summary in progress)"
        print(f"{day.date[:10]}  {day.momentsCount:>3} moment(s)  {summary}")
    if journey.is_timeline_restricted:
        print("Your full journey is available on the premium plan.")


def cmd_stats(app: App, args) -> None:
    home = HomeState(app.user_service)
    home.load_stats()
    if home.stats_error:
        raise_error(home.stats_error)
    s = home.user_stats
    print(f"Total: {s.totalMoments}  Today: {s.momentsToday}  Yesterday: {s.momentsYesterday}")
    print(f"Streak: {s.currentStreak} (longest {s.longestStreak})")
    print(home.stats_whisper)
    latest = app.repository.fetch_all(sort_by="happened_at")
    minutes = minutes_since(latest[0].happened_at) if latest else None
    if minutes is not None:
        print(f"Last moment {time_ago_text(minutes * 60).lower()}. {DEFAULT_TIMER_PHRASES.random_phrase(minutes)}")


def cmd_profile(app: App, args) -> None:
    if args.haptics is not None:
        user = app.user_service.update_haptic_preference(args.haptics == "on")
    else:
        user = app.user_service.fetch_user_profile()
    print(f"User: {app.user_id_provider.masked_user_id}")
    print(f"Plan: {user.status.value} ({plan_description(user.status)})")
    print(f"Haptics: {'on' if user.hapticsEnabled else 'off'}")


def cmd_feedback(app: App, args) -> None:
    app.user_service.submit_feedback(args.title, args.text)
    print("Thanks for the feedback.")


def cmd_galaxy(app: App, args) -> None:
    engine = GalaxyLayoutEngine()
    moments = app.repository.fetch_all()
    layout = engine.calculate_layout(moments)
    print(f"Canvas {layout.canvas_size:.0f}x{layout.canvas_size:.0f}, {layout.total_weeks} week(s)")
    for cluster in layout.week_clusters:
        x, y = cluster.center
        edges = len(layout.constellation_lines.get(cluster.week_number, ()))
        print(f"  week {cluster.week_number:>3} at ({x:.0f}, {y:.0f}): {len(cluster.moment_ids)} star(s), {edges} line(s)")


def cmd_whoami(app: App, args) -> None:
    if args.reset:
        app.reset_journey()
    print(app.user_id_provider.user_id)
    logger.debug("config: %s", describe_config())


def cmd_reset_db(app: App, args) -> None:
    if not args.confirm:
        print("Add --confirm to delete every moment from the local store.", file=sys.stderr)
        sys.exit(1)
    n = app.repository.delete_all()
    print(f"Deleted {n} local moment(s).")


def raise_error(message: str | None) -> None:
    print(f"Error: {message}", file=sys.stderr)
    sys.exit(1)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="doinggreat", description="Log small wins and get praise for them.")
    parser.add_argument("--log-level", help="DEBUG, INFO, WARNING (default from LOG_LEVEL)")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("log", help="Log a moment and wait for praise")
    p.add_argument("text", nargs="?", help="What you did (blank stores a placeholder)")
    p.add_argument("--ago", type=int, metavar="SECONDS", help="How long ago it happened")
    p.add_argument("--no-wait", action="store_true", help="Save locally only; `sync` finishes it later")
    p.set_defaults(func=cmd_log)

    p = sub.add_parser("list", help="List moments grouped by day")
    p.add_argument("--favorites", action="store_true", help="Favorites only")
    p.add_argument("--tag", help="Only moments with this tag (local store)")
    p.set_defaults(func=cmd_list)

    p = sub.add_parser("refresh", help="Pull moments from the server into the local store")
    p.add_argument("--pages", type=int, default=1, help="Pages to fetch (default 1)")
    p.set_defaults(func=cmd_refresh)

    p = sub.add_parser("sync", help="Push unsynced moments and fetch their praise")
    p.add_argument("--watch", action="store_true", help="Keep polling until everything is synced")
    p.set_defaults(func=cmd_sync)

    p = sub.add_parser("favorite", help="Toggle favorite on a moment")
    p.add_argument("client_id", metavar="CLIENT_ID")
    p.set_defaults(func=cmd_favorite)

    p = sub.add_parser("delete", help="Delete a moment locally and on the server")
    p.add_argument("client_id", metavar="CLIENT_ID")
    p.set_defaults(func=cmd_delete)

    p = sub.add_parser("timeline", help="Show the journey of day summaries")
    p.add_argument("--pages", type=int, default=1, help="Pages to fetch (default 1)")
    p.set_defaults(func=cmd_timeline)

    sub.add_parser("stats", help="Show your stats").set_defaults(func=cmd_stats)

    p = sub.add_parser("profile", help="Show plan and preferences")
    p.add_argument("--haptics", choices=["on", "off"], help="Update the haptics preference")
    p.set_defaults(func=cmd_profile)

    p = sub.add_parser("feedback", help="Send feedback")
    p.add_argument("title")
    p.add_argument("text")
    p.set_defaults(func=cmd_feedback)

    sub.add_parser("galaxy", help="Summarize the galaxy layout").set_defaults(func=cmd_galaxy)

    p = sub.add_parser("whoami", help="Print the anonymous user id")
    p.add_argument("--reset", action="store_true", help="Start over with a new anonymous id")
    p.set_defaults(func=cmd_whoami)

    p = sub.add_parser("reset-db", help="Delete every moment from the local store")
    p.add_argument("--confirm", action="store_true", help="Required to actually delete (safety check)")
    p.set_defaults(func=cmd_reset_db)
    return parser


def main(argv=None, app: App | None = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.log_level)
    owns_app = app is None
    app = app or App()
    try:
        args.func(app, args)
    except APIError as e:
        msg = user_friendly_error(e)
        print(f"{msg.title}: {msg.message}", file=sys.stderr)
        return 1
    finally:
        if owns_app:
            app.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
