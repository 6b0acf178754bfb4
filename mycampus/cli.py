"""
CLI (Command Line Interface).

Every command runs as a logged-in user, e.g.:

    mycampus --as alice@uni.edu --password pass overview
    mycampus --as alice@uni.edu --password pass enroll MAT110
    mycampus --as barun@uni.edu --password pass grade <submission_id> 85 --feedback Good
    mycampus --as carol@uni.edu --password pass set-role bob@uni.edu faculty

Courses can be given by id or by code (CSE101), users by id or e-mail.
Domain errors are printed as 'error: <Kind>: <message>' and exit with 1.
"""

from __future__ import annotations

import argparse
import logging
import os
from datetime import datetime
from pathlib import Path
from typing import Callable

from rich import box
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from mycampus.config import get_settings
from mycampus.errors import CampusError, DanglingReference, InvalidCredentials
from mycampus.export_ics import export_calendar_to_ics
from mycampus.model import DAY_NAMES, EVENT_TYPES, ROLES, User
from mycampus.service import CampusService
from mycampus.storage import JsonFileStore

console = Console()


def _fmt_dt(dt: datetime) -> str:
    return dt.astimezone().strftime("%Y-%m-%d %H:%M")


def _course_id(service: CampusService, ref: str) -> str:
    """
    Accept a course id or a course code.
    """
    ref = (ref or "").strip()
    courses = service.dataset.courses
    if ref in courses:
        return ref
    for c in courses.values():
        if c.code.upper() == ref.upper():
            return c.id
    raise DanglingReference(f"no course '{ref}'")


def _user_id(service: CampusService, ref: str) -> str:
    ref = (ref or "").strip()
    if ref in service.dataset.users:
        return ref
    user = service.dataset.find_user_by_email(ref)
    if user is None:
        raise DanglingReference(f"no user '{ref}'")
    return user.id


def _login(service: CampusService, args: argparse.Namespace) -> User:
    if not args.actor:
        raise InvalidCredentials("this command needs --as EMAIL (and --password)")
    return service.login(args.actor, args.password or "")


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


def _cmd_init(service: CampusService, args: argparse.Namespace) -> int:
    ds = service.dataset
    console.print(f"Data ready: {len(ds.users)} users, {len(ds.courses)} courses")
    return 0


def _cmd_register(service: CampusService, args: argparse.Namespace) -> int:
    user = service.register_user(args.name, args.email, args.new_password, args.role)
    console.print(f"Registered {escape(user.name)} <{escape(user.email)}> as {user.role} (id {user.id})")
    return 0


def _cmd_courses(service: CampusService, args: argparse.Namespace) -> int:
    me = _login(service, args)
    if args.all:
        entries = service.course_catalog(me, args.search or "")
        table = Table(title="Course catalog", box=box.SIMPLE)
        for col in ("Code", "Title", "Faculty", "Credits", "Seats left", "Id"):
            table.add_column(col)
        for e in entries:
            code = f"[bold cyan]{escape(e.course.code)}[/]" + (" ✓" if e.enrolled else "")
            title, owner = escape(e.course.title), escape(e.faculty_name)
            table.add_row(code, title, owner, str(e.course.credits), str(e.remaining), e.course.id)
        console.print(table)
        return 0

    courses = service.visible_courses(me, args.search or "")
    if not courses:
        console.print("No courses.")
        return 0
    table = Table(title="My courses", box=box.SIMPLE)
    for col in ("Code", "Title", "Capacity", "Credits", "Id"):
        table.add_column(col)
    for c in courses:
        table.add_row(f"[bold cyan]{escape(c.code)}[/]", escape(c.title), str(c.capacity), str(c.credits), c.id)
    console.print(table)
    return 0


def _cmd_create_course(service: CampusService, args: argparse.Namespace) -> int:
    me = _login(service, args)
    faculty_id = _user_id(service, args.faculty) if args.faculty else None
    course = service.create_course(me, args.code, args.title, args.capacity, args.credits, faculty_id)
    console.print(f"Created {escape(course.code)} (id {course.id})")
    return 0


def _cmd_enroll(service: CampusService, args: argparse.Namespace) -> int:
    me = _login(service, args)
    service.enroll(me, _course_id(service, args.course))
    console.print(f"Enrolled in {escape(args.course)}")
    return 0


def _cmd_drop(service: CampusService, args: argparse.Namespace) -> int:
    me = _login(service, args)
    service.drop(me, _course_id(service, args.course))
    console.print(f"Dropped {escape(args.course)}")
    return 0


def _cmd_assignments(service: CampusService, args: argparse.Namespace) -> int:
    me = _login(service, args)
    items = service.assignments(me)
    if not items:
        console.print("No assignments found.")
        return 0
    courses = service.dataset.courses
    table = Table(title="Assignments", box=box.SIMPLE)
    for col in ("Course", "Title", "Due", "Points", "Id"):
        table.add_column(col)
    for a in items:
        course = courses.get(a.course_id)
        code = escape(course.code) if course else "unknown"
        table.add_row(code, escape(a.title), _fmt_dt(a.due_at), f"{a.points:g}", a.id)
    console.print(table)
    return 0


def _cmd_create_assignment(service: CampusService, args: argparse.Namespace) -> int:
    me = _login(service, args)
    a = service.create_assignment(
        me, _course_id(service, args.course), args.title, args.due, args.points, args.instructions
    )
    console.print(f"Created assignment {escape(a.title)} (id {a.id})")
    return 0


def _cmd_submit(service: CampusService, args: argparse.Namespace) -> int:
    me = _login(service, args)
    sub = service.submit_work(me, args.assignment_id, args.file, args.note)
    console.print(f"Submitted {escape(sub.file_name)} (id {sub.id})")
    return 0


def _cmd_submissions(service: CampusService, args: argparse.Namespace) -> int:
    me = _login(service, args)
    rows = service.assignment_submissions(me, args.assignment_id)
    if not rows:
        console.print("No submissions yet.")
        return 0
    table = Table(title="Submissions", box=box.SIMPLE)
    for col in ("Student", "Submitted", "File", "Note", "Grade", "Id"):
        table.add_column(col)
    for r in rows:
        grade = f"{r.grade.score:g}" if r.grade else "-"
        s = r.submission
        table.add_row(
            escape(r.author_name), _fmt_dt(s.submitted_at), escape(s.file_name), escape(s.note) or "-", grade, s.id
        )
    console.print(table)
    return 0


def _cmd_grade(service: CampusService, args: argparse.Namespace) -> int:
    me = _login(service, args)
    g = service.grade_submission(me, args.submission_id, args.score, args.feedback)
    console.print(f"Graded: {g.score:g} pts")
    return 0


def _cmd_transcript(service: CampusService, args: argparse.Namespace) -> int:
    me = _login(service, args)
    t = service.transcript(me)
    table = Table(title="My grades", box=box.SIMPLE)
    for col in ("Course", "Assignment", "Score", "Feedback"):
        table.add_column(col)
    for r in t.rows:
        table.add_row(escape(r.course_code), escape(r.assignment_title), r.display, escape(r.feedback) or "-")
    console.print(table)
    console.print(f"Cumulative: [bold]{t.percentage}%[/] ({t.earned:g} / {t.possible:g})")
    return 0


def _cmd_announce(service: CampusService, args: argparse.Namespace) -> int:
    me = _login(service, args)
    ann = service.post_announcement(me, _course_id(service, args.course), args.title, args.body)
    console.print(f"Posted announcement (id {ann.id})")
    return 0


def _cmd_overview(service: CampusService, args: argparse.Namespace) -> int:
    me = _login(service, args)
    ov = service.overview(me)
    courses = service.dataset.courses
    console.print(f"\n=== MyCampus: {escape(me.name)} ({me.role}) ===")
    console.print(f"Courses: {ov.course_count}")

    table = Table(title="Upcoming deadlines", box=box.SIMPLE)
    table.add_column("Due")
    table.add_column("Course")
    table.add_column("Assignment")
    for a in ov.upcoming:
        course = courses.get(a.course_id)
        code = escape(course.code) if course else "unknown"
        table.add_row(_fmt_dt(a.due_at), code, escape(a.title))
    console.print(table)

    table = Table(title="Latest announcements", box=box.SIMPLE)
    table.add_column("Posted")
    table.add_column("Course")
    table.add_column("Title")
    table.add_column("Body")
    for ann in ov.announcements:
        course = courses.get(ann.course_id)
        code = escape(course.code) if course else "unknown"
        table.add_row(_fmt_dt(ann.created_at), code, escape(ann.title), escape(ann.body))
    console.print(table)
    return 0


def _cmd_calendar(service: CampusService, args: argparse.Namespace) -> int:
    me = _login(service, args)
    table = Table(title="Academic calendar", box=box.SIMPLE)
    table.add_column("Date")
    table.add_column("Title")
    table.add_column("Type")
    for ev in service.calendar_events(me):
        table.add_row(ev.date.astimezone().strftime("%a %Y-%m-%d"), escape(ev.title), ev.type)
    console.print(table)
    return 0


def _cmd_add_event(service: CampusService, args: argparse.Namespace) -> int:
    me = _login(service, args)
    ev = service.add_calendar_event(me, args.title, args.date, args.type)
    console.print(f"Added event {escape(ev.title)} (id {ev.id})")
    return 0


def _cmd_add_slot(service: CampusService, args: argparse.Namespace) -> int:
    me = _login(service, args)
    slot = service.add_timetable_slot(me, _course_id(service, args.course), args.day, args.start, args.end, args.room)
    console.print(f"Added {DAY_NAMES[slot.day]} {slot.start}-{slot.end} (id {slot.id})")
    return 0


def _cmd_timetable(service: CampusService, args: argparse.Namespace) -> int:
    me = _login(service, args)
    grid = service.weekly_grid(me)
    table = Table(title="Weekly timetable", box=box.SIMPLE, show_lines=True)
    for name in DAY_NAMES:
        table.add_column(name)
    cells = []
    for bucket in grid:
        lines = [f"{e.slot.start}-{e.slot.end}\n[bold cyan]{escape(e.course_code)}[/]\n{escape(e.slot.room)}" for e in bucket]
        cells.append("\n\n".join(lines) if lines else "-")
    table.add_row(*cells)
    console.print(table)
    return 0


def _cmd_threads(service: CampusService, args: argparse.Namespace) -> int:
    me = _login(service, args)
    threads = service.threads(me)
    if not threads:
        console.print("No messages yet.")
        return 0
    users = service.dataset.users
    for t in threads:
        console.print(f"\n[bold]{escape(t.title)}[/] [cyan]{escape(t.course_code)}[/] (thread {t.thread_id})")
        for m in t.messages:
            author = users.get(m.author_id)
            name = escape(author.name) if author else "unknown"
            console.print(f"  {name} · {_fmt_dt(m.created_at)}: {escape(m.body)}")
    return 0


def _cmd_post(service: CampusService, args: argparse.Namespace) -> int:
    me = _login(service, args)
    msg = service.post_message_thread(me, _course_id(service, args.course), args.title, args.body)
    console.print(f"Posted thread {msg.thread_id}")
    return 0


def _cmd_reply(service: CampusService, args: argparse.Namespace) -> int:
    me = _login(service, args)
    service.reply_to_thread(me, args.thread_id, args.body)
    console.print("Reply sent.")
    return 0


def _cmd_users(service: CampusService, args: argparse.Namespace) -> int:
    me = _login(service, args)
    table = Table(title="Users", box=box.SIMPLE)
    for col in ("Name", "Email", "Role", "Id"):
        table.add_column(col)
    for u in service.user_directory(me):
        table.add_row(escape(u.name), escape(u.email), u.role, u.id)
    console.print(table)
    return 0


def _cmd_add_user(service: CampusService, args: argparse.Namespace) -> int:
    me = _login(service, args)
    user = service.add_user(me, args.name, args.email, args.new_password, args.role)
    console.print(f"Added {escape(user.name)} as {user.role} (id {user.id})")
    return 0


def _cmd_set_role(service: CampusService, args: argparse.Namespace) -> int:
    me = _login(service, args)
    user = service.change_user_role(me, _user_id(service, args.user), args.role)
    console.print(f"{escape(user.name)} is now {user.role}")
    return 0


def _cmd_export(service: CampusService, args: argparse.Namespace) -> int:
    me = _login(service, args)
    entries = service.agenda(me)
    if not entries:
        console.print("Nothing to export.")
        return 0
    n = export_calendar_to_ics(entries, args.out)
    console.print(f"Exported {n} entries to: {args.out}")
    return 0


COMMANDS: dict[str, Callable[[CampusService, argparse.Namespace], int]] = {
    "init": _cmd_init,
    "register": _cmd_register,
    "courses": _cmd_courses,
    "create-course": _cmd_create_course,
    "enroll": _cmd_enroll,
    "drop": _cmd_drop,
    "assignments": _cmd_assignments,
    "create-assignment": _cmd_create_assignment,
    "submit": _cmd_submit,
    "submissions": _cmd_submissions,
    "grade": _cmd_grade,
    "transcript": _cmd_transcript,
    "announce": _cmd_announce,
    "overview": _cmd_overview,
    "calendar": _cmd_calendar,
    "add-event": _cmd_add_event,
    "add-slot": _cmd_add_slot,
    "timetable": _cmd_timetable,
    "threads": _cmd_threads,
    "post": _cmd_post,
    "reply": _cmd_reply,
    "users": _cmd_users,
    "add-user": _cmd_add_user,
    "set-role": _cmd_set_role,
    "export": _cmd_export,
}


def build_parser() -> argparse.ArgumentParser:
    """
    Build the argparse CLI parser with sub-commands.
    """
    parser = argparse.ArgumentParser(prog="mycampus", description="MyCampus CLI")
    parser.add_argument("--data", type=str, default=None, help="Snapshot file (default: MYCAMPUS_DATA_PATH)")
    parser.add_argument("--as", dest="actor", type=str, default=None, help="E-mail of the acting user")
    parser.add_argument(
        "--password", type=str, default=os.environ.get("MYCAMPUS_PASSWORD"), help="Password of the acting user"
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Log every change")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("init", help="Create the data file (with demo data) if missing")

    p = sub.add_parser("register", help="Create an account")
    p.add_argument("name")
    p.add_argument("email")
    p.add_argument("new_password", metavar="password")
    p.add_argument("--role", choices=ROLES, default="student")

    p = sub.add_parser("courses", help="List my courses (or the whole catalog)")
    p.add_argument("--all", action="store_true", help="Show the catalog with free seats")
    p.add_argument("--search", type=str, default="", help="Filter by code/title")

    p = sub.add_parser("create-course", help="Create a course")
    p.add_argument("code")
    p.add_argument("title")
    p.add_argument("--capacity", type=int, default=60)
    p.add_argument("--credits", type=int, default=3)
    p.add_argument("--faculty", type=str, default=None, help="Owner (admin only), id or e-mail")

    for name, help_text in (("enroll", "Enroll in a course"), ("drop", "Drop a course")):
        p = sub.add_parser(name, help=help_text)
        p.add_argument("course", help="Course id or code (e.g. CSE101)")

    sub.add_parser("assignments", help="List assignments of my courses")

    p = sub.add_parser("create-assignment", help="Post an assignment")
    p.add_argument("course")
    p.add_argument("title")
    p.add_argument("due", help="Due date/time, ISO format (e.g. 2026-11-01T23:59)")
    p.add_argument("--points", type=float, default=100)
    p.add_argument("--instructions", type=str, default="")

    p = sub.add_parser("submit", help="Submit work for an assignment")
    p.add_argument("assignment_id")
    p.add_argument("file", help="File name, e.g. hw1.pdf")
    p.add_argument("--note", type=str, default="")

    p = sub.add_parser("submissions", help="List submissions of an assignment")
    p.add_argument("assignment_id")

    p = sub.add_parser("grade", help="Publish a grade")
    p.add_argument("submission_id")
    p.add_argument("score", type=float)
    p.add_argument("--feedback", type=str, default="")

    sub.add_parser("transcript", help="Show my grades")

    p = sub.add_parser("announce", help="Post a course announcement")
    p.add_argument("course")
    p.add_argument("title")
    p.add_argument("body")

    sub.add_parser("overview", help="Upcoming deadlines and latest announcements")
    sub.add_parser("calendar", help="Show the academic calendar")

    p = sub.add_parser("add-event", help="Add an academic calendar date")
    p.add_argument("title")
    p.add_argument("date", help="ISO date, e.g. 2026-12-20")
    p.add_argument("--type", choices=EVENT_TYPES, default="academic")

    p = sub.add_parser("add-slot", help="Add a weekly class meeting")
    p.add_argument("course")
    p.add_argument("day", type=int, help="0=Mon .. 6=Sun")
    p.add_argument("start", help="HH:MM")
    p.add_argument("end", help="HH:MM")
    p.add_argument("--room", type=str, default="")

    sub.add_parser("timetable", help="Show my weekly timetable")
    sub.add_parser("threads", help="Show course discussions")

    p = sub.add_parser("post", help="Start a course thread")
    p.add_argument("course")
    p.add_argument("title")
    p.add_argument("body")

    p = sub.add_parser("reply", help="Reply to a thread")
    p.add_argument("thread_id")
    p.add_argument("body")

    sub.add_parser("users", help="List all users (admin)")

    p = sub.add_parser("add-user", help="Create an account (admin)")
    p.add_argument("name")
    p.add_argument("email")
    p.add_argument("new_password", metavar="password")
    p.add_argument("--role", choices=ROLES, default="student")

    p = sub.add_parser("set-role", help="Change a user's role (admin)")
    p.add_argument("user", help="User id or e-mail")
    p.add_argument("role", choices=ROLES)

    p = sub.add_parser("export", help="Export calendar + deadlines to .ics")
    p.add_argument("out", type=str, help="Output file path (e.g. out.ics)")

    return parser


def main(argv: list[str] | None = None) -> None:
    """
    CLI entry point. Parses args, dispatches to command handlers,
    and exits via SystemExit with a return code.
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    settings = get_settings()
    level = logging.INFO if args.verbose else getattr(logging, settings.log_level.upper(), logging.WARNING)
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")

    try:
        store = JsonFileStore(Path(args.data) if args.data else settings.data_path)
        service = CampusService(store=store, settings=settings)
        raise SystemExit(COMMANDS[args.command](service, args))
    except CampusError as exc:
        console.print(f"[red]error:[/] {exc.kind}: {escape(exc.message)}")
        raise SystemExit(1)
