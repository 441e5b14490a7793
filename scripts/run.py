"""
Scripted intake run: personal info → uploads → continue gate → submit → PDF.

Plays the part of the browser UI: fills the personal-info step from command
line flags, attaches CV files, presses Continue, submits with an optional
email, then exports the new submission as a paginated PDF.

Usage:
    python scripts/run.py intake --first-name Ana --last-name Li --phone "+1 555 123 4567" --dob 1990-05-02
    python scripts/run.py intake ... --cv resume.pdf --cv cover.pdf --email ana@example.com
    python scripts/run.py list
    python scripts/run.py export <submission-id>
"""
from __future__ import annotations

import argparse
import asyncio
import sys
import time
from pathlib import Path

# Allow running from repo root without installing the package
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from cvintake.errors import PreviewGenerationFailure, UploadError
from cvintake.models.upload import SelectedFile
from cvintake.orchestrator import FormOrchestrator
from cvintake.services.auth import AuthSession
from cvintake.services.blob_storage import default_storage
from cvintake.services.kv_store import JsonFileKeyValueStore
from cvintake.services.storage import JsonSubmissionStore
from cvintake.services.validator import FIELD_ORDER
from cvintake.utils.logger import setup_logger

SEP = "─" * 64

# ── Output helpers ─────────────────────────────────────────────────────────────

def _section(title: str) -> None:
    print(f"\n{SEP}")
    print(f"  {title}")
    print(SEP)


def _ok(label: str, value: str) -> None:
    print(f"  ✓ {label:<20} {value}")


def _warn(label: str, value: str) -> None:
    print(f"  ⚠ {label:<20} {value}")


def _fail(label: str, value: str) -> None:
    print(f"  ✗ {label:<20} {value}")


def _build(user_id: str, email: str) -> FormOrchestrator:
    return FormOrchestrator(
        auth=AuthSession(user_id=user_id, email=email),
        store=JsonSubmissionStore(),
        blobs=default_storage(),
        kv=JsonFileKeyValueStore(),
    )


# ── Commands ───────────────────────────────────────────────────────────────────

async def intake(args: argparse.Namespace) -> int:
    app = _build(args.user, args.user_email)
    await app.open()

    print(f"\n{'═' * 64}")
    print(f"  Intake — logged in as {app.auth.email or app.auth.user_id}")
    print(f"{'═' * 64}")

    _section("STEP 1 — Personal Info")
    step = app.start()
    if app.has_draft:
        _ok("Draft", "restored")

    for name, value in (
        ("first_name", args.first_name),
        ("last_name", args.last_name),
        ("address", args.address),
        ("phone", args.phone),
        ("linkedin", args.linkedin),
        ("preferred_language", args.language),
    ):
        if value is None:
            continue
        step.change(name, value)
        step.blur(name)

    if args.dob:
        year, month, day = (args.dob.split("-") + ["", "", ""])[:3]
        step.select_dob(year=year, month=month, day=day)

    if args.cv:
        files = []
        for path in args.cv:
            try:
                files.append(SelectedFile.from_path(path))
            except UploadError as e:
                _fail("CV", str(e))
        for record in step.select_files(files):
            if record.error:
                _warn("CV", f"{record.name} — {record.error_message}")
            else:
                _ok("CV queued", f"{record.name} ({record.size:,} bytes)")

        # queued records count as settled; wait for the first bytes to move
        for _ in range(40):
            if not any(r.progress == 0 and not r.error and not r.restored for r in step.tracker.records):
                break
            await asyncio.sleep(0.05)

    _section("STEP 2 — Continue")
    t0 = time.perf_counter()
    outcome = await app.continue_personal()
    elapsed = time.perf_counter() - t0

    if not outcome.advanced:
        _fail("Gate", f"{outcome.state.value} after {elapsed:.1f}s")
        for name in FIELD_ORDER:
            msg = outcome.errors.get(name)
            if msg:
                _fail(name, msg)
        if outcome.focus:
            _warn("Focus", outcome.focus)
        app.go_home()
        return 1

    _ok("Gate", f"advanced in {elapsed:.1f}s")
    for url in app.form.cv_urls:
        _ok("CV URL", url[:72])

    _section("STEP 3 — Submit")
    result = await app.submit(args.email)
    if not result.success:
        _fail("Submit", result.message)
        return 1
    _ok("Submitted", result.id)
    _ok("Your submissions", f"{len(app.submissions)} of {app.submission_count}")

    if not args.no_pdf and app.last_submission is not None:
        _section("STEP 4 — PDF")
        try:
            path = app.export_pdf(app.last_submission)
            _ok("PDF", str(path))
        except PreviewGenerationFailure as e:
            _fail("PDF", str(e))

    print(f"\n{'═' * 64}")
    print(f"  Intake complete.")
    print(f"{'═' * 64}\n")
    return 0


async def list_submissions(args: argparse.Namespace) -> int:
    app = _build(args.user, args.user_email)
    await app.open()
    if app.error:
        _fail("Load", app.error)
        return 1

    _section(f"Submissions for {args.user}")
    _ok("Total submissions", str(app.submission_count))
    _ok("Your submissions", str(len(app.submissions)))
    for s in app.submissions:
        print(f"  #{s.id[-8:]}  {s.submitted_at:%Y-%m-%d %H:%M}  {s.first_name} {s.last_name}")
    return 0


async def export(args: argparse.Namespace) -> int:
    app = _build(args.user, args.user_email)
    await app.open()
    match = next((s for s in app.submissions if s.id == args.submission_id), None)
    if match is None:
        _fail("Export", f"No submission {args.submission_id} for {args.user}")
        return 1
    try:
        path = app.export_pdf(match, args.output_dir)
    except PreviewGenerationFailure as e:
        _fail("Export", str(e))
        return 1
    _ok("PDF", str(path))
    return 0


# ── Entry point ────────────────────────────────────────────────────────────────

if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Personal-info intake form, driven from the command line.")
    parser.add_argument("--user", default="local-user", help="User id recorded on submissions")
    parser.add_argument("--user-email", default="", help="Email shown as the logged-in user")
    sub = parser.add_subparsers(dest="command", required=True)

    p_intake = sub.add_parser("intake", help="Fill, validate and submit the form")
    p_intake.add_argument("--first-name")
    p_intake.add_argument("--last-name")
    p_intake.add_argument("--dob", help="Date of birth as YYYY-MM-DD")
    p_intake.add_argument("--address")
    p_intake.add_argument("--phone")
    p_intake.add_argument("--linkedin")
    p_intake.add_argument("--language", help="Preferred language (default: english)")
    p_intake.add_argument("--cv", type=Path, action="append", help="CV file to attach (repeatable)")
    p_intake.add_argument("--email", default=None, help="Optional email to store on the submission")
    p_intake.add_argument("--no-pdf", action="store_true", help="Skip exporting the PDF")

    sub.add_parser("list", help="List your recent submissions")

    p_export = sub.add_parser("export", help="Export a submission as a paginated PDF")
    p_export.add_argument("submission_id")
    p_export.add_argument("--output-dir", type=Path, default=None)

    args = parser.parse_args()
    setup_logger()

    handlers = {"intake": intake, "list": list_submissions, "export": export}
    sys.exit(asyncio.run(handlers[args.command](args)))
