#!/usr/bin/env python3
"""
Library admin CLI - maintenance tasks for the library database.

Commands:
1. init-db      Create the tables
2. reconcile    Repair available-copy counts that drifted from issued loans
3. overdue      List issued loans past their due date
4. serve        Run the API with uvicorn

Usage:
    python cli.py init-db
    python cli.py reconcile --dry-run
    python cli.py overdue
    python cli.py serve --port 5000 --reload
"""
import argparse
import asyncio
import sys
from pathlib import Path

# Add parent to path
sys.path.insert(0, str(Path(__file__).parent))

# Load environment variables
from dotenv import load_dotenv
load_dotenv()


# ============================================================================
# COLORS AND FORMATTING
# ============================================================================

class Colors:
    """ANSI color codes for terminal output."""
    HEADER = '\033[95m'
    BLUE = '\033[94m'
    CYAN = '\033[96m'
    GREEN = '\033[92m'
    YELLOW = '\033[93m'
    RED = '\033[91m'
    BOLD = '\033[1m'
    END = '\033[0m'


def print_header(text: str):
    """Print a header."""
    print(f"\n{Colors.BOLD}{Colors.HEADER}{'='*70}{Colors.END}")
    print(f"{Colors.BOLD}{Colors.HEADER}  {text}{Colors.END}")
    print(f"{Colors.BOLD}{Colors.HEADER}{'='*70}{Colors.END}\n")


def print_success(text: str):
    """Print success message."""
    print(f"{Colors.GREEN}✓ {text}{Colors.END}")


def print_error(text: str):
    """Print error message."""
    print(f"{Colors.RED}✗ {text}{Colors.END}")


def print_warning(text: str):
    """Print warning message."""
    print(f"{Colors.YELLOW}⚠ {text}{Colors.END}")


def print_info(text: str):
    """Print info message."""
    print(f"{Colors.BLUE}ℹ {text}{Colors.END}")


# ============================================================================
# COMMANDS
# ============================================================================

async def init_database():
    """Create all tables."""
    from library_api.config import settings
    from library_api.database import close_db, init_db

    print_header("INITIALISE DATABASE")
    print_info(f"Database: {settings.database_url.split('@')[-1]}")
    try:
        await init_db()
    finally:
        await close_db()
    print_success("Tables created")


async def reconcile_inventory(dry_run: bool = False):
    """Recount available copies from the issued loans."""
    from library_api.database import AsyncSessionLocal, close_db
    from library_api.services import LoanService

    print_header("RECONCILE INVENTORY" + (" (dry run)" if dry_run else ""))
    try:
        async with AsyncSessionLocal() as session:
            report = await LoanService(session).reconcile(dry_run=dry_run)
            if dry_run:
                await session.rollback()
            else:
                await session.commit()
    finally:
        await close_db()

    print_info(f"Books checked: {report.books_checked}")
    if not report.repaired:
        print_success("All available-copy counts match the issued loans")
    for repair in report.repaired:
        verb = "would change" if dry_run else "changed"
        print_warning(
            f"Book {repair.book_id}: available {repair.available_before} {verb} to "
            f"{repair.available_after} ({repair.active_loans} issued loans)"
        )
    for book_id in report.over_issued_book_ids:
        print_error(f"Book {book_id} has more issued loans than copies; fix by hand")
    for book_id in report.orphaned_book_ids:
        print_error(f"Issued loans reference missing book {book_id}")

    return report


async def list_overdue():
    """Print every issued loan past its due date."""
    from library_api.database import AsyncSessionLocal, close_db
    from library_api.services import LoanService

    print_header("OVERDUE LOANS")
    try:
        async with AsyncSessionLocal() as session:
            service = LoanService(session)
            loans = service.present_many(await service.get_overdue_loans())
    finally:
        await close_db()

    if not loans:
        print_success("No overdue loans")
        return loans

    for loan in loans:
        book = loan["book"]
        borrower = loan["user"]
        title = book.title if book else f"book #{loan['book_id']}"
        who = f"{borrower.name} <{borrower.email}>" if borrower else f"user #{loan['user_id']}"
        print(
            f"  {Colors.CYAN}#{loan['id']}{Colors.END} {Colors.BOLD}{title}{Colors.END} "
            f"-> {who}, due {loan['due_date']:%Y-%m-%d}, "
            f"{Colors.RED}{loan['days_overdue']} day(s) overdue{Colors.END}"
        )
    print()
    print_warning(f"{len(loans)} overdue loan(s)")
    return loans


def serve(host: str, port: int, reload: bool):
    """Run the API server."""
    import uvicorn

    print_header("LIBRARY API")
    print_info(f"Listening on http://{host}:{port}")
    uvicorn.run("library_api.main:app", host=host, port=port, reload=reload)


# ============================================================================
# MAIN
# ============================================================================

def main():
    """Main entry point."""
    from library_api.config import settings

    parser = argparse.ArgumentParser(
        description="Library admin CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python cli.py init-db                  # Create tables
  python cli.py reconcile --dry-run      # Show drift without fixing it
  python cli.py reconcile                # Repair drift
  python cli.py overdue                  # List overdue loans
  python cli.py serve --reload           # Development server
        """
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("init-db", help="Create database tables")

    reconcile_parser = subparsers.add_parser(
        "reconcile",
        help="Repair available-copy counts from the issued loans",
    )
    reconcile_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Report drift without writing anything",
    )

    subparsers.add_parser("overdue", help="List overdue loans")

    serve_parser = subparsers.add_parser("serve", help="Run the API server")
    serve_parser.add_argument("--host", default=settings.host)
    serve_parser.add_argument("--port", type=int, default=settings.port)
    serve_parser.add_argument("--reload", action="store_true", help="Reload on code changes")

    args = parser.parse_args()

    try:
        if args.command == "init-db":
            asyncio.run(init_database())
        elif args.command == "reconcile":
            report = asyncio.run(reconcile_inventory(dry_run=args.dry_run))
            if report.over_issued_book_ids or report.orphaned_book_ids:
                sys.exit(2)
        elif args.command == "overdue":
            asyncio.run(list_overdue())
        elif args.command == "serve":
            serve(args.host, args.port, args.reload)

    except KeyboardInterrupt:
        print(f"\n\n{Colors.YELLOW}Interrupted by user{Colors.END}")
        sys.exit(1)
    except Exception as e:
        print_error(f"Unexpected error: {e}")
        import traceback
        traceback.print_exc()
        sys.exit(1)


if __name__ == "__main__":
    main()
