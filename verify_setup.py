"""
Setup verification script for the DocuGen backend.
Checks all dependencies and services are properly configured.
"""
import asyncio
import sys
import os
from typing import List, Tuple

# Color codes for terminal output
GREEN = "\033[92m"
RED = "\033[91m"
YELLOW = "\033[93m"
BLUE = "\033[94m"
RESET = "\033[0m"


def print_status(message: str, status: bool):
    """Print colored status message."""
    symbol = f"{GREEN}✓{RESET}" if status else f"{RED}✗{RESET}"
    print(f"{symbol} {message}")


async def check_python_version() -> bool:
    """Check Python version is 3.11+."""
    version = sys.version_info
    if version.major == 3 and version.minor >= 11:
        print_status(f"Python version: {version.major}.{version.minor}.{version.micro}", True)
        return True
    else:
        print_status(f"Python version {version.major}.{version.minor} (requires 3.11+)", False)
        return False


async def check_dependencies() -> bool:
    """Check if required packages are installed."""
    required_packages = [
        "fastapi",
        "uvicorn",
        "pydantic_settings",
        "sqlalchemy",
        "asyncpg",
        "httpx",
        "docx",
        "pptx",
    ]

    all_installed = True
    for package in required_packages:
        try:
            __import__(package)
            print_status(f"Package '{package}' installed", True)
        except ImportError:
            print_status(f"Package '{package}' missing", False)
            all_installed = False

    return all_installed


async def check_env_file() -> bool:
    """Check if .env file exists."""
    if os.path.exists(".env"):
        print_status(".env file exists", True)
        return True
    else:
        print_status(".env file missing (create one with SUPABASE_*, DATABASE_URL, GEMINI_API_KEY)", False)
        return False


async def check_identity() -> bool:
    """Check that the Supabase Auth endpoint answers with the configured key."""
    from docugen.config import settings

    if not settings.identity_configured:
        print_status("SUPABASE_URL / SUPABASE_ANON_KEY not set", False)
        return False
    try:
        import httpx

        async with httpx.AsyncClient(timeout=5.0) as client:
            response = await client.get(
                f"{settings.SUPABASE_URL.rstrip('/')}/auth/v1/settings",
                headers={"apikey": settings.SUPABASE_ANON_KEY},
            )
        ok = response.status_code == 200
        print_status(f"Supabase Auth reachable (status {response.status_code})", ok)
        return ok

    except Exception as e:
        print_status(f"Supabase Auth connection failed: {str(e)}", False)
        return False


async def check_gemini() -> bool:
    """Check that a Gemini key is configured and the model exists."""
    from docugen.config import settings

    if not settings.generation_configured:
        print_status("GEMINI_API_KEY not set (outlines fall back to fixed lists)", False)
        return False
    try:
        import httpx

        async with httpx.AsyncClient(timeout=5.0) as client:
            response = await client.get(
                f"{settings.GEMINI_BASE_URL.rstrip('/')}/v1beta/models/{settings.GEMINI_MODEL}",
                headers={"x-goog-api-key": settings.GEMINI_API_KEY},
            )
        ok = response.status_code == 200
        print_status(f"Gemini model '{settings.GEMINI_MODEL}': {'Found' if ok else 'Missing'}", ok)
        if not ok:
            print(f"  {YELLOW}Check GEMINI_API_KEY and GEMINI_MODEL in .env{RESET}")
        return ok

    except Exception as e:
        print_status(f"Gemini connection failed: {str(e)}", False)
        return False


async def check_postgres() -> bool:
    """Check that DATABASE_URL points at a reachable PostgreSQL."""
    from docugen.config import settings

    if not settings.store_configured:
        print_status("DATABASE_URL not set", False)
        return False
    try:
        import asyncpg

        dsn = settings.DATABASE_URL.replace("postgresql+asyncpg://", "postgresql://")
        conn = await asyncpg.connect(dsn, timeout=5)

        tables = await conn.fetch(
            "SELECT tablename FROM pg_tables WHERE tablename IN ('profiles', 'projects')"
        )
        await conn.close()

        found = {row["tablename"] for row in tables}
        print_status("PostgreSQL connection successful", True)
        print_status(
            f"Tables: {', '.join(sorted(found)) or 'none'} (created on startup if missing)",
            True,
        )
        return True

    except Exception as e:
        print_status(f"PostgreSQL connection failed: {str(e)}", False)
        return False


async def main():
    """Run all verification checks."""
    print(f"\n{BLUE}{'='*60}{RESET}")
    print(f"{BLUE}DocuGen Backend - Setup Verification{RESET}")
    print(f"{BLUE}{'='*60}{RESET}\n")

    checks: List[Tuple[str, callable]] = [
        ("Python Version", check_python_version),
        ("Dependencies", check_dependencies),
        ("Environment File", check_env_file),
        ("PostgreSQL", check_postgres),
        ("Supabase Auth", check_identity),
        ("Gemini", check_gemini),
    ]

    results = []

    for check_name, check_func in checks:
        print(f"\n{BLUE}Checking {check_name}...{RESET}")
        try:
            result = await check_func()
            results.append(result)
        except Exception as e:
            print_status(f"Error during check: {str(e)}", False)
            results.append(False)

    # Summary
    print(f"\n{BLUE}{'='*60}{RESET}")
    passed = sum(results)
    total = len(results)

    if passed == total:
        print(f"{GREEN}✓ All checks passed! ({passed}/{total}){RESET}")
        print(f"\n{GREEN}You're ready to run the backend:{RESET}")
        print(f"  uvicorn docugen.main:app --reload")
    else:
        print(f"{RED}✗ Some checks failed ({passed}/{total} passed){RESET}")
        print(f"\n{YELLOW}Please fix the issues above before running the backend.{RESET}")
        sys.exit(1)

    print(f"{BLUE}{'='*60}{RESET}\n")


if __name__ == "__main__":
    asyncio.run(main())
