"""
Setup verification script for the Otro7a Manager backend.
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
    """Check Python version is 3.10+."""
    version = sys.version_info
    if version.major == 3 and version.minor >= 10:
        print_status(f"Python version: {version.major}.{version.minor}.{version.micro}", True)
        return True
    else:
        print_status(f"Python version {version.major}.{version.minor} (requires 3.10+)", False)
        return False


async def check_dependencies() -> bool:
    """Check if required packages are installed."""
    required_packages = [
        "fastapi",
        "uvicorn",
        "sqlalchemy",
        "asyncpg",
        "pydantic_settings",
        "httpx",
        "aiofiles",
        "multipart",
        "fitz",
        "docx",
        "PIL",
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
        print_status(".env file missing (settings fall back to defaults)", False)
        return False


async def check_upload_dir() -> bool:
    """Check if the figure upload directory exists."""
    from app.config import settings

    if os.path.isdir(settings.UPLOAD_DIR):
        print_status(f"Upload directory {settings.UPLOAD_DIR} exists", True)
        return True
    else:
        print_status(f"Upload directory {settings.UPLOAD_DIR} missing (will be created on startup)", False)
        return False


async def check_email() -> bool:
    """Check the transactional email provider is configured."""
    from app.config import settings

    configured = bool(settings.EMAIL_API_KEY)
    print_status(f"EMAIL_API_KEY {'set' if configured else 'not set'} (provider: {settings.EMAIL_API_URL})", configured)
    if not configured:
        print(f"  {YELLOW}Invitations will be stored but marked as failed{RESET}")
    return configured


async def check_crossref() -> bool:
    """Check the Crossref API is reachable."""
    try:
        import httpx
        from app.config import settings

        async with httpx.AsyncClient(timeout=5.0) as client:
            response = await client.get(f"{settings.CROSSREF_BASE_URL}/works", params={"rows": 1})

        ok = response.status_code == 200
        print_status(f"Crossref API reachable (status {response.status_code})", ok)
        return ok

    except Exception as e:
        print_status(f"Crossref connection failed: {str(e)}", False)
        return False


async def check_database() -> bool:
    """Check the configured database accepts connections."""
    from app.database import AsyncSessionLocal, engine, ping_database

    async with AsyncSessionLocal() as session:
        ok = await ping_database(session)
    await engine.dispose()

    print_status(f"Database connection ({engine.dialect.name})", ok)
    if not ok:
        print(f"  {YELLOW}Check DATABASE_URL in .env{RESET}")
    return ok


async def main():
    """Run all verification checks."""
    print(f"\n{BLUE}{'='*60}{RESET}")
    print(f"{BLUE}Otro7a Manager Backend - Setup Verification{RESET}")
    print(f"{BLUE}{'='*60}{RESET}\n")

    checks: List[Tuple[str, callable]] = [
        ("Python Version", check_python_version),
        ("Dependencies", check_dependencies),
        ("Environment File", check_env_file),
        ("Upload Directory", check_upload_dir),
        ("Database", check_database),
        ("Email Provider", check_email),
        ("Crossref", check_crossref),
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
        print(f"  uvicorn app.main:app --reload")
    else:
        print(f"{RED}✗ Some checks failed ({passed}/{total} passed){RESET}")
        print(f"\n{YELLOW}Please fix the issues above before running the backend.{RESET}")
        sys.exit(1)

    print(f"{BLUE}{'='*60}{RESET}\n")


if __name__ == "__main__":
    asyncio.run(main())
