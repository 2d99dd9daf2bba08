"""
Schema setup and smoke-test CLI.

Usage:
    pseudovault-schema            # create the three tables
    pseudovault-schema --smoke    # ...then create, read and delete one user

Or run directly:
    python -m pseudovault.cli

Connection settings come from the environment or a .env file (see config.py).
"""

from __future__ import annotations

import argparse
import asyncio
import sys
import time
from typing import List, Optional

from .bootstrap import open_pools, open_user_service
from .config import Settings
from .errors import NotFoundError, PseudoVaultError
from .logging import configure_logging
from .models import Role, UserInput
from .schema import apply_schema

SMOKE_USER = UserInput(
    username="smoke-test-user",
    password="smoke-test-password",
    email="smoke-test@example.invalid",
    name="Smoke Test",
    address="1 Example Street",
    national_id=999999998,
    phone="+351910000000",
    organization_id="smoke-test-org",
    role=Role.STAFF,
)


async def apply_schemas(settings: Settings) -> None:
    """Create personal_data, auth_users and pseudonym_bindings in their stores."""
    async with open_pools(settings) as pools:
        for table, pool in (
            ("personal_data", pools.users),
            ("auth_users", pools.auth),
            ("pseudonym_bindings", pools.pseudonyms),
        ):
            start = time.perf_counter()
            await apply_schema(pool, table)
            print(f"[OK] {table} ready in {(time.perf_counter() - start) * 1000:.3f}ms")


async def smoke_test(settings: Settings) -> None:
    """Create a user, read it back, delete it and confirm it is gone."""
    async with open_user_service(settings) as service:
        start = time.perf_counter()
        user = await service.create_user(SMOKE_USER)
        print(f"[OK] Created user {user.id}")

        try:
            fetched = await service.get_user_by_id(user.id)
            if fetched != user:
                raise RuntimeError("Round trip returned a different user")
            print("[OK] Read back identical fields")
        finally:
            await service.delete_user(user.id)

        try:
            await service.get_user_by_id(user.id)
        except NotFoundError:
            print("[OK] Deleted user no longer resolves")
        else:
            raise RuntimeError("Deleted user still resolves")

        print(f"[PERF] Round trip: {(time.perf_counter() - start) * 1000:.3f}ms")


async def run(args: argparse.Namespace) -> None:
    settings = Settings.from_env(dotenv_path=args.env_file)
    await apply_schemas(settings)
    if args.smoke:
        await smoke_test(settings)


def main(argv: Optional[List[str]] = None) -> None:
    """Entry point."""
    parser = argparse.ArgumentParser(prog="pseudovault-schema", description=__doc__.splitlines()[1])
    parser.add_argument("--smoke", action="store_true", help="run a create/read/delete round trip")
    parser.add_argument("--env-file", default=None, help="path to a .env file")
    args = parser.parse_args(argv)

    configure_logging()
    try:
        asyncio.run(run(args))
    except (PseudoVaultError, RuntimeError) as e:
        print(f"ERROR: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
