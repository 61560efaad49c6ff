"""Command-line client for credential-sync.

Fetches a namespace's credentials straight from the backend into a fresh
in-memory store and prints one of the derived views, or launches the HTTP
server.

Usage:
    credential-sync list garden-dev
    credential-sync list garden-dev --view dns --json
    credential-sync serve --port 8000
"""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from argparse import ArgumentParser

from dotenv import load_dotenv

from credential_sync.classifiers import ProviderTypeClassifier
from credential_sync.client import DashboardClient, Settings
from credential_sync.errors import CredentialSyncError
from credential_sync.service import CredentialService
from credential_sync.store.views import VIEW_NAMES


async def _list_bindings(namespace: str, view: str, as_json: bool) -> int:
    """Fetch *namespace* once and print the bindings of *view*. Returns an exit code."""
    settings = Settings.from_env()
    client = DashboardClient(settings)
    service = CredentialService(client, namespace, classifier=ProviderTypeClassifier.from_env())
    try:
        await service.fetch_all()
    except CredentialSyncError as e:
        print(f"error: failed to fetch credentials for {namespace!r}: {e}", file=sys.stderr)
        return 2
    finally:
        await client.close()

    bindings = service.views.bindings(view)
    if as_json:
        print(json.dumps([b.to_dict() for b in bindings], indent=2, default=str))
        return 0

    if not bindings:
        print(f"No {view} bindings in namespace {namespace!r}.")
        return 0

    print(f"{'KIND':<20} {'NAMESPACE':<20} {'NAME':<32} PROVIDER")
    for b in bindings:
        print(
            f"{b.kind:<20} {b.metadata.namespace:<20} {b.metadata.name:<32} "
            f"{b.provider_type or '-'}"
        )
    return 0


# ---------------------------------------------------------------------------
# CLI entry point
# ---------------------------------------------------------------------------


def main() -> None:
    load_dotenv()
    settings = Settings.from_env()
    logging.basicConfig(level=settings.log_level, format="%(levelname)s: %(message)s")

    parser = ArgumentParser(
        prog="credential-sync",
        description="Cloud provider credential views for a namespace",
    )
    sub = parser.add_subparsers(dest="command", metavar="COMMAND")

    list_p = sub.add_parser("list", help="Fetch a namespace and print its bindings")
    list_p.add_argument("namespace", help="Namespace to fetch credentials for")
    list_p.add_argument(
        "--view",
        choices=VIEW_NAMES,
        default="all",
        help="Which derived binding list to print (default: all)",
    )
    list_p.add_argument("--json", action="store_true", help="Print records as JSON")

    serve_p = sub.add_parser("serve", help="Run the HTTP API")
    serve_p.add_argument("--host", default="0.0.0.0")
    serve_p.add_argument("--port", type=int, default=8000)
    serve_p.add_argument("--reload", action="store_true")

    args = parser.parse_args()

    if args.command == "list":
        sys.exit(asyncio.run(_list_bindings(args.namespace, args.view, args.json)))
    elif args.command == "serve":
        from credential_sync.api import serve

        serve(host=args.host, port=args.port, reload=args.reload)
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
