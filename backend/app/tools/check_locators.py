from __future__ import annotations

import argparse
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from bs4 import BeautifulSoup

from ..config import settings
from ..services.document_patcher import PARSER
from ..services.field_map import LocatorTable, get_locator_table, load_locator_table


@dataclass
class LocatorCheck:
    section: str
    key: str
    selector: str
    ok: bool


def check_document(html: str, table: LocatorTable) -> List[LocatorCheck]:
    soup = BeautifulSoup(html, PARSER)
    out: List[LocatorCheck] = []
    for name, spec in table.sections.items():
        container = soup.select_one(spec.container)
        out.append(LocatorCheck(name, "<container>", spec.container, container is not None))
        if container is None:
            continue
        for key, locator in spec.locators.items():
            out.append(LocatorCheck(name, key, locator.selector, container.select_one(locator.selector) is not None))
        if spec.image is not None:
            found = container.select_one(spec.image.selector) is not None
            out.append(LocatorCheck(name, "<image>", spec.image.selector, found))
        if spec.list_block is not None:
            found = container.select_one(spec.list_block.container) is not None
            out.append(LocatorCheck(name, "<list>", spec.list_block.container, found))
    return out


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Check that every field locator resolves against a site document")
    parser.add_argument("document", nargs="?", help="HTML file (default: <REPO_PATH>/<INDEX_FILE>)")
    parser.add_argument("--table", help="Locator table YAML (default: bundled site/locators.yml)")
    parser.add_argument("--quiet", action="store_true", help="Only print failures")
    args = parser.parse_args(argv)

    if args.document:
        path = Path(args.document)
    elif settings.repo_root is not None:
        path = settings.repo_root / settings.INDEX_FILE
    else:
        print("[error] no document given and REPO_PATH is not set", file=sys.stderr)
        return 2
    if not path.exists():
        print(f"[error] document not found: {path}", file=sys.stderr)
        return 2

    table = load_locator_table(Path(args.table)) if args.table else get_locator_table()
    checks = check_document(path.read_text(encoding="utf-8"), table)
    failed = [c for c in checks if not c.ok]
    for c in checks:
        if c.ok and args.quiet:
            continue
        status = "ok  " if c.ok else "MISS"
        print(f"{status} {c.section:<13} {c.key:<14} {c.selector}")
    print(f"\nlocator table v{table.version}: {len(checks) - len(failed)}/{len(checks)} resolved in {path}")
    return 1 if failed else 0


if __name__ == "__main__":
    sys.exit(main())
