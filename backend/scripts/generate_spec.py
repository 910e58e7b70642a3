#!/usr/bin/env python
"""Generate the OpenAPI spec JSON for the PO console.

Usage:
  python -m scripts.generate_spec --out backend/openapi.json
  python -m scripts.generate_spec --cancel-capability PO.EDIT

Options:
  --out PATH                Write full spec JSON to PATH (directories auto-created)
  --cancel-capability CODE  Document the cancel gate a deployment runs with

Without --out the spec is printed to stdout.

Exit Codes:
  0 success
  3 invalid --cancel-capability
"""
from __future__ import annotations
import argparse, json, pathlib, sys

from po_admin.config.settings import cancel_capability
from po_admin.openapi import build_openapi_spec
from po_admin.utils.fsm import StatusTransitionModel


def main(argv: list[str]) -> int:
    p = argparse.ArgumentParser(description="Generate deterministic OpenAPI spec")
    p.add_argument('--out', dest='out', help='Path to write JSON spec')
    p.add_argument('--cancel-capability', dest='cancel', default='', help='Permission code gating CANCELLED')
    args = p.parse_args(argv)

    try:
        model = StatusTransitionModel(cancel_capability=cancel_capability(args.cancel))
    except ValueError as e:
        print(str(e), file=sys.stderr)
        return 3
    text = json.dumps(build_openapi_spec(model), indent=2, sort_keys=True) + '\n'

    if args.out:
        out_path = pathlib.Path(args.out)
        out_path.parent.mkdir(parents=True, exist_ok=True)
        out_path.write_text(text)
        print(f"Wrote spec JSON to {out_path} ({len(text)} bytes)")
    else:
        sys.stdout.write(text)
    return 0


if __name__ == '__main__':  # pragma: no cover
    sys.exit(main(sys.argv[1:]))
