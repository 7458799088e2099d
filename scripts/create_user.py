import argparse
import os
import sys

import httpx

DEFAULT_API_URL = "http://localhost:8080/api"


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Create a user through a running GeoUsers API")
    parser.add_argument("name", help="Display name for the user")
    parser.add_argument("zip_code", help="US ZIP code used to resolve location and timezone")
    parser.add_argument(
        "--api-url",
        default=None,
        help=f"Base URL of the API (defaults to GEOUSERS_API_URL or {DEFAULT_API_URL})",
    )
    parser.add_argument("--timeout", type=float, default=10.0, help="Request timeout in seconds")
    return parser.parse_args(argv)


def main(argv=None, *, transport=None) -> int:
    args = parse_args(argv)
    base_url = (args.api_url or os.getenv("GEOUSERS_API_URL") or DEFAULT_API_URL).rstrip("/")

    try:
        with httpx.Client(timeout=args.timeout, transport=transport) as client:
            response = client.post(
                f"{base_url}/users",
                json={"name": args.name.strip(), "zipCode": args.zip_code.strip()},
            )
    except httpx.HTTPError as exc:
        print(f"Error: could not reach {base_url}: {exc}", file=sys.stderr)
        return 1

    try:
        payload = response.json()
    except ValueError:
        print(f"Error: unexpected response ({response.status_code}): {response.text.strip()}", file=sys.stderr)
        return 1

    if not payload.get("success"):
        print(f"Error: {payload.get('code', response.status_code)}: {payload.get('message')}", file=sys.stderr)
        for detail in payload.get("details") or []:
            print(f"  {detail.get('path')}: {detail.get('message')}", file=sys.stderr)
        return 1

    user = payload["data"]
    print(f"Created user {user['id']}: {user['name']} ({user['zipCode']})")
    print(f"Location: {user['latitude']}, {user['longitude']} ({user['timezone']})")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
